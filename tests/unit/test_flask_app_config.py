"""Tests for the application factory wiring."""
import pytest

from oneid.config import AppConfig
from oneid.core.connections import InMemoryConnectionRepository, YamlConnectionRepository
from oneid.flask_app import create_app


def make_config(**overrides):
    base = dict(
        demo_mode=True,
        secret_key="secret",
        trusted_proxy_ips="127.0.0.1/32,not-a-network",
        request_timeout=9,
    )
    base.update(overrides)
    return AppConfig(**base)


def test_in_memory_store_by_default():
    app = create_app(make_config())
    service = app.config["CONNECTION_SERVICE"]
    assert isinstance(service.repository, InMemoryConnectionRepository)
    assert service.timeout == 9
    assert app.config["SECRET_KEY"] == "secret"


def test_yaml_store_when_file_configured(tmp_path):
    app = create_app(make_config(connections_file=str(tmp_path / "connections.yaml")))
    assert isinstance(app.config["CONNECTION_SERVICE"].repository, YamlConnectionRepository)


def test_invalid_proxy_entries_skipped():
    app = create_app(make_config())
    assert [str(n) for n in app.config["TRUSTED_PROXY_NETWORKS"]] == ["127.0.0.1/32"]


def test_routes_registered():
    app = create_app(make_config())
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert {"/health", "/ready", "/api/connections", "/api/connections/test-config",
            "/api/connections/<connection_id>", "/api/connections/<connection_id>/test"} <= rules


@pytest.mark.parametrize("headers", [
    {"X-Forwarded-Proto": "http"},
    {"X-Forwarded-For": "1.1.1.1, 2.2.2.2"},
])
def test_untrusted_forwarding_rejected(headers):
    client = create_app(make_config()).test_client()
    response = client.get("/health", headers=headers)
    assert response.status_code == 400
