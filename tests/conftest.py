"""Pytest shared fixtures: network guard rails, HTTP stubs and the Flask client."""
import json
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("TRUSTED_PROXY_IPS", "127.0.0.1/32,::1/128")

import pytest
import requests

from oneid.core import audit
from oneid.core.connections import ConnectionService, InMemoryConnectionRepository
from oneid.core.pingone import ConnectionConfig, ProbeResult, TestReport
from oneid.flask_app import create_app

ENV_ID = "11111111-2222-3333-4444-555555555555"
API_BASE = f"https://api.pingone.com/v1/environments/{ENV_ID}"
TOKEN_URL = f"{API_BASE}/as/token"


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200, text: str = None):
        self._payload = payload
        self.status_code = status_code
        if text is not None:
            self.text = text
        else:
            self.text = json.dumps(payload) if payload is not None else ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class HttpStub:
    """Routes requests.get/post to canned responses and records every call.

    A route matches when the requested URL equals or ends with its pattern.
    The response may be a StubResponse, an exception instance to raise, a
    callable ``(url, **kwargs) -> StubResponse`` or a list consumed in order.
    """

    def __init__(self):
        self.routes = []
        self.calls = []

    def on(self, method: str, pattern: str, response):
        self.routes.append((method.upper(), pattern, response))
        return self

    def calls_to(self, pattern: str):
        return [call for call in self.calls if call[1] == pattern or call[1].endswith(pattern)]

    def _dispatch(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for route_method, pattern, response in reversed(self.routes):
            if route_method != method or not (url == pattern or url.endswith(pattern)):
                continue
            if isinstance(response, list):
                response = response.pop(0)
            if isinstance(response, BaseException):
                raise response
            if callable(response):
                return response(url, **kwargs)
            return response
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    def get(self, url, *args, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, *args, **kwargs):
        return self._dispatch("POST", url, **kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def http(monkeypatch):
    """Replace requests.get/post so unit tests can never reach the network.

    Tests register the responses they expect on the returned HttpStub; any
    other request raises RuntimeError.
    """
    stub = HttpStub()
    monkeypatch.setattr(requests, "get", stub.get)
    monkeypatch.setattr(requests, "post", stub.post)
    return stub


@pytest.fixture(autouse=True)
def _isolated_audit_log(monkeypatch, tmp_path):
    """Keep audit events out of the working tree."""
    audit.reset_audit_config()
    monkeypatch.setenv("AUDIT_LOG_DIR", str(tmp_path / "audit"))
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    yield tmp_path / "audit"
    audit.reset_audit_config()


# ─────────────────────────────────────────────────────────────────────────────
# PingOne fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def pingone_config():
    return ConnectionConfig(
        client_id="console-app",
        client_secret="s3cr3t",
        environment_id=ENV_ID,
    )


@pytest.fixture()
def token_ok():
    return StubResponse({
        "access_token": "test-token",
        "token_type": "Bearer",
        "expires_in": 3600,
        "scope": "p1:read:user p1:read:group",
    })


def passing_report(name: str = "Authentication") -> TestReport:
    report = TestReport(success=True, overall="All tests passed - connection is working")
    report.add(ProbeResult(name=name, success=True, message="ok"))
    return report


def failing_report(name: str = "Authentication") -> TestReport:
    report = TestReport(success=False, overall="Authentication failed")
    report.add(ProbeResult(name=name, success=False, message="Invalid client credentials"))
    return report


class RecordingTester:
    """Connection tester double that records what it was asked to test."""

    def __init__(self, report: TestReport = None):
        self.report = report or passing_report()
        self.calls = []

    def pingone(self, config, timeout):
        self.calls.append(("PINGONE", config, timeout))
        return self.report

    def directory(self, kind, config, timeout):
        self.calls.append((kind, config, timeout))
        return self.report


@pytest.fixture()
def tester():
    return RecordingTester()


@pytest.fixture()
def service(tester):
    return ConnectionService(
        InMemoryConnectionRepository(),
        timeout=5,
        pingone_tester=tester.pingone,
        directory_tester=tester.directory,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app(service):
    flask_app = create_app(service=service)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    """Flask test client backed by an in-memory connection service."""
    with app.test_client() as client:
        with app.app_context():
            yield client
