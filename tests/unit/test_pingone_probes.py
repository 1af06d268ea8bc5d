"""Tests for PingOne probes and the connection test workflow."""
import requests

from oneid.core.pingone import probe_environment_access, probe_user_api_access, test_connection
from oneid.core.pingone import probes
from oneid.core.pingone.probes import INSUFFICIENT_PERMISSIONS_MESSAGE
from tests.conftest import API_BASE, TOKEN_URL, StubResponse


def _users_ok(count=42):
    return StubResponse({"count": count, "_embedded": {"users": [{"id": "u1"}]}})


# ─────────────────────────────────────────────────────────────────────────────
# Environment probe
# ─────────────────────────────────────────────────────────────────────────────
def test_environment_probe_success(http, pingone_config):
    http.on("GET", API_BASE, StubResponse({"id": "env", "name": "Prod"}))
    check = probe_environment_access(pingone_config, "tok")
    assert check.success is True
    assert check.message == "Environment access verified"
    assert check.details["name"] == "Prod"


def test_environment_probe_http_failure(http, pingone_config):
    http.on("GET", API_BASE, StubResponse({"code": "NOT_FOUND"}, status_code=404))
    check = probe_environment_access(pingone_config, "tok")
    assert check.success is False
    assert check.message == "Environment access failed: HTTP 404"


def test_environment_probe_network_failure(http, pingone_config):
    http.on("GET", API_BASE, requests.Timeout("timed out"))
    check = probe_environment_access(pingone_config, "tok")
    assert check.success is False
    assert check.message.startswith("Environment test failed:")


# ─────────────────────────────────────────────────────────────────────────────
# User API probe
# ─────────────────────────────────────────────────────────────────────────────
def test_user_probe_reports_count_and_group_permission(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", _users_ok(42))
    http.on("GET", f"{API_BASE}/groups", StubResponse({"count": 3}))

    check = probe_user_api_access(pingone_config, "tok")

    assert check.success is True
    assert check.details == {"userCount": 42, "permissions": ["p1:read:user", "p1:read:group"]}
    assert http.calls_to("/users")[0][2]["params"] == {"limit": 1}


def test_user_probe_403_has_dedicated_message(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse({"code": "ACCESS_FAILED"}, status_code=403))
    check = probe_user_api_access(pingone_config, "tok")
    assert check.success is False
    assert check.message == INSUFFICIENT_PERMISSIONS_MESSAGE


def test_user_probe_other_status(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse({}, status_code=500))
    check = probe_user_api_access(pingone_config, "tok")
    assert check.message == "User API access failed: HTTP 500"


def test_group_probe_http_failure_omits_permission(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", _users_ok())
    http.on("GET", f"{API_BASE}/groups", StubResponse({}, status_code=403))

    check = probe_user_api_access(pingone_config, "tok")

    assert check.success is True
    assert check.details["permissions"] == ["p1:read:user"]


def test_group_probe_network_failure_omits_permission(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", _users_ok())
    http.on("GET", f"{API_BASE}/groups", requests.ConnectionError("reset"))

    check = probe_user_api_access(pingone_config, "tok")

    assert check.success is True
    assert check.details["permissions"] == ["p1:read:user"]


def test_user_count_defaults_to_zero(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse({"_embedded": {"users": []}}))
    http.on("GET", f"{API_BASE}/groups", StubResponse({}))
    assert probe_user_api_access(pingone_config, "tok").details["userCount"] == 0


def test_user_probe_tolerates_non_object_body(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse(["unexpected"]))
    http.on("GET", f"{API_BASE}/groups", StubResponse({}))

    check = probe_user_api_access(pingone_config, "tok")

    assert check.success is True
    assert check.details["userCount"] == 0


def test_user_probe_tolerates_non_object_embedded(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse({"_embedded": "none"}))
    http.on("GET", f"{API_BASE}/groups", StubResponse({}))
    assert probe_user_api_access(pingone_config, "tok").details["userCount"] == 0


# ─────────────────────────────────────────────────────────────────────────────
# Connection test workflow
# ─────────────────────────────────────────────────────────────────────────────
def test_all_steps_pass(http, pingone_config, token_ok):
    http.on("POST", TOKEN_URL, token_ok)
    http.on("GET", API_BASE, StubResponse({"id": "env"}))
    http.on("GET", f"{API_BASE}/users", _users_ok(5))
    http.on("GET", f"{API_BASE}/groups", StubResponse({}))

    report = test_connection(pingone_config)

    assert report.success is True
    assert report.overall == "All tests passed - connection is working"
    assert [t.name for t in report.tests] == ["Authentication", "Environment Access", "User API Access"]
    assert report.tests[0].details == {"expiresIn": 3600}


def test_authentication_failure_stops_early(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse({"error": "invalid_client"}, status_code=401))

    report = test_connection(pingone_config)

    assert report.success is False
    assert report.overall == "Authentication failed"
    assert len(report.tests) == 1
    assert report.tests[0].success is False
    assert all(call[0] == "POST" for call in http.calls)


def test_probe_failure_still_runs_remaining_steps(http, pingone_config, token_ok):
    http.on("POST", TOKEN_URL, token_ok)
    http.on("GET", API_BASE, StubResponse({}, status_code=404))
    http.on("GET", f"{API_BASE}/users", StubResponse({}, status_code=403))

    report = test_connection(pingone_config)

    assert report.success is False
    assert report.overall == "Some tests failed - check configuration"
    assert [t.success for t in report.tests] == [True, False, False]
    assert report.tests[2].message == INSUFFICIENT_PERMISSIONS_MESSAGE


def test_unexpected_error_is_captured(monkeypatch, pingone_config):
    def explode(*args, **kwargs):
        raise KeyError("boom")

    monkeypatch.setattr(probes, "acquire_token", explode)

    report = test_connection(pingone_config)

    assert report.success is False
    assert report.overall.startswith("Test failed:")
    assert "boom" in report.overall
