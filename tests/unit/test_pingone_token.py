"""Tests for the client-credentials token exchange."""
import logging

import requests

from oneid.core.pingone import acquire_token, token_fingerprint
from oneid.core.pingone.client import PingOneClient
from tests.conftest import API_BASE, TOKEN_URL, StubResponse


def test_token_request_uses_basic_auth_and_form_body(http, pingone_config, token_ok):
    http.on("POST", TOKEN_URL, token_ok)

    result = acquire_token(pingone_config, timeout=7)

    assert result.success is True
    assert result.access_token == "test-token"
    assert result.expires_in == 3600
    method, url, kwargs = http.calls[0]
    assert url == TOKEN_URL
    assert kwargs["auth"] == ("console-app", "s3cr3t")
    assert kwargs["data"]["grant_type"] == "client_credentials"
    assert kwargs["data"]["scope"] == pingone_config.requested_scopes
    assert "s3cr3t" not in str(kwargs["data"])
    assert kwargs["timeout"] == 7


def test_error_description_preferred(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse(
        {"error": "invalid_client", "error_description": "Client authentication failed"}, status_code=401,
    ))
    result = acquire_token(pingone_config)
    assert result.success is False
    assert result.error == "Client authentication failed"
    assert result.details["error"] == "invalid_client"
    assert result.error_kind == "authentication"


def test_error_code_used_without_description(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse({"error": "invalid_scope"}, status_code=400))
    assert acquire_token(pingone_config).error == "invalid_scope"


def test_status_used_when_json_has_no_error_fields(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse({"message": "?"}, status_code=400))
    assert acquire_token(pingone_config).error == "HTTP 400"


def test_non_json_error_body_includes_text(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse(None, status_code=502, text="Bad Gateway"))
    result = acquire_token(pingone_config)
    assert result.error == "HTTP 502: Bad Gateway"
    assert result.details is None


def test_network_error_is_normalized(http, pingone_config):
    http.on("POST", TOKEN_URL, requests.ConnectionError("connection refused"))
    result = acquire_token(pingone_config)
    assert result.success is False
    assert result.error_kind == "network"
    assert "connection refused" in result.error


def test_non_json_success_body_is_malformed(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse(None, status_code=200, text="<html>ok</html>"))
    result = acquire_token(pingone_config)
    assert result.success is False
    assert result.error_kind == "malformed_response"


def test_missing_access_token_is_malformed(http, pingone_config):
    http.on("POST", TOKEN_URL, StubResponse({"token_type": "Bearer"}))
    result = acquire_token(pingone_config)
    assert result.success is False
    assert result.error_kind == "malformed_response"


def test_token_never_logged(http, pingone_config, token_ok, caplog):
    http.on("POST", TOKEN_URL, token_ok)
    with caplog.at_level(logging.DEBUG):
        acquire_token(pingone_config)
    assert "test-token" not in caplog.text
    assert "s3cr3t" not in caplog.text
    assert token_fingerprint("test-token") in caplog.text


def test_fingerprint_is_short_and_stable():
    assert token_fingerprint("abc") == token_fingerprint("abc")
    assert len(token_fingerprint("abc")) == 12
    assert token_fingerprint(None) == "none"


def test_client_sends_bearer_header(http, pingone_config):
    http.on("GET", f"{API_BASE}/users", StubResponse({"count": 0}))
    client = PingOneClient(pingone_config, "tok", timeout=3)

    client.get("/users", params={"limit": 1})

    _, url, kwargs = http.calls[0]
    assert url == f"{API_BASE}/users"
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["params"] == {"limit": 1}
    assert kwargs["timeout"] == 3


def test_client_passes_absolute_urls_through(pingone_config):
    client = PingOneClient(pingone_config, "tok")
    absolute = "https://api.pingone.com/v1/environments/x/users?cursor=abc"
    assert client.url_for(absolute) == absolute
    assert client.url_for("/groups") == f"{API_BASE}/groups"
