"""Low-level HTTP client for the PingOne Platform API.

Handles the client-credentials token exchange and bearer-authenticated GETs.
"""
from __future__ import annotations
import hashlib
import logging
from typing import Optional, Dict, Any

import requests

from .models import ConnectionConfig, TokenResult

REQUEST_TIMEOUT = 30

logger = logging.getLogger(__name__)


def token_fingerprint(token: Optional[str]) -> str:
    """Return a short SHA-256 prefix of a token, safe to put in logs."""
    if not token:
        return "none"
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def _parse_token_error(resp: requests.Response) -> TokenResult:
    """Normalize a non-2xx token response into a failed TokenResult."""
    body = resp.text or ""
    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("error_description") or payload.get("error") or f"HTTP {resp.status_code}"
        return TokenResult(success=False, error=message, details=payload, error_kind="authentication")

    return TokenResult(
        success=False,
        error=f"HTTP {resp.status_code}: {body}",
        error_kind="authentication",
    )


def acquire_token(config: ConnectionConfig, timeout: float = REQUEST_TIMEOUT) -> TokenResult:
    """Exchange client credentials for a bearer token.

    Credentials travel only in the HTTP Basic ``Authorization`` header, never
    in the form body. Every failure mode is folded into a failed
    :class:`TokenResult`; this function does not raise.

    Args:
        config: PingOne connection configuration
        timeout: Per-request timeout in seconds

    Returns:
        TokenResult with ``success`` set accordingly
    """
    data = {
        "grant_type": "client_credentials",
        "scope": config.requested_scopes,
    }
    headers = {"Accept": "application/json"}

    try:
        resp = requests.post(
            config.token_url,
            data=data,
            headers=headers,
            auth=(config.client_id, config.client_secret),
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.warning(f"PingOne token request error | env={config.environment_id} | error={exc}")
        return TokenResult(success=False, error=str(exc), error_kind="network")

    if not resp.ok:
        result = _parse_token_error(resp)
        logger.warning(
            f"PingOne token request failed | env={config.environment_id} | "
            f"status={resp.status_code} | error={result.error}"
        )
        return result

    try:
        token_data = resp.json()
    except ValueError:
        logger.warning(f"PingOne token endpoint returned non-JSON body | env={config.environment_id}")
        return TokenResult(
            success=False,
            error="Token endpoint returned a malformed (non-JSON) response",
            error_kind="malformed_response",
        )

    if not isinstance(token_data, dict) or not token_data.get("access_token"):
        return TokenResult(
            success=False,
            error="Token endpoint response did not contain an access token",
            details=token_data if isinstance(token_data, dict) else None,
            error_kind="malformed_response",
        )

    result = TokenResult(
        success=True,
        access_token=token_data["access_token"],
        token_type=token_data.get("token_type"),
        expires_in=token_data.get("expires_in"),
        scope=token_data.get("scope"),
    )
    logger.info(
        f"PingOne token obtained | env={config.environment_id} | "
        f"token_hash={token_fingerprint(result.access_token)} | expires_in={result.expires_in}"
    )
    return result


class PingOneClient:
    """Bearer-authenticated GET helper bound to one environment.

    The client does not raise on HTTP error statuses; callers inspect the
    response because probes and pagination treat failures differently.

    Usage:
        client = PingOneClient(config, token)
        resp = client.get("/users", params={"limit": 1})
    """

    def __init__(self, config: ConnectionConfig, access_token: str, timeout: float = REQUEST_TIMEOUT):
        self.config = config
        self.timeout = timeout
        self._token = access_token

    @property
    def base_url(self) -> str:
        return self.config.api_base_url

    def url_for(self, path: str = "") -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    def get(self, path: str = "", params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Execute a GET against an API path or an absolute URL.

        Raises:
            requests.RequestException: On transport failure
        """
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }
        return requests.get(self.url_for(path), params=params, headers=headers, timeout=self.timeout)
