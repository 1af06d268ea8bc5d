"""Audit logging for connection operations (create, update, test)."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

AUDIT_LOG_FILENAME = "connection-events.jsonl"
DEMO_SIGNING_KEY = "demo-audit-signing-key-change-in-production"

# Overrides set by create_app(); unset values fall back to the environment.
_overrides: dict[str, str] = {}

EventType = Literal[
    "connection_create",
    "connection_update",
    "connection_test",
    "connection_test_config",
]


def configure_audit(log_dir: str | None = None, signing_key: str | None = None) -> None:
    """Point the audit trail at a directory and signing key."""
    if log_dir:
        _overrides["log_dir"] = log_dir
    if signing_key:
        _overrides["signing_key"] = signing_key


def reset_audit_config() -> None:
    _overrides.clear()


def audit_log_file() -> Path:
    log_dir = _overrides.get("log_dir") or os.environ.get("AUDIT_LOG_DIR", ".runtime/audit")
    return Path(log_dir) / AUDIT_LOG_FILENAME


def _get_signing_key() -> bytes:
    key = _overrides.get("signing_key") or os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip()
    if key:
        return key.encode("utf-8")
    if os.environ.get("DEMO_MODE", "false").lower() == "true":
        return DEMO_SIGNING_KEY.encode("utf-8")
    return b""


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_connection_event(
    event_type: EventType,
    connection_id: str,
    *,
    connection_type: str = "",
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append a connection event to the audit trail with timestamp and signature.

    Args:
        event_type: Operation performed on the connection
        connection_id: Target connection id ("" for unsaved configurations)
        connection_type: PINGONE, AD, LDAP or DATABASE
        operator: Who performed the operation
        details: Additional context; must never contain secrets
        success: Whether the operation succeeded
    """
    log_file = audit_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.parent.chmod(0o700)

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "connection_id": connection_id,
        "connection_type": connection_type,
        "operator": operator,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with log_file.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    log_file.chmod(0o600)


def safe_log_connection_event(
    event_type: EventType,
    connection_id: str,
    *,
    connection_type: str = "",
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log a connection event, never raising.

    Returns:
        True if the event was written, False if logging failed
    """
    try:
        log_connection_event(
            event_type,
            connection_id,
            connection_type=connection_type,
            operator=operator,
            details=details,
            success=success,
        )
        return True
    except Exception as e:
        logger.warning(f"[audit] Failed to log {event_type} event for {connection_id or '<unsaved>'}: {e}")
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    log_file = audit_log_file()
    if not log_file.exists():
        return 0, 0

    total = 0
    valid = 0

    with log_file.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            stored_sig = event.pop("signature", "")
            if not stored_sig:
                continue
            if hmac.compare_digest(stored_sig, _sign_event(event)):
                valid += 1

    return total, valid
