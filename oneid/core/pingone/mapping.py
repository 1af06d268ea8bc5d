"""Map raw PingOne records to the console's canonical user/group shape."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional

from .models import CanonicalGroup, CanonicalUser


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _is_enabled(raw: Dict[str, Any]) -> bool:
    enabled = raw.get("enabled")
    # PingOne may nest the flag: {"enabled": {"enabled": false}}
    if isinstance(enabled, dict):
        enabled = enabled.get("enabled")
    return enabled is not False


def map_user(raw: Dict[str, Any]) -> CanonicalUser:
    """Convert a PingOne user document into a :class:`CanonicalUser`.

    Missing fields degrade to the documented fallbacks; this never raises on
    sparse records.
    """
    name = raw.get("name")
    if not isinstance(name, dict):
        name = {}
    given = name.get("given") or ""
    family = name.get("family") or ""
    username = raw.get("username") or raw.get("email")

    display_name = (
        name.get("formatted")
        or f"{given} {family}".strip()
        or raw.get("username")
        or raw.get("email")
    )

    phones = [p for p in (raw.get("phoneNumbers") or []) if isinstance(p, dict)]
    phone_number = (phones[0].get("value") if phones else None) or raw.get("phoneNumber")
    mobile_number = next((p.get("value") for p in phones if p.get("type") == "mobile"), None)

    return CanonicalUser(
        external_id=raw.get("id"),
        username=username,
        email=raw.get("email"),
        first_name=given,
        last_name=family,
        display_name=display_name,
        phone_number=phone_number,
        mobile_number=mobile_number,
        title=raw.get("title"),
        department=raw.get("department"),
        employee_id=raw.get("employeeNumber") or raw.get("externalId"),
        employee_type=raw.get("userType") or "employee",
        is_enabled=_is_enabled(raw),
        last_login=_parse_timestamp(raw.get("lastSignOn")),
        original_data=raw,
    )


def map_group(raw: Dict[str, Any]) -> CanonicalGroup:
    """Convert a PingOne group document into a :class:`CanonicalGroup`."""
    return CanonicalGroup(
        external_id=raw.get("id"),
        name=raw.get("name"),
        display_name=raw.get("displayName") or raw.get("name"),
        description=raw.get("description") or "",
        type=raw.get("type") or "Security",
        scope="Global",
        is_enabled=True,
        original_data=raw,
    )
