"""Input validation helpers for connection payloads."""
from __future__ import annotations
from typing import Any

VALID_CONNECTION_TYPES = ("PINGONE", "AD", "LDAP", "DATABASE")

REQUIRED_FIELDS = {
    "PINGONE": ("clientId", "clientSecret", "environmentId"),
    "AD": ("serverName", "domain", "baseDN", "username", "password"),
    "LDAP": ("serverName", "baseDN", "bindDN", "password"),
    "DATABASE": ("serverName", "database", "username", "password"),
}

DEFAULT_PORTS = {
    "AD": 389,
    "LDAP": 389,
    "DATABASE": 5432,
}


def secret_field_for(connection_type: str) -> str:
    """Return the config key that holds the secret for a connection type."""
    return "clientSecret" if connection_type == "PINGONE" else "password"


def validate_connection_type(raw: Any) -> str:
    """Normalize and validate a connection type.

    Raises:
        ValueError: If the type is missing or unknown
    """
    value = str(raw or "").strip().upper()
    if value not in VALID_CONNECTION_TYPES:
        allowed = ", ".join(VALID_CONNECTION_TYPES)
        raise ValueError(f"Invalid connection type '{raw}'. Expected one of: {allowed}")
    return value


def validate_connection_name(name: Any) -> str:
    """Validate the display name of a connection.

    Raises:
        ValueError: If name is invalid
    """
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Connection name is required")
    name = name.strip()
    if len(name) > 128:
        raise ValueError("Connection name exceeds maximum length")
    if any(char in name for char in "<>\"'`;&|$"):
        raise ValueError("Connection name contains invalid characters")
    return name


def validate_port(raw: Any) -> int:
    """Validate a TCP port number.

    Raises:
        ValueError: If the port is not an integer in 1..65535
    """
    try:
        port = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Port must be an integer, got '{raw}'") from None
    if not 1 <= port <= 65535:
        raise ValueError("Port must be between 1 and 65535")
    return port


def validate_secret_value(value: Any, field: str) -> str:
    """Validate a replacement secret.

    Raises:
        ValueError: If the secret is not a non-empty string
    """
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    if value == "":
        raise ValueError(f"{field} must not be empty; omit it to keep the stored value")
    return value


def validate_connection_config(connection_type: str, config: Any, *, require_secret: bool = True) -> dict:
    """Validate a type-specific configuration object.

    Args:
        connection_type: Normalized connection type
        config: Raw configuration mapping from the request body
        require_secret: False on update, where an absent secret means "keep"

    Returns:
        Shallow copy of the configuration with ports normalized

    Raises:
        ValueError: On the first invalid or missing field
    """
    if not isinstance(config, dict):
        raise ValueError("Connection config must be an object")

    cleaned = dict(config)
    secret_field = secret_field_for(connection_type)

    for field_name in REQUIRED_FIELDS[connection_type]:
        if field_name == secret_field:
            if field_name in cleaned and cleaned[field_name] is not None:
                validate_secret_value(cleaned[field_name], field_name)
            elif require_secret:
                raise ValueError(f"{field_name} is required")
            continue
        value = cleaned.get(field_name)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{field_name} is required")
        cleaned[field_name] = value.strip()

    if connection_type in DEFAULT_PORTS:
        cleaned["port"] = validate_port(cleaned.get("port") or DEFAULT_PORTS[connection_type])

    return cleaned
