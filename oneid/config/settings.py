"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TRUSTED_PROXIES = "127.0.0.1/32,::1/128"
DEMO_AUDIT_SIGNING_KEY = "demo-audit-signing-key-change-in-production"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def env_number(var_name: str, default: float, cast=int) -> float:
    """Read a positive number from the environment."""
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be a number, got '{raw}'") from None
    if value <= 0:
        raise RuntimeError(f"Environment variable {var_name} must be positive, got '{raw}'")
    return value


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    trusted_proxy_ips: str = DEFAULT_TRUSTED_PROXIES
    log_level: str = "INFO"

    # PingOne / connection tests
    request_timeout: float = 30
    pagination_deadline: float = 300
    page_size: int = 100

    # Connection store (empty = in-memory)
    connections_file: str = ""

    # Audit
    audit_log_dir: str = ".runtime/audit"
    audit_log_signing_key: str = ""

    @property
    def persistent_connections(self) -> bool:
        return bool(self.connections_file)


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # ─────────────────────────────────────────────────────────────────────────
    # Secrets (priority: /run/secrets > environment variables)
    # ─────────────────────────────────────────────────────────────────────────
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    if not audit_log_signing_key and demo_mode:
        audit_log_signing_key = DEMO_AUDIT_SIGNING_KEY
        print(f"[demo-mode] Using demo AUDIT_LOG_SIGNING_KEY: {audit_log_signing_key[:20]}...")

    # Trusted proxies
    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        is_testing = os.environ.get("PYTEST_CURRENT_TEST") is not None
        if demo_mode or is_testing:
            trusted_proxy_ips = DEFAULT_TRUSTED_PROXIES
        else:
            raise RuntimeError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")

    log_level = os.environ.get("ONEID_LOG_LEVEL", "INFO").strip().upper() or "INFO"

    config = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        trusted_proxy_ips=trusted_proxy_ips,
        log_level=log_level,
        request_timeout=env_number("ONEID_REQUEST_TIMEOUT", 30, cast=float),
        pagination_deadline=env_number("ONEID_PAGINATION_DEADLINE", 300, cast=float),
        page_size=int(env_number("ONEID_PAGE_SIZE", 100)),
        connections_file=os.environ.get("ONEID_CONNECTIONS_FILE", "").strip(),
        audit_log_dir=os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"),
        audit_log_signing_key=audit_log_signing_key or "",
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    store = config.connections_file or "memory"
    print(f"[settings] Mode={mode_label}; connections={store}; timeout={config.request_timeout}s")
    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")

    return config

