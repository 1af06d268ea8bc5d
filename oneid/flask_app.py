"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.
"""
from __future__ import annotations
import ipaddress
import logging
from typing import Optional

from flask import Flask, abort, request
from werkzeug.middleware.proxy_fix import ProxyFix

from oneid.config import AppConfig, load_settings
from oneid.core import audit
from oneid.core.connections import (
    ConnectionRepository,
    ConnectionService,
    InMemoryConnectionRepository,
    YamlConnectionRepository,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    cfg: Optional[AppConfig] = None,
    repository: Optional[ConnectionRepository] = None,
    service: Optional[ConnectionService] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings; loaded from the environment when omitted
        repository: Connection store; chosen from settings when omitted
        service: Fully built service (tests inject one with stub testers)
    """
    cfg = cfg or load_settings()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["DEMO_MODE"] = cfg.demo_mode

    audit.configure_audit(cfg.audit_log_dir, cfg.audit_log_signing_key)

    if service is None:
        if repository is None:
            repository = (
                YamlConnectionRepository(cfg.connections_file)
                if cfg.persistent_connections
                else InMemoryConnectionRepository()
            )
        service = ConnectionService(repository, timeout=cfg.request_timeout)
    app.config["CONNECTION_SERVICE"] = service

    # Trust X-Forwarded-* headers from proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    trusted_proxy_networks = []
    for entry in cfg.trusted_proxy_ips.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            trusted_proxy_networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid TRUSTED_PROXY_IPS entry: {entry}")

    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks

    from oneid.api import connections, errors, health

    app.register_blueprint(health.bp)
    app.register_blueprint(connections.bp, url_prefix="/api/connections")

    errors.register_error_handlers(app)
    _register_middleware(app, trusted_proxy_networks)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    store = "yaml" if cfg.persistent_connections else "memory"
    logger.info(f"OneID console ready | mode={mode_label} | store={store}")
    if cfg.demo_mode:
        logger.warning("Demo mode active - do not deploy with demo credentials")

    return app


def _register_middleware(app: Flask, trusted_proxy_networks: list):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Validate proxy headers from trusted sources only."""
        original_remote = request.environ.get("werkzeug.proxy_fix.orig_remote_addr")
        if original_remote:
            try:
                address = ipaddress.ip_address(original_remote)
                if not any(address in network for network in trusted_proxy_networks):
                    abort(400, description="Untrusted proxy")
            except ValueError:
                abort(400, description="Invalid proxy address")

        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto and forwarded_proto != "https":
            abort(400, description="Invalid forwarded protocol")

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and "," in forwarded_for:
            abort(400, description="Multiple forwarded clients not permitted")


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000)
