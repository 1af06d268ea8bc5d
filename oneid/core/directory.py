"""Reachability checks for directory and database connections.

AD and LDAP connections are tested with a simple bind through ldap3; database
connections open a SQLAlchemy engine and run ``SELECT 1``. Each check returns
a one-entry :class:`TestReport` and never raises.
"""
from __future__ import annotations
import logging
from typing import Any, Dict

from ldap3 import ALL, Connection, Server
from ldap3.core.exceptions import LDAPException
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError

from .pingone.models import ProbeResult, TestReport

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DATABASE_DRIVER = "postgresql+psycopg2"


def _report(connection_type: str, success: bool, message: str, details: Any = None) -> TestReport:
    report = TestReport(success=success)
    report.add(ProbeResult(
        name=f"{connection_type} Connection",
        success=success,
        message=message,
        details=details,
    ))
    report.overall = (
        "All tests passed - connection is working"
        if success
        else "Some tests failed - check configuration"
    )
    return report


def _bind_user(connection_type: str, config: Dict[str, Any]) -> str:
    if connection_type == "AD":
        username = config["username"]
        # DOMAIN\user and UPN forms are passed through untouched
        if "\\" in username or "@" in username:
            return username
        return f"{config['domain']}\\{username}"
    return config["bindDN"]


def test_ldap_bind(connection_type: str, config: Dict[str, Any], timeout: float = DEFAULT_TIMEOUT) -> TestReport:
    """Bind to an AD or LDAP server with the stored credentials."""
    server_name = config.get("serverName", "")
    port = int(config.get("port") or 389)
    use_ssl = bool(config.get("useSSL"))
    timeout = float(config.get("timeout") or timeout)

    try:
        server = Server(server_name, port=port, use_ssl=use_ssl, get_info=ALL, connect_timeout=timeout)
        connection = Connection(
            server,
            user=_bind_user(connection_type, config),
            password=config.get("password"),
            auto_bind=True,
            receive_timeout=timeout,
        )
    except (LDAPException, OSError) as exc:
        logger.warning(f"{connection_type} bind failed | server={server_name}:{port} | error={exc}")
        return _report(connection_type, False, f"Bind failed: {exc}")

    connection.unbind()

    details = {"server": f"{server_name}:{port}", "baseDN": config.get("baseDN"), "ssl": use_ssl}
    logger.info(f"{connection_type} bind succeeded | server={server_name}:{port}")
    return _report(connection_type, True, "Bind succeeded", details)


test_ldap_bind.__test__ = False


def database_url(config: Dict[str, Any]) -> URL:
    query = {"sslmode": "require"} if config.get("useSSL") else {}
    return URL.create(
        DATABASE_DRIVER,
        username=config.get("username"),
        password=config.get("password"),
        host=config.get("serverName"),
        port=int(config.get("port") or 5432),
        database=config.get("database"),
        query=query,
    )


def test_database(config: Dict[str, Any], timeout: float = DEFAULT_TIMEOUT) -> TestReport:
    """Connect to the database and run ``SELECT 1``."""
    target = f"{config.get('serverName')}:{config.get('port') or 5432}/{config.get('database')}"
    engine = None
    try:
        engine = create_engine(
            database_url(config),
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
            connect_args={"connect_timeout": int(timeout)},
        )
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning(f"DATABASE connection failed | target={target} | error={exc}")
        return _report("DATABASE", False, f"Connection failed: {exc}")
    finally:
        if engine is not None:
            engine.dispose()

    logger.info(f"DATABASE connection succeeded | target={target}")
    return _report("DATABASE", True, "Connection succeeded", {"target": target})


test_database.__test__ = False


def test_directory_connection(connection_type: str, config: Dict[str, Any], timeout: float = DEFAULT_TIMEOUT) -> TestReport:
    """Dispatch a non-PingOne connection test by type."""
    try:
        if connection_type in ("AD", "LDAP"):
            return test_ldap_bind(connection_type, config, timeout=timeout)
        if connection_type == "DATABASE":
            return test_database(config, timeout=timeout)
    except Exception as exc:
        logger.error(f"{connection_type} connection test error: {exc}", exc_info=True)
        report = _report(connection_type, False, str(exc))
        report.overall = f"Test failed: {exc}"
        return report
    return _report(connection_type, False, f"Unsupported connection type '{connection_type}'")


test_directory_connection.__test__ = False
