"""
Connection Service Layer

Stores identity-source connections (PingOne, Active Directory, LDAP and
databases) and runs their connection tests. Used by the Flask API and the CLI.

Architecture:
    /api/connections ──> ConnectionService ──┬──> ConnectionRepository (memory / YAML)
                                             ├──> core.pingone.test_connection
                                             └──> core.directory.test_directory_connection

Secrets:
    The secret field (``clientSecret`` for PINGONE, ``password`` otherwise) is
    never returned by the public views. On update an absent or null secret
    keeps the stored value and a string replaces it; an empty string is
    rejected. The YAML backend keeps secrets in process memory only.
"""

from __future__ import annotations
import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from . import audit
from .directory import test_directory_connection
from .pingone import ConfigurationError, ConnectionConfig, TestReport
from .pingone import test_connection as test_pingone_connection
from .pingone.client import REQUEST_TIMEOUT
from .validators import (
    secret_field_for,
    validate_connection_config,
    validate_connection_name,
    validate_connection_type,
)

logger = logging.getLogger(__name__)


class ConnectionType(str, Enum):
    PINGONE = "PINGONE"
    AD = "AD"
    LDAP = "LDAP"
    DATABASE = "DATABASE"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    FAILED = "failed"


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConnectionServiceError(Exception):
    """Base error for connection operations, carrying an HTTP status."""

    status = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.detail}


class ConnectionNotFoundError(ConnectionServiceError):
    status = 404

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection '{connection_id}' not found")


class ValidationError(ConnectionServiceError):
    status = 400


# ─────────────────────────────────────────────────────────────────────────────
# Record
# ─────────────────────────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    return datetime.fromisoformat(str(value))


@dataclass
class ConnectionRecord:
    """A stored connection. ``config`` holds non-secret fields only."""

    id: str
    name: str
    type: ConnectionType
    config: Dict[str, Any] = field(default_factory=dict)
    secret: Optional[str] = field(default=None, repr=False)
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    last_tested: Optional[datetime] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def secret_field(self) -> str:
        return secret_field_for(self.type.value)

    def full_config(self) -> Dict[str, Any]:
        """Configuration including the secret, for running tests only."""
        merged = dict(self.config)
        if self.secret is not None:
            merged[self.secret_field] = self.secret
        return merged

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "config": dict(self.config),
            "hasSecret": self.secret is not None,
            "status": self.status.value,
            "lastTested": self.last_tested.isoformat() if self.last_tested else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_storage_dict(self) -> Dict[str, Any]:
        data = self.to_public_dict()
        data.pop("hasSecret")
        return data

    @classmethod
    def from_storage_dict(cls, data: Dict[str, Any]) -> "ConnectionRecord":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=ConnectionType(data["type"]),
            config=dict(data.get("config") or {}),
            status=ConnectionStatus(data.get("status") or "disconnected"),
            last_tested=_parse_datetime(data.get("lastTested")),
            created_at=_parse_datetime(data.get("createdAt")) or _utcnow(),
            updated_at=_parse_datetime(data.get("updatedAt")) or _utcnow(),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Repositories
# ─────────────────────────────────────────────────────────────────────────────

class ConnectionRepository(ABC):
    """Storage interface for connection records."""

    @abstractmethod
    def get(self, connection_id: str) -> Optional[ConnectionRecord]:
        ...

    @abstractmethod
    def list(self) -> List[ConnectionRecord]:
        ...

    @abstractmethod
    def create(self, record: ConnectionRecord) -> ConnectionRecord:
        ...

    @abstractmethod
    def update(self, record: ConnectionRecord) -> ConnectionRecord:
        ...


class InMemoryConnectionRepository(ConnectionRepository):
    """Process-local store. Returned records are copies."""

    def __init__(self):
        self._records: Dict[str, ConnectionRecord] = {}
        self._lock = threading.Lock()

    def get(self, connection_id: str) -> Optional[ConnectionRecord]:
        with self._lock:
            record = self._records.get(connection_id)
            return copy.deepcopy(record) if record else None

    def list(self) -> List[ConnectionRecord]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def create(self, record: ConnectionRecord) -> ConnectionRecord:
        with self._lock:
            if record.id in self._records:
                raise ValidationError(f"Connection '{record.id}' already exists")
            self._records[record.id] = copy.deepcopy(record)
            self._after_write()
        return copy.deepcopy(record)

    def update(self, record: ConnectionRecord) -> ConnectionRecord:
        with self._lock:
            if record.id not in self._records:
                raise ConnectionNotFoundError(record.id)
            self._records[record.id] = copy.deepcopy(record)
            self._after_write()
        return copy.deepcopy(record)

    def _after_write(self) -> None:
        """Hook called with the lock held after every write."""


class YamlConnectionRepository(InMemoryConnectionRepository):
    """Persists non-secret fields to a YAML file.

    Secrets live only in this process; records loaded from disk after a
    restart have no secret until one is supplied again.
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        for entry in payload.get("connections", []):
            record = ConnectionRecord.from_storage_dict(entry)
            self._records[record.id] = record
        logger.info(f"Loaded {len(self._records)} connection(s) from {self.path}")

    def _after_write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"connections": [record.to_storage_dict() for record in self._records.values()]}
        with self.path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(payload, handle, sort_keys=False)


# ─────────────────────────────────────────────────────────────────────────────
# Service
# ─────────────────────────────────────────────────────────────────────────────

PingOneTester = Callable[[ConnectionConfig, float], TestReport]
DirectoryTester = Callable[[str, Dict[str, Any], float], TestReport]


def _failed_report(message: str) -> TestReport:
    return TestReport(success=False, overall=f"Test failed: {message}")


def _check_pingone_fields(config: Dict[str, Any], secret: Optional[str]) -> None:
    """Validate PingOne environment id and region before storing them.

    Raises:
        ValueError: If the fields would not build a ConnectionConfig
    """
    candidate = dict(config)
    # the secret is checked separately; only its presence matters here
    candidate["clientSecret"] = secret or "unset"
    ConnectionConfig.from_dict(candidate)


class ConnectionService:
    """CRUD and testing for stored connections.

    Usage:
        service = ConnectionService(InMemoryConnectionRepository())
        created = service.create_connection({"name": "Prod", "type": "PINGONE", "config": {...}})
        report = service.test_connection(created["id"])
    """

    def __init__(
        self,
        repository: ConnectionRepository,
        *,
        timeout: float = REQUEST_TIMEOUT,
        pingone_tester: Optional[PingOneTester] = None,
        directory_tester: Optional[DirectoryTester] = None,
        operator: str = "api",
    ):
        self.repository = repository
        self.timeout = timeout
        self.operator = operator
        self._pingone_tester = pingone_tester or (lambda config, timeout: test_pingone_connection(config, timeout=timeout))
        self._directory_tester = directory_tester or (
            lambda kind, config, timeout: test_directory_connection(kind, config, timeout=timeout)
        )

    # ── queries ──────────────────────────────────────────────────────────────

    def list_connections(self) -> List[Dict[str, Any]]:
        records = sorted(self.repository.list(), key=lambda record: record.created_at)
        return [record.to_public_dict() for record in records]

    def get_connection(self, connection_id: str) -> Dict[str, Any]:
        return self._require(connection_id).to_public_dict()

    def _require(self, connection_id: str) -> ConnectionRecord:
        record = self.repository.get(connection_id)
        if record is None:
            raise ConnectionNotFoundError(connection_id)
        return record

    # ── writes ───────────────────────────────────────────────────────────────

    def create_connection(self, payload: Any) -> Dict[str, Any]:
        """Create a connection from ``{"name", "type", "config"}``.

        Raises:
            ValidationError: If the payload is invalid
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            name = validate_connection_name(payload.get("name"))
            kind = validate_connection_type(payload.get("type"))
            config = validate_connection_config(kind, payload.get("config"), require_secret=True)
            if kind == ConnectionType.PINGONE.value:
                _check_pingone_fields(config, config.get("clientSecret"))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        secret = config.pop(secret_field_for(kind))
        record = ConnectionRecord(
            id=str(uuid.uuid4()),
            name=name,
            type=ConnectionType(kind),
            config=config,
            secret=secret,
        )
        record = self.repository.create(record)
        logger.info(f"Connection created | id={record.id} | type={kind} | name={name}")
        audit.safe_log_connection_event(
            "connection_create", record.id, connection_type=kind, operator=self.operator,
            details={"name": name},
        )
        return record.to_public_dict()

    def update_connection(self, connection_id: str, payload: Any) -> Dict[str, Any]:
        """Update name and/or config of a stored connection.

        The type cannot change. Config fields are merged over the stored ones.

        Raises:
            ConnectionNotFoundError: If the id is unknown
            ValidationError: If the payload is invalid
        """
        record = self._require(connection_id)
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        kind = record.type.value
        try:
            if "type" in payload and validate_connection_type(payload["type"]) != kind:
                raise ValueError("Connection type cannot be changed")
            if "name" in payload:
                record.name = validate_connection_name(payload["name"])
            incoming = payload.get("config") or {}
            if not isinstance(incoming, dict):
                raise ValueError("Connection config must be an object")
            merged = {**record.config, **incoming}
            merged.pop(record.secret_field, None)
            secret = incoming.get(record.secret_field)
            if secret is not None:
                merged[record.secret_field] = secret
            config = validate_connection_config(kind, merged, require_secret=False)
            if kind == ConnectionType.PINGONE.value:
                _check_pingone_fields(config, config.get("clientSecret") or record.secret)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        secret_replaced = record.secret_field in config
        if secret_replaced:
            record.secret = config.pop(record.secret_field)
        record.config = config
        record.updated_at = _utcnow()
        record = self.repository.update(record)

        logger.info(f"Connection updated | id={record.id} | secret_replaced={secret_replaced}")
        audit.safe_log_connection_event(
            "connection_update", record.id, connection_type=kind, operator=self.operator,
            details={"secret_replaced": secret_replaced},
        )
        return record.to_public_dict()

    # ── testing ──────────────────────────────────────────────────────────────

    def _run_test(self, kind: str, config: Dict[str, Any]) -> TestReport:
        if kind == ConnectionType.PINGONE.value:
            try:
                pingone_config = ConnectionConfig.from_dict(config)
            except ConfigurationError as exc:
                return _failed_report(str(exc))
            return self._pingone_tester(pingone_config, self.timeout)
        return self._directory_tester(kind, config, self.timeout)

    def test_connection(self, connection_id: str) -> Dict[str, Any]:
        """Test a stored connection and record the outcome on it.

        Raises:
            ConnectionNotFoundError: If the id is unknown
        """
        record = self._require(connection_id)
        kind = record.type.value

        if record.secret is None:
            report = _failed_report(f"No {record.secret_field} stored for this connection; update it first")
        else:
            report = self._run_test(kind, record.full_config())

        record.status = ConnectionStatus.CONNECTED if report.success else ConnectionStatus.FAILED
        record.last_tested = _utcnow()
        self.repository.update(record)

        logger.info(f"Connection tested | id={record.id} | type={kind} | success={report.success}")
        audit.safe_log_connection_event(
            "connection_test", record.id, connection_type=kind, operator=self.operator,
            details={"overall": report.overall}, success=report.success,
        )
        return report.to_dict()

    def test_config(self, payload: Any) -> Dict[str, Any]:
        """Test an unsaved configuration ``{"type", "config"[, "id"]}``.

        When ``id`` names a stored connection and the secret is omitted, the
        stored secret is used. Nothing is persisted.

        Raises:
            ConnectionNotFoundError: If ``id`` is given but unknown
            ValidationError: If the payload is invalid
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            kind = validate_connection_type(payload.get("type"))
            raw_config = payload.get("config")
            if not isinstance(raw_config, dict):
                raise ValueError("Connection config must be an object")
            config = dict(raw_config)
            secret_field = secret_field_for(kind)
            if config.get(secret_field) is None and payload.get("id"):
                stored = self._require(str(payload["id"]))
                if stored.type.value == kind and stored.secret is not None:
                    config[secret_field] = stored.secret
            config = validate_connection_config(kind, config, require_secret=True)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        report = self._run_test(kind, config)
        audit.safe_log_connection_event(
            "connection_test_config", str(payload.get("id") or ""), connection_type=kind,
            operator=self.operator, details={"overall": report.overall}, success=report.success,
        )
        return report.to_dict()
