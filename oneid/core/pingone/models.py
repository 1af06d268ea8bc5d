"""Data models for the PingOne connection pipeline.

All models are plain dataclasses. Results that cross the API boundary expose
``to_dict()`` producing the camelCase JSON shape the console consumes.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import ConfigurationError

DEFAULT_SCOPES = (
    "p1:read:user p1:create:user p1:update:user p1:delete:user "
    "p1:read:population p1:read:group"
)

ENVIRONMENT_ID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


class Region(str, Enum):
    """PingOne deployment region."""

    NA = "NA"
    EU = "EU"
    APAC = "APAC"

    @property
    def auth_host(self) -> str:
        return _REGION_HOSTS[self][0]

    @property
    def api_host(self) -> str:
        return _REGION_HOSTS[self][1]

    @classmethod
    def parse(cls, raw: Any) -> "Region":
        if isinstance(raw, Region):
            return raw
        value = str(raw or "NA").strip().upper()
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ConfigurationError(f"Unknown region '{raw}'. Expected one of: {allowed}") from None


_REGION_HOSTS = {
    Region.NA: ("https://auth.pingone.com", "https://api.pingone.com"),
    Region.EU: ("https://auth.pingone.eu", "https://api.pingone.eu"),
    Region.APAC: ("https://auth.pingone.asia", "https://api.pingone.asia"),
}


# ─────────────────────────────────────────────────────────────────────────────
# Connection configuration
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ConnectionConfig:
    """Credentials and target environment for one PingOne connection.

    Endpoint URLs are derived from ``region`` and ``environment_id`` and are
    never stored, so they cannot drift from the values they depend on.
    """

    client_id: str
    client_secret: str = field(repr=False)
    environment_id: str
    region: Region = Region.NA
    scopes: Optional[str] = None
    population_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.client_id or "").strip():
            raise ConfigurationError("clientId is required")
        if not self.client_secret:
            raise ConfigurationError("clientSecret is required")
        if not ENVIRONMENT_ID_PATTERN.match((self.environment_id or "").strip()):
            raise ConfigurationError(
                "environmentId must be a UUID (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)"
            )
        object.__setattr__(self, "client_id", self.client_id.strip())
        object.__setattr__(self, "environment_id", self.environment_id.strip())
        object.__setattr__(self, "region", Region.parse(self.region))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        """Build a config from a camelCase API payload.

        Any ``tokenUrl`` / ``apiBaseUrl`` in the payload are ignored; they are
        always recomputed from region and environment.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Connection configuration must be an object")
        return cls(
            client_id=str(data.get("clientId") or ""),
            client_secret=str(data.get("clientSecret") or ""),
            environment_id=str(data.get("environmentId") or ""),
            region=Region.parse(data.get("region")),
            scopes=(data.get("scopes") or None),
            population_id=(data.get("populationId") or None),
        )

    @property
    def token_url(self) -> str:
        return f"{self.region.api_host}/v1/environments/{self.environment_id}/as/token"

    @property
    def api_base_url(self) -> str:
        return f"{self.region.api_host}/v1/environments/{self.environment_id}"

    @property
    def authorization_url(self) -> str:
        return f"{self.region.auth_host}/{self.environment_id}/as/authorize"

    @property
    def requested_scopes(self) -> str:
        return self.scopes or DEFAULT_SCOPES


# ─────────────────────────────────────────────────────────────────────────────
# Token, probe and test results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class TokenResult:
    """Outcome of one client-credentials token request. Never persisted."""

    success: bool
    access_token: Optional[str] = field(default=None, repr=False)
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    error_kind: Optional[str] = None
    obtained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.success or self.expires_in is None:
            return None
        return self.obtained_at + timedelta(seconds=int(self.expires_in))

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "tokenType": self.token_type,
                "expiresIn": self.expires_in,
                "scope": self.scope,
            }
        payload: Dict[str, Any] = {"success": False, "error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        if self.error_kind:
            payload["errorKind"] = self.error_kind
        return payload


@dataclass
class AccessCheck:
    """Outcome of a single capability probe."""

    success: bool
    message: str
    details: Any = None
    status_code: Optional[int] = None


@dataclass
class ProbeResult:
    name: str
    success: bool
    message: str
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "success": self.success,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class TestReport:
    """Aggregate result of a connection test.

    ``success`` is only true when at least one step ran and every step passed.
    """

    __test__ = False  # not a pytest test class

    success: bool = False
    tests: List[ProbeResult] = field(default_factory=list)
    overall: Optional[str] = None

    def add(self, result: ProbeResult) -> ProbeResult:
        self.tests.append(result)
        return result

    @property
    def all_passed(self) -> bool:
        return bool(self.tests) and all(test.success for test in self.tests)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "tests": [test.to_dict() for test in self.tests],
            "overall": self.overall,
        }


@dataclass
class FetchResult:
    """Records collected by a paginated listing.

    ``truncated`` is set when the safety cap stopped the walk while more
    records were available.
    """

    kind: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    truncated: bool = False

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index):
        return self.records[index]


# ─────────────────────────────────────────────────────────────────────────────
# Canonical records
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class CanonicalUser:
    external_id: Optional[str]
    username: Optional[str]
    email: Optional[str]
    first_name: str
    last_name: str
    display_name: Optional[str]
    phone_number: Optional[str]
    mobile_number: Optional[str]
    title: Optional[str]
    department: Optional[str]
    employee_id: Optional[str]
    employee_type: str
    is_enabled: bool
    last_login: Optional[datetime]
    original_data: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "displayName": self.display_name,
            "phoneNumber": self.phone_number,
            "mobileNumber": self.mobile_number,
            "title": self.title,
            "department": self.department,
            "employeeId": self.employee_id,
            "employeeType": self.employee_type,
            "isEnabled": self.is_enabled,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "originalData": self.original_data,
        }


@dataclass(frozen=True)
class CanonicalGroup:
    external_id: Optional[str]
    name: Optional[str]
    display_name: Optional[str]
    description: str
    type: str
    scope: str
    is_enabled: bool
    original_data: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "name": self.name,
            "displayName": self.display_name,
            "description": self.description,
            "type": self.type,
            "scope": self.scope,
            "isEnabled": self.is_enabled,
            "originalData": self.original_data,
        }
