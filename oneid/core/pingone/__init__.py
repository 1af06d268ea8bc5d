"""PingOne Platform API client library.

This package tests PingOne connections and pulls users and groups from a
PingOne environment using the OAuth2 client-credentials grant.

Architecture:
- models.py: Connection config, token/probe/test results, canonical records
- client.py: Token exchange and bearer-authenticated GETs
- probes.py: Environment and user API probes, the connection test workflow
- pagination.py: Capped, deadline-bounded listing of users and groups
- mapping.py: PingOne record -> canonical user/group
- exceptions.py: Typed exceptions for error handling

Usage:
    from oneid.core.pingone import ConnectionConfig, test_connection

    config = ConnectionConfig.from_dict({
        "clientId": "...",
        "clientSecret": "...",
        "environmentId": "...",
        "region": "EU",
    })
    report = test_connection(config)
    print(report.overall)
"""
from .client import (
    PingOneClient,
    acquire_token,
    token_fingerprint,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    PingOneError,
    ConfigurationError,
    PaginationAbortError,
    PaginationDeadlineExceeded,
)
from .mapping import map_user, map_group
from .models import (
    DEFAULT_SCOPES,
    Region,
    ConnectionConfig,
    TokenResult,
    AccessCheck,
    ProbeResult,
    TestReport,
    FetchResult,
    CanonicalUser,
    CanonicalGroup,
)
from .pagination import (
    fetch_all,
    fetch_group_members,
    USER_FETCH_CAP,
    GROUP_FETCH_CAP,
    PAGINATION_DEADLINE,
)
from .probes import (
    probe_environment_access,
    probe_user_api_access,
    test_connection,
)

__all__ = [
    # Client
    "PingOneClient",
    "acquire_token",
    "token_fingerprint",
    "REQUEST_TIMEOUT",
    # Exceptions
    "PingOneError",
    "ConfigurationError",
    "PaginationAbortError",
    "PaginationDeadlineExceeded",
    # Models
    "DEFAULT_SCOPES",
    "Region",
    "ConnectionConfig",
    "TokenResult",
    "AccessCheck",
    "ProbeResult",
    "TestReport",
    "FetchResult",
    "CanonicalUser",
    "CanonicalGroup",
    # Probes
    "probe_environment_access",
    "probe_user_api_access",
    "test_connection",
    # Pagination
    "fetch_all",
    "fetch_group_members",
    "USER_FETCH_CAP",
    "GROUP_FETCH_CAP",
    "PAGINATION_DEADLINE",
    # Mapping
    "map_user",
    "map_group",
]
