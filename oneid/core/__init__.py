"""Core business logic, independent of the HTTP layer.

Module Structure:
    - pingone/       : PingOne token, probes, pagination and record mapping
    - connections.py : Connection records, repositories and ConnectionService
    - directory.py   : AD / LDAP / database reachability checks
    - validators.py  : Connection payload validation
    - audit.py       : Signed JSONL audit trail

Import explicitly when needed:
    from oneid.core.connections import ConnectionService, InMemoryConnectionRepository
    from oneid.core.pingone import fetch_all, map_user
"""
