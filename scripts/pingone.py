"""Command-line helper for PingOne connections.

Tests a PingOne connection and pulls users or groups as canonical JSON.
Credentials default to the PINGONE_* environment variables.
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from oneid.core.pingone import (
    ConfigurationError,
    ConnectionConfig,
    PaginationAbortError,
    REQUEST_TIMEOUT,
    PAGINATION_DEADLINE,
    acquire_token,
    fetch_all,
    fetch_group_members,
    map_group,
    map_user,
    test_connection,
)
from oneid.config.settings import env_number
from oneid.core import audit


def _build_config(parser: argparse.ArgumentParser, args: argparse.Namespace) -> ConnectionConfig:
    try:
        return ConnectionConfig(
            client_id=args.client_id or "",
            client_secret=args.client_secret or "",
            environment_id=args.environment_id or "",
            region=args.region,
            scopes=args.scopes,
            population_id=getattr(args, "population_id", None),
        )
    except ConfigurationError as e:
        parser.error(str(e))


def _dump(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _cmd_test(config: ConnectionConfig, args: argparse.Namespace) -> int:
    report = test_connection(config, timeout=args.timeout)
    _dump(report.to_dict())
    audit.safe_log_connection_event(
        "connection_test_config",
        "",
        connection_type="PINGONE",
        operator=args.operator,
        details={"overall": report.overall, "environment_id": config.environment_id},
        success=report.success,
    )
    return 0 if report.success else 1


def _cmd_fetch(config: ConnectionConfig, args: argparse.Namespace) -> int:
    token = acquire_token(config, timeout=args.timeout)
    if not token.success:
        print(f"[{args.cmd}] Error: {token.error}", file=sys.stderr)
        return 1

    try:
        result = fetch_all(
            config,
            token.access_token,
            args.cmd,
            population_id=config.population_id,
            page_size=args.page_size,
            timeout=args.timeout,
            deadline=args.deadline,
        )
    except PaginationAbortError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        return 1

    if args.cmd == "users":
        records = [map_user(raw).to_dict() for raw in result]
    else:
        records = []
        for raw in result:
            group = map_group(raw).to_dict()
            if args.members:
                members = fetch_group_members(config, token.access_token, raw.get("id", ""), timeout=args.timeout)
                group["members"] = [map_user(member).to_dict() for member in members]
            records.append(group)

    for record in records:
        if not args.include_original:
            record.pop("originalData", None)

    _dump({"kind": result.kind, "count": len(records), "truncated": result.truncated, "records": records})
    return 0


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="PingOne connection helper")
    parser.add_argument("--client-id", default=os.environ.get("PINGONE_CLIENT_ID"))
    parser.add_argument("--client-secret", default=os.environ.get("PINGONE_CLIENT_SECRET"))
    parser.add_argument("--environment-id", default=os.environ.get("PINGONE_ENVIRONMENT_ID"))
    parser.add_argument("--region", default=os.environ.get("PINGONE_REGION", "NA"),
                        help="NA, EU or APAC (default: NA)")
    parser.add_argument("--scopes", default=os.environ.get("PINGONE_SCOPES"))
    parser.add_argument("--timeout", type=float, default=env_number("ONEID_REQUEST_TIMEOUT", REQUEST_TIMEOUT, cast=float))
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")
    parser.add_argument("--verbose", "-v", action="store_true")

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("test", help="Run the connection test")

    su = sub.add_parser("users", help="Fetch all users as canonical records")
    su.add_argument("--population-id", default=os.environ.get("PINGONE_POPULATION_ID"))

    sg = sub.add_parser("groups", help="Fetch all groups as canonical records")
    sg.add_argument("--members", action="store_true", help="Include each group's members")

    for fetch_parser in (su, sg):
        fetch_parser.add_argument("--page-size", type=int, default=int(env_number("ONEID_PAGE_SIZE", 100)))
        fetch_parser.add_argument("--deadline", type=float,
                                  default=env_number("ONEID_PAGINATION_DEADLINE", PAGINATION_DEADLINE, cast=float))
        fetch_parser.add_argument("--include-original", action="store_true")

    args = parser.parse_args()

    if not args.cmd:
        parser.print_help()
        return

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    config = _build_config(parser, args)

    if args.cmd == "test":
        code = _cmd_test(config, args)
    else:
        code = _cmd_fetch(config, args)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
