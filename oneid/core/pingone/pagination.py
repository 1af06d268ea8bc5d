"""Paginated listing of PingOne users and groups.

PingOne returns HAL documents: records under ``_embedded.<kind>`` and the next
page, if any, under ``_links.next.href``. The walk is sequential, capped per
resource kind and bounded by an overall deadline.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .client import REQUEST_TIMEOUT, PingOneClient
from .exceptions import PaginationAbortError, PaginationDeadlineExceeded
from .models import ConnectionConfig, FetchResult

logger = logging.getLogger(__name__)

USER_FETCH_CAP = 10000
GROUP_FETCH_CAP = 1000
DEFAULT_PAGE_SIZE = 100
PAGINATION_DEADLINE = 300

FETCH_CAPS = {
    "users": USER_FETCH_CAP,
    "groups": GROUP_FETCH_CAP,
}


def _next_href(payload: Dict[str, Any]) -> Optional[str]:
    links = payload.get("_links")
    nxt = links.get("next") if isinstance(links, dict) else None
    href = nxt.get("href") if isinstance(nxt, dict) else None
    return href if isinstance(href, str) and href else None


def _page_records(payload: Dict[str, Any], kind: str) -> Optional[List[Dict[str, Any]]]:
    """Return the page's embedded records, or None when the shape is wrong."""
    embedded = payload.get("_embedded") or {}
    if not isinstance(embedded, dict):
        return None
    records = embedded.get(kind) or []
    return records if isinstance(records, list) else None


def _fetch_page(client: PingOneClient, kind: str, url: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        resp = client.get(url, params=params)
    except requests.RequestException as exc:
        raise PaginationAbortError(f"Failed to fetch {kind} page: {exc}", kind=kind, url=url) from exc

    if not resp.ok:
        raise PaginationAbortError(
            f"Failed to fetch {kind}: HTTP {resp.status_code}",
            status_code=resp.status_code,
            kind=kind,
            url=url,
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise PaginationAbortError(
            f"Failed to fetch {kind}: malformed (non-JSON) page",
            status_code=resp.status_code,
            kind=kind,
            url=url,
        ) from exc

    if not isinstance(payload, dict):
        raise PaginationAbortError(
            f"Failed to fetch {kind}: unexpected page shape",
            status_code=resp.status_code,
            kind=kind,
            url=url,
        )
    return payload


def fetch_all(
    config: ConnectionConfig,
    access_token: str,
    kind: str,
    *,
    population_id: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float = REQUEST_TIMEOUT,
    deadline: float = PAGINATION_DEADLINE,
) -> FetchResult:
    """Collect every record of ``kind`` by following next links.

    Args:
        config: PingOne connection configuration
        access_token: Bearer token from :func:`acquire_token`
        kind: "users" or "groups"
        population_id: Restrict users to one population (ignored for groups)
        page_size: Records requested per page
        timeout: Per-request timeout in seconds
        deadline: Overall budget for the whole walk, in seconds

    Returns:
        FetchResult in server order, cut to the kind's safety cap

    Raises:
        ValueError: If ``kind`` is not "users" or "groups"
        PaginationAbortError: If any page request fails; nothing is returned
        PaginationDeadlineExceeded: If the deadline expires mid-walk
    """
    if kind not in FETCH_CAPS:
        raise ValueError(f"Unsupported resource kind '{kind}'. Expected 'users' or 'groups'")

    cap = FETCH_CAPS[kind]
    client = PingOneClient(config, access_token, timeout=timeout)
    started = time.monotonic()

    population_id = population_id or config.population_id
    params: Optional[Dict[str, Any]] = {"limit": page_size}
    if kind == "users" and population_id:
        params["filter"] = f'population.id eq "{population_id}"'

    url = f"/{kind}"
    records: List[Dict[str, Any]] = []
    truncated = False
    pages = 0

    while url:
        if time.monotonic() - started > deadline:
            raise PaginationDeadlineExceeded(
                f"Fetching {kind} exceeded the {deadline}s deadline after {pages} page(s)",
                kind=kind,
                url=url,
            )

        payload = _fetch_page(client, kind, url, params)
        pages += 1
        # next links already carry the query string
        params = None

        page_records = _page_records(payload, kind)
        if page_records is None:
            raise PaginationAbortError(
                f"Failed to fetch {kind}: unexpected page shape", kind=kind, url=url,
            )
        records.extend(page_records)
        url = _next_href(payload)

        if len(records) >= cap:
            truncated = len(records) > cap or bool(url)
            del records[cap:]
            break

    if truncated:
        logger.warning(f"PingOne {kind} listing truncated at safety cap | cap={cap} | pages={pages}")
    logger.info(f"Fetched PingOne {kind} | count={len(records)} | pages={pages} | truncated={truncated}")
    return FetchResult(kind=kind, records=records, truncated=truncated)


def fetch_group_members(
    config: ConnectionConfig,
    access_token: str,
    group_id: str,
    timeout: float = REQUEST_TIMEOUT,
) -> List[Dict[str, Any]]:
    """Return the users embedded in a group's membership listing.

    Best effort: any failure yields an empty list.
    """
    client = PingOneClient(config, access_token, timeout=timeout)
    try:
        resp = client.get(f"/groups/{group_id}/memberOfGroups")
        if not resp.ok:
            logger.warning(f"Group members request failed | group={group_id} | status={resp.status_code}")
            return []
        payload = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning(f"Group members request error | group={group_id} | error={exc}")
        return []

    if not isinstance(payload, dict):
        return []
    return _page_records(payload, "users") or []
