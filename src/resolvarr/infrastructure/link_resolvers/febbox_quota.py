"""FebBox quota-based cookie selection for the ShowBox provider.

Not a redirect chain: before ShowBox asks for streams, every user cookie
is checked against the FebBox console in parallel and the one with the
most remaining traffic wins. A failed check never aborts; when every check
fails the first cookie is used as-is.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

import httpx
import structlog

log = structlog.get_logger(__name__)

USER_CARDS_URL = "https://www.febbox.com/console/user_cards"
QUOTA_TIMEOUT = 8.0

_HEADERS = {
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}


@dataclass(frozen=True)
class QuotaCheck:
    cookie: str
    ok: bool
    remaining_mb: float = -1.0


@dataclass(frozen=True)
class CookieChoice:
    """Selected cookie; ``remaining_mb`` is ``None`` when unknown."""

    cookie: str | None
    remaining_mb: float | None = None


def _cookie_header(cookie: str) -> str:
    return cookie if cookie.startswith("ui=") else f"ui={cookie}"


async def check_cookie_quota(
    client: httpx.AsyncClient, cookie: str, *, timeout: float = QUOTA_TIMEOUT
) -> QuotaCheck:
    """Remaining traffic for one cookie; ``ok=False`` on any failure."""
    try:
        resp = await client.get(
            USER_CARDS_URL,
            headers={**_HEADERS, "Cookie": _cookie_header(cookie)},
            timeout=timeout,
        )
        data = resp.json() if resp.status_code == 200 else None
    except (httpx.HTTPError, ValueError) as exc:
        log.info("febbox_quota_check_failed", error=f"{type(exc).__name__}: {exc}")
        return QuotaCheck(cookie=cookie, ok=False)

    payload = data.get("data") if isinstance(data, dict) else None
    flow = payload.get("flow") if isinstance(payload, dict) else None
    if not isinstance(flow, dict):
        log.info("febbox_quota_check_failed", status=resp.status_code)
        return QuotaCheck(cookie=cookie, ok=False)

    try:
        limit = float(flow.get("traffic_limit_mb") or 0)
        usage = float(flow.get("traffic_usage_mb") or 0)
    except (TypeError, ValueError):
        return QuotaCheck(cookie=cookie, ok=False)
    return QuotaCheck(cookie=cookie, ok=True, remaining_mb=limit - usage)


async def select_best_cookie(
    client: httpx.AsyncClient, cookies: Sequence[str]
) -> CookieChoice:
    """Cookie with the highest remaining quota, else the first one."""
    candidates = [c.strip() for c in cookies if c and c.strip()]
    if not candidates:
        return CookieChoice(cookie=None)

    checks = await asyncio.gather(*(check_cookie_quota(client, c) for c in candidates))
    valid = [check for check in checks if check.ok]
    if valid:
        # max() keeps the first of equal quotas, i.e. the user's order.
        best = max(valid, key=lambda check: check.remaining_mb)
        log.info(
            "febbox_cookie_selected",
            remaining_mb=best.remaining_mb,
            valid=len(valid),
            total=len(candidates),
        )
        return CookieChoice(cookie=best.cookie, remaining_mb=best.remaining_mb)

    log.info("febbox_quota_all_failed", total=len(candidates))
    return CookieChoice(cookie=candidates[0])
