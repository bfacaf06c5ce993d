"""Tests for FebBox cookie quota selection."""

from __future__ import annotations

import httpx
import pytest
import respx

from resolvarr.infrastructure.link_resolvers.febbox_quota import (
    USER_CARDS_URL,
    check_cookie_quota,
    select_best_cookie,
)


def _flow(limit: float, usage: float) -> dict:
    return {"code": 1, "data": {"flow": {"traffic_limit_mb": limit, "traffic_usage_mb": usage}}}


def _quota_by_cookie(table: dict[str, httpx.Response]):
    def handler(request: httpx.Request) -> httpx.Response:
        return table.get(request.headers.get("cookie", ""), httpx.Response(403))

    return handler


class TestCheckCookieQuota:
    @respx.mock
    @pytest.mark.asyncio
    async def test_remaining_computed(self) -> None:
        route = respx.get(USER_CARDS_URL).respond(200, json=_flow(1000, 250))
        async with httpx.AsyncClient() as client:
            check = await check_cookie_quota(client, "abc")
        assert check.ok is True
        assert check.remaining_mb == 750
        assert route.calls.last.request.headers["cookie"] == "ui=abc"

    @respx.mock
    @pytest.mark.asyncio
    async def test_prefixed_cookie_sent_as_is(self) -> None:
        route = respx.get(USER_CARDS_URL).respond(200, json=_flow(10, 0))
        async with httpx.AsyncClient() as client:
            await check_cookie_quota(client, "ui=abc")
        assert route.calls.last.request.headers["cookie"] == "ui=abc"

    @respx.mock
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(401),
            httpx.Response(200, text="<html>login</html>"),
            httpx.Response(200, json={"code": 0, "data": {}}),
        ],
    )
    async def test_failures_not_ok(self, response: httpx.Response) -> None:
        respx.get(USER_CARDS_URL).mock(return_value=response)
        async with httpx.AsyncClient() as client:
            check = await check_cookie_quota(client, "abc")
        assert check.ok is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_network_error_not_ok(self) -> None:
        respx.get(USER_CARDS_URL).mock(side_effect=httpx.ConnectTimeout("slow"))
        async with httpx.AsyncClient() as client:
            assert (await check_cookie_quota(client, "abc")).ok is False


class TestSelectBestCookie:
    @pytest.mark.asyncio
    async def test_no_cookies(self) -> None:
        async with httpx.AsyncClient() as client:
            choice = await select_best_cookie(client, ["", "  "])
        assert choice.cookie is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_highest_remaining_wins(self) -> None:
        respx.get(USER_CARDS_URL).mock(
            side_effect=_quota_by_cookie(
                {
                    "ui=low": httpx.Response(200, json=_flow(100, 90)),
                    "ui=high": httpx.Response(200, json=_flow(100, 10)),
                    "ui=dead": httpx.Response(500),
                }
            )
        )
        async with httpx.AsyncClient() as client:
            choice = await select_best_cookie(client, ["low", "dead", "high"])
        assert choice.cookie == "high"
        assert choice.remaining_mb == 90

    @respx.mock
    @pytest.mark.asyncio
    async def test_tie_keeps_user_order(self) -> None:
        respx.get(USER_CARDS_URL).respond(200, json=_flow(100, 50))
        async with httpx.AsyncClient() as client:
            choice = await select_best_cookie(client, ["first", "second"])
        assert choice.cookie == "first"

    @respx.mock
    @pytest.mark.asyncio
    async def test_all_failed_uses_first(self) -> None:
        respx.get(USER_CARDS_URL).respond(500)
        async with httpx.AsyncClient() as client:
            choice = await select_best_cookie(client, ["first", "second"])
        assert choice.cookie == "first"
        assert choice.remaining_mb is None
