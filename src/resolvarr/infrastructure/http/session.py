"""Per-chain HTTP session over the shared httpx client.

The shared ``httpx.AsyncClient`` is built with a cookie jar that refuses
every cookie, so no state can leak between concurrent chains through it.
All cookie state lives in the ``SessionContext`` owned by one chain:
``HttpSession`` sends the cookies applicable to each request's host and
harvests ``Set-Cookie`` headers from every response, including each
redirect it follows.
"""

from __future__ import annotations

from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog

from resolvarr.domain.entities import SessionContext
from resolvarr.infrastructure.common.rate_limiter import DomainRateLimiter
from resolvarr.infrastructure.common.retry_transport import RetryTransport

log = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_MAX_REDIRECTS = 10
_REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})


def _rejecting_cookie_jar() -> CookieJar:
    """A jar whose policy accepts no domain: the client stays stateless."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def build_http_client(
    *,
    timeout: float = 30.0,
    user_agent: str = DEFAULT_USER_AGENT,
    proxy: str | None = None,
    rate_limit_rps: float = 5.0,
    rate_limit_burst: int = 10,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    retry_network_errors: bool = False,
) -> httpx.AsyncClient:
    """Shared client: rate-limited retry transport, no cookie persistence."""
    rate_limiter = DomainRateLimiter(default_rps=rate_limit_rps, burst=rate_limit_burst)
    transport = RetryTransport(
        httpx.AsyncHTTPTransport(proxy=proxy) if proxy else httpx.AsyncHTTPTransport(),
        rate_limiter=rate_limiter,
        max_retries=max_retries,
        backoff_base=backoff_base,
        retry_network_errors=retry_network_errors,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=timeout,
        follow_redirects=False,
        headers={"User-Agent": user_agent},
        cookies=_rejecting_cookie_jar(),
    )


def _host(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def _redirect_method(status_code: int, method: str) -> str:
    if status_code == 303 and method != "HEAD":
        return "GET"
    if status_code in (301, 302) and method == "POST":
        return "GET"
    return method


class HttpSession:
    """Cookie- and referer-carrying view of the shared client for one chain.

    Redirects are followed here rather than inside httpx so that cookies
    set on intermediate 30x responses land in the session context.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        context: SessionContext | None = None,
    ) -> None:
        self._client = client
        self.context = context if context is not None else SessionContext()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def set_cookie(self, url: str, name: str, value: str) -> None:
        """Store a cookie for the host of *url* (e.g. a script-set cookie)."""
        self.context.set_cookie(_host(url), name, value)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def request(
        self,
        method: str,
        url: str,
        *,
        referer: str | None = None,
        follow_redirects: bool = True,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        data: Any = None,
        content: str | bytes | None = None,
        files: Any = None,
        json: Any = None,
        params: Any = None,
    ) -> httpx.Response:
        """Issue a request with session cookies and referer.

        Raises ``httpx.HTTPError`` subclasses on transport failure; status
        codes are left for the caller to judge.
        """
        ref = referer or self.context.referer
        history: list[httpx.Response] = []
        current_url = url
        current_method = method.upper()

        for _ in range(_MAX_REDIRECTS + 1):
            response = await self._send(
                current_method,
                current_url,
                referer=ref,
                headers=headers,
                timeout=timeout,
                data=data,
                content=content,
                files=files,
                json=json,
                params=params,
            )
            self._harvest_cookies(response)

            location = response.headers.get("location")
            if (
                not follow_redirects
                or response.status_code not in _REDIRECT_CODES
                or not location
            ):
                response.history = history
                self.context.referer = str(response.url)
                return response

            await response.aclose()
            history.append(response)
            next_method = _redirect_method(response.status_code, current_method)
            if next_method != current_method:
                data = content = files = json = None
            ref = current_url
            current_url = str(response.url.join(location))
            current_method = next_method
            params = None

        log.warning("http_too_many_redirects", url=url, hops=len(history))
        raise httpx.TooManyRedirects(
            f"Exceeded {_MAX_REDIRECTS} redirects", request=response.request
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        referer: str | None,
        headers: dict[str, str] | None,
        timeout: float | None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged: dict[str, str] = {}
        if referer:
            merged["Referer"] = referer
        cookie_header = self.context.cookie_header(_host(url))
        if cookie_header:
            merged["Cookie"] = cookie_header
        if headers:
            merged.update(headers)

        extra: dict[str, Any] = {k: v for k, v in kwargs.items() if v is not None}
        if timeout is not None:
            extra["timeout"] = timeout
        return await self._client.request(
            method, url, headers=merged, follow_redirects=False, **extra
        )

    def _harvest_cookies(self, response: httpx.Response) -> None:
        default_host = _host(str(response.url))
        for cookie in response.cookies.jar:
            self.context.set_cookie(
                cookie.domain or default_host, cookie.name, cookie.value or ""
            )
