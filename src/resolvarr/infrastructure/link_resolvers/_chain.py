"""Chain harness shared by all link resolvers.

A chain is a sequence of hops, each a coroutine ``ResolutionRequest ->
ChainStep``. ``run_chain`` drives the hops strictly in order, turns any
exception into a FAILURE step, bounds the hop count and performs the
best-effort filename sniff on the terminal URL.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import replace
from urllib.parse import urlsplit

import httpx
import structlog

from resolvarr.domain.entities import (
    ChainStep,
    ErrorKind,
    ResolutionError,
    ResolutionRequest,
    StepKind,
    StreamDescriptor,
)
from resolvarr.infrastructure.common.parsers import (
    filename_from_content_disposition,
    filename_from_url,
)
from resolvarr.infrastructure.http.session import HttpSession

log = structlog.get_logger(__name__)

Hop = Callable[[ResolutionRequest], Awaitable[ChainStep]]

DEFAULT_MAX_HOPS = 8
SNIFF_TIMEOUT = 5.0
VALIDATE_TIMEOUT = 10.0

# Hosts that only ever serve another hop, never media.
_REDIRECTOR_HOST_RE = re.compile(
    r"(?:^|\.)(?:"
    r"driveseed\.org|driveleech\.net|"
    r"tech\.unblockedgames\.world|tech\.creativeexpressionsblog\.com|"
    r"tech\.examzculture\.in|modrefer\.in|links\.modpro\.blog|"
    r"episodes\.modpro\.blog|cinematickit\.org|pahe\.win"
    r")$"
    r"|(?:^|\.)(?:"
    r"hubcloud|hubdrive|hubcdn|hblinks|gdflix|gdlink|workerseed|"
    r"video-seed|video-leech|kwik|techyboy4u|gadgetsweb|4khdhub|hdhub4u"
    r")\.",
    re.IGNORECASE,
)

# Driveseed's own /d/ paths stream the file.
_DIRECT_PATH_RE = re.compile(r"(?:^|\.)(?:driveseed\.org|driveleech\.net)$", re.IGNORECASE)


def compose_title(file_name: str | None, size: str | None) -> str:
    """Display title: file name over size, either may be missing."""
    return "\n".join(part for part in (file_name, size) if part)


def is_redirector_url(url: str) -> bool:
    """True if *url* points at an intermediate redirector, not media."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if not host:
        return True
    if host.startswith("cdn."):
        return False
    if "pixeldrain" in host and "/u/" in parts.path:
        return True
    if _DIRECT_PATH_RE.match(host) and parts.path.startswith("/d/"):
        return False
    return bool(_REDIRECTOR_HOST_RE.search(host))


def error_kind_for(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a hop to the failure taxonomy."""
    if isinstance(exc, ResolutionError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return ErrorKind.UPSTREAM_REJECTION
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.TRANSIENT_NETWORK
    return ErrorKind.STRUCTURAL_PARSE


async def run_chain(
    hop: Hop,
    request: ResolutionRequest,
    *,
    chain: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    accepts: Callable[[str], bool] | None = None,
) -> ChainStep:
    """Drive *hop* until it yields TERMINAL or FAILURE.

    The same *hop* callable receives every intermediate request; resolvers
    dispatch on the request URL. When *accepts* rejects the next URL the
    REDIRECT step is returned as a hand-off to another resolver. Never
    raises.
    """
    current = request
    for hop_index in range(max_hops):
        try:
            step = await hop(current)
        except ResolutionError as exc:
            step = ChainStep.failure(exc.kind, str(exc))
        except httpx.HTTPError as exc:
            step = ChainStep.failure(error_kind_for(exc), f"{type(exc).__name__}: {exc}")
        except Exception as exc:  # noqa: BLE001
            log.warning("chain_hop_crashed", chain=chain, url=current.url, exc_info=True)
            step = ChainStep.failure(ErrorKind.STRUCTURAL_PARSE, str(exc))

        if step.kind is StepKind.FAILURE:
            log.info(
                "chain_failed",
                chain=chain,
                url=current.url,
                hop=hop_index,
                kind=step.error.kind.value if step.error else None,
                reason=step.error.message if step.error else "",
            )
            return step
        if step.kind is StepKind.TERMINAL:
            log.debug("chain_terminal", chain=chain, hops=hop_index + 1)
            return step
        if step.next_request is None:
            return ChainStep.failure(ErrorKind.STRUCTURAL_PARSE, "hop returned no next request")
        if accepts is not None and not accepts(step.next_request.url):
            log.debug("chain_hand_off", chain=chain, url=step.next_request.url)
            return step
        current = step.next_request

    log.info("chain_hop_limit", chain=chain, url=request.url, max_hops=max_hops)
    return ChainStep.failure(ErrorKind.STRUCTURAL_PARSE, f"exceeded {max_hops} hops")


async def sniff_filename(
    session: HttpSession, url: str, *, timeout: float = SNIFF_TIMEOUT
) -> str:
    """File name from a HEAD ``Content-Disposition``, else the URL path.

    Best effort: any failure falls back to the URL path.
    """
    try:
        response = await session.head(url, timeout=timeout)
        name = filename_from_content_disposition(
            response.headers.get("content-disposition")
        )
        if name:
            return name
    except httpx.HTTPError as exc:
        log.debug("filename_sniff_failed", url=url, error=type(exc).__name__)
    return filename_from_url(url)


async def validate_url(
    session: HttpSession, url: str, *, timeout: float = VALIDATE_TIMEOUT
) -> bool:
    """Reachability probe: HEAD with a one-byte range, 2xx/3xx passes."""
    try:
        response = await session.head(
            url,
            headers={"Range": "bytes=0-1"},
            follow_redirects=False,
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        log.info("url_validation_failed", url=url, error=type(exc).__name__)
        return False
    ok = 200 <= response.status_code < 400
    if not ok:
        log.info("url_validation_failed", url=url, status=response.status_code)
    return ok


async def finalize(
    session: HttpSession,
    step: ChainStep,
    *,
    validate: bool = False,
    sniff: bool = True,
) -> StreamDescriptor | None:
    """Turn a chain's last step into a descriptor, or ``None``.

    Redirector URLs are rejected; the title is filled by sniffing the
    file name when the chain did not scrape one; *validate* drops URLs
    whose reachability probe fails.
    """
    if step.kind is not StepKind.TERMINAL or step.descriptor is None:
        return None
    descriptor = step.descriptor

    if is_redirector_url(descriptor.url):
        log.info("chain_non_terminal_url_dropped", url=descriptor.url)
        return None
    if validate and not await validate_url(session, descriptor.url):
        return None
    if sniff and not descriptor.file_name:
        file_name = await sniff_filename(session, descriptor.url)
        descriptor = replace(
            descriptor,
            file_name=file_name,
            title=compose_title(file_name, descriptor.size),
        )
    return descriptor
