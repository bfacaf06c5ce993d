"""Driveseed / Driveleech resolver.

A driveseed link first serves a page whose only job is a client-side
``window.location.replace("/file/...")``. The file page lists the file
name and size and up to three download buttons, tried strictly in order:

1. Resume Cloud (usually already direct, at most one more page)
2. Resume Worker Bot (token + multipart POST on workerseed)
3. Instant Download (signing API on video-seed / video-leech)

The first option producing a final media URL wins; an option that only
yields another redirector counts as failed. Later options are not touched.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionError,
    ResolutionRequest,
    StructuralParseError,
)
from resolvarr.infrastructure.common.html_selectors import (
    find_by_text,
    own_text,
    parse_html,
)
from resolvarr.infrastructure.common.quality import quality_from_filename
from resolvarr.infrastructure.http.session import HttpSession

from ._chain import is_redirector_url, validate_url
from .base import ChainResolver
from .videoseed import instant_download
from .workerseed import resolve_worker_bot

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Selectors:
    js_redirect: re.Pattern[str] = re.compile(r'window\.location\.replace\("([^"]+)"\)')
    size: re.Pattern[str] = re.compile(r"Size\s*:\s*([0-9.,]+\s*[KMGT]B)")
    list_items: str = "li.list-group-item"
    card_title: str = "div.card-header h5"
    buttons: str = "div.text-center > a, a.btn"
    resume_cloud: tuple[str, ...] = ("Resume Cloud", "Cloud Resume Download")
    worker_bot: tuple[str, ...] = ("Resume Worker Bot",)
    instant: tuple[str, ...] = ("Instant Download",)
    resume_page_link: str = 'a.btn-success[href*="workers.dev"], a[href*="driveleech.net/d/"]'
    resume_page_fallback: str = 'a.btn-success[href^="http"]'


_SEL = _Selectors()

DownloadOption = Callable[[], Awaitable[str | None]]


def file_page_redirect(html: str, page_url: str) -> str | None:
    """Absolute target of the page's ``window.location.replace`` call."""
    match = _SEL.js_redirect.search(html)
    if not match:
        return None
    parts = urlsplit(page_url)
    return urljoin(f"{parts.scheme}://{parts.netloc}", match.group(1))


def file_page_details(soup: BeautifulSoup) -> tuple[str | None, str | None]:
    """``(file_name, size)`` from the ``Name :`` / ``Size :`` list items.

    Falls back to the card header's own text (bracketed tags removed) for
    the name.
    """
    file_name = None
    size = None
    for item in soup.select(_SEL.list_items):
        text = item.get_text(" ", strip=True)
        if "Name :" in text:
            file_name = text.split("Name :", 1)[1].strip() or None
        elif "Size :" in text:
            match = _SEL.size.search(text)
            size = match.group(1) if match else text.split(":", 1)[1].strip() or None

    if not file_name:
        header = soup.select_one(_SEL.card_title)
        if header is not None:
            file_name = re.sub(r"\[.*\]", "", own_text(header)).strip() or None
    return file_name, size


def _first_href(soup: BeautifulSoup, needles: tuple[str, ...]) -> str | None:
    for tag in find_by_text(soup, _SEL.buttons, *needles, ignore_case=True):
        href = tag.get("href")
        if href:
            return str(href).strip()
    return None


class DriveseedResolver(ChainResolver):
    name = "Driveseed"
    _host_markers = ("driveseed.org", "driveleech.net")

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        response = await session.get(request.url, referer=request.referer)
        response.raise_for_status()
        page_url = str(response.url)

        target = file_page_redirect(response.text, page_url)
        if target and target != request.url:
            return ChainStep.redirect(request.next_hop(target, referer=page_url))

        soup = parse_html(response.text)
        file_name, size = file_page_details(soup)
        url, label = await self._try_download_options(session, soup, page_url)
        return self._terminal(
            request,
            url,
            file_name=file_name,
            size=size,
            quality=request.hints.quality or quality_from_filename(file_name),
            label=f"{self.name} - {label}",
        )

    def download_options(
        self, session: HttpSession, soup: BeautifulSoup, page_url: str
    ) -> list[tuple[str, DownloadOption]]:
        """Available options in fallback order, as lazy coroutines."""
        parts = urlsplit(page_url)
        origin = f"{parts.scheme}://{parts.netloc}"
        options: list[tuple[str, DownloadOption]] = []

        resume = _first_href(soup, _SEL.resume_cloud)
        if resume:
            options.append(
                ("Resume Cloud", lambda: self._resume_cloud(session, urljoin(origin, resume)))
            )
        worker = _first_href(soup, _SEL.worker_bot)
        if worker:
            options.append(
                ("Resume Worker Bot", lambda: resolve_worker_bot(session, urljoin(origin, worker)))
            )
        instant = _first_href(soup, _SEL.instant)
        if instant:
            options.append(
                ("Instant Download", lambda: instant_download(session, instant, origin=origin))
            )
        return options

    async def _try_download_options(
        self, session: HttpSession, soup: BeautifulSoup, page_url: str
    ) -> tuple[str, str]:
        options = self.download_options(session, soup, page_url)
        if not options:
            raise StructuralParseError("no download buttons on file page")

        for label, option in options:
            try:
                url = await option()
            except (ResolutionError, httpx.HTTPError) as exc:
                log.info(
                    "driveseed_option_failed",
                    option=label,
                    error=f"{type(exc).__name__}: {exc}",
                )
                continue
            if not url:
                continue
            if is_redirector_url(url):
                log.info("driveseed_option_not_terminal", option=label, url=url)
                continue
            if self._validate and not await validate_url(session, url):
                continue
            log.debug("driveseed_option_succeeded", option=label)
            return url, label
        raise StructuralParseError("all download options failed")

    async def _resume_cloud(self, session: HttpSession, url: str) -> str | None:
        host = (urlsplit(url).hostname or "").lower()
        if not is_redirector_url(url) or not any(m in host for m in self._host_markers):
            return url

        response = await session.get(url)
        response.raise_for_status()
        soup = parse_html(response.text)
        link = soup.select_one(_SEL.resume_page_link) or soup.select_one(
            _SEL.resume_page_fallback
        )
        if link is not None and link.get("href"):
            return str(link["href"]).strip()
        return _first_href(soup, ("Cloud Resume Download",))
