"""WorkerSeed ("Resume Worker Bot") resolver.

The page embeds a script that builds a ``FormData`` with a one-time token
and fetches ``/download?id=<id>``. Both values are scraped from the raw
script text and replayed as a multipart POST in the same session.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

import structlog

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StructuralParseError,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.http.session import HttpSession

from .base import ChainResolver

log = structlog.get_logger(__name__)

_SCRIPT_RE = re.compile(r'<script type="text/javascript">([\s\S]*?)</script>')
_TOKEN_RE = re.compile(r"formData\.append\('token', '([^']+)'\)")
_ID_RE = re.compile(r"fetch\('/download\?id=([^']+)',")


def extract_worker_params(html: str) -> tuple[str, str]:
    """``(token, id)`` from the worker page script.

    Raises ``StructuralParseError`` if either is missing.
    """
    script = next(
        (s for s in _SCRIPT_RE.findall(html) if "formData.append('token'" in s), None
    )
    if script is None:
        raise StructuralParseError("worker token script not found")
    token = _TOKEN_RE.search(script)
    file_id = _ID_RE.search(script)
    if not token or not file_id:
        raise StructuralParseError("worker token or id missing")
    return token.group(1), file_id.group(1)


async def resolve_worker_bot(session: HttpSession, url: str) -> str:
    """Media URL behind a worker page; raises on any missing piece."""
    page = await session.get(url)
    page.raise_for_status()
    token, file_id = extract_worker_params(page.text)

    parts = urlsplit(str(page.url))
    api_url = f"{parts.scheme}://{parts.netloc}/download?id={file_id}"
    response = await session.post(
        api_url,
        files={"token": (None, token)},
        referer=url,
        headers={"X-Requested-With": "XMLHttpRequest"},
    )
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamRejectionError(f"worker api returned non-json ({response.status_code})") from exc
    final = payload.get("url") if isinstance(payload, dict) else None
    if not final:
        raise UpstreamRejectionError("worker api returned no url")
    log.debug("worker_bot_resolved", id=file_id)
    return final


class WorkerSeedResolver(ChainResolver):
    name = "Worker Bot"
    _host_markers = ("workerseed.",)

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        return self._terminal(request, await resolve_worker_bot(session, request.url))
