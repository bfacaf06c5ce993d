"""Tests for the single-hop and link-list resolvers."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from resolvarr.domain.entities import (
    ResolutionHints,
    ResolutionRequest,
    StreamDescriptor,
    StructuralParseError,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.link_resolvers.hblinks import HBLinksResolver
from resolvarr.infrastructure.link_resolvers.hubcdn import HubCdnResolver, decode_hubcdn_page
from resolvarr.infrastructure.link_resolvers.hubdrive import HubDriveResolver
from resolvarr.infrastructure.link_resolvers.modrefer import (
    ModReferResolver,
    decode_modrefer_target,
)
from resolvarr.infrastructure.link_resolvers.videoseed import (
    instant_download,
    is_direct_cdn_link,
    normalize_cdn_link,
)
from resolvarr.infrastructure.link_resolvers.workerseed import (
    extract_worker_params,
    resolve_worker_bot,
)

_HINTS = ResolutionHints(quality="1080p", file_name="Movie.2010.1080p.mkv", size="2 GB")

_HANDED = StreamDescriptor(
    name="HubCloud", title="t", url="https://cdn.example.com/a.mkv", quality="1080p"
)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def _b64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def _attach(resolver):
    registry = MagicMock()
    registry.resolve = AsyncMock(return_value=[_HANDED])
    resolver.attach(registry)
    return registry


def _handed_urls(registry: MagicMock) -> list[str]:
    return [c.args[0].url for c in registry.resolve.await_args_list]


# ---------------------------------------------------------------------------
# HubCDN
# ---------------------------------------------------------------------------


class TestHubCdn:
    def test_decode_takes_last_link(self) -> None:
        payload = _b64("https://a.example/?link=x&link=https://cdn.example.com/a.mkv")
        assert decode_hubcdn_page(f"var s = 'r={payload}';") == "https://cdn.example.com/a.mkv"

    @pytest.mark.parametrize("html", ["nothing here", f"r={_b64('no marker')}"])
    def test_decode_missing(self, html: str) -> None:
        assert decode_hubcdn_page(html) is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_resolves_to_media(self) -> None:
        payload = _b64("link=https://cdn.example.com/a.mkv")
        respx.get("https://hubcdn.fans/file/1").respond(200, html=f"<script>r={payload}</script>")
        async with httpx.AsyncClient() as client:
            [stream] = await HubCdnResolver(client).resolve(
                ResolutionRequest(url="https://hubcdn.fans/file/1", hints=_HINTS)
            )
        assert stream.url == "https://cdn.example.com/a.mkv"
        assert stream.title == "Movie.2010.1080p.mkv\n2 GB"
        assert stream.quality == "1080p"


# ---------------------------------------------------------------------------
# HubDrive
# ---------------------------------------------------------------------------


class TestHubDrive:
    @respx.mock
    @pytest.mark.asyncio
    async def test_hubcloud_button_handed_on(self) -> None:
        respx.get("https://hubdrive.wales/file/9").respond(
            200, html='<a class="btn-success1" href="https://hubcloud.one/drive/9">HubCloud</a>'
        )
        async with httpx.AsyncClient() as client:
            resolver = HubDriveResolver(client)
            registry = _attach(resolver)
            streams = await resolver.resolve(ResolutionRequest(url="https://hubdrive.wales/file/9"))

        assert streams == [_HANDED]
        request = registry.resolve.await_args.args[0]
        assert request.url == "https://hubcloud.one/drive/9"
        assert request.referer == "https://hubdrive.wales/file/9"
        assert registry.resolve.await_args.kwargs["depth"] == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_direct_button_is_terminal(self) -> None:
        respx.get("https://hubdrive.wales/file/9").respond(
            200, html='<a href="https://cdn.example.com/a.mkv" class="btn-success1">DL</a>'
        )
        async with httpx.AsyncClient() as client:
            [stream] = await HubDriveResolver(client).resolve(
                ResolutionRequest(url="https://hubdrive.wales/file/9", hints=_HINTS)
            )
        assert stream.url == "https://cdn.example.com/a.mkv"
        assert stream.name == "HubDrive"

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_button_fails(self) -> None:
        respx.get("https://hubdrive.wales/file/9").respond(200, html="<p>gone</p>")
        async with httpx.AsyncClient() as client:
            assert await HubDriveResolver(client).resolve(
                ResolutionRequest(url="https://hubdrive.wales/file/9")
            ) == []


# ---------------------------------------------------------------------------
# HBLinks
# ---------------------------------------------------------------------------


class TestHBLinks:
    @respx.mock
    @pytest.mark.asyncio
    async def test_every_unique_link_handed_on(self) -> None:
        respx.get("https://hblinks.pro/archives/1").respond(
            200,
            html="""\
<h3><a href="https://hubdrive.wales/file/1">HubDrive</a></h3>
<div class="entry-content">
  <p><a href="https://hubcloud.one/drive/2">HubCloud</a></p>
  <p><a href="https://hubdrive.wales/file/1">HubDrive again</a></p>
</div>
""",
        )
        async with httpx.AsyncClient() as client:
            resolver = HBLinksResolver(client)
            registry = _attach(resolver)
            streams = await resolver.resolve(
                ResolutionRequest(url="https://hblinks.pro/archives/1", hints=_HINTS)
            )

        assert streams == [_HANDED, _HANDED]
        assert _handed_urls(registry) == [
            "https://hubdrive.wales/file/1",
            "https://hubcloud.one/drive/2",
        ]
        assert registry.resolve.await_args.args[0].hints == _HINTS

    @respx.mock
    @pytest.mark.asyncio
    async def test_page_error_is_empty(self) -> None:
        respx.get("https://hblinks.pro/archives/1").respond(404)
        async with httpx.AsyncClient() as client:
            resolver = HBLinksResolver(client)
            registry = _attach(resolver)
            assert await resolver.resolve(ResolutionRequest(url="https://hblinks.pro/archives/1")) == []
        registry.resolve.assert_not_awaited()


# ---------------------------------------------------------------------------
# ModRefer and link-list pages
# ---------------------------------------------------------------------------


class TestModRefer:
    def test_decode_target(self) -> None:
        url = f"https://modrefer.in/?url={_b64url('https://episodes.modpro.blog/show-s01/')}"
        assert decode_modrefer_target(url) == "https://episodes.modpro.blog/show-s01/"

    @pytest.mark.parametrize("url", ["https://modrefer.in/", "https://modrefer.in/?url=%%%"])
    def test_decode_target_invalid(self, url: str) -> None:
        with pytest.raises(StructuralParseError):
            decode_modrefer_target(url)

    @respx.mock
    @pytest.mark.asyncio
    async def test_modrefer_links_handed_on(self) -> None:
        target = "https://links.example/page"
        respx.get(target).respond(
            200,
            html="""\
<div class="timed-content-client_show_0_5_0">
  <a href="https://driveseed.org/file/a">Episode 1</a>
  <a href="https://driveseed.org/file/b">Batch Zip</a>
</div>
""",
        )
        url = f"https://modrefer.in/?url={_b64url(target)}"
        async with httpx.AsyncClient() as client:
            resolver = ModReferResolver(client)
            registry = _attach(resolver)
            streams = await resolver.resolve(ResolutionRequest(url=url))

        assert len(streams) == 2
        assert _handed_urls(registry) == [
            "https://driveseed.org/file/a",
            "https://driveseed.org/file/b",
        ]

    @respx.mock
    @pytest.mark.asyncio
    async def test_episode_page_skips_batch(self) -> None:
        respx.get("https://episodes.modpro.blog/show/").respond(
            200,
            html="""\
<div class="entry-content">
  <a href="https://driveseed.org/file/e1">Episode 1</a>
  <a href="https://driveseed.org/file/all">Batch/Zip</a>
  <a href="https://tech.unblockedgames.world/?sid=x">Episode 2</a>
  <a href="https://elsewhere.example/">Episode 3</a>
</div>
""",
        )
        async with httpx.AsyncClient() as client:
            resolver = ModReferResolver(client)
            entries = await resolver.intermediates(
                HttpSession(client), "https://episodes.modpro.blog/show/"
            )
        assert [(e.server, e.url) for e in entries] == [
            ("Episode 1", "https://driveseed.org/file/e1"),
            ("Episode 2", "https://tech.unblockedgames.world/?sid=x"),
        ]

    @respx.mock
    @pytest.mark.asyncio
    async def test_cinematickit_fallback_links(self) -> None:
        respx.get("https://cinematickit.org/show/").respond(
            200,
            html="""\
<a href="https://modrefer.in/?url=abc">1080p</a>
<a href="https://dramadrip.com/x"></a>
""",
        )
        async with httpx.AsyncClient() as client:
            entries = await ModReferResolver(client).intermediates(
                HttpSession(client), "https://cinematickit.org/show/"
            )
        assert [e.url for e in entries] == ["https://modrefer.in/?url=abc"]


# ---------------------------------------------------------------------------
# Worker bot
# ---------------------------------------------------------------------------

_WORKER_PAGE = """\
<html><head>
<script type="text/javascript">var x = 1;</script>
<script type="text/javascript">
  let formData = new FormData();
  formData.append('token', 'tok123');
  fetch('/download?id=file42', { method: 'POST', body: formData });
</script>
</head></html>
"""


class TestWorkerBot:
    def test_extract_params(self) -> None:
        assert extract_worker_params(_WORKER_PAGE) == ("tok123", "file42")

    def test_extract_params_missing(self) -> None:
        with pytest.raises(StructuralParseError):
            extract_worker_params("<script type=\"text/javascript\">nothing</script>")

    @respx.mock
    @pytest.mark.asyncio
    async def test_token_posted_in_same_session(self) -> None:
        respx.get("https://workerseed.example/w/1").respond(
            200, html=_WORKER_PAGE, headers={"set-cookie": "wid=1; Path=/"}
        )
        api = respx.post("https://workerseed.example/download").respond(
            200, json={"url": "https://cdn.example.com/a.mkv"}
        )
        async with httpx.AsyncClient() as client:
            url = await resolve_worker_bot(HttpSession(client), "https://workerseed.example/w/1")

        assert url == "https://cdn.example.com/a.mkv"
        request = api.calls.last.request
        assert request.url.params["id"] == "file42"
        assert request.headers["cookie"] == "wid=1"
        assert b"tok123" in request.read()

    @respx.mock
    @pytest.mark.asyncio
    async def test_api_without_url_rejected(self) -> None:
        respx.get("https://workerseed.example/w/1").respond(200, html=_WORKER_PAGE)
        respx.post("https://workerseed.example/download").respond(200, json={"error": "x"})
        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamRejectionError):
                await resolve_worker_bot(HttpSession(client), "https://workerseed.example/w/1")


# ---------------------------------------------------------------------------
# Instant download
# ---------------------------------------------------------------------------


class TestInstantDownload:
    @pytest.mark.parametrize(
        ("href", "direct"),
        [
            ("https://cdn.video-leech.pro/a.mkv", True),
            ("https://x.workers.dev/a b.mkv", True),
            ("https://video-seed.pro/?url=abc", False),
            ("/?url=abc", False),
            ("https://files.example/a.mkv", False),
            ("https://video-leech.pro/dl?id=1&url=KEY", False),
        ],
    )
    def test_is_direct(self, href: str, direct: bool) -> None:
        assert is_direct_cdn_link(href) is direct

    def test_normalize_encodes_spaces_on_workers(self) -> None:
        assert normalize_cdn_link("https://x.r2.dev/a/Movie 2010.mkv") == (
            "https://x.r2.dev/a/Movie%202010.mkv"
        )
        assert normalize_cdn_link("https://other.example/a b") == "https://other.example/a b"

    @respx.mock
    @pytest.mark.asyncio
    async def test_keys_posted_to_api(self) -> None:
        api = respx.post("https://video-seed.pro/api").respond(
            200, json={"url": "https://x.workers.dev/Movie 2010.mkv"}
        )
        async with httpx.AsyncClient() as client:
            url = await instant_download(
                HttpSession(client), "/?url=opaque", origin="https://video-seed.pro/"
            )

        assert url == "https://x.workers.dev/Movie%202010.mkv"
        request = api.calls.last.request
        assert request.headers["x-token"] == "video-seed.pro"
        assert request.content == b"keys=opaque"

    @respx.mock
    @pytest.mark.asyncio
    async def test_api_error_rejected(self) -> None:
        respx.post("https://video-seed.pro/api").respond(200, text="<html>")
        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamRejectionError):
                await instant_download(HttpSession(client), "https://video-seed.pro/?url=k")

    @respx.mock
    @pytest.mark.asyncio
    async def test_url_param_read_by_name(self) -> None:
        api = respx.post("https://video-leech.pro/api").respond(
            200, json={"url": "https://cdn.video-leech.pro/Movie.mkv"}
        )
        async with httpx.AsyncClient() as client:
            url = await instant_download(
                HttpSession(client), "https://video-leech.pro/dl?id=1&url=KEY"
            )

        assert url == "https://cdn.video-leech.pro/Movie.mkv"
        assert api.calls.last.request.content == b"keys=KEY"

    @pytest.mark.asyncio
    async def test_redirector_without_url_param_rejected(self) -> None:
        with pytest.raises(UpstreamRejectionError):
            await instant_download(
                HttpSession(MagicMock()), "https://video-seed.pro/dl?id=1"
            )
