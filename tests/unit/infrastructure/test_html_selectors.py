"""Tests for CSS-selector-based HTML extraction helpers."""

from __future__ import annotations

from resolvarr.infrastructure.common.html_selectors import (
    extract_attr,
    extract_text,
    find_by_text,
    first_href_by_text,
    meta_refresh_url,
    own_text,
    parse_html,
    select_items,
)

# ---------------------------------------------------------------------------
# Fixture HTML
# ---------------------------------------------------------------------------

_PAGE_HTML = """\
<html><head>
<meta http-equiv="Refresh" content="0; url='https://driveleech.net/file/abc'">
</head><body>
<div class="card-header"><h5>Movie.2010.1080p.mkv <span>[Fast]</span></h5></div>
<div class="text-center">
  <a class="btn" href="https://a.example/cloud">Resume Cloud</a>
  <a class="btn" href="https://a.example/instant">INSTANT Download</a>
</div>
</body></html>
"""


class TestSelectItems:
    def test_fallback_selector(self) -> None:
        soup = parse_html(_PAGE_HTML)
        items = select_items(soup, ".missing", "div.text-center a")
        assert len(items) == 2

    def test_nothing(self) -> None:
        assert select_items(parse_html(_PAGE_HTML), ".missing") == []


class TestExtractText:
    def test_first_match(self) -> None:
        soup = parse_html(_PAGE_HTML)
        assert extract_text(soup, "div.card-header h5") == "Movie.2010.1080p.mkv [Fast]"

    def test_default(self) -> None:
        assert extract_text(parse_html(_PAGE_HTML), ".missing", default="x") == "x"


class TestExtractAttr:
    def test_fallback_selector(self) -> None:
        soup = parse_html(_PAGE_HTML)
        assert extract_attr(soup, "a.missing", "href", "div.text-center a") == (
            "https://a.example/cloud"
        )

    def test_element_itself(self) -> None:
        link = parse_html(_PAGE_HTML).select_one("a.btn")
        assert extract_attr(link, "", "href") == "https://a.example/cloud"
        assert extract_attr(link, "", "data-x", default="none") == "none"


class TestFindByText:
    def test_case_sensitive(self) -> None:
        soup = parse_html(_PAGE_HTML)
        assert find_by_text(soup, "a.btn", "Instant Download") == []

    def test_ignore_case(self) -> None:
        soup = parse_html(_PAGE_HTML)
        found = find_by_text(soup, "a.btn", "instant download", ignore_case=True)
        assert [t["href"] for t in found] == ["https://a.example/instant"]

    def test_first_href(self) -> None:
        soup = parse_html(_PAGE_HTML)
        assert first_href_by_text(soup, "Resume Cloud") == "https://a.example/cloud"
        assert first_href_by_text(soup, "Worker Bot") == ""


class TestMetaRefresh:
    def test_quotes_stripped(self) -> None:
        assert meta_refresh_url(parse_html(_PAGE_HTML)) == "https://driveleech.net/file/abc"

    def test_missing(self) -> None:
        assert meta_refresh_url(parse_html("<html></html>")) == ""


class TestOwnText:
    def test_ignores_children(self) -> None:
        h5 = parse_html(_PAGE_HTML).select_one("div.card-header h5")
        assert h5 is not None
        assert own_text(h5) == "Movie.2010.1080p.mkv"
