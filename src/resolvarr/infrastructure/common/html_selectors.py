"""CSS-selector-based HTML extraction with fallback chains.

Every extraction helper accepts a primary selector and optional
*fallback_selectors*; the first selector yielding a match wins. Text
matching helpers stand in for jQuery-style ``:contains()`` lookups that
redirector pages are usually scraped with.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

_META_REFRESH_URL_RE = re.compile(r"url=(.*)", re.IGNORECASE)


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML string into a BeautifulSoup tree (lxml parser)."""
    return BeautifulSoup(html, "lxml")


def select_items(
    root: BeautifulSoup | Tag,
    selector: str,
    *fallback_selectors: str,
) -> list[Tag]:
    """Select elements via CSS, returning matches of the first selector that hits."""
    for sel in (selector, *fallback_selectors):
        items = root.select(sel)
        if items:
            return items
    return []


def extract_text(
    element: BeautifulSoup | Tag,
    selector: str,
    *fallback_selectors: str,
    default: str = "",
    strip: bool = True,
) -> str:
    """Text of the first matching child element.

    With ``selector=""`` the element's own text is returned.
    """
    if selector == "":
        text = element.get_text(" ", strip=strip)
        return text if text else default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            text = match.get_text(" ", strip=strip)
            if text:
                return text
    return default


def extract_attr(
    element: BeautifulSoup | Tag,
    selector: str,
    attr: str,
    *fallback_selectors: str,
    default: str = "",
) -> str:
    """Attribute of the first matching child element (``""`` = element itself)."""
    if selector == "":
        val = element.get(attr) if isinstance(element, Tag) else None
        return str(val) if val else default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            val = match.get(attr)
            if val:
                return str(val)
    return default


def extract_links(
    element: BeautifulSoup | Tag,
    selector: str = "a[href]",
    *fallback_selectors: str,
    base_url: str = "",
) -> list[dict[str, str]]:
    """All links matching *selector* as ``{"text": ..., "href": ...}`` dicts."""
    results: list[dict[str, str]] = []
    for tag in select_items(element, selector, *fallback_selectors):
        href = tag.get("href")
        if not href:
            continue
        href_str = str(href).strip()
        if base_url:
            href_str = urljoin(base_url, href_str)
        results.append({"text": tag.get_text(" ", strip=True), "href": href_str})
    return results


def find_by_text(
    root: BeautifulSoup | Tag,
    selector: str,
    *needles: str,
    ignore_case: bool = False,
) -> list[Tag]:
    """Elements matching *selector* whose text contains any of *needles*."""
    found: list[Tag] = []
    wanted = [n.lower() for n in needles] if ignore_case else list(needles)
    for tag in root.select(selector):
        text = tag.get_text(" ", strip=True)
        if ignore_case:
            text = text.lower()
        if any(n in text for n in wanted):
            found.append(tag)
    return found


def first_href_by_text(
    root: BeautifulSoup | Tag,
    *needles: str,
    selector: str = "a",
    ignore_case: bool = False,
) -> str:
    """``href`` of the first anchor whose text contains one of *needles*."""
    for tag in find_by_text(root, selector, *needles, ignore_case=ignore_case):
        href = tag.get("href")
        if href:
            return str(href).strip()
    return ""


def meta_refresh_url(root: BeautifulSoup | Tag) -> str:
    """Target of a ``<meta http-equiv="refresh">`` tag with quotes stripped."""
    for meta in root.select("meta[http-equiv]"):
        if str(meta.get("http-equiv", "")).lower() != "refresh":
            continue
        m = _META_REFRESH_URL_RE.search(str(meta.get("content", "")))
        if m:
            return m.group(1).replace('"', "").replace("'", "").strip()
    return ""


def own_text(element: Tag) -> str:
    """Text directly inside *element*, ignoring nested tags."""
    return "".join(
        str(child) for child in element.children if isinstance(child, str)
    ).strip()
