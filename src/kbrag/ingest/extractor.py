"""HTML to clean prose extraction using BeautifulSoup."""

import html
import logging
import re
from datetime import datetime, timezone
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from kbrag.constants import (
    BLOCK_TAGS,
    BOILERPLATE_FRAGMENTS,
    BOILERPLATE_NAMES,
    BOILERPLATE_ROLES,
    CONTENT_CONTAINER_NAMES,
    IMPORTED_TITLE_PREFIX,
    MIN_MAIN_CONTENT_CHARS,
    NAV_LINE_MAX_WORDS,
    REMOVED_TAGS,
    SKIPPED_LINK_PREFIXES,
    TITLE_MAX_CHARS,
    TITLE_MIN_CHARS,
    TITLE_SEPARATORS,
)
from kbrag.models import ExtractedContent
from kbrag.text import collapse_whitespace, host_of

logger = logging.getLogger(__name__)

LANGUAGE_BAR_RE = re.compile(
    r"\bEnglish\b\s+\b(Azərbaycan|Azerbaycan)\b\s+\bTürkçe\b\s+\bFrançais\b.*$",
    re.IGNORECASE | re.MULTILINE,
)
ARABIC_ONLY_LINE_RE = re.compile(r"^[\s\u0600-\u06ff\u0750-\u077f\u08a0-\u08ff\ufb50-\ufdff\ufe70-\ufeff]+$")
INLINE_WS_RE = re.compile(r"[ \t\f\v\u00a0]+")


def _tokens(element: Tag) -> list[str]:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    element_id = element.get("id") or ""
    return [token.lower() for token in [*classes, element_id] if token]


def is_boilerplate(element: Tag) -> bool:
    """True when an element looks like navigation, ads, cookie banners or menus."""
    role = (element.get("role") or "").lower()
    if role in BOILERPLATE_ROLES:
        return True
    for token in _tokens(element):
        for name in BOILERPLATE_NAMES:
            if token == name or token.startswith(f"{name}-") or token.startswith(f"{name}_"):
                return True
        if any(fragment in token for fragment in BOILERPLATE_FRAGMENTS):
            return True
    return False


def clean_title(title: str) -> str:
    """Strip a trailing "site name" suffix from a page title.

    The part before a separator is kept when it is longer than the part
    after it and more than 10 characters long.

    Args:
        title: Raw title text

    Returns:
        str: Cleaned title
    """
    title = collapse_whitespace(html.unescape(title))
    for separator in TITLE_SEPARATORS:
        pos = title.rfind(separator)
        if pos <= 0:
            continue
        head, tail = title[:pos].strip(), title[pos + len(separator):].strip()
        if len(head) > len(tail) and len(head) > 10:
            title = head
    return title


def clean_lines(text: str) -> str:
    """Drop navigation noise lines and collapse whitespace line by line."""
    text = LANGUAGE_BAR_RE.sub("", text)
    lines = []
    for line in text.splitlines():
        line = INLINE_WS_RE.sub(" ", line).strip()
        if not line:
            continue
        if ARABIC_ONLY_LINE_RE.match(line) and len(line.split()) <= NAV_LINE_MAX_WORDS:
            continue
        lines.append(line)
    return "\n".join(lines)


class HtmlTextExtractor:
    """Extract the readable content of an HTML page.

    Scripts, styles and navigation chrome are removed, a main-content
    container is preferred over the whole body when it carries enough text,
    and the remaining text is cleaned line by line.
    """

    def extract(self, html_text: str, url: str | None = None) -> ExtractedContent:
        """Extract title, content and metadata from HTML.

        Args:
            html_text: Decoded HTML
            url: Page URL, used for the title fallback and metadata

        Returns:
            ExtractedContent: Clean content; metadata is best-effort
        """
        soup = BeautifulSoup(html_text, "html.parser")
        title = self._resolve_title(soup, url)
        metadata = self._extract_metadata(soup, url)

        self._strip_boilerplate(soup)
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before("\n")
            block.insert_after("\n")

        content = clean_lines(html.unescape(self._main_text(soup)))
        logger.debug(f"📄 Extracted {len(content)} characters, title={title!r}")
        return ExtractedContent(title=title, content=content, metadata=metadata)

    def _strip_boilerplate(self, soup: BeautifulSoup) -> None:
        for tag in soup.find_all(REMOVED_TAGS):
            tag.decompose()
        for element in soup.find_all(True):
            if element.decomposed or element.name in ("html", "body"):
                continue
            if is_boilerplate(element):
                element.decompose()

    def _main_text(self, soup: BeautifulSoup) -> str:
        candidates: list[Tag] = list(soup.find_all(["main", "article"]))
        candidates.extend(soup.find_all(attrs={"role": "main"}))
        for element in soup.find_all(True):
            if any(token in CONTENT_CONTAINER_NAMES for token in _tokens(element)):
                candidates.append(element)

        best = ""
        for candidate in candidates:
            text = candidate.get_text()
            if len(text.strip()) > len(best.strip()):
                best = text
        if len(best.strip()) >= MIN_MAIN_CONTENT_CHARS:
            return best

        body = soup.body or soup
        return body.get_text()

    def _resolve_title(self, soup: BeautifulSoup, url: str | None) -> str:
        if soup.title and soup.title.string:
            title = clean_title(soup.title.string)
            if TITLE_MIN_CHARS <= len(title) <= TITLE_MAX_CHARS:
                return title

        h1 = soup.find("h1")
        if h1:
            title = clean_title(h1.get_text(" "))
            if title:
                return title

        for attrs in ({"property": "og:title"}, {"name": "title"}):
            meta = soup.find("meta", attrs=attrs)
            if meta and meta.get("content"):
                title = clean_title(meta["content"])
                if title:
                    return title

        host = host_of(url) or "unknown"
        return f"{IMPORTED_TITLE_PREFIX} - {host}"

    def _extract_metadata(self, soup: BeautifulSoup, url: str | None) -> dict:
        metadata: dict[str, str] = {
            "url": url or "",
            "host": host_of(url),
            "extracted_at": datetime.now(timezone.utc).isoformat(),
        }
        for key, attrs in (
            ("description", {"name": "description"}),
            ("keywords", {"name": "keywords"}),
            ("author", {"name": "author"}),
            ("published_time", {"property": "article:published_time"}),
        ):
            meta = soup.find("meta", attrs=attrs)
            if meta and meta.get("content"):
                metadata[key] = meta["content"].strip()

        html_tag = soup.find("html")
        if html_tag and html_tag.get("lang"):
            metadata["language"] = html_tag["lang"].split("-")[0].lower()
        return metadata


def extract_links(html_text: str, base_url: str) -> list[str]:
    """Collect same-host links from a page, resolved and de-duplicated in order.

    Args:
        html_text: Decoded HTML
        base_url: URL the page was fetched from

    Returns:
        list[str]: Absolute URLs without fragments
    """
    soup = BeautifulSoup(html_text, "html.parser")
    base_host = urlparse(base_url).hostname
    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(SKIPPED_LINK_PREFIXES):
            continue
        absolute = urljoin(base_url, href).split("#", 1)[0]
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or parsed.hostname != base_host:
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links
