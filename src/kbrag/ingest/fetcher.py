"""HTTP content fetching with a prioritized chain of transport strategies."""

import logging
from typing import Protocol

import httpx
import requests

from kbrag.constants import (
    BOT_USER_AGENT,
    BROWSER_HEADERS,
    FETCH_CONNECT_TIMEOUT,
    FETCH_FALLBACK_TIMEOUT,
    FETCH_HTTPX_TIMEOUT,
    FETCH_MAX_REDIRECTS,
    FETCH_READ_TIMEOUT,
    HTML_CONTENT_TYPES,
)
from kbrag.models import FetchedPage, FetchError

logger = logging.getLogger(__name__)


class StrategyError(Exception):
    """A single fetch strategy did not produce usable content."""


def parse_content_type(header: str | None) -> tuple[str | None, str | None]:
    """Split a Content-Type header into (mime type, charset).

    Args:
        header: Raw header value, e.g. "text/html; charset=windows-1254"

    Returns:
        tuple: Lowercased mime type and charset, either may be None
    """
    if not header:
        return None, None
    parts = [part.strip() for part in header.split(";")]
    mime = parts[0].lower() or None
    charset = None
    for part in parts[1:]:
        if part.lower().startswith("charset="):
            charset = part.split("=", 1)[1].strip().strip("\"'") or None
    return mime, charset


def is_acceptable(status_code: int, content_type: str | None) -> bool:
    """2xx status with an HTML-ish content type (or none declared)."""
    if not 200 <= status_code < 300:
        return False
    mime, _ = parse_content_type(content_type)
    return mime is None or mime in HTML_CONTENT_TYPES


class FetchStrategy(Protocol):
    name: str

    def fetch(self, url: str) -> FetchedPage:
        """Fetch a URL or raise StrategyError."""
        ...


def _page_from(url: str, final_url: str, status: int, body: bytes, content_type: str | None, name: str) -> FetchedPage:
    if not is_acceptable(status, content_type):
        raise StrategyError(f"{name}: HTTP {status}, content-type {content_type!r}")
    _, charset = parse_content_type(content_type)
    return FetchedPage(
        url=url,
        final_url=final_url,
        content=body,
        status_code=status,
        content_type=content_type,
        charset=charset,
        strategy=name,
    )


class RequestsSessionStrategy:
    """Full-featured fetch: browser-like headers, compression, redirects."""

    name = "requests-session"

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = headers or BROWSER_HEADERS

    def fetch(self, url: str) -> FetchedPage:
        with requests.Session() as session:
            session.headers.update(self.headers)
            session.max_redirects = FETCH_MAX_REDIRECTS
            try:
                response = session.get(
                    url, timeout=(FETCH_CONNECT_TIMEOUT, FETCH_READ_TIMEOUT), allow_redirects=True
                )
            except requests.RequestException as e:
                raise StrategyError(f"{self.name}: {e}") from e
            return _page_from(
                url, response.url, response.status_code, response.content,
                response.headers.get("Content-Type"), self.name,
            )


class RequestsMinimalStrategy:
    """Bare GET with only a user agent, for servers that reject browser headers."""

    name = "requests-minimal"

    def fetch(self, url: str) -> FetchedPage:
        try:
            response = requests.get(
                url, headers={"User-Agent": BOT_USER_AGENT}, timeout=FETCH_FALLBACK_TIMEOUT
            )
        except requests.RequestException as e:
            raise StrategyError(f"{self.name}: {e}") from e
        return _page_from(
            url, response.url, response.status_code, response.content,
            response.headers.get("Content-Type"), self.name,
        )


class HttpxStrategy:
    """Last resort through httpx, which negotiates TLS and HTTP differently."""

    name = "httpx"

    def fetch(self, url: str) -> FetchedPage:
        try:
            with httpx.Client(
                follow_redirects=True,
                max_redirects=FETCH_MAX_REDIRECTS,
                timeout=FETCH_HTTPX_TIMEOUT,
                headers={"User-Agent": BOT_USER_AGENT},
            ) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            raise StrategyError(f"{self.name}: {e}") from e
        return _page_from(
            url, str(response.url), response.status_code, response.content,
            response.headers.get("Content-Type"), self.name,
        )


class ContentFetcher:
    """Try each transport strategy in order until one returns usable content.

    Failures never raise: when every strategy fails, a FetchError listing
    each attempt is returned and the caller decides what to do.
    """

    def __init__(self, strategies: list[FetchStrategy] | None = None) -> None:
        self.strategies = strategies or [
            RequestsSessionStrategy(),
            RequestsMinimalStrategy(),
            HttpxStrategy(),
        ]

    def fetch(self, url: str) -> FetchedPage | FetchError:
        """Fetch a URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            FetchedPage on success, FetchError when all strategies failed
        """
        attempts: list[str] = []
        for strategy in self.strategies:
            try:
                page = strategy.fetch(url)
                logger.info(f"🌐 Fetched {url} via {strategy.name} ({len(page.content)} bytes)")
                return page
            except StrategyError as e:
                logger.debug(f"Fetch strategy failed: {e}")
                attempts.append(str(e))
            except Exception as e:
                logger.warning(f"⚠️ Unexpected error in {strategy.name} for {url}: {e}")
                attempts.append(f"{strategy.name}: {e}")

        logger.warning(f"⚠️ All fetch strategies failed for {url}")
        return FetchError(url=url, attempts=attempts)
