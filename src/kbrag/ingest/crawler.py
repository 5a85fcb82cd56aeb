"""Crawl scope rules and the breadth-first crawl frontier."""

import logging
from collections import deque
from urllib.parse import urlparse

from kbrag.constants import UNWANTED_EXTENSIONS, UNWANTED_PATHS

logger = logging.getLogger(__name__)


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def is_link_in_scope(link: str, scope_url: str, crawl_sibling: bool = False) -> bool:
    """Decide whether a discovered link belongs to the crawl.

    A link is in scope when it shares host and scheme with the scope URL and,
    for a non-root scope path, stays inside that path (or, with
    ``crawl_sibling``, beside it under the same parent). Links to files and
    administrative or asset paths are always rejected.

    Args:
        link: Absolute URL found on a page
        scope_url: URL that defines the crawl scope
        crawl_sibling: Also allow sibling paths of the scope path

    Returns:
        bool: True if the link should be queued
    """
    parsed = urlparse(link)
    scope = urlparse(scope_url)

    if parsed.scheme != scope.scheme or parsed.hostname != scope.hostname:
        return False

    path = parsed.path.lower()
    if path.endswith(UNWANTED_EXTENSIONS):
        return False
    if any(unwanted in path for unwanted in UNWANTED_PATHS):
        return False

    scope_segments = _segments(scope.path.lower())
    if not scope_segments:
        return True

    link_segments = _segments(path)
    if not link_segments or link_segments[0] != scope_segments[0]:
        return False

    # Exact page or anything below it
    if link_segments[: len(scope_segments)] == scope_segments:
        return True

    # Sibling under the same parent
    if crawl_sibling and len(scope_segments) >= 2:
        return link_segments[: len(scope_segments) - 1] == scope_segments[:-1]

    return False


class CrawlFrontier:
    """Breadth-first queue of (url, depth) pairs where each URL is visited once."""

    def __init__(self, start_url: str, max_pages: int) -> None:
        self.queue: deque[tuple[str, int]] = deque([(start_url, 0)])
        self.seen: set[str] = {start_url}
        self.processed: set[str] = set()
        self.max_pages = max_pages

    def __bool__(self) -> bool:
        return bool(self.queue) and len(self.processed) < self.max_pages

    def pop(self) -> tuple[str, int]:
        url, depth = self.queue.popleft()
        self.processed.add(url)
        return url, depth

    def push(self, url: str, depth: int) -> bool:
        if url in self.seen:
            return False
        self.seen.add(url)
        self.queue.append((url, depth))
        return True

    def percent_done(self) -> int:
        """Visited share of the known pages, capped by max_pages (0-100)."""
        total = min(self.max_pages, len(self.processed) + len(self.queue))
        if total <= 0:
            return 100
        return min(100, int(len(self.processed) * 100 / total))
