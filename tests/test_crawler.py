"""Tests for crawl scope rules and the crawl frontier."""

from kbrag.ingest.crawler import CrawlFrontier, is_link_in_scope


class TestIsLinkInScope:
    """Tests for is_link_in_scope."""

    def test_root_scope_accepts_same_host(self):
        """Test that a root scope accepts any page on the host."""
        assert is_link_in_scope("https://example.az/fiqh/namaz", "https://example.az/")

    def test_rejects_other_host_and_scheme(self):
        """Test that host and scheme must match."""
        assert not is_link_in_scope("https://other.az/fiqh", "https://example.az/")
        assert not is_link_in_scope("http://example.az/fiqh", "https://example.az/")

    def test_rejects_files_and_asset_paths(self):
        """Test that documents, images and admin paths are excluded."""
        assert not is_link_in_scope("https://example.az/kitab.pdf", "https://example.az/")
        assert not is_link_in_scope("https://example.az/photo.JPG", "https://example.az/")
        assert not is_link_in_scope("https://example.az/wp-admin/edit", "https://example.az/")
        assert not is_link_in_scope("https://example.az/static/app", "https://example.az/")

    def test_path_scope(self):
        """Test that a path scope keeps the crawl below that path."""
        scope = "https://example.az/fiqh/ibadet"
        assert is_link_in_scope("https://example.az/fiqh/ibadet/namaz", scope)
        assert is_link_in_scope("https://example.az/fiqh/ibadet", scope)
        assert not is_link_in_scope("https://example.az/fiqh/muamilat", scope)
        assert not is_link_in_scope("https://example.az/xeberler/1", scope)

    def test_sibling_crawling(self):
        """Test that crawl_sibling admits paths beside the scope."""
        scope = "https://example.az/fiqh/ibadet"
        assert is_link_in_scope("https://example.az/fiqh/muamilat", scope, crawl_sibling=True)
        assert not is_link_in_scope("https://example.az/xeberler/1", scope, crawl_sibling=True)


class TestCrawlFrontier:
    """Tests for CrawlFrontier."""

    def test_breadth_first_and_deduplicated(self):
        """Test FIFO order and that URLs are queued once."""
        frontier = CrawlFrontier("https://example.az/", max_pages=10)
        assert frontier.pop() == ("https://example.az/", 0)

        assert frontier.push("https://example.az/a", 1)
        assert frontier.push("https://example.az/b", 1)
        assert not frontier.push("https://example.az/a", 1)
        assert not frontier.push("https://example.az/", 1)

        assert frontier.pop() == ("https://example.az/a", 1)
        assert frontier.pop() == ("https://example.az/b", 1)
        assert not frontier

    def test_stops_at_max_pages(self):
        """Test that the frontier reports empty once max_pages were visited."""
        frontier = CrawlFrontier("https://example.az/", max_pages=1)
        frontier.pop()
        frontier.push("https://example.az/a", 1)
        assert not frontier

    def test_percent_done(self):
        """Test progress percentages."""
        frontier = CrawlFrontier("https://example.az/", max_pages=10)
        frontier.pop()
        frontier.push("https://example.az/a", 1)
        assert frontier.percent_done() == 50
        frontier.pop()
        assert frontier.percent_done() == 100
