"""Tests for HTML text extraction."""

from kbrag.ingest.extractor import HtmlTextExtractor, clean_lines, clean_title, extract_links


class TestHtmlTextExtractor:
    """Tests for HtmlTextExtractor.extract."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = HtmlTextExtractor()

    def test_extracts_article_without_chrome(self, sample_html):
        """Test that navigation, scripts and footers are removed."""
        result = self.extractor.extract(sample_html, "https://www.example.az/destemaz")

        assert "Dəstəmaz namazdan əvvəl alınır." in result.content
        assert "Ana səhifə" not in result.content
        assert "tracking" not in result.content
        assert "2024" not in result.content

    def test_title_drops_site_suffix(self, sample_html):
        """Test that the site name is stripped from the title."""
        result = self.extractor.extract(sample_html, "https://example.az/destemaz")
        assert result.title == "Dəstəmaz qaydaları"

    def test_metadata(self, sample_html):
        """Test best-effort metadata extraction."""
        result = self.extractor.extract(sample_html, "https://www.example.az/destemaz")

        assert result.metadata["host"] == "example.az"
        assert result.metadata["language"] == "az"
        assert result.metadata["description"] == "Dəstəmaz qaydaları haqqında"
        assert "extracted_at" in result.metadata

    def test_prefers_main_content_container(self):
        """Test that a content container wins over surrounding body text."""
        body = "Namazın vaxtları haqqında ətraflı məlumat. " * 5
        html = f"""<html><body>
            <div class="promo">Endirimlər yalnız bu həftə!</div>
            <div class="entry-content"><p>{body}</p></div>
        </body></html>"""

        result = self.extractor.extract(html, "https://example.az/namaz")

        assert "Namazın vaxtları" in result.content
        assert "Endirimlər" not in result.content

    def test_removes_cookie_banner_and_menu(self):
        """Test class-based boilerplate removal."""
        html = """<html><body>
            <div class="cookie-consent">Bu sayt kukilərdən istifadə edir.</div>
            <ul id="menu-main"><li>Xəbərlər</li></ul>
            <p>Oruc Ramazan ayında tutulur.</p>
        </body></html>"""

        result = self.extractor.extract(html)

        assert "Oruc Ramazan ayında tutulur." in result.content
        assert "kukilər" not in result.content
        assert "Xəbərlər" not in result.content

    def test_block_elements_become_lines(self):
        """Test that paragraphs are separated by line breaks."""
        html = "<html><body><p>Birinci abzas.</p><p>İkinci abzas.</p></body></html>"
        result = self.extractor.extract(html)
        assert result.content == "Birinci abzas.\nİkinci abzas."

    def test_title_falls_back_to_h1(self):
        """Test the h1 title fallback."""
        html = "<html><body><h1>Zəkat hökmləri</h1><p>Mətn.</p></body></html>"
        assert self.extractor.extract(html).title == "Zəkat hökmləri"

    def test_title_falls_back_to_host(self):
        """Test the final title fallback."""
        html = "<html><body><p>Mətn.</p></body></html>"
        result = self.extractor.extract(html, "https://www.example.az/x")
        assert result.title == "Imported content - example.az"


class TestCleaning:
    """Tests for title and line cleaning helpers."""

    def test_clean_title_keeps_longer_head(self):
        """Test that a short site name suffix is removed."""
        assert clean_title("Qüsl qaydaları və şərtləri - Site") == "Qüsl qaydaları və şərtləri"

    def test_clean_title_keeps_short_head(self):
        """Test that a head shorter than the tail is kept intact."""
        assert clean_title("Ana - Uzun sayt adı burada") == "Ana - Uzun sayt adı burada"

    def test_clean_lines_drops_short_arabic_lines(self):
        """Test that short Arabic-only navigation lines are removed."""
        text = "بسم الله\nDəstəmaz haqqında.\n\n   \nSon."
        assert clean_lines(text) == "Dəstəmaz haqqında.\nSon."

    def test_clean_lines_drops_language_bar(self):
        """Test that a language switcher line is removed."""
        text = "English Azərbaycan Türkçe Français Русский\nMətn."
        assert clean_lines(text) == "Mətn."


class TestExtractLinks:
    """Tests for link discovery."""

    def test_same_host_resolved_and_deduplicated(self):
        """Test that links are resolved, filtered and de-duplicated."""
        html = """
            <a href="/fiqh/namaz">Namaz</a>
            <a href="/fiqh/namaz#vaxt">Namaz vaxtı</a>
            <a href="https://example.az/fiqh/oruc">Oruc</a>
            <a href="https://other.az/x">Başqa sayt</a>
            <a href="mailto:info@example.az">Poçt</a>
            <a href="javascript:void(0)">JS</a>
            <a href="#top">Yuxarı</a>
        """

        links = extract_links(html, "https://example.az/fiqh/")

        assert links == ["https://example.az/fiqh/namaz", "https://example.az/fiqh/oruc"]
