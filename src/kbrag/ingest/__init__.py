"""Ingestion components: encoding repair, fetching, extraction, chunking, crawling."""

from kbrag.ingest.chunker import TextChunker
from kbrag.ingest.crawler import is_link_in_scope
from kbrag.ingest.encoding import EncodingNormalizer, normalize_text
from kbrag.ingest.extractor import HtmlTextExtractor, extract_links
from kbrag.ingest.fetcher import ContentFetcher
from kbrag.ingest.pipeline import IngestionPipeline

__all__ = [
    "ContentFetcher",
    "EncodingNormalizer",
    "HtmlTextExtractor",
    "IngestionPipeline",
    "TextChunker",
    "extract_links",
    "is_link_in_scope",
    "normalize_text",
]
