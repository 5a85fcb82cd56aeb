"""Tests for the kbrag package structure."""


def test_package_imports():
    """Test that main package can be imported."""
    import kbrag
    assert kbrag.__version__ == "0.1.0"


def test_ingest_subpackage():
    """Test that the ingestion subpackage exposes the pipeline."""
    from kbrag.ingest import IngestionPipeline
    assert IngestionPipeline is not None


def test_query_subpackage():
    """Test that the query subpackage exists."""
    import kbrag.query
    assert kbrag.query is not None


def test_service_subpackage():
    """Test that service subpackage exists."""
    import kbrag.service
    assert kbrag.service is not None


def test_client_subpackage():
    """Test that client subpackage exists."""
    import kbrag.client
    assert kbrag.client is not None
