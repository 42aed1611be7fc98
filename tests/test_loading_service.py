import pytest

import ingestion.loaders as loaders
import ingestion.loading_service as loading_service
from ingestion.document_models import SourceDescriptor
from ingestion.loaders import DocumentLoader, UrlLoader, default_loaders, normalize_text
from ingestion.loading_service import (
    DocumentLoadingService,
    describe_source,
    filename_from_url,
    upload_name_for_url,
)


@pytest.fixture
def corpus(tmp_path):
    docs = tmp_path / "docs"
    (docs / "nested").mkdir(parents=True)
    (docs / "returns.txt").write_text("Returns within 30 days.")
    (docs / "nested" / "faq.md").write_text("# FAQ\n\n\n\nContact   support.")
    (docs / "page.html").write_text(
        "<html><head><script>var x=1;</script></head><body><p>Shipping is free.</p></body></html>"
    )
    (docs / "image.png").write_bytes(b"\x89PNG")
    return docs


def test_directory_walk_loads_supported_files(corpus):
    service = DocumentLoadingService([str(corpus)], default_loaders())

    docs = service.load_all_configured_documents()

    by_name = {d.metadata["original_filename"]: d for d in docs}
    assert set(by_name) == {"returns.txt", "faq.md", "page.html"}
    assert by_name["faq.md"].text == "# FAQ\n\nContact support."
    assert by_name["page.html"].text == "Shipping is free."
    assert by_name["returns.txt"].metadata["source_type"] == "file"


def test_uploads_directory_is_included(corpus, tmp_path):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (uploads / "new.txt").write_text("Uploaded policy.")

    service = DocumentLoadingService([str(corpus / "returns.txt")], default_loaders(), uploads)

    texts = [d.text for d in service.load_all_configured_documents()]
    assert texts == ["Returns within 30 days.", "Uploaded policy."]


def test_missing_paths_and_empty_sources_are_absorbed(tmp_path):
    service = DocumentLoadingService(
        [str(tmp_path / "nope"), "  "], default_loaders(), tmp_path / "no-uploads"
    )
    assert service.load_all_configured_documents() == []


def test_failing_loader_falls_through(corpus):
    class BrokenLoader(DocumentLoader):
        def supports(self, source):
            return True

        def load(self, source):
            raise OSError("unreadable")

    service = DocumentLoadingService(
        [str(corpus / "returns.txt")], [BrokenLoader()] + default_loaders()
    )
    assert [d.text for d in service.load_all_configured_documents()] == ["Returns within 30 days."]


def test_url_descriptors():
    (d,) = describe_source("https://example.com/policies/refunds.html")
    assert d == SourceDescriptor("url", "https://example.com/policies/refunds.html", "refunds.html")
    assert filename_from_url("https://example.com/").startswith("url_doc_")


def test_url_loader_parses_html(monkeypatch):
    class FakeResponse:
        content = b"<html><body><h1>Refunds</h1><style>p{}</style><p>30 days.</p></body></html>"
        headers = {"Content-Type": "text/html; charset=utf-8"}

    calls = []

    def fake_fetch(url, timeout, user_agent):
        calls.append((url, timeout, user_agent))
        return FakeResponse()

    monkeypatch.setattr(loaders, "fetch_url", fake_fetch)
    source = SourceDescriptor("url", "https://example.com/refunds", "refunds")

    (doc,) = UrlLoader(timeout=5, user_agent="test-agent").load(source)

    assert doc.text == "Refunds\n30 days."
    assert doc.metadata["source_type"] == "url"
    assert calls == [("https://example.com/refunds", 5, "test-agent")]


def test_normalize_text_collapses_whitespace():
    assert normalize_text("a  b\t\tc  \n\n\n\nd ") == "a b c\n\nd"


def test_save_url_writes_into_uploads(tmp_path, monkeypatch):
    class FakeResponse:
        content = b"<p>Refunds within 30 days.</p>"

    monkeypatch.setattr(loading_service, "fetch_url", lambda url, timeout, user_agent: FakeResponse())
    uploads = tmp_path / "uploads"
    missing = str(tmp_path / "docs")
    service = DocumentLoadingService([missing], default_loaders(), uploads)

    saved = service.save_url("https://example.com/policies/refunds")

    assert saved == uploads / "refunds.html"
    assert saved.read_bytes() == FakeResponse.content
    assert [d.text for d in service.load_all_configured_documents()] == ["Refunds within 30 days."]
    assert service.configured_sources() == [missing]


def test_save_url_rejects_bad_input(tmp_path):
    service = DocumentLoadingService([], default_loaders(), tmp_path / "uploads")
    with pytest.raises(ValueError, match="empty"):
        service.save_url("  ")
    with pytest.raises(ValueError, match="Invalid URL"):
        service.save_url("ftp://example.com/a.txt")
    with pytest.raises(ValueError, match="not configured"):
        DocumentLoadingService([], default_loaders()).save_url("https://example.com/a.pdf")


def test_upload_names_for_urls():
    assert upload_name_for_url("https://example.com/docs/guide.pdf") == "guide.pdf"
    assert upload_name_for_url("https://example.com/a b").endswith("a_b.html")
    assert upload_name_for_url("https://example.com/").startswith("webpage_")
