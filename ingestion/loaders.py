from __future__ import annotations

import re
import unicodedata
from io import BytesIO
from pathlib import Path
from typing import List

import requests
from bs4 import BeautifulSoup
from pypdf import PdfReader
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from common.logger import get_logger
from ingestion.document_models import NormalizedDocument, SourceDescriptor

log = get_logger(__name__)

TEXT_EXTS = (".txt", ".md")
HTML_EXTS = (".html", ".htm")
PDF_EXTS = (".pdf",)
SUPPORTED_EXTS = TEXT_EXTS + HTML_EXTS + PDF_EXTS


def normalize_text(s: str) -> str:
    s = unicodedata.normalize("NFKC", s)
    s = s.replace("\u00a0", " ")
    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"[ \t]+\n", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def _base_metadata(source: SourceDescriptor) -> dict:
    return {
        "source_path_or_url": source.path_or_url,
        "original_filename": source.original_filename,
        "source_type": source.type,
    }


class DocumentLoader:
    """A loader turns one source into zero or more NormalizedDocuments."""

    def supports(self, source: SourceDescriptor) -> bool:
        raise NotImplementedError

    def load(self, source: SourceDescriptor) -> List[NormalizedDocument]:
        raise NotImplementedError


class PdfLoader(DocumentLoader):
    """One document per non-blank page, carrying `page_number`."""

    def __init__(self, max_pages: int | None = None):
        self.max_pages = max_pages

    def supports(self, source: SourceDescriptor) -> bool:
        return source.type == "file" and source.path_or_url.lower().endswith(PDF_EXTS)

    def load(self, source: SourceDescriptor) -> List[NormalizedDocument]:
        reader = PdfReader(source.path_or_url)
        return _pdf_pages(reader, source, self.max_pages)


def _pdf_pages(
    reader: PdfReader, source: SourceDescriptor, max_pages: int | None
) -> List[NormalizedDocument]:
    pages = reader.pages
    limit = max_pages or len(pages)
    docs: List[NormalizedDocument] = []
    for i, page in enumerate(pages[:limit]):
        cleaned = normalize_text(page.extract_text() or "")
        if not cleaned:
            continue
        meta = _base_metadata(source) | {"page_number": str(i + 1)}
        docs.append(NormalizedDocument(text=cleaned, metadata=meta))
    return docs


class TextLoader(DocumentLoader):
    def supports(self, source: SourceDescriptor) -> bool:
        return source.type == "file" and source.path_or_url.lower().endswith(TEXT_EXTS)

    def load(self, source: SourceDescriptor) -> List[NormalizedDocument]:
        txt = Path(source.path_or_url).read_text(encoding="utf-8", errors="ignore")
        return [NormalizedDocument(text=normalize_text(txt), metadata=_base_metadata(source))]


class HtmlLoader(DocumentLoader):
    def supports(self, source: SourceDescriptor) -> bool:
        return source.type == "file" and source.path_or_url.lower().endswith(HTML_EXTS)

    def load(self, source: SourceDescriptor) -> List[NormalizedDocument]:
        html = Path(source.path_or_url).read_text(encoding="utf-8", errors="ignore")
        text = normalize_text(_extract_html_text(html))
        return [NormalizedDocument(text=text, metadata=_base_metadata(source))]


@retry(
    retry=retry_if_exception_type(requests.RequestException),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
def fetch_url(url: str, timeout: int, user_agent: str) -> requests.Response:
    """Download URL with retry logic."""
    resp = requests.get(url, timeout=timeout, headers={"User-Agent": user_agent})
    resp.raise_for_status()
    return resp


class UrlLoader(DocumentLoader):
    """Fetches http(s) sources; PDFs are split per page, everything else is parsed as HTML."""

    def __init__(
        self,
        timeout: int = 10,
        user_agent: str = "Hybrid-RAG/1.0",
        max_pages: int | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_pages = max_pages

    def supports(self, source: SourceDescriptor) -> bool:
        return source.type == "url"

    def load(self, source: SourceDescriptor) -> List[NormalizedDocument]:
        url = source.path_or_url
        resp = fetch_url(url, self.timeout, self.user_agent)
        content = resp.content
        content_type = resp.headers.get("Content-Type", "")

        if url.lower().endswith(".pdf") or content_type.startswith("application/pdf"):
            return _pdf_pages(PdfReader(BytesIO(content)), source, self.max_pages)

        text = normalize_text(_extract_html_text(content.decode("utf-8", errors="ignore")))
        if not text:
            log.warning("No text extracted from %s", url)
            return []
        return [NormalizedDocument(text=text, metadata=_base_metadata(source))]


def _extract_html_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    return "\n".join(t.strip() for t in soup.get_text("\n").splitlines() if t.strip())


def default_loaders(
    timeout: int = 10, user_agent: str = "Hybrid-RAG/1.0", max_pages: int | None = None
) -> List[DocumentLoader]:
    return [
        PdfLoader(max_pages=max_pages),
        TextLoader(),
        HtmlLoader(),
        UrlLoader(timeout=timeout, user_agent=user_agent, max_pages=max_pages),
    ]
