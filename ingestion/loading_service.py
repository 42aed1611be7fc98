from __future__ import annotations

import re
import uuid
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Sequence
from urllib.parse import urlparse

from tqdm import tqdm

from common.logger import get_logger
from ingestion.document_models import NormalizedDocument, SourceDescriptor
from ingestion.loaders import DocumentLoader, fetch_url

log = get_logger(__name__)


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def filename_from_url(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or f"url_doc_{uuid.uuid4().hex[:8]}"


def upload_name_for_url(url: str) -> str:
    """File name for saved URL content; pages without an extension become .html."""
    name = PurePosixPath(urlparse(url).path).name
    if not name:
        name = f"webpage_{uuid.uuid4().hex[:8]}"
    if not re.search(r"\.[A-Za-z0-9]{1,5}$", name):
        name += ".html"
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).lstrip(".")
    return name or f"url_doc_{uuid.uuid4().hex[:8]}.html"


def describe_source(source: str) -> List[SourceDescriptor]:
    """
    Expand one configured source string into descriptors.
    URLs map to a single descriptor, directories are walked recursively.
    """
    source = (source or "").strip()
    if not source:
        return []
    if _is_url(source):
        return [SourceDescriptor("url", source, filename_from_url(source))]

    path = Path(source).absolute()
    if not path.exists():
        log.warning("Source path does not exist: %s", path)
        return []
    if path.is_dir():
        return [
            SourceDescriptor("file", str(p), p.name)
            for p in sorted(path.rglob("*"))
            if p.is_file()
        ]
    if path.is_file():
        return [SourceDescriptor("file", str(path), path.name)]
    log.warning("Path exists but is not a regular file or directory: %s", path)
    return []


class DocumentLoadingService:
    """
    Turns the configured sources (plus the uploads directory) into NormalizedDocuments.
    A failing source is logged and skipped; it never aborts the whole load.
    """

    def __init__(
        self,
        sources: Sequence[str],
        loaders: Iterable[DocumentLoader],
        uploads_path: Path | str | None = None,
        timeout: int = 10,
        user_agent: str = "Hybrid-RAG/1.0",
    ):
        self.sources = list(sources or [])
        self.loaders = list(loaders)
        self.uploads_path = Path(uploads_path) if uploads_path else None
        self.timeout = timeout
        self.user_agent = user_agent
        if not self.loaders:
            log.warning("DocumentLoadingService has no loaders configured")

    def configured_sources(self) -> List[str]:
        return list(self.sources)

    def save_url(self, url: str) -> Path:
        """
        Fetch a URL into the uploads directory so the next rebuild picks it up.
        Raises ValueError for a bad URL or missing uploads path; fetch errors propagate.
        """
        url = (url or "").strip()
        if not url:
            raise ValueError("URL cannot be empty.")
        if not _is_url(url) or not urlparse(url).netloc:
            raise ValueError(f"Invalid URL: {url}")
        if self.uploads_path is None:
            raise ValueError("Uploads directory is not configured.")

        self.uploads_path.mkdir(parents=True, exist_ok=True)
        dest = self.uploads_path / upload_name_for_url(url)
        log.info("Fetching content from URL: %s", url)
        resp = fetch_url(url, self.timeout, self.user_agent)
        dest.write_bytes(resp.content)
        log.info("Content from URL %s saved to %s", url, dest)
        return dest

    def descriptors(self) -> List[SourceDescriptor]:
        out: List[SourceDescriptor] = []
        for s in self.sources:
            out.extend(describe_source(s))
        if self.uploads_path is not None:
            if self.uploads_path.is_dir():
                out.extend(describe_source(str(self.uploads_path)))
            else:
                log.info("Uploads path %s does not exist yet, skipping", self.uploads_path)
        return out

    def load_source(self, descriptor: SourceDescriptor) -> List[NormalizedDocument]:
        for loader in self.loaders:
            if not loader.supports(descriptor):
                continue
            try:
                docs = loader.load(descriptor)
            except Exception as e:
                log.error(
                    "%s failed for %s: %s",
                    type(loader).__name__,
                    descriptor.path_or_url,
                    e,
                )
                continue
            log.info(
                "%s loaded %d document(s) from %s",
                type(loader).__name__,
                len(docs),
                descriptor.path_or_url,
            )
            return docs
        log.warning("No loader processed source: %s", descriptor.path_or_url)
        return []

    def load_all_configured_documents(self) -> List[NormalizedDocument]:
        descriptors = self.descriptors()
        if not descriptors:
            log.warning("No sources to load.")
            return []
        log.info("Loading %d source(s)", len(descriptors))

        documents: List[NormalizedDocument] = []
        for d in tqdm(descriptors, desc="Loading sources"):
            documents.extend(self.load_source(d))
        log.info("Loaded %d document(s) in total", len(documents))
        return documents
