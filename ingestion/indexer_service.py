from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional, Sequence

import orjson

from common.errors import RebuildInProgressError
from common.logger import get_logger
from ingestion.document_models import NormalizedDocument
from ingestion.loading_service import DocumentLoadingService
from ingestion.stager import CorpusStager
from retrieval.keyword_index import KeywordIndexBuilder
from vectorstore.populator import VectorPopulator

log = get_logger(__name__)


class IndexerService:
    """
    Coordinates a full rebuild: load -> vector store -> stage -> keyword index.

    Only one rebuild runs at a time; a concurrent request gets
    RebuildInProgressError instead of waiting. Vector failures are absorbed,
    staging and keyword build failures propagate to the caller.
    """

    def __init__(
        self,
        loading_service: Optional[DocumentLoadingService],
        stager: CorpusStager,
        index_builder: KeywordIndexBuilder,
        populator: VectorPopulator,
        manifest_dir: Path | str | None = None,
    ):
        self.loading_service = loading_service
        self.stager = stager
        self.index_builder = index_builder
        self.populator = populator
        self.manifest_dir = Path(manifest_dir) if manifest_dir else None
        self._rebuild_lock = threading.Lock()

    @property
    def rebuild_in_progress(self) -> bool:
        return self._rebuild_lock.locked()

    def _load(self) -> List[NormalizedDocument]:
        if self.loading_service is None:
            log.warning("No loading service configured, indexing an empty corpus")
            return []
        try:
            return list(self.loading_service.load_all_configured_documents() or [])
        except Exception as e:
            log.error("Loading sources failed, treating corpus as empty: %s", e, exc_info=True)
            return []

    def reprocess_all_sources(self) -> int:
        """Reload every configured source and rebuild both indexes. Returns the staged count."""
        if not self._rebuild_lock.acquire(blocking=False):
            raise RebuildInProgressError("A rebuild is already in progress")
        try:
            log.info("Full re-processing of all sources triggered")
            documents = self._load()
            if not documents:
                log.warning("No documents loaded, indexes will be empty")
            return self._index(documents)
        finally:
            self._rebuild_lock.release()

    def index_documents(self, documents: Sequence[NormalizedDocument]) -> int:
        """Rebuild both indexes from an explicit document list."""
        if not self._rebuild_lock.acquire(blocking=False):
            raise RebuildInProgressError("A rebuild is already in progress")
        try:
            return self._index(list(documents or []))
        finally:
            self._rebuild_lock.release()

    def _index(self, documents: List[NormalizedDocument]) -> int:
        self.populator.populate(documents)
        staged = self.stager.stage(documents)
        self.index_builder.build(staged, self.stager.staging_path)
        self._write_manifest()
        log.info("Rebuild complete: %d record(s) in keyword index", staged)
        return staged

    def _write_manifest(self) -> None:
        if self.manifest_dir is None:
            return
        manifest = self.stager.last_manifest
        out = self.manifest_dir / "manifest_keyword.json"
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(orjson.dumps(manifest, option=orjson.OPT_INDENT_2))
        except OSError as e:
            log.warning("Could not write manifest %s: %s", out, e)
            return
        log.info("Wrote manifest to %s", out)

    def is_index_available(self) -> bool:
        return self.index_builder.is_available()

    def ensure_index(self) -> bool:
        """Startup hook: build the keyword index if it cannot be opened."""
        if self.is_index_available():
            log.info("Keyword index available, initial indexing skipped")
            return True
        log.info("Keyword index not available, triggering full re-processing")
        try:
            self.reprocess_all_sources()
        except Exception as e:
            log.error("Initial indexing failed: %s", e, exc_info=True)
        return self.is_index_available()
