from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional

from common.errors import error_sentinel
from common.logger import get_logger
from retrieval.keyword_index import (
    KeywordIndexBuilder,
    KeywordIndexHandle,
    tokenize,
)

log = get_logger(__name__)

INDEX_UNAVAILABLE = error_sentinel(
    "Searcher not initialized or keyword index is missing/corrupt."
)


@dataclass(frozen=True)
class KeywordHit:
    doc_id: str
    score: float
    raw_text: Optional[str]
    fallback_text: Optional[str]

    def text(self) -> str:
        if self.raw_text:
            return self.raw_text
        if self.fallback_text:
            return self.fallback_text
        return f"[content unavailable for doc {self.doc_id}]"


class KeywordSearcher:
    """Runs BM25 queries against one opened index generation."""

    def __init__(self, handle: KeywordIndexHandle):
        self.handle = handle

    @property
    def build_id(self) -> str:
        return self.handle.build_id

    def search(self, query: str, top_n: int) -> List[KeywordHit]:
        engine = self.handle.engine
        if engine is None or self.handle.doc_count == 0 or top_n <= 0:
            return []

        vocab = engine.vocab_dict or {}
        query_tokens = [t for t in tokenize(query) if t in vocab]
        if not query_tokens:
            return []

        k = min(top_n, self.handle.doc_count)  # bm25s requires k <= corpus size
        docs, scores = engine.retrieve(
            [query_tokens], k=k, show_progress=False
        )

        hits: List[KeywordHit] = []
        for doc, score in zip(docs[0], scores[0]):
            if float(score) <= 0.0:
                continue
            record = doc if isinstance(doc, dict) else {"id": str(doc)}
            hits.append(
                KeywordHit(
                    doc_id=str(record.get("id", "")),
                    score=float(score),
                    raw_text=record.get("raw"),
                    fallback_text=record.get("contents"),
                )
            )
        return hits


class DocumentRetriever:
    def retrieve(self, query: str, max_results: int) -> List[str]:
        raise NotImplementedError


class DisabledDocumentRetriever(DocumentRetriever):
    def retrieve(self, query: str, max_results: int) -> List[str]:
        log.warning("Keyword retriever is not configured, returning no documents")
        return []


class Bm25DocumentRetriever(DocumentRetriever):
    """
    Keyword retrieval over the index maintained by a KeywordIndexBuilder.

    Failures come back as a single "Error: ..." string instead of an exception;
    callers that fuse contexts must filter those out.
    The index is reopened whenever a rebuild changes its generation.
    """

    def __init__(self, builder: KeywordIndexBuilder):
        self.builder = builder
        self._searcher: KeywordSearcher | None = None
        self._lock = threading.Lock()

    def _current_searcher(self) -> KeywordSearcher | None:
        generation = self.builder.generation()
        with self._lock:
            if generation is None:
                self._searcher = None
                return None
            if self._searcher is None or self._searcher.build_id != generation:
                result = self.builder.try_open()
                if not result.ok:
                    log.warning("Cannot open keyword index: %s", result.reason)
                    self._searcher = None
                    return None
                self._searcher = KeywordSearcher(result.handle)
                log.info(
                    "Opened keyword index generation %s (%d document(s))",
                    result.handle.build_id,
                    result.handle.doc_count,
                )
            return self._searcher

    def retrieve(self, query: str, max_results: int) -> List[str]:
        if not query or not query.strip():
            return []
        searcher = self._current_searcher()
        if searcher is None:
            return [INDEX_UNAVAILABLE]
        try:
            hits = searcher.search(query, max_results)
        except Exception as e:
            log.error("Keyword search failed for %r: %s", query, e, exc_info=True)
            return [error_sentinel(f"keyword search failed: {e}")]
        log.info("Keyword search returned %d hit(s) for %r", len(hits), query)
        return [h.text() for h in hits]
