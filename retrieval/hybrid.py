from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Iterable, List

from common.errors import RetrievalPathError, is_error_sentinel
from common.logger import get_logger
from retrieval.keyword_retriever import DocumentRetriever
from vectorstore.base import VectorStore

log = get_logger(__name__)


def fuse_contexts(*result_lists: Iterable[str]) -> List[str]:
    """Concatenate in order and drop exact-text duplicates, keeping first occurrences."""
    merged: dict = {}
    for results in result_lists:
        for text in results:
            merged.setdefault(text, None)
    return list(merged)


class HybridRetriever:
    """
    Runs keyword and semantic retrieval side by side and fuses the results.

    Each path is isolated: an exception or timeout in one is logged and
    treated as an empty result while the other path's results are kept.
    """

    def __init__(
        self,
        keyword_retriever: DocumentRetriever,
        vector_store: VectorStore,
        keyword_top_n: int = 2,
        semantic_top_k: int = 2,
        similarity_threshold: float = 0.0,
        path_timeout: float | None = 30.0,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.keyword_retriever = keyword_retriever
        self.vector_store = vector_store
        self.keyword_top_n = keyword_top_n
        self.semantic_top_k = semantic_top_k
        self.similarity_threshold = similarity_threshold
        self.path_timeout = path_timeout
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="hybrid-retrieval"
        )

    def keyword_results(self, query: str) -> List[str]:
        results = self.keyword_retriever.retrieve(query, self.keyword_top_n) or []
        kept = [r for r in results if r and not is_error_sentinel(r)]
        if len(kept) != len(results):
            log.warning(
                "Dropped %d error/empty keyword result(s) for %r",
                len(results) - len(kept),
                query,
            )
        return kept

    def semantic_results(self, query: str) -> List[str]:
        hits = self.vector_store.similarity_search(
            query, k=self.semantic_top_k, threshold=self.similarity_threshold
        )
        return [h.text for h in hits or [] if h.text and h.text.strip()]

    def _collect(self, name: str, future) -> List[str]:
        try:
            return future.result(timeout=self.path_timeout)
        except FutureTimeout:
            future.cancel()
            err = RetrievalPathError(f"{name} retrieval timed out after {self.path_timeout}s")
        except Exception as e:
            err = RetrievalPathError(f"{name} retrieval failed: {e}")
        log.error("%s. Continuing with the other path.", err)
        return []

    def retrieve(self, query: str) -> List[str]:
        if not query or not query.strip():
            return []
        keyword_future = self._executor.submit(self.keyword_results, query)
        semantic_future = self._executor.submit(self.semantic_results, query)

        keyword = self._collect("keyword", keyword_future)
        semantic = self._collect("semantic", semantic_future)

        fused = fuse_contexts(keyword, semantic)
        log.info(
            "Hybrid retrieval for %r: %d keyword + %d semantic -> %d fused",
            query,
            len(keyword),
            len(semantic),
            len(fused),
        )
        return fused

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
