from __future__ import annotations

from typing import Any, Dict, List, Optional

from common.errors import is_error_sentinel
from common.logger import get_logger
from retrieval.keyword_retriever import DocumentRetriever

log = get_logger(__name__)

MAX_TOOL_RESULTS = 10


class RagTool:
    """`rag_query`: keyword lookup over the corpus, callable by the model."""

    def __init__(self, retriever: DocumentRetriever, default_results: int = 3):
        self.retriever = retriever
        self.default_results = default_results

    def _limit(self, max_results: Optional[int]) -> int:
        if max_results is not None and 0 < max_results <= MAX_TOOL_RESULTS:
            return max_results
        return self.default_results

    def rag_query(self, query: str, max_results: Optional[int] = None) -> Dict[str, Any]:
        if not query or not query.strip():
            log.warning("rag_query called with an empty query")
            return {"query": query, "error": "Query cannot be empty.", "retrieved_documents": []}

        limit = self._limit(max_results)
        try:
            docs: List[str] = self.retriever.retrieve(query, limit)
        except Exception as e:
            log.error("rag_query failed for %r: %s", query, e, exc_info=True)
            return {
                "query": query,
                "error": f"Failed during document retrieval: {e}",
                "retrieved_documents": [],
            }

        if not docs or (len(docs) == 1 and is_error_sentinel(docs[0])):
            log.warning("rag_query found nothing usable for %r", query)
            return {
                "query": query,
                "status": "No relevant documents found or error in retrieval.",
                "retrieved_documents": docs,
            }
        return {
            "query": query,
            "status": "Successfully retrieved documents.",
            "retrieved_documents": docs,
        }
