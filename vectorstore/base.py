from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from common.logger import get_logger
from ingestion.document_models import NormalizedDocument

log = get_logger(__name__)


@dataclass(frozen=True)
class SemanticHit:
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    score: float | None = None


class VectorStore:
    """Narrow interface the core uses for dense retrieval."""

    def add(self, documents: Sequence[NormalizedDocument]) -> int:
        raise NotImplementedError

    def similarity_search(
        self, query: str, k: int, threshold: float = 0.0
    ) -> List[SemanticHit]:
        raise NotImplementedError

    def delete(self, ids: Sequence[str]) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


class DisabledVectorStore(VectorStore):
    """Stand-in when no vector store is configured. Performs no I/O."""

    def add(self, documents: Sequence[NormalizedDocument]) -> int:
        log.info(
            "Vector store not configured, ignoring %d document(s)",
            len(documents or []),
        )
        return 0

    def similarity_search(
        self, query: str, k: int, threshold: float = 0.0
    ) -> List[SemanticHit]:
        log.debug("Vector store not configured, no semantic results for %r", query)
        return []

    def delete(self, ids: Sequence[str]) -> bool:
        return False

    def describe(self) -> str:
        return "disabled"
