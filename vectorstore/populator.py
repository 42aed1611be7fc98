from __future__ import annotations

from typing import List, Sequence

from tenacity import RetryError, retry, stop_after_attempt, wait_exponential

from common.errors import VectorPopulationError
from common.logger import get_logger
from ingestion.document_models import NormalizedDocument
from vectorstore.base import VectorStore

log = get_logger(__name__)


class VectorPopulator:
    """
    Pushes a document set into the vector store. Never raises: a failed
    population is logged and the keyword side of a rebuild carries on.
    """

    def __init__(
        self,
        store: VectorStore,
        attempts: int = 3,
        wait_min: float = 1.0,
        wait_max: float = 8.0,
    ):
        self.store = store
        self._add_with_retry = retry(
            wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
            stop=stop_after_attempt(attempts),
        )(self._add)

    def _add(self, documents: List[NormalizedDocument]) -> int:
        return self.store.add(documents)

    def populate(self, documents: Sequence[NormalizedDocument]) -> bool:
        documents = list(documents or [])
        if not documents:
            log.warning("No documents for vector store %s", self.store.describe())
        try:
            added = self._add_with_retry(documents)
        except RetryError as e:
            err = VectorPopulationError(
                f"Vector store {self.store.describe()} rejected {len(documents)} document(s): "
                f"{e.last_attempt.exception()}"
            )
            log.error("%s. Keyword indexing will still proceed.", err)
            return False
        log.info("Vector store %s accepted %d document(s)", self.store.describe(), added)
        return True
