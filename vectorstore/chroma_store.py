from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Dict, List, Sequence

from langchain_chroma.vectorstores import Chroma
from langchain_core.embeddings import Embeddings
from langchain_huggingface.embeddings import HuggingFaceEmbeddings

from common.logger import get_logger
from ingestion.document_models import NormalizedDocument
from vectorstore.base import DisabledVectorStore, SemanticHit, VectorStore

log = get_logger(__name__)


def vector_id(doc: NormalizedDocument) -> str:
    """Deterministic id so re-adding the same corpus overwrites instead of duplicating."""
    meta = doc.metadata or {}
    key = "|".join(
        [
            meta.get("source_path_or_url") or meta.get("original_filename") or "",
            str(meta.get("page_number") or ""),
            doc.text,
        ]
    )
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def _clean_metadata(meta: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only accepts scalar metadata values
    return {
        k: v
        for k, v in (meta or {}).items()
        if v is not None and isinstance(v, (str, int, float, bool))
    }


class ChromaVectorStore(VectorStore):
    def __init__(
        self,
        persist_dir: Path | str,
        collection_name: str,
        embeddings: Embeddings,
        batch_size: int = 64,
    ):
        """
        Chroma collection with a pluggable embedding function
        (HuggingFaceEmbeddings in production, see `load_vector_store`).
        """
        self.persist_dir = str(persist_dir)
        self.collection_name = collection_name
        self.batch_size = max(1, batch_size)
        self.embeddings = embeddings
        self._db = Chroma(
            collection_name=self.collection_name,
            embedding_function=self.embeddings,
            persist_directory=self.persist_dir,
        )

    @property
    def db(self) -> Chroma:
        return self._db

    def add(self, documents: Sequence[NormalizedDocument]) -> int:
        """
        Upsert documents. Blank texts and repeated ids within the batch are dropped.
        """
        texts: List[str] = []
        metadatas: List[Dict[str, Any]] = []
        ids: List[str] = []
        seen = set()

        for d in documents or []:
            if d is None or not d.text or not d.text.strip():
                continue
            vid = vector_id(d)
            if vid in seen:
                continue
            seen.add(vid)
            ids.append(vid)
            texts.append(d.text)
            metadatas.append(_clean_metadata(d.metadata))

        if not ids:
            log.info("No documents to add to collection '%s'", self.collection_name)
            return 0

        for start in range(0, len(ids), self.batch_size):
            end = start + self.batch_size
            self._db.add_texts(
                texts=texts[start:end], metadatas=metadatas[start:end], ids=ids[start:end]
            )
        log.info(
            "Upserted %d documents into collection '%s'", len(ids), self.collection_name
        )
        return len(ids)

    def similarity_search(
        self, query: str, k: int, threshold: float = 0.0
    ) -> List[SemanticHit]:
        kwargs: Dict[str, Any] = {}
        if 0.0 < threshold <= 1.0:
            kwargs["score_threshold"] = threshold
        results = self._db.similarity_search_with_relevance_scores(query, k=k, **kwargs)
        return [
            SemanticHit(text=doc.page_content, metadata=dict(doc.metadata or {}), score=score)
            for doc, score in results
        ]

    def delete(self, ids: Sequence[str]) -> bool:
        if not ids:
            return False
        self._db.delete(ids=list(ids))
        log.info("Deleted %d documents from '%s'", len(ids), self.collection_name)
        return True

    def describe(self) -> str:
        return f"chroma:{self.collection_name}@{self.persist_dir}"


def load_vector_store(cfg) -> VectorStore:
    """
    Build the configured vector store (`vectorstore` section of config.yaml).
    """
    if cfg.provider == "none":
        log.info("Vector store disabled by configuration")
        return DisabledVectorStore()

    embeddings = HuggingFaceEmbeddings(model_name=cfg.embedding_model)
    return ChromaVectorStore(
        persist_dir=cfg.persist_dir,
        collection_name=cfg.collection,
        embeddings=embeddings,
        batch_size=cfg.batch_size,
    )
