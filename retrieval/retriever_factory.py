from __future__ import annotations

from common.config import KeywordIndexConfig, RetrievalConfig
from common.logger import get_logger
from retrieval.hybrid import HybridRetriever
from retrieval.keyword_index import KeywordIndexBuilder
from retrieval.keyword_retriever import (
    Bm25DocumentRetriever,
    DisabledDocumentRetriever,
    DocumentRetriever,
)
from vectorstore.base import VectorStore

log = get_logger(__name__)


def build_index_builder(cfg: KeywordIndexConfig) -> KeywordIndexBuilder:
    return KeywordIndexBuilder(
        index_path=cfg.index_path,
        threads=cfg.threads,
        build_timeout=cfg.build_timeout,
    )


def build_keyword_retriever(
    builder: KeywordIndexBuilder, enabled: bool = True
) -> DocumentRetriever:
    if not enabled:
        log.info("Keyword retrieval disabled by configuration")
        return DisabledDocumentRetriever()
    return Bm25DocumentRetriever(builder)


def build_retriever(
    keyword_retriever: DocumentRetriever,
    vector_store: VectorStore,
    cfg: RetrievalConfig,
) -> HybridRetriever:
    """
    Hybrid retriever with keyword top-N, semantic top-K and threshold from config.
    """
    log.info(
        "Built hybrid retriever keyword_top_n=%d semantic_top_k=%d threshold=%.2f store=%s",
        cfg.keyword_top_n,
        cfg.semantic_top_k,
        cfg.similarity_threshold,
        vector_store.describe(),
    )
    return HybridRetriever(
        keyword_retriever=keyword_retriever,
        vector_store=vector_store,
        keyword_top_n=cfg.keyword_top_n,
        semantic_top_k=cfg.semantic_top_k,
        similarity_threshold=cfg.similarity_threshold,
        path_timeout=cfg.path_timeout,
    )
