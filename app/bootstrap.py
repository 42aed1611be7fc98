"""Wires every service from config/config.yaml. One instance per process."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from chains.rag_service import RagService, build_rag_service
from common.config import GlobalYAMLConfig, secrets, yaml_config
from common.logger import get_logger, set_level
from ingestion.indexer_service import IndexerService
from ingestion.loaders import default_loaders
from ingestion.loading_service import DocumentLoadingService
from ingestion.stager import CorpusStager
from models.llm import LanguageModel, load_language_model
from retrieval.hybrid import HybridRetriever
from retrieval.retriever_factory import (
    build_index_builder,
    build_keyword_retriever,
    build_retriever,
)
from tools.filesystem_tool import FilesystemTool
from tools.rag_tool import RagTool
from tools.registry import ToolRegistry
from vectorstore.base import VectorStore
from vectorstore.chroma_store import load_vector_store
from vectorstore.populator import VectorPopulator

log = get_logger(__name__)


@dataclass
class Services:
    config: GlobalYAMLConfig
    vector_store: VectorStore
    indexer: IndexerService
    retriever: HybridRetriever
    tools: ToolRegistry
    language_model: LanguageModel
    rag: RagService


def build_services(
    config: GlobalYAMLConfig | None = None,
    vector_store: VectorStore | None = None,
    language_model: LanguageModel | None = None,
) -> Services:
    cfg = config or yaml_config
    set_level(cfg.logging.level)

    store = vector_store or load_vector_store(cfg.vectorstore)

    builder = build_index_builder(cfg.keyword_index)
    keyword = build_keyword_retriever(builder, enabled=cfg.keyword_index.enabled)
    retriever = build_retriever(keyword, store, cfg.retrieval)

    loading = DocumentLoadingService(
        sources=cfg.sources.paths,
        loaders=default_loaders(
            timeout=cfg.app.timeout,
            user_agent=cfg.app.user_agent,
            max_pages=cfg.sources.max_pdf_pages,
        ),
        uploads_path=cfg.sources.uploads_path,
        timeout=cfg.app.timeout,
        user_agent=cfg.app.user_agent,
    )
    indexer = IndexerService(
        loading_service=loading,
        stager=CorpusStager(cfg.keyword_index.staging_path),
        index_builder=builder,
        populator=VectorPopulator(store),
        manifest_dir=cfg.app.cache_dir,
    )

    registry = ToolRegistry(
        rag_tool=RagTool(keyword, default_results=cfg.tools.rag_default_results),
        filesystem_tool=FilesystemTool(cfg.tools.filesystem_roots),
    )
    llm = language_model or load_language_model(
        cfg.llm, registry=registry, base_url=secrets.ollama_base_url
    )

    log.info(
        "Services ready: vector store=%s, llm provider=%s, index=%s",
        store.describe(),
        cfg.llm.provider,
        cfg.keyword_index.index_path,
    )
    return Services(
        config=cfg,
        vector_store=store,
        indexer=indexer,
        retriever=retriever,
        tools=registry,
        language_model=llm,
        rag=build_rag_service(retriever, llm),
    )


_services: Optional[Services] = None
_services_lock = threading.Lock()


def get_services(ensure_index: bool | None = None) -> Services:
    """
    Process-wide services. On first use the keyword index is built if it is
    missing (keyword_index.build_on_startup).
    """
    global _services
    with _services_lock:
        if _services is None:
            _services = build_services()
            if ensure_index is None:
                ensure_index = _services.config.keyword_index.build_on_startup
            if ensure_index:
                _services.indexer.ensure_index()
        return _services
