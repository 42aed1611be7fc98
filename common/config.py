from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


class AppConfig(BaseModel):
    name: str = "hybrid-rag"
    cache_dir: Path = Path("data/cache")
    timeout: int = 10
    user_agent: str = "Hybrid-RAG/1.0"


class SourcesConfig(BaseModel):
    paths: List[str] = Field(default_factory=list)
    uploads_path: Path = Path("data/uploads")
    max_pdf_pages: int | None = None


class KeywordIndexConfig(BaseModel):
    enabled: bool = True
    index_path: Path = Path("data/keyword_index")
    staging_path: Path = Path("data/keyword_staging")
    build_on_startup: bool = True
    build_timeout: float | None = 600.0
    threads: int | None = None


class VectorStoreConfig(BaseModel):
    provider: str = Field(default="chroma", pattern="^(chroma|none)$")
    persist_dir: Path = Path("data/chroma")
    collection: str = "documents"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    batch_size: int = 64


class RetrievalConfig(BaseModel):
    keyword_top_n: int = Field(default=2, ge=1)
    semantic_top_k: int = Field(default=2, ge=1)
    similarity_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    path_timeout: float = 30.0


class LLMConfig(BaseModel):
    provider: str = Field(default="ollama", pattern="^(ollama|none)$")
    model_name: str = "mistral"
    temperature: float = 0.2
    request_timeout: float = 120.0
    max_tool_rounds: int = Field(default=3, ge=1)


class FilesystemRootConfig(BaseModel):
    alias: str | None = None
    path: Path


def _default_roots() -> Dict[str, FilesystemRootConfig]:
    return {"workspace": FilesystemRootConfig(path=Path("data/workspace"))}


class ToolsConfig(BaseModel):
    rag_default_results: int = Field(default=3, ge=1, le=10)
    filesystem_roots: Dict[str, FilesystemRootConfig] = Field(
        default_factory=_default_roots
    )


class LoggingConfig(BaseModel):
    level: str = "INFO"


class GlobalYAMLConfig(BaseModel):
    app: AppConfig = Field(default_factory=AppConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    keyword_index: KeywordIndexConfig = Field(default_factory=KeywordIndexConfig)
    vectorstore: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_yaml_config(path: Path | None = None) -> GlobalYAMLConfig:
    """
    Load config/config.yaml (or $HRAG_CONFIG). A missing file yields defaults.
    """
    path = Path(path or os.getenv("HRAG_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        return GlobalYAMLConfig()
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return GlobalYAMLConfig(**raw)


class Secrets(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ollama_base_url: str | None = None


yaml_config = load_yaml_config()
secrets = Secrets()
