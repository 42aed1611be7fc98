from pathlib import Path

import pytest
from pydantic import ValidationError

from common.config import GlobalYAMLConfig, load_yaml_config


def test_missing_file_yields_defaults(tmp_path):
    cfg = load_yaml_config(tmp_path / "absent.yaml")
    assert cfg == GlobalYAMLConfig()
    assert cfg.retrieval.keyword_top_n == 2
    assert cfg.retrieval.semantic_top_k == 2
    assert "workspace" in cfg.tools.filesystem_roots


def test_shipped_config_loads():
    cfg = load_yaml_config(Path(__file__).parent.parent / "config" / "config.yaml")
    assert cfg.vectorstore.provider == "chroma"
    assert cfg.tools.filesystem_roots["workspace"].alias == "ws"
    assert cfg.keyword_index.threads is None


def test_env_override(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("retrieval:\n  keyword_top_n: 5\nllm:\n  provider: none\n")
    monkeypatch.setenv("HRAG_CONFIG", str(path))

    cfg = load_yaml_config()
    assert cfg.retrieval.keyword_top_n == 5
    assert cfg.llm.provider == "none"
    assert cfg.vectorstore.provider == "chroma"


def test_unknown_provider_is_rejected():
    with pytest.raises(ValidationError):
        GlobalYAMLConfig(vectorstore={"provider": "pinecone"})
    with pytest.raises(ValidationError):
        GlobalYAMLConfig(retrieval={"similarity_threshold": 1.5})
