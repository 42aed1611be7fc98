from __future__ import annotations

from typing import List, Optional

import pytest
from langchain_core.language_models.fake_chat_models import FakeMessagesListChatModel

from common.config import FilesystemRootConfig
from ingestion.document_models import NormalizedDocument
from models.llm import LanguageModel, ModelResponse
from tools.filesystem_tool import FilesystemTool
from vectorstore.base import SemanticHit, VectorStore


def make_doc(text: str, **metadata) -> NormalizedDocument:
    return NormalizedDocument(text=text, metadata={k: str(v) for k, v in metadata.items()})


class StubKeywordRetriever:
    def __init__(self, results: Optional[List[str]] = None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.calls = []

    def retrieve(self, query: str, max_results: int) -> List[str]:
        self.calls.append((query, max_results))
        if self.error:
            raise self.error
        return list(self.results)[:max_results]


class StubVectorStore(VectorStore):
    def __init__(self, hits: Optional[List[str]] = None, fail_times: int = 0, search_error: Exception | None = None):
        self.hits = hits or []
        self.fail_times = fail_times
        self.search_error = search_error
        self.added = []

    def add(self, documents):
        self.added.append(list(documents))
        if self.fail_times:
            self.fail_times -= 1
            raise ConnectionError("vector store unavailable")
        return len(documents)

    def similarity_search(self, query, k, threshold=0.0):
        if self.search_error:
            raise self.search_error
        return [SemanticHit(text=t) for t in self.hits][:k]

    def delete(self, ids):
        return False


class StubLanguageModel(LanguageModel):
    def __init__(self, response: Optional[ModelResponse] = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts = []

    def complete(self, system_prompt, user_query):
        self.prompts.append(("plain", system_prompt, user_query))
        if self.error:
            raise self.error
        return self.response

    def complete_with_tools(self, system_prompt, user_query, tool_names):
        self.prompts.append(("tools", system_prompt, user_query, tuple(tool_names)))
        if self.error:
            raise self.error
        return self.response


class ToolCallingFakeChatModel(FakeMessagesListChatModel):
    """Scripted chat model that accepts bind_tools and records what it was sent."""

    seen: list = []

    def bind_tools(self, tools, **kwargs):
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.seen.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


@pytest.fixture
def fs_tool(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "notes.txt").write_text("Refunds are processed within 5 business days.")
    (root / "sub").mkdir()
    return FilesystemTool({"workspace": FilesystemRootConfig(alias="ws", path=root)})
