from conftest import StubKeywordRetriever, StubVectorStore, ToolCallingFakeChatModel
from langchain_core.messages import AIMessage, ToolMessage

from chains.rag_service import RagQuery, RagService
from common.config import LLMConfig
from models.llm import ChatLanguageModel, DisabledLanguageModel, load_language_model
from retrieval.hybrid import HybridRetriever
from tools.rag_tool import RagTool
from tools.registry import TOOL_NAMES, ToolRegistry


def _registry(fs_tool, docs=None):
    return ToolRegistry(RagTool(StubKeywordRetriever(docs or [])), fs_tool)


def _tool_call(name, args, call_id="call_1"):
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


def test_plain_completion_maps_response_fields():
    chat = ToolCallingFakeChatModel(
        responses=[AIMessage(content="  Thirty days.  ", id="resp-1", response_metadata={"model": "mistral", "done_reason": "stop"})]
    )
    response = ChatLanguageModel(chat).complete("system", "How long?")

    assert response.text == "Thirty days."
    assert response.response_id == "resp-1"
    assert response.model_name == "mistral"
    assert response.finish_reason == "stop"


def test_tool_call_result_is_fed_back(fs_tool):
    chat = ToolCallingFakeChatModel(
        responses=[
            _tool_call("rag_query", {"query": "refund"}),
            AIMessage(content="Refunds take 30 days."),
        ]
    )
    llm = ChatLanguageModel(chat, registry=_registry(fs_tool, ["Returns within 30 days."]))

    response = llm.complete_with_tools("system", "refund?", TOOL_NAMES)

    assert response.text == "Refunds take 30 days."
    assert response.metadata["tool_rounds"] == 1
    assert "tool_error" not in response.metadata
    tool_messages = [m for m in chat.seen[-1] if isinstance(m, ToolMessage)]
    assert len(tool_messages) == 1
    assert "Returns within 30 days." in tool_messages[0].content


def test_failed_tool_surfaces_as_tool_error(fs_tool):
    chat = ToolCallingFakeChatModel(
        responses=[
            _tool_call("read_file", {"root_alias": "workspace", "file_path": "missing.txt"}),
            AIMessage(content=""),
        ]
    )
    llm = ChatLanguageModel(chat, registry=_registry(fs_tool))

    response = llm.complete_with_tools("system", "read missing.txt", TOOL_NAMES)

    assert response.text is None
    assert "read_file" in response.metadata["tool_error"]
    assert "File does not exist" in response.metadata["tool_error"]


def test_tool_error_reaches_the_answer(fs_tool):
    chat = ToolCallingFakeChatModel(
        responses=[
            _tool_call("read_file", {"root_alias": "workspace", "file_path": "missing.txt"}),
            AIMessage(content=""),
        ]
    )
    llm = ChatLanguageModel(chat, registry=_registry(fs_tool))
    service = RagService(HybridRetriever(StubKeywordRetriever([]), StubVectorStore([])), llm)

    answer = service.answer_query(RagQuery(query="read missing.txt", use_tool_calling=True))

    assert answer.startswith("Error: Tool execution reported an issue.")
    assert "File does not exist" in answer


def test_tool_rounds_are_bounded(fs_tool):
    chat = ToolCallingFakeChatModel(
        responses=[_tool_call("list_files", {"root_alias": "workspace"})]
    )
    llm = ChatLanguageModel(chat, registry=_registry(fs_tool), max_tool_rounds=2)

    response = llm.complete_with_tools("system", "list", TOOL_NAMES)

    assert response.metadata["tool_rounds"] == 2
    assert "after 2 round(s)" in response.metadata["error"]


def test_load_language_model_disabled():
    assert isinstance(load_language_model(LLMConfig(provider="none")), DisabledLanguageModel)
