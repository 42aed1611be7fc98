from conftest import ToolCallingFakeChatModel
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import AIMessage

from app.bootstrap import build_services
from chains.rag_service import RagQuery, RagService
from common.config import GlobalYAMLConfig
from models.llm import ChatLanguageModel
from vectorstore.chroma_store import ChromaVectorStore


def _config(tmp_path):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "returns.txt").write_text("Refund policy: returns are accepted within 30 days of purchase.")
    (docs / "shipping.md").write_text("Shipping is free on orders over 50 euros.")
    (docs / "support.html").write_text("<p>Contact support by email for warranty claims.</p>")

    return GlobalYAMLConfig(
        app={"cache_dir": str(tmp_path / "cache")},
        sources={"paths": [str(docs)], "uploads_path": str(tmp_path / "uploads")},
        keyword_index={
            "index_path": str(tmp_path / "index"),
            "staging_path": str(tmp_path / "staging"),
            "threads": 1,
        },
        vectorstore={"provider": "none"},
        llm={"provider": "none"},
        tools={"filesystem_roots": {"workspace": {"path": str(tmp_path / "workspace")}}},
    )


def test_end_to_end_pipeline(tmp_path):
    chat = ToolCallingFakeChatModel(
        responses=[AIMessage(content="Returns are accepted within 30 days.")]
    )
    store = ChromaVectorStore(
        persist_dir=tmp_path / "chroma",
        collection_name="e2e",
        embeddings=DeterministicFakeEmbedding(size=16),
    )
    services = build_services(
        config=_config(tmp_path),
        vector_store=store,
        language_model=ChatLanguageModel(chat),
    )
    try:
        assert not services.indexer.is_index_available()
        assert services.indexer.ensure_index()
        assert (tmp_path / "cache" / "manifest_keyword.json").exists()
        assert len(store.db.get()["ids"]) == 3

        context = services.retriever.retrieve("refund policy")
        assert context[0].startswith("Refund policy")
        assert len(context) == len(set(context))

        answer = services.rag.answer_query(RagQuery(query="What is the refund policy?"))
        assert answer == "Returns are accepted within 30 days."
        system_message = chat.seen[0][0]
        assert "Refund policy: returns are accepted" in system_message.content
    finally:
        services.retriever.close()


def test_tool_calling_reads_workspace(tmp_path):
    services = build_services(config=_config(tmp_path))
    (tmp_path / "workspace" / "hours.txt").write_text("Open 9-17.")
    chat = ToolCallingFakeChatModel(
        responses=[
            AIMessage(
                content="",
                tool_calls=[
                    {
                        "name": "read_file",
                        "args": {"root_alias": "workspace", "file_path": "hours.txt"},
                        "id": "call_1",
                    }
                ],
            ),
            AIMessage(content="We are open 9-17."),
        ]
    )
    service = RagService(services.retriever, ChatLanguageModel(chat, registry=services.tools))
    try:
        answer = service.answer_query(
            RagQuery(query="When are you open?", use_tool_calling=True)
        )
        assert answer == "We are open 9-17."
        assert "Preview: Open 9-17." in chat.seen[-1][-1].content
    finally:
        services.retriever.close()


def test_disabled_providers_report_not_configured(tmp_path):
    services = build_services(config=_config(tmp_path))
    try:
        services.indexer.reprocess_all_sources()
        assert services.retriever.retrieve("shipping")[0].startswith("Shipping is free")
        answer = services.rag.answer_query(RagQuery(query="shipping?"))
        assert answer.startswith("Error: Language Model is not configured")
    finally:
        services.retriever.close()
