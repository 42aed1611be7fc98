from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from chains.prompts import ANSWER_TEMPLATE, TOOL_ANSWER_TEMPLATE, format_context
from common.errors import error_sentinel
from common.logger import get_logger
from models.llm import LanguageModel, ModelResponse
from retrieval.hybrid import HybridRetriever
from tools.registry import TOOL_NAMES

log = get_logger(__name__)

EMPTY_QUERY = error_sentinel("Query cannot be empty.")
NULL_RESPONSE = error_sentinel("Language model returned a null response.")
NO_PLAIN_RESPONSE = error_sentinel("Could not get a response from the language model.")
NO_TOOL_RESPONSE = error_sentinel(
    "Could not get a final response content from the language model after "
    "considering tools. Please check logs for details."
)
INTERNAL_ERROR = error_sentinel(
    "Failed to get an answer from the language model due to an unexpected internal error."
)
NOT_CONFIGURED = error_sentinel(
    "RAG service is not fully configured (retriever or language model missing)."
)


@dataclass(frozen=True)
class RagQuery:
    query: str
    use_tool_calling: bool = False


@dataclass(frozen=True)
class RagAnswer:
    text: str
    context: List[str] = field(default_factory=list)


class RagService:
    """
    Answers a query from the fused hybrid context.

    Never raises to the caller: every failure ends up as an "Error: ..." answer.
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        language_model: LanguageModel,
        tool_names: Sequence[str] = TOOL_NAMES,
    ):
        self.retriever = retriever
        self.language_model = language_model
        self.tool_names = tuple(tool_names)

    def answer_query(self, request: RagQuery) -> str:
        return self.answer(request).text

    def answer(self, request: RagQuery) -> RagAnswer:
        """Answer plus the exact fused context the model was given."""
        query = (request.query or "").strip()
        if not query:
            return RagAnswer(EMPTY_QUERY)

        context = self.retriever.retrieve(query)
        if not context:
            log.info("No context retrieved for %r, asking the model anyway", query)

        try:
            if request.use_tool_calling:
                text = self._answer_with_tools(query, context)
            else:
                text = self._answer_plain(query, context)
        except Exception as e:
            log.error("Language model call failed for %r: %s", query, e, exc_info=True)
            text = INTERNAL_ERROR
        return RagAnswer(text, list(context))

    def _answer_plain(self, query: str, context: Sequence[str]) -> str:
        system_prompt = ANSWER_TEMPLATE.format(context=format_context(context))
        response = self.language_model.complete(system_prompt, query)
        if response is None:
            return NULL_RESPONSE
        if response.text:
            return response.text
        log.warning("Model returned no text in plain mode (id=%s)", response.response_id)
        return NO_PLAIN_RESPONSE

    def _answer_with_tools(self, query: str, context: Sequence[str]) -> str:
        system_prompt = TOOL_ANSWER_TEMPLATE.format(
            context=format_context(context), tool_names=", ".join(self.tool_names)
        )
        response = self.language_model.complete_with_tools(
            system_prompt, query, self.tool_names
        )
        if response is None:
            return NULL_RESPONSE
        return extract_tool_answer(response)


def extract_tool_answer(response: ModelResponse) -> str:
    if response.text:
        return response.text

    metadata = response.metadata or {}
    tool_error = metadata.get("tool_error")
    if tool_error:
        log.warning("Tool execution reported an issue: %s", tool_error)
        return error_sentinel(f"Tool execution reported an issue. Details: {tool_error}")
    general = metadata.get("error")
    if general:
        log.warning("Model response carried an error: %s", general)
        return error_sentinel(f"An issue occurred. Details: {general}")

    log.error(
        "No final content after tool calling. id=%s model=%s usage=%s rate_limit=%s finish_reason=%s",
        response.response_id,
        response.model_name,
        response.usage,
        response.rate_limit,
        response.finish_reason,
    )
    return NO_TOOL_RESPONSE


class DisabledRagService:
    def answer(self, request: RagQuery) -> RagAnswer:
        return RagAnswer(self.answer_query(request))

    def answer_query(self, request: RagQuery) -> str:
        log.warning("RAG service not configured, cannot answer %r", request.query)
        return NOT_CONFIGURED


def build_rag_service(
    retriever: Optional[HybridRetriever], language_model: Optional[LanguageModel]
):
    if retriever is None or language_model is None:
        return DisabledRagService()
    return RagService(retriever, language_model)
