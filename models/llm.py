from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import orjson
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_ollama import ChatOllama

from common.errors import ModelCallError, error_sentinel
from common.logger import get_logger
from tools.registry import ToolRegistry

log = get_logger(__name__)

NOT_CONFIGURED = error_sentinel("Language Model is not configured. Cannot generate response.")


@dataclass
class ModelResponse:
    text: Optional[str] = None
    response_id: Optional[str] = None
    model_name: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)
    rate_limit: Dict[str, Any] = field(default_factory=dict)
    finish_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _message_text(msg: BaseMessage) -> Optional[str]:
    content = msg.content
    if isinstance(content, list):
        parts = [
            p.get("text", "") if isinstance(p, dict) else str(p)
            for p in content
        ]
        content = "".join(parts)
    content = (content or "").strip()
    return content or None


def to_model_response(
    msg: AIMessage, metadata: Optional[Dict[str, Any]] = None
) -> ModelResponse:
    meta = dict(msg.response_metadata or {})
    return ModelResponse(
        text=_message_text(msg),
        response_id=msg.id,
        model_name=meta.get("model") or meta.get("model_name"),
        usage=dict(msg.usage_metadata or {}),
        rate_limit=dict(meta.get("rate_limit") or {}),
        finish_reason=meta.get("done_reason") or meta.get("finish_reason"),
        metadata=dict(metadata or {}),
    )


class LanguageModel:
    def complete(self, system_prompt: str, user_query: str) -> Optional[ModelResponse]:
        raise NotImplementedError

    def complete_with_tools(
        self, system_prompt: str, user_query: str, tool_names: Sequence[str]
    ) -> Optional[ModelResponse]:
        raise NotImplementedError


class DisabledLanguageModel(LanguageModel):
    def complete(self, system_prompt: str, user_query: str) -> ModelResponse:
        log.warning("Language model not configured, cannot answer %r", user_query)
        return ModelResponse(text=NOT_CONFIGURED)

    def complete_with_tools(
        self, system_prompt: str, user_query: str, tool_names: Sequence[str]
    ) -> ModelResponse:
        return self.complete(system_prompt, user_query)


class ChatLanguageModel(LanguageModel):
    """
    Adapts a LangChain chat model to the LanguageModel interface.

    In tool mode the requested tools are bound to the model and any tool calls
    it emits are executed through the ToolRegistry, for at most
    `max_tool_rounds` rounds. Tool failures are collected under
    `metadata["tool_error"]` of the final response.
    """

    def __init__(
        self,
        chat_model: BaseChatModel,
        registry: Optional[ToolRegistry] = None,
        max_tool_rounds: int = 3,
    ):
        self.chat_model = chat_model
        self.registry = registry
        self.max_tool_rounds = max_tool_rounds

    @staticmethod
    def _invoke(runnable, messages: List[BaseMessage]) -> AIMessage:
        try:
            return runnable.invoke(messages)
        except Exception as e:
            raise ModelCallError(f"Chat model call failed: {e}") from e

    @staticmethod
    def _messages(system_prompt: str, user_query: str) -> List[BaseMessage]:
        return [SystemMessage(content=system_prompt), HumanMessage(content=user_query)]

    def complete(self, system_prompt: str, user_query: str) -> ModelResponse:
        msg = self._invoke(self.chat_model, self._messages(system_prompt, user_query))
        return to_model_response(msg)

    def _run_tool_calls(self, msg: AIMessage, tool_errors: List[str]) -> List[ToolMessage]:
        out: List[ToolMessage] = []
        for call in msg.tool_calls:
            name = call["name"]
            log.info("Model requested tool %s with %s", name, call.get("args"))
            result = self.registry.invoke(name, call.get("args"))
            if "error" in result:
                tool_errors.append(f"{name}: {result['error']}")
            out.append(
                ToolMessage(
                    content=orjson.dumps(result).decode("utf-8"),
                    tool_call_id=call.get("id") or name,
                    name=name,
                )
            )
        return out

    def complete_with_tools(
        self, system_prompt: str, user_query: str, tool_names: Sequence[str]
    ) -> ModelResponse:
        if self.registry is None:
            log.warning("No tool registry configured, answering without tools")
            return self.complete(system_prompt, user_query)

        bound = self.chat_model.bind_tools(self.registry.get(tool_names))
        messages = self._messages(system_prompt, user_query)
        tool_errors: List[str] = []

        msg = self._invoke(bound, messages)
        rounds = 0
        while msg.tool_calls and rounds < self.max_tool_rounds:
            rounds += 1
            messages.append(msg)
            messages.extend(self._run_tool_calls(msg, tool_errors))
            msg = self._invoke(bound, messages)

        metadata: Dict[str, Any] = {"tool_rounds": rounds}
        if tool_errors:
            metadata["tool_error"] = "; ".join(tool_errors)
        if msg.tool_calls:
            metadata["error"] = (
                f"Model still requested tools after {self.max_tool_rounds} round(s)"
            )
        return to_model_response(msg, metadata)


def load_language_model(
    cfg, registry: Optional[ToolRegistry] = None, base_url: Optional[str] = None
) -> LanguageModel:
    """
    Load the chat model from the `llm` config section.
    """
    if cfg.provider == "none":
        log.info("Language model disabled by configuration")
        return DisabledLanguageModel()
    if cfg.provider == "ollama":
        kwargs: Dict[str, Any] = {}
        if base_url:
            kwargs["base_url"] = base_url
        chat = ChatOllama(
            model=cfg.model_name,
            temperature=cfg.temperature,
            client_kwargs={"timeout": cfg.request_timeout},
            **kwargs,
        )
        return ChatLanguageModel(chat, registry=registry, max_tool_rounds=cfg.max_tool_rounds)
    raise ValueError(f"Unsupported provider: {cfg.provider}")
