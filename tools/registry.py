"""Fixed tool set advertised to the language model in tool-calling mode."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field, ValidationError

from common.logger import get_logger
from tools.filesystem_tool import FilesystemTool
from tools.rag_tool import RagTool

log = get_logger(__name__)

TOOL_NAMES = ("rag_query", "list_files", "read_file")


class RagQueryInput(BaseModel):
    query: str = Field(description="Natural-language search query")
    max_results: Optional[int] = Field(
        default=None, description="Number of documents to return (default 3, max 10)"
    )


class ListFilesInput(BaseModel):
    root_alias: str = Field(description="Configured filesystem root, e.g. 'workspace'")
    sub_path: str = Field(default="", description="Optional path relative to the root")


class ReadFileInput(BaseModel):
    root_alias: str = Field(description="Configured filesystem root, e.g. 'workspace'")
    file_path: str = Field(description="File path relative to the root")


class ToolRegistry:
    def __init__(self, rag_tool: RagTool, filesystem_tool: FilesystemTool):
        tools = [
            StructuredTool.from_function(
                func=rag_tool.rag_query,
                name="rag_query",
                description=(
                    "Queries the document corpus and returns relevant text snippets. "
                    "Optionally provide max_results (default 3, max 10)."
                ),
                args_schema=RagQueryInput,
            ),
            StructuredTool.from_function(
                func=filesystem_tool.list_files,
                name="list_files",
                description=(
                    "Lists files and directories inside a configured filesystem root. "
                    "Provide root_alias and an optional relative sub_path."
                ),
                args_schema=ListFilesInput,
            ),
            StructuredTool.from_function(
                func=filesystem_tool.read_file,
                name="read_file",
                description=(
                    "Reads a text file inside a configured filesystem root and returns a preview. "
                    "Provide root_alias and the relative file_path."
                ),
                args_schema=ReadFileInput,
            ),
        ]
        self._tools: Dict[str, BaseTool] = {t.name: t for t in tools}

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, names: Sequence[str] | None = None) -> List[BaseTool]:
        if names is None:
            return list(self._tools.values())
        missing = [n for n in names if n not in self._tools]
        if missing:
            log.warning("Requested unknown tool(s): %s", missing)
        return [self._tools[n] for n in names if n in self._tools]

    def describe(self) -> List[Dict[str, str]]:
        return [{"name": t.name, "description": t.description} for t in self._tools.values()]

    def invoke(self, name: str, args: Dict[str, Any] | None) -> Dict[str, Any]:
        tool = self._tools.get(name)
        if tool is None:
            return {"error": f"Tool not found: {name}"}
        try:
            result = tool.invoke(args or {})
        except ValidationError as e:
            log.warning("Invalid arguments for %s: %s", name, e)
            return {"error": f"Invalid arguments for {name}: {e}"}
        except Exception as e:
            log.error("Tool %s failed: %s", name, e, exc_info=True)
            return {"error": f"Tool {name} failed: {e}"}
        return result if isinstance(result, dict) else {"result": result}
