from langchain_core.prompts import PromptTemplate

CONTEXT_SEPARATOR = "\n---\n"

SYSTEM_BASE = """You are a helpful AI assistant. Answer the user's query based on the provided context.
If the context does not contain the answer, say that you don't know."""

ANSWER_TEMPLATE = PromptTemplate(
    input_variables=["context"],
    template=SYSTEM_BASE + "\n\nContext:\n{context}",
)

TOOL_ANSWER_TEMPLATE = PromptTemplate(
    input_variables=["context", "tool_names"],
    template=(
        SYSTEM_BASE + "\n"
        "You can also call these tools when the context is not enough: {tool_names}.\n"
        "Use rag_query to search the document corpus, list_files to browse a "
        "configured folder and read_file to read a file from it.\n\n"
        "Context:\n{context}"
    ),
)


def format_context(snippets) -> str:
    return CONTEXT_SEPARATOR.join(snippets)
