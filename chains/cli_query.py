from __future__ import annotations

import argparse

from app.bootstrap import get_services
from chains.rag_service import RagQuery
from common.logger import get_logger

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Ask a question against the hybrid (keyword + semantic) RAG index."
    )
    parser.add_argument(
        "--tools",
        action="store_true",
        help="Let the model call rag_query / list_files / read_file",
    )
    parser.add_argument(
        "--show_context",
        action="store_true",
        help="Print the fused retrieval context before the answer",
    )
    parser.add_argument(
        "--no_build",
        action="store_true",
        help="Do not build the keyword index when it is missing",
    )
    parser.add_argument("question", type=str, help="Your question")
    args = parser.parse_args()

    services = get_services(ensure_index=not args.no_build)

    result = services.rag.answer(
        RagQuery(query=args.question, use_tool_calling=args.tools)
    )

    if args.show_context:
        print("\n=== CONTEXT ===\n")
        for i, snippet in enumerate(result.context, 1):
            print(f"[{i}] {snippet[:300]}\n")

    print("\n=== ANSWER ===\n")
    print(result.text.strip())


if __name__ == "__main__":
    main()
