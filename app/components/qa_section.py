from __future__ import annotations

import streamlit as st

from chains.rag_service import RagQuery
from common.errors import is_error_sentinel


def render_qa_section(services, use_tools: bool):
    st.subheader("Ask a Question")

    question = st.text_input("Enter your question:")
    ask_button = st.button("Get Answer", type="primary", disabled=not question.strip())

    if ask_button:
        with st.spinner("Retrieving + reasoning..."):
            result = services.rag.answer(
                RagQuery(query=question, use_tool_calling=use_tools)
            )
        answer, context = result.text, result.context

        st.markdown("### 🧩 Answer")
        if is_error_sentinel(answer):
            st.error(answer)
        else:
            st.write(answer)

        st.markdown("### 📑 Retrieved context")
        if context:
            for i, snippet in enumerate(context, 1):
                with st.expander(f"Snippet {i}"):
                    st.write(snippet)
        else:
            st.info("No context retrieved.")
