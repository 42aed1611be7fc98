from __future__ import annotations

import streamlit as st
from components.ingest_section import render_ingest_section
from components.qa_section import render_qa_section
from components.tools_section import render_tools_section

from app.bootstrap import get_services
from common.config import yaml_config

st.set_page_config(page_title="Hybrid RAG", layout="wide")

st.markdown(
    """
    <style>
    .big-title { font-size:2rem; font-weight:700; margin-bottom:1rem; }
    </style>
    """,
    unsafe_allow_html=True,
)

st.markdown(
    "<p class='big-title'>🔎 Hybrid RAG Assistant</p>",
    unsafe_allow_html=True,
)
st.caption("Keyword (BM25) + semantic retrieval | Local & Private")

services = get_services()

# --- Sidebar ---
st.sidebar.title("Settings")
st.sidebar.markdown("**Vector store:**")
st.sidebar.text(services.vector_store.describe())
st.sidebar.markdown("**Keyword index:**")
st.sidebar.text(str(yaml_config.keyword_index.index_path))
st.sidebar.divider()

use_tools = st.sidebar.checkbox("Let the model call tools", value=False)

st.sidebar.divider()
st.sidebar.caption(f"LLM: {yaml_config.llm.provider} / {yaml_config.llm.model_name}")
st.sidebar.caption(f"Embedding model: {yaml_config.vectorstore.embedding_model}")
st.sidebar.caption(
    f"Keyword top-N: {yaml_config.retrieval.keyword_top_n} | "
    f"Semantic top-K: {yaml_config.retrieval.semantic_top_k}"
)

# --- Tabs ---
tab_ingest, tab_qa, tab_tools = st.tabs(["📚 Ingest", "💬 Ask a Question", "🛠 Tools"])

with tab_ingest:
    render_ingest_section(services)

with tab_qa:
    render_qa_section(services, use_tools=use_tools)

with tab_tools:
    render_tools_section(services)
