from __future__ import annotations

import re
from pathlib import Path, PurePath

import requests
import streamlit as st

from common.errors import IndexBuildError, RebuildInProgressError, StagingIOError


def safe_upload_name(name: str) -> str:
    base = PurePath(name or "").name
    base = re.sub(r"[^A-Za-z0-9_.-]", "_", base).lstrip(".")
    return base or "upload"


def render_ingest_section(services):
    st.subheader("Ingest Documents")
    st.write("Upload files into the uploads folder, then rebuild the indexes.")

    indexer = services.indexer
    available = indexer.is_index_available()
    if indexer.rebuild_in_progress:
        st.info("⏳ A rebuild is currently running.")
    elif available:
        st.success("Keyword index is available.")
    else:
        st.warning("Keyword index is not available yet. Run a rebuild.")

    loading = indexer.loading_service
    if loading is not None:
        with st.expander("Configured sources"):
            sources = loading.configured_sources()
            if sources:
                for s in sources:
                    st.text(s)
            else:
                st.info("No primary document sources configured. Uploaded files are still processed.")

        url = st.text_input("Save a web page or PDF URL into the uploads folder")
        if st.button("Fetch URL", disabled=not url.strip()):
            try:
                saved = loading.save_url(url)
            except ValueError as e:
                st.error(str(e))
            except (requests.RequestException, OSError) as e:
                st.error(f"Failed to fetch or save URL content: {e}")
            else:
                st.success(f"Saved as '{saved.name}'. Rebuild to include it in the search.")

    uploaded_files = st.file_uploader(
        "Upload PDFs, text, markdown or HTML files",
        accept_multiple_files=True,
        type=["pdf", "txt", "md", "html", "htm"],
    )

    if st.button("Save uploads & rebuild", type="primary"):
        uploads_dir = Path(services.config.sources.uploads_path)
        uploads_dir.mkdir(parents=True, exist_ok=True)
        for f in uploaded_files or []:
            (uploads_dir / safe_upload_name(f.name)).write_bytes(f.read())

        with st.spinner("Reprocessing all sources..."):
            try:
                staged = indexer.reprocess_all_sources()
            except RebuildInProgressError:
                st.warning("A rebuild is already in progress, try again shortly.")
                return
            except (StagingIOError, IndexBuildError) as e:
                st.error(f"Rebuild failed: {e}")
                return
        st.success(f"✅ Rebuild complete! {staged} record(s) in the keyword index.")
