from __future__ import annotations

import orjson
import streamlit as st


def render_tools_section(services):
    st.subheader("Tools")
    st.write("Tools the model can call in tool-calling mode.")

    tools = services.tools.describe()
    for t in tools:
        st.markdown(f"- **{t['name']}**: {t['description']}")

    st.divider()
    name = st.selectbox("Invoke a tool directly", [t["name"] for t in tools])
    raw_args = st.text_area("Arguments (JSON)", value="{}")
    if st.button("Invoke"):
        try:
            args = orjson.loads(raw_args or "{}")
        except orjson.JSONDecodeError as e:
            st.error(f"Invalid JSON: {e}")
            return
        st.json(services.tools.invoke(name, args))
