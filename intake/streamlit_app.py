from __future__ import annotations
import asyncio
import streamlit as st
from intake.config import settings
from intake.agent.agent import (
    COMPLETED_PLACEHOLDER,
    INPUT_PLACEHOLDER,
    send_message,
    start_session,
)
from intake.services.handler_client import HandlerClient

st.set_page_config(page_title="병원 예약 챗봇", page_icon="🏥", layout="centered")


@st.cache_resource
def get_client() -> HandlerClient:
    return HandlerClient.from_settings(settings)


def queue_prompt() -> None:
    # on_submit roda antes do rerun: o input já aparece desabilitado durante o turno
    st.session_state.pending = st.session_state.prompt


st.title("🏥 병원 예약 챗봇")

# estado imutável: cada turno substitui o valor inteiro
if "chat" not in st.session_state:
    st.session_state.chat = start_session()
if "pending" not in st.session_state:
    st.session_state.pending = None

# Render histórico
for msg in st.session_state.chat.messages:
    with st.chat_message("user" if msg.origin == "user" else "assistant"):
        st.markdown(msg.text)

completed = st.session_state.chat.completed
busy = st.session_state.pending is not None
st.chat_input(
    COMPLETED_PLACEHOLDER if completed else INPUT_PLACEHOLDER,
    key="prompt",
    disabled=completed or busy,
    on_submit=queue_prompt,
)

if busy:
    try:
        with st.spinner("..."):
            st.session_state.chat = asyncio.run(
                send_message(st.session_state.chat, st.session_state.pending, get_client())
            )
    finally:
        st.session_state.pending = None
    st.rerun()
