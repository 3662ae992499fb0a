"""
Chat UI driven through Streamlit's AppTest, with the handler call stubbed.
"""

import pytest
from streamlit.testing.v1 import AppTest

from intake.agent.agent import COMPLETED_PLACEHOLDER, INITIAL_BOT_MESSAGE, INPUT_PLACEHOLDER
from intake.agent.state import ChatStep
from intake.services.handler_client import HandlerCallError, HandlerClient

APP = "../intake/streamlit_app.py"

REPLIES = {
    ChatStep.NAME: "연락 가능한 전화번호를 알려주세요.",
    ChatStep.PHONE: "생년월일을 알려주세요.",
    ChatStep.BIRTH_DATE: "방문 사유를 자세히 알려주세요.",
    ChatStep.COMPLAINT: "감사합니다. 빠른 시간 안에 연락드리겠습니다.",
}


@pytest.fixture
def sent(monkeypatch):
    requests = []

    async def send_turn(self, request):
        requests.append(request)
        return REPLIES[request.step]

    monkeypatch.setattr(HandlerClient, "send_turn", send_turn)
    return requests


def start_app():
    at = AppTest.from_file(APP, default_timeout=10)
    at.run()
    return at


def texts(at):
    return [m.markdown[0].value for m in at.chat_message]


def test_first_render_shows_header_and_greeting(sent):
    at = start_app()
    assert not at.exception
    assert at.title[0].value == "🏥 병원 예약 챗봇"
    assert texts(at) == [INITIAL_BOT_MESSAGE]
    assert at.chat_input[0].placeholder == INPUT_PLACEHOLDER
    assert not at.chat_input[0].disabled


def test_four_answers_complete_and_disable_input(sent):
    at = start_app()
    for answer in ["김철수", "010-1234-5678", "19900101", "두통이 있어요"]:
        at.chat_input[0].set_value(answer).run()
        assert not at.exception

    assert [r.step for r in sent] == [
        ChatStep.NAME,
        ChatStep.PHONE,
        ChatStep.BIRTH_DATE,
        ChatStep.COMPLAINT,
    ]
    assert len(at.chat_message) == 9
    assert texts(at)[-1] == REPLIES[ChatStep.COMPLAINT]
    assert at.session_state["chat"].step is ChatStep.COMPLETED
    assert at.chat_input[0].disabled
    assert at.chat_input[0].placeholder == COMPLETED_PLACEHOLDER


def test_turn_in_flight_flag_is_cleared_after_reply(sent):
    at = start_app()
    at.chat_input[0].set_value("김철수").run()

    assert at.session_state["pending"] is None
    assert not at.chat_input[0].disabled
    assert at.chat_input[0].placeholder == INPUT_PLACEHOLDER
    assert at.session_state["chat"].step is ChatStep.PHONE


def test_failed_turn_shows_apology_and_keeps_input_open(monkeypatch):
    async def send_turn(self, request):
        raise HandlerCallError("Chat handler failed: boom", 500)

    monkeypatch.setattr(HandlerClient, "send_turn", send_turn)
    at = start_app()
    at.chat_input[0].set_value("김철수").run()

    assert texts(at)[-1] == "죄송합니다, 시스템에 오류가 발생했습니다. (오류: Chat handler failed: boom)"
    assert at.session_state["chat"].step is ChatStep.NAME
    assert at.session_state["pending"] is None
    assert not at.chat_input[0].disabled
