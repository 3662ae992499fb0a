from __future__ import annotations

import logging
from typing import Protocol

from intake.agent.state import SessionState, TurnRequest, advance, commit, new_session, reject
from intake.services.handler_client import HandlerCallError

__all__ = ["send_message", "start_session", "INITIAL_BOT_MESSAGE"]

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Mensagens padrão
# -----------------------------------------------------------------------------
INITIAL_BOT_MESSAGE = (
    "안녕하세요! 병원 예약 챗봇입니다.\n"
    "예약을 도와드리기 위해 몇 가지 정보를 여쭤보겠습니다. 먼저 성함을 알려주시겠어요?"
)

INPUT_PLACEHOLDER = "메시지를 입력하세요..."
COMPLETED_PLACEHOLDER = "상담이 종료되었습니다."


def error_message(detail: str) -> str:
    return f"죄송합니다, 시스템에 오류가 발생했습니다. (오류: {detail})"


class TurnSender(Protocol):
    async def send_turn(self, request: TurnRequest) -> str:
        ...


# -----------------------------------------------------------------------------
# Controlador do turno
# -----------------------------------------------------------------------------
def start_session() -> SessionState:
    return new_session(INITIAL_BOT_MESSAGE)


async def send_message(state: SessionState, user_text: str, sender: TurnSender) -> SessionState:
    """
    Envia um turno e devolve o novo estado. A etapa só avança se o handler
    responder; em caso de erro a mesma pergunta continua valendo.
    Entrada vazia ou conversa encerrada: devolve o mesmo estado.
    """
    transition = advance(state, user_text)
    if transition is None:
        return state

    try:
        reply = await sender.send_turn(transition.request)
    except HandlerCallError as exc:
        logger.error("Chat handler call failed for session %s: %s", state.session_id, exc.detail)
        return reject(state, transition, error_message(exc.detail))

    return commit(state, transition, reply)
