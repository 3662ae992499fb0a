from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatStep(str, Enum):
    # FSM
    # NAME -> PHONE -> BIRTH_DATE -> COMPLAINT -> COMPLETED
    NAME = "name_step"
    PHONE = "phone_step"
    BIRTH_DATE = "birth_step"
    COMPLAINT = "complaint_step"
    COMPLETED = "completed"


NEXT_STEP: Dict[ChatStep, ChatStep] = {
    ChatStep.NAME: ChatStep.PHONE,
    ChatStep.PHONE: ChatStep.BIRTH_DATE,
    ChatStep.BIRTH_DATE: ChatStep.COMPLAINT,
    ChatStep.COMPLAINT: ChatStep.COMPLETED,
}

# campo do UserData preenchido em cada etapa
STEP_FIELD: Dict[ChatStep, str] = {
    ChatStep.NAME: "patient_name",
    ChatStep.PHONE: "phone_number",
    ChatStep.BIRTH_DATE: "birth_date",
    ChatStep.COMPLAINT: "chief_complaint",
}

ASKABLE_STEPS = frozenset(ChatStep) - {ChatStep.COMPLETED}

if set(NEXT_STEP) != ASKABLE_STEPS or set(STEP_FIELD) != ASKABLE_STEPS:
    raise RuntimeError("NEXT_STEP/STEP_FIELD must cover every step except COMPLETED")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    patient_name: str = ""
    phone_number: str = ""
    birth_date: str = ""
    chief_complaint: str = ""


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin: Literal["user", "bot"]
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class TurnRequest(BaseModel):
    """Corpo JSON enviado da UI para o handler a cada turno."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str = Field(min_length=1)
    session_id: str = Field(alias="sessionId", min_length=1)
    step: ChatStep
    user_data: UserData = Field(alias="userData")

    @field_validator("step")
    @classmethod
    def _step_accepts_messages(cls, v: ChatStep) -> ChatStep:
        if v not in ASKABLE_STEPS:
            raise ValueError(f"step '{v.value}' does not accept messages")
        return v

    def to_payload(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class SessionState(BaseModel):
    """Estado imutável de uma conversa no cliente."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    step: ChatStep = ChatStep.NAME
    user_data: UserData = Field(default_factory=UserData)
    messages: Tuple[ChatMessage, ...] = ()

    @property
    def completed(self) -> bool:
        return self.step == ChatStep.COMPLETED


class Transition(BaseModel):
    """
    Resultado de `advance`: o efeito a executar (`request`) e o estado
    que passa a valer somente se o efeito tiver sucesso (`prospective`).
    """

    model_config = ConfigDict(frozen=True)

    user_message: ChatMessage
    request: TurnRequest
    prospective: SessionState


def new_session(greeting: str) -> SessionState:
    return SessionState(messages=(ChatMessage(origin="bot", text=greeting),))


def advance(state: SessionState, user_text: str) -> Optional[Transition]:
    text = (user_text or "").strip()
    if not text or state.completed:
        return None

    field = STEP_FIELD[state.step]
    user_data = state.user_data.model_copy(update={field: text})
    request = TurnRequest(
        message=text,
        session_id=state.session_id,
        step=state.step,
        user_data=user_data,
    )
    prospective = state.model_copy(update={"step": NEXT_STEP[state.step], "user_data": user_data})
    return Transition(
        user_message=ChatMessage(origin="user", text=text),
        request=request,
        prospective=prospective,
    )


def commit(state: SessionState, transition: Transition, reply: str) -> SessionState:
    messages = state.messages + (
        transition.user_message,
        ChatMessage(origin="bot", text=reply),
    )
    return transition.prospective.model_copy(update={"messages": messages})


def reject(state: SessionState, transition: Transition, error_text: str) -> SessionState:
    # etapa e dados permanecem; o usuário responde de novo a mesma pergunta
    messages = state.messages + (
        transition.user_message,
        ChatMessage(origin="bot", text=error_text),
    )
    return state.model_copy(update={"messages": messages})
