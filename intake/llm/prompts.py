from __future__ import annotations
from typing import Dict
from intake.agent.state import ASKABLE_STEPS, ChatStep

SYSTEM_INSTRUCTION = "You are a friendly hospital appointment assistant. Always reply in Korean."

CLOSING_LINE = "빠른 시간 안에 연락드리겠습니다."

# ordem: nome -> telefone -> data de nascimento -> motivo da consulta
STEP_INSTRUCTIONS: Dict[ChatStep, str] = {
    ChatStep.NAME: "You received the user's name. Now, ask for a contact phone number.",
    ChatStep.PHONE: "You received the phone number. Now, ask for their date of birth (e.g., 1990-01-01).",
    ChatStep.BIRTH_DATE: (
        "You received the date of birth. Now, ask for the reason for their visit "
        "(chief complaint) in detail."
    ),
    ChatStep.COMPLAINT: (
        "You received the reason for the visit. Thank them kindly and end the "
        f'conversation by saying, "{CLOSING_LINE}"'
    ),
}

if set(STEP_INSTRUCTIONS) != ASKABLE_STEPS:
    raise RuntimeError("STEP_INSTRUCTIONS must cover every step except COMPLETED")


def build_prompt(step: ChatStep, message: str) -> str:
    try:
        instruction = STEP_INSTRUCTIONS[step]
    except KeyError:
        raise ValueError(f"No instruction for step '{step.value}'") from None
    return (
        f"Current step: {step.value}\n"
        f'User\'s message: "{message}"\n\n'
        f"Your instruction for this step: {instruction}"
    )
