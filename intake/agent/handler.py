from __future__ import annotations

import json
import logging
from typing import Any, Callable, Protocol

from pydantic import ValidationError

from intake.agent.state import TurnRequest, utcnow
from intake.config import ConfigurationError, Settings
from intake.db.store import HistoryEntry, SessionStore, SqlSessionStore
from intake.llm.adapter import LLMAdapter
from intake.llm.prompts import SYSTEM_INSTRUCTION, build_prompt
from intake.services.supabase import SupabaseSessionStore

__all__ = ["handle_turn", "parse_turn_request", "build_llm", "build_store", "InvalidTurnRequest"]

logger = logging.getLogger(__name__)


class InvalidTurnRequest(ValueError):
    pass


class TextGenerator(Protocol):
    async def generate(self, system: str, user: str) -> str:
        ...


LLMFactory = Callable[[Settings], TextGenerator]
StoreFactory = Callable[[Settings], SessionStore]


def build_llm(settings: Settings) -> TextGenerator:
    return LLMAdapter.from_settings(settings)


def build_store(settings: Settings) -> SessionStore:
    if settings.store_backend == "sql":
        return SqlSessionStore.from_url(settings.database_url or "")
    return SupabaseSessionStore.from_settings(settings)


def parse_turn_request(body: Any) -> TurnRequest:
    """Aceita o corpo já decodificado (dict) ou cru (bytes/str) vindo da API."""
    if isinstance(body, (bytes, str)):
        try:
            body = json.loads(body)
        except ValueError as exc:
            raise InvalidTurnRequest("Invalid request: body is not valid JSON.") from exc
    if not isinstance(body, dict):
        raise InvalidTurnRequest("Invalid request: body must be a JSON object.")
    try:
        return TurnRequest.model_validate(body)
    except ValidationError as exc:
        problems = "; ".join(
            f"'{'.'.join(str(p) for p in err['loc'])}': {err['msg']}" for err in exc.errors()
        )
        raise InvalidTurnRequest(f"Invalid request: {problems}") from exc


async def handle_turn(
    body: Any,
    settings: Settings,
    llm_factory: LLMFactory = build_llm,
    store_factory: StoreFactory = build_store,
) -> str:
    """
    Processa um turno: segredos -> payload -> prompt -> Gemini -> histórico -> upsert.
    Sem retry; qualquer exceção interrompe o turno antes da escrita.
    """
    # 1) segredos
    logger.info("Function invoked. Verifying environment variables...")
    try:
        settings.require_secrets()
    except ConfigurationError as exc:
        logger.error("CRITICAL: missing environment variables: %s", ", ".join(exc.missing))
        raise

    # 2) payload
    req = parse_turn_request(body)
    logger.info("Received request for session %s at step %s.", req.session_id, req.step.value)

    # 3) prompt + Gemini
    llm = llm_factory(settings)
    reply = await llm.generate(SYSTEM_INSTRUCTION, build_prompt(req.step, req.message))
    logger.info("Successfully received Gemini response (%s chars).", len(reply))

    # 4) histórico + upsert
    store = store_factory(settings)
    history = await store.load_history(req.session_id)
    entry = HistoryEntry(
        seq=len(history),
        user_text=req.message,
        bot_text=reply,
        timestamp=utcnow(),
        step=req.step,
    )
    await store.record_turn(req.session_id, req.user_data, history, entry)
    logger.info("Session %s saved with %s turns.", req.session_id, entry.seq + 1)

    return reply
