from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from intake.agent.handler import (
    LLMFactory,
    StoreFactory,
    build_llm,
    build_store,
    handle_turn,
)
from intake.config import Settings, settings
from intake.db.store import SqlSessionStore

logging.basicConfig(level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("intake")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # INIT DB (apenas 1x por processo) quando o store é SQL
    if settings.store_backend == "sql" and settings.database_url:
        await SqlSessionStore.from_url(settings.database_url).create_schema()
    yield


app = FastAPI(title="Hospital Intake Chat Handler", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


def get_settings() -> Settings:
    return settings


def get_llm_factory() -> LLMFactory:
    return build_llm


def get_store_factory() -> StoreFactory:
    return build_store


@app.post("/chat-handler")
async def chat_handler(
    request: Request,
    settings: Settings = Depends(get_settings),
    llm_factory: LLMFactory = Depends(get_llm_factory),
    store_factory: StoreFactory = Depends(get_store_factory),
):
    try:
        # corpo cru: o JSON só é lido depois da checagem de segredos
        body = await request.body()
        reply = await handle_turn(body, settings, llm_factory, store_factory)
    except Exception as exc:
        # todas as falhas viram o mesmo envelope 500; o traceback fica no log
        logger.exception("A critical error occurred in the chat handler: %s", exc)
        return JSONResponse({"error": f"Chat handler failed: {exc}"}, status_code=500)
    return {"response": reply}


@app.get("/health")
def health():
    return {"status": "ok"}
