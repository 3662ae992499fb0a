from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional, Protocol
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from intake.agent.state import ChatStep, UserData, utcnow
from intake.db.models import ChatSession, ChatTurn
from intake.db.session import get_engine, init_db, make_sessionmaker

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class ConcurrentTurnError(StoreError):
    def __init__(self, session_id: str, seq: int):
        super().__init__(f"Turn {seq} of session {session_id} was already recorded by a concurrent request")
        self.session_id = session_id
        self.seq = seq


class HistoryEntry(BaseModel):
    seq: int
    user_text: str
    bot_text: str
    timestamp: datetime
    step: ChatStep


class SessionRecord(BaseModel):
    id: str
    patient_name: str = ""
    phone_number: str = ""
    birth_date: str = ""
    chief_complaint: str = ""
    chat_history: List[HistoryEntry] = []
    updated_at: datetime

    @property
    def user_data(self) -> UserData:
        return UserData(
            patient_name=self.patient_name,
            phone_number=self.phone_number,
            birth_date=self.birth_date,
            chief_complaint=self.chief_complaint,
        )


class SessionStore(Protocol):
    async def load_history(self, session_id: str) -> List[HistoryEntry]:
        """Turnos já gravados, em ordem de seq. Sessão inexistente -> []."""
        ...

    async def record_turn(
        self,
        session_id: str,
        user_data: UserData,
        history: List[HistoryEntry],
        entry: HistoryEntry,
    ) -> None:
        """
        Anexa `entry` ao log somente se `entry.seq` ainda estiver livre
        (senão ConcurrentTurnError) e faz upsert da linha completa da sessão.
        """
        ...

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...


def history_to_json(history: List[HistoryEntry]) -> list:
    return [h.model_dump(mode="json") for h in history]


class SqlSessionStore:
    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessionmaker = make_sessionmaker(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlSessionStore":
        return cls(get_engine(database_url))

    async def create_schema(self) -> None:
        await init_db(self._engine)

    async def load_history(self, session_id: str) -> List[HistoryEntry]:
        stmt = select(ChatTurn).where(ChatTurn.session_id == session_id).order_by(ChatTurn.seq)
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read chat history: {exc}") from exc
        return [
            HistoryEntry(
                seq=r.seq,
                user_text=r.user_text,
                bot_text=r.bot_text,
                timestamp=r.timestamp,
                step=ChatStep(r.step),
            )
            for r in rows
        ]

    async def record_turn(
        self,
        session_id: str,
        user_data: UserData,
        history: List[HistoryEntry],
        entry: HistoryEntry,
    ) -> None:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    session.add(
                        ChatTurn(
                            session_id=session_id,
                            seq=entry.seq,
                            user_text=entry.user_text,
                            bot_text=entry.bot_text,
                            step=entry.step.value,
                            timestamp=entry.timestamp,
                        )
                    )
                    await session.flush()
                    await session.merge(
                        ChatSession(
                            id=session_id,
                            **user_data.model_dump(),
                            chat_history=history_to_json([*history, entry]),
                            updated_at=utcnow(),
                        )
                    )
        except IntegrityError as exc:
            logger.warning("Turn conflict for session %s at seq %s", session_id, entry.seq)
            raise ConcurrentTurnError(session_id, entry.seq) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to save chat session: {exc}") from exc

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        try:
            async with self._sessionmaker() as session:
                row = await session.get(ChatSession, session_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read chat session: {exc}") from exc
        if row is None:
            return None
        return SessionRecord(
            id=row.id,
            patient_name=row.patient_name,
            phone_number=row.phone_number,
            birth_date=row.birth_date,
            chief_complaint=row.chief_complaint,
            chat_history=row.chat_history,
            updated_at=row.updated_at,
        )
