from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import JSON, String, Integer, DateTime, Text
from intake.agent.state import utcnow


class Base(DeclarativeBase):
    pass


class ChatSession(Base):
    __tablename__ = "chat_sessions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # dados coletados (texto livre, sem validação)
    patient_name: Mapped[str] = mapped_column(Text, default="")
    phone_number: Mapped[str] = mapped_column(Text, default="")
    birth_date: Mapped[str] = mapped_column(Text, default="")
    chief_complaint: Mapped[str] = mapped_column(Text, default="")
    # projeção de chat_turns, regravada inteira a cada turno
    chat_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ChatTurn(Base):
    """Log append-only; a PK (session_id, seq) serializa turnos concorrentes."""

    __tablename__ = "chat_turns"
    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    user_text: Mapped[str] = mapped_column(Text)
    bot_text: Mapped[str] = mapped_column(Text)
    step: Mapped[str] = mapped_column(String(32))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
