from __future__ import annotations
import logging
from typing import Any, List, Optional
import httpx
from intake.agent.state import UserData
from intake.config import Settings
from intake.db.store import (
    ConcurrentTurnError,
    HistoryEntry,
    SessionRecord,
    StoreError,
)

logger = logging.getLogger(__name__)

# PostgREST: .single() sem linhas
ROW_NOT_FOUND = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"
# função SQL em supabase/schema.sql
RECORD_TURN_FN = "record_turn"


class SupabaseError(StoreError):
    def __init__(self, status: int, detail: str, code: Optional[str] = None):
        super().__init__(f"Supabase API error {status}: {detail}")
        self.status = status
        self.detail = detail
        self.code = code


def _error_from(r: httpx.Response) -> SupabaseError:
    code = None
    try:
        body: Any = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
    return SupabaseError(r.status_code, r.text, code)


class SupabaseSessionStore:
    """Store sobre a REST API (PostgREST) do Supabase, autenticado com a service role key."""

    def __init__(
        self,
        url: str,
        service_key: str,
        sessions_table: str = "chat_sessions",
        turns_table: str = "chat_turns",
        timeout: float = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = url.rstrip("/") + "/rest/v1"
        self._headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }
        self._sessions = sessions_table
        self._turns = turns_table
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseSessionStore":
        return cls(
            url=settings.supabase_url or "",
            service_key=settings.supabase_service_role_key or "",
            sessions_table=settings.supabase_sessions_table,
            turns_table=settings.supabase_turns_table,
            timeout=settings.request_timeout_seconds,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"Supabase request failed: {exc}") from exc

    async def load_history(self, session_id: str) -> List[HistoryEntry]:
        r = await self._request(
            "GET",
            f"/{self._turns}",
            params={
                "session_id": f"eq.{session_id}",
                "select": "seq,user_text,bot_text,timestamp,step",
                "order": "seq.asc",
            },
        )
        if r.status_code != 200:
            logger.error("Supabase select error: %s", r.text)
            raise _error_from(r)
        return [HistoryEntry.model_validate(row) for row in r.json()]

    async def record_turn(
        self,
        session_id: str,
        user_data: UserData,
        history: List[HistoryEntry],
        entry: HistoryEntry,
    ) -> None:
        # insert no log + upsert da linha numa só transação (função record_turn no schema.sql);
        # o chat_history é remontado no banco, então `history` não vai no corpo
        r = await self._request(
            "POST",
            f"/rpc/{RECORD_TURN_FN}",
            json={
                "p_session_id": session_id,
                "p_turn": entry.model_dump(mode="json"),
                "p_user_data": user_data.model_dump(),
            },
        )
        if r.status_code == 409:
            logger.warning("Turn conflict for session %s at seq %s", session_id, entry.seq)
            raise ConcurrentTurnError(session_id, entry.seq)
        if r.status_code not in (200, 204):
            logger.error("Supabase record_turn error: %s", r.text)
            raise _error_from(r)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        r = await self._request(
            "GET",
            f"/{self._sessions}",
            params={"id": f"eq.{session_id}", "select": "*"},
            headers={"accept": SINGLE_OBJECT},
        )
        if r.status_code == 200:
            return SessionRecord.model_validate(r.json())
        err = _error_from(r)
        if err.code == ROW_NOT_FOUND:
            return None
        raise err
