from __future__ import annotations
import httpx
from typing import Any, Dict, Optional
from intake.agent.state import TurnRequest
from intake.config import Settings

NO_RESPONSE_TEXT = "응답을 받지 못했습니다. 다시 시도해주세요."
UNKNOWN_ERROR_TEXT = "알 수 없는 오류가 발생했습니다."


class HandlerCallError(RuntimeError):
    def __init__(self, detail: str, status: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status = status


def extract_error_detail(r: httpx.Response) -> str:
    """Usa o campo `error` do envelope JSON do handler; senão, o corpo cru."""
    try:
        body: Any = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return r.text or f"HTTP {r.status_code}"


class HandlerClient:
    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "HandlerClient":
        return cls(
            url=settings.handler_url,
            api_key=settings.handler_api_key,
            timeout=settings.request_timeout_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json", "content-type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["authorization"] = f"Bearer {self._api_key}"
        return headers

    async def send_turn(self, request: TurnRequest) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                r = await client.post(self.url, json=request.to_payload())
        except httpx.HTTPError as exc:
            raise HandlerCallError(str(exc) or UNKNOWN_ERROR_TEXT) from exc

        if r.status_code != 200:
            raise HandlerCallError(extract_error_detail(r), r.status_code)
        try:
            data: Any = r.json()
        except ValueError as exc:
            raise HandlerCallError(r.text or UNKNOWN_ERROR_TEXT, r.status_code) from exc
        if isinstance(data, dict) and data.get("response"):
            return str(data["response"])
        return NO_RESPONSE_TEXT
