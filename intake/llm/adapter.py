from __future__ import annotations
import logging
from typing import Optional
from openai import AsyncOpenAI, OpenAIError
from intake.config import Settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    pass


class LLMAdapter:
    """
    Gera a resposta do bot com o Gemini através do SDK da OpenAI
    (endpoint compatível com OpenAI do Google). Uma chamada por turno, sem retry.
    """

    def __init__(self, api_key: str, model: str, base_url: str, client: Optional[AsyncOpenAI] = None):
        self.model = model
        # o SDK tenta de novo 2x por padrão; aqui é uma chamada por turno
        self._openai = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMAdapter":
        return cls(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
        )

    async def generate(self, system: str, user: str) -> str:
        try:
            r = await self._openai.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except OpenAIError as exc:
            raise LLMError(f"Gemini API error: {exc}") from exc

        content = r.choices[0].message.content if r.choices else None
        if not content or not content.strip():
            logger.error("Gemini response was empty. Full response object: %r", r)
            raise LLMError("Received an empty response from Gemini API.")
        return content
