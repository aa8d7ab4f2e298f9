"""Gemini generateContent client used to evaluate student work."""

from __future__ import annotations

import base64
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Protocol

from google import genai
from google.genai import types

from eduassess.pipeline.prompt import EvaluationRequest
from eduassess.settings import DEFAULT_GEMINI_BASE_URL, Settings, settings

logger = logging.getLogger(__name__)

GEMINI_MODEL = "gemini-3-flash-preview"
GEMINI_TEMPERATURE = 0.7


@dataclass(frozen=True)
class GeminiConfig:
    api_key: str
    base_url: str = DEFAULT_GEMINI_BASE_URL
    model: str = GEMINI_MODEL
    temperature: float = GEMINI_TEMPERATURE

    @classmethod
    def from_settings(cls, source: Settings) -> "GeminiConfig":
        return cls(api_key=source.gemini_api_key.strip(), base_url=source.gemini_base_url)


@dataclass
class EvaluationServiceError(Exception):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message


class EvaluationClient(Protocol):
    async def submit(self, request: EvaluationRequest) -> str:
        """Send one evaluation request and return the raw response text."""


def _to_sdk_part(part: dict[str, Any]) -> types.Part:
    inline_data = part.get("inline_data")
    if inline_data is not None:
        return types.Part.from_bytes(data=base64.b64decode(inline_data["data"]), mime_type=inline_data["mime_type"])
    return types.Part.from_text(text=part["text"])


def build_generate_content_request(request: EvaluationRequest, temperature: float) -> dict[str, Any]:
    """Keyword arguments for ``models.generate_content`` minus the model name."""
    return {
        "contents": [types.Content(role="user", parts=[_to_sdk_part(part) for part in request.parts])],
        "config": types.GenerateContentConfig(temperature=temperature),
    }


class GeminiEvaluationClient:
    def __init__(self, config: GeminiConfig, client: genai.Client | None = None) -> None:
        self._config = config
        self._client = client

    def _sdk_client(self) -> genai.Client:
        # Built on first use so a missing key surfaces as a failed evaluation, not a startup error.
        if self._client is None:
            self._client = genai.Client(
                api_key=self._config.api_key,
                http_options=types.HttpOptions(base_url=self._config.base_url),
            )
        return self._client

    async def submit(self, request: EvaluationRequest) -> str:
        started = time.perf_counter()
        try:
            response = await self._sdk_client().aio.models.generate_content(
                model=self._config.model,
                **build_generate_content_request(request, temperature=self._config.temperature),
            )
            text = response.text or ""
        except Exception as exc:
            status_code = getattr(exc, "code", None)
            if not isinstance(status_code, int):
                status_code = None
            raise EvaluationServiceError(
                status_code=status_code,
                body=str(exc),
                message=f"Gemini request failed: {exc}",
            ) from exc

        logger.info(
            "evaluate gemini call complete",
            extra={
                "stage": "call_gemini",
                "model": self._config.model,
                "gemini_ms": int((time.perf_counter() - started) * 1000),
                "response_chars": len(text),
            },
        )
        return text


MOCK_RESPONSE_TEXT = (
    "# BAHOLASH NATIJASI\n"
    "**Umumiy ball:** 4\n"
    "**Xulosa:** Mavzu yaxshi ochib berilgan, lekin manbalar yetarli emas.\n"
    "\n"
    "# BATAFSIL TAHLIL\n"
    "1. Mavzuning ochib berilishi: asosiy tushunchalar to'g'ri yoritilgan.\n"
    "2. Grammatik xatolar: bir nechta imlo xatolari bor.\n"
    "3. Manbalardan foydalanish: faqat bitta manbaga tayanilgan.\n"
    "4. Kreativ yondashuv: misollar mustaqil tanlangan.\n"
)


class MockEvaluationClient:
    async def submit(self, request: EvaluationRequest) -> str:
        _ = request
        return MOCK_RESPONSE_TEXT


def get_evaluation_client() -> EvaluationClient:
    if os.getenv("GEMINI_MOCK", "").strip() == "1":
        return MockEvaluationClient()
    return GeminiEvaluationClient(GeminiConfig.from_settings(settings))
