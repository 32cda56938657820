"""LanguageModel backend over the Gemini REST API."""

import asyncio
import copy
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from ..config import Settings, get_settings
from ..core.exceptions import APIError, InvalidSessionStateError
from ..core.http_client import AsyncHTTPClient
from .prompt_session import AVAILABLE, UNAVAILABLE, LanguageModel, ModelSession


logger = logging.getLogger(__name__)


def _response_text(raw: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = raw.get("candidates") or []
    if not candidates:
        return ""
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    return "".join(part.get("text") or "" for part in parts)


async def _raise_for_status(response) -> None:
    if response.status == 200:
        return
    if response.status == 429:
        raise APIError("Rate limit exceeded", status_code=429)
    error_text = await response.text()
    logger.error(f"❌ Gemini API error {response.status}: {error_text[:500]}")
    raise APIError(
        f"Gemini API error: {response.status}",
        status_code=response.status,
        response_text=error_text
    )


class GeminiSession(ModelSession):
    """Conversation state kept client-side and replayed with every request."""

    def __init__(self, model: 'GeminiLanguageModel', temperature: float, top_k: int, max_tokens: int,
                 history: Optional[List[Dict[str, Any]]] = None):
        self.model = model
        self.temperature = temperature
        self.top_k = top_k
        self.max_tokens = max_tokens
        self.history: List[Dict[str, Any]] = history or []
        self.destroyed = False

    def _ensure_alive(self) -> None:
        if self.destroyed:
            raise InvalidSessionStateError("The model session has been destroyed")

    def _payload(self, text: str, response_constraint: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": self.temperature,
            "topK": self.top_k,
            "maxOutputTokens": self.max_tokens,
        }
        if response_constraint:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = response_constraint

        return {
            "contents": self.history + [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": generation_config,
        }

    def _remember(self, text: str, answer: str) -> None:
        self.history.append({"role": "user", "parts": [{"text": text}]})
        self.history.append({"role": "model", "parts": [{"text": answer}]})

    async def prompt(self, text: str, response_constraint: Optional[Dict[str, Any]] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> str:
        self._ensure_alive()
        if cancel_event is not None and cancel_event.is_set():
            raise asyncio.CancelledError("Prompt aborted")

        url = f"{self.model.endpoint}/{self.model.model_name}:generateContent"
        payload = self._payload(text, response_constraint)
        logger.debug(f"🌐 Gemini request: {self.model.model_name}, prompt {len(text)} chars")

        client = await self.model.get_http_client()
        response = await client.post(url, json=payload, params={"key": self.model.api_key})
        async with response:
            await _raise_for_status(response)
            raw = await response.json()

        answer = _response_text(raw)
        if not answer:
            raise APIError("Empty Gemini response", status_code=200, response_text=json.dumps(raw)[:500])

        self._remember(text, answer)
        return answer

    async def prompt_streaming(self, text: str, response_constraint: Optional[Dict[str, Any]] = None,
                               cancel_event: Optional[asyncio.Event] = None) -> AsyncIterator[str]:
        """Yield text increments from a server-sent-events stream."""
        self._ensure_alive()

        url = f"{self.model.endpoint}/{self.model.model_name}:streamGenerateContent"
        payload = self._payload(text, response_constraint)
        logger.debug(f"📡 Gemini streaming request: {self.model.model_name}, prompt {len(text)} chars")

        client = await self.model.get_http_client()
        response = await client.post(url, json=payload, params={"key": self.model.api_key, "alt": "sse"})

        pieces = []
        async with response:
            await _raise_for_status(response)

            async for raw_line in response.content:
                if cancel_event is not None and cancel_event.is_set():
                    logger.debug("Gemini stream cancelled")
                    return

                line = raw_line.decode('utf-8', errors='replace').strip()
                if not line.startswith('data:'):
                    continue
                data = line[len('data:'):].strip()
                if not data:
                    continue

                try:
                    event = json.loads(data)
                except ValueError:
                    logger.debug(f"Skipping malformed SSE event: {data[:80]}")
                    continue

                piece = _response_text(event)
                if piece:
                    pieces.append(piece)
                    yield piece

        self._remember(text, "".join(pieces))

    async def clone(self) -> 'GeminiSession':
        self._ensure_alive()
        return GeminiSession(self.model, self.temperature, self.top_k, self.max_tokens,
                             history=copy.deepcopy(self.history))

    async def destroy(self) -> None:
        self.destroyed = True
        self.history = []


class GeminiLanguageModel(LanguageModel):
    """Gemini-backed LanguageModel; unavailable when no API key is configured."""

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[AsyncHTTPClient] = None):
        self.settings = settings or get_settings()
        self.api_key = self.settings.gemini_api_key
        self.endpoint = self.settings.gemini_api_endpoint.rstrip('/')
        self.model_name = self.settings.model
        self._http_client = http_client
        self._owns_client = http_client is None

    async def get_http_client(self) -> AsyncHTTPClient:
        if self._http_client is None:
            self._http_client = AsyncHTTPClient(
                timeout=self.settings.request_timeout,
                rate_limit=self.settings.api_rate_limit,
            )
        await self._http_client.start()
        return self._http_client

    async def availability(self) -> str:
        return AVAILABLE if self.api_key else UNAVAILABLE

    async def params(self) -> Dict[str, Any]:
        return {
            "temperature": self.settings.temperature,
            "top_k": self.settings.top_k,
            "max_tokens": self.settings.max_output_tokens,
        }

    async def create(self, **options) -> GeminiSession:
        # cancel_event is accepted for interface parity; session creation is local
        options.pop("cancel_event", None)
        return GeminiSession(
            self,
            temperature=options.get("temperature", self.settings.temperature),
            top_k=options.get("top_k", self.settings.top_k),
            max_tokens=options.get("max_tokens", self.settings.max_output_tokens),
        )

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.close()
            self._http_client = None
