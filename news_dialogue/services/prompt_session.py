"""Model session management: reuse, cloning, one-time sessions and corruption recovery."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..core.exceptions import InvalidSessionStateError, ModelUnavailableError


logger = logging.getLogger(__name__)

AVAILABLE = "available"
DOWNLOADABLE = "downloadable"
UNAVAILABLE = "unavailable"

ChunkCallback = Callable[[Any, bool], None]


class ModelSession(ABC):
    """A conversation with the language model."""

    @abstractmethod
    async def prompt(self, text: str, response_constraint: Optional[Dict[str, Any]] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> str:
        """Send ``text`` and return the complete response text."""
        pass

    @abstractmethod
    def prompt_streaming(self, text: str, response_constraint: Optional[Dict[str, Any]] = None,
                         cancel_event: Optional[asyncio.Event] = None) -> AsyncIterator[str]:
        """Send ``text`` and yield incremental pieces of the response."""
        pass

    @abstractmethod
    async def clone(self) -> 'ModelSession':
        pass

    @abstractmethod
    async def destroy(self) -> None:
        pass


class LanguageModel(ABC):
    """Factory for model sessions."""

    @abstractmethod
    async def availability(self) -> str:
        """One of ``available``, ``downloadable`` or ``unavailable``."""
        pass

    @abstractmethod
    async def params(self) -> Dict[str, Any]:
        """Default session parameters (temperature, top_k, max_tokens)."""
        pass

    @abstractmethod
    async def create(self, **options) -> ModelSession:
        pass


def is_session_corrupted(error: BaseException) -> bool:
    """True for errors that mean the session itself is unusable."""
    if isinstance(error, InvalidSessionStateError):
        return True
    if type(error).__name__ == 'InvalidStateError':
        return True
    return 'session' in str(error)


class PromptSessionManager:
    """Owns the reusable model session.

    The session is created lazily and reused across prompts. Concurrent
    callers share a single creation. A corrupted session is destroyed and
    recreated once; a second failure propagates. Hosts call ``shutdown()``
    when suspending or reloading.
    """

    def __init__(self, model: LanguageModel):
        self.model = model
        self.session: Optional[ModelSession] = None
        self.session_params: Optional[Dict[str, Any]] = None
        self._creation_task: Optional[asyncio.Task] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.destroy()

    @property
    def is_creating(self) -> bool:
        return self._creation_task is not None and not self._creation_task.done()

    async def check_availability(self) -> str:
        availability = await self.model.availability()
        if availability == UNAVAILABLE:
            raise ModelUnavailableError("Language model is not available")
        return availability

    async def get_or_create_session(self, cancel_event: Optional[asyncio.Event] = None) -> ModelSession:
        if self.session is not None:
            logger.debug("♻️ Reusing existing model session")
            return self.session

        if self.is_creating:
            logger.debug("⏳ Waiting for ongoing session creation...")
            return await asyncio.shield(self._creation_task)

        self._creation_task = asyncio.ensure_future(self._create_new_session(cancel_event))
        try:
            self.session = await asyncio.shield(self._creation_task)
            return self.session
        finally:
            self._creation_task = None

    async def _create_new_session(self, cancel_event: Optional[asyncio.Event] = None) -> ModelSession:
        logger.info("🆕 Creating new model session...")

        await self.check_availability()

        params = await self.model.params()
        self.session_params = params
        logger.debug(f"🚀 Session params: {params}")

        session = await self.model.create(**params, cancel_event=cancel_event)
        logger.info("✅ Model session created")
        return session

    async def clone_session(self) -> ModelSession:
        """Independent copy of the cached session, for parallel requests."""
        if self.session is None:
            logger.warning("⚠️ No session to clone, creating new session instead")
            return await self.get_or_create_session()

        try:
            cloned = await self.session.clone()
            logger.debug("👯 Session cloned")
            return cloned
        except Exception as e:
            logger.error(f"❌ Session clone failed, creating new session: {e}")
            return await self.get_or_create_session()

    @asynccontextmanager
    async def one_time_session(self, cancel_event: Optional[asyncio.Event] = None):
        """Fresh session for a single request, destroyed on exit even on error."""
        await self.check_availability()
        params = await self.model.params()
        session = await self.model.create(**params, cancel_event=cancel_event)
        try:
            yield session
        finally:
            try:
                await session.destroy()
                logger.debug("🗑️ One-time session destroyed")
            except Exception as e:
                logger.warning(f"⚠️ One-time session destruction failed: {e}")

    async def prompt(self, text: str, schema: Optional[Dict[str, Any]] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> str:
        session = await self.get_or_create_session(cancel_event)

        try:
            return await session.prompt(text, response_constraint=schema, cancel_event=cancel_event)
        except Exception as e:
            if not is_session_corrupted(e):
                raise
            logger.warning(f"🔄 Session corrupted ({e}), destroying and retrying...")
            await self.destroy()
            session = await self.get_or_create_session(cancel_event)
            return await session.prompt(text, response_constraint=schema, cancel_event=cancel_event)

    async def prompt_streaming(self, text: str, schema: Optional[Dict[str, Any]] = None,
                               cancel_event: Optional[asyncio.Event] = None,
                               on_chunk: Optional[ChunkCallback] = None) -> str:
        """Stream a prompt and return the accumulated response text.

        ``on_chunk(parsed, False)`` fires whenever the text so far is valid JSON.
        A corrupted session is only retried when it failed before yielding
        anything; once chunks have been received the error propagates, so
        ``on_chunk`` never sees a replayed stream.
        """
        session = await self.get_or_create_session(cancel_event)
        received: List[str] = []

        try:
            return await self._collect_stream(session, text, schema, cancel_event, on_chunk, received)
        except Exception as e:
            if not is_session_corrupted(e):
                raise
            if received:
                logger.warning(f"⚠️ Session failed after {len(received)} chunks, not replaying stream: {e}")
                await self.destroy()
                raise
            logger.warning(f"🔄 Session corrupted ({e}), destroying and retrying...")
            await self.destroy()
            session = await self.get_or_create_session(cancel_event)
            return await self._collect_stream(session, text, schema, cancel_event, on_chunk, received)

    async def _collect_stream(self, session: ModelSession, text: str,
                              schema: Optional[Dict[str, Any]],
                              cancel_event: Optional[asyncio.Event],
                              on_chunk: Optional[ChunkCallback],
                              received: List[str]) -> str:
        full_response = ''

        async for chunk in session.prompt_streaming(text, response_constraint=schema, cancel_event=cancel_event):
            received.append(chunk)
            full_response += chunk

            if on_chunk is not None:
                try:
                    parsed = json.loads(full_response)
                except ValueError:
                    continue
                on_chunk(parsed, False)

        logger.debug(f"✅ Streaming completed. Received {len(received)} chunks")
        return full_response

    async def destroy(self) -> None:
        if self.session is None:
            return
        session, self.session = self.session, None
        self.session_params = None
        try:
            await session.destroy()
            logger.debug("🗑️ Model session destroyed")
        except Exception as e:
            logger.warning(f"⚠️ Error during session destruction: {e}")

    async def shutdown(self) -> None:
        """Host hook for suspend/reload."""
        if self._creation_task is not None and not self._creation_task.done():
            self._creation_task.cancel()
        await self.destroy()

    def get_status(self) -> Dict[str, Any]:
        return {
            'has_session': self.session is not None,
            'is_creating': self.is_creating,
            'params': self.session_params,
        }
