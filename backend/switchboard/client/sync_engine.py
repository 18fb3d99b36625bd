from __future__ import annotations

import asyncio
import logging

from switchboard.client.api_client import ClientError, InboxClient
from switchboard.client.session import AuthSession, current_session
from switchboard.schemas.messages import MessageSchema
from switchboard.schemas.sources import SourceSchema

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5.0

# Provisioned for a user whose first source listing comes back empty
DEFAULT_SOURCE = {"name": "Welcome Chat", "type": "local", "token": "local"}


class ValidationFailure(ValueError):
    """Raised before any request when input is rejected locally."""


class SyncEngine:
    """Client-side mirror of the caller's sources and the active source's messages.

    All state lives on one asyncio event loop. Fetches may overlap; responses
    apply in completion order, except that a message listing is dropped when
    the source it was issued for is no longer active. Any response, failures
    included, is dropped once the session that issued it was cleared or
    replaced.

    Polling refreshes the *active* source every ``poll_interval`` seconds and is
    rescheduled on every source switch. It stops on ``stop_polling()``,
    ``close()``, and when the session is cleared.
    """

    def __init__(
        self,
        client: InboxClient,
        session: AuthSession | None = None,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._client = client
        self._session = session if session is not None else current_session
        self.poll_interval = poll_interval

        self.sources: list[SourceSchema] = []
        self.messages: list[MessageSchema] = []
        self.error: str | None = None
        self.active_source_id: str | None = None

        self._loads_in_flight = 0
        self._provisioning = False
        self._poll_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()
        self._unsubscribe = self._session.subscribe(self._on_session_change)

    @property
    def loading(self) -> bool:
        return self._loads_in_flight > 0

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def clear_error(self) -> None:
        self.error = None

    # ── Operations ───────────────────────────────────────────────────────

    async def refresh_sources(self) -> bool:
        """Replace ``sources`` with the server's list. Returns whether it applied."""
        generation = self._session.generation
        try:
            sources = await self._client.list_sources()
        except ClientError as exc:
            self._fail("refresh_sources", exc, generation)
            return False
        if self._is_stale(generation):
            return False

        self.sources = sources
        self.error = None
        return True

    async def refresh_messages(self, source_id: str) -> bool:
        """Fetch ``source_id``'s messages and make it the active source.

        The response replaces ``messages`` only if ``source_id`` is still active
        when it arrives.
        """
        self.active_source_id = source_id
        return await self._fetch_messages(source_id)

    async def _fetch_messages(self, source_id: str) -> bool:
        generation = self._session.generation
        self._loads_in_flight += 1
        try:
            messages = await self._client.list_messages(source_id)
        except ClientError as exc:
            if source_id == self.active_source_id:
                self._fail("refresh_messages", exc, generation)
            else:
                logger.info("sync: ignoring failure for inactive source %s: %s", source_id, exc)
            return False
        finally:
            self._loads_in_flight -= 1

        if self._is_stale(generation) or source_id != self.active_source_id:
            logger.debug("sync: discarding stale messages for %s", source_id)
            return False

        self.messages = messages
        self.error = None
        return True

    async def send(self, content: str, source_id: str, platform: str) -> MessageSchema | None:
        """Post a message and apply the server's record; nothing changes on failure."""
        if not content or not content.strip():
            raise ValidationFailure("Message content must not be empty")

        generation = self._session.generation
        try:
            message = await self._client.post_message(content, source_id, platform)
        except ClientError as exc:
            self._fail("send", exc, generation)
            return None
        if self._is_stale(generation):
            return message

        if source_id == self.active_source_id and all(m.id != message.id for m in self.messages):
            self.messages = [*self.messages, message]
        self.sources = [
            s.model_copy(update={"last_message": message.content}) if s.id == source_id else s
            for s in self.sources
        ]
        self.error = None
        return message

    async def add_source(self, name: str, type: str, token: str) -> SourceSchema | None:
        generation = self._session.generation
        try:
            source = await self._client.create_source(name, type, token)
        except ClientError as exc:
            self._fail("add_source", exc, generation)
            return None
        if self._is_stale(generation):
            return source

        self.sources = [*self.sources, source]
        self.error = None
        return source

    async def bootstrap(self) -> None:
        """Initial load after sign-in: sources, default source if none, polling."""
        if not await self.refresh_sources():
            return

        if not self.sources and not self._provisioning:
            self._provisioning = True
            try:
                await self.add_source(**DEFAULT_SOURCE)
            finally:
                self._provisioning = False

        if not self.sources:
            return
        if self.active_source_id is None:
            await self.select_source(self.sources[0].id)
        else:
            self.start_polling()

    async def select_source(self, source_id: str) -> bool:
        self.active_source_id = source_id
        self.stop_polling()
        self.start_polling()
        return await self.refresh_messages(source_id)

    # ── Polling ──────────────────────────────────────────────────────────

    def start_polling(self) -> None:
        if self.is_polling:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if not self.sources:
                continue
            if self.active_source_id is None:
                self.active_source_id = self.sources[0].id
            # A tick does not wait for the previous tick's fetch
            task = asyncio.create_task(self._poll_once(self.active_source_id))
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def _poll_once(self, source_id: str) -> bool:
        if source_id != self.active_source_id:
            return False
        return await self._fetch_messages(source_id)

    async def close(self) -> None:
        self.stop_polling()
        for task in list(self._tick_tasks):
            task.cancel()
        self._unsubscribe()

    # ── Internals ────────────────────────────────────────────────────────

    def _on_session_change(self, session: AuthSession) -> None:
        if session.is_authenticated:
            return
        self.stop_polling()
        self.sources = []
        self.messages = []
        self.active_source_id = None
        self.error = None

    def _is_stale(self, generation: int) -> bool:
        """True once the session that issued a request has ended or been replaced."""
        return generation != self._session.generation or not self._session.is_authenticated

    def _fail(self, operation: str, exc: ClientError, generation: int) -> None:
        if self._is_stale(generation):
            logger.info("sync: ignoring %s failure from an ended session: %s", operation, exc)
            return
        logger.warning("sync: %s failed: %s", operation, exc)
        self.error = str(exc) or "Request failed"
