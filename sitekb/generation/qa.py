"""Question answering against a site's knowledge base."""

import asyncio
import logging
from typing import Optional

from sitekb.core.constants import DEFAULT_MESSAGE_LIMIT, MESSAGE_ORDER_DESC, USER_ROLE
from sitekb.core.errors import RunFailedError, UnknownSiteError
from sitekb.core.utils import normalize_site_url, truncate_text
from sitekb.generation.conversation import ConversationService
from sitekb.generation.models import RunInfo, RunStatus, SessionState, ThreadMessage
from sitekb.knowledge.registry import SiteRegistry

logger = logging.getLogger(__name__)


class QASession:
    """Drives one question through its thread and run.

    States advance ``NO_THREAD -> THREAD_READY -> MESSAGE_APPENDED ->
    RUN_QUEUED -> RUN_RUNNING`` and end in ``RUN_COMPLETED`` or
    ``RUN_FAILED``.
    """

    def __init__(
        self,
        conversations: ConversationService,
        knowledge_base_id: str,
        thread_id: Optional[str] = None,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        run_timeout: Optional[float] = None,
    ):
        self.conversations = conversations
        self.knowledge_base_id = knowledge_base_id
        self.requested_thread_id = thread_id
        self.thread_id: Optional[str] = None
        self.message_limit = message_limit
        self.run_timeout = run_timeout
        self.state = SessionState.NO_THREAD
        self.run: Optional[RunInfo] = None

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"Session {self.thread_id}: {self.state.value} -> {state.value}")
        self.state = state

    def _on_run_status(self, status: RunStatus) -> None:
        if status.is_terminal:
            return
        target = SessionState.RUN_QUEUED if status == RunStatus.QUEUED else SessionState.RUN_RUNNING
        if self.state != target:
            self._transition(target)

    async def _open_thread(self) -> None:
        if self.requested_thread_id:
            self.thread_id = await self.conversations.get_thread(self.requested_thread_id)
        else:
            self.thread_id = await self.conversations.create_thread()
        self._transition(SessionState.THREAD_READY)

    async def _run(self) -> RunInfo:
        self._transition(SessionState.RUN_QUEUED)
        run = self.conversations.start_run(self.thread_id, self.knowledge_base_id, on_status=self._on_run_status)
        try:
            if self.run_timeout is None:
                return await run
            return await asyncio.wait_for(run, timeout=self.run_timeout)
        except RunFailedError:
            self._transition(SessionState.RUN_FAILED)
            raise
        except asyncio.TimeoutError as e:
            self._transition(SessionState.RUN_FAILED)
            raise RunFailedError(
                "timed_out", {"message": f"run did not finish within {self.run_timeout}s"}
            ) from e

    async def ask(self, content: str) -> list[ThreadMessage]:
        """Append the user's question, run it, and return the latest messages."""
        await self._open_thread()

        await self.conversations.append_message(self.thread_id, content, USER_ROLE)
        self._transition(SessionState.MESSAGE_APPENDED)

        self.run = await self._run()
        if self.run.status != RunStatus.COMPLETED:
            self._transition(SessionState.RUN_FAILED)
            raise RunFailedError(self.run.status.value, self.run.last_error, run_id=self.run.id)
        self._transition(SessionState.RUN_COMPLETED)

        return await self.conversations.list_messages(
            self.thread_id, limit=self.message_limit, order=MESSAGE_ORDER_DESC
        )


class QASessionManager:
    """Resolves a site's knowledge base and runs questions against it."""

    def __init__(
        self,
        registry: SiteRegistry,
        conversations: ConversationService,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        run_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.conversations = conversations
        self.message_limit = message_limit
        self.run_timeout = run_timeout

    def session_for(self, site_url: str, thread_id: Optional[str] = None) -> QASession:
        """Build a session bound to the site's knowledge base.

        Raises ``UnknownSiteError`` before anything touches the conversation
        service.
        """
        knowledge_base_id = self.registry.lookup(site_url)
        if knowledge_base_id is None:
            raise UnknownSiteError(normalize_site_url(site_url))
        return QASession(
            self.conversations,
            knowledge_base_id,
            thread_id=thread_id,
            message_limit=self.message_limit,
            run_timeout=self.run_timeout,
        )

    async def ask(self, site_url: str, content: str, thread_id: Optional[str] = None) -> list[ThreadMessage]:
        """Ask a question about a site, newest messages first."""
        session = self.session_for(site_url, thread_id)
        logger.info(f"Question for {normalize_site_url(site_url)}: {truncate_text(content, 120)}")
        return await session.ask(content)
