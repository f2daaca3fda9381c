"""Conversation service abstraction."""

import logging
from typing import Callable, Optional

from openai import AsyncOpenAI
from tenacity import AsyncRetrying, retry_if_result, stop_never, wait_fixed

from sitekb.core.config import settings
from sitekb.core.constants import DEFAULT_MESSAGE_LIMIT, MESSAGE_ORDER_DESC
from sitekb.core.errors import RunFailedError
from sitekb.generation.models import RunInfo, RunStatus, ThreadMessage

logger = logging.getLogger(__name__)

StatusCallback = Callable[[RunStatus], None]


class ConversationService:
    """Abstract conversation thread store with inference runs."""

    async def create_thread(self) -> str:
        """Create a thread and return its id."""
        raise NotImplementedError

    async def get_thread(self, thread_id: str) -> str:
        """Resolve an existing thread, returning its id."""
        raise NotImplementedError

    async def append_message(self, thread_id: str, content: str, role: str) -> str:
        """Add a message to a thread and return the message id."""
        raise NotImplementedError

    async def start_run(
        self,
        thread_id: str,
        knowledge_base_id: str,
        on_status: Optional[StatusCallback] = None,
    ) -> RunInfo:
        """Run inference on a thread and block until a terminal status."""
        raise NotImplementedError

    async def list_messages(
        self, thread_id: str, limit: int = DEFAULT_MESSAGE_LIMIT, order: str = MESSAGE_ORDER_DESC
    ) -> list[ThreadMessage]:
        """Most recent messages of a thread."""
        raise NotImplementedError


def _message_text(message) -> str:
    parts = []
    for block in message.content:
        if block.type == "text":
            parts.append(block.text.value)
    return "\n".join(parts)


PENDING_RUN_STATUSES = frozenset(status.value for status in RunStatus if not status.is_terminal)


def _run_status(run) -> RunStatus:
    """Map a run's raw status, failing the run on values the service has not documented."""
    try:
        return RunStatus(run.status)
    except ValueError:
        raise RunFailedError(
            str(run.status), {"message": f"unknown run status {run.status!r}"}, run_id=run.id
        ) from None


class OpenAIConversationService(ConversationService):
    """Threads and runs of the OpenAI assistants API."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        poll_interval: Optional[float] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.openai_assistant_model
        self.poll_interval = poll_interval if poll_interval is not None else settings.run_poll_interval

    async def create_thread(self) -> str:
        thread = await self.client.beta.threads.create()
        logger.info(f"Created thread {thread.id}")
        return thread.id

    async def get_thread(self, thread_id: str) -> str:
        thread = await self.client.beta.threads.retrieve(thread_id)
        return thread.id

    async def append_message(self, thread_id: str, content: str, role: str) -> str:
        message = await self.client.beta.threads.messages.create(thread_id, role=role, content=content)
        return message.id

    async def start_run(
        self,
        thread_id: str,
        knowledge_base_id: str,
        on_status: Optional[StatusCallback] = None,
    ) -> RunInfo:
        run = await self.client.beta.threads.runs.create(
            thread_id=thread_id,
            assistant_id=knowledge_base_id,
            model=self.model,
        )
        last_status = _run_status(run)
        if on_status is not None:
            on_status(last_status)

        # Poll until terminal; abandoning the wait is left to the caller
        async for attempt in AsyncRetrying(
            retry=retry_if_result(lambda r: r.status in PENDING_RUN_STATUSES),
            wait=wait_fixed(self.poll_interval),
            stop=stop_never,
        ):
            with attempt:
                run = await self.client.beta.threads.runs.retrieve(run.id, thread_id=thread_id)
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(run)
                status = _run_status(run)
                if status != last_status:
                    last_status = status
                    if on_status is not None:
                        on_status(status)

        logger.info(f"Run {run.id} on thread {thread_id} finished with status {run.status}")
        return RunInfo(
            id=run.id,
            thread_id=run.thread_id,
            status=last_status,
            last_error=run.last_error.model_dump() if run.last_error else None,
        )

    async def list_messages(
        self, thread_id: str, limit: int = DEFAULT_MESSAGE_LIMIT, order: str = MESSAGE_ORDER_DESC
    ) -> list[ThreadMessage]:
        page = await self.client.beta.threads.messages.list(thread_id, limit=limit, order=order)
        return [
            ThreadMessage(
                id=message.id,
                thread_id=message.thread_id,
                role=message.role,
                content=_message_text(message),
                created_at=message.created_at,
            )
            for message in page.data
        ]


def get_conversation_service() -> ConversationService:
    """Get configured conversation service."""
    if not settings.openai_api_key:
        raise ValueError("OpenAI API key not set")
    return OpenAIConversationService()
