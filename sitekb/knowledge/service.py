"""Knowledge-base service abstraction."""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, wait_fixed

from sitekb.core.config import settings
from sitekb.core.constants import CORPUS_FILENAME_TEMPLATE
from sitekb.core.errors import UploadError
from sitekb.core.utils import compute_content_hash

logger = logging.getLogger(__name__)

FILE_TERMINAL_STATUSES = {"processed", "error"}


class KnowledgeBaseService:
    """Abstract store-and-query knowledge base."""

    async def upload_document(self, text: str) -> str:
        """Upload a document and wait until it is processed. Returns its file id."""
        raise NotImplementedError

    async def create_knowledge_base(
        self, name: str, description: str, instructions: str, file_ids: list[str]
    ) -> str:
        """Create a knowledge base seeded with the given files. Returns its id."""
        raise NotImplementedError

    async def update_knowledge_base(self, knowledge_base_id: str, file_ids: list[str]) -> None:
        """Replace the document set of an existing knowledge base."""
        raise NotImplementedError

    async def delete_knowledge_base(self, knowledge_base_id: str) -> None:
        """Delete a knowledge base."""
        raise NotImplementedError


class OpenAIKnowledgeBaseService(KnowledgeBaseService):
    """Knowledge bases as OpenAI assistants with a ``file_search`` vector store."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        poll_interval: Optional[float] = None,
        upload_timeout: Optional[float] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.openai_assistant_model
        self.poll_interval = poll_interval if poll_interval is not None else settings.upload_poll_interval
        self.upload_timeout = upload_timeout if upload_timeout is not None else settings.upload_timeout_seconds

    async def _wait_for_file(self, file_id: str):
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_result(lambda f: f.status not in FILE_TERMINAL_STATUSES),
                wait=wait_fixed(self.poll_interval),
                stop=stop_after_delay(self.upload_timeout),
            ):
                with attempt:
                    file = await self.client.files.retrieve(file_id)
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(file)
        except RetryError as e:
            raise UploadError(f"file not processed after {self.upload_timeout}s", file_id) from e
        except OpenAIError as e:
            raise UploadError(str(e), file_id) from e
        return file

    async def upload_document(self, text: str) -> str:
        filename = CORPUS_FILENAME_TEMPLATE.format(digest=compute_content_hash(text)[:12])
        try:
            file = await self.client.files.create(
                file=(filename, text.encode("utf-8")),
                purpose="assistants",
            )
        except OpenAIError as e:
            logger.error(f"Error uploading {filename}: {e}")
            raise UploadError(str(e)) from e

        file = await self._wait_for_file(file.id)
        if file.status != "processed":
            raise UploadError(f"file status {file.status}: {file.status_details}", file.id)

        logger.info(f"Uploaded {filename} as {file.id} ({len(text)} chars)")
        return file.id

    async def _create_vector_store(self, name: str, file_ids: list[str]) -> str:
        vector_store = await self.client.vector_stores.create(name=name)
        batch = await self.client.vector_stores.file_batches.create_and_poll(
            vector_store_id=vector_store.id,
            file_ids=file_ids,
            poll_interval_ms=int(self.poll_interval * 1000),
        )
        if batch.status != "completed":
            raise UploadError(f"vector store indexing ended with status {batch.status}")
        return vector_store.id

    async def _delete_vector_store(self, vector_store_id: str, keep: set[str]) -> None:
        """Delete a vector store and the uploaded files it indexed, except ``keep``."""
        try:
            page = await self.client.vector_stores.files.list(vector_store_id=vector_store_id, limit=100)
            stale = [f.id for f in page.data if f.id not in keep]
            await self.client.vector_stores.delete(vector_store_id)
        except OpenAIError as e:
            logger.warning(f"Could not delete old vector store {vector_store_id}: {e}")
            return

        for file_id in stale:
            try:
                await self.client.files.delete(file_id)
            except OpenAIError as e:
                logger.warning(f"Could not delete old corpus file {file_id}: {e}")

    async def create_knowledge_base(
        self, name: str, description: str, instructions: str, file_ids: list[str]
    ) -> str:
        vector_store_id = await self._create_vector_store(name, file_ids)
        assistant = await self.client.beta.assistants.create(
            model=self.model,
            name=name,
            description=description,
            instructions=instructions,
            tools=[{"type": "file_search"}],
            tool_resources={"file_search": {"vector_store_ids": [vector_store_id]}},
        )
        logger.info(f"Created knowledge base {assistant.id} ({name})")
        return assistant.id

    async def update_knowledge_base(self, knowledge_base_id: str, file_ids: list[str]) -> None:
        assistant = await self.client.beta.assistants.retrieve(knowledge_base_id)
        previous = []
        if assistant.tool_resources and assistant.tool_resources.file_search:
            previous = list(assistant.tool_resources.file_search.vector_store_ids or [])

        vector_store_id = await self._create_vector_store(assistant.name or knowledge_base_id, file_ids)
        await self.client.beta.assistants.update(
            knowledge_base_id,
            tool_resources={"file_search": {"vector_store_ids": [vector_store_id]}},
        )

        # Replaced content, not merged
        for old_id in previous:
            await self._delete_vector_store(old_id, keep=set(file_ids))

        logger.info(f"Updated knowledge base {knowledge_base_id} with {len(file_ids)} file(s)")

    async def delete_knowledge_base(self, knowledge_base_id: str) -> None:
        await self.client.beta.assistants.delete(knowledge_base_id)
        logger.info(f"Deleted knowledge base {knowledge_base_id}")


def get_knowledge_base_service() -> KnowledgeBaseService:
    """Get configured knowledge-base service."""
    if not settings.openai_api_key:
        raise ValueError("OpenAI API key not set")
    return OpenAIKnowledgeBaseService()
