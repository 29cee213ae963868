from typing import Any, Protocol

from openai import AsyncOpenAI

from src.config import Settings
from src.schemas.analysis import ImagePayload, RunStatus, ThreadMessage


class AssistantClient(Protocol):
    async def upload_file(self, image: ImagePayload, filename: str) -> str: ...

    async def create_thread(self) -> str: ...

    async def create_message(self, thread_id: str, role: str, content: list[dict[str, Any]]) -> None: ...

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        instructions: str,
        response_format: dict[str, Any],
    ) -> str: ...

    async def get_run(self, thread_id: str, run_id: str) -> RunStatus: ...

    async def list_messages(self, thread_id: str) -> list[ThreadMessage]: ...

    async def delete_file(self, file_id: str) -> None: ...

    async def close(self) -> None: ...


class OpenAIAssistantClient:
    """Thin async adapter over the OpenAI Assistants API.

    Returns plain handles and schema objects so the orchestrator never
    touches SDK types.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        upload_purpose: str = "assistants",
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries)
        self._upload_purpose = upload_purpose

    @classmethod
    def from_settings(cls, api_key: str, settings: Settings) -> "OpenAIAssistantClient":
        return cls(
            api_key,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout,
            max_retries=settings.openai_max_retries,
            upload_purpose=settings.upload_purpose,
        )

    async def upload_file(self, image: ImagePayload, filename: str) -> str:
        uploaded = await self._client.files.create(
            file=(filename, image.content, image.media_type),
            purpose=self._upload_purpose,
        )
        return uploaded.id

    async def create_thread(self) -> str:
        thread = await self._client.beta.threads.create()
        return thread.id

    async def create_message(self, thread_id: str, role: str, content: list[dict[str, Any]]) -> None:
        await self._client.beta.threads.messages.create(thread_id, role=role, content=content)

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        instructions: str,
        response_format: dict[str, Any],
    ) -> str:
        run = await self._client.beta.threads.runs.create(
            thread_id,
            assistant_id=assistant_id,
            instructions=instructions,
            response_format=response_format,
        )
        return run.id

    async def get_run(self, thread_id: str, run_id: str) -> RunStatus:
        run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        failure_reason = run.last_error.message if run.last_error else None
        return RunStatus(run_id=run.id, state=run.status, failure_reason=failure_reason)

    async def list_messages(self, thread_id: str) -> list[ThreadMessage]:
        page = await self._client.beta.threads.messages.list(thread_id, order="desc")
        messages = []
        for message in page.data:
            texts = [part.text.value for part in message.content if part.type == "text"]
            messages.append(ThreadMessage(message_id=message.id, role=message.role, texts=texts))
        return messages

    async def delete_file(self, file_id: str) -> None:
        await self._client.files.delete(file_id)

    async def close(self) -> None:
        await self._client.close()
