"""Drive a hosted assistant over a batch of uploaded images.

One call of :meth:`ImageAnalysisOrchestrator.analyze` uploads every image,
creates a fresh thread holding a single message that references them, runs
the assistant, polls the run to a terminal state and returns the text of the
newest assistant reply. Uploaded files are always deleted afterwards; the
thread and run are left to the remote service.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import openai
import structlog

from src.config import Settings, settings
from src.schemas.analysis import (
    FAILED_RUN_STATES,
    PENDING_RUN_STATES,
    AnalysisResult,
    ImagePayload,
    RunState,
    RunStatus,
)
from src.services.assistant_client import AssistantClient, OpenAIAssistantClient
from src.services.image_payloads import upload_filename

logger = structlog.get_logger()

T = TypeVar("T")

ClientFactory = Callable[[str], AssistantClient]

RESPONSE_FORMAT: dict[str, Any] = {"type": "json_object"}

_cleanup_tasks: set[asyncio.Future[None]] = set()


class ImageAnalysisError(Exception):
    kind = "analysis_error"
    default_message = "An error occurred while processing with OpenAI"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ImageValidationError(ImageAnalysisError):
    kind = "validation_error"
    default_message = "Invalid request"


class RemoteCallError(ImageAnalysisError):
    kind = "remote_call_error"


class UnsupportedWorkflowError(ImageAnalysisError):
    kind = "unsupported_workflow"
    default_message = "The assistant requires additional input to complete the task"


class ExtractionError(ImageAnalysisError):
    kind = "extraction_error"
    default_message = "No response received from the assistant"


class RunTimeoutError(ImageAnalysisError):
    kind = "run_timeout"
    default_message = "Timed out waiting for the assistant to finish"


def validate_request(
    api_key: str,
    assistant_id: str,
    images: Sequence[ImagePayload],
    *,
    max_bytes: int,
    media_prefix: str,
) -> None:
    if not api_key or not assistant_id:
        raise ImageValidationError("API key and Assistant ID are required")
    if not images:
        raise ImageValidationError("No image files were uploaded")
    for image in images:
        if not image.media_type.lower().startswith(media_prefix):
            raise ImageValidationError("Only image files are allowed")
        if image.size_bytes > max_bytes:
            raise ImageValidationError("File too large")


def _remote_message(exc: Exception) -> str | None:
    if isinstance(exc, openai.APIError):
        return exc.message or None
    return str(exc) or None


async def _call(phase_message: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except ImageAnalysisError:
        raise
    except Exception as e:
        raise RemoteCallError(_remote_message(e) or phase_message) from e


class ImageAnalysisOrchestrator:
    def __init__(
        self,
        settings: Settings = settings,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory or (
            lambda api_key: OpenAIAssistantClient.from_settings(api_key, self.settings)
        )

    async def analyze(self, api_key: str, assistant_id: str, images: Sequence[ImagePayload]) -> AnalysisResult:
        log = logger.bind(analysis_id=uuid.uuid4().hex, assistant_id=assistant_id, image_count=len(images))

        try:
            validate_request(
                api_key,
                assistant_id,
                images,
                max_bytes=self.settings.max_upload_bytes,
                media_prefix=self.settings.allowed_media_prefix,
            )
        except ImageValidationError as e:
            log.warning("analysis_rejected", error=e.message)
            return AnalysisResult.failure(e.message, e.kind)

        handles: list[str | None] = [None] * len(images)
        client: AssistantClient | None = None
        try:
            client = self._client_factory(api_key)
            text = await self._run(client, assistant_id, images, handles, log)
        except ImageAnalysisError as e:
            log.error("analysis_failed", kind=e.kind, error=e.message)
            return AnalysisResult.failure(e.message, e.kind)
        except Exception as e:
            log.exception("analysis_unexpected_error")
            error = ImageAnalysisError(str(e) or None)
            return AnalysisResult.failure(error.message, error.kind)
        finally:
            if client is not None:
                cleanup = asyncio.ensure_future(self._cleanup(client, handles, log))
                _cleanup_tasks.add(cleanup)
                cleanup.add_done_callback(_cleanup_tasks.discard)
                await asyncio.shield(cleanup)

        log.info("analysis_completed", response_length=len(text))
        return AnalysisResult.success(text)

    async def _run(
        self,
        client: AssistantClient,
        assistant_id: str,
        images: Sequence[ImagePayload],
        handles: list[str | None],
        log: structlog.stdlib.BoundLogger,
    ) -> str:
        file_ids = await self._upload_all(client, images, handles, log)

        thread_id = await _call("Failed to create a conversation thread", client.create_thread())
        log = log.bind(thread_id=thread_id)
        content: list[dict[str, Any]] = [{"type": "text", "text": self.settings.analysis_prompt}]
        content.extend({"type": "image_file", "image_file": {"file_id": file_id}} for file_id in file_ids)
        await _call("Failed to attach the images to the thread", client.create_message(thread_id, "user", content))

        run_id = await _call(
            "Failed to start the assistant",
            client.create_run(thread_id, assistant_id, self.settings.run_instructions, RESPONSE_FORMAT),
        )
        log = log.bind(run_id=run_id)
        log.info("run_started")

        await self._wait_for_run(client, thread_id, run_id, log)
        return await self._extract_text(client, thread_id)

    async def _upload_all(
        self,
        client: AssistantClient,
        images: Sequence[ImagePayload],
        handles: list[str | None],
        log: structlog.stdlib.BoundLogger,
    ) -> list[str]:
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_uploads))
        failed = asyncio.Event()

        async def _upload(index: int, image: ImagePayload) -> None:
            async with semaphore:
                if failed.is_set():
                    return
                try:
                    handles[index] = await client.upload_file(image, upload_filename(image, index))
                except Exception:
                    failed.set()
                    raise
                log.debug("image_uploaded", index=index, file_id=handles[index], size_bytes=image.size_bytes)

        results = await asyncio.gather(
            *[_upload(i, image) for i, image in enumerate(images)],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                if isinstance(result, Exception):
                    raise RemoteCallError(_remote_message(result) or "Failed to upload image") from result
                raise result
        return [handle for handle in handles if handle is not None]

    async def _wait_for_run(
        self,
        client: AssistantClient,
        thread_id: str,
        run_id: str,
        log: structlog.stdlib.BoundLogger,
    ) -> RunStatus:
        loop = asyncio.get_running_loop()
        timeout = self.settings.run_poll_timeout
        deadline = loop.time() + timeout if timeout > 0 else None
        message = "Failed to retrieve the assistant run status"

        status = await _call(message, client.get_run(thread_id, run_id))
        while status.state in PENDING_RUN_STATES:
            if deadline is not None and loop.time() >= deadline:
                raise RunTimeoutError()
            await asyncio.sleep(self.settings.run_poll_interval)
            status = await _call(message, client.get_run(thread_id, run_id))

        log.info("run_finished", state=status.state)
        if status.state == RunState.COMPLETED:
            return status
        if status.state == RunState.REQUIRES_ACTION:
            raise UnsupportedWorkflowError()
        if status.state in FAILED_RUN_STATES:
            raise RemoteCallError(status.failure_reason or "The assistant failed to process the images")
        raise RemoteCallError(f"Unexpected run status: {status.state}")

    async def _extract_text(self, client: AssistantClient, thread_id: str) -> str:
        messages = await _call("Failed to retrieve the assistant response", client.list_messages(thread_id))
        for message in messages:
            if message.role == "assistant":
                if not message.texts:
                    raise ExtractionError("The assistant response contained no text")
                return message.texts[0]
        raise ExtractionError()

    async def _cleanup(
        self,
        client: AssistantClient,
        handles: list[str | None],
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        file_ids = [handle for handle in handles if handle is not None]

        async def _delete(file_id: str) -> None:
            try:
                await client.delete_file(file_id)
            except Exception as e:
                log.warning("file_delete_failed", file_id=file_id, error=str(e))

        await asyncio.gather(*[_delete(file_id) for file_id in file_ids])
        if file_ids:
            log.info("files_deleted", count=len(file_ids))
        try:
            await client.close()
        except Exception as e:
            log.warning("client_close_failed", error=str(e))
