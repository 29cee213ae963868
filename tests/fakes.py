from typing import Any

from src.schemas.analysis import ImagePayload, RunStatus, ThreadMessage


class FakeAssistantClient:
    """In-memory stand-in for the remote assistant service that records every call."""

    def __init__(
        self,
        run_states: list[str] | None = None,
        messages: list[ThreadMessage] | None = None,
        failure_reason: str | None = None,
        fail_upload_at: int | None = None,
        fail_on: dict[str, Exception] | None = None,
    ) -> None:
        self.run_states = list(run_states or ["completed"])
        self.messages = messages if messages is not None else [
            ThreadMessage(message_id="msg_2", role="assistant", texts=['{"scene": "beach"}']),
            ThreadMessage(message_id="msg_1", role="user", texts=["analyze"]),
        ]
        self.failure_reason = failure_reason
        self.fail_upload_at = fail_upload_at
        self.fail_on = fail_on or {}
        self.calls: list[str] = []
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.message_content: list[dict[str, Any]] = []
        self.run_args: dict[str, Any] = {}
        self.closed = False

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    async def upload_file(self, image: ImagePayload, filename: str) -> str:
        self._maybe_fail("upload_file")
        if self.fail_upload_at is not None and len(self.uploaded) + 1 == self.fail_upload_at:
            raise RuntimeError(f"upload of {filename} rejected")
        file_id = f"file_{len(self.uploaded) + 1}"
        self.uploaded.append(file_id)
        return file_id

    async def create_thread(self) -> str:
        self._maybe_fail("create_thread")
        return "thread_1"

    async def create_message(self, thread_id: str, role: str, content: list[dict[str, Any]]) -> None:
        self._maybe_fail("create_message")
        self.message_content = content

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        instructions: str,
        response_format: dict[str, Any],
    ) -> str:
        self._maybe_fail("create_run")
        self.run_args = {
            "thread_id": thread_id,
            "assistant_id": assistant_id,
            "instructions": instructions,
            "response_format": response_format,
        }
        return "run_1"

    async def get_run(self, thread_id: str, run_id: str) -> RunStatus:
        self._maybe_fail("get_run")
        state = self.run_states.pop(0) if len(self.run_states) > 1 else self.run_states[0]
        reason = self.failure_reason if state == "failed" else None
        return RunStatus(run_id=run_id, state=state, failure_reason=reason)

    async def list_messages(self, thread_id: str) -> list[ThreadMessage]:
        self._maybe_fail("list_messages")
        return self.messages

    async def delete_file(self, file_id: str) -> None:
        self._maybe_fail("delete_file")
        self.deleted.append(file_id)

    async def close(self) -> None:
        self.closed = True


def make_payload(name: str = "photo.jpg", media_type: str = "image/jpeg", content: bytes = b"\xff\xd8data") -> ImagePayload:
    return ImagePayload(name=name, media_type=media_type, size_bytes=len(content), content=content)
