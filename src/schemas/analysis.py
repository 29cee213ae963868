from enum import StrEnum

from pydantic import BaseModel, Field


class ImagePayload(BaseModel):
    name: str
    media_type: str
    size_bytes: int
    content: bytes = Field(repr=False)


class RunState(StrEnum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


PENDING_RUN_STATES = frozenset(s.value for s in (RunState.QUEUED, RunState.IN_PROGRESS, RunState.CANCELLING))
FAILED_RUN_STATES = frozenset(
    s.value for s in (RunState.FAILED, RunState.CANCELLED, RunState.EXPIRED, RunState.INCOMPLETE)
)


class RunStatus(BaseModel):
    run_id: str
    state: str
    failure_reason: str | None = None


class ThreadMessage(BaseModel):
    message_id: str
    role: str
    texts: list[str] = []


class AnalysisResult(BaseModel):
    """Outcome of one orchestration call. Exactly one of ``data``/``error`` is set."""

    data: str | None = None
    error: str | None = None
    error_kind: str | None = Field(default=None, exclude=True)

    @classmethod
    def success(cls, data: str) -> "AnalysisResult":
        return cls(data=data)

    @classmethod
    def failure(cls, message: str, kind: str) -> "AnalysisResult":
        return cls(error=message, error_kind=kind)

    @property
    def ok(self) -> bool:
        return self.error is None


class AnalysisResponse(BaseModel):
    data: str | None = None
    error: str | None = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    app: str
