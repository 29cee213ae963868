import mimetypes
from collections.abc import Sequence
from pathlib import Path

import httpx
import structlog

from src.schemas.analysis import AnalysisResponse

logger = structlog.get_logger()

PROCESS_IMAGES_PATH = "/api/process-images"


class ProcessImagesError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text or response.reason_phrase or f"HTTP {response.status_code}"


async def process_images(
    base_url: str,
    api_key: str,
    assistant_id: str,
    paths: Sequence[str | Path],
    *,
    timeout: float = 300.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AnalysisResponse:
    """Submit image files to a running service and return its analysis body.

    A handled orchestration failure comes back as ``AnalysisResponse.error``;
    request-shape and server faults raise :class:`ProcessImagesError`.
    """
    files = []
    for path in map(Path, paths):
        media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        files.append(("files", (path.name, path.read_bytes(), media_type)))

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        response = await client.post(
            PROCESS_IMAGES_PATH,
            data={"apiKey": api_key, "assistantId": assistant_id},
            files=files,
        )

    if response.is_error:
        message = _error_message(response)
        logger.warning("process_images_request_failed", status_code=response.status_code, error=message)
        raise ProcessImagesError(response.status_code, message)
    return AnalysisResponse.model_validate(response.json())
