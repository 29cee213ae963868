import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.config import settings
from src.core.exceptions import AppError
from src.schemas.analysis import AnalysisResponse, ErrorResponse
from src.services.image_analysis import ImageAnalysisOrchestrator, ImageValidationError, validate_request
from src.services.image_payloads import payload_from_upload

logger = structlog.get_logger()

router = APIRouter(prefix="/api")

_orchestrator = ImageAnalysisOrchestrator(settings)


def get_orchestrator() -> ImageAnalysisOrchestrator:
    return _orchestrator


def _is_empty_part(upload: UploadFile) -> bool:
    return not upload.filename and not upload.size


@router.post(
    "/process-images",
    response_model=AnalysisResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def process_images(
    api_key: str | None = Form(None, alias="apiKey"),
    assistant_id: str | None = Form(None, alias="assistantId"),
    files: list[UploadFile] | None = File(None),
    orchestrator: ImageAnalysisOrchestrator = Depends(get_orchestrator),
) -> AnalysisResponse:
    uploads = [upload for upload in files or [] if not _is_empty_part(upload)]
    logger.info(
        "process_images_received",
        file_count=len(uploads),
        has_api_key=bool(api_key),
        has_assistant_id=bool(assistant_id),
    )

    for upload in uploads:
        media_type = upload.content_type or ""
        if not media_type.lower().startswith(settings.allowed_media_prefix):
            logger.info("upload_rejected", filename=upload.filename, media_type=media_type)
            raise AppError(status_code=400, detail="Only image files are allowed")
        if upload.size is not None and upload.size > settings.max_upload_bytes:
            logger.info("upload_rejected", filename=upload.filename, size_bytes=upload.size)
            raise AppError(status_code=400, detail="File too large")

    images = [await payload_from_upload(upload) for upload in uploads]
    try:
        validate_request(
            api_key or "",
            assistant_id or "",
            images,
            max_bytes=settings.max_upload_bytes,
            media_prefix=settings.allowed_media_prefix,
        )
    except ImageValidationError as e:
        raise AppError(status_code=400, detail=e.message) from e

    result = await orchestrator.analyze(api_key or "", assistant_id or "", images)
    logger.info("process_images_finished", ok=result.ok)
    return AnalysisResponse(data=result.data, error=result.error)
