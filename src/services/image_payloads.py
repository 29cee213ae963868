from pathlib import PurePath

from fastapi import UploadFile

from src.schemas.analysis import ImagePayload

FORMAT_TO_EXT = {
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
}


def detect_image_format(image_bytes: bytes) -> str | None:
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if image_bytes[:2] == b"\xff\xd8":
        return "jpeg"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "webp"
    return None


def _media_type_ext(media_type: str) -> str | None:
    subtype = media_type.partition("/")[2].split(";")[0].strip().lower()
    if subtype == "jpg":
        subtype = "jpeg"
    return FORMAT_TO_EXT.get(subtype)


def upload_filename(image: ImagePayload, index: int) -> str:
    """Name sent with the upload. The remote service infers the file type from its extension."""
    name = PurePath(image.name).name if image.name else ""
    if name and PurePath(name).suffix:
        return name
    fmt = detect_image_format(image.content)
    ext = FORMAT_TO_EXT[fmt] if fmt else _media_type_ext(image.media_type) or "jpg"
    stem = name or f"image-{index + 1}"
    return f"{stem}.{ext}"


async def payload_from_upload(upload: UploadFile) -> ImagePayload:
    content = await upload.read()
    return ImagePayload(
        name=upload.filename or "",
        media_type=upload.content_type or "",
        size_bytes=len(content),
        content=content,
    )
