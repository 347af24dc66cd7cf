"""
Image Generation Backend - Utility Functions
Transient upload storage and data URI encoding
"""

import base64
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError

from .errors import IOCleanupError

logger = logging.getLogger(__name__)

FALLBACK_MIME_TYPE = "image/jpeg"
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ImageAttachment:
    """An uploaded image held in transient storage until the request ends."""
    path: str
    content_type: Optional[str] = None
    filename: Optional[str] = None


async def save_upload(upload: UploadFile, upload_dir: str) -> ImageAttachment:
    """
    Copy an uploaded file part into the upload directory.

    Args:
        upload: File part from the multipart request
        upload_dir: Directory for transient attachments (created if missing)

    Returns:
        ImageAttachment pointing at the stored copy
    """
    await run_in_threadpool(os.makedirs, upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, uuid.uuid4().hex)

    try:
        out = await run_in_threadpool(open, path, "wb")
        try:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                await run_in_threadpool(out.write, chunk)
        finally:
            out.close()
    except BaseException:
        # The caller never sees this attachment, so drop the partial file here
        remove_attachments([ImageAttachment(path=path)])
        raise

    return ImageAttachment(
        path=path,
        content_type=upload.content_type,
        filename=upload.filename,
    )


def detect_mime_type(path: str, declared: Optional[str] = None) -> str:
    """
    Work out the image MIME type of a stored attachment.

    The declared type wins when it is an image/* type. Otherwise the file
    is sniffed with Pillow, and image/jpeg is assumed if that fails too.
    """
    if declared and declared.lower().startswith("image/"):
        return declared.lower()

    try:
        with Image.open(path) as image:
            mime_type = Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, OSError):
        mime_type = None

    return mime_type or FALLBACK_MIME_TYPE


def encode_file_data_uri(attachment: ImageAttachment) -> str:
    """
    Encode a stored attachment as a base64 data URI.

    Args:
        attachment: Attachment to read

    Returns:
        String of the form data:image/<subtype>;base64,<payload>
    """
    with open(attachment.path, "rb") as f:
        data = f.read()

    mime_type = detect_mime_type(attachment.path, attachment.content_type)
    base64_data = base64.b64encode(data).decode("utf-8")

    return f"data:{mime_type};base64,{base64_data}"


def remove_attachments(attachments: Iterable[ImageAttachment]) -> List[IOCleanupError]:
    """
    Delete every attachment from transient storage.

    Failures never interrupt the sweep; each one is logged and returned.
    Files that are already gone are skipped silently.
    """
    failures = []
    for attachment in attachments:
        try:
            os.remove(attachment.path)
        except FileNotFoundError:
            continue
        except OSError as e:
            failure = IOCleanupError(attachment.path, e)
            logger.error(failure.message)
            failures.append(failure)
    return failures


def truncate_data_uris(payload: dict, limit: int = 64) -> dict:
    """Copy of a provider input with data URIs shortened for logging."""
    shortened = {}
    for key, value in payload.items():
        if isinstance(value, str) and value.startswith("data:") and len(value) > limit:
            shortened[key] = f"{value[:limit]}...({len(value)} chars)"
        else:
            shortened[key] = value
    return shortened
