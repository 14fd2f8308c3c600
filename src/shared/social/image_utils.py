"""Image storage and processing utilities for posts and profile pictures."""

import base64
import binascii
import io
import logging
import os
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import httpx
from fastapi import UploadFile, HTTPException, status
from PIL import Image

# Allowed image MIME types
ALLOWED_IMAGE_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
    'image/webp': '.webp',
    'image/gif': '.gif'
}

# Max file size: 10MB per image
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024

# Thumbnail dimensions
THUMBNAIL_SIZE = (800, 800)  # Max width/height, maintains aspect ratio

PLACEHOLDER_SIZE = (200, 200)
PLACEHOLDER_COLOR = (219, 219, 219)

DOWNLOAD_TIMEOUT_SECONDS = 5.0

UPLOADS_URL_PREFIX = "/uploads"


def get_upload_root() -> Path:
    """Root directory for stored files, from UPLOAD_DIR (default: uploads)."""
    return Path(os.getenv("UPLOAD_DIR", "uploads"))


class ImageKind(str, Enum):
    DATA_URL = "data_url"
    HTTP_URL = "http_url"
    BLOB_REF = "blob_ref"
    RAW_BASE64 = "raw_base64"
    INVALID = "invalid"


@dataclass(frozen=True)
class ImagePayload:
    """An image string sent by a client, tagged with how it should be read."""
    kind: ImageKind
    data: str


def _decode_base64(data: str) -> Optional[bytes]:
    cleaned = re.sub(r'\s', '', data)
    if not cleaned:
        return None
    # Every 4 base64 characters decode to at most 3 bytes
    if len(cleaned) // 4 * 3 > MAX_IMAGE_SIZE_BYTES + 2:
        return None
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        return None


def classify_image(data: Optional[str]) -> ImagePayload:
    """Tag an image string as a data URL, HTTP URL, blob reference, raw base64, or invalid."""
    if data is None or not data.strip():
        return ImagePayload(ImageKind.INVALID, "")

    trimmed = data.strip()
    if trimmed.startswith("data:image/"):
        return ImagePayload(ImageKind.DATA_URL, trimmed)
    if trimmed.startswith("http"):
        return ImagePayload(ImageKind.HTTP_URL, trimmed)
    if trimmed.startswith("blob:"):
        return ImagePayload(ImageKind.BLOB_REF, trimmed)
    if _decode_base64(trimmed) is not None:
        return ImagePayload(ImageKind.RAW_BASE64, trimmed)
    return ImagePayload(ImageKind.INVALID, trimmed)


def extension_for_content_type(content_type: Optional[str]) -> str:
    content_type = (content_type or "").lower()
    if "image/png" in content_type:
        return ".png"
    if "image/gif" in content_type:
        return ".gif"
    if "image/webp" in content_type:
        return ".webp"
    return ".jpg"


def placeholder_image_bytes() -> bytes:
    """A small, valid grey JPEG used whenever a payload can't be turned into an image."""
    buffer = io.BytesIO()
    Image.new('RGB', PLACEHOLDER_SIZE, PLACEHOLDER_COLOR).save(buffer, 'JPEG', quality=85)
    return buffer.getvalue()


def is_valid_image(image_bytes: Optional[bytes]) -> bool:
    """Check that Pillow can parse the bytes as an image."""
    if not image_bytes:
        return False
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.verify()
        return True
    except Exception:
        return False


# Each handler turns a payload into (bytes, extension). None means "use a placeholder".
ImageHandler = Callable[[ImagePayload], Optional[Tuple[bytes, str]]]


def _handle_data_url(payload: ImagePayload) -> Optional[Tuple[bytes, str]]:
    header, sep, encoded = payload.data.partition(",")
    if not sep:
        logging.warning("Data URL without a comma separator, storing placeholder")
        return None
    image_bytes = _decode_base64(encoded)
    if image_bytes is None:
        logging.warning("Data URL body is undecodable or over the size limit, storing placeholder")
        return None
    return image_bytes, extension_for_content_type(header)


def _handle_http_url(payload: ImagePayload) -> Optional[Tuple[bytes, str]]:
    chunks = []
    received = 0
    try:
        with httpx.Client(timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True) as client:
            with client.stream("GET", payload.data) as response:
                if response.status_code != 200:
                    logging.warning(f"Image download from {payload.data} returned HTTP {response.status_code}")
                    return None

                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > MAX_IMAGE_SIZE_BYTES:
                    logging.warning(f"Image at {payload.data} declares {declared} bytes, over the size limit")
                    return None

                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if received > MAX_IMAGE_SIZE_BYTES:
                        logging.warning(f"Image download from {payload.data} exceeded the size limit, aborting")
                        return None
                    chunks.append(chunk)
                content_type = response.headers.get("content-type")
    except httpx.HTTPError as e:
        logging.warning(f"Failed to download image from {payload.data}: {str(e)}")
        return None

    return b"".join(chunks), extension_for_content_type(content_type)


def _handle_blob_ref(payload: ImagePayload) -> Optional[Tuple[bytes, str]]:
    # Browser-local blob: URLs are meaningless on the server
    logging.warning(f"Received blob URL that can't be processed: {payload.data}")
    return None


def _handle_raw_base64(payload: ImagePayload) -> Optional[Tuple[bytes, str]]:
    image_bytes = _decode_base64(payload.data)
    if image_bytes is None:
        return None
    return image_bytes, ".jpg"


def _handle_invalid(payload: ImagePayload) -> Optional[Tuple[bytes, str]]:
    logging.warning("Invalid image payload, storing placeholder")
    return None


IMAGE_HANDLERS: Dict[ImageKind, ImageHandler] = {
    ImageKind.DATA_URL: _handle_data_url,
    ImageKind.HTTP_URL: _handle_http_url,
    ImageKind.BLOB_REF: _handle_blob_ref,
    ImageKind.RAW_BASE64: _handle_raw_base64,
    ImageKind.INVALID: _handle_invalid,
}


def _url_for(relative_path: str) -> str:
    return f"{UPLOADS_URL_PREFIX}/{relative_path}"


def store_image(data: Optional[str], directory: str) -> str:
    """
    Store a client-sent image string under UPLOAD_DIR/<directory>.

    Never raises for bad payloads: anything that can't be decoded into a real
    image is replaced by a placeholder so the owning request still succeeds.

    Returns:
        Public URL of the stored file, e.g. /uploads/posts/3/<uuid>.png
    """
    payload = classify_image(data)
    result = IMAGE_HANDLERS[payload.kind](payload)

    if result is not None and len(result[0]) > MAX_IMAGE_SIZE_BYTES:
        logging.warning(f"Payload of kind {payload.kind.value} is over the size limit, storing placeholder")
        result = None

    if result is not None and not is_valid_image(result[0]):
        logging.warning(f"Payload of kind {payload.kind.value} is not a readable image, storing placeholder")
        result = None

    if result is None:
        image_bytes, extension = placeholder_image_bytes(), ".jpg"
    else:
        image_bytes, extension = result

    target_dir = get_upload_root() / directory
    target_dir.mkdir(parents=True, exist_ok=True)

    filename = f"{uuid.uuid4()}{extension}"
    (target_dir / filename).write_bytes(image_bytes)

    return _url_for(f"{directory}/{filename}")


def resolve_stored_path(path_or_url: str) -> Optional[Path]:
    """Map a stored URL (/uploads/...) or relative path to a file under UPLOAD_DIR."""
    if not path_or_url:
        return None
    relative = path_or_url
    if relative.startswith(UPLOADS_URL_PREFIX + "/"):
        relative = relative[len(UPLOADS_URL_PREFIX) + 1:]
    relative = relative.lstrip("/")

    root = get_upload_root().resolve()
    candidate = (root / relative).resolve()
    # Refuse anything escaping the upload root
    if root != candidate and root not in candidate.parents:
        return None
    return candidate


def delete_file(path_or_url: Optional[str]) -> bool:
    """Delete a stored file if it exists. Returns True if a file was removed."""
    path = resolve_stored_path(path_or_url or "")
    if path is None or not path.is_file():
        return False
    path.unlink()
    return True


def validate_image_file(file: UploadFile) -> None:
    """Validate image file type and size."""
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed types: {', '.join(ALLOWED_IMAGE_TYPES.keys())}"
        )

    file.file.seek(0, os.SEEK_END)
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size > MAX_IMAGE_SIZE_BYTES:
        size_mb = file_size / (1024 * 1024)
        max_mb = MAX_IMAGE_SIZE_BYTES / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image too large ({size_mb:.1f}MB). Maximum size: {max_mb}MB"
        )

    if file_size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file is empty"
        )


def process_image(file: UploadFile, directory: str) -> Tuple[str, Optional[str]]:
    """
    Validate a multipart upload, re-encode it as JPEG and store it.

    Returns:
        Tuple of (image_url, thumbnail_url)
        thumbnail_url is None if image is already small enough
    """
    validate_image_file(file)

    file.file.seek(0)
    image_data = file.file.read()

    try:
        image = Image.open(io.BytesIO(image_data))
        if image.mode in ('RGBA', 'LA', 'P'):
            # Flatten transparency onto white
            rgb_image = Image.new('RGB', image.size, (255, 255, 255))
            if image.mode == 'P':
                image = image.convert('RGBA')
            rgb_image.paste(image, mask=image.split()[-1])
            image = rgb_image
        elif image.mode != 'RGB':
            image = image.convert('RGB')
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid image file: {str(e)}"
        )

    target_dir = get_upload_root() / directory
    target_dir.mkdir(parents=True, exist_ok=True)

    unique_filename = f"{uuid.uuid4()}.jpg"
    image.save(target_dir / unique_filename, 'JPEG', quality=85, optimize=True)

    thumbnail_url = None
    if image.width > THUMBNAIL_SIZE[0] or image.height > THUMBNAIL_SIZE[1]:
        thumbnail_filename = f"{uuid.uuid4()}_thumb.jpg"
        thumbnail_image = image.copy()
        thumbnail_image.thumbnail(THUMBNAIL_SIZE, Image.Resampling.LANCZOS)
        thumbnail_image.save(target_dir / thumbnail_filename, 'JPEG', quality=85, optimize=True)
        thumbnail_url = _url_for(f"{directory}/{thumbnail_filename}")

    return _url_for(f"{directory}/{unique_filename}"), thumbnail_url
