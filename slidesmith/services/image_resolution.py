"""Image resolution — turn an image-field value into picture bytes.

A value is classified by shape, in priority order:

  url             : starts with http:// or https://
  base64          : starts with data:image/ or base64,
  store_reference : opaque file id, [A-Za-z0-9_-]{25,}
  placeholder     : anything else, rendered as a generated placeholder image

Every outcome is an ``ImageResolution``; nothing here raises to the caller.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from slidesmith.config import get_settings
from slidesmith.core.logging import get_logger

logger = get_logger(__name__)

STORE_REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{25,}$")
DEFAULT_PLACEHOLDER_WIDTH = 400
DEFAULT_PLACEHOLDER_HEIGHT = 300


class ImageKind(str, Enum):
    URL = "url"
    BASE64 = "base64"
    STORE_REFERENCE = "store_reference"
    PLACEHOLDER = "placeholder"
    NONE = "none"


@dataclass
class ImageResolution:
    success: bool
    kind: ImageKind
    blob: bytes | None = None
    content_type: str | None = None
    message: str = ""
    source: str | None = None  # URL, store id or description that was resolved

    @property
    def size(self) -> int:
        return len(self.blob) if self.blob else 0


def classify_image_value(value: Any) -> ImageKind:
    data = str(value)
    if data.startswith(("http://", "https://")):
        return ImageKind.URL
    if data.startswith(("data:image/", "base64,")):
        return ImageKind.BASE64
    if STORE_REFERENCE_PATTERN.match(data):
        return ImageKind.STORE_REFERENCE
    return ImageKind.PLACEHOLDER


def decode_base64_image(data: str) -> tuple[bytes, str]:
    """Decode ``data:<mime>;base64,<payload>`` or ``base64,<payload>``."""
    payload = data.split("base64,", 1)[1] if "base64," in data else data
    payload = payload.strip()
    payload += "=" * (-len(payload) % 4)
    content_type = "image/png"
    if "data:image/" in data:
        content_type = data.split("data:", 1)[1].split(";", 1)[0]
    return base64.b64decode(payload, validate=True), content_type


# ── Opaque file stores ──


class BlobStore(Protocol):
    async def get_by_id(self, file_id: str) -> tuple[bytes, str]:
        """Return ``(bytes, mime_type)``; raise ``LookupError`` when missing."""
        ...


class DirectoryBlobStore:
    """Files stored as ``<dir>/<id>`` or ``<dir>/<id>.<ext>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    async def get_by_id(self, file_id: str) -> tuple[bytes, str]:
        candidates = [self.root / file_id, *sorted(self.root.glob(f"{file_id}.*"))]
        for path in candidates:
            if path.is_file():
                mime, _ = mimetypes.guess_type(path.name)
                return path.read_bytes(), mime or "application/octet-stream"
        raise LookupError(f"File not found in store: {file_id}")


class UrlBlobStore:
    """Files downloadable from a URL template with an ``{id}`` slot."""

    def __init__(
        self,
        url_template: str,
        *,
        timeout: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self.transport = transport

    async def get_by_id(self, file_id: str) -> tuple[bytes, str]:
        url = self.url_template.format(id=file_id)
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport, follow_redirects=True
        ) as client:
            response = await client.get(url)
        if response.status_code == 404:
            raise LookupError(f"File not found in store: {file_id}")
        response.raise_for_status()
        mime = response.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
        return response.content, mime


def get_blob_store(transport: httpx.AsyncBaseTransport | None = None) -> BlobStore:
    settings = get_settings()
    if settings.blob_store_dir:
        return DirectoryBlobStore(settings.blob_store_dir)
    return UrlBlobStore(
        settings.blob_store_url_template,
        timeout=settings.image_fetch_timeout_seconds,
        transport=transport,
    )


# ── Resolver ──


class ImageResolver:
    """Fetches or decodes image bytes for one field value at a time."""

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.transport = transport
        self.timeout = settings.image_fetch_timeout_seconds
        self.placeholder_url_template = settings.placeholder_image_url_template
        self.blob_store = blob_store or get_blob_store(transport)

    async def resolve(
        self,
        field_name: str,
        value: Any,
        context: dict[str, Any] | None = None,
    ) -> ImageResolution:
        context = context or {}
        if value is None or str(value).strip() == "":
            return ImageResolution(success=False, kind=ImageKind.NONE, message="No image data provided")

        data = str(value).strip()
        kind = classify_image_value(data)
        if kind is ImageKind.URL:
            result = await self._from_url(data, ImageKind.URL)
        elif kind is ImageKind.BASE64:
            result = self._from_base64(data)
        elif kind is ImageKind.STORE_REFERENCE:
            result = await self._from_store(data)
        else:
            result = await self._from_placeholder(data, context)

        if result.success:
            logger.debug("image_resolved", field=field_name, kind=kind.value, size=result.size)
        else:
            logger.warning("image_resolution_failed", field=field_name, kind=kind.value, reason=result.message)
        return result

    async def _from_url(self, url: str, kind: ImageKind) -> ImageResolution:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            return ImageResolution(
                success=False, kind=kind, message=f"Error processing image URL: {e}", source=url
            )

        if response.status_code != 200:
            return ImageResolution(
                success=False,
                kind=kind,
                message=f"Failed to fetch image: HTTP {response.status_code}",
                source=url,
            )

        content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        return ImageResolution(
            success=True, kind=kind, blob=response.content, content_type=content_type, source=url
        )

    def _from_base64(self, data: str) -> ImageResolution:
        try:
            blob, content_type = decode_base64_image(data)
        except (binascii.Error, ValueError) as e:
            return ImageResolution(
                success=False, kind=ImageKind.BASE64, message=f"Error processing base64 image: {e}"
            )
        return ImageResolution(success=True, kind=ImageKind.BASE64, blob=blob, content_type=content_type)

    async def _from_store(self, file_id: str) -> ImageResolution:
        try:
            blob, mime = await self.blob_store.get_by_id(file_id)
        except LookupError:
            return ImageResolution(
                success=False, kind=ImageKind.STORE_REFERENCE, message="File not found in store", source=file_id
            )
        except (httpx.HTTPError, OSError) as e:
            return ImageResolution(
                success=False,
                kind=ImageKind.STORE_REFERENCE,
                message=f"Error processing stored image: {e}",
                source=file_id,
            )

        if not mime.startswith("image/"):
            return ImageResolution(
                success=False,
                kind=ImageKind.STORE_REFERENCE,
                message="File is not an image",
                content_type=mime,
                source=file_id,
            )
        return ImageResolution(
            success=True, kind=ImageKind.STORE_REFERENCE, blob=blob, content_type=mime, source=file_id
        )

    async def _from_placeholder(self, description: str, context: dict[str, Any]) -> ImageResolution:
        width = int(context.get("width") or DEFAULT_PLACEHOLDER_WIDTH)
        height = int(context.get("height") or DEFAULT_PLACEHOLDER_HEIGHT)
        url = self.placeholder_url_template.format(width=width, height=height, text=quote(description, safe=""))
        result = await self._from_url(url, ImageKind.PLACEHOLDER)
        if not result.success:
            result.message = f"Error generating image placeholder: {result.message}"
        return result
