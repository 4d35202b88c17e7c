"""
MealMate - Meal photo uploads.

Local `file://` photos are pushed to Cloudinary (unsigned preset) so the
stored meal references a hosted URL. Upload never raises: any failure
returns None and the caller keeps the local reference.
"""

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

logger = logging.getLogger(__name__)

LOCAL_URI_PREFIX = "file://"


def is_local_uri(uri: str | None) -> bool:
    return bool(uri) and uri.startswith(LOCAL_URI_PREFIX)


def _local_path(uri: str) -> Path:
    return Path(unquote(urlparse(uri).path))


class ImageUploader:
    """Uploads local meal photos to the image host."""

    def __init__(
        self,
        upload_url: str,
        upload_preset: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "ImageUploader":
        return cls(
            upload_url=settings.upload_url,
            upload_preset=settings.cloudinary_upload_preset,
            timeout=settings.upload_timeout_seconds,
        )

    async def upload(self, image_uri: str) -> str | None:
        """
        Upload a local image and return its hosted `secure_url`.

        Returns None on an invalid URI, unreadable file, timeout, non-2xx
        response, or a response without `secure_url`.
        """
        if not image_uri or not isinstance(image_uri, str):
            logger.error(f"Invalid image URI: {image_uri!r}")
            return None

        try:
            content = _local_path(image_uri).read_bytes()
        except OSError as e:
            logger.error(f"Could not read image {image_uri}: {e}")
            return None

        files = {"file": ("upload.jpg", content, "image/jpeg")}
        data = {"upload_preset": self.upload_preset}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.upload_url, files=files, data=data)
        except httpx.TimeoutException:
            logger.error("Image upload timed out")
            return None
        except httpx.HTTPError as e:
            logger.error(f"Error uploading image: {e}")
            return None

        if not response.is_success:
            logger.error(f"Image upload failed ({response.status_code}): {response.text}")
            return None

        try:
            result = response.json()
        except ValueError:
            logger.error(f"Invalid response from image host: {response.text}")
            return None

        secure_url = result.get("secure_url") if isinstance(result, dict) else None
        if not secure_url:
            logger.error(f"Invalid response from image host: {result}")
            return None

        return secure_url
