# SPDX-License-Identifier: Apache-2.0

"""
Image storage on Cloudinary.

Needs ``CLOUDINARY_CLOUD_NAME``, ``CLOUDINARY_API_KEY`` and
``CLOUDINARY_API_SECRET``.
"""

import os
import re
import logging
from typing import Any, BinaryIO, Dict, Optional, Union
from opentelemetry import trace
import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_FOLDER = "ecobite"
MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

DATA_URL_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

_TRANSFORMATION = [
    {"quality": "auto"},
    {"fetch_format": "auto"}
]


class ImageStorageError(Exception):
    """Raised when an upload or deletion fails."""
    pass


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and bool(DATA_URL_RE.match(value))


class ImageStorageService:
    """Cloudinary uploader with the same options for every image."""

    def __init__(self, cloud_name: Optional[str] = None, api_key: Optional[str] = None,
                 api_secret: Optional[str] = None):
        self.cloud_name = cloud_name or os.getenv("CLOUDINARY_CLOUD_NAME", "")
        self.api_key = api_key or os.getenv("CLOUDINARY_API_KEY", "")
        self.api_secret = api_secret or os.getenv("CLOUDINARY_API_SECRET", "")

        if self.is_configured():
            cloudinary.config(
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True
            )
            logger.info("Image storage ready (Cloudinary)")
        else:
            logger.warning("Cloudinary not configured. Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET")

    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload(self, image: Union[str, bytes, BinaryIO], folder: str = DEFAULT_FOLDER,
               public_id: Optional[str] = None) -> Dict[str, str]:
        """
        Upload a file, stream, data URL or remote URL.

        Returns:
            ``{url, publicId}``

        Raises:
            ImageStorageError: when not configured or Cloudinary rejects it
        """
        with tracer.start_as_current_span("images.upload") as span:
            span.set_attribute("images.folder", folder)

            if not self.is_configured():
                raise ImageStorageError("Cloudinary not configured")

            options: Dict[str, Any] = {
                "folder": folder,
                "resource_type": "image",
                "transformation": _TRANSFORMATION
            }
            if public_id:
                options["public_id"] = public_id

            try:
                result = cloudinary.uploader.upload(image, **options)
            except CloudinaryError as e:
                span.record_exception(e)
                logger.error(f"Cloudinary upload error: {str(e)}")
                raise ImageStorageError(str(e))

            logger.info(f"Image uploaded to Cloudinary: {result['secure_url']}")
            return {"url": result["secure_url"], "publicId": result["public_id"]}

    def upload_data_url(self, data_url: str, folder: str = DEFAULT_FOLDER) -> Dict[str, str]:
        """Upload a ``data:image/...;base64,`` payload."""
        if not is_data_url(data_url):
            raise ImageStorageError("Image must be a base64 data URL")
        return self.upload(data_url, folder)

    def store_or_passthrough(self, image_url: Optional[str], folder: str = DEFAULT_FOLDER) -> Optional[str]:
        """
        Replace an inline data URL with a hosted URL.

        Regular URLs, and data URLs that cannot be uploaded, are returned
        unchanged so the caller can still save the record.
        """
        if not is_data_url(image_url):
            return image_url

        try:
            return self.upload(image_url, folder)["url"]
        except ImageStorageError as e:
            logger.warning(f"Keeping inline image, upload failed: {str(e)}")
            return image_url

    def delete(self, public_id: str) -> bool:
        """Delete an image. Returns False when not configured."""
        if not self.is_configured():
            logger.info("Cloudinary not configured. Skipping deletion.")
            return False

        try:
            result = cloudinary.uploader.destroy(public_id)
        except CloudinaryError as e:
            logger.error(f"Error deleting image from Cloudinary: {str(e)}")
            raise ImageStorageError(str(e))

        logger.info(f"Image deleted from Cloudinary: {public_id}")
        return result.get("result") == "ok"
