# SPDX-License-Identifier: Apache-2.0

"""
Image upload endpoints backed by Cloudinary.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.entities import UserContext
from models.requests import ImageUrlUploadRequest, PublicIdPath
from middleware.auth import require_jwt
from middleware.error_handler import CustomException, ValidationException, ServiceUnavailableException
from middleware.validation import parse_body
from services.image_storage import (
    ImageStorageError,
    is_data_url,
    MAX_IMAGE_BYTES,
    ALLOWED_IMAGE_TYPES,
    DEFAULT_FOLDER
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ALLOWED_EXTENSIONS = ("jpeg", "jpg", "png", "gif", "webp")

images_tag = Tag(name="Images", description="Image hosting")
images_bp = APIBlueprint(
    'images',
    __name__,
    url_prefix='/api/images',
    abp_tags=[images_tag]
)


def _upload(image, folder: str, public_id: str = None) -> dict:
    storage = current_app.image_storage_service
    if not storage.is_configured():
        raise ServiceUnavailableException("Image storage not configured")
    try:
        return storage.upload(image, folder, public_id)
    except ImageStorageError as e:
        raise CustomException(f"Failed to upload image: {str(e)}", 502, "bad-gateway")


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


@images_bp.post('/upload')
@require_jwt
def upload_image(user_context: UserContext):
    """Upload a multipart ``image`` file (JPEG, PNG, GIF or WebP, up to 10 MB)."""
    with tracer.start_as_current_span("images.upload_file", attributes={"user.id": user_context.user_id}) as span:
        file = request.files.get("image")
        if file is None or not file.filename:
            raise ValidationException("No image file provided")

        if file.mimetype not in ALLOWED_IMAGE_TYPES or _extension(file.filename) not in ALLOWED_EXTENSIONS:
            raise ValidationException("Only image files (JPEG, PNG, GIF, WebP) are allowed")

        content = file.read()
        span.set_attribute("images.size", len(content))
        if len(content) > MAX_IMAGE_BYTES:
            raise ValidationException("Image must be 10MB or smaller")

        result = _upload(content, request.form.get("folder") or DEFAULT_FOLDER, request.form.get("publicId"))
        logger.info("Image uploaded", extra={"user_id": user_context.user_id, "public_id": result["publicId"]})
        return jsonify(dict(result, success=True, message="Image uploaded successfully"))


@images_bp.post('/upload-url')
@require_jwt
def upload_image_url(user_context: UserContext):
    """Upload a base64 ``data:image/...`` payload."""
    body = parse_body(ImageUrlUploadRequest)
    if not is_data_url(body.image):
        raise ValidationException("Image must be a base64 data URL")

    result = _upload(body.image, body.folder or DEFAULT_FOLDER)
    return jsonify(dict(result, success=True, message="Image uploaded successfully"))


@images_bp.delete('/delete/<path:public_id>')
@require_jwt
def delete_image(user_context: UserContext, path: PublicIdPath):
    try:
        deleted = current_app.image_storage_service.delete(path.public_id)
    except ImageStorageError as e:
        raise CustomException(f"Failed to delete image: {str(e)}", 502, "bad-gateway")

    logger.info("Image delete requested", extra={"public_id": path.public_id, "deleted": deleted})
    return jsonify({"success": deleted, "message": "Image deleted successfully" if deleted else "Image not deleted"})


@images_bp.get('/config')
def image_config():
    return jsonify({"configured": current_app.image_storage_service.is_configured()})
