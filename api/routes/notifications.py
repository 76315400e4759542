# SPDX-License-Identifier: Apache-2.0

"""
In-app notification inbox endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.authorization import is_self_or_admin
from models.entities import UserContext
from models.requests import IdPath, UserIdPath
from middleware.auth import require_jwt
from middleware.error_handler import AuthorizationException, NotFoundException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

NOTIFICATIONS = "notifications"
INBOX_LIMIT = 50

notifications_tag = Tag(name="Notifications", description="In-app notification inbox")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)


def _require_inbox_access(user_context: UserContext, user_id: str) -> None:
    if not is_self_or_admin(user_context, user_id):
        raise AuthorizationException("Cannot access another user's notifications")


def _owned_notification(user_context: UserContext, notification_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(NOTIFICATIONS, notification_id)
    if not document:
        raise NotFoundException("Notification not found")
    _require_inbox_access(user_context, document.get("userId"))
    return document


@notifications_bp.get('/user/<user_id>')
@require_jwt
def list_notifications(user_context: UserContext, path: UserIdPath):
    """The newest notifications of a user."""
    _require_inbox_access(user_context, path.user_id)
    return jsonify(current_app.mongodb_service.find(
        NOTIFICATIONS, {"userId": path.user_id}, sort="createdAt", limit=INBOX_LIMIT
    ))


@notifications_bp.get('/user/<user_id>/unread-count')
@require_jwt
def unread_count(user_context: UserContext, path: UserIdPath):
    _require_inbox_access(user_context, path.user_id)
    count = current_app.mongodb_service.count(NOTIFICATIONS, {"userId": path.user_id, "read": False})
    return jsonify({"count": count})


@notifications_bp.put('/<id>/read')
@require_jwt
def mark_read(user_context: UserContext, path: IdPath):
    _owned_notification(user_context, path.id)
    current_app.mongodb_service.update_by_id(NOTIFICATIONS, path.id, {"read": True})
    return jsonify({"success": True})


@notifications_bp.put('/user/<user_id>/read-all')
@require_jwt
def mark_all_read(user_context: UserContext, path: UserIdPath):
    _require_inbox_access(user_context, path.user_id)
    updated = current_app.mongodb_service.update_many(
        NOTIFICATIONS, {"userId": path.user_id, "read": False}, {"read": True}
    )
    return jsonify({"success": True, "updated": updated})


@notifications_bp.delete('/<id>')
@require_jwt
def delete_notification(user_context: UserContext, path: IdPath):
    _owned_notification(user_context, path.id)
    current_app.mongodb_service.delete_by_id(NOTIFICATIONS, path.id)
    return jsonify({"success": True})


@notifications_bp.delete('/user/<user_id>/clear-all')
@require_jwt
def clear_all(user_context: UserContext, path: UserIdPath):
    _require_inbox_access(user_context, path.user_id)
    deleted = current_app.mongodb_service.delete_many(NOTIFICATIONS, {"userId": path.user_id})
    logger.info("Notifications cleared", extra={"user_id": path.user_id, "deleted": deleted})
    return jsonify({"success": True, "deleted": deleted})
