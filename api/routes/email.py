# SPDX-License-Identifier: Apache-2.0

"""
Admin email endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from models.entities import UserContext
from models.requests import EmailRequest, BulkEmailRequest, TestEmailRequest
from middleware.auth import require_admin
from middleware.validation import parse_body

logger = logging.getLogger(__name__)

email_tag = Tag(name="Email", description="Outbound email")
email_bp = APIBlueprint(
    'email',
    __name__,
    url_prefix='/api/email',
    abp_tags=[email_tag]
)


@email_bp.post('/test')
@require_admin
def send_test_email(user_context: UserContext):
    """Send the welcome email to an address to check SMTP settings."""
    body = parse_body(TestEmailRequest)
    sent = current_app.email_service.send_welcome(body.email, "Test User", "individual")
    return jsonify({
        "success": sent,
        "configured": current_app.email_service.is_configured(),
        "message": "Test email sent" if sent else "Test email not sent"
    })


@email_bp.post('/notify')
@require_admin
def notify(user_context: UserContext):
    body = parse_body(EmailRequest)
    sent = current_app.email_service.send_message(body.to, body.subject, body.message)
    logger.info("Admin email sent", extra={"admin_id": user_context.user_id, "delivered": sent})
    return jsonify({"success": sent})


@email_bp.post('/notify-bulk')
@require_admin
def notify_bulk(user_context: UserContext):
    body = parse_body(BulkEmailRequest)
    result = current_app.email_service.send_bulk_message(body.recipients, body.subject, body.message)
    return jsonify(result)
