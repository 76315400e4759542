# SPDX-License-Identifier: Apache-2.0

"""
Microsoft (Azure AD) sign-in endpoints.
"""

from urllib.parse import quote
from flask import jsonify, current_app, redirect
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.entities import User
from models.enums import UserType, NotificationType
from models.requests import AzureCallbackQuery
from middleware.error_handler import ValidationException, ServiceUnavailableException
from middleware.validation import parse_query
from services.azure_auth import AzureAuthError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

azure_tag = Tag(name="Microsoft Sign-in", description="Azure AD OAuth login")
azure_auth_bp = APIBlueprint(
    'azure_auth',
    __name__,
    url_prefix='/api/auth/azure',
    abp_tags=[azure_tag]
)


def _require_configured():
    if not current_app.azure_auth_service.is_configured():
        raise ServiceUnavailableException("Microsoft Authentication not configured")


@azure_auth_bp.get('/url')
def auth_url():
    """Authorization URL for the Microsoft login page."""
    _require_configured()
    return jsonify(current_app.azure_auth_service.get_auth_url())


@azure_auth_bp.get('/config')
def auth_config():
    return jsonify({"configured": current_app.azure_auth_service.is_configured()})


@azure_auth_bp.get('/callback')
def auth_callback():
    """
    Finish the Microsoft login.

    Unknown emails get a new ``individual`` account. The browser is sent back
    to the frontend with an EcoBite token, or with an error message.
    """
    with tracer.start_as_current_span("azure_auth.callback") as span:
        query = parse_query(AzureCallbackQuery)
        frontend_url = current_app.config['FRONTEND_URL']

        if query.error:
            message = query.error_description or query.error
            logger.warning(f"Microsoft sign-in cancelled: {message}")
            return redirect(f"{frontend_url}/auth/error?message={quote(message)}")

        if not query.code:
            raise ValidationException("Authorization code is required")

        _require_configured()

        try:
            profile = current_app.azure_auth_service.authenticate(query.code)
        except AzureAuthError as e:
            span.record_exception(e)
            return redirect(f"{frontend_url}/auth/error?message={quote(str(e))}")

        if not profile["email"]:
            return redirect(f"{frontend_url}/auth/error?message={quote('Microsoft account has no email')}")

        mongodb = current_app.mongodb_service
        document = mongodb.find_one("users", {"email": profile["email"]})
        if document:
            user = User.from_document(document)
        else:
            user = User(email=profile["email"], name=profile["name"], type=UserType.INDIVIDUAL, eco_points=0)
            mongodb.create("users", dict(user.to_document(), id=user.id))
            current_app.notification_service.notify(user.id, NotificationType.WELCOME.value)
            logger.info("User created from Microsoft sign-in", extra={"user_id": user.id})

        token = current_app.auth_service.generate_token(user)
        span.set_attribute("user.id", user.id)
        return redirect(f"{frontend_url}/auth/callback?token={token['token']}&email={quote(user.email)}")
