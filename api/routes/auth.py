# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Authentication endpoints: registration, login, logout and password reset.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging
from datetime import datetime

from models.entities import User, UserContext, public_user_document
from models.enums import NotificationType
from models.requests import (
    RegisterRequest,
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    TokenPath
)
from middleware.auth import require_jwt
from middleware.error_handler import (
    ValidationException,
    AuthenticationException,
    NotFoundException
)
from middleware.rate_limit import rate_limit_auth
from middleware.validation import parse_body

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USERS = "users"

# Create API blueprint
auth_tag = Tag(name="Authentication", description="Registration, login and password management")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


def _session_response(user: User) -> dict:
    token = current_app.auth_service.generate_token(user)
    return {
        "token": token["token"],
        "expiresAt": token["expires_at"],
        "user": user.to_public_dict()
    }


@auth_bp.post('/register')
@rate_limit_auth
def register():
    """
    Create an account and sign it in.

    New accounts start with 0 EcoPoints and receive a welcome notification.
    """
    with tracer.start_as_current_span(
        "auth.register",
        attributes={"operation": "register", "ip_address": request.remote_addr}
    ) as span:
        body = parse_body(RegisterRequest)
        span.set_attribute("user.type", body.type)

        mongodb = current_app.mongodb_service
        if mongodb.find_one(USERS, {"email": body.email}):
            span.set_status(Status(StatusCode.ERROR, "User already exists"))
            raise ValidationException("User already exists")

        user = User(
            email=body.email,
            password=current_app.auth_service.hash_password(body.password),
            name=body.name,
            type=body.type,
            organization=body.organization,
            license_id=body.license_id,
            location=body.location,
            lat=body.lat,
            lng=body.lng,
            phone=body.phone,
            eco_points=0
        )

        try:
            mongodb.create(USERS, dict(user.to_document(), id=user.id))
        except ValueError:
            raise ValidationException("User already exists")

        current_app.notification_service.notify(user.id, NotificationType.WELCOME.value)

        span.set_attribute("user.id", user.id)
        logger.info(
            "User registered",
            extra={"user_id": user.id, "user_type": user.type, "ip_address": request.remote_addr}
        )
        return jsonify(_session_response(user)), 201


@auth_bp.post('/login')
@rate_limit_auth
def login():
    """Exchange email and password for a bearer token."""
    with tracer.start_as_current_span(
        "auth.login",
        attributes={"operation": "login", "ip_address": request.remote_addr}
    ) as span:
        body = parse_body(LoginRequest)

        document = current_app.mongodb_service.find_one(USERS, {"email": body.email})
        if not document or not current_app.auth_service.verify_password(body.password, document.get("password")):
            span.set_status(Status(StatusCode.ERROR, "Invalid credentials"))
            logger.warning(
                "Login failed",
                extra={"email": body.email, "ip_address": request.remote_addr}
            )
            raise AuthenticationException("Invalid credentials")

        user = User.from_document(document)
        span.set_attribute("user.id", user.id)
        logger.info("User logged in", extra={"user_id": user.id, "ip_address": request.remote_addr})
        return jsonify(_session_response(user))


@auth_bp.get('/verify')
@require_jwt
def verify(user_context: UserContext):
    """Return the signed-in user."""
    document = current_app.mongodb_service.find_by_id(USERS, user_context.user_id)
    if not document:
        raise NotFoundException("User not found")
    return jsonify({"valid": True, "user": public_user_document(document)})


@auth_bp.post('/logout')
@require_jwt
def logout(user_context: UserContext):
    """Block the presented token until it would have expired."""
    with tracer.start_as_current_span("auth.logout", attributes={"user.id": user_context.user_id}) as span:
        auth_service = current_app.auth_service
        token = current_app.auth_middleware.extract_token_from_request()

        ttl = auth_service.remaining_lifetime(user_context.token_payload or {})
        blocked = False
        if token and ttl > 0:
            blocked = current_app.redis_service.block_token(auth_service.extract_token_id(token), ttl)

        span.set_attribute("auth.token_blocked", blocked)
        logger.info("User logged out", extra={"user_id": user_context.user_id, "token_blocked": blocked})
        return jsonify({"message": "Logged out successfully"})


# Password reset

@auth_bp.post('/forgot-password')
@rate_limit_auth
def forgot_password():
    """
    Start a password reset.

    The response is the same whether or not the email is registered. In
    development the raw token is echoed back for manual testing.
    """
    with tracer.start_as_current_span("auth.forgot_password") as span:
        body = parse_body(ForgotPasswordRequest)
        response = {"message": "If that email exists, a password reset link has been sent"}

        mongodb = current_app.mongodb_service
        document = mongodb.find_one(USERS, {"email": body.email})
        if not document:
            span.set_attribute("auth.user_found", False)
            logger.info("Password reset requested for unknown email")
            return jsonify(response)

        reset = current_app.auth_service.generate_reset_token()
        mongodb.update_by_id(USERS, document["id"], {
            "resetToken": reset["token_hash"],
            "resetTokenExpiry": reset["expires_at"]
        })

        reset_url = f"{current_app.config['FRONTEND_URL']}/reset-password?token={reset['token']}"
        sent = current_app.email_service.send_password_reset(document["email"], document.get("name", ""), reset_url)

        span.set_attributes({"auth.user_found": True, "auth.email_sent": sent})
        logger.info("Password reset token issued", extra={"user_id": document["id"], "email_sent": sent})

        if current_app.config['ENVIRONMENT'] == 'development':
            response["resetToken"] = reset["token"]
            response["resetUrl"] = reset_url
        return jsonify(response)


def _find_by_reset_token(token: str):
    token_hash = current_app.auth_service.hash_reset_token(token)
    return current_app.mongodb_service.find_one(USERS, {
        "resetToken": token_hash,
        "resetTokenExpiry": {"$gt": datetime.utcnow()}
    })


@auth_bp.get('/verify-reset-token/<token>')
def verify_reset_token(path: TokenPath):
    return jsonify({"valid": _find_by_reset_token(path.token) is not None})


@auth_bp.post('/reset-password')
@rate_limit_auth
def reset_password():
    """Set a new password with a valid reset token; the token is single-use."""
    with tracer.start_as_current_span("auth.reset_password") as span:
        body = parse_body(ResetPasswordRequest)

        document = _find_by_reset_token(body.token)
        if not document:
            span.set_status(Status(StatusCode.ERROR, "Invalid or expired token"))
            raise ValidationException("Invalid or expired reset token")

        current_app.mongodb_service.update_by_id(USERS, document["id"], {
            "password": current_app.auth_service.hash_password(body.new_password),
            "resetToken": None,
            "resetTokenExpiry": None
        })

        logger.info("Password reset completed", extra={"user_id": document["id"]})
        return jsonify({"message": "Password has been reset successfully"})


@auth_bp.post('/change-password')
@require_jwt
def change_password(user_context: UserContext):
    with tracer.start_as_current_span("auth.change_password", attributes={"user.id": user_context.user_id}):
        body = parse_body(ChangePasswordRequest)

        mongodb = current_app.mongodb_service
        document = mongodb.find_by_id(USERS, user_context.user_id)
        if not document:
            raise NotFoundException("User not found")

        if not current_app.auth_service.verify_password(body.current_password, document.get("password")):
            raise AuthenticationException("Current password is incorrect")

        mongodb.update_by_id(USERS, user_context.user_id, {
            "password": current_app.auth_service.hash_password(body.new_password)
        })

        logger.info("Password changed", extra={"user_id": user_context.user_id})
        return jsonify({"message": "Password changed successfully"})
