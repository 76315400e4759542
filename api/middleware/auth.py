# SPDX-License-Identifier: Apache-2.0

"""
Bearer token authentication for the EcoBite API.

Views opt in with ``require_jwt``, ``optional_jwt`` or ``require_admin``; the
decorated view receives the caller's ``UserContext`` (or ``None`` for an
anonymous optional call) as its first argument. The middleware instance is
looked up on ``current_app`` at request time so tests can swap it.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Callable
from opentelemetry import trace
import logging

from domain.authorization import permissions_for_role
from models.entities import UserContext
from services.auth import TokenValidationError
from utils.request import HeaderUtils

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """Validates bearer tokens against the signing key and the logout blocklist."""

    def __init__(self, auth_service, redis_service):
        self.auth_service = auth_service
        self.redis_service = redis_service

    def extract_token_from_request(self) -> Optional[str]:
        return HeaderUtils.get_bearer_token()

    def authenticate(self, token: str) -> UserContext:
        """
        Resolve the caller behind ``token``.

        Raises:
            TokenValidationError: If the token is malformed, expired or was
                revoked by logout
        """
        token_id = self.auth_service.extract_token_id(token)
        if self.redis_service.is_token_blocked(token_id):
            raise TokenValidationError("Token has been revoked")

        claims = self.auth_service.validate_token(token, "access")
        role = claims.get("role")
        return UserContext(
            user_id=claims.get("sub") or claims.get("id"),
            email=claims.get("email"),
            user_type=role,
            permissions=permissions_for_role(role),
            token_payload=claims,
            ip_address=request.remote_addr,
            user_agent=request.headers.get('User-Agent', '')
        )


def _deny(status: int, error_type: str, detail: str):
    problem = current_app.hal_formatter.format_problem(error_type, status, detail, request.path)
    return jsonify(problem), status


def _guarded(view: Callable, required: bool = True, admin: bool = False) -> Callable:
    @wraps(view)
    def decorated_function(*args, **kwargs):
        middleware: AuthMiddleware = current_app.auth_middleware
        token = middleware.extract_token_from_request()

        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            user_context = None
            if token:
                try:
                    user_context = middleware.authenticate(token)
                except TokenValidationError as e:
                    span.set_attribute("auth.result", "invalid_token")
                    if required:
                        logger.warning(f"Authentication failed: {str(e)}")
                        return _deny(401, "invalid-token", "Invalid token")
                    logger.debug(f"Ignoring invalid optional token: {str(e)}")

            if user_context is None:
                if required:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    return _deny(401, "authentication-required", "No token provided")
                return view(None, *args, **kwargs)

            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.type": user_context.user_type
            })
            g.user_context = user_context

            if admin and not user_context.is_admin():
                span.set_attribute("auth.permission_result", "denied")
                logger.warning(
                    "Admin access denied",
                    extra={"user_id": user_context.user_id, "user_type": user_context.user_type}
                )
                return _deny(403, "insufficient-permissions", "Admin access required")

        return view(user_context, *args, **kwargs)

    return decorated_function


def require_jwt(view: Callable) -> Callable:
    """Require a valid bearer token."""
    return _guarded(view)


def optional_jwt(view: Callable) -> Callable:
    return _guarded(view, required=False)


def require_admin(view: Callable) -> Callable:
    """Require a valid bearer token belonging to an admin."""
    return _guarded(view, admin=True)
