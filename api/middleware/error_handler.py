# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.

Every error leaves the API as an RFC 7807 problem document. Werkzeug HTTP
errors are mapped by status code, application exceptions carry their own
status and problem type, and anything else becomes a 500.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Dict, Any, List, Optional, Tuple
from opentelemetry import trace
import logging

from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

STATUS_PROBLEM_TYPES = {
    400: "bad-request",
    401: "authentication-required",
    403: "insufficient-permissions",
    404: "resource-not-found",
    405: "method-not-allowed",
    409: "resource-conflict",
    413: "payload-too-large",
    415: "unsupported-media-type",
    422: "validation-error",
    429: "rate-limit-exceeded",
    500: "internal-server-error",
    502: "bad-gateway",
    503: "service-unavailable",
    504: "gateway-timeout",
}

GENERIC_SERVER_DETAIL = "An internal server error occurred"


def _request_fields() -> Dict[str, Any]:
    return {
        "path": request.path,
        "method": request.method,
        "ip_address": request.remote_addr
    }


def _tag_span(span, error_type: str, status: int) -> None:
    span.set_attributes({
        "error.type": error_type,
        "error.status": status,
        "http.method": request.method,
        "http.path": request.path
    })


class ErrorHandlerMiddleware:
    """Turns HTTP errors and unexpected exceptions into problem documents."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    @property
    def is_production(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def register_error_handlers(self):
        for code in STATUS_PROBLEM_TYPES:
            self.app.register_error_handler(code, self.handle_http_error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            if isinstance(error, HTTPException):
                return self.handle_http_error(error)
            return self.handle_unexpected_error(error)

    def handle_http_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Problem document for a werkzeug HTTP error.

        Statuses without an entry in ``STATUS_PROBLEM_TYPES`` use the generic
        ``http-error`` type. Server error details are hidden in production.
        """
        code = error.code or 500
        error_type = STATUS_PROBLEM_TYPES.get(code, "http-error")
        detail = str(error.description) if error.description else error.name

        with tracer.start_as_current_span("error_handler.http_error") as span:
            _tag_span(span, error_type, code)

            fields = {"error_type": error_type, "status_code": code, "detail": detail, **_request_fields()}
            if code >= 500:
                logger.error(f"Server error: {error.name}", extra=fields, exc_info=True)
                if self.is_production:
                    detail = GENERIC_SERVER_DETAIL
            else:
                logger.warning(f"Client error: {error.name}", extra=fields)

            return self.hal_formatter.format_problem(error_type, code, detail, request.path), code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """500 for exceptions no other handler claimed."""
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            _tag_span(span, "unexpected-error", 500)
            span.set_attribute("error.class", error.__class__.__name__)
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    **_request_fields()
                },
                exc_info=True
            )

            detail = GENERIC_SERVER_DETAIL if self.is_production else f"{error.__class__.__name__}: {error}"
            return self.hal_formatter.format_problem("internal-server-error", 500, detail, request.path), 500


class CustomException(Exception):
    """
    Application error rendered as a problem document.

    Subclasses fix ``status_code`` and ``error_type``; ``extra`` fields are
    merged into the document (e.g. ``{"required": 500, "available": 120}``).
    """

    status_code = 500
    error_type = "application-error"

    def __init__(self, message: str, status_code: Optional[int] = None, error_type: Optional[str] = None,
                 extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code or self.status_code
        self.error_type = error_type or self.error_type
        self.extra = extra or {}


class ValidationException(CustomException):
    status_code = 400
    error_type = "validation-error"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message, extra=extra)


class AuthenticationException(CustomException):
    status_code = 401
    error_type = "authentication-required"


class AuthorizationException(CustomException):
    status_code = 403
    error_type = "insufficient-permissions"


class NotFoundException(CustomException):
    status_code = 404
    error_type = "resource-not-found"


class ConflictException(CustomException):
    status_code = 409
    error_type = "resource-conflict"


class ServiceUnavailableException(CustomException):
    status_code = 503
    error_type = "service-unavailable"


def format_pydantic_errors(error: ValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message, type}`` entries."""
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg"),
            "type": err.get("type")
        }
        for err in error.errors()
    ]


def validation_problem(error: ValidationError, hal_formatter: HalFormatter, source: str = "body"):
    """400 response whose ``detail`` is the first failing field's message."""
    validation_errors = format_pydantic_errors(error)
    logger.warning(
        f"Request {source} validation failed",
        extra={"validation_errors": validation_errors, **_request_fields()}
    )
    detail = validation_errors[0]["message"] if validation_errors else "Invalid request"
    return jsonify(hal_formatter.format_validation_error(detail, request.path, validation_errors)), 400


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """Render application exceptions and in-view model validation failures."""

    @app.errorhandler(ValidationError)
    def handle_pydantic_validation_error(error: ValidationError):
        return validation_problem(error, hal_formatter)

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            _tag_span(span, error.error_type, error.status_code)

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                error.message,
                extra={"error_type": error.error_type, "status_code": error.status_code, **_request_fields()}
            )

            detail = error.message
            if error.status_code >= 500 and app.config.get('ENVIRONMENT') == 'production':
                detail = GENERIC_SERVER_DETAIL

            problem = hal_formatter.format_problem(
                error.error_type, error.status_code, detail, request.path, extra=error.extra
            )
            return jsonify(problem), error.status_code
