# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation helpers using Pydantic models.

Route parameters declared on the view signature (``path``) are validated by
flask-openapi3, whose failures go through ``validation_error_callback``.
JSON bodies and query strings are parsed inside the views with
``parse_body``/``parse_query`` so that each route controls the order of its
checks; their ``ValidationError`` is rendered by the central error handler.
"""

from flask import request, current_app
from typing import Type, TypeVar, Dict, Any
from pydantic import BaseModel, ValidationError
from opentelemetry import trace

from middleware.error_handler import ValidationException, validation_problem

tracer = trace.get_tracer(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_body(model_class: Type[ModelT], required: bool = True) -> ModelT:
    """
    Validate the JSON request body against a Pydantic model.

    Args:
        model_class: Pydantic model class for validation
        required: Whether an empty body is rejected

    Raises:
        ValidationException: If the body is missing or not a JSON object
        ValidationError: If the body does not match the model
    """
    with tracer.start_as_current_span("validation.parse_body") as span:
        span.set_attributes({
            "validation.model": model_class.__name__,
            "http.method": request.method,
            "http.path": request.path
        })

        data = request.get_json(silent=True)
        if data is None:
            if required:
                span.set_attribute("validation.result", "missing_body")
                raise ValidationException("Request body must be a JSON object")
            data = {}

        if not isinstance(data, dict):
            span.set_attribute("validation.result", "invalid_json")
            raise ValidationException("Request body must be a JSON object")

        model = model_class.model_validate(data)
        span.set_attribute("validation.result", "success")
        return model


def parse_query(model_class: Type[ModelT]) -> ModelT:
    """
    Validate query parameters against a Pydantic model.

    Multi-valued parameters are passed as lists.
    """
    with tracer.start_as_current_span("validation.parse_query") as span:
        span.set_attribute("validation.model", model_class.__name__)

        query_data: Dict[str, Any] = request.args.to_dict()
        for key in request.args.keys():
            values = request.args.getlist(key)
            if len(values) > 1:
                query_data[key] = values

        return model_class.model_validate(query_data)


def validation_error_callback(error: ValidationError):
    """flask-openapi3 hook for path model failures; returns the full 400 response."""
    return validation_problem(error, current_app.hal_formatter, source="parameter")
