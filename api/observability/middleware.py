"""
Observability Middleware

Per-request OpenTelemetry attributes and one structured access log line per
request. Health probes are logged at DEBUG so they do not flood the logs.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

QUIET_PATHS = ("/api/healthz",)


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or ""


def add_observability_middleware(app: Flask):
    """Instrument the app and log every request with its trace id and caller."""

    FlaskInstrumentor().instrument_app(app, excluded_urls=",".join(QUIET_PATHS))

    @app.before_request
    def before_request():
        g.start_time = time.time()
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attributes({
                "http.route": request.url_rule.rule if request.url_rule else request.path,
                "ecobite.blueprint": request.blueprint or "",
                "client.address": _client_ip()
            })

    @app.after_request
    def after_request(response):
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)
        user_context = g.get('user_context')
        user_id = user_context.user_id if user_context is not None else None

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)
            if user_id:
                span.set_attributes({"user.id": user_id, "user.type": user_context.user_type})

        level = logging.DEBUG if request.path in QUIET_PATHS else logging.INFO
        if response.status_code >= 500:
            level = logging.ERROR
        logger.log(
            level,
            f"{request.method} {request.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": _client_ip(),
                "user_id": user_id,
                "trace_id": g.get('trace_id')
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
