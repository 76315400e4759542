# SPDX-License-Identifier: Apache-2.0

"""
Admin audit log endpoints.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.entities import UserContext
from models.requests import AdminLogRequest, AdminLogQuery
from middleware.auth import require_admin
from middleware.validation import parse_body, parse_query
from services.audit import DEFAULT_LOG_LIMIT

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

admin_tag = Tag(name="Admin", description="Administrative audit trail")
admin_bp = APIBlueprint(
    'admin',
    __name__,
    url_prefix='/api/admin',
    abp_tags=[admin_tag]
)


@admin_bp.get('/logs')
@require_admin
def list_logs(user_context: UserContext):
    """The newest admin log entries."""
    return jsonify(current_app.audit_service.recent_logs(DEFAULT_LOG_LIMIT))


@admin_bp.get('/logs/search')
@require_admin
def search_logs(user_context: UserContext):
    """Paginated log search by admin and action."""
    query = parse_query(AdminLogQuery)
    result = current_app.audit_service.query_logs(
        page=query.page,
        page_size=query.page_size,
        admin_id=query.admin_id,
        action=query.action
    )

    query_params = {k: v for k, v in request.args.items() if k not in ("page", "pageSize", "page_size")}
    return jsonify(current_app.hal_formatter.format_collection(
        result.items,
        result.total,
        result.page,
        result.page_size,
        "/api/admin/logs/search",
        query_params
    ))


@admin_bp.post('/logs')
@require_admin
def create_log(user_context: UserContext):
    """Record an admin action reported by a client."""
    body = parse_body(AdminLogRequest)
    log_id = current_app.audit_service.log_admin_action(
        body.admin_id or user_context.user_id,
        body.action,
        body.target_type,
        body.target_id,
        body.details
    )
    return jsonify({"success": True, "id": log_id, "message": "Log created"}), 201
