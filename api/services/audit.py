# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Admin audit log service with OpenTelemetry correlation.

Every administrative decision (approving money requests, verifying bank
accounts, reviewing payments...) is appended to ``admin_logs``.
"""

import logging
from typing import Dict, List, Optional, Any
from opentelemetry import trace

from .mongodb import MongoDBService, PaginationResult
from models.entities import AdminLog

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

COLLECTION = "admin_logs"
DEFAULT_LOG_LIMIT = 100


class AuditService:
    """Writes and reads the admin action log."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def log_admin_action(
        self,
        admin_id: str,
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[str] = None
    ) -> str:
        """
        Append an entry such as ``approve_money_request`` on a money request.

        The active trace id is stored with the entry so a log line can be
        followed back to the request that produced it.

        Returns:
            ID of the created entry
        """
        with tracer.start_as_current_span("audit.log_admin_action") as span:
            span.set_attributes({
                "audit.action": action,
                "audit.admin_id": admin_id,
                "audit.target": f"{target_type or ''}:{target_id or ''}"
            })

            document = AdminLog(
                admin_id=admin_id, action=action, target_type=target_type, target_id=target_id, details=details
            ).to_document()
            span_context = span.get_span_context()
            if span_context.is_valid:
                document["traceId"] = format(span_context.trace_id, "032x")

            try:
                log_id = self.mongo_service.create(COLLECTION, document, admin_id)
            except Exception as e:
                span.record_exception(e)
                logger.error(f"Admin log write failed for {action}: {str(e)}", extra={"admin_id": admin_id})
                raise

            logger.info("Admin action recorded", extra={
                "audit_id": log_id, "action": action, "admin_id": admin_id, "target_id": target_id
            })
            return log_id

    def safe_log_admin_action(self, *args, **kwargs) -> Optional[str]:
        """Like ``log_admin_action`` but never fails the calling request."""
        try:
            return self.log_admin_action(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Admin log skipped: {str(e)}")
            return None

    def recent_logs(self, limit: int = DEFAULT_LOG_LIMIT) -> List[Dict[str, Any]]:
        """Newest admin log entries first."""
        with tracer.start_as_current_span("audit.recent_logs") as span:
            span.set_attribute("audit.limit", limit)
            return self.mongo_service.find(COLLECTION, {}, sort="createdAt", limit=limit)

    def query_logs(
        self,
        page: int = 1,
        page_size: int = 20,
        admin_id: Optional[str] = None,
        action: Optional[str] = None
    ) -> PaginationResult:
        """Paginated log query, optionally filtered by admin and action."""
        filters: Dict[str, Any] = {}
        if admin_id:
            filters["adminId"] = admin_id
        if action:
            filters["action"] = action

        with tracer.start_as_current_span("audit.query_logs") as span:
            span.set_attributes({
                "audit.query.page": page,
                "audit.query.page_size": page_size,
                "audit.query.filters_count": len(filters)
            })
            return self.mongo_service.paginate(
                COLLECTION, page=page, page_size=page_size, filters=filters
            )
