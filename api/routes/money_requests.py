# SPDX-License-Identifier: Apache-2.0

"""
Funding requests from beneficiary organizations and their admin review.
"""

from datetime import datetime
from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.authorization import is_self_or_admin
from domain.finance import MONEY_REQUEST_CATEGORY
from domain.templates import format_pkr
from models.entities import MoneyRequest, UserContext
from models.enums import BENEFICIARY_TYPES, NotificationType, ReviewStatus
from models.requests import CreateMoneyRequestRequest, ReviewRequest, MoneyRequestFilters, IdPath
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import ValidationException, AuthorizationException, NotFoundException
from middleware.validation import parse_body, parse_query
from services.finance import InsufficientFundsError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MONEY_REQUESTS = "money_requests"
DEFAULT_PURPOSE = "Logistics funding"
DEFAULT_REJECTION_REASON = "No reason provided"
PENDING_GUARD = {"status": ReviewStatus.PENDING.value}

money_requests_tag = Tag(name="Money Requests", description="Logistics funding requests")
money_requests_bp = APIBlueprint(
    'money_requests',
    __name__,
    url_prefix='/api/money-requests',
    abp_tags=[money_requests_tag]
)


def _get_request_or_404(request_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(MONEY_REQUESTS, request_id)
    if not document:
        raise NotFoundException("Money request not found")
    return document


def _with_names(documents: list) -> list:
    """Join requester and reviewer names onto money request documents."""
    user_ids = [d.get("requesterId") for d in documents] + [d.get("reviewedBy") for d in documents]
    users = current_app.mongodb_service.find_by_ids("users", [u for u in user_ids if u])
    for document in documents:
        requester = users.get(document.get("requesterId")) or {}
        reviewer = users.get(document.get("reviewedBy")) or {}
        document["requesterName"] = requester.get("name")
        document["requesterEmail"] = requester.get("email")
        document["requesterOrganization"] = requester.get("organization")
        document["reviewedByName"] = reviewer.get("name")
    return documents


@money_requests_bp.post('')
@require_jwt
def create_money_request(user_context: UserContext):
    """
    Ask the community fund for logistics money.

    Only NGOs, shelters and fertilizer companies may ask; every admin is
    notified of the new request.
    """
    with tracer.start_as_current_span("money_requests.create", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(CreateMoneyRequestRequest)
        if not is_self_or_admin(user_context, body.user_id):
            raise AuthorizationException("Cannot request money for another user")

        user = current_app.mongodb_service.find_by_id("users", body.user_id)
        if not user:
            raise NotFoundException("User not found")

        if user.get("type") not in BENEFICIARY_TYPES:
            span.set_status(Status(StatusCode.ERROR, "Role not allowed"))
            raise AuthorizationException("Only NGOs, Shelters, and Fertilizer companies can request money")

        if body.amount is None or body.amount <= 0:
            raise ValidationException("Invalid amount")

        money_request = MoneyRequest(
            requester_id=body.user_id,
            requester_role=user["type"],
            amount=body.amount,
            purpose=body.purpose or DEFAULT_PURPOSE,
            distance=body.distance,
            transport_rate=body.transport_rate
        )
        mongodb = current_app.mongodb_service
        mongodb.create(MONEY_REQUESTS, dict(money_request.to_document(), id=money_request.id), body.user_id)

        current_app.notification_service.notify_admins(
            NotificationType.MONEY_REQUEST_CREATED.value,
            {"requesterName": user.get("name"), "amount": body.amount, "purpose": money_request.purpose}
        )

        logger.info(
            "Money request created",
            extra={"request_id": money_request.id, "user_id": body.user_id, "amount": body.amount}
        )
        return jsonify({
            "success": True,
            "request": mongodb.find_by_id(MONEY_REQUESTS, money_request.id),
            "message": "Money request submitted successfully. Awaiting admin approval."
        }), 201


@money_requests_bp.get('')
@require_jwt
def list_money_requests(user_context: UserContext):
    """Admins see every request; other users only their own."""
    filters = parse_query(MoneyRequestFilters)

    query = {}
    if filters.status:
        query["status"] = filters.status
    if not user_context.is_admin():
        query["requesterId"] = user_context.user_id
    elif filters.user_id:
        query["requesterId"] = filters.user_id

    documents = current_app.mongodb_service.find(MONEY_REQUESTS, query, sort="createdAt")
    return jsonify(_with_names(documents))


@money_requests_bp.get('/stats/summary')
@require_admin
def money_request_stats(user_context: UserContext):
    """Request counts and amounts per status next to the fund balance."""
    rows = current_app.mongodb_service.aggregate(MONEY_REQUESTS, [
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "amount": {"$sum": "$amount"}}}
    ])
    by_status = {row["_id"]: row for row in rows}

    def _count(status: ReviewStatus) -> int:
        return (by_status.get(status.value) or {}).get("count", 0)

    def _amount(status: ReviewStatus) -> float:
        return (by_status.get(status.value) or {}).get("amount", 0)

    balance = current_app.finance_service.get_balance()
    return jsonify({
        "totalRequests": sum(row["count"] for row in rows),
        "pendingRequests": _count(ReviewStatus.PENDING),
        "approvedRequests": _count(ReviewStatus.APPROVED),
        "rejectedRequests": _count(ReviewStatus.REJECTED),
        "totalApprovedAmount": _amount(ReviewStatus.APPROVED),
        "pendingAmount": _amount(ReviewStatus.PENDING),
        "availableBalance": balance.get("totalBalance", 0),
        "totalDonations": balance.get("totalDonations", 0),
        "totalWithdrawals": balance.get("totalWithdrawals", 0)
    })


@money_requests_bp.get('/<id>')
@require_jwt
def get_money_request(user_context: UserContext, path: IdPath):
    document = _get_request_or_404(path.id)
    if not user_context.is_admin() and document.get("requesterId") != user_context.user_id:
        raise AuthorizationException("Cannot view another user's money request")
    return jsonify(current_app.hal_formatter.format_money_request(_with_names([document])[0], user_context))


@money_requests_bp.post('/<id>/approve')
@require_admin
def approve_money_request(user_context: UserContext, path: IdPath):
    """
    Approve a pending request and pay it out of the community fund.

    The request is moved out of ``pending`` first so it cannot be paid
    twice; when the fund cannot cover it the request goes back to pending.
    """
    with tracer.start_as_current_span(
        "money_requests.approve",
        attributes={"request.id": path.id, "admin.id": user_context.user_id}
    ) as span:
        document = _get_request_or_404(path.id)
        mongodb = current_app.mongodb_service

        approved = mongodb.update_by_id(MONEY_REQUESTS, path.id, {
            "status": ReviewStatus.APPROVED.value,
            "reviewedBy": user_context.user_id,
            "reviewedAt": datetime.utcnow()
        }, user_context.user_id, guard=PENDING_GUARD)
        if not approved:
            raise ValidationException("Request already processed")

        amount = document["amount"]
        try:
            current_app.finance_service.record_withdrawal(
                amount,
                MONEY_REQUEST_CATEGORY,
                user_id=document.get("requesterId"),
                description=f"Money request approved: {format_pkr(amount)} for {document.get('purpose')}"
            )
        except InsufficientFundsError as e:
            mongodb.update_by_id(MONEY_REQUESTS, path.id, {
                "status": ReviewStatus.PENDING.value,
                "reviewedBy": None,
                "reviewedAt": None
            }, user_context.user_id)
            span.set_status(Status(StatusCode.ERROR, "Insufficient funds"))
            raise ValidationException(
                "Insufficient funds in the pool",
                extra={"available": e.available, "requested": e.requested}
            )

        current_app.notification_service.notify(
            document["requesterId"],
            NotificationType.MONEY_REQUEST_APPROVED.value,
            {"amount": amount}
        )
        current_app.audit_service.safe_log_admin_action(
            user_context.user_id,
            "approve_money_request",
            "money_request",
            path.id,
            f"Approved money request of {format_pkr(amount)} for {document.get('requesterId')}"
        )

        balance = current_app.finance_service.get_balance()
        logger.info("Money request approved", extra={"request_id": path.id, "amount": amount})
        return jsonify({
            "success": True,
            "message": "Money request approved successfully",
            "amountApproved": amount,
            "remainingBalance": balance.get("totalBalance", 0)
        })


@money_requests_bp.post('/<id>/reject')
@require_admin
def reject_money_request(user_context: UserContext, path: IdPath):
    with tracer.start_as_current_span(
        "money_requests.reject",
        attributes={"request.id": path.id, "admin.id": user_context.user_id}
    ):
        document = _get_request_or_404(path.id)
        body = parse_body(ReviewRequest, required=False)
        reason = body.reason or DEFAULT_REJECTION_REASON

        rejected = current_app.mongodb_service.update_by_id(MONEY_REQUESTS, path.id, {
            "status": ReviewStatus.REJECTED.value,
            "reviewedBy": user_context.user_id,
            "reviewedAt": datetime.utcnow(),
            "rejectionReason": reason
        }, user_context.user_id, guard=PENDING_GUARD)
        if not rejected:
            raise ValidationException("Request already processed")

        current_app.notification_service.notify(
            document["requesterId"],
            NotificationType.MONEY_REQUEST_REJECTED.value,
            {"amount": document.get("amount"), "reason": reason}
        )
        current_app.audit_service.safe_log_admin_action(
            user_context.user_id,
            "reject_money_request",
            "money_request",
            path.id,
            f"Rejected money request of {format_pkr(document.get('amount'))}. Reason: {reason}"
        )

        logger.info("Money request rejected", extra={"request_id": path.id})
        return jsonify({"success": True, "message": "Money request rejected"})
