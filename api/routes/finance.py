# SPDX-License-Identifier: Apache-2.0

"""
Community fund endpoints: ledger, balance, reports and manual bookings.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.finance import is_valid_withdrawal_category, WITHDRAWAL_CATEGORIES
from models.entities import UserContext
from models.requests import FundDonationRequest, WithdrawalRequest, FinanceFilters, SummaryQuery
from middleware.auth import require_admin
from middleware.error_handler import ValidationException
from middleware.validation import parse_body, parse_query
from services.finance import InsufficientFundsError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

finance_tag = Tag(name="Finance", description="Community fund ledger")
finance_bp = APIBlueprint(
    'finance',
    __name__,
    url_prefix='/api/finance',
    abp_tags=[finance_tag]
)


@finance_bp.get('')
@require_admin
def list_transactions(user_context: UserContext):
    filters = parse_query(FinanceFilters)
    return jsonify(current_app.finance_service.list_transactions(
        type=filters.type,
        user_id=filters.user_id,
        start_date=filters.start_date,
        end_date=filters.end_date
    ))


@finance_bp.get('/balance')
def get_balance():
    return jsonify(current_app.finance_service.get_balance())


@finance_bp.get('/summary')
@require_admin
def get_summary(user_context: UserContext):
    query = parse_query(SummaryQuery)
    return jsonify(current_app.finance_service.summary(query.period))


@finance_bp.post('/donation')
@require_admin
def record_donation(user_context: UserContext):
    with tracer.start_as_current_span("finance.donation", attributes={"user.id": user_context.user_id}):
        body = parse_body(FundDonationRequest)
        transaction = current_app.finance_service.record_donation(
            body.amount,
            user_id=body.user_id,
            category=body.category,
            description=body.description,
            donation_id=body.donation_id
        )
        current_app.audit_service.safe_log_admin_action(
            user_context.user_id, "record_fund_donation", "financial_transaction", transaction["id"],
            f"Recorded donation of {body.amount}"
        )
        return jsonify(transaction), 201


@finance_bp.post('/withdrawal')
@require_admin
def record_withdrawal(user_context: UserContext):
    """Spend from the fund; refused when the balance does not cover the amount."""
    with tracer.start_as_current_span("finance.withdrawal", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(WithdrawalRequest)
        if not is_valid_withdrawal_category(body.category):
            raise ValidationException(
                "Invalid category",
                extra={"allowedCategories": list(WITHDRAWAL_CATEGORIES)}
            )

        try:
            transaction = current_app.finance_service.record_withdrawal(
                body.amount,
                body.category,
                user_id=body.user_id or user_context.user_id,
                description=body.description
            )
        except InsufficientFundsError as e:
            span.set_status(Status(StatusCode.ERROR, "Insufficient funds"))
            raise ValidationException(
                "Insufficient funds",
                extra={"available": e.available, "requested": e.requested}
            )

        current_app.audit_service.safe_log_admin_action(
            user_context.user_id, "record_fund_withdrawal", "financial_transaction", transaction["id"],
            f"Withdrew {body.amount} for {body.category}"
        )
        return jsonify(transaction), 201


@finance_bp.get('/analytics')
@require_admin
def get_analytics(user_context: UserContext):
    return jsonify(current_app.finance_service.analytics())
