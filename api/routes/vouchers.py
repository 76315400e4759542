# SPDX-License-Identifier: Apache-2.0

"""
Voucher campaign endpoints and EcoPoints redemption.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.authorization import is_self_or_admin
from domain.vouchers import check_redemption, redemption_rate
from models.entities import Voucher, VoucherRedemption, UserContext
from models.enums import NotificationType
from models.requests import (
    CreateVoucherRequest,
    UpdateVoucherRequest,
    VoucherStatusRequest,
    RedeemVoucherRequest,
    IdPath
)
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import (
    ValidationException,
    AuthorizationException,
    NotFoundException,
    ConflictException
)
from middleware.validation import parse_body

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

VOUCHERS = "vouchers"
REDEMPTIONS = "voucher_redemptions"

vouchers_tag = Tag(name="Vouchers", description="Partner discounts paid for with EcoPoints")
vouchers_bp = APIBlueprint(
    'vouchers',
    __name__,
    url_prefix='/api/vouchers',
    abp_tags=[vouchers_tag]
)


def _get_voucher_or_404(voucher_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(VOUCHERS, voucher_id)
    if not document:
        raise NotFoundException("Voucher not found")
    return document


@vouchers_bp.get('')
def list_vouchers():
    return jsonify(current_app.mongodb_service.find(VOUCHERS, sort="createdAt"))


@vouchers_bp.get('/<id>/performance')
def voucher_performance(path: IdPath):
    """Redemptions joined with the redeeming users, and the usage rate."""
    mongodb = current_app.mongodb_service
    voucher = _get_voucher_or_404(path.id)

    redemptions = mongodb.find(REDEMPTIONS, {"voucherId": path.id}, sort="redeemedAt")
    users = mongodb.find_by_ids("users", [r["userId"] for r in redemptions])
    joined = []
    for redemption in redemptions:
        user = users.get(redemption["userId"])
        if not user:
            continue
        joined.append(dict(redemption, name=user.get("name"), email=user.get("email")))

    return jsonify({
        "voucher": voucher,
        "redemptions": joined,
        "redemptionRate": redemption_rate(voucher)
    })


@vouchers_bp.post('')
@require_admin
def create_voucher(user_context: UserContext):
    with tracer.start_as_current_span("vouchers.create", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(CreateVoucherRequest)
        voucher = Voucher(**body.model_dump())

        mongodb = current_app.mongodb_service
        if mongodb.find_one(VOUCHERS, {"code": voucher.code}):
            span.set_status(Status(StatusCode.ERROR, "Duplicate voucher code"))
            raise ConflictException(f"Voucher code {voucher.code} already exists")

        try:
            mongodb.create(VOUCHERS, dict(voucher.to_document(), id=voucher.id), user_context.user_id)
        except ValueError:
            raise ConflictException(f"Voucher code {voucher.code} already exists")

        current_app.audit_service.safe_log_admin_action(
            user_context.user_id, "create_voucher", "voucher", voucher.id, voucher.code
        )
        logger.info("Voucher created", extra={"voucher_id": voucher.id, "code": voucher.code})
        return jsonify(mongodb.find_by_id(VOUCHERS, voucher.id)), 201


@vouchers_bp.put('/<id>')
@require_admin
def update_voucher(user_context: UserContext, path: IdPath):
    current = _get_voucher_or_404(path.id)
    body = parse_body(UpdateVoucherRequest)
    updates = body.model_dump(by_alias=True, exclude_none=True)

    # Re-validate the merged voucher (e.g. percentage discounts stay <= 100)
    Voucher.from_document(dict(current, **updates))

    mongodb = current_app.mongodb_service
    if updates:
        mongodb.update_by_id(VOUCHERS, path.id, updates, user_context.user_id)
    return jsonify(mongodb.find_by_id(VOUCHERS, path.id))


@vouchers_bp.patch('/<id>/status')
@require_admin
def update_voucher_status(user_context: UserContext, path: IdPath):
    """Pause, resume or retire a campaign."""
    _get_voucher_or_404(path.id)
    body = parse_body(VoucherStatusRequest)

    mongodb = current_app.mongodb_service
    mongodb.update_by_id(VOUCHERS, path.id, {"status": body.status}, user_context.user_id)
    logger.info("Voucher status changed", extra={"voucher_id": path.id, "status": body.status})
    return jsonify(mongodb.find_by_id(VOUCHERS, path.id))


@vouchers_bp.delete('/<id>')
@require_admin
def delete_voucher(user_context: UserContext, path: IdPath):
    _get_voucher_or_404(path.id)
    current_app.mongodb_service.delete_by_id(VOUCHERS, path.id)
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id, "delete_voucher", "voucher", path.id, None
    )
    return jsonify({"message": "Voucher deleted successfully"})


@vouchers_bp.post('/<id>/redeem')
@require_jwt
def redeem_voucher(user_context: UserContext, path: IdPath):
    """
    Redeem a voucher for a user.

    The redemption limit is enforced again atomically when the counter is
    incremented, so concurrent redemptions cannot overshoot it.
    """
    with tracer.start_as_current_span(
        "vouchers.redeem",
        attributes={"voucher.id": path.id, "user.id": user_context.user_id}
    ) as span:
        body = parse_body(RedeemVoucherRequest)
        if not is_self_or_admin(user_context, body.user_id):
            raise AuthorizationException("Cannot redeem vouchers for another user")

        mongodb = current_app.mongodb_service
        voucher = mongodb.find_by_id(VOUCHERS, path.id)
        user = mongodb.find_by_id("users", body.user_id) if voucher else None
        already_redeemed = bool(user) and mongodb.find_one(
            REDEMPTIONS, {"voucherId": path.id, "userId": body.user_id}
        ) is not None

        refusal = check_redemption(voucher, user, already_redeemed)
        if refusal is not None:
            span.set_status(Status(StatusCode.ERROR, refusal.message))
            if refusal.status_code == 404:
                raise NotFoundException(refusal.message)
            raise ValidationException(refusal.message)

        redemption = VoucherRedemption(voucher_id=path.id, user_id=body.user_id)
        try:
            mongodb.create(REDEMPTIONS, dict(redemption.to_document(), id=redemption.id), body.user_id)
        except ValueError:
            raise ValidationException("Voucher already redeemed")

        counted = mongodb.increment(
            VOUCHERS, path.id, {"currentRedemptions": 1},
            guard={"currentRedemptions": {"$lt": voucher.get("maxRedemptions") or 0}}
        )
        if counted is None:
            mongodb.delete_by_id(REDEMPTIONS, redemption.id)
            raise ValidationException("Voucher redemption limit reached")

        current_app.notification_service.notify(
            body.user_id,
            NotificationType.VOUCHER_REDEEMED.value,
            {"voucherTitle": voucher.get("title")}
        )

        logger.info(
            "Voucher redeemed",
            extra={"voucher_id": path.id, "user_id": body.user_id, "redemption_id": redemption.id}
        )
        return jsonify({"message": "Voucher redeemed successfully", "redemptionId": redemption.id})
