# SPDX-License-Identifier: Apache-2.0

"""
Money donations from individuals: Stripe card payments and manually
verified bank transfers.

A completed money donation credits the community fund and earns the
donor EcoPoints.
"""

import base64
from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.authorization import is_self_or_admin
from domain.ecopoints import payment_reward
from domain.finance import MONEY_DONATION_CATEGORY
from domain.templates import format_pkr
from models.entities import MoneyDonation, UserContext
from models.enums import NotificationType, PaymentStatus, UserType
from models.requests import (
    CheckoutRequest,
    VerifyPaymentRequest,
    ManualPaymentRequest,
    ReviewRequest,
    IdPath,
    UserIdPath
)
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import (
    ValidationException,
    AuthorizationException,
    NotFoundException,
    ConflictException,
    ServiceUnavailableException,
    CustomException
)
from middleware.validation import parse_body
from services.image_storage import ImageStorageError
from services.payments import PaymentError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MONEY_DONATIONS = "money_donations"
PROOF_FOLDER = "ecobite/payment-proofs"
MAX_PROOF_BYTES = 5 * 1024 * 1024
PROOF_TYPES = {
    "image/jpeg": ("jpeg", "jpg"),
    "image/jpg": ("jpeg", "jpg"),
    "image/png": ("png",),
    "application/pdf": ("pdf",),
}
PENDING_GUARD = {"status": PaymentStatus.PENDING.value}

PAYMENT_METHODS = [
    {
        "id": "stripe",
        "name": "Credit/Debit Card",
        "description": "Pay with Visa, Mastercard, or other cards",
        "enabled": True
    },
    {
        "id": "bank_transfer",
        "name": "Bank Transfer",
        "description": "Transfer to the EcoBite account and upload a receipt",
        "enabled": True,
        "requiresProof": True
    },
    {
        "id": "jazzcash",
        "name": "JazzCash",
        "description": "Send from your JazzCash wallet and upload a receipt",
        "enabled": True,
        "requiresProof": True
    },
    {
        "id": "easypaisa",
        "name": "EasyPaisa",
        "description": "Send from your EasyPaisa wallet and upload a receipt",
        "enabled": True,
        "requiresProof": True
    },
]

payment_tag = Tag(name="Payment", description="Card payments for money donations")
payment_bp = APIBlueprint(
    'payment',
    __name__,
    url_prefix='/api/payment',
    abp_tags=[payment_tag]
)

manual_payment_tag = Tag(name="Manual Payment", description="Admin-verified transfers")
manual_payment_bp = APIBlueprint(
    'manual_payment',
    __name__,
    url_prefix='/api/payment/manual',
    abp_tags=[manual_payment_tag]
)


def _individual_donor(user_context: UserContext, user_id: str) -> dict:
    """Load the donating user; only individuals give money."""
    if not is_self_or_admin(user_context, user_id):
        raise AuthorizationException("Cannot donate on behalf of another user")

    user = current_app.mongodb_service.find_by_id("users", user_id)
    if not user:
        raise NotFoundException("User not found")
    if user.get("type") != UserType.INDIVIDUAL.value:
        raise AuthorizationException("Only individual users can donate money")
    return user


def _store_donation(donation: MoneyDonation, user_id: str) -> None:
    """Insert the donation; a reused transaction reference is a conflict."""
    try:
        current_app.mongodb_service.create(MONEY_DONATIONS, dict(donation.to_document(), id=donation.id), user_id)
    except ValueError:
        raise ConflictException("Payment already recorded")


def _credit_donation(donation: MoneyDonation) -> int:
    """
    Credit the fund, award points and notify the donor of a completed donation.

    Returns:
        EcoPoints awarded
    """
    current_app.finance_service.record_donation(
        donation.amount,
        user_id=donation.donor_id,
        category=MONEY_DONATION_CATEGORY,
        description=f"Money donation of {format_pkr(donation.amount)} via {donation.payment_method}",
        donation_id=donation.id
    )

    points = payment_reward(donation.amount)
    if points:
        current_app.mongodb_service.increment("users", donation.donor_id, {"ecoPoints": points})
        current_app.redis_service.invalidate_leaderboard()

    current_app.notification_service.notify(
        donation.donor_id,
        NotificationType.PAYMENT_VERIFIED.value,
        {"amount": donation.amount, "points": points}
    )
    return points


def _with_donor_names(donations: list) -> list:
    users = current_app.mongodb_service.find_by_ids(
        "users",
        list({d.get("donorId") for d in donations if d.get("donorId")} |
             {d.get("verifiedBy") for d in donations if d.get("verifiedBy")})
    )
    for donation in donations:
        donor = users.get(donation.get("donorId")) or {}
        donation["donorName"] = donor.get("name")
        donation["donorEmail"] = donor.get("email")
        if donation.get("verifiedBy"):
            donation["verifiedByName"] = (users.get(donation["verifiedBy"]) or {}).get("name")
    return donations


def _history(user_context: UserContext, user_id: str):
    if not is_self_or_admin(user_context, user_id):
        raise AuthorizationException("Cannot view another user's payments")
    donations = current_app.mongodb_service.find(MONEY_DONATIONS, {"donorId": user_id}, sort="createdAt")
    return jsonify(_with_donor_names(donations))


# Stripe

def _require_stripe():
    if not current_app.payment_service.is_configured():
        raise ServiceUnavailableException("Payment processing not configured")


@payment_bp.post('/create-intent')
@require_jwt
def create_intent(user_context: UserContext):
    """Create a Stripe PaymentIntent for an in-app card form."""
    _require_stripe()
    body = parse_body(CheckoutRequest)
    user = _individual_donor(user_context, body.user_id)

    try:
        intent = current_app.payment_service.create_payment_intent(
            body.amount,
            body.currency,
            {"userId": user["id"], "userName": user.get("name"), "donationType": body.donation_type}
        )
    except PaymentError as e:
        raise CustomException(str(e), 502, "bad-gateway")
    return jsonify(intent)


@payment_bp.post('/create-checkout')
@require_jwt
def create_checkout(user_context: UserContext):
    """Create a hosted Stripe Checkout session."""
    _require_stripe()
    body = parse_body(CheckoutRequest)
    user = _individual_donor(user_context, body.user_id)

    try:
        session = current_app.payment_service.create_checkout_session(
            body.amount,
            body.currency,
            success_url=body.success_url,
            cancel_url=body.cancel_url,
            metadata={"userId": user["id"], "userName": user.get("name")}
        )
    except PaymentError as e:
        raise CustomException(str(e), 502, "bad-gateway")
    return jsonify(session)


@payment_bp.post('/verify')
@require_jwt
def verify_payment(user_context: UserContext):
    """
    Confirm a card payment and record it as a completed money donation.

    Without Stripe credentials every reference verifies, which keeps local
    and test environments usable.
    """
    with tracer.start_as_current_span("payment.verify", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(VerifyPaymentRequest)
        user = _individual_donor(user_context, body.user_id)

        mongodb = current_app.mongodb_service
        if mongodb.find_one(MONEY_DONATIONS, {"transactionId": body.session_id}):
            raise ConflictException("Payment already recorded")

        verification = current_app.payment_service.verify_payment(body.session_id)
        if not verification.verified:
            span.set_status(Status(StatusCode.ERROR, "Payment verification failed"))
            raise ValidationException("Payment verification failed")

        # Stripe's charged amount wins; the body amount only counts in test mode
        amount = body.amount if verification.amount is None else verification.amount
        if amount != body.amount:
            logger.warning(
                "Submitted amount differs from the charged amount",
                extra={"reference": body.session_id, "submitted": body.amount, "charged": amount}
            )

        donation = MoneyDonation(
            donor_id=user["id"],
            donor_role=user.get("type"),
            amount=amount,
            payment_method=body.payment_method,
            transaction_id=body.session_id
        )
        donation.verify()
        _store_donation(donation, user_context.user_id)

        points = _credit_donation(donation)

        span.set_attribute("payment.donation_id", donation.id)
        logger.info("Card payment verified", extra={"donation_id": donation.id, "amount": donation.amount})
        return jsonify({
            "success": True,
            "donation": mongodb.find_by_id(MONEY_DONATIONS, donation.id),
            "ecoPointsEarned": points,
            "message": f"Payment verified! You earned {points} EcoPoints."
        })


@payment_bp.get('/methods')
def payment_methods():
    methods = [dict(m) for m in PAYMENT_METHODS]
    methods[0]["enabled"] = current_app.payment_service.is_configured()
    return jsonify({"methods": methods})


@payment_bp.get('/history/<user_id>')
@require_jwt
def payment_history(user_context: UserContext, path: UserIdPath):
    return _history(user_context, path.user_id)


# Manual transfers

def _read_proof() -> str:
    """Validate the ``proofImage`` upload and return where it is kept."""
    file = request.files.get("proofImage")
    if file is None or not file.filename:
        raise ValidationException("Payment proof is required")

    extension = file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
    if extension not in PROOF_TYPES.get(file.mimetype, ()):
        raise ValidationException("Only images (JPEG, PNG) and PDF files are allowed")

    content = file.read()
    if len(content) > MAX_PROOF_BYTES:
        raise ValidationException("Payment proof must be 5MB or smaller")

    storage = current_app.image_storage_service
    if storage.is_configured():
        try:
            return storage.upload(content, PROOF_FOLDER)["url"]
        except ImageStorageError as e:
            logger.warning(f"Payment proof upload failed, storing inline: {str(e)}")

    return f"data:{file.mimetype};base64,{base64.b64encode(content).decode('ascii')}"


def _get_pending_donation(donation_id: str) -> MoneyDonation:
    document = current_app.mongodb_service.find_by_id(MONEY_DONATIONS, donation_id)
    if not document:
        raise NotFoundException("Donation not found")
    donation = MoneyDonation.from_document(document)
    if not donation.can_verify():
        raise ValidationException("Donation already processed")
    return donation


@manual_payment_bp.post('/submit')
@require_jwt
def submit_manual_payment(user_context: UserContext):
    """Submit a transfer receipt (multipart ``proofImage`` plus form fields)."""
    with tracer.start_as_current_span("manual_payment.submit", attributes={"user.id": user_context.user_id}) as span:
        body = ManualPaymentRequest.model_validate(request.form.to_dict())
        user = _individual_donor(user_context, body.user_id)
        if body.amount <= 0:
            raise ValidationException("Invalid amount")

        proof_image = _read_proof()

        donation = MoneyDonation(
            donor_id=user["id"],
            donor_role=user.get("type"),
            amount=body.amount,
            payment_method=body.payment_method,
            transaction_id=body.transaction_id,
            proof_image=proof_image,
            account_used=body.account_used,
            notes=body.notes
        )
        _store_donation(donation, user_context.user_id)

        current_app.notification_service.notify_admins(
            NotificationType.PAYMENT_SUBMITTED.value,
            {"donorName": user.get("name"), "amount": donation.amount}
        )

        span.set_attribute("payment.donation_id", donation.id)
        logger.info("Manual payment submitted", extra={"donation_id": donation.id, "amount": donation.amount})
        return jsonify({
            "success": True,
            "donation": current_app.mongodb_service.find_by_id(MONEY_DONATIONS, donation.id),
            "message": "Payment submitted for verification. Admin will review shortly."
        }), 201


@manual_payment_bp.get('/pending')
@require_admin
def pending_payments(user_context: UserContext):
    donations = current_app.mongodb_service.find(
        MONEY_DONATIONS, {"status": PaymentStatus.PENDING.value}, sort="createdAt"
    )
    return jsonify(_with_donor_names(donations))


@manual_payment_bp.post('/<id>/approve')
@require_admin
def approve_manual_payment(user_context: UserContext, path: IdPath):
    with tracer.start_as_current_span("manual_payment.approve", attributes={"payment.donation_id": path.id}):
        donation = _get_pending_donation(path.id)
        donation.verify(user_context.user_id)

        mongodb = current_app.mongodb_service
        approved = mongodb.update_by_id(
            MONEY_DONATIONS,
            path.id,
            {"status": donation.status, "verifiedBy": donation.verified_by, "verifiedAt": donation.verified_at},
            user_context.user_id,
            guard=PENDING_GUARD
        )
        if not approved:
            raise ValidationException("Donation already processed")

        points = _credit_donation(donation)
        current_app.audit_service.safe_log_admin_action(
            user_context.user_id,
            "verify_payment",
            "money_donation",
            path.id,
            f"Verified payment of {format_pkr(donation.amount)} from donor {donation.donor_id}"
        )

        donor = mongodb.find_by_id("users", donation.donor_id) or {}
        return jsonify({
            "success": True,
            "message": "Payment verified and approved successfully",
            "userId": donation.donor_id,
            "ecoPointsEarned": points,
            "updatedEcoPoints": donor.get("ecoPoints")
        })


@manual_payment_bp.post('/<id>/reject')
@require_admin
def reject_manual_payment(user_context: UserContext, path: IdPath):
    donation = _get_pending_donation(path.id)
    body = parse_body(ReviewRequest, required=False)
    reason = body.reason or "No reason provided"
    donation.reject(user_context.user_id, reason)

    rejected = current_app.mongodb_service.update_by_id(
        MONEY_DONATIONS,
        path.id,
        {
            "status": donation.status,
            "verifiedBy": donation.verified_by,
            "verifiedAt": donation.verified_at,
            "rejectionReason": reason
        },
        user_context.user_id,
        guard=PENDING_GUARD
    )
    if not rejected:
        raise ValidationException("Donation already processed")

    current_app.notification_service.notify(
        donation.donor_id,
        NotificationType.PAYMENT_REJECTED.value,
        {"amount": donation.amount, "reason": reason}
    )
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id,
        "reject_payment",
        "money_donation",
        path.id,
        f"Rejected payment of {format_pkr(donation.amount)}. Reason: {reason}"
    )
    return jsonify({"success": True, "message": "Payment rejected"})


@manual_payment_bp.get('/history/<user_id>')
@require_jwt
def manual_payment_history(user_context: UserContext, path: UserIdPath):
    return _history(user_context, path.user_id)
