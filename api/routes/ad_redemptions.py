# SPDX-License-Identifier: Apache-2.0

"""
Exchange of EcoPoints for sponsor banner time.

Points are held when the request is made and refunded on rejection.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.authorization import is_self_or_admin
from domain.ecopoints import get_tier
from models.entities import AdRedemption, Banner, UserContext
from models.enums import NotificationType, ReviewStatus
from models.requests import AdRedemptionRequest, ReviewRequest, IdPath, UserIdPath
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import ValidationException, AuthorizationException, NotFoundException
from middleware.validation import parse_body
from routes.banners import create_banner_document

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

AD_REDEMPTIONS = "ad_redemption_requests"
PENDING_GUARD = {"status": ReviewStatus.PENDING.value}

ad_redemptions_tag = Tag(name="Ad Redemptions", description="EcoPoints for banner placement")
ad_redemptions_bp = APIBlueprint(
    'ad_redemptions',
    __name__,
    url_prefix='/api/ad-redemptions',
    abp_tags=[ad_redemptions_tag]
)


def _get_pending_or_raise(redemption_id: str) -> AdRedemption:
    document = current_app.mongodb_service.find_by_id(AD_REDEMPTIONS, redemption_id)
    if not document:
        raise NotFoundException("Redemption request not found")
    redemption = AdRedemption.from_document(document)
    if not redemption.can_review():
        raise ValidationException("Request already processed")
    return redemption


def _publish_banner(redemption: AdRedemption, admin_id: str) -> str:
    """Create the sponsor banner described by the request's banner data."""
    banner = Banner.model_validate(dict(
        redemption.banner_data,
        durationMinutes=redemption.duration_minutes,
        ownerId=redemption.user_id,
        active=True
    ))
    return create_banner_document(banner, admin_id)["id"]


@ad_redemptions_bp.get('')
@require_admin
def list_redemptions(user_context: UserContext):
    """All requests, newest first, with the requester's current balance."""
    mongodb = current_app.mongodb_service
    redemptions = mongodb.find(AD_REDEMPTIONS, sort="createdAt")
    users = mongodb.find_by_ids("users", [r["userId"] for r in redemptions if r.get("userId")])
    for redemption in redemptions:
        user = users.get(redemption.get("userId")) or {}
        redemption["userName"] = user.get("name")
        redemption["userEmail"] = user.get("email")
        redemption["userType"] = user.get("type")
        redemption["organization"] = user.get("organization")
        redemption["currentPoints"] = user.get("ecoPoints")
    return jsonify(redemptions)


@ad_redemptions_bp.get('/user/<user_id>')
@require_jwt
def list_user_redemptions(user_context: UserContext, path: UserIdPath):
    if not is_self_or_admin(user_context, path.user_id):
        raise AuthorizationException("Cannot view another user's redemption requests")
    return jsonify(current_app.mongodb_service.find(AD_REDEMPTIONS, {"userId": path.user_id}, sort="createdAt"))


@ad_redemptions_bp.post('')
@require_jwt
def create_redemption(user_context: UserContext):
    with tracer.start_as_current_span("ad_redemptions.create", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(AdRedemptionRequest)
        if not is_self_or_admin(user_context, body.user_id):
            raise AuthorizationException("Cannot redeem points for another user")

        tier = get_tier(body.package_id)
        if tier is None:
            raise ValidationException("Unknown ad package")

        mongodb = current_app.mongodb_service
        user = mongodb.find_by_id("users", body.user_id)
        if not user:
            raise NotFoundException("User not found")

        available = user.get("ecoPoints") or 0
        insufficient = ValidationException(
            "Insufficient EcoPoints", extra={"required": tier.points, "available": available}
        )
        if available < tier.points:
            span.set_status(Status(StatusCode.ERROR, "Insufficient EcoPoints"))
            raise insufficient

        held = mongodb.increment(
            "users", body.user_id, {"ecoPoints": -tier.points}, guard={"ecoPoints": {"$gte": tier.points}}
        )
        if held is None:
            raise insufficient

        redemption = AdRedemption(
            user_id=body.user_id,
            package_id=tier.id,
            points_cost=tier.points,
            duration_minutes=tier.duration_minutes,
            banner_data=body.banner_data
        )
        try:
            mongodb.create(AD_REDEMPTIONS, dict(redemption.to_document(), id=redemption.id), user_context.user_id)
        except Exception:
            mongodb.increment("users", body.user_id, {"ecoPoints": tier.points})
            logger.error("Ad redemption not stored, points refunded", extra={"user_id": body.user_id, "points": tier.points})
            raise

        notifications = current_app.notification_service
        notifications.notify_admins(NotificationType.AD_REDEMPTION_REQUESTED.value, {
            "requesterName": user.get("name"),
            "durationMinutes": tier.duration_minutes,
            "pointsCost": tier.points
        })
        notifications.notify(body.user_id, NotificationType.AD_REDEMPTION_UPDATE.value, {
            "status": "submitted",
            "durationMinutes": tier.duration_minutes
        })

        span.set_attribute("ad_redemption.id", redemption.id)
        logger.info("Ad redemption requested", extra={"redemption_id": redemption.id, "package_id": tier.id})
        return jsonify(mongodb.find_by_id(AD_REDEMPTIONS, redemption.id)), 201


@ad_redemptions_bp.post('/<id>/approve')
@require_admin
def approve_redemption(user_context: UserContext, path: IdPath):
    """Approve a pending request, publishing its banner unless one is given."""
    redemption = _get_pending_or_raise(path.id)
    body = parse_body(ReviewRequest, required=False)
    redemption.approve(body.banner_id)

    mongodb = current_app.mongodb_service
    approved = mongodb.update_by_id(
        AD_REDEMPTIONS,
        path.id,
        {"status": redemption.status, "bannerId": body.banner_id, "approvedAt": redemption.approved_at},
        user_context.user_id,
        guard=PENDING_GUARD
    )
    if not approved:
        raise ValidationException("Request already processed")

    banner_id = body.banner_id
    if not banner_id and redemption.banner_data.get("name"):
        banner_id = _publish_banner(redemption, user_context.user_id)
        mongodb.update_by_id(AD_REDEMPTIONS, path.id, {"bannerId": banner_id}, user_context.user_id)

    current_app.notification_service.notify(redemption.user_id, NotificationType.AD_REDEMPTION_UPDATE.value, {
        "status": "approved",
        "durationMinutes": redemption.duration_minutes
    })
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id, "approve_ad_redemption", "ad_redemption", path.id, None
    )
    return jsonify({"success": True, "message": "Redemption approved", "bannerId": banner_id})


@ad_redemptions_bp.post('/<id>/reject')
@require_admin
def reject_redemption(user_context: UserContext, path: IdPath):
    """Reject a pending request and give the held points back."""
    redemption = _get_pending_or_raise(path.id)
    body = parse_body(ReviewRequest, required=False)
    reason = body.reason or "Please contact admin for details"
    redemption.reject(reason)

    mongodb = current_app.mongodb_service
    rejected = mongodb.update_by_id(
        AD_REDEMPTIONS,
        path.id,
        {"status": redemption.status, "rejectionReason": reason, "rejectedAt": redemption.rejected_at},
        user_context.user_id,
        guard=PENDING_GUARD
    )
    if not rejected:
        raise ValidationException("Request already processed")

    mongodb.increment("users", redemption.user_id, {"ecoPoints": redemption.points_cost})

    current_app.notification_service.notify(redemption.user_id, NotificationType.AD_REDEMPTION_UPDATE.value, {
        "status": "rejected",
        "reason": reason,
        "pointsRefunded": redemption.points_cost
    })
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id, "reject_ad_redemption", "ad_redemption", path.id, reason
    )
    logger.info("Ad redemption rejected", extra={"redemption_id": path.id, "points_refunded": redemption.points_cost})
    return jsonify({"success": True, "message": "Redemption rejected and points refunded"})
