# SPDX-License-Identifier: Apache-2.0

"""
User profile, leaderboard and EcoPoints endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.authorization import can_modify_user, restricted_profile_fields
from domain.ecopoints import impact_metrics, evaluate_badges, tier_status
from models.entities import UserContext, public_user_document
from models.requests import UpdateUserRequest, AddPointsRequest, IdPath
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import AuthorizationException, NotFoundException
from middleware.validation import parse_body

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USERS = "users"
LEADERBOARD_SIZE = 10
LEADERBOARD_TTL_SECONDS = 60
PUBLIC_FIELDS = ("id", "email", "name", "type", "organization", "licenseId", "location", "ecoPoints", "createdAt")

users_tag = Tag(name="Users", description="Profiles, leaderboard and EcoPoints")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


def _get_user_or_404(user_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(USERS, user_id)
    if not document:
        raise NotFoundException("User not found")
    return document


@users_bp.get('')
@require_jwt
def list_users(user_context: UserContext):
    documents = current_app.mongodb_service.find(USERS, sort="createdAt")
    return jsonify([
        {key: doc.get(key) for key in PUBLIC_FIELDS}
        for doc in documents
    ])


@users_bp.get('/leaderboard/top')
def leaderboard():
    """Top users by EcoPoints with their donation counts, cached briefly."""
    with tracer.start_as_current_span("users.leaderboard") as span:
        redis_service = current_app.redis_service
        cached = redis_service.get_cached_leaderboard()
        if cached is not None:
            span.set_attribute("cache.hit", True)
            return jsonify(cached)

        mongodb = current_app.mongodb_service
        leaders = mongodb.find(USERS, sort="ecoPoints", limit=LEADERBOARD_SIZE)

        counts = mongodb.aggregate("donations", [
            {"$match": {"donorId": {"$in": [leader["id"] for leader in leaders]}}},
            {"$group": {"_id": "$donorId", "count": {"$sum": 1}}}
        ])
        count_by_user = {row["_id"]: row["count"] for row in counts}

        entries = [
            {
                "id": leader["id"],
                "name": leader.get("name"),
                "organization": leader.get("organization"),
                "type": leader.get("type"),
                "ecoPoints": leader.get("ecoPoints", 0),
                "donationCount": count_by_user.get(leader["id"], 0)
            }
            for leader in leaders
        ]

        redis_service.cache_leaderboard(entries, LEADERBOARD_TTL_SECONDS)
        span.set_attribute("cache.hit", False)
        return jsonify(entries)


@users_bp.get('/<id>')
def get_user(path: IdPath):
    document = _get_user_or_404(path.id)
    return jsonify(current_app.hal_formatter.format_user(public_user_document(document)))


@users_bp.put('/<id>')
@require_jwt
def update_user(user_context: UserContext, path: IdPath):
    """
    Update a profile.

    Users edit their own contact details and notification settings; only
    admins may change ``type`` or ``ecoPoints``.
    """
    with tracer.start_as_current_span(
        "users.update",
        attributes={"user.id": user_context.user_id, "target.id": path.id}
    ):
        result = can_modify_user(user_context, path.id)
        if not result.allowed:
            raise AuthorizationException(result.reason)

        body = parse_body(UpdateUserRequest)
        changes = body.model_dump(exclude_none=True)

        forbidden = [name for name in restricted_profile_fields(user_context) if name in changes]
        if forbidden:
            raise AuthorizationException("Only admins can change account type or EcoPoints")

        _get_user_or_404(path.id)

        updates = body.model_dump(by_alias=True, exclude_none=True)
        mongodb = current_app.mongodb_service
        if updates:
            mongodb.update_by_id(USERS, path.id, updates, user_context.user_id)
        if "ecoPoints" in updates:
            current_app.redis_service.invalidate_leaderboard()

        document = public_user_document(mongodb.find_by_id(USERS, path.id))
        logger.info(
            "User updated",
            extra={"user_id": user_context.user_id, "target_id": path.id, "fields": sorted(updates)}
        )
        return jsonify({"user": current_app.hal_formatter.format_user(document, user_context)})


@users_bp.delete('/<id>')
@require_admin
def delete_user(user_context: UserContext, path: IdPath):
    _get_user_or_404(path.id)
    current_app.mongodb_service.delete_by_id(USERS, path.id)
    current_app.redis_service.invalidate_leaderboard()
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id, "delete_user", "user", path.id, None
    )
    return jsonify({"message": "User deleted successfully"})


@users_bp.post('/<id>/points')
@require_jwt
def add_points(user_context: UserContext, path: IdPath):
    """Add EcoPoints to a user and return the new balance."""
    result = can_modify_user(user_context, path.id)
    if not result.allowed:
        raise AuthorizationException(result.reason)

    body = parse_body(AddPointsRequest)

    document = current_app.mongodb_service.increment(USERS, path.id, {"ecoPoints": body.points})
    if document is None:
        raise NotFoundException("User not found")

    current_app.redis_service.invalidate_leaderboard()
    logger.info("EcoPoints added", extra={"user_id": path.id, "points": body.points})
    return jsonify({"ecoPoints": document.get("ecoPoints", 0)})


@users_bp.get('/<id>/stats')
def user_stats(path: IdPath):
    """Donation counts, impact estimates, badges and banner tier progress."""
    mongodb = current_app.mongodb_service
    document = _get_user_or_404(path.id)

    donations = mongodb.count("donations", {"donorId": path.id})
    claimed = mongodb.count("donations", {"claimedById": path.id})
    eco_points = document.get("ecoPoints", 0)

    stats = {
        "donations": donations,
        "claimed": claimed,
        "ecoPoints": eco_points,
        "badges": evaluate_badges(donations),
        "tier": tier_status(eco_points)
    }
    stats.update(impact_metrics(donations))
    return jsonify(stats)
