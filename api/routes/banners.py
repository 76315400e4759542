# SPDX-License-Identifier: Apache-2.0

"""
Sponsor banner endpoints, display tracking and the ad tier table.
"""

from datetime import datetime
from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from pymongo import ASCENDING, DESCENDING
import logging

from domain.ecopoints import tier_status
from models.entities import Banner, UserContext
from models.enums import NotificationType
from models.requests import BannerRequest, UpdateBannerRequest, TiersQuery, IdPath, PlacementPath
from middleware.auth import require_admin
from middleware.error_handler import NotFoundException
from middleware.validation import parse_body, parse_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BANNERS = "sponsor_banners"

banners_tag = Tag(name="Banners", description="Sponsor banners and ad tiers")
banners_bp = APIBlueprint(
    'banners',
    __name__,
    url_prefix='/api/banners',
    abp_tags=[banners_tag]
)


def _get_banner_or_404(banner_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(BANNERS, banner_id)
    if not document:
        raise NotFoundException("Banner not found")
    return document


def create_banner_document(banner: Banner, created_by: str) -> dict:
    """
    Store a banner, starting its display window when it is timed and active.

    Also used when an approved ad redemption publishes a banner.
    """
    banner.start_timer()
    mongodb = current_app.mongodb_service
    mongodb.create(BANNERS, dict(banner.to_document(), id=banner.id), created_by)

    if banner.owner_id:
        current_app.notification_service.notify(
            banner.owner_id,
            NotificationType.BANNER_PUBLISHED.value,
            {"bannerName": banner.name, "durationMinutes": banner.duration_minutes}
        )
    return mongodb.find_by_id(BANNERS, banner.id)


@banners_bp.get('')
def list_banners():
    """Active banners first, then newest."""
    return jsonify(current_app.mongodb_service.find(
        BANNERS, sort=[("active", DESCENDING), ("createdAt", DESCENDING)]
    ))


@banners_bp.get('/active/<placement>')
def active_banners(path: PlacementPath):
    now = datetime.utcnow()
    return jsonify(current_app.mongodb_service.find(
        BANNERS,
        {
            "active": True,
            "placement": path.placement,
            "$or": [{"expiresAt": None}, {"expiresAt": {"$gt": now}}]
        },
        sort=[("displayOrder", ASCENDING), ("createdAt", DESCENDING)]
    ))


@banners_bp.get('/tiers')
def ad_tiers():
    """The ad tier table and where ``points`` stands in it."""
    query = parse_query(TiersQuery)
    return jsonify(tier_status(query.points))


@banners_bp.post('')
@require_admin
def create_banner(user_context: UserContext):
    with tracer.start_as_current_span("banners.create", attributes={"user.id": user_context.user_id}) as span:
        body = parse_body(BannerRequest)
        document = create_banner_document(Banner(**body.model_dump()), user_context.user_id)

        span.set_attribute("banner.id", document["id"])
        logger.info("Banner created", extra={"banner_id": document["id"], "placement": document.get("placement")})
        return jsonify(document), 201


@banners_bp.put('/<id>')
@require_admin
def update_banner(user_context: UserContext, path: IdPath):
    """Update a banner; activating a timed banner starts its window once."""
    current = _get_banner_or_404(path.id)
    body = parse_body(UpdateBannerRequest)
    updates = body.model_dump(by_alias=True, exclude_none=True)

    banner = Banner.from_document(dict(current, **updates))
    if not banner.started_at:
        banner.start_timer()
        if banner.started_at:
            updates["startedAt"] = banner.started_at
            updates["expiresAt"] = banner.expires_at

    mongodb = current_app.mongodb_service
    if updates:
        mongodb.update_by_id(BANNERS, path.id, updates, user_context.user_id)
    return jsonify(mongodb.find_by_id(BANNERS, path.id))


@banners_bp.delete('/<id>')
@require_admin
def delete_banner(user_context: UserContext, path: IdPath):
    _get_banner_or_404(path.id)
    current_app.mongodb_service.delete_by_id(BANNERS, path.id)
    return jsonify({"success": True, "message": "Banner deleted"})


def _track(banner_id: str, counter: str):
    if current_app.mongodb_service.increment(BANNERS, banner_id, {counter: 1}) is None:
        raise NotFoundException("Banner not found")
    return jsonify({"success": True})


@banners_bp.post('/<id>/impression')
def track_impression(path: IdPath):
    return _track(path.id, "impressions")


@banners_bp.post('/<id>/click')
def track_click(path: IdPath):
    return _track(path.id, "clicks")


@banners_bp.post('/check-expiration')
def check_expiration():
    """Deactivate every active banner whose window has closed."""
    deactivated = current_app.mongodb_service.update_many(
        BANNERS,
        {"active": True, "expiresAt": {"$ne": None, "$lte": datetime.utcnow()}},
        {"active": False}
    )
    if deactivated:
        logger.info(f"Deactivated {deactivated} expired banners")
    return jsonify({"success": True, "deactivated": deactivated, "message": "Expired banners deactivated"})
