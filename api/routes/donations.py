# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Donation endpoints: listing, the claim and pickup lifecycle, and the AI helpers.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain import donations as lifecycle
from domain.content import impact_story, safety_tip, welcome_message
from domain.ecopoints import DONATION_REWARD_POINTS
from models.entities import Donation, UserContext
from models.enums import DonationStatus, NotificationType, FOOD_RECIPIENT_TYPES
from models.requests import (
    CreateDonationRequest,
    UpdateDonationRequest,
    AnalyzeImageRequest,
    ImpactStoryRequest,
    WelcomeMessageRequest,
    SafetyTipQuery,
    DonationFilters,
    IdPath
)
from middleware.auth import require_jwt, optional_jwt
from middleware.error_handler import (
    ValidationException,
    AuthorizationException,
    NotFoundException
)
from middleware.validation import parse_body, parse_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DONATIONS = "donations"
MAP_LIMIT = 100
FEED_LIMIT = 10
DONATION_IMAGE_FOLDER = "donations"

donations_tag = Tag(name="Donations", description="Surplus food listings and pickups")
donations_bp = APIBlueprint(
    'donations',
    __name__,
    url_prefix='/api/donations',
    abp_tags=[donations_tag]
)


def _get_donation_or_404(donation_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(DONATIONS, donation_id)
    if not document:
        raise NotFoundException("Donation not found")
    return document


def _raise_refused(result: lifecycle.TransitionResult):
    if result.status_code == 403:
        raise AuthorizationException(result.error_message)
    raise ValidationException(result.error_message)


@donations_bp.get('/map')
def map_donations():
    """Open and pending donations with coordinates, joined with the donor."""
    mongodb = current_app.mongodb_service
    documents = mongodb.find(
        DONATIONS,
        {
            "status": {"$in": list(lifecycle.MAP_STATUSES) + ["Available"]},
            "lat": {"$ne": None},
            "lng": {"$ne": None}
        },
        sort="createdAt",
        limit=MAP_LIMIT
    )
    donors = mongodb.find_by_ids("users", [d.get("donorId") for d in documents if d.get("donorId")])

    markers = []
    for document in documents:
        donor = donors.get(document.get("donorId")) or {}
        markers.append({
            "id": document["id"],
            "lat": document.get("lat"),
            "lng": document.get("lng"),
            "foodType": document.get("aiFoodType"),
            "quantity": document.get("quantity"),
            "expiry": document.get("expiry"),
            "status": lifecycle.normalize_status(document.get("status")),
            "description": document.get("description"),
            "donorName": donor.get("name"),
            "donorRole": donor.get("type")
        })
    return jsonify(markers)


@donations_bp.get('/feed')
def activity_feed():
    """The latest completed donations."""
    mongodb = current_app.mongodb_service
    documents = mongodb.find(DONATIONS, {"status": DonationStatus.COMPLETED.value}, sort="createdAt", limit=FEED_LIMIT)
    donors = mongodb.find_by_ids("users", [d.get("donorId") for d in documents if d.get("donorId")])

    feed = []
    for document in documents:
        donor = donors.get(document.get("donorId"))
        if not donor:
            continue
        feed.append({
            "id": document["id"],
            "aiFoodType": document.get("aiFoodType"),
            "quantity": document.get("quantity"),
            "createdAt": document.get("createdAt"),
            "donorName": donor.get("name"),
            "donorOrg": donor.get("organization")
        })
    return jsonify(feed)


@donations_bp.get('')
def list_donations():
    filters = parse_query(DonationFilters)

    query = {}
    if filters.status:
        query["status"] = filters.status
    if filters.donor_id:
        query["donorId"] = filters.donor_id
    if filters.claimed_by_id:
        query["claimedById"] = filters.claimed_by_id

    return jsonify(current_app.mongodb_service.find(DONATIONS, query, sort="createdAt"))


@donations_bp.get('/<id>')
@optional_jwt
def get_donation(user_context, path: IdPath):
    document = _get_donation_or_404(path.id)
    return jsonify(current_app.hal_formatter.format_donation(document, user_context))


@donations_bp.post('')
@optional_jwt
def create_donation(user_context):
    """
    List a donation.

    Signed-in donors are credited from their token; otherwise the body's
    ``donorId`` is used, falling back to an anonymous listing. Named donors
    earn EcoPoints and every NGO and shelter is told about the new food.
    """
    with tracer.start_as_current_span("donations.create") as span:
        body = parse_body(CreateDonationRequest, required=False) or CreateDonationRequest()
        donor_id = lifecycle.resolve_donor_id(user_context, body.donor_id)
        span.set_attributes({"donation.donor_id": donor_id, "donation.authenticated": user_context is not None})

        image_url = current_app.image_storage_service.store_or_passthrough(body.image_url, DONATION_IMAGE_FOLDER)

        donation = Donation(
            donor_id=donor_id,
            status=body.status,
            expiry=body.expiry,
            ai_food_type=body.ai_food_type or "Food",
            ai_quality_score=body.ai_quality_score,
            image_url=image_url,
            description=body.description or "Food donation",
            quantity=body.quantity or "1 piece",
            lat=body.lat,
            lng=body.lng
        )

        mongodb = current_app.mongodb_service
        mongodb.create(DONATIONS, dict(donation.to_document(), id=donation.id), donor_id)

        updated_eco_points = None
        if not lifecycle.is_anonymous(donor_id):
            donor = mongodb.increment("users", donor_id, {"ecoPoints": DONATION_REWARD_POINTS})
            if donor is not None:
                updated_eco_points = donor.get("ecoPoints")
                current_app.redis_service.invalidate_leaderboard()
            else:
                logger.warning("EcoPoints not awarded, donor not found", extra={"donor_id": donor_id})

        recipients = mongodb.find(
            "users",
            {"type": {"$in": list(FOOD_RECIPIENT_TYPES)}},
            projection={"_id": 1}
        )
        recipient_ids = [r["id"] for r in recipients if r["id"] != donor_id]
        if recipient_ids:
            current_app.notification_service.send_bulk_notification(
                recipient_ids,
                NotificationType.DONATION_AVAILABLE.value,
                {"foodType": donation.ai_food_type, "location": "Nearby (Check Map)"}
            )

        span.set_attribute("donation.id", donation.id)
        logger.info(
            "Donation created",
            extra={"donation_id": donation.id, "donor_id": donor_id, "notified": len(recipient_ids)}
        )

        response = dict(donation.to_document(), id=donation.id)
        response["ecoPointsEarned"] = DONATION_REWARD_POINTS
        response["updatedEcoPoints"] = updated_eco_points
        return jsonify(response), 201


@donations_bp.post('/<id>/claim')
@require_jwt
def claim_donation(user_context: UserContext, path: IdPath):
    """Reserve a donation for pickup by the signed-in beneficiary."""
    with tracer.start_as_current_span(
        "donations.claim",
        attributes={"donation.id": path.id, "user.id": user_context.user_id}
    ) as span:
        document = _get_donation_or_404(path.id)

        result = lifecycle.claim(document, user_context.user_id)
        if not result.success:
            span.set_status(Status(StatusCode.ERROR, result.error_message))
            _raise_refused(result)

        mongodb = current_app.mongodb_service
        if not mongodb.update_by_id(DONATIONS, path.id, result.updates, user_context.user_id, guard=result.guard):
            span.set_status(Status(StatusCode.ERROR, "claimed concurrently"))
            raise ValidationException("Donation is no longer available")

        claimer = mongodb.find_by_id("users", user_context.user_id) or {}
        if not lifecycle.is_anonymous(document.get("donorId")):
            current_app.notification_service.notify(
                document["donorId"],
                NotificationType.DONATION_CLAIMED.value,
                {"foodType": document.get("aiFoodType") or "Donation", "claimerName": claimer.get("name") or "An NGO"}
            )

        logger.info("Donation claimed", extra={"donation_id": path.id, "claimed_by": user_context.user_id})
        return jsonify(current_app.hal_formatter.format_donation(
            mongodb.find_by_id(DONATIONS, path.id), user_context
        ))


def _confirm(user_context: UserContext, donation_id: str, transition, message: str):
    document = _get_donation_or_404(donation_id)

    result = transition(document, user_context.user_id)
    if not result.success:
        _raise_refused(result)

    mongodb = current_app.mongodb_service
    if not mongodb.update_by_id(DONATIONS, donation_id, result.updates, user_context.user_id, guard=result.guard):
        raise ValidationException("Donation changed hands, reload and try again")

    # Whichever confirmation lands second completes the donation
    if mongodb.update_by_id(DONATIONS, donation_id, {"status": DonationStatus.COMPLETED.value},
                            user_context.user_id, guard=lifecycle.COMPLETION_GUARD):
        status = DonationStatus.COMPLETED.value
    else:
        status = document.get("status") or DonationStatus.PENDING_PICKUP.value

    logger.info(message, extra={"donation_id": donation_id, "user_id": user_context.user_id, "status": status})
    return jsonify({"message": message, "status": status})


@donations_bp.post('/<id>/confirm-sent')
@require_jwt
def confirm_sent(user_context: UserContext, path: IdPath):
    return _confirm(user_context, path.id, lifecycle.confirm_sent, "Sender confirmation recorded")


@donations_bp.post('/<id>/confirm-received')
@require_jwt
def confirm_received(user_context: UserContext, path: IdPath):
    return _confirm(user_context, path.id, lifecycle.confirm_received, "Receiver confirmation recorded")


@donations_bp.patch('/<id>')
@require_jwt
def update_donation(user_context: UserContext, path: IdPath):
    _get_donation_or_404(path.id)
    body = parse_body(UpdateDonationRequest)

    updates = body.model_dump(by_alias=True, exclude_none=True)
    mongodb = current_app.mongodb_service
    if updates:
        mongodb.update_by_id(DONATIONS, path.id, updates, user_context.user_id)

    return jsonify(current_app.hal_formatter.format_donation(mongodb.find_by_id(DONATIONS, path.id), user_context))


@donations_bp.delete('/<id>')
@require_jwt
def delete_donation(user_context: UserContext, path: IdPath):
    document = _get_donation_or_404(path.id)
    if not lifecycle.can_delete(document, user_context):
        raise AuthorizationException("Not authorized to delete this donation")

    current_app.mongodb_service.delete_by_id(DONATIONS, path.id)
    logger.info("Donation deleted", extra={"donation_id": path.id, "user_id": user_context.user_id})
    return jsonify({"message": "Donation deleted successfully"})


# AI helpers

@donations_bp.post('/analyze')
def analyze_image():
    """Classify a food photo and estimate its freshness."""
    with tracer.start_as_current_span("donations.analyze") as span:
        body = parse_body(AnalyzeImageRequest)
        analysis = current_app.vision_service.analyze_food_image(body.image_url)
        span.set_attributes({"vision.food_type": analysis.food_type, "vision.quality": analysis.quality_score})
        return jsonify(analysis.to_dict())


@donations_bp.post('/impact-story')
def generate_impact_story():
    body = parse_body(ImpactStoryRequest)
    return jsonify({"story": impact_story(body.stats)})


@donations_bp.get('/ai/safety-tip')
def get_safety_tip():
    query = parse_query(SafetyTipQuery)
    return jsonify({"tip": safety_tip(query.food_type)})


@donations_bp.post('/ai/welcome')
def get_welcome_message():
    body = parse_body(WelcomeMessageRequest)
    return jsonify({"message": welcome_message(body.name, body.role)})
