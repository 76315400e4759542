# SPDX-License-Identifier: Apache-2.0

"""
Food request endpoints. New requests come with generated outreach drafts.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.content import marketing_drafts
from models.entities import FoodRequest, UserContext
from models.requests import CreateFoodRequestRequest, UpdateFoodRequestRequest, FoodRequestFilters, IdPath
from middleware.auth import require_jwt
from middleware.error_handler import AuthorizationException, NotFoundException
from middleware.validation import parse_body, parse_query

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FOOD_REQUESTS = "food_requests"

food_requests_tag = Tag(name="Food Requests", description="Beneficiary requests for food")
food_requests_bp = APIBlueprint(
    'food_requests',
    __name__,
    url_prefix='/api/requests/food',
    abp_tags=[food_requests_tag]
)


def _get_request_or_404(request_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(FOOD_REQUESTS, request_id)
    if not document:
        raise NotFoundException("Request not found")
    return document


def _require_requester(document: dict, user_context: UserContext, action: str) -> None:
    if document.get("requesterId") != user_context.user_id:
        raise AuthorizationException(f"Not authorized to {action} this request")


@food_requests_bp.get('')
def list_food_requests():
    filters = parse_query(FoodRequestFilters)
    query = {"requesterId": filters.requester_id} if filters.requester_id else {}
    return jsonify(current_app.mongodb_service.find(FOOD_REQUESTS, query, sort="createdAt"))


@food_requests_bp.get('/<id>')
def get_food_request(path: IdPath):
    return jsonify(_get_request_or_404(path.id))


@food_requests_bp.post('')
@require_jwt
def create_food_request(user_context: UserContext):
    """Create a request for the signed-in user with three outreach drafts."""
    with tracer.start_as_current_span("food_requests.create", attributes={"user.id": user_context.user_id}):
        body = parse_body(CreateFoodRequestRequest)

        food_request = FoodRequest(
            requester_id=user_context.user_id,
            food_type=body.food_type,
            quantity=body.quantity,
            ai_drafts=marketing_drafts(body.food_type, body.quantity)
        )
        current_app.mongodb_service.create(
            FOOD_REQUESTS,
            dict(food_request.to_document(), id=food_request.id),
            user_context.user_id
        )

        logger.info("Food request created", extra={"request_id": food_request.id, "user_id": user_context.user_id})
        return jsonify(dict(food_request.to_document(), id=food_request.id)), 201


@food_requests_bp.patch('/<id>')
@require_jwt
def update_food_request(user_context: UserContext, path: IdPath):
    document = _get_request_or_404(path.id)
    _require_requester(document, user_context, "update")

    body = parse_body(UpdateFoodRequestRequest)
    updates = body.model_dump(by_alias=True, exclude_none=True)
    mongodb = current_app.mongodb_service
    if updates:
        mongodb.update_by_id(FOOD_REQUESTS, path.id, updates, user_context.user_id)

    return jsonify(mongodb.find_by_id(FOOD_REQUESTS, path.id))


@food_requests_bp.delete('/<id>')
@require_jwt
def delete_food_request(user_context: UserContext, path: IdPath):
    document = _get_request_or_404(path.id)
    _require_requester(document, user_context, "delete")

    current_app.mongodb_service.delete_by_id(FOOD_REQUESTS, path.id)
    logger.info("Food request deleted", extra={"request_id": path.id, "user_id": user_context.user_id})
    return jsonify({"message": "Request deleted successfully"})
