# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL documents for the EcoBite API.

Resources keep their plain JSON fields and gain a ``_links`` object; which
action links appear depends on the caller's role and the resource's state,
so clients can render buttons without duplicating the business rules.
Errors are RFC 7807 problem documents with a ``help`` link.
"""

import math
from typing import Callable, Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from pydantic import BaseModel, Field

from models.entities import UserContext
from models.enums import DonationStatus, ReviewStatus, FOOD_RECIPIENT_TYPES

PROBLEM_BASE_URL = "https://api.ecobite.org/problems"

# Problem type slug -> human title
PROBLEM_TITLES = {
    "bad-request": "Bad Request",
    "validation-error": "Validation Error",
    "authentication-required": "Authentication Required",
    "insufficient-permissions": "Insufficient Permissions",
    "resource-not-found": "Resource Not Found",
    "method-not-allowed": "Method Not Allowed",
    "resource-conflict": "Resource Conflict",
    "payload-too-large": "Payload Too Large",
    "unsupported-media-type": "Unsupported Media Type",
    "rate-limit-exceeded": "Rate Limit Exceeded",
    "internal-server-error": "Internal Server Error",
    "bad-gateway": "Bad Gateway",
    "service-unavailable": "Service Unavailable",
    "gateway-timeout": "Gateway Timeout",
}

Links = Dict[str, "HalLink"]


class HalLink(BaseModel):
    href: str = Field(..., description="Absolute link URL")
    method: Optional[str] = Field("GET", description="HTTP method")
    type: Optional[str] = Field(None, description="Request content type")
    title: Optional[str] = Field(None, description="Human readable label")
    templated: Optional[bool] = Field(False, description="Whether href is a URI template")


def _dump(links: Links) -> Dict[str, Dict[str, Any]]:
    return {rel: link.model_dump() for rel, link in links.items()}


class LinkFactory:
    """Absolute links under the API's public base URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def link(self, path: str, method: str = "GET", title: Optional[str] = None,
             content_type: Optional[str] = None, templated: bool = False) -> HalLink:
        return HalLink(
            href=urljoin(self.base_url, path.lstrip('/')),
            method=method,
            type=content_type,
            title=title,
            templated=templated
        )

    def action(self, resource_path: str, action: str, method: str = "POST",
               title: Optional[str] = None) -> HalLink:
        """``POST {resource}/{action}``; the title defaults to the action in title case."""
        return self.link(f"{resource_path}/{action}", method, title or action.replace('-', ' ').title(),
                         "application/json")

    def page_links(self, base_path: str, page: int, total_pages: int, page_size: int,
                   params: Optional[Dict[str, Any]] = None) -> Links:
        """``self`` plus ``first``/``prev`` and ``next``/``last`` where those pages exist."""
        def at(target: int, title: str) -> HalLink:
            query = urlencode({**(params or {}), 'page': target, 'page_size': page_size})
            return self.link(f"{base_path}?{query}", title=title)

        links = {'self': at(page, "Current page")}
        if page > 1:
            links['first'] = at(1, "First page")
            links['prev'] = at(page - 1, "Previous page")
        if page < total_pages:
            links['next'] = at(page + 1, "Next page")
            links['last'] = at(total_pages, "Last page")
        return links


# Affordances: (factory, resource, caller) -> links

def donation_links(links: LinkFactory, donation: Dict[str, Any], caller: Optional[UserContext]) -> Links:
    path = f"/api/donations/{donation['id']}"
    result = {'self': links.link(path, title="Self"), 'collection': links.link("/api/donations", title="Collection")}
    if caller is None:
        return result

    status = donation.get('status')
    is_donor = donation.get('donorId') == caller.user_id
    is_claimer = donation.get('claimedById') == caller.user_id

    if status in (DonationStatus.AVAILABLE.value, DonationStatus.EXPIRED.value) \
            and caller.user_type in FOOD_RECIPIENT_TYPES:
        result['claim'] = links.action(path, "claim", title="Claim donation")

    if status == DonationStatus.PENDING_PICKUP.value:
        if is_donor and not donation.get('senderConfirmed'):
            result['confirm_sent'] = links.action(path, "confirm-sent")
        if is_claimer and not donation.get('receiverConfirmed'):
            result['confirm_received'] = links.action(path, "confirm-received")

    if is_donor or caller.is_admin():
        result['delete'] = links.link(path, method="DELETE", title="Delete donation")
    return result


def money_request_links(links: LinkFactory, money_request: Dict[str, Any],
                        caller: Optional[UserContext]) -> Links:
    path = f"/api/money-requests/{money_request['id']}"
    result = {
        'self': links.link(path, title="Self"),
        'collection': links.link("/api/money-requests", title="Collection")
    }
    if caller and caller.is_admin() and money_request.get('status') == ReviewStatus.PENDING.value:
        result['approve'] = links.action(path, "approve", title="Approve request")
        result['reject'] = links.action(path, "reject", title="Reject request")
    return result


def user_links(links: LinkFactory, user: Dict[str, Any], caller: Optional[UserContext]) -> Links:
    user_id = user.get('id', '')
    path = f"/api/users/{user_id}"
    result = {
        'self': links.link(path, title="Self"),
        'stats': links.link(f"{path}/stats", title="Impact statistics"),
        'collection': links.link("/api/users", title="Collection")
    }
    if caller is None:
        return result

    is_self = user_id == caller.user_id
    if is_self or caller.is_admin():
        result['edit'] = links.link(path, method="PUT", title="Edit user", content_type="application/json")
    if caller.is_admin() and not is_self:
        result['delete'] = links.link(path, method="DELETE", title="Delete user")
    return result


AFFORDANCES: Dict[str, Callable[[LinkFactory, Dict[str, Any], Optional[UserContext]], Links]] = {
    "donation": donation_links,
    "money_request": money_request_links,
    "user": user_links,
}


class HalFormatter:
    """Builds resource, collection and problem documents."""

    def __init__(self, base_url: str):
        self.links = LinkFactory(base_url)

    def format_resource(self, data: Dict[str, Any], resource_type: str,
                        caller: Optional[UserContext] = None) -> Dict[str, Any]:
        """
        Copy of ``data`` with ``_links``.

        Types without registered affordances only get a ``self`` link under
        ``/api/{resource-type}s/{id}``.
        """
        affordances = AFFORDANCES.get(resource_type)
        if affordances:
            links = affordances(self.links, data, caller)
        else:
            path = f"/api/{resource_type.replace('_', '-')}s/{data.get('id', '')}"
            links = {'self': self.links.link(path, title="Self")}
        return {**data, '_links': _dump(links)}

    def format_donation(self, donation: Dict[str, Any], caller: Optional[UserContext] = None) -> Dict[str, Any]:
        return self.format_resource(donation, "donation", caller)

    def format_money_request(self, money_request: Dict[str, Any],
                             caller: Optional[UserContext] = None) -> Dict[str, Any]:
        return self.format_resource(money_request, "money_request", caller)

    def format_user(self, user: Dict[str, Any], caller: Optional[UserContext] = None) -> Dict[str, Any]:
        return self.format_resource(user, "user", caller)

    def format_collection(self, items: List[Dict[str, Any]], total: int, page: int, page_size: int,
                          path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1
        return {
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': total_pages,
            '_links': _dump(self.links.page_links(path, page, total_pages, page_size, params)),
            '_embedded': {'items': items}
        }

    def format_problem(
        self,
        error_type: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        RFC 7807 document titled after ``error_type`` (see ``PROBLEM_TITLES``).

        ``error`` repeats ``detail`` for clients that read the flat
        ``{"error": ...}`` shape; ``extra`` keys are merged at the top level.
        """
        problem = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': PROBLEM_TITLES.get(error_type) or error_type.replace('-', ' ').title(),
            'status': status,
            'detail': detail,
            'instance': instance,
            'error': detail
        }
        if validation_errors:
            problem['errors'] = validation_errors
        problem.update(extra or {})

        links = {'help': self.links.link(f"/docs/errors#{error_type}", title="Error documentation")}
        if error_type == "validation-error":
            links['schema'] = self.links.link("/openapi/openapi.json", title="API schema")
        elif error_type == "authentication-required":
            links['login'] = self.links.link("/api/auth/login", method="POST", title="Login",
                                             content_type="application/json")
        problem['_links'] = _dump(links)
        return problem

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return self.format_problem("validation-error", 400, detail, instance, validation_errors, extra)


def create_hal_formatter(base_url: str) -> HalFormatter:
    return HalFormatter(base_url)
