# SPDX-License-Identifier: Apache-2.0

"""
Scheduled jobs exposed as endpoints for an external scheduler.

Callers authenticate with ``CRON_SECRET`` as a Bearer token or ``?key=``.
"""

import hmac
import os
from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain import donations as lifecycle
from domain.ecopoints import monthly_metrics
from domain.geo import nearest_recipients, DEFAULT_ALERT_RADIUS_KM, DEFAULT_MAX_RECIPIENTS
from models.enums import DonationStatus, FOOD_RECIPIENT_TYPES, NotificationType
from middleware.error_handler import AuthenticationException
from utils.request import HeaderUtils

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CRON_SECRET = "ecobite-secret-cron-key"
DEFAULT_ALERT_WINDOW_HOURS = 24

cron_tag = Tag(name="Cron", description="Scheduled jobs")
cron_bp = APIBlueprint(
    'cron',
    __name__,
    url_prefix='/api/cron',
    abp_tags=[cron_tag]
)


def _presented_secret() -> str:
    return HeaderUtils.get_bearer_token() or request.args.get("key", "")


def require_cron_secret(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("CRON_SECRET") or DEFAULT_CRON_SECRET
        if not hmac.compare_digest(_presented_secret().encode(), expected.encode()):
            logger.warning("Rejected cron request", extra={"path": request.path})
            raise AuthenticationException("Unauthorized cron request")
        return f(*args, **kwargs)
    return decorated_function


@cron_bp.get('/monthly-stats')
@require_cron_secret
def monthly_stats():
    """Email every opted-in user their donation impact for the current month."""
    with tracer.start_as_current_span("cron.monthly_stats") as span:
        mongodb = current_app.mongodb_service
        now = datetime.utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        counts = {
            row["_id"]: row["count"]
            for row in mongodb.aggregate("donations", [
                {"$match": {"createdAt": {"$gte": month_start}}},
                {"$group": {"_id": "$donorId", "count": {"$sum": 1}}}
            ])
        }

        users = mongodb.find(
            "users",
            {"email": {"$nin": [None, ""]}, "emailNotifications": {"$ne": False}},
            projection={"email": 1, "name": 1}
        )

        sent = 0
        errors = 0
        for user in users:
            stats = monthly_metrics(counts.get(user["id"], 0))
            stats["monthName"] = now.strftime("%B")
            if current_app.email_service.send_monthly_stats(user["email"], user.get("name") or "Eco-Warrior", stats):
                sent += 1
            else:
                errors += 1

        span.set_attributes({"cron.sent": sent, "cron.errors": errors})
        logger.info(f"Monthly stats processed: {sent} sent, {errors} errors")
        return jsonify({"success": True, "message": "Processed monthly stats", "sent": sent, "errors": errors})


@cron_bp.get('/expiry-alerts')
@require_cron_secret
def expiry_alerts():
    """
    Warn the nearest NGOs and shelters about available food expiring soon.

    Window, radius and recipient count come from ``EXPIRY_ALERT_WINDOW_HOURS``,
    ``EXPIRY_ALERT_RADIUS_KM`` and ``EXPIRY_ALERT_MAX_RECIPIENTS``. A donation
    is marked once at least one recipient was alerted.
    """
    with tracer.start_as_current_span("cron.expiry_alerts") as span:
        window = timedelta(hours=float(os.getenv("EXPIRY_ALERT_WINDOW_HOURS", DEFAULT_ALERT_WINDOW_HOURS)))
        radius_km = float(os.getenv("EXPIRY_ALERT_RADIUS_KM", DEFAULT_ALERT_RADIUS_KM))
        max_recipients = int(os.getenv("EXPIRY_ALERT_MAX_RECIPIENTS", DEFAULT_MAX_RECIPIENTS))

        mongodb = current_app.mongodb_service
        now = datetime.utcnow()
        candidates = mongodb.find("donations", {
            "status": {"$in": [DonationStatus.AVAILABLE.value, "Available"]},
            "expiryAlertSent": {"$ne": True},
            "expiry": {"$gte": now, "$lte": now + window},
            "lat": {"$ne": None},
            "lng": {"$ne": None}
        })
        expiring = [d for d in candidates if lifecycle.is_expiring(d, now, window)]

        recipients = []
        if expiring:
            recipients = mongodb.find(
                "users",
                {"type": {"$in": list(FOOD_RECIPIENT_TYPES)}, "lat": {"$ne": None}, "lng": {"$ne": None}},
                projection={"name": 1, "type": 1, "lat": 1, "lng": 1}
            )

        alerted = 0
        for donation in expiring:
            nearest = nearest_recipients(
                float(donation["lat"]),
                float(donation["lng"]),
                recipients,
                radius_km=radius_km,
                limit=max_recipients,
                exclude_ids=[donation.get("donorId")]
            )
            for ranked in nearest:
                current_app.notification_service.notify(
                    ranked.user["id"],
                    NotificationType.EXPIRY_ALERT.value,
                    {"foodType": donation.get("aiFoodType"), "distanceKm": ranked.distance_km}
                )
                alerted += 1

            if nearest:
                mongodb.update_by_id("donations", donation["id"], {"expiryAlertSent": True})

        span.set_attributes({"cron.processed": len(expiring), "cron.alerted": alerted})
        logger.info(f"Expiry alerts: {len(expiring)} donations processed, {alerted} alerts sent")
        return jsonify({"success": True, "processed": len(expiring), "alerted": alerted})
