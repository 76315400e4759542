# SPDX-License-Identifier: Apache-2.0

"""
Notification dispatch over email, SMS, push and the in-app feed.

The in-app record is always written. External channels honour the user's
preferences and contact details:

- email needs an address and ``emailNotifications`` on
- SMS needs a phone number and ``smsNotifications`` on
- push needs a ``deviceToken``
"""

import logging
from typing import Dict, List, Optional, Any
from opentelemetry import trace

from domain.templates import render_notification
from models.entities import InAppNotification
from models.enums import UserType
from services.mongodb import MongoDBService
from services.email import EmailService
from services.sms import SMSService
from services.push import PushService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

COLLECTION = "notifications"
DEFAULT_CHANNELS = {"email": True, "sms": True, "push": True}


class NotificationService:
    """Renders notification templates and fans them out to every channel."""

    def __init__(self, mongodb_service: MongoDBService, email_service: EmailService,
                 sms_service: SMSService, push_service: PushService):
        self.mongodb_service = mongodb_service
        self.email_service = email_service
        self.sms_service = sms_service
        self.push_service = push_service

    def create_in_app(self, user_id: str, notification_type: str, title: str, message: str) -> str:
        """Store an inbox entry and return its id."""
        notification = InAppNotification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message
        )
        return self.mongodb_service.create(COLLECTION, notification.to_document())

    def send_notification(
        self,
        user_id: str,
        notification_type: str,
        data: Optional[Dict[str, Any]] = None,
        channels: Optional[Dict[str, bool]] = None
    ) -> Optional[Dict[str, bool]]:
        """
        Notify one user.

        Args:
            user_id: Recipient
            notification_type: One of ``NotificationType``
            data: Template variables (amount, reason, foodType...)
            channels: Per-channel switches, all on by default

        Returns:
            ``{email, sms, push}`` delivery flags, or None when the user does
            not exist
        """
        results = {"email": False, "sms": False, "push": False}
        enabled = dict(DEFAULT_CHANNELS, **(channels or {}))
        data = data or {}

        with tracer.start_as_current_span("notifications.send") as span:
            span.set_attributes({
                "notification.type": notification_type,
                "notification.user_id": user_id
            })

            user = self.mongodb_service.find_by_id("users", user_id)
            if not user:
                logger.warning(f"Notification skipped, user not found: {user_id}")
                return None

            content = render_notification(notification_type, user.get("name"), data)

            self.create_in_app(user_id, notification_type, content.title, content.message)

            if enabled["email"] and user.get("email") and user.get("emailNotifications", True):
                results["email"] = self.email_service.send_email(
                    user["email"], content.email_subject, content.email_html
                )

            if enabled["sms"] and user.get("phone") and user.get("smsNotifications", True):
                results["sms"] = self.sms_service.send_sms(user["phone"], content.sms)

            if enabled["push"] and user.get("deviceToken"):
                results["push"] = self.push_service.send_push(
                    user["deviceToken"], content.push_title, content.push_body,
                    dict(data, type=notification_type)
                )

            span.set_attributes({
                "notification.email": results["email"],
                "notification.sms": results["sms"],
                "notification.push": results["push"]
            })
            logger.info(
                "Notification dispatched",
                extra={"user_id": user_id, "type": notification_type, "channels": results}
            )
            return results

    def send_bulk_notification(
        self,
        user_ids: List[str],
        notification_type: str,
        data: Optional[Dict[str, Any]] = None,
        channels: Optional[Dict[str, bool]] = None
    ) -> Dict[str, int]:
        """
        Notify many users; one failing recipient does not stop the rest.

        Returns:
            ``{success, failed}`` counts
        """
        success = 0
        failed = 0
        for user_id in user_ids:
            try:
                delivered = self.send_notification(user_id, notification_type, data, channels)
            except Exception as e:
                failed += 1
                logger.error(f"Notification to {user_id} failed: {str(e)}")
                continue

            if delivered is None:
                failed += 1
            else:
                success += 1

        return {"success": success, "failed": failed}

    def notify(self, user_id: str, notification_type: str, data: Optional[Dict[str, Any]] = None,
               channels: Optional[Dict[str, bool]] = None) -> Dict[str, bool]:
        """
        Best-effort ``send_notification`` for request handlers.

        Failures are logged; the business operation that triggered the
        notification has already succeeded.
        """
        try:
            delivered = self.send_notification(user_id, notification_type, data, channels)
        except Exception as e:
            logger.error(f"Notification {notification_type} to {user_id} failed: {str(e)}")
            delivered = None
        return delivered or {"email": False, "sms": False, "push": False}

    def admin_ids(self) -> List[str]:
        admins = self.mongodb_service.find("users", {"type": UserType.ADMIN.value}, projection={"_id": 1})
        return [admin["id"] for admin in admins]

    def notify_admins(self, notification_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Send an admin-facing notification to every admin."""
        try:
            return self.send_bulk_notification(self.admin_ids(), notification_type, data)
        except Exception as e:
            logger.error(f"Admin notification {notification_type} failed: {str(e)}")
            return {"success": 0, "failed": 0}
