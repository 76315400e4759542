# SPDX-License-Identifier: Apache-2.0

"""
Push notifications through Firebase Cloud Messaging.

``FIREBASE_CREDENTIALS`` holds either the service account JSON itself or a
path to it.
"""

import os
import json
import logging
from typing import Dict, List, Optional, Any
from opentelemetry import trace
import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _load_credentials(raw: str) -> credentials.Certificate:
    raw = raw.strip()
    if raw.startswith("{"):
        return credentials.Certificate(json.loads(raw))
    return credentials.Certificate(raw)


def _stringify(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """FCM data payloads only accept string values."""
    return {str(k): str(v) for k, v in (data or {}).items() if v is not None}


class PushService:
    """Firebase Admin messaging wrapper."""

    def __init__(self, credentials_json: Optional[str] = None):
        self.app: Optional[firebase_admin.App] = None
        raw = credentials_json or os.getenv("FIREBASE_CREDENTIALS") or os.getenv("FIREBASE_SERVICE_ACCOUNT")

        if not raw:
            logger.warning("Push notifications not configured. Set FIREBASE_CREDENTIALS")
            return

        try:
            if firebase_admin._apps:
                self.app = firebase_admin.get_app()
            else:
                self.app = firebase_admin.initialize_app(_load_credentials(raw))
            logger.info("Push notification service ready (Firebase)")
        except (ValueError, OSError) as e:
            logger.error(f"Push notifications not configured: {str(e)}")
            self.app = None

    def is_configured(self) -> bool:
        return self.app is not None

    def send_push(self, device_token: str, title: str, body: str,
                  data: Optional[Dict[str, Any]] = None) -> bool:
        """Send a notification to one device."""
        with tracer.start_as_current_span("push.send") as span:
            if not self.is_configured():
                span.set_attribute("push.result", "not_configured")
                logger.info(f"Push not configured, skipping notification: {title}")
                return False

            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data=_stringify(data),
                token=device_token
            )

            try:
                response = messaging.send(message, app=self.app)
            except (FirebaseError, ValueError) as e:
                span.set_attribute("push.result", "error")
                span.record_exception(e)
                logger.error(f"Push notification failed: {str(e)}")
                return False

            span.set_attribute("push.result", "sent")
            logger.info(f"Push notification sent: {response}")
            return True

    def send_push_multicast(self, device_tokens: List[str], title: str, body: str,
                            data: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Send one notification to many devices."""
        if not device_tokens:
            return {"success": 0, "failed": 0}

        if not self.is_configured():
            return {"success": 0, "failed": len(device_tokens)}

        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data=_stringify(data),
            tokens=device_tokens
        )

        try:
            response = messaging.send_each_for_multicast(message, app=self.app)
        except (FirebaseError, ValueError) as e:
            logger.error(f"Push notifications failed: {str(e)}")
            return {"success": 0, "failed": len(device_tokens)}

        logger.info(f"Push notifications sent: {response.success_count} success, {response.failure_count} failed")
        return {"success": response.success_count, "failed": response.failure_count}
