# SPDX-License-Identifier: Apache-2.0

"""
SMS delivery through Twilio.

Needs ``TWILIO_ACCOUNT_SID``, ``TWILIO_AUTH_TOKEN`` and ``TWILIO_PHONE_NUMBER``.
Local numbers are assumed Pakistani (``03xx...`` becomes ``+923xx...``).
"""

import os
import logging
from typing import Optional
from opentelemetry import trace
from twilio.rest import Client
from twilio.base.exceptions import TwilioException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_COUNTRY_CODE = "+92"


def format_phone_number(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """E.164 form of ``phone``; numbers already starting with ``+`` are kept."""
    phone = phone.strip().replace(" ", "").replace("-", "")
    if phone.startswith("+"):
        return phone
    if phone.startswith("0"):
        phone = phone[1:]
    return f"{country_code}{phone}"


class SMSService:
    """Twilio SMS sender; sends are skipped when not configured."""

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None,
                 from_number: Optional[str] = None):
        self.account_sid = account_sid or os.getenv("TWILIO_ACCOUNT_SID", "")
        self.auth_token = auth_token or os.getenv("TWILIO_AUTH_TOKEN", "")
        self.from_number = from_number or os.getenv("TWILIO_PHONE_NUMBER", "")
        self.client: Optional[Client] = None

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
            logger.info("SMS service ready (Twilio)")
        else:
            logger.warning("SMS service not configured. Set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN")

    def is_configured(self) -> bool:
        return self.client is not None

    def send_sms(self, to: str, message: str) -> bool:
        """
        Send a text message.

        Returns:
            True when Twilio accepted the message
        """
        with tracer.start_as_current_span("sms.send") as span:
            if not self.is_configured():
                span.set_attribute("sms.result", "not_configured")
                logger.info(f"SMS not configured, skipping message to {to}")
                return False

            try:
                result = self.client.messages.create(
                    body=message,
                    from_=self.from_number,
                    to=format_phone_number(to)
                )
            except TwilioException as e:
                span.set_attribute("sms.result", "error")
                span.record_exception(e)
                logger.error(f"SMS sending failed: {str(e)}")
                return False

            span.set_attribute("sms.result", "sent")
            logger.info(f"SMS sent successfully: {result.sid}")
            return True
