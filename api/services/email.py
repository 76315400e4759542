# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
SMTP email delivery through Flask-Mail.

Configured from ``MAIL_SERVER``, ``MAIL_PORT``, ``MAIL_USE_TLS``,
``MAIL_USERNAME``, ``MAIL_PASSWORD`` and ``MAIL_DEFAULT_SENDER``. Without
credentials every send is skipped and reported as not delivered.
"""

import os
import re
import logging
from typing import Dict, List, Optional, Any
from flask import Flask
from flask_mail import Mail, Message
from opentelemetry import trace

from domain.templates import (
    render_password_reset_email,
    render_monthly_stats_email,
    render_welcome_email,
    render_message_email
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


def html_to_text(html: str) -> str:
    """Plain-text alternative for an HTML body."""
    return _TAG_RE.sub("", html).strip()


class EmailService:
    """Flask-Mail wrapper that never raises on delivery failures."""

    def __init__(self, app: Optional[Flask] = None):
        self.mail: Optional[Mail] = None
        self.configured = False
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        username = os.getenv('MAIL_USERNAME', os.getenv('SMTP_USER', ''))
        password = os.getenv('MAIL_PASSWORD', os.getenv('SMTP_PASSWORD', ''))

        app.config.setdefault('MAIL_SERVER', os.getenv('MAIL_SERVER', 'smtp.gmail.com'))
        app.config.setdefault('MAIL_PORT', int(os.getenv('MAIL_PORT', '587')))
        app.config.setdefault('MAIL_USE_TLS', os.getenv('MAIL_USE_TLS', 'true').lower() == 'true')
        app.config.setdefault('MAIL_USE_SSL', os.getenv('MAIL_USE_SSL', 'false').lower() == 'true')
        app.config.setdefault('MAIL_USERNAME', username)
        app.config.setdefault('MAIL_PASSWORD', password)
        app.config.setdefault('MAIL_DEFAULT_SENDER', os.getenv('MAIL_DEFAULT_SENDER') or ("EcoBite", username))

        self.mail = Mail(app)
        self.configured = bool(username and password)

        if self.configured:
            logger.info("Email service ready")
        else:
            logger.warning("Email service not configured. Set MAIL_USERNAME and MAIL_PASSWORD")

    def is_configured(self) -> bool:
        return self.configured

    def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        """
        Send one email.

        Returns:
            True when the message was handed to the SMTP server
        """
        with tracer.start_as_current_span("email.send") as span:
            span.set_attribute("email.subject", subject)

            if not self.configured or self.mail is None:
                span.set_attribute("email.result", "not_configured")
                logger.info(f"Email not configured, skipping email to {to}: {subject}")
                return False

            message = Message(
                subject=subject,
                recipients=[to],
                html=html,
                body=text or html_to_text(html)
            )

            try:
                self.mail.send(message)
            except Exception as e:
                span.set_attribute("email.result", "error")
                span.record_exception(e)
                logger.error(f"Email send error to {to}: {str(e)}")
                return False

            span.set_attribute("email.result", "sent")
            logger.info(f"Email sent to {to}")
            return True

    def send_bulk(self, recipients: List[str], subject: str, html: str) -> Dict[str, int]:
        """Send the same email to many recipients one at a time."""
        sent = 0
        failed = 0
        for recipient in recipients:
            if self.send_email(recipient, subject, html):
                sent += 1
            else:
                failed += 1

        logger.info(f"Bulk email: {sent} sent, {failed} failed")
        return {"sent": sent, "failed": failed}

    def send_password_reset(self, email: str, name: str, reset_url: str) -> bool:
        rendered = render_password_reset_email(name, reset_url)
        return self.send_email(email, rendered["subject"], rendered["html"])

    def send_monthly_stats(self, email: str, name: str, stats: Dict[str, Any]) -> bool:
        rendered = render_monthly_stats_email(name, stats)
        return self.send_email(email, rendered["subject"], rendered["html"])

    def send_welcome(self, email: str, name: str, user_type: str) -> bool:
        rendered = render_welcome_email(name, user_type)
        return self.send_email(email, rendered["subject"], rendered["html"])

    def send_message(self, to: str, subject: str, message: str) -> bool:
        rendered = render_message_email(subject, message)
        return self.send_email(to, rendered["subject"], rendered["html"])

    def send_bulk_message(self, recipients: List[str], subject: str, message: str) -> Dict[str, int]:
        rendered = render_message_email(subject, message)
        return self.send_bulk(recipients, rendered["subject"], rendered["html"])
