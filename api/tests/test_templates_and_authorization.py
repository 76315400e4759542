# SPDX-License-Identifier: Apache-2.0

"""
Tests for notification rendering and role-based authorization.
"""

import pytest

from domain.templates import (
    format_pkr,
    render_notification,
    render_message_email,
    render_monthly_stats_email,
    render_password_reset_email,
    render_welcome_email,
    TEMPLATES
)
from domain.authorization import (
    permissions_for_role,
    check_permission,
    check_permissions,
    is_self_or_admin,
    can_modify_user,
    restricted_profile_fields
)
from models.entities import UserContext
from models.enums import NotificationType


class TestFormatting:

    @pytest.mark.parametrize("amount,expected", [
        (1234, "PKR 1,234"),
        (1500.5, "PKR 1,500.50"),
        (None, "PKR 0"),
        ("oops", "PKR 0"),
    ])
    def test_format_pkr(self, amount, expected):
        assert format_pkr(amount) == expected


class TestNotificationTemplates:

    def test_every_type_has_a_template(self):
        assert set(TEMPLATES) == {t.value for t in NotificationType}

    @pytest.mark.parametrize("notification_type", [t.value for t in NotificationType])
    def test_renders_without_data(self, notification_type):
        rendered = render_notification(notification_type, None)
        assert rendered.title
        assert rendered.message
        assert rendered.email_html.startswith("<div")

    def test_payment_verified_amount(self):
        rendered = render_notification("payment_verified", "Ali", {"amount": 2500})
        assert "PKR 2,500" in rendered.sms

    def test_expiry_alert_distance(self):
        rendered = render_notification("expiry_alert", "Ali", {"foodType": "Rice", "distanceKm": 3.456})
        assert rendered.push_body.startswith("Rice 3.5 km away")

    def test_ad_rejection_mentions_refund(self):
        rendered = render_notification(
            "ad_redemption_update", "Ali", {"status": "rejected", "reason": "Off-brand", "pointsRefunded": 5000}
        )
        assert rendered.title == "Ad Redemption Rejected"
        assert "5000 points have been refunded" in rendered.message

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            render_notification("carrier_pigeon", "Ali")

    def test_html_is_escaped(self):
        rendered = render_notification("payment_rejected", "Ali", {"reason": "<script>"})
        assert "<script>" not in rendered.email_html
        assert "&lt;script&gt;" in rendered.email_html


class TestStandaloneEmails:

    def test_password_reset(self):
        email = render_password_reset_email("Ali", "https://ecobite.example/reset?token=abc")
        assert email["subject"] == "Reset Your EcoBite Password"
        assert "token=abc" in email["html"]

    def test_monthly_stats(self):
        email = render_monthly_stats_email("Ali", {"monthName": "June", "donations": 3, "peopleFed": 9})
        assert email["subject"] == "Your EcoBite Impact for June"
        assert "<strong>People fed:</strong> 9" in email["html"]

    def test_welcome_by_role(self):
        assert "Earn EcoPoints" in render_welcome_email("Ali", "individual")["html"]
        assert "Claim food donations" in render_welcome_email("Food Bank", "ngo")["html"]

    def test_message_paragraphs(self):
        email = render_message_email("Maintenance", "Line one\n\nLine two")
        assert email["html"].count("<p>Line") == 2


class TestAuthorization:

    def _context(self, user_type, user_id="u1"):
        return UserContext(user_id=user_id, user_type=user_type, permissions=permissions_for_role(user_type))

    def test_role_permissions(self):
        assert "payment:donate" in permissions_for_role("individual")
        assert "payment:donate" not in permissions_for_role("restaurant")
        assert "food_request:create" in permissions_for_role("ngo")
        assert "food_request:create" not in permissions_for_role("fertilizer")
        assert permissions_for_role("pirate") == []

    def test_admin_has_everything(self):
        admin = self._context("admin")
        assert check_permissions(admin, ["user:manage", "finance:manage", "banner:manage"]).allowed

    def test_missing_permission(self):
        result = check_permission(self._context("restaurant"), "donation:claim")
        assert not result.allowed
        assert result.missing_permissions == ["donation:claim"]

    def test_any_permission(self):
        ngo = self._context("ngo")
        assert check_permissions(ngo, ["donation:claim", "user:manage"], require_all=False).allowed
        assert not check_permissions(ngo, ["donation:claim", "user:manage"]).allowed

    def test_self_or_admin(self):
        assert is_self_or_admin(self._context("ngo", "u1"), "u1")
        assert is_self_or_admin(self._context("admin", "a1"), "u1")
        assert not is_self_or_admin(self._context("ngo", "u2"), "u1")
        assert not is_self_or_admin(None, "u1")

    def test_modify_user(self):
        assert can_modify_user(self._context("individual", "u1"), "u1").allowed
        assert not can_modify_user(self._context("individual", "u2"), "u1").allowed

    def test_restricted_fields(self):
        assert restricted_profile_fields(self._context("individual")) == ["type", "eco_points"]
        assert restricted_profile_fields(self._context("admin")) == []
