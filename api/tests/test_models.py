# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError
from bson import ObjectId

from models.entities import (
    User, Donation, Voucher, Banner, AdRedemption, MoneyDonation,
    MoneyRequest, BankAccount, public_user_document
)
from models.enums import DonationStatus, ReviewStatus, PaymentStatus
from models.requests import (
    RegisterRequest, CreateDonationRequest, UpdateUserRequest,
    FinanceFilters, CreateVoucherRequest
)


class TestUserModel:
    """Test User model validation."""

    def test_valid_user(self):
        """Test valid user creation."""
        user = User(email="ali@example.com", name="Ali", type="ngo", organization="Food Bank")
        assert user.type == "ngo"
        assert user.eco_points == 0
        assert user.email_notifications is True
        assert isinstance(user.created_at, datetime)

    def test_email_validation(self):
        """Test email format validation."""
        with pytest.raises(ValidationError) as exc_info:
            User(email="invalid-email", name="Ali")

        assert "Invalid email format" in str(exc_info.value)

    def test_email_normalization(self):
        """Test email normalization to lowercase."""
        assert User(email="Ali@EXAMPLE.COM", name="Ali").email == "ali@example.com"

    def test_points_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            User(email="ali@example.com", name="Ali", eco_points=-1)

    def test_camel_case_documents(self):
        """Stored documents use camelCase keys."""
        user = User.from_document({
            "_id": ObjectId(),
            "email": "ali@example.com",
            "name": "Ali",
            "ecoPoints": 40,
            "emailNotifications": False
        })
        assert user.eco_points == 40
        assert user.email_notifications is False

        document = user.to_document()
        assert "id" not in document
        assert document["ecoPoints"] == 40

    def test_public_dict_hides_secrets(self):
        user = User(email="ali@example.com", name="Ali", password="$2b$12$hash", reset_token="abc")
        public = user.to_public_dict()
        assert "password" not in public
        assert "resetToken" not in public
        assert public["email"] == "ali@example.com"

    def test_public_user_document(self):
        document = {"id": "1", "email": "a@b.com", "password": "hash", "resetToken": "t", "resetTokenExpiry": None}
        assert public_user_document(document) == {"id": "1", "email": "a@b.com"}
        assert public_user_document(None) is None

class TestDonationModel:
    """Test Donation model lifecycle."""

    def test_defaults(self):
        donation = Donation()
        assert donation.donor_id == "anonymous"
        assert donation.status == DonationStatus.AVAILABLE.value
        assert donation.ai_quality_score == 85

    def test_pending_pickup_requires_claimer(self):
        with pytest.raises(ValidationError) as exc_info:
            Donation(status=DonationStatus.PENDING_PICKUP)
        assert "claimed_by_id is required" in str(exc_info.value)

    def test_quality_score_range(self):
        with pytest.raises(ValidationError):
            Donation(ai_quality_score=101)


class TestVoucherModel:

    def test_code_normalized(self):
        voucher = Voucher(code=" save-10 ", title="Save 10", discount_value=10)
        assert voucher.code == "SAVE-10"

    def test_invalid_code(self):
        with pytest.raises(ValidationError):
            Voucher(code="no spaces!", title="Bad", discount_value=10)

    def test_percentage_cap(self):
        with pytest.raises(ValidationError) as exc_info:
            Voucher(code="BIG", title="Too big", discount_value=150)
        assert "cannot exceed 100" in str(exc_info.value)
        assert Voucher(code="BIG", title="Fixed", discount_type="fixed", discount_value=150)

    def test_usage_defaults(self):
        voucher = Voucher(code="HALF", title="Half", discount_value=50)
        assert voucher.current_redemptions == 0
        assert voucher.max_redemptions == 100


class TestBannerModel:

    def test_timer_starts_once(self):
        now = datetime(2025, 6, 1, 12, 0)
        banner = Banner(name="Sponsor", duration_minutes=60)
        banner.start_timer(now)
        assert banner.started_at == now
        assert banner.expires_at == now + timedelta(minutes=60)

        banner.start_timer(now + timedelta(minutes=30))
        assert banner.started_at == now

    def test_untimed_or_inactive_banner(self):
        forever = Banner(name="Forever")
        forever.start_timer()
        assert forever.expires_at is None
        inactive = Banner(name="Paused", duration_minutes=10, active=False)
        inactive.start_timer()
        assert inactive.started_at is None

    def test_background_color(self):
        with pytest.raises(ValidationError):
            Banner(name="Sponsor", background_color="green")
        assert Banner(name="Sponsor", background_color="#10B981").background_color == "#10B981"


class TestReviewModels:
    """Pending -> approved/rejected transitions."""

    def test_ad_redemption(self):
        redemption = AdRedemption(user_id="u1", package_id="starter", points_cost=1000, duration_minutes=4320)
        assert redemption.can_review()
        redemption.approve("banner-1")
        assert redemption.status == ReviewStatus.APPROVED.value
        assert redemption.banner_id == "banner-1"
        with pytest.raises(ValueError):
            redemption.reject("late")

    def test_money_donation(self):
        donation = MoneyDonation(donor_id="u1", amount=500)
        donation.reject("admin", "Blurry proof")
        assert donation.status == PaymentStatus.FAILED.value
        assert donation.rejection_reason == "Blurry proof"
        with pytest.raises(ValueError):
            donation.verify("admin")

    def test_money_request_roles(self):
        with pytest.raises(ValidationError) as exc_info:
            MoneyRequest(requester_id="u1", requester_role="individual", amount=100)
        assert "Only NGOs" in str(exc_info.value)

        request = MoneyRequest(requester_id="u1", requester_role="shelter", amount=100)
        request.approve("admin")
        assert request.status == ReviewStatus.APPROVED.value
        assert request.reviewed_by == "admin"

    def test_rejected_money_request_needs_reason(self):
        with pytest.raises(ValidationError):
            MoneyRequest(requester_id="u1", requester_role="ngo", amount=100, status="rejected")

    def test_bank_account_fields(self):
        with pytest.raises(ValidationError):
            BankAccount(user_id="u1", account_holder_name=" ", bank_name="HBL", account_number="12345678")
        account = BankAccount(user_id="u1", account_holder_name="Food Bank", bank_name="HBL", account_number="12345678")
        assert account.is_default is False
        assert account.is_verified is False


class TestRequestModels:
    """Test request models."""

    def test_register_request(self):
        request = RegisterRequest.model_validate({
            "email": "New@Example.com", "password": "secret1", "name": "New", "type": "restaurant", "licenseId": "L-1"
        })
        assert request.email == "new@example.com"
        assert request.license_id == "L-1"

    def test_register_rejects_short_password(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest(email="a@b.com", password="123", name="A")
        assert "at least 6 characters" in str(exc_info.value)

    def test_register_rejects_admin(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest(email="a@b.com", password="secret1", name="A", type="admin")
        assert "Cannot self-register as admin" in str(exc_info.value)

    def test_donation_request_accepts_legacy_status(self):
        request = CreateDonationRequest.model_validate({"status": "Available", "aiFoodType": "Rice"})
        assert request.status == DonationStatus.AVAILABLE.value
        assert request.ai_food_type == "Rice"

    def test_update_user_is_partial(self):
        request = UpdateUserRequest.model_validate({"name": "Renamed"})
        assert request.model_dump(exclude_unset=True) == {"name": "Renamed"}

    def test_finance_filters_are_naive_utc(self):
        filters = FinanceFilters(start_date=datetime(2025, 6, 1, 5, 0, tzinfo=timezone(timedelta(hours=5))))
        assert filters.start_date == datetime(2025, 6, 1, 0, 0)

    def test_voucher_request(self):
        with pytest.raises(ValidationError):
            CreateVoucherRequest(code="AB", title="Too short", discount_value=5)
