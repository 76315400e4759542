# SPDX-License-Identifier: Apache-2.0

"""
Tests for the notification inbox endpoints and the dispatch service.
"""

import pytest
from unittest.mock import MagicMock

from services.notifications import NotificationService, COLLECTION
from services.push import PushService
from services.sms import SMSService, format_phone_number
from conftest import make_user


class TestInbox:

    def test_list_own_inbox(self, client, mongo, individual, individual_headers):
        mongo.find.return_value = [{"id": "n1", "userId": individual["id"], "read": False}]

        data = client.get(f'/api/notifications/user/{individual["id"]}', headers=individual_headers).get_json()

        assert data[0]["id"] == "n1"
        assert mongo.find.call_args[0][1] == {"userId": individual["id"]}
        assert mongo.find.call_args[1]["limit"] == 50

    def test_other_inbox_forbidden(self, client, services, individual_headers):
        response = client.get('/api/notifications/user/someone-else', headers=individual_headers)
        assert response.status_code == 403

    def test_admin_reads_any_inbox(self, client, services, admin_headers):
        assert client.get('/api/notifications/user/someone-else', headers=admin_headers).status_code == 200

    def test_requires_token(self, client, services):
        assert client.get('/api/notifications/user/u1').status_code == 401

    def test_unread_count(self, client, mongo, individual, individual_headers):
        mongo.count.return_value = 4

        data = client.get(f'/api/notifications/user/{individual["id"]}/unread-count',
                          headers=individual_headers).get_json()

        assert data == {"count": 4}
        assert mongo.count.call_args[0][1] == {"userId": individual["id"], "read": False}

    def test_mark_read(self, client, mongo, stored, individual, individual_headers):
        stored[(COLLECTION, "n1")] = {"id": "n1", "userId": individual["id"], "read": False}

        assert client.put('/api/notifications/n1/read', headers=individual_headers).status_code == 200
        mongo.update_by_id.assert_called_once_with(COLLECTION, "n1", {"read": True})

    def test_mark_read_of_another_user(self, client, mongo, stored, individual_headers):
        stored[(COLLECTION, "n1")] = {"id": "n1", "userId": "someone-else", "read": False}

        assert client.put('/api/notifications/n1/read', headers=individual_headers).status_code == 403
        mongo.update_by_id.assert_not_called()

    def test_mark_read_missing(self, client, stored, individual_headers):
        assert client.put('/api/notifications/n404/read', headers=individual_headers).status_code == 404

    def test_mark_all_read(self, client, mongo, individual, individual_headers):
        mongo.update_many.return_value = 3

        data = client.put(f'/api/notifications/user/{individual["id"]}/read-all',
                          headers=individual_headers).get_json()

        assert data["updated"] == 3
        assert mongo.update_many.call_args[0][1:] == (
            {"userId": individual["id"], "read": False}, {"read": True}
        )

    def test_delete(self, client, mongo, stored, individual, individual_headers):
        stored[(COLLECTION, "n1")] = {"id": "n1", "userId": individual["id"]}

        assert client.delete('/api/notifications/n1', headers=individual_headers).status_code == 200
        mongo.delete_by_id.assert_called_once_with(COLLECTION, "n1")

    def test_clear_all(self, client, mongo, individual, individual_headers):
        mongo.delete_many.return_value = 7

        data = client.delete(f'/api/notifications/user/{individual["id"]}/clear-all',
                             headers=individual_headers).get_json()

        assert data == {"success": True, "deleted": 7}


@pytest.fixture
def channels():
    mongodb = MagicMock()
    email = MagicMock()
    sms = MagicMock()
    push = MagicMock()
    email.send_email.return_value = True
    sms.send_sms.return_value = True
    push.send_push.return_value = True
    return mongodb, email, sms, push


@pytest.fixture
def dispatcher(channels):
    return NotificationService(*channels)


class TestNotificationService:

    def test_every_channel(self, dispatcher, channels):
        mongodb, email, sms, push = channels
        mongodb.find_by_id.return_value = make_user(
            "restaurant", id="u1", email="kitchen@example.com", phone="03001234567", deviceToken="tok"
        )

        results = dispatcher.send_notification("u1", "donation_claimed",
                                               {"foodType": "Rice", "claimerName": "Food Bank"})

        assert results == {"email": True, "sms": True, "push": True}
        inbox_collection, inbox_entry = mongodb.create.call_args[0]
        assert inbox_collection == COLLECTION
        assert inbox_entry["userId"] == "u1"
        assert inbox_entry["title"] == "Donation Claimed!"
        assert inbox_entry["read"] is False

        assert email.send_email.call_args[0][:2] == ("kitchen@example.com", "Donation Claimed!")
        assert sms.send_sms.call_args[0] == (
            "03001234567", 'Your donation "Rice" has been claimed by Food Bank!'
        )
        assert push.send_push.call_args[0][3]["type"] == "donation_claimed"

    def test_preferences_and_missing_contacts(self, dispatcher, channels):
        mongodb, email, sms, push = channels
        mongodb.find_by_id.return_value = make_user("individual", id="u1", emailNotifications=False)

        results = dispatcher.send_notification("u1", "ecopoints_earned", {"points": 10})

        assert results == {"email": False, "sms": False, "push": False}
        email.send_email.assert_not_called()
        sms.send_sms.assert_not_called()
        push.send_push.assert_not_called()
        mongodb.create.assert_called_once()

    def test_channel_switches(self, dispatcher, channels):
        mongodb, email, sms, push = channels
        mongodb.find_by_id.return_value = make_user("individual", id="u1", phone="+923001234567")

        dispatcher.send_notification("u1", "ecopoints_earned", {"points": 10}, channels={"email": False})

        email.send_email.assert_not_called()
        sms.send_sms.assert_called_once()

    def test_unknown_user(self, dispatcher, channels):
        mongodb = channels[0]
        mongodb.find_by_id.return_value = None

        assert dispatcher.send_notification("ghost", "ecopoints_earned") is None
        mongodb.create.assert_not_called()

    def test_unknown_type_raises(self, dispatcher, channels):
        channels[0].find_by_id.return_value = make_user("individual", id="u1")

        with pytest.raises(ValueError):
            dispatcher.send_notification("u1", "carrier_pigeon")

    def test_notify_swallows_failures(self, dispatcher, channels):
        channels[0].find_by_id.side_effect = RuntimeError("database down")

        assert dispatcher.notify("u1", "ecopoints_earned") == {"email": False, "sms": False, "push": False}

    def test_notify_unknown_user(self, dispatcher, channels):
        channels[0].find_by_id.return_value = None

        assert dispatcher.notify("ghost", "ecopoints_earned") == {"email": False, "sms": False, "push": False}

    def test_bulk_counts_failures(self, dispatcher, channels):
        mongodb = channels[0]
        mongodb.find_by_id.side_effect = [make_user("ngo", id="a"), RuntimeError("timeout"), None]

        result = dispatcher.send_bulk_notification(["a", "b", "c"], "donation_available", {"foodType": "Rice"})

        # Raised errors and vanished recipients both count as failed
        assert result == {"success": 1, "failed": 2}

    def test_notify_admins(self, dispatcher, channels):
        mongodb = channels[0]
        mongodb.find.return_value = [{"id": "admin-1"}, {"id": "admin-2"}]
        mongodb.find_by_id.side_effect = lambda collection, user_id: make_user("admin", id=user_id)

        result = dispatcher.notify_admins("payment_submitted", {"amount": 500})

        assert result == {"success": 2, "failed": 0}
        assert mongodb.find.call_args[0] == ("users", {"type": "admin"})


class TestChannels:

    @pytest.mark.parametrize("raw,expected", [
        ("03001234567", "+923001234567"),
        ("300-123 4567", "+923001234567"),
        ("+14155550100", "+14155550100"),
    ])
    def test_phone_formatting(self, raw, expected):
        assert format_phone_number(raw) == expected

    def test_unconfigured_sms_is_skipped(self, monkeypatch):
        monkeypatch.delenv("TWILIO_ACCOUNT_SID", raising=False)
        monkeypatch.delenv("TWILIO_AUTH_TOKEN", raising=False)

        service = SMSService()

        assert service.is_configured() is False
        assert service.send_sms("03001234567", "hello") is False

    def test_unconfigured_push_is_skipped(self, monkeypatch):
        monkeypatch.delenv("FIREBASE_CREDENTIALS", raising=False)
        monkeypatch.delenv("FIREBASE_SERVICE_ACCOUNT", raising=False)

        service = PushService()

        assert service.is_configured() is False
        assert service.send_push("token", "Title", "Body") is False
