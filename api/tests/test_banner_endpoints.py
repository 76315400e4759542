# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Endpoint tests for sponsor banners and EcoPoints ad redemptions.
"""

import pytest
from datetime import datetime, timedelta

from routes.ad_redemptions import AD_REDEMPTIONS
from routes.banners import BANNERS


def redemption_document(user_id, **overrides):
    document = {
        "id": "r1",
        "userId": user_id,
        "packageId": "starter",
        "pointsCost": 1000,
        "durationMinutes": 4320,
        "bannerData": {"name": "Food Bank Lahore", "link": "https://foodbank.example"},
        "status": "pending"
    }
    document.update(overrides)
    return document


class TestBanners:

    def test_create_requires_admin(self, client, services, individual_headers):
        response = client.post('/api/banners', headers=individual_headers, json={"name": "Sponsor"})
        assert response.status_code == 403

    def test_create_timed_banner(self, client, services, persisted, individual, admin_headers):
        response = client.post('/api/banners', headers=admin_headers, json={
            "name": "Sponsor",
            "durationMinutes": 60,
            "ownerId": individual["id"]
        })

        data = response.get_json()
        stored_banner = persisted[(BANNERS, data["id"])]
        assert response.status_code == 201
        assert stored_banner["expiresAt"] - stored_banner["startedAt"] == timedelta(minutes=60)

        user_id, notification_type, payload = services["notification_service"].notify.call_args[0]
        assert user_id == individual["id"]
        assert notification_type == "banner_published"
        assert payload == {"bannerName": "Sponsor", "durationMinutes": 60}

    def test_untimed_banner_has_no_window(self, client, services, persisted, admin_headers):
        data = client.post('/api/banners', headers=admin_headers, json={"name": "House ad"}).get_json()

        assert persisted[(BANNERS, data["id"])]["expiresAt"] is None
        services["notification_service"].notify.assert_not_called()

    def test_invalid_color(self, client, services, admin_headers):
        response = client.post('/api/banners', headers=admin_headers,
                               json={"name": "Sponsor", "backgroundColor": "green"})
        assert response.status_code == 400

    def test_update_starts_timer_once(self, client, mongo, stored, admin_headers):
        stored[(BANNERS, "b1")] = {"id": "b1", "name": "Sponsor", "active": False, "durationMinutes": 30}

        client.put('/api/banners/b1', headers=admin_headers, json={"active": True})

        updates = mongo.update_by_id.call_args[0][2]
        assert updates["active"] is True
        assert updates["expiresAt"] - updates["startedAt"] == timedelta(minutes=30)

    def test_update_keeps_running_window(self, client, mongo, stored, admin_headers):
        started = datetime(2025, 6, 1)
        stored[(BANNERS, "b1")] = {
            "id": "b1", "name": "Sponsor", "durationMinutes": 30,
            "startedAt": started, "expiresAt": started + timedelta(minutes=30)
        }

        client.put('/api/banners/b1', headers=admin_headers, json={"name": "Renamed"})

        assert mongo.update_by_id.call_args[0][2] == {"name": "Renamed"}

    def test_update_missing(self, client, stored, admin_headers):
        assert client.put('/api/banners/nope', headers=admin_headers, json={"name": "x"}).status_code == 404

    def test_active_placement_query(self, client, mongo):
        client.get('/api/banners/active/dashboard')

        query = mongo.find.call_args[0][1]
        assert query["active"] is True
        assert query["placement"] == "dashboard"
        assert query["$or"][0] == {"expiresAt": None}

    @pytest.mark.parametrize("action,counter", [("impression", "impressions"), ("click", "clicks")])
    def test_tracking(self, client, mongo, action, counter):
        mongo.increment.return_value = {"id": "b1"}

        assert client.post(f'/api/banners/b1/{action}').status_code == 200
        assert mongo.increment.call_args[0] == (BANNERS, "b1", {counter: 1})

    def test_tracking_unknown_banner(self, client, mongo):
        mongo.increment.return_value = None
        assert client.post('/api/banners/b1/click').status_code == 404

    def test_check_expiration(self, client, mongo):
        mongo.update_many.return_value = 2

        data = client.post('/api/banners/check-expiration').get_json()

        assert data["deactivated"] == 2
        assert mongo.update_many.call_args[0][2] == {"active": False}

    def test_tiers(self, client, services):
        data = client.get('/api/banners/tiers?points=1500').get_json()

        assert data["currentTier"]["id"] == "starter"
        assert data["nextTier"]["id"] == "bronze"
        assert data["pointsNeeded"] == 3500
        assert data["progress"] == 30.0
        assert data["availableTiers"] == ["starter"]


class TestCreateRedemption:

    def test_insufficient_points(self, client, mongo, stored, individual, individual_headers):
        stored[("users", individual["id"])] = individual

        response = client.post('/api/ad-redemptions', headers=individual_headers,
                               json={"userId": individual["id"], "packageId": "starter"})

        data = response.get_json()
        assert response.status_code == 400
        assert data["error"] == "Insufficient EcoPoints"
        assert (data["required"], data["available"]) == (1000, 120)
        mongo.increment.assert_not_called()

    def test_unknown_package(self, client, services, individual, individual_headers):
        response = client.post('/api/ad-redemptions', headers=individual_headers,
                               json={"userId": individual["id"], "packageId": "ruby"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Unknown ad package"

    def test_for_another_user(self, client, services, individual_headers):
        response = client.post('/api/ad-redemptions', headers=individual_headers,
                               json={"userId": "someone-else", "packageId": "starter"})
        assert response.status_code == 403

    def test_points_held(self, client, services, mongo, persisted, admin, admin_headers):
        persisted[("users", admin["id"])] = admin
        mongo.increment.return_value = dict(admin, ecoPoints=4000)

        response = client.post('/api/ad-redemptions', headers=admin_headers, json={
            "userId": admin["id"], "packageId": "starter", "bannerData": {"name": "Admin Corner"}
        })

        data = response.get_json()
        assert response.status_code == 201
        assert data["status"] == "pending"
        assert data["durationMinutes"] == 4320
        assert mongo.increment.call_args[0] == ("users", admin["id"], {"ecoPoints": -1000})
        assert mongo.increment.call_args[1]["guard"] == {"ecoPoints": {"$gte": 1000}}

        assert services["notification_service"].notify_admins.call_args[0][0] == "ad_redemption_requested"
        assert services["notification_service"].notify.call_args[0][2]["status"] == "submitted"

    def test_lost_hold_race(self, client, services, mongo, stored, admin, admin_headers):
        stored[("users", admin["id"])] = admin
        mongo.increment.return_value = None

        response = client.post('/api/ad-redemptions', headers=admin_headers,
                               json={"userId": admin["id"], "packageId": "starter"})

        assert response.status_code == 400
        mongo.create.assert_not_called()

    def test_points_returned_when_not_stored(self, client, services, mongo, stored, admin, admin_headers):
        stored[("users", admin["id"])] = admin
        mongo.increment.return_value = dict(admin, ecoPoints=4000)
        mongo.create.side_effect = RuntimeError("write concern timeout")

        response = client.post('/api/ad-redemptions', headers=admin_headers,
                               json={"userId": admin["id"], "packageId": "starter"})

        assert response.status_code == 500
        assert mongo.increment.call_args_list[-1][0] == ("users", admin["id"], {"ecoPoints": 1000})
        services["notification_service"].notify_admins.assert_not_called()


class TestReviewRedemption:

    def test_approve_publishes_banner(self, client, services, mongo, persisted, individual, admin_headers):
        persisted[(AD_REDEMPTIONS, "r1")] = redemption_document(individual["id"])

        response = client.post('/api/ad-redemptions/r1/approve', headers=admin_headers)

        data = response.get_json()
        assert response.status_code == 200
        banner = persisted[(BANNERS, data["bannerId"])]
        assert banner["name"] == "Food Bank Lahore"
        assert banner["ownerId"] == individual["id"]
        assert banner["durationMinutes"] == 4320

        guarded, linked = mongo.update_by_id.call_args_list
        assert guarded[1]["guard"] == {"status": "pending"}
        assert guarded[0][2]["status"] == "approved"
        assert linked[0][2] == {"bannerId": data["bannerId"]}

    def test_approve_with_existing_banner(self, client, mongo, persisted, individual, admin_headers):
        persisted[(AD_REDEMPTIONS, "r1")] = redemption_document(individual["id"])

        data = client.post('/api/ad-redemptions/r1/approve', headers=admin_headers,
                           json={"bannerId": "b-existing"}).get_json()

        assert data["bannerId"] == "b-existing"
        assert (BANNERS, "b-existing") not in persisted
        assert mongo.update_by_id.call_count == 1

    def test_approve_lost_race_publishes_nothing(self, client, mongo, persisted, individual, admin_headers):
        persisted[(AD_REDEMPTIONS, "r1")] = redemption_document(individual["id"])
        mongo.update_by_id.return_value = False

        response = client.post('/api/ad-redemptions/r1/approve', headers=admin_headers)

        assert response.status_code == 400
        mongo.create.assert_not_called()

    def test_already_processed(self, client, stored, individual, admin_headers):
        stored[(AD_REDEMPTIONS, "r1")] = redemption_document(individual["id"], status="approved")

        response = client.post('/api/ad-redemptions/r1/reject', headers=admin_headers)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Request already processed"

    def test_reject_refunds_points(self, client, services, mongo, stored, individual, admin_headers):
        stored[(AD_REDEMPTIONS, "r1")] = redemption_document(individual["id"])

        response = client.post('/api/ad-redemptions/r1/reject', headers=admin_headers)

        assert response.status_code == 200
        assert mongo.update_by_id.call_args[0][2]["rejectionReason"] == "Please contact admin for details"
        mongo.increment.assert_called_once_with("users", individual["id"], {"ecoPoints": 1000})
        payload = services["notification_service"].notify.call_args[0][2]
        assert payload["pointsRefunded"] == 1000

    def test_review_missing(self, client, stored, admin_headers):
        assert client.post('/api/ad-redemptions/r9/approve', headers=admin_headers).status_code == 404


class TestRedemptionListings:

    def test_admin_listing_joins_balance(self, client, mongo, individual, admin_headers):
        mongo.find.return_value = [redemption_document(individual["id"])]
        mongo.find_by_ids.return_value = {individual["id"]: individual}

        data = client.get('/api/ad-redemptions', headers=admin_headers).get_json()

        assert data[0]["currentPoints"] == 120
        assert data[0]["userType"] == "individual"

    def test_user_listing_is_private(self, client, services, individual_headers):
        assert client.get('/api/ad-redemptions/user/other', headers=individual_headers).status_code == 403
