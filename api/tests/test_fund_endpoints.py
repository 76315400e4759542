# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Endpoint tests for vouchers, the community fund, money requests and bank accounts.
"""

import pytest

from domain.finance import SufficiencyResult
from services.finance import InsufficientFundsError

VOUCHER_ID = "64b0000000000000000000a1"


def voucher_document(**overrides):
    document = {
        "id": VOUCHER_ID,
        "code": "HALF50",
        "title": "Half off",
        "status": "active",
        "discountType": "percentage",
        "discountValue": 50,
        "minEcoPoints": 100,
        "maxRedemptions": 10,
        "currentRedemptions": 2
    }
    document.update(overrides)
    return document


class TestVouchers:

    def test_create_normalizes_code(self, client, services, mongo, admin_headers):
        response = client.post('/api/vouchers', headers=admin_headers,
                               json={"code": "save10", "title": "Save 10", "discountValue": 10})

        assert response.status_code == 201
        stored = mongo.create.call_args[0][1]
        assert stored["code"] == "SAVE10"
        assert stored["status"] == "active"
        services["audit_service"].safe_log_admin_action.assert_called_once()

    def test_duplicate_code_conflicts(self, client, mongo, admin_headers):
        mongo.find_one.return_value = voucher_document(code="SAVE10")

        response = client.post('/api/vouchers', headers=admin_headers,
                               json={"code": "SAVE10", "title": "Again", "discountValue": 10})

        assert response.status_code == 409
        mongo.create.assert_not_called()

    def test_create_requires_admin(self, client, services, individual_headers):
        response = client.post('/api/vouchers', headers=individual_headers,
                               json={"code": "SAVE10", "title": "Save", "discountValue": 10})
        assert response.status_code == 403

    def test_update_keeps_percentage_cap(self, client, mongo, stored, admin_headers):
        stored[("vouchers", VOUCHER_ID)] = voucher_document()

        response = client.put(f'/api/vouchers/{VOUCHER_ID}', headers=admin_headers, json={"discountValue": 150})

        assert response.status_code == 400
        mongo.update_by_id.assert_not_called()

    def test_status_change(self, client, mongo, stored, admin_headers):
        stored[("vouchers", VOUCHER_ID)] = voucher_document()

        client.patch(f'/api/vouchers/{VOUCHER_ID}/status', headers=admin_headers, json={"status": "inactive"})

        assert mongo.update_by_id.call_args[0][2] == {"status": "inactive"}

    def test_performance(self, client, mongo, stored, individual):
        stored[("vouchers", VOUCHER_ID)] = voucher_document()
        mongo.find.return_value = [
            {"id": "r1", "voucherId": VOUCHER_ID, "userId": individual["id"]},
            {"id": "r2", "voucherId": VOUCHER_ID, "userId": "deleted-user"}
        ]
        mongo.find_by_ids.return_value = {individual["id"]: individual}

        data = client.get(f'/api/vouchers/{VOUCHER_ID}/performance').get_json()

        assert data["redemptionRate"] == 20.0
        assert [r["id"] for r in data["redemptions"]] == ["r1"]
        assert data["redemptions"][0]["name"] == individual["name"]


class TestVoucherRedemption:

    def _redeem(self, client, headers, user_id):
        return client.post(f'/api/vouchers/{VOUCHER_ID}/redeem', headers=headers, json={"userId": user_id})

    def test_redeem(self, client, services, mongo, stored, individual, individual_headers):
        stored[("vouchers", VOUCHER_ID)] = voucher_document()
        stored[("users", individual["id"])] = individual
        mongo.increment.return_value = voucher_document(currentRedemptions=3)

        response = self._redeem(client, individual_headers, individual["id"])

        data = response.get_json()
        assert response.status_code == 200
        assert data["redemptionId"]
        filters = mongo.increment.call_args[1]["guard"]
        assert filters == {"currentRedemptions": {"$lt": 10}}
        services["notification_service"].notify.assert_called_once_with(
            individual["id"], "voucher_redeemed", {"voucherTitle": "Half off"}
        )

    @pytest.mark.parametrize("voucher,message", [
        (voucher_document(status="inactive"), "Voucher is not active"),
        (voucher_document(currentRedemptions=10), "Voucher redemption limit reached"),
        (voucher_document(minEcoPoints=500), "Insufficient EcoPoints"),
    ])
    def test_refusals(self, client, mongo, stored, individual, individual_headers, voucher, message):
        stored[("vouchers", VOUCHER_ID)] = voucher
        stored[("users", individual["id"])] = individual

        response = self._redeem(client, individual_headers, individual["id"])

        assert response.status_code == 400
        assert response.get_json()["error"] == message
        mongo.create.assert_not_called()

    def test_missing_voucher(self, client, stored, individual, individual_headers):
        response = self._redeem(client, individual_headers, individual["id"])
        assert response.status_code == 404
        assert response.get_json()["error"] == "Voucher not found"

    def test_second_redemption(self, client, mongo, stored, individual, individual_headers):
        stored[("vouchers", VOUCHER_ID)] = voucher_document()
        stored[("users", individual["id"])] = individual
        mongo.find_one.return_value = {"id": "r1"}

        response = self._redeem(client, individual_headers, individual["id"])

        assert response.get_json()["error"] == "Voucher already redeemed"

    def test_lost_race_for_last_slot(self, client, mongo, stored, individual, individual_headers):
        stored[("vouchers", VOUCHER_ID)] = voucher_document(currentRedemptions=9)
        stored[("users", individual["id"])] = individual
        mongo.increment.return_value = None

        response = self._redeem(client, individual_headers, individual["id"])

        assert response.status_code == 400
        assert mongo.delete_by_id.call_args[0][0] == "voucher_redemptions"

    def test_cannot_redeem_for_someone_else(self, client, stored, ngo_headers, individual):
        assert self._redeem(client, ngo_headers, individual["id"]).status_code == 403


class TestFinance:

    def test_balance_is_public(self, client, services):
        services["finance_service"].get_balance.return_value = {
            "totalBalance": 900, "totalDonations": 1000, "totalWithdrawals": 100
        }
        assert client.get('/api/finance/balance').get_json()["totalBalance"] == 900

    def test_ledger_requires_admin(self, client, services, ngo_headers):
        assert client.get('/api/finance', headers=ngo_headers).status_code == 403

    def test_ledger_filters(self, client, services, admin_headers):
        services["finance_service"].list_transactions.return_value = []

        client.get('/api/finance?type=withdrawal&userId=u1', headers=admin_headers)

        kwargs = services["finance_service"].list_transactions.call_args[1]
        assert kwargs["type"] == "withdrawal"
        assert kwargs["user_id"] == "u1"

    def test_summary_period(self, client, services, admin_headers):
        services["finance_service"].summary.return_value = {"netBalance": 0}

        assert client.get('/api/finance/summary?period=week', headers=admin_headers).status_code == 200
        services["finance_service"].summary.assert_called_once_with("week")
        assert client.get('/api/finance/summary?period=decade', headers=admin_headers).status_code == 400

    def test_record_donation(self, client, services, admin_headers):
        services["finance_service"].record_donation.return_value = {"id": "t1", "amount": 250.0}

        response = client.post('/api/finance/donation', headers=admin_headers, json={"amount": 250})

        assert response.status_code == 201
        assert services["finance_service"].record_donation.call_args[1]["category"] == "general"

    def test_withdrawal_category(self, client, services, admin_headers):
        response = client.post('/api/finance/withdrawal', headers=admin_headers,
                               json={"amount": 100, "category": "holiday"})

        data = response.get_json()
        assert response.status_code == 400
        assert data["allowedCategories"] == ["transportation", "packaging", "other"]
        services["finance_service"].record_withdrawal.assert_not_called()

    def test_withdrawal_insufficient_funds(self, client, services, admin_headers):
        services["finance_service"].record_withdrawal.side_effect = InsufficientFundsError(
            SufficiencyResult(sufficient=False, available=40.0, requested=100)
        )

        response = client.post('/api/finance/withdrawal', headers=admin_headers,
                               json={"amount": 100, "category": "packaging"})

        data = response.get_json()
        assert response.status_code == 400
        assert data["error"] == "Insufficient funds"
        assert (data["available"], data["requested"]) == (40.0, 100)


class TestMoneyRequests:

    @pytest.fixture
    def pending(self, stored, ngo):
        document = {"id": "m1", "requesterId": ngo["id"], "amount": 500, "purpose": "Fuel", "status": "pending"}
        stored[("money_requests", "m1")] = document
        return document

    def test_create(self, client, services, mongo, stored, ngo, ngo_headers):
        stored[("users", ngo["id"])] = ngo

        response = client.post('/api/money-requests', headers=ngo_headers,
                               json={"userId": ngo["id"], "amount": 300})

        assert response.status_code == 201
        created = mongo.create.call_args[0][1]
        assert created["purpose"] == "Logistics funding"
        assert created["requesterRole"] == "ngo"
        assert services["notification_service"].notify_admins.call_args[0][0] == "money_request_created"

    def test_donor_roles_refused(self, client, stored, individual, individual_headers):
        stored[("users", individual["id"])] = individual

        response = client.post('/api/money-requests', headers=individual_headers,
                               json={"userId": individual["id"], "amount": 300})

        assert response.status_code == 403
        assert "Only NGOs" in response.get_json()["error"]

    def test_amount_must_be_positive(self, client, stored, ngo, ngo_headers):
        stored[("users", ngo["id"])] = ngo

        response = client.post('/api/money-requests', headers=ngo_headers, json={"userId": ngo["id"], "amount": 0})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid amount"

    def test_unknown_user(self, client, stored, admin_headers):
        response = client.post('/api/money-requests', headers=admin_headers, json={"userId": "ghost", "amount": 10})
        assert response.status_code == 404

    def test_list_is_scoped_for_non_admins(self, client, mongo, ngo, ngo_headers):
        client.get('/api/money-requests?userId=someone-else', headers=ngo_headers)
        assert mongo.find.call_args[0][1] == {"requesterId": ngo["id"]}

    def test_approve(self, client, services, mongo, pending, ngo, admin, admin_headers):
        services["finance_service"].get_balance.return_value = {"totalBalance": 1500}

        response = client.post('/api/money-requests/m1/approve', headers=admin_headers)

        data = response.get_json()
        assert data["amountApproved"] == 500
        assert data["remainingBalance"] == 1500
        assert mongo.update_by_id.call_args_list[0][1]["guard"] == {"status": "pending"}

        amount, category = services["finance_service"].record_withdrawal.call_args[0]
        assert (amount, category) == (500, "money_request")
        services["notification_service"].notify.assert_called_once_with(
            ngo["id"], "money_request_approved", {"amount": 500}
        )
        assert services["audit_service"].safe_log_admin_action.call_args[0][1] == "approve_money_request"

    def test_approve_twice(self, client, services, mongo, pending, admin_headers):
        mongo.update_by_id.return_value = False

        response = client.post('/api/money-requests/m1/approve', headers=admin_headers)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Request already processed"
        services["finance_service"].record_withdrawal.assert_not_called()

    def test_approve_without_funds_goes_back_to_pending(self, client, services, mongo, pending, admin_headers):
        services["finance_service"].record_withdrawal.side_effect = InsufficientFundsError(
            SufficiencyResult(sufficient=False, available=100.0, requested=500)
        )

        response = client.post('/api/money-requests/m1/approve', headers=admin_headers)

        data = response.get_json()
        assert response.status_code == 400
        assert (data["available"], data["requested"]) == (100.0, 500)
        assert mongo.update_by_id.call_args[0][2]["status"] == "pending"
        services["notification_service"].notify.assert_not_called()

    def test_reject_default_reason(self, client, services, mongo, pending, ngo, admin_headers):
        response = client.post('/api/money-requests/m1/reject', headers=admin_headers)

        assert response.status_code == 200
        assert mongo.update_by_id.call_args[0][2]["rejectionReason"] == "No reason provided"
        _, notification_type, payload = services["notification_service"].notify.call_args[0]
        assert notification_type == "money_request_rejected"
        assert payload["reason"] == "No reason provided"

    def test_review_requires_admin(self, client, pending, ngo_headers):
        assert client.post('/api/money-requests/m1/approve', headers=ngo_headers).status_code == 403

    def test_stats(self, client, services, mongo, admin_headers):
        mongo.aggregate.return_value = [
            {"_id": "pending", "count": 2, "amount": 700},
            {"_id": "approved", "count": 1, "amount": 500}
        ]
        services["finance_service"].get_balance.return_value = {"totalBalance": 800}

        data = client.get('/api/money-requests/stats/summary', headers=admin_headers).get_json()

        assert data["totalRequests"] == 3
        assert data["pendingAmount"] == 700
        assert data["rejectedRequests"] == 0
        assert data["availableBalance"] == 800


class TestBankAccounts:

    def _account(self, ngo, **overrides):
        body = {
            "userId": ngo["id"],
            "accountHolderName": "Food Bank Lahore",
            "bankName": "HBL",
            "accountNumber": "0123456789"
        }
        body.update(overrides)
        return body

    def test_add_default_clears_others(self, client, mongo, stored, ngo, ngo_headers):
        stored[("users", ngo["id"])] = ngo

        response = client.post('/api/bank-accounts', headers=ngo_headers, json=self._account(ngo, isDefault=True))

        assert response.status_code == 201
        mongo.update_many.assert_called_once_with("bank_accounts", {"userId": ngo["id"]}, {"isDefault": False})
        assert mongo.create.call_args[0][1]["isVerified"] is False

    def test_missing_details(self, client, mongo, stored, ngo, ngo_headers):
        stored[("users", ngo["id"])] = ngo

        response = client.post('/api/bank-accounts', headers=ngo_headers, json=self._account(ngo, bankName=None))

        assert response.status_code == 400
        mongo.create.assert_not_called()

    def test_donors_cannot_add(self, client, stored, individual, individual_headers):
        stored[("users", individual["id"])] = individual

        response = client.post('/api/bank-accounts', headers=individual_headers, json=self._account(individual))

        assert response.status_code == 403

    def test_list_sorted_default_first(self, client, mongo, ngo, ngo_headers):
        client.get(f'/api/bank-accounts/user/{ngo["id"]}', headers=ngo_headers)
        assert mongo.find.call_args[1]["sort"][0][0] == "isDefault"

    def test_other_users_accounts_hidden(self, client, services, individual_headers, ngo):
        assert client.get(f'/api/bank-accounts/user/{ngo["id"]}', headers=individual_headers).status_code == 403

    def test_set_default(self, client, mongo, stored, ngo, ngo_headers):
        stored[("bank_accounts", "b1")] = {"id": "b1", "userId": ngo["id"], "isDefault": False}

        client.post('/api/bank-accounts/b1/set-default', headers=ngo_headers)

        mongo.update_many.assert_called_once()
        assert mongo.update_by_id.call_args[0][2] == {"isDefault": True}

    def test_verify_is_admin_only(self, client, mongo, stored, ngo, ngo_headers, admin_headers):
        stored[("bank_accounts", "b1")] = {"id": "b1", "userId": ngo["id"]}

        assert client.post('/api/bank-accounts/b1/verify', headers=ngo_headers).status_code == 403
        assert client.post('/api/bank-accounts/b1/verify', headers=admin_headers).status_code == 200
        assert mongo.update_by_id.call_args[0][2] == {"isVerified": True}

    def test_admin_listing_joins_users(self, client, mongo, ngo, admin_headers):
        mongo.find.return_value = [{"id": "b1", "userId": ngo["id"]}]
        mongo.find_by_ids.return_value = {ngo["id"]: ngo}

        accounts = client.get('/api/bank-accounts/admin/all', headers=admin_headers).get_json()

        assert accounts[0]["organization"] == "Food Bank Lahore"
        assert accounts[0]["userType"] == "ngo"
