# SPDX-License-Identifier: Apache-2.0

"""
Payout bank accounts of beneficiary organizations.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from pymongo import DESCENDING
import logging

from domain.authorization import is_self_or_admin
from models.entities import BankAccount, UserContext
from models.enums import BENEFICIARY_TYPES
from models.requests import BankAccountRequest, UpdateBankAccountRequest, IdPath, UserIdPath
from middleware.auth import require_jwt, require_admin
from middleware.error_handler import ValidationException, AuthorizationException, NotFoundException
from middleware.validation import parse_body

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BANK_ACCOUNTS = "bank_accounts"
DEFAULT_FIRST = [("isDefault", DESCENDING), ("createdAt", DESCENDING)]

bank_accounts_tag = Tag(name="Bank Accounts", description="Beneficiary payout accounts")
bank_accounts_bp = APIBlueprint(
    'bank_accounts',
    __name__,
    url_prefix='/api/bank-accounts',
    abp_tags=[bank_accounts_tag]
)


def _get_account_or_404(account_id: str) -> dict:
    document = current_app.mongodb_service.find_by_id(BANK_ACCOUNTS, account_id)
    if not document:
        raise NotFoundException("Bank account not found")
    return document


def _owned_account(user_context: UserContext, account_id: str) -> dict:
    document = _get_account_or_404(account_id)
    if not is_self_or_admin(user_context, document.get("userId")):
        raise AuthorizationException("Not authorized to manage this bank account")
    return document


def _clear_defaults(user_id: str) -> None:
    current_app.mongodb_service.update_many(BANK_ACCOUNTS, {"userId": user_id}, {"isDefault": False})


@bank_accounts_bp.get('/user/<user_id>')
@require_jwt
def list_user_accounts(user_context: UserContext, path: UserIdPath):
    """Default account first, then newest."""
    if not is_self_or_admin(user_context, path.user_id):
        raise AuthorizationException("Cannot view another user's bank accounts")
    return jsonify(current_app.mongodb_service.find(BANK_ACCOUNTS, {"userId": path.user_id}, sort=DEFAULT_FIRST))


@bank_accounts_bp.post('')
@require_jwt
def add_account(user_context: UserContext):
    with tracer.start_as_current_span("bank_accounts.create", attributes={"user.id": user_context.user_id}):
        body = parse_body(BankAccountRequest)
        if not is_self_or_admin(user_context, body.user_id):
            raise AuthorizationException("Cannot add bank accounts for another user")

        mongodb = current_app.mongodb_service
        user = mongodb.find_by_id("users", body.user_id)
        if not user:
            raise NotFoundException("User not found")
        if user.get("type") not in BENEFICIARY_TYPES:
            raise AuthorizationException("Only NGOs, Shelters, and Fertilizer companies can add bank accounts")
        if not (body.account_holder_name and body.bank_name and body.account_number):
            raise ValidationException("Account holder name, bank name, and account number are required")

        if body.is_default:
            _clear_defaults(body.user_id)

        account = BankAccount(**body.model_dump())
        mongodb.create(BANK_ACCOUNTS, dict(account.to_document(), id=account.id), user_context.user_id)

        logger.info("Bank account added", extra={"account_id": account.id, "user_id": body.user_id})
        return jsonify(mongodb.find_by_id(BANK_ACCOUNTS, account.id)), 201


@bank_accounts_bp.put('/<id>')
@require_jwt
def update_account(user_context: UserContext, path: IdPath):
    current = _owned_account(user_context, path.id)
    body = parse_body(UpdateBankAccountRequest)
    updates = body.model_dump(by_alias=True, exclude_none=True)

    BankAccount.from_document(dict(current, **updates))

    if updates.get("isDefault"):
        _clear_defaults(current["userId"])

    mongodb = current_app.mongodb_service
    if updates:
        mongodb.update_by_id(BANK_ACCOUNTS, path.id, updates, user_context.user_id)
    return jsonify(mongodb.find_by_id(BANK_ACCOUNTS, path.id))


@bank_accounts_bp.delete('/<id>')
@require_jwt
def delete_account(user_context: UserContext, path: IdPath):
    _owned_account(user_context, path.id)
    current_app.mongodb_service.delete_by_id(BANK_ACCOUNTS, path.id)
    return jsonify({"success": True, "message": "Bank account deleted"})


@bank_accounts_bp.post('/<id>/set-default')
@require_jwt
def set_default_account(user_context: UserContext, path: IdPath):
    account = _owned_account(user_context, path.id)
    _clear_defaults(account["userId"])

    mongodb = current_app.mongodb_service
    mongodb.update_by_id(BANK_ACCOUNTS, path.id, {"isDefault": True}, user_context.user_id)
    return jsonify(mongodb.find_by_id(BANK_ACCOUNTS, path.id))


@bank_accounts_bp.post('/<id>/verify')
@require_admin
def verify_account(user_context: UserContext, path: IdPath):
    _get_account_or_404(path.id)

    mongodb = current_app.mongodb_service
    mongodb.update_by_id(BANK_ACCOUNTS, path.id, {"isVerified": True}, user_context.user_id)
    current_app.audit_service.safe_log_admin_action(
        user_context.user_id, "verify_bank_account", "bank_account", path.id, None
    )
    return jsonify(mongodb.find_by_id(BANK_ACCOUNTS, path.id))


@bank_accounts_bp.get('/admin/all')
@require_admin
def list_all_accounts(user_context: UserContext):
    mongodb = current_app.mongodb_service
    accounts = mongodb.find(BANK_ACCOUNTS, sort="createdAt")
    users = mongodb.find_by_ids("users", [a["userId"] for a in accounts if a.get("userId")])
    for account in accounts:
        user = users.get(account.get("userId")) or {}
        account["userName"] = user.get("name")
        account["userEmail"] = user.get("email")
        account["organization"] = user.get("organization")
        account["userType"] = user.get("type")
    return jsonify(accounts)
