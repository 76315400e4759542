# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

Every EcoBite account has exactly one role (``User.type``). Permissions are
derived from that role and carried on the ``UserContext`` built by the auth
middleware; ownership checks (donor, claimer, requester) are plain functions
over ids so they stay testable without Flask.
"""

from typing import List, Dict, Optional
from dataclasses import dataclass, field

from models.entities import UserContext
from models.enums import UserType


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_permissions: List[str] = field(default_factory=list)


PERMISSION_DESCRIPTIONS: Dict[str, str] = {
    "donation:create": "List surplus food",
    "donation:claim": "Claim listed food",
    "food_request:create": "Ask donors for specific food",
    "voucher:redeem": "Spend EcoPoints on vouchers",
    "voucher:manage": "Create, edit and retire vouchers",
    "payment:donate": "Make money donations",
    "payment:review": "Approve or reject manual payments",
    "money_request:create": "Request logistics funding",
    "money_request:review": "Approve or reject funding requests",
    "bank_account:manage": "Manage payout bank accounts",
    "bank_account:verify": "Verify bank accounts",
    "finance:manage": "Record fund donations and withdrawals",
    "banner:manage": "Publish sponsor banners",
    "ad_redemption:create": "Exchange EcoPoints for ad space",
    "ad_redemption:review": "Approve or reject ad redemptions",
    "user:manage": "Change roles and EcoPoints of any user",
    "admin:logs": "Read and write the admin audit log",
}

_DONOR_PERMISSIONS = [
    "donation:create",
    "voucher:redeem",
    "ad_redemption:create",
]

_BENEFICIARY_PERMISSIONS = [
    "donation:claim",
    "food_request:create",
    "voucher:redeem",
    "money_request:create",
    "bank_account:manage",
    "ad_redemption:create",
]

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserType.INDIVIDUAL.value: _DONOR_PERMISSIONS + ["payment:donate"],
    UserType.RESTAURANT.value: list(_DONOR_PERMISSIONS),
    UserType.NGO.value: list(_BENEFICIARY_PERMISSIONS),
    UserType.SHELTER.value: list(_BENEFICIARY_PERMISSIONS),
    UserType.FERTILIZER.value: [
        p for p in _BENEFICIARY_PERMISSIONS if p != "food_request:create"
    ],
    UserType.ADMIN.value: sorted(PERMISSION_DESCRIPTIONS.keys()),
}


def permissions_for_role(role: Optional[str]) -> List[str]:
    """
    Resolve the permission list for a role.

    Unknown roles get no permissions.
    """
    return sorted(set(ROLE_PERMISSIONS.get(role or "", [])))


def check_permissions(user_context: UserContext, required_permissions: List[str],
                      require_all: bool = True) -> AuthorizationResult:
    """
    All of ``required_permissions`` (or any one, with ``require_all=False``).

    ``missing_permissions`` lists what the caller lacks, sorted.
    """
    missing = sorted(set(required_permissions) - set(user_context.permissions))
    granted = not missing if require_all else len(missing) < len(set(required_permissions))
    if granted:
        return AuthorizationResult(allowed=True)

    wording = "required permissions" if require_all else "any of required permissions"
    return AuthorizationResult(
        allowed=False,
        reason=f"Missing {wording}: {', '.join(missing)}",
        missing_permissions=missing
    )


def check_permission(user_context: UserContext, required_permission: str) -> AuthorizationResult:
    return check_permissions(user_context, [required_permission])


def is_self_or_admin(user_context: Optional[UserContext], user_id: Optional[str]) -> bool:
    """True when the caller is the given user or an admin."""
    if user_context is None:
        return False
    return user_context.is_admin() or (user_id is not None and user_context.user_id == user_id)


def can_modify_user(user_context: UserContext, target_user_id: str) -> AuthorizationResult:
    """Only the account owner or an admin may update a profile."""
    if is_self_or_admin(user_context, target_user_id):
        return AuthorizationResult(allowed=True)
    return AuthorizationResult(allowed=False, reason="Not authorized to update this user")


def restricted_profile_fields(user_context: UserContext) -> List[str]:
    """
    Profile fields the caller may not change.

    ``type`` and ``ecoPoints`` are admin-only.
    """
    if user_context.is_admin():
        return []
    return ["type", "eco_points"]
