# SPDX-License-Identifier: Apache-2.0

"""
Notification templates.

Pure rendering of the text sent for each notification type over email, SMS,
push and the in-app feed. Missing template data falls back to neutral
defaults so a notification is always renderable.
"""

from dataclasses import dataclass
from html import escape
from typing import Dict, Any, Callable, Optional

from models.enums import NotificationType


@dataclass
class NotificationContent:
    """Rendered text for every channel of one notification."""
    email_subject: str
    email_html: str
    sms: str
    push_title: str
    push_body: str

    @property
    def title(self) -> str:
        return self.push_title

    @property
    def message(self) -> str:
        return self.push_body


def format_pkr(amount: Any) -> str:
    """``PKR 1,234`` (decimals kept only when present)."""
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    if value.is_integer():
        return f"PKR {int(value):,}"
    return f"PKR {value:,.2f}"


def _wrap_html(heading: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #059669;">{heading}</h2>'
        f'{body}'
        '<hr style="border: 1px solid #e5e7eb; margin: 20px 0;">'
        '<p style="color: #6b7280; font-size: 14px;">EcoBite - Fighting Food Waste Together</p>'
        '</div>'
    )


def _welcome(name: str, data: Dict[str, Any]) -> NotificationContent:
    return NotificationContent(
        email_subject="Welcome to EcoBite!",
        email_html=_wrap_html(f"Welcome {escape(name)}!", "<p>Thank you for joining EcoBite.</p>"),
        sms=f"Welcome to EcoBite, {name}!",
        push_title="Welcome to EcoBite!",
        push_body=f"Hi {name}! Start making an impact by donating food today."
    )


def _payment_verified(name: str, data: Dict[str, Any]) -> NotificationContent:
    amount = format_pkr(data.get("amount"))
    return NotificationContent(
        email_subject="Payment Verified",
        email_html=_wrap_html("Payment Verified!", f"<p>Your payment of {amount} has been verified.</p>"),
        sms=f"Your payment of {amount} has been verified!",
        push_title="Payment Verified",
        push_body=f"Your payment of {amount} has been verified. Thank you!"
    )


def _payment_rejected(name: str, data: Dict[str, Any]) -> NotificationContent:
    reason = data.get("reason") or "Unknown reason"
    return NotificationContent(
        email_subject="Payment Not Verified",
        email_html=_wrap_html("Payment Not Verified", f"<p>Reason: {escape(reason)}</p>"),
        sms=f"Your payment was not verified. Reason: {reason}",
        push_title="Payment Not Verified",
        push_body=f"Your payment was rejected: {reason}"
    )


def _money_request_approved(name: str, data: Dict[str, Any]) -> NotificationContent:
    amount = format_pkr(data.get("amount"))
    return NotificationContent(
        email_subject="Funding Approved!",
        email_html=_wrap_html("Funding Approved!", f"<p>Your request for {amount} has been approved!</p>"),
        sms=f"Your funding request of {amount} has been approved!",
        push_title="Funding Approved!",
        push_body=f"Your request for {amount} has been approved!"
    )


def _money_request_rejected(name: str, data: Dict[str, Any]) -> NotificationContent:
    reason = data.get("reason") or "Unknown reason"
    return NotificationContent(
        email_subject="Request Rejected",
        email_html=_wrap_html("Request Rejected", f"<p>Reason: {escape(reason)}</p>"),
        sms=f"Your funding request was rejected. Reason: {reason}",
        push_title="Request Rejected",
        push_body=f"Your funding request was rejected: {reason}"
    )


def _money_request_created(name: str, data: Dict[str, Any]) -> NotificationContent:
    amount = format_pkr(data.get("amount"))
    requester = data.get("requesterName") or "A beneficiary"
    return NotificationContent(
        email_subject="New Money Request",
        email_html=_wrap_html("New Money Request", f"<p>{escape(requester)} requested {amount}.</p>"),
        sms=f"New money request: {requester} requested {amount}.",
        push_title="New Money Request",
        push_body=f"{requester} requested {amount} for {data.get('purpose') or 'logistics'}"
    )


def _donation_claimed(name: str, data: Dict[str, Any]) -> NotificationContent:
    food_type = data.get("foodType") or "Donation"
    claimer = data.get("claimerName") or "Someone"
    return NotificationContent(
        email_subject="Donation Claimed!",
        email_html=_wrap_html(
            "Donation Claimed!",
            f'<p>Your "{escape(food_type)}" has been claimed by {escape(claimer)}.</p>'
        ),
        sms=f'Your donation "{food_type}" has been claimed by {claimer}!',
        push_title="Donation Claimed!",
        push_body=f'Your "{food_type}" has been claimed by {claimer}'
    )


def _donation_available(name: str, data: Dict[str, Any]) -> NotificationContent:
    food_type = data.get("foodType") or "Food"
    location = data.get("location") or "Nearby"
    return NotificationContent(
        email_subject="New Donation Available!",
        email_html=_wrap_html(
            "New Donation Available!",
            f"<p>{escape(food_type)} available at {escape(location)}.</p>"
        ),
        sms=f"New donation: {food_type} at {location}. Claim now!",
        push_title="New Donation Available!",
        push_body=f"{food_type} available at {location}. Claim it now!"
    )


def _ecopoints_earned(name: str, data: Dict[str, Any]) -> NotificationContent:
    points = data.get("points") or 0
    return NotificationContent(
        email_subject="EcoPoints Earned!",
        email_html=_wrap_html("EcoPoints Earned!", f"<p>You earned {points} EcoPoints!</p>"),
        sms=f"You earned {points} EcoPoints!",
        push_title="EcoPoints Earned!",
        push_body=f"You earned {points} EcoPoints! Keep up the great work."
    )


def _voucher_redeemed(name: str, data: Dict[str, Any]) -> NotificationContent:
    title = data.get("voucherTitle") or "Voucher"
    return NotificationContent(
        email_subject="Voucher Redeemed!",
        email_html=_wrap_html("Voucher Redeemed!", f"<p>You redeemed: {escape(title)}</p>"),
        sms=f"You redeemed: {title}",
        push_title="Voucher Redeemed!",
        push_body=f"You successfully redeemed: {title}"
    )


def _expiry_alert(name: str, data: Dict[str, Any]) -> NotificationContent:
    food_type = data.get("foodType") or "Food"
    distance = data.get("distanceKm")
    where = f"{distance:.1f} km away" if isinstance(distance, (int, float)) else "nearby"
    return NotificationContent(
        email_subject="Food Expiring Soon Near You",
        email_html=_wrap_html(
            "Food Expiring Soon",
            f"<p>{escape(food_type)} {where} expires soon. Claim it before it goes to waste.</p>"
        ),
        sms=f"{food_type} {where} expires soon. Claim it on EcoBite!",
        push_title="Food Expiring Soon",
        push_body=f"{food_type} {where} expires soon. Claim it before it goes to waste."
    )


def _ad_redemption_requested(name: str, data: Dict[str, Any]) -> NotificationContent:
    requester = data.get("requesterName") or "A user"
    minutes = data.get("durationMinutes") or 0
    points = data.get("pointsCost") or 0
    body = f"{requester} wants to redeem {minutes} minutes of ad space for {points} points"
    return NotificationContent(
        email_subject="New Ad Space Redemption Request",
        email_html=_wrap_html("New Ad Space Redemption Request", f"<p>{escape(body)}</p>"),
        sms=body,
        push_title="New Ad Space Redemption Request",
        push_body=body
    )


def _ad_redemption_update(name: str, data: Dict[str, Any]) -> NotificationContent:
    status = data.get("status") or "submitted"
    minutes = data.get("durationMinutes") or 0
    if status == "approved":
        title = "Ad Redemption Approved"
        body = "Your ad space request has been approved and your banner is now live!"
    elif status == "rejected":
        title = "Ad Redemption Rejected"
        body = (f"Your ad space request was rejected: {data.get('reason') or 'No reason provided'}. "
                f"{data.get('pointsRefunded') or 0} points have been refunded.")
    else:
        title = "Ad Redemption Request Submitted"
        body = (f"Your request for {minutes} minutes of ad space has been submitted. "
                "Admin will review it shortly.")
    return NotificationContent(
        email_subject=title,
        email_html=_wrap_html(title, f"<p>{escape(body)}</p>"),
        sms=body,
        push_title=title,
        push_body=body
    )


def _payment_submitted(name: str, data: Dict[str, Any]) -> NotificationContent:
    donor = data.get("donorName") or "A donor"
    amount = format_pkr(data.get("amount"))
    body = f"{donor} submitted a manual payment of {amount} for verification"
    return NotificationContent(
        email_subject="New Manual Payment",
        email_html=_wrap_html("New Manual Payment", f"<p>{escape(body)}</p>"),
        sms=body,
        push_title="New Manual Payment",
        push_body=body
    )


def _banner_published(name: str, data: Dict[str, Any]) -> NotificationContent:
    banner = data.get("bannerName") or "Your banner"
    minutes = data.get("durationMinutes")
    body = f"{banner} is now live"
    if minutes:
        body += f" for {minutes} minutes"
    return NotificationContent(
        email_subject="Your Banner Is Live",
        email_html=_wrap_html("Your Banner Is Live", f"<p>{escape(body)}.</p>"),
        sms=body,
        push_title="Your Banner Is Live",
        push_body=body
    )


TEMPLATES: Dict[str, Callable[[str, Dict[str, Any]], NotificationContent]] = {
    NotificationType.WELCOME.value: _welcome,
    NotificationType.PAYMENT_VERIFIED.value: _payment_verified,
    NotificationType.PAYMENT_REJECTED.value: _payment_rejected,
    NotificationType.MONEY_REQUEST_APPROVED.value: _money_request_approved,
    NotificationType.MONEY_REQUEST_REJECTED.value: _money_request_rejected,
    NotificationType.MONEY_REQUEST_CREATED.value: _money_request_created,
    NotificationType.DONATION_CLAIMED.value: _donation_claimed,
    NotificationType.DONATION_AVAILABLE.value: _donation_available,
    NotificationType.ECOPOINTS_EARNED.value: _ecopoints_earned,
    NotificationType.VOUCHER_REDEEMED.value: _voucher_redeemed,
    NotificationType.EXPIRY_ALERT.value: _expiry_alert,
    NotificationType.AD_REDEMPTION_REQUESTED.value: _ad_redemption_requested,
    NotificationType.AD_REDEMPTION_UPDATE.value: _ad_redemption_update,
    NotificationType.PAYMENT_SUBMITTED.value: _payment_submitted,
    NotificationType.BANNER_PUBLISHED.value: _banner_published,
}


def render_notification(notification_type: str, user_name: Optional[str],
                        data: Optional[Dict[str, Any]] = None) -> NotificationContent:
    """
    Render the content of a notification.

    Raises:
        ValueError: For an unknown notification type
    """
    renderer = TEMPLATES.get(notification_type)
    if renderer is None:
        raise ValueError(f"Unknown notification type: {notification_type}")
    return renderer(user_name or "there", data or {})


# Standalone emails

def render_password_reset_email(name: str, reset_url: str) -> Dict[str, str]:
    body = (
        f"<p>Hello {escape(name)},</p>"
        "<p>We received a request to reset your EcoBite password.</p>"
        f'<p><a href="{escape(reset_url)}">Reset Password</a></p>'
        f"<p>Or copy and paste this link into your browser: {escape(reset_url)}</p>"
        "<p>This link expires in 1 hour. If you didn't request this, please ignore this email.</p>"
    )
    return {
        "subject": "Reset Your EcoBite Password",
        "html": _wrap_html("Password Reset Request", body)
    }


def render_monthly_stats_email(name: str, stats: Dict[str, Any]) -> Dict[str, str]:
    month = stats.get("monthName", "")
    body = (
        f"<p>Hi {escape(name)}, here is your impact for {escape(month)}:</p>"
        "<ul>"
        f"<li><strong>Donations:</strong> {stats.get('donations', 0)}</li>"
        f"<li><strong>People fed:</strong> {stats.get('peopleFed', 0)}</li>"
        f"<li><strong>CO2 saved:</strong> {stats.get('co2Saved', 0)} kg</li>"
        f"<li><strong>EcoPoints earned:</strong> {stats.get('ecoPointsEarned', 0)}</li>"
        "</ul>"
        "<p>Keep donating and keep making a difference!</p>"
    )
    return {
        "subject": f"Your EcoBite Impact for {month}",
        "html": _wrap_html("Your Monthly Impact", body)
    }


def render_welcome_email(name: str, user_type: str) -> Dict[str, str]:
    if user_type == "individual":
        abilities = ["Donate food to those in need", "Contribute money to fund logistics",
                     "Earn EcoPoints and redeem rewards"]
    else:
        abilities = ["Claim food donations", "Request logistics funding", "Track your impact"]
    items = "".join(f"<li>{a}</li>" for a in abilities)
    body = (
        "<p>Thank you for joining our mission to fight food waste in Pakistan.</p>"
        f"<p>As a <strong>{escape(user_type)}</strong>, you can:</p><ul>{items}</ul>"
        "<p>Get started now and make a difference!</p>"
    )
    return {
        "subject": "Welcome to EcoBite!",
        "html": _wrap_html(f"Welcome to EcoBite, {escape(name)}!", body)
    }


def render_message_email(subject: str, message: str) -> Dict[str, str]:
    """Free-form admin message; line breaks become paragraphs."""
    paragraphs = "".join(f"<p>{escape(line)}</p>" for line in message.splitlines() if line.strip())
    return {
        "subject": subject,
        "html": _wrap_html(escape(subject), paragraphs)
    }
