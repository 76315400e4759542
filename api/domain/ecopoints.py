# SPDX-License-Identifier: Apache-2.0

"""
EcoPoints rewards, badges, banner tiers and impact metrics.

Pure functions over counts and point balances. The banner tier table is the
catalogue that ad redemptions draw their package, cost and duration from.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

DONATION_REWARD_POINTS = 10
PAYMENT_POINTS_PER_100 = 10

PEOPLE_FED_PER_DONATION = 3
CO2_KG_PER_DONATION = 2.5
MONTHLY_POINTS_PER_DONATION = 100


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    requirement: int


@dataclass(frozen=True)
class BannerTier:
    id: str
    name: str
    points: int
    duration_days: int
    description: str
    features: List[str] = field(default_factory=list)

    @property
    def duration_minutes(self) -> int:
        return self.duration_days * 24 * 60

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "points": self.points,
            "durationDays": self.duration_days,
            "durationMinutes": self.duration_minutes,
            "description": self.description,
            "features": list(self.features)
        }


BADGES: List[Badge] = [
    Badge("first-step", "First Step", "Make your first donation", 1),
    Badge("helping-hand", "Helping Hand", "Donate 5 times", 5),
    Badge("food-rescuer", "Food Rescuer", "Donate 10 times", 10),
    Badge("eco-warrior", "Eco Warrior", "Donate 25 times", 25),
    Badge("planet-saver", "Planet Saver", "Donate 50 times", 50),
    Badge("century-saver", "Century Saver", "Donate 100 times", 100),
]

_ANALYTICS = ["Click tracking", "Impression tracking"]

BANNER_TIERS: List[BannerTier] = [
    BannerTier("starter", "Starter Banner", 1000, 3, "3-day banner placement",
               ["3 days visibility", "Dashboard placement", "Basic analytics"]),
    BannerTier("bronze", "Bronze Banner Week", 5000, 7, "7-day banner placement",
               ["7 days visibility", "Dashboard placement", "Standard analytics", "Click tracking"]),
    BannerTier("silver", "Silver Banner Fortnight", 10000, 14, "14-day banner placement",
               ["14 days visibility", "Dashboard placement", "Advanced analytics"] + _ANALYTICS),
    BannerTier("gold", "Gold Banner Month", 20000, 30, "30-day banner placement",
               ["30 days visibility", "Dashboard placement", "Premium analytics"] + _ANALYTICS
               + ["Priority placement"]),
    BannerTier("platinum", "Platinum Banner Quarter", 50000, 90, "90-day banner placement",
               ["90 days visibility", "Dashboard placement", "Premium analytics"] + _ANALYTICS
               + ["Priority placement", "Featured badge"]),
    BannerTier("diamond", "Diamond Banner Half-Year", 100000, 180, "180-day banner placement",
               ["180 days visibility", "Dashboard placement", "Premium analytics"] + _ANALYTICS
               + ["Top priority placement", "Featured badge", "Custom design support"]),
    BannerTier("elite", "Elite Banner Year", 200000, 365, "365-day banner placement",
               ["365 days visibility", "Dashboard placement", "Premium analytics"] + _ANALYTICS
               + ["Top priority placement", "Featured badge", "Custom design support",
                  "Dedicated account manager"]),
    BannerTier("legendary", "Legendary Banner Lifetime", 500000, 730, "Lifetime banner placement (2 years)",
               ["2 years visibility", "Dashboard placement", "Premium analytics"] + _ANALYTICS
               + ["Top priority placement", "Featured badge", "Custom design support",
                  "Dedicated account manager"]),
]


def payment_reward(amount: float) -> int:
    """10 EcoPoints for every full PKR 100 donated."""
    if amount <= 0:
        return 0
    return int(amount // 100) * PAYMENT_POINTS_PER_100


def impact_metrics(donation_count: int) -> Dict[str, float]:
    return {
        "peopleFed": donation_count * PEOPLE_FED_PER_DONATION,
        "co2Saved": round(donation_count * CO2_KG_PER_DONATION, 1)
    }


def monthly_metrics(donation_count: int) -> Dict[str, float]:
    """Figures used in the monthly summary email."""
    metrics = impact_metrics(donation_count)
    metrics["donations"] = donation_count
    metrics["ecoPointsEarned"] = donation_count * MONTHLY_POINTS_PER_DONATION
    return metrics


def evaluate_badges(donation_count: int) -> List[Dict[str, Any]]:
    """Badge table with ``earned`` and ``remaining`` for a donation count."""
    return [
        {
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "requirement": badge.requirement,
            "earned": donation_count >= badge.requirement,
            "remaining": max(0, badge.requirement - donation_count)
        }
        for badge in BADGES
    ]


def get_tier(tier_id: str) -> Optional[BannerTier]:
    for tier in BANNER_TIERS:
        if tier.id == tier_id:
            return tier
    return None


def current_tier(points: int) -> Optional[BannerTier]:
    """Highest tier the balance can afford."""
    affordable = [tier for tier in BANNER_TIERS if points >= tier.points]
    return affordable[-1] if affordable else None


def next_tier(points: int) -> Optional[BannerTier]:
    for tier in BANNER_TIERS:
        if points < tier.points:
            return tier
    return None


def tier_progress(points: int) -> float:
    """Percent of the way to the next tier, capped at 100."""
    upcoming = next_tier(points)
    if upcoming is None:
        return 100.0
    return min(100.0, round(points / upcoming.points * 100, 1))


def points_to_next_tier(points: int) -> int:
    upcoming = next_tier(points)
    return max(0, upcoming.points - points) if upcoming else 0


def tier_status(points: int) -> Dict[str, Any]:
    """Everything the rewards page shows about a point balance."""
    current = current_tier(points)
    upcoming = next_tier(points)
    return {
        "points": points,
        "currentTier": current.to_dict() if current else None,
        "nextTier": upcoming.to_dict() if upcoming else None,
        "progress": tier_progress(points),
        "pointsNeeded": points_to_next_tier(points),
        "availableTiers": [tier.id for tier in BANNER_TIERS if points >= tier.points]
    }
