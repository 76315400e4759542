# SPDX-License-Identifier: Apache-2.0

"""
Great-circle distances and nearest-recipient selection for expiry alerts.
"""

import math
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

EARTH_RADIUS_KM = 6371.0
DEFAULT_ALERT_RADIUS_KM = 25.0
DEFAULT_MAX_RECIPIENTS = 3


@dataclass
class RankedRecipient:
    user: Dict[str, Any]
    distance_km: float


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def has_coordinates(document: Dict[str, Any]) -> bool:
    return document.get("lat") is not None and document.get("lng") is not None


def nearest_recipients(
    lat: float,
    lng: float,
    candidates: List[Dict[str, Any]],
    radius_km: float = DEFAULT_ALERT_RADIUS_KM,
    limit: int = DEFAULT_MAX_RECIPIENTS,
    exclude_ids: Optional[List[str]] = None
) -> List[RankedRecipient]:
    """
    Closest candidates within ``radius_km``, nearest first.

    Candidates without coordinates or listed in ``exclude_ids`` are skipped.
    """
    excluded = set(exclude_ids or [])
    ranked = []
    for candidate in candidates:
        if candidate.get("id") in excluded or not has_coordinates(candidate):
            continue
        distance = haversine_km(lat, lng, float(candidate["lat"]), float(candidate["lng"]))
        if distance <= radius_km:
            ranked.append(RankedRecipient(user=candidate, distance_km=round(distance, 2)))

    ranked.sort(key=lambda item: item.distance_km)
    return ranked[:limit]
