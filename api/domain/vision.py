# SPDX-License-Identifier: Apache-2.0

"""
Food image scoring.

Turns a computer-vision analysis (caption, tags, colour data) into the food
type and 0-100 quality score shown on a donation. Spoilage cues collapse the
score so that rotten food is never presented as fresh.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

FOOD_KEYWORDS = ("vegetable", "fruit", "bread", "meal", "dairy", "meat", "grain", "pasta", "rice")

NEGATIVE_KEYWORDS = (
    "dirty", "waste", "trash", "mold", "dark", "rotten", "decay",
    "spoil", "bruise", "brown", "fungus", "slime", "wrinkled", "aged",
    "maggot", "fly", "insect", "damaged"
)

SUSPICIOUS_COLORS = ("Brown", "Grey", "Black")
PERISHABLE_TAGS = ("fruit", "vegetable", "meat")

SPOILAGE_PENALTY = 0.08
DEFAULT_FOOD_TYPE = "Food Item"
DEFAULT_DESCRIPTION = "Food item"


@dataclass
class FoodAnalysis:
    """Outcome of analysing a food photo."""
    food_type: str
    description: str
    quality_score: int
    tags: List[str] = field(default_factory=list)
    confidence: float = 0.0
    detected_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "foodType": data["food_type"],
            "description": data["description"],
            "qualityScore": data["quality_score"],
            "tags": data["tags"],
            "confidence": data["confidence"],
            "detectedText": data["detected_text"]
        }


# Returned when no vision backend is configured
MOCK_ANALYSIS = FoodAnalysis(
    food_type="Vegetables",
    description="Fresh organic greens",
    quality_score=92,
    detected_text="Exp: Dec 2025"
)

# Returned when the vision backend fails
FALLBACK_ANALYSIS = FoodAnalysis(
    food_type=DEFAULT_FOOD_TYPE,
    description="Sample food",
    quality_score=85
)


def detect_food_type(tags: List[str]) -> str:
    """First tag containing a food keyword, capitalised."""
    for tag in tags:
        lowered = tag.lower()
        if any(keyword in lowered for keyword in FOOD_KEYWORDS):
            return tag[:1].upper() + tag[1:]
    return DEFAULT_FOOD_TYPE


def color_vibe(is_bw_image: bool, accent_color: Optional[str]) -> float:
    if is_bw_image:
        return 0.5
    return 1.0 if accent_color else 0.8


def has_spoilage_indicator(tags: List[str], description: str, dominant_foreground: Optional[str]) -> bool:
    """
    Spoilage is flagged by a negative tag, a negative word in the caption, or
    a brown/grey/black foreground on produce or meat.
    """
    lowered_tags = [tag.lower() for tag in tags]
    lowered_description = description.lower()

    if any(tag in NEGATIVE_KEYWORDS for tag in lowered_tags):
        return True
    if any(keyword in lowered_description for keyword in NEGATIVE_KEYWORDS):
        return True

    suspicious_color = (dominant_foreground or "") in SUSPICIOUS_COLORS
    return suspicious_color and any(tag in PERISHABLE_TAGS for tag in lowered_tags)


def quality_score(confidence: float, vibe: float, spoiled: bool) -> int:
    """``min(100, floor((confidence*0.6 + vibe*0.4) * 100 * penalty))``."""
    penalty = SPOILAGE_PENALTY if spoiled else 1.0
    return min(100, math.floor((confidence * 0.6 + vibe * 0.4) * 100 * penalty))


def score_analysis(analysis: Dict[str, Any], detected_text: str = "") -> FoodAnalysis:
    """
    Score a raw Azure Computer Vision ``analyze`` response.

    Args:
        analysis: Response with ``tags``, ``description`` and ``color``
        detected_text: OCR text read from the label, if any

    Returns:
        FoodAnalysis for the image
    """
    tags = [tag.get("name") for tag in analysis.get("tags") or [] if isinstance(tag.get("name"), str)]

    captions = (analysis.get("description") or {}).get("captions") or []
    caption = captions[0] if captions else {}
    description = caption.get("text") or DEFAULT_DESCRIPTION
    confidence = float(caption.get("confidence") or 0)

    color = analysis.get("color") or {}
    vibe = color_vibe(bool(color.get("isBWImg")), color.get("accentColor"))
    spoiled = has_spoilage_indicator(tags, description, color.get("dominantColorForeground"))

    return FoodAnalysis(
        food_type=detect_food_type(tags),
        description=description,
        quality_score=quality_score(confidence, vibe, spoiled),
        tags=tags,
        confidence=confidence,
        detected_text=detected_text
    )


def extract_ocr_text(ocr: Dict[str, Any]) -> str:
    """Flatten an OCR ``regions -> lines -> words`` response into text."""
    regions = []
    for region in ocr.get("regions") or []:
        lines = [
            " ".join(word.get("text", "") for word in line.get("words") or [])
            for line in region.get("lines") or []
        ]
        regions.append("\n".join(lines))
    return "\n".join(regions)
