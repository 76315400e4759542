# SPDX-License-Identifier: Apache-2.0

"""
Tests for generated copy and food image scoring.
"""

import math
import random

from domain import content
from domain.vision import (
    MOCK_ANALYSIS,
    FALLBACK_ANALYSIS,
    color_vibe,
    detect_food_type,
    extract_ocr_text,
    has_spoilage_indicator,
    quality_score,
    score_analysis
)


class TestContent:

    def test_marketing_drafts_are_distinct(self):
        drafts = content.marketing_drafts("Rice", "50 kg", random.Random(7))
        assert len(drafts) == 3
        assert len(set(drafts)) == 3
        assert all("Rice" in draft and "50 kg" in draft for draft in drafts)

    def test_seeded_selection_is_repeatable(self):
        first = content.marketing_drafts("Bread", "20 loaves", random.Random(1))
        second = content.marketing_drafts("Bread", "20 loaves", random.Random(1))
        assert first == second

    def test_impact_story_uses_stats(self):
        story = content.impact_story({"donations": 4, "peopleFed": 12, "co2Saved": 10.0}, random.Random(3))
        assert "4" in story
        assert "12" in story
        assert "10.0kg" in story

    def test_food_specific_safety_tip(self):
        assert content.safety_tip("Bread", random.Random(0)) in content.FOOD_SAFETY_TIPS["Bread"]

    def test_general_safety_tip(self):
        assert content.safety_tip("Spaceship", random.Random(0)) in content.GENERAL_SAFETY_TIPS
        assert content.safety_tip(None, random.Random(0)) in content.GENERAL_SAFETY_TIPS

    def test_welcome_message_by_role(self):
        message = content.welcome_message("Ali", "Animal Shelter", random.Random(2))
        assert "Ali" in message
        assert message in [m.format(name="Ali") for m in content._WELCOME_MESSAGES["shelter"]]

    def test_welcome_message_unknown_role(self):
        assert content.welcome_message("Sara", "fertilizer") == "Welcome to EcoBite, Sara! Let's make a difference today."

    def test_badge_messages(self):
        assert content.badge_message("First Step").startswith("You've officially joined")
        assert "Mystery" in content.badge_message("Mystery")


class TestScoring:

    def test_quality_score_formula(self):
        assert quality_score(0.9, 1.0, False) == math.floor((0.9 * 0.6 + 1.0 * 0.4) * 100)
        assert quality_score(1.0, 1.0, False) == 100

    def test_spoilage_collapses_score(self):
        fresh = quality_score(0.9, 1.0, False)
        spoiled = quality_score(0.9, 1.0, True)
        assert spoiled == math.floor((0.9 * 0.6 + 1.0 * 0.4) * 100 * 0.08)
        assert spoiled < fresh / 10

    def test_color_vibe(self):
        assert color_vibe(True, "FF0000") == 0.5
        assert color_vibe(False, "FF0000") == 1.0
        assert color_vibe(False, None) == 0.8

    def test_detect_food_type(self):
        assert detect_food_type(["plate", "vegetables", "fruit"]) == "Vegetables"
        assert detect_food_type(["table", "person"]) == "Food Item"

    def test_spoilage_from_tags_or_caption(self):
        assert has_spoilage_indicator(["mold"], "a loaf", None)
        assert has_spoilage_indicator(["bread"], "a rotten loaf", None)
        assert not has_spoilage_indicator(["bread"], "a fresh loaf", None)

    def test_spoilage_from_colour_on_produce(self):
        assert has_spoilage_indicator(["fruit"], "a bowl", "Brown")
        assert not has_spoilage_indicator(["bread"], "a bowl", "Brown")

    def test_score_analysis(self):
        analysis = {
            "tags": [{"name": "fruit"}, {"name": "bowl"}],
            "description": {"captions": [{"text": "a bowl of fresh fruit", "confidence": 0.5}]},
            "color": {"isBWImg": False, "accentColor": "C8A015", "dominantColorForeground": "Red"}
        }
        result = score_analysis(analysis, "Exp 2025")
        assert result.food_type == "Fruit"
        assert result.description == "a bowl of fresh fruit"
        assert result.quality_score == math.floor((0.5 * 0.6 + 1.0 * 0.4) * 100)
        assert result.to_dict()["detectedText"] == "Exp 2025"

    def test_score_empty_analysis(self):
        result = score_analysis({})
        assert result.food_type == "Food Item"
        assert result.description == "Food item"
        assert result.quality_score == math.floor((0.0 * 0.6 + 0.8 * 0.4) * 100)

    def test_ocr_text(self):
        ocr = {"regions": [
            {"lines": [{"words": [{"text": "Best"}, {"text": "before"}]}, {"words": [{"text": "12/25"}]}]}
        ]}
        assert extract_ocr_text(ocr) == "Best before\n12/25"

    def test_canned_analyses(self):
        assert MOCK_ANALYSIS.quality_score == 92
        assert MOCK_ANALYSIS.to_dict()["foodType"] == "Vegetables"
        assert FALLBACK_ANALYSIS.quality_score == 85
