# SPDX-License-Identifier: Apache-2.0

"""
Food photo analysis through the Azure Computer Vision REST API.

Needs ``AZURE_VISION_ENDPOINT`` and ``AZURE_VISION_KEY``. Without them a
fixed mock analysis is returned so donation listing keeps working.
"""

import os
import logging
from typing import Dict, Optional, Any
from opentelemetry import trace
import requests

from domain.vision import (
    FoodAnalysis,
    MOCK_ANALYSIS,
    FALLBACK_ANALYSIS,
    score_analysis,
    extract_ocr_text
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

API_VERSION = "v3.2"
VISUAL_FEATURES = "Categories,Description,Tags,Color,Objects"
REQUEST_TIMEOUT_SECONDS = 15


class VisionService:
    """Mock-or-real food image analyser."""

    def __init__(self, endpoint: Optional[str] = None, key: Optional[str] = None):
        self.endpoint = (endpoint or os.getenv("AZURE_VISION_ENDPOINT")
                         or os.getenv("AZURE_COMPUTER_VISION_ENDPOINT", "")).rstrip("/")
        self.key = key or os.getenv("AZURE_VISION_KEY") or os.getenv("AZURE_COMPUTER_VISION_KEY", "")

        if self.is_configured():
            logger.info("Azure Computer Vision ready")
        else:
            logger.warning("Azure Computer Vision not configured. Using mock AI")

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.key)

    def _post(self, path: str, params: Dict[str, str], image_url: str) -> Dict[str, Any]:
        response = requests.post(
            f"{self.endpoint}/vision/{API_VERSION}/{path}",
            params=params,
            headers={"Ocp-Apim-Subscription-Key": self.key},
            json={"url": image_url},
            timeout=REQUEST_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        return response.json()

    def _read_label(self, image_url: str) -> str:
        """OCR the packaging; a failure only loses the expiry label text."""
        try:
            return extract_ocr_text(self._post("ocr", {"detectOrientation": "false"}, image_url))
        except requests.RequestException as e:
            logger.warning(f"OCR failed, continuing with visual analysis only: {str(e)}")
            return ""

    def analyze_food_image(self, image_url: str) -> FoodAnalysis:
        """Classify the food and score its quality."""
        with tracer.start_as_current_span("vision.analyze") as span:
            if not self.is_configured():
                span.set_attribute("vision.mock", True)
                logger.info("Using mock AI data (Azure Computer Vision not configured)")
                return MOCK_ANALYSIS

            try:
                analysis = self._post("analyze", {"visualFeatures": VISUAL_FEATURES}, image_url)
            except requests.RequestException as e:
                span.record_exception(e)
                logger.error(f"Azure Vision error: {str(e)}")
                return FALLBACK_ANALYSIS

            result = score_analysis(analysis, self._read_label(image_url))
            span.set_attributes({
                "vision.food_type": result.food_type,
                "vision.quality_score": result.quality_score
            })
            return result
