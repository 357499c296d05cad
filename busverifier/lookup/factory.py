"""
Lookup backend selection.
"""

import logging
import random
from typing import Optional

from busverifier.config import Settings
from busverifier.lookup.base import BusinessLookup
from busverifier.lookup.google import GooglePlacesLookup
from busverifier.lookup.offline import OfflineLookup

logger = logging.getLogger(__name__)


def build_lookup(settings: Settings, rng: Optional[random.Random] = None) -> BusinessLookup:
    """Pick the backend from ``settings.lookup_mode`` (auto | google | offline).

    AI location extraction follows ``GEMINI_API_KEY`` on either backend.
    """
    mode = (settings.lookup_mode or "auto").lower()
    if mode == "google" or (mode == "auto" and settings.google_maps_api_key):
        logger.info("🌐 Using Google Places lookup")
        lookup: BusinessLookup = GooglePlacesLookup(settings)
    elif mode in ("auto", "offline"):
        logger.warning("⚠️ No Maps API key — using offline lookup (illustrative data)")
        lookup = OfflineLookup(rng, settings)
    else:
        raise ValueError(f"Unknown lookup_mode: {settings.lookup_mode!r}")

    if lookup.ai_available:
        logger.info("🤖 AI location extraction via %s", settings.ai_model)
    else:
        logger.warning("⚠️ No Gemini API key — AI location extraction disabled")
    return lookup
