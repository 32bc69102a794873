"""
Heuristic pre-filters for feed items.

These checks run without network access. Sponsored, short-form and blacklist
checks only need the handle; over-exposure needs the extracted id and the
view count, so it is decided by the pipeline after extraction.
"""

import logging
from typing import Optional

from bs4.element import Tag

from feed_filter.config.settings import settings
from feed_filter.core.extractor import extract_channel, extract_title
from feed_filter.models.dtos import FilterMark

logger = logging.getLogger(__name__)

# Exact metadata labels used for sponsored entries, several locales
SPONSORED_LABELS = frozenset({"Sponsored", "Ad", "Anzeige", "Gesponsert"})

AD_MARKER_SELECTORS = (
    '[class*="ad-badge"]',
    '[class*="sponsored"]',
    "ytd-ad-slot-renderer",
    '[id*="ad-slot"]',
)
METADATA_TEXT_SELECTOR = "span, yt-formatted-string"

SHORTS_LINK_SELECTOR = 'a[href*="/shorts/"]'
SHORTS_TAGS = frozenset({"ytd-reel-item-renderer", "ytd-reel-shelf-renderer"})
SHORTS_OVERLAY_SELECTOR = '[overlay-style="SHORTS"]'

BLACKLIST_KEYWORDS = (
    # Cooking/baking
    "recipe", "recipes", "cooking", "baking", "cook", "bake",
    "kitchen", "chef", "food", "meal", "dinner", "lunch", "breakfast",
    "dish", "cuisine", "rezept", "kochen", "backen", "kueche", "kuche",
    "essen", "gericht", "mahlzeit",
    # Precious metals / investment spam
    "gold", "silver", "silber",
)


def is_sponsored(handle: Tag) -> bool:
    for selector in AD_MARKER_SELECTORS:
        if handle.select_one(selector) is not None:
            return True
    if handle.find_parent("ytd-ad-slot-renderer") is not None:
        return True
    for tag in handle.select(METADATA_TEXT_SELECTOR):
        if tag.get_text(strip=True) in SPONSORED_LABELS:
            return True
    return False


def is_short(handle: Tag) -> bool:
    if handle.select_one(SHORTS_LINK_SELECTOR) is not None:
        return True
    if handle.name in SHORTS_TAGS:
        return True
    if handle.find_parent("ytd-reel-shelf-renderer") is not None:
        return True
    if handle.find_parent("ytd-rich-shelf-renderer", attrs={"is-shorts": True}) is not None:
        return True
    return handle.select_one(SHORTS_OVERLAY_SELECTOR) is not None


def matches_blacklist(title: str, channel: str) -> bool:
    """Substring match of the denylist against lowercased title and channel."""
    text = f"{title} {channel}".lower()
    return any(keyword in text for keyword in BLACKLIST_KEYWORDS)


def is_blacklisted(handle: Tag) -> bool:
    return matches_blacklist(extract_title(handle), extract_channel(handle))


def is_over_exposed(view_count: int, threshold: int = settings.OVEREXPOSURE_THRESHOLD) -> bool:
    return view_count >= threshold


def classify_handle(handle: Tag) -> Optional[FilterMark]:
    """
    Run the handle-only heuristics in order.

    Returns:
        The rejecting mark, or None when the handle passes all of them
    """
    if is_sponsored(handle):
        return FilterMark.SPONSORED
    if is_short(handle):
        return FilterMark.SHORT
    if is_blacklisted(handle):
        return FilterMark.BLACKLISTED
    return None
