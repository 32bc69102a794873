"""
Item extraction from rendered feed handles.

Each logical field is looked up through an ordered chain of CSS selectors; the
first selector yielding a non-empty value wins. The chains are plain data so
they can be tested against synthetic markup.
"""

import logging
import re
from typing import Callable, Optional, Sequence

from bs4.element import Tag

from feed_filter.models.dtos import Item

logger = logging.getLogger(__name__)

TITLE_SELECTORS = (
    "#video-title",
    "a#video-title-link",
    '[id="video-title"]',
    "h3 a",
    "a[title]",
)

LINK_SELECTORS = (
    "a#thumbnail",
    'a[href*="/watch?v="]',
    'a[href*="shorts/"]',
)

CHANNEL_SELECTORS = (
    "#channel-name a",
    "ytd-channel-name a",
    '[id="channel-name"] a',
    ".ytd-channel-name",
)

UNKNOWN_CHANNEL = "Unknown"

_WATCH_ID = re.compile(r"[?&]v=([^&#]+)")
_SHORTS_ID = re.compile(r"shorts/([^?&#/]+)")


def _text_or_title(tag: Tag) -> str:
    return tag.get_text().strip() or (tag.get("title") or "").strip()


def _href(tag: Tag) -> str:
    return (tag.get("href") or "").strip()


def first_match(
    handle: Tag, selectors: Sequence[str], read: Callable[[Tag], str]
) -> str:
    """Return the first non-empty value read from ``selectors`` in order."""
    for selector in selectors:
        for tag in handle.select(selector):
            value = read(tag)
            if value:
                return value
    return ""


def extract_title(handle: Tag) -> str:
    return first_match(handle, TITLE_SELECTORS, _text_or_title)


def extract_channel(handle: Tag) -> str:
    return first_match(handle, CHANNEL_SELECTORS, lambda tag: tag.get_text().strip())


def parse_item_id(url: str) -> str:
    """Parse the canonical id from a watch or shorts URL."""
    match = _WATCH_ID.search(url) or _SHORTS_ID.search(url)
    return match.group(1) if match else ""


def extract_id(handle: Tag) -> str:
    url = first_match(handle, LINK_SELECTORS, _href)
    item_id = parse_item_id(url) if url else ""
    if not item_id:
        # The title link carries the watch URL on some layouts.
        item_id = parse_item_id(first_match(handle, TITLE_SELECTORS, _href))
    return item_id


def extract(handle: Tag) -> Optional[Item]:
    """
    Derive an Item from a feed handle.

    Args:
        handle: The rendered item element

    Returns:
        The Item, or None when no title or no id can be found
    """
    title = extract_title(handle)
    item_id = extract_id(handle)
    if not title or not item_id:
        logger.debug(
            f"Could not extract item from <{handle.name}> "
            f"(title={bool(title)}, id={bool(item_id)})"
        )
        return None
    return Item(
        id=item_id,
        title=title,
        channel=extract_channel(handle) or UNKNOWN_CHANNEL,
        handle=handle,
    )
