"""
Main pipeline orchestrator for the feed filter.

Coordinates wrapper hiding, heuristic classification, view tracking,
sequential scoring and filter application for one pass over the document.
"""
import logging
import time
from typing import Callable, List, Optional

from bs4.element import Tag

from feed_filter.core.applier import FilterApplier
from feed_filter.core.classifier import classify_handle, is_over_exposed
from feed_filter.core.context import PipelineContext, get_mark
from feed_filter.core.extractor import extract
from feed_filter.core.scoring import ItemScorer
from feed_filter.models.dtos import FilterMark, Item, ScoredItem, WrapperMark

logger = logging.getLogger(__name__)

ITEM_SELECTORS = (
    "ytd-rich-item-renderer",       # Home page grid
    "ytd-video-renderer",           # Search results
    "ytd-compact-video-renderer",   # Sidebar recommendations
    "ytd-grid-video-renderer",      # Channel page grid
)
SHORTS_SHELF_SELECTOR = "ytd-reel-shelf-renderer, ytd-rich-shelf-renderer[is-shorts]"
AD_SLOT_SELECTOR = "ytd-ad-slot-renderer, ytd-in-feed-ad-layout-renderer, ytd-banner-promo-renderer"
CLICK_TITLE_SELECTOR = "#video-title"


def _is_watch_link(tag: Tag) -> bool:
    return tag.name == "a" and "watch?v=" in (tag.get("href") or "")


def _closest(tag: Tag, predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    """Nearest element at or above ``tag`` matching ``predicate``."""
    node = tag
    while isinstance(node, Tag):
        if predicate(node):
            return node
        node = node.parent
    return None


class FeedPipeline:
    """
    Orchestrates the feed filter pipeline over the context's document.
    """

    def __init__(self, context: PipelineContext):
        self.context = context
        self.scorer = ItemScorer(context)
        self.applier = FilterApplier(context)

    def hide_wrappers(self) -> int:
        """Hide shorts shelves and ad slots not hidden before."""
        hidden = 0
        document = self.context.document
        for selector, mark in (
            (SHORTS_SHELF_SELECTOR, WrapperMark.SHORTS_SHELF),
            (AD_SLOT_SELECTOR, WrapperMark.AD),
        ):
            for wrapper in document.select(selector):
                if get_mark(wrapper):
                    continue
                self.applier.hide_wrapper(wrapper, mark)
                hidden += 1
        return hidden

    def collect_candidates(self) -> List[Item]:
        """
        Classify unmarked handles in document order.

        Rejected handles are hidden immediately; handles that cannot be
        extracted are left unmarked so a later pass can retry them.

        Returns:
            Items that survived every heuristic, in document order
        """
        candidates: List[Item] = []
        for handle in self.context.document.select(", ".join(ITEM_SELECTORS)):
            if get_mark(handle):
                continue
            mark = classify_handle(handle)
            if mark is not None:
                self.applier.reject(handle, mark)
                continue

            item = extract(handle)
            if item is None:
                continue

            view_count = self.context.view_ledger.record_view(item.id)
            if is_over_exposed(view_count, self.context.settings.OVEREXPOSURE_THRESHOLD):
                self.applier.reject(handle, FilterMark.SEEN_TOO_OFTEN, f"(seen {view_count} times) {item.title[:25]}")
                continue
            candidates.append(item)
        return candidates

    async def score_sequentially(self, items: List[Item]) -> List[ScoredItem]:
        """
        Score items one at a time, applying each result before the next call.
        """
        results: List[ScoredItem] = []
        for item in items:
            try:
                scored = await self.scorer.score(item)
                self.applier.apply(scored)
            except Exception as e:
                logger.error(f"Failed to process item {item.id}: {e}", exc_info=True)
                continue
            results.append(scored)
        return results

    async def run_pass(self) -> int:
        """
        Run one full pass over the document.

        Returns:
            The number of items scored in this pass
        """
        if not self.context.config.enabled:
            logger.debug("Filtering disabled, skipping pass")
            return 0

        pass_start = time.time()
        self.hide_wrappers()
        items = self.collect_candidates()
        if not items:
            return 0

        logger.info(f"Processing {len(items)} items")
        results = await self.score_sequentially(items)
        logger.info(f"Pass finished in {time.time() - pass_start:.2f}s, scored {len(results)} items")
        return len(results)

    async def handle_click(self, target: Tag) -> Optional[str]:
        """
        Record the topic of a clicked item.

        Args:
            target: Element the user activated

        Returns:
            The recorded topic, or None
        """
        link = _closest(target, _is_watch_link)
        if link is None:
            return None
        item_handle = _closest(link, lambda tag: bool(get_mark(tag)))
        if item_handle is None:
            return None
        title_el = item_handle.select_one(CLICK_TITLE_SELECTOR)
        title = title_el.get_text().strip() if title_el else ""
        if not title:
            return None

        try:
            topic = await self.context.relay.resolve_topic(self.context.config.topic_endpoint, title)
        except Exception as e:
            logger.debug(f"Topic lookup failed: {e}")
            return None
        if topic:
            self.context.topic_ledger.record_topic_click(topic)
        return topic
