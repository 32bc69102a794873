"""
Filter applier: the terminal, side-effecting stage of the pipeline.

Visibility is expressed through the handle's inline ``style`` and a marker
class, so the applier can tell its own hide decisions from anyone else's.
"""

import logging
from typing import Dict

from bs4.element import Tag

from feed_filter.core.context import PipelineContext, set_mark
from feed_filter.models.dtos import FilterMark, ScoredItem, WrapperMark

logger = logging.getLogger(__name__)

SCORE_ATTR = "data-feed-score"
REASON_ATTR = "data-feed-reason"
HIDDEN_CLASS = "feed-filter-hidden"
BADGE_CLASS = "feed-filter-badge"

BADGE_STYLE = (
    "position: absolute; top: 12px; left: 12px; background: {color}; color: white; "
    "padding: 8px 14px; border-radius: 6px; font-size: 24px; font-weight: bold; "
    "z-index: 9999; pointer-events: none; box-shadow: 0 2px 8px rgba(0,0,0,0.3)"
)


def parse_style(tag: Tag) -> Dict[str, str]:
    declarations = {}
    for part in (tag.get("style") or "").split(";"):
        name, sep, value = part.partition(":")
        if sep and name.strip():
            declarations[name.strip().lower()] = value.strip()
    return declarations


def set_style(tag: Tag, name: str, value: str = None) -> None:
    """Set (or with ``value=None`` remove) one inline style declaration."""
    declarations = parse_style(tag)
    if value is None:
        declarations.pop(name, None)
    else:
        declarations[name] = value
    if declarations:
        tag["style"] = "; ".join(f"{k}: {v}" for k, v in declarations.items())
    elif tag.has_attr("style"):
        del tag["style"]


def is_hidden(tag: Tag) -> bool:
    return parse_style(tag).get("display") == "none"


def hide(tag: Tag) -> None:
    set_style(tag, "display", "none")


def badge_color(score: int) -> str:
    if score >= 70:
        return "#4CAF50"
    if score >= 50:
        return "#FF9800"
    return "#f44336"


class FilterApplier:
    """Applies hide and badge decisions to handles."""

    def __init__(self, context: PipelineContext):
        self.context = context

    def reject(self, handle: Tag, mark: FilterMark, detail: str = "") -> None:
        """Hide a heuristically rejected handle and stamp its mark."""
        hide(handle)
        set_mark(handle, mark.value)
        logger.info(f"HIDDEN {mark.value} item {detail}".rstrip())

    def hide_wrapper(self, wrapper: Tag, mark: WrapperMark) -> None:
        hide(wrapper)
        set_mark(wrapper, mark.value)
        logger.info(f"HIDDEN {mark.value} wrapper")

    def apply(self, item: ScoredItem) -> None:
        """
        Stamp the final mark and score, decide visibility and attach the badge.

        Safe to call repeatedly for the same item.
        """
        handle = item.handle
        if handle is None:
            return
        config = self.context.config
        set_mark(handle, FilterMark.SCORED.value)
        handle[SCORE_ATTR] = str(item.score)

        if item.score < config.threshold:
            classes = handle.get("class") or []
            if HIDDEN_CLASS not in classes:
                handle["class"] = list(classes) + [HIDDEN_CLASS]
            handle[REASON_ATTR] = item.reason or "Low score"
            hide(handle)
            logger.info(f"HIDDEN {item.title[:25]} score: {item.score}")
        else:
            self._reveal(handle)

        if config.show_scores:
            self._attach_badge(handle, item)

    def _reveal(self, handle: Tag) -> None:
        # Only undo a hide this applier made.
        classes = handle.get("class") or []
        if HIDDEN_CLASS not in classes:
            return
        remaining = [c for c in classes if c != HIDDEN_CLASS]
        if remaining:
            handle["class"] = remaining
        else:
            del handle["class"]
        if handle.has_attr(REASON_ATTR):
            del handle[REASON_ATTR]
        set_style(handle, "display")

    def _attach_badge(self, handle: Tag, item: ScoredItem) -> None:
        if handle.select_one(f".{BADGE_CLASS}") is not None:
            return
        view_count = self.context.view_ledger.get_view_count(item.id)
        badge = self.context.document.new_tag(
            "div",
            attrs={
                "class": BADGE_CLASS,
                "title": f"{item.reason or ''} ({view_count}x)",
                "style": BADGE_STYLE.format(color=badge_color(item.score)),
            },
        )
        badge.string = str(item.score)
        set_style(handle, "position", "relative")
        handle.append(badge)
