"""
Reactive scheduler that re-runs the pipeline as the feed mutates.

Mutation, initial-load and navigation triggers funnel into one trailing-edge
debounce with a single pending-timer slot. Configuration changes bypass the
debounce. Passes that already started are never cancelled.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Protocol, Set

from bs4.element import Tag

from feed_filter.config.settings import settings
from feed_filter.core.context import PipelineContext, clear_marks
from feed_filter.storage.kv_store import CONFIG_KEY

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """Timer source; the scheduler never sleeps on its own."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class LoopClock:
    """Clock backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


def looks_like_item(node: Any) -> bool:
    """True for inserted elements that may hold feed items."""
    if not isinstance(node, Tag):
        return False
    name = (node.name or "").lower()
    if "video" in name or "renderer" in name:
        return True
    return node.select_one('[id*="video"]') is not None


class ReactiveScheduler:
    """
    Owns the debounce timer and the lifecycle of pipeline passes.
    """

    def __init__(
        self,
        context: PipelineContext,
        run_pass: Callable[[], Awaitable[Any]],
        clock: Optional[Clock] = None,
        debounce_seconds: float = settings.DEBOUNCE_SECONDS,
        initial_delay_seconds: float = settings.INITIAL_RUN_DELAY_SECONDS,
        navigation_delay_seconds: float = settings.NAVIGATION_DELAY_SECONDS,
    ):
        """
        Initialize the scheduler.

        Args:
            context: Shared pipeline context
            run_pass: Coroutine function running one full pipeline pass
            clock: Timer source, defaults to the running event loop
            debounce_seconds: Trailing-edge debounce window
            initial_delay_seconds: Delay before the first run after start
            navigation_delay_seconds: Delay before re-running after navigation
        """
        self.context = context
        self.run_pass = run_pass
        self.clock = clock or LoopClock()
        self.debounce_seconds = debounce_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.navigation_delay_seconds = navigation_delay_seconds

        self._pending: Optional[TimerHandle] = None
        self._aux_timers: Set[TimerHandle] = set()
        self._running: Set[asyncio.Task] = set()
        self.last_location: Optional[str] = None
        self.started = False
        self.passes_started = 0

    def start(self, location: Optional[str] = None) -> None:
        """Arm the one-time initial run and remember the current location."""
        if self.started:
            return
        self.started = True
        self.last_location = location
        self._schedule_aux(self.initial_delay_seconds)
        logger.info(f"Scheduler started, first run in {self.initial_delay_seconds}s")

    def stop(self) -> None:
        """Cancel pending timers; passes already running finish on their own."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        for handle in list(self._aux_timers):
            handle.cancel()
        self._aux_timers.clear()
        self.started = False

    def attach(self, store) -> None:
        """Listen for configuration changes written to ``store``."""
        store.add_listener(self._on_store_change)

    def _on_store_change(self, changes: Dict[str, Any]) -> None:
        if CONFIG_KEY in changes:
            self.on_config_change(changes[CONFIG_KEY] or {})

    def _schedule_aux(self, delay: float) -> None:
        handle = None

        def fire() -> None:
            self._aux_timers.discard(handle)
            self.trigger()

        handle = self.clock.call_later(delay, fire)
        self._aux_timers.add(handle)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def trigger(self) -> None:
        """Request a pass; any trigger inside the window restarts the timer."""
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self.clock.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._pending = None
        self._spawn_pass()

    def _spawn_pass(self) -> None:
        self.passes_started += 1
        task = asyncio.ensure_future(self._guarded_pass())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _guarded_pass(self) -> None:
        try:
            await self.run_pass()
        except Exception as e:
            logger.error(f"Pipeline pass failed: {e}", exc_info=True)

    def on_mutation(self, added_nodes: Iterable[Any]) -> bool:
        """
        Handle a structural change notification.

        Only item-shaped insertions re-arm the debounce; stale marks on
        inserted nodes are cleared so they are classified afresh.

        Returns:
            True when a pass was requested
        """
        relevant = False
        for node in added_nodes:
            if looks_like_item(node):
                clear_marks(node)
                relevant = True
        if relevant:
            self.trigger()
        return relevant

    def on_location_change(self, location: str) -> bool:
        """Schedule a pass after navigation inside a single-page host."""
        if location == self.last_location:
            return False
        self.last_location = location
        logger.debug(f"Location changed to {location}")
        self._schedule_aux(self.navigation_delay_seconds)
        return True

    def on_config_change(self, blob: Dict[str, Any]) -> None:
        """Apply new configuration and start a full reclassification pass now."""
        try:
            self.context.apply_config(blob)
        except ValueError as e:
            logger.error(f"Rejected configuration change: {e}")
            return
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._spawn_pass()

    async def wait_idle(self) -> None:
        """Wait until every started pass has finished."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
