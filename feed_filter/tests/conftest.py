import time
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from bs4 import BeautifulSoup

from feed_filter.core.context import PipelineContext
from feed_filter.integrations.relay import ScoringRelay
from feed_filter.models.dtos import RelayResponse
from feed_filter.storage.kv_store import InMemoryStore


def item_html(
    item_id: str,
    title: str,
    channel: str = "SystemsDaily",
    tag: str = "ytd-rich-item-renderer",
    extra: str = "",
) -> str:
    """Markup for one rendered feed item."""
    return (
        f"<{tag}>"
        f'<a id="thumbnail" href="/watch?v={item_id}"></a>'
        f'<a id="video-title" href="/watch?v={item_id}">{title}</a>'
        f'<ytd-channel-name id="channel-name"><a href="/@{channel}">{channel}</a></ytd-channel-name>'
        f"{extra}"
        f"</{tag}>"
    )


def make_document(*fragments: str) -> BeautifulSoup:
    return BeautifulSoup(f"<html><body><div id=\"contents\">{''.join(fragments)}</div></body></html>", "html.parser")


def relay_reply(text: str) -> RelayResponse:
    return RelayResponse(success=True, data={"response": text})


class VirtualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Deterministic timer source; time only moves through ``advance``."""

    def __init__(self):
        self.now = 0.0
        self._timers: List[VirtualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def active(self) -> List[VirtualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.active if t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target
        self._timers = self.active


@pytest.fixture
def markup():
    """Builder for rendered item markup."""
    return item_html


@pytest.fixture
def document_of():
    return make_document


@pytest.fixture
def virtual_clock():
    return VirtualClock()


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def mock_relay():
    """Relay double answering every scoring call with a score of 75."""
    relay = MagicMock(spec=ScoringRelay)
    relay.send = AsyncMock(return_value=relay_reply('{"score": 75, "reason": "solid"}'))
    relay.resolve_topic = AsyncMock(return_value=None)
    relay.health_check = AsyncMock(return_value=True)
    return relay


@pytest.fixture
def make_context(memory_store, mock_relay):
    """Factory for a context over the given markup fragments."""

    def _make(*fragments: str, **kwargs) -> PipelineContext:
        return PipelineContext(
            document=make_document(*fragments),
            store=kwargs.pop("store", memory_store),
            relay=kwargs.pop("relay", mock_relay),
            **kwargs,
        )

    return _make


@pytest.fixture
def now():
    return time.time()
