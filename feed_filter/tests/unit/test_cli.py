"""Tests for the CLI module."""

import json
import time
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from feed_filter.cli import app
from feed_filter.integrations.relay import ScoringRelay

runner = CliRunner()


def relay_factory(handler):
    return lambda: ScoringRelay(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def scoring_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"response": '{"score": 88, "reason": "technical, in-depth"}'})


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("feed_filter.cli.setup_logging"):
        yield


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "store.json"


def test_filter_page(tmp_path, store_path, markup, document_of):
    page = tmp_path / "feed.html"
    page.write_text(
        str(document_of(
            markup("xyz789", "Writing a Lock-Free Queue"),
            markup("abc123", "GOLD RALLY INCOMING!!!", channel="MoneyNow"),
        )),
        encoding="utf-8",
    )
    output = tmp_path / "out.html"

    with patch("feed_filter.cli.ScoringRelay", relay_factory(scoring_handler)):
        result = runner.invoke(
            app, ["filter-page", str(page), "--output", str(output), "--store", str(store_path)]
        )

    assert result.exit_code == 0, result.output
    assert "Scored 1 items" in result.output
    html = output.read_text(encoding="utf-8")
    assert 'data-feed-score="88"' in html
    assert 'data-feed-filter="blacklisted"' in html
    stored = json.loads(store_path.read_text(encoding="utf-8"))
    assert stored["viewCounts"]["xyz789"]["count"] == 1


def test_filter_page_missing_file(tmp_path, store_path):
    result = runner.invoke(app, ["filter-page", str(tmp_path / "missing.html"), "--store", str(store_path)])

    assert result.exit_code != 0


def test_filter_page_corrupt_store(tmp_path, store_path, markup, document_of):
    page = tmp_path / "feed.html"
    page.write_text(str(document_of(markup("xyz789", "Writing a Lock-Free Queue"))), encoding="utf-8")
    store_path.write_text("{broken", encoding="utf-8")

    with patch("feed_filter.cli.ScoringRelay", relay_factory(scoring_handler)):
        result = runner.invoke(app, ["filter-page", str(page), "--store", str(store_path)])

    assert result.exit_code == 1


def test_health_online(store_path):
    with patch("feed_filter.cli.ScoringRelay", relay_factory(lambda r: httpx.Response(200))):
        result = runner.invoke(app, ["health", "--store", str(store_path)])

    assert result.exit_code == 0
    assert "API connected" in result.output


def test_health_offline(store_path):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(503)

    with patch("feed_filter.cli.ScoringRelay", relay_factory(handler)):
        result = runner.invoke(app, ["health", "--store", str(store_path), "--endpoint", "http://relay.test/ping"])

    assert result.exit_code == 1
    assert "API offline" in result.output
    assert seen == ["http://relay.test/ping"]


def test_topics_list_and_clear(store_path):
    now = time.time()
    store_path.write_text(
        json.dumps({
            "watchedTopics": {
                "Rust": {"count": 5, "lastSeen": now},
                "Cooking": {"count": 2, "lastSeen": now},
            }
        }),
        encoding="utf-8",
    )

    listed = runner.invoke(app, ["topics", "list", "--store", str(store_path)])
    assert listed.exit_code == 0
    assert listed.output.index("Rust") < listed.output.index("Cooking")

    cleared = runner.invoke(app, ["topics", "clear", "Rust", "--store", str(store_path)])
    assert cleared.exit_code == 0
    assert "Removed 1 topic(s)" in cleared.output
    stored = json.loads(store_path.read_text(encoding="utf-8"))
    assert set(stored["watchedTopics"]) == {"Cooking"}


def test_topics_list_empty(store_path):
    result = runner.invoke(app, ["topics", "list", "--store", str(store_path)])

    assert result.exit_code == 0
    assert "No topics tracked yet" in result.output
