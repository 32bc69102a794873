"""Command-line interface for the feed filter."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from bs4 import BeautifulSoup
from dotenv import load_dotenv
from typing_extensions import Annotated

from feed_filter.config.settings import settings
from feed_filter.core.context import PipelineContext
from feed_filter.core.ledger import TopicLedger
from feed_filter.core.pipeline import FeedPipeline
from feed_filter.integrations.relay import ScoringRelay
from feed_filter.models.dtos import FilterConfig
from feed_filter.storage.kv_store import CONFIG_KEY, JsonFileStore, StoreError
from feed_filter.utils.logging_utils import setup_logging

app = typer.Typer(help="Feed Filter - classify, score and hide feed items")
topics_app = typer.Typer(help="Inspect and clear tracked topics")
app.add_typer(topics_app, name="topics")

logger = logging.getLogger(__name__)

StoreOption = Annotated[str, typer.Option("--store", "-s", help="Path to the JSON store")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")]


def run_or_exit(coro):
    """Run ``coro`` to completion, exiting with status 1 on store errors."""
    try:
        return asyncio.run(coro)
    except StoreError as e:
        logger.critical(f"Store error: {e}")
        sys.exit(1)


async def load_config(store: JsonFileStore) -> FilterConfig:
    stored = await store.get([CONFIG_KEY])
    try:
        return FilterConfig().merged(stored.get(CONFIG_KEY))
    except ValueError as e:
        logger.error(f"Ignoring invalid stored configuration: {e}")
        return FilterConfig()


async def run_filter_page(page_path: Path, output_path: Path, store_path: str) -> int:
    """
    Run one pipeline pass over a saved page and write the annotated page.

    Returns:
        Number of items scored
    """
    document = BeautifulSoup(page_path.read_text(encoding="utf-8"), "html.parser")
    store = JsonFileStore(store_path)
    async with ScoringRelay() as relay:
        context = PipelineContext(document=document, store=store, relay=relay)
        await context.load()
        pipeline = FeedPipeline(context)
        scored = await pipeline.run_pass()
        await context.flush()
    output_path.write_text(str(document), encoding="utf-8")
    return scored


async def run_health_check(store_path: str, endpoint: Optional[str]) -> bool:
    store = JsonFileStore(store_path)
    config = await load_config(store)
    async with ScoringRelay() as relay:
        return await relay.health_check(endpoint or config.status_endpoint)


@app.command("filter-page")
def filter_page(
    page: Annotated[Path, typer.Argument(help="Saved HTML page to filter", exists=True, dir_okay=False)],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Where to write the filtered page")] = None,
    store: StoreOption = settings.STORE_PATH,
    verbose: VerboseOption = False,
) -> None:
    """
    Classify and score every item of a saved feed page.
    """
    setup_logging(log_level="DEBUG" if verbose else None)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} filtering {page}")
    output_path = output or page.with_name(f"{page.stem}.filtered{page.suffix}")
    scored = run_or_exit(run_filter_page(page, output_path, store))
    typer.echo(f"Scored {scored} items, wrote {output_path}")


@app.command()
def health(
    endpoint: Annotated[Optional[str], typer.Option("--endpoint", "-e", help="Health endpoint override")] = None,
    store: StoreOption = settings.STORE_PATH,
) -> None:
    """
    Check whether the scoring service is reachable.
    """
    setup_logging()
    online = run_or_exit(run_health_check(store, endpoint))
    if online:
        typer.echo("API connected")
    else:
        typer.echo("API offline - items will show unfiltered")
        raise typer.Exit(code=1)


async def _load_topics(store_path: str) -> TopicLedger:
    store = JsonFileStore(store_path)
    config = await load_config(store)
    ledger = TopicLedger(store, cooldown_days=config.topic_cooldown_days)
    await ledger.load()
    await ledger.flush()
    return ledger


@topics_app.command("list")
def list_topics(store: StoreOption = settings.STORE_PATH) -> None:
    """
    Show tracked topics, most watched first.
    """
    setup_logging()

    async def _run():
        ledger = await _load_topics(store)
        return ledger.topics_by_count()

    entries = run_or_exit(_run())
    if not entries:
        typer.echo("No topics tracked yet")
        return
    for topic, count in entries:
        typer.echo(f"{count:>4}  {topic}")


@topics_app.command("clear")
def clear_topics(
    topic: Annotated[Optional[str], typer.Argument(help="Topic to forget; all topics when omitted")] = None,
    store: StoreOption = settings.STORE_PATH,
) -> None:
    """
    Forget one tracked topic, or all of them.
    """
    setup_logging()

    async def _run():
        ledger = await _load_topics(store)
        removed = ledger.clear(topic)
        await ledger.flush()
        return removed

    removed = run_or_exit(_run())
    typer.echo(f"Removed {removed} topic(s)")


def main() -> None:
    load_dotenv()
    app()


if __name__ == "__main__":
    main()
