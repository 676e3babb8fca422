import asyncio
import logging
import warnings
from datetime import datetime, timezone

import httpx
from dateutil import parser as dateparser
from dateutil.parser import UnknownTimezoneWarning

from news_pwa.feeds import SECTIONS
from news_pwa.models import FeedSource, NewsItem
from news_pwa.sources import MAX_ITEMS_PER_FEED, RSS_PROXY, fetch_feed
from news_pwa.translate import Translator

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_pub_date(value: str) -> datetime:
    """Parse a feed date string to an aware datetime; empty or unparsable values map to the epoch."""
    if not value:
        return EPOCH
    try:
        with warnings.catch_warnings():
            # unknown zone names parse as naive and are taken as UTC below
            warnings.simplefilter("ignore", UnknownTimezoneWarning)
            parsed = dateparser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_items(items: list[NewsItem]) -> list[NewsItem]:
    """Newest first. The sort is stable, so equal dates keep their merge order."""
    return sorted(items, key=lambda it: parse_pub_date(it.pub_date), reverse=True)


async def fetch_section(
    client: httpx.AsyncClient,
    translator: Translator,
    section: str,
    sections: dict[str, list[FeedSource]] | None = None,
    proxy: str = RSS_PROXY,
    max_items: int = MAX_ITEMS_PER_FEED,
) -> list[NewsItem]:
    """Fetch every feed of a section concurrently and merge them newest first."""
    feeds = (SECTIONS if sections is None else sections).get(section, [])
    results = await asyncio.gather(
        *[fetch_feed(client, translator, f, proxy, max_items) for f in feeds],
        return_exceptions=True,
    )

    merged: list[NewsItem] = []
    for feed, result in zip(feeds, results):
        if isinstance(result, BaseException):
            logger.warning("Feed %s crashed: %s", feed.name, result)
            continue
        merged.extend(result)

    logger.info("Section %s: %d items from %d feeds", section, len(merged), len(feeds))
    return sort_items(merged)
