import asyncio
import html
import logging
import re

import httpx

from news_pwa.models import FeedResult, FeedSource, NewsItem
from news_pwa.translate import Translator

logger = logging.getLogger(__name__)

RSS_PROXY = "https://api.rss2json.com/v1/api.json"
MAX_ITEMS_PER_FEED = 10
DESCRIPTION_MAX_CHARS = 300

_TAG_RE = re.compile(r"<[^<]+?>")


def build_proxy_url(feed_url: str, proxy: str = RSS_PROXY) -> str:
    """Return the proxy request URL for a feed, with the feed URL percent-encoded."""
    return str(httpx.URL(proxy, params={"rss_url": feed_url}))


def strip_html(text: str) -> str:
    """Drop markup tags and decode entities, keeping only the text content."""
    return html.unescape(_TAG_RE.sub("", str(text) if text else ""))


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def normalize_entry(entry: dict, source: FeedSource) -> NewsItem:
    """Turn one proxy item into a NewsItem for ``source``."""
    return NewsItem(
        title=strip_html(_text(entry.get("title"))),
        description=strip_html(_text(entry.get("description")))[:DESCRIPTION_MAX_CHARS],
        link=_text(entry.get("link")) or "#",
        pub_date=_text(entry.get("pubDate")),
        source=source.name,
        lang=source.lang,
    )


async def translate_item(item: NewsItem, translator: Translator) -> NewsItem:
    """Translate title and description in parallel, keeping the original title."""
    title, description = await asyncio.gather(
        translator.translate(item.title, item.lang),
        translator.translate(item.description, item.lang),
    )
    return NewsItem(
        title=title,
        description=description,
        link=item.link,
        pub_date=item.pub_date,
        source=item.source,
        lang=item.lang,
        original_title=item.title,
    )


async def fetch_feed_result(
    client: httpx.AsyncClient,
    translator: Translator,
    source: FeedSource,
    proxy: str = RSS_PROXY,
    max_items: int = MAX_ITEMS_PER_FEED,
) -> FeedResult:
    """Fetch one feed through the proxy. Never raises; failures carry an error reason."""
    try:
        resp = await client.get(build_proxy_url(source.url, proxy))
        if not resp.is_success:
            return _failed(source, f"HTTP {resp.status_code}")
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        return _failed(source, str(exc) or type(exc).__name__)

    if not isinstance(data, dict) or data.get("status") != "ok":
        status = data.get("status") if isinstance(data, dict) else None
        return _failed(source, f"status={status}")
    entries = data.get("items")
    if not isinstance(entries, list):
        return _failed(source, "missing items")

    items = [
        normalize_entry(entry, source)
        for entry in entries[:max_items]
        if isinstance(entry, dict)
    ]

    if translator.needs_translation(source.lang):
        items = list(await asyncio.gather(*[translate_item(it, translator) for it in items]))

    logger.info("Fetched %d items from %s", len(items), source.name)
    return FeedResult(source=source, items=items)


async def fetch_feed(
    client: httpx.AsyncClient,
    translator: Translator,
    source: FeedSource,
    proxy: str = RSS_PROXY,
    max_items: int = MAX_ITEMS_PER_FEED,
) -> list[NewsItem]:
    """Fetch one feed, returning an empty list on any failure."""
    result = await fetch_feed_result(client, translator, source, proxy, max_items)
    return result.items


def _failed(source: FeedSource, reason: str) -> FeedResult:
    logger.warning("Failed to fetch %s: %s", source.name, reason)
    return FeedResult(source=source, error=reason)
