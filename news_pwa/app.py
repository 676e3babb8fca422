"""News aggregator entry point.

Usage:
    python -m news_pwa.app

Environment variables:
    RSS_PROXY             — default: https://api.rss2json.com/v1/api.json
    TRANSLATE_ENDPOINT    — default: https://translate.googleapis.com/translate_a/single
    TARGET_LANG           — default: ru
    CACHE_DURATION_MS     — default: 3600000
    AUTO_REFRESH_MS       — default: 3600000
    MAX_ITEMS_PER_FEED    — default: 10
    CACHE_DIR             — default: .cache/news
    OUTPUT_DIR            — default: output
    APP_ORIGIN            — default: http://localhost:8000
    ASSET_CACHE_NAME      — default: news-pwa-v1
    SAME_ORIGIN_STRATEGY  — default: network-first
    RUN_FOREVER           — default: off; keeps refreshing every AUTO_REFRESH_MS
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from functools import partial
from pathlib import Path

import httpx

from news_pwa.aggregate import fetch_section
from news_pwa.feeds import SECTIONS, section_names
from news_pwa.loader import SectionLoader
from news_pwa.offline import (
    CACHE_NAME,
    NETWORK_FIRST,
    STRATEGIES,
    CacheStorage,
    OfflineTransport,
    OfflineWorker,
)
from news_pwa.render import JsonRenderer
from news_pwa.sources import MAX_ITEMS_PER_FEED, RSS_PROXY
from news_pwa.storage import CACHE_DURATION_MS, CacheStore, LocalStorage
from news_pwa.translate import TARGET_LANG, TRANSLATE_ENDPOINT, Translator

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def get_config() -> dict:
    """Read configuration from environment variables."""
    strategy = os.environ.get("SAME_ORIGIN_STRATEGY", NETWORK_FIRST)
    if strategy not in STRATEGIES:
        raise RuntimeError(f"SAME_ORIGIN_STRATEGY must be one of {', '.join(STRATEGIES)}")
    return {
        "rss_proxy": os.environ.get("RSS_PROXY", RSS_PROXY),
        "translate_endpoint": os.environ.get("TRANSLATE_ENDPOINT", TRANSLATE_ENDPOINT),
        "target_lang": os.environ.get("TARGET_LANG", TARGET_LANG),
        "cache_duration_ms": _int_env("CACHE_DURATION_MS", CACHE_DURATION_MS),
        "auto_refresh_ms": _int_env("AUTO_REFRESH_MS", 60 * 60 * 1000),
        "max_items_per_feed": _int_env("MAX_ITEMS_PER_FEED", MAX_ITEMS_PER_FEED),
        "cache_dir": Path(os.environ.get("CACHE_DIR", ".cache/news")),
        "output_dir": Path(os.environ.get("OUTPUT_DIR", "output")),
        "origin": os.environ.get("APP_ORIGIN", "http://localhost:8000"),
        "asset_cache_name": os.environ.get("ASSET_CACHE_NAME", CACHE_NAME),
        "same_origin_strategy": strategy,
        "run_forever": os.environ.get("RUN_FOREVER", "").lower() in ("1", "true", "yes"),
    }


@dataclass
class App:
    client: httpx.AsyncClient
    transport: OfflineTransport
    worker: OfflineWorker
    loader: SectionLoader


def build_app(config: dict, network: httpx.AsyncBaseTransport | None = None) -> App:
    """Wire the pipeline together. ``network`` replaces the real HTTP transport."""
    transport = OfflineTransport(network)
    worker = OfflineWorker(
        CacheStorage(config["cache_dir"] / "assets"),
        origin=config["origin"],
        network=transport.network,
        cache_name=config["asset_cache_name"],
        same_origin_strategy=config["same_origin_strategy"],
    )
    client = httpx.AsyncClient(transport=transport, timeout=HTTP_TIMEOUT, follow_redirects=True)
    translator = Translator(
        client,
        endpoint=config["translate_endpoint"],
        target_lang=config["target_lang"],
    )
    fetch = partial(
        fetch_section,
        client,
        translator,
        sections=SECTIONS,
        proxy=config["rss_proxy"],
        max_items=config["max_items_per_feed"],
    )
    loader = SectionLoader(
        section_names(),
        fetch,
        CacheStore(LocalStorage(config["cache_dir"]), duration_ms=config["cache_duration_ms"]),
        JsonRenderer(config["output_dir"], target_lang=config["target_lang"]),
    )
    return App(client=client, transport=transport, worker=worker, loader=loader)


async def run_app(config: dict, network: httpx.AsyncBaseTransport | None = None) -> App:
    """Register the offline cache, load every section and optionally keep refreshing."""
    app = build_app(config, network)
    async with app.client:
        await app.transport.register(app.worker)
        await app.loader.initialize()
        logger.info(
            "Loaded sections: %s",
            ", ".join(f"{s}={st.value}" for s, st in app.loader.states.items()),
        )
        if config["run_forever"]:
            await app.loader.auto_refresh(config["auto_refresh_ms"] / 1000)
    return app


def main() -> None:
    """Entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = get_config()
    asyncio.run(run_app(config))


if __name__ == "__main__":
    main()
