import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol

from news_pwa.feeds import container_id
from news_pwa.models import NewsItem
from news_pwa.storage import CacheStore

logger = logging.getLogger(__name__)

AUTO_REFRESH_SECONDS = 60 * 60


class SectionState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class Renderer(Protocol):
    def render(self, container: str, items: list[NewsItem], section: str) -> None: ...

    def render_loading_placeholder(self, container: str) -> None: ...

    def render_error(self, container: str) -> None: ...

    def mark_refreshed(self, when: datetime) -> None: ...


SectionFetcher = Callable[[str], Awaitable[list[NewsItem]]]


class SectionLoader:
    """Decides cache vs. network for each section and drives the renderer.

    ``fetch_section`` is called with a section name and returns its merged items.
    """

    def __init__(
        self,
        sections: list[str],
        fetch_section: SectionFetcher,
        store: CacheStore,
        renderer: Renderer,
    ) -> None:
        self.sections = list(sections)
        self.fetch_section = fetch_section
        self.store = store
        self.renderer = renderer
        self.states = {s: SectionState.IDLE for s in self.sections}
        self.refreshing = False
        self.last_refreshed: datetime | None = None

    async def load_section(self, section: str, force_refresh: bool = False) -> SectionState:
        container = container_id(section)

        if not force_refresh:
            cached = self.store.get(section)
            if cached is not None:
                self.renderer.render(container, cached.items, section)
                return self._set_state(section, SectionState.LOADED)

        self._set_state(section, SectionState.LOADING)
        self.renderer.render_loading_placeholder(container)

        try:
            items = await self.fetch_section(section)
        except Exception:
            logger.exception("Error loading %s", section)
            stale = self.store.get_stale(section)
            if stale is not None:
                self.renderer.render(container, stale.items, section)
                return self._set_state(section, SectionState.LOADED)
            self.renderer.render_error(container)
            return self._set_state(section, SectionState.ERROR)

        self.store.set(section, items)
        self.renderer.render(container, items, section)
        return self._set_state(section, SectionState.LOADED)

    async def initialize(self) -> None:
        """Load every section, preferring fresh cache."""
        await asyncio.gather(*[self.load_section(s) for s in self.sections])
        self._mark_refreshed()

    async def refresh_all(self) -> bool:
        """Force-reload every section. Returns False if a refresh was already running."""
        if self.refreshing:
            logger.debug("Refresh already in progress, skipping")
            return False
        self.refreshing = True
        try:
            results = await asyncio.gather(
                *[self.load_section(s, force_refresh=True) for s in self.sections],
                return_exceptions=True,
            )
            for section, result in zip(self.sections, results):
                if isinstance(result, Exception):
                    logger.error("Refresh of %s failed", section, exc_info=result)
            self._mark_refreshed()
        finally:
            self.refreshing = False
        return True

    def needs_refresh(self) -> bool:
        return any(not self.store.is_fresh(s) for s in self.sections)

    async def on_visible(self) -> bool:
        """Refresh when the app comes back into view, but only if some cache is missing or stale."""
        if not self.needs_refresh():
            return False
        return await self.refresh_all()

    async def auto_refresh(self, interval: float = AUTO_REFRESH_SECONDS) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh_all()
            except Exception:
                logger.exception("Scheduled refresh failed")

    def _set_state(self, section: str, state: SectionState) -> SectionState:
        self.states[section] = state
        return state

    def _mark_refreshed(self) -> None:
        self.last_refreshed = datetime.now()
        self.renderer.mark_refreshed(self.last_refreshed)
