import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from news_pwa.loader import SectionLoader, SectionState
from news_pwa.models import NewsItem
from news_pwa.storage import CacheStore, LocalStorage

SECTIONS = ["czech", "estonia", "vaping"]
ITEMS = [NewsItem("Новость", "", "#", "2024-01-01T00:00:00Z", "ERR RUS", "ru")]
FRESH = [NewsItem("Свежая", "", "#", "2024-02-01T00:00:00Z", "ERR RUS", "ru")]


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    return CacheStore(LocalStorage(tmp_path), clock=clock)


def make_loader(store, fetch=None, sections=SECTIONS):
    fetch = fetch or AsyncMock(return_value=FRESH)
    return SectionLoader(sections, fetch, store, MagicMock())


class TestLoadSection:
    @pytest.mark.asyncio
    async def test_fresh_cache_skips_network(self, store, clock):
        store.set("czech", ITEMS)
        clock.now += 30 * 60 * 1000
        loader = make_loader(store)

        state = await loader.load_section("czech")

        assert state is SectionState.LOADED
        loader.fetch_section.assert_not_called()
        loader.renderer.render.assert_called_once_with("czech", ITEMS, "czech")
        loader.renderer.render_loading_placeholder.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_cache_fetches_and_stores(self, store, clock):
        store.set("czech", ITEMS)
        clock.now += 61 * 60 * 1000
        loader = make_loader(store)

        state = await loader.load_section("czech")

        assert state is SectionState.LOADED
        loader.fetch_section.assert_awaited_once_with("czech")
        loader.renderer.render_loading_placeholder.assert_called_once_with("czech")
        loader.renderer.render.assert_called_once_with("czech", FRESH, "czech")
        assert store.get("czech").items == FRESH

    @pytest.mark.asyncio
    async def test_force_refresh_ignores_fresh_cache(self, store):
        store.set("czech", ITEMS)
        loader = make_loader(store)

        await loader.load_section("czech", force_refresh=True)

        loader.fetch_section.assert_awaited_once_with("czech")
        assert store.get("czech").items == FRESH

    @pytest.mark.asyncio
    async def test_passes_through_loading_state(self, store):
        seen = []
        loader = make_loader(store)

        async def fetch(section):
            seen.append(loader.states[section])
            return FRESH

        loader.fetch_section = fetch
        assert loader.states["czech"] is SectionState.IDLE
        await loader.load_section("czech")
        assert seen == [SectionState.LOADING]
        assert loader.states["czech"] is SectionState.LOADED

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_stale_cache(self, store, clock):
        store.set("estonia", ITEMS)
        clock.now += 5 * 60 * 60 * 1000
        loader = make_loader(store, AsyncMock(side_effect=RuntimeError("boom")))

        state = await loader.load_section("estonia")

        assert state is SectionState.LOADED
        loader.renderer.render.assert_called_once_with("estonia", ITEMS, "estonia")
        loader.renderer.render_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_without_cache_renders_error(self, store):
        loader = make_loader(store, AsyncMock(side_effect=RuntimeError("boom")))

        state = await loader.load_section("vaping")

        assert state is SectionState.ERROR
        assert loader.states["vaping"] is SectionState.ERROR
        loader.renderer.render_error.assert_called_once_with("vaping")
        loader.renderer.render.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_result_renders_empty_state(self, store):
        loader = make_loader(store, AsyncMock(return_value=[]))

        state = await loader.load_section("vaping")

        assert state is SectionState.LOADED
        loader.renderer.render.assert_called_once_with("vaping", [], "vaping")
        assert store.get("vaping").items == []


class TestInitialize:
    @pytest.mark.asyncio
    async def test_loads_every_section_without_forcing(self, store):
        store.set("czech", ITEMS)
        loader = make_loader(store)

        await loader.initialize()

        fetched = sorted(c.args[0] for c in loader.fetch_section.await_args_list)
        assert fetched == ["estonia", "vaping"]
        assert all(s is SectionState.LOADED for s in loader.states.values())
        assert loader.last_refreshed is not None
        loader.renderer.mark_refreshed.assert_called_once_with(loader.last_refreshed)


class TestRefreshAll:
    @pytest.mark.asyncio
    async def test_forces_every_section(self, store):
        for s in SECTIONS:
            store.set(s, ITEMS)
        loader = make_loader(store)

        assert await loader.refresh_all() is True

        assert loader.fetch_section.await_count == 3
        assert loader.refreshing is False
        assert loader.last_refreshed is not None

    @pytest.mark.asyncio
    async def test_second_call_while_running_is_noop(self, store):
        release = asyncio.Event()
        calls = []

        async def slow_fetch(section):
            calls.append(section)
            await release.wait()
            return FRESH

        loader = make_loader(store, slow_fetch)
        first = asyncio.create_task(loader.refresh_all())
        await asyncio.sleep(0)

        assert loader.refreshing is True
        assert await loader.refresh_all() is False

        release.set()
        assert await first is True
        assert sorted(calls) == sorted(SECTIONS)
        assert loader.refreshing is False

    @pytest.mark.asyncio
    async def test_marks_refreshed_even_when_sections_fail(self, store):
        loader = make_loader(store, AsyncMock(side_effect=RuntimeError("down")))

        await loader.refresh_all()

        assert all(s is SectionState.ERROR for s in loader.states.values())
        loader.renderer.mark_refreshed.assert_called_once()

    @pytest.mark.asyncio
    async def test_renderer_fault_is_logged_and_marker_updated(self, store, caplog):
        loader = make_loader(store)
        loader.renderer.render.side_effect = OSError("read-only")

        assert await loader.refresh_all() is True

        assert loader.refreshing is False
        assert loader.last_refreshed is not None
        loader.renderer.mark_refreshed.assert_called_once()
        assert "Refresh of czech failed" in caplog.text

    @pytest.mark.asyncio
    async def test_flag_cleared_when_marker_fails(self, store):
        loader = make_loader(store)
        loader.renderer.mark_refreshed.side_effect = OSError("read-only")

        with pytest.raises(OSError):
            await loader.refresh_all()
        assert loader.refreshing is False


class TestOnVisible:
    @pytest.mark.asyncio
    async def test_all_fresh_does_nothing(self, store):
        for s in SECTIONS:
            store.set(s, ITEMS)
        loader = make_loader(store)

        assert await loader.on_visible() is False
        loader.fetch_section.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_stale_refreshes_everything(self, store, clock):
        for s in SECTIONS:
            store.set(s, ITEMS)
        clock.now += 2 * 60 * 60 * 1000
        store.set("czech", ITEMS)
        loader = make_loader(store)

        assert loader.needs_refresh()
        assert await loader.on_visible() is True
        assert loader.fetch_section.await_count == 3


class TestAutoRefresh:
    @pytest.mark.asyncio
    @patch("news_pwa.loader.asyncio.sleep")
    async def test_sleeps_then_refreshes(self, mock_sleep, store):
        mock_sleep.side_effect = [None, asyncio.CancelledError()]
        loader = make_loader(store)

        with pytest.raises(asyncio.CancelledError):
            await loader.auto_refresh(3600)

        assert mock_sleep.await_args_list[0].args == (3600,)
        assert loader.fetch_section.await_count == 3

    @pytest.mark.asyncio
    @patch("news_pwa.loader.asyncio.sleep")
    async def test_keeps_running_after_render_fault(self, mock_sleep, store):
        mock_sleep.side_effect = [None, None, asyncio.CancelledError()]
        loader = make_loader(store)
        loader.renderer.render.side_effect = [OSError("disk full")] + [None] * 5

        with pytest.raises(asyncio.CancelledError):
            await loader.auto_refresh(1)

        assert loader.fetch_section.await_count == 6
        assert loader.renderer.mark_refreshed.call_count == 2

    @pytest.mark.asyncio
    @patch("news_pwa.loader.asyncio.sleep")
    async def test_keeps_running_after_failed_cycle(self, mock_sleep, store, caplog):
        mock_sleep.side_effect = [None, None, asyncio.CancelledError()]
        loader = make_loader(store)
        loader.renderer.mark_refreshed.side_effect = [OSError("disk full"), None]

        with pytest.raises(asyncio.CancelledError):
            await loader.auto_refresh(1)

        assert loader.fetch_section.await_count == 6
        assert loader.refreshing is False
        assert "Scheduled refresh failed" in caplog.text
