"""Offline asset cache implemented as an intercepting httpx transport.

An ``OfflineWorker`` owns one named, versioned cache. Once registered on an
``OfflineTransport`` it is installed (static manifest pre-cached), activated
(every other cache version deleted) and then answers every request the
transport's clients make, preferring the network and falling back to the cache
when the network is unreachable.
"""

import asyncio
import base64
import enum
import hashlib
import json
import logging
import shutil
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

CACHE_NAME = "news-pwa-v1"
STATIC_ASSETS = [
    "./",
    "./index.html",
    "./style.css",
    "./app.js",
    "./manifest.json",
    "./icon-192.png",
    "./icon-512.png",
]

NETWORK_FIRST = "network-first"
CACHE_FIRST = "cache-first"
STRATEGIES = (NETWORK_FIRST, CACHE_FIRST)

# Dropped when buffering a response; the stored body is already decoded.
_ENCODING_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class InstallError(RuntimeError):
    """A static asset could not be fetched while installing the worker."""


class WorkerState(enum.Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


def _entry_name(url: httpx.URL) -> str:
    return hashlib.sha256(str(url).encode()).hexdigest()[:32] + ".json"


class AssetCache:
    """Request URL → response pairs stored as JSON files in one directory."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def put(self, request: httpx.Request, response: httpx.Response) -> None:
        """Store a response whose body has already been read."""
        self.path.mkdir(parents=True, exist_ok=True)
        entry = {
            "url": str(request.url),
            "status": response.status_code,
            "headers": [[k, v] for k, v in response.headers.multi_items()],
            "body": base64.b64encode(response.content).decode("ascii"),
        }
        target = self.path / _entry_name(request.url)
        tmp = target.with_suffix(".tmp")
        tmp.write_text(json.dumps(entry), encoding="utf-8")
        tmp.replace(target)

    def match(self, request: httpx.Request) -> httpx.Response | None:
        if request.method != "GET":
            return None
        target = self.path / _entry_name(request.url)
        try:
            entry = json.loads(target.read_text(encoding="utf-8"))
            return httpx.Response(
                entry["status"],
                headers=[tuple(h) for h in entry["headers"]],
                content=base64.b64decode(entry["body"]),
                request=request,
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.debug("Unreadable cache entry for %s: %s", request.url, exc)
            return None

    def urls(self) -> list[str]:
        if not self.path.is_dir():
            return []
        urls = []
        for p in sorted(self.path.glob("*.json")):
            try:
                urls.append(json.loads(p.read_text(encoding="utf-8"))["url"])
            except (OSError, ValueError, KeyError):
                continue
        return urls


class CacheStorage:
    """The set of named cache versions living under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def open(self, name: str) -> AssetCache:
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"Invalid cache name: {name!r}")
        cache_dir = self.root / name
        cache_dir.mkdir(parents=True, exist_ok=True)
        return AssetCache(cache_dir)

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def delete(self, name: str) -> bool:
        cache_dir = self.root / name
        if not cache_dir.is_dir():
            return False
        shutil.rmtree(cache_dir)
        return True


async def _buffered(response: httpx.Response, request: httpx.Request) -> httpx.Response:
    """Read a transport response fully and return a replayable copy of it."""
    body = await response.aread()
    headers = [
        (k, v) for k, v in response.headers.multi_items()
        if k.lower() not in _ENCODING_HEADERS
    ]
    return httpx.Response(
        response.status_code,
        headers=headers,
        content=body,
        request=request,
        extensions=response.extensions,
    )


class OfflineWorker:
    def __init__(
        self,
        storage: CacheStorage,
        origin: str,
        network: httpx.AsyncBaseTransport,
        cache_name: str = CACHE_NAME,
        static_assets: list[str] | None = None,
        same_origin_strategy: str = NETWORK_FIRST,
    ) -> None:
        if same_origin_strategy not in STRATEGIES:
            raise ValueError(f"Unknown same-origin strategy: {same_origin_strategy}")
        self.storage = storage
        self.origin = httpx.URL(origin)
        self.network = network
        self.cache_name = cache_name
        self.static_assets = list(STATIC_ASSETS if static_assets is None else static_assets)
        self.same_origin_strategy = same_origin_strategy
        self.state = WorkerState.PARSED
        self.skip_waiting = False
        self._cache: AssetCache | None = None

    @property
    def cache(self) -> AssetCache:
        if self._cache is None:
            self._cache = self.storage.open(self.cache_name)
        return self._cache

    async def install(self) -> None:
        """Pre-cache the static manifest. Nothing is stored unless every asset succeeds."""
        self.state = WorkerState.INSTALLING
        requests = [httpx.Request("GET", self.origin.join(path)) for path in self.static_assets]
        try:
            responses = await asyncio.gather(*[self._fetch_asset(r) for r in requests])
        except (httpx.HTTPError, InstallError):
            self.state = WorkerState.REDUNDANT
            raise
        for request, response in zip(requests, responses):
            self.cache.put(request, response)
        self.state = WorkerState.INSTALLED
        self.skip_waiting = True
        logger.info("Installed %s with %d static assets", self.cache_name, len(requests))

    async def _fetch_asset(self, request: httpx.Request) -> httpx.Response:
        response = await _buffered(await self.network.handle_async_request(request), request)
        if not response.is_success:
            raise InstallError(f"Failed to cache {request.url}: HTTP {response.status_code}")
        return response

    async def activate(self, clients: list["OfflineTransport"]) -> None:
        """Delete every other cache version, then take control of ``clients``."""
        self.state = WorkerState.ACTIVATING
        for name in self.storage.keys():
            if name != self.cache_name:
                self.storage.delete(name)
                logger.info("Deleted stale asset cache %s", name)
        for client in clients:
            client.claim(self)
        self.state = WorkerState.ACTIVATED

    def is_same_origin(self, url: httpx.URL) -> bool:
        return url.host == self.origin.host

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.scheme not in ("http", "https"):
            return await self.network.handle_async_request(request)
        if self.is_same_origin(request.url) and self.same_origin_strategy == CACHE_FIRST:
            return await self._cache_first(request)
        return await self._network_first(request)

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._fetch_and_cache(request)
        except httpx.TransportError:
            cached = self.cache.match(request)
            if cached is None:
                raise
            logger.debug("Network failed, serving %s from cache", request.url)
            return cached

    async def _cache_first(self, request: httpx.Request) -> httpx.Response:
        cached = self.cache.match(request)
        if cached is not None:
            return cached
        return await self._fetch_and_cache(request)

    async def _fetch_and_cache(self, request: httpx.Request) -> httpx.Response:
        response = await _buffered(await self.network.handle_async_request(request), request)
        if request.method == "GET" and response.is_success:
            try:
                self.cache.put(request, response)
            except OSError as exc:
                logger.debug("Could not cache %s: %s", request.url, exc)
        return response


class OfflineTransport(httpx.AsyncBaseTransport):
    """Routes every request through the controlling worker, if one has claimed it."""

    def __init__(self, network: httpx.AsyncBaseTransport | None = None) -> None:
        self.network = network or httpx.AsyncHTTPTransport()
        self.controller: OfflineWorker | None = None

    def claim(self, worker: OfflineWorker) -> None:
        previous = self.controller
        if previous is not None and previous is not worker:
            previous.state = WorkerState.REDUNDANT
        self.controller = worker

    async def register(self, worker: OfflineWorker) -> bool:
        """Install and immediately activate ``worker``. Failures leave requests on the plain network."""
        try:
            await worker.install()
            await worker.activate([self])
        except (InstallError, httpx.HTTPError, OSError) as exc:
            logger.warning("Offline cache registration failed: %s", exc)
            return False
        return True

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.controller is None:
            return await self.network.handle_async_request(request)
        return await self.controller.handle(request)

    async def aclose(self) -> None:
        await self.network.aclose()
