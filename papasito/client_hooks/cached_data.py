"""Fetch-through cache with stale-while-revalidate, persisted in a key-value store"""

import json
import logging
import time
from typing import Any, Awaitable, Callable, MutableMapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60  # seconds


class CachedDataLoader:
    """
    Serves `fetcher` results through `store[key]`, a JSON document
    `{"data": ..., "timestamp": <epoch ms>}`.

    Fresh entries skip the fetch. Expired entries are shown while a fresh fetch
    runs when `stale_while_revalidate` is on.
    """

    def __init__(
        self,
        fetcher: Callable[[], Awaitable[Any]],
        key: str,
        store: MutableMapping[str, str],
        ttl: float = DEFAULT_TTL,
        stale_while_revalidate: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.fetcher = fetcher
        self.key = key
        self.store = store
        self.ttl = ttl
        self.stale_while_revalidate = stale_while_revalidate
        self.clock = clock
        self.data: Any = None
        self.is_loading = True
        self.error: Optional[BaseException] = None

    async def __aenter__(self) -> "CachedDataLoader":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _read_cache(self) -> Optional[tuple]:
        raw = self.store.get(self.key)
        if not raw:
            return None
        try:
            entry = json.loads(raw)
            return entry["data"], float(entry["timestamp"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error parsing cached data for {self.key}: {e}")
            return None

    async def _fetch(self) -> Any:
        try:
            result = await self.fetcher()
            self.data = result
            self.store[self.key] = json.dumps({"data": result, "timestamp": self._now_ms()})
            return result
        except Exception as e:
            self.error = e
            raise
        finally:
            self.is_loading = False

    async def load(self) -> Any:
        """Serve from cache when fresh, otherwise fetch; fetch errors land in `error`"""
        cached = self._read_cache()
        if cached is not None:
            data, timestamp = cached
            if self._now_ms() - timestamp <= self.ttl * 1000:
                self.data = data
                self.is_loading = False
                return self.data
            if self.stale_while_revalidate:
                self.data = data

        try:
            await self._fetch()
        except Exception as e:
            logger.warning(f"Fetching {self.key} failed: {e}")
        return self.data

    async def refetch(self) -> Any:
        """Force a reload; unlike `load`, a failure is raised to the caller"""
        self.is_loading = True
        self.error = None
        return await self._fetch()
