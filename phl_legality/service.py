"""Service object wiring the catalog, rule lists and legality engine.

Build one LegalityService at process start and pass it to whatever serves
requests. The first caller of `start()` loads the rule lists and the card
catalog; everyone else waits on the same lock and readiness event.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from phl_legality.card_lists import CardLists
from phl_legality.config import AppConfig
from phl_legality.downloader import BulkCatalogDownloader
from phl_legality.fetcher import RateLimitedFetcher, SleepFunc
from phl_legality.legality import LegalityEngine
from phl_legality.models import MULTI_FACE_LAYOUTS, CardRecord, Decklist, ValidationResult
from phl_legality.store import CatalogStore

logger = logging.getLogger(__name__)


class LegalityService:
    """One-stop entry point: load once, then validate decks and look up cards."""

    def __init__(self, config: AppConfig, sleep: SleepFunc = asyncio.sleep) -> None:
        self._config = config
        cat = config.catalog
        lists = config.lists

        self.card_lists = CardLists(
            lists.data_dir,
            banned_file=lists.banned_file,
            allowed_file=lists.allowed_file,
            singleton_file=lists.singleton_file,
        )
        self.fetcher = RateLimitedFetcher(
            rate_limit_ms=cat.rate_limit_ms,
            user_agent=cat.user_agent,
            request_timeout_s=cat.request_timeout_s,
            default_retry_after_s=cat.default_retry_after_s,
            backoff_step_s=cat.backoff_step_s,
            sleep=sleep,
        )
        self.store = CatalogStore(
            cat.cache_file, self.card_lists, fmt=cat.format, build_mode=config.build_mode
        )
        self.downloader = BulkCatalogDownloader(
            self.fetcher,
            self.store,
            self.card_lists,
            metadata_url=cat.metadata_url,
            fmt=cat.format,
            metadata_timeout_s=cat.metadata_timeout_s,
            fetch_attempts=cat.fetch_attempts,
            backoff_step_s=cat.backoff_step_s,
            retries=cat.download_retries,
            sleep=sleep,
        )
        self.store.attach_downloader(self.downloader)
        self.engine = LegalityEngine(
            self.store,
            self.card_lists,
            fmt=cat.format,
            required_size=config.deck.required_size,
        )
        self._init_lock = asyncio.Lock()
        # Set once start() finishes, whether it loaded or failed
        self._done = asyncio.Event()
        self._error: Optional[BaseException] = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def ready(self) -> bool:
        return self._done.is_set() and self._error is None

    async def start(self) -> None:
        """Load rule lists and the catalog exactly once.

        A failed start is reported to everyone in `wait_until_ready()`; the
        next call to `start()` tries again.
        """
        if self.ready:
            return
        async with self._init_lock:
            if self.ready:
                return
            self._error = None
            self._done.clear()
            try:
                self.card_lists.load()
                await self.store.load()
            except Exception as exc:
                logger.error("Legality service failed to start: %s", exc)
                self._error = exc
                self._done.set()
                raise
            self._done.set()
            logger.info("Legality service ready with %d cards", len(self.store))

    async def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        """Block until `start()` has completed somewhere.

        Re-raises the exception of a start attempt that failed.
        """
        await asyncio.wait_for(self._wait_done(), timeout=timeout)

    async def _wait_done(self) -> None:
        while True:
            await self._done.wait()
            if self._error is not None:
                raise self._error
            if self._done.is_set():
                return

    async def refresh(self) -> None:
        """Force a fresh catalog download (the rule lists are kept)."""
        async with self._init_lock:
            if not self.card_lists.initialized:
                self.card_lists.load()
            await self.downloader.download()
            self._error = None
            self._done.set()

    async def check_legality(self, decklist: Decklist) -> ValidationResult:
        await self.start()
        return self.engine.resolve_legality(decklist)

    async def lookup_card(self, name: str) -> Optional[CardRecord]:
        await self.start()
        return self.engine.card_with_legality(name)

    async def random_cards(self, count: int = 6) -> List[Dict[str, Any]]:
        """A random sample of format-legal, single-faced cards."""
        await self.start()
        fmt = self._config.catalog.format
        pool = [
            r for r in self.store.records
            if r.legality(fmt) == "legal" and r.layout not in MULTI_FACE_LAYOUTS
        ]
        picked = random.sample(pool, min(count, len(pool)))
        return [
            {
                "name": r.name,
                "oracle_id": r.oracle_id,
                "image_uris": r.image_uris,
                "uri": r.scryfall_uri,
            }
            for r in picked
        ]

    def reset(self) -> None:
        """Drop loaded state so the next `start()` reloads everything."""
        self.card_lists.reset()
        self.store.reset()
        self._error = None
        self._done.clear()

    async def close(self) -> None:
        await self.fetcher.close()

