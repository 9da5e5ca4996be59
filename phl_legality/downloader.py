"""Scryfall bulk catalog download: fetch, filter, cache, reload.

Uses the oracle-cards bulk file (one entry per card, ~150 MB). The body is
streamed through StreamingCardParser so only the trimmed, eligible cards
are ever held in memory.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from phl_legality.card_lists import CardLists
from phl_legality.errors import CatalogUnavailable
from phl_legality.fetcher import RateLimitedFetcher, SleepFunc
from phl_legality.models import CardRecord, CatalogStats
from phl_legality.parser import StreamingCardParser
from phl_legality.store import CatalogStore

logger = logging.getLogger(__name__)

BULK_METADATA_URL = "https://api.scryfall.com/bulk-data/oracle-cards"


def compute_stats(
    cards: Iterable[Dict[str, Any]], card_lists: CardLists, fmt: str = "pioneer"
) -> CatalogStats:
    stats = CatalogStats()
    for card in cards:
        record = CardRecord(card)
        stats.total_cards += 1
        if record.legality(fmt) == "legal":
            stats.format_legal += 1
        if card_lists.is_banned(record.name):
            stats.banned += 1
        if card_lists.is_allowed(record.name):
            stats.allowed += 1
    return stats


class BulkCatalogDownloader:
    """Downloads the catalog into a CatalogStore, retrying the whole run."""

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        store: CatalogStore,
        card_lists: CardLists,
        metadata_url: str = BULK_METADATA_URL,
        fmt: str = "pioneer",
        metadata_timeout_s: float = 30.0,
        fetch_attempts: int = 3,
        backoff_step_s: float = 5.0,
        retries: int = 3,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._card_lists = card_lists
        self._metadata_url = metadata_url
        self._format = fmt
        self._metadata_timeout = metadata_timeout_s
        self._fetch_attempts = fetch_attempts
        self._backoff_step = backoff_step_s
        self._retries = retries
        self._sleep = sleep
        self.last_stats: Optional[CatalogStats] = None

    async def download(self, retries_remaining: Optional[int] = None) -> None:
        """Run fetch -> parse -> stats -> persist -> reload, retrying on failure.

        Waits (4 - retries_remaining) x 5s before each retry; raises
        CatalogUnavailable once no retries remain.
        """
        if retries_remaining is None:
            retries_remaining = self._retries
        while True:
            try:
                await self._download_once()
                return
            except Exception as exc:
                logger.error("Error fetching bulk card data: %s", exc)
                if retries_remaining <= 0:
                    raise CatalogUnavailable(
                        f"Failed to download card data after all retry attempts: {exc}"
                    ) from exc
                delay = max(4 - retries_remaining, 1) * self._backoff_step
                retries_remaining -= 1
                logger.info(
                    "Retrying download in %.0fs (%d attempts remaining)",
                    delay, retries_remaining,
                )
                await self._sleep(delay)

    async def _download_once(self) -> None:
        logger.info("Fetching bulk data information from %s", self._metadata_url)
        download_uri = await asyncio.wait_for(
            self._fetch_download_uri(), timeout=self._metadata_timeout
        )

        logger.info("Streaming bulk card data from %s", download_uri)
        cards = await self._stream_cards(download_uri)
        logger.info("Successfully processed %d cards", len(cards))

        stats = compute_stats(cards, self._card_lists, self._format)
        self.last_stats = stats
        _log_stats(stats, self._format)

        await asyncio.to_thread(self._store.persist, cards)
        await asyncio.to_thread(self._store.reload)
        logger.info("Card data refreshed: %d cards in memory", len(self._store))

    async def _fetch_download_uri(self) -> str:
        response = await self._fetcher.fetch_with_retry(
            self._metadata_url, max_attempts=self._fetch_attempts
        )
        response.raise_for_status()
        download_uri = response.json().get("download_uri")
        if not download_uri:
            raise ValueError("No download URI found in Scryfall bulk data response")
        return download_uri

    async def _stream_cards(self, url: str) -> List[Dict[str, Any]]:
        response = await self._fetcher.fetch_with_retry(
            url, stream=True, max_attempts=self._fetch_attempts
        )
        try:
            response.raise_for_status()
            parser = StreamingCardParser()
            return await parser.parse_stream(response.aiter_text())
        finally:
            await response.aclose()


def _log_stats(stats: CatalogStats, fmt: str) -> None:
    logger.info(
        "Statistics: %d cards kept, %d %s legal, %d banned, %d allowed list additions",
        stats.total_cards, stats.format_legal, fmt, stats.banned, stats.allowed,
    )
