"""Catalog store: the in-memory card list backed by a JSON cache file."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Union

from phl_legality.card_lists import CardLists
from phl_legality.errors import CatalogUnavailable
from phl_legality.models import CardRecord

if TYPE_CHECKING:
    from phl_legality.downloader import BulkCatalogDownloader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    """Records plus lookup indices; replaced as a whole on reload."""

    records: Tuple[CardRecord, ...] = ()
    by_name: Dict[str, List[CardRecord]] = field(default_factory=dict)
    by_face: Dict[str, CardRecord] = field(default_factory=dict)

    @classmethod
    def build(cls, records: Iterable[CardRecord]) -> "_Snapshot":
        records = tuple(records)
        by_name: Dict[str, List[CardRecord]] = {}
        by_face: Dict[str, CardRecord] = {}
        for record in records:
            by_name.setdefault(record.name, []).append(record)
            if record.is_multi_face:
                for face in record.face_names:
                    # First record carrying a face name wins
                    by_face.setdefault(face, record)
        return cls(records=records, by_name=by_name, by_face=by_face)


class CatalogStore:
    """Owns the card cache file and the name / face-name indices over it."""

    def __init__(
        self,
        cache_file: Union[str, Path],
        card_lists: CardLists,
        fmt: str = "pioneer",
        build_mode: bool = False,
    ) -> None:
        self._path = Path(cache_file)
        self._card_lists = card_lists
        self._format = fmt
        self._build_mode = build_mode
        self._downloader: Optional["BulkCatalogDownloader"] = None
        self._snapshot = _Snapshot()
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def records(self) -> Tuple[CardRecord, ...]:
        return self._snapshot.records

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._snapshot.records)

    def attach_downloader(self, downloader: "BulkCatalogDownloader") -> None:
        """Set the downloader used to repair a missing or corrupt cache."""
        self._downloader = downloader

    async def load(self) -> None:
        """Load the cache, downloading a fresh catalog if it is missing or corrupt."""
        try:
            # Read and parsed on a worker thread
            await asyncio.to_thread(self.reload)
            return
        except (FileNotFoundError, ValueError) as exc:
            if self._build_mode:
                raise CatalogUnavailable(
                    f"Card data is required for build but {self._path} is missing "
                    "or invalid. Run the download command first."
                ) from exc
            if self._downloader is None:
                raise CatalogUnavailable(
                    f"Card cache {self._path} unusable and no downloader attached"
                ) from exc
            logger.warning("Card cache missing or invalid (%s), downloading fresh data", exc)

        await self._downloader.download()

    def reload(self) -> int:
        """Read the cache file into memory. Returns the number of records.

        Raises FileNotFoundError if the cache is absent and ValueError if it
        is not a JSON array; other OSErrors propagate unchanged.
        """
        logger.info("Loading cards from cache %s", self._path)
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError(f"Card cache {self._path} is not a JSON array")

        records = [CardRecord(card) for card in raw if isinstance(card, dict)]

        banned = sorted({r.name for r in records if r.legality(self._format) == "banned"})
        if banned:
            added = self._card_lists.add_banned(banned)
            logger.info(
                "Found %d %s-banned cards in catalog (%d new to the banned list)",
                len(banned), self._format, added,
            )

        self._snapshot = _Snapshot.build(records)
        self._loaded = True
        logger.info("Loaded %d cards from cache", len(records))
        return len(records)

    def persist(self, records: Iterable[Union[CardRecord, Dict[str, Any]]]) -> None:
        """Atomically replace the cache file with `records`."""
        payload = [r.to_dict() if isinstance(r, CardRecord) else r for r in records]
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=".cards-", suffix=".json.tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Cached %d cards to %s", len(payload), self._path)

    def find_by_name(self, name: str) -> Optional[CardRecord]:
        """Exact name match, preferring non-token printings.

        When every record with that name is a token, there is no match.
        """
        for record in self._snapshot.by_name.get(name, ()):
            if not record.is_token:
                return record
        return None

    def find_face(self, face_name: str) -> Optional[CardRecord]:
        """Find a multi-face card by the name of one of its faces."""
        return self._snapshot.by_face.get(face_name)

    def resolve(self, name: str) -> Optional[CardRecord]:
        """Name lookup, falling back to face names when no card has that name."""
        if name in self._snapshot.by_name:
            return self.find_by_name(name)
        return self.find_face(name)

    def reset(self) -> None:
        self._snapshot = _Snapshot()
        self._loaded = False
