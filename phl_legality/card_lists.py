"""Banned, allowed and singleton-exception card name lists.

Each list is a plain text file with one card name per line. Surrounding
quote characters are stripped and blank lines are ignored, so a one-column
CSV export works as-is.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import FrozenSet, Iterable, List, Union

logger = logging.getLogger(__name__)


def parse_card_list(text: str) -> List[str]:
    """Split list-file text into card names."""
    names = []
    for line in text.splitlines():
        name = line.replace('"', "").strip()
        if name:
            names.append(name)
    return names


class CardLists:
    """Process-wide rule lists, loaded once from `data_dir`.

    The sets are replaced wholesale on every change, so readers holding an
    older frozenset never see a half-applied update.
    """

    def __init__(
        self,
        data_dir: Union[str, Path] = "./data",
        banned_file: str = "banned_list.csv",
        allowed_file: str = "allowed_list.csv",
        singleton_file: str = "singleton_exceptions.csv",
    ) -> None:
        self._data_dir = Path(data_dir)
        self._banned_path = self._data_dir / banned_file
        self._allowed_path = self._data_dir / allowed_file
        self._singleton_path = self._data_dir / singleton_file
        self._lock = threading.Lock()
        self._banned: FrozenSet[str] = frozenset()
        self._allowed: FrozenSet[str] = frozenset()
        self._singleton_exceptions: FrozenSet[str] = frozenset()
        self._initialized = False

    @property
    def banned(self) -> FrozenSet[str]:
        return self._banned

    @property
    def allowed(self) -> FrozenSet[str]:
        return self._allowed

    @property
    def singleton_exceptions(self) -> FrozenSet[str]:
        return self._singleton_exceptions

    @property
    def initialized(self) -> bool:
        return self._initialized

    def load(self) -> None:
        """Read the three list files; later calls are no-ops."""
        with self._lock:
            if self._initialized:
                return
            try:
                banned = parse_card_list(self._banned_path.read_text(encoding="utf-8"))
                allowed = parse_card_list(self._allowed_path.read_text(encoding="utf-8"))
                singletons = parse_card_list(self._singleton_path.read_text(encoding="utf-8"))
            except OSError as exc:
                logger.error("Failed to load card lists from %s: %s", self._data_dir, exc)
                self._clear()
                raise

            # Catalog bans may have been merged before the files were read
            self._banned = frozenset(banned) | self._banned
            self._allowed = frozenset(allowed)
            self._singleton_exceptions = frozenset(singletons)
            self._initialized = True
            logger.info(
                "Card lists loaded: %d banned, %d allowed, %d singleton exceptions",
                len(self._banned), len(self._allowed), len(self._singleton_exceptions),
            )

    def add_banned(self, names: Iterable[str]) -> int:
        """Merge `names` into the banned set. Returns how many were new."""
        with self._lock:
            new = frozenset(names) - self._banned
            if new:
                self._banned = self._banned | new
            return len(new)

    def is_banned(self, name: str) -> bool:
        return name in self._banned

    def is_allowed(self, name: str) -> bool:
        return name in self._allowed

    def is_singleton_exception(self, name: str) -> bool:
        return name in self._singleton_exceptions

    def reset(self) -> None:
        """Back to the empty, uninitialized state (for tests)."""
        with self._lock:
            self._clear()

    def _clear(self) -> None:
        self._banned = frozenset()
        self._allowed = frozenset()
        self._singleton_exceptions = frozenset()
        self._initialized = False
