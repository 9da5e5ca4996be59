"""Streaming parser for the Scryfall bulk card array.

The oracle-cards file is a single JSON array of roughly 30k large objects.
Rather than decoding the whole document, the parser tracks brace depth,
string mode and pending escapes across text chunks, cuts out one top-level
object at a time, and keeps only the cards (and fields) the legality
checker needs.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, AsyncIterable, Dict, List, Optional

from phl_legality.models import MULTI_FACE_LAYOUTS

logger = logging.getLogger(__name__)

# Fields kept from each card; everything else is dropped to bound cache size
NECESSARY_FIELDS = (
    "name",
    "image_uris",
    "oracle_id",
    "legalities",
    "games",
    "layout",
    "type_line",
    "set_type",
    "card_faces",
    "color_identity",
    "game_changer",
    "scryfall_uri",
)

# Layouts that don't represent playable cards
EXCLUDED_LAYOUTS = frozenset({
    "token",
    "double_faced_token",
    "emblem",
    "art_series",
    "reversible_card",
    "planar",
    "scheme",
    "vanguard",
})

# "plane " keeps its trailing space so planeswalkers survive
EXCLUDED_TYPES = ("conspiracy", "phenomenon", "plane ", "scheme", "vanguard")

PROGRESS_EVERY = 10_000

# Characters that change parser state
_OUTSIDE_STRING = re.compile(r'[{}"]')
_INSIDE_STRING = re.compile(r'["\\]')


def is_valid_multi_face_layout(layout: Optional[str]) -> bool:
    return (layout or "").lower() in MULTI_FACE_LAYOUTS


def is_card_eligible(card: Dict[str, Any]) -> bool:
    """Return False for non-paper cards, tokens, emblems and other oddities."""
    if "paper" not in (card.get("games") or []):
        return False

    layout = (card.get("layout") or "").lower()
    type_line = (card.get("type_line") or "").lower()
    set_type = (card.get("set_type") or "").lower()
    name = (card.get("name") or "").lower()

    if isinstance(card.get("card_faces"), list) and not is_valid_multi_face_layout(layout):
        return False

    if layout in EXCLUDED_LAYOUTS:
        return False

    if "memorabilia" in set_type or "token" in set_type:
        return False

    if "emblem" in name or "emblem" in type_line:
        return False

    return not any(t in type_line for t in EXCLUDED_TYPES)


def trim_card(card: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a card to exactly NECESSARY_FIELDS; absent fields become None."""
    return {f: card.get(f) for f in NECESSARY_FIELDS}


class StreamingCardParser:
    """Incremental JSON-array splitter with the card filter applied.

    Feed it text chunks in order; each call returns the accepted, trimmed
    card dicts whose closing brace appeared in that chunk.
    """

    def __init__(self, progress_every: int = PROGRESS_EVERY) -> None:
        self.brace_depth = 0
        self.in_string = False
        self.escape_next = False
        self._parts: List[str] = []
        self._progress_every = progress_every
        self.examined = 0
        self.accepted = 0
        self.malformed = 0

    def feed(self, chunk: str) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        pos = 0
        end = len(chunk)

        while pos < end:
            if self.escape_next:
                if self.brace_depth > 0:
                    self._parts.append(chunk[pos])
                self.escape_next = False
                pos += 1
                continue

            if self.in_string:
                m = _INSIDE_STRING.search(chunk, pos)
                stop = end if m is None else m.end()
                if self.brace_depth > 0:
                    self._parts.append(chunk[pos:stop])
                if m is not None:
                    if m.group() == '"':
                        self.in_string = False
                    else:
                        self.escape_next = True
                pos = stop
                continue

            m = _OUTSIDE_STRING.search(chunk, pos)
            if m is None:
                if self.brace_depth > 0:
                    self._parts.append(chunk[pos:])
                break

            # Text between objects (brackets, commas, whitespace) is dropped
            if self.brace_depth > 0:
                self._parts.append(chunk[pos:m.start()])
            pos = m.end()
            ch = m.group()

            if ch == '"':
                self.in_string = True
                if self.brace_depth > 0:
                    self._parts.append(ch)
            elif ch == "{":
                self.brace_depth += 1
                self._parts.append(ch)
            elif self.brace_depth > 0:
                self._parts.append(ch)
                self.brace_depth -= 1
                if self.brace_depth == 0:
                    card = self._complete_object()
                    if card is not None:
                        out.append(card)

        return out

    def _complete_object(self) -> Optional[Dict[str, Any]]:
        text = "".join(self._parts)
        self._parts = []
        try:
            card = json.loads(text)
        except json.JSONDecodeError as exc:
            self.malformed += 1
            logger.warning("Failed to parse card object: %s", exc)
            return None

        self.examined += 1
        if self.examined % self._progress_every == 0:
            logger.info("Processed %d cards...", self.examined)

        if not isinstance(card, dict) or not is_card_eligible(card):
            return None
        self.accepted += 1
        return trim_card(card)

    def finish(self) -> None:
        """Log the totals and warn about a truncated trailing object."""
        if self.brace_depth or self._parts:
            logger.warning(
                "Stream ended inside an object (depth %d), discarding %d chars",
                self.brace_depth, sum(len(p) for p in self._parts),
            )
            self._parts = []
            self.brace_depth = 0
            self.in_string = False
            self.escape_next = False
        logger.info(
            "Processed %d cards, kept %d eligible (%d malformed)",
            self.examined, self.accepted, self.malformed,
        )

    async def parse_stream(self, chunks: AsyncIterable[str]) -> List[Dict[str, Any]]:
        """Consume an async iterator of text chunks and return accepted cards."""
        cards: List[Dict[str, Any]] = []
        async for chunk in chunks:
            cards.extend(self.feed(chunk))
        self.finish()
        return cards
