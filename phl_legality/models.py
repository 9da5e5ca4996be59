"""Data models for catalog cards, decklists and validation results.

Catalog cards stay close to the Scryfall JSON they come from: a CardRecord
wraps the trimmed dict that is written to the cache file, and exposes the
handful of attributes the legality engine reads.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from phl_legality.errors import DecklistFormatError

# Layouts where either face name may be used to reference the card
MULTI_FACE_LAYOUTS = frozenset({
    "transform", "modal_dfc", "meld", "split", "flip", "adventure",
})

TOKEN_LAYOUTS = frozenset({"token", "double_faced_token"})

COLOR_SYMBOLS = ("W", "U", "B", "R", "G")


@dataclass(frozen=True)
class CardRecord:
    """One catalog card after filtering and trimming."""

    data: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.data.get("name", "")

    @property
    def oracle_id(self) -> Optional[str]:
        return self.data.get("oracle_id")

    @property
    def legalities(self) -> Dict[str, str]:
        return self.data.get("legalities") or {}

    @property
    def games(self) -> List[str]:
        return self.data.get("games") or []

    @property
    def layout(self) -> str:
        return (self.data.get("layout") or "").lower()

    @property
    def type_line(self) -> str:
        return self.data.get("type_line") or ""

    @property
    def set_type(self) -> str:
        return self.data.get("set_type") or ""

    @property
    def color_identity(self) -> List[str]:
        # Anything outside WUBRG is ignored
        return [c for c in self.data.get("color_identity") or [] if c in COLOR_SYMBOLS]

    @property
    def card_faces(self) -> Optional[List[Dict[str, Any]]]:
        faces = self.data.get("card_faces")
        return faces if isinstance(faces, list) else None

    @property
    def image_uris(self) -> Optional[Dict[str, str]]:
        return self.data.get("image_uris")

    @property
    def scryfall_uri(self) -> Optional[str]:
        return self.data.get("scryfall_uri")

    @property
    def game_changer(self) -> bool:
        return bool(self.data.get("game_changer", False))

    @property
    def is_multi_face(self) -> bool:
        """True when the record has faces and a recognized multi-face layout."""
        return self.card_faces is not None and self.layout in MULTI_FACE_LAYOUTS

    @property
    def face_names(self) -> List[str]:
        return [f.get("name", "") for f in self.card_faces or [] if f.get("name")]

    @property
    def is_token(self) -> bool:
        if self.layout in TOKEN_LAYOUTS:
            return True
        if "token" in self.type_line.lower():
            return True
        return "token" in self.set_type.lower()

    def legality(self, fmt: str) -> Optional[str]:
        return self.legalities.get(fmt)

    def with_legality(self, fmt: str, status: str) -> "CardRecord":
        """Return a copy whose legality for `fmt` is replaced by `status`."""
        data = copy.deepcopy(self.data)
        legalities = dict(data.get("legalities") or {})
        legalities[fmt] = status
        data["legalities"] = legalities
        return CardRecord(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.data


@dataclass
class DeckCardEntry:
    """A card name and how many copies of it a decklist asks for."""

    quantity: int
    name: str

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise DecklistFormatError(f"Card quantity must be an integer: {self.quantity!r}")
        if self.quantity < 1:
            raise DecklistFormatError(
                f"Card quantity must be at least 1: {self.quantity} {self.name}"
            )
        if not self.name or not self.name.strip():
            raise DecklistFormatError("Card name must be a non-empty string")


@dataclass
class Decklist:
    """A commander plus the main-deck entries."""

    main_deck: List[DeckCardEntry]
    commander: DeckCardEntry

    @property
    def total_quantity(self) -> int:
        return self.commander.quantity + sum(e.quantity for e in self.main_deck)


@dataclass
class CatalogStats:
    """Coarse counts logged after each ingestion."""

    total_cards: int = 0
    format_legal: int = 0
    banned: int = 0
    allowed: int = 0


ISSUE_KEYS = ("size", "commander", "commander_type", "color_identity", "singleton", "illegal_cards")

# JSON keys used by the legality query contract
_ISSUE_JSON_KEYS = {
    "size": "size",
    "commander": "commander",
    "commander_type": "commanderType",
    "color_identity": "colorIdentity",
    "singleton": "singleton",
    "illegal_cards": "illegalCards",
}


def _empty_issues() -> Dict[str, Optional[str]]:
    return {key: None for key in ISSUE_KEYS}


@dataclass
class ValidationResult:
    """Outcome of evaluating a decklist against the format rules."""

    legal: bool
    commander_name: str
    color_identity: List[str] = field(default_factory=list)
    deck_size: int = 0
    required_size: int = 100
    illegal_cards: List[str] = field(default_factory=list)
    color_identity_violations: List[str] = field(default_factory=list)
    non_singleton_cards: List[str] = field(default_factory=list)
    commander_is_creature: bool = False
    commander_is_legendary: bool = False
    commander_image_uris: Optional[Dict[str, str]] = None
    legal_issues: Dict[str, Optional[str]] = field(default_factory=_empty_issues)

    def to_dict(self) -> Dict[str, Any]:
        """Render the JSON shape consumed by the HTTP layer."""
        out: Dict[str, Any] = {
            "legal": self.legal,
            "commander": self.commander_name,
            "colorIdentity": list(self.color_identity),
            "deckSize": self.deck_size,
            "requiredSize": self.required_size,
            "illegalCards": list(self.illegal_cards),
            "colorIdentityViolations": list(self.color_identity_violations),
            "nonSingletonCards": list(self.non_singleton_cards),
            "legalIssues": {
                _ISSUE_JSON_KEYS[key]: self.legal_issues.get(key) for key in ISSUE_KEYS
            },
        }
        if self.commander_image_uris:
            out["commanderImageUris"] = self.commander_image_uris
        return out
