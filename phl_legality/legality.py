"""Deck legality rules for Pioneer Highlander.

A deck is legal when it has exactly 100 cards including a legendary
creature commander, every card is Pioneer-legal (or on the allowed list)
and not banned, no card falls outside the commander's color identity, and
no non-basic card appears more than once unless it is a singleton
exception.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from phl_legality.card_lists import CardLists
from phl_legality.models import CardRecord, Decklist, ValidationResult
from phl_legality.store import CatalogStore

logger = logging.getLogger(__name__)

BASIC_LANDS = frozenset({"Plains", "Island", "Swamp", "Mountain", "Forest", "Wastes"})

LEGAL = "legal"
NOT_LEGAL = "not_legal"


class LegalityEngine:
    """Resolves decklist entries against the catalog and the rule lists."""

    def __init__(
        self,
        store: CatalogStore,
        card_lists: CardLists,
        fmt: str = "pioneer",
        required_size: int = 100,
    ) -> None:
        self._store = store
        self._card_lists = card_lists
        self._format = fmt
        self._required_size = required_size

    @property
    def format_label(self) -> str:
        return self._format.capitalize()

    def is_card_legal(self, name: str, record: Optional[CardRecord]) -> bool:
        """Allowed list first; otherwise format-legal and not banned."""
        if record is None:
            return False
        names = {name, record.name}
        if any(self._card_lists.is_allowed(n) for n in names):
            return True
        if record.legality(self._format) != LEGAL:
            return False
        return not any(self._card_lists.is_banned(n) for n in names)

    def card_with_legality(self, name: str) -> Optional[CardRecord]:
        """Look up a card and recompute its format legality from the lists."""
        record = self._store.resolve(name)
        if record is None:
            return None
        status = LEGAL if self.is_card_legal(name, record) else NOT_LEGAL
        return record.with_legality(self._format, status)

    def check_cards(self, decklist: Decklist) -> Tuple[List[CardRecord], List[str]]:
        """Split the deck into legal copies and illegal names, commander first."""
        legal_cards: List[CardRecord] = []
        illegal_cards: List[str] = []

        for entry in [decklist.commander, *decklist.main_deck]:
            record = self.card_with_legality(entry.name)
            if record is None or record.legality(self._format) != LEGAL:
                illegal_cards.append(entry.name)
                continue
            legal_cards.extend([record] * entry.quantity)

        return legal_cards, illegal_cards

    def resolve_legality(self, decklist: Decklist) -> ValidationResult:
        commander_name = decklist.commander.name
        commander = self.card_with_legality(commander_name)
        _, illegal_cards = self.check_cards(decklist)

        result = ValidationResult(
            legal=False,
            commander_name=commander_name,
            deck_size=decklist.total_quantity,
            required_size=self._required_size,
            illegal_cards=illegal_cards,
        )
        issues = result.legal_issues

        commander_legal = False
        if commander is None:
            issues["commander"] = "Commander not found in database"
        else:
            type_line = commander.type_line.lower()
            result.commander_is_creature = "creature" in type_line
            result.commander_is_legendary = "legendary" in type_line
            result.commander_image_uris = commander.image_uris
            result.color_identity = list(commander.color_identity)
            issues["commander_type"] = _commander_type_issue(
                result.commander_is_creature, result.commander_is_legendary
            )
            commander_legal = commander.legality(self._format) == LEGAL
            if not commander_legal:
                issues["commander"] = f"Commander not legal in {self.format_label}"

        result.non_singleton_cards = self._singleton_violations(decklist)
        if commander is not None:
            result.color_identity_violations = self._color_identity_violations(
                decklist, set(commander.color_identity)
            )

        size_ok = result.deck_size == self._required_size
        if not size_ok:
            issues["size"] = (
                f"Deck size incorrect: has {result.deck_size} cards, "
                f"needs {self._required_size}"
            )
        if result.color_identity_violations:
            issues["color_identity"] = "Cards outside commander's color identity"
        if result.non_singleton_cards:
            issues["singleton"] = (
                "Deck contains multiple copies of non-basic land cards that "
                "aren't allowed to break the singleton rule"
            )
        if illegal_cards:
            issues["illegal_cards"] = "Deck contains cards that aren't legal in the format"

        result.legal = (
            size_ok
            and commander_legal
            and result.commander_is_creature
            and result.commander_is_legendary
            and not result.color_identity_violations
            and not result.non_singleton_cards
            and not illegal_cards
        )
        logger.info(
            "Deck legality for %s: legal=%s, size=%d, illegal=%d",
            commander_name, result.legal, result.deck_size, len(illegal_cards),
        )
        return result

    def is_singleton_exempt(self, name: str) -> bool:
        return name in BASIC_LANDS or self._card_lists.is_singleton_exception(name)

    def _singleton_violations(self, decklist: Decklist) -> List[str]:
        counts: Dict[str, int] = {}
        flagged: List[str] = []
        for entry in decklist.main_deck:
            if self.is_singleton_exempt(entry.name):
                continue
            counts[entry.name] = counts.get(entry.name, 0) + entry.quantity
            if counts[entry.name] > 1 and entry.name not in flagged:
                flagged.append(entry.name)
        return flagged

    def _color_identity_violations(self, decklist: Decklist, allowed_colors: set) -> List[str]:
        resolved: Dict[str, Optional[CardRecord]] = {}
        flagged: List[str] = []
        for entry in decklist.main_deck:
            if entry.name not in resolved:
                resolved[entry.name] = self._store.resolve(entry.name)
            record = resolved[entry.name]
            if record is None or entry.name in flagged:
                continue
            if not set(record.color_identity) <= allowed_colors:
                flagged.append(entry.name)
        return flagged


def _commander_type_issue(is_creature: bool, is_legendary: bool) -> Optional[str]:
    if not is_creature and not is_legendary:
        return "Commander must be a legendary creature"
    if not is_creature:
        return "Commander must be a creature"
    if not is_legendary:
        return "Commander must be legendary"
    return None
