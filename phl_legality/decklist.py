"""Decklist input: plain-text lists and JSON request payloads."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from phl_legality.config import DeckRulesConfig
from phl_legality.errors import DecklistFormatError
from phl_legality.models import DeckCardEntry, Decklist


def _parse_line(line: str, what: str) -> DeckCardEntry:
    quantity_str, _, name = line.strip().partition(" ")
    try:
        quantity = int(quantity_str)
    except ValueError:
        raise DecklistFormatError(f"Invalid {what} quantity: {quantity_str}") from None
    if quantity < 1:
        raise DecklistFormatError(f"Invalid {what} quantity: {quantity_str}")
    name = name.strip()
    if not name:
        raise DecklistFormatError(f"Missing card name in line: {line.strip()}")
    return DeckCardEntry(quantity=quantity, name=name)


def parse_decklist_text(text: str) -> Decklist:
    """Parse "<qty> <name>" lines, a blank line, then the commander line.

    >>> deck = parse_decklist_text("1 Opt\\n1 Island\\n\\n1 Niv-Mizzet, Parun")
    >>> deck.commander.name
    'Niv-Mizzet, Parun'
    """
    # Trailing newlines never count as the separator line
    lines = text.replace("\r\n", "\n").rstrip().split("\n")
    separator = next((i for i, line in enumerate(lines) if not line.strip()), None)
    if separator is None:
        raise DecklistFormatError("Invalid deck list format: No separator line found")

    commander_line = lines[separator + 1].strip() if separator + 1 < len(lines) else ""
    if not commander_line:
        raise DecklistFormatError("Invalid deck list format: No commander found")

    commander = _parse_line(commander_line, "commander")
    main_deck = [_parse_line(line, "card") for line in lines[:separator]]
    return Decklist(main_deck=main_deck, commander=commander)


def _entry_from_payload(raw: Any, rules: DeckRulesConfig) -> DeckCardEntry:
    if not isinstance(raw, Mapping):
        raise DecklistFormatError("Invalid card format")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise DecklistFormatError("Card name must be a non-empty string")
    if len(name) > rules.max_card_name_length:
        raise DecklistFormatError("Card name exceeds maximum length")

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise DecklistFormatError("Card quantity must be an integer")
    if not 1 <= quantity <= rules.max_card_quantity:
        raise DecklistFormatError(
            f"Card quantity must be between 1 and {rules.max_card_quantity}"
        )
    return DeckCardEntry(quantity=quantity, name=name.strip())


def decklist_from_payload(
    payload: Any, rules: Optional[DeckRulesConfig] = None
) -> Decklist:
    """Validate a ``{"mainDeck": [...], "commander": {...}}`` request body."""
    rules = rules or DeckRulesConfig()
    if not isinstance(payload, Mapping):
        raise DecklistFormatError("Invalid request format")

    main_raw = payload.get("mainDeck")
    if not isinstance(main_raw, list):
        raise DecklistFormatError("mainDeck must be an array")
    if len(main_raw) > rules.max_main_deck_entries:
        raise DecklistFormatError("mainDeck exceeds maximum allowed cards")

    try:
        commander = _entry_from_payload(payload.get("commander"), rules)
    except DecklistFormatError as exc:
        raise DecklistFormatError(f"Invalid commander: {exc}") from None

    main_deck: List[DeckCardEntry] = []
    for raw in main_raw:
        try:
            main_deck.append(_entry_from_payload(raw, rules))
        except DecklistFormatError as exc:
            label = raw.get("name") if isinstance(raw, Mapping) else raw
            raise DecklistFormatError(f"Invalid card in mainDeck: {exc} ({label})") from None

    return Decklist(main_deck=main_deck, commander=commander)
