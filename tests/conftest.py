"""Shared fixtures: Scryfall-shaped card dicts, rule lists and a loaded store."""

import pytest

from phl_legality.card_lists import CardLists
from phl_legality.store import CatalogStore


def make_card(
    name,
    type_line="Creature — Human",
    color_identity=(),
    pioneer="legal",
    layout="normal",
    games=("paper", "mtgo", "arena"),
    set_type="expansion",
    **extra,
):
    """A Scryfall oracle card with every kept field plus some that get dropped."""
    slug = name.lower().replace(" ", "-").replace(",", "").replace("'", "")
    card = {
        "object": "card",
        "id": f"id-{slug}",
        "oracle_id": f"oracle-{slug}",
        "name": name,
        "lang": "en",
        "layout": layout,
        "games": list(games),
        "type_line": type_line,
        "set_type": set_type,
        "color_identity": list(color_identity),
        "colors": list(color_identity),
        "legalities": {"standard": "not_legal", "pioneer": pioneer, "modern": "legal"},
        "image_uris": {"normal": f"https://cards.scryfall.io/normal/{slug}.jpg"},
        "game_changer": False,
        "scryfall_uri": f"https://scryfall.com/card/{slug}",
        "prices": {"usd": "0.25"},
        "oracle_text": "",
        "rarity": "common",
    }
    card.update(extra)
    return card


def make_dfc(front, back, layout="transform", color_identity=("U",), pioneer="legal"):
    card = make_card(
        f"{front} // {back}",
        type_line="Creature — Human Wizard // Creature — Human Insect",
        color_identity=color_identity,
        pioneer=pioneer,
        layout=layout,
    )
    card.pop("image_uris")
    card["card_faces"] = [
        {"name": front, "type_line": "Creature — Human Wizard",
         "image_uris": {"normal": "https://cards.scryfall.io/normal/front.jpg"}},
        {"name": back, "type_line": "Creature — Human Insect",
         "image_uris": {"normal": "https://cards.scryfall.io/normal/back.jpg"}},
    ]
    return card


CATALOG = [
    make_card("Niv-Mizzet, Parun", "Legendary Creature — Dragon Wizard", ["U", "R"]),
    make_card("Traxos, Scourge of Kroog", "Legendary Artifact Creature — Construct"),
    make_card("Prodigal Sorcerer", "Creature — Human Wizard", ["U"]),
    make_card("Teferi, Time Raveler", "Legendary Planeswalker — Teferi", ["W", "U"]),
    make_card("Opt", "Instant", ["U"]),
    make_card("Lightning Strike", "Instant", ["R"]),
    make_card("Fires of Invention", "Enchantment", ["R"]),
    make_card("Ornithopter", "Artifact Creature — Thopter"),
    make_card("Llanowar Elves", "Creature — Elf Druid", ["G"]),
    make_card("Island", "Basic Land — Island", ["U"]),
    make_card("Relentless Rats", "Creature — Rat", ["B"]),
    make_card("Counterspell", "Instant", ["U"], pioneer="not_legal"),
    make_card("Oko, Thief of Crowns", "Legendary Planeswalker — Oko", ["G", "U"], pioneer="banned"),
    make_card("Expressive Iteration", "Sorcery", ["U", "R"], pioneer="banned"),
    make_card("Treasure", "Token Artifact — Treasure", set_type="token"),
    make_card("Goblin", "Token Creature — Goblin", ["R"], set_type="token"),
    make_card("Goblin", "Creature — Goblin", ["R"], set_type="funny", pioneer="not_legal"),
    make_dfc("Delver of Secrets", "Insectile Aberration"),
]


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def dfc_factory():
    return make_dfc


@pytest.fixture
def catalog():
    return [dict(card) for card in CATALOG]


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    (d / "banned_list.csv").write_text('"Teferi, Time Raveler"\n"Fires of Invention"\n\n')
    (d / "allowed_list.csv").write_text('"Teferi, Time Raveler"\n"Counterspell"\n')
    (d / "singleton_exceptions.csv").write_text('"Relentless Rats"\n')
    return d


@pytest.fixture
def card_lists(data_dir):
    lists = CardLists(data_dir)
    lists.load()
    return lists


@pytest.fixture
def loaded_store(tmp_path, card_lists, catalog):
    store = CatalogStore(tmp_path / "cache" / "cards.json", card_lists)
    store.persist(catalog)
    store.reload()
    return store
