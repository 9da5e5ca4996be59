"""Tests for the catalog store and its cache file."""

import json
import threading

import pytest

from phl_legality.errors import CatalogUnavailable
from phl_legality.store import CatalogStore


class FakeDownloader:
    """Stands in for BulkCatalogDownloader: writes `cards` into the store."""

    def __init__(self, store, cards):
        self.store = store
        self.cards = cards
        self.calls = 0

    async def download(self):
        self.calls += 1
        self.store.persist(self.cards)
        self.store.reload()


def test_find_by_name_prefers_non_token(loaded_store):
    goblin = loaded_store.find_by_name("Goblin")
    assert goblin is not None
    assert not goblin.is_token
    assert goblin.set_type == "funny"


def test_find_by_name_ignores_token_only_names(loaded_store):
    assert loaded_store.find_by_name("Treasure") is None
    assert loaded_store.resolve("Treasure") is None


def test_find_by_name_unknown(loaded_store):
    assert loaded_store.find_by_name("Black Lotus") is None
    assert loaded_store.resolve("Black Lotus") is None


def test_either_face_resolves_to_same_record(loaded_store):
    front = loaded_store.find_face("Delver of Secrets")
    back = loaded_store.find_face("Insectile Aberration")
    assert front is not None
    assert front is back
    assert front.name == "Delver of Secrets // Insectile Aberration"
    assert loaded_store.resolve("Insectile Aberration") is front
    assert loaded_store.resolve("Delver of Secrets // Insectile Aberration") is front


def test_single_faced_names_are_not_face_indexed(loaded_store):
    assert loaded_store.find_face("Opt") is None


def test_first_face_owner_wins(tmp_path, card_lists, dfc_factory):
    first = dfc_factory("Shared Face", "Back One")
    second = dfc_factory("Shared Face", "Back Two")
    store = CatalogStore(tmp_path / "cards.json", card_lists)
    store.persist([first, second])
    store.reload()
    assert store.find_face("Shared Face").name == "Shared Face // Back One"


def test_reload_folds_catalog_bans(loaded_store, card_lists):
    assert card_lists.is_banned("Oko, Thief of Crowns")
    assert card_lists.is_banned("Expressive Iteration")
    # List-file entries survive the merge
    assert card_lists.is_banned("Teferi, Time Raveler")
    assert not card_lists.is_banned("Opt")


def test_persist_is_atomic_and_leaves_no_temp_files(tmp_path, card_lists, catalog):
    store = CatalogStore(tmp_path / "cards.json", card_lists)
    store.persist(catalog)
    assert json.loads(store.path.read_text(encoding="utf-8")) == catalog
    assert list(tmp_path.glob(".cards-*")) == []


def test_failed_persist_keeps_old_cache(tmp_path, card_lists, catalog):
    store = CatalogStore(tmp_path / "cards.json", card_lists)
    store.persist(catalog[:2])
    before = store.path.read_text(encoding="utf-8")

    with pytest.raises(TypeError):
        store.persist([{"name": "Unserializable", "faces": {1, 2}}])

    assert store.path.read_text(encoding="utf-8") == before
    assert list(tmp_path.glob(".cards-*")) == []


def test_persist_accepts_records(loaded_store, tmp_path, card_lists):
    copy = CatalogStore(tmp_path / "copy.json", card_lists)
    copy.persist(loaded_store.records)
    assert copy.reload() == len(loaded_store)


def test_reload_rejects_non_array(tmp_path, card_lists):
    path = tmp_path / "cards.json"
    path.write_text('{"name": "Opt"}', encoding="utf-8")
    store = CatalogStore(path, card_lists)
    with pytest.raises(ValueError):
        store.reload()


async def test_load_from_existing_cache(loaded_store, catalog):
    loaded_store.reset()
    assert not loaded_store.is_loaded
    await loaded_store.load()
    assert loaded_store.is_loaded
    assert len(loaded_store) == len(catalog)


async def test_load_reads_cache_on_worker_thread(loaded_store, monkeypatch):
    threads = []
    original = loaded_store.reload

    def recording_reload():
        threads.append(threading.get_ident())
        return original()

    monkeypatch.setattr(loaded_store, "reload", recording_reload)
    loaded_store.reset()
    await loaded_store.load()

    assert len(threads) == 1
    assert threads[0] != threading.get_ident()
    assert loaded_store.is_loaded


async def test_missing_cache_triggers_download(tmp_path, card_lists, catalog):
    store = CatalogStore(tmp_path / "missing" / "cards.json", card_lists)
    downloader = FakeDownloader(store, catalog)
    store.attach_downloader(downloader)

    await store.load()

    assert downloader.calls == 1
    assert store.is_loaded
    assert store.find_by_name("Opt") is not None


@pytest.mark.parametrize("content", ["{not json", "", '{"cards": []}'])
async def test_corrupt_cache_triggers_download(tmp_path, card_lists, catalog, content):
    path = tmp_path / "cards.json"
    path.write_text(content, encoding="utf-8")
    store = CatalogStore(path, card_lists)
    downloader = FakeDownloader(store, catalog)
    store.attach_downloader(downloader)

    await store.load()

    assert downloader.calls == 1
    assert len(store) == len(catalog)


async def test_missing_cache_in_build_mode_is_fatal(tmp_path, card_lists, catalog):
    store = CatalogStore(tmp_path / "cards.json", card_lists, build_mode=True)
    downloader = FakeDownloader(store, catalog)
    store.attach_downloader(downloader)

    with pytest.raises(CatalogUnavailable, match="required for build"):
        await store.load()
    assert downloader.calls == 0


async def test_missing_cache_without_downloader(tmp_path, card_lists):
    store = CatalogStore(tmp_path / "cards.json", card_lists)
    with pytest.raises(CatalogUnavailable):
        await store.load()


async def test_other_read_errors_propagate(tmp_path, card_lists, catalog):
    # A directory where the cache file should be is not repaired by downloading
    path = tmp_path / "cards.json"
    path.mkdir()
    store = CatalogStore(path, card_lists)
    downloader = FakeDownloader(store, catalog)
    store.attach_downloader(downloader)

    with pytest.raises(IsADirectoryError):
        await store.load()
    assert downloader.calls == 0


def test_reset(loaded_store):
    loaded_store.reset()
    assert len(loaded_store) == 0
    assert loaded_store.resolve("Opt") is None
