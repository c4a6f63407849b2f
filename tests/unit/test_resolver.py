"""Tests for the wallet <-> human ID resolver and its stores."""

import json
import os
import threading
import time

import pytest

from walletid.errors import CollisionAmbiguityError, InvalidInputError, StoreError
from walletid.humanid import derive
from walletid.lib.resolver import (
    HumanIdResolver,
    InMemoryStore,
    JsonFileStore,
    Resolution,
)


class UnindexedStore(InMemoryStore):
    """Store without a human ID index, like a document collection keyed by wallet."""

    def find_by_human_id(self, human_id):
        return None


# --- InMemoryStore ---


def test_store_save_is_insert_if_absent(memory_store):
    assert memory_store.save("wallet-a", "aa-bb") == "aa-bb"
    assert memory_store.save("wallet-a", "cc-dd") == "aa-bb"
    assert memory_store.find_by_wallet("wallet-a") == "aa-bb"
    assert memory_store.find_by_human_id("aa-bb") == "wallet-a"
    assert memory_store.find_by_human_id("cc-dd") is None
    assert len(memory_store) == 1


def test_store_rejects_duplicate_human_id(memory_store):
    memory_store.save("wallet-a", "aa-bb")
    with pytest.raises(CollisionAmbiguityError) as exc_info:
        memory_store.save("wallet-b", "aa-bb")
    assert exc_info.value.existing_wallet == "wallet-a"
    assert exc_info.value.wallet == "wallet-b"


def test_store_rebind_moves_record(memory_store):
    memory_store.save("old", "aa-bb")
    memory_store.rebind("old", "new", "cc-dd")
    assert memory_store.find_by_wallet("old") is None
    assert memory_store.find_by_wallet("new") == "cc-dd"
    assert memory_store.find_by_human_id("aa-bb") is None
    assert memory_store.records() == {"new": "cc-dd"}


def test_store_rebind_collision_leaves_store_untouched(memory_store):
    memory_store.save("old", "aa-bb")
    memory_store.save("other", "cc-dd")
    with pytest.raises(CollisionAmbiguityError):
        memory_store.rebind("old", "new", "cc-dd")
    assert memory_store.records() == {"old": "aa-bb", "other": "cc-dd"}


# --- Resolver: assignment ---


def test_get_human_id_assigns_and_persists(resolver, memory_store, reference_wallet):
    assert resolver.get_human_id(reference_wallet) == "voba-viki-bova-novi"
    assert memory_store.find_by_wallet(reference_wallet) == "voba-viki-bova-novi"


def test_get_human_id_is_idempotent(resolver, memory_store, reference_wallet):
    first = resolver.get_human_id(reference_wallet)
    second = resolver.get_human_id(reference_wallet)
    assert first == second
    assert len(memory_store) == 1


def test_existing_mapping_wins_over_derivation(memory_store, reference_wallet):
    memory_store.save(reference_wallet, "legacy-name")
    resolver = HumanIdResolver(memory_store, num_segments=6)
    assert resolver.get_human_id(reference_wallet) == "legacy-name"


def test_get_human_id_without_persist(resolver, memory_store, reference_wallet):
    assert resolver.get_human_id(reference_wallet, persist=False) == "voba-viki-bova-novi"
    assert len(memory_store) == 0


@pytest.mark.parametrize("bad", [None, "", 5])
def test_get_human_id_rejects_bad_wallet(resolver, bad):
    with pytest.raises(InvalidInputError):
        resolver.get_human_id(bad)


def test_resolver_rejects_unknown_policy(memory_store):
    with pytest.raises(InvalidInputError):
        HumanIdResolver(memory_store, policy="suffix")


# --- Resolver: collisions ---


def test_extend_policy_appends_segments(memory_store, reference_wallet):
    memory_store.save("squatter", "voba-viki-bova-novi")
    resolver = HumanIdResolver(memory_store, policy="extend")

    human_id = resolver.get_human_id(reference_wallet)
    assert human_id == derive(reference_wallet, num_segments=5).human_id
    assert human_id.startswith("voba-viki-bova-novi-")
    assert memory_store.find_by_human_id(human_id) == reference_wallet


def test_extend_policy_skips_taken_extensions(memory_store, reference_wallet):
    memory_store.save("squatter-1", derive(reference_wallet).human_id)
    memory_store.save("squatter-2", derive(reference_wallet, num_segments=5).human_id)
    resolver = HumanIdResolver(memory_store)
    expected = derive(reference_wallet, num_segments=6).human_id
    assert resolver.get_human_id(reference_wallet) == expected


def test_extend_policy_gives_up(memory_store, reference_wallet):
    memory_store.save("squatter-1", derive(reference_wallet).human_id)
    memory_store.save("squatter-2", derive(reference_wallet, num_segments=5).human_id)
    resolver = HumanIdResolver(memory_store, max_extra_segments=1)
    with pytest.raises(CollisionAmbiguityError):
        resolver.get_human_id(reference_wallet)


def test_raise_policy(memory_store, reference_wallet):
    memory_store.save("squatter", "voba-viki-bova-novi")
    resolver = HumanIdResolver(memory_store, policy="raise")
    with pytest.raises(CollisionAmbiguityError) as exc_info:
        resolver.get_human_id(reference_wallet)
    assert exc_info.value.human_id == "voba-viki-bova-novi"
    assert exc_info.value.existing_wallet == "squatter"
    assert memory_store.find_by_wallet(reference_wallet) is None


def test_collision_is_logged(memory_store, reference_wallet, caplog):
    memory_store.save("squatter", "voba-viki-bova-novi")
    resolver = HumanIdResolver(memory_store)
    with caplog.at_level("WARNING", logger="walletid.resolver"):
        resolver.get_human_id(reference_wallet)
    assert "Human ID collision" in caplog.text


def test_concurrent_first_assignment_yields_one_record(memory_store, wallet_factory):
    wallets = wallet_factory(20)
    resolver = HumanIdResolver(memory_store)
    results = {wallet: set() for wallet in wallets}
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        for wallet in wallets:
            results[wallet].add(resolver.get_human_id(wallet))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(memory_store) == 20
    assert all(len(ids) == 1 for ids in results.values())


# --- Resolver: reverse lookup ---


def test_find_wallet_by_human_id_uses_index(resolver, reference_wallet):
    human_id = resolver.get_human_id(reference_wallet)
    assert resolver.find_wallet_by_human_id(human_id) == reference_wallet


def test_find_wallet_by_human_id_scans_without_index(reference_wallet, casper_wallet):
    store = UnindexedStore()
    store.save(casper_wallet, "nete-tute-bona-lata")
    store.save(reference_wallet, "voba-viki-bova-novi")
    resolver = HumanIdResolver(store)

    assert resolver.find_wallet_by_human_id("voba-viki-bova-novi") == reference_wallet
    # A prefix the wallet derives but was never bound to does not match
    assert resolver.find_wallet_by_human_id("nete-tute-bona") is None
    assert resolver.find_wallet_by_human_id("zzzz-zzzz") is None


def test_scan_skips_wallet_extended_past_the_id(casper_wallet):
    store = UnindexedStore()
    extended = derive(casper_wallet, num_segments=5).human_id
    store.save(casper_wallet, extended)
    resolver = HumanIdResolver(store)

    assert resolver.find_wallet_by_human_id(derive(casper_wallet).human_id) is None
    assert resolver.find_wallet_by_human_id(extended) == casper_wallet


def test_find_wallet_without_scan(reference_wallet):
    store = UnindexedStore()
    store.save(reference_wallet, "voba-viki-bova-novi")
    resolver = HumanIdResolver(store, scan_fallback=False)
    assert resolver.find_wallet_by_human_id("voba-viki-bova-novi") is None


@pytest.mark.parametrize("value", ["", "Not-An-Id", "abc-", None])
def test_find_wallet_ignores_non_human_ids(resolver, value):
    assert resolver.find_wallet_by_human_id(value) is None


# --- Resolver: identifier resolution ---


def test_resolve_stored_wallet(resolver, casper_wallet):
    resolver.get_human_id(casper_wallet)
    resolution = resolver.resolve_identifier(casper_wallet)
    assert resolution == Resolution(
        casper_wallet, "wallet", casper_wallet, "nete-tute-bona-lata"
    )
    assert resolution.found


def test_resolve_unknown_full_wallet_assigns(resolver, memory_store, casper_wallet):
    resolution = resolver.resolve_identifier(f"  {casper_wallet}  ")
    assert resolution.kind == "wallet"
    assert resolution.human_id == "nete-tute-bona-lata"
    assert not resolution.migrated
    assert memory_store.find_by_wallet(casper_wallet) == "nete-tute-bona-lata"


def test_resolve_migrates_legacy_account_hash(memory_store, casper_wallet):
    legacy = "account-hash-" + casper_wallet[:16]
    memory_store.save(legacy, derive(legacy).human_id)
    resolver = HumanIdResolver(memory_store)

    resolution = resolver.resolve_identifier(casper_wallet)

    assert resolution.migrated
    assert resolution.wallet == casper_wallet
    assert resolution.human_id == "nete-tute-bona-lata"
    assert memory_store.find_by_wallet(legacy) is None
    assert memory_store.find_by_wallet(casper_wallet) == "nete-tute-bona-lata"


def test_legacy_migration_extends_past_taken_id(memory_store, casper_wallet):
    legacy = "account-hash-" + casper_wallet[:16]
    memory_store.save(legacy, derive(legacy).human_id)
    memory_store.save("squatter", "nete-tute-bona-lata")
    resolver = HumanIdResolver(memory_store, policy="extend")

    resolution = resolver.resolve_identifier(casper_wallet)

    extended = derive(casper_wallet, num_segments=5).human_id
    assert resolution.migrated
    assert resolution.human_id == extended
    assert memory_store.records() == {
        "squatter": "nete-tute-bona-lata",
        casper_wallet: extended,
    }


def test_legacy_migration_raise_policy_keeps_legacy_record(memory_store, casper_wallet):
    legacy = "account-hash-" + casper_wallet[:16]
    memory_store.save(legacy, derive(legacy).human_id)
    memory_store.save("squatter", "nete-tute-bona-lata")
    resolver = HumanIdResolver(memory_store, policy="raise")

    with pytest.raises(CollisionAmbiguityError):
        resolver.resolve_identifier(casper_wallet)
    assert memory_store.find_by_wallet(legacy) == derive(legacy).human_id
    assert memory_store.find_by_wallet(casper_wallet) is None


def test_legacy_migration_may_reuse_id_held_by_legacy_record(
    memory_store, casper_wallet
):
    legacy = "account-hash-" + casper_wallet[:16]
    memory_store.save(legacy, "nete-tute-bona-lata")
    resolver = HumanIdResolver(memory_store)

    resolution = resolver.resolve_identifier(casper_wallet)

    assert resolution.migrated
    assert resolution.human_id == "nete-tute-bona-lata"
    assert memory_store.records() == {casper_wallet: "nete-tute-bona-lata"}


def test_resolve_human_id(resolver, reference_wallet):
    resolver.get_human_id(reference_wallet)
    resolution = resolver.resolve_identifier("voba-viki-bova-novi")
    assert resolution.kind == "human_id"
    assert resolution.wallet == reference_wallet


def test_resolve_unknown_human_id(resolver):
    resolution = resolver.resolve_identifier("bato-kali-masu-rivo")
    assert resolution.kind == "human_id"
    assert not resolution.found
    assert resolution.human_id is None


def test_resolve_account_hash(resolver):
    account_hash = "account-hash-" + "ab" * 32
    assert not resolver.resolve_identifier(account_hash).found

    resolver.get_human_id(account_hash)
    resolution = resolver.resolve_identifier(account_hash)
    assert resolution.kind == "account_hash"
    assert resolution.human_id == derive(account_hash).human_id


def test_resolve_unknown(resolver):
    resolution = resolver.resolve_identifier("Hello World!")
    assert resolution.kind == "unknown"
    assert not resolution.found


@pytest.mark.parametrize("bad", ["", "   ", None])
def test_resolve_rejects_empty(resolver, bad):
    with pytest.raises(InvalidInputError):
        resolver.resolve_identifier(bad)


# --- JsonFileStore ---


def test_json_store_round_trip(json_store, store_path, reference_wallet):
    HumanIdResolver(json_store).get_human_id(reference_wallet)

    data = json.loads(store_path.read_text())
    assert data == {"version": 1, "records": {reference_wallet: "voba-viki-bova-novi"}}

    reopened = JsonFileStore(store_path)
    assert reopened.find_by_wallet(reference_wallet) == "voba-viki-bova-novi"
    assert reopened.find_by_human_id("voba-viki-bova-novi") == reference_wallet


def test_json_store_missing_file_is_empty(store_path):
    store = JsonFileStore(store_path)
    assert len(store) == 0
    assert not store_path.exists()


def test_json_store_rebind_is_persisted(json_store, store_path):
    json_store.save("old", "aa-bb")
    json_store.rebind("old", "new", "cc-dd")
    assert JsonFileStore(store_path).records() == {"new": "cc-dd"}


@pytest.mark.parametrize(
    "content",
    ["not json", json.dumps([1, 2]), json.dumps({"version": 2, "records": {}})],
)
def test_json_store_rejects_bad_files(store_path, content):
    store_path.parent.mkdir(parents=True)
    store_path.write_text(content)
    with pytest.raises(StoreError):
        JsonFileStore(store_path)


def test_json_stores_on_one_path_merge_writes(store_path):
    first = JsonFileStore(store_path)
    second = JsonFileStore(store_path)

    first.save("wallet-a", "aa-bb")
    second.save("wallet-b", "cc-dd")

    records = json.loads(store_path.read_text())["records"]
    assert records == {"wallet-a": "aa-bb", "wallet-b": "cc-dd"}
    assert first.find_by_wallet("wallet-b") == "cc-dd"


def test_json_stores_on_one_path_keep_one_winner(store_path):
    first = JsonFileStore(store_path)
    second = JsonFileStore(store_path)

    first.save("wallet-a", "aa-bb")
    assert second.save("wallet-a", "zz-zz") == "aa-bb"
    with pytest.raises(CollisionAmbiguityError):
        second.save("wallet-x", "aa-bb")
    assert JsonFileStore(store_path).records() == {"wallet-a": "aa-bb"}


def test_json_store_concurrent_writers_lose_nothing(store_path):
    barrier = threading.Barrier(6)

    def writer(n):
        store = JsonFileStore(store_path)
        barrier.wait()
        for i in range(10):
            store.save(f"wallet-{n}-{i}", f"id-{n}-{i}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(JsonFileStore(store_path)) == 60
    assert not store_path.with_name(store_path.name + ".lock").exists()


def test_json_store_failed_write_rolls_back(json_store, store_path, monkeypatch):
    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("walletid.lib.resolver.os.replace", fail_replace)
    with pytest.raises(StoreError):
        json_store.save("wallet-a", "aa-bb")

    assert json_store.records() == {}
    assert json_store.find_by_human_id("aa-bb") is None
    assert not store_path.exists()
    assert list(store_path.parent.iterdir()) == []

    monkeypatch.undo()
    assert json_store.save("wallet-a", "aa-bb") == "aa-bb"
    assert JsonFileStore(store_path).records() == {"wallet-a": "aa-bb"}


def test_json_store_failed_rebind_rolls_back(json_store, monkeypatch):
    json_store.save("old", "aa-bb")

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("walletid.lib.resolver.os.replace", fail_replace)
    with pytest.raises(StoreError):
        json_store.rebind("old", "new", "cc-dd")
    assert json_store.records() == {"old": "aa-bb"}
    assert json_store.find_by_human_id("aa-bb") == "old"


def test_json_store_lock_timeout(store_path):
    lock_path = store_path.with_name(store_path.name + ".lock")
    lock_path.parent.mkdir(parents=True)
    lock_path.write_text("12345")
    store = JsonFileStore(store_path, lock_timeout=0.05)

    with pytest.raises(StoreError):
        store.save("wallet-a", "aa-bb")
    assert store.records() == {}
    assert lock_path.exists()


def test_json_store_breaks_stale_lock(store_path):
    lock_path = store_path.with_name(store_path.name + ".lock")
    lock_path.parent.mkdir(parents=True)
    lock_path.write_text("12345")
    an_hour_ago = time.time() - 3600
    os.utime(lock_path, (an_hour_ago, an_hour_ago))

    store = JsonFileStore(store_path, lock_timeout=1.0)
    assert store.save("wallet-a", "aa-bb") == "aa-bb"
    assert not lock_path.exists()
