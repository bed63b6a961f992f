from __future__ import annotations

import pytest

from allonectl.core.code_store import CodeStore
from allonectl.core.errors import DuplicateGroupError, MalformedRequestError
from allonectl.core.model import CodeEntry, CodeGroup, Configuration


def _entry(name: str, code: str, group: str, allone: str = "AA:BB:CC:DD:EE:FF") -> CodeEntry:
    return CodeEntry(name=name, description=f"{name} description", code=code, allone=allone, group=group)


def test_groups_listed_in_creation_order_after_existing() -> None:
    store = CodeStore(Configuration(code_groups=[CodeGroup(name="Bedroom")]))
    store.add_group("Home Theater", "Living room")
    store.add_group("Garage")

    names = [group.name for group, _ in store.list_grouped_codes()]
    assert names == ["Bedroom", "Home Theater", "Garage"]


def test_duplicate_group_rejected_and_store_unchanged() -> None:
    store = CodeStore()
    store.add_group("Home Theater")

    with pytest.raises(DuplicateGroupError) as exc:
        store.add_group("Home Theater", "again")

    assert "Home Theater" in str(exc.value)
    assert len(store.groups()) == 1


def test_empty_group_name_rejected() -> None:
    with pytest.raises(MalformedRequestError):
        CodeStore().add_group("   ")


def test_entries_only_listed_under_their_own_group() -> None:
    store = CodeStore(
        Configuration(
            code_groups=[CodeGroup(name="Home Theater"), CodeGroup(name="Bedroom")],
            codes=[
                _entry("TV On", "01", "Home Theater"),
                _entry("Fan", "02", "Bedroom"),
                _entry("Amp", "03", "Home Theater"),
                _entry("Orphan", "04", "Deleted Group"),
                _entry("Loose", "05", ""),
            ],
        )
    )

    grouped = {group.name: [code.name for code in codes] for group, codes in store.list_grouped_codes()}
    assert grouped == {"Home Theater": ["TV On", "Amp"], "Bedroom": ["Fan"]}


def test_dangling_entry_reappears_once_group_exists() -> None:
    store = CodeStore(Configuration(codes=[_entry("Orphan", "04", "Garage")]))
    assert store.list_grouped_codes() == []

    store.add_group("Garage")
    [(group, codes)] = store.list_grouped_codes()
    assert group.name == "Garage"
    assert [code.name for code in codes] == ["Orphan"]


def test_delete_matches_code_and_device_not_name() -> None:
    store = CodeStore(
        Configuration(
            codes=[
                _entry("Power", "01", "", allone="AA:BB:CC:DD:EE:FF"),
                _entry("Power", "01", "", allone="11:22:33:44:55:66"),
            ]
        )
    )

    removed = store.delete_code("01", "11:22:33:44:55:66")
    assert removed is not None
    assert [code.allone for code in store.codes()] == ["AA:BB:CC:DD:EE:FF"]


def test_delete_is_idempotent() -> None:
    store = CodeStore(Configuration(codes=[_entry("TV On", "01", ""), _entry("TV Off", "02", "")]))

    store.delete_code("01", "AA:BB:CC:DD:EE:FF")
    once = store.snapshot()
    assert store.delete_code("01", "AA:BB:CC:DD:EE:FF") is None
    assert store.snapshot() == once


def test_clear_codes_keeps_groups() -> None:
    store = CodeStore(Configuration(code_groups=[CodeGroup(name="Home Theater")], codes=[_entry("TV On", "01", "")]))
    store.clear_codes()
    assert store.codes() == []
    assert [group.name for group in store.groups()] == ["Home Theater"]


def test_restore_replaces_state_with_snapshot() -> None:
    store = CodeStore()
    before = store.snapshot()
    store.commit_learned_code(_entry("TV On", "01", ""))
    store.restore(before)
    assert store.codes() == []
