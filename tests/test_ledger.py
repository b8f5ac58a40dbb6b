"""
Tests for the in-memory ledger store.
"""

import pytest

from conftest import make_transaction
from ledger_assistant.ledger import LedgerStore, RemovalHandle


class TestAppend:
    """Append and id uniqueness."""

    def test_append_keeps_insertion_order(self):
        ledger = LedgerStore()
        assert ledger.append(make_transaction(id="a"))
        assert ledger.append(make_transaction(id="b"))
        assert [t.id for t in ledger.snapshot()] == ["a", "b"]

    def test_duplicate_id_is_noop(self):
        ledger = LedgerStore()
        ledger.append(make_transaction(id="a", amount="1"))
        assert ledger.append(make_transaction(id="a", amount="2")) is False
        assert len(ledger) == 1
        assert ledger.get("a").amount == 1

    def test_contains_and_get(self):
        ledger = LedgerStore([make_transaction(id="a")])
        assert "a" in ledger
        assert "b" not in ledger
        assert ledger.get("b") is None


class TestRemoveRestore:
    """Removal handles and restore."""

    def test_remove_returns_handle(self):
        ledger = LedgerStore([make_transaction(id=i) for i in "abc"])
        handle = ledger.remove("b")
        assert isinstance(handle, RemovalHandle)
        assert handle.index == 1
        assert handle.transaction.id == "b"
        assert [t.id for t in ledger.snapshot()] == ["a", "c"]

    def test_remove_missing_returns_none(self):
        ledger = LedgerStore()
        assert ledger.remove("nope") is None

    def test_restore_puts_record_back_in_place(self):
        original = [make_transaction(id=i) for i in "abc"]
        ledger = LedgerStore(original)
        handle = ledger.remove("b")
        assert ledger.restore(handle) is True
        assert ledger.snapshot() == tuple(original)

    def test_restore_clamps_position(self):
        ledger = LedgerStore([make_transaction(id=i) for i in "abc"])
        handle = ledger.remove("c")
        ledger.remove("b")
        ledger.restore(handle)
        assert [t.id for t in ledger.snapshot()] == ["a", "c"]

    def test_restore_does_not_duplicate(self):
        ledger = LedgerStore([make_transaction(id="a")])
        handle = ledger.remove("a")
        ledger.append(make_transaction(id="a"))
        assert ledger.restore(handle) is False
        assert len(ledger) == 1

    def test_restore_after_replace_all_is_stale(self):
        ledger = LedgerStore([make_transaction(id=i) for i in "ab"])
        handle = ledger.remove("a")
        ledger.replace_all([make_transaction(id="x")])
        assert ledger.restore(handle) is False
        assert [t.id for t in ledger.snapshot()] == ["x"]

    def test_restore_after_clear_is_stale(self):
        ledger = LedgerStore([make_transaction(id="a")])
        handle = ledger.remove("a")
        ledger.clear()
        assert ledger.restore(handle) is False
        assert len(ledger) == 0


class TestReplaceAll:
    """Bulk replace."""

    def test_replace_with_empty(self):
        ledger = LedgerStore([make_transaction(id="a")])
        ledger.replace_all([])
        assert ledger.snapshot() == ()

    def test_replace_is_idempotent(self):
        new = [make_transaction(id="x"), make_transaction(id="y")]
        ledger = LedgerStore([make_transaction(id="a")])
        ledger.replace_all(new)
        once = ledger.snapshot()
        ledger.replace_all(new)
        assert ledger.snapshot() == once == tuple(new)

    def test_duplicate_ids_keep_first(self):
        ledger = LedgerStore()
        ledger.replace_all([
            make_transaction(id="a", amount="1"),
            make_transaction(id="a", amount="2"),
        ])
        assert len(ledger) == 1
        assert ledger.get("a").amount == 1

    def test_clear(self):
        ledger = LedgerStore([make_transaction(id="a")])
        ledger.clear()
        assert len(ledger) == 0


class TestSubscribe:
    """Snapshot subscribers."""

    def test_subscriber_receives_snapshots(self):
        ledger = LedgerStore()
        seen = []
        ledger.subscribe(seen.append)
        ledger.append(make_transaction(id="a"))
        ledger.remove("a")
        assert [len(s) for s in seen] == [1, 0]

    def test_unsubscribe(self):
        ledger = LedgerStore()
        seen = []
        unsubscribe = ledger.subscribe(seen.append)
        unsubscribe()
        ledger.append(make_transaction(id="a"))
        assert seen == []

    def test_duplicate_append_does_not_notify(self):
        ledger = LedgerStore([make_transaction(id="a")])
        seen = []
        ledger.subscribe(seen.append)
        ledger.append(make_transaction(id="a"))
        assert seen == []

    def test_snapshot_is_immutable_copy(self):
        ledger = LedgerStore([make_transaction(id="a")])
        snapshot = ledger.snapshot()
        ledger.append(make_transaction(id="b"))
        assert len(snapshot) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
