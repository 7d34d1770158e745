"""Tests for mailbox_connector.discovery and mailbox_connector.folders."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from structlog.testing import capture_logs

from crawl_connector import CancellationSignal, FilterEntry, JobSpecification, RepositoryError
from mailbox_connector.config import Protocol
from mailbox_connector.discovery import discover_seeds, folder_name_of, search_entries
from mailbox_connector.folders import list_folder_names
from mailbox_connector.query import SubjectTerm
from mailbox_connector.store import StoreError
from tests.conftest import FakeStore, _build_plain_email


def _spec(*filters: tuple[str, str]) -> JobSpecification:
    return JobSpecification(filters=[FilterEntry(name=n, value=v) for n, v in filters])


class TestFolderNameOf:
    def test_absent(self):
        assert folder_name_of(_spec(("subject", "x"))) is None

    def test_last_folder_wins(self):
        assert folder_name_of(_spec(("folder", "A"), ("folder", "B"))) == "B"

    def test_exact_name_only(self):
        assert folder_name_of(_spec(("Folder", "A"))) is None

    def test_search_entries_skip_folder(self):
        spec = _spec(("folder", "INBOX"), ("subject", "x"), ("from", "y"))
        assert [entry.name for entry in search_entries(spec)] == ["subject", "from"]


class TestDiscoverSeeds:
    def test_filtered_search(self, fake_store: FakeStore):
        spec = _spec(("folder", "INBOX"), ("subject", "invoice"))
        seeds = discover_seeds(fake_store, Protocol.IMAP, spec)

        assert seeds == ["<b@x>"]
        assert fake_store.searches == [SubjectTerm("invoice")]
        assert fake_store.closed_folders == ["INBOX"]

    def test_no_predicates_lists_everything(self, fake_store: FakeStore):
        seeds = discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "INBOX")))
        assert seeds == ["<a@x>", "<b@x>", "<c@x>"]
        assert fake_store.searches == []

    def test_no_folder_filter_discovers_nothing(self, fake_store: FakeStore):
        assert discover_seeds(fake_store, Protocol.IMAP, _spec(("subject", "invoice"))) == []
        assert fake_store.opened == []

    def test_empty_folder(self, fake_store: FakeStore):
        assert discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "Archive"))) == []

    def test_time_window_ignored(self, fake_store: FakeStore):
        start = datetime(2030, 1, 1, tzinfo=UTC)
        end = datetime(2030, 1, 2, tzinfo=UTC)
        seeds = discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "INBOX")), start, end)
        assert len(seeds) == 3

    def test_pop3_always_uses_inbox(self, fake_store: FakeStore):
        seeds = discover_seeds(fake_store, Protocol.POP3, _spec(("folder", "Whatever")))
        assert fake_store.opened == ["INBOX"]
        assert len(seeds) == 3

    def test_messages_without_id_skipped(self):
        store = FakeStore(
            {"INBOX": [_build_plain_email(message_id=None), _build_plain_email(message_id="<k@x>")]}
        )
        with capture_logs() as logs:
            seeds = discover_seeds(store, Protocol.IMAP, _spec(("folder", "INBOX")))
        assert seeds == ["<k@x>"]
        assert any(entry["event"] == "message_without_id_skipped" for entry in logs)

    def test_unknown_filter_ignored(self, fake_store: FakeStore):
        with capture_logs() as logs:
            seeds = discover_seeds(
                fake_store, Protocol.IMAP, _spec(("folder", "INBOX"), ("priority", "high"))
            )
        assert len(seeds) == 3
        assert any(entry["event"] == "unknown_filter_field" for entry in logs)

    def test_missing_folder_is_repository_error(self, fake_store: FakeStore):
        with pytest.raises(RepositoryError, match="Error finding emails"):
            discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "Nope")))

    def test_search_failure_closes_folder(self, fake_store: FakeStore):
        fake_store.failures["search"] = StoreError("SEARCH failed")
        with pytest.raises(RepositoryError):
            discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "INBOX"), ("to", "x")))
        assert fake_store.closed_folders == ["INBOX"]

    def test_interrupted_is_cancellation(self, fake_store: FakeStore):
        fake_store.failures["messages"] = InterruptedError("stop")
        with pytest.raises(CancellationSignal):
            discover_seeds(fake_store, Protocol.IMAP, _spec(("folder", "INBOX")))
        assert fake_store.closed_folders == ["INBOX"]


class TestListFolderNames:
    def test_sorted_selectable_folders(self):
        store = FakeStore({"Sent": [], "INBOX": [], "[Gmail]": [], "Archive": []})
        store.flags["[Gmail]"] = frozenset({"\\Noselect"})
        assert list_folder_names(store) == ["Archive", "INBOX", "Sent"]

    def test_nonexistent_flag(self):
        store = FakeStore({"INBOX": [], "Gone": []})
        store.flags["Gone"] = frozenset({"\\NonExistent"})
        assert list_folder_names(store) == ["INBOX"]

    def test_store_error(self):
        store = FakeStore()
        store.failures["list"] = StoreError("LIST failed")
        with pytest.raises(RepositoryError, match="Can't get folder list"):
            list_folder_names(store)

    def test_interrupted(self):
        store = FakeStore()
        store.failures["list"] = InterruptedError("stop")
        with pytest.raises(CancellationSignal):
            list_folder_names(store)
