"""Tests for the folder registry."""

from unittest.mock import patch

import pytest

from mastodon_bookmarks.folders import FolderRegistry, members_of
from mastodon_bookmarks.models import InvalidInput
from mastodon_bookmarks.store import FOLDERS_KEY


@pytest.fixture
def registry(store):
    return FolderRegistry(store)


class TestFolderManagement:
    def test_starts_empty(self, registry):
        assert registry.folders == []

    def test_create_persists(self, registry, store):
        folder = registry.create("  Reading  ")

        assert folder.name == "Reading"
        assert folder.is_empty
        reloaded = FolderRegistry(store)
        assert [f.id for f in reloaded.folders] == [folder.id]
        assert reloaded.folders[0].created_at == folder.created_at

    def test_ids_are_unique(self, registry):
        a = registry.create("A")
        b = registry.create("A")
        assert a.id != b.id

    def test_empty_name_rejected(self, registry, store):
        with pytest.raises(InvalidInput):
            registry.create("   ")
        assert not store.exists(FOLDERS_KEY)

    def test_rename(self, registry, store):
        folder = registry.create("Reading")

        assert registry.rename(folder.id, "Later") is True
        assert FolderRegistry(store).folders[0].name == "Later"

    def test_rename_unknown_is_ignored(self, registry):
        registry.create("Reading")
        assert registry.rename("no-such-id", "Later") is False
        assert registry.folders[0].name == "Reading"

    def test_delete_positions(self, registry, store):
        a, b, c = (registry.create(n) for n in ("A", "B", "C"))

        removed = registry.delete([0, 2])

        assert removed == [a, c]
        assert [f.name for f in FolderRegistry(store).folders] == ["B"]

    def test_delete_out_of_range_is_skipped(self, registry):
        registry.create("A")
        assert registry.delete([5, -1]) == []
        assert len(registry.folders) == 1

    def test_corrupt_storage_starts_empty(self, store):
        store.state_dir.mkdir(parents=True)
        (store.state_dir / f"{FOLDERS_KEY}.json").write_text("[{")
        assert FolderRegistry(store).folders == []


class TestMembership:
    def test_add_twice_keeps_one_entry(self, registry):
        folder = registry.create("Reading")

        registry.add_bookmark(folder.id, "113001")
        registry.add_bookmark(folder.id, "113001")

        assert folder.bookmark_ids == ["113001"]
        assert registry.contains(folder.id, "113001")

    def test_remove_absent_is_noop(self, registry):
        folder = registry.create("Reading")
        registry.add_bookmark(folder.id, "1")

        assert registry.remove_bookmark(folder.id, "2") is True
        assert folder.bookmark_ids == ["1"]

    def test_remove_absent_does_not_write(self, registry, store):
        folder = registry.create("Reading")
        registry.add_bookmark(folder.id, "1")

        with patch.object(store, "save") as mock_save:
            registry.remove_bookmark(folder.id, "2")

        mock_save.assert_not_called()

    def test_remove(self, registry, store):
        folder = registry.create("Reading")
        registry.add_bookmark(folder.id, "1")
        registry.remove_bookmark(folder.id, "1")

        assert not registry.contains(folder.id, "1")
        assert FolderRegistry(store).folders[0].bookmark_ids == []

    def test_unknown_folder(self, registry):
        assert registry.add_bookmark("missing", "1") is False
        assert registry.remove_bookmark("missing", "1") is False
        assert registry.contains("missing", "1") is False

    def test_folders_containing(self, registry):
        a = registry.create("A")
        b = registry.create("B")
        registry.add_bookmark(a.id, "1")
        registry.add_bookmark(b.id, "2")

        assert registry.folders_containing("1") == [a]


class TestMembersOf:
    def test_collection_order_not_insertion_order(self, registry, make_status):
        collection = [make_status(str(i)) for i in (5, 4, 3, 2, 1)]
        folder = registry.create("Reading")
        for bookmark_id in ("1", "5", "3"):
            registry.add_bookmark(folder.id, bookmark_id)

        assert [s.id for s in members_of(folder, collection)] == ["5", "3", "1"]

    def test_missing_bookmarks_are_skipped(self, registry, make_status):
        folder = registry.create("Reading")
        registry.add_bookmark(folder.id, "gone")
        registry.add_bookmark(folder.id, "2")

        members = members_of(folder, [make_status("2"), make_status("1")])
        assert [s.id for s in members] == ["2"]
        assert members_of(folder, []) == []
