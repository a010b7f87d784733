"""Unit tests for mediaflow.db.stores — SQL collaborator implementations."""

import pytest

from mediaflow.access.interfaces import FolderProvider, ItemStore, OptionStore, PermissionStore
from mediaflow.access.models import UNCATEGORIZED, ActionKind, ItemQuery
from mediaflow.db.models import FolderMeta
from mediaflow.db.session import session_scope
from mediaflow.engine.errors import NotFoundError, ProtectedFolderError


class TestProtocols:

    def test_stores_satisfy_interfaces(self, folders, permissions, items, options):
        assert isinstance(folders, FolderProvider)
        assert isinstance(permissions, PermissionStore)
        assert isinstance(items, ItemStore)
        assert isinstance(options, OptionStore)


class TestSqlFolderProvider:

    def test_create_and_get(self, folders):
        root = folders.create_folder("Root", None)
        child = folders.create_folder("Child", root, key="child-key")

        folder = folders.get_folder(child)
        assert folder.parent_id == root
        assert folder.name == "Child"
        assert folders.get_folder_by_key("child-key").id == child
        assert folders.get_folder(root).parent_id is None

    def test_get_missing(self, folders):
        assert folders.get_folder(42) is None
        assert folders.get_folder(0) is None
        assert folders.get_folder_by_key("nope") is None

    def test_create_under_missing_parent(self, folders):
        with pytest.raises(NotFoundError):
            folders.create_folder("Orphan", 42)

    def test_rename(self, folders):
        fid = folders.create_folder("Old", None)
        folders.rename_folder(fid, "New")
        assert folders.get_folder(fid).name == "New"

    def test_protected_rename_and_delete_refused(self, folders):
        fid = folders.create_folder("System", None)
        folders.set_protected(fid, True)

        with pytest.raises(ProtectedFolderError):
            folders.rename_folder(fid, "Renamed")
        with pytest.raises(ProtectedFolderError):
            folders.delete_folder(fid)
        assert folders.get_folder(fid).name == "System"

    def test_delete_reparents_children_and_uncategorizes_items(self, folders, items, permissions):
        root = folders.create_folder("Root", None)
        middle = folders.create_folder("Middle", root)
        leaf = folders.create_folder("Leaf", middle)
        item = items.create_item(1, middle)
        permissions.set(middle, "author", frozenset({ActionKind.VIEW}))

        folders.delete_folder(middle)

        assert folders.get_folder(middle) is None
        assert folders.get_folder(leaf).parent_id == root
        assert items.get_item(item.id).folder_id is None
        assert permissions.get(middle, "author") is None

    def test_set_protected_missing_folder(self, folders):
        with pytest.raises(NotFoundError):
            folders.set_protected(42, True)


class TestSqlPermissionStore:

    def test_absent_is_none(self, folders, permissions):
        fid = folders.create_folder("A", None)
        assert permissions.get(fid, "author") is None

    def test_empty_entry_is_preserved(self, folders, permissions):
        fid = folders.create_folder("A", None)
        permissions.set(fid, "author", frozenset())
        assert permissions.get(fid, "author") == frozenset()
        assert permissions.roles_for(fid) == {"author": frozenset()}

    def test_upsert(self, folders, permissions):
        fid = folders.create_folder("A", None)
        permissions.set(fid, "author", frozenset({ActionKind.VIEW}))
        permissions.set(fid, "author", frozenset({ActionKind.MOVE_TO, ActionKind.DELETE}))
        assert permissions.get(fid, "author") == frozenset({ActionKind.MOVE_TO, ActionKind.DELETE})

    def test_stored_as_sorted_wire_values(self, folders, permissions, session_factory):
        fid = folders.create_folder("A", None)
        permissions.set(fid, "author", frozenset({ActionKind.UPLOAD_TO, ActionKind.DELETE}))
        with session_scope(session_factory) as session:
            row = session.query(FolderMeta).filter_by(folder_id=fid).one()
            assert row.meta_key == "access:author"
            assert row.meta_value == ["delete", "upload"]

    def test_unknown_stored_actions_ignored(self, folders, permissions, session_factory):
        fid = folders.create_folder("A", None)
        with session_scope(session_factory) as session:
            session.add(FolderMeta(folder_id=fid, meta_key="access:author", meta_value=["view", "publish"]))
        assert permissions.get(fid, "author") == frozenset({ActionKind.VIEW})

    def test_set_on_missing_folder(self, permissions):
        with pytest.raises(NotFoundError):
            permissions.set(42, "author", frozenset())

    def test_delete(self, folders, permissions):
        fid = folders.create_folder("A", None)
        permissions.set(fid, "author", frozenset())
        assert permissions.delete(fid, "author") is True
        assert permissions.delete(fid, "author") is False
        assert permissions.get(fid, "author") is None

    def test_purge_only_removes_access_entries(self, folders, permissions, session_factory):
        a = folders.create_folder("A", None)
        b = folders.create_folder("B", None)
        permissions.set(a, "author", frozenset())
        permissions.set(b, "editor", frozenset({ActionKind.VIEW}))
        with session_scope(session_factory) as session:
            session.add(FolderMeta(folder_id=a, meta_key="color", meta_value=["red"]))

        assert permissions.purge() == 2
        assert permissions.roles_for(a) == {}
        with session_scope(session_factory) as session:
            assert session.query(FolderMeta).count() == 1


class TestSqlItemStore:

    def test_create_and_assign(self, folders, items):
        fid = folders.create_folder("A", None)
        item = items.create_item(7)
        assert item.is_uncategorized

        assert items.assign_folder(item.id, fid) is True
        assert items.get_item(item.id).folder_id == fid

        assert items.assign_folder(item.id, None) is True
        assert items.get_item(item.id).folder_id is None

    def test_assign_missing(self, folders, items):
        item = items.create_item(7)
        assert items.assign_folder(999, None) is False
        assert items.assign_folder(item.id, 999) is False

    def test_counts(self, folders, items):
        a = folders.create_folder("A", None)
        b = folders.create_folder("B", None)
        items.create_item(1, a)
        items.create_item(1, a)
        items.create_item(2, b)
        items.create_item(1)
        items.create_item(2)

        assert items.count_in_folder(a) == 2
        assert items.count_by_folder() == {a: 2, b: 1, UNCATEGORIZED: 2}
        assert items.count_uncategorized(1) == 1
        assert items.count_all() == 5

    def test_list_in_folder_newest_first(self, folders, items):
        a = folders.create_folder("A", None)
        first = items.create_item(1, a)
        second = items.create_item(1, a)
        third = items.create_item(1, a)

        assert [i.id for i in items.list_in_folder(a)] == [third.id, second.id, first.id]
        assert [i.id for i in items.list_in_folder(a, limit=1, offset=1)] == [second.id]

    def test_query(self, folders, items):
        a = folders.create_folder("A", None)
        b = folders.create_folder("B", None)
        in_a = items.create_item(1, a)
        in_b = items.create_item(2, b)
        loose = items.create_item(1)

        assert [i.id for i in items.query(ItemQuery(folder_ids=[a, b]))] == [in_a.id, in_b.id]
        assert [i.id for i in items.query(ItemQuery(author_id=1))] == [in_a.id, loose.id]
        assert items.query(ItemQuery(folder_ids=[])) == []
        assert len(items.query(ItemQuery(limit=2))) == 2


class TestSqlOptionStore:

    def test_round_trip_json(self, options):
        options.set("inbox_map", {"contributor": 4})
        assert options.get("inbox_map") == {"contributor": 4}
        options.set("inbox_map", {})
        assert options.get("inbox_map") == {}

    def test_default_and_delete(self, options):
        assert options.get("missing", 0) == 0
        options.set("approved_folder", 5)
        assert options.delete("approved_folder") is True
        assert options.delete("approved_folder") is False
        assert options.get("approved_folder") is None
