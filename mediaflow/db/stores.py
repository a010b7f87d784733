"""
MediaFlow SQL Stores — SQLAlchemy implementations of the collaborator interfaces.

- SqlFolderProvider   → FolderProvider
- SqlPermissionStore  → PermissionStore (folder_meta rows keyed "access:<role>")
- SqlItemStore        → ItemStore
- SqlOptionStore      → OptionStore

Each call runs in its own short transaction via session_scope().
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from mediaflow.access.models import (
    UNCATEGORIZED,
    ActionKind,
    Folder,
    Item,
    ItemQuery,
)
from mediaflow.db.models import FolderMeta, FolderRow, ItemRow, OptionRow
from mediaflow.db.session import session_scope
from mediaflow.engine.errors import NotFoundError, ProtectedFolderError

logger = logging.getLogger("mediaflow.db.stores")

ACCESS_META_PREFIX = "access:"


def _to_folder(row: FolderRow) -> Folder:
    return Folder(
        id=row.id,
        parent_id=row.parent_id,
        name=row.name,
        key=row.key,
        is_protected=bool(row.is_protected),
    )


def _to_item(row: ItemRow) -> Item:
    return Item(id=row.id, author_id=row.author_id, folder_id=row.folder_id)


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------

class SqlFolderProvider:
    """Folder hierarchy backed by the ``folders`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_folder(self, folder_id: int) -> Optional[Folder]:
        if not folder_id:
            return None
        with session_scope(self._session_factory) as session:
            row = session.get(FolderRow, folder_id)
            return _to_folder(row) if row is not None else None

    def get_folder_by_key(self, key: str) -> Optional[Folder]:
        with session_scope(self._session_factory) as session:
            row = session.query(FolderRow).filter_by(key=key).first()
            return _to_folder(row) if row is not None else None

    def list_folders(self) -> List[Folder]:
        with session_scope(self._session_factory) as session:
            rows = session.query(FolderRow).order_by(FolderRow.id).all()
            return [_to_folder(r) for r in rows]

    def create_folder(self, name: str, parent_id: Optional[int], key: Optional[str] = None) -> int:
        with session_scope(self._session_factory) as session:
            if parent_id and session.get(FolderRow, parent_id) is None:
                raise NotFoundError(f"Parent folder {parent_id} not found", folder_id=parent_id)
            row = FolderRow(name=name, parent_id=parent_id or None, key=key)
            session.add(row)
            session.flush()
            logger.debug(f"Folder created: '{name}' → {row.id}")
            return row.id

    def set_protected(self, folder_id: int, protected: bool) -> None:
        with session_scope(self._session_factory) as session:
            row = self._require(session, folder_id)
            row.is_protected = bool(protected)

    def rename_folder(self, folder_id: int, name: str) -> None:
        with session_scope(self._session_factory) as session:
            row = self._require(session, folder_id)
            if row.is_protected:
                raise ProtectedFolderError(
                    f"Folder {folder_id} is a protected system folder and cannot be renamed",
                    folder_id=folder_id,
                    operation="rename",
                )
            row.name = name

    def delete_folder(self, folder_id: int) -> None:
        """Delete a folder. Children move up to its parent; its items become uncategorized."""
        with session_scope(self._session_factory) as session:
            row = self._require(session, folder_id)
            if row.is_protected:
                raise ProtectedFolderError(
                    f"Folder {folder_id} is a protected system folder and cannot be deleted",
                    folder_id=folder_id,
                    operation="delete",
                )
            session.query(FolderRow).filter_by(parent_id=folder_id).update(
                {FolderRow.parent_id: row.parent_id}, synchronize_session=False
            )
            session.query(ItemRow).filter_by(folder_id=folder_id).update(
                {ItemRow.folder_id: None}, synchronize_session=False
            )
            session.query(FolderMeta).filter_by(folder_id=folder_id).delete(synchronize_session=False)
            session.delete(row)
            logger.info(f"Folder deleted: {folder_id}")

    @staticmethod
    def _require(session, folder_id: int) -> FolderRow:
        row = session.get(FolderRow, folder_id) if folder_id else None
        if row is None:
            raise NotFoundError(f"Folder {folder_id} not found", folder_id=folder_id)
        return row


# ---------------------------------------------------------------------------
# Permission entries
# ---------------------------------------------------------------------------

class SqlPermissionStore:
    """
    Permission entries stored as folder attributes.

    A missing row means "absent" (defer to the role's DefaultPolicy);
    a row holding [] is an explicit deny-all.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _meta_key(role: str) -> str:
        return f"{ACCESS_META_PREFIX}{role}"

    @staticmethod
    def _parse(value: Any) -> FrozenSet[ActionKind]:
        if not isinstance(value, list):
            return frozenset()
        actions = set()
        for raw in value:
            try:
                actions.add(ActionKind.parse(raw))
            except ValueError:
                logger.debug(f"Ignoring unknown stored action {raw!r}")
        return frozenset(actions)

    def get(self, folder_id: int, role: str) -> Optional[FrozenSet[ActionKind]]:
        with session_scope(self._session_factory) as session:
            row = (
                session.query(FolderMeta)
                .filter_by(folder_id=folder_id, meta_key=self._meta_key(role))
                .first()
            )
            if row is None:
                return None
            return self._parse(row.meta_value)

    def set(self, folder_id: int, role: str, actions: FrozenSet[ActionKind]) -> None:
        value = sorted(a.value for a in actions)
        with session_scope(self._session_factory) as session:
            if session.get(FolderRow, folder_id) is None:
                raise NotFoundError(f"Folder {folder_id} not found", folder_id=folder_id)
            row = (
                session.query(FolderMeta)
                .filter_by(folder_id=folder_id, meta_key=self._meta_key(role))
                .first()
            )
            if row is None:
                session.add(FolderMeta(folder_id=folder_id, meta_key=self._meta_key(role), meta_value=value))
            else:
                row.meta_value = value

    def delete(self, folder_id: int, role: str) -> bool:
        with session_scope(self._session_factory) as session:
            deleted = (
                session.query(FolderMeta)
                .filter_by(folder_id=folder_id, meta_key=self._meta_key(role))
                .delete(synchronize_session=False)
            )
            return deleted > 0

    def roles_for(self, folder_id: int) -> Dict[str, FrozenSet[ActionKind]]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(FolderMeta)
                .filter(
                    FolderMeta.folder_id == folder_id,
                    FolderMeta.meta_key.startswith(ACCESS_META_PREFIX),
                )
                .all()
            )
            return {
                row.meta_key[len(ACCESS_META_PREFIX):]: self._parse(row.meta_value)
                for row in rows
            }

    def purge(self) -> int:
        with session_scope(self._session_factory) as session:
            return (
                session.query(FolderMeta)
                .filter(FolderMeta.meta_key.startswith(ACCESS_META_PREFIX))
                .delete(synchronize_session=False)
            )


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class SqlItemStore:
    """Media items backed by the ``items`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_item(self, item_id: int) -> Optional[Item]:
        with session_scope(self._session_factory) as session:
            row = session.get(ItemRow, item_id)
            return _to_item(row) if row is not None else None

    def create_item(self, author_id: int, folder_id: Optional[int] = None) -> Item:
        with session_scope(self._session_factory) as session:
            row = ItemRow(author_id=author_id, folder_id=folder_id or None)
            session.add(row)
            session.flush()
            return _to_item(row)

    def assign_folder(self, item_id: int, folder_id: Optional[int]) -> bool:
        """Set the item's folder (None = uncategorized). False if item or folder is missing."""
        with session_scope(self._session_factory) as session:
            row = session.get(ItemRow, item_id)
            if row is None:
                return False
            if folder_id and session.get(FolderRow, folder_id) is None:
                return False
            row.folder_id = folder_id or None
            return True

    def count_in_folder(self, folder_id: int) -> int:
        with session_scope(self._session_factory) as session:
            return session.query(func.count(ItemRow.id)).filter(ItemRow.folder_id == folder_id).scalar() or 0

    def count_by_folder(self) -> Dict[int, int]:
        """Item counts per folder id; uncategorized items are counted under 0."""
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(ItemRow.folder_id, func.count(ItemRow.id))
                .group_by(ItemRow.folder_id)
                .all()
            )
            return {(folder_id or UNCATEGORIZED): count for folder_id, count in rows}

    def count_uncategorized(self, author_id: int) -> int:
        with session_scope(self._session_factory) as session:
            return (
                session.query(func.count(ItemRow.id))
                .filter(ItemRow.folder_id.is_(None), ItemRow.author_id == author_id)
                .scalar()
            ) or 0

    def count_all(self) -> int:
        with session_scope(self._session_factory) as session:
            return session.query(func.count(ItemRow.id)).scalar() or 0

    def list_in_folder(self, folder_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Item]:
        """Items in a folder, newest first."""
        with session_scope(self._session_factory) as session:
            q = session.query(ItemRow).filter(ItemRow.folder_id == folder_id).order_by(ItemRow.id.desc())
            if offset:
                q = q.offset(offset)
            if limit:
                q = q.limit(limit)
            return [_to_item(r) for r in q.all()]

    def query(self, query: ItemQuery) -> List[Item]:
        """Run an (already scoped) item query. An empty folder filter matches nothing."""
        if query.folder_ids is not None and not query.folder_ids:
            return []
        with session_scope(self._session_factory) as session:
            q = session.query(ItemRow)
            if query.folder_ids is not None:
                q = q.filter(ItemRow.folder_id.in_(query.folder_ids))
            if query.author_id is not None:
                q = q.filter(ItemRow.author_id == query.author_id)
            q = q.order_by(ItemRow.id)
            if query.offset:
                q = q.offset(query.offset)
            if query.limit:
                q = q.limit(query.limit)
            return [_to_item(r) for r in q.all()]


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

class SqlOptionStore:
    """Named JSON settings backed by the ``options`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, name: str, default: Any = None) -> Any:
        with session_scope(self._session_factory) as session:
            row = session.get(OptionRow, name)
            return row.value if row is not None else default

    def set(self, name: str, value: Any) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(OptionRow, name)
            if row is None:
                session.add(OptionRow(name=name, value=value))
            else:
                row.value = value

    def delete(self, name: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.query(OptionRow).filter_by(name=name).delete(synchronize_session=False) > 0
