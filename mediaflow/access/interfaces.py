"""
MediaFlow Collaborator Interfaces — Narrow protocols for the external storage layer.

The access and workflow services only talk to storage through these protocols.
``mediaflow.db.stores`` provides SQLAlchemy implementations.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Protocol, runtime_checkable

from mediaflow.access.models import ActionKind, Folder, Item, ItemQuery


@runtime_checkable
class FolderProvider(Protocol):
    """Folder hierarchy provider."""

    def get_folder(self, folder_id: int) -> Optional[Folder]: ...

    def get_folder_by_key(self, key: str) -> Optional[Folder]: ...

    def list_folders(self) -> List[Folder]: ...

    def create_folder(self, name: str, parent_id: Optional[int], key: Optional[str] = None) -> int: ...

    def set_protected(self, folder_id: int, protected: bool) -> None: ...

    def rename_folder(self, folder_id: int, name: str) -> None: ...

    def delete_folder(self, folder_id: int) -> None: ...


@runtime_checkable
class PermissionStore(Protocol):
    """
    Per folder+role attribute store of allowed actions.

    ``get`` returns None when the role has no entry for the folder, and an
    empty frozenset when the role is explicitly configured with no actions.
    """

    def get(self, folder_id: int, role: str) -> Optional[FrozenSet[ActionKind]]: ...

    def set(self, folder_id: int, role: str, actions: FrozenSet[ActionKind]) -> None: ...

    def delete(self, folder_id: int, role: str) -> bool: ...

    def roles_for(self, folder_id: int) -> Dict[str, FrozenSet[ActionKind]]: ...

    def purge(self) -> int: ...


@runtime_checkable
class ItemStore(Protocol):
    """Media item storage."""

    def get_item(self, item_id: int) -> Optional[Item]: ...

    def create_item(self, author_id: int, folder_id: Optional[int] = None) -> Item: ...

    def assign_folder(self, item_id: int, folder_id: Optional[int]) -> bool: ...

    def count_in_folder(self, folder_id: int) -> int: ...

    def count_by_folder(self) -> Dict[int, int]: ...

    def count_uncategorized(self, author_id: int) -> int: ...

    def count_all(self) -> int: ...

    def list_in_folder(self, folder_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Item]: ...

    def query(self, query: ItemQuery) -> List[Item]: ...


@runtime_checkable
class OptionStore(Protocol):
    """Named settings storage (inbox map, approved-folder override)."""

    def get(self, name: str, default: Any = None) -> Any: ...

    def set(self, name: str, value: Any) -> None: ...

    def delete(self, name: str) -> bool: ...
