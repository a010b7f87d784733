"""
MediaFlow Access Enforcer — Applies the resolver to every disclosure and mutation surface.

Surfaces:
- Folder listings          → filter_folder_list()
- Per-folder item counts   → filter_folder_counts()
- Item queries             → scope_item_query()
- Single-folder reads      → gate_view()
- Moves / assignments      → gate_move()       (destination only)
- Folder delete / rename   → gate_delete(), gate_rename() (protected folders always refused)

Every surface derives its answer from AccessResolver.accessible_folders() or
AccessResolver.can_perform(); no allow/deny rule is re-implemented here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from mediaflow.access.interfaces import FolderProvider, ItemStore
from mediaflow.access.models import (
    UNCATEGORIZED,
    ActionKind,
    Folder,
    GateDecision,
    ItemQuery,
    Principal,
)
from mediaflow.access.resolver import AccessResolver
from mediaflow.engine.errors import AccessDeniedError, ProtectedFolderError
from mediaflow.engine.logging import access_event

logger = logging.getLogger("mediaflow.access.enforcer")

F = TypeVar("F")


def _folder_id(folder: Any) -> Optional[int]:
    """Folder id from a Folder model, a mapping with an "id" key, or a bare id."""
    if isinstance(folder, Folder):
        return folder.id
    if isinstance(folder, Mapping):
        value = folder.get("id")
    else:
        value = getattr(folder, "id", folder)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AccessEnforcer:
    """
    Wraps listing, counting, querying and mutating call sites with the AccessResolver.

    Superusers bypass filtering entirely: inputs are passed through untouched.
    """

    def __init__(
        self,
        resolver: AccessResolver,
        folders: FolderProvider,
        items: ItemStore,
        system_folders=None,
    ):
        self._resolver = resolver
        self._folders = folders
        self._items = items
        self._system_folders = system_folders

    @property
    def resolver(self) -> AccessResolver:
        return self._resolver

    # -------------------------------------------------------------------
    # Disclosure surfaces
    # -------------------------------------------------------------------

    def filter_folder_list(self, principal: Principal, folders: Sequence[F]) -> Sequence[F]:
        """
        Keep only the folders the principal can view.

        Accepts Folder models, mappings with an "id" key, or bare ids.
        Superusers get the input sequence back as-is.
        """
        if principal.is_superuser:
            return folders

        allowed = self._resolver.accessible_folders(principal, ActionKind.VIEW)
        return [f for f in folders if _folder_id(f) in allowed]

    def filter_folder_counts(
        self,
        principal: Principal,
        counts: Mapping[Any, int],
    ) -> Mapping[Any, int]:
        """
        Filter a {folder_id: count} mapping to viewable folders.

        The uncategorized bucket (key 0) is only shown to principals with no
        viewable folder, and then holds the count of their own uncategorized items.
        """
        if principal.is_superuser:
            return counts

        allowed = self._resolver.accessible_folders(principal, ActionKind.VIEW)
        filtered: Dict[Any, int] = {}

        for key, count in counts.items():
            folder_id = _folder_id(key)
            if folder_id is None:
                continue

            if folder_id == UNCATEGORIZED:
                if not allowed:
                    own = self._items.count_uncategorized(principal.id)
                    if own > 0:
                        filtered[key] = own
                continue

            if folder_id in allowed:
                filtered[key] = count

        return filtered

    def scope_item_query(self, principal: Principal, query: Optional[ItemQuery] = None) -> ItemQuery:
        """
        Restrict an item query to what the principal can view.

        - Folder filter supplied → intersect it with the viewable set
        - No filter, nothing viewable → only the principal's own items
        - No filter otherwise → the viewable set
        """
        query = query or ItemQuery()
        if principal.is_superuser:
            return query

        allowed = self._resolver.accessible_folders(principal, ActionKind.VIEW)

        if query.has_folder_filter:
            scoped = [fid for fid in query.folder_ids if fid in allowed]
            return query.model_copy(update={"folder_ids": scoped})

        if not allowed:
            return query.model_copy(update={"author_id": principal.id})

        return query.model_copy(update={"folder_ids": sorted(allowed)})

    def allowed_destination_folders(self, principal: Principal) -> List[Folder]:
        """Folders the principal can move items into, minus the workflow system folders."""
        allowed = self._resolver.accessible_folders(principal, ActionKind.MOVE_TO)
        excluded = set()
        if self._system_folders is not None:
            excluded = self._system_folders.system_folder_ids()

        folders = [
            f for f in self._folders.list_folders()
            if f.id in allowed and f.id not in excluded
        ]
        return sorted(folders, key=lambda f: (f.name.lower(), f.id))

    # -------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------

    def gate_view(self, principal: Principal, folder_id: int) -> GateDecision:
        return self._gate(principal, folder_id, ActionKind.VIEW)

    def gate_move(self, principal: Principal, destination_id: Optional[int]) -> GateDecision:
        """
        Gate moving an item into ``destination_id``. Only the destination matters.
        Moving to no folder (None / 0) is always allowed.
        """
        if not destination_id:
            return GateDecision.ALLOWED
        return self._gate(principal, destination_id, ActionKind.MOVE_TO)

    def gate_delete(self, principal: Principal, folder_id: int) -> GateDecision:
        """Protected folders are refused before any role check, superusers included."""
        folder = self._folders.get_folder(folder_id)
        if folder is None:
            return GateDecision.DENIED
        if folder.is_protected:
            logger.warning(
                f"Refused delete of protected folder {folder_id}",
                extra=access_event("protected_folder", folder_id, "delete", principal.id),
            )
            return GateDecision.PROTECTED
        return self._gate(principal, folder_id, ActionKind.DELETE)

    def gate_rename(self, principal: Principal, folder_id: int) -> GateDecision:
        """Rename is outside the action model; only the protected-folder guard applies."""
        folder = self._folders.get_folder(folder_id)
        if folder is None:
            return GateDecision.DENIED
        if folder.is_protected:
            logger.warning(
                f"Refused rename of protected folder {folder_id}",
                extra=access_event("protected_folder", folder_id, "rename", principal.id),
            )
            return GateDecision.PROTECTED
        return GateDecision.ALLOWED

    def _gate(self, principal: Principal, folder_id: int, action: ActionKind) -> GateDecision:
        if self._resolver.can_perform(principal, folder_id, action):
            return GateDecision.ALLOWED
        logger.debug(
            f"Denied {action.value} on folder {folder_id} for principal {principal.id}",
            extra=access_event("access_denied", folder_id, action.value, principal.id),
        )
        return GateDecision.DENIED

    # -------------------------------------------------------------------
    # Raising variants
    # -------------------------------------------------------------------

    def enforce_view(self, principal: Principal, folder_id: int) -> None:
        self._raise_for(self.gate_view(principal, folder_id), principal, folder_id, "view")

    def enforce_move(self, principal: Principal, destination_id: Optional[int]) -> None:
        self._raise_for(self.gate_move(principal, destination_id), principal, destination_id, "move")

    def enforce_delete(self, principal: Principal, folder_id: int) -> None:
        self._raise_for(self.gate_delete(principal, folder_id), principal, folder_id, "delete")

    def enforce_rename(self, principal: Principal, folder_id: int) -> None:
        self._raise_for(self.gate_rename(principal, folder_id), principal, folder_id, "rename")

    @staticmethod
    def _raise_for(
        decision: GateDecision,
        principal: Principal,
        folder_id: Optional[int],
        operation: str,
    ) -> None:
        if decision is GateDecision.PROTECTED:
            raise ProtectedFolderError(
                f"Folder {folder_id} is a protected system folder and cannot be {operation}d",
                principal_id=principal.id,
                folder_id=folder_id,
                operation=operation,
            )
        if decision is GateDecision.DENIED:
            raise AccessDeniedError(
                f"Access denied: principal {principal.id} → folder {folder_id} ({operation})",
                principal_id=principal.id,
                folder_id=folder_id,
                roles=list(principal.roles),
                action=operation,
            )
