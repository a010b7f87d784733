"""
MediaFlow Inbox — Role → folder mapping and routing of newly created items.

Routing (InboxRouter.route_on_create):
    1. Item already in a folder (per storage) → unchanged
    2. Superuser → no routing
    3. First role (in declared order) whose mapped folder still exists,
       else the Needs Review folder, else nothing
    4. Workflow system folders skip the UPLOAD_TO check; any other
       destination needs UPLOAD_TO or routing is abandoned (item stays unclassified)
    5. Assign and emit ItemRouted
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from mediaflow.access.interfaces import FolderProvider, ItemStore, OptionStore
from mediaflow.access.models import Item, Principal, normalize_role
from mediaflow.access.resolver import AccessResolver
from mediaflow.engine.errors import ValidationError
from mediaflow.engine.events import EventBus, ItemRouted
from mediaflow.workflow.folders import SystemFolders

logger = logging.getLogger("mediaflow.workflow.inbox")

OPTION_INBOX_MAP = "inbox_map"


class InboxMap:
    """Role → inbox folder mapping, at most one folder per role."""

    def __init__(
        self,
        options: OptionStore,
        folders: FolderProvider,
        system_folders: Optional[SystemFolders] = None,
    ):
        self._options = options
        self._folders = folders
        self._system_folders = system_folders

    def get_map(self) -> Dict[str, int]:
        raw = self._options.get(OPTION_INBOX_MAP, {})
        if not isinstance(raw, dict):
            return {}
        result: Dict[str, int] = {}
        for role, folder_id in raw.items():
            try:
                result[role] = int(folder_id)
            except (TypeError, ValueError):
                continue
        return result

    def set_map(self, mapping: Mapping[str, int]) -> Dict[str, int]:
        """
        Replace the whole mapping.

        Raises:
            ValidationError if a role is empty or a folder id is not a positive integer.
        """
        sanitized: Dict[str, int] = {}
        errors: List[str] = []
        for role, folder_id in mapping.items():
            role_key = normalize_role(role)
            if not role_key:
                errors.append(f"invalid role '{role}'")
                continue
            try:
                fid = int(folder_id)
            except (TypeError, ValueError):
                errors.append(f"invalid folder id for '{role_key}': {folder_id!r}")
                continue
            if fid <= 0:
                errors.append(f"invalid folder id for '{role_key}': {folder_id!r}")
                continue
            sanitized[role_key] = fid

        if errors:
            raise ValidationError("Invalid inbox map", validation_errors=errors)

        self._options.set(OPTION_INBOX_MAP, sanitized)
        logger.info(f"Inbox map updated: {sanitized}")
        return sanitized

    def set_role_inbox(self, role: str, folder_id: int) -> Dict[str, int]:
        mapping = self.get_map()
        mapping[normalize_role(role)] = folder_id
        return self.set_map(mapping)

    def remove_role_inbox(self, role: str) -> bool:
        mapping = self.get_map()
        if mapping.pop(normalize_role(role), None) is None:
            return False
        self.set_map(mapping)
        return True

    def all_inbox_folder_ids(self) -> List[int]:
        return sorted({fid for fid in self.get_map().values() if fid > 0})

    def is_inbox_folder(self, folder_id: int) -> bool:
        return folder_id in self.all_inbox_folder_ids()

    def roles_for_inbox(self, folder_id: int) -> List[str]:
        return [role for role, fid in self.get_map().items() if fid == folder_id]

    def resolve(self, principal: Principal) -> Optional[int]:
        """
        The folder new uploads from this principal land in.

        First role with an existing mapped folder, else Needs Review, else None.
        Superusers have no inbox.
        """
        if principal.is_superuser:
            return None

        mapping = self.get_map()
        for role in principal.roles:
            folder_id = mapping.get(role)
            if folder_id and self._folders.get_folder(folder_id) is not None:
                return folder_id

        if self._system_folders is not None:
            return self._system_folders.needs_review_folder()
        return None


class InboxRouter:
    """Assigns newly created items to their author's inbox folder."""

    def __init__(
        self,
        resolver: AccessResolver,
        inbox: InboxMap,
        items: ItemStore,
        system_folders: SystemFolders,
        events: Optional[EventBus] = None,
    ):
        self._resolver = resolver
        self._inbox = inbox
        self._items = items
        self._system_folders = system_folders
        self._events = events

    def route_on_create(self, item: Item, principal: Principal) -> Optional[int]:
        """
        Route a newly created item.

        The stored assignment decides whether the item was already routed;
        the caller's copy of ``item`` may be stale.

        Returns:
            The item's folder id after routing (the stored one if it already
            had a folder), or None when the item stays unclassified.
        """
        stored = self._items.get_item(item.id)
        if stored is None:
            logger.warning(f"Inbox routing skipped: item {item.id} not found")
            return None
        if stored.folder_id:
            item.folder_id = stored.folder_id
            return stored.folder_id

        if principal.is_superuser:
            return None

        destination = self._inbox.resolve(principal)
        if not destination:
            return None

        if not self._system_folders.is_workflow_folder(destination):
            if not self._resolver.can_upload_to(principal, destination):
                logger.info(
                    f"Inbox routing skipped: principal {principal.id} cannot upload to folder {destination}"
                )
                return None

        if not self._items.assign_folder(item.id, destination):
            logger.warning(f"Inbox routing failed: item {item.id} → folder {destination}")
            return None

        item.folder_id = destination
        logger.info(f"Item {item.id} routed to folder {destination}")

        if self._events is not None:
            self._events.emit(ItemRouted(
                item_id=item.id, folder_id=destination, principal_id=principal.id,
            ))
        return destination
