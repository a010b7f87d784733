"""
MediaFlow Settings Service — Transport-free admin surface.

Sections:
- Permission matrix   {folder_id: {role: [actions]}} for folders with explicit entries
- Inbox map           {role: folder_id}
- Workflow settings   system folder ids and the Approved-folder override
- Stats               totals for the admin dashboard

Every ``save_*`` validates the whole payload before applying anything and
raises ValidationError with per-field details.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from mediaflow.access.interfaces import FolderProvider, ItemStore
from mediaflow.access.models import ActionKind, normalize_role
from mediaflow.access.resolver import AccessResolver
from mediaflow.engine.errors import ValidationError
from mediaflow.workflow.inbox import InboxMap
from mediaflow.workflow.state import WorkflowStateManager

logger = logging.getLogger("mediaflow.admin.settings")


class SettingsService:
    """Reads and writes the admin-configurable state."""

    def __init__(
        self,
        resolver: AccessResolver,
        inbox: InboxMap,
        workflow: WorkflowStateManager,
        folders: FolderProvider,
        items: ItemStore,
    ):
        self._resolver = resolver
        self._inbox = inbox
        self._workflow = workflow
        self._folders = folders
        self._items = items

    # -------------------------------------------------------------------
    # Permission matrix
    # -------------------------------------------------------------------

    def permission_matrix(self) -> Dict[int, Dict[str, List[str]]]:
        matrix: Dict[int, Dict[str, List[str]]] = {}
        for folder in self._folders.list_folders():
            entries = self._resolver.get_all_permissions(folder.id)
            if entries:
                matrix[folder.id] = {
                    role: sorted(a.value for a in actions)
                    for role, actions in sorted(entries.items())
                }
        return matrix

    def save_permission_matrix(self, payload: Any) -> Dict[int, Dict[str, List[str]]]:
        """
        Apply ``{folder_id: {role: [actions]}}``. An empty list stores an explicit deny-all.

        Raises:
            ValidationError if the payload is malformed, names an unknown folder or an unknown action.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Invalid permissions data", validation_errors=["payload must be a mapping"])

        errors: List[str] = []
        updates = []
        for raw_folder, role_entries in payload.items():
            try:
                folder_id = int(raw_folder)
            except (TypeError, ValueError):
                errors.append(f"invalid folder id {raw_folder!r}")
                continue
            if self._folders.get_folder(folder_id) is None:
                errors.append(f"folder {folder_id} does not exist")
                continue
            if not isinstance(role_entries, Mapping):
                errors.append(f"folder {folder_id}: expected a role mapping")
                continue

            for role, actions in role_entries.items():
                role_key = normalize_role(role)
                if not role_key:
                    errors.append(f"folder {folder_id}: invalid role {role!r}")
                    continue
                if not isinstance(actions, (list, tuple, set, frozenset)):
                    errors.append(f"folder {folder_id} role '{role_key}': actions must be a list")
                    continue
                try:
                    action_set = ActionKind.parse_set(actions)
                except ValueError as e:
                    errors.append(f"folder {folder_id} role '{role_key}': {e}")
                    continue
                updates.append((folder_id, role_key, action_set))

        if errors:
            raise ValidationError("Invalid permissions data", validation_errors=errors)

        for folder_id, role_key, action_set in updates:
            self._resolver.set_permissions(folder_id, role_key, action_set)
        logger.info(f"Permission matrix saved ({len(updates)} entries)")
        return self.permission_matrix()

    # -------------------------------------------------------------------
    # Inbox map
    # -------------------------------------------------------------------

    def inbox_map(self) -> Dict[str, int]:
        return self._inbox.get_map()

    def save_inbox_map(self, payload: Any) -> Dict[str, int]:
        if not isinstance(payload, Mapping):
            raise ValidationError("Invalid inbox data", validation_errors=["payload must be a mapping"])
        self._inbox.set_map(payload)
        # Inbox folders carry an implicit View grant
        self._resolver.clear_cache()
        return self.inbox_map()

    # -------------------------------------------------------------------
    # Workflow settings
    # -------------------------------------------------------------------

    def workflow_settings(self) -> Dict[str, Any]:
        return {
            "workflow_folder": self._workflow.workflow_folder(),
            "needs_review_folder": self._workflow.needs_review_folder(),
            "approved_folder": self._workflow.approved_folder(),
            "custom_approved_folder": self._workflow.custom_approved_folder(),
        }

    def save_workflow_settings(self, payload: Any) -> Dict[str, Any]:
        """
        Update the Approved-folder override. ``approved_folder: 0`` reverts to the
        system Approved folder.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Invalid workflow data", validation_errors=["payload must be a mapping"])

        if "approved_folder" in payload:
            raw = payload["approved_folder"]
            try:
                folder_id = int(raw or 0)
            except (TypeError, ValueError):
                raise ValidationError(
                    "Invalid workflow data",
                    validation_errors=[f"invalid approved_folder {raw!r}"],
                ) from None
            if folder_id > 0 and self._folders.get_folder(folder_id) is None:
                raise ValidationError(
                    "Invalid workflow data",
                    folder_id=folder_id,
                    validation_errors=[f"folder {folder_id} does not exist"],
                )
            self._workflow.set_approved_folder(folder_id)
            self._workflow.invalidate_review_count_cache()
            logger.info(f"Approved folder override set to {folder_id or 'system folder'}")

        return self.workflow_settings()

    # -------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------

    def stats(self) -> Dict[str, int]:
        needs_review = self._workflow.needs_review_folder()
        approved = self._workflow.approved_folder()

        roles = set()
        for entries in self.permission_matrix().values():
            roles.update(entries)

        return {
            "total_items": self._items.count_all(),
            "needs_review": self._items.count_in_folder(needs_review) if needs_review else 0,
            "approved": self._items.count_in_folder(approved) if approved else 0,
            "roles_configured": len(roles),
        }
