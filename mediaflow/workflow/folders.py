"""
MediaFlow System Folders — Keyed lookup and idempotent creation of the workflow folders.

    Workflow            (protected, root)
    ├── Needs Review    (protected)
    └── Approved        (protected)

Folders are found by stable key, never by display name. The Approved folder may
be shadowed by an admin override stored in the ``approved_folder`` option; a
stale override (deleted folder) falls back to the system folder.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from mediaflow.access.interfaces import FolderProvider, OptionStore
from mediaflow.engine.config import WorkflowConfig

logger = logging.getLogger("mediaflow.workflow.folders")

KEY_WORKFLOW = "mediaflow-workflow"
KEY_NEEDS_REVIEW = "mediaflow-needs-review"
KEY_APPROVED = "mediaflow-approved"

SYSTEM_KEYS = (KEY_WORKFLOW, KEY_NEEDS_REVIEW, KEY_APPROVED)

OPTION_APPROVED_FOLDER = "approved_folder"


class SystemFolders:
    """Owns the three protected workflow folders."""

    def __init__(
        self,
        folders: FolderProvider,
        options: OptionStore,
        config: Optional[WorkflowConfig] = None,
    ):
        self._folders = folders
        self._options = options
        self._config = config or WorkflowConfig()

    def ensure(self) -> bool:
        """
        Create the Workflow parent and its two children if absent, and mark all three protected.
        Idempotent: repeated calls never create duplicates.

        Returns:
            True if all three folders exist afterwards.
        """
        workflow = self._ensure_folder(KEY_WORKFLOW, self._config.workflow_folder_name, None)
        if workflow is None:
            return False

        needs_review = self._ensure_folder(
            KEY_NEEDS_REVIEW, self._config.needs_review_folder_name, workflow
        )
        approved = self._ensure_folder(
            KEY_APPROVED, self._config.approved_folder_name, workflow
        )
        return needs_review is not None and approved is not None

    def _ensure_folder(self, key: str, name: str, parent_id: Optional[int]) -> Optional[int]:
        existing = self._folders.get_folder_by_key(key)
        if existing is not None:
            if not existing.is_protected:
                self._folders.set_protected(existing.id, True)
            return existing.id

        try:
            folder_id = self._folders.create_folder(name, parent_id, key=key)
        except Exception as e:
            logger.error(f"Failed to create system folder '{key}': {e}")
            return None

        self._folders.set_protected(folder_id, True)
        logger.info(f"Created system folder '{name}' ({key}) → {folder_id}")
        return folder_id

    def _id_for(self, key: str) -> Optional[int]:
        folder = self._folders.get_folder_by_key(key)
        return folder.id if folder is not None else None

    def workflow_folder(self) -> Optional[int]:
        return self._id_for(KEY_WORKFLOW)

    def needs_review_folder(self) -> Optional[int]:
        return self._id_for(KEY_NEEDS_REVIEW)

    def system_approved_folder(self) -> Optional[int]:
        return self._id_for(KEY_APPROVED)

    def approved_folder(self) -> Optional[int]:
        """Admin override if set and still existing, else the system Approved folder."""
        custom = self.custom_approved_folder()
        if custom > 0:
            if self._folders.get_folder(custom) is not None:
                return custom
            logger.warning(f"Approved folder override {custom} no longer exists — using system folder")
        return self.system_approved_folder()

    def custom_approved_folder(self) -> int:
        """The override folder id, or 0 when the system folder is used."""
        try:
            return int(self._options.get(OPTION_APPROVED_FOLDER, 0) or 0)
        except (TypeError, ValueError):
            return 0

    def set_approved_folder(self, folder_id: int) -> None:
        """Set the override. ``0`` (or less) reverts to the system folder."""
        if folder_id <= 0:
            self._options.delete(OPTION_APPROVED_FOLDER)
        else:
            self._options.set(OPTION_APPROVED_FOLDER, int(folder_id))

    def folder_exists(self, folder_id: int) -> bool:
        return self._folders.get_folder(folder_id) is not None

    def unprotect(self, folder_id: int) -> None:
        """Clear the protected flag (uninstall only)."""
        self._folders.set_protected(folder_id, False)

    def is_system_folder(self, folder_id: int) -> bool:
        folder = self._folders.get_folder(folder_id)
        return folder is not None and folder.key in SYSTEM_KEYS

    def is_workflow_folder(self, folder_id: Optional[int]) -> bool:
        """True for the Needs Review folder and the effective Approved folder."""
        if not folder_id:
            return False
        return folder_id in (self.needs_review_folder(), self.approved_folder())

    def system_folder_ids(self) -> Set[int]:
        """Workflow, Needs Review and the effective Approved folder."""
        ids = {self.workflow_folder(), self.needs_review_folder(), self.approved_folder()}
        ids.discard(None)
        return ids
