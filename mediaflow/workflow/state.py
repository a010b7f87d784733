"""
MediaFlow Workflow State — Review/approval transitions, review count and batch operations.

Item lifecycle (only "which folder, if any" is stored):

    Unclassified ──route/mark──▶ Needs Review ──approve──▶ Approved
          ▲                            │
          └──────── reassign ──────────┴──────▶ any folder

The review count is a TTL transient (RedisCache), invalidated eagerly by every
transition that changes Needs Review membership.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from mediaflow.access.enforcer import AccessEnforcer
from mediaflow.access.interfaces import ItemStore, PermissionStore, OptionStore
from mediaflow.access.models import BulkResult, GateDecision, Item, Principal
from mediaflow.engine.cache import RedisCache
from mediaflow.engine.events import Approved, EventBus, ItemRouted, MarkedNeedsReview
from mediaflow.workflow.folders import OPTION_APPROVED_FOLDER, SystemFolders
from mediaflow.workflow.inbox import OPTION_INBOX_MAP

logger = logging.getLogger("mediaflow.workflow.state")

REVIEW_COUNT_KEY = "review_count"


class WorkflowStateManager:
    """
    Owns the workflow folders' transitions and the cached pending-review count.

    Usage:
        manager.ensure_system_folders()
        manager.mark_needs_review(item_id)
        manager.mark_approved(item_id)
        manager.review_count()
    """

    def __init__(
        self,
        system_folders: SystemFolders,
        items: ItemStore,
        enforcer: Optional[AccessEnforcer] = None,
        events: Optional[EventBus] = None,
        transients: Optional[RedisCache] = None,
        review_count_ttl: int = 3600,
    ):
        self._system_folders = system_folders
        self._items = items
        self._enforcer = enforcer
        self._events = events
        self._transients = transients
        self._review_count_ttl = review_count_ttl

    @property
    def system_folders(self) -> SystemFolders:
        return self._system_folders

    # -------------------------------------------------------------------
    # System folders
    # -------------------------------------------------------------------

    def ensure_system_folders(self) -> bool:
        """Create the protected workflow folders if absent. Idempotent."""
        return self._system_folders.ensure()

    def needs_review_folder(self) -> Optional[int]:
        return self._system_folders.needs_review_folder()

    def approved_folder(self) -> Optional[int]:
        return self._system_folders.approved_folder()

    def workflow_folder(self) -> Optional[int]:
        return self._system_folders.workflow_folder()

    def is_system_folder(self, folder_id: int) -> bool:
        return self._system_folders.is_system_folder(folder_id)

    def is_workflow_folder(self, folder_id: Optional[int]) -> bool:
        return self._system_folders.is_workflow_folder(folder_id)

    def set_approved_folder(self, folder_id: int) -> None:
        self._system_folders.set_approved_folder(folder_id)

    def custom_approved_folder(self) -> int:
        return self._system_folders.custom_approved_folder()

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------

    def mark_needs_review(self, item_id: int) -> bool:
        """
        Move an item into Needs Review.

        Returns:
            False if the Needs Review folder or the item does not exist.
        """
        folder_id = self.needs_review_folder()
        if not folder_id:
            logger.warning(f"Cannot mark item {item_id} for review: Needs Review folder missing")
            return False

        if not self._assign(item_id, folder_id):
            return False

        self.invalidate_review_count_cache()
        if self._events is not None:
            self._events.emit(MarkedNeedsReview(item_id=item_id, folder_id=folder_id))
        return True

    def mark_approved(self, item_id: int) -> bool:
        """
        Move an item into the effective Approved folder (override or system folder).

        Returns:
            False if no Approved folder resolves or the item does not exist.
        """
        folder_id = self.approved_folder()
        if not folder_id:
            logger.warning(f"Cannot approve item {item_id}: no Approved folder resolves")
            return False

        if not self._assign(item_id, folder_id):
            return False

        self.invalidate_review_count_cache()
        if self._events is not None:
            self._events.emit(Approved(item_id=item_id, folder_id=folder_id))
        return True

    def reassign(self, principal: Principal, item_id: int, folder_id: Optional[int]) -> GateDecision:
        """
        Move an item to ``folder_id`` (None = uncategorized), gated on the destination.

        Returns:
            ALLOWED when the move was applied, DENIED when the gate refused it
            or the item could not be reassigned.
        """
        decision = self._gate_move(principal, folder_id)
        if not decision.allowed:
            return decision

        item = self._items.get_item(item_id)
        if item is None:
            return GateDecision.DENIED

        previous = item.folder_id
        if not self._assign(item_id, folder_id or None):
            return GateDecision.DENIED

        needs_review = self.needs_review_folder()
        if needs_review and needs_review in (previous, folder_id):
            self.invalidate_review_count_cache()
        return GateDecision.ALLOWED

    def _assign(self, item_id: int, folder_id: Optional[int]) -> bool:
        try:
            return self._items.assign_folder(item_id, folder_id)
        except Exception as e:
            logger.error(f"Failed to assign item {item_id} → folder {folder_id}: {e}")
            return False

    def _gate_move(self, principal: Principal, folder_id: Optional[int]) -> GateDecision:
        if self._enforcer is None:
            return GateDecision.ALLOWED if principal.is_superuser else GateDecision.DENIED
        return self._enforcer.gate_move(principal, folder_id)

    # -------------------------------------------------------------------
    # Batch operations
    # -------------------------------------------------------------------

    def bulk_approve(self, principal: Principal, item_ids: Iterable[int]) -> BulkResult:
        """
        Approve many items. The destination permission is checked once, up front;
        after that each item succeeds or fails on its own.
        """
        ids = _unique_ids(item_ids)
        if not ids:
            return BulkResult.reject("no_items")

        destination = self.approved_folder()
        if not destination:
            return BulkResult.reject("destination_missing")

        if not self._gate_move(principal, destination).allowed:
            logger.info(f"Bulk approve refused: principal {principal.id} cannot move to {destination}")
            return BulkResult.reject("permission_denied")

        result = BulkResult()
        for item_id in ids:
            if self.mark_approved(item_id):
                result.succeeded += 1
            else:
                result.failed += 1

        logger.info(f"Bulk approve: {result.succeeded} succeeded, {result.failed} failed")
        return result

    def bulk_assign(self, principal: Principal, item_ids: Iterable[int], folder_id: int) -> BulkResult:
        """Assign many items to one folder, with the same up-front destination check."""
        ids = _unique_ids(item_ids)
        if not ids:
            return BulkResult.reject("no_items")

        if not folder_id or not self._system_folders.folder_exists(folder_id):
            return BulkResult.reject("destination_missing")

        decision = self._gate_move(principal, folder_id)
        if not decision.allowed:
            logger.info(f"Bulk assign refused: principal {principal.id} cannot move to {folder_id}")
            return BulkResult.reject("permission_denied")

        result = BulkResult()
        for item_id in ids:
            if self._assign(item_id, folder_id):
                result.succeeded += 1
            else:
                result.failed += 1

        self.invalidate_review_count_cache()
        logger.info(f"Bulk assign to {folder_id}: {result.succeeded} succeeded, {result.failed} failed")
        return result

    # -------------------------------------------------------------------
    # Review queue
    # -------------------------------------------------------------------

    def items_needing_review(self, limit: Optional[int] = None, offset: int = 0) -> List[Item]:
        folder_id = self.needs_review_folder()
        if not folder_id:
            return []
        return self._items.list_in_folder(folder_id, limit=limit, offset=offset)

    def review_count(self, force_refresh: bool = False) -> int:
        """
        Count of items in Needs Review.
        Served from the transient cache unless ``force_refresh``.
        """
        if not force_refresh and self._transients is not None:
            cached = self._transients.get_int(REVIEW_COUNT_KEY)
            if cached is not None:
                return cached

        folder_id = self.needs_review_folder()
        count = self._items.count_in_folder(folder_id) if folder_id else 0

        if self._transients is not None:
            self._transients.set(REVIEW_COUNT_KEY, count, ttl=self._review_count_ttl)
        return count

    def invalidate_review_count_cache(self) -> None:
        if self._transients is not None:
            self._transients.delete(REVIEW_COUNT_KEY)

    def on_item_routed(self, event: ItemRouted) -> None:
        """ItemRouted handler: an upload routed into Needs Review changes the count."""
        if event.folder_id == self.needs_review_folder():
            self.invalidate_review_count_cache()

    # -------------------------------------------------------------------
    # Uninstall
    # -------------------------------------------------------------------

    def purge(self, permissions: PermissionStore, options: OptionStore) -> int:
        """
        Remove every explicit permission entry, unprotect the system folders and
        drop the workflow options. Returns the number of permission entries removed.
        """
        removed = permissions.purge()
        for folder_id in (
            self._system_folders.workflow_folder(),
            self._system_folders.needs_review_folder(),
            self._system_folders.system_approved_folder(),
        ):
            if folder_id:
                self._system_folders.unprotect(folder_id)
        options.delete(OPTION_INBOX_MAP)
        options.delete(OPTION_APPROVED_FOLDER)
        self.invalidate_review_count_cache()
        logger.info(f"Purged workflow data ({removed} permission entries)")
        return removed


def _unique_ids(item_ids: Iterable[int]) -> List[int]:
    seen: List[int] = []
    for raw in item_ids or ():
        try:
            item_id = int(raw)
        except (TypeError, ValueError):
            continue
        if item_id > 0 and item_id not in seen:
            seen.append(item_id)
    return seen
