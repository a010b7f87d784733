"""
MediaFlow Access Resolver — Per-folder, per-role permission checks with request-scoped caching.

Resolution order for can_perform(principal, folder_id, action):
    1. Superusers → allowed (no explicit entry can deny them)
    2. Request cache hit → cached decision
    3. Unknown folder → denied (fail closed)
    4. VIEW on the principal's own inbox folder → allowed (implicit grant)
    5. Any role allows → allowed. Per role:
         explicit entry present (possibly empty) → action in entry
         entry absent → role's DefaultPolicy (FULL_ACCESS_BY_DEFAULT allows)
    6. Otherwise denied

Explicit empty entries are deny-all and are never treated as absent.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Protocol

from mediaflow.access.interfaces import FolderProvider, PermissionStore
from mediaflow.access.models import (
    ActionKind,
    DefaultPolicy,
    Principal,
    normalize_role,
)
from mediaflow.engine.cache import RequestCache
from mediaflow.engine.errors import ValidationError

logger = logging.getLogger("mediaflow.access.resolver")


class InboxLookup(Protocol):
    def resolve(self, principal: Principal) -> Optional[int]: ...


class AccessResolver:
    """
    Computes whether a principal may perform an action on a folder.

    One instance per request scope: the RequestCache it owns must never outlive
    the request, so permission changes are visible on the next request.
    """

    def __init__(
        self,
        permissions: PermissionStore,
        folders: FolderProvider,
        role_policies: Mapping[str, DefaultPolicy],
        inbox: Optional[InboxLookup] = None,
        cache: Optional[RequestCache] = None,
    ):
        self._permissions = permissions
        self._folders = folders
        self._role_policies: Dict[str, DefaultPolicy] = {
            normalize_role(role): policy for role, policy in role_policies.items()
        }
        self._inbox = inbox
        self._cache = cache if cache is not None else RequestCache()

    @property
    def cache(self) -> RequestCache:
        return self._cache

    def default_policy(self, role: str) -> DefaultPolicy:
        """Roles missing from configuration behave as NO_ACCESS."""
        return self._role_policies.get(normalize_role(role), DefaultPolicy.NO_ACCESS)

    # -------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------

    def can_perform(self, principal: Principal, folder_id: int, action: ActionKind) -> bool:
        """
        Check if the principal may perform ``action`` on ``folder_id``.

        Returns:
            True if allowed, False if denied. Never raises for a denial.
        """
        if principal.is_superuser:
            return True

        action = ActionKind.parse(action)
        cache_key = (folder_id, action, principal.id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        allowed = self._evaluate(principal, folder_id, action)
        self._cache.set(cache_key, allowed)
        return allowed

    def _evaluate(self, principal: Principal, folder_id: int, action: ActionKind) -> bool:
        if not folder_id or self._folders.get_folder(folder_id) is None:
            logger.debug(f"Unknown folder {folder_id} — denying {action.value}")
            return False

        if action is ActionKind.VIEW and self.inbox_folder(principal) == folder_id:
            return True

        for role in principal.roles:
            entry = self._permissions.get(folder_id, role)
            if entry is not None:
                if action in entry:
                    return True
            elif self.default_policy(role) is DefaultPolicy.FULL_ACCESS_BY_DEFAULT:
                return True

        return False

    def inbox_folder(self, principal: Principal) -> Optional[int]:
        """The principal's resolved inbox folder, memoized for the request."""
        if self._inbox is None:
            return None
        key = ("inbox", principal.id)
        if key in self._cache:
            return self._cache.get(key)
        folder_id = self._inbox.resolve(principal)
        self._cache.set(key, folder_id)
        return folder_id

    def can_view(self, principal: Principal, folder_id: int) -> bool:
        return self.can_perform(principal, folder_id, ActionKind.VIEW)

    def can_move_to(self, principal: Principal, folder_id: int) -> bool:
        return self.can_perform(principal, folder_id, ActionKind.MOVE_TO)

    def can_upload_to(self, principal: Principal, folder_id: int) -> bool:
        return self.can_perform(principal, folder_id, ActionKind.UPLOAD_TO)

    def can_delete(self, principal: Principal, folder_id: int) -> bool:
        return self.can_perform(principal, folder_id, ActionKind.DELETE)

    def accessible_folders(self, principal: Principal, action: ActionKind = ActionKind.VIEW) -> FrozenSet[int]:
        """
        All folder ids the principal holds ``action`` on.

        Computed once per (principal, action) per request; every enforcement
        call site reuses this set.
        """
        action = ActionKind.parse(action)
        key = ("accessible", action, principal.id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        folder_ids = [folder.id for folder in self._folders.list_folders()]
        if principal.is_superuser:
            result = frozenset(folder_ids)
        else:
            result = frozenset(
                fid for fid in folder_ids if self.can_perform(principal, fid, action)
            )
        self._cache.set(key, result)
        return result

    # -------------------------------------------------------------------
    # Explicit entries
    # -------------------------------------------------------------------

    def set_permissions(self, folder_id: int, role: str, actions: Iterable[ActionKind]) -> None:
        """
        Upsert the explicit entry for (folder, role). An empty set is an explicit deny-all.
        Clears the whole request cache.
        """
        role_key = normalize_role(role)
        if not role_key:
            raise ValidationError(f"Invalid role '{role}'", folder_id=folder_id)
        try:
            action_set = ActionKind.parse_set(actions)
        except ValueError as e:
            raise ValidationError(str(e), folder_id=folder_id, role=role_key) from e

        self._permissions.set(folder_id, role_key, action_set)
        self.clear_cache()
        logger.info(
            f"Permissions set: folder {folder_id} role '{role_key}' → "
            f"{sorted(a.value for a in action_set)}"
        )

    def remove_permissions(self, folder_id: int, role: str) -> bool:
        """Delete the explicit entry so the role reverts to its DefaultPolicy."""
        removed = self._permissions.delete(folder_id, normalize_role(role))
        self.clear_cache()
        if removed:
            logger.info(f"Permissions removed: folder {folder_id} role '{normalize_role(role)}'")
        return removed

    def get_all_permissions(self, folder_id: int) -> Dict[str, FrozenSet[ActionKind]]:
        """Roles with an explicit entry on the folder, including empty (deny-all) entries."""
        return dict(self._permissions.roles_for(folder_id))

    def has_configured_permissions(self, folder_id: int) -> bool:
        return bool(self._permissions.roles_for(folder_id))

    def clear_cache(self) -> None:
        self._cache.clear()
