"""
MediaFlow Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

from typing import Dict
from unittest.mock import MagicMock

import pytest

from mediaflow.access.enforcer import AccessEnforcer
from mediaflow.access.models import ActionKind, Principal
from mediaflow.access.resolver import AccessResolver
from mediaflow.db.session import init_db
from mediaflow.db.stores import (
    SqlFolderProvider,
    SqlItemStore,
    SqlOptionStore,
    SqlPermissionStore,
)
from mediaflow.engine.cache import RedisCache
from mediaflow.engine.config import PlatformConfig
from mediaflow.engine.events import EventBus
from mediaflow.workflow.folders import SystemFolders
from mediaflow.workflow.inbox import InboxMap, InboxRouter
from mediaflow.workflow.state import WorkflowStateManager


# ---------------------------------------------------------------------------
# Environment setup — avoid touching real Redis / databases in unit tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config():
    """Reset global singletons between tests."""
    import mediaflow.engine.config as cfg_mod

    cfg_mod._platform_config = None
    yield
    cfg_mod._platform_config = None


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with all tables."""
    return init_db("sqlite://", create_tables=True)


@pytest.fixture
def folders(session_factory):
    return SqlFolderProvider(session_factory)


@pytest.fixture
def permissions(session_factory):
    return SqlPermissionStore(session_factory)


@pytest.fixture
def items(session_factory):
    return SqlItemStore(session_factory)


@pytest.fixture
def options(session_factory):
    return SqlOptionStore(session_factory)


@pytest.fixture
def role_policies():
    """editor = full_access_by_default, author / contributor = no_access."""
    return PlatformConfig().role_policies()


@pytest.fixture
def system_folders(folders, options):
    """SystemFolders helper. Folders are NOT created until ensure() is called."""
    return SystemFolders(folders, options)


@pytest.fixture
def workflow_folders(system_folders) -> Dict[str, int]:
    """Create the protected workflow folders and return their ids."""
    assert system_folders.ensure() is True
    return {
        "workflow": system_folders.workflow_folder(),
        "needs_review": system_folders.needs_review_folder(),
        "approved": system_folders.approved_folder(),
    }


@pytest.fixture
def inbox(options, folders, system_folders):
    return InboxMap(options, folders, system_folders)


@pytest.fixture
def resolver(permissions, folders, role_policies, inbox):
    return AccessResolver(permissions, folders, role_policies, inbox=inbox)


@pytest.fixture
def enforcer(resolver, folders, items, system_folders):
    return AccessEnforcer(resolver, folders, items, system_folders)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def router(resolver, inbox, items, system_folders, events):
    return InboxRouter(resolver, inbox, items, system_folders, events=events)


@pytest.fixture
def mock_redis():
    """Return a dict-backed mock Redis client."""
    store: Dict[str, str] = {}
    client = MagicMock()
    client.ping.return_value = True
    client.get.side_effect = lambda key: store.get(key)

    def _set(key, value, ex=None):
        store[key] = value
        return True

    def _delete(*keys):
        return sum(1 for k in keys if store.pop(k, None) is not None)

    client.set.side_effect = _set
    client.delete.side_effect = _delete
    client.store = store
    return client


@pytest.fixture
def transients(mock_redis):
    """A connected RedisCache backed by the mock client."""
    cache = RedisCache(prefix="test:", default_ttl=60, db=3)
    cache._client = mock_redis
    return cache


@pytest.fixture
def workflow(system_folders, items, enforcer, events, transients):
    return WorkflowStateManager(
        system_folders,
        items,
        enforcer=enforcer,
        events=events,
        transients=transients,
        review_count_ttl=120,
    )


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------

@pytest.fixture
def make_principal():
    def _make(principal_id: int = 10, roles=("contributor",), is_superuser: bool = False):
        return Principal(id=principal_id, roles=roles, is_superuser=is_superuser)
    return _make


@pytest.fixture
def admin():
    return Principal(id=1, roles=("administrator",), is_superuser=True, username="admin")


@pytest.fixture
def editor():
    return Principal(id=2, roles=("editor",), username="ed")


@pytest.fixture
def author():
    return Principal(id=3, roles=("author",), username="au")


@pytest.fixture
def contributor():
    return Principal(id=4, roles=("contributor",), username="co")


@pytest.fixture
def grant(permissions):
    """Write an explicit entry straight to the store: grant(folder_id, role, "view", "move")."""
    def _grant(folder_id: int, role: str, *actions: str):
        permissions.set(folder_id, role, ActionKind.parse_set(actions))
    return _grant
