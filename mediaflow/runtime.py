"""
MediaFlow Runtime — Explicit wiring of stores, caches and services.

Lifecycle:
    runtime = MediaFlowRuntime(config)
    runtime.startup()            # DB, stores, transient cache, event bus, logging
    with runtime.request(principal) as scope:
        scope.enforcer.filter_folder_list(principal, folders)
        scope.router.route_on_create(item, principal)
    runtime.shutdown()

Every request() scope builds a fresh RequestCache and AccessResolver, so
permission decisions never leak across requests. Long-lived pieces (stores,
transient cache, event bus) are shared.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Iterable, Optional

from sqlalchemy.orm import sessionmaker

from mediaflow.access.enforcer import AccessEnforcer
from mediaflow.access.interfaces import FolderProvider, ItemStore, OptionStore, PermissionStore
from mediaflow.access.models import Principal, normalize_role
from mediaflow.access.resolver import AccessResolver
from mediaflow.admin.settings import SettingsService
from mediaflow.db.session import close_db, init_db
from mediaflow.db.stores import (
    SqlFolderProvider,
    SqlItemStore,
    SqlOptionStore,
    SqlPermissionStore,
)
from mediaflow.engine.cache import RedisCache, RequestCache, create_transient_cache
from mediaflow.engine.config import PlatformConfig, get_platform_config
from mediaflow.engine.context import RequestContext, reset_request_context, set_request_context
from mediaflow.engine.events import EventBus, ItemRouted
from mediaflow.engine.logging import init_logging, shutdown_logging
from mediaflow.workflow.folders import SystemFolders
from mediaflow.workflow.inbox import InboxMap, InboxRouter
from mediaflow.workflow.state import WorkflowStateManager

logger = logging.getLogger("mediaflow.runtime")


@dataclass
class RequestScope:
    """Services bound to one principal for one request."""

    principal: Principal
    context: RequestContext
    resolver: AccessResolver
    enforcer: AccessEnforcer
    inbox: InboxMap
    router: InboxRouter
    workflow: WorkflowStateManager
    settings: SettingsService


class MediaFlowRuntime:
    """
    Owns the shared collaborators and hands out per-request service scopes.

    Any store may be injected (tests, alternative backends); missing ones are
    built on the SQL reference implementation in startup().
    """

    def __init__(
        self,
        config: Optional[PlatformConfig] = None,
        session_factory: Optional[sessionmaker] = None,
        folders: Optional[FolderProvider] = None,
        permissions: Optional[PermissionStore] = None,
        items: Optional[ItemStore] = None,
        options: Optional[OptionStore] = None,
        transients: Optional[RedisCache] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or get_platform_config()
        self.session_factory = session_factory
        self.folders = folders
        self.permissions = permissions
        self.items = items
        self.options = options
        self.transients = transients
        self.events = events or EventBus()

        self.system_folders: Optional[SystemFolders] = None
        self.workflow: Optional[WorkflowStateManager] = None

        self._owns_db = False
        self._owns_logging = False
        self._owns_transients = False
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def startup(self, create_tables: bool = False, configure_logging: bool = True) -> None:
        """Initialize storage, the transient cache and the event wiring."""
        if self._started:
            logger.warning("Runtime already started")
            return

        if configure_logging:
            init_logging(level=self.config.logging.level, fmt=self.config.logging.format)
            self._owns_logging = True

        logger.info(f"Starting {self.config.name} ({self.config.environment})")

        # 1. Storage
        needs_sql = None in (self.folders, self.permissions, self.items, self.options)
        if needs_sql and self.session_factory is None:
            self.session_factory = init_db(
                self.config.database.url,
                create_tables=create_tables,
                echo=self.config.database.echo,
            )
            self._owns_db = True

        if self.folders is None:
            self.folders = SqlFolderProvider(self.session_factory)
        if self.permissions is None:
            self.permissions = SqlPermissionStore(self.session_factory)
        if self.items is None:
            self.items = SqlItemStore(self.session_factory)
        if self.options is None:
            self.options = SqlOptionStore(self.session_factory)

        # 2. Review-count transient
        if self.transients is None and self.config.redis.enabled:
            try:
                self.transients = create_transient_cache(
                    self.config.redis.url,
                    db=self.config.redis.db,
                    prefix=self.config.redis.prefix,
                    ttl=self.config.workflow.review_count_ttl,
                )
                self._owns_transients = True
            except Exception as e:
                logger.warning(f"Transient cache unavailable (review count uncached): {e}")

        # 3. Workflow folders + event wiring
        self.system_folders = SystemFolders(self.folders, self.options, self.config.workflow)
        self.workflow = self._build_workflow(enforcer=None)
        self.events.subscribe(ItemRouted, self.workflow.on_item_routed)

        self._started = True
        logger.info("MediaFlow runtime started")

    def shutdown(self) -> None:
        """Release connections, and the log handler if startup() installed it."""
        if not self._started:
            return

        if self.workflow is not None:
            self.events.unsubscribe(ItemRouted, self.workflow.on_item_routed)
        if self._owns_transients and self.transients is not None:
            self.transients.close()
        if self._owns_db and self.session_factory is not None:
            close_db(self.session_factory)

        self._started = False
        logger.info("MediaFlow runtime shut down")
        if self._owns_logging:
            shutdown_logging()
            self._owns_logging = False

    # -----------------------------------------------------------------------
    # Principals and request scopes
    # -----------------------------------------------------------------------

    def principal(self, principal_id: int, roles: Iterable[str], username: str = "") -> Principal:
        """Build a Principal; superuser status derives from ``superuser_roles``."""
        roles = list(roles)
        superuser_roles = set(self.config.superuser_roles)
        is_superuser = any(normalize_role(r) in superuser_roles for r in roles)
        return Principal(id=principal_id, roles=roles, is_superuser=is_superuser, username=username)

    @contextmanager
    def request(self, principal: Principal) -> Generator[RequestScope, None, None]:
        """
        Per-request service scope with its own permission cache.

        The RequestContext (request id, principal) is set for log records for
        the duration of the block.
        """
        if not self._started:
            raise RuntimeError("MediaFlow runtime not started. Call startup() first.")

        ctx = RequestContext(principal=principal)
        token = set_request_context(ctx)
        try:
            inbox = InboxMap(self.options, self.folders, self.system_folders)
            resolver = AccessResolver(
                self.permissions,
                self.folders,
                self.config.role_policies(),
                inbox=inbox,
                cache=RequestCache(),
            )
            enforcer = AccessEnforcer(resolver, self.folders, self.items, self.system_folders)
            workflow = self._build_workflow(enforcer=enforcer)
            router = InboxRouter(resolver, inbox, self.items, self.system_folders, events=self.events)
            settings = SettingsService(resolver, inbox, workflow, self.folders, self.items)

            yield RequestScope(
                principal=principal,
                context=ctx,
                resolver=resolver,
                enforcer=enforcer,
                inbox=inbox,
                router=router,
                workflow=workflow,
                settings=settings,
            )
        finally:
            reset_request_context(token)

    def _build_workflow(self, enforcer: Optional[AccessEnforcer]) -> WorkflowStateManager:
        return WorkflowStateManager(
            self.system_folders,
            self.items,
            enforcer=enforcer,
            events=self.events,
            transients=self.transients,
            review_count_ttl=self.config.workflow.review_count_ttl,
        )
