"""Unit tests for mediaflow.runtime — MediaFlowRuntime wiring and request scopes."""

import io
import logging

import pytest

from mediaflow.access.models import ActionKind
from mediaflow.engine.config import PlatformConfig
from mediaflow.engine.context import get_request_context
from mediaflow.engine.events import ItemRouted
from mediaflow.engine.logging import init_logging, shutdown_logging
from mediaflow.runtime import MediaFlowRuntime


@pytest.fixture
def config():
    return PlatformConfig(
        database={"url": "sqlite://"},
        redis={"enabled": False},
        logging={"level": "DEBUG", "format": "text"},
    )


@pytest.fixture
def runtime(config):
    rt = MediaFlowRuntime(config)
    rt.startup(create_tables=True, configure_logging=False)
    yield rt
    rt.shutdown()


class TestLifecycle:

    def test_startup_builds_sql_stores(self, runtime):
        assert runtime.started is True
        assert runtime.session_factory is not None
        assert runtime.transients is None
        assert runtime.events.handler_count(ItemRouted) == 1

    def test_shutdown_unsubscribes(self, config):
        rt = MediaFlowRuntime(config)
        rt.startup(create_tables=True, configure_logging=False)
        rt.shutdown()
        assert rt.started is False
        assert rt.events.handler_count(ItemRouted) == 0

    def test_injected_stores_are_used(self, config, folders, permissions, items, options, transients):
        rt = MediaFlowRuntime(
            config,
            folders=folders,
            permissions=permissions,
            items=items,
            options=options,
            transients=transients,
        )
        rt.startup(configure_logging=False)
        assert rt.session_factory is None
        assert rt.folders is folders
        assert rt.transients is transients
        rt.shutdown()

    def test_shutdown_keeps_foreign_log_handler(self, config):
        handler = init_logging(fmt="text", stream=io.StringIO())
        try:
            rt = MediaFlowRuntime(config)
            rt.startup(create_tables=True, configure_logging=False)
            rt.shutdown()
            assert handler in logging.getLogger("mediaflow").handlers
        finally:
            shutdown_logging()

    def test_shutdown_removes_own_log_handler(self, config):
        root = logging.getLogger("mediaflow")
        before = list(root.handlers)
        rt = MediaFlowRuntime(config)
        rt.startup(create_tables=True)
        assert len(root.handlers) == len(before) + 1

        rt.shutdown()
        assert root.handlers == before

    def test_request_requires_startup(self, config, editor):
        rt = MediaFlowRuntime(config)
        with pytest.raises(RuntimeError):
            with rt.request(editor):
                pass


class TestPrincipalFactory:

    def test_superuser_from_config_roles(self, runtime):
        admin = runtime.principal(1, ["Administrator"])
        assert admin.is_superuser is True
        assert admin.roles == ("administrator",)

        assert runtime.principal(2, ["editor"]).is_superuser is False


class TestRequestScope:

    def test_context_set_for_block(self, runtime, contributor):
        with runtime.request(contributor) as scope:
            ctx = get_request_context()
            assert ctx is scope.context
            assert ctx.principal_id == contributor.id
            assert ctx.request_id.startswith("req_")
        assert get_request_context() is None

    def test_fresh_cache_per_request(self, runtime, contributor):
        with runtime.request(contributor) as first:
            pass
        with runtime.request(contributor) as second:
            pass
        assert first.resolver.cache is not second.resolver.cache

    def test_permission_change_visible_next_request(self, runtime, contributor):
        fid = runtime.folders.create_folder("Photos", None)

        with runtime.request(contributor) as scope:
            assert scope.resolver.can_view(contributor, fid) is False

        runtime.permissions.set(fid, "contributor", frozenset({ActionKind.VIEW}))

        with runtime.request(contributor) as scope:
            assert scope.resolver.can_view(contributor, fid) is True

    def test_upload_flow(self, runtime, contributor, editor):
        runtime.workflow.ensure_system_folders()
        needs_review = runtime.workflow.needs_review_folder()
        item = runtime.items.create_item(contributor.id)

        with runtime.request(contributor) as scope:
            assert scope.router.route_on_create(item, contributor) == needs_review
            assert scope.workflow.review_count() == 1

        with runtime.request(editor) as scope:
            result = scope.workflow.bulk_approve(editor, [item.id])
            assert (result.succeeded, result.failed) == (1, 0)
            assert scope.workflow.review_count() == 0
            assert scope.settings.stats()["approved"] == 1
