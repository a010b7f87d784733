"""Unit tests for mediaflow.engine.config — PlatformConfig and loading."""

import pytest

from mediaflow.access.models import DefaultPolicy
from mediaflow.engine.config import (
    LoggingConfig,
    PlatformConfig,
    get_platform_config,
    load_platform_config,
)
from mediaflow.engine.errors import ConfigError


class TestPlatformConfig:
    """Test PlatformConfig Pydantic model."""

    def test_defaults(self):
        cfg = PlatformConfig()
        assert cfg.name == "MediaFlow"
        assert cfg.environment == "dev"
        assert cfg.database.url == "sqlite:///mediaflow.db"
        assert cfg.redis.db == 3
        assert cfg.workflow.review_count_ttl == 3600
        assert cfg.superuser_roles == ["administrator"]

    def test_default_role_policies(self):
        assert PlatformConfig().role_policies() == {
            "editor": DefaultPolicy.FULL_ACCESS_BY_DEFAULT,
            "author": DefaultPolicy.NO_ACCESS,
            "contributor": DefaultPolicy.NO_ACCESS,
        }

    def test_invalid_environment(self):
        with pytest.raises(ValueError, match="dev/staging/prod"):
            PlatformConfig(environment="test")

    def test_single_full_access_role(self):
        with pytest.raises(ValueError, match="full_access_by_default"):
            PlatformConfig(roles=[
                {"name": "editor", "default_policy": "full_access_by_default"},
                {"name": "manager", "default_policy": "full_access_by_default"},
            ])

    def test_duplicate_roles(self):
        with pytest.raises(ValueError, match="Duplicate"):
            PlatformConfig(roles=[{"name": "Editor"}, {"name": "editor"}])

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            PlatformConfig(roles=[{"name": "editor", "default_policy": "sometimes"}])

    def test_no_full_access_role_allowed(self):
        cfg = PlatformConfig(roles=[{"name": "author"}])
        assert cfg.role_policies() == {"author": DefaultPolicy.NO_ACCESS}

    def test_superuser_roles_normalized(self):
        cfg = PlatformConfig(superuser_roles=["Administrator", "  "])
        assert cfg.superuser_roles == ["administrator"]


class TestLoggingConfig:

    def test_level_uppercased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="loud")
        with pytest.raises(ValueError):
            LoggingConfig(format="xml")


class TestLoadPlatformConfig:

    def test_missing_file_returns_defaults(self, tmp_path):
        cfg = load_platform_config(str(tmp_path / "nope.yaml"))
        assert cfg == PlatformConfig()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "mediaflow.yaml"
        path.write_text(
            "platform:\n"
            "  name: Newsroom\n"
            "environment: staging\n"
            "roles:\n"
            "  - name: editor\n"
            "    default_policy: full_access_by_default\n"
            "  - name: photographer\n"
            "workflow:\n"
            "  review_count_ttl: 60\n",
            encoding="utf-8",
        )
        cfg = load_platform_config(str(path))
        assert cfg.name == "Newsroom"
        assert cfg.environment == "staging"
        assert cfg.role_policies()["photographer"] is DefaultPolicy.NO_ACCESS
        assert cfg.workflow.review_count_ttl == 60
        assert get_platform_config() is cfg

    def test_invalid_yaml_values(self, tmp_path):
        path = tmp_path / "mediaflow.yaml"
        path.write_text("workflow:\n  review_count_ttl: 0\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            load_platform_config(str(path))
        assert exc_info.value.context["config_path"] == str(path)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "mediaflow.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_platform_config(str(path))

    def test_auto_discovery(self, tmp_path, monkeypatch):
        (tmp_path / "mediaflow.yaml").write_text("environment: prod\n", encoding="utf-8")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert get_platform_config().environment == "prod"
