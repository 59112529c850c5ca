"""Unit tests for configuration models and ConfigManager."""

from pathlib import Path

import pytest

from gtdorg.config import ConfigManager, default_config_path
from gtdorg.models.config import Config, GtdConfig, IdentityConfig, OutlineConfig


class TestGtdConfig:
    """Test document tree configuration."""

    def test_defaults(self):
        config = GtdConfig()

        assert config.inbox_file == "Inbox.org"
        assert "Archive*" in config.exclude_patterns
        assert config.root_path == Path.home() / "Documents" / "GTD"

    def test_root_expanded(self):
        config = GtdConfig(root="~/notes")

        assert config.root_path == Path.home() / "notes"
        assert config.inbox_path == Path.home() / "notes" / "Inbox.org"

    def test_immutable(self):
        config = GtdConfig()

        with pytest.raises(Exception):  # Pydantic ValidationError
            config.inbox_file = "Other.org"


class TestOutlineConfig:
    """Test state keyword configuration."""

    def test_defaults(self):
        config = OutlineConfig()

        assert config.keywords[:2] == ["NEXT", "TODO"]
        assert config.default_done == "DONE"

    def test_keyword_with_space_rejected(self):
        with pytest.raises(ValueError):
            OutlineConfig(keywords=["TODO", "IN PROGRESS"], done_keywords=[])

    def test_empty_keywords_rejected(self):
        with pytest.raises(ValueError):
            OutlineConfig(keywords=[], done_keywords=[])

    def test_done_keywords_must_be_keywords(self):
        with pytest.raises(ValueError, match="done_keywords"):
            OutlineConfig(keywords=["TODO", "DONE"], done_keywords=["FINISHED"])

    def test_custom_done(self):
        config = OutlineConfig(keywords=["LATER", "NOW", "FINISHED"], done_keywords=["FINISHED"])

        assert config.default_done == "FINISHED"


class TestIdentityConfig:
    """Test identifier configuration."""

    def test_defaults(self):
        config = IdentityConfig()

        assert config.property_key == "TASK_ID"
        assert config.cache_max_age_seconds == 300
        assert config.max_attempts == 100
        assert config.cache_path == Path.home() / ".cache" / "gtdorg" / "identity.json"

    def test_key_with_colon_rejected(self):
        with pytest.raises(ValueError):
            IdentityConfig(property_key="TASK:ID")

    def test_max_attempts_bounds(self):
        with pytest.raises(ValueError):
            IdentityConfig(max_attempts=0)


class TestConfigLoad:
    """Test loading YAML configuration."""

    def test_load_full(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "gtd:\n"
            "  root: /srv/gtd\n"
            "  inbox_file: In.org\n"
            "outline:\n"
            "  keywords: [TODO, WAITING, DONE]\n"
            "  done_keywords: [DONE]\n"
            "identity:\n"
            "  property_key: ID\n"
        )

        config = Config.load(path)

        assert config.gtd.root == "/srv/gtd"
        assert config.gtd.inbox_file == "In.org"
        assert config.outline.keywords == ["TODO", "WAITING", "DONE"]
        assert config.identity.property_key == "ID"

    def test_load_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.load(path) == Config()

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Please create the file"):
            Config.load(tmp_path / "missing.yaml")


class TestConfigManager:
    """Test ConfigManager loading and section access."""

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gtd:\n  root: /srv/gtd\n")

        manager = ConfigManager.load_from_path(path)

        assert manager.path == path
        assert manager.gtd.root_path == Path("/srv/gtd")
        assert manager.outline.default_done == "DONE"
        assert manager.identity.property_key == "TASK_ID"

    def test_allow_missing_uses_defaults(self, tmp_path):
        manager = ConfigManager.load_from_path(tmp_path / "missing.yaml", allow_missing=True)

        assert manager.path is None
        assert manager.gtd.inbox_file == "Inbox.org"

    def test_missing_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager.load_from_path(tmp_path / "missing.yaml")

    def test_invalid_config_raises_value_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("identity:\n  max_attempts: 0\n")

        with pytest.raises(ValueError, match="Configuration validation failed"):
            ConfigManager.load_from_path(path)

    def test_invalid_yaml_raises_value_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gtd: [unclosed\n")

        with pytest.raises(ValueError, match="Configuration validation failed"):
            ConfigManager.load_from_path(path)

    def test_load_default_reads_environment_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("gtd:\n  inbox_file: In.org\n")
        monkeypatch.setenv("GTDORG_CONFIG", str(path))

        manager = ConfigManager.load_default()

        assert manager.path == path
        assert manager.gtd.inbox_file == "In.org"


class TestDefaultConfigPath:
    def test_under_home(self, monkeypatch):
        monkeypatch.delenv("GTDORG_CONFIG", raising=False)

        assert default_config_path() == Path.home() / ".config" / "gtdorg" / "config.yaml"

    def test_environment_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GTDORG_CONFIG", str(tmp_path / "gtd.yaml"))

        assert default_config_path() == tmp_path / "gtd.yaml"
