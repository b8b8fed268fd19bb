"""
Tests for linter configuration.
"""

import pytest

from apkbuild_lint.config import ConfigError, LinterConfig


class TestDefaults:

    def test_defaults(self):
        config = LinterConfig()
        assert config.config_path is None
        assert config.build_script == "APKBUILD"
        assert config.log_level == "WARNING"
        assert config.disabled_checks == frozenset()

    def test_to_dict(self):
        assert LinterConfig().to_dict() == {
            "build_script": "APKBUILD",
            "log_level": "WARNING",
            "disabled_checks": [],
        }


class TestConfigFile:

    def test_local_config(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text(
            "log_level: debug\ndisabled_checks:\n  - bashisms\n", encoding="utf-8")
        config = LinterConfig()
        assert config.config_path is not None
        assert config.log_level == "DEBUG"
        assert config.disabled_checks == frozenset({"bashisms"})

    def test_env_config_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("build_script: BUILD\n", encoding="utf-8")
        monkeypatch.setenv("APKBUILD_LINT_CONFIG", str(path))
        assert LinterConfig().build_script == "BUILD"

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "explicit.yaml"
        path.write_text("build_script: BUILD\n", encoding="utf-8")
        assert LinterConfig(path).config_path == path

    def test_empty_file(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text("", encoding="utf-8")
        assert LinterConfig().build_script == "APKBUILD"

    def test_not_a_mapping(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text("- foo\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            LinterConfig()

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text("foo: [bar\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            LinterConfig()

    def test_unknown_check(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text(
            "disabled_checks: [nope]\n", encoding="utf-8")
        with pytest.raises(ConfigError) as excinfo:
            LinterConfig()
        assert "nope" in str(excinfo.value)

    def test_bad_log_level(self, tmp_path):
        (tmp_path / ".apkbuild-lint.yaml").write_text("log_level: loud\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            LinterConfig()


class TestEnvOverrides:

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("APKBUILD_LINT_BUILD_SCRIPT", "BUILD")
        monkeypatch.setenv("APKBUILD_LINT_LOG_LEVEL", "info")
        monkeypatch.setenv("APKBUILD_LINT_DISABLE", "comments, maintainer,")
        config = LinterConfig()
        assert config.build_script == "BUILD"
        assert config.log_level == "INFO"
        assert config.disabled_checks == frozenset({"comments", "maintainer"})

    def test_env_beats_file(self, tmp_path, monkeypatch):
        (tmp_path / ".apkbuild-lint.yaml").write_text("build_script: FILE\n", encoding="utf-8")
        monkeypatch.setenv("APKBUILD_LINT_BUILD_SCRIPT", "ENV")
        assert LinterConfig().build_script == "ENV"

