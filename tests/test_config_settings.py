"""Tests for fmshell.config.settings."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

_ENV_KEYS = (
    "ALLOWED_ROOT_DIR",
    "PROTECTED_BASE",
    "LOG_LEVEL",
    "LOG_TO_FILE",
    "LOG_FILE",
    "PLUGIN_DIR",
    "PLUGIN_TIMEOUT",
    "PLUGIN_MAX_RETRIES",
    "COMMANDS_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestSettings:
    """Test the Settings pydantic-settings class."""

    def _make(self, **kwargs):
        """Create a Settings instance without reading a .env file."""
        from fmshell.config.settings import Settings
        return Settings(_env_file=None, **kwargs)

    # -- defaults --

    def test_defaults(self):
        s = self._make()
        assert s.ALLOWED_ROOT_DIR == os.getcwd()
        assert s.LOG_LEVEL == "info"
        assert s.LOG_TO_FILE is False
        assert s.LOG_FILE == "app.log"
        assert s.PLUGIN_TIMEOUT == 30.0
        assert s.PLUGIN_MAX_RETRIES == 1
        assert s.protected_base is None
        assert s.plugin_dir is None

    # -- environment --

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ALLOWED_ROOT_DIR", str(tmp_path))
        monkeypatch.setenv("PLUGIN_DIR", str(tmp_path / "plugins"))
        monkeypatch.setenv("PLUGIN_TIMEOUT", "2.5")
        monkeypatch.setenv("LOG_TO_FILE", "true")

        s = self._make()

        assert s.root_dir == Path(os.path.realpath(tmp_path))
        assert s.plugin_dir == tmp_path / "plugins"
        assert s.PLUGIN_TIMEOUT == 2.5
        assert s.LOG_TO_FILE is True

    def test_dotenv_file(self, tmp_path):
        from fmshell.config.settings import Settings

        env_file = tmp_path / ".env"
        env_file.write_text("LOG_LEVEL=debug\nPLUGIN_MAX_RETRIES=3\n")

        s = Settings(_env_file=env_file)

        assert s.LOG_LEVEL == "debug"
        assert s.PLUGIN_MAX_RETRIES == 3

    def test_unknown_keys_ignored(self, monkeypatch):
        monkeypatch.setenv("SOMETHING_ELSE", "x")
        self._make()

    # -- _normalise_level validator --

    @pytest.mark.parametrize(
        "raw,expected",
        [("warn", "warning"), ("WARN", "warning"), ("Debug", "debug"), (" error ", "error")],
    )
    def test_log_level_normalised(self, raw, expected):
        assert self._make(LOG_LEVEL=raw).LOG_LEVEL == expected

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            self._make(LOG_LEVEL="verbose")

    # -- plugin validators --

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValidationError):
            self._make(PLUGIN_TIMEOUT=timeout)

    def test_retries_at_least_one(self):
        with pytest.raises(ValidationError):
            self._make(PLUGIN_MAX_RETRIES=0)

    # -- derived paths --

    def test_root_dir_collapses_symlinks(self, tmp_path):
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real, target_is_directory=True)

        s = self._make(ALLOWED_ROOT_DIR=str(link))

        assert s.root_dir == Path(os.path.realpath(real))

    def test_protected_base(self, tmp_path):
        s = self._make(PROTECTED_BASE=str(tmp_path))
        assert s.protected_base == Path(os.path.realpath(tmp_path))
