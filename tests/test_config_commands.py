"""Tests for fmshell.config.commands."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from fmshell.commands import BUILTIN_COMMANDS
from fmshell.config.commands import DEFAULT_COMMANDS, CommandInfo, default_commands, load_commands
from fmshell.plugins.sdk import PluginType


def _write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


class TestDefaults:
    def test_every_builtin_has_an_entry(self):
        assert set(DEFAULT_COMMANDS) == set(BUILTIN_COMMANDS)

    def test_default_entries(self):
        commands = default_commands()
        assert commands["ls"].type is PluginType.DIRECTORY
        assert commands["rmdir"].usage == "rmdir [-r] [-y] <dir>"
        assert commands["help"].type is PluginType.META

    def test_defaults_are_fresh_copies(self):
        default_commands()["ls"].description = "changed"
        assert default_commands()["ls"].description == "List directory contents"


class TestLoadCommands:
    def test_no_file(self):
        assert load_commands() == default_commands()

    def test_overrides_merge_per_field(self, tmp_path):
        p = tmp_path / "commands.json"
        _write_json(p, {
            "ls": {"description": "List entries"},
            "wc": {"type": "file", "usage": "wc <file>", "description": "Word count"},
        })

        commands = load_commands(p)

        assert commands["ls"].description == "List entries"
        assert commands["ls"].usage == "ls [dir]"
        assert commands["wc"] == CommandInfo(type=PluginType.FILE, usage="wc <file>", description="Word count")

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_commands(tmp_path / "nope.json")

    @pytest.mark.parametrize("data", [["ls"], {"ls": "List"}])
    def test_wrong_shape(self, tmp_path, data):
        p = tmp_path / "commands.json"
        _write_json(p, data)
        with pytest.raises(ValueError):
            load_commands(p)

    def test_unknown_field_rejected(self, tmp_path):
        p = tmp_path / "commands.json"
        _write_json(p, {"ls": {"colour": "blue"}})
        with pytest.raises(ValidationError):
            load_commands(p)

    def test_bad_type_rejected(self, tmp_path):
        p = tmp_path / "commands.json"
        _write_json(p, {"ls": {"type": "network"}})
        with pytest.raises(ValidationError):
            load_commands(p)
