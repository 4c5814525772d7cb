"""Tests for tab_shells.config."""

from __future__ import annotations

import os

import pytest

from tab_shells.config import (
    TerminalSettings,
    load_settings,
    parse_settings_data,
    render_settings,
    resolve_home_dir,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "TAB_SHELLS_CONFIG",
        "TAB_SHELLS_SHELL",
        "TAB_SHELLS_ROWS",
        "TAB_SHELLS_COLS",
        "TAB_SHELLS_SIGWINCH_ON_RESIZE",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_geometry_and_term(self) -> None:
        s = TerminalSettings()
        assert (s.rows, s.cols) == (24, 80)
        assert s.term == "xterm-256color"
        assert s.chunk_size == 8192
        assert s.tab_prefix == "tab-"

    def test_login_shell_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert TerminalSettings().command == ["/bin/zsh", "-l"]

    def test_child_env_advertises_term(self) -> None:
        env = TerminalSettings(env={"FOO": "bar"}).child_env()
        assert env["TERM"] == "xterm-256color"
        assert env["FOO"] == "bar"


class TestWorkingDirectory:
    def test_home_used_when_present(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        assert resolve_home_dir() == str(tmp_path)

    def test_userprofile_fallback(self, monkeypatch, tmp_path) -> None:
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
        assert resolve_home_dir() == str(tmp_path)

    def test_current_directory_fallback(self, monkeypatch, tmp_path) -> None:
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.delenv("USERPROFILE", raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_home_dir() == os.getcwd()

    def test_missing_configured_cwd_falls_back(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        s = TerminalSettings(cwd=str(tmp_path / "missing"))
        assert s.resolved_cwd() == str(tmp_path)


class TestParsing:
    def test_command_string_is_split(self) -> None:
        s = parse_settings_data({"command": "bash -l -i"})
        assert s.command == ["bash", "-l", "-i"]

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown settings key"):
            parse_settings_data({"colour": "red"})

    def test_bad_types_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_settings_data({"rows": "many"})
        with pytest.raises(ValueError):
            parse_settings_data({"rows": 0})
        with pytest.raises(ValueError):
            parse_settings_data({"env": ["A=B"]})
        with pytest.raises(ValueError):
            parse_settings_data({"command": []})

    def test_load_yaml(self, tmp_path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("rows: 30\ncols: 120\ncommand: [/bin/sh]\nenv:\n  LANG: C.UTF-8\n")
        s = load_settings(path)
        assert (s.rows, s.cols) == (30, 120)
        assert s.command == ["/bin/sh"]
        assert s.env == {"LANG": "C.UTF-8"}

    def test_load_from_env_path(self, monkeypatch, tmp_path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("tab_prefix: pane-\n")
        monkeypatch.setenv("TAB_SHELLS_CONFIG", str(path))
        assert load_settings().tab_prefix == "pane-"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("TAB_SHELLS_SHELL", "/bin/sh -i")
        monkeypatch.setenv("TAB_SHELLS_ROWS", "50")
        monkeypatch.setenv("TAB_SHELLS_SIGWINCH_ON_RESIZE", "off")
        s = load_settings()
        assert s.command == ["/bin/sh", "-i"]
        assert s.rows == 50
        assert s.signal_winch_on_resize is False

    def test_render_round_trips_through_yaml(self) -> None:
        text = render_settings(TerminalSettings(command=["/bin/sh"]))
        assert "command:" in text
        assert "- /bin/sh" in text
