"""Tests for `issuegraph config`."""

from __future__ import annotations

import json

from issuegraph.cli import main
from issuegraph.commands.config_cmd import MASK, mask_secrets


class TestMaskSecrets:
    def test_masks_only_set_secrets(self):
        config = {"tracker": {"api_token": "abc", "bearer_token": "", "email": "a@b.co"}}
        masked = mask_secrets(config)
        assert masked["tracker"] == {"api_token": MASK, "bearer_token": "", "email": "a@b.co"}
        assert config["tracker"]["api_token"] == "abc"


class TestConfigShow:
    """Tests for `config show`."""

    def test_show_toml(self, project_dir, capsys):
        assert main(["config", "show"]) == 0
        out = capsys.readouterr().out
        assert "[tracker]" in out
        assert 'base_url = "https://jira.example.com"' in out
        assert "secret-token" not in out
        assert MASK in out

    def test_show_section_json(self, project_dir, capsys):
        assert main(["config", "show", "--section", "hierarchy", "-j"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["max_depth"] == 4
        assert data["child_limit"] == 20

    def test_show_single_value(self, project_dir, capsys):
        assert main(["config", "show", "--section", "tracker.email"]) == 0
        assert capsys.readouterr().out.strip() == "jane@example.com"

    def test_unknown_section(self, project_dir, capsys):
        assert main(["config", "show", "--section", "nope"]) == 1
        assert "Unknown section 'nope'" in capsys.readouterr().err

    def test_env_override_shown(self, project_dir, monkeypatch, capsys):
        monkeypatch.setenv("ISSUEGRAPH_STRUCTURE_ID", "42")
        assert main(["config", "show", "--section", "structure", "-j"]) == 0
        assert json.loads(capsys.readouterr().out)["id"] == 42


class TestConfigPath:
    """Tests for `config path`."""

    def test_found(self, project_dir, capsys):
        assert main(["config", "path"]) == 0
        out = capsys.readouterr().out.strip()
        assert out == str((project_dir / ".issuegraph.toml").resolve())

    def test_defaults(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["config", "path"]) == 0
        assert "No .issuegraph.toml found" in capsys.readouterr().out

    def test_explicit_missing(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "missing.toml"), "config", "path"]) == 1

    def test_no_action(self, project_dir, capsys):
        assert main(["config"]) == 1
        assert "Usage" in capsys.readouterr().err
