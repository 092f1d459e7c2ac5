"""Tests for pre-push hook installation."""

import os
import shutil
import subprocess

import pytest
from click.testing import CliRunner

from qualitygate.cli import cli
from qualitygate.hooks import HOOK_MARKER, HookExistsError, install_pre_push_hook

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def repo(tmp_path):
    subprocess.run(["git", "init", "-q", str(tmp_path)], check=True)
    return tmp_path


class TestInstallHook:
    def test_writes_executable_hook(self, repo):
        hook = install_pre_push_hook(repo)
        assert hook == (repo / ".git" / "hooks" / "pre-push").resolve()
        text = hook.read_text()
        assert HOOK_MARKER in text
        assert "exec qualitygate pre-push\n" in text
        assert os.access(hook, os.X_OK)

    def test_reinstall_over_own_hook(self, repo):
        install_pre_push_hook(repo)
        install_pre_push_hook(repo)

    def test_foreign_hook_is_kept(self, repo):
        hook = repo / ".git" / "hooks" / "pre-push"
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text("#!/bin/sh\nexit 0\n")
        with pytest.raises(HookExistsError):
            install_pre_push_hook(repo)
        assert hook.read_text() == "#!/bin/sh\nexit 0\n"

    def test_force_replaces_foreign_hook(self, repo):
        hook = repo / ".git" / "hooks" / "pre-push"
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text("#!/bin/sh\nexit 0\n")
        install_pre_push_hook(repo, force=True)
        assert HOOK_MARKER in hook.read_text()

    def test_not_a_repository(self, tmp_path):
        with pytest.raises(subprocess.CalledProcessError):
            install_pre_push_hook(tmp_path)


class TestInstallHookCommand:
    def test_cli(self, repo, monkeypatch):
        monkeypatch.chdir(repo)
        result = CliRunner().invoke(cli, ["install-hook"])
        assert result.exit_code == 0, result.output
        assert (repo / ".git" / "hooks" / "pre-push").exists()

    def test_cli_refuses_foreign_hook(self, repo, monkeypatch):
        monkeypatch.chdir(repo)
        hook = repo / ".git" / "hooks" / "pre-push"
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text("#!/bin/sh\n")
        result = CliRunner().invoke(cli, ["install-hook"])
        assert result.exit_code == 1
        assert "already exists" in result.output
