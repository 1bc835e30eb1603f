from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from gitagents.config import GitAgentsSettings

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def run_git(cwd: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    run_git(repo, "add", name)
    run_git(repo, "commit", "-q", "-m", message or f"update {name}")
    return run_git(repo, "rev-parse", "HEAD")


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True)
    run_git(path, "init", "-q")
    run_git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(path, "config", "user.email", "tests@example.com")
    run_git(path, "config", "user.name", "Test Runner")
    run_git(path, "config", "commit.gpgsign", "false")
    commit_file(path, "README.md", "hello\n", "initial commit")
    return path


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    return init_repo(tmp_path / "repo")


@pytest.fixture
def make_settings(tmp_path: Path):
    def factory(**overrides) -> GitAgentsSettings:
        values = {"worktree_dir": tmp_path / "worktrees"}
        values.update(overrides)
        return GitAgentsSettings(**values)

    return factory
