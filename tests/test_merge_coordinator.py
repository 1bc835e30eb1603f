from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import commit_file, init_repo, requires_git, run_git
from gitagents.errors import DirtyWorkingDirectoryError
from gitagents.merge import MergeCoordinator, squash_commit_message
from gitagents.process import CommandResult
from gitagents.process.runner import FakeCommandRunner
from gitagents.verify import StepDefinition, SubsystemDefinition, VerificationPipeline

pytestmark = requires_git

BRANCH = "agent/demo/20240305-140709-add-footer-link-ab12cd"


def pipeline(*, passing: bool) -> VerificationPipeline:
    runner = FakeCommandRunner(
        responder=lambda cmd, cwd: CommandResult(
            args=cmd, returncode=0 if passing else 1, stdout="", stderr="" if passing else "tests failed\n"
        )
    )
    subsystems = [
        SubsystemDefinition(
            name="backend",
            steps=[
                StepDefinition(name="build", command=["build"]),
                StepDefinition(name="test", command=["test"]),
            ],
        )
    ]
    return VerificationPipeline(subsystems, runner=runner)


def make_agent_branch(repo: Path, *files: tuple[str, str]) -> None:
    run_git(repo, "checkout", "-q", "-b", BRANCH)
    for name, content in files:
        commit_file(repo, name, content, f"add {name}")
    run_git(repo, "checkout", "-q", "main")


def coordinator(repo: Path, make_settings, *, passing: bool = True) -> MergeCoordinator:
    return MergeCoordinator(make_settings(), pipeline(passing=passing), cwd=repo)


def head(repo: Path, ref: str = "HEAD") -> str:
    return run_git(repo, "rev-parse", ref)


def branch_exists(repo: Path, branch: str) -> bool:
    return run_git(repo, "branch", "--list", branch) != ""


def has_merge_in_progress(repo: Path) -> bool:
    return (repo / ".git" / "MERGE_HEAD").exists()


def test_verified_merge_deletes_branch(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("footer.html", "<footer/>\n"))
    steps: list[str] = []

    result = asyncio.run(
        coordinator(git_repo, make_settings).merge(BRANCH, on_step=lambda s, n, _: steps.append(f"{s}/{n}"))
    )

    assert result.merged
    assert result.commit_sha == head(git_repo, "main")
    assert result.verification is not None and result.verification.passed
    assert steps == ["backend/build", "backend/test"]
    assert (git_repo / "footer.html").exists()
    assert not branch_exists(git_repo, BRANCH)
    assert run_git(git_repo, "rev-parse", "--abbrev-ref", "HEAD") == "main"


def test_skip_verify_merges_without_running_steps(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("footer.html", "<footer/>\n"))
    merger = coordinator(git_repo, make_settings, passing=False)

    result = asyncio.run(merger.merge(BRANCH, skip_verify=True))

    assert result.merged
    assert result.verification is None
    assert result.commit_sha == head(git_repo, "main")
    assert not branch_exists(git_repo, BRANCH)


def test_failed_verification_leaves_everything_in_place(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("footer.html", "<footer/>\n"))
    run_git(git_repo, "checkout", "-q", "-b", "work")
    main_before = head(git_repo, "main")
    branch_before = head(git_repo, BRANCH)

    result = asyncio.run(coordinator(git_repo, make_settings, passing=False).merge(BRANCH))

    assert not result.merged
    assert result.commit_sha is None
    assert result.conflicting_files == []
    assert result.verification is not None and not result.verification.passed
    assert "tests failed" in result.verification.subsystem("backend").steps["build"].output
    assert head(git_repo, "main") == main_before
    assert head(git_repo, BRANCH) == branch_before
    assert run_git(git_repo, "rev-parse", "--abbrev-ref", "HEAD") == "work"
    assert run_git(git_repo, "status", "--porcelain") == ""


@pytest.mark.parametrize("squash", [False, True])
def test_conflict_is_rolled_back(git_repo: Path, make_settings, squash: bool) -> None:
    make_agent_branch(git_repo, ("README.md", "agent version\n"))
    main_before = commit_file(git_repo, "README.md", "main version\n")

    result = asyncio.run(coordinator(git_repo, make_settings).merge(BRANCH, squash=squash))

    assert not result.merged
    assert result.conflicting_files == ["README.md"]
    assert result.error is None
    assert head(git_repo, "main") == main_before
    assert not has_merge_in_progress(git_repo)
    assert run_git(git_repo, "status", "--porcelain") == ""
    assert (git_repo / "README.md").read_text(encoding="utf-8") == "main version\n"
    assert branch_exists(git_repo, BRANCH)
    assert run_git(git_repo, "rev-parse", "--abbrev-ref", "HEAD") == "main"


def test_squash_adds_one_commit_with_same_tree(tmp_path: Path, make_settings) -> None:
    files = (("a.txt", "a\n"), ("b.txt", "b\n"), ("c.txt", "c\n"))
    plain_repo = init_repo(tmp_path / "plain")
    squash_repo = init_repo(tmp_path / "squash")
    for repo in (plain_repo, squash_repo):
        commit_file(repo, "base.txt", "diverge\n", "advance main")
        run_git(repo, "checkout", "-q", "-b", BRANCH, "HEAD~1")
        for name, content in files:
            commit_file(repo, name, content)
        run_git(repo, "checkout", "-q", "main")

    plain = asyncio.run(coordinator(plain_repo, make_settings).merge(BRANCH, skip_verify=True))
    squashed = asyncio.run(coordinator(squash_repo, make_settings).merge(BRANCH, squash=True, skip_verify=True))

    assert plain.merged and squashed.merged
    assert run_git(plain_repo, "rev-list", "--count", "main") == "6"
    assert run_git(squash_repo, "rev-list", "--count", "main") == "3"
    assert head(plain_repo, "HEAD^{tree}") == head(squash_repo, "HEAD^{tree}")
    assert run_git(squash_repo, "log", "-1", "--format=%B") == squash_commit_message(BRANCH)
    assert run_git(squash_repo, "rev-list", "--parents", "-n", "1", "HEAD").count(" ") == 1


@pytest.mark.parametrize("squash", [False, True])
def test_branch_without_commits_merges_as_no_op(git_repo: Path, make_settings, squash: bool) -> None:
    run_git(git_repo, "branch", BRANCH)
    main_before = head(git_repo, "main")

    result = asyncio.run(coordinator(git_repo, make_settings).merge(BRANCH, squash=squash, skip_verify=True))

    assert result.merged
    assert result.error is None
    assert result.commit_sha == main_before
    assert head(git_repo, "main") == main_before
    assert not branch_exists(git_repo, BRANCH)
    assert run_git(git_repo, "status", "--porcelain") == ""


def test_fast_forward_merge_adds_branch_commits(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("a.txt", "a\n"), ("b.txt", "b\n"))
    tip = head(git_repo, BRANCH)

    result = asyncio.run(coordinator(git_repo, make_settings).merge(BRANCH, skip_verify=True))

    assert result.merged
    assert result.commit_sha == tip
    assert run_git(git_repo, "rev-list", "--count", "main") == "3"


def test_dirty_working_copy_is_rejected(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("footer.html", "<footer/>\n"))
    (git_repo / "README.md").write_text("edited\n", encoding="utf-8")

    with pytest.raises(DirtyWorkingDirectoryError):
        asyncio.run(coordinator(git_repo, make_settings).merge(BRANCH))

    assert branch_exists(git_repo, BRANCH)


def test_missing_branch_reports_error(git_repo: Path, make_settings) -> None:
    result = asyncio.run(coordinator(git_repo, make_settings).merge("agent/demo/nope"))

    assert not result.merged
    assert result.error is not None and "does not exist" in result.error
    payload = result.to_dict()
    assert payload["merged"] is False
    assert payload["verification"] is None


def test_list_branches(git_repo: Path, make_settings) -> None:
    make_agent_branch(git_repo, ("a.txt", "a\n"), ("b.txt", "b\n"))
    run_git(git_repo, "branch", "topic")

    branches = asyncio.run(coordinator(git_repo, make_settings).list_branches())

    assert [info.branch_name for info in branches] == [BRANCH]
    assert branches[0].commit_count == 2
    assert branches[0].last_commit_message == "add b.txt"


def test_configured_default_branch_is_merge_target(git_repo: Path, make_settings) -> None:
    run_git(git_repo, "branch", "develop")
    make_agent_branch(git_repo, ("footer.html", "<footer/>\n"))
    main_before = head(git_repo, "main")
    merger = MergeCoordinator(make_settings(default_branch="develop"), pipeline(passing=True), cwd=git_repo)

    result = asyncio.run(merger.merge(BRANCH, skip_verify=True))

    assert result.merged
    assert head(git_repo, "develop") == result.commit_sha
    assert head(git_repo, "main") == main_before
