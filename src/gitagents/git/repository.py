"""Thin async wrappers over git's command-line surface."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import DirtyWorkingDirectoryError, GitCommandError, MergeConflictError
from ..process import CommandResult, CommandRunner
from ..process.utils import split_lines
from .models import AgentBranchInfo
from .naming import AGENT_BRANCH_PREFIXES, parse_branch_name

logger = logging.getLogger(__name__)

FALLBACK_DEFAULT_BRANCH = "master"


class GitRepository:
    """Query and mutate one git working copy.

    Every query raises :class:`GitCommandError` when git exits non-zero, except
    :meth:`default_branch`, whose fallback chain is policy.
    """

    def __init__(self, runner: CommandRunner, cwd: Path | str) -> None:
        self._runner = runner
        self._cwd = Path(cwd)

    @property
    def cwd(self) -> Path:
        return self._cwd

    async def git(self, *args: str, timeout: float | None = None) -> CommandResult:
        """Run ``git <args>`` in this working copy without checking the exit code."""

        return await self._runner.run("git", args, cwd=self._cwd, timeout=timeout)

    async def _checked(self, *args: str) -> CommandResult:
        result = await self.git(*args)
        if not result.ok:
            raise GitCommandError("git " + " ".join(args), result.returncode, result.stderr or result.stdout)
        return result

    async def current_branch(self) -> str:
        result = await self._checked("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    async def repo_root(self) -> Path:
        result = await self._checked("rev-parse", "--show-toplevel")
        return Path(os.path.normpath(result.stdout.strip())).resolve()

    async def branch_exists(self, branch: str) -> bool:
        result = await self.git("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")
        return result.ok

    async def default_branch(self, configured: str | None = None) -> str:
        """Resolve the integration branch.

        Order: ``configured``, git's ``init.defaultBranch`` when that branch
        exists, ``main``, ``master``, and finally ``master`` regardless.
        """

        if configured:
            return configured

        result = await self.git("config", "--get", "init.defaultBranch")
        candidate = result.stdout.strip() if result.ok else ""
        if candidate and await self.branch_exists(candidate):
            return candidate

        for name in ("main", "master"):
            if await self.branch_exists(name):
                return name
        return FALLBACK_DEFAULT_BRANCH

    async def changed_files(self) -> list[str]:
        result = await self._checked("status", "--porcelain")
        files: list[str] = []
        for line in result.stdout.splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            files.append(path.strip())
        return files

    async def is_clean(self) -> bool:
        result = await self._checked("status", "--porcelain")
        return result.stdout.strip() == ""

    async def assert_clean(self) -> None:
        files = await self.changed_files()
        if files:
            raise DirtyWorkingDirectoryError(files)

    async def list_branches(self) -> list[str]:
        result = await self._checked("branch", "--format=%(refname:short)")
        return split_lines(result.stdout)

    async def checkout(self, branch: str) -> None:
        await self._checked("checkout", branch)

    async def stage_all(self) -> None:
        await self._checked("add", "-A")

    async def has_staged_changes(self) -> bool:
        result = await self.git("diff", "--cached", "--quiet")
        if result.returncode not in (0, 1):
            raise GitCommandError("git diff --cached --quiet", result.returncode, result.stderr)
        return result.returncode == 1

    async def head_sha(self) -> str:
        result = await self._checked("rev-parse", "HEAD")
        return result.stdout.strip()

    async def commit(self, message: str) -> str:
        """Commit the index and return the new HEAD sha."""

        await self._checked("commit", "-m", message)
        return await self.head_sha()

    async def merge(self, branch: str, *, squash: bool = False) -> None:
        """Merge ``branch`` into the checked-out branch.

        Raises :class:`MergeConflictError` listing every unmerged path when git
        reports a conflict, :class:`GitCommandError` for any other failure.
        A squash merge only stages the result; the caller commits it.
        """

        args = ["merge", "--squash", branch] if squash else ["merge", "--no-edit", branch]
        result = await self.git(*args)
        if result.ok:
            return
        if "CONFLICT" in result.stdout or "CONFLICT" in result.stderr:
            unmerged = await self.git("diff", "--name-only", "--diff-filter=U")
            raise MergeConflictError(branch, split_lines(unmerged.stdout))
        raise GitCommandError("git " + " ".join(args), result.returncode, result.stderr or result.stdout)

    async def abort_merge(self) -> None:
        """Drop any in-progress merge, restoring the pre-merge tree."""

        result = await self.git("merge", "--abort")
        if result.ok:
            return
        # squash merges leave no MERGE_HEAD, so --abort refuses them
        await self._checked("reset", "--merge")

    async def delete_branch(self, branch: str, *, force: bool = False) -> None:
        await self._checked("branch", "-D" if force else "-d", branch)

    async def commit_count(self, base: str, branch: str) -> int:
        result = await self.git("rev-list", "--count", f"{base}..{branch}")
        if not result.ok:
            return 0
        try:
            return int(result.stdout.strip())
        except ValueError:
            return 0

    async def last_commit(self, branch: str) -> tuple[str, str]:
        """Return ``(sha, subject)`` of the tip of ``branch``."""

        result = await self.git("log", "-1", "--format=%H%n%s", branch)
        if not result.ok:
            return "", ""
        lines = result.stdout.splitlines()
        sha = lines[0].strip() if lines else ""
        subject = lines[1].strip() if len(lines) > 1 else ""
        return sha, subject

    async def list_agent_branches(self, default_branch: str | None = None) -> list[AgentBranchInfo]:
        """Describe every local agent branch, newest first.

        Branches whose names do not follow a known grammar are skipped.
        """

        base = default_branch or await self.default_branch()
        infos: list[AgentBranchInfo] = []
        for branch in await self.list_branches():
            if not branch.startswith(AGENT_BRANCH_PREFIXES):
                continue
            parsed = parse_branch_name(branch)
            if parsed is None:
                logger.debug("Skipping unrecognised agent branch", extra={"branch": branch})
                continue
            sha, subject = await self.last_commit(branch)
            infos.append(
                AgentBranchInfo(
                    branch_name=branch,
                    agent_name=parsed.agent_name,
                    timestamp=parsed.timestamp,
                    slug=parsed.slug,
                    commit_count=await self.commit_count(base, branch),
                    last_commit_sha=sha,
                    last_commit_message=subject,
                )
            )
        infos.sort(key=lambda info: info.timestamp.timestamp() if info.timestamp else float("-inf"), reverse=True)
        return infos


__all__ = ["GitRepository", "FALLBACK_DEFAULT_BRANCH"]
