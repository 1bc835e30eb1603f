"""Isolated worktree lifecycle."""

from __future__ import annotations

import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from ..errors import BranchExistsError, WorktreeError
from ..process import CommandRunner, CommandRunnerError
from .models import WorktreeHandle
from .repository import GitRepository

logger = logging.getLogger(__name__)


class WorktreeManager:
    """Create and tear down worktrees bound to fresh branches."""

    def __init__(self, runner: CommandRunner, repo_root: Path) -> None:
        self._repo = GitRepository(runner, repo_root)
        self._repo_root = Path(repo_root)

    async def create(self, path: Path, branch: str) -> WorktreeHandle:
        """Add a worktree at ``path`` on the new branch ``branch``.

        The branch must not exist yet; a collision raises
        :class:`BranchExistsError` rather than reusing the name.
        """

        path = Path(path)
        if await self._repo.branch_exists(branch):
            raise BranchExistsError(branch)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorktreeError(path, f"Failed to create parent directory: {exc}") from exc

        try:
            result = await self._repo.git("worktree", "add", "-b", branch, str(path))
        except CommandRunnerError as exc:
            raise WorktreeError(path, f"Failed to create worktree: {exc}") from exc
        if not result.ok:
            raise WorktreeError(path, result.stderr or result.stdout)

        logger.info("Created worktree", extra={"path": str(path), "branch": branch})
        return WorktreeHandle(path=path, branch=branch, repo_root=self._repo_root)

    async def remove(self, path: Path) -> bool:
        """Best-effort removal of the worktree at ``path``.

        Never raises. Returns ``True`` when the directory is gone afterwards.
        """

        path = Path(path)
        try:
            result = await self._repo.git("worktree", "remove", "--force", str(path))
            if result.ok:
                logger.info("Removed worktree", extra={"path": str(path)})
                return True
            logger.debug("git worktree remove failed", extra={"path": str(path), "stderr": result.stderr})
        except CommandRunnerError as exc:
            logger.debug("git worktree remove could not run", extra={"path": str(path), "error": str(exc)})

        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not delete worktree directory", extra={"path": str(path), "error": str(exc)})

        try:
            prune = await self._repo.git("worktree", "prune")
            if not prune.ok:
                logger.warning("git worktree prune failed", extra={"stderr": prune.stderr})
        except CommandRunnerError as exc:
            logger.warning("git worktree prune could not run", extra={"error": str(exc)})

        removed = not path.exists()
        if not removed:
            logger.warning("Worktree left behind", extra={"path": str(path)})
        return removed

    @asynccontextmanager
    async def isolated(self, path: Path, branch: str) -> AsyncIterator[WorktreeHandle]:
        """Yield a fresh worktree and release it on every exit path."""

        handle = await self.create(path, branch)
        try:
            yield handle
        finally:
            await self.remove(handle.path)


__all__ = ["WorktreeManager"]
