"""Run one agent task on an isolated branch."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..config import GitAgentsSettings
from ..errors import GitAgentError
from ..git import BranchNamer, GitRepository, WorktreeHandle, WorktreeManager, make_slug, worktree_dirname
from ..process import CommandRunner, CommandRunnerError
from ..profiles import AgentConfig, AgentConfigLoader
from .models import AgentRunResult, AgentTask

logger = logging.getLogger(__name__)

PROVENANCE_TRAILER = "Generated-By: gitagents agent runner"


def build_commit_message(agent_name: str, task: str) -> str:
    return (
        f"feat({agent_name}): {make_slug(task)}\n\n"
        f"Task: {task}\n\n"
        f"Agent: {agent_name}\n"
        f"{PROVENANCE_TRAILER}"
    )


@dataclass(slots=True)
class _AgentInvocation:
    returncode: int | None
    output: str
    error: str | None


class AgentExecutionCoordinator:
    """Isolate, run, commit and clean up a single agent task.

    The caller's working copy must be clean. The agent runs in a new worktree
    on a new branch; whatever it changes is committed there in one commit and
    the worktree is removed whether or not the run succeeded.
    """

    def __init__(
        self,
        settings: GitAgentsSettings,
        *,
        runner: CommandRunner | None = None,
        namer: BranchNamer | None = None,
        cwd: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._runner = runner or CommandRunner()
        self._namer = namer or BranchNamer()
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._clock = clock

    async def run(self, task: AgentTask) -> AgentRunResult:
        started = self._clock()

        repo_root = await GitRepository(self._runner, self._cwd).repo_root()
        repo = GitRepository(self._runner, repo_root)
        await repo.assert_clean()

        loader = AgentConfigLoader.for_repository(
            repo_root, self._settings.agent_paths, self._settings.agent_extensions
        )
        config = loader.load(task.agent_name).unwrap()
        logger.info(
            "Loaded agent descriptor",
            extra={"agent": config.name, "path": str(config.source), "description": config.description},
        )

        branch = self._namer.generate(task.agent_name, task.task)
        worktree_path = self._settings.resolve_worktree_dir(repo_root) / worktree_dirname(branch)

        worktrees = WorktreeManager(self._runner, repo_root)
        async with worktrees.isolated(worktree_path, branch) as handle:
            invocation = await self._invoke_agent(config, task, handle)
            commit_sha, commit_error = await self._commit_if_changed(task, handle)

        result = AgentRunResult(
            agent_name=task.agent_name,
            branch_name=branch,
            worktree_path=worktree_path,
            commit_sha=commit_sha,
            has_changes=commit_sha is not None,
            duration_ms=int((self._clock() - started) * 1000),
            agent_returncode=invocation.returncode,
            agent_error=invocation.error,
            agent_output=invocation.output,
            commit_error=commit_error,
        )
        logger.info(
            "Agent run finished",
            extra={
                "agent": task.agent_name,
                "branch": branch,
                "has_changes": result.has_changes,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    async def _invoke_agent(
        self,
        config: AgentConfig,
        task: AgentTask,
        handle: WorktreeHandle,
    ) -> _AgentInvocation:
        args = ["--agent", task.agent_name, "--print", task.task]
        logger.info(
            "Executing agent",
            extra={"agent": config.name, "model": config.model, "worktree": str(handle.path)},
        )
        try:
            result = await self._runner.run(
                self._settings.agent_executable,
                args,
                cwd=handle.path,
                timeout=self._settings.agent_timeout_seconds,
            )
        except CommandRunnerError as exc:
            logger.warning(
                "Agent invocation failed; changes so far are kept on the branch",
                extra={"agent": task.agent_name, "error": str(exc)},
            )
            return _AgentInvocation(returncode=None, output="", error=str(exc))

        error = None
        if not result.ok:
            error = f"Agent exited with code {result.returncode}"
            logger.warning(error, extra={"agent": task.agent_name, "branch": handle.branch})
        return _AgentInvocation(returncode=result.returncode, output=result.output, error=error)

    async def _commit_if_changed(
        self, task: AgentTask, handle: WorktreeHandle
    ) -> tuple[str | None, str | None]:
        """Commit everything the agent left in the worktree.

        Returns ``(sha, None)`` after a commit, ``(None, None)`` when there was
        nothing to commit and ``(None, reason)`` when committing failed.
        """

        worktree = GitRepository(self._runner, handle.path)
        try:
            if await worktree.is_clean():
                logger.info("No changes to commit", extra={"branch": handle.branch})
                return None, None
            await worktree.stage_all()
            sha = await worktree.commit(build_commit_message(task.agent_name, task.task))
        except (GitAgentError, CommandRunnerError) as exc:
            logger.warning(
                "Could not commit agent changes",
                extra={"branch": handle.branch, "error": str(exc)},
            )
            return None, str(exc)
        logger.info("Committed agent changes", extra={"branch": handle.branch, "sha": sha})
        return sha, None


__all__ = ["AgentExecutionCoordinator", "PROVENANCE_TRAILER", "build_commit_message"]
