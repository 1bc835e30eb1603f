"""Verified merge of agent branches into the integration branch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..agent.coordinator import PROVENANCE_TRAILER
from ..config import GitAgentsSettings
from ..errors import GitAgentError, GitCommandError, MergeConflictError
from ..git import AgentBranchInfo, GitRepository
from ..process import CommandRunner
from ..verify import VerificationPipeline, VerificationResult
from ..verify.pipeline import StepCallback

logger = logging.getLogger(__name__)


def squash_commit_message(branch: str) -> str:
    return f"feat: merge agent branch {branch}\n\n{PROVENANCE_TRAILER}"


@dataclass(slots=True)
class MergeResult:
    """Outcome of one merge attempt.

    ``merged=False`` with ``conflicting_files`` means a conflict; with an empty
    list and a failed ``verification`` it means verification failed; with
    ``error`` set it means a tooling failure.
    """

    merged: bool
    commit_sha: str | None = None
    conflicting_files: list[str] = field(default_factory=list)
    verification: VerificationResult | None = None
    error: str | None = None

    def to_dict(self, output_limit: int = 2000) -> dict[str, Any]:
        return {
            "merged": self.merged,
            "commitSha": self.commit_sha,
            "conflictingFiles": list(self.conflicting_files),
            "verification": self.verification.to_dict(output_limit) if self.verification else None,
            "error": self.error,
        }


class MergeCoordinator:
    """Check out, verify, merge and clean up agent branches.

    Only one merge may run against a repository at a time: the coordinator
    checks out branches in the primary working copy.
    """

    def __init__(
        self,
        settings: GitAgentsSettings,
        pipeline: VerificationPipeline,
        *,
        runner: CommandRunner | None = None,
        cwd: Path | None = None,
    ) -> None:
        self._settings = settings
        self._pipeline = pipeline
        self._runner = runner or CommandRunner()
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()

    async def _repository(self) -> GitRepository:
        root = await GitRepository(self._runner, self._cwd).repo_root()
        return GitRepository(self._runner, root)

    async def list_branches(self) -> list[AgentBranchInfo]:
        repo = await self._repository()
        default = await repo.default_branch(self._settings.default_branch)
        return await repo.list_agent_branches(default)

    async def merge(
        self,
        branch: str,
        *,
        squash: bool = False,
        skip_verify: bool = False,
        on_step: StepCallback | None = None,
    ) -> MergeResult:
        repo = await self._repository()
        await repo.assert_clean()

        if not await repo.branch_exists(branch):
            return MergeResult(merged=False, error=f"Branch '{branch}' does not exist")

        default = await repo.default_branch(self._settings.default_branch)
        original = await repo.current_branch()
        logger.info(
            "Merging agent branch",
            extra={"branch": branch, "target": default, "squash": squash, "verify": not skip_verify},
        )

        verification: VerificationResult | None = None
        if not skip_verify:
            try:
                await repo.checkout(branch)
            except GitCommandError as exc:
                await self._restore(repo, original)
                return MergeResult(merged=False, error=exc.format())

            verification = await self._pipeline.run(repo.cwd, on_step=on_step)
            if not verification.passed:
                logger.warning("Verification failed; branch left untouched", extra={"branch": branch})
                await self._restore(repo, original)
                return MergeResult(merged=False, verification=verification)

        try:
            await repo.checkout(default)
        except GitCommandError as exc:
            await self._restore(repo, original)
            return MergeResult(merged=False, verification=verification, error=exc.format())

        try:
            await repo.merge(branch, squash=squash)
        except MergeConflictError as exc:
            logger.warning(
                "Merge conflict",
                extra={"branch": branch, "files": exc.conflicting_files},
            )
            await self._rollback(repo, original)
            return MergeResult(
                merged=False,
                conflicting_files=exc.conflicting_files,
                verification=verification,
            )
        except GitCommandError as exc:
            await self._rollback(repo, original)
            return MergeResult(merged=False, verification=verification, error=exc.format())

        try:
            if squash and await repo.has_staged_changes():
                commit_sha = await repo.commit(squash_commit_message(branch))
            else:
                if squash:
                    logger.info("Squash merge brought no changes", extra={"branch": branch})
                commit_sha = await repo.head_sha()
        except GitCommandError as exc:
            await self._rollback(repo, original)
            return MergeResult(merged=False, verification=verification, error=exc.format())

        logger.info("Merged agent branch", extra={"branch": branch, "target": default, "sha": commit_sha})

        try:
            await repo.delete_branch(branch, force=True)
        except GitCommandError as exc:
            logger.warning("Could not delete merged branch", extra={"branch": branch, "error": exc.stderr})

        return MergeResult(merged=True, commit_sha=commit_sha, verification=verification)

    async def _rollback(self, repo: GitRepository, original: str) -> None:
        try:
            await repo.abort_merge()
        except GitAgentError as exc:
            logger.error("Could not abort in-progress merge", extra={"error": str(exc)})
        await self._restore(repo, original)

    async def _restore(self, repo: GitRepository, original: str) -> None:
        try:
            await repo.checkout(original)
        except GitCommandError as exc:
            logger.error(
                "Could not restore original branch",
                extra={"branch": original, "error": exc.stderr},
            )


__all__ = ["MergeCoordinator", "MergeResult", "squash_commit_message"]
