"""Agent task and run report models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(slots=True, frozen=True)
class AgentTask:
    """One unit of work: which agent, and what it should do."""

    agent_name: str
    task: str


@dataclass(slots=True)
class AgentRunResult:
    """Summary of a single agent run."""

    agent_name: str
    branch_name: str
    worktree_path: Path
    commit_sha: str | None
    has_changes: bool
    duration_ms: int
    agent_returncode: int | None = None
    agent_error: str | None = None
    agent_output: str = ""
    commit_error: str | None = None

    @property
    def agent_succeeded(self) -> bool:
        return self.agent_error is None and self.agent_returncode == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "branchName": self.branch_name,
            "worktreePath": str(self.worktree_path),
            "commitSha": self.commit_sha,
            "hasChanges": self.has_changes,
            "durationMs": self.duration_ms,
        }


__all__ = ["AgentRunResult", "AgentTask"]
