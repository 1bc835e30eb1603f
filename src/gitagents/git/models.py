"""Records describing worktrees and agent branches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(slots=True, frozen=True)
class WorktreeHandle:
    path: Path
    branch: str
    repo_root: Path


@dataclass(slots=True, frozen=True)
class ParsedBranch:
    agent_name: str
    timestamp: datetime | None
    slug: str
    wave: int | None = None


@dataclass(slots=True, frozen=True)
class AgentBranchInfo:
    branch_name: str
    agent_name: str
    timestamp: datetime | None
    slug: str
    commit_count: int
    last_commit_sha: str
    last_commit_message: str


__all__ = ["AgentBranchInfo", "ParsedBranch", "WorktreeHandle"]
