"""Git repository state, branch naming and worktree isolation."""

from .models import AgentBranchInfo, ParsedBranch, WorktreeHandle
from .naming import BranchNamer, make_slug, parse_branch_name, sanitize, worktree_dirname
from .repository import GitRepository
from .worktree import WorktreeManager

__all__ = [
    "AgentBranchInfo",
    "BranchNamer",
    "GitRepository",
    "ParsedBranch",
    "WorktreeHandle",
    "WorktreeManager",
    "make_slug",
    "parse_branch_name",
    "sanitize",
    "worktree_dirname",
]
