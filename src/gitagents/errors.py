"""Error taxonomy for agent runs and merges."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .verify import VerificationResult


class GitAgentError(RuntimeError):
    """Base class for failures reported to the operator."""

    def format(self) -> str:
        """Render a human-readable diagnostic."""

        return str(self)


class DirtyWorkingDirectoryError(GitAgentError):
    """The working copy has staged or unstaged changes."""

    def __init__(self, files: Sequence[str]) -> None:
        super().__init__(f"Working directory has {len(files)} uncommitted change(s)")
        self.files = list(files)

    def format(self) -> str:
        lines = ["Working directory is not clean. Commit or stash these changes first:"]
        lines.extend(f"  - {name}" for name in self.files[:20])
        if len(self.files) > 20:
            lines.append(f"  ... and {len(self.files) - 20} more")
        return "\n".join(lines)


class AgentNotFoundError(GitAgentError):
    """No descriptor file exists for the requested agent."""

    def __init__(self, agent_name: str, searched: Iterable[Path]) -> None:
        self.agent_name = agent_name
        self.searched = [Path(path) for path in searched]
        super().__init__(f"Agent '{agent_name}' not found")

    def format(self) -> str:
        lines = [f"Agent '{self.agent_name}' not found. Searched:"]
        lines.extend(f"  - {path}" for path in self.searched)
        return "\n".join(lines)


class AgentConfigError(GitAgentError):
    """A descriptor file was found but is unusable."""

    def __init__(self, agent_name: str, path: Path, reason: str) -> None:
        self.agent_name = agent_name
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Invalid config for agent '{agent_name}' in {path}: {reason}")


class WorktreeError(GitAgentError):
    """An isolated worktree could not be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason.strip()
        super().__init__(f"Worktree error at {path}: {self.reason}")


class BranchExistsError(GitAgentError):
    """A generated branch name is already taken."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch '{branch}' already exists")


class GitCommandError(GitAgentError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr.strip()
        super().__init__(f"'{command}' failed with exit code {exit_code}: {self.stderr}")


class MergeConflictError(GitAgentError):
    """A merge stopped on conflicting files."""

    def __init__(self, branch: str, files: Sequence[str]) -> None:
        self.branch = branch
        self.conflicting_files = list(files)
        super().__init__(f"Merge of '{branch}' conflicts in {len(self.conflicting_files)} file(s)")

    def format(self) -> str:
        lines = [str(self) + ":"]
        lines.extend(f"  - {name}" for name in self.conflicting_files)
        return "\n".join(lines)


class VerificationFailedError(GitAgentError):
    """One or more verification steps failed."""

    def __init__(self, result: "VerificationResult") -> None:
        self.result = result
        failed = [f"{subsystem}/{step}" for subsystem, step, _ in result.failures()]
        super().__init__("Verification failed: " + ", ".join(failed))


class WaveNotFoundError(GitAgentError):
    """The requested wave is not in the registry."""

    def __init__(self, wave: int, known: Iterable[int]) -> None:
        self.wave = wave
        self.known = sorted(known)
        known_text = ", ".join(str(number) for number in self.known) or "none"
        super().__init__(f"Wave {wave} not found (known waves: {known_text})")


__all__ = [
    "AgentConfigError",
    "AgentNotFoundError",
    "BranchExistsError",
    "DirtyWorkingDirectoryError",
    "GitAgentError",
    "GitCommandError",
    "MergeConflictError",
    "VerificationFailedError",
    "WaveNotFoundError",
    "WorktreeError",
]
