"""Agent execution on isolated branches."""

from .coordinator import AgentExecutionCoordinator, build_commit_message
from .models import AgentRunResult, AgentTask

__all__ = [
    "AgentExecutionCoordinator",
    "AgentRunResult",
    "AgentTask",
    "build_commit_message",
]
