"""Verified merge exports."""

from .coordinator import MergeCoordinator, MergeResult, squash_commit_message

__all__ = ["MergeCoordinator", "MergeResult", "squash_commit_message"]
