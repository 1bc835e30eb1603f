"""Agent descriptor models and loader exports."""

from .loader import AgentConfigLoader, ConfigLoadResult, parse_frontmatter
from .models import AgentConfig

__all__ = [
    "AgentConfig",
    "AgentConfigLoader",
    "ConfigLoadResult",
    "parse_frontmatter",
]
