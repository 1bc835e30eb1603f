"""Configuration management for gitagents."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_AGENT_PATHS = (Path(".claude/agents"), Path(".github/agents"))
_DEFAULT_EXTENSIONS = (".md", ".agent.md")


class GitAgentsSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    agent_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=_DEFAULT_AGENT_PATHS, validation_alias="GITAGENTS_AGENT_PATHS"
    )
    agent_extensions: Annotated[tuple[str, ...], NoDecode] = Field(
        default=_DEFAULT_EXTENSIONS, validation_alias="GITAGENTS_AGENT_EXTENSIONS"
    )
    agent_executable: str = Field(default="claude", validation_alias="GITAGENTS_AGENT_EXECUTABLE")
    agent_timeout_seconds: float = Field(default=30 * 60, validation_alias="GITAGENTS_AGENT_TIMEOUT")
    step_timeout_seconds: float = Field(default=5 * 60, validation_alias="GITAGENTS_STEP_TIMEOUT")
    output_limit: int = Field(default=2000, validation_alias="GITAGENTS_OUTPUT_LIMIT")
    worktree_dir: Path | None = Field(default=None, validation_alias="GITAGENTS_WORKTREE_DIR")
    default_branch: str | None = Field(default=None, validation_alias="GITAGENTS_DEFAULT_BRANCH")
    verification_file: Path | None = Field(
        default=None, validation_alias="GITAGENTS_VERIFICATION_FILE"
    )
    wave_file: Path | None = Field(default=None, validation_alias="GITAGENTS_WAVE_FILE")
    log_level: str = Field(default="INFO", validation_alias="GITAGENTS_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "GITAGENTS_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("agent_paths", mode="before")
    @classmethod
    def _parse_agent_paths(cls, value):
        if value is None or value == "":
            return _DEFAULT_AGENT_PATHS
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or _DEFAULT_AGENT_PATHS
        raise TypeError("GITAGENTS_AGENT_PATHS must be a list of paths or a path-separated string")

    @field_validator("agent_extensions", mode="before")
    @classmethod
    def _parse_extensions(cls, value):
        if value is None or value == "":
            return _DEFAULT_EXTENSIONS
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return tuple(item if item.startswith(".") else f".{item}" for item in value)
        raise TypeError("GITAGENTS_AGENT_EXTENSIONS must be a comma-separated string or a list")

    @field_validator("agent_timeout_seconds", "step_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts must be positive")
        return value

    @field_validator("output_limit")
    @classmethod
    def _validate_output_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("GITAGENTS_OUTPUT_LIMIT must be >= 1")
        return value

    @field_validator("default_branch")
    @classmethod
    def _blank_branch_is_unset(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    def resolve_worktree_dir(self, repo_root: Path) -> Path:
        """Return the parent directory for isolated worktrees of ``repo_root``."""

        if self.worktree_dir is None:
            return repo_root.parent / f".{repo_root.name}-worktrees"
        path = self.worktree_dir.expanduser()
        if not path.is_absolute():
            path = repo_root / path
        return path.resolve()


@lru_cache(maxsize=1)
def get_settings() -> GitAgentsSettings:
    """Return cached settings instance."""

    settings = GitAgentsSettings()
    if settings.verification_file is not None:
        settings.verification_file = settings.verification_file.expanduser().resolve()
    if settings.wave_file is not None:
        settings.wave_file = settings.wave_file.expanduser().resolve()
    return settings


__all__ = ["GitAgentsSettings", "get_settings"]
