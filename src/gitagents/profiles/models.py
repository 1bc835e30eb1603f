"""Agent descriptor models."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Metadata parsed from an agent descriptor's header block."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., description="Agent identifier.")
    description: str = Field(..., description="What the agent is for. Required.")
    tools: list[str] = Field(
        default_factory=list,
        description="Ordered tool names the agent may use.",
    )
    model: str = Field(default="inherit", description="Model override, or 'inherit'.")
    permission_mode: str = Field(
        default="default",
        alias="permissionMode",
        description="Permission mode passed through to the agent runtime.",
    )
    source: Path | None = Field(default=None, description="Descriptor file the config came from.")

    @field_validator("name", "description")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("must not be empty")
        return normalized

    @field_validator("tools", mode="before")
    @classmethod
    def _split_tools(cls, value: Any):  # type: ignore[override]
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return list(value)
        raise TypeError("tools must be a comma-separated string or a list of strings")


__all__ = ["AgentConfig"]
