"""Agent descriptor discovery and parsing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal

from pydantic import ValidationError

from ..errors import AgentConfigError, AgentNotFoundError, GitAgentError
from .models import AgentConfig

logger = logging.getLogger(__name__)

FRONTMATTER_MARKER = "---"


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def parse_frontmatter(text: str) -> dict[str, str]:
    """Parse the ``key: value`` block between two leading ``---`` lines.

    Returns an empty mapping when the text does not open with the marker or
    the block is never closed.
    """

    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_MARKER:
        return {}

    fields: dict[str, str] = {}
    for line in lines[1:]:
        if line.strip() == FRONTMATTER_MARKER:
            return fields
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        fields[key] = _strip_quotes(value.strip())
    return {}


@dataclass(slots=True, frozen=True)
class ConfigLoadResult:
    """Outcome of a descriptor lookup: ``found``, ``not_found`` or ``invalid``."""

    status: Literal["found", "not_found", "invalid"]
    agent_name: str
    config: AgentConfig | None = None
    path: Path | None = None
    searched: tuple[Path, ...] = field(default_factory=tuple)
    error: GitAgentError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "found"

    def unwrap(self) -> AgentConfig:
        """Return the config or raise the carried error."""

        if self.config is not None:
            return self.config
        if self.error is not None:
            raise self.error
        raise GitAgentError(f"Agent '{self.agent_name}' lookup ended with status '{self.status}' but no error")


class AgentConfigLoader:
    """Locate the first descriptor for an agent across ordered directories and extensions."""

    def __init__(self, search_paths: Iterable[Path], extensions: Iterable[str] = (".md", ".agent.md")) -> None:
        self._search_paths = [Path(path) for path in search_paths]
        self._extensions = list(extensions)

    @classmethod
    def for_repository(
        cls,
        repo_root: Path,
        search_paths: Iterable[Path],
        extensions: Iterable[str],
    ) -> "AgentConfigLoader":
        """Build a loader whose relative search paths resolve against ``repo_root``."""

        resolved = [path if path.is_absolute() else repo_root / path for path in map(Path, search_paths)]
        return cls(resolved, extensions)

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def candidates(self, agent_name: str) -> list[Path]:
        return [base / f"{agent_name}{ext}" for base in self._search_paths for ext in self._extensions]

    def load(self, agent_name: str) -> ConfigLoadResult:
        searched: list[Path] = []
        for candidate in self.candidates(agent_name):
            searched.append(candidate)
            if candidate.is_file():
                return self._parse(agent_name, candidate, tuple(searched))

        logger.debug("Agent descriptor not found", extra={"agent": agent_name, "searched": len(searched)})
        return ConfigLoadResult(
            status="not_found",
            agent_name=agent_name,
            searched=tuple(searched),
            error=AgentNotFoundError(agent_name, searched),
        )

    def _parse(self, agent_name: str, path: Path, searched: tuple[Path, ...]) -> ConfigLoadResult:
        def invalid(reason: str) -> ConfigLoadResult:
            return ConfigLoadResult(
                status="invalid",
                agent_name=agent_name,
                path=path,
                searched=searched,
                error=AgentConfigError(agent_name, path, reason),
            )

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return invalid(f"Could not read descriptor: {exc}")

        header = parse_frontmatter(text)
        if "description" not in header:
            return invalid('Missing "description" in frontmatter')

        document: dict[str, object] = {
            "name": header.get("name") or agent_name,
            "description": header["description"],
            "source": path,
        }
        for key in ("tools", "model", "permissionMode"):
            if header.get(key):
                document[key] = header[key]

        try:
            config = AgentConfig.model_validate(document)
        except ValidationError as exc:
            return invalid(str(exc))

        return ConfigLoadResult(status="found", agent_name=agent_name, config=config, path=path, searched=searched)


__all__ = ["AgentConfigLoader", "ConfigLoadResult", "parse_frontmatter"]
