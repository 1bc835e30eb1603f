"""Wave definitions: named, ordered batches of agent tasks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..agent import AgentTask
from ..errors import GitAgentError


class WaveConfigError(GitAgentError):
    """Raised when a wave definition file cannot be used."""


@dataclass(slots=True, frozen=True)
class Wave:
    number: int
    name: str
    tasks: tuple[AgentTask, ...]

    @property
    def tag(self) -> str:
        return f"wave{self.number}"


class WaveTaskDefinition(BaseModel):
    agent: str
    task: str

    @field_validator("agent", "task")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("must not be empty")
        return normalized


class WaveDefinition(BaseModel):
    name: str
    agents: list[WaveTaskDefinition] = Field(default_factory=list)


def _wave(number: int, name: str, *pairs: tuple[str, str]) -> Wave:
    return Wave(number=number, name=name, tasks=tuple(AgentTask(agent, task) for agent, task in pairs))


BUILTIN_WAVES: Mapping[int, Wave] = MappingProxyType(
    {
        1: _wave(
            1,
            "Foundation",
            ("wave1-registration", "implement complete registration flow with email verification"),
            ("wave1-openapi", "setup OpenAPI type generation from Spring Boot to TypeScript"),
            ("wave1-password-reset", "implement password reset flow with email tokens"),
            ("wave1-rbac-core", "implement core RBAC system with roles and permissions"),
        ),
        2: _wave(
            2,
            "Core Features",
            ("wave2-rbac-ui", "create RBAC admin UI for roles and permissions management"),
            ("wave2-alerts", "implement opportunity alerts system with configurable rules"),
            ("wave2-notifications", "create in-app notification system with bell icon"),
            ("wave2-audit-log", "implement audit trail system for all entity changes"),
            ("wave2-user-prefs", "create user preferences system for theme and settings"),
        ),
        3: _wave(
            3,
            "Advanced Features",
            ("wave3-sso-oauth", "implement OAuth2 login with Google and Microsoft"),
            ("wave3-mfa", "implement TOTP multi-factor authentication"),
            ("wave3-tenant-admin", "create tenant admin portal for settings and branding"),
            ("wave3-search-enhance", "integrate Elasticsearch for advanced search"),
            ("wave3-export-enhance", "implement PDF export and scheduled exports"),
            ("wave3-dashboard-enhance", "add new dashboard widgets and charts"),
        ),
        4: _wave(
            4,
            "Financial & Analytics",
            ("wave4-billing", "implement Stripe subscription billing"),
            ("wave4-usage-tracking", "implement usage tracking for metered billing"),
            ("wave4-report-builder", "create custom report builder with drag-and-drop"),
            ("wave4-analytics-core", "build analytics engine with data aggregation"),
        ),
        5: _wave(
            5,
            "Polish & Accessibility",
            ("wave5-perf-optimize", "optimize performance with caching and lazy loading"),
            ("wave5-security-audit", "implement security hardening measures"),
            ("wave5-api-docs", "enhance API documentation with examples"),
            ("wave5-error-handling", "implement global error handling"),
        ),
        6: _wave(
            6,
            "Contractor Portal",
            ("wave6-onboarding-flow", "create multi-step onboarding wizard"),
            ("wave6-ai-integration", "integrate OpenAI for contract analysis"),
            ("wave6-portal-dashboard", "create contractor-specific dashboard"),
        ),
    }
)


def load_waves(path: Path) -> Mapping[int, Wave]:
    """Load a wave registry from YAML.

    Expected shape::

        1:
          name: Foundation
          agents:
            - agent: wave1-registration
              task: implement registration
    """

    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise WaveConfigError(f"Could not read wave file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise WaveConfigError(f"Failed to parse YAML in {path}: {exc}") from exc

    if not isinstance(document, dict) or not document:
        raise WaveConfigError(f"Wave file {path} must map wave numbers to definitions")

    waves: dict[int, Wave] = {}
    errors: list[str] = []
    for key, body in document.items():
        try:
            number = int(key)
        except (TypeError, ValueError):
            errors.append(f"Wave key {key!r} is not a number")
            continue
        try:
            definition = WaveDefinition.model_validate(body)
        except ValidationError as exc:
            errors.append(f"Wave {number}: {exc}")
            continue
        waves[number] = Wave(
            number=number,
            name=definition.name,
            tasks=tuple(AgentTask(item.agent, item.task) for item in definition.agents),
        )

    if errors:
        raise WaveConfigError(f"Wave definition error in {path}: " + "; ".join(errors))
    return MappingProxyType(dict(sorted(waves.items())))


__all__ = ["BUILTIN_WAVES", "Wave", "WaveConfigError", "load_waves"]
