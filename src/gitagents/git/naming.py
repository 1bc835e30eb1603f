"""Branch name construction, parsing and slug sanitization.

Two grammars are produced::

    agent/<agent>/<YYYYMMDD-HHMMSS>-<slug>-<rand6>
    claude/wave<N>/<feature>/<YYYYMMDD-HHMMSS>-<slug>-<rand6>

The second applies when the sanitized agent name looks like
``wave<N>-<feature>``. Externally created ``cursor/wave<N>/<feature>``
branches are understood by :func:`parse_branch_name` but never generated.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime
from random import Random
from typing import Callable

from .models import ParsedBranch

BRANCH_COMPONENT_LIMIT = 50
SLUG_LIMIT = 30
SUFFIX_LENGTH = 6
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
EMPTY_SLUG = "task"
AGENT_BRANCH_PREFIXES = ("agent/", "claude/", "cursor/")

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_INVALID_RUN = re.compile(r"[^a-z0-9-]+")
_HYPHEN_RUN = re.compile(r"-{2,}")
_WAVE_AGENT = re.compile(r"^wave(\d+)-(.+)$")

_AGENT_BRANCH = re.compile(
    r"^agent/(?P<agent>[^/]+)/(?P<stamp>\d{8}-\d{6})-(?P<slug>[^/]+)-(?P<suffix>[a-z0-9]+)$"
)
_WAVE_BRANCH = re.compile(
    r"^claude/wave(?P<wave>\d+)/(?P<feature>[^/]+)/"
    r"(?P<stamp>\d{8}-\d{6})-(?P<slug>[^/]+)-(?P<suffix>[a-z0-9]+)$"
)
_CURSOR_BRANCH = re.compile(r"^cursor/wave(?P<wave>\d+)/(?P<feature>[^/]+)$")


def sanitize(text: str, max_length: int = BRANCH_COMPONENT_LIMIT) -> str:
    """Reduce ``text`` to lowercase ``[a-z0-9-]`` with single inner hyphens.

    Idempotent: ``sanitize(sanitize(x)) == sanitize(x)``.
    """

    collapsed = _HYPHEN_RUN.sub("-", _INVALID_RUN.sub("-", text.lower()))
    return collapsed.strip("-")[:max_length].strip("-")


def make_slug(task: str) -> str:
    return sanitize(task, SLUG_LIMIT) or EMPTY_SLUG


def worktree_dirname(branch: str) -> str:
    """Directory name used for the worktree of ``branch``."""

    return branch.replace("/", "-")


def format_branch_name(agent: str, stamp: str, slug: str, suffix: str) -> str:
    leaf = f"{stamp}-{slug}-{suffix}"
    wave = _WAVE_AGENT.match(agent)
    if wave is not None:
        return f"claude/wave{wave.group(1)}/{wave.group(2)}/{leaf}"
    return f"agent/{agent}/{leaf}"


class BranchNamer:
    """Generate collision-resistant agent branch names.

    Names combine a second-resolution local timestamp with a random
    six-character suffix. A namer never hands out the same name twice.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] | None = None,
        rng: Random | None = None,
    ) -> None:
        self._clock = clock or datetime.now
        self._rng = rng or secrets.SystemRandom()
        self._issued: set[str] = set()

    def _suffix(self) -> str:
        return "".join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))

    def generate(self, agent_name: str, task: str) -> str:
        agent = sanitize(agent_name)
        if not agent:
            raise ValueError(f"Agent name {agent_name!r} has no usable characters")
        slug = make_slug(task)
        stamp = self._clock().strftime(TIMESTAMP_FORMAT)
        while True:
            name = format_branch_name(agent, stamp, slug, self._suffix())
            if name not in self._issued:
                self._issued.add(name)
                return name


def _parse_stamp(stamp: str) -> datetime | None:
    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def parse_branch_name(branch: str) -> ParsedBranch | None:
    """Recover agent metadata from a branch name, or ``None`` if it is not an agent branch."""

    match = _AGENT_BRANCH.match(branch)
    if match is not None:
        timestamp = _parse_stamp(match.group("stamp"))
        if timestamp is None:
            return None
        return ParsedBranch(agent_name=match.group("agent"), timestamp=timestamp, slug=match.group("slug"))

    match = _WAVE_BRANCH.match(branch)
    if match is not None:
        timestamp = _parse_stamp(match.group("stamp"))
        if timestamp is None:
            return None
        wave = int(match.group("wave"))
        return ParsedBranch(
            agent_name=f"wave{wave}-{match.group('feature')}",
            timestamp=timestamp,
            slug=match.group("slug"),
            wave=wave,
        )

    match = _CURSOR_BRANCH.match(branch)
    if match is not None:
        wave = int(match.group("wave"))
        feature = match.group("feature")
        return ParsedBranch(agent_name=f"wave{wave}-{feature}", timestamp=None, slug=feature, wave=wave)

    return None


__all__ = [
    "AGENT_BRANCH_PREFIXES",
    "BranchNamer",
    "format_branch_name",
    "make_slug",
    "parse_branch_name",
    "sanitize",
    "worktree_dirname",
]
