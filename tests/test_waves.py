from __future__ import annotations

import shlex
from datetime import datetime
from pathlib import Path
import textwrap

import pytest

from gitagents.errors import WaveNotFoundError
from gitagents.git import AgentBranchInfo
from gitagents.waves import BUILTIN_WAVES, Wave, WaveConfigError, WavePlanner, load_waves
from gitagents.agent import AgentTask


def branch_info(branch: str, agent: str, commits: int = 1) -> AgentBranchInfo:
    return AgentBranchInfo(
        branch_name=branch,
        agent_name=agent,
        timestamp=datetime(2024, 1, 1),
        slug="slug",
        commit_count=commits,
        last_commit_sha="0" * 40,
        last_commit_message="msg",
    )


def test_builtin_registry_has_six_waves() -> None:
    assert sorted(BUILTIN_WAVES) == [1, 2, 3, 4, 5, 6]
    assert BUILTIN_WAVES[1].name == "Foundation"
    assert len(BUILTIN_WAVES[3].tasks) == 6
    for number, wave in BUILTIN_WAVES.items():
        assert wave.number == number
        assert all(task.agent_name.startswith(f"wave{number}-") for task in wave.tasks)


def test_builtin_registry_is_read_only() -> None:
    with pytest.raises(TypeError):
        BUILTIN_WAVES[7] = Wave(7, "Extra", ())  # type: ignore[index]
    with pytest.raises(AttributeError):
        BUILTIN_WAVES[1].name = "Changed"  # type: ignore[misc]


def test_planner_lists_waves_in_order() -> None:
    planner = WavePlanner()

    assert [wave.number for wave in planner.waves()] == [1, 2, 3, 4, 5, 6]


def test_dispatch_commands_quote_tasks() -> None:
    commands = WavePlanner().dispatch_commands(1)

    assert len(commands) == 4
    assert shlex.split(commands[0]) == [
        "gitagents",
        "agent",
        "run",
        "wave1-registration",
        "implement complete registration flow with email verification",
    ]


def test_dispatch_commands_custom_program() -> None:
    waves = {1: Wave(1, "Tiny", (AgentTask("wave1-x", "it's quoted"),))}

    commands = WavePlanner(waves).dispatch_commands(1, program="git-agent")

    assert shlex.split(commands[0]) == ["git-agent", "agent", "run", "wave1-x", "it's quoted"]


def test_unknown_wave_is_rejected() -> None:
    planner = WavePlanner()

    with pytest.raises(WaveNotFoundError) as excinfo:
        planner.dispatch_commands(99)

    assert excinfo.value.known == [1, 2, 3, 4, 5, 6]
    assert "99" in str(excinfo.value)
    with pytest.raises(WaveNotFoundError):
        planner.status([], 42)


def test_status_filters_by_wave_tag() -> None:
    branches = [
        branch_info("claude/wave1/rbac-core/20240101-000000-rbac-aaaaaa", "wave1-rbac-core"),
        branch_info("claude/wave2/alerts/20240101-000000-alerts-bbbbbb", "wave2-alerts", commits=0),
        branch_info("agent/demo/20240101-000000-footer-cccccc", "demo"),
    ]
    planner = WavePlanner()

    assert [b.agent_name for b in planner.status(branches, 1)] == ["wave1-rbac-core"]
    assert [b.agent_name for b in planner.status(branches, 2)] == ["wave2-alerts"]
    assert [b.agent_name for b in planner.status(branches)] == ["wave1-rbac-core", "wave2-alerts"]


def test_status_matches_wave_prefix_loosely() -> None:
    waves = {1: Wave(1, "One", ()), 10: Wave(10, "Ten", ())}
    branches = [branch_info("claude/wave10/x/20240101-000000-x-dddddd", "wave10-x")]

    assert WavePlanner(waves).status(branches, 1) == branches


def test_load_waves_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "waves.yaml"
    path.write_text(
        textwrap.dedent(
            """
            2:
              name: Second
              agents:
                - agent: wave2-b
                  task: do b
            1:
              name: First
              agents:
                - agent: wave1-a
                  task: do a
                - agent: wave1-c
                  task: do c
            """
        ),
        encoding="utf-8",
    )

    waves = load_waves(path)

    assert list(waves) == [1, 2]
    assert waves[1].name == "First"
    assert waves[1].tasks == (AgentTask("wave1-a", "do a"), AgentTask("wave1-c", "do c"))
    assert WavePlanner(waves).dispatch_commands(2) == ["gitagents agent run wave2-b 'do b'"]
    with pytest.raises(TypeError):
        waves[3] = waves[1]  # type: ignore[index]


@pytest.mark.parametrize(
    "content",
    [
        "[]",
        "one:\n  name: First\n",
        "1:\n  agents: []\n",
        "1:\n  name: First\n  agents:\n    - agent: ''\n      task: x\n",
        "1: {name: [",
    ],
)
def test_load_waves_rejects_bad_documents(tmp_path: Path, content: str) -> None:
    path = tmp_path / "waves.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(WaveConfigError):
        load_waves(path)
