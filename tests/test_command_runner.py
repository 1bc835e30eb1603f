from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import write_script
from gitagents.process import CommandResult, CommandSpawnError, CommandTimeoutError, CommandRunner
from gitagents.process.runner import FakeCommandRunner
from gitagents.process.utils import sanitize_environment, split_lines


def test_command_runner_executes_script(tmp_path: Path) -> None:
    script = write_script(tmp_path / "tool", "echo 'tool 0.0.1'\n")

    result = asyncio.run(CommandRunner().run(str(script)))

    assert result.ok
    assert result.returncode == 0
    assert "tool 0.0.1" in result.stdout
    assert result.args == (str(script),)


def test_arguments_are_passed_without_shell_interpretation(tmp_path: Path) -> None:
    script = write_script(tmp_path / "echo-args", 'for arg in "$@"; do echo "[$arg]"; done\n')
    hostile = "$(touch pwned); `id` && echo 'quoted'"

    result = asyncio.run(CommandRunner().run(str(script), ["plain", hostile], cwd=tmp_path))

    assert result.stdout.splitlines() == ["[plain]", f"[{hostile}]"]
    assert not (tmp_path / "pwned").exists()


def test_non_zero_exit_is_returned_not_raised(tmp_path: Path) -> None:
    script = write_script(tmp_path / "fails", "echo out\necho err >&2\nexit 3\n")

    result = asyncio.run(CommandRunner().run(str(script)))

    assert not result.ok
    assert result.returncode == 3
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"
    assert result.output == "out\nerr\n"


def test_runs_in_requested_directory(tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()

    result = asyncio.run(CommandRunner().run("pwd", cwd=workdir))

    assert Path(result.stdout.strip()).resolve() == workdir.resolve()


def test_missing_program_raises_spawn_error(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(CommandSpawnError) as excinfo:
        asyncio.run(CommandRunner().run(str(missing)))

    assert excinfo.value.program == str(missing)


def test_timeout_kills_process() -> None:
    runner = CommandRunner(default_timeout=0.2)

    with pytest.raises(CommandTimeoutError) as excinfo:
        asyncio.run(runner.run("sleep", ["5"]))

    assert excinfo.value.timeout == pytest.approx(0.2)


def test_fake_command_runner_records_invocations() -> None:
    fake = FakeCommandRunner(
        [
            CommandResult(args=("git", "status"), returncode=0, stdout="ok", stderr=""),
        ]
    )

    first = asyncio.run(fake.run("git", ["status"]))
    second = asyncio.run(fake.run("npm", ["test"]))

    assert first.stdout == "ok"
    assert second.ok and second.args == ("npm", "test")
    assert fake.invocations == [("git", "status"), ("npm", "test")]


def test_fake_command_runner_uses_responder(tmp_path: Path) -> None:
    seen: list[Path | None] = []

    def responder(cmd: tuple[str, ...], cwd: Path | None) -> CommandResult:
        seen.append(cwd)
        return CommandResult(args=cmd, returncode=len(cmd), stdout="", stderr="")

    fake = FakeCommandRunner(responder=responder)
    result = asyncio.run(fake.run("a", ["b", "c"], cwd=tmp_path))

    assert result.returncode == 3
    assert seen == [tmp_path]


def test_sanitize_environment_strips_interpreter_and_git_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")
    monkeypatch.setenv("GIT_DIR", "/elsewhere/.git")
    env = sanitize_environment({"EXTRA": "1"})

    assert "PYTHONPATH" not in env
    assert "GIT_DIR" not in env
    assert env["EXTRA"] == "1"


def test_split_lines_drops_blanks() -> None:
    assert split_lines("  a \n\n b\n   \n") == ["a", "b"]
