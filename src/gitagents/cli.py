"""Command-line entry points: ``agent``, ``merge`` and ``wave``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from . import __version__
from .agent import AgentExecutionCoordinator, AgentTask
from .config import GitAgentsSettings, get_settings
from .errors import GitAgentError, VerificationFailedError
from .git import AgentBranchInfo, GitRepository
from .merge import MergeCoordinator, MergeResult
from .process import CommandRunner, CommandRunnerError
from .verify import (
    VerificationPipeline,
    VerificationStepResult,
    default_subsystems,
    load_subsystems,
    truncate_output,
)
from .waves import BUILTIN_WAVES, WavePlanner, load_waves

logger = logging.getLogger(__name__)

RULE = "=" * 60


def configure_logging(level: str) -> None:
    """Configure root logging for the command-line tools."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def format_relative_date(when: datetime | None, now: datetime | None = None) -> str:
    if when is None:
        return "unknown"
    delta = (now or datetime.now()) - when
    minutes = int(delta.total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def build_pipeline(settings: GitAgentsSettings, runner: CommandRunner) -> VerificationPipeline:
    if settings.verification_file is not None:
        subsystems = load_subsystems(settings.verification_file)
    else:
        subsystems = default_subsystems()
    return VerificationPipeline(subsystems, runner=runner, step_timeout=settings.step_timeout_seconds)


def build_planner(settings: GitAgentsSettings) -> WavePlanner:
    waves = load_waves(settings.wave_file) if settings.wave_file is not None else BUILTIN_WAVES
    return WavePlanner(waves)


def cmd_agent_run(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    task = AgentTask(agent_name=args.agent, task=args.task)
    print(f"Agent: {task.agent_name}")
    print(f"Task:  {task.task}")

    coordinator = AgentExecutionCoordinator(settings)
    result = asyncio.run(coordinator.run(task))

    if result.agent_output.strip():
        print()
        print(result.agent_output.rstrip())
    if result.agent_error:
        print(f"\nAgent execution failed: {result.agent_error}", file=sys.stderr)
        print("Changes (if any) are preserved on the branch.")
    if result.commit_error:
        print(f"\nCould not commit agent changes: {result.commit_error}", file=sys.stderr)

    print()
    print(RULE)
    print("Agent Run Summary")
    print(RULE)
    print(f"Agent:    {result.agent_name}")
    print(f"Branch:   {result.branch_name}")
    print(f"Changes:  {'Yes' if result.has_changes else 'No'}")
    if result.commit_sha:
        print(f"Commit:   {result.commit_sha[:8]}")
    print(f"Duration: {format_duration(result.duration_ms)}")
    print(RULE)

    if result.has_changes:
        print("\nNext steps:")
        print(f"  1. Review changes: git log {result.branch_name}")
        print(f"  2. Merge: gitagents merge {result.branch_name}")

    print("\nResult JSON:")
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def _print_branch_table(branches: list[AgentBranchInfo]) -> None:
    print("  " + "Branch".ljust(58) + "Age".ljust(12) + "Commits")
    print("  " + "-" * 80)
    for branch in branches:
        age = format_relative_date(branch.timestamp)
        print(f"  {branch.branch_name.ljust(58)}{age.ljust(12)}{branch.commit_count}")
        if branch.last_commit_message:
            print(f"    -> {branch.last_commit_message[:70]}")


def cmd_merge_list(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    runner = CommandRunner()
    coordinator = MergeCoordinator(settings, build_pipeline(settings, runner), runner=runner)
    branches = asyncio.run(coordinator.list_branches())
    if not branches:
        print("No agent branches found.")
        print('Create one with: gitagents agent run <agent-name> "<task>"')
        return 0

    print(f"Found {len(branches)} agent branch(es):\n")
    _print_branch_table(branches)
    print("\nTo merge a branch: gitagents merge <branch-name>")
    return 0


def _print_step(subsystem: str, step: str, outcome: VerificationStepResult) -> None:
    status = f"passed ({format_duration(outcome.duration_ms)})" if outcome.passed else "FAILED"
    print(f"  {subsystem}/{step}: {status}")


def _report_merge(result: MergeResult, branch: str, settings: GitAgentsSettings) -> None:
    if result.merged:
        print(f"\nMerged {branch}")
        if result.commit_sha:
            print(f"  Commit: {result.commit_sha[:8]}")
    elif result.conflicting_files:
        print(f"\nMerge conflict in {len(result.conflicting_files)} file(s):", file=sys.stderr)
        for name in result.conflicting_files:
            print(f"  - {name}", file=sys.stderr)
        print(f"Branch {branch} was kept for manual resolution.", file=sys.stderr)
    elif result.error:
        print(f"\nMerge failed: {result.error}", file=sys.stderr)
    elif result.verification is not None and not result.verification.passed:
        print(f"\n{VerificationFailedError(result.verification).format()}", file=sys.stderr)
        for subsystem, step, outcome in result.verification.failures():
            print(f"\n{subsystem}/{step} output:")
            print(truncate_output(outcome.output, settings.output_limit))

    print("\nResult JSON:")
    print(json.dumps(result.to_dict(settings.output_limit), indent=2))


def cmd_merge(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    branch = args.target
    print(f"Branch: {branch}")
    print(f"Squash: {'Yes' if args.squash else 'No'}")
    print(f"Verify: {'Skipped' if args.skip_verify else 'Yes'}")

    runner = CommandRunner()
    coordinator = MergeCoordinator(settings, build_pipeline(settings, runner), runner=runner)
    if not args.skip_verify:
        print("\nRunning verification...")
    result = asyncio.run(
        coordinator.merge(branch, squash=args.squash, skip_verify=args.skip_verify, on_step=_print_step)
    )
    _report_merge(result, branch, settings)
    return 0 if result.merged else 1


def cmd_merge_dispatch(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    if args.target in (None, "", "list"):
        return cmd_merge_list(args, settings)
    return cmd_merge(args, settings)


def cmd_wave_list(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    planner = build_planner(settings)
    for wave in planner.waves():
        print(f"Wave {wave.number}: {wave.name}")
        print("-" * 40)
        for task in wave.tasks:
            print(f"  * {task.agent_name}")
            print(f"    Task: {task.task[:60]}")
        print()
    print("Usage:")
    print("  gitagents wave run <n>      # print the commands for a wave")
    print("  gitagents wave status <n>   # show branches produced by a wave")
    return 0


def cmd_wave_status(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    planner = build_planner(settings)
    runner = CommandRunner()

    async def _inventory() -> list[AgentBranchInfo]:
        root = await GitRepository(runner, Path.cwd()).repo_root()
        repo = GitRepository(runner, root)
        return await repo.list_agent_branches(await repo.default_branch(settings.default_branch))

    branches = planner.status(asyncio.run(_inventory()), args.wave)
    label = f"Wave {args.wave}" if args.wave is not None else "All Waves"
    print(f"Agent Branches ({label})\n")
    if not branches:
        print("No agent branches found for this wave.")
        print("Start a wave with: gitagents wave run <n>")
        return 0

    print("  " + "Branch".ljust(55) + "Commits  Status")
    print("  " + "-" * 75)
    for branch in branches:
        status = "has changes" if branch.commit_count > 0 else "empty"
        print(f"  {branch.branch_name[:53].ljust(55)}{str(branch.commit_count).ljust(9)}{status}")
    print("\nTo merge: gitagents merge <branch-name>")
    return 0


def cmd_wave_run(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    if args.wave is None:
        print("Wave number required: gitagents wave run <n>", file=sys.stderr)
        return 2
    planner = build_planner(settings)
    wave = planner.get(args.wave)
    print(f"Wave {wave.number}: {wave.name}")
    print(f"{len(wave.tasks)} agent task(s). Run each in its own terminal:\n")
    for command in planner.dispatch_commands(wave.number):
        print(command)
    print("\nEach run works in its own worktree, so they can run in parallel.")
    print(f"Check progress with: gitagents wave status {wave.number}")
    print("Merge finished branches with: gitagents merge list / gitagents merge <branch>")
    return 0


_WAVE_COMMANDS: dict[str, Callable[[argparse.Namespace, GitAgentsSettings], int]] = {
    "list": cmd_wave_list,
    "status": cmd_wave_status,
    "run": cmd_wave_run,
}


def cmd_wave_dispatch(args: argparse.Namespace, settings: GitAgentsSettings) -> int:
    command = args.wave_command
    # a bare number is shorthand for `run <n>`
    if command.isdigit() and args.wave is None:
        args.wave = int(command)
        command = "run"
    handler = _WAVE_COMMANDS.get(command)
    if handler is None:
        known = ", ".join(sorted(_WAVE_COMMANDS))
        print(f"Unknown wave command '{command}' (expected {known} or a wave number)", file=sys.stderr)
        return 2
    return handler(args, settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitagents",
        description="Run coding agents on isolated branches and merge their work with verification.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd")

    p_agent = sub.add_parser("agent", help="Run an agent in an isolated worktree")
    agent_sub = p_agent.add_subparsers(dest="agent_command")
    p_run = agent_sub.add_parser("run", help="Run one agent task on a new branch")
    p_run.add_argument("agent", help="Agent name (descriptor file stem)")
    p_run.add_argument("task", help="Task description handed to the agent")
    p_run.set_defaults(func=cmd_agent_run)

    p_merge = sub.add_parser("merge", help="List agent branches or verify and merge one")
    p_merge.add_argument("target", nargs="?", default="list", help="'list' or a branch name")
    p_merge.add_argument("--squash", action="store_true", help="Squash the branch into one commit")
    p_merge.add_argument("--skip-verify", action="store_true", help="Merge without running verification")
    p_merge.set_defaults(func=cmd_merge_dispatch)

    p_wave = sub.add_parser("wave", help="Inspect and dispatch waves of agent tasks")
    p_wave.add_argument(
        "wave_command",
        nargs="?",
        default="list",
        metavar="{list,status,run,<n>}",
        help="Subcommand, or a wave number as shorthand for 'run <n>'",
    )
    p_wave.add_argument("wave", nargs="?", type=int, default=None, help="Wave number")
    p_wave.set_defaults(func=cmd_wave_dispatch)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        raise SystemExit(1)
    configure_logging(settings.log_level)

    try:
        exit_code = args.func(args, settings)
    except GitAgentError as exc:
        print(exc.format(), file=sys.stderr)
        exit_code = 1
    except CommandRunnerError as exc:
        print(f"Command failed: {exc}", file=sys.stderr)
        exit_code = 1
    except Exception as exc:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Unexpected error: {exc}", file=sys.stderr)
        exit_code = 1

    if exit_code:
        raise SystemExit(exit_code)


def agent_main(argv: list[str] | None = None) -> None:
    main(["agent", "run", *(sys.argv[1:] if argv is None else argv)])


def merge_main(argv: list[str] | None = None) -> None:
    main(["merge", *(sys.argv[1:] if argv is None else argv)])


def wave_main(argv: list[str] | None = None) -> None:
    main(["wave", *(sys.argv[1:] if argv is None else argv)])


if __name__ == "__main__":
    main()
