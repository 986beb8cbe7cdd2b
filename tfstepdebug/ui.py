"""Interactive terminal prompts and reports for stepping through a plan."""

from __future__ import annotations

import math
import sys
from collections.abc import Iterable
from datetime import timedelta
from typing import TextIO

from tfstepdebug.model import Action, Plan, Resource, ResourceStatus, StepAction

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
PURPLE = "\033[35m"
CYAN = "\033[36m"
RESET = "\033[0m"
BOLD = "\033[1m"

_ACTION_INPUTS = {
    "a": StepAction.APPLY,
    "apply": StepAction.APPLY,
    "s": StepAction.SKIP,
    "skip": StepAction.SKIP,
    "d": StepAction.DETAIL,
    "detail": StepAction.DETAIL,
    "x": StepAction.ABORT,
    "abort": StepAction.ABORT,
}

_ACTION_COLORS = {
    Action.CREATE: GREEN,
    Action.UPDATE: YELLOW,
    Action.DELETE: RED,
}

_STATUS_COLORS = {
    ResourceStatus.COMPLETE: GREEN,
    ResourceStatus.SKIPPED: YELLOW,
    ResourceStatus.FAILED: RED,
}


def parse_action(text: str) -> StepAction | None:
    """Map user input to a step action, or None if it is not recognised."""
    return _ACTION_INPUTS.get(text.strip().lower())


class UI:
    """Reads the user's choices and reports progress on a terminal."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._in = stdin if stdin is not None else sys.stdin
        self._out = stdout if stdout is not None else sys.stdout

    def _print(self, *parts: object, end: str = "\n") -> None:
        print(*parts, end=end, file=self._out)
        self._out.flush()

    def _read_line(self) -> str:
        """Read a full line; raise EOFError if the input ends before a newline."""
        line = self._in.readline()
        if not line.endswith("\n"):
            raise EOFError("failed to read input: unexpected end of input")
        return line

    def display_plan_summary(self, plan: Plan) -> None:
        """Show the plan file, directory and counts of planned changes."""
        stats = plan.stats
        self._print(BOLD + "Terraform Step Debugger" + RESET)
        self._print("Plan file:", plan.plan_file)
        self._print("Directory:", plan.terraform_dir)
        self._print()
        self._print(BOLD + "Plan Summary:" + RESET)
        self._print(f"  {GREEN}Creates:{RESET} {stats.create}")
        self._print(f"  {YELLOW}Updates:{RESET} {stats.update}")
        self._print(f"  {RED}Deletes:{RESET} {stats.delete}")
        self._print(f"  {BLUE}Noops:{RESET} {stats.noop}")
        self._print()

    def display_resource_info(self, resource: Resource, index: int, total: int) -> None:
        """Show progress and the details of the resource about to be handled."""
        if total:
            percent = index / total * 100
        else:
            percent = math.inf if index else math.nan
        self._print(f"[{index}/{total}] {percent:.1f}% complete")

        color = _ACTION_COLORS.get(resource.action, RESET)
        self._print(f"\n{BOLD}Resource: {resource.address}{RESET}")
        self._print(f"  {BOLD}Action:{RESET} {color}{resource.action}{RESET}")
        self._print(f"  {BOLD}Type:{RESET} {resource.type}")

        if resource.dependencies:
            self._print(f"  {BOLD}Dependencies:{RESET}")
            for dep in resource.dependencies:
                self._print(f"    - {dep}")

        if resource.warnings:
            self._print(f"  {BOLD}Warnings:{RESET}")
            for warning in resource.warnings:
                self._print(f"    - {YELLOW}{warning}{RESET}")

        self._print()

    def get_user_action(self) -> StepAction:
        """Prompt until the user enters a valid action.

        Raises EOFError if the input ends.
        """
        while True:
            self._print(BOLD + "Action" + RESET + " [a=apply, s=skip, d=detail, x=abort]: ", end="")
            action = parse_action(self._read_line())
            if action is not None:
                return action
            self._print("Invalid action. Please try again.")

    def display_execution_result(
        self, resource: Resource, success: bool, elapsed: float | timedelta
    ) -> None:
        """Report whether applying a resource worked and how long it took."""
        seconds = elapsed.total_seconds() if isinstance(elapsed, timedelta) else float(elapsed)
        if success:
            self._print(
                f"{GREEN}Success:{RESET} Applied {resource.address} in {seconds:.2f} seconds\n"
            )
        else:
            self._print(
                f"{RED}Failure:{RESET} Could not apply {resource.address} ({seconds:.2f} seconds)\n"
            )

    def display_summary(self, executed_resources: Iterable[Resource]) -> None:
        """Show counts by outcome and the final status of each handled resource."""
        resources = list(executed_resources)
        completed = sum(1 for r in resources if r.status == ResourceStatus.COMPLETE)
        skipped = sum(1 for r in resources if r.status == ResourceStatus.SKIPPED)
        failed = sum(1 for r in resources if r.status == ResourceStatus.FAILED)

        self._print(BOLD + "Execution Summary:" + RESET)
        self._print(f"  {GREEN}Completed:{RESET} {completed}")
        self._print(f"  {YELLOW}Skipped:{RESET} {skipped}")
        self._print(f"  {RED}Failed:{RESET} {failed}")

        self._print("\nResource Status:")
        for res in resources:
            color = _STATUS_COLORS.get(res.status, RESET)
            self._print(f"  {res.address}: {color}{res.status}{RESET}")
        self._print()

    def confirm_continue(self) -> bool:
        """Ask whether to go on after an error; anything but yes means no."""
        self._print(BOLD + "Continue" + RESET + " despite errors? [y/n]: ", end="")
        try:
            answer = self._read_line()
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def wait_for_enter(self) -> None:
        """Block until the user presses Enter (or the input ends)."""
        self._print("Press Enter to continue...", end="")
        self._in.readline()