"""Command line entry point: step through a Terraform plan one resource at a time."""

from __future__ import annotations

import argparse
import sys
import time
from collections.abc import Sequence
from typing import TextIO

from tfstepdebug.executor import ExecutionError, TerraformExecutor
from tfstepdebug.model import ExecutionGraph, Plan, Resource, StepAction
from tfstepdebug.parser import PlanParseError, TerraformPlanParser
from tfstepdebug.ui import UI
from tfstepdebug.util import (
    TerraformError,
    check_terraform_version,
    cleanup_files,
    create_temp_plan_file,
    find_terraform_binary,
    find_terraform_dir,
    validate_target_resource,
)

VERSION = "dev"
BUILD_TIME = "unknown"
COMMIT = "unknown"


class _CliError(Exception):
    """A failure that ends the program with an error message."""


def build_arg_parser() -> argparse.ArgumentParser:
    """Return the parser for the command's options."""
    parser = argparse.ArgumentParser(
        prog="terraform-step-debug",
        description="Apply a Terraform plan one resource at a time.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-dir", "--dir", dest="dir", default="",
        help="Path to the Terraform directory (default: current directory)",
    )
    parser.add_argument(
        "-plan", "--plan", dest="plan", default="",
        help="Path to the Terraform plan file (default: generate new plan)",
    )
    parser.add_argument(
        "-terraform", "--terraform", dest="terraform", default="",
        help="Path to the Terraform binary (default: use from PATH)",
    )
    parser.add_argument(
        "-dry-run", "--dry-run", dest="dry_run", action="store_true",
        help="Perform a dry run without actually applying changes",
    )
    parser.add_argument(
        "-target", "--target", dest="target", default="",
        help="Target a specific resource (default: all resources)",
    )
    parser.add_argument(
        "-version", "--version", dest="version", action="store_true",
        help="Print version information and exit",
    )
    parser.add_argument(
        "-var-file", "--var-file", dest="var_file", default="",
        help="Path to the Terraform variable file (e.g., prod.tfvars)",
    )
    return parser


def confirm_abort(stdin: TextIO | None = None, stdout: TextIO | None = None) -> bool:
    """Ask whether to abort; only a single "y" or "Y" confirms."""
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    print("Are you sure you want to abort? [y/n]: ", end="", file=stdout, flush=True)
    line = stdin.readline()
    tokens = line.split()
    if len(tokens) != 1:
        if not line:
            reason = "EOF"
        elif not tokens:
            reason = "unexpected newline"
        else:
            reason = "expected newline"
        print(f"Error reading confirmation: {reason}", file=sys.stderr)
        return False
    return tokens[0] in ("y", "Y")


def process_resource_action(ui: UI, executor: TerraformExecutor, resource: Resource) -> bool:
    """Prompt for and carry out actions on a resource until it is handled.

    Returns True once the resource has been applied or skipped. Raises
    SystemExit when the user aborts or declines to continue after an error.
    """
    while True:
        try:
            action = ui.get_user_action()
        except EOFError as exc:
            print(f"Error getting user action: {exc}", file=sys.stderr)
            raise SystemExit(1) from exc

        if action is StepAction.ABORT:
            if confirm_abort():
                print("Execution aborted.")
                raise SystemExit(0)
            continue

        if action is StepAction.DETAIL:
            try:
                executor.execute_step_action(action, resource)
            except ExecutionError as exc:
                print(f"Error: {exc}", file=sys.stderr)
            continue

        start = time.monotonic()
        error: ExecutionError | None = None
        try:
            executor.execute_step_action(action, resource)
        except ExecutionError as exc:
            error = exc
        elapsed = time.monotonic() - start

        ui.display_execution_result(resource, error is None, elapsed)

        if error is not None:
            print(f"Error: {error}", file=sys.stderr)
            if not ui.confirm_continue():
                print("Execution aborted due to errors.")
                raise SystemExit(1)
        return True


def execute_resources(
    ui: UI,
    executor: TerraformExecutor,
    graph: ExecutionGraph,
    plan: Plan,
    target_addr: str = "",
) -> list[Resource]:
    """Walk the graph layer by layer and return the resources that were handled."""
    executed: list[Resource] = []
    total_layers = len(graph.layers)
    total_resources = len(plan.resources)
    for number, layer in enumerate(graph.layers, 1):
        print(f"Executing layer {number} of {total_layers}")
        for resource in layer:
            if target_addr and resource.address != target_addr:
                continue
            ui.display_resource_info(resource, len(executed) + 1, total_resources)
            if process_resource_action(ui, executor, resource):
                executed.append(resource)
    return executed


def _run(args: argparse.Namespace) -> int:
    terraform_path = args.terraform or find_terraform_binary()
    check_terraform_version(terraform_path)
    terraform_dir = args.dir or find_terraform_dir()

    ui = UI()
    plan_parser = TerraformPlanParser(terraform_path)

    plan_file = args.plan
    generated = not plan_file
    if generated:
        plan_file = create_temp_plan_file()

    try:
        if generated:
            print(f"Generating Terraform plan to {plan_file}...")
            try:
                plan_parser.generate_plan(terraform_dir, plan_file, args.var_file)
            except PlanParseError as exc:
                raise _CliError(f"error generating plan: {exc}") from exc

        try:
            plan = plan_parser.parse_plan(plan_file, terraform_dir)
        except PlanParseError as exc:
            raise _CliError(f"error parsing plan: {exc}") from exc

        if not plan.has_changes:
            print("No changes to apply.")
            return 0

        validate_target_resource(args.target, plan.resources_map)

        graph = plan_parser.build_execution_graph(plan)
        executor = TerraformExecutor(
            terraform_path, terraform_dir, plan_file, args.var_file, args.dry_run
        )

        ui.display_plan_summary(plan)
        executed = execute_resources(ui, executor, graph, plan, args.target)
        ui.display_summary(executed)
        print("Execution complete.")
        return 0
    finally:
        if generated:
            cleanup_files(plan_file)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the step debugger and return the process exit status."""
    args = build_arg_parser().parse_args(argv)

    if args.version:
        print(f"terraform-step-debug version {VERSION}")
        print(f"Build time: {BUILD_TIME}")
        print(f"Commit: {COMMIT}")
        return 0

    try:
        return _run(args)
    except (TerraformError, _CliError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())