"""Running Terraform operations on individual resources of a plan."""

from __future__ import annotations

import subprocess
import time

from tfstepdebug.model import Action, Resource, ResourceStatus, StepAction

_RULE = "-" * 80


class ExecutionError(Exception):
    """Raised when a Terraform operation on a resource fails."""


def extract_resource_section(output: str, address: str) -> str:
    """Return the part of plan output that describes address.

    The output is split on "# " markers; the first section starting with the
    address is returned with its marker. Without a match the whole output is
    returned.
    """
    for section in output.split("# "):
        if section.startswith(address):
            return "# " + section
    return output


class TerraformExecutor:
    """Applies, inspects and skips single resources of a Terraform plan."""

    def __init__(
        self,
        terraform_path: str | None = None,
        terraform_dir: str = "",
        plan_file: str = "",
        var_file: str | None = None,
        dry_run: bool = False,
    ) -> None:
        self.terraform_path = terraform_path or "terraform"
        self.terraform_dir = terraform_dir
        self.plan_file = plan_file
        self.var_file = var_file
        self.dry_run = dry_run
        self.dry_run_delay = 0.5

    @property
    def _cwd(self) -> str | None:
        return self.terraform_dir or None

    def _var_file_args(self) -> list[str]:
        return ["-var-file", self.var_file] if self.var_file else []

    def _capture(self, *args: str, combined: bool = False) -> str:
        result = subprocess.run(
            [self.terraform_path, *args],
            cwd=self._cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combined else subprocess.PIPE,
            text=True,
            check=True,
        )
        return result.stdout

    def apply_resource(self, resource: Resource) -> None:
        """Apply one resource with `terraform apply -target`, updating its status."""
        print(f"Applying resource: {resource.address} ({resource.action})")

        if self.dry_run:
            print("[DRY RUN] Would apply this resource")
            time.sleep(self.dry_run_delay)
            return

        args = [
            self.terraform_path,
            "apply",
            "-auto-approve",
            "-target",
            resource.address,
            *self._var_file_args(),
        ]
        try:
            subprocess.run(args, cwd=self._cwd, check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            resource.status = ResourceStatus.FAILED
            raise ExecutionError(
                f"failed to apply resource {resource.address}: {exc}"
            ) from exc
        resource.status = ResourceStatus.COMPLETE

    def get_resource_details(self, resource: Resource) -> str:
        """Return Terraform's description of a resource.

        Planned creations are shown from the plan file; other resources from
        the current state, falling back to the plan file if that fails.
        """
        plan_args = ("show", "-json", self.plan_file)
        if resource.action == Action.CREATE:
            first_args: tuple[str, ...] = plan_args
        else:
            first_args = ("state", "show", resource.address)

        try:
            return self._capture(*first_args)
        except (OSError, subprocess.CalledProcessError):
            pass
        try:
            return self._capture(*plan_args)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise ExecutionError(f"failed to get resource details: {exc}") from exc

    def abort_plan(self) -> None:
        """Stop executing the plan."""
        print("Aborting plan execution")

    def get_resource_diff(self, resource: Resource) -> str:
        """Return the planned diff for a single resource."""
        try:
            output = self._capture(
                "plan", "-target", resource.address, *self._var_file_args(),
                combined=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            raise ExecutionError(f"failed to get resource diff: {exc}") from exc
        return extract_resource_section(output, resource.address)

    def execute_step_action(self, action: StepAction | str, resource: Resource) -> None:
        """Carry out the user's chosen step on a resource."""
        try:
            step = StepAction(action)
        except ValueError as exc:
            raise ExecutionError(f"unknown step action: {action}") from exc

        if step is StepAction.APPLY:
            resource.status = ResourceStatus.APPROVED
            self.apply_resource(resource)
        elif step is StepAction.SKIP:
            resource.status = ResourceStatus.SKIPPED
            print(f"Skipping resource: {resource.address}")
        elif step is StepAction.ABORT:
            self.abort_plan()
        else:
            try:
                details = self.get_resource_diff(resource)
            except ExecutionError as exc:
                raise ExecutionError(f"failed to get resource details: {exc}") from exc
            print("\nResource Details:")
            print(_RULE)
            print(details)
            print(_RULE)