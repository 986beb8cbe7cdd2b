"""Reading Terraform plans and ordering their resources by dependency."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Iterable, Mapping
from typing import Any

from tfstepdebug.model import Action, ExecutionGraph, Plan, Resource, ResourceStatus

_COUNTED_ACTIONS = {
    "create": (Action.CREATE, "create"),
    "update": (Action.UPDATE, "update"),
    "delete": (Action.DELETE, "delete"),
    "read": (Action.READ, None),
}


class PlanParseError(Exception):
    """Raised when a plan cannot be generated, read or interpreted."""


def _change_body(change: Mapping[str, Any]) -> Mapping[str, Any]:
    body = change.get("change")
    return body if isinstance(body, dict) else {}


def extract_attributes(change: Mapping[str, Any]) -> dict[str, Any]:
    """Return the planned attributes of a resource change.

    The "after" values are used when present, otherwise the "before" values.
    """
    body = _change_body(change)
    after = body.get("after")
    if isinstance(after, dict):
        return dict(after)
    before = body.get("before")
    if isinstance(before, dict):
        return dict(before)
    return {}


def extract_warnings(change: Mapping[str, Any]) -> list[str]:
    """Return the string warnings attached to a resource change."""
    warnings = _change_body(change).get("warnings")
    if not isinstance(warnings, list):
        return []
    return [warning for warning in warnings if isinstance(warning, str)]


def format_resource_address(res: Mapping[str, Any]) -> str:
    """Build a resource address from a configuration entry's mode, type and name."""
    mode = res.get("mode")
    res_type = res.get("type")
    name = res.get("name")
    res_type = res_type if isinstance(res_type, str) else ""
    name = name if isinstance(name, str) else ""
    address = f"{res_type}.{name}"
    if mode == "data":
        address = f"data.{address}"
    return address


def _explicit_dependencies(res: Mapping[str, Any]) -> list[str]:
    depends_on = res.get("depends_on")
    if not isinstance(depends_on, list):
        return []
    return [dep for dep in depends_on if isinstance(dep, str)]


def _implicit_dependencies(res: Mapping[str, Any]) -> list[str]:
    expressions = res.get("expressions")
    if not isinstance(expressions, dict):
        return []
    deps = []
    for expr in expressions.values():
        if not isinstance(expr, dict):
            continue
        refs = expr.get("references")
        if not isinstance(refs, list):
            continue
        deps.extend(
            ref
            for ref in refs
            if isinstance(ref, str) and "." in ref and not ref.startswith("var.")
        )
    return deps


def build_dependency_map(config_resources: Iterable[Any]) -> dict[str, list[str]]:
    """Map each configured resource address to its explicit and implicit dependencies."""
    dep_map: dict[str, list[str]] = {}
    for res in config_resources:
        if not isinstance(res, dict):
            continue
        address = format_resource_address(res)
        dep_map[address] = _explicit_dependencies(res) + _implicit_dependencies(res)
    return dep_map


def _config_resources(plan_data: Mapping[str, Any]) -> list[Any] | None:
    config = plan_data.get("configuration")
    if not isinstance(config, dict):
        return None
    root = config.get("root_module")
    if not isinstance(root, dict):
        return None
    resources = root.get("resources")
    return resources if isinstance(resources, list) else None


def _pending_count(resource: Resource, pending: Mapping[str, Resource]) -> int:
    return sum(1 for dep in resource.dependencies if dep in pending)


class TerraformPlanParser:
    """Generates and parses Terraform plans."""

    def __init__(self, terraform_path: str | None = None) -> None:
        self.terraform_path = terraform_path or "terraform"

    def generate_plan(
        self, terraform_dir: str, out_file: str, var_file: str | None = None
    ) -> None:
        """Run `terraform plan -out` in terraform_dir, streaming its output."""
        args = [self.terraform_path, "plan", "-out", out_file]
        if var_file:
            args += ["-var-file", var_file]
        try:
            subprocess.run(args, cwd=terraform_dir or None, check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise PlanParseError(f"failed to generate plan: {exc}") from exc

    def _plan_json(self, plan_file: str) -> str:
        try:
            result = subprocess.run(
                [self.terraform_path, "show", "-json", plan_file],
                stdout=subprocess.PIPE,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            raise PlanParseError(f"failed to convert plan to JSON: {exc}") from exc
        return result.stdout

    def parse_plan(self, plan_file: str, terraform_dir: str) -> Plan:
        """Read a binary plan file through `terraform show -json` and parse it."""
        text = self._plan_json(plan_file)
        try:
            plan_data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PlanParseError(f"failed to parse plan JSON: {exc}") from exc
        if not isinstance(plan_data, dict):
            raise PlanParseError("failed to parse plan JSON: top level is not an object")
        return self.parse_plan_data(plan_data, plan_file, terraform_dir)

    def parse_plan_data(
        self, plan_data: Mapping[str, Any], plan_file: str, terraform_dir: str
    ) -> Plan:
        """Build a Plan from the decoded JSON form of a Terraform plan."""
        plan = Plan(plan_file=plan_file, terraform_dir=terraform_dir)
        self._extract_resources(plan_data, plan)
        dep_map = self._dependency_map(plan_data)
        for resource in plan.resources:
            if resource.address in dep_map:
                resource.dependencies = list(dep_map[resource.address])
        return plan

    @staticmethod
    def _dependency_map(plan_data: Mapping[str, Any]) -> dict[str, list[str]]:
        config_resources = _config_resources(plan_data)
        if config_resources is None:
            return {}
        return build_dependency_map(config_resources)

    @staticmethod
    def _extract_resources(plan_data: Mapping[str, Any], plan: Plan) -> None:
        changes = plan_data.get("resource_changes")
        if isinstance(changes, list):
            for change in changes:
                if not isinstance(change, dict):
                    continue
                actions = _change_body(change).get("actions")
                if not isinstance(actions, list) or not actions:
                    continue
                primary = actions[0]
                if primary == "no-op":
                    plan.stats.noop += 1
                    continue
                if not isinstance(primary, str) or primary not in _COUNTED_ACTIONS:
                    continue
                action, stat = _COUNTED_ACTIONS[primary]
                if stat is not None:
                    setattr(plan.stats, stat, getattr(plan.stats, stat) + 1)

                address = change.get("address")
                if not isinstance(address, str):
                    raise PlanParseError(
                        "failed to extract resources: resource change has no address"
                    )
                res_type, _, name = address.partition(".")
                plan.add_resource(
                    Resource(
                        address=address,
                        type=res_type,
                        name=name,
                        action=action,
                        attributes=extract_attributes(change),
                        status=ResourceStatus.PENDING,
                        warnings=extract_warnings(change),
                    )
                )
        plan.has_changes = bool(plan.resources)

    def build_execution_graph(self, plan: Plan) -> ExecutionGraph:
        """Group the plan's resources into layers that respect their dependencies.

        When every remaining resource still waits on another (a cycle), the one
        with the fewest pending dependencies is released on its own layer.
        """
        graph = ExecutionGraph()
        pending = dict(plan.resources_map)
        while pending:
            layer = [
                resource
                for resource in pending.values()
                if _pending_count(resource, pending) == 0
            ]
            if not layer:
                layer = [
                    min(pending.values(), key=lambda r: _pending_count(r, pending))
                ]
            for resource in layer:
                del pending[resource.address]
            graph.layers.append(layer)
        return graph