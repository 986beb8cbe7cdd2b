"""Data types describing a parsed Terraform plan and its execution order."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class Action(_StrEnum):
    """The kind of change Terraform plans for a resource."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    READ = "read"
    NOOP = "no-op"


class ResourceStatus(_StrEnum):
    """Where a resource stands during step-by-step execution."""

    PENDING = "pending"
    APPROVED = "approved"
    SKIPPED = "skipped"
    FAILED = "failed"
    COMPLETE = "complete"


class StepAction(_StrEnum):
    """What the user chose to do with the current resource."""

    APPLY = "apply"
    SKIP = "skip"
    ABORT = "abort"
    DETAIL = "detail"


@dataclass
class Resource:
    """A single resource operation taken from the plan."""

    address: str
    type: str
    name: str
    action: Action
    dependencies: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)
    status: ResourceStatus = ResourceStatus.PENDING
    warnings: list[str] = field(default_factory=list)


@dataclass
class PlanStats:
    """Counts of planned changes by kind."""

    create: int = 0
    update: int = 0
    delete: int = 0
    noop: int = 0


@dataclass
class Plan:
    """A parsed Terraform plan."""

    plan_file: str
    terraform_dir: str
    resources: list[Resource] = field(default_factory=list)
    resources_map: dict[str, Resource] = field(default_factory=dict)
    has_changes: bool = False
    stats: PlanStats = field(default_factory=PlanStats)

    def add_resource(self, resource: Resource) -> None:
        """Record a resource in both the ordered list and the address map."""
        self.resources.append(resource)
        self.resources_map[resource.address] = resource
        self.has_changes = True


@dataclass
class ExecutionGraph:
    """Resources grouped into layers ordered by their dependencies."""

    layers: list[list[Resource]] = field(default_factory=list)