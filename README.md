# tfstepdebug

An interactive step debugger for Terraform plans. It generates (or reads) a
plan, orders the changed resources by their dependencies, and then walks
through them one at a time. For each resource you decide whether to apply it,
skip it, look at its diff, or abort the run.

## Installation

```
pip install .
```

The package has no dependencies outside the standard library. A `terraform`
binary (version 0.12 or later) must be on your `PATH`, in
`/usr/local/bin/terraform` or `/opt/homebrew/bin/terraform`, or be given with
`-terraform`.

## Usage

Run it from a directory holding `.tf` files, or from any directory below one:

```
tfstepdebug
```

Options (each may also be written with two dashes, e.g. `--dry-run`):

| Option | Meaning |
| --- | --- |
| `-dir PATH` | Terraform directory (default: the current directory or the nearest parent holding `.tf` files) |
| `-plan FILE` | Use an existing plan file instead of generating one |
| `-terraform PATH` | Path to the Terraform binary |
| `-var-file FILE` | Variable file passed to `terraform plan` and `terraform apply`, e.g. `prod.tfvars` |
| `-target ADDRESS` | Only step through this resource; it must be one of the plan's changed resources |
| `-dry-run` | Walk through the plan without applying anything |
| `-version` | Print version information and exit |

When no plan file is given, a temporary one is generated with
`terraform plan -out` and removed again when the run ends. If the plan has no
changes, the program prints `No changes to apply.` and stops.

Resources are grouped into layers: a resource comes in a later layer than the
resources it depends on (through `depends_on` or references in its
expressions). If the dependencies form a cycle, the resource with the fewest
outstanding dependencies is released on a layer of its own. Layers are worked
through in order, one resource at a time.

At each resource you are prompted:

```
Action [a=apply, s=skip, d=detail, x=abort]:
```

- `a` / `apply` runs `terraform apply -auto-approve -target <address>`
  (with `-dry-run`, only reports what it would do)
- `s` / `skip` leaves the resource untouched and marks it skipped
- `d` / `detail` shows the planned diff for the resource, then prompts again
- `x` / `abort` asks for confirmation (`y` or `Y`) and stops the run

If an apply fails you are asked whether to continue; answering anything but
`y` or `yes` ends the run with exit status 1. A summary of completed, skipped
and failed resources is printed at the end.

## Library use

The pieces can be used on their own:

- `tfstepdebug.model` – `Plan`, `Resource`, `PlanStats`, `ExecutionGraph` and
  the `Action`, `ResourceStatus` and `StepAction` enums
- `tfstepdebug.parser` – `TerraformPlanParser` (`generate_plan`,
  `parse_plan`, `parse_plan_data`, `build_execution_graph`) and
  `PlanParseError`
- `tfstepdebug.executor` – `TerraformExecutor` (`apply_resource`,
  `get_resource_details`, `get_resource_diff`, `execute_step_action`) and
  `ExecutionError`
- `tfstepdebug.ui` – `UI`, which reads from and writes to any text streams,
  and `parse_action`
- `tfstepdebug.util` – locating Terraform and its directory, version checks,
  `format_address`, `format_action` and `TerraformError`
- `tfstepdebug.cli` – `main(argv=None)`, which returns the exit status

For example, to order the resources of a plan already rendered with
`terraform show -json`:

```python
import json
from tfstepdebug.parser import TerraformPlanParser

parser = TerraformPlanParser("terraform")
with open("plan.json") as fh:
    plan = parser.parse_plan_data(json.load(fh), "plan.tfplan", ".")

graph = parser.build_execution_graph(plan)
for number, layer in enumerate(graph.layers, start=1):
    print(number, [resource.address for resource in layer])
```

Only resources of the root module's configuration contribute dependency
information; resources in child modules are stepped through without recorded
dependencies.

## Development

```
pip install -e ".[test]"
pytest
```