import io
import json
import os
import re
import stat
import sys

import pytest

from tfstepdebug.cli import (
    build_arg_parser,
    confirm_abort,
    execute_resources,
    main,
    process_resource_action,
)
from tfstepdebug.executor import TerraformExecutor
from tfstepdebug.model import Action, Plan, Resource, ResourceStatus
from tfstepdebug.parser import TerraformPlanParser
from tfstepdebug.ui import UI


def _resource(address, deps=()):
    res_type, _, name = address.partition(".")
    return Resource(
        address=address,
        type=res_type,
        name=name,
        action=Action.CREATE,
        dependencies=list(deps),
    )


def _ui(monkeypatch, text):
    stream = io.StringIO(text)
    monkeypatch.setattr(sys, "stdin", stream)
    return UI(stdin=stream, stdout=io.StringIO())


def _dry_executor():
    executor = TerraformExecutor("terraform", "", "plan.tfplan", "", True)
    executor.dry_run_delay = 0
    return executor


def _broken_executor(tmp_path):
    return TerraformExecutor(str(tmp_path / "missing-terraform"), "", "plan.tfplan", "", False)


_SCRIPT = """#!PYTHON
import sys
PLAN = PLAN_JSON
args = sys.argv[1:]
if args[0] == "version":
    print("Terraform v1.5.0 on linux_amd64")
elif args[0] == "show":
    print(PLAN)
elif args[0] == "plan":
    with open(args[args.index("-out") + 1], "w") as handle:
        handle.write("plan")
"""


def _fake_terraform(tmp_path, plan_data):
    script = tmp_path / "fake-terraform"
    text = _SCRIPT.replace("PYTHON", sys.executable).replace(
        "PLAN_JSON", repr(json.dumps(plan_data))
    )
    script.write_text(text)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    tf_dir = tmp_path / "tf"
    tf_dir.mkdir()
    (tf_dir / "main.tf").write_text("")
    return str(script), str(tf_dir)


_TWO_RESOURCES = {
    "resource_changes": [
        {"address": "null_resource.a", "change": {"actions": ["create"]}},
        {"address": "null_resource.b", "change": {"actions": ["create"]}},
    ],
    "configuration": {
        "root_module": {
            "resources": [
                {
                    "mode": "managed",
                    "type": "null_resource",
                    "name": "b",
                    "depends_on": ["null_resource.a"],
                }
            ]
        }
    },
}

_NO_CHANGES = {
    "resource_changes": [
        {"address": "null_resource.a", "change": {"actions": ["no-op"]}},
    ]
}


def test_arg_parser_defaults():
    args = build_arg_parser().parse_args([])
    assert (args.dir, args.plan, args.terraform, args.target, args.var_file) == (
        "", "", "", "", ""
    )
    assert args.dry_run is False
    assert args.version is False


def test_arg_parser_single_and_double_dash():
    args = build_arg_parser().parse_args(
        ["-dir", "infra", "--plan", "p.tfplan", "-dry-run", "-target", "x.y",
         "-var-file", "prod.tfvars", "-terraform", "/bin/tf"]
    )
    assert args.dir == "infra"
    assert args.plan == "p.tfplan"
    assert args.dry_run is True
    assert args.target == "x.y"
    assert args.var_file == "prod.tfvars"
    assert args.terraform == "/bin/tf"


def test_version_flag(capsys):
    assert main(["-version"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("terraform-step-debug version ")
    assert "Build time: " in out
    assert "Commit: " in out


@pytest.mark.parametrize(
    "text, expected",
    [("y\n", True), ("Y\n", True), ("n\n", False), ("\n", False), ("y y\n", False), ("", False)],
)
def test_confirm_abort(text, expected):
    out = io.StringIO()
    assert confirm_abort(io.StringIO(text), out) is expected
    assert "Are you sure you want to abort? [y/n]: " in out.getvalue()


def test_process_skip(monkeypatch):
    ui = _ui(monkeypatch, "s\n")
    resource = _resource("null_resource.a")
    assert process_resource_action(ui, _dry_executor(), resource) is True
    assert resource.status == ResourceStatus.SKIPPED


def test_process_dry_run_apply(monkeypatch):
    ui = _ui(monkeypatch, "a\n")
    resource = _resource("null_resource.a")
    assert process_resource_action(ui, _dry_executor(), resource) is True
    assert resource.status == ResourceStatus.APPROVED
    assert "Applied null_resource.a" in ui._out.getvalue()


def test_process_abort_declined_then_skip(monkeypatch):
    ui = _ui(monkeypatch, "x\nn\ns\n")
    resource = _resource("null_resource.a")
    assert process_resource_action(ui, _dry_executor(), resource) is True
    assert resource.status == ResourceStatus.SKIPPED


def test_process_abort_confirmed(monkeypatch, capsys):
    ui = _ui(monkeypatch, "x\ny\n")
    with pytest.raises(SystemExit) as info:
        process_resource_action(ui, _dry_executor(), _resource("null_resource.a"))
    assert info.value.code == 0
    assert "Execution aborted." in capsys.readouterr().out


def test_process_end_of_input_exits(monkeypatch):
    ui = _ui(monkeypatch, "")
    with pytest.raises(SystemExit) as info:
        process_resource_action(ui, _dry_executor(), _resource("null_resource.a"))
    assert info.value.code == 1


def test_process_apply_failure_continue(monkeypatch, tmp_path, capsys):
    ui = _ui(monkeypatch, "a\ny\n")
    resource = _resource("null_resource.a")
    assert process_resource_action(ui, _broken_executor(tmp_path), resource) is True
    assert resource.status == ResourceStatus.FAILED
    assert "failed to apply resource null_resource.a" in capsys.readouterr().err


def test_process_apply_failure_stop(monkeypatch, tmp_path, capsys):
    ui = _ui(monkeypatch, "a\nn\n")
    resource = _resource("null_resource.a")
    with pytest.raises(SystemExit) as info:
        process_resource_action(ui, _broken_executor(tmp_path), resource)
    assert info.value.code == 1
    assert "Execution aborted due to errors." in capsys.readouterr().out


def test_process_detail_error_then_skip(monkeypatch, tmp_path, capsys):
    ui = _ui(monkeypatch, "d\ns\n")
    resource = _resource("null_resource.a")
    assert process_resource_action(ui, _broken_executor(tmp_path), resource) is True
    assert resource.status == ResourceStatus.SKIPPED
    assert "failed to get resource details" in capsys.readouterr().err


def _two_layer_plan():
    plan = Plan(plan_file="p", terraform_dir="d")
    plan.add_resource(_resource("null_resource.a"))
    plan.add_resource(_resource("null_resource.b", ["null_resource.a"]))
    graph = TerraformPlanParser("terraform").build_execution_graph(plan)
    return plan, graph


def test_execute_resources_in_dependency_order(monkeypatch, capsys):
    plan, graph = _two_layer_plan()
    ui = _ui(monkeypatch, "s\ns\n")
    executed = execute_resources(ui, _dry_executor(), graph, plan, "")
    assert [r.address for r in executed] == ["null_resource.a", "null_resource.b"]
    assert all(r.status == ResourceStatus.SKIPPED for r in executed)
    out = capsys.readouterr().out
    assert "Executing layer 1 of 2" in out
    assert "Executing layer 2 of 2" in out


def test_execute_resources_with_target(monkeypatch):
    plan, graph = _two_layer_plan()
    ui = _ui(monkeypatch, "s\n")
    executed = execute_resources(ui, _dry_executor(), graph, plan, "null_resource.b")
    assert [r.address for r in executed] == ["null_resource.b"]
    assert plan.resources_map["null_resource.a"].status == ResourceStatus.PENDING


def test_main_missing_terraform(tmp_path, capsys):
    status = main(["-terraform", str(tmp_path / "missing-terraform"), "-dir", str(tmp_path)])
    assert status == 1
    assert "failed to get Terraform version" in capsys.readouterr().err


def test_main_no_changes(tmp_path, capsys):
    terraform, tf_dir = _fake_terraform(tmp_path, _NO_CHANGES)
    plan_file = tmp_path / "given.tfplan"
    plan_file.write_text("plan")
    assert main(["-terraform", terraform, "-dir", tf_dir, "-plan", str(plan_file)]) == 0
    assert "No changes to apply." in capsys.readouterr().out
    assert plan_file.exists()


def test_main_full_run(tmp_path, monkeypatch, capsys):
    terraform, tf_dir = _fake_terraform(tmp_path, _TWO_RESOURCES)
    plan_file = tmp_path / "given.tfplan"
    plan_file.write_text("plan")
    monkeypatch.setattr(sys, "stdin", io.StringIO("s\ns\n"))
    status = main(
        ["-terraform", terraform, "-dir", tf_dir, "-plan", str(plan_file), "-dry-run"]
    )
    out = capsys.readouterr().out
    assert status == 0
    assert "Execution complete." in out
    assert "Executing layer 2 of 2" in out
    assert out.index("Resource: null_resource.a") < out.index("Resource: null_resource.b")


def test_main_unknown_target(tmp_path, capsys):
    terraform, tf_dir = _fake_terraform(tmp_path, _TWO_RESOURCES)
    plan_file = tmp_path / "given.tfplan"
    plan_file.write_text("plan")
    status = main(
        ["-terraform", terraform, "-dir", tf_dir, "-plan", str(plan_file),
         "-target", "null_resource.zzz"]
    )
    assert status == 1
    assert "target resource 'null_resource.zzz' not found in plan" in capsys.readouterr().err


def test_main_generated_plan_is_removed(tmp_path, capsys):
    terraform, tf_dir = _fake_terraform(tmp_path, _NO_CHANGES)
    assert main(["-terraform", terraform, "-dir", tf_dir]) == 0
    out = capsys.readouterr().out
    match = re.search(r"Generating Terraform plan to (.+)\.\.\.", out)
    assert match is not None
    generated = match.group(1)
    assert generated.endswith(".tfplan")
    assert not os.path.exists(generated)