"""Helpers for locating Terraform, its working directory and plan files."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from collections import Counter
from collections.abc import Iterable, Mapping

_HOMEBREW_PATHS = (
    "/usr/local/bin/terraform",
    "/opt/homebrew/bin/terraform",
)

_ACTION_LABELS = {
    "create": "Create",
    "update": "Update",
    "delete": "Delete",
    "read": "Read",
    "no-op": "No-op",
}


class TerraformError(Exception):
    """Raised when Terraform or its working files cannot be used."""


def find_terraform_binary() -> str:
    """Return the path of the terraform binary from PATH or common locations."""
    binary = shutil.which("terraform")
    if binary:
        return binary
    for path in _HOMEBREW_PATHS:
        if os.path.exists(path):
            return path
    raise TerraformError("terraform binary not found in PATH or common locations")


def _has_tf_files(directory: str) -> bool:
    try:
        with os.scandir(directory) as entries:
            return any(
                not entry.is_dir(follow_symlinks=False) and entry.name.endswith(".tf")
                for entry in entries
            )
    except OSError as exc:
        raise TerraformError(f"failed to read directory: {exc}") from exc


def find_terraform_dir(start_dir: str | None = None) -> str:
    """Walk upwards from start_dir (or the cwd) to the first directory with .tf files."""
    if not start_dir:
        try:
            start_dir = os.getcwd()
        except OSError as exc:
            raise TerraformError(f"failed to get current directory: {exc}") from exc

    current = start_dir
    while True:
        if _has_tf_files(current):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    raise TerraformError("no Terraform files found in the directory hierarchy")


def create_temp_plan_file() -> str:
    """Create an empty temporary plan file and return its path."""
    try:
        fd, path = tempfile.mkstemp(prefix="terraform-step-debug-", suffix=".tfplan")
    except OSError as exc:
        raise TerraformError(f"failed to create temporary plan file: {exc}") from exc
    try:
        os.close(fd)
    except OSError as exc:
        raise TerraformError(f"failed to close temporary plan file: {exc}") from exc
    return path


def _parse_int(text: str, which: str) -> int:
    try:
        return int(text)
    except ValueError as exc:
        raise TerraformError(f"unable to parse Terraform {which} version: {exc}") from exc


def parse_terraform_version(output: str) -> tuple[str, int, int]:
    """Parse `terraform version` output into (version, major, minor).

    Raises TerraformError if the output is not understood or the version is
    older than 0.12.
    """
    if "Terraform v" not in output:
        raise TerraformError(f"unexpected Terraform version output: {output}")

    _, _, rest = output.partition("v")
    tokens = rest.split()
    number = tokens[0] if tokens else ""

    parts = number.split(".")
    if len(parts) < 2:
        raise TerraformError(f"unable to parse Terraform version number: {number}")

    major = _parse_int(parts[0], "major")
    minor = _parse_int(parts[1], "minor")

    if major == 0 and minor < 12:
        raise TerraformError(
            f"unsupported Terraform version {number}, "
            "version 0.12.0 or higher is required"
        )
    return number, major, minor


def check_terraform_version(terraform_path: str) -> str:
    """Run `terraform version`, check it is supported and return the version."""
    try:
        result = subprocess.run(
            [terraform_path, "version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise TerraformError(f"failed to get Terraform version: {exc}") from exc

    number, major, minor = parse_terraform_version(result.stdout)
    if major >= 1 and minor >= 11:
        print(f"Using Terraform v{number}")
    return number


def cleanup_files(*args: str) -> None:
    """Remove the given files, ignoring any that cannot be removed."""
    for path in args:
        try:
            os.remove(path)
        except OSError:
            pass


def validate_target_resource(target: str, addresses: Iterable[str]) -> None:
    """Raise TerraformError unless target is empty or one of the addresses."""
    if not target:
        return
    if target not in set(addresses):
        raise TerraformError(f"target resource '{target}' not found in plan")


def calculate_resource_count(resource_map: Mapping[str, str]) -> dict[str, int]:
    """Count resources by their action."""
    return dict(Counter(resource_map.values()))


def format_action(action: str) -> str:
    """Return a display label for an action name."""
    return _ACTION_LABELS.get(action, action)


def format_address(address: str) -> str:
    """Render a resource address the way it appears in configuration."""
    if address.startswith("data."):
        parts = address[5:].split(".", 1)
        if len(parts) == 2:
            return f'data "{parts[0]}" "{parts[1]}"'

    parts = address.split(".", 1)
    if len(parts) == 2:
        return f'"{parts[0]}" "{parts[1]}"'
    return address