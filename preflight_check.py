#!/usr/bin/env python3
"""Pre-flight checks — required tools on PATH and a Node.js project root."""
import shutil
import sys
from pathlib import Path
from typing import Iterable, Optional


class PreflightError(RuntimeError):
    """A precondition for running the wizard is not met."""


def binary_in_path(name: str) -> bool:
    return shutil.which(name) is not None


def check_binaries(names: Iterable[str]) -> None:
    """Raise PreflightError for the first binary not resolvable on PATH."""
    for name in names:
        if not binary_in_path(name):
            raise PreflightError(f"You need to install {name}!")


def check_project(cwd: "str | Path | None" = None, descriptor: str = "package.json") -> Path:
    """Raise PreflightError unless cwd holds the project descriptor."""
    path = Path(cwd or Path.cwd()) / descriptor
    if not path.exists():
        raise PreflightError("This doesn't appear to be a Node.js application - run 'npm init'?")
    return path


def run_preflight(settings: dict, cwd: "str | Path | None" = None) -> list[str]:
    """Collect every failure instead of stopping at the first one."""
    errors: list[str] = []
    for name in settings["required_binaries"]:
        try:
            check_binaries([name])
        except PreflightError as e:
            errors.append(str(e))
    try:
        check_project(cwd, settings["project_descriptor"])
    except PreflightError as e:
        errors.append(str(e))
    return errors


def main(cwd: Optional[str] = None) -> int:
    from config_loader import ConfigError, load_config
    try:
        settings = load_config()
    except ConfigError as e:
        print(f"  ❌ ERROR:   {e}")
        return 1

    print("=== Preflight ===")
    for name in settings["required_binaries"]:
        print(f"  {name + ':':<16} {shutil.which(name) or 'NOT FOUND'}")
    print(f"  {'project:':<16} {Path(cwd or Path.cwd()) / settings['project_descriptor']}")
    print()

    errors = run_preflight(settings, cwd)
    for e in errors:
        print(f"  ❌ ERROR:   {e}")
    if errors:
        print("\nPREFLIGHT FAILED — fix errors above before running deploy-node-app.")
        return 1
    print("All checks passed — READY")
    return 0


if __name__ == "__main__":
    sys.exit(main())
