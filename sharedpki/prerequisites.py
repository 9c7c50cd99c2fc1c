"""Check the external CLIs some commands shell out to (step, docker)."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass


@dataclass
class PrereqResult:
    name: str
    found: bool
    version: str
    hint: str

    @property
    def ok(self) -> bool:
        return self.found


def _check(name: str, binary: str, version_args: list[str], hint: str) -> PrereqResult:
    path = shutil.which(binary)
    if not path:
        return PrereqResult(name=name, found=False, version="", hint=hint)

    try:
        result = subprocess.run(
            [path, *version_args], capture_output=True, text=True, timeout=5
        )
        output = (result.stdout or result.stderr).strip()
        version = output.splitlines()[0] if output else ""
        return PrereqResult(name=name, found=True, version=version, hint="")
    except (OSError, subprocess.TimeoutExpired):
        return PrereqResult(
            name=name, found=False, version="", hint=f"Failed to detect {name} version"
        )


def check_step_cli() -> PrereqResult:
    """Check that the step CLI is available."""
    return _check(
        "step",
        "step",
        ["version"],
        "https://smallstep.com/docs/step-cli/installation/",
    )


def check_docker() -> PrereqResult:
    """Check that docker is available (root CA export from the container)."""
    return _check("docker", "docker", ["--version"], "https://docs.docker.com/get-docker/")


def check_all() -> list[PrereqResult]:
    return [check_step_cli(), check_docker()]
