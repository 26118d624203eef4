"""External process execution for build actions."""

from __future__ import annotations

import logging
import shlex
import subprocess  # nosec B404 - commands are assembled from build settings
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .errors import TaskActionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    """Describe a shell command run on behalf of a task."""

    name: str
    args: Sequence[str]
    cwd: Path | None = None


def format_args(args: Sequence[str]) -> str:
    return shlex.join(args)


class ProcessRunner(Protocol):
    """Protocol for running one CommandSpec and returning its exit code."""

    def __call__(self, spec: CommandSpec) -> int: ...


_RUNNER_STACK: list[ProcessRunner] = []


def _run_subprocess(spec: CommandSpec) -> int:
    logger.info("Running %s: %s", spec.name, format_args(spec.args))
    try:
        # nosec B603 - argument vector, no shell
        result = subprocess.run(
            list(spec.args),
            cwd=str(spec.cwd) if spec.cwd else None,
            check=False,
        )
    except FileNotFoundError:
        logger.error("Executable not found for %s: %s", spec.name, spec.args[0])
        return 127
    return result.returncode


_DEFAULT_RUNNER: ProcessRunner = _run_subprocess


def get_process_runner() -> ProcessRunner:
    if _RUNNER_STACK:
        return _RUNNER_STACK[-1]
    return _DEFAULT_RUNNER


@contextmanager
def override_process_runner(runner: ProcessRunner) -> Iterator[None]:
    """Temporarily override the process runner."""

    _RUNNER_STACK.append(runner)
    try:
        yield
    finally:
        _RUNNER_STACK.pop()


def run_checked(runner: ProcessRunner, task: str, spec: CommandSpec) -> None:
    """Run *spec* and raise :class:`TaskActionError` on a non-zero exit."""

    returncode = runner(spec)
    if returncode != 0:
        raise TaskActionError(task, returncode, format_args(spec.args))
