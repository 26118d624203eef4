"""Exception hierarchy raised by the task graph and its actions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .types import BuildResult


class BuildkitError(RuntimeError):
    """Base class for build orchestration failures."""


class UnknownTaskError(BuildkitError):
    def __init__(self, name: str, available: Sequence[str] = ()) -> None:
        self.name = name
        self.available = tuple(available)
        message = f"Task '{name}' not found"
        if self.available:
            message += f"; available tasks: {', '.join(sorted(self.available))}"
        super().__init__(message)


class DuplicateTaskError(BuildkitError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Task '{name}' is already registered")


class CyclicDependencyError(BuildkitError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__("Circular task dependency: " + " -> ".join(self.cycle))


class TaskActionError(BuildkitError):
    """Raised by an action when its external command exits non-zero."""

    def __init__(self, task: str, returncode: int, command: str | None = None) -> None:
        self.task = task
        self.returncode = returncode
        self.command = command
        detail = f" ({command})" if command else ""
        super().__init__(f"Task '{task}' failed with exit code {returncode}{detail}")


class BuildFailedError(BuildkitError):
    """Raised when a task fails and the remaining plan is aborted."""

    def __init__(self, result: BuildResult) -> None:
        self.result = result
        failed = result.failed_task
        name = failed.name if failed else "<unknown>"
        reason = failed.error if failed and failed.error else "task failed"
        super().__init__(f"Execution failed for task '{name}': {reason}")

    @property
    def exit_code(self) -> int:
        return self.result.exit_code
