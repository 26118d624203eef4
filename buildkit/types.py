"""Shared dataclasses describing task execution state."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import BuildSettings
    from .process import ProcessRunner


class TaskStatus(str, Enum):
    EXECUTED = "executed"
    UP_TO_DATE = "up-to-date"
    FAILED = "failed"
    NOT_RUN = "not run"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TaskContext:
    """Everything an action may read, passed explicitly per execution.

    ``properties`` holds the invoker's ``-D`` properties. Actions that forward
    them to a child process filter through the allow-list themselves.
    """

    settings: BuildSettings
    runner: ProcessRunner
    properties: Mapping[str, str] = field(default_factory=dict)
    app_args: Sequence[str] = ()


@dataclass(slots=True)
class TaskOutcome:
    name: str
    status: TaskStatus
    duration: float = 0.0
    error: str | None = None
    returncode: int | None = None


@dataclass(slots=True)
class BuildResult:
    outcomes: list[TaskOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def failed_task(self) -> TaskOutcome | None:
        for outcome in self.outcomes:
            if outcome.status is TaskStatus.FAILED:
                return outcome
        return None

    @property
    def exit_code(self) -> int:
        failed = self.failed_task
        if failed is None:
            return 0
        code = failed.returncode
        if not code:
            return 1
        # a child killed by signal n reports -n; a shell reports 128 + n
        return 128 - code if code < 0 else code

    def status_of(self, name: str) -> TaskStatus | None:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome.status
        return None

    def names(self, status: TaskStatus | None = None) -> list[str]:
        return [
            outcome.name
            for outcome in self.outcomes
            if status is None or outcome.status is status
        ]
