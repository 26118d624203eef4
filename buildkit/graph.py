"""Directed acyclic task graph with up-to-date checks and abort-on-failure."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from structlog.typing import FilteringBoundLogger

from .errors import (
    BuildFailedError,
    CyclicDependencyError,
    DuplicateTaskError,
    TaskActionError,
    UnknownTaskError,
)
from .fingerprint import TaskStateStore, fingerprint_paths
from .types import BuildResult, TaskContext, TaskOutcome, TaskStatus

TaskAction = Callable[[TaskContext], None]


def _no_action(context: TaskContext) -> None:
    return None


@dataclass(frozen=True)
class Task:
    """A named unit of work with declared dependencies, inputs and outputs."""

    name: str
    action: TaskAction = _no_action
    group: str = "other"
    description: str = ""
    depends_on: tuple[str, ...] = ()
    inputs: tuple[Path, ...] = ()
    outputs: tuple[Path, ...] = ()

    @property
    def tracks_outputs(self) -> bool:
        return bool(self.outputs)


@dataclass(slots=True)
class TaskGraph:
    state: TaskStateStore | None = None
    root: Path = field(default_factory=Path.cwd)
    logger: FilteringBoundLogger = field(
        default_factory=lambda: structlog.get_logger(__name__)
    )
    _tasks: dict[str, Task] = field(default_factory=dict)

    def register(self, task: Task) -> Task:
        if task.name in self._tasks:
            raise DuplicateTaskError(task.name)
        self._tasks[task.name] = task
        return task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name, tuple(self._tasks)) from None

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def plan(
        self, requested: Iterable[str], *, exclude: Iterable[str] = ()
    ) -> list[Task]:
        """Return the dependency closure of *requested* in execution order.

        Dependencies come before dependents; otherwise the order follows the
        request order and then each task's ``depends_on`` order. Excluded tasks
        are dropped together with dependencies only they required.
        """

        excluded = set(exclude)
        for name in excluded:
            self.get(name)

        ordered: list[Task] = []
        visited: set[str] = set()
        stack: list[str] = []

        def visit(name: str) -> None:
            if name in visited:
                return
            if name in excluded:
                # dependencies reached only through an excluded task are dropped
                visited.add(name)
                return
            if name in stack:
                start = stack.index(name)
                raise CyclicDependencyError([*stack[start:], name])
            task = self.get(name)
            stack.append(name)
            for dependency in task.depends_on:
                visit(dependency)
            stack.pop()
            visited.add(name)
            ordered.append(task)

        for name in requested:
            visit(name)

        return ordered

    def execute(
        self,
        requested: Sequence[str],
        context: TaskContext,
        *,
        exclude: Iterable[str] = (),
        rerun: bool = False,
        dry_run: bool = False,
    ) -> BuildResult:
        """Run the plan for *requested*, stopping at the first failure.

        Raises :class:`BuildFailedError` carrying the partial result when a
        task fails; every task after it is reported as ``NOT_RUN``.
        """

        plan = self.plan(requested, exclude=exclude)
        result = BuildResult(dry_run=dry_run)
        if dry_run:
            result.outcomes = [TaskOutcome(t.name, TaskStatus.SKIPPED) for t in plan]
            return result

        for index, task in enumerate(plan):
            outcome = self._run_task(task, context, rerun=rerun)
            result.outcomes.append(outcome)
            if outcome.status is TaskStatus.FAILED:
                remaining = [t.name for t in plan[index + 1 :]]
                result.outcomes.extend(
                    TaskOutcome(name, TaskStatus.NOT_RUN) for name in remaining
                )
                self.logger.error(
                    "build.aborted", failed_task=task.name, not_run=remaining
                )
                raise BuildFailedError(result)
        return result

    def _fingerprints(self, task: Task) -> tuple[str, str]:
        return (
            fingerprint_paths(task.inputs, root=self.root),
            fingerprint_paths(task.outputs, root=self.root),
        )

    def _is_up_to_date(self, task: Task) -> bool:
        if self.state is None or not task.tracks_outputs:
            return False
        record = self.state.get(task.name)
        if record is None:
            return False
        if not all(path.exists() for path in task.outputs):
            return False
        inputs, outputs = self._fingerprints(task)
        return record.inputs == inputs and record.outputs == outputs

    def _run_task(self, task: Task, context: TaskContext, *, rerun: bool) -> TaskOutcome:
        start = time.perf_counter()
        try:
            if not rerun and self._is_up_to_date(task):
                self.logger.info("task.up_to_date", task=task.name)
                return TaskOutcome(task.name, TaskStatus.UP_TO_DATE)
            self.logger.info("task.started", task=task.name)
            start = time.perf_counter()
            task.action(context)
            if self.state is not None and task.tracks_outputs:
                inputs, outputs = self._fingerprints(task)
                self.state.record(task.name, inputs=inputs, outputs=outputs)
        except TaskActionError as exc:
            return self._failed(task, start, exc, returncode=exc.returncode)
        except Exception as exc:  # noqa: BLE001 - reported as the failed task
            return self._failed(task, start, exc)

        duration = time.perf_counter() - start
        self.logger.info("task.executed", task=task.name, duration=round(duration, 3))
        return TaskOutcome(task.name, TaskStatus.EXECUTED, duration=duration)

    def _failed(
        self,
        task: Task,
        start: float,
        exc: Exception,
        *,
        returncode: int | None = None,
    ) -> TaskOutcome:
        duration = time.perf_counter() - start
        self._forget(task)
        self.logger.error(
            "task.failed",
            task=task.name,
            returncode=returncode,
            error=str(exc),
            exc_type=type(exc).__name__,
        )
        return TaskOutcome(
            task.name,
            TaskStatus.FAILED,
            duration=duration,
            error=str(exc) or type(exc).__name__,
            returncode=returncode,
        )

    def _forget(self, task: Task) -> None:
        if self.state is not None:
            self.state.forget(task.name)
