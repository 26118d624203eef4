"""Build and launch orchestration for the MarkovAI client/server project."""

from .config import BuildSettings, load_settings
from .errors import (
    BuildFailedError,
    BuildkitError,
    CyclicDependencyError,
    DuplicateTaskError,
    TaskActionError,
    UnknownTaskError,
)
from .flags import FORWARDED_FLAGS, forward_properties
from .graph import Task, TaskGraph
from .project import build_project
from .types import BuildResult, TaskContext, TaskOutcome, TaskStatus

__all__ = [
    "BuildFailedError",
    "BuildResult",
    "BuildSettings",
    "BuildkitError",
    "CyclicDependencyError",
    "DuplicateTaskError",
    "FORWARDED_FLAGS",
    "Task",
    "TaskActionError",
    "TaskContext",
    "TaskGraph",
    "TaskOutcome",
    "TaskStatus",
    "UnknownTaskError",
    "build_project",
    "forward_properties",
    "load_settings",
]
