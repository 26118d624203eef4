"""Frontend dependency install and bundle steps.

The bundler is configured with its output directory inside the backend's
static resources, so ``npm run build`` writes straight into
``server/src/main/resources/static`` rather than ``client/dist``.
"""

from __future__ import annotations

from .config import BuildSettings
from .process import CommandSpec, run_checked
from .types import TaskContext


def npm_install_command(settings: BuildSettings) -> CommandSpec:
    return CommandSpec(
        name="npmInstall",
        args=(settings.toolchain.npm, "install"),
        cwd=settings.layout.client_dir,
    )


def npm_build_command(settings: BuildSettings) -> CommandSpec:
    return CommandSpec(
        name="npmBuild",
        args=(settings.toolchain.npm, "run", "build"),
        cwd=settings.layout.client_dir,
    )


def npm_install(context: TaskContext) -> None:
    run_checked(context.runner, "npmInstall", npm_install_command(context.settings))


def npm_build(context: TaskContext) -> None:
    run_checked(context.runner, "npmBuild", npm_build_command(context.settings))
