"""Task wiring for the MarkovAI client/server build.

Two ordering edges carry the contract: ``npmBuild`` must finish before
``processResources`` packages the backend resources, and ``compileJava`` must
finish before ``fastVerify`` launches the verification sweep. The three launch
tasks (``precompute``, ``bootRun``, ``fastVerify``) are independent of each
other. ``test`` runs the backend JUnit suites once ``compileTestJava`` and
``processResources`` are done.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from scripts import cleanup as cleanup_script

from . import config
from .config import BuildSettings
from .datapath import clean_cache
from .fingerprint import TaskStateStore
from .flags import forward_properties
from .frontend import npm_build, npm_install
from .graph import Task, TaskAction, TaskGraph
from .java import (
    JavaExecSpec,
    java_sources,
    javac_command,
    junit_classpath,
    library_jars,
    runtime_classpath,
    verification_classpath,
    write_argfile,
)
from .process import run_checked
from .types import TaskContext

logger = logging.getLogger(__name__)

BUILD_GROUP = "build"
APPLICATION_GROUP = "application"
VERIFICATION_GROUP = "verification"


def _javac(
    context: TaskContext,
    name: str,
    source_dir: Path,
    destination: Path,
    classpath: list[Path],
) -> None:
    settings = context.settings
    sources = java_sources(source_dir)
    if not sources:
        logger.info("No Java sources under %s", source_dir)
        return
    destination.mkdir(parents=True, exist_ok=True)
    argfile = write_argfile(settings.layout.tmp_dir / name / "sources.txt", sources)
    command = javac_command(
        settings, argfile, name=name, destination=destination, classpath=classpath
    )
    run_checked(context.runner, name, command)


def _compile_java(context: TaskContext) -> None:
    layout = context.settings.layout
    _javac(
        context,
        "compileJava",
        layout.java_source_dir,
        layout.classes_dir,
        library_jars(layout.lib_dir),
    )


def _compile_test_java(context: TaskContext) -> None:
    layout = context.settings.layout
    _javac(
        context,
        "compileTestJava",
        layout.test_source_dir,
        layout.test_classes_dir,
        [layout.classes_dir, *library_jars(layout.lib_dir)],
    )


def _process_resources(context: TaskContext) -> None:
    layout = context.settings.layout
    target = layout.processed_resources_dir
    if target.exists():
        shutil.rmtree(target)
    if layout.resources_dir.is_dir():
        shutil.copytree(layout.resources_dir, target)
    else:
        target.mkdir(parents=True, exist_ok=True)


def precompute_spec(context: TaskContext) -> JavaExecSpec:
    settings = context.settings
    return JavaExecSpec(
        main_class=config.PRECOMPUTE_MAIN_CLASS,
        classpath=runtime_classpath(settings),
        args=tuple(context.app_args),
        working_dir=settings.layout.server_dir,
    )


def boot_run_spec(context: TaskContext) -> JavaExecSpec:
    settings = context.settings
    return JavaExecSpec(
        main_class=config.APPLICATION_MAIN_CLASS,
        classpath=runtime_classpath(settings),
        args=tuple(context.app_args),
        max_heap=config.MAX_HEAP,
        system_properties=forward_properties(context.properties),
        working_dir=settings.layout.server_dir,
    )


def fast_verify_spec(context: TaskContext) -> JavaExecSpec:
    # Fixed arguments; invoker args and properties are not forwarded here.
    settings = context.settings
    return JavaExecSpec(
        main_class=config.APPLICATION_MAIN_CLASS,
        classpath=verification_classpath(settings),
        args=config.VERIFY_ARGS,
        max_heap=config.MAX_HEAP,
        working_dir=settings.layout.server_dir,
    )


def junit_spec(context: TaskContext) -> JavaExecSpec:
    settings = context.settings
    return JavaExecSpec(
        main_class=config.JUNIT_LAUNCHER_MAIN_CLASS,
        classpath=junit_classpath(settings),
        args=("execute", f"--scan-class-path={settings.layout.test_classes_dir}"),
        working_dir=settings.layout.server_dir,
    )


def _java_exec(
    name: str, spec_factory: Callable[[TaskContext], JavaExecSpec]
) -> TaskAction:
    def action(context: TaskContext) -> None:
        spec = spec_factory(context)
        command = spec.to_command(name, java=context.settings.toolchain.java)
        run_checked(context.runner, name, command)

    action.__name__ = f"_{name}_action"
    return action


def _run_tests(context: TaskContext) -> None:
    layout = context.settings.layout
    if not java_sources(layout.test_source_dir):
        logger.info("No test sources under %s", layout.test_source_dir)
        return
    _java_exec("test", junit_spec)(context)


def _clean(context: TaskContext) -> None:
    settings = context.settings
    root = settings.layout.root
    extra: list[str] = []
    try:
        extra.append(settings.state_path.resolve().relative_to(root).as_posix())
    except ValueError:
        logger.info("Task state %s lives outside the project root", settings.state_path)
    result = cleanup_script.cleanup(project_root=root, include=extra)
    for path in result.removed:
        logger.info("Removed %s", path)
    for path in result.tracked:
        logger.warning("Kept git-tracked file %s", path)


def build_project(settings: BuildSettings, graph: TaskGraph | None = None) -> TaskGraph:
    """Register every build, launch and verification task on a graph."""

    layout = settings.layout
    if graph is None:
        graph = TaskGraph(state=TaskStateStore(settings.state_path), root=layout.root)

    graph.register(
        Task(
            name="npmInstall",
            action=npm_install,
            group=BUILD_GROUP,
            description="Installs frontend dependencies.",
            inputs=(layout.client_dir / "package.json",),
            outputs=(layout.client_dir / "node_modules",),
        )
    )
    graph.register(
        Task(
            name="npmBuild",
            action=npm_build,
            group=BUILD_GROUP,
            description="Bundles the frontend into the backend static resources.",
            depends_on=("npmInstall",),
            inputs=(
                layout.client_dir / "src",
                layout.client_dir / "index.html",
                layout.client_dir / "vite.config.js",
            ),
            outputs=(layout.static_dir,),
        )
    )
    graph.register(
        Task(
            name="compileJava",
            action=_compile_java,
            group=BUILD_GROUP,
            description="Compiles backend Java sources.",
            inputs=(layout.java_source_dir, layout.lib_dir),
            outputs=(layout.classes_dir,),
        )
    )
    graph.register(
        Task(
            name="processResources",
            action=_process_resources,
            group=BUILD_GROUP,
            description="Copies backend resources, bundled frontend included.",
            depends_on=("npmBuild",),
            inputs=(layout.resources_dir,),
            outputs=(layout.processed_resources_dir,),
        )
    )
    graph.register(
        Task(
            name="classes",
            group=BUILD_GROUP,
            description="Assembles compiled classes and processed resources.",
            depends_on=("compileJava", "processResources"),
        )
    )
    graph.register(
        Task(
            name="clean",
            action=_clean,
            group=BUILD_GROUP,
            description="Deletes build outputs and recorded task state.",
        )
    )
    graph.register(
        Task(
            name="precompute",
            action=_java_exec("precompute", precompute_spec),
            group=APPLICATION_GROUP,
            description="Runs the offline precompute tool.",
            depends_on=("classes",),
        )
    )
    graph.register(
        Task(
            name="bootRun",
            action=_java_exec("bootRun", boot_run_spec),
            group=APPLICATION_GROUP,
            description="Runs the web application with forwarded flags.",
            depends_on=("classes",),
        )
    )
    graph.register(
        Task(
            name="cleanCache",
            action=clean_cache,
            group=APPLICATION_GROUP,
            description="Deletes the Markov result cache database.",
        )
    )
    graph.register(
        Task(
            name="fastVerify",
            action=_java_exec("fastVerify", fast_verify_spec),
            group=VERIFICATION_GROUP,
            description="Runs the feedback sweep verification with CSV output.",
            depends_on=("compileJava",),
        )
    )
    graph.register(
        Task(
            name="compileTestJava",
            action=_compile_test_java,
            group=BUILD_GROUP,
            description="Compiles backend test sources against the main classes.",
            depends_on=("compileJava",),
            inputs=(layout.test_source_dir, layout.classes_dir, layout.lib_dir),
            outputs=(layout.test_classes_dir,),
        )
    )
    graph.register(
        Task(
            name="test",
            action=_run_tests,
            group=VERIFICATION_GROUP,
            description="Runs the backend JUnit suites on the JUnit Platform.",
            depends_on=("compileTestJava", "processResources"),
        )
    )
    return graph
