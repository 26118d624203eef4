"""End-to-end tests of the registered build, launch and verification tasks."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from buildkit import config
from buildkit.errors import BuildFailedError
from buildkit.project import build_project
from buildkit.types import TaskContext, TaskStatus


def _context(settings, runner, **kwargs) -> TaskContext:
    return TaskContext(settings=settings, runner=runner, **kwargs)


def _java_option_args(argv: list[str]) -> list[str]:
    """Arguments between the java executable and ``-cp``."""

    return argv[1 : argv.index("-cp")]


def _app_args(argv: list[str]) -> list[str]:
    return argv[argv.index("-cp") + 3 :]


def test_registered_tasks_and_groups(settings) -> None:
    graph = build_project(settings)
    groups = {task.name: task.group for task in graph.tasks}

    assert groups == {
        "npmInstall": "build",
        "npmBuild": "build",
        "compileJava": "build",
        "processResources": "build",
        "classes": "build",
        "clean": "build",
        "precompute": "application",
        "bootRun": "application",
        "cleanCache": "application",
        "fastVerify": "verification",
        "compileTestJava": "build",
        "test": "verification",
    }


def test_frontend_bundle_precedes_resource_processing(settings) -> None:
    order = [task.name for task in build_project(settings).plan(["processResources"])]

    assert order == ["npmInstall", "npmBuild", "processResources"]


def test_bundled_assets_are_packaged_with_resources(settings, recording_runner) -> None:
    graph = build_project(settings)

    graph.execute(["processResources"], _context(settings, recording_runner))

    layout = settings.layout
    assert recording_runner.names == ["npmInstall", "npmBuild"]
    assert recording_runner.command("npmInstall").args == ("npm", "install")
    assert recording_runner.command("npmBuild").args == ("npm", "run", "build")
    assert recording_runner.command("npmBuild").cwd == layout.client_dir
    assert (layout.processed_resources_dir / "static" / "index.html").exists()
    assert (layout.processed_resources_dir / "mrf_config.json").exists()


@pytest.mark.parametrize("failing", ["npmInstall", "npmBuild"])
def test_frontend_failure_stops_before_resource_processing(
    settings, recording_runner, failing: str
) -> None:
    recording_runner.returncodes[failing] = 2
    graph = build_project(settings)

    with pytest.raises(BuildFailedError) as excinfo:
        graph.execute(["bootRun"], _context(settings, recording_runner))

    result = excinfo.value.result
    assert result.status_of(failing) is TaskStatus.FAILED
    assert result.status_of("processResources") is TaskStatus.NOT_RUN
    assert result.status_of("bootRun") is TaskStatus.NOT_RUN
    assert not settings.layout.processed_resources_dir.exists()
    assert "bootRun" not in recording_runner.names
    assert excinfo.value.exit_code == 2


def test_second_build_is_up_to_date(settings, recording_runner) -> None:
    context = _context(settings, recording_runner)
    build_project(settings).execute(["classes"], context)
    recording_runner.commands.clear()

    result = build_project(settings).execute(["classes"], context)

    assert recording_runner.names == []
    assert result.names(TaskStatus.UP_TO_DATE) == [
        "compileJava",
        "npmInstall",
        "npmBuild",
        "processResources",
    ]


def test_frontend_change_rebundles_and_repackages(settings, recording_runner) -> None:
    context = _context(settings, recording_runner)
    build_project(settings).execute(["processResources"], context)
    recording_runner.commands.clear()

    (settings.layout.client_dir / "src" / "main.js").write_text(
        "console.log('changed')", encoding="utf-8"
    )
    result = build_project(settings).execute(["processResources"], context)

    assert recording_runner.names == ["npmBuild"]
    assert result.status_of("npmInstall") is TaskStatus.UP_TO_DATE
    assert result.status_of("processResources") is TaskStatus.EXECUTED


def test_compile_java_uses_argfile_and_dependency_jars(settings, recording_runner) -> None:
    build_project(settings).execute(["compileJava"], _context(settings, recording_runner))

    layout = settings.layout
    argv = list(recording_runner.command("compileJava").args)
    assert recording_runner.command("compileJava").cwd == layout.server_dir
    assert argv[:5] == ["javac", "-encoding", "UTF-8", "-d", str(layout.classes_dir)]
    assert argv[argv.index("-cp") + 1] == str(layout.lib_dir / "sqlite-jdbc-3.45.1.0.jar")
    argfile = argv[-1]
    assert argfile.startswith("@")
    listed = Path(argfile[1:]).read_text(encoding="utf-8")
    assert "MarkovAiApplication.java" in listed


def test_compile_java_without_sources_runs_nothing(settings, recording_runner) -> None:
    for source in settings.layout.java_source_dir.rglob("*.java"):
        source.unlink()

    result = build_project(settings).execute(
        ["compileJava"], _context(settings, recording_runner)
    )

    assert recording_runner.names == []
    assert result.status_of("compileJava") is TaskStatus.EXECUTED


def test_boot_run_forwards_only_present_allow_listed_flags(
    settings, recording_runner
) -> None:
    properties = {
        "server.port": "9090",
        "feedbackMode": "adaptive",
        "user.home": "/tmp/elsewhere",
        "spring.profiles.active": "dev",
    }

    build_project(settings).execute(
        ["bootRun"], _context(settings, recording_runner, properties=properties)
    )

    argv = list(recording_runner.command("bootRun").args)
    assert argv[0] == "java"
    assert _java_option_args(argv) == [
        "-Xmx2g",
        "-DfeedbackMode=adaptive",
        "-Dserver.port=9090",
    ]
    assert argv[argv.index("-cp") + 2] == config.APPLICATION_MAIN_CLASS
    assert _app_args(argv) == []
    assert recording_runner.command("bootRun").cwd == settings.layout.server_dir


def test_boot_run_heap_is_fixed_with_no_flags(settings, recording_runner) -> None:
    build_project(settings).execute(["bootRun"], _context(settings, recording_runner))

    argv = list(recording_runner.command("bootRun").args)
    assert _java_option_args(argv) == ["-Xmx2g"]


def test_boot_run_classpath_includes_classes_resources_and_jars(
    settings, recording_runner
) -> None:
    build_project(settings).execute(
        ["bootRun"],
        _context(settings, recording_runner, app_args=("--server.address=0.0.0.0",)),
    )

    layout = settings.layout
    argv = list(recording_runner.command("bootRun").args)
    classpath = argv[argv.index("-cp") + 1].split(os.pathsep)
    assert classpath == [
        str(layout.classes_dir),
        str(layout.processed_resources_dir),
        str(layout.lib_dir / "sqlite-jdbc-3.45.1.0.jar"),
    ]
    assert _app_args(argv) == ["--server.address=0.0.0.0"]


def test_fast_verify_compiles_first_and_passes_exactly_two_args(
    settings, recording_runner
) -> None:
    graph = build_project(settings)
    assert [t.name for t in graph.plan(["fastVerify"])] == ["compileJava", "fastVerify"]

    graph.execute(
        ["fastVerify"],
        _context(
            settings,
            recording_runner,
            properties={"server.port": "9090"},
            app_args=("--extra",),
        ),
    )

    layout = settings.layout
    assert recording_runner.names == ["compileJava", "fastVerify"]
    argv = list(recording_runner.command("fastVerify").args)
    assert _java_option_args(argv) == ["-Xmx2g"]
    assert _app_args(argv) == ["--verifyFeedbackSweep=true", "--printSweepAsCSV=true"]
    classpath = argv[argv.index("-cp") + 1].split(os.pathsep)
    assert classpath[:2] == [str(layout.classes_dir), str(layout.resources_dir)]


def test_fast_verify_reuses_fresh_compilation(settings, recording_runner) -> None:
    context = _context(settings, recording_runner)
    build_project(settings).execute(["compileJava"], context)
    recording_runner.commands.clear()

    result = build_project(settings).execute(["fastVerify"], context)

    assert result.status_of("compileJava") is TaskStatus.UP_TO_DATE
    assert recording_runner.names == ["fastVerify"]


def test_precompute_runs_without_the_web_server(settings, recording_runner) -> None:
    graph = build_project(settings)

    result = graph.execute(
        ["precompute"],
        _context(settings, recording_runner, properties={"server.port": "9090"}),
    )

    assert "bootRun" not in result.names()
    argv = list(recording_runner.command("precompute").args)
    assert argv[argv.index("-cp") + 2] == config.PRECOMPUTE_MAIN_CLASS
    assert _java_option_args(argv) == []
    assert _app_args(argv) == []


def test_precompute_forwards_invoker_args(settings, recording_runner) -> None:
    build_project(settings).execute(
        ["precompute"],
        _context(settings, recording_runner, app_args=("/data/mnist_png",)),
    )

    argv = list(recording_runner.command("precompute").args)
    assert _app_args(argv) == ["/data/mnist_png"]


def test_launch_failure_reports_process_exit_code(settings, recording_runner) -> None:
    recording_runner.returncodes["bootRun"] = 130

    with pytest.raises(BuildFailedError) as excinfo:
        build_project(settings).execute(["bootRun"], _context(settings, recording_runner))

    assert excinfo.value.exit_code == 130
    assert excinfo.value.result.status_of("processResources") is TaskStatus.EXECUTED


def test_clean_removes_build_outputs_and_state(settings, recording_runner) -> None:
    context = _context(settings, recording_runner)
    build_project(settings).execute(["classes"], context)
    assert settings.layout.build_dir.exists()
    assert settings.state_path.exists()

    build_project(settings).execute(["clean"], context)

    assert not settings.layout.build_dir.exists()
    assert not settings.state_path.exists()
    assert (settings.layout.java_source_dir).exists()


def test_compile_test_java_builds_against_main_classes(settings, recording_runner) -> None:
    build_project(settings).execute(
        ["compileTestJava"], _context(settings, recording_runner)
    )

    layout = settings.layout
    assert recording_runner.names == ["compileJava", "compileTestJava"]
    argv = list(recording_runner.command("compileTestJava").args)
    assert argv[:5] == ["javac", "-encoding", "UTF-8", "-d", str(layout.test_classes_dir)]
    assert argv[argv.index("-cp") + 1].split(os.pathsep) == [
        str(layout.classes_dir),
        str(layout.lib_dir / "sqlite-jdbc-3.45.1.0.jar"),
    ]
    listed = Path(argv[-1][1:]).read_text(encoding="utf-8")
    assert "MarkovAiApplicationTest.java" in listed
    assert "MarkovAiApplication.java" not in listed


def test_test_task_launches_junit_after_resources(settings, recording_runner) -> None:
    graph = build_project(settings)

    graph.execute(["test"], _context(settings, recording_runner, app_args=("--x",)))

    layout = settings.layout
    assert recording_runner.names == [
        "compileJava",
        "compileTestJava",
        "npmInstall",
        "npmBuild",
        "test",
    ]
    argv = list(recording_runner.command("test").args)
    assert _java_option_args(argv) == []
    assert argv[argv.index("-cp") + 2] == config.JUNIT_LAUNCHER_MAIN_CLASS
    assert _app_args(argv) == [
        "execute",
        f"--scan-class-path={layout.test_classes_dir}",
    ]
    classpath = argv[argv.index("-cp") + 1].split(os.pathsep)
    assert classpath == [
        str(layout.test_classes_dir),
        str(layout.test_resources_dir),
        str(layout.classes_dir),
        str(layout.processed_resources_dir),
        str(layout.lib_dir / "sqlite-jdbc-3.45.1.0.jar"),
    ]
    assert recording_runner.command("test").cwd == layout.server_dir


def test_failing_tests_fail_the_build(settings, recording_runner) -> None:
    recording_runner.returncodes["test"] = 1

    with pytest.raises(BuildFailedError) as excinfo:
        build_project(settings).execute(["test"], _context(settings, recording_runner))

    assert excinfo.value.result.status_of("test") is TaskStatus.FAILED
    assert excinfo.value.exit_code == 1


def test_test_task_without_test_sources_launches_nothing(
    settings, recording_runner
) -> None:
    for source in settings.layout.test_source_dir.rglob("*.java"):
        source.unlink()

    result = build_project(settings).execute(["test"], _context(settings, recording_runner))

    assert "compileTestJava" not in recording_runner.names
    assert "test" not in recording_runner.names
    assert result.status_of("test") is TaskStatus.EXECUTED
