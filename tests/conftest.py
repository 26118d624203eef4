"""Shared fixtures: a throwaway client/server tree and a recording runner."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from buildkit.config import BuildSettings, ProjectLayout, ToolchainSettings
from buildkit.process import CommandSpec


class RecordingRunner:
    """ProcessRunner that records commands and simulates their outputs."""

    def __init__(self, settings: BuildSettings) -> None:
        self.settings = settings
        self.commands: list[CommandSpec] = []
        self.returncodes: dict[str, int] = {}
        self.effects: dict[str, Callable[[CommandSpec], None]] = {
            "npmInstall": self._install,
            "npmBuild": self._bundle,
            "compileJava": self._compile,
            "compileTestJava": self._compile_tests,
        }

    def __call__(self, spec: CommandSpec) -> int:
        self.commands.append(spec)
        code = self.returncodes.get(spec.name, 0)
        if code == 0 and spec.name in self.effects:
            self.effects[spec.name](spec)
        return code

    @property
    def names(self) -> list[str]:
        return [spec.name for spec in self.commands]

    def command(self, name: str) -> CommandSpec:
        matches = [spec for spec in self.commands if spec.name == name]
        assert len(matches) == 1, f"expected one {name} command, saw {len(matches)}"
        return matches[0]

    def _install(self, spec: CommandSpec) -> None:
        modules = self.settings.layout.client_dir / "node_modules"
        modules.mkdir(parents=True, exist_ok=True)
        (modules / ".package-lock.json").write_text("{}", encoding="utf-8")

    def _bundle(self, spec: CommandSpec) -> None:
        static = self.settings.layout.static_dir
        static.mkdir(parents=True, exist_ok=True)
        source = self.settings.layout.client_dir / "src" / "main.js"
        bundle = source.read_text(encoding="utf-8") if source.exists() else ""
        (static / "index.html").write_text(
            f"<html><script>{bundle}</script></html>", encoding="utf-8"
        )

    def _compile(self, spec: CommandSpec) -> None:
        classes = self.settings.layout.classes_dir / "com" / "markovai" / "server"
        classes.mkdir(parents=True, exist_ok=True)
        (classes / "MarkovAiApplication.class").write_bytes(b"\xca\xfe\xba\xbe")

    def _compile_tests(self, spec: CommandSpec) -> None:
        classes = self.settings.layout.test_classes_dir / "com" / "markovai" / "server"
        classes.mkdir(parents=True, exist_ok=True)
        (classes / "MarkovAiApplicationTest.class").write_bytes(b"\xca\xfe\xba\xbe")


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    _write(root / "client" / "package.json", '{"name": "client"}')
    _write(root / "client" / "index.html", "<div id='app'></div>")
    _write(root / "client" / "vite.config.js", "export default {}")
    _write(root / "client" / "src" / "main.js", "console.log('hi')")
    _write(
        root / "server" / "src" / "main" / "java" / "com" / "markovai" / "server"
        / "MarkovAiApplication.java",
        "package com.markovai.server; public class MarkovAiApplication {}",
    )
    _write(
        root / "server" / "src" / "test" / "java" / "com" / "markovai" / "server"
        / "MarkovAiApplicationTest.java",
        "package com.markovai.server; class MarkovAiApplicationTest {}",
    )
    _write(
        root / "server" / "src" / "main" / "resources" / "mrf_config.json",
        '{"nodes": []}',
    )
    (root / "server" / "lib").mkdir(parents=True)
    (root / "server" / "lib" / "sqlite-jdbc-3.45.1.0.jar").write_bytes(b"PK")
    return root


@pytest.fixture
def settings(project_root: Path) -> BuildSettings:
    return BuildSettings(
        layout=ProjectLayout(root=project_root.resolve()),
        toolchain=ToolchainSettings(java="java", javac="javac", npm="npm"),
    )


@pytest.fixture
def recording_runner(settings: BuildSettings) -> RecordingRunner:
    return RecordingRunner(settings)
