"""Java compilation and launch helpers."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .config import BuildSettings
from .flags import system_property_args
from .process import CommandSpec


def library_jars(lib_dir: Path) -> list[Path]:
    if not lib_dir.is_dir():
        return []
    return sorted(lib_dir.glob("*.jar"))


def join_classpath(entries: Sequence[Path]) -> str:
    return os.pathsep.join(str(entry) for entry in entries)


def runtime_classpath(settings: BuildSettings) -> list[Path]:
    """Compiled classes, processed resources, then every dependency jar."""

    layout = settings.layout
    return [
        layout.classes_dir,
        layout.processed_resources_dir,
        *library_jars(layout.lib_dir),
    ]


def verification_classpath(settings: BuildSettings) -> list[Path]:
    """Compiled classes plus the raw resource directory and dependency jars.

    The verify run reads resources straight from ``src/main/resources`` so it
    only needs compilation to be current.
    """

    layout = settings.layout
    return [layout.classes_dir, layout.resources_dir, *library_jars(layout.lib_dir)]


def junit_classpath(settings: BuildSettings) -> list[Path]:
    """Test classes and resources ahead of the main runtime classpath."""

    layout = settings.layout
    return [
        layout.test_classes_dir,
        layout.test_resources_dir,
        *runtime_classpath(settings),
    ]


@dataclass(frozen=True)
class JavaExecSpec:
    main_class: str
    classpath: Sequence[Path]
    args: Sequence[str] = ()
    max_heap: str | None = None
    system_properties: Mapping[str, str] = field(default_factory=dict)
    working_dir: Path | None = None

    def command_line(self, java: str = "java") -> list[str]:
        argv = [java]
        if self.max_heap:
            argv.append(f"-Xmx{self.max_heap}")
        argv.extend(system_property_args(self.system_properties))
        argv.extend(["-cp", join_classpath(self.classpath), self.main_class])
        argv.extend(self.args)
        return argv

    def to_command(self, name: str, java: str = "java") -> CommandSpec:
        return CommandSpec(
            name=name,
            args=tuple(self.command_line(java)),
            cwd=self.working_dir,
        )


def java_sources(source_dir: Path) -> list[Path]:
    if not source_dir.is_dir():
        return []
    return sorted(source_dir.rglob("*.java"))


def write_argfile(path: Path, sources: Sequence[Path]) -> Path:
    """Write a javac ``@argfile`` listing one quoted source path per line."""

    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ['"' + source.as_posix().replace('"', '\\"') + '"' for source in sources]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def javac_command(
    settings: BuildSettings,
    argfile: Path,
    *,
    name: str,
    destination: Path,
    classpath: Sequence[Path],
) -> CommandSpec:
    args = [settings.toolchain.javac, "-encoding", "UTF-8", "-d", str(destination)]
    if classpath:
        args.extend(["-cp", join_classpath(classpath)])
    args.append(f"@{argfile}")
    return CommandSpec(name=name, args=tuple(args), cwd=settings.layout.server_dir)
