"""Central configuration for the MarkovAI build and launch tasks."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

# Shared coordinates ---------------------------------------------------------
GROUP = "com.markovai"
VERSION = "0.0.1-SNAPSHOT"
MAVEN_REPOSITORY = "https://repo.maven.apache.org/maven2"
PLUGIN_VERSIONS: dict[str, str] = {
    "org.springframework.boot": "3.2.1",
    "io.spring.dependency-management": "1.1.4",
}


# Launch constants -----------------------------------------------------------
MAX_HEAP = "2g"
APPLICATION_MAIN_CLASS = "com.markovai.server.MarkovAiApplication"
PRECOMPUTE_MAIN_CLASS = "com.markovai.server.tools.DigitDatasetPrecompute"
VERIFY_ARGS: tuple[str, ...] = ("--verifyFeedbackSweep=true", "--printSweepAsCSV=true")

# JUnit Platform console launcher; the standalone jar is expected in server/lib.
JUNIT_LAUNCHER_MAIN_CLASS = "org.junit.platform.console.ConsoleLauncher"

CACHE_DB_NAME = "markov_cache.db"
MRF_CONFIG_NAME = "mrf_config.json"
STATE_FILE_NAME = "task-state.json"


@dataclass(frozen=True)
class DependencyDeclaration:
    configuration: str
    coordinate: str


DEPENDENCIES: tuple[DependencyDeclaration, ...] = (
    DependencyDeclaration(
        "implementation", "org.springframework.boot:spring-boot-starter-web"
    ),
    DependencyDeclaration(
        "testImplementation", "org.springframework.boot:spring-boot-starter-test"
    ),
    DependencyDeclaration("implementation", "org.xerial:sqlite-jdbc:3.45.1.0"),
)


@dataclass(frozen=True)
class ToolchainSettings:
    java: str = "java"
    javac: str = "javac"
    npm: str = "npm"


@dataclass(frozen=True)
class ProjectLayout:
    """Filesystem layout of the client and server modules under one root."""

    root: Path

    @property
    def client_dir(self) -> Path:
        return self.root / "client"

    @property
    def server_dir(self) -> Path:
        return self.root / "server"

    @property
    def java_source_dir(self) -> Path:
        return self.server_dir / "src" / "main" / "java"

    @property
    def resources_dir(self) -> Path:
        return self.server_dir / "src" / "main" / "resources"

    @property
    def test_source_dir(self) -> Path:
        return self.server_dir / "src" / "test" / "java"

    @property
    def test_resources_dir(self) -> Path:
        return self.server_dir / "src" / "test" / "resources"

    @property
    def static_dir(self) -> Path:
        # Vite's outDir points here, not at client/dist.
        return self.resources_dir / "static"

    @property
    def lib_dir(self) -> Path:
        return self.server_dir / "lib"

    @property
    def build_dir(self) -> Path:
        return self.server_dir / "build"

    @property
    def classes_dir(self) -> Path:
        return self.build_dir / "classes" / "java" / "main"

    @property
    def test_classes_dir(self) -> Path:
        return self.build_dir / "classes" / "java" / "test"

    @property
    def processed_resources_dir(self) -> Path:
        return self.build_dir / "resources" / "main"

    @property
    def tmp_dir(self) -> Path:
        return self.build_dir / "tmp"

    @property
    def mrf_config(self) -> Path:
        return self.resources_dir / MRF_CONFIG_NAME


@dataclass(frozen=True)
class BuildSettings:
    layout: ProjectLayout
    toolchain: ToolchainSettings = field(default_factory=ToolchainSettings)
    state_dir: Path | None = None
    group: str = GROUP
    version: str = VERSION

    @property
    def state_path(self) -> Path:
        base = self.state_dir or (self.layout.root / ".buildkit")
        return base / STATE_FILE_NAME


def _get_value(name: str, default: str | None, env: Mapping[str, str]) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_path(name: str, env: Mapping[str, str]) -> Path | None:
    value = _get_value(name, None, env)
    if value is None:
        return None
    return Path(value).expanduser()


def _java_home_tool(tool: str, env: Mapping[str, str]) -> str:
    java_home = _get_value("JAVA_HOME", None, env)
    if java_home:
        return str(Path(java_home) / "bin" / tool)
    return tool


def _build_toolchain(env: Mapping[str, str]) -> ToolchainSettings:
    return ToolchainSettings(
        java=_get_value("BUILDKIT_JAVA", None, env) or _java_home_tool("java", env),
        javac=_get_value("BUILDKIT_JAVAC", None, env) or _java_home_tool("javac", env),
        npm=_get_value("BUILDKIT_NPM", "npm", env) or "npm",
    )


def load_settings(
    project_root: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> BuildSettings:
    """Build settings from the environment, layering ``<root>/.env`` underneath.

    Values already present in *env* win over the ``.env`` file.
    """

    source: dict[str, str] = dict(os.environ if env is None else env)
    root = project_root or _env_path("BUILDKIT_PROJECT_ROOT", source) or Path.cwd()
    root = root.expanduser().resolve()

    dotenv_path = root / ".env"
    if dotenv_path.exists():
        for key, value in dotenv_values(dotenv_path).items():
            if value is not None:
                source.setdefault(key, value)

    return BuildSettings(
        layout=ProjectLayout(root=root),
        toolchain=_build_toolchain(source),
        state_dir=_env_path("BUILDKIT_STATE_DIR", source),
    )
