"""Remove build outputs from the project tree for the ``clean`` task.

Targets must stay inside the project root. Anything git tracks under a target
is left in place and reported instead of deleted.
"""

from __future__ import annotations

import shutil
import subprocess  # nosec B404 - git queries with fixed arguments
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

BUILD_OUTPUTS: tuple[str, ...] = ("server/build", ".buildkit")


@dataclass(frozen=True)
class CleanupResult:
    removed: tuple[Path, ...]
    skipped: tuple[Path, ...]
    tracked: tuple[Path, ...]
    dry_run: bool


def _resolve_inside(root: Path, target: str) -> Path:
    path = (root / target).resolve()
    if not path.is_relative_to(root):
        raise ValueError(f"Refusing to clean {path}: outside project root {root}")
    return path


def _git(root: Path, *args: str) -> subprocess.CompletedProcess[str] | None:
    try:
        # nosec B603 - fixed git subcommands, paths come from the build layout
        return subprocess.run(
            ("git", "-C", str(root), *args),
            check=True,
            capture_output=True,
            text=True,
        )
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None


def _tracked_under(root: Path, path: Path) -> tuple[Path, ...]:
    listing = _git(root, "ls-files", "--", path.relative_to(root).as_posix())
    if listing is None:
        return ()
    return tuple(
        (root / line).resolve() for line in listing.stdout.splitlines() if line
    )


def cleanup(
    *,
    project_root: Path,
    include: Iterable[str] = (),
    dry_run: bool = False,
) -> CleanupResult:
    """Delete :data:`BUILD_OUTPUTS` plus *include* under *project_root*.

    Missing targets are reported as skipped. With *dry_run* nothing is deleted
    but ``removed`` still lists what would go.
    """

    root = project_root.resolve()
    in_git = _git(root, "rev-parse", "--is-inside-work-tree") is not None
    removed: list[Path] = []
    skipped: list[Path] = []
    tracked: dict[Path, None] = {}

    for target in dict.fromkeys([*BUILD_OUTPUTS, *include]):
        path = _resolve_inside(root, target)
        kept = _tracked_under(root, path) if in_git and path.exists() else ()
        if not path.exists() or kept:
            tracked.update(dict.fromkeys(kept))
            skipped.append(path)
            continue
        removed.append(path)
        if dry_run:
            continue
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()

    return CleanupResult(tuple(removed), tuple(skipped), tuple(tracked), dry_run)
