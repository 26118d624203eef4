"""Input/output fingerprints backing up-to-date checks between runs.

A task is up to date when the fingerprints of its declared inputs and outputs
match the values recorded after its last successful execution. Fingerprints
hash relative paths together with file contents, so touching a file without
changing it does not invalidate a task.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

STATE_SCHEMA_VERSION = 1
_CHUNK_SIZE = 1 << 16


class TaskStateRecord(BaseModel):
    """Fingerprints captured after a task last succeeded."""

    inputs: str = Field(..., description="SHA-256 over declared inputs")
    outputs: str = Field(..., description="SHA-256 over declared outputs")
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TaskStateDocument(BaseModel):
    schema_version: int = STATE_SCHEMA_VERSION
    tasks: dict[str, TaskStateRecord] = Field(default_factory=dict)


def _iter_files(path: Path) -> Iterable[Path]:
    if path.is_file():
        yield path
        return
    if path.is_dir():
        for candidate in sorted(path.rglob("*")):
            if candidate.is_file():
                yield candidate


def fingerprint_paths(paths: Iterable[Path], *, root: Path) -> str:
    """Hash every file under *paths*; a missing path hashes as a marker."""

    digest = hashlib.sha256()
    for path in sorted({p.resolve() for p in paths}):
        label = _relative_label(path, root)
        if not path.exists():
            digest.update(f"missing:{label}\n".encode())
            continue
        digest.update(f"path:{label}\n".encode())
        for file_path in _iter_files(path):
            digest.update(f"file:{_relative_label(file_path, root)}\n".encode())
            with file_path.open("rb") as handle:
                for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                    digest.update(chunk)
    return digest.hexdigest()


def _relative_label(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


class TaskStateStore:
    """JSON-backed store of task fingerprints."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._document: TaskStateDocument | None = None

    @property
    def document(self) -> TaskStateDocument:
        if self._document is None:
            self._document = self._load()
        return self._document

    def _load(self) -> TaskStateDocument:
        if not self.path.exists():
            return TaskStateDocument()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            document = TaskStateDocument.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Discarding unreadable task state %s: %s", self.path, exc)
            return TaskStateDocument()
        if document.schema_version != STATE_SCHEMA_VERSION:
            logger.warning(
                "Discarding task state with schema version %s",
                document.schema_version,
            )
            return TaskStateDocument()
        return document

    def get(self, task: str) -> TaskStateRecord | None:
        return self.document.tasks.get(task)

    def record(self, task: str, *, inputs: str, outputs: str) -> None:
        self.document.tasks[task] = TaskStateRecord(inputs=inputs, outputs=outputs)
        self.save()

    def forget(self, task: str) -> None:
        if self.document.tasks.pop(task, None) is not None:
            self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            self.document.model_dump_json(indent=2) + "\n", encoding="utf-8"
        )
