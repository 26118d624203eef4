"""Data directory resolution and helpers for the SQLite result cache."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from .config import CACHE_DB_NAME, BuildSettings
from .types import TaskContext

logger = logging.getLogger(__name__)

DATA_DIR_PROPERTY = "markov.data.dir"
_CACHE_SIDECARS = ("-wal", "-shm", "-journal")


class MrfDataConfig(BaseModel):
    """The slice of ``mrf_config.json`` that locates the data directory."""

    model_config = ConfigDict(extra="ignore")

    markov_data_directory: str | None = None


def _configured_directory(config_path: Path | None) -> str | None:
    if config_path is None or not config_path.exists():
        return None
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
        parsed = MrfDataConfig.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning(
            "Failed to read markov_data_directory from %s: %s", config_path, exc
        )
        return None
    return parsed.markov_data_directory or None


def resolve_data_directory(
    properties: Mapping[str, str], config_path: Path | None = None
) -> Path:
    """Resolve the data directory: property, then config file, then ``.``."""

    explicit = properties.get(DATA_DIR_PROPERTY)
    if explicit:
        return Path(explicit)
    configured = _configured_directory(config_path)
    if configured:
        return Path(configured)
    return Path(".")


def resolve_cache_db(settings: BuildSettings, properties: Mapping[str, str]) -> Path:
    """Cache database path, relative paths anchored at the server module.

    The server module directory is the working directory of launched tasks.
    """

    data_dir = resolve_data_directory(properties, settings.layout.mrf_config)
    if not data_dir.is_absolute():
        data_dir = settings.layout.server_dir / data_dir
    return data_dir / CACHE_DB_NAME


def delete_cache(db_path: Path) -> list[Path]:
    removed: list[Path] = []
    for candidate in (db_path, *(Path(f"{db_path}{s}") for s in _CACHE_SIDECARS)):
        if candidate.exists():
            candidate.unlink()
            removed.append(candidate)
    return removed


def clean_cache(context: TaskContext) -> None:
    db_path = resolve_cache_db(context.settings, context.properties)
    removed = delete_cache(db_path)
    if removed:
        logger.info("Removed cache files: %s", ", ".join(str(p) for p in removed))
    else:
        logger.info("No cache database at %s", db_path)


@dataclass(frozen=True)
class ChainSummary:
    chain_type: str
    chain_version: str
    rows: int


class CacheDatabaseError(RuntimeError):
    """Raised when the cache database is missing or lacks the result table."""


def _connect(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise CacheDatabaseError(f"Cache database not found: {db_path}")
    return sqlite3.connect(str(db_path))


def summarize_cache(db_path: Path) -> list[ChainSummary]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT chain_type, chain_version, COUNT(*) FROM markov_chain_result "
            "GROUP BY chain_type, chain_version ORDER BY chain_type, chain_version"
        ).fetchall()
    except sqlite3.OperationalError as exc:
        raise CacheDatabaseError(f"Unreadable cache database {db_path}: {exc}") from exc
    finally:
        conn.close()
    return [ChainSummary(str(t), str(v), int(n)) for t, v, n in rows]


def clear_chain(db_path: Path, chain_type: str, chain_version: str) -> int:
    """Delete cached results for one chain type and version; return row count."""

    conn = _connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                "DELETE FROM markov_chain_result "
                "WHERE chain_type = ? AND chain_version = ?",
                (chain_type, chain_version),
            )
    except sqlite3.OperationalError as exc:
        raise CacheDatabaseError(f"Unreadable cache database {db_path}: {exc}") from exc
    finally:
        conn.close()
    logger.info(
        "Cleared %s cached results for %s/%s",
        cursor.rowcount,
        chain_type,
        chain_version,
    )
    return cursor.rowcount
