"""Atomic persistence for hyss state files.

Every document hyss owns (capability cache, version ledger, test history,
annotation tool configs) is replaced with write-to-temp-then-rename so a
reader never observes a partially written file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

log = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when required state cannot be created or written."""
    pass


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) or raise StorageError."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Cannot create directory {path}: {e}") from e
    return path


def write_atomic(path: Path, text: str) -> None:
    """Replace `path` with `text` without ever exposing a partial file.

    The temp file lives in the target directory so the final rename stays
    on one filesystem. On any failure the temp file is removed and the
    previous content of `path` is left untouched.

    Raises:
        StorageError: If the directory or file cannot be written
    """
    ensure_dir(path.parent)
    try:
        tmp = tempfile.NamedTemporaryFile(
            "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
    except OSError as e:
        raise StorageError(f"Cannot create temporary file for {path}: {e}") from e

    temp_path = Path(tmp.name)
    try:
        with tmp:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StorageError(f"Cannot write {path}: {e}") from e
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def write_json(path: Path, data: Any) -> None:
    write_atomic(path, json.dumps(data, indent=2, sort_keys=False) + "\n")


def read_json(path: Path, default_factory: Callable[[], dict]) -> dict:
    """Read a JSON document, falling back to a fresh one if unreadable.

    A missing file is normal. A corrupt or non-mapping document is logged
    and replaced in memory by `default_factory()`; it is overwritten on the
    next save.
    """
    if not path.exists():
        return default_factory()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("Ignoring unreadable state file %s: %s", path, e)
        return default_factory()
    if not isinstance(data, dict):
        log.warning("Ignoring state file %s: not a mapping", path)
        return default_factory()
    return data


def trim_by_timestamp(entries: list, limit: int, key: str) -> list:
    """Keep the `limit` most recent entries, ordered by `key` ascending."""
    ordered = sorted(entries, key=lambda entry: _as_float(entry.get(key)))
    if limit <= 0:
        return []
    return ordered[-limit:]


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
