"""Snapshot cache for the decoded ticket index and session pointers.

The snapshot only speeds up the next process start. Read and write failures
are logged and reported as a missing snapshot; they never fail an operation.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import ValidationError

from . import log as branchtix_log
from . import paths
from .models import Snapshot


def load_snapshot(path: Path) -> Snapshot | None:
    """Return the cached snapshot, or ``None`` when missing or unreadable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        branchtix_log.warning(f"failed to read ticket cache {path}: {exc}")
        return None
    except UnicodeDecodeError as exc:
        branchtix_log.warning(f"discarding undecodable ticket cache {path}: {exc.reason}")
        return None
    try:
        return Snapshot.model_validate_json(raw)
    except ValidationError as exc:
        branchtix_log.warning(f"discarding malformed ticket cache {path}: {exc.error_count()} errors")
        return None


def write_snapshot(path: Path, snapshot: Snapshot) -> bool:
    """Write the snapshot atomically; return ``False`` when the write failed."""
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        paths.ensure_dir(path.parent)
        tmp_path.write_text(snapshot.model_dump_json(), encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        branchtix_log.warning(f"failed to write ticket cache {path}: {exc}")
        return False
    branchtix_log.trace(f"wrote ticket cache {path}")
    return True
