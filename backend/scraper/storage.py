"""
Snapshot file management

Stage 5 of the scraping pipeline: write each run's unique listings to a
timestamped JSON file, select the "latest" snapshot for reading, and prune
old snapshots.

File name: ``<source>_<ISO timestamp with ':' -> '-'>_<count>festivals.json``
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .logging_utils import get_logger

COUNT_PATTERN = re.compile(r"(\d+)festivals\.json$")
METRICS_TIMESTAMP_PATTERN = re.compile(r"metrics_(.+)\.json$")

logger = get_logger(__name__)


@dataclass
class SnapshotFile:
    """A snapshot candidate found on disk."""
    name: str
    path: Path
    mtime: float
    festival_count: int
    file_type: str  # "real" or "mock"
    in_subdir: bool = False

    @property
    def relative_name(self) -> str:
        if self.in_subdir:
            return f"{self.path.parent.name}/{self.name}"
        return self.name


def snapshot_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO timestamp (UTC, millisecond precision, 'Z') safe for file names."""
    moment = moment or datetime.now(timezone.utc)
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-")


def snapshot_filename(source: str, count: int, moment: Optional[datetime] = None) -> str:
    return f"{source}_{snapshot_timestamp(moment)}_{count}festivals.json"


def write_snapshot(
    output_dir: Path,
    source: str,
    records: list[dict[str, Any]],
    moment: Optional[datetime] = None,
) -> Path:
    """
    Write a snapshot file.

    Args:
        output_dir: Directory for snapshot files (created if missing).
        source: Site identifier used as file prefix.
        records: Serialized listings.
        moment: Timestamp for the file name (defaults to now).

    Returns:
        Path of the written file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / snapshot_filename(source, len(records), moment)
    path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Successfully saved %d festivals to %s", len(records), path)
    return path


def write_metrics(output_dir: Path, source: str, metrics: dict[str, Any], moment: Optional[datetime] = None) -> Path:
    """Write run metrics next to the snapshot (``<source>_metrics_<timestamp>.json``)."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{source}_metrics_{snapshot_timestamp(moment)}.json"
    path.write_text(json.dumps(metrics, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def _candidate_paths(directory: Path, source: str) -> list[tuple[Path, bool]]:
    paths: list[tuple[Path, bool]] = []
    if directory.is_dir():
        paths.extend((path, False) for path in directory.iterdir() if path.is_file())
    subdir = directory / source
    if subdir.is_dir():
        paths.extend((path, True) for path in subdir.iterdir() if path.is_file())
    return paths


def list_snapshots(directory: Path, source: str) -> list[SnapshotFile]:
    """
    All snapshot files for a source, best first.

    Real files sort before mock files. Among real files, known festival
    counts come first, then higher counts, then newer modification time.
    Metrics files are never included.
    """
    prefix = f"{source}_"
    real: list[SnapshotFile] = []
    mock: list[SnapshotFile] = []

    for path, in_subdir in _candidate_paths(Path(directory), source):
        name = path.name
        if not name.endswith(".json") or prefix not in name or "_metrics_" in name:
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.warning("Error getting stats for %s: %s", name, e)
            continue

        if "_mock_" in name:
            mock.append(SnapshotFile(name, path, mtime, 0, "mock", in_subdir))
            continue

        count_match = COUNT_PATTERN.search(name)
        count = int(count_match.group(1)) if count_match else 0
        real.append(SnapshotFile(name, path, mtime, count, "real", in_subdir))

    real.sort(key=lambda f: (f.festival_count == 0, -f.festival_count, -f.mtime))
    mock.sort(key=lambda f: -f.mtime)
    return real + mock


def find_latest_file(directory: Path, source: str) -> Optional[SnapshotFile]:
    """Best snapshot to serve for a source, or None when there is none."""
    snapshots = list_snapshots(directory, source)
    if not snapshots:
        logger.info("No festival data files found in %s", directory)
        return None
    best = snapshots[0]
    logger.info(
        "Selected %s file %s with %s festivals",
        best.file_type,
        best.relative_name,
        best.festival_count or "unknown",
    )
    return best


def load_snapshot(path: Path) -> list[dict[str, Any]]:
    """
    Read a snapshot file as a list of records.

    Accepts either a JSON array or an object with a ``festivals`` array.

    Raises:
        ValueError: If the file does not contain valid JSON.
    """
    raw = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        preview = raw[:100].strip()
        if preview:
            raise ValueError(f'Failed to parse JSON data. File starts with: "{preview}..."') from e
        raise ValueError("Failed to parse JSON data. File appears to be empty.") from e

    if isinstance(data, dict) and isinstance(data.get("festivals"), list):
        return data["festivals"]
    if isinstance(data, list):
        return data
    return []


def cleanup_snapshots(directory: Path, source: str, keep_count: int = 5) -> tuple[list[str], list[str]]:
    """
    Keep the best ``keep_count`` snapshots and delete the rest.

    Metrics files whose timestamp does not belong to a kept snapshot are
    deleted as well.

    Returns:
        Tuple of (deleted file names, kept file names).
    """
    directory = Path(directory)
    prefix = f"{source}_"
    files = []
    for path in directory.iterdir():
        name = path.name
        if not (path.is_file() and name.endswith(".json") and name.startswith(prefix)):
            continue
        if "_metrics_" in name:
            continue
        count_match = COUNT_PATTERN.search(name)
        files.append((name, path, int(count_match.group(1)) if count_match else 0, path.stat().st_mtime))

    files.sort(key=lambda f: (-f[2], -f[3]))
    keep = files[:keep_count]
    remove = files[keep_count:]

    deleted: list[str] = []
    for name, path, _, _ in remove:
        try:
            path.unlink()
            deleted.append(name)
        except OSError as e:
            logger.error("Failed to delete %s: %s", path, e)

    kept_names = [name for name, _, _, _ in keep]
    for path in directory.iterdir():
        name = path.name
        if not (path.is_file() and name.startswith(prefix) and "_metrics_" in name and name.endswith(".json")):
            continue
        match = METRICS_TIMESTAMP_PATTERN.search(name)
        if not match:
            continue
        timestamp = match.group(1)
        if any(timestamp in kept for kept in kept_names):
            continue
        try:
            path.unlink()
            deleted.append(name)
        except OSError as e:
            logger.error("Failed to delete %s: %s", name, e)

    logger.info("Cleanup for %s: kept %d files, deleted %d files", source, len(kept_names), len(deleted))
    return deleted, kept_names
