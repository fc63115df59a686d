"""
Utility functions for the auditor.

Common helpers for time, file output and artifact bundle handling.
"""

from __future__ import annotations

import csv
import hashlib
import json
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence


def now_iso() -> str:
    """Get current time as ISO8601 string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(timestamp: str) -> datetime:
    """Parse ISO8601 timestamp string to datetime."""
    return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """
    Write data to JSON file.

    Args:
        path: File path
        data: Data to serialize
        indent: JSON indentation
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, sort_keys=False)


def read_json(path: Path) -> Any:
    """Read JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_csv(path: Path, header: Sequence[str], rows: Iterable[Sequence[Any]]) -> int:
    """
    Write a header row followed by data rows.

    Uses "\\n" line endings so output is byte-stable across platforms.

    Returns:
        Number of data rows written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


def job_name_for_repo(repo: str) -> str:
    """Derive the Jenkins job name for an "org/name" repository."""
    return repo.replace("/", "-")


def is_repo_slug(repo: str) -> bool:
    """Return True if repo looks like "org/name"."""
    parts = repo.split("/")
    return len(parts) == 2 and all(p.strip() for p in parts)


# What reading an untrusted artifact archive can raise
ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    NotImplementedError,  # unsupported compression method
    RuntimeError,  # encrypted entry
    ValueError,
)


def extract_zip(archive: Path, dest: Path) -> int:
    """
    Extract a zip archive into dest.

    Entries that would land outside dest are rejected.

    Returns:
        Number of files extracted

    Raises:
        zipfile.BadZipFile: Archive is corrupt or not a zip
        ValueError: An entry escapes the destination directory
        NotImplementedError: Unsupported compression method
        RuntimeError: Encrypted entry
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()

    with zipfile.ZipFile(archive) as zf:
        members = zf.infolist()
        for member in members:
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive entry escapes destination: {member.filename}")
        zf.extractall(root)

    return sum(1 for m in members if not m.is_dir())


def count_files(path: Path) -> int:
    """Count regular files below path, recursively. Missing paths count as zero."""
    if not path.exists():
        return 0
    return sum(1 for p in path.rglob("*") if p.is_file())


def sha256_file(path: Path, chunk_size: int = 64 * 1024) -> str:
    """Compute the SHA-256 hex digest of a file."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def tree_checksums(path: Path) -> list[str]:
    """
    Checksums of every file below path, sorted.

    Paths are deliberately ignored: the two CI systems lay out their
    bundles differently.
    """
    if not path.exists():
        return []
    return sorted(sha256_file(p) for p in path.rglob("*") if p.is_file())


def format_duration(duration_ms: int | float) -> str:
    """Format a millisecond duration for display (e.g. "2m 05s")."""
    seconds = int(duration_ms // 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"
