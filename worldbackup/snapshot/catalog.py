"""Snapshot names and the per-world snapshot catalog.

A snapshot lives at <backup_root>/<world>/<timestamp>_<version>, either as a
directory or, once compressed, as a single <timestamp>_<version>.tar.gz file.

    2023-04-01_12-00-00_1.19.4
    2023-03-02_08-30-00_1.19.tar.gz

Snapshots are ordered by (major, minor, patch, timestamp): the server version
dominates recency. A name that doesn't parse is an error, never skipped, since
a skipped backup would look absent to the retention logic.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from worldbackup.errors import EncodingError, FilenameFormatError, VersionFormatError

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
ARCHIVE_SUFFIX = ".tar.gz"
PARTIAL_SUFFIX = ".part"

_NAME_RE = re.compile(r"^([0-9]{4}-[0-9]{2}-[0-9]{2}_[0-9]{2}-[0-9]{2}-[0-9]{2})_(.+?)(\.tar\.gz)?$")
_VERSION_PART_RE = re.compile(r"[0-9]+")


def parse_version(text, name=None):
    """'1.19' -> (1, 19, 0). Raises VersionFormatError."""
    parts = text.split(".")
    if len(parts) > 3 or not all(_VERSION_PART_RE.fullmatch(p) for p in parts):
        raise VersionFormatError(name if name is not None else text, text)
    numbers = [int(p) for p in parts]
    numbers += [0] * (3 - len(numbers))
    return tuple(numbers)


def format_version(version):
    major, minor, patch = version
    if patch:
        return f"{major}.{minor}.{patch}"
    return f"{major}.{minor}"


def format_timestamp(timestamp):
    return timestamp.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_snapshot_name(name):
    """Split a snapshot entry name into (version, timestamp, compressed)."""
    if name.endswith(ARCHIVE_SUFFIX + PARTIAL_SUFFIX):
        raise FilenameFormatError(name, "partial archive from an interrupted compression, delete it and retry")
    match = _NAME_RE.match(name)
    if not match:
        raise FilenameFormatError(name)
    raw_timestamp, raw_version, suffix = match.groups()
    try:
        timestamp = datetime.strptime(raw_timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        raise FilenameFormatError(name, f"invalid timestamp {raw_timestamp!r}")
    version = parse_version(raw_version, name)
    return version, timestamp, suffix is not None


def format_snapshot_name(version, timestamp, compressed=False):
    name = f"{format_timestamp(timestamp)}_{format_version(version)}"
    return name + ARCHIVE_SUFFIX if compressed else name


def _entry_name(path):
    name = path.name
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise EncodingError(name)
    return name


@dataclass(frozen=True)
class Snapshot:
    name: str
    path: Path
    version: tuple
    timestamp: datetime
    compressed: bool

    @classmethod
    def from_path(cls, path):
        path = Path(path)
        name = _entry_name(path)
        version, timestamp, compressed = parse_snapshot_name(name)
        return cls(name, path, version, timestamp, compressed)

    @property
    def key(self):
        return (*self.version, self.timestamp)

    @property
    def version_string(self):
        return format_version(self.version)


class SnapshotCatalog:
    """Snapshots of one world, iterated in key order.

    Read-only: anything that changes the backup directory has to list again.
    Two entries with the same key keep the one seen last.
    """

    def __init__(self, snapshots=()):
        entries = {}
        for snapshot in snapshots:
            entries[snapshot.key] = snapshot
        self._entries = dict(sorted(entries.items(), key=lambda item: item[0]))

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def items(self):
        return self._entries.items()

    def uncompressed(self):
        return [s for s in self if not s.compressed]


def list_catalog(target_dir):
    """Build the catalog for one world's backup directory.

    A missing directory is an empty catalog. Raises FilenameFormatError,
    VersionFormatError or EncodingError on the first bad entry.
    """
    target_dir = Path(target_dir)
    if not target_dir.exists():
        return SnapshotCatalog()
    return SnapshotCatalog(Snapshot.from_path(entry) for entry in sorted(target_dir.iterdir()))
