"""Trade CPU for space: compress directory snapshots, smallest first.

Smallest first converts the most snapshots per byte of headroom and makes it
least likely that anything has to be evicted to get there. When there isn't
room to write the archive, snapshots of the candidate's own world are evicted
until there is.
"""

from dataclasses import dataclass, field
from pathlib import Path

from worldbackup.errors import DiskSpaceError
from worldbackup.eviction import delete_one
from worldbackup.mount import available_bytes
from worldbackup.size import dir_size
from worldbackup.snapshot import create_snapshot_store


@dataclass
class CompressionReport:
    compressed: list = field(default_factory=list)
    evicted: list = field(default_factory=list)


def world_stores(backup_root, config=None):
    """One snapshot store per world directory under backup_root."""
    backup_root = Path(backup_root)
    if not backup_root.exists():
        return []
    return [
        create_snapshot_store(backup_root, entry.name, config)
        for entry in sorted(backup_root.iterdir())
        if entry.is_dir() and not entry.is_symlink()
    ]


def smallest_uncompressed(backup_root, config=None, workers=None):
    """(store, snapshot, size) for the smallest directory snapshot, or None."""
    smallest = None
    for store in world_stores(backup_root, config):
        for snapshot in store.list().uncompressed():
            if not snapshot.path.is_dir() or snapshot.path.is_symlink():
                continue
            size = dir_size(snapshot.path, workers=workers)
            if smallest is None or size < smallest[2]:
                smallest = (store, snapshot, size)
    return smallest


def compress_all(backup_root, config=None, on_evict=None, on_compress=None):
    """Compress every directory snapshot under backup_root, evicting as needed.

    Raises DiskSpaceError if a world is down to one snapshot and there is
    still no room to compress.
    """
    config = config or {}
    workers = config.get("size_workers")
    report = CompressionReport()

    while True:
        found = smallest_uncompressed(backup_root, config, workers)
        if found is None:
            return report
        store, snapshot, size = found

        while available_bytes(backup_root) < size:
            victim = delete_one(store, on_delete=on_evict)
            if victim is None:
                raise DiskSpaceError(size, available_bytes(backup_root))
            report.evicted.append(victim.name)
            if not snapshot.path.exists():
                break
        if not snapshot.path.exists():
            # Evicted while making room for itself; pick again.
            continue

        archive = store.compress(snapshot)
        report.compressed.append(archive.name)
        if on_compress:
            on_compress(snapshot, archive)
