from worldbackup.snapshot.catalog import (
    ARCHIVE_SUFFIX,
    TIMESTAMP_FORMAT,
    Snapshot,
    SnapshotCatalog,
    format_snapshot_name,
    list_catalog,
    parse_snapshot_name,
    parse_version,
)
from worldbackup.snapshot.local import LocalSnapshotStore, RsyncMirror, archive_snapshot, remove_snapshot_path


def create_snapshot_store(backup_root, world_name, config=None, mirror=None):
    """Create the snapshot store for one world from config.

    Config keys:
        max_mirror_passes: give up if rsync still reports changes after this many passes
        rsync_args: extra arguments passed to every rsync call
    """
    config = config or {}
    if mirror is None:
        mirror = RsyncMirror(extra_args=config.get("rsync_args"))
    return LocalSnapshotStore(
        backup_root,
        world_name,
        mirror=mirror,
        max_mirror_passes=config.get("max_mirror_passes"),
    )


__all__ = [
    "ARCHIVE_SUFFIX",
    "TIMESTAMP_FORMAT",
    "LocalSnapshotStore",
    "RsyncMirror",
    "Snapshot",
    "SnapshotCatalog",
    "archive_snapshot",
    "create_snapshot_store",
    "format_snapshot_name",
    "list_catalog",
    "parse_snapshot_name",
    "parse_version",
    "remove_snapshot_path",
]
