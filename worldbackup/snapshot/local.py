import shutil
import subprocess
import tarfile
from datetime import datetime, timezone
from pathlib import Path

from worldbackup.errors import ArchiveError, MirrorError
from worldbackup.snapshot.base import SnapshotStore
from worldbackup.snapshot.catalog import (
    ARCHIVE_SUFFIX,
    PARTIAL_SUFFIX,
    Snapshot,
    format_snapshot_name,
    list_catalog,
)


class RsyncMirror:
    """Mirror a directory with rsync and report how many items changed.

    The count is the number of --itemize-changes lines, so a pass over an
    unchanged tree returns 0.
    """

    def __init__(self, rsync="rsync", extra_args=None):
        self.rsync = rsync
        self.extra_args = list(extra_args or [])

    def __call__(self, src_dir, dst_dir):
        Path(dst_dir).mkdir(parents=True, exist_ok=True)
        try:
            result = subprocess.run(
                [self.rsync, "-a", "--delete", "--itemize-changes"] + self.extra_args +
                [str(src_dir) + "/", str(dst_dir) + "/"],
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise MirrorError(f"{self.rsync} not found") from e
        except subprocess.CalledProcessError as e:
            raise MirrorError(f"rsync exited with {e.returncode}: {e.stderr.strip()}") from e
        return sum(1 for line in result.stdout.splitlines() if line.strip())


def archive_snapshot(path):
    """Compress a snapshot directory into a sibling .tar.gz and remove the directory.

    The archive is written under a .part name and renamed into place before the
    directory is removed; on failure the partial archive is deleted and the
    directory is left as it was.
    """
    path = Path(path)
    archive = path.with_name(path.name + ARCHIVE_SUFFIX)
    partial = path.with_name(archive.name + PARTIAL_SUFFIX)
    try:
        with tarfile.open(partial, "w:gz") as tar:
            tar.add(path, arcname=path.name)
        partial.replace(archive)
    except (OSError, tarfile.TarError) as e:
        partial.unlink(missing_ok=True)
        raise ArchiveError(f"failed to compress {path}: {e}") from e
    shutil.rmtree(path)
    return archive


def remove_snapshot_path(path):
    """Remove a snapshot entry: the whole tree for a directory, the file otherwise."""
    path = Path(path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class LocalSnapshotStore(SnapshotStore):
    """Snapshots of one world under <backup_root>/<world>/."""

    def __init__(self, backup_root, world_name, mirror=None, max_mirror_passes=None):
        self.backup_root = Path(backup_root)
        self.world_name = world_name
        self.mirror = mirror or RsyncMirror()
        self.max_mirror_passes = max_mirror_passes

    @property
    def directory(self):
        return self.backup_root / self.world_name

    def create(self, source_dir, version, now=None):
        timestamp = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        name = format_snapshot_name(version, timestamp)
        snapshot_path = self.directory / name

        # The world keeps changing while it is copied; mirror until a pass is clean.
        passes = 0
        while True:
            changed = self.mirror(source_dir, snapshot_path)
            passes += 1
            if changed == 0:
                break
            if self.max_mirror_passes and passes >= self.max_mirror_passes:
                raise MirrorError(
                    f"{source_dir} still changing after {passes} mirror passes ({changed} items)"
                )

        return Snapshot.from_path(snapshot_path)

    def list(self):
        return list_catalog(self.directory)

    def delete(self, snapshot):
        remove_snapshot_path(snapshot.path)

    def compress(self, snapshot):
        return archive_snapshot(snapshot.path)
