"""Tests for the local snapshot store: mirroring, archiving, removal."""

import os
import shutil
import tarfile
from datetime import datetime, timezone

import pytest

from worldbackup.errors import ArchiveError, MirrorError
from worldbackup.snapshot import (
    LocalSnapshotStore,
    RsyncMirror,
    archive_snapshot,
    create_snapshot_store,
    remove_snapshot_path,
)

from conftest import make_snapshot

NOW = datetime(2023, 4, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)


class ScriptedMirror:
    """Reports a fixed sequence of change counts."""

    def __init__(self, counts):
        self.counts = list(counts)
        self.calls = 0

    def __call__(self, src_dir, dst_dir):
        dst_dir.mkdir(parents=True, exist_ok=True)
        self.calls += 1
        return self.counts.pop(0) if self.counts else 0


def _world_data(tmp_path):
    data = tmp_path / "live" / "world"
    (data / "region").mkdir(parents=True)
    (data / "level.dat").write_bytes(b"level")
    (data / "region" / "r.0.0.mca").write_bytes(b"\0" * 100)
    return data


# ── create ────────────────────────────────────────────────────────────────────

def test_create_names_snapshot_and_copies(tmp_path, backup_root, copy_mirror):
    store = LocalSnapshotStore(backup_root, "survival", mirror=copy_mirror)

    snapshot = store.create(_world_data(tmp_path), (1, 19, 4), now=NOW)

    assert snapshot.name == "2023-04-01_12-30-05_1.19.4"
    assert snapshot.path == backup_root / "survival" / snapshot.name
    assert (snapshot.path / "region" / "r.0.0.mca").read_bytes() == b"\0" * 100
    assert not snapshot.compressed
    # one copying pass, one clean verification pass
    assert copy_mirror.calls == 2


def test_create_repeats_until_no_changes(tmp_path, backup_root):
    mirror = ScriptedMirror([12, 3, 1, 0])
    store = LocalSnapshotStore(backup_root, "survival", mirror=mirror)

    store.create(_world_data(tmp_path), (1, 19, 0), now=NOW)

    assert mirror.calls == 4


def test_create_gives_up_after_max_passes(tmp_path, backup_root):
    mirror = ScriptedMirror([5] * 10)
    store = LocalSnapshotStore(backup_root, "survival", mirror=mirror, max_mirror_passes=3)

    with pytest.raises(MirrorError):
        store.create(_world_data(tmp_path), (1, 19, 0), now=NOW)
    assert mirror.calls == 3


@pytest.mark.skipif(shutil.which("rsync") is None, reason="rsync not installed")
def test_rsync_mirror_converges(tmp_path):
    src = _world_data(tmp_path)
    dst = tmp_path / "copy"
    mirror = RsyncMirror()

    assert mirror(src, dst) > 0
    assert mirror(src, dst) == 0
    assert (dst / "level.dat").read_bytes() == b"level"

    (src / "level.dat").write_bytes(b"changed")
    assert mirror(src, dst) > 0
    assert mirror(src, dst) == 0


def test_rsync_mirror_missing_binary(tmp_path):
    mirror = RsyncMirror(rsync="definitely-not-rsync-xyz")
    with pytest.raises(MirrorError):
        mirror(_world_data(tmp_path), tmp_path / "copy")


# ── archive ───────────────────────────────────────────────────────────────────

def test_archive_replaces_directory(backup_root):
    path = make_snapshot(backup_root, "survival", "2023-01-01_00-00-00_1.19", 2000)

    archive = archive_snapshot(path)

    assert archive.name == "2023-01-01_00-00-00_1.19.tar.gz"
    assert archive.parent == path.parent
    assert not path.exists()
    with tarfile.open(archive) as tar:
        assert "2023-01-01_00-00-00_1.19/region/r.0.0.mca" in tar.getnames()
    assert sorted(p.name for p in path.parent.iterdir()) == [archive.name]


def test_archive_failure_keeps_directory(backup_root, monkeypatch):
    path = make_snapshot(backup_root, "survival", "2023-01-01_00-00-00_1.19", 10)

    def broken_open(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("worldbackup.snapshot.local.tarfile.open", broken_open)

    with pytest.raises(ArchiveError):
        archive_snapshot(path)
    assert path.is_dir()
    assert [p.name for p in path.parent.iterdir()] == [path.name]


def test_store_compress_and_list(backup_root):
    make_snapshot(backup_root, "survival", "2023-01-01_00-00-00_1.19", 10)
    store = create_snapshot_store(backup_root, "survival")

    (snapshot,) = store.list()
    store.compress(snapshot)

    (compressed,) = store.list()
    assert compressed.compressed
    assert compressed.key == snapshot.key


# ── remove ────────────────────────────────────────────────────────────────────

def test_remove_directory_and_file(backup_root):
    d = make_snapshot(backup_root, "survival", "2023-01-01_00-00-00_1.19", 10)
    f = make_snapshot(backup_root, "survival", "2023-01-02_00-00-00_1.19.tar.gz", 10)

    remove_snapshot_path(d)
    remove_snapshot_path(f)

    assert not d.exists()
    assert not f.exists()


def test_remove_symlink_leaves_target(tmp_path, backup_root):
    target = tmp_path / "elsewhere"
    (target / "keep").mkdir(parents=True)
    link = backup_root / "survival" / "2023-01-01_00-00-00_1.19"
    link.parent.mkdir()
    os.symlink(target, link)

    remove_snapshot_path(link)

    assert not os.path.lexists(link)
    assert (target / "keep").is_dir()
