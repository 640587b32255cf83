"""Shared fixtures: isolated ~/.worldbackup, snapshot trees and a fake disk.

The fake disk replaces the mount probe with `capacity - bytes under root`, so
tests can make space scarce without filling a real filesystem.
"""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from worldbackup.size import dir_size
from worldbackup.snapshot import Snapshot, SnapshotCatalog, format_snapshot_name


# ── Isolation ─────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point every ~/.worldbackup path at a temp dir."""
    home = tmp_path / "home"
    monkeypatch.setattr("worldbackup.log.LOGS_FILE", home / "logs.jsonl")
    monkeypatch.setattr("worldbackup.config.GLOBAL_CONFIG_FILE", home / "config.json")
    monkeypatch.setattr("worldbackup.credentials.CREDENTIALS_FILE", home / "credentials")
    for name in list(os.environ):
        if name.startswith("WORLDBACKUP_"):
            monkeypatch.delenv(name)
    return home


# ── Snapshot helpers ──────────────────────────────────────────────────────────

def ts(hour, day=1):
    return datetime(2023, 1, day, hour, 0, 0, tzinfo=timezone.utc)


def snap(version, timestamp, compressed=False):
    """In-memory Snapshot for policy tests; nothing is written to disk."""
    name = format_snapshot_name(version, timestamp, compressed)
    return Snapshot(name, Path(name), version, timestamp, compressed)


def catalog_of(*snapshots):
    return SnapshotCatalog(snapshots)


def make_snapshot(backup_root, world, name, size):
    """Create a snapshot on disk: an archive file or a directory holding `size` zero bytes."""
    world_dir = Path(backup_root) / world
    world_dir.mkdir(parents=True, exist_ok=True)
    path = world_dir / name
    if name.endswith(".tar.gz"):
        path.write_bytes(b"\0" * size)
    else:
        (path / "region").mkdir(parents=True)
        (path / "region" / "r.0.0.mca").write_bytes(b"\0" * size)
    return path


# ── Fake collaborators ────────────────────────────────────────────────────────

class FakeDisk:
    def __init__(self, root, capacity):
        self.root = Path(root)
        self.capacity = capacity

    def free(self, path=None):
        used = dir_size(self.root) if self.root.exists() else 0
        return self.capacity - used


@pytest.fixture
def fake_disk(monkeypatch):
    def install(root, capacity):
        disk = FakeDisk(root, capacity)
        monkeypatch.setattr("worldbackup.compress.available_bytes", disk.free)
        monkeypatch.setattr("worldbackup.orchestrator.available_bytes", disk.free)
        return disk
    return install


class CopyMirror:
    """Stands in for rsync: copies new or changed files, returns how many."""

    def __init__(self):
        self.calls = 0

    def __call__(self, src_dir, dst_dir):
        self.calls += 1
        src, dst = Path(src_dir), Path(dst_dir)
        dst.mkdir(parents=True, exist_ok=True)
        changed = 0
        for item in sorted(src.rglob("*")):
            target = dst / item.relative_to(src)
            if item.is_dir():
                target.mkdir(parents=True, exist_ok=True)
            elif not target.exists() or target.read_bytes() != item.read_bytes():
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(item, target)
                changed += 1
        return changed


class FakeWorld:
    """World double: real directories, recorded console commands."""

    def __init__(self, worlds_root, name="survival", version="1.19.4", fail_on=()):
        from worldbackup.world import World

        self._world = World(name, worlds_root)
        self.name = name
        self.commands = []
        self.fail_on = set(fail_on)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "level.dat").write_bytes(b"\0" * 300)
        jar = Path(worlds_root) / "jars" / f"minecraft_server.{version}.jar"
        jar.parent.mkdir(parents=True, exist_ok=True)
        jar.touch()
        os.symlink(jar, self._world.jar_path)

    @property
    def data_dir(self):
        return self._world.data_dir

    def version(self):
        return self._world.version()

    def command(self, command):
        from worldbackup.errors import WorldCommandError

        self.commands.append(command)
        if command in self.fail_on:
            raise WorldCommandError(f"{command} failed")

    def pause_writes(self):
        self.command("save-off")

    def flush_writes(self):
        self.command("save-all")

    def resume_writes(self):
        self.command("save-on")


@pytest.fixture
def copy_mirror():
    return CopyMirror()


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / "backup"
    root.mkdir()
    return root


@pytest.fixture
def worlds_root(tmp_path):
    root = tmp_path / "worlds"
    root.mkdir()
    return root
