import time
from dataclasses import dataclass, field

from rich.console import Console

from worldbackup.cloudwatch import RunTracer
from worldbackup.compress import CompressionReport, compress_all
from worldbackup.config import load_config
from worldbackup.errors import DiskSpaceError, WorldCommandError
from worldbackup.eviction import delete_one
from worldbackup.log import write_log
from worldbackup.mount import available_bytes
from worldbackup.size import dir_size
from worldbackup.snapshot import create_snapshot_store
from worldbackup.tracing import StageTimer
from worldbackup.world import DEFAULT_COMMAND, World


@dataclass
class BackupReport:
    world: str
    snapshot: str = ""
    required: int = 0
    evicted: list = field(default_factory=list)
    compression: CompressionReport = field(default_factory=CompressionReport)


def make_room(required, store, backup_root, on_evict=None):
    """Delete snapshots of store's world until `required` bytes are free.

    Deletion only; compression happens after the new snapshot exists. Returns
    the deleted snapshots. Raises DiskSpaceError when only one is left and
    there still isn't enough room.
    """
    evicted = []
    while available_bytes(backup_root) < required:
        victim = delete_one(store, on_delete=on_evict)
        if victim is None:
            raise DiskSpaceError(required, available_bytes(backup_root))
        evicted.append(victim)
    return evicted


class BackupRun:
    """One backup of one world: measure → make room → snapshot → compress.

    The caller is responsible for pausing and resuming the server's saves
    (see backup_world).
    """

    def __init__(self, world, config=None, console=None, verbose=False, mirror=None, tracer=None):
        self.world = world
        self.config = config if config is not None else load_config()
        self.console = console or Console()
        self.verbose = verbose
        self.backup_root = self.config["backup_root"]
        self.store = create_snapshot_store(self.backup_root, world.name, self.config, mirror=mirror)
        self.tracer = tracer or RunTracer.from_config(self.config, world.name)

    def run(self):
        report = BackupReport(world=self.world.name)
        timer = StageTimer(self.console, self.tracer, quiet=not self.verbose)
        self._event("backup_start")

        try:
            report.required = dir_size(self.world.data_dir, workers=self.config.get("size_workers"))
            if self.verbose:
                self.console.print(f"world {self.world.name}: {report.required} bytes")
            timer.mark("measure")

            evicted = make_room(report.required, self.store, self.backup_root, on_evict=self._evicted)
            report.evicted.extend(s.name for s in evicted)
            timer.mark("make-room")

            snapshot = self.store.create(self.world.data_dir, self.world.version())
            report.snapshot = snapshot.name
            self.console.print(f"Created snapshot [bold cyan]{snapshot.name}[/bold cyan]")
            self._event("snapshot", snapshot=snapshot.name)
            timer.mark("snapshot")

            report.compression = compress_all(
                self.backup_root,
                self.config,
                on_evict=self._evicted,
                on_compress=self._compressed,
            )
            report.evicted.extend(report.compression.evicted)
            timer.mark("compress")
        except Exception as e:
            self._event("backup_failed", snapshot=report.snapshot, error=str(e))
            raise

        self._event(
            "backup_done",
            snapshot=report.snapshot,
            evicted=report.evicted,
            compressed=report.compression.compressed,
        )
        return report

    def _evicted(self, snapshot):
        if self.verbose:
            self.console.print(f"deleting {snapshot.name}")
        self._event("evict", snapshot=snapshot.name, world=snapshot.path.parent.name)

    def _compressed(self, snapshot, archive):
        self.console.print(f"  [dim]compressed {snapshot.path.parent.name}/{archive.name}[/dim]")
        self._event("compress", snapshot=snapshot.name, world=snapshot.path.parent.name)

    def _event(self, event, **meta):
        meta.setdefault("world", self.world.name)
        write_log({"event": event, **meta}, trace_id=self.tracer.trace_id)
        self.tracer.emit("run" if event.startswith("backup_") else "retain", event, **meta)


def run_backup(world, config=None, console=None, verbose=False, mirror=None):
    """Back up `world` into <backup_root>/<world>/ and compress what fits."""
    return BackupRun(world, config, console=console, verbose=verbose, mirror=mirror).run()


def backup_world(world, config=None, console=None, verbose=False, mirror=None, sleep=time.sleep):
    """Full cycle: save-off, save-all, wait, back up, save-on.

    Saves are re-enabled even when the backup fails. If both fail, the backup
    error is raised and the save-on failure is only reported.
    """
    config = config if config is not None else load_config()
    console = console or Console()

    world.pause_writes()
    failed = True
    try:
        world.flush_writes()
        sleep(config.get("flush_wait") or 0)
        report = run_backup(world, config, console=console, verbose=verbose, mirror=mirror)
        failed = False
    finally:
        try:
            world.resume_writes()
        except WorldCommandError as e:
            if not failed:
                raise
            console.print(f"[yellow]Warning: could not re-enable saves: {e}[/yellow]")
            write_log({"event": "resume_failed", "world": world.name, "error": str(e)})
    return report


def world_from_config(config, name=None):
    return World(
        name or config["world"],
        config["worlds_root"],
        config.get("world_command") or DEFAULT_COMMAND,
    )
