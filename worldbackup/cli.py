from contextlib import contextmanager
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worldbackup import __version__
from worldbackup.compress import compress_all
from worldbackup.config import init_config, load_config
from worldbackup.credentials import load_credentials, save_credential
from worldbackup.errors import BackupError
from worldbackup.eviction import select_victim
from worldbackup.log import read_log, write_log
from worldbackup.orchestrator import backup_world, world_from_config
from worldbackup.size import dir_size
from worldbackup.snapshot import create_snapshot_store


@contextmanager
def _fatal_errors(console):
    """Print backup failures in red and exit 1 instead of dumping a traceback."""
    try:
        yield
    except (BackupError, OSError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Print deleted snapshots and stage timings.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Extra JSON config file merged over ~/.worldbackup/config.json.")
@click.pass_context
def main(ctx, verbose, config_path):
    """Versioned world backups that make room for themselves."""
    load_credentials()
    console = Console()
    with _fatal_errors(console):
        config = load_config(config_path)
    ctx.obj = {"config": config, "verbose": verbose, "console": console}
    if ctx.invoked_subcommand is None:
        ctx.invoke(backup)


@main.command()
@click.argument("world", required=False)
@click.pass_obj
def backup(obj, world):
    """Back up WORLD (default from config): save-off, snapshot, compress, save-on."""
    console = obj["console"]
    with _fatal_errors(console):
        w = world_from_config(obj["config"], world)
        report = backup_world(w, obj["config"], console=console, verbose=obj["verbose"])
    if obj["verbose"]:
        console.print(
            f"[bold green]Done.[/bold green] {len(report.compression.compressed)} compressed, "
            f"{len(report.evicted)} deleted."
        )


@main.command("list")
@click.argument("world", required=False)
@click.option("--sizes", is_flag=True, help="Also measure each snapshot (slow for large worlds).")
@click.pass_obj
def list_cmd(obj, world, sizes):
    """List snapshots of WORLD in retention order (version, then time)."""
    console = obj["console"]
    config = obj["config"]
    with _fatal_errors(console):
        store = create_snapshot_store(config["backup_root"], world or config["world"], config)
        catalog = store.list()

        if not len(catalog):
            console.print("[dim]No snapshots found.[/dim]")
            return

        table = Table(title=f"Snapshots of {store.world_name}")
        table.add_column("Name", style="bold cyan")
        table.add_column("Version")
        table.add_column("Created (UTC)", style="dim")
        table.add_column("Compressed")
        if sizes:
            table.add_column("Size", justify="right")

        for snapshot in catalog:
            row = [
                snapshot.name,
                snapshot.version_string,
                snapshot.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "yes" if snapshot.compressed else "[yellow]no[/yellow]",
            ]
            if sizes:
                row.append(_format_bytes(dir_size(snapshot.path, workers=config.get("size_workers"))))
            table.add_row(*row)

    console.print(table)


@main.command()
@click.pass_obj
def compress(obj):
    """Compress every uncompressed snapshot, deleting old ones if needed."""
    console = obj["console"]
    verbose = obj["verbose"]

    def _evicted(snapshot):
        if verbose:
            console.print(f"deleting {snapshot.name}")
        write_log({"event": "evict", "world": snapshot.path.parent.name, "snapshot": snapshot.name})

    def _compressed(snapshot, archive):
        console.print(f"  [dim]compressed {snapshot.path.parent.name}/{archive.name}[/dim]")
        write_log({"event": "compress", "world": snapshot.path.parent.name, "snapshot": snapshot.name})

    with _fatal_errors(console):
        report = compress_all(obj["config"]["backup_root"], obj["config"],
                              on_evict=_evicted, on_compress=_compressed)
    if not report.compressed:
        console.print("[dim]Nothing to compress.[/dim]")


@main.command()
@click.argument("world", required=False)
@click.option("--dry-run", is_flag=True, help="Only show which snapshot would be deleted.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
@click.pass_obj
def evict(obj, world, dry_run, yes):
    """Delete the most redundant snapshot of WORLD."""
    console = obj["console"]
    config = obj["config"]
    with _fatal_errors(console):
        store = create_snapshot_store(config["backup_root"], world or config["world"], config)
        victim = select_victim(store.list())
        if victim is None:
            console.print("[dim]Fewer than two snapshots; nothing to delete.[/dim]")
            return

        console.print(f"Victim: [cyan]{victim.name}[/cyan]")
        if dry_run:
            return
        if not yes and not click.confirm("Delete this snapshot?", default=False):
            console.print("[dim]Cancelled.[/dim]")
            return
        store.delete(victim)
        write_log({"event": "evict", "world": store.world_name, "snapshot": victim.name})
    console.print(f"  [red]Deleted[/red] {victim.name}")


@main.command()
@click.option("--backup-root", type=click.Path(file_okay=False), default=None)
@click.option("--worlds-root", type=click.Path(file_okay=False), default=None)
@click.option("--world", default=None, help="Default world name.")
def init(backup_root, worlds_root, world):
    """Write ~/.worldbackup/config.json with defaults."""
    path = init_config(backup_root, worlds_root, world)
    click.echo(f"Wrote {path}")


@main.command()
@click.argument("key")
@click.argument("value")
def auth(key, value):
    """Save a credential to ~/.worldbackup/credentials.

    Example: worldbackup auth AWS_ACCESS_KEY_ID AKIA...
    """
    save_credential(key, value)
    click.echo(f"Saved {key} to ~/.worldbackup/credentials")


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.pass_obj
def logs(obj, limit):
    """Show the backup audit log."""
    console = obj["console"]
    entries = read_log(limit)
    if not entries:
        console.print("[dim]No logs yet. Run a backup first.[/dim]")
        return

    table = Table(title="Backup Log")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("World")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Error", style="red", max_width=50)

    for entry in entries:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M")
            except ValueError:
                pass
        table.add_row(ts, entry.get("event", ""), entry.get("world", ""),
                      entry.get("snapshot", ""), entry.get("error", ""))

    console.print(table)


def _format_bytes(size):
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"
