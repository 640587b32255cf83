import os
import shlex
import subprocess
from pathlib import Path

from worldbackup.errors import ArtifactPathFormatError, VersionFormatError, WorldCommandError
from worldbackup.snapshot.catalog import parse_version

JAR_NAME = "minecraft_server.jar"
DATA_DIR_NAME = "world"
DEFAULT_COMMAND = "minecraft {world} command {command}"


class World:
    """A server instance under <worlds_root>/<name>.

    The server directory holds the live data in world/ and a
    minecraft_server.jar symlink to the versioned server jar, e.g.
    minecraft_server.jar -> /opt/jars/minecraft_server.1.19.4.jar.
    """

    def __init__(self, name, worlds_root, command_template=DEFAULT_COMMAND):
        self.name = name
        self.worlds_root = Path(worlds_root)
        self.command_template = command_template

    def __str__(self):
        return self.name

    @property
    def dir(self):
        return self.worlds_root / self.name

    @property
    def data_dir(self):
        return self.dir / DATA_DIR_NAME

    @property
    def jar_path(self):
        return self.dir / JAR_NAME

    def version(self):
        """Server version from the jar link target, as (major, minor, patch)."""
        try:
            target = Path(os.readlink(self.jar_path))
        except OSError as e:
            raise ArtifactPathFormatError(self.jar_path) from e
        _, sep, version = target.stem.partition(".")
        if not sep or not version:
            raise ArtifactPathFormatError(self.jar_path, target)
        try:
            return parse_version(version)
        except VersionFormatError as e:
            raise ArtifactPathFormatError(self.jar_path, target) from e

    def command(self, command):
        """Send a console command to the running server. Returns its stdout."""
        argv = shlex.split(self.command_template.format(world=self.name, command=command))
        try:
            result = subprocess.run(argv, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise WorldCommandError(f"{argv[0]} not found") from e
        except OSError as e:
            raise WorldCommandError(f"could not run {argv[0]}: {e}") from e
        except subprocess.CalledProcessError as e:
            raise WorldCommandError(
                f"{command!r} failed for world {self.name} (exit {e.returncode}): {e.stderr.strip()}"
            ) from e
        return result.stdout

    def pause_writes(self):
        self.command("save-off")

    def flush_writes(self):
        self.command("save-all")

    def resume_writes(self):
        self.command("save-on")
