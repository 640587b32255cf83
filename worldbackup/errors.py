"""Error kinds raised by the backup engine.

Every failure is fatal to the current run. OSError from filesystem calls is
not wrapped and passes through as-is.
"""


class BackupError(Exception):
    """Base class for all worldbackup errors."""


class FilenameFormatError(BackupError, ValueError):
    """An entry in a backup directory does not match the snapshot name format."""

    def __init__(self, name, reason="does not match the snapshot filename format"):
        self.name = name
        super().__init__(f"found file in backup path not matching the filename format: {name!r} ({reason})")


class VersionFormatError(FilenameFormatError):
    def __init__(self, name, version):
        self.version = version
        super().__init__(name, f"version {version!r} is not 1-3 dot-separated integers")


class ArtifactPathFormatError(BackupError):
    """The server jar link is unreadable or its target has no version in it."""

    def __init__(self, path, target=None):
        self.path = path
        self.target = target
        detail = f" -> {target}" if target is not None else ""
        super().__init__(f"unexpected server jar path: {path}{detail}")


class NoMountFoundError(BackupError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"failed to check file system stats at {path}: no mount point found")


class DiskSpaceError(BackupError):
    """Only one snapshot is left and there is still not enough room."""

    def __init__(self, required=None, available=None):
        self.required = required
        self.available = available
        msg = "not enough room to create a backup"
        if required is not None and available is not None:
            msg += f" (need {required} bytes, {available} available)"
        super().__init__(msg)


class EncodingError(BackupError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"non-UTF-8 filename: {name!r}")


class WorldCommandError(BackupError):
    """A save-off/save-all/save-on control command failed."""


class MirrorError(BackupError):
    """rsync exited non-zero."""


class ArchiveError(BackupError):
    """Compressing a snapshot directory into its archive failed."""
