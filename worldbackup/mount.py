import os
import shutil
from pathlib import Path

from worldbackup.errors import NoMountFoundError


def available_bytes(path):
    """Free bytes (for unprivileged users) on the filesystem holding path.

    Walks up from path to the nearest ancestor that is a mount point and can
    be queried. Components that don't exist yet are skipped.
    """
    path = Path(path).absolute()
    for candidate in [path, *path.parents]:
        if not os.path.ismount(candidate):
            continue
        try:
            return shutil.disk_usage(candidate).free
        except OSError:
            continue
    raise NoMountFoundError(path)
