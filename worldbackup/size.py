"""On-disk footprint of a directory tree.

Symlinks are never followed: a link counts as the size of the link itself,
so a tree can't be measured twice through a link pointing back into it, and
links pointing outside of it don't pull in foreign data.
"""

import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path


def _entry_size(entry):
    """Size contributed by one directory entry (recursing into directories)."""
    if entry.is_dir(follow_symlinks=False):
        # The directory's own entry size is counted inside the recursive call.
        return dir_size(entry.path)
    return entry.stat(follow_symlinks=False).st_size


def dir_size(path, workers=None):
    """Total size in bytes of `path` and everything below it.

    With `workers` > 1 the top-level children are measured on a thread pool.
    Any failing stat or listing raises OSError.
    """
    path = Path(path)
    st = path.lstat()
    if not stat.S_ISDIR(st.st_mode):
        return st.st_size

    with os.scandir(path) as it:
        entries = list(it)

    if workers and workers > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return sum(executor.map(_entry_size, entries))
    return sum(_entry_size(entry) for entry in entries)
