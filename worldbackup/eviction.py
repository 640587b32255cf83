"""Which snapshot to give up when space runs out.

The victim is the snapshot closest to its neighbours: for every run of three
consecutive snapshots (by version, then time) the distances prev->curr and
curr->next are compared, version distance first and time last, and the
middle snapshot of the tightest window goes. The oldest and newest snapshots
are never the middle of a window, so with three or more backups they are kept.
On an exact tie the earliest window wins.
"""


def distance(old, new):
    """(major, minor, patch, time) distance between two snapshot keys.

    Minor and patch only count when the components above them are equal, so
    1.19.4 -> 2.0.0 is (1, 0, 0, dt) rather than (1, -19, -4, dt).
    """
    old_major, old_minor, old_patch, old_time = old
    new_major, new_minor, new_patch, new_time = new
    major = new_major - old_major
    minor = new_minor - old_minor if new_major == old_major else 0
    patch = new_patch - old_patch if new_major == old_major and new_minor == old_minor else 0
    return (major, minor, patch, new_time - old_time)


def _window_score(prev_key, curr_key, next_key):
    return sorted([distance(prev_key, curr_key), distance(curr_key, next_key)])


def select_victim(catalog):
    """Pick the snapshot to delete, or None if fewer than two are left."""
    entries = list(catalog.items())
    if len(entries) < 2:
        return None
    if len(entries) == 2:
        return entries[0][1]

    windows = zip(entries, entries[1:], entries[2:])
    # min() keeps the first of equal scores, i.e. the earliest window.
    _, (_, victim), _ = min(
        windows,
        key=lambda w: _window_score(w[0][0], w[1][0], w[2][0]),
    )
    return victim


def delete_one(store, on_delete=None):
    """Delete the current victim of store's world.

    Lists the store afresh, so changes since the last call are seen. Returns
    the deleted Snapshot, or None (and deletes nothing) if only one is left.
    """
    victim = select_victim(store.list())
    if victim is None:
        return None
    if on_delete:
        on_delete(victim)
    store.delete(victim)
    return victim
