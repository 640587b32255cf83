"""worldbackup: versioned world snapshots with space-aware retention."""

__version__ = "2.0.0"
