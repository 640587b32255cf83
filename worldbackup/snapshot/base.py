from abc import ABC, abstractmethod


class SnapshotStore(ABC):
    """Base interface for a world's snapshot directory.

    Implementations: LocalSnapshotStore.
    """

    @abstractmethod
    def create(self, source_dir, version):
        """Capture source_dir as a new snapshot. Returns the Snapshot."""
        pass

    @abstractmethod
    def list(self):
        """Return a fresh SnapshotCatalog."""
        pass

    @abstractmethod
    def delete(self, snapshot):
        """Permanently remove a snapshot, directory or archive."""
        pass

    @abstractmethod
    def compress(self, snapshot):
        """Replace a directory snapshot with its .tar.gz archive. Returns the archive path."""
        pass
