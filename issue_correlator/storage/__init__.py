"""Local JSON storage for runs, checkpoints and corpus snapshots."""

from .manager import StorageManager

__all__ = ["StorageManager"]
