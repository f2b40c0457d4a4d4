"""Git integration for change-based seeds."""

from testfocus.git.changes import ChangedFile, GitChangeDetector

__all__ = ["ChangedFile", "GitChangeDetector"]
