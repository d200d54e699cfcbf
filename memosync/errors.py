"""Shared error types for memosync.

Backend failures are not classified: whatever the backend reports is carried
verbatim so the engine can surface it as a notice.
"""


class MemoSyncError(Exception):
    """Base error for memosync."""


class GatewayError(MemoSyncError):
    """A gateway command failed (transport, backend logic, validation...)."""

    def __init__(self, message: str, command: str | None = None):
        super().__init__(message)
        self.command = command


class SaveTimeoutError(MemoSyncError):
    """An autosave did not complete within the configured window."""


class ReanalysisInProgressError(MemoSyncError):
    """A reanalysis for the same memo is already running."""


class MemoNotLoadedError(MemoSyncError):
    """The memo id is not part of the loaded working set."""


class BackupFileError(MemoSyncError):
    """A backup file could not be decoded."""


class MoveInProgressError(MemoSyncError):
    """The memo already has a category move awaiting the backend."""
