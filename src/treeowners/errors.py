from __future__ import annotations


class TreeOwnersError(Exception):
    """Base exception for treeowners."""


class ConfigError(TreeOwnersError):
    """Settings are missing or invalid."""


class ParseError(TreeOwnersError):
    """Failed to parse a settings or accounts file."""


class InvalidOwnerConfigError(ParseError):
    """An owner config file has content that cannot be parsed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"invalid owner config file {path}: {message}")
        self.path = path
        self.message = message


class StorageError(TreeOwnersError):
    """The tree/ref storage failed."""


class RevisionNotFoundError(StorageError):
    """An explicitly requested revision does not exist."""


class BranchNotFoundError(StorageError):
    """The branch that should be written does not exist."""


class TransientStorageError(StorageError):
    """A storage failure that may succeed when the operation is retried."""


class ConcurrentUpdateError(TransientStorageError):
    """The branch tip moved while an update was being written."""


class InternalError(TreeOwnersError):
    """Unexpected failure.

    ``user_message`` is safe to show to end users, the full detail goes to the
    logs. Never retried automatically.
    """

    retryable = False

    def __init__(self, user_message: str, detail: str | None = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.detail = detail or user_message


class GitError(TreeOwnersError):
    """Git invocation failed."""


class UsageError(TreeOwnersError):
    """Invalid CLI usage (user error)."""
