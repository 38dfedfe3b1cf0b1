"""Error types shared by the path guard, the filesystem capability and commands.

Every error raised on purpose by fmshell derives from ``FileManagerError`` so
the shell dispatcher can turn it into a single user-facing line.
"""

from __future__ import annotations

from pathlib import Path


class FileManagerError(Exception):
    """Base error for fmshell."""


class PathError(FileManagerError):
    """An operation on a specific path failed.

    Attributes:
        path: The path the operation was attempted on.
    """

    default_message = "Path operation failed"

    def __init__(self, path: str | Path | None = None, message: str | None = None):
        self.path = str(path) if path is not None else None
        if message is None:
            message = self.default_message
            if self.path is not None:
                message = f"{message}: {self.path}"
        super().__init__(message)


class OutsideRootError(PathError):
    """The resolved path escapes the allowed root directory."""

    default_message = "Operation outside allowed directory"


class ProtectedPathError(PathError):
    """The path belongs to the application's own installation."""

    default_message = "Path is protected and cannot be modified"


class PathNotFoundError(PathError):
    default_message = "No such file or directory"


class PathExistsError(PathError):
    default_message = "Path already exists"


class NotADirectoryPathError(PathError):
    default_message = "Not a directory"


class NotAFilePathError(PathError):
    default_message = "Not a file"


class DirectoryNotEmptyError(PathError):
    default_message = "Directory is not empty"


class AccessDeniedError(PathError):
    """The operating system refused the operation."""

    default_message = "Permission denied"


class UsageError(FileManagerError):
    """A command was called with missing or extra arguments."""
