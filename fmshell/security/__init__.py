"""fmshell security layer: root confinement and the sandboxed filesystem."""

from fmshell.security.pathguard import (
    DEFAULT_PROTECTED_DIRS,
    DEFAULT_PROTECTED_FILES,
    PathGuard,
)
from fmshell.security.filesystem import (
    DirEntry,
    FileStat,
    SandboxedFileSystem,
)

__all__ = [
    # pathguard
    "DEFAULT_PROTECTED_DIRS",
    "DEFAULT_PROTECTED_FILES",
    "PathGuard",
    # filesystem
    "DirEntry",
    "FileStat",
    "SandboxedFileSystem",
]
