"""
Root confinement and protected-path detection.

Every filesystem-touching operation in fmshell, whether it comes from a
built-in command or from a plugin, resolves its target through a
``PathGuard`` before any real I/O happens.

Resolution Modes:
    - Existing target: the full candidate is resolved with symlinks
      collapsed (``Path.resolve(strict=True)``); the target must exist.
    - Nonexistent target: only the parent directory must exist. The parent
      is resolved with symlinks collapsed and the final segment re-joined,
      so a symlinked parent cannot be used to escape the root while new
      entries can still be created.

Protection:
    A path can be inside the root and still be protected: the application is
    often installed inside the user's working tree. Protected entries are
    matched against the path relative to the protected base directory,
    case-insensitively and by exact segment only. ``README.md`` is protected,
    ``docs/README.md`` is not.

Example:
    guard = PathGuard("/home/user/work")

    target = guard.resolve_within_root("notes/todo.txt")
    new_dir = guard.resolve_within_root("archive", allow_nonexistent=True)
    guard.ensure_not_protected(new_dir)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, NoReturn

from fmshell.errors import (
    AccessDeniedError,
    OutsideRootError,
    PathError,
    PathNotFoundError,
    ProtectedPathError,
)

logger = logging.getLogger(__name__)


# Top-level directories that belong to the application installation
DEFAULT_PROTECTED_DIRS = frozenset({
    ".git",
    ".venv",
    "venv",
    "__pycache__",
    ".pytest_cache",
    "build",
    "dist",
    "fmshell",
    "src",
    "tests",
    "node_modules",
})

# Top-level files that belong to the application installation
DEFAULT_PROTECTED_FILES = frozenset({
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "requirements.txt",
    "package.json",
    "README.md",
    "LICENSE",
    ".gitignore",
    ".env",
})


class PathGuard:
    """Resolves user paths against a root boundary and a protection list.

    The root is resolved once, with symlinks collapsed, when the guard is
    constructed and cached for the lifetime of the guard.

    Attributes:
        root: The resolved root boundary.
        protected_base: Directory the protection list is relative to.
    """

    def __init__(
        self,
        root: str | Path,
        protected_base: str | Path | None = None,
        protected_dirs: Iterable[str] = DEFAULT_PROTECTED_DIRS,
        protected_files: Iterable[str] = DEFAULT_PROTECTED_FILES,
    ):
        """Initialize the guard.

        Args:
            root: Allowed root directory (absolute or relative).
            protected_base: Application installation directory. Defaults
                to the root.
            protected_dirs: Directory names protected at the top level of
                the protected base.
            protected_files: File names protected at the top level of the
                protected base.
        """
        self._root = Path(os.path.realpath(root))
        base = protected_base if protected_base is not None else self._root
        self._protected_base = Path(os.path.realpath(base))
        self._protected_dirs = frozenset(d.lower() for d in protected_dirs)
        self._protected_files = frozenset(f.lower() for f in protected_files)
        logger.debug(f"PathGuard root={self._root} protected_base={self._protected_base}")

    @property
    def root(self) -> Path:
        """Get the resolved root boundary."""
        return self._root

    @property
    def protected_base(self) -> Path:
        """Get the directory the protection list applies to."""
        return self._protected_base

    def resolve_within_root(
        self,
        user_path: str | Path,
        *,
        cwd: str | Path | None = None,
        allow_nonexistent: bool = False,
    ) -> Path:
        """Resolve a user-supplied path and confine it to the root.

        Args:
            user_path: Absolute or relative path typed by the user.
            cwd: Base for relative paths. Defaults to the root.
            allow_nonexistent: Only require the parent directory to exist.

        Returns:
            Absolute, symlink-resolved path inside the root.

        Raises:
            OutsideRootError: If the resolved path escapes the root.
            PathNotFoundError: If the target (or, in nonexistent mode, its
                parent) does not exist.
            AccessDeniedError: If the OS refused to traverse the path.
            PathError: If the path is malformed or cannot be resolved.
        """
        if not isinstance(user_path, (str, Path)) or not str(user_path).strip():
            raise PathNotFoundError(message="Invalid path: path must be a non-empty string")

        base = Path(cwd) if cwd is not None else self._root
        candidate = Path(os.path.normpath(os.path.join(base, user_path)))

        if allow_nonexistent:
            parent = self._resolve_strict(candidate.parent, user_path)
            resolved = Path(os.path.normpath(parent / candidate.name))
        else:
            resolved = self._resolve_strict(candidate, user_path)

        self.ensure_inside_root(resolved)
        return resolved

    def _resolve_strict(self, candidate: Path, user_path: str | Path) -> Path:
        """Resolve an existing path, mapping OS failures to path errors."""
        try:
            return candidate.resolve(strict=True)
        except (FileNotFoundError, NotADirectoryError):
            self._raise_missing(candidate, user_path)
        except PermissionError as e:
            if not self.is_inside_root(candidate):
                raise OutsideRootError(user_path) from e
            raise AccessDeniedError(user_path) from e
        except (OSError, RuntimeError) as e:
            # Symlink loops surface as RuntimeError before Python 3.13
            reason = getattr(e, "strerror", None) or str(e)
            raise PathError(user_path, f"Cannot resolve path: {user_path} ({reason})") from e
        except ValueError as e:
            raise PathError(user_path, f"Invalid path: {user_path!r}") from e

    def _raise_missing(self, candidate: Path, user_path: str | Path) -> NoReturn:
        # A missing target outside the root must not reveal that it is missing
        if not self.is_inside_root(candidate):
            raise OutsideRootError(user_path)
        raise PathNotFoundError(user_path)

    def is_inside_root(self, path: str | Path) -> bool:
        """Check whether a path equals the root or is a descendant of it.

        Pure lexical check, no filesystem access.
        """
        target = Path(os.path.normpath(os.path.abspath(path)))
        return target == self._root or self._root in target.parents

    def ensure_inside_root(self, path: str | Path) -> None:
        """Raise ``OutsideRootError`` unless the path is inside the root."""
        if not self.is_inside_root(path):
            raise OutsideRootError(path)

    def _relative_parts(self, path: str | Path) -> tuple[str, ...] | None:
        target = Path(os.path.normpath(os.path.abspath(path)))
        try:
            rel = target.relative_to(self._protected_base)
        except ValueError:
            return None
        return tuple(part.lower() for part in rel.parts)

    def is_protected(self, path: str | Path) -> bool:
        """Check whether a path belongs to the application installation.

        A path is protected when its first segment relative to the
        protected base is a protected directory, or when its full relative
        path is a protected file name.
        """
        parts = self._relative_parts(path)
        if not parts:
            return False
        if parts[0] in self._protected_dirs:
            return True
        return len(parts) == 1 and parts[0] in self._protected_files

    def ensure_not_protected(self, path: str | Path) -> None:
        """Raise ``ProtectedPathError`` if the path is protected."""
        if self.is_protected(path):
            raise ProtectedPathError(path)

    def ensure_not_protected_directory(self, path: str | Path) -> None:
        """Protection check for operations that affect a whole directory.

        In addition to ``ensure_not_protected``, rejects the protected base
        itself and any of its ancestors.
        """
        self.ensure_not_protected(path)
        target = Path(os.path.normpath(os.path.abspath(path)))
        if target == self._protected_base or target in self._protected_base.parents:
            raise ProtectedPathError(path, "Directory contains protected application files")

    def __repr__(self) -> str:
        return f"<PathGuard root={self._root}>"
