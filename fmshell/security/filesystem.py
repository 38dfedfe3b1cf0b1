"""
Sandboxed filesystem capability.

``SandboxedFileSystem`` is the only way commands and plugins touch storage.
It keeps its own current directory (the process working directory is never
changed) and funnels every call through a ``PathGuard``:

- reads resolve the target inside the root
- create-style calls resolve in nonexistent-target mode
- every mutation also passes the protected-path check

Operating system errors are translated into ``fmshell.errors`` types so the
shell can report them as a single line.

Example:
    fs = SandboxedFileSystem(PathGuard(root))
    fs.mkdir("notes")
    fs.write_file("notes/todo.txt", "buy milk\\n")
    for entry in fs.scandir("notes"):
        print(entry.name, entry.size)
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from fmshell.errors import (
    AccessDeniedError,
    DirectoryNotEmptyError,
    FileManagerError,
    NotADirectoryPathError,
    NotAFilePathError,
    PathError,
    PathExistsError,
    PathNotFoundError,
    ProtectedPathError,
)
from fmshell.security.pathguard import PathGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStat:
    """Result of ``SandboxedFileSystem.stat``."""

    path: str
    is_file: bool
    is_dir: bool
    size: int
    modified: datetime


@dataclass(frozen=True)
class DirEntry:
    """A single directory listing entry."""

    name: str
    is_dir: bool
    size: int


@contextmanager
def _translate_os_errors(user_path: str | Path) -> Iterator[None]:
    """Map ``OSError`` subclasses to fmshell path errors."""
    try:
        yield
    except FileManagerError:
        raise
    except FileNotFoundError as e:
        raise PathNotFoundError(user_path) from e
    except FileExistsError as e:
        raise PathExistsError(user_path) from e
    except NotADirectoryError as e:
        raise NotADirectoryPathError(user_path) from e
    except IsADirectoryError as e:
        raise NotAFilePathError(user_path, f"Is a directory: {user_path}") from e
    except PermissionError as e:
        raise AccessDeniedError(user_path) from e
    except OSError as e:
        if e.errno == errno.ENOTEMPTY:
            raise DirectoryNotEmptyError(user_path) from e
        raise PathError(user_path, f"Cannot access {user_path}: {e.strerror or e}") from e


class SandboxedFileSystem:
    """Root-confined filesystem operations with a virtual working directory.

    Attributes:
        guard: The path guard every operation goes through.
    """

    def __init__(self, guard: PathGuard, cwd: str | Path | None = None):
        """Initialize the filesystem capability.

        Args:
            guard: Path guard enforcing the root boundary and protection.
            cwd: Initial working directory. Defaults to the root.
        """
        self._guard = guard
        self._cwd = guard.root
        if cwd is not None:
            self.chdir(cwd)

    @property
    def guard(self) -> PathGuard:
        return self._guard

    @property
    def root(self) -> Path:
        return self._guard.root

    @property
    def cwd(self) -> Path:
        """Get the current working directory."""
        return self._cwd

    def getcwd(self) -> str:
        return str(self._cwd)

    def resolve(self, path: str | Path, *, allow_nonexistent: bool = False) -> Path:
        """Resolve a path relative to the working directory inside the root."""
        return self._guard.resolve_within_root(
            path, cwd=self._cwd, allow_nonexistent=allow_nonexistent
        )

    def relative(self, path: str | Path) -> str:
        """Render a resolved path relative to the root for display."""
        rel = Path(path).relative_to(self.root)
        return "/" if str(rel) == "." else f"/{rel.as_posix()}"

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def chdir(self, path: str | Path) -> Path:
        """Change the working directory.

        Raises:
            NotADirectoryPathError: If the target is not a directory.
        """
        target = self.resolve(path)
        if not target.is_dir():
            raise NotADirectoryPathError(path)
        self._cwd = target
        logger.debug(f"cwd -> {target}")
        return target

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, path: str | Path) -> bool:
        """Check whether a path exists inside the root.

        Raises:
            OutsideRootError: If the path escapes the root.
        """
        try:
            self.resolve(path)
        except PathNotFoundError:
            return False
        return True

    def stat(self, path: str | Path) -> FileStat:
        target = self.resolve(path)
        with _translate_os_errors(path):
            st = target.stat()
        return FileStat(
            path=str(target),
            is_file=target.is_file(),
            is_dir=target.is_dir(),
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def listdir(self, path: str | Path = ".") -> list[str]:
        """List entry names of a directory, sorted by name."""
        target = self._resolve_dir(path)
        with _translate_os_errors(path):
            return sorted(os.listdir(target))

    def scandir(self, path: str | Path = ".") -> list[DirEntry]:
        """List a directory with per-entry type and size, sorted by name."""
        target = self._resolve_dir(path)
        entries: list[DirEntry] = []
        with _translate_os_errors(path):
            for item in os.scandir(target):
                try:
                    is_dir = item.is_dir()
                    size = 0 if is_dir else item.stat().st_size
                except OSError:
                    # Dangling symlinks and entries removed mid-listing
                    is_dir, size = False, 0
                entries.append(DirEntry(name=item.name, is_dir=is_dir, size=size))
        entries.sort(key=lambda e: e.name)
        return entries

    def walk(self, path: str | Path = ".", max_depth: int | None = None) -> Iterator[tuple[int, Path, DirEntry]]:
        """Depth-first traversal yielding ``(depth, parent, entry)``.

        Symlinked directories are listed but not descended into.
        """
        start = self._resolve_dir(path)

        def _walk(directory: Path, depth: int) -> Iterator[tuple[int, Path, DirEntry]]:
            with _translate_os_errors(directory):
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            for item in entries:
                is_dir = item.is_dir(follow_symlinks=False)
                size = 0 if is_dir else item.stat(follow_symlinks=False).st_size
                yield depth, directory, DirEntry(name=item.name, is_dir=is_dir, size=size)
                if is_dir and (max_depth is None or depth + 1 < max_depth):
                    yield from _walk(Path(item.path), depth + 1)

        yield from _walk(start, 0)

    def read_file(self, path: str | Path, encoding: str = "utf-8") -> str:
        target = self._resolve_file(path)
        with _translate_os_errors(path):
            return target.read_text(encoding=encoding)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def write_file(
        self,
        path: str | Path,
        content: str,
        *,
        append: bool = False,
        encoding: str = "utf-8",
    ) -> Path:
        """Write (or append) text to a file, creating it if needed."""
        # An existing target is resolved in full so a symlink cannot redirect the write
        if self.exists(path):
            target = self._resolve_file(path)
        else:
            target = self.resolve(path, allow_nonexistent=True)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(path):
            with open(target, "a" if append else "w", encoding=encoding) as f:
                f.write(content)
        return target

    def touch(self, path: str | Path) -> Path:
        """Create an empty file.

        Raises:
            PathExistsError: If the path already exists.
        """
        target = self.resolve(path, allow_nonexistent=True)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(path):
            target.touch(exist_ok=False)
        return target

    def delete_file(self, path: str | Path) -> None:
        target = self._resolve_file(path)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(path):
            target.unlink()

    def mkdir(self, path: str | Path) -> Path:
        """Create a directory whose parent already exists.

        Raises:
            PathExistsError: If the path already exists.
        """
        target = self.resolve(path, allow_nonexistent=True)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(path):
            target.mkdir()
        return target

    def rmdir(self, path: str | Path, *, recursive: bool = False) -> None:
        """Remove a directory.

        Raises:
            DirectoryNotEmptyError: If not recursive and the directory has entries.
            ProtectedPathError: If the directory is the root or holds
                application files.
        """
        target = self._resolve_dir(path)
        if target == self.root:
            raise ProtectedPathError(path, "Cannot remove the root directory")
        self._guard.ensure_not_protected_directory(target)
        with _translate_os_errors(path):
            if recursive:
                shutil.rmtree(target)
            else:
                target.rmdir()
        if self._cwd == target or target in self._cwd.parents:
            self._cwd = target.parent

    def copy_file(self, src: str | Path, dest: str | Path) -> Path:
        """Copy a file to a destination that must not exist yet."""
        source = self._resolve_file(src)
        target = self.resolve(dest, allow_nonexistent=True)
        if target.exists() or target.is_symlink():
            raise PathExistsError(dest)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(dest):
            shutil.copyfile(source, target)
        return target

    def rename(self, src: str | Path, dest: str | Path) -> Path:
        """Move or rename a file or directory to a destination that must not exist."""
        source = self.resolve(src)
        if source == self.root:
            raise ProtectedPathError(src, "Cannot move the root directory")
        target = self.resolve(dest, allow_nonexistent=True)
        if target.exists() or target.is_symlink():
            raise PathExistsError(dest)
        if source.is_dir():
            self._guard.ensure_not_protected_directory(source)
        else:
            self._guard.ensure_not_protected(source)
        self._guard.ensure_not_protected(target)
        with _translate_os_errors(src):
            os.rename(source, target)
        return target

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_dir(self, path: str | Path) -> Path:
        target = self.resolve(path)
        if not target.is_dir():
            raise NotADirectoryPathError(path)
        return target

    def _resolve_file(self, path: str | Path) -> Path:
        target = self.resolve(path)
        if target.is_dir():
            raise NotAFilePathError(path, f"Is a directory: {path}")
        if not target.is_file():
            raise NotAFilePathError(path)
        return target

    def __repr__(self) -> str:
        return f"<SandboxedFileSystem root={self.root} cwd={self._cwd}>"
