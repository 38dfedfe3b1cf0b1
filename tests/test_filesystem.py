"""Tests for fmshell.security.filesystem - the sandboxed filesystem capability."""

from __future__ import annotations

import errno
import os
from pathlib import Path

import pytest

from fmshell.errors import (
    AccessDeniedError,
    DirectoryNotEmptyError,
    FileManagerError,
    NotADirectoryPathError,
    NotAFilePathError,
    OutsideRootError,
    PathExistsError,
    PathError,
    PathNotFoundError,
    ProtectedPathError,
)
from fmshell.security.filesystem import SandboxedFileSystem


# ===========================================================================
# Navigation
# ===========================================================================

class TestNavigation:
    """Tests for the virtual working directory."""

    def test_starts_at_root(self, fs, root):
        assert fs.cwd == root
        assert fs.getcwd() == str(root)

    def test_chdir_and_relative_resolution(self, fs, root):
        (root / "docs").mkdir()
        (root / "docs" / "a.txt").write_text("A")

        fs.chdir("docs")

        assert fs.cwd == root / "docs"
        assert fs.read_file("a.txt") == "A"
        assert fs.relative(fs.cwd) == "/docs"

    def test_chdir_does_not_touch_process_cwd(self, fs, root):
        (root / "docs").mkdir()
        before = os.getcwd()

        fs.chdir("docs")

        assert os.getcwd() == before

    def test_chdir_outside_root_rejected(self, fs, root):
        with pytest.raises(OutsideRootError):
            fs.chdir("..")
        assert fs.cwd == root

    def test_chdir_to_file_rejected(self, fs, root):
        (root / "a.txt").write_text("")
        with pytest.raises(NotADirectoryPathError):
            fs.chdir("a.txt")

    def test_initial_cwd(self, guard, root):
        (root / "docs").mkdir()
        fs = SandboxedFileSystem(guard, cwd="docs")
        assert fs.cwd == root / "docs"

    def test_relative_of_root(self, fs, root):
        assert fs.relative(root) == "/"


# ===========================================================================
# Queries
# ===========================================================================

class TestQueries:
    """Tests for exists, stat, listdir, scandir and walk."""

    def test_exists(self, fs, root):
        (root / "a.txt").write_text("")
        assert fs.exists("a.txt")
        assert not fs.exists("b.txt")

    def test_exists_outside_root_raises(self, fs):
        with pytest.raises(OutsideRootError):
            fs.exists("../anything")

    def test_stat(self, fs, root):
        (root / "a.txt").write_text("12345")
        info = fs.stat("a.txt")
        assert info.is_file and not info.is_dir
        assert info.size == 5

    def test_listdir_sorted(self, fs, root):
        for name in ("b", "a", "c"):
            (root / name).write_text("")
        assert fs.listdir() == ["a", "b", "c"]

    def test_listdir_on_file_rejected(self, fs, root):
        (root / "a.txt").write_text("")
        with pytest.raises(NotADirectoryPathError):
            fs.listdir("a.txt")

    def test_scandir(self, fs, root):
        (root / "dir").mkdir()
        (root / "file.txt").write_text("abc")

        entries = fs.scandir()

        assert [(e.name, e.is_dir, e.size) for e in entries] == [
            ("dir", True, 0),
            ("file.txt", False, 3),
        ]

    def test_walk_respects_depth(self, fs, root):
        (root / "a" / "b" / "c").mkdir(parents=True)
        (root / "a" / "b" / "c" / "deep.txt").write_text("")

        shallow = [(d, e.name) for d, _, e in fs.walk(max_depth=2)]
        full = [(d, e.name) for d, _, e in fs.walk()]

        assert shallow == [(0, "a"), (1, "b")]
        assert full == [(0, "a"), (1, "b"), (2, "c"), (3, "deep.txt")]

    def test_walk_does_not_follow_symlinked_dirs(self, fs, root):
        (root / "real").mkdir()
        (root / "real" / "x.txt").write_text("")
        (root / "link").symlink_to(root / "real", target_is_directory=True)

        names = [e.name for _, _, e in fs.walk()]

        assert names.count("x.txt") == 1

    def test_permission_denied_is_a_file_manager_error(self, fs, monkeypatch):
        real_resolve = Path.resolve

        def resolve(self, strict=False):
            if "locked" in self.parts:
                raise PermissionError(13, "Permission denied", str(self))
            return real_resolve(self, strict=strict)

        monkeypatch.setattr(Path, "resolve", resolve)

        with pytest.raises(AccessDeniedError, match="Permission denied: locked/inner") as exc_info:
            fs.listdir("locked/inner")
        assert isinstance(exc_info.value, FileManagerError)

    def test_io_error_while_reading(self, fs, root, monkeypatch):
        (root / "flaky.txt").write_text("data")

        def read_text(self, *args, **kwargs):
            raise OSError(errno.EIO, "Input/output error")

        monkeypatch.setattr(Path, "read_text", read_text)

        with pytest.raises(PathError, match="Cannot access flaky.txt: Input/output error"):
            fs.read_file("flaky.txt")


# ===========================================================================
# Mutations
# ===========================================================================

class TestMutations:
    """Tests for writes, deletes, copies and renames."""

    def test_write_and_read(self, fs, root):
        fs.write_file("notes.txt", "one\n")
        fs.write_file("notes.txt", "two\n", append=True)
        assert fs.read_file("notes.txt") == "one\ntwo\n"

    def test_write_outside_root_rejected(self, fs, root):
        with pytest.raises(OutsideRootError):
            fs.write_file("../evil.txt", "x")
        assert not (root.parent / "evil.txt").exists()

    def test_write_through_escaping_symlink_rejected(self, fs, root):
        """Test that an existing symlink cannot redirect a write out of the root."""
        target = root.parent / "victim.txt"
        target.write_text("original")
        (root / "link.txt").symlink_to(target)

        with pytest.raises(OutsideRootError):
            fs.write_file("link.txt", "overwritten")
        assert target.read_text() == "original"

    def test_write_protected_rejected(self, fs, root):
        with pytest.raises(ProtectedPathError):
            fs.write_file("package.json", "{}")
        assert not (root / "package.json").exists()

    def test_read_directory_rejected(self, fs, root):
        (root / "dir").mkdir()
        with pytest.raises(NotAFilePathError, match="Is a directory"):
            fs.read_file("dir")

    def test_read_missing(self, fs):
        with pytest.raises(PathNotFoundError):
            fs.read_file("missing.txt")

    def test_touch(self, fs, root):
        fs.touch("new.txt")
        assert (root / "new.txt").is_file()
        with pytest.raises(PathExistsError):
            fs.touch("new.txt")

    def test_delete_file(self, fs, root):
        (root / "a.txt").write_text("")
        fs.delete_file("a.txt")
        assert not (root / "a.txt").exists()

    def test_delete_directory_as_file_rejected(self, fs, root):
        (root / "dir").mkdir()
        with pytest.raises(NotAFilePathError):
            fs.delete_file("dir")

    def test_delete_protected_rejected(self, fs, root):
        (root / "README.md").write_text("keep me")
        with pytest.raises(ProtectedPathError):
            fs.delete_file("README.md")
        assert (root / "README.md").exists()

    def test_mkdir(self, fs, root):
        fs.mkdir("docs")
        assert (root / "docs").is_dir()
        with pytest.raises(PathExistsError):
            fs.mkdir("docs")

    def test_mkdir_protected_rejected(self, fs, root):
        with pytest.raises(ProtectedPathError):
            fs.mkdir("node_modules")

    def test_mkdir_missing_parent(self, fs):
        with pytest.raises(PathNotFoundError):
            fs.mkdir("a/b")

    def test_rmdir_empty(self, fs, root):
        (root / "empty").mkdir()
        fs.rmdir("empty")
        assert not (root / "empty").exists()

    def test_rmdir_not_empty(self, fs, root):
        (root / "full").mkdir()
        (root / "full" / "x.txt").write_text("")
        with pytest.raises(DirectoryNotEmptyError):
            fs.rmdir("full")

    def test_rmdir_recursive(self, fs, root):
        (root / "full" / "sub").mkdir(parents=True)
        (root / "full" / "sub" / "x.txt").write_text("")
        fs.rmdir("full", recursive=True)
        assert not (root / "full").exists()

    def test_rmdir_root_rejected(self, fs, root):
        with pytest.raises(ProtectedPathError):
            fs.rmdir(".", recursive=True)
        assert root.exists()

    def test_rmdir_protected_rejected(self, fs, root):
        (root / "src").mkdir()
        with pytest.raises(ProtectedPathError):
            fs.rmdir("src")

    def test_rmdir_moves_cwd_out_of_removed_directory(self, fs, root):
        (root / "a" / "b").mkdir(parents=True)
        fs.chdir("a/b")

        fs.rmdir(str(root / "a"), recursive=True)

        assert fs.cwd == root

    def test_copy_file(self, fs, root):
        (root / "a.txt").write_text("data")
        fs.copy_file("a.txt", "b.txt")
        assert (root / "b.txt").read_text() == "data"

    def test_copy_refuses_existing_destination(self, fs, root):
        (root / "a.txt").write_text("new")
        (root / "b.txt").write_text("old")
        with pytest.raises(PathExistsError):
            fs.copy_file("a.txt", "b.txt")
        assert (root / "b.txt").read_text() == "old"

    def test_copy_outside_root_rejected(self, fs, root):
        (root / "a.txt").write_text("data")
        with pytest.raises(OutsideRootError):
            fs.copy_file("a.txt", "../stolen.txt")

    def test_rename_file_and_directory(self, fs, root):
        (root / "a.txt").write_text("data")
        (root / "dir").mkdir()

        fs.rename("a.txt", "dir/a.txt")
        fs.rename("dir", "moved")

        assert (root / "moved" / "a.txt").read_text() == "data"

    def test_rename_protected_source_rejected(self, fs, root):
        (root / "src").mkdir()
        with pytest.raises(ProtectedPathError):
            fs.rename("src", "elsewhere")
        assert (root / "src").is_dir()

    def test_rename_onto_protected_name_rejected(self, fs, root):
        (root / "a.txt").write_text("")
        with pytest.raises(ProtectedPathError):
            fs.rename("a.txt", "LICENSE")

    def test_rename_existing_destination_rejected(self, fs, root):
        (root / "a.txt").write_text("")
        (root / "b.txt").write_text("")
        with pytest.raises(PathExistsError):
            fs.rename("a.txt", "b.txt")
