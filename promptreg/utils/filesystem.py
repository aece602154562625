"""Filesystem utilities for promptreg."""

import contextlib
import hashlib
import os
import shutil
import stat
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def copy_tree_into(src: Path, dest: Path, copied: list[Path]) -> None:
    """Copy a directory tree, appending each file to ``copied`` before writing it.

    Walks with an explicit stack, so nesting depth is not bounded by the
    interpreter's recursion limit. If a copy fails, ``copied`` still lists
    every file that may exist at the destination.
    """
    stack: list[tuple[Path, Path]] = [(src, dest)]
    while stack:
        source_dir, target_dir = stack.pop()
        ensure_directory(target_dir)
        for entry in sorted(source_dir.iterdir()):
            target = target_dir / entry.name
            if entry.is_dir():
                stack.append((entry, target))
            elif entry.is_file():
                copied.append(target)
                shutil.copy2(entry, target)


def copy_directory(src: Path, dest: Path) -> Path:
    """Replace ``dest`` with a recursive copy of ``src``.

    Args:
        src: Source directory path
        dest: Destination directory path

    Returns:
        Path to the copied directory
    """
    if dest.exists():
        shutil.rmtree(dest)
    shutil.copytree(src, dest)
    return dest


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def prune_empty_parents(path: Path, stop: Path) -> None:
    """Remove empty directories from ``path`` upward, stopping at ``stop``."""
    parent = path
    with contextlib.suppress(OSError):
        while parent != stop and stop in parent.parents:
            if not parent.is_dir() or any(parent.iterdir()):
                break
            parent.rmdir()
            parent = parent.parent


def compute_file_checksum(path: Path, algorithm: str = "sha256") -> str:
    """Compute the content digest of a file.

    Args:
        path: Path to the file
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Hex-encoded digest
    """
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def read_text_file(path: Path) -> str:
    """Read a UTF-8 text file.

    Args:
        path: Path to the file

    Returns:
        File contents as a string
    """
    return path.read_text(encoding="utf-8")


def atomic_write_text(path: Path, content: str) -> None:
    """Write a text file so readers see either the old or the new content.

    The content goes to a temporary file in the same directory, is flushed
    to disk, and then renamed over ``path``. The result keeps the mode of
    the file it replaces, or gets the umask default for a new file.

    Args:
        path: Destination path
        content: Content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask
