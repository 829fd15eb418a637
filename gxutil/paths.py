"""Checks for the existence of files and directories."""

from __future__ import annotations

import os
import stat

__all__ = ["exists", "file_exists", "dir_exists"]


def exists(path: str | os.PathLike[str]) -> bool:
    """Return whether *path* exists, without following a final symlink.

    A missing path gives ``False``; any other failure while checking is raised.
    """
    try:
        os.lstat(path)
    except FileNotFoundError:
        return False
    return True


def file_exists(path: str | os.PathLike[str]) -> bool:
    """Return ``True`` if *path* exists and is not a directory.

    Raises ``FileNotFoundError`` when the path is missing and
    ``IsADirectoryError`` when it names a directory.
    """
    info = os.lstat(path)
    if stat.S_ISDIR(info.st_mode):
        raise IsADirectoryError(f"{os.fspath(path)!r} is a directory")
    return True


def dir_exists(path: str | os.PathLike[str]) -> bool:
    """Return ``True`` if *path* exists and is a directory.

    Raises ``FileNotFoundError`` when the path is missing and
    ``NotADirectoryError`` when it names something other than a directory.
    """
    info = os.lstat(path)
    if not stat.S_ISDIR(info.st_mode):
        raise NotADirectoryError(f"{os.fspath(path)!r} is a file")
    return True