from __future__ import annotations

import logging
import os
import stat
from typing import Literal

logger = logging.getLogger(__name__)

PathKind = Literal["file", "dir", "other"]

# O_BINARY only exists (and only matters) on Windows.
_BINARY = getattr(os, "O_BINARY", 0)


def path_kind(path: str) -> PathKind | None:
    """
    Return what `path` points at, or None if nothing is there.

    Only a missing path maps to None. Permission errors and the like
    propagate so they are never mistaken for absence.
    """
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    if stat.S_ISREG(st.st_mode):
        return "file"
    if stat.S_ISDIR(st.st_mode):
        return "dir"
    return "other"


def read_text(path: str, encoding: str) -> str:
    # newline="" keeps "\r\n" as stored; splitting is left to the caller.
    with open(path, "r", encoding=encoding, newline="") as f:
        return f.read()


def write_bytes(path: str, data: bytes, *, mode: int, append: bool) -> None:
    flags = os.O_WRONLY | os.O_CREAT | _BINARY
    flags |= os.O_APPEND if append else os.O_TRUNC
    fd = os.open(path, flags, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def unlink_if_present(path: str) -> bool:
    """Remove a file. Returns False when there was nothing to remove."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        logger.debug("UNLINK: %s already absent", path)
        return False
    return True


def make_dir(path: str, mode: int) -> None:
    """
    Create a single directory level.

    Losing a race against another creator is fine as long as what now
    exists is a directory.
    """
    try:
        os.mkdir(path, mode)
    except FileExistsError:
        if path_kind(path) != "dir":
            raise
