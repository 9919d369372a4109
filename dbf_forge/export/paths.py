from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from dbf_forge.errors import WritePathExhaustedError

try:
    import fcntl
except ImportError:  # Windows: an open handle held by another process already refuses writers
    fcntl = None


def is_locked(path: Path) -> bool:
    """True when another process holds `path` open exclusively, or it cannot be opened for writing."""
    if not path.exists():
        return False
    try:
        with open(path, "r+b") as handle:
            if fcntl is not None:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except OSError:
        return True
    return False


def resolve_write_path(path: Path, max_attempts: int) -> Path:
    """`path` itself when writable, else the first free `<stem>_N<suffix>` sibling."""
    path = Path(path)
    if not is_locked(path):
        return path
    for counter in range(1, max_attempts + 1):
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not is_locked(candidate):
            return candidate
    raise WritePathExhaustedError(path, max_attempts)


def _create_opener(path: str, flags: int) -> int:
    return os.open(path, flags | os.O_CREAT, 0o666)


@contextmanager
def exclusive_output(path: Path) -> Iterator[BinaryIO]:
    """
    Open `path` for writing and hold an exclusive lock until the block ends.

    The file is emptied only once the lock is held, so a process that locked
    it after `is_locked` keeps its contents. If the block raises, the
    partially written file is removed.
    """
    handle = open(path, "r+b", opener=_create_opener)
    if fcntl is not None:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.close()
            raise
    try:
        handle.truncate(0)
        yield handle
    except BaseException:
        handle.close()
        path.unlink(missing_ok=True)
        raise
    else:
        handle.flush()
        if fcntl is not None:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        handle.close()
