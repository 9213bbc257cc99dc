"""Destination filesystem operations.

Every write lands in a temporary file next to its target and is moved into
place with ``os.replace``, so the site generator never sees a half-written
file. Writes whose content already matches the destination are skipped to
keep re-exports free of timestamp churn.
"""

import hashlib
import os
import shutil
import tempfile
from pathlib import Path


def file_digest(path: Path) -> str:
    """SHA-256 of a file's content."""
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            digest.update(chunk)
    return digest.hexdigest()


def _replace_from_temp(target: Path, fill) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, 'wb') as tmp:
            fill(tmp)
            tmp.flush()
            os.fsync(tmp.fileno())
        # mkstemp creates 0600 files
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_atomic(target: Path, content: str) -> bool:
    """Write text to ``target`` all-or-nothing.

    Args:
        target: Destination file
        content: Text to write (UTF-8)

    Returns:
        True if the file was written, False if it already had this content
    """
    data = content.encode('utf-8')
    if target.is_file() and target.read_bytes() == data:
        return False

    _replace_from_temp(target, lambda tmp: tmp.write(data))
    return True


def copy_atomic(source: Path, target: Path) -> bool:
    """Copy ``source`` to ``target`` all-or-nothing.

    Returns:
        True if copied, False if the target already had identical content
    """
    if target.is_file() and target.stat().st_size == source.stat().st_size \
            and file_digest(target) == file_digest(source):
        return False

    def fill(tmp) -> None:
        with open(source, 'rb') as src:
            shutil.copyfileobj(src, tmp)

    _replace_from_temp(target, fill)
    return True


def remove_file(target: Path, stop_at: Path) -> bool:
    """Delete ``target`` and any directories it leaves empty below ``stop_at``.

    Returns:
        True if a file was removed
    """
    try:
        target.unlink()
    except FileNotFoundError:
        return False

    parent = target.parent
    while parent != stop_at and stop_at in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    return True
