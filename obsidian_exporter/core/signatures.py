"""Last-seen modification signatures of every vault file.

The watch loop consults this table before an incremental pass to drop
notifications that do not correspond to a content change (editors touching
files, duplicate events, saves that restore identical content).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from obsidian_exporter.core.discovery import is_ignored_name
from obsidian_exporter.core.fsio import file_digest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signature:
    mtime_ns: int
    size: int
    digest: str


def _stat_signature(path: Path, previous: Optional[Signature]) -> Optional[Signature]:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    if not path.is_file():
        return None
    # Same mtime and size: trust the stored digest instead of re-hashing
    if previous is not None and previous.mtime_ns == st.st_mtime_ns and previous.size == st.st_size:
        return previous
    return Signature(st.st_mtime_ns, st.st_size, file_digest(path))


class SignatureTable:
    """Path -> signature table for one watch session.

    Usage:
        table = SignatureTable()
        table.initialize(vault_path)
        if table.has_changed(path): ...
        table.teardown()
    """

    def __init__(self):
        self._signatures: Dict[Path, Signature] = {}
        self.active = False

    def initialize(self, vault_path: Path) -> None:
        """Record the signature of every non-hidden file in the vault."""
        self._signatures.clear()
        for root, dirs, files in os.walk(vault_path):
            dirs[:] = [d for d in dirs if not is_ignored_name(d)]
            for name in files:
                if is_ignored_name(name):
                    continue
                path = Path(root, name)
                try:
                    signature = _stat_signature(path, None)
                except OSError as e:
                    logger.warning("Cannot fingerprint %s: %s", path, e)
                    continue
                if signature is not None:
                    self._signatures[path] = signature
        self.active = True
        logger.debug("Recorded %d file signatures", len(self._signatures))

    def teardown(self) -> None:
        self._signatures.clear()
        self.active = False

    def get(self, path: Path) -> Optional[Signature]:
        return self._signatures.get(Path(path))

    def has_changed(self, path: Path) -> bool:
        """Refresh the entry for ``path`` and report a real change.

        Appearing and disappearing both count as changes. An unreadable file
        counts as changed so the pipeline gets to report the error.
        """
        path = Path(path)
        previous = self._signatures.get(path)
        try:
            current = _stat_signature(path, previous)
        except OSError as e:
            logger.warning("Cannot fingerprint %s: %s", path, e)
            self._signatures.pop(path, None)
            return True

        if current is None:
            self._signatures.pop(path, None)
            return previous is not None

        self._signatures[path] = current
        return previous is None or previous.digest != current.digest

    def changed(self, paths: Iterable[Path]) -> List[Path]:
        """Files among ``paths`` whose content really changed, sorted.

        A directory path stands for every file under it, both the ones on
        disk now and the ones recorded before (a removed folder).
        """
        candidates = set()
        for path in map(Path, paths):
            candidates.add(path)
            candidates.update(p for p in self._signatures if path in p.parents)
            if path.is_dir():
                for root, dirs, files in os.walk(path):
                    dirs[:] = [d for d in dirs if not is_ignored_name(d)]
                    candidates.update(Path(root, name) for name in files if not is_ignored_name(name))
        return sorted(p for p in candidates if self.has_changed(p))

    def __len__(self) -> int:
        return len(self._signatures)

    def __contains__(self, path: object) -> bool:
        return Path(path) in self._signatures  # type: ignore[arg-type]
