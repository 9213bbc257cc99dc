"""Vault discovery module for finding notes and attachments."""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from obsidian_exporter.core.models import DiscoveryError, Document, NoteError
from obsidian_exporter.core.parser import parse_document

logger = logging.getLogger(__name__)

NOTE_SUFFIX = '.md'


def is_ignored_name(name: str) -> bool:
    """Hidden files/folders and editor backups are never part of the vault."""
    return name.startswith('.') or name.endswith('~')


class VaultDiscovery:
    """Walks an Obsidian vault and loads notes as Documents."""

    def __init__(self, vault_path: Path, fail_fast: bool = False, end_marker: Optional[str] = None):
        """Initialize VaultDiscovery.

        Args:
            vault_path: Path to the Obsidian vault root
            fail_fast: Raise on the first unreadable note instead of collecting errors
            end_marker: Line ending the exported part of a note
        """
        self.vault_path = Path(vault_path)
        self.fail_fast = fail_fast
        self.end_marker = end_marker
        self.errors: List[NoteError] = []

    def scan(self) -> Tuple[List[str], List[str]]:
        """List every note and attachment in the vault.

        Returns:
            Tuple of (note paths, asset paths), vault-relative POSIX, sorted
        """
        if not self.vault_path.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {self.vault_path}")

        notes: List[str] = []
        assets: List[str] = []
        for root, dirs, files in os.walk(self.vault_path):
            dirs[:] = sorted(d for d in dirs if not is_ignored_name(d))
            for name in files:
                if is_ignored_name(name):
                    continue
                rel = Path(root, name).relative_to(self.vault_path).as_posix()
                if name.lower().endswith(NOTE_SUFFIX):
                    notes.append(rel)
                else:
                    assets.append(rel)

        return sorted(notes), sorted(assets)

    def relative_path(self, path: Path) -> Optional[str]:
        """Vault-relative POSIX path of ``path``, or None if it is outside
        the vault or ignored."""
        try:
            rel = Path(path).relative_to(self.vault_path)
        except ValueError:
            return None
        if not rel.parts or any(is_ignored_name(part) for part in rel.parts):
            return None
        return rel.as_posix()

    def is_note(self, rel: str) -> bool:
        return rel.lower().endswith(NOTE_SUFFIX)

    def load(self, rel: str) -> Optional[Document]:
        """Read and parse a single note.

        Malformed front-matter is recorded as a ``parse`` error but the
        document is still returned (it simply cannot qualify). Read failures
        are recorded as ``io`` errors and yield None.

        Args:
            rel: Vault-relative POSIX path of the note

        Returns:
            Document or None if the file could not be read
        """
        source = self.vault_path / rel
        try:
            text = source.read_text(encoding='utf-8')
            mtime = source.stat().st_mtime
        except (OSError, UnicodeDecodeError) as e:
            self._record(NoteError(path=source, error=f"Cannot read note: {e}", kind="io"))
            return None

        document, problem = parse_document(rel, source, text, mtime, self.end_marker)
        if problem:
            self._record(NoteError(path=source, error=problem, kind="parse"))
        return document

    def discover_all(self) -> Tuple[List[Document], List[str]]:
        """Load every note in the vault.

        Returns:
            Tuple of (documents in discovery order, asset paths)
        """
        self.errors = []
        notes, assets = self.scan()

        documents = []
        for rel in notes:
            document = self.load(rel)
            if document is not None:
                documents.append(document)

        return documents, assets

    def _record(self, error: NoteError) -> None:
        if error.kind == "parse":
            logger.warning("Ignoring front-matter of %s: %s", error.path.name, error.error)
        else:
            logger.warning("Failed to read %s: %s", error.path.name, error.error)
        if self.fail_fast:
            raise DiscoveryError(error.path, error.error)
        self.errors.append(error)
