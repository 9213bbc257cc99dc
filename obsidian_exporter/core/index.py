"""Vault index for link resolution and the note link graph."""

import posixpath
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set

from obsidian_exporter.core.models import Reference


def _strip_note_suffix(rel: str) -> str:
    return rel[:-3] if rel.lower().endswith('.md') else rel


def path_keys(rel: str, is_note: bool = True) -> List[str]:
    """Every key a vault file can be linked by.

    These are the lower-cased trailing sub-paths, so ``Notes/Sub/B.md`` is
    reachable as ``b``, ``sub/b`` and ``notes/sub/b``.
    """
    base = _strip_note_suffix(rel) if is_note else rel
    parts = base.lower().split('/')
    return ['/'.join(parts[i:]) for i in range(len(parts))]


class VaultIndex:
    """Lookup tables from link keys to vault paths."""

    def __init__(self):
        self.notes: Set[str] = set()
        self.assets: Set[str] = set()
        self._note_keys: Dict[str, Set[str]] = defaultdict(set)
        self._asset_keys: Dict[str, Set[str]] = defaultdict(set)

    @classmethod
    def build(cls, notes: Iterable[str], assets: Iterable[str]) -> "VaultIndex":
        index = cls()
        for rel in notes:
            index.add_note(rel)
        for rel in assets:
            index.add_asset(rel)
        return index

    def add_note(self, rel: str) -> None:
        self.notes.add(rel)
        for key in path_keys(rel, is_note=True):
            self._note_keys[key].add(rel)

    def remove_note(self, rel: str) -> None:
        self.notes.discard(rel)
        self._discard(self._note_keys, path_keys(rel, is_note=True), rel)

    def add_asset(self, rel: str) -> None:
        self.assets.add(rel)
        for key in path_keys(rel, is_note=False):
            self._asset_keys[key].add(rel)

    def remove_asset(self, rel: str) -> None:
        self.assets.discard(rel)
        self._discard(self._asset_keys, path_keys(rel, is_note=False), rel)

    def resolve(self, reference: Reference, folder: str = "") -> Optional[str]:
        """Resolve a reference to a vault path.

        Relative Markdown links must match a full path. Wikilinks prefer a
        file in the linking note's folder, then the shortest path.

        Args:
            reference: Reference to resolve
            folder: Vault-relative folder of the linking note

        Returns:
            Vault-relative path, or None for a dangling reference
        """
        table = self._asset_keys if reference.is_asset else self._note_keys
        candidates = table.get(reference.key)
        if not candidates:
            return None

        if reference.relative:
            exact = [
                c for c in candidates
                if path_keys(c, is_note=not reference.is_asset)[0] == reference.key
            ]
            return min(exact) if exact else None

        return min(
            candidates,
            key=lambda c: (posixpath.dirname(c) != folder, c.count('/'), c),
        )

    def classify(self, reference: Reference, folder: str = "") -> Reference:
        """Settle whether a reference points at an attachment or a note.

        A target that looks like a file name but matches no attachment is a
        note link when a note of that name exists (``[[2024.01.15]]``,
        ``[[Release 1.0]]``). Note and attachment keys are built the same way,
        so only the flag changes.
        """
        if not reference.is_asset or self.resolve(reference, folder) is not None:
            return reference
        as_note = replace(reference, is_asset=False)
        if self.resolve(as_note, folder) is not None:
            return as_note
        return reference

    @staticmethod
    def _discard(table: Dict[str, Set[str]], keys: List[str], rel: str) -> None:
        for key in keys:
            paths = table.get(key)
            if paths is None:
                continue
            paths.discard(rel)
            if not paths:
                del table[key]


class LinkGraph:
    """Adjacency sets between notes and the link keys they use.

    ``forward`` maps a note to the keys it links to; ``reverse`` maps a key
    to the notes linking through it. Keys rather than resolved paths are
    stored so that a link which is dangling today still finds its referrer
    once the target appears.
    """

    def __init__(self):
        self.forward: Dict[str, Set[str]] = {}
        self.reverse: Dict[str, Set[str]] = defaultdict(set)

    def update(self, rel: str, references: Iterable[Reference]) -> None:
        """Replace the outgoing edges of ``rel``."""
        self.remove(rel)
        keys = {ref.key for ref in references}
        self.forward[rel] = keys
        for key in keys:
            self.reverse[key].add(rel)

    def remove(self, rel: str) -> None:
        for key in self.forward.pop(rel, set()):
            referrers = self.reverse.get(key)
            if referrers is None:
                continue
            referrers.discard(rel)
            if not referrers:
                del self.reverse[key]

    def referrers(self, rel: str, is_note: bool = True) -> Set[str]:
        """Notes whose links could point at ``rel``."""
        found: Set[str] = set()
        for key in path_keys(rel, is_note=is_note):
            found.update(self.reverse.get(key, set()))
        found.discard(rel)
        return found
