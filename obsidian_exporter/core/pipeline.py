"""Export pipeline: vault -> parsed notes -> rewritten posts and assets."""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from obsidian_exporter.core.discovery import VaultDiscovery, is_ignored_name
from obsidian_exporter.core.filter import qualifies
from obsidian_exporter.core.fsio import copy_atomic, remove_file, write_atomic
from obsidian_exporter.core.index import LinkGraph, VaultIndex
from obsidian_exporter.core.mapping import PathMapper
from obsidian_exporter.core.models import (
    Document,
    ExportError,
    ExportMapping,
    ExportResult,
    NoteError,
)
from obsidian_exporter.core.processor import ContentProcessor, LinkRewriter
from obsidian_exporter.transforms.links import LinkTransform, absolute_link

logger = logging.getLogger(__name__)


class ExportPipeline:
    """Exports the publishable notes of a vault into a site directory.

    The pipeline keeps the parsed vault in memory between passes: the
    documents, an index of link keys, and the link graph used to find the
    notes whose output depends on a changed note. Only one pass may run at
    a time; the watch coordinator guarantees that.
    """

    def __init__(
        self,
        vault_path: Path,
        mapper: PathMapper,
        processor: Optional[ContentProcessor] = None,
        link_transform: Optional[LinkTransform] = None,
        prune: bool = False,
        fail_fast: bool = False,
    ):
        """Initialize ExportPipeline.

        Args:
            vault_path: Path to the Obsidian vault root
            mapper: Destination path mapper
            processor: Content processor (default: no tag/frontmatter transforms)
            link_transform: Transform for links to exported notes
                (default: absolute links under the mapper's post URL prefix)
            prune: On a full pass, also delete destination files this
                pipeline did not produce
            fail_fast: Abort discovery on the first unreadable note
        """
        self.vault_path = Path(vault_path)
        self.mapper = mapper
        self.processor = processor or ContentProcessor()
        self.link_transform = link_transform or absolute_link(mapper.post_url_prefix)
        self.prune = prune
        self.discovery = VaultDiscovery(
            self.vault_path, fail_fast=fail_fast, end_marker=self.processor.end_marker
        )

        self.documents: Dict[str, Document] = {}
        self.index = VaultIndex()
        self.graph = LinkGraph()
        self.mappings: Dict[str, ExportMapping] = {}
        # Destination files this pipeline currently owns
        self.outputs: Dict[str, Path] = {}
        self.exported_assets: Dict[str, Path] = {}
        # Destinations claimed by the last pass
        self.post_slugs: Dict[str, str] = {}
        self.asset_urls: Dict[str, str] = {}
        self.initialized = False
        self._pending: Set[str] = set()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def full_pass(self, cancel: Optional[threading.Event] = None) -> ExportResult:
        """Export the whole vault.

        Args:
            cancel: Event checked between file writes to stop early

        Returns:
            ExportResult describing what happened
        """
        result = ExportResult()
        self._ensure_roots()

        try:
            documents, assets = self.discovery.discover_all()
        except FileNotFoundError as e:
            raise ExportError(str(e)) from e
        result.failures.extend(self.discovery.errors)

        self.documents = {doc.path: doc for doc in documents}
        self.index = VaultIndex.build(self.documents, assets)
        self.graph = LinkGraph()
        for doc in documents:
            self.graph.update(doc.path, doc.references)
        self.initialized = True
        self._pending.clear()

        logger.info("Full pass over %d notes, %d attachments", len(documents), len(assets))
        self._export(set(self.documents), set(assets), result, cancel, report_all=True)

        if self.prune and not result.cancelled:
            self._prune(result)

        self._log_summary(result)
        return result

    def incremental_pass(
        self,
        paths: Iterable[Path],
        cancel: Optional[threading.Event] = None,
    ) -> ExportResult:
        """Re-export after a set of vault files changed.

        Only the given files are re-read. Notes linking to a note that
        appeared, disappeared or changed publish state are rewritten as well,
        since their links now render differently.

        Args:
            paths: Changed, created or deleted paths (absolute or vault-relative)
            cancel: Event checked between file writes to stop early

        Returns:
            ExportResult describing what happened
        """
        if not self.initialized:
            return self.full_pass(cancel)

        result = ExportResult()
        self._ensure_roots()
        self.discovery.errors = []

        rewrite: Set[str] = set(self._pending)
        recopy: Set[str] = set()
        self._pending.clear()

        for rel in self._expand(paths):
            if self.discovery.is_note(rel):
                self._refresh_note(rel, rewrite)
            else:
                self._refresh_asset(rel, rewrite, recopy)

        result.failures.extend(self.discovery.errors)
        self._export(rewrite, recopy, result, cancel, report_all=False)
        self._log_summary(result)
        return result

    # ------------------------------------------------------------------
    # Incremental bookkeeping
    # ------------------------------------------------------------------

    def _expand(self, paths: Iterable[Path]) -> List[str]:
        """Vault-relative files named by ``paths``; folders expand to the
        files inside them, removed folders to the files known under them."""
        found: Set[str] = set()
        for path in paths:
            path = Path(path)
            if not path.is_absolute():
                path = self.vault_path / path
            rel = self.discovery.relative_path(path)
            if rel is None:
                continue

            if path.is_dir():
                for root, dirs, files in os.walk(path):
                    dirs[:] = [d for d in dirs if not is_ignored_name(d)]
                    for name in files:
                        if not is_ignored_name(name):
                            found.add(Path(root, name).relative_to(self.vault_path).as_posix())
            elif path.exists():
                found.add(rel)
            else:
                prefix = rel + '/'
                known = set(self.documents) | self.index.assets
                found.update(k for k in known if k == rel or k.startswith(prefix))
                found.add(rel)
        return sorted(found)

    def _refresh_note(self, rel: str, rewrite: Set[str]) -> None:
        before = self.documents.get(rel)
        was_published = before is not None and qualifies(before.frontmatter)

        if not (self.vault_path / rel).is_file():
            if before is None:
                return
            logger.info("Note removed: %s", rel)
            del self.documents[rel]
            self.index.remove_note(rel)
            self.graph.remove(rel)
            rewrite.update(self.graph.referrers(rel))
            return

        document = self.discovery.load(rel)
        if document is None:
            return

        self.documents[rel] = document
        if before is None:
            self.index.add_note(rel)
        self.graph.update(rel, document.references)

        published = qualifies(document.frontmatter)
        if published:
            rewrite.add(rel)
        if before is None or published != was_published:
            rewrite.update(self.graph.referrers(rel))

    def _refresh_asset(self, rel: str, rewrite: Set[str], recopy: Set[str]) -> None:
        exists = (self.vault_path / rel).is_file()
        known = rel in self.index.assets

        if exists and not known:
            self.index.add_asset(rel)
            rewrite.update(self.graph.referrers(rel, is_note=False))
        elif known and not exists:
            logger.info("Attachment removed: %s", rel)
            self.index.remove_asset(rel)
            rewrite.update(self.graph.referrers(rel, is_note=False))

        if exists:
            recopy.add(rel)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def published(self) -> List[str]:
        """Vault paths of every qualifying note, in discovery order."""
        return sorted(rel for rel, doc in self.documents.items() if qualifies(doc.frontmatter))

    def claim_posts(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Assign post destinations, first note in discovery order wins.

        Returns:
            Tuple of (winner path -> slug, loser path -> winner path)
        """
        owners: Dict[Path, str] = {}
        slugs: Dict[str, str] = {}
        collisions: Dict[str, str] = {}
        for rel in self.published():
            target = self.mapper.post_path(rel)
            if target in owners:
                collisions[rel] = owners[target]
                continue
            owners[target] = rel
            slugs[rel] = self.mapper.post_slug(rel)
        return slugs, collisions

    def asset_targets(self, document: Document) -> List[str]:
        """Vault paths of the attachments a note links to or embeds."""
        targets: List[str] = []
        for ref in document.references:
            ref = self.index.classify(ref, document.folder)
            if not ref.is_asset:
                continue
            rel = self.index.resolve(ref, document.folder)
            if rel is not None and rel not in targets:
                targets.append(rel)
        return targets

    def claim_assets(self, slugs: Dict[str, str]) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Assign asset destinations among the attachments exported notes
        reference, first attachment in path order wins.

        Args:
            slugs: Exported notes, as returned by ``claim_posts``

        Returns:
            Tuple of (winner path -> URL, loser path -> winner path)
        """
        referenced: Set[str] = set()
        for rel in slugs:
            referenced.update(self.asset_targets(self.documents[rel]))

        owners: Dict[Path, str] = {}
        urls: Dict[str, str] = {}
        collisions: Dict[str, str] = {}
        for rel in sorted(referenced):
            target = self.mapper.asset_path(rel)
            if target in owners:
                collisions[rel] = owners[target]
                continue
            owners[target] = rel
            urls[rel] = self.mapper.asset_url(rel)
        return urls, collisions

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _export(
        self,
        rewrite: Set[str],
        recopy: Set[str],
        result: ExportResult,
        cancel: Optional[threading.Event],
        report_all: bool,
    ) -> None:
        slugs, collisions = self.claim_posts()
        asset_urls, asset_collisions = self.claim_assets(slugs)
        rewriter = LinkRewriter(self.index, slugs, asset_urls, self.link_transform)

        # Referrers render differently once a destination is claimed or
        # released, e.g. when a collision loser is promoted
        for rel in _changed(self.post_slugs, slugs):
            rewrite.update(self.graph.referrers(rel))
        for rel in _changed(self.asset_urls, asset_urls):
            rewrite.update(self.graph.referrers(rel, is_note=False))
        self.post_slugs = slugs
        self.asset_urls = asset_urls

        # Notes that should be exported but have no output yet (new winners
        # after a collision owner went away, earlier write failures)
        for rel in slugs:
            if self.outputs.get(rel) != self.mapper.post_path(rel):
                rewrite.add(rel)

        for rel in sorted(collisions):
            if report_all or rel in rewrite:
                self._report_collision(rel, self.mapper.post_path(rel), collisions[rel], result)

        todo = sorted(rel for rel in rewrite if rel in slugs)
        for position, rel in enumerate(todo):
            if cancel is not None and cancel.is_set():
                self._pending.update(todo[position:])
                result.cancelled = True
                logger.info("Pass cancelled, %d notes left", len(todo) - position)
                return
            self._write_post(self.documents[rel], rewriter, asset_collisions, result)

        self._forget_stale_posts(slugs, result)
        self._sync_assets(recopy, result, cancel)

    def _write_post(
        self,
        document: Document,
        rewriter: LinkRewriter,
        asset_collisions: Dict[str, str],
        result: ExportResult,
    ) -> None:
        processed = self.processor.process(document, rewriter)
        mapping = self.mapper.map(document.path, processed.referenced_assets)

        for target in processed.missing_links:
            warning = f"{document.path}: link target not found or not exportable: {target}"
            logger.warning("Dangling link in %s: %s", document.path, target)
            result.warnings.append(warning)

        for rel in self.asset_targets(document):
            if rel in asset_collisions:
                self._report_collision(
                    rel, self.mapper.asset_path(rel), asset_collisions[rel], result
                )

        output = self.processor.build_output(processed)
        try:
            changed = write_atomic(mapping.post_path, output)
        except OSError as e:
            logger.error("Failed to write %s: %s", mapping.post_path, e)
            result.failures.append(NoteError(
                path=document.source, error=f"Cannot write post: {e}", kind="io", title=document.title,
            ))
            return

        self.outputs[document.path] = mapping.post_path
        self.mappings[document.path] = mapping
        if changed:
            logger.info("export: %s -> %s", document.path, mapping.post_path)
            result.written.append(mapping.post_path)
        else:
            result.unchanged.append(mapping.post_path)

    def _report_collision(self, rel: str, target: Path, winner: str, result: ExportResult) -> None:
        path = self.vault_path / rel
        if any(f.path == path for f in result.failures_of("collision")):
            return
        message = f"Destination {target} already taken by {winner}"
        logger.error("Collision: %s skipped, %s", rel, message)
        result.failures.append(NoteError(path=path, error=message, kind="collision"))

    def _forget_stale_posts(self, slugs: Dict[str, str], result: ExportResult) -> None:
        claimed = {self.mapper.post_path(rel) for rel in slugs}
        for rel, target in list(self.outputs.items()):
            if rel in slugs and self.mapper.post_path(rel) == target:
                continue
            del self.outputs[rel]
            self.mappings.pop(rel, None)
            if target in claimed:
                continue
            try:
                if remove_file(target, self.mapper.posts_root):
                    logger.info("remove: %s", target)
                    result.removed.append(target)
            except OSError as e:
                logger.warning("Could not remove stale post %s: %s", target, e)

    def _sync_assets(
        self,
        recopy: Set[str],
        result: ExportResult,
        cancel: Optional[threading.Event],
    ) -> None:
        needed: Dict[str, Path] = {}
        for mapping in self.mappings.values():
            needed.update(mapping.assets)

        for rel in sorted(needed):
            target = needed[rel]
            if self.exported_assets.get(rel) == target and rel not in recopy:
                continue
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                return
            source = self.vault_path / rel
            try:
                copied = copy_atomic(source, target)
            except OSError as e:
                logger.error("Failed to copy %s: %s", rel, e)
                result.failures.append(NoteError(path=source, error=f"Cannot copy asset: {e}", kind="io"))
                continue
            self.exported_assets[rel] = target
            if copied:
                logger.info("copy: %s -> %s", rel, target)
                result.copied_assets.append(target)

        # Orphans: best effort, never fatal
        claimed = set(needed.values())
        for rel, target in list(self.exported_assets.items()):
            if needed.get(rel) == target:
                continue
            del self.exported_assets[rel]
            if target in claimed:
                continue
            try:
                if remove_file(target, self.mapper.assets_root):
                    logger.info("remove: %s", target)
                    result.removed_assets.append(target)
            except OSError as e:
                logger.warning("Could not remove orphaned asset %s: %s", target, e)

    def _prune(self, result: ExportResult) -> None:
        """Delete files under the destination directories that this pass
        did not produce."""
        keep_posts = set(self.outputs.values())
        keep_assets = set(self.exported_assets.values())
        for root, keep, removed in (
            (self.mapper.posts_root, keep_posts, result.removed),
            (self.mapper.assets_root, keep_assets, result.removed_assets),
        ):
            for path in sorted(p for p in root.rglob('*') if p.is_file()):
                if path in keep:
                    continue
                try:
                    if remove_file(path, root):
                        logger.info("prune: %s", path)
                        removed.append(path)
                except OSError as e:
                    logger.warning("Could not prune %s: %s", path, e)

    def _ensure_roots(self) -> None:
        for root in (self.mapper.posts_root, self.mapper.assets_root):
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ExportError(f"Cannot create destination directory {root}: {e}") from e

    def _log_summary(self, result: ExportResult) -> None:
        logger.info(
            "Pass done: %d written, %d unchanged, %d removed, %d assets copied, %d failures",
            len(result.written),
            len(result.unchanged),
            len(result.removed),
            len(result.copied_assets),
            len(result.failures),
        )


def _changed(before: Dict[str, str], after: Dict[str, str]) -> Set[str]:
    return {key for key in set(before) | set(after) if before.get(key) != after.get(key)}
