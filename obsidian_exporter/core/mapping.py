"""Destination path mapping for exported notes and their assets."""

import posixpath
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional
from urllib.parse import quote

import inflection

from obsidian_exporter.core.models import ExportMapping


def slugify(text: str) -> str:
    """URL-safe slug, falling back to a plain lower-cased form for names
    that transliterate to nothing (e.g. CJK titles)."""
    slug = inflection.parameterize(text)
    if slug:
        return slug
    return text.strip().replace(' ', '-').replace('/', '-').lower()


def url_prefix_for(subdir: str) -> str:
    """Site URL prefix for a Hugo content subdirectory.

    ``content/posts`` is served at ``/posts``.
    """
    parts = [p for p in PurePosixPath(subdir).parts if p not in ('/', '.')]
    if parts and parts[0] == 'content':
        parts = parts[1:]
    return '/' + '/'.join(parts) if parts else ''


class PathMapper:
    """Computes destination locations for notes and attachments.

    Posts are flattened into the posts directory, keyed by the slug of
    their whole vault-relative path. Assets mirror the vault folder
    structure under the assets directory.
    """

    def __init__(
        self,
        output_path: Path,
        posts_dir: str = "content/posts",
        assets_dir: str = "content/assets",
        post_url_prefix: Optional[str] = None,
        asset_url_prefix: Optional[str] = None,
    ):
        """Initialize PathMapper.

        Args:
            output_path: Destination site root
            posts_dir: Posts subdirectory relative to the site root
            assets_dir: Assets subdirectory relative to the site root
            post_url_prefix: URL prefix for posts (default derived from posts_dir)
            asset_url_prefix: URL prefix for assets (default derived from assets_dir)
        """
        self.output_path = Path(output_path)
        self.posts_root = self.output_path / posts_dir
        self.assets_root = self.output_path / assets_dir
        if post_url_prefix is None:
            post_url_prefix = url_prefix_for(posts_dir)
        if asset_url_prefix is None:
            asset_url_prefix = url_prefix_for(assets_dir)
        self.post_url_prefix = post_url_prefix.rstrip('/')
        self.asset_url_prefix = asset_url_prefix.rstrip('/')

    def post_slug(self, rel: str) -> str:
        stem = rel[:-3] if rel.lower().endswith('.md') else rel
        return slugify(stem.replace('/', ' '))

    def post_path(self, rel: str) -> Path:
        return self.posts_root / f"{self.post_slug(rel)}.md"

    def asset_relative(self, rel: str) -> str:
        """Destination path of an asset relative to the assets directory."""
        folder, name = posixpath.split(rel)
        parts = [slugify(part) for part in folder.split('/') if part]
        stem, ext = posixpath.splitext(name)
        parts.append(slugify(stem) + ext.lower())
        return '/'.join(parts)

    def asset_path(self, rel: str) -> Path:
        return self.assets_root / self.asset_relative(rel)

    def asset_url(self, rel: str) -> str:
        return f"{self.asset_url_prefix}/{quote(self.asset_relative(rel), safe='/')}"

    def map(self, rel: str, assets: Optional[Iterable[str]] = None) -> ExportMapping:
        """Build the export mapping of a note.

        Args:
            rel: Vault-relative path of the note
            assets: Resolved vault paths of the assets the note references

        Returns:
            ExportMapping with post path and asset destinations
        """
        return ExportMapping(
            post_path=self.post_path(rel),
            slug=self.post_slug(rel),
            assets={asset: self.asset_path(asset) for asset in (assets or {})},
        )
