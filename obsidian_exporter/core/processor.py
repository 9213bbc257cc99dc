"""Content processor for rewriting Obsidian notes into site posts."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Optional

import yaml

from obsidian_exporter.core.index import VaultIndex
from obsidian_exporter.core.mapping import slugify
from obsidian_exporter.core.models import Document, ProcessedNote, Reference
from obsidian_exporter.core.parser import (
    MARKDOWN_LINK_PATTERN,
    WIKILINK_PATTERN,
    map_prose,
    markdown_reference,
    truncate_body,
    wikilink_reference,
)
from obsidian_exporter.transforms import frontmatter, tags
from obsidian_exporter.transforms.frontmatter import FrontmatterTransform
from obsidian_exporter.transforms.links import LinkTransform, absolute_link
from obsidian_exporter.transforms.tags import TagTransform

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.webp', '.svg', '.avif', '.bmp')

# Obsidian embed sizes: ![[img.png|300]] or ![[img.png|300x200]]
SIZE_ALIAS_PATTERN = re.compile(r'^\d+(?:x\d+)?$')

DEFAULT_END_MARKER = '=== end ==='


@dataclass
class RewriteOutcome:
    """What a rewrite produced besides the text."""
    content: str = ""
    referenced_assets: List[str] = field(default_factory=list)
    missing_links: List[str] = field(default_factory=list)


class LinkRewriter:
    """Rewrites vault links and embeds into destination form.

    - Links to exported notes go through the link transform.
    - Links to notes that exist but are not exported, and dangling links,
      are reduced to their plain text; dangling ones are reported.
    - Asset embeds and links point at the asset's destination URL.

    Rewritten links are always absolute, so rewriting a second time leaves
    the text unchanged.
    """

    def __init__(
        self,
        index: VaultIndex,
        post_slugs: Dict[str, str],
        asset_urls: Dict[str, str],
        link_transform: Optional[LinkTransform] = None,
    ):
        """Initialize LinkRewriter.

        Args:
            index: Vault index used to resolve link targets
            post_slugs: Vault path -> slug for every note being exported
            asset_urls: Vault path -> destination URL for every exportable asset
            link_transform: Transform for links to exported notes
        """
        self.index = index
        self.post_slugs = post_slugs
        self.asset_urls = asset_urls
        self.link_transform = link_transform or absolute_link()

    def rewrite(self, body: str, folder: str = "") -> RewriteOutcome:
        """Rewrite every internal link in ``body``.

        Args:
            body: Note body without front-matter
            folder: Vault-relative folder of the note

        Returns:
            RewriteOutcome with the new text, assets used and missing targets
        """
        outcome = RewriteOutcome()

        def rewrite_fragment(fragment: str) -> str:
            fragment = WIKILINK_PATTERN.sub(
                lambda m: self._replace_wikilink(m, folder, outcome), fragment
            )
            return MARKDOWN_LINK_PATTERN.sub(
                lambda m: self._replace_markdown_link(m, folder, outcome), fragment
            )

        outcome.content = map_prose(body, rewrite_fragment)
        return outcome

    def _replace_wikilink(self, match: re.Match, folder: str, outcome: RewriteOutcome) -> str:
        embed = bool(match.group(1))
        target = match.group(2).strip()
        section = (match.group(3) or "").strip()
        alias = match.group(4).strip() if match.group(4) else None

        if not target:
            # [[#Section]] points inside the same note
            if section:
                return f"[{alias or section}](#{slugify(section)})"
            return match.group(0)

        reference = self.index.classify(wikilink_reference(target, embed=embed), folder)
        if reference.is_asset:
            as_image = embed or target.lower().endswith(IMAGE_EXTENSIONS)
            return self._asset_link(reference, folder, alias, as_image, outcome)

        return self._note_link(reference, folder, alias or target, section, outcome)

    def _replace_markdown_link(self, match: re.Match, folder: str, outcome: RewriteOutcome) -> str:
        embed = bool(match.group(1))
        parsed = markdown_reference(match.group(3), folder, embed=embed)
        if parsed is None:
            return match.group(0)

        reference, section = parsed
        reference = self.index.classify(reference, folder)
        text = match.group(2)
        if reference.is_asset:
            return self._asset_link(reference, folder, text, embed, outcome)

        return self._note_link(reference, folder, text or reference.target, section, outcome)

    def _note_link(
        self,
        reference: Reference,
        folder: str,
        text: str,
        section: str,
        outcome: RewriteOutcome,
    ) -> str:
        rel = self.index.resolve(reference, folder)
        if rel is None:
            outcome.missing_links.append(reference.target)
            return text

        slug = self.post_slugs.get(rel)
        if slug is None:
            logger.debug("Link to unpublished note %s reduced to text", rel)
            return text

        return self.link_transform(text, slug, slugify(section) if section else "")

    def _asset_link(
        self,
        reference: Reference,
        folder: str,
        text: Optional[str],
        as_image: bool,
        outcome: RewriteOutcome,
    ) -> str:
        rel = self.index.resolve(reference, folder)
        url = self.asset_urls.get(rel) if rel is not None else None
        name = PurePosixPath(reference.target).name
        if url is None:
            outcome.missing_links.append(reference.target)
            return text or name

        if rel not in outcome.referenced_assets:
            outcome.referenced_assets.append(rel)

        if as_image:
            alt = text if text and not SIZE_ALIAS_PATTERN.match(text) else PurePosixPath(name).stem
            return f"![{alt}]({url})"
        return f"[{text or name}]({url})"


class ContentProcessor:
    """Turns a parsed note into the post written to the site.

    Handles:
    - Body truncation at the end marker
    - Link and embed rewriting
    - Tag transformation
    - Frontmatter transformation
    """

    def __init__(
        self,
        tag_transform: Optional[TagTransform] = None,
        frontmatter_transform: Optional[FrontmatterTransform] = None,
        end_marker: Optional[str] = DEFAULT_END_MARKER,
    ):
        """Initialize ContentProcessor.

        Args:
            tag_transform: Transform for processing tags (default: unchanged)
            frontmatter_transform: Transform for processing frontmatter
                (default: the note's own properties)
            end_marker: Line that ends the exported body (None to disable)
        """
        self.tag_transform = tag_transform or tags.identity()
        self.frontmatter_transform = frontmatter_transform or frontmatter.identity()
        self.end_marker = end_marker

    def process(self, document: Document, rewriter: LinkRewriter) -> ProcessedNote:
        """Process a note for publishing.

        Args:
            document: The parsed note
            rewriter: Link rewriter holding the current export mapping

        Returns:
            ProcessedNote with rewritten content and output frontmatter
        """
        body = truncate_body(document.body, self.end_marker)
        outcome = rewriter.rewrite(body, document.folder)

        processed = ProcessedNote(
            document=document,
            content=outcome.content,
            frontmatter=dict(document.frontmatter),
            tags=self.tag_transform(document.tags),
            referenced_assets=outcome.referenced_assets,
            missing_links=outcome.missing_links,
        )

        processed.frontmatter = self.frontmatter_transform(dict(document.frontmatter), processed)

        return processed

    def build_output(self, processed: ProcessedNote) -> str:
        """Build final markdown output with frontmatter.

        Args:
            processed: Processed note

        Returns:
            Complete markdown string with YAML frontmatter
        """
        content = processed.content.strip('\n')
        if processed.frontmatter:
            frontmatter_str = yaml.safe_dump(
                processed.frontmatter,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=True,
            )
            return f"---\n{frontmatter_str}---\n{content}\n"
        else:
            return content + "\n"
