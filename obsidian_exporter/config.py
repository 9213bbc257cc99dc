"""Configuration loading and pipeline construction.

Configuration can come from a YAML file, for example::

    vault_path: ~/Obsidian
    output_path: ~/blog
    posts_dir: content/posts
    assets_dir: content/assets
    link_style: absolute
    titlecase: true
    author: Jane Doe
    tag_separator: "-"

Command-line options override file values.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from obsidian_exporter.core.mapping import PathMapper
from obsidian_exporter.core.models import ExporterError
from obsidian_exporter.core.pipeline import ExportPipeline
from obsidian_exporter.core.processor import DEFAULT_END_MARKER, ContentProcessor
from obsidian_exporter.transforms.frontmatter import hugo_frontmatter
from obsidian_exporter.transforms.links import absolute_link, hugo_ref
from obsidian_exporter.transforms.tags import compose, replace_separator, strip_hash

LINK_STYLES = ("absolute", "hugo_ref")


class ConfigError(ExporterError):
    """Raised for invalid or unreadable configuration."""


@dataclass
class ExporterConfig:
    """Settings for one vault -> site export."""
    vault_path: Path
    output_path: Path
    posts_dir: str = "content/posts"
    assets_dir: str = "content/assets"
    post_url_prefix: Optional[str] = None
    asset_url_prefix: Optional[str] = None
    link_style: str = "absolute"
    end_marker: Optional[str] = DEFAULT_END_MARKER
    titlecase: bool = False
    author: Optional[str] = None
    tag_separator: Optional[str] = None
    prune: bool = False
    debounce_seconds: float = 0.5
    fail_fast: bool = False

    def __post_init__(self):
        self.vault_path = Path(self.vault_path).expanduser()
        self.output_path = Path(self.output_path).expanduser()
        if self.link_style not in LINK_STYLES:
            raise ConfigError(
                f"link_style must be one of {', '.join(LINK_STYLES)}, got {self.link_style!r}"
            )
        if self.debounce_seconds < 0:
            raise ConfigError("debounce_seconds must not be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExporterConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        for required in ("vault_path", "output_path"):
            if not data.get(required):
                raise ConfigError(f"Missing required setting: {required}")
        return cls(**data)

    def resolved(self) -> "ExporterConfig":
        """Copy with vault and output paths made absolute.

        Raises:
            ConfigError: If either directory does not exist
        """
        for name in ("vault_path", "output_path"):
            path = getattr(self, name)
            if not path.is_dir():
                raise ConfigError(f"Directory not found for {name}: {path}")
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["vault_path"] = self.vault_path.resolve()
        values["output_path"] = self.output_path.resolve()
        return ExporterConfig(**values)


def load_config(path: Path, overrides: Optional[Dict[str, Any]] = None) -> ExporterConfig:
    """Load a YAML config file, applying non-None overrides on top.

    Args:
        path: YAML file
        overrides: Values that take precedence (None values are ignored)

    Returns:
        ExporterConfig
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")

    data.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return ExporterConfig.from_dict(data)


def create_pipeline_from_config(config: ExporterConfig) -> ExportPipeline:
    """Wire an ExportPipeline from configuration."""
    mapper = PathMapper(
        output_path=config.output_path,
        posts_dir=config.posts_dir,
        assets_dir=config.assets_dir,
        post_url_prefix=config.post_url_prefix,
        asset_url_prefix=config.asset_url_prefix,
    )

    tag_transform = strip_hash()
    if config.tag_separator is not None:
        tag_transform = compose(tag_transform, replace_separator("/", config.tag_separator))

    processor = ContentProcessor(
        tag_transform=tag_transform,
        frontmatter_transform=hugo_frontmatter(config.author, use_titlecase=config.titlecase),
        end_marker=config.end_marker,
    )

    if config.link_style == "hugo_ref":
        link_transform = hugo_ref()
    else:
        link_transform = absolute_link(mapper.post_url_prefix)

    return ExportPipeline(
        vault_path=config.vault_path,
        mapper=mapper,
        processor=processor,
        link_transform=link_transform,
        prune=config.prune,
        fail_fast=config.fail_fast,
    )
