"""Command line entry point: export Obsidian notes to a Hugo site."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from obsidian_exporter import __version__
from obsidian_exporter.config import ConfigError, ExporterConfig, create_pipeline_from_config, load_config
from obsidian_exporter.core.models import ExporterError
from obsidian_exporter.core.watch import watch_vault

console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


@click.command()
@click.version_option(__version__)
@click.option("-o", "--obsidian-dir", type=click.Path(file_okay=False, path_type=Path), help="Obsidian vault dir")
@click.option("-g", "--hugo-dir", type=click.Path(file_okay=False, path_type=Path), help="Hugo dir")
@click.option("-p", "--hugo-posts-dir", default=None, help="Hugo posts sub dir [default: content/posts]")
@click.option("-a", "--hugo-assets-dir", default=None, help="Hugo assets sub dir [default: content/assets]")
@click.option("-w", "--watch", is_flag=True, help="Keep watching the vault after the export")
@click.option("--prune", is_flag=True, default=None, help="Delete files in the destination dirs not produced by the export")
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="YAML config file")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(
    obsidian_dir: Optional[Path],
    hugo_dir: Optional[Path],
    hugo_posts_dir: Optional[str],
    hugo_assets_dir: Optional[str],
    watch: bool,
    prune: Optional[bool],
    config_file: Optional[Path],
    verbose: bool,
) -> None:
    """Export notes marked `publish: web` from an Obsidian vault to Hugo."""
    _setup_logging(verbose)
    log = logging.getLogger("obsidian_exporter")

    overrides = {
        "vault_path": obsidian_dir,
        "output_path": hugo_dir,
        "posts_dir": hugo_posts_dir,
        "assets_dir": hugo_assets_dir,
        "prune": prune,
    }
    try:
        if config_file is not None:
            config = load_config(config_file, overrides)
        else:
            config = ExporterConfig.from_dict({k: v for k, v in overrides.items() if v is not None})
        config = config.resolved()
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    pipeline = create_pipeline_from_config(config)

    try:
        if watch:
            watch_vault(pipeline, debounce_seconds=config.debounce_seconds)
            return
        result = pipeline.full_pass()
    except ExporterError as e:
        log.error("%s", e)
        sys.exit(2)

    if not result.ok:
        for failure in result.failures:
            if failure.kind != "parse":
                log.error("%s: %s", failure.path, failure.error)
        sys.exit(1)


if __name__ == "__main__":
    main()
