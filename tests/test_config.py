"""Tests for configuration loading and pipeline wiring."""

from pathlib import Path

import pytest

from obsidian_exporter.config import (
    ConfigError,
    ExporterConfig,
    create_pipeline_from_config,
    load_config,
)


@pytest.fixture
def dirs(tmp_path):
    vault = tmp_path / "vault"
    site = tmp_path / "site"
    vault.mkdir()
    site.mkdir()
    return vault, site


class TestExporterConfig:
    """Tests for ExporterConfig."""

    def test_defaults(self, dirs):
        vault, site = dirs
        config = ExporterConfig.from_dict({"vault_path": vault, "output_path": site})
        assert config.posts_dir == "content/posts"
        assert config.assets_dir == "content/assets"
        assert config.link_style == "absolute"
        assert config.end_marker == "=== end ==="
        assert not config.prune

    def test_unknown_key(self, dirs):
        vault, site = dirs
        with pytest.raises(ConfigError, match="posts_directory"):
            ExporterConfig.from_dict({"vault_path": vault, "output_path": site, "posts_directory": "x"})

    def test_missing_required(self, dirs):
        vault, _ = dirs
        with pytest.raises(ConfigError, match="output_path"):
            ExporterConfig.from_dict({"vault_path": vault})

    def test_invalid_link_style(self, dirs):
        vault, site = dirs
        with pytest.raises(ConfigError, match="link_style"):
            ExporterConfig(vault, site, link_style="relative")

    def test_negative_debounce(self, dirs):
        vault, site = dirs
        with pytest.raises(ConfigError):
            ExporterConfig(vault, site, debounce_seconds=-1)

    def test_expands_user(self):
        config = ExporterConfig("~/vault", "~/site")
        assert config.vault_path == Path.home() / "vault"

    def test_resolved_requires_directories(self, dirs, tmp_path):
        vault, _ = dirs
        with pytest.raises(ConfigError, match="output_path"):
            ExporterConfig(vault, tmp_path / "missing").resolved()

    def test_resolved_paths_are_absolute(self, dirs):
        vault, site = dirs
        config = ExporterConfig(vault, site, author="Jane").resolved()
        assert config.vault_path.is_absolute()
        assert config.author == "Jane"


class TestLoadConfig:
    """Tests for load_config."""

    def test_yaml_file_with_overrides(self, dirs, tmp_path):
        vault, site = dirs
        path = tmp_path / "exporter.yaml"
        path.write_text(
            f"vault_path: {vault}\noutput_path: /nowhere\nposts_dir: content/blog\ntitlecase: true\n"
        )

        config = load_config(path, {"output_path": site, "posts_dir": None})

        assert config.output_path == site
        assert config.posts_dir == "content/blog"
        assert config.titlecase

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "exporter.yaml"
        path.write_text("vault_path: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "exporter.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "absent.yaml")


class TestCreatePipeline:
    """Tests for create_pipeline_from_config."""

    def _export(self, config):
        pipeline = create_pipeline_from_config(config)
        pipeline.full_pass()
        return pipeline

    def test_hugo_output(self, dirs):
        vault, site = dirs
        (vault / "other.md").write_text("---\npublish: web\n---\nOther\n")
        (vault / "the art of war.md").write_text(
            "---\npublish: web\ndate: 2024-01-15\ntags: ['#strategy/classic']\n---\nSee [[other]].\n"
        )
        config = ExporterConfig(vault, site, titlecase=True, author="Sun Tzu", tag_separator="-")

        self._export(config)

        output = (site / "content" / "posts" / "the-art-of-war.md").read_text()
        assert output == (
            "---\n"
            "author: Sun Tzu\n"
            "date: '2024-01-15'\n"
            "tags:\n"
            "- strategy-classic\n"
            "title: The Art of War\n"
            "---\n"
            "See [other](/posts/other/).\n"
        )

    def test_hugo_ref_links(self, dirs):
        vault, site = dirs
        (vault / "a.md").write_text("---\npublish: web\n---\n[[b]]\n")
        (vault / "b.md").write_text("---\npublish: web\n---\nB\n")

        self._export(ExporterConfig(vault, site, link_style="hugo_ref"))

        assert '[b]({{< ref "b" >}})' in (site / "content" / "posts" / "a.md").read_text()

    def test_custom_directories(self, dirs):
        vault, site = dirs
        (vault / "a.md").write_text("---\npublish: web\n---\n[[b]] ![[p.png]]\n")
        (vault / "b.md").write_text("---\npublish: web\n---\nB\n")
        (vault / "p.png").write_bytes(b"png")

        pipeline = self._export(ExporterConfig(vault, site, posts_dir="content/blog", assets_dir="static/img"))

        output = (site / "content" / "blog" / "a.md").read_text()
        assert "[b](/blog/b/)" in output
        assert "![p](/static/img/p.png)" in output
        assert (site / "static" / "img" / "p.png").exists()
        assert pipeline.prune is False
