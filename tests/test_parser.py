"""Tests for front-matter parsing and reference scanning."""

from pathlib import Path

from obsidian_exporter.core.parser import (
    map_prose,
    parse_document,
    scan_references,
    split_frontmatter,
    truncate_body,
)


class TestSplitFrontmatter:
    """Tests for split_frontmatter."""

    def test_scalar_and_list_values(self):
        fm, body, problem = split_frontmatter(
            "---\npublish: web\ntags:\n  - a\n  - b\n---\n# Body\n"
        )
        assert problem is None
        assert fm == {"publish": "web", "tags": ["a", "b"]}
        assert body == "# Body\n"

    def test_preserves_property_order(self):
        fm, _, _ = split_frontmatter("---\nzeta: 1\nalpha: 2\nmid: 3\n---\n")
        assert list(fm) == ["zeta", "alpha", "mid"]

    def test_no_frontmatter(self):
        text = "# Just a heading\n\nText.\n"
        fm, body, problem = split_frontmatter(text)
        assert fm == {}
        assert body == text
        assert problem is None

    def test_leading_blank_lines_allowed(self):
        fm, body, _ = split_frontmatter("\n\n---\npublish: web\n---\nBody\n")
        assert fm == {"publish": "web"}
        assert body == "Body\n"

    def test_unclosed_block_is_reported(self):
        text = "---\npublish: web\n\nNo closing marker.\n"
        fm, body, problem = split_frontmatter(text)
        assert fm == {}
        assert body == text
        assert "not closed" in problem

    def test_invalid_yaml_is_reported(self):
        fm, body, problem = split_frontmatter("---\ntags: [unclosed\n---\nContent.\n")
        assert fm == {}
        assert body == "Content.\n"
        assert "invalid YAML" in problem

    def test_non_mapping_yaml_is_reported(self):
        fm, _, problem = split_frontmatter("---\n- just\n- a list\n---\nBody\n")
        assert fm == {}
        assert "mapping" in problem

    def test_empty_block(self):
        fm, body, problem = split_frontmatter("---\n---\nBody\n")
        assert fm == {}
        assert body == "Body\n"
        assert problem is None

    def test_only_first_block_is_metadata(self):
        text = "---\npublish: web\n---\nIntro\n\n```yaml\n---\npublish: no\n---\n```\n"
        fm, body, _ = split_frontmatter(text)
        assert fm == {"publish": "web"}
        assert "publish: no" in body

    def test_horizontal_rule_later_in_body(self):
        fm, body, _ = split_frontmatter("Intro\n\n---\n\nMore\n")
        assert fm == {}
        assert body.startswith("Intro")

    def test_byte_order_mark(self):
        fm, _, _ = split_frontmatter("\ufeff---\npublish: web\n---\nBody\n")
        assert fm == {"publish": "web"}


class TestScanReferences:
    """Tests for scan_references."""

    def test_wikilinks_and_embeds(self):
        refs = scan_references("See [[Other Note]] and ![[img.png]].")
        targets = {(r.target, r.embed, r.is_asset) for r in refs}
        assert ("Other Note", False, False) in targets
        assert ("img.png", True, True) in targets

    def test_alias_and_section_are_stripped(self):
        refs = scan_references("[[Other#Intro|the intro]]")
        assert len(refs) == 1
        assert refs[0].target == "Other"
        assert refs[0].key == "other"

    def test_md_suffix_dropped_from_note_key(self):
        refs = scan_references("[[folder/Note.md]]")
        assert refs[0].key == "folder/note"
        assert not refs[0].is_asset

    def test_markdown_links_resolved_against_folder(self):
        refs = scan_references("![diagram](../img/Diagram.png) [x](Other%20Note.md)", folder="notes/sub")
        keys = {r.key for r in refs}
        assert "notes/img/diagram.png" in keys
        assert "notes/sub/other note" in keys
        assert all(r.relative for r in refs)

    def test_external_links_ignored(self):
        refs = scan_references(
            "[site](https://example.com) [abs](/posts/a/) [anchor](#top) [mail](mailto:a@b.c)"
        )
        assert refs == []

    def test_code_is_ignored(self):
        body = "Text [[Real]]\n\n```\n[[InFence]]\n```\n\nInline `[[InCode]]` here.\n~~~\n![[fenced.png]]\n~~~\n"
        refs = scan_references(body)
        assert [r.target for r in refs] == ["Real"]

    def test_empty_wikilink_ignored(self):
        assert scan_references("Nothing [[]] here") == []

    def test_duplicates_removed(self):
        refs = scan_references("[[A]] and again [[A]]")
        assert len(refs) == 1

    def test_dotted_note_name_is_not_an_asset(self):
        refs = scan_references("[[Release v1.2 notes]]")
        assert not refs[0].is_asset


class TestMapProse:
    """Tests for map_prose."""

    def test_code_untouched(self):
        body = "a\n```\na\n```\n`a` a\n"
        result = map_prose(body, lambda s: s.replace("a", "b"))
        assert result == "b\n```\na\n```\n`a` b\n"


class TestTruncateBody:
    """Tests for truncate_body."""

    def test_stops_at_marker_line(self):
        body = "Public\n\n  === end ===  \nPrivate\n=== end ===\nMore\n"
        assert truncate_body(body, "=== end ===") == "Public\n\n"

    def test_marker_inside_a_line_does_not_count(self):
        body = "Text === end === text\n"
        assert truncate_body(body, "=== end ===") == body

    def test_disabled(self):
        assert truncate_body("A\n=== end ===\nB\n", None) == "A\n=== end ===\nB\n"


class TestParseDocument:
    """Tests for parse_document."""

    def test_builds_document(self, tmp_path):
        source = tmp_path / "notes" / "a.md"
        doc, problem = parse_document(
            "notes/a.md", source, "---\npublish: web\ntitle: Hello\n---\nLink [[b]]\n", 12.5
        )
        assert problem is None
        assert doc.path == "notes/a.md"
        assert doc.folder == "notes"
        assert doc.title == "Hello"
        assert doc.mtime == 12.5
        assert [r.target for r in doc.references] == ["b"]

    def test_title_falls_back_to_stem(self):
        doc, _ = parse_document("My Note.md", Path("/v/My Note.md"), "Body\n")
        assert doc.title == "My Note"
        assert doc.folder == ""

    def test_tags_string_and_list(self):
        doc, _ = parse_document("a.md", Path("/v/a.md"), "---\ntags: single\n---\n")
        assert doc.tags == ["single"]
        doc, _ = parse_document("a.md", Path("/v/a.md"), "---\ntags: [x, y]\n---\n")
        assert doc.tags == ["x", "y"]

    def test_malformed_frontmatter_never_raises(self):
        doc, problem = parse_document("a.md", Path("/v/a.md"), "---\npublish: [web\n---\nBody\n")
        assert doc.frontmatter == {}
        assert problem is not None

    def test_links_after_end_marker_are_not_recorded(self):
        text = "---\npublish: web\n---\nSee [[public]].\n=== end ===\n![[secret.png]] [[private]]\n"
        doc, _ = parse_document("a.md", Path("/v/a.md"), text, end_marker="=== end ===")
        assert [r.target for r in doc.references] == ["public"]
        assert "[[private]]" in doc.body
