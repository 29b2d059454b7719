"""Tests for Markdown title extraction and syntax stripping."""

from __future__ import annotations

import pytest

from minkb.store.markdown import extract_title, strip_frontmatter, strip_markdown


class TestExtractTitle:
    def test_first_level_one_heading(self) -> None:
        assert extract_title("# Hello\nWorld about cats") == "Hello"

    def test_heading_later_in_document(self) -> None:
        assert extract_title("intro line\n\n# Later Title\nbody\n# Second") == "Later Title"

    def test_ignores_deeper_headings(self) -> None:
        assert extract_title("## Sub\n### Deeper\ntext") is None

    def test_requires_space_after_hash(self) -> None:
        assert extract_title("#hashtag\nbody") is None

    def test_skips_frontmatter(self) -> None:
        content = "---\ntitle: meta\n---\n# Real Title\n"
        assert extract_title(content) == "Real Title"

    def test_empty_content(self) -> None:
        assert extract_title("") is None


class TestStripFrontmatter:
    def test_removes_leading_block(self) -> None:
        assert strip_frontmatter("---\na: 1\n---\nbody") == "body"

    def test_leaves_plain_content(self) -> None:
        assert strip_frontmatter("body\n---\nmore") == "body\n---\nmore"


class TestStripMarkdown:
    def test_heading_marker_removed(self) -> None:
        assert strip_markdown("# Hello\nWorld about cats") == "Hello\nWorld about cats"

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("**bold** and *italic*", "bold and italic"),
            ("__strong__ and _em_", "strong and em"),
            ("~~gone~~ text", "gone text"),
            ("use `pip install`", "use pip install"),
            ("[docs](https://example.com)", "docs"),
            ("![diagram](img.png)", "diagram"),
            ("> quoted line", "quoted line"),
            ("- item one\n* item two\n1. item three", "item one\nitem two\nitem three"),
            ("- [x] done task", "done task"),
            ("text <br/> more", "text  more"),
            ("<!-- hidden -->visible", "visible"),
        ],
    )
    def test_inline_and_block_syntax(self, source: str, expected: str) -> None:
        assert strip_markdown(source) == expected

    def test_snake_case_words_survive(self) -> None:
        assert strip_markdown("call my_function_name now") == "call my_function_name now"

    def test_fenced_code_kept_without_fences(self) -> None:
        source = "before\n```python\nprint('hi')\n```\nafter"
        assert strip_markdown(source) == "before\n\nprint('hi')\n\nafter"

    def test_rules_and_reference_definitions_dropped(self) -> None:
        source = "top\n\n---\n\n[ref]: https://example.com\nbottom"
        assert strip_markdown(source) == "top\n\nbottom"

    def test_table_reduced_to_cells(self) -> None:
        source = "| name | value |\n|------|-------|\n| a | 1 |"
        assert strip_markdown(source) == "name value\n\na 1"

    def test_blank_runs_collapsed(self) -> None:
        assert strip_markdown("one\n\n\n\n\ntwo") == "one\n\ntwo"

    def test_frontmatter_not_searchable(self) -> None:
        assert strip_markdown("---\nsecret: value\n---\nbody") == "body"
