"""Tests for the Markdown sectionizer."""

from mindpalace_core.utils.markdown import decode_text, is_markdown_file, parse_heading, sectionize


class TestIsMarkdownFile:
    def test_md_and_markdown_extensions(self):
        assert is_markdown_file("docs/intro.md") is True
        assert is_markdown_file("notes.markdown") is True

    def test_case_insensitive(self):
        assert is_markdown_file("README.MD") is True

    def test_other_files_are_not_markdown(self):
        assert is_markdown_file("src/app.py") is False
        assert is_markdown_file("docs/md") is False


class TestParseHeading:
    def test_levels(self):
        assert parse_heading("# Title") == (1, "Title")
        assert parse_heading("###### Deep") == (6, "Deep")

    def test_seven_hashes_is_not_a_heading(self):
        assert parse_heading("####### Too deep") is None

    def test_requires_space_after_hashes(self):
        assert parse_heading("#hashtag") is None

    def test_title_is_trimmed(self):
        assert parse_heading("##   Spaced out   ") == (2, "Spaced out")

    def test_leading_whitespace_is_allowed(self):
        assert parse_heading("  ## Indented") == (2, "Indented")

    def test_bare_hashes_give_empty_title(self):
        assert parse_heading("##") == (2, "")

    def test_plain_text(self):
        assert parse_heading("just a line") is None


class TestSectionize:
    def test_two_nested_sections(self):
        sections = sectionize("# A\nbody1\n## B\nbody2")

        assert [(s.title, s.level, s.order_index) for s in sections] == [("A", 1, 0), ("B", 2, 1)]
        assert sections[0].body == "body1"
        assert sections[1].body == "body2"
        assert (sections[0].start_line, sections[0].end_line) == (0, 1)
        assert (sections[1].start_line, sections[1].end_line) == (2, 3)

    def test_no_headings_yields_nothing(self):
        assert sectionize("plain text\nwithout headings") == []
        assert sectionize("") == []

    def test_preamble_is_not_a_section(self):
        sections = sectionize("intro line\n\n# First\ncontent")
        assert len(sections) == 1
        assert sections[0].title == "First"
        assert sections[0].start_line == 2

    def test_body_is_trimmed_of_blank_lines(self):
        sections = sectionize("# A\n\n\nline one\n\nline two\n\n\n# B\n")
        assert sections[0].body == "line one\n\nline two"
        assert sections[1].body == ""

    def test_heading_only_section_has_empty_body(self):
        sections = sectionize("# A\n# B")
        assert [s.body for s in sections] == ["", ""]
        assert sections[0].end_line == 0

    def test_sections_cover_the_rest_of_the_document(self):
        text = "pre\n# A\na1\na2\n## B\nb1\n### C\n# D\nd1"
        sections = sectionize(text)
        lines = text.splitlines()

        assert sections[0].start_line == 1
        assert sections[-1].end_line == len(lines) - 1
        for current, following in zip(sections, sections[1:]):
            assert current.end_line == following.start_line - 1

    def test_order_index_is_contiguous(self):
        sections = sectionize("# A\n## B\n### C\n## D\n# E")
        assert [s.order_index for s in sections] == list(range(5))

    def test_fenced_code_comment_lines_count_as_headings(self):
        sections = sectionize("# Shell\n```\n# not really a heading\n```")
        assert [s.title for s in sections] == ["Shell", "not really a heading"]


class TestDecodeText:
    def test_utf8_is_decoded_as_is(self):
        assert decode_text("# Café".encode("utf-8"), "notes.md") == "# Café"

    def test_invalid_bytes_are_replaced_and_logged(self, caplog):
        with caplog.at_level("WARNING"):
            text = decode_text(b"# Caf\xe9\nbody", "latin.md")
        assert text == "# Caf\ufffd\nbody"
        assert "latin.md" in caplog.text
