"""Tests for quire.document.headings: parsing and section geometry."""

import pytest


class TestTitleToSlug:
    @pytest.mark.parametrize(
        "title,slug",
        [
            ("Overview", "overview"),
            ("Set Up: the DB!", "set-up-the-db"),
            ("snake_case and-kebab", "snake_case-and-kebab"),
            ("  Padded  ", "padded"),
        ],
    )
    def test_slugs(self, title, slug):
        from quire.document.headings import title_to_slug

        assert title_to_slug(title) == slug


class TestParseHeadings:
    """parse_headings builds the ordered heading index."""

    def test_depth_and_order(self, guide_text):
        from quire.document.headings import parse_headings

        headings = parse_headings(guide_text)
        assert [(h.slug, h.depth) for h in headings] == [
            ("guide", 1),
            ("setup", 2),
            ("database", 3),
            ("tasks", 2),
            ("write-docs", 3),
            ("review", 3),
            ("usage", 2),
        ]
        assert [h.index for h in headings] == list(range(7))

    def test_duplicate_slugs_get_suffixes(self):
        from quire.document.headings import parse_headings

        content = "# Doc\n\n## Example\n\n## Example\n\n### Example\n"
        assert [h.slug for h in parse_headings(content)] == [
            "doc",
            "example",
            "example-1",
            "example-2",
        ]

    def test_fenced_code_ignored(self):
        from quire.document.headings import parse_headings

        content = "# Doc\n\n```bash\n# not a heading\n```\n\n## Real\n"
        assert [h.slug for h in parse_headings(content)] == ["doc", "real"]

    def test_closing_hashes_and_empty_titles(self):
        from quire.document.headings import parse_headings

        content = "# Doc #\n\n##\n\n## Next ##\n\n#NoSpace\n"
        headings = parse_headings(content)
        assert [h.title for h in headings] == ["Doc", "Next"]

    def test_offsets_point_at_heading_lines(self, guide_text):
        from quire.document.headings import parse_headings

        for heading in parse_headings(guide_text):
            line = guide_text[heading.start : heading.line_end]
            assert line.startswith("#" * heading.depth + " ")
            assert line.endswith("\n")


class TestGeometry:
    """Structural queries over the heading index."""

    def test_section_end_includes_subtree(self, guide_text):
        from quire.document.headings import parse_headings, section_end_index

        headings = parse_headings(guide_text)
        assert section_end_index(headings, 1) == 3  # setup ends at tasks
        assert section_end_index(headings, 6) == 7  # usage runs to the end

    def test_body_and_own_text(self, guide_text):
        from quire.document.headings import body_span, own_text, parse_headings

        headings = parse_headings(guide_text)
        start, end = body_span(guide_text, headings, 1)
        assert "### Database" in guide_text[start:end]
        assert "### Database" not in own_text(guide_text, headings, 1)
        assert own_text(guide_text, headings, 1).strip() == "Install things."

    def test_parents_and_hierarchical_slug(self, guide_text):
        from quire.document.headings import (
            ancestors_of,
            hierarchical_slug,
            parent_of,
            parse_headings,
        )

        headings = parse_headings(guide_text)
        assert parent_of(headings, 2).slug == "setup"
        assert parent_of(headings, 0) is None
        assert [h.slug for h in ancestors_of(headings, 2)] == ["guide", "setup"]
        assert hierarchical_slug(headings, 2) == "guide/setup/database"

    def test_siblings_and_children(self, guide_text):
        from quire.document.headings import children_of, parse_headings, siblings_of

        headings = parse_headings(guide_text)
        assert [h.slug for h in siblings_of(headings, 1)] == ["setup", "tasks", "usage"]
        assert [h.slug for h in children_of(headings, 3)] == ["write-docs", "review"]
        assert children_of(headings, 6) == []
