"""Tests for quire.sections.engine: pure section operations."""

import pytest


def _slugs(content):
    from quire.document.headings import parse_headings

    return [(h.slug, h.depth) for h in parse_headings(content)]


class TestBodyOperations:
    """replace, append and prepend rewrite a section body."""

    def test_replace_last_section(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(guide_text, "usage", "replace", "Run it twice.")
        assert new.endswith("## Usage\n\nRun it twice.\n")
        assert result.action == "edited"
        assert result.section == "usage"
        assert result.depth == 2

    def test_replace_drops_subtree(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, _ = apply_section_operation(guide_text, "setup", "replace", "Just this.")
        assert "### Database" not in new
        assert "## Setup\n\nJust this.\n\n## Tasks" in new

    def test_append_and_prepend(self, guide_text):
        from quire.sections.engine import apply_section_operation

        appended, _ = apply_section_operation(guide_text, "database", "append", "More.")
        assert "### Database\n\nCreate the db.\n\nMore.\n\n## Tasks" in appended

        prepended, _ = apply_section_operation(guide_text, "database", "prepend", "First.")
        assert "### Database\n\nFirst.\n\nCreate the db.\n\n## Tasks" in prepended

    def test_append_to_empty_body(self):
        from quire.sections.engine import apply_section_operation

        new, _ = apply_section_operation("# Doc\n\n## Empty\n", "empty", "append", "Now full.")
        assert new == "# Doc\n\n## Empty\n\nNow full.\n"

    def test_deeper_headings_allowed_in_body(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, _ = apply_section_operation(guide_text, "usage", "replace", "Intro.\n\n### Flags\n\nx")
        assert ("flags", 3) in _slugs(new)

    def test_heading_at_section_depth_rejected(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "usage", "replace", "## Sneaky\n\nbody")
        assert exc_info.value.code == "INVALID_SECTION_CONTENT"

    @pytest.mark.parametrize("body", [None, "", "   \n"])
    def test_content_required(self, guide_text, body):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "usage", "append", body)
        assert exc_info.value.code == "MISSING_CONTENT"

    def test_body_length_limit(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import SectionLimits, apply_section_operation

        limits = SectionLimits(max_section_body_length=10)
        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "usage", "replace", "x" * 11, limits=limits)
        assert exc_info.value.code == "INVALID_SECTION_CONTENT"


class TestCreateOperations:
    """insert_before, insert_after and append_child add headings."""

    def test_insert_after_skips_subtree(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(
            guide_text, "setup", "insert_after", "Ship it.", title="Deploy"
        )
        slugs = [s for s, _ in _slugs(new)]
        assert slugs.index("deploy") == slugs.index("database") + 1
        assert slugs.index("deploy") + 1 == slugs.index("tasks")
        assert (result.action, result.section, result.depth) == ("created", "deploy", 2)

    def test_insert_before(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(
            guide_text, "usage", "insert_before", "Check first.", title="Preflight"
        )
        slugs = [s for s, _ in _slugs(new)]
        assert slugs[-2:] == ["preflight", "usage"]
        assert result.depth == 2

    def test_append_child_is_last_child(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(
            guide_text, "tasks", "append_child", "- [ ] ship", title="Release"
        )
        slugs = _slugs(new)
        assert slugs[slugs.index(("review", 3)) + 1] == ("release", 3)
        assert slugs[slugs.index(("release", 3)) + 1] == ("usage", 2)
        assert result.depth == 3

    def test_append_child_then_remove_restores(self, guide_text):
        from quire.sections.engine import apply_section_operation

        added, _ = apply_section_operation(
            guide_text, "setup", "append_child", "Cache notes.", title="Cache"
        )
        assert ("cache", 3) in _slugs(added)
        restored, result = apply_section_operation(added, "cache", "remove")
        assert _slugs(restored) == _slugs(guide_text)
        assert restored == guide_text
        assert result.removed_content.startswith("### Cache")

    def test_duplicate_sibling_rejected(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "setup", "insert_after", "x", title="Usage")
        assert exc_info.value.code == "DUPLICATE_HEADING"
        assert exc_info.value.context["existing"] == "usage"

    def test_duplicate_child_rejected(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "tasks", "append_child", "x", title="Review")
        assert exc_info.value.code == "DUPLICATE_HEADING"

    def test_same_title_later_in_document_gets_suffix(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(
            guide_text, "usage", "append_child", "x", title="Setup"
        )
        assert result.section == "setup-1"
        assert result.depth == 3
        assert ("setup", 2) in _slugs(new)

    def test_create_never_renames_existing_sections(self):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        content = "# Doc\n\n## Alpha\n\n## Beta\n\n### Setup\n\nKeep me.\n"
        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(content, "alpha", "append_child", "x", title="Setup")
        assert exc_info.value.code == "DUPLICATE_HEADING"
        assert exc_info.value.context["existing"] == "setup"
        assert exc_info.value.context["renamed_to"] == "setup-1"

    def test_nested_content_cannot_rename_existing_sections(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(
                guide_text, "setup", "insert_after", "### Review\n\nEarly.", title="Prep"
            )
        assert exc_info.value.code == "DUPLICATE_HEADING"
        assert exc_info.value.context["existing"] == "review"

    @pytest.mark.parametrize("title", [None, "", "two\nlines", "!!!", "t" * 201])
    def test_invalid_title(self, guide_text, title):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "usage", "insert_after", "x", title=title)
        assert exc_info.value.code == "INVALID_TITLE"

    def test_child_beyond_depth_six(self):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        content = "# A\n\n## B\n\n### C\n\n#### D\n\n##### E\n\n###### F\n\nbody\n"
        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(content, "f", "append_child", "x", title="G")
        assert exc_info.value.code == "INVALID_HEADING_DEPTH"

    def test_heading_limit(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import SectionLimits, apply_section_operation

        limits = SectionLimits(max_headings_per_document=7)
        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(
                guide_text, "usage", "insert_after", "x", title="More", limits=limits
            )
        assert exc_info.value.code == "INVALID_OPERATION"


class TestRemove:
    def test_remove_with_subtree(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, result = apply_section_operation(guide_text, "setup", "remove")
        assert [s for s, _ in _slugs(new)] == ["guide", "tasks", "write-docs", "review", "usage"]
        assert result.action == "removed"
        assert result.removed_content.startswith("## Setup")
        assert "### Database" in result.removed_content
        assert "Intro text.\n\n## Tasks" in new

    def test_remove_last_section(self, guide_text):
        from quire.sections.engine import apply_section_operation

        new, _ = apply_section_operation(guide_text, "usage", "remove")
        assert new.endswith("- [x] proofread\n")

    def test_title_cannot_be_removed(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "guide", "remove")
        assert exc_info.value.code == "INVALID_OPERATION"


class TestValidation:
    def test_unknown_operation(self, guide_text):
        from quire.errors import AddressingError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(AddressingError) as exc_info:
            apply_section_operation(guide_text, "usage", "upsert", "x")
        assert exc_info.value.code == "INVALID_OPERATION"
        assert "remove" in exc_info.value.context["valid_operations"]

    def test_missing_section(self, guide_text):
        from quire.errors import SectionNotFoundError
        from quire.sections.engine import apply_section_operation

        with pytest.raises(SectionNotFoundError) as exc_info:
            apply_section_operation(guide_text, "nope", "replace", "x", document_path="/g.md")
        assert exc_info.value.context["document_path"] == "/g.md"

    def test_limits_from_config(self):
        from quire.sections.engine import SectionLimits

        limits = SectionLimits.from_config({"sections": {"max_heading_title_length": 50}})
        assert limits.max_heading_title_length == 50
        assert limits.max_section_body_length == 100_000


class TestMoveSupport:
    def test_extract_section(self, guide_text):
        from quire.sections.engine import extract_section

        snapshot = extract_section(guide_text, "setup")
        assert (snapshot.slug, snapshot.title, snapshot.depth) == ("setup", "Setup", 2)
        assert snapshot.body == "Install things.\n\n### Database\n\nCreate the db."

    def test_rebase_headings(self):
        from quire.sections.engine import rebase_headings

        text = "### A\ntext\n```\n### code\n```\n#### B\n"
        assert rebase_headings(text, -1) == "## A\ntext\n```\n### code\n```\n### B\n"
        assert rebase_headings(text, 0) == text

    def test_rebase_out_of_range(self):
        from quire.errors import AddressingError
        from quire.sections.engine import rebase_headings

        with pytest.raises(AddressingError) as exc_info:
            rebase_headings("#### Deep\n", 3)
        assert exc_info.value.code == "INVALID_HEADING_DEPTH"
