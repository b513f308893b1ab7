"""Tests for quire.document.manager.FileDocumentManager."""

import asyncio

import pytest


class TestFileDocumentManager:
    def test_protocol(self, manager):
        from quire.document.manager import DocumentManager

        assert isinstance(manager, DocumentManager)

    def test_list_documents(self, manager, docs_root):
        (docs_root / "api").mkdir()
        (docs_root / "api" / "auth.md").write_text("# Auth\n", encoding="utf-8")
        (docs_root / "notes.txt").write_text("ignored", encoding="utf-8")
        assert manager.list_documents() == ["/api/auth.md", "/guide.md", "/other.md"]

    def test_get_document_metadata(self, manager):
        document = asyncio.run(manager.get_document("/guide.md"))
        assert document.path == "/guide.md"
        assert document.metadata.title == "Guide"
        assert document.metadata.namespace == ""
        assert document.metadata.tasks_linked == 2
        assert [h.slug for h in document.headings][:2] == ["guide", "setup"]

    def test_namespace_from_folder(self, manager, docs_root):
        (docs_root / "api" / "specs").mkdir(parents=True)
        (docs_root / "api" / "specs" / "auth.md").write_text("# Auth\n", encoding="utf-8")
        document = asyncio.run(manager.get_document("/api/specs/auth.md"))
        assert document.metadata.namespace == "api/specs"
        assert document.metadata.completion_percentage is None

    def test_cached_until_invalidated(self, manager):
        first = asyncio.run(manager.get_document("/guide.md"))
        assert asyncio.run(manager.get_document("/guide.md")) is first
        manager.invalidate_document("/guide.md")
        assert asyncio.run(manager.get_document("/guide.md")) is not first

    def test_missing(self, manager):
        assert asyncio.run(manager.get_document("/missing.md")) is None
        assert asyncio.run(manager.read_content("/missing.md")) is None
        assert asyncio.run(manager.get_section_content("/guide.md", "nope")) is None

    def test_section_content_includes_subtree(self, manager):
        content = asyncio.run(manager.get_section_content("/guide.md", "guide/setup"))
        assert "Install things." in content
        assert "### Database" in content
        assert "## Tasks" not in content

    def test_path_escape_rejected(self, manager):
        from quire.errors import AddressingError

        with pytest.raises(AddressingError) as exc_info:
            asyncio.run(manager.read_content("/../outside.md"))
        assert exc_info.value.code == "INVALID_ADDRESS"

    def test_write_creates_folders(self, manager, docs_root):
        asyncio.run(manager.write_content("/new/deep/doc.md", "# Doc\n"))
        assert (docs_root / "new" / "deep" / "doc.md").read_text(encoding="utf-8") == "# Doc\n"


class TestSearchDocuments:
    def test_exact_substring(self, manager):
        results = asyncio.run(manager.search_documents("create the db", search_in=["content"]))
        assert [r.document_path for r in results] == ["/guide.md"]
        assert results[0].matches[0].slug == "database"
        assert "Create the db" in results[0].matches[0].snippet

    def test_title_outweighs_content(self, manager):
        results = asyncio.run(manager.search_documents("intro"))
        assert results[0].document_path == "/other.md"
        assert results[0].score == 2.0

    def test_fuzzy_any_term(self, manager):
        strict = asyncio.run(manager.search_documents("hello proofread"))
        fuzzy = asyncio.run(manager.search_documents("hello proofread", fuzzy=True))
        assert strict == []
        assert {r.document_path for r in fuzzy} == {"/guide.md", "/other.md"}

    def test_ungrouped(self, manager):
        results = asyncio.run(
            manager.search_documents("the", search_in=["content"], group_by_document=False)
        )
        assert all(len(r.matches) == 1 for r in results)
        assert len(results) > len({r.document_path for r in results})

    def test_blank_query(self, manager):
        assert asyncio.run(manager.search_documents("   ")) == []


class TestUnreadableDocuments:
    def test_read_failure_is_structured(self, manager, docs_root):
        from quire.errors import OperationFailed

        (docs_root / "bad.md").write_bytes(b"# Bad\n\n\xff\xfe\n")
        with pytest.raises(OperationFailed) as exc_info:
            asyncio.run(manager.get_document("/bad.md"))
        assert exc_info.value.code == "OPERATION_FAILED"
        assert exc_info.value.context == {"path": "/bad.md"}
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)

    def test_search_skips_unreadable_document(self, manager, docs_root):
        (docs_root / "bad.md").write_bytes(b"# Bad\n\nhello \xff\n")
        results = asyncio.run(manager.search_documents("hello", search_in=["content"]))
        assert [r.document_path for r in results] == ["/other.md"]
