"""Tests for the quire MCP server tools.

Tool bodies live in module-level helpers so they can be exercised directly
without a transport.
"""

import asyncio

import pytest

# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def server_config(docs_root):
    from quire.config import DEFAULT_CONFIG, merge_configs

    return merge_configs(DEFAULT_CONFIG, {"documents": {"root": str(docs_root)}})


class TestCreateServer:
    def test_tools_registered(self, docs_root, server_config):
        pytest.importorskip("mcp")
        from quire.mcp.server import create_server

        server = create_server(working_dir=docs_root, config=server_config)
        tools = {tool.name for tool in asyncio.run(server.list_tools())}
        assert tools == {
            "list_headings",
            "view_section",
            "section",
            "move",
            "resolve_task",
            "related_documents",
            "mutation_log",
        }

    def test_server_name_from_config(self, docs_root, server_config):
        pytest.importorskip("mcp")
        from quire.mcp.server import create_server

        server_config["mcp"]["server_name"] = "docs"
        assert create_server(working_dir=docs_root, config=server_config).name == "docs"


class TestReadTools:
    def test_list_headings(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _list_headings

        result = asyncio.run(_list_headings(manager, "guide.md"))
        assert result["success"] is True
        assert result["title"] == "Guide"
        database = next(h for h in result["headings"] if h["slug"] == "database")
        assert database["path"] == "guide/setup/database"
        assert database["depth"] == 3

    def test_list_headings_missing(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _list_headings

        result = asyncio.run(_list_headings(manager, "/missing.md"))
        assert result == {
            "success": False,
            "error": "Document not found: /missing.md",
            "code": "DOCUMENT_NOT_FOUND",
            "context": {"path": "/missing.md"},
        }

    def test_view_section(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _view_section

        result = asyncio.run(_view_section(manager, "/guide.md", "setup/database"))
        assert result["success"] is True
        assert result["content"] == "Create the db."
        assert result["path"] == "guide/setup/database"

    def test_view_section_wrong_hierarchy(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _view_section

        result = asyncio.run(_view_section(manager, "/guide.md", "usage/database"))
        assert result["success"] is False
        assert result["code"] == "SECTION_NOT_FOUND"
        assert "setup" in result["context"]["available_sections"]

    def test_resolve_task(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _resolve_task

        ok = asyncio.run(_resolve_task(manager, "/guide.md", "review"))
        assert ok["success"] is True
        assert ok["tasks_section"] == "tasks"
        assert ok["address"] == "/guide.md#review"

        bad = asyncio.run(_resolve_task(manager, "/guide.md", "usage"))
        assert bad["code"] == "NOT_A_TASK"

    def test_related_documents(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _related_documents

        result = asyncio.run(_related_documents(manager, "/guide.md", 2, {}))
        assert result["success"] is True
        assert "dependency_chain" in result

        missing = asyncio.run(_related_documents(manager, "/missing.md", 2, {}))
        assert missing["success"] is False


class TestMutationTools:
    def test_section_batch(self, manager, docs_root):
        pytest.importorskip("mcp")
        from quire.mcp.server import _section
        from quire.sections.engine import DEFAULT_LIMITS
        from quire.sections.history import MutationLog

        log = MutationLog()
        result = asyncio.run(
            _section(
                manager,
                "/guide.md",
                [
                    {"section": "usage", "operation": "append", "content": "Also this."},
                    {"section": "missing", "content": "x"},
                ],
                log,
                100,
                DEFAULT_LIMITS,
            )
        )
        assert result["success"] is True
        assert result["sections_modified"] == 1
        assert result["total_operations"] == 2
        assert result["results"][1]["code"] == "SECTION_NOT_FOUND"
        assert len(log) == 1

    def test_section_batch_too_large(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _section
        from quire.sections.engine import DEFAULT_LIMITS
        from quire.sections.history import MutationLog

        operations = [{"section": "usage", "content": "x"}] * 3
        result = asyncio.run(
            _section(manager, "/guide.md", operations, MutationLog(), 2, DEFAULT_LIMITS)
        )
        assert result["code"] == "BATCH_TOO_LARGE"

    def test_move(self, manager, docs_root):
        pytest.importorskip("mcp")
        from quire.mcp.server import _move
        from quire.sections.engine import DEFAULT_LIMITS
        from quire.sections.history import MutationLog

        log = MutationLog()
        result = asyncio.run(
            _move(manager, "/guide.md#usage", "/other.md", "intro", "after", log, DEFAULT_LIMITS)
        )
        assert result["success"] is True
        assert result["action"] == "moved"
        assert result["to"]["document"] == "/other.md"
        assert [e.operation for e in log] == ["insert_after", "remove"]

    def test_move_bad_position(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _move
        from quire.sections.engine import DEFAULT_LIMITS
        from quire.sections.history import MutationLog

        log = MutationLog()
        result = asyncio.run(
            _move(manager, "/guide.md#usage", "/other.md", "intro", "inside", log, DEFAULT_LIMITS)
        )
        assert result["code"] == "INVALID_POSITION"

    def test_move_unreadable_source(self, manager, docs_root):
        pytest.importorskip("mcp")
        from quire.mcp.server import _move
        from quire.sections.engine import DEFAULT_LIMITS
        from quire.sections.history import MutationLog

        (docs_root / "bad.md").write_bytes(b"# Bad\n\n## Sec\n\n\xff\xfe\n")
        log = MutationLog()
        result = asyncio.run(
            _move(manager, "/bad.md#sec", "/other.md", "intro", "after", log, DEFAULT_LIMITS)
        )
        assert result["success"] is False
        assert result["code"] == "OPERATION_FAILED"
        assert result["context"] == {"path": "/bad.md"}


class TestMcpAvailability:
    def test_flag_matches_import(self):
        from quire import mcp as quire_mcp

        try:
            import mcp  # noqa: F401

            expected = True
        except ImportError:
            expected = False
        assert quire_mcp.MCP_AVAILABLE is expected


class TestMutationLogTool:
    def _log(self, manager):
        from quire.sections.history import MutationLog
        from quire.sections.operations import edit_section

        log = MutationLog()
        asyncio.run(edit_section(manager, "/guide.md", "usage", "First.", log=log))
        asyncio.run(edit_section(manager, "/other.md", "intro", "Second.", log=log))
        return log

    def test_recent(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _mutation_log

        result = _mutation_log(self._log(manager), 20)
        assert result["count"] == 2
        assert [e["document"] for e in result["entries"]] == ["/other.md", "/guide.md"]
        assert "before_content" not in result["entries"][0]

    def test_filter_by_document(self, manager):
        pytest.importorskip("mcp")
        from quire.mcp.server import _mutation_log

        result = _mutation_log(self._log(manager), 20, document="guide.md")
        assert [e["section"] for e in result["entries"]] == ["usage"]

    def test_fetch_entry_with_content(self, manager, guide_text):
        pytest.importorskip("mcp")
        from quire.mcp.server import _mutation_log

        log = self._log(manager)
        [entry] = log.for_document("/guide.md")
        result = _mutation_log(log, 20, mutation_id=entry.id)
        assert result["success"] is True
        assert result["entry"]["before_content"] == guide_text
        assert result["entry"]["after_content"].endswith("First.\n")

        missing = _mutation_log(log, 20, mutation_id="nope")
        assert missing["code"] == "MUTATION_NOT_FOUND"

    def test_size_from_config(self, docs_root, server_config):
        pytest.importorskip("mcp")
        from unittest.mock import patch

        from quire.mcp.server import create_server

        server_config["mcp"]["mutation_log_size"] = 5
        with patch("quire.mcp.server.MutationLog") as log_cls:
            create_server(working_dir=docs_root, config=server_config)
        log_cls.assert_called_once_with(5)
