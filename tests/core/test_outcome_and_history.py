"""Tests for quire.outcome and quire.sections.history."""

import asyncio


class TestOutcome:
    def test_capture_success_and_failure(self):
        from quire.outcome import capture

        async def good():
            return 7

        async def bad():
            raise ValueError("nope")

        ok = asyncio.run(capture("good", good))
        failed = asyncio.run(capture("bad", bad))
        assert ok.succeeded and ok.value == 7 and ok.label == "good"
        assert not failed.succeeded
        assert isinstance(failed.error, ValueError)

    def test_partition(self):
        from quire.outcome import Outcome, partition

        values, failures = partition(
            [Outcome.ok(1), Outcome.failed(KeyError("k"), "second"), Outcome.ok(None)]
        )
        assert values == [1, None]
        assert [f.label for f in failures] == ["second"]


class TestMutationLog:
    def _entry(self, operation, document="/a.md"):
        from quire.sections.history import MutationEntry

        return MutationEntry(operation, document, "s", "before", "after")

    def test_recent_newest_first(self):
        from quire.sections.history import MutationLog

        log = MutationLog()
        for op in ("replace", "append", "remove"):
            log.append(self._entry(op))
        assert len(log) == 3
        assert [e.operation for e in log.recent(2)] == ["remove", "append"]
        assert log.recent(0) == []
        assert [e.operation for e in log] == ["replace", "append", "remove"]

    def test_lookup_and_filter(self):
        from quire.sections.history import MutationLog

        log = MutationLog()
        first = self._entry("replace")
        log.append(first)
        log.append(self._entry("append", "/b.md"))
        assert log.find_by_id(first.id) is first
        assert log.find_by_id("missing") is None
        assert [e.document for e in log.for_document("/b.md")] == ["/b.md"]

    def test_oldest_entries_evicted(self):
        from quire.sections.history import DEFAULT_MAX_ENTRIES, MutationLog

        assert MutationLog().max_entries == DEFAULT_MAX_ENTRIES
        log = MutationLog(max_entries=2)
        first = self._entry("replace")
        log.append(first)
        log.append(self._entry("append"))
        log.append(self._entry("remove"))
        assert len(log) == 2
        assert log.find_by_id(first.id) is None
        assert [e.operation for e in log] == ["append", "remove"]

    def test_to_dict(self):
        entry = self._entry("replace")
        data = entry.to_dict()
        assert "before_content" not in data
        assert data["operation"] == "replace"
        full = entry.to_dict(include_content=True)
        assert (full["before_content"], full["after_content"]) == ("before", "after")
        assert str(entry).startswith(f"[{entry.id[:8]}] replace")
