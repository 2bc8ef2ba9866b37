"""Tests for the background parse worker."""

from typing import Dict

from tsgraph import query
from tsgraph.models import Position
from tsgraph.worker import ParseProjectRequest, ParseWorker, ProgressMessage, ResultMessage


class ExplodingParser:
    """Parser stand-in that fails with an unexpected error."""

    tolerate_syntax_errors = False

    def parse(self, path: str, text: str):
        raise RuntimeError("parser crashed")


def _many_files(count: int) -> Dict[str, str]:
    return {f"src/f{i:02d}.ts": f"export const v{i} = {i};\n" for i in range(count)}


class TestProcess:
    """Tests for ParseWorker.process on the calling thread."""

    def test_progress_then_result(self, sample_files, sample_aliases, parser):
        """Test that progress messages precede exactly one result."""
        worker = ParseWorker(parser=parser)
        worker.process(ParseProjectRequest(sample_files, sample_aliases, request_id=7))
        messages = worker.drain()

        assert isinstance(messages[-1], ResultMessage)
        progress = messages[:-1]
        assert all(isinstance(m, ProgressMessage) for m in progress)
        assert [m.current for m in progress] == list(range(1, 8))
        assert all(m.total == 7 and m.request_id == 7 for m in progress)

        result = messages[-1]
        assert result.ok
        assert result.request_id == 7
        assert result.failed_files == {}
        ids = {n["id"] for n in result.nodes}
        assert "src/App.tsx::JSX_ROOT" in ids
        assert worker.index_done.is_set()

    def test_progress_is_throttled(self, parser):
        """Test that progress is reported every ten percent plus the last file."""
        files = _many_files(25)
        files["README.md"] = "# not parsed"
        worker = ParseWorker(parser=parser)
        worker.process(ParseProjectRequest(files))
        progress = [m for m in worker.drain() if isinstance(m, ProgressMessage)]
        assert [m.current for m in progress] == [2, 4, 6, 8, 10, 12, 14, 16, 18, 20, 22, 24, 25]
        assert progress[-1].total == 25

    def test_failed_files_reported(self, parser):
        """Test that syntax errors are listed but do not fail the request."""
        worker = ParseWorker(parser=parser)
        result = worker.process(ParseProjectRequest({"a.ts": "export const a = 1;\n", "b.ts": "const = ;\n"}))
        assert result.ok
        assert list(result.failed_files) == ["b.ts"]
        assert "a.ts" in {n["id"] for n in result.nodes}

    def test_unexpected_error(self, temp_store):
        """Test that a crash becomes an error result and releases waiters."""
        worker = ParseWorker(store=temp_store, parser=ExplodingParser())
        result = worker.process(ParseProjectRequest({"a.ts": "export const a = 1;\n"}, request_id=3))
        assert not result.ok
        assert result.error == "parser crashed"
        assert result.nodes == []
        assert worker.index_done.is_set()
        assert worker.wait_result(timeout=1) == result
        assert temp_store.get_all_document_indexes() == []

    def test_writes_index(self, temp_store, sample_files, sample_aliases, parser):
        """Test that the index and graph are stored after the result."""
        worker = ParseWorker(store=temp_store, parser=parser)
        result = worker.process(ParseProjectRequest(sample_files, sample_aliases))
        assert len(temp_store.get_all_document_indexes()) == 7
        assert len(temp_store.get_graph_nodes()) == len(result.nodes)
        location = query.definition(temp_store, "src/hooks/useUsers.ts", Position(0, 12))
        assert location.uri == "src/api.ts"
        assert set(worker.sources) == {d.uri for d in temp_store.get_all_document_indexes()}

    def test_removed_files_leave_the_index(self, temp_store, sample_files, sample_aliases, parser):
        """Test that files missing from a later request are forgotten."""
        worker = ParseWorker(store=temp_store, parser=parser)
        worker.process(ParseProjectRequest(sample_files, sample_aliases))

        remaining = {k: v for k, v in sample_files.items() if k != "src/hooks/useUsers.ts"}
        worker.process(ParseProjectRequest(remaining, sample_aliases))

        assert temp_store.get_document_index("src/hooks/useUsers.ts") is None
        locations = query.references(temp_store, "src/types.ts", Position(0, 17))
        assert sorted(loc.uri for loc in locations) == ["src/api.ts", "src/components/UserCard.tsx"]

    def test_reindex_is_one_transaction(self, temp_store, parser, monkeypatch):
        """Test that removals, changed documents and the graph are written together."""
        files = {
            "a.ts": "export const bar = 1;\n",
            "b.ts": "import { bar } from './a';\nexport const b = bar;\n",
            "c.ts": "import { bar } from './a';\nexport const c = bar;\n",
        }
        worker = ParseWorker(store=temp_store, parser=parser)
        worker.process(ParseProjectRequest(files))

        def referencing_files():
            return sorted(loc.uri for loc in query.references(temp_store, "a.ts", Position(0, 13)))

        writes = []
        seen_before_write = []
        original_write = temp_store._write

        def recording_write(operation, statements):
            writes.append(operation)
            seen_before_write.append(referencing_files())
            return original_write(operation, statements)

        monkeypatch.setattr(temp_store, "_write", recording_write)
        worker.process(ParseProjectRequest({k: v for k, v in files.items() if k != "c.ts"}))

        assert writes == ["replace_documents"]
        assert seen_before_write == [["b.ts", "c.ts"]]
        assert referencing_files() == ["b.ts"]
        assert temp_store.get_document_index("c.ts") is None
        assert all(node.file_path != "c.ts" for node in temp_store.get_graph_nodes())

    def test_unchanged_reindex_keeps_queries_working(self, temp_store, sample_files, sample_aliases, parser):
        """Test that a second identical request leaves the index intact."""
        worker = ParseWorker(store=temp_store, parser=parser)
        worker.process(ParseProjectRequest(sample_files, sample_aliases))
        worker.process(ParseProjectRequest(sample_files, sample_aliases))
        locations = query.references(temp_store, "src/api.ts", Position(4, 22))
        assert [loc.uri for loc in locations] == ["src/hooks/useUsers.ts"]


class TestThread:
    """Tests for the threaded request loop."""

    def test_submit_and_wait(self, temp_store, sample_files, sample_aliases, parser):
        """Test a full round trip through the worker thread."""
        worker = ParseWorker(store=temp_store, parser=parser)
        worker.start()
        try:
            worker.submit(ParseProjectRequest(sample_files, sample_aliases, request_id=1), timeout=5)
            result = worker.wait_result(timeout=60)
            assert result.ok
            assert result.request_id == 1
            assert worker.index_done.wait(timeout=60)
            assert len(temp_store.get_all_document_indexes()) == 7
        finally:
            worker.stop(timeout=5)
        assert worker._thread is None

    def test_loop_survives_failed_index_write(
        self, temp_store, sample_files, sample_aliases, parser, monkeypatch, caplog,
    ):
        """Test that a crashing index write is logged and later requests still run."""
        def broken_replace(*args, **kwargs):
            raise RuntimeError("disk gone")

        monkeypatch.setattr(temp_store, "replace_documents", broken_replace)
        worker = ParseWorker(store=temp_store, parser=parser)
        worker.start()
        try:
            for request_id in (1, 2):
                worker.submit(ParseProjectRequest(sample_files, sample_aliases, request_id=request_id), timeout=5)
                assert worker.wait_result(timeout=60).request_id == request_id
                assert worker.index_done.wait(timeout=60)
        finally:
            worker.stop(timeout=5)
        assert "Index write for request 1 failed" in caplog.text
        assert "Index write for request 2 failed" in caplog.text

    def test_stop_without_start(self):
        """Test that stopping an idle worker is a no-op."""
        ParseWorker().stop()
