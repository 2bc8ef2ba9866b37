"""Background parse worker: one request channel, one response channel.

A :class:`ParseProjectRequest` carries the whole ``{path: content}`` map.
The worker answers with :class:`ProgressMessage` updates and exactly one
terminal :class:`ResultMessage` holding serialised nodes (no ASTs).  Only
after the result is posted does it write the code-intelligence index, so
callers must wait on :attr:`ParseWorker.index_done` before querying it.

:meth:`ParseWorker.process` runs a request on the calling thread, which is
what tests use; :meth:`ParseWorker.start` runs the same loop on a daemon
thread.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .config import PROGRESS_PERCENT
from .graph_builder import ProjectGraphBuilder
from .lsif import build_reference_results, index_file
from .models import GraphNode, SourceFile
from .parser import SourceParser
from .storage import IndexStore

logger = logging.getLogger(__name__)


@dataclass
class ParseProjectRequest:
    files: Dict[str, str]
    aliases: Optional[Dict[str, str]] = None
    request_id: int = 0


@dataclass
class ProgressMessage:
    request_id: int
    current: int
    total: int
    current_file: str


@dataclass
class ResultMessage:
    request_id: int
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    parse_time: float = 0.0
    ok: bool = True
    error: Optional[str] = None
    failed_files: Dict[str, str] = field(default_factory=dict)


WorkerMessage = Union[ProgressMessage, ResultMessage]


class ParseWorker:
    """Single-threaded parse + index worker for one project."""

    def __init__(
        self,
        store: Optional[IndexStore] = None,
        parser: Optional[SourceParser] = None,
    ) -> None:
        self.store = store
        self.parser = parser
        self.requests: "queue.Queue[Optional[ParseProjectRequest]]" = queue.Queue(maxsize=1)
        self.responses: "queue.Queue[WorkerMessage]" = queue.Queue()
        self.index_done = threading.Event()
        self.sources: Dict[str, SourceFile] = {}
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Channel helpers
    # ------------------------------------------------------------------

    def submit(self, request: ParseProjectRequest, timeout: Optional[float] = None) -> None:
        """Queue *request*; blocks while another request is still waiting."""
        self.requests.put(request, timeout=timeout)

    def drain(self) -> List[WorkerMessage]:
        messages: List[WorkerMessage] = []
        while True:
            try:
                messages.append(self.responses.get_nowait())
            except queue.Empty:
                return messages

    def wait_result(self, timeout: Optional[float] = None) -> ResultMessage:
        """Block until the next terminal message; progress messages are dropped."""
        while True:
            message = self.responses.get(timeout=timeout)
            if isinstance(message, ResultMessage):
                return message

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, request: ParseProjectRequest) -> ResultMessage:
        """Parse the project, post the result, then write the index."""
        self.index_done.clear()
        started = time.perf_counter()

        def report(current: int, total: int, path: str) -> None:
            step = max(1, (total * PROGRESS_PERCENT) // 100)
            if current % step == 0 or current == total:
                self.responses.put(ProgressMessage(request.request_id, current, total, path))

        try:
            builder = ProjectGraphBuilder(
                request.files,
                aliases=request.aliases,
                parser=self.parser,
                on_file_done=report,
            )
            nodes = builder.build()
        except Exception as exc:
            logger.error("Project parse failed: %s", exc)
            result = ResultMessage(
                request_id=request.request_id,
                parse_time=time.perf_counter() - started,
                ok=False,
                error=str(exc),
            )
            self.responses.put(result)
            self.index_done.set()
            return result

        self.sources = dict(builder.source_files)
        result = ResultMessage(
            request_id=request.request_id,
            nodes=[node.to_dict() for node in nodes],
            parse_time=time.perf_counter() - started,
            failed_files=dict(builder.failed_files),
        )
        self.responses.put(result)
        logger.info(
            "Parsed %d files into %d nodes in %.2fs",
            len(builder.source_files), len(nodes), result.parse_time,
        )

        try:
            if self.store is not None:
                self._write_index(builder, nodes)
        finally:
            self.index_done.set()
        return result

    def _write_index(self, builder: ProjectGraphBuilder, nodes: List[GraphNode]) -> None:
        store = self.store
        results = [index_file(builder.source_files[path]) for path in sorted(builder.source_files)]
        ref_vertices, ref_edges = build_reference_results(results)
        changed = [r for r in results if store.needs_reindex(r.uri, r.content_hash)]
        stale = [
            doc.uri for doc in store.get_all_document_indexes()
            if doc.uri not in builder.source_files
        ]
        store.replace_documents(changed, ref_vertices, ref_edges, removed=stale, nodes=nodes)
        logger.debug("Index write: %d changed, %d removed documents", len(changed), len(stale))

    # ------------------------------------------------------------------
    # Thread
    # ------------------------------------------------------------------

    def _loop(self) -> None:
        while True:
            request = self.requests.get()
            if request is None:
                return
            try:
                self.process(request)
            except Exception:
                logger.exception("Index write for request %d failed", request.request_id)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._loop, name="tsgraph-parse-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread is None:
            return
        self.requests.put(None)
        self._thread.join(timeout)
        self._thread = None
