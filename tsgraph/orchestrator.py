"""Project-level entry point tying the worker, the index and the analyzers together."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from . import query
from .config import SKIP_DIRS, SUPPORTED_EXTENSIONS
from .config_manager import load_aliases
from .dead_code import DeadCodeResults, analyze_dead_code
from .errors import ParseError
from .metadata import MetadataGetters
from .models import GraphNode, Location, Position, SourceFile
from .outline import Definition, OutlineItem, extract_definitions, extract_outline
from .parser import SourceParser
from .resolver import load_tsconfig_aliases
from .storage import IndexStore
from .worker import ParseProjectRequest, ParseWorker, ResultMessage

logger = logging.getLogger(__name__)


def collect_files(project_root: Path) -> Dict[str, str]:
    """Read every supported source file under *project_root*.

    Keys are POSIX paths relative to the root; vendored and build
    directories are skipped.
    """
    files: Dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(project_root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS and not d.startswith("."))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.suffix not in SUPPORTED_EXTENSIONS or filename.endswith(".d.ts"):
                continue
            rel = path.relative_to(project_root).as_posix()
            try:
                files[rel] = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Skipping unreadable file %s: %s", rel, exc)
    return files


def project_aliases(project_root: Path, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Configured aliases, overridden by tsconfig.json paths, then by *extra*."""
    aliases = load_aliases()
    tsconfig = project_root / "tsconfig.json"
    if tsconfig.exists():
        aliases.update(load_tsconfig_aliases(tsconfig.read_text(encoding="utf-8")))
    if extra:
        aliases.update(extra)
    return aliases


class GraphOrchestrator:
    """Coordinates parsing, indexing and queries for one project store."""

    def __init__(self, store: IndexStore, parser: Optional[SourceParser] = None):
        self.store = store
        self.parser = parser
        self.worker = ParseWorker(store=store, parser=parser)
        self._sources: Dict[str, SourceFile] = {}
        self._request_id = 0

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_files(self, files: Dict[str, str], aliases: Optional[Dict[str, str]] = None) -> ResultMessage:
        self._request_id += 1
        result = self.worker.process(ParseProjectRequest(files, aliases, self._request_id))
        self.worker.index_done.wait()
        if result.ok:
            self._sources = dict(self.worker.sources)
        return result

    def index(self, project_root: Path, aliases: Optional[Dict[str, str]] = None) -> ResultMessage:
        files = collect_files(project_root)
        result = self.index_files(files, project_aliases(project_root, aliases))
        if result.ok:
            self.store.set_metadata({
                **self.store.get_metadata(),
                "source_path": str(project_root),
                "file_count": len(files),
                "node_count": len(result.nodes),
            })
        return result

    # ------------------------------------------------------------------
    # Live sources
    # ------------------------------------------------------------------

    def sources(self) -> Dict[str, SourceFile]:
        """Parsed files of the project, re-read from disk when not in memory."""
        if self._sources:
            return self._sources
        source_path = self.store.get_metadata().get("source_path")
        if not source_path or not Path(source_path).is_dir():
            return {}
        parser = self.parser or SourceParser()
        for path, text in collect_files(Path(source_path)).items():
            try:
                self._sources[path] = parser.parse(path, text)
            except ParseError as exc:
                logger.warning("Skipping %s: %s", path, exc)
        return self._sources

    def getters(self) -> MetadataGetters:
        return MetadataGetters(sources=self.sources(), store=self.store)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def definition(self, uri: str, line: int, character: int) -> Optional[Location]:
        return query.definition(self.store, uri, Position(line, character))

    def hover(self, uri: str, line: int, character: int) -> Optional[Dict[str, str]]:
        return query.hover(self.store, uri, Position(line, character))

    def references(self, uri: str, line: int, character: int) -> List[Location]:
        return query.references(self.store, uri, Position(line, character))

    def dead_code(self) -> DeadCodeResults:
        return analyze_dead_code(self.store.get_graph_nodes(), self.getters())

    def definitions(self, path: str) -> List[Definition]:
        source = self.sources().get(path)
        return extract_definitions(source) if source is not None else []

    def outline(self, path: str) -> List[OutlineItem]:
        source = self.sources().get(path)
        return extract_outline(source) if source is not None else []

    def deps(self, node_id: str, depth: int = 1) -> str:
        """ASCII tree of the dependencies reachable from *node_id*."""
        node = self.store.get_graph_node(node_id)
        if node is None:
            return f"Node '{node_id}' not found in current project."

        lines = [f"{node.label} ({node.kind})"]
        cache: Dict[str, Optional[GraphNode]] = {node.id: node}
        frontier = [(node, 0)]
        seen = {node.id}
        while frontier:
            current, level = frontier.pop(0)
            if level >= depth:
                continue
            for dep_id in current.dependencies:
                if dep_id not in cache:
                    cache[dep_id] = self.store.get_graph_node(dep_id)
                dep = cache[dep_id]
                label = f"{dep.label} ({dep.kind})" if dep is not None else dep_id
                lines.append(f"{'  ' * (level + 1)}|-> {label}")
                if dep is not None and dep_id not in seen:
                    seen.add(dep_id)
                    frontier.append((dep, level + 1))
        return "\n".join(lines)
