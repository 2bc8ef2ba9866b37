"""Graph-traversal queries over the code-intelligence index.

Every request follows the same path: find the Range containing the
position, step over ``next`` to its ResultSet, then follow the typed edge
to the result vertex.  Positions are 0-based; the ExportInfo/ImportInfo
lines returned by the getter-compatible helpers are 1-based.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .lsif import (
    DEFINITION,
    HOVER,
    ITEM,
    NEXT,
    REFERENCES,
    DefinitionResultVertex,
    HoverResultVertex,
    RangeVertex,
    ReferenceResultVertex,
    ResultSetVertex,
    Vertex,
    document_id,
)
from .models import ExportInfo, ImportInfo, Location, Position
from .storage import IndexStore

logger = logging.getLogger(__name__)


def follow_edge(store: IndexStore, vertex_id: str, label: str) -> Optional[Vertex]:
    """Target of the first *label* edge leaving *vertex_id*, or None."""
    edges = store.get_edges_by_out_v(vertex_id, label)
    if not edges:
        return None
    return store.get_vertex(edges[0].in_v)


def follow_edges(store: IndexStore, vertex_id: str, label: str) -> List[Vertex]:
    targets: List[Vertex] = []
    for edge in store.get_edges_by_out_v(vertex_id, label):
        vertex = store.get_vertex(edge.in_v)
        if vertex is not None:
            targets.append(vertex)
    return targets


def _span_size(vertex: RangeVertex) -> tuple:
    rng = vertex.range
    return (rng.end.line - rng.start.line, rng.end.character - rng.start.character)


def find_range(store: IndexStore, uri: str, position: Position) -> Optional[RangeVertex]:
    """Innermost Range of *uri* containing *position*."""
    candidates = [
        v for v in store.query_vertices("range", document_id=document_id(uri))
        if isinstance(v, RangeVertex) and v.range is not None and v.range.contains(position)
    ]
    if not candidates:
        return None
    return min(candidates, key=_span_size)


def _result_sets(store: IndexStore, range_vertex: RangeVertex) -> List[ResultSetVertex]:
    """ResultSets for a definition Range, or those an import Range refers to."""
    rs = follow_edge(store, range_vertex.id, NEXT)
    if isinstance(rs, ResultSetVertex):
        return [rs]
    found: List[ResultSetVertex] = []
    for item in store.get_edges_by_in_v(range_vertex.id, ITEM):
        for ref_edge in store.get_edges_by_in_v(item.out_v, REFERENCES):
            vertex = store.get_vertex(ref_edge.out_v)
            if isinstance(vertex, ResultSetVertex) and vertex not in found:
                found.append(vertex)
    return found


# ===================================================================
# LSP-shaped requests
# ===================================================================

def definition(store: IndexStore, uri: str, position: Position) -> Optional[Location]:
    range_vertex = find_range(store, uri, position)
    if range_vertex is None:
        return None
    for rs in _result_sets(store, range_vertex):
        result = follow_edge(store, rs.id, DEFINITION)
        if isinstance(result, DefinitionResultVertex):
            return result.location
    return None


def hover(store: IndexStore, uri: str, position: Position) -> Optional[Dict[str, str]]:
    range_vertex = find_range(store, uri, position)
    if range_vertex is None:
        return None
    for rs in _result_sets(store, range_vertex):
        result = follow_edge(store, rs.id, HOVER)
        if isinstance(result, HoverResultVertex):
            return {"contents": result.contents}
    return None


def references(store: IndexStore, uri: str, position: Position) -> List[Location]:
    range_vertex = find_range(store, uri, position)
    if range_vertex is None:
        return []
    locations: List[Location] = []
    for rs in _result_sets(store, range_vertex):
        for result in follow_edges(store, rs.id, REFERENCES):
            if not isinstance(result, ReferenceResultVertex):
                continue
            for item in result.items:
                if item not in locations:
                    locations.append(item)
    return locations


# ===================================================================
# Getter-compatible file metadata
# ===================================================================

def get_exports(store: IndexStore, uri: str) -> List[ExportInfo]:
    exports: List[ExportInfo] = []
    for vertex in store.query_vertices("range", document_id=document_id(uri)):
        if isinstance(vertex, RangeVertex) and vertex.tag is not None and vertex.tag.type == "definition":
            exports.append(ExportInfo(
                name=vertex.tag.text, line=vertex.range.start.line + 1, kind=vertex.tag.kind,
            ))
    exports.sort(key=lambda e: (e.line, e.name))
    return exports


def get_imports(store: IndexStore, uri: str) -> List[ImportInfo]:
    imports: List[ImportInfo] = []
    for vertex in store.query_vertices("range", document_id=document_id(uri)):
        if not (isinstance(vertex, RangeVertex) and vertex.tag is not None):
            continue
        tag = vertex.tag
        if tag.type != "reference":
            continue
        imports.append(ImportInfo(
            name=tag.local or tag.text,
            from_path=tag.source,
            line=vertex.range.start.line + 1,
            is_default=tag.style == "default",
            is_namespace=tag.style == "namespace",
        ))
    imports.sort(key=lambda i: (i.line, i.name))
    return imports


def get_symbol_usages(store: IndexStore, uri: str) -> Dict[str, List[str]]:
    """Exported symbol -> sorted paths of the files importing it."""
    usages: Dict[str, List[str]] = {}
    for rs in store.query_vertices("resultSet", document_id=document_id(uri)):
        if not isinstance(rs, ResultSetVertex):
            continue
        paths = set()
        for result in follow_edges(store, rs.id, REFERENCES):
            if isinstance(result, ReferenceResultVertex):
                paths.update(item.uri for item in result.items)
        if paths:
            usages[rs.symbol] = sorted(paths)
    return usages
