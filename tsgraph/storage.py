"""Persistence layer for project graphs and the code-intelligence index.

Everything lives in one SQLite database per project:

- ``nodes``: the serialised dependency graph of the last parse.
- ``vertices`` / ``edges``: the LSIF-style index, with secondary indices on
  vertex type, owning document, symbol name and edge ``(out_v, label)``.
- ``documents``: one row per indexed file with the content hash it was
  indexed at.

Queries never raise on I/O failure; they log and return an empty result so
the getter layer can fall back to the next tier.  Writes log and report
failure through their return value.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import MEMORY_DIR, STATE_FILE, ensure_base_dirs
from .errors import IndexStoreError
from .lsif import Edge, LsifIndexResult, Vertex, vertex_from_row
from .models import GraphNode

logger = logging.getLogger(__name__)


# ===================================================================
# ProjectManager
# ===================================================================

class ProjectManager:
    """Manage project memory directories and active project state."""

    def __init__(self) -> None:
        ensure_base_dirs()

    def list_projects(self) -> List[str]:
        if not MEMORY_DIR.exists():
            return []
        return sorted([p.name for p in MEMORY_DIR.iterdir() if p.is_dir()])

    def project_dir(self, project_name: str) -> Path:
        return MEMORY_DIR / project_name

    def create_or_get_project(self, project_name: str) -> Path:
        path = self.project_dir(project_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def set_current_project(self, project_name: Optional[str]) -> None:
        ensure_base_dirs()
        STATE_FILE.write_text(
            json.dumps({"current_project": project_name}, indent=2),
            encoding="utf-8",
        )

    def get_current_project(self) -> Optional[str]:
        if not STATE_FILE.exists():
            return None
        try:
            payload = json.loads(STATE_FILE.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        return payload.get("current_project")

    def unload_project(self) -> None:
        self.set_current_project(None)

    def delete_project(self, project_name: str) -> bool:
        path = self.project_dir(project_name)
        if not path.exists():
            return False
        for child in sorted(path.glob("**/*"), reverse=True):
            if child.is_file():
                child.unlink()
            elif child.is_dir():
                child.rmdir()
        path.rmdir()
        if self.get_current_project() == project_name:
            self.unload_project()
        return True


@dataclass
class DocumentIndex:
    uri: str
    content_hash: str
    vertex_id: str
    updated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "contentHash": self.content_hash,
            "vertexId": self.vertex_id,
            "updatedAt": self.updated_at,
        }


# ===================================================================
# IndexStore
# ===================================================================

class IndexStore:
    """SQLite-backed graph and code-intelligence store for one project.

    The connection is shared between the caller and the parse worker's
    thread; every statement runs under ``self._lock``.
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir
        self.db_path = project_dir / "graph.db"
        self.meta_path = project_dir / "project.json"
        project_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise IndexStoreError(f"Cannot open index at {self.db_path}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS nodes (
                    node_id   TEXT PRIMARY KEY,
                    kind      TEXT NOT NULL,
                    label     TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    position  INTEGER NOT NULL,
                    data      TEXT NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS vertices (
                    id          TEXT PRIMARY KEY,
                    vertex_type TEXT NOT NULL,
                    document_id TEXT,
                    symbol_name TEXT,
                    data        TEXT NOT NULL,
                    created_at  REAL NOT NULL,
                    updated_at  REAL NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS edges (
                    id         TEXT PRIMARY KEY,
                    label      TEXT NOT NULL,
                    out_v      TEXT NOT NULL,
                    in_v       TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    uri          TEXT PRIMARY KEY,
                    content_hash TEXT NOT NULL,
                    vertex_id    TEXT NOT NULL,
                    updated_at   REAL NOT NULL
                )
            """)
            cur.execute("CREATE INDEX IF NOT EXISTS idx_nodes_file ON nodes(file_path)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_vertices_type ON vertices(vertex_type)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_vertices_document ON vertices(document_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_vertices_symbol ON vertices(symbol_name)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_edges_out ON edges(out_v, label)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_edges_in ON edges(in_v)")
            self.conn.commit()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def set_metadata(self, payload: Dict[str, Any]) -> None:
        self.meta_path.write_text(
            json.dumps(payload, indent=2), encoding="utf-8",
        )

    def get_metadata(self) -> Dict[str, Any]:
        if not self.meta_path.exists():
            return {}
        try:
            return json.loads(self.meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        try:
            with self._lock:
                return self.conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            logger.warning("Index read failed: %s", exc)
            return []

    def _write(self, operation: str, statements: List[tuple]) -> bool:
        """Run ``(sql, params)`` / ``(sql, [params...], True)`` entries in one transaction."""
        with self._lock:
            try:
                cur = self.conn.cursor()
                for entry in statements:
                    if len(entry) == 3 and entry[2]:
                        cur.executemany(entry[0], entry[1])
                    else:
                        cur.execute(entry[0], entry[1])
                self.conn.commit()
                return True
            except sqlite3.Error as exc:
                self.conn.rollback()
                logger.warning("Index write '%s' failed: %s", operation, exc)
                return False

    @staticmethod
    def _vertex_row(vertex: Vertex, now: float) -> tuple:
        return (
            vertex.id,
            vertex.vertex_type,
            vertex.document_id,
            vertex.symbol_name,
            json.dumps(vertex.to_data()),
            now,
            now,
        )

    @staticmethod
    def _row_to_vertex(row: sqlite3.Row) -> Optional[Vertex]:
        try:
            return vertex_from_row(row["vertex_type"], row["id"], json.loads(row["data"]))
        except (ValueError, KeyError) as exc:
            logger.warning("Skipping malformed vertex %s: %s", row["id"], exc)
            return None

    @staticmethod
    def _row_to_edge(row: sqlite3.Row) -> Edge:
        return Edge(id=row["id"], label=row["label"], out_v=row["out_v"], in_v=row["in_v"])

    _UPSERT_VERTEX = """
        INSERT INTO vertices (id, vertex_type, document_id, symbol_name, data, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            vertex_type = excluded.vertex_type,
            document_id = excluded.document_id,
            symbol_name = excluded.symbol_name,
            data        = excluded.data,
            updated_at  = excluded.updated_at
    """
    _INSERT_EDGE = "INSERT OR REPLACE INTO edges (id, label, out_v, in_v, created_at) VALUES (?, ?, ?, ?, ?)"
    _UPSERT_DOCUMENT = (
        "INSERT OR REPLACE INTO documents (uri, content_hash, vertex_id, updated_at) VALUES (?, ?, ?, ?)"
    )

    # ------------------------------------------------------------------
    # Vertices
    # ------------------------------------------------------------------

    def save_vertex(self, vertex: Vertex) -> bool:
        return self._write("save_vertex", [(self._UPSERT_VERTEX, self._vertex_row(vertex, time.time()))])

    def get_vertex(self, vertex_id: str) -> Optional[Vertex]:
        rows = self._read("SELECT * FROM vertices WHERE id = ?", (vertex_id,))
        return self._row_to_vertex(rows[0]) if rows else None

    def query_vertices(
        self,
        vertex_type: str,
        document_id: Optional[str] = None,
        symbol_name: Optional[str] = None,
    ) -> List[Vertex]:
        """All vertices of *vertex_type*, optionally within one document or symbol."""
        sql = "SELECT * FROM vertices WHERE vertex_type = ?"
        params: List[Any] = [vertex_type]
        if document_id is not None:
            sql += " AND document_id = ?"
            params.append(document_id)
        if symbol_name is not None:
            sql += " AND symbol_name = ?"
            params.append(symbol_name)
        sql += " ORDER BY id"
        vertices = [self._row_to_vertex(row) for row in self._read(sql, params)]
        return [v for v in vertices if v is not None]

    def delete_vertices_by_document(self, document_id: str) -> bool:
        """Drop a document's vertices and every edge leaving them."""
        return self._write("delete_vertices_by_document", [
            (
                "DELETE FROM edges WHERE out_v IN (SELECT id FROM vertices WHERE document_id = ?)",
                (document_id,),
            ),
            ("DELETE FROM vertices WHERE document_id = ?", (document_id,)),
        ])

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def save_edge(self, edge: Edge) -> bool:
        return self._write("save_edge", [
            (self._INSERT_EDGE, (edge.id, edge.label, edge.out_v, edge.in_v, time.time())),
        ])

    def get_edges_by_out_v(self, out_v: str, label: Optional[str] = None) -> List[Edge]:
        if label is None:
            rows = self._read("SELECT * FROM edges WHERE out_v = ? ORDER BY id", (out_v,))
        else:
            rows = self._read(
                "SELECT * FROM edges WHERE out_v = ? AND label = ? ORDER BY id", (out_v, label),
            )
        return [self._row_to_edge(row) for row in rows]

    def get_edges_by_in_v(self, in_v: str, label: Optional[str] = None) -> List[Edge]:
        if label is None:
            rows = self._read("SELECT * FROM edges WHERE in_v = ? ORDER BY id", (in_v,))
        else:
            rows = self._read(
                "SELECT * FROM edges WHERE in_v = ? AND label = ? ORDER BY id", (in_v, label),
            )
        return [self._row_to_edge(row) for row in rows]

    def delete_edges_by_out_v(self, out_v: str) -> bool:
        return self._write("delete_edges_by_out_v", [("DELETE FROM edges WHERE out_v = ?", (out_v,))])

    # ------------------------------------------------------------------
    # Document index
    # ------------------------------------------------------------------

    def save_document_index(self, uri: str, content_hash: str, vertex_id: str) -> bool:
        return self._write("save_document_index", [
            (self._UPSERT_DOCUMENT, (uri, content_hash, vertex_id, time.time())),
        ])

    def get_document_index(self, uri: str) -> Optional[DocumentIndex]:
        rows = self._read("SELECT * FROM documents WHERE uri = ?", (uri,))
        if not rows:
            return None
        row = rows[0]
        return DocumentIndex(row["uri"], row["content_hash"], row["vertex_id"], row["updated_at"])

    def get_all_document_indexes(self) -> List[DocumentIndex]:
        return [
            DocumentIndex(row["uri"], row["content_hash"], row["vertex_id"], row["updated_at"])
            for row in self._read("SELECT * FROM documents ORDER BY uri")
        ]

    def delete_document_index(self, uri: str) -> bool:
        return self._write("delete_document_index", [("DELETE FROM documents WHERE uri = ?", (uri,))])

    def needs_reindex(self, uri: str, content_hash: str) -> bool:
        index = self.get_document_index(uri)
        return index is None or index.content_hash != content_hash

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def batch_save(self, vertices: List[Vertex], edges: List[Edge]) -> bool:
        """Save vertices and edges in a single transaction."""
        now = time.time()
        return self._write("batch_save", [
            (self._UPSERT_VERTEX, [self._vertex_row(v, now) for v in vertices], True),
            (self._INSERT_EDGE, [(e.id, e.label, e.out_v, e.in_v, now) for e in edges], True),
        ])

    def replace_documents(
        self,
        results: List[LsifIndexResult],
        ref_vertices: List[Vertex],
        ref_edges: List[Edge],
        removed: Optional[List[str]] = None,
        nodes: Optional[List[GraphNode]] = None,
    ) -> bool:
        """Atomically swap in freshly indexed documents and the reference pass.

        Each document's previous vertices (and the edges leaving them) are
        dropped first.  Reference results are project-wide, so all of them
        are replaced.  Documents listed in *removed* are forgotten and, when
        *nodes* is given, the dependency graph is replaced too, all in the
        same transaction.  Readers see either the old index or the new one.
        """
        now = time.time()
        statements: List[tuple] = self._remove_statements(removed or [])
        statements += [
            (
                "DELETE FROM edges WHERE out_v IN "
                "(SELECT id FROM vertices WHERE vertex_type = 'referenceResult')",
                (),
            ),
            ("DELETE FROM edges WHERE label = 'textDocument/references'", ()),
            ("DELETE FROM vertices WHERE vertex_type = 'referenceResult'", ()),
        ]
        for result in results:
            statements.append((
                "DELETE FROM edges WHERE out_v IN (SELECT id FROM vertices WHERE document_id = ?)",
                (result.document_id,),
            ))
            statements.append(("DELETE FROM vertices WHERE document_id = ?", (result.document_id,)))
            statements.append((
                self._UPSERT_VERTEX, [self._vertex_row(v, now) for v in result.vertices], True,
            ))
            statements.append((
                self._INSERT_EDGE, [(e.id, e.label, e.out_v, e.in_v, now) for e in result.edges], True,
            ))
            statements.append((
                self._UPSERT_DOCUMENT, (result.uri, result.content_hash, result.document_id, now),
            ))
        statements.append((self._UPSERT_VERTEX, [self._vertex_row(v, now) for v in ref_vertices], True))
        statements.append((
            self._INSERT_EDGE, [(e.id, e.label, e.out_v, e.in_v, now) for e in ref_edges], True,
        ))
        if nodes is not None:
            statements += self._graph_statements(nodes)
        ok = self._write("replace_documents", statements)
        if ok:
            logger.info(
                "Indexed %d documents (%d reference results, %d removed)",
                len(results), len(ref_vertices), len(removed or []),
            )
        return ok

    @staticmethod
    def _remove_statements(uris: List[str]) -> List[tuple]:
        statements: List[tuple] = []
        for uri in uris:
            doc_id = f"doc:{uri}"
            statements.append((
                "DELETE FROM edges WHERE out_v IN (SELECT id FROM vertices WHERE document_id = ?)",
                (doc_id,),
            ))
            statements.append(("DELETE FROM vertices WHERE document_id = ?", (doc_id,)))
            statements.append(("DELETE FROM documents WHERE uri = ?", (uri,)))
        return statements

    def remove_documents(self, uris: List[str]) -> bool:
        """Forget documents that no longer exist in the project."""
        return self._write("remove_documents", self._remove_statements(uris))

    def clear_all_indexes(self) -> bool:
        return self._write("clear_all_indexes", [
            ("DELETE FROM edges", ()),
            ("DELETE FROM vertices", ()),
            ("DELETE FROM documents", ()),
        ])

    # ------------------------------------------------------------------
    # Dependency graph
    # ------------------------------------------------------------------

    @staticmethod
    def _graph_statements(nodes: List[GraphNode]) -> List[tuple]:
        return [
            ("DELETE FROM nodes", ()),
            (
                "INSERT OR REPLACE INTO nodes (node_id, kind, label, file_path, position, data) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (n.id, n.kind, n.label, n.file_path, i, json.dumps(n.to_dict()))
                    for i, n in enumerate(nodes)
                ],
                True,
            ),
        ]

    def save_graph(self, nodes: List[GraphNode]) -> bool:
        """Replace the stored dependency graph with *nodes*."""
        return self._write("save_graph", self._graph_statements(nodes))

    def get_graph_nodes(self, file_path: Optional[str] = None) -> List[GraphNode]:
        if file_path is None:
            rows = self._read("SELECT data FROM nodes ORDER BY position")
        else:
            rows = self._read("SELECT data FROM nodes WHERE file_path = ? ORDER BY position", (file_path,))
        return [GraphNode.from_dict(json.loads(row["data"])) for row in rows]

    def get_graph_node(self, node_id: str) -> Optional[GraphNode]:
        rows = self._read("SELECT data FROM nodes WHERE node_id = ?", (node_id,))
        return GraphNode.from_dict(json.loads(rows[0]["data"])) if rows else None
