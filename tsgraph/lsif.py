"""LSIF-style vertex/edge model and the per-file indexer.

Each parsed file becomes a Document vertex plus one Range per exported
declaration (definition) and per import binding (reference).  Definitions
hang a ResultSet off their Range via ``next``; the ResultSet carries the
DefinitionResult and HoverResult.  ReferenceResults are only known once
every file is indexed, so :func:`build_reference_results` runs as a second
pass over all per-file results.

Vertex and edge ids are derived from path, position and symbol name only,
so indexing unchanged input twice yields identical ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from .models import Location, Position, Range, SourceFile
from .syntax import (
    ClassDecl,
    EnumDecl,
    ExportDecl,
    Function,
    Identifier,
    ImportDecl,
    InterfaceDecl,
    SyntaxNode,
    TypeAliasDecl,
    VariableDecl,
    VariableDeclarator,
    binding_identifiers,
)

logger = logging.getLogger(__name__)

# Edge labels
CONTAINS = "contains"
NEXT = "next"
DEFINITION = "textDocument/definition"
HOVER = "textDocument/hover"
REFERENCES = "textDocument/references"
ITEM = "item"

EDGE_LABELS = (CONTAINS, NEXT, DEFINITION, HOVER, REFERENCES, ITEM)


def document_id(path: str) -> str:
    return f"doc:{path}"


def range_id(doc_id: str, position: Position) -> str:
    return f"range:{doc_id}:{position.line}:{position.character}"


def result_set_id(doc_id: str, symbol: str) -> str:
    return f"rs:{doc_id}:{symbol}"


def edge_id(out_v: str, label: str, in_v: str) -> str:
    return f"edge:{out_v}:{label}:{in_v}"


# ===================================================================
# Vertices
# ===================================================================

VERTEX_CLASSES: Dict[str, Type["Vertex"]] = {}


def _vertex_type(name: str):
    def decorator(cls):
        cls.vertex_type = name
        VERTEX_CLASSES[name] = cls
        return cls
    return decorator


@dataclass
class Vertex:
    id: str
    vertex_type: ClassVar[str] = ""

    @property
    def document_id(self) -> Optional[str]:
        return None

    @property
    def symbol_name(self) -> Optional[str]:
        return None

    def to_data(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "Vertex":
        return cls(id=vertex_id)


@_vertex_type("document")
@dataclass
class DocumentVertex(Vertex):
    uri: str = ""
    language_id: str = "typescript"
    content_hash: str = ""

    @property
    def document_id(self) -> Optional[str]:
        return self.id

    def to_data(self) -> Dict[str, Any]:
        return {"uri": self.uri, "languageId": self.language_id, "contentHash": self.content_hash}

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "DocumentVertex":
        return cls(
            id=vertex_id,
            uri=data["uri"],
            language_id=data.get("languageId", "typescript"),
            content_hash=data.get("contentHash", ""),
        )


@dataclass
class RangeTag:
    """``type`` is ``definition`` or ``reference``; ``kind`` the symbol kind.

    Import references also record the local binding name, the module
    specifier and the import style (``named``, ``default``, ``namespace``).
    """

    type: str
    text: str
    kind: str
    local: str = ""
    source: str = ""
    style: str = ""

    def to_dict(self) -> Dict[str, str]:
        payload = {"type": self.type, "text": self.text, "kind": self.kind}
        if self.kind == "import":
            payload.update(local=self.local, source=self.source, style=self.style)
        return payload


@_vertex_type("range")
@dataclass
class RangeVertex(Vertex):
    doc: str = ""
    range: Optional[Range] = None
    tag: Optional[RangeTag] = None

    @property
    def document_id(self) -> Optional[str]:
        return self.doc

    @property
    def symbol_name(self) -> Optional[str]:
        return self.tag.text if self.tag is not None else None

    def to_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"documentId": self.doc, "range": self.range.to_dict()}
        if self.tag is not None:
            data["tag"] = self.tag.to_dict()
        return data

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "RangeVertex":
        tag = data.get("tag")
        return cls(
            id=vertex_id,
            doc=data["documentId"],
            range=Range.from_dict(data["range"]),
            tag=RangeTag(**tag) if tag else None,
        )


@_vertex_type("resultSet")
@dataclass
class ResultSetVertex(Vertex):
    doc: str = ""
    symbol: str = ""

    @property
    def document_id(self) -> Optional[str]:
        return self.doc

    @property
    def symbol_name(self) -> Optional[str]:
        return self.symbol

    def to_data(self) -> Dict[str, Any]:
        return {"documentId": self.doc, "symbolName": self.symbol}

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "ResultSetVertex":
        return cls(id=vertex_id, doc=data["documentId"], symbol=data["symbolName"])


@_vertex_type("definitionResult")
@dataclass
class DefinitionResultVertex(Vertex):
    doc: str = ""
    location: Optional[Location] = None

    @property
    def document_id(self) -> Optional[str]:
        return self.doc or None

    def to_data(self) -> Dict[str, Any]:
        data = self.location.to_dict()
        data["documentId"] = self.doc
        return data

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "DefinitionResultVertex":
        return cls(id=vertex_id, doc=data.get("documentId", ""), location=Location.from_dict(data))


@_vertex_type("hoverResult")
@dataclass
class HoverResultVertex(Vertex):
    doc: str = ""
    contents: str = ""

    @property
    def document_id(self) -> Optional[str]:
        return self.doc or None

    def to_data(self) -> Dict[str, Any]:
        return {"documentId": self.doc, "contents": self.contents}

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "HoverResultVertex":
        return cls(id=vertex_id, doc=data.get("documentId", ""), contents=data.get("contents", ""))


@_vertex_type("referenceResult")
@dataclass
class ReferenceResultVertex(Vertex):
    items: List[Location] = field(default_factory=list)

    def to_data(self) -> Dict[str, Any]:
        return {"items": [item.to_dict() for item in self.items]}

    @classmethod
    def from_data(cls, vertex_id: str, data: Dict[str, Any]) -> "ReferenceResultVertex":
        return cls(id=vertex_id, items=[Location.from_dict(i) for i in data.get("items", [])])


def vertex_from_row(vertex_type: str, vertex_id: str, data: Dict[str, Any]) -> Vertex:
    cls = VERTEX_CLASSES.get(vertex_type)
    if cls is None:
        raise ValueError(f"Unknown vertex type: {vertex_type}")
    return cls.from_data(vertex_id, data)


@dataclass(frozen=True)
class Edge:
    id: str
    label: str
    out_v: str
    in_v: str

    @classmethod
    def link(cls, out_v: str, label: str, in_v: str) -> "Edge":
        return cls(id=edge_id(out_v, label, in_v), label=label, out_v=out_v, in_v=in_v)


@dataclass
class LsifIndexResult:
    """Vertices and edges contributed by one file."""

    uri: str
    document_id: str
    content_hash: str
    vertices: List[Vertex] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def ranges(self, tag_type: str) -> List[RangeVertex]:
        return [
            v for v in self.vertices
            if isinstance(v, RangeVertex) and v.tag is not None and v.tag.type == tag_type
        ]

    def result_sets(self) -> List[ResultSetVertex]:
        return [v for v in self.vertices if isinstance(v, ResultSetVertex)]


# ===================================================================
# Hover signatures
# ===================================================================

def _params_text(source: SourceFile, func: Function) -> str:
    return ", ".join(source.snippet(p) for p in func.params)


def _function_signature(source: SourceFile, func: Function, name: str, arrow: bool = False) -> str:
    ret = source.snippet(func.return_type) if func.return_type is not None else ""
    prefix = "async " if func.is_async else ""
    if arrow:
        return f"{prefix}({_params_text(source, func)}) => {ret or 'void'}"
    suffix = f": {ret}" if ret else ""
    return f"{prefix}function {name}({_params_text(source, func)}){suffix}"


def render_signature(source: SourceFile, decl: SyntaxNode, name: str, kind: str = "const") -> str:
    """One-line TypeScript signature of a declaration, for hovers."""
    if isinstance(decl, Function):
        return _function_signature(source, decl, name)
    if isinstance(decl, ClassDecl):
        return f"class {name}"
    if isinstance(decl, InterfaceDecl):
        return f"interface {name}"
    if isinstance(decl, EnumDecl):
        return f"enum {name}"
    if isinstance(decl, TypeAliasDecl):
        return f"type {name} = {source.snippet(decl.value)}"
    if isinstance(decl, VariableDeclarator):
        if not isinstance(decl.target, Identifier):
            return f"{kind} {name}"
        if decl.type_annotation is not None:
            return f"{kind} {name}: {source.snippet(decl.type_annotation)}"
        if isinstance(decl.init, Function):
            return f"{kind} {name}: {_function_signature(source, decl.init, name, arrow=True)}"
        return f"{kind} {name}"
    return name


def hover_markdown(signature: str) -> str:
    return f"```typescript\n{signature}\n```"


def _symbol_kind(decl: SyntaxNode) -> str:
    if isinstance(decl, Function):
        return "function"
    if isinstance(decl, ClassDecl):
        return "class"
    if isinstance(decl, InterfaceDecl):
        return "interface"
    if isinstance(decl, EnumDecl):
        return "enum"
    if isinstance(decl, TypeAliasDecl):
        return "type"
    if isinstance(decl, VariableDeclarator) and isinstance(decl.init, Function):
        return "function"
    return "variable"


# ===================================================================
# Per-file indexer
# ===================================================================

class _FileIndexer:
    def __init__(self, source: SourceFile) -> None:
        self.source = source
        self.doc_id = document_id(source.path)
        self.vertices: Dict[str, Vertex] = {}
        self.edges: Dict[str, Edge] = {}

    def _vertex(self, vertex: Vertex) -> Vertex:
        self.vertices.setdefault(vertex.id, vertex)
        return self.vertices[vertex.id]

    def _edge(self, out_v: str, label: str, in_v: str) -> None:
        edge = Edge.link(out_v, label, in_v)
        self.edges.setdefault(edge.id, edge)

    def range_of(self, node: SyntaxNode) -> Range:
        script = self.source.script
        span = node.span
        return Range(
            start=script.file_position(span.start_row, span.start_col),
            end=script.file_position(span.end_row, span.end_col),
        )

    def _definition(self, name_node: SyntaxNode, name: str, decl: SyntaxNode, signature: str) -> None:
        """Range -> ResultSet -> definition/hover for one exported name.

        ``export { a, a as b }`` exports two names from one declaration.  Both
        get a ResultSet, but the shared Range keeps a single ``next`` edge to
        the first name exported, in source order.
        """
        rng = self.range_of(name_node)
        rid = range_id(self.doc_id, rng.start)
        claimed = rid in self.vertices
        self._vertex(RangeVertex(
            id=rid, doc=self.doc_id, range=rng,
            tag=RangeTag(type="definition", text=name, kind=_symbol_kind(decl)),
        ))
        self._edge(self.doc_id, CONTAINS, rid)

        rs_id = result_set_id(self.doc_id, name)
        self._vertex(ResultSetVertex(id=rs_id, doc=self.doc_id, symbol=name))
        if not claimed:
            self._edge(rid, NEXT, rs_id)

        def_id = f"defResult:{rs_id}"
        self._vertex(DefinitionResultVertex(
            id=def_id, doc=self.doc_id, location=Location(uri=self.source.path, range=rng),
        ))
        self._edge(rs_id, DEFINITION, def_id)

        hover_id = f"hoverResult:{rs_id}"
        self._vertex(HoverResultVertex(id=hover_id, doc=self.doc_id, contents=hover_markdown(signature)))
        self._edge(rs_id, HOVER, hover_id)

    def _reference(self, local: Identifier, symbol: str, source: str, style: str) -> None:
        rng = self.range_of(local)
        rid = range_id(self.doc_id, rng.start)
        self._vertex(RangeVertex(
            id=rid, doc=self.doc_id, range=rng,
            tag=RangeTag(
                type="reference", text=symbol, kind="import",
                local=local.name, source=source, style=style,
            ),
        ))
        self._edge(self.doc_id, CONTAINS, rid)

    def _local_declarations(self) -> Dict[str, Tuple[SyntaxNode, SyntaxNode, str]]:
        """name -> (name node, declaration, variable kind) for top-level declarations."""
        found: Dict[str, Tuple[SyntaxNode, SyntaxNode, str]] = {}
        for stmt in self.source.ast.body:
            decl = stmt.declaration if isinstance(stmt, ExportDecl) else stmt
            if isinstance(decl, VariableDecl):
                for declarator in decl.declarators:
                    for ident in binding_identifiers(declarator.target):
                        found[ident.name] = (ident, declarator, decl.kind)
            elif isinstance(decl, (Function, ClassDecl)) and decl.name is not None:
                found[decl.name.name] = (decl.name, decl, "")
            elif isinstance(decl, (TypeAliasDecl, InterfaceDecl, EnumDecl)):
                found[decl.name.name] = (decl.name, decl, "")
        return found

    def index(self) -> LsifIndexResult:
        doc = DocumentVertex(
            id=self.doc_id,
            uri=self.source.path,
            language_id="vue" if self.source.dialect == "vue" else "typescript",
            content_hash=self.source.content_hash,
        )
        self._vertex(doc)
        locals_ = self._local_declarations()

        for stmt in self.source.ast.body:
            if isinstance(stmt, ImportDecl):
                if stmt.default is not None:
                    self._reference(stmt.default, stmt.default.name, stmt.source, "default")
                for spec in stmt.specifiers:
                    self._reference(spec.local, spec.imported, stmt.source, "named")
                if stmt.namespace is not None:
                    self._reference(stmt.namespace, stmt.namespace.name, stmt.source, "namespace")
                continue
            if not isinstance(stmt, ExportDecl):
                continue

            decl = stmt.declaration
            if isinstance(decl, VariableDecl):
                for declarator in decl.declarators:
                    for ident in binding_identifiers(declarator.target):
                        self._definition(
                            ident, ident.name, declarator,
                            render_signature(self.source, declarator, ident.name, decl.kind),
                        )
            elif isinstance(decl, (Function, ClassDecl)):
                if decl.name is not None:
                    name = decl.name.name
                    self._definition(decl.name, name, decl, render_signature(self.source, decl, name))
            elif isinstance(decl, (TypeAliasDecl, InterfaceDecl, EnumDecl)):
                name = decl.name.name
                self._definition(decl.name, name, decl, render_signature(self.source, decl, name))

            for spec in stmt.specifiers:
                if stmt.source is not None:
                    continue
                local = locals_.get(spec.local)
                if local is None:
                    continue
                name_node, local_decl, kind = local
                self._definition(
                    name_node, spec.exported, local_decl,
                    render_signature(self.source, local_decl, spec.exported, kind or "const"),
                )

        return LsifIndexResult(
            uri=self.source.path,
            document_id=self.doc_id,
            content_hash=self.source.content_hash,
            vertices=list(self.vertices.values()),
            edges=list(self.edges.values()),
        )


def index_file(source: SourceFile) -> LsifIndexResult:
    """Convert one parsed file into its document-local vertices and edges."""
    result = _FileIndexer(source).index()
    logger.debug(
        "Indexed %s: %d vertices, %d edges", source.path, len(result.vertices), len(result.edges),
    )
    return result


# ===================================================================
# Cross-file reference pass
# ===================================================================

def build_reference_results(
    results: List[LsifIndexResult],
) -> Tuple[List[Vertex], List[Edge]]:
    """Link every import Range to the ResultSets exporting the same name.

    Matching is by symbol name across the whole project; an import in a file
    never references a ResultSet of that same file.
    """
    by_symbol: Dict[str, List[ResultSetVertex]] = {}
    for result in results:
        for rs in result.result_sets():
            by_symbol.setdefault(rs.symbol, []).append(rs)

    grouped: Dict[str, List[RangeVertex]] = {}
    rs_index: Dict[str, ResultSetVertex] = {}
    uris: Dict[str, str] = {r.document_id: r.uri for r in results}
    for result in sorted(results, key=lambda r: r.uri):
        for ref in result.ranges("reference"):
            for rs in by_symbol.get(ref.tag.text, []):
                if rs.doc == ref.doc:
                    continue
                grouped.setdefault(rs.id, []).append(ref)
                rs_index[rs.id] = rs

    vertices: List[Vertex] = []
    edges: List[Edge] = []
    for rs_id in sorted(grouped):
        ref_id = f"refResult:{rs_id}"
        ranges = grouped[rs_id]
        vertices.append(ReferenceResultVertex(
            id=ref_id,
            items=[Location(uri=uris[r.doc], range=r.range) for r in ranges],
        ))
        edges.append(Edge.link(rs_id, REFERENCES, ref_id))
        for r in ranges:
            edges.append(Edge.link(ref_id, ITEM, r.id))
    logger.debug("Reference pass: %d reference results", len(vertices))
    return vertices, edges
