"""Core data models shared by the front-ends, graph builder, index and getters."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional

from .syntax import Module, SyntaxNode

DIALECTS = {
    ".ts": "ts",
    ".tsx": "tsx",
    ".js": "js",
    ".jsx": "jsx",
    ".vue": "vue",
}

NODE_KINDS = (
    "file", "module", "variable", "function", "class", "type", "interface",
    "enum", "hook", "computed", "ref", "store", "prop", "call", "template",
)


def dialect_for_path(path: str) -> Optional[str]:
    """Return the dialect of *path*, or None for unsupported files and ``.d.ts``."""
    if path.endswith(".d.ts"):
        return None
    dot = path.rfind(".")
    if dot == -1:
        return None
    return DIALECTS.get(path[dot:])


def hash_content(text: str) -> str:
    """Stable content hash used to detect changed files."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def file_stem(path: str) -> str:
    name = file_name(path)
    return name.rsplit(".", 1)[0] if "." in name else name


# ===================================================================
# Parsed source files
# ===================================================================

@dataclass
class ScriptRegion:
    """The script text the AST was parsed from, plus its place in the file.

    ``line_offset`` is the number of file lines before the script text and
    ``column_offset`` the character column its first line starts at.
    """

    text: str
    line_offset: int = 0
    column_offset: int = 0
    byte_offset: int = 0
    lang: str = "ts"

    def file_line(self, row: int) -> int:
        """1-based line in the original file for a 0-based script row."""
        return row + self.line_offset + 1

    def file_position(self, row: int, col: int) -> "Position":
        """0-based original-file position for a 0-based script row/column."""
        if row == 0:
            col += self.column_offset
        return Position(line=row + self.line_offset, character=col)


@dataclass
class TemplateNode:
    """One element of a Vue template, with original-case tag name."""

    tag: str
    line: int
    attributes: Dict[str, str] = field(default_factory=dict)
    interpolations: List[str] = field(default_factory=list)
    children: List["TemplateNode"] = field(default_factory=list)


@dataclass
class TemplateRegion:
    """A ``<template>`` block, kept verbatim including its tags."""

    text: str
    start_line: int
    start_offset: int
    root: TemplateNode


@dataclass
class SourceFile:
    path: str
    dialect: str
    text: str
    content_hash: str
    ast: Module
    script: ScriptRegion
    template: Optional[TemplateRegion] = None

    @cached_property
    def script_bytes(self) -> bytes:
        return self.script.text.encode("utf-8")

    def snippet(self, node: SyntaxNode) -> str:
        """Source text of *node*, taken from the script region."""
        data = self.script_bytes
        return data[node.span.start_byte:node.span.end_byte].decode("utf-8", errors="replace")

    def line_of(self, node: SyntaxNode) -> int:
        return self.script.file_line(node.span.start_row)

    def end_line_of(self, node: SyntaxNode) -> int:
        return self.script.file_line(node.span.end_row)


# ===================================================================
# Dependency graph
# ===================================================================

@dataclass
class ExportInfo:
    name: str
    line: int
    kind: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "line": self.line, "kind": self.kind}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ExportInfo":
        return cls(name=payload["name"], line=int(payload["line"]), kind=payload.get("kind", "variable"))


@dataclass
class ImportInfo:
    """One import binding; ``name`` is the local name in the importing file."""

    name: str
    from_path: str
    line: int
    is_default: bool = False
    is_namespace: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "from": self.from_path,
            "line": self.line,
            "isDefault": self.is_default,
            "isNamespace": self.is_namespace,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ImportInfo":
        return cls(
            name=payload["name"],
            from_path=payload["from"],
            line=int(payload["line"]),
            is_default=bool(payload.get("isDefault", False)),
            is_namespace=bool(payload.get("isNamespace", False)),
        )


@dataclass
class FileViews:
    """Per-file metadata precomputed while parsing (the view map)."""

    exports: List[ExportInfo] = field(default_factory=list)
    imports: List[ImportInfo] = field(default_factory=list)
    usages: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exports": [e.to_dict() for e in self.exports],
            "imports": [i.to_dict() for i in self.imports],
            "usages": {name: list(paths) for name, paths in self.usages.items()},
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FileViews":
        return cls(
            exports=[ExportInfo.from_dict(e) for e in payload.get("exports", [])],
            imports=[ImportInfo.from_dict(i) for i in payload.get("imports", [])],
            usages={k: list(v) for k, v in payload.get("usages", {}).items()},
        )


@dataclass
class GraphNode:
    id: str
    label: str
    file_path: str
    kind: str
    code_snippet: str
    start_line: int
    dependencies: List[str] = field(default_factory=list)
    end_line: Optional[int] = None
    views: Optional[FileViews] = None

    @property
    def local_name(self) -> str:
        return self.id.rsplit("::", 1)[-1]

    def add_dependency(self, node_id: str) -> None:
        if node_id != self.id and node_id not in self.dependencies:
            self.dependencies.append(node_id)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "filePath": self.file_path,
            "kind": self.kind,
            "codeSnippet": self.code_snippet,
            "startLine": self.start_line,
            "dependencies": list(self.dependencies),
        }
        if self.end_line is not None:
            payload["endLine"] = self.end_line
        if self.views is not None:
            payload["views"] = self.views.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GraphNode":
        views = payload.get("views")
        return cls(
            id=payload["id"],
            label=payload["label"],
            file_path=payload["filePath"],
            kind=payload["kind"],
            code_snippet=payload.get("codeSnippet", ""),
            start_line=int(payload.get("startLine", 0)),
            dependencies=list(payload.get("dependencies", [])),
            end_line=payload.get("endLine"),
            views=FileViews.from_dict(views) if views is not None else None,
        )


# ===================================================================
# Code-intelligence positions
# ===================================================================

@dataclass(frozen=True)
class Position:
    """0-based line/character, as in LSP requests."""

    line: int
    character: int

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Position":
        return cls(line=int(payload["line"]), character=int(payload["character"]))


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    def contains(self, pos: Position) -> bool:
        if pos.line < self.start.line or pos.line > self.end.line:
            return False
        if pos.line == self.start.line and pos.character < self.start.character:
            return False
        if pos.line == self.end.line and pos.character > self.end.character:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Range":
        return cls(start=Position.from_dict(payload["start"]), end=Position.from_dict(payload["end"]))


@dataclass(frozen=True)
class Location:
    uri: str
    range: Range

    def to_dict(self) -> Dict[str, Any]:
        return {"uri": self.uri, "range": self.range.to_dict()}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Location":
        return cls(uri=payload["uri"], range=Range.from_dict(payload["range"]))
