"""Definitions list and outline tree of a parsed file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .lsif import render_signature
from .models import SourceFile
from .syntax import (
    AwaitExpr,
    Block,
    CallExpr,
    ClassDecl,
    ClassMember,
    Composite,
    EnumDecl,
    ExportDecl,
    Function,
    Identifier,
    ImportDecl,
    InterfaceDecl,
    ReturnStatement,
    SyntaxNode,
    TypeAliasDecl,
    VariableDecl,
    binding_names,
    callee_name,
    identifiers,
)

_SUMMARY_LIMIT = 30

_CONTROL_KINDS = {
    "if_statement": "if",
    "else_clause": "else",
    "for_statement": "for",
    "for_in_statement": "for",
    "while_statement": "while",
    "do_statement": "do-while",
    "switch_statement": "switch",
    "switch_case": "case",
    "switch_default": "case",
    "try_statement": "try",
    "catch_clause": "catch",
    "finally_clause": "finally",
    "throw_statement": "throw",
}


@dataclass
class Definition:
    name: str
    kind: str
    line: int
    end_line: int
    signature: str
    exported: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "line": self.line,
            "endLine": self.end_line,
            "signature": self.signature,
            "exported": self.exported,
        }


@dataclass
class OutlineItem:
    kind: str
    name: str
    line: int
    end_line: Optional[int] = None
    text: str = ""
    identifiers: List[str] = field(default_factory=list)
    children: List["OutlineItem"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "name": self.name, "line": self.line}
        if self.end_line is not None:
            payload["endLine"] = self.end_line
        if self.text:
            payload["text"] = self.text
        if self.identifiers:
            payload["identifiers"] = list(self.identifiers)
        if self.children:
            payload["children"] = [c.to_dict() for c in self.children]
        return payload


def _shorten(text: str, limit: int = _SUMMARY_LIMIT) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


# ===================================================================
# Definitions
# ===================================================================

def extract_definitions(source: SourceFile) -> List[Definition]:
    """Top-level declarations of *source* with a one-line signature each."""
    definitions: List[Definition] = []
    for stmt in source.ast.body:
        exported = isinstance(stmt, ExportDecl)
        decl = stmt.declaration if exported else stmt
        if decl is None:
            continue
        line = source.line_of(stmt)
        end_line = source.end_line_of(stmt)
        if isinstance(decl, VariableDecl):
            for declarator in decl.declarators:
                for name in binding_names(declarator.target):
                    definitions.append(Definition(
                        name=name,
                        kind="function" if isinstance(declarator.init, Function) else decl.kind,
                        line=line,
                        end_line=end_line,
                        signature=render_signature(source, declarator, name, decl.kind),
                        exported=exported,
                    ))
        elif isinstance(decl, (Function, ClassDecl)) and decl.name is not None:
            definitions.append(Definition(
                name=decl.name.name,
                kind="function" if isinstance(decl, Function) else "class",
                line=line,
                end_line=end_line,
                signature=render_signature(source, decl, decl.name.name),
                exported=exported,
            ))
        elif isinstance(decl, (TypeAliasDecl, InterfaceDecl, EnumDecl)):
            kind = "type" if isinstance(decl, TypeAliasDecl) else (
                "interface" if isinstance(decl, InterfaceDecl) else "enum"
            )
            definitions.append(Definition(
                name=decl.name.name,
                kind=kind,
                line=line,
                end_line=end_line,
                signature=render_signature(source, decl, decl.name.name),
                exported=exported,
            ))
    return definitions


# ===================================================================
# Outline
# ===================================================================

class _OutlineBuilder:
    def __init__(self, source: SourceFile) -> None:
        self.source = source

    def _identifiers(self, node: SyntaxNode) -> List[str]:
        names: List[str] = []
        for ident in identifiers(node):
            if ident.name not in names and ident.name not in ("undefined", "null"):
                names.append(ident.name)
        return names

    def _kind_and_name(self, node: SyntaxNode) -> tuple:
        if isinstance(node, ImportDecl):
            return "import", f"from '{node.source}'"
        if isinstance(node, ExportDecl):
            if node.declaration is not None:
                return self._kind_and_name(node.declaration)
            if node.specifiers:
                return "export", "export { " + ", ".join(s.exported for s in node.specifiers) + " }"
            return "export", "export default"
        if isinstance(node, VariableDecl):
            names = []
            for declarator in node.declarators:
                names.append(declarator.target.name if isinstance(declarator.target, Identifier) else "...")
            return node.kind, ", ".join(names)
        if isinstance(node, Function):
            kind = "arrow-function" if node.arrow else "function"
            return kind, node.name.name if node.name is not None else "anonymous"
        if isinstance(node, ClassDecl):
            return "class", node.name.name if node.name is not None else "anonymous"
        if isinstance(node, InterfaceDecl):
            return "interface", node.name.name
        if isinstance(node, TypeAliasDecl):
            return "type", node.name.name
        if isinstance(node, EnumDecl):
            return "enum", node.name.name
        if isinstance(node, ClassMember):
            return node.kind, node.name.name
        if isinstance(node, ReturnStatement):
            value = self.source.snippet(node.argument) if node.argument is not None else ""
            return "return", f"return {_shorten(value)}".rstrip()
        if isinstance(node, Block):
            return "block", "block"
        call = node.argument if isinstance(node, AwaitExpr) else node
        if isinstance(call, CallExpr):
            return "call", f"{callee_name(call) or 'expression'}()"
        if isinstance(node, Composite) and node.kind in _CONTROL_KINDS:
            kind = _CONTROL_KINDS[node.kind]
            if kind in ("if", "while", "switch") and node.children:
                return kind, f"{kind} ({_shorten(self.source.snippet(node.children[0]))})"
            if kind == "do-while" and len(node.children) > 1:
                return kind, f"do...while ({_shorten(self.source.snippet(node.children[-1]))})"
            if kind == "throw" and node.children:
                return kind, f"throw {_shorten(self.source.snippet(node.children[0]))}"
            if kind == "for":
                return kind, _shorten(self.source.snippet(node).split("{", 1)[0].strip(), 50)
            return kind, kind
        return "assignment", _shorten(self.source.snippet(node).split("\n", 1)[0], 50)

    def _nested(self, node: SyntaxNode) -> List[SyntaxNode]:
        """Statements shown as children of *node* in the outline."""
        if isinstance(node, ExportDecl) and node.declaration is not None:
            return self._nested(node.declaration)
        if isinstance(node, Function):
            return list(node.body.body) if isinstance(node.body, Block) else []
        if isinstance(node, ClassDecl):
            return list(node.members)
        if isinstance(node, ClassMember) and isinstance(node.value, Function):
            return self._nested(node.value)
        if isinstance(node, VariableDecl) and len(node.declarators) == 1:
            init = node.declarators[0].init
            if isinstance(init, Function):
                return self._nested(init)
            return []
        if isinstance(node, Block):
            return list(node.body)
        if isinstance(node, Composite) and node.kind in _CONTROL_KINDS:
            out: List[SyntaxNode] = []
            for child in node.children:
                if isinstance(child, Block):
                    out.extend(child.body)
                elif isinstance(child, Composite) and child.kind in _CONTROL_KINDS:
                    out.append(child)
                elif isinstance(child, Composite) and child.kind == "switch_body":
                    out.extend(child.children)
            return out
        return []

    def visit(self, node: SyntaxNode) -> OutlineItem:
        kind, name = self._kind_and_name(node)
        line = self.source.line_of(node)
        end_line = self.source.end_line_of(node)
        return OutlineItem(
            kind=kind,
            name=name,
            line=line,
            end_line=end_line if end_line != line else None,
            text=self.source.snippet(node).split("\n", 1)[0],
            identifiers=self._identifiers(node),
            children=[self.visit(child) for child in self._nested(node)],
        )

    def build(self) -> List[OutlineItem]:
        items: List[OutlineItem] = []
        imports: List[OutlineItem] = []
        for stmt in self.source.ast.body:
            if isinstance(stmt, ImportDecl):
                imports.append(self.visit(stmt))
            else:
                items.append(self.visit(stmt))
        if imports:
            items.insert(0, OutlineItem(
                kind="block",
                name=f"Imports ({len(imports)})",
                line=imports[0].line,
                end_line=imports[-1].line,
                children=imports,
            ))
        return items


def extract_outline(source: SourceFile) -> List[OutlineItem]:
    """Outline tree: imports grouped first, then declarations and control flow."""
    return _OutlineBuilder(source).build()
