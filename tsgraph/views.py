"""View map: per-file exports/imports computed while parsing, usages after.

Views are registered by name and all run over a file in one pass.  The
``usages`` view needs every file's imports, so it is filled in a second
pass by :func:`attach_usage_views` once the whole project is parsed.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Set

from .models import ExportInfo, FileViews, GraphNode, ImportInfo, SourceFile
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
    binding_names,
)

logger = logging.getLogger(__name__)

ViewFunction = Callable[[SourceFile], list]

VIEW_REGISTRY: Dict[str, ViewFunction] = {}


def register_view(name: str) -> Callable[[ViewFunction], ViewFunction]:
    def decorator(func: ViewFunction) -> ViewFunction:
        VIEW_REGISTRY[name] = func
        return func
    return decorator


def declaration_kind(node: SyntaxNode) -> str:
    if isinstance(node, Function):
        return "function"
    if isinstance(node, ClassDecl):
        return "class"
    if isinstance(node, TypeAliasDecl):
        return "type"
    if isinstance(node, InterfaceDecl):
        return "interface"
    if isinstance(node, EnumDecl):
        return "enum"
    return "variable"


@register_view("exports")
def compute_exports(source: SourceFile) -> List[ExportInfo]:
    """Named exports of *source* (anonymous default exports are skipped)."""
    exports: List[ExportInfo] = []
    for stmt in source.ast.body:
        if not isinstance(stmt, ExportDecl):
            continue
        decl = stmt.declaration
        if isinstance(decl, VariableDecl):
            for declarator in decl.declarators:
                kind = "function" if isinstance(declarator.init, Function) else "variable"
                for name in binding_names(declarator.target):
                    exports.append(ExportInfo(name=name, line=source.line_of(declarator), kind=kind))
        elif isinstance(decl, (Function, ClassDecl)):
            if decl.name is not None:
                exports.append(ExportInfo(
                    name=decl.name.name, line=source.line_of(stmt), kind=declaration_kind(decl),
                ))
        elif isinstance(decl, (TypeAliasDecl, InterfaceDecl, EnumDecl)):
            exports.append(ExportInfo(
                name=decl.name.name, line=source.line_of(stmt), kind=declaration_kind(decl),
            ))
        elif isinstance(stmt.value, Identifier):
            exports.append(ExportInfo(name=stmt.value.name, line=source.line_of(stmt), kind="variable"))
        for spec in stmt.specifiers:
            exports.append(ExportInfo(name=spec.exported, line=source.line_of(spec), kind="variable"))
    return exports


@register_view("imports")
def compute_imports(source: SourceFile) -> List[ImportInfo]:
    imports: List[ImportInfo] = []
    for stmt in source.ast.body:
        if not isinstance(stmt, ImportDecl):
            continue
        line = source.line_of(stmt)
        if stmt.default is not None:
            imports.append(ImportInfo(
                name=stmt.default.name, from_path=stmt.source, line=line, is_default=True,
            ))
        for spec in stmt.specifiers:
            imports.append(ImportInfo(
                name=spec.local.name, from_path=stmt.source, line=source.line_of(spec.local),
            ))
        if stmt.namespace is not None:
            imports.append(ImportInfo(
                name=stmt.namespace.name, from_path=stmt.source, line=line, is_namespace=True,
            ))
    return imports


def build_views(source: SourceFile) -> FileViews:
    """Run every registered view over *source*."""
    views = FileViews()
    for name, func in VIEW_REGISTRY.items():
        setattr(views, name, func(source))
    return views


def attach_usage_views(file_nodes: List[GraphNode]) -> None:
    """Fill ``views.usages`` (export name -> importer paths) on each file node.

    Matching is by symbol name only: an import of ``foo`` anywhere counts
    as a usage of every other file exporting ``foo``.
    """
    exporters: Dict[str, List[str]] = {}
    for node in file_nodes:
        if node.views is None:
            continue
        for export in node.views.exports:
            exporters.setdefault(export.name, [])
            if node.file_path not in exporters[export.name]:
                exporters[export.name].append(node.file_path)

    usage_map: Dict[str, Dict[str, Set[str]]] = {}
    for node in file_nodes:
        if node.views is None:
            continue
        for imp in node.views.imports:
            for exporter in exporters.get(imp.name, []):
                if exporter == node.file_path:
                    continue
                usage_map.setdefault(exporter, {}).setdefault(imp.name, set()).add(node.file_path)

    for node in file_nodes:
        if node.views is None:
            continue
        by_symbol = usage_map.get(node.file_path, {})
        node.views.usages = {name: sorted(paths) for name, paths in sorted(by_symbol.items())}
    logger.debug("Attached usage views to %d file nodes", len(file_nodes))
