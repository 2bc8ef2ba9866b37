"""Metadata getter layer.

Callers ask a file node for its exports, imports, usages, local
declarations, props and arguments without caring where the answer comes
from.  The synchronous getters read the View Map attached to the file node
and fall back to walking the live AST; the ``*_async`` variants first ask
the persistent index.  The first non-empty tier wins, and a failing store
is simply a miss.

Definitions and outline are derived per file and kept in a
:class:`MetadataCache` keyed by ``(path, content_hash)``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from . import query
from .errors import IndexStoreError
from .models import ExportInfo, GraphNode, ImportInfo, SourceFile
from .outline import Definition, OutlineItem, extract_definitions, extract_outline
from .storage import IndexStore
from .syntax import (
    AssignmentPattern,
    ClassMember,
    ExportDecl,
    Function,
    Identifier,
    ImportDecl,
    InterfaceDecl,
    MemberExpr,
    ObjectPattern,
    ObjectType,
    PatternProperty,
    PropertyName,
    PropertySignature,
    RestElement,
    SyntaxNode,
    TypeAliasDecl,
    VariableDeclarator,
    binding_names,
    is_pascal_case,
    walk,
)
from .views import compute_exports, compute_imports
from .vue import IDENTIFIER_RE, is_directive, iter_template, kebab_to_pascal

logger = logging.getLogger(__name__)


@dataclass
class DeclarationInfo:
    """A function or variable declared inside a function body."""

    name: str
    line: int
    kind: str
    function_name: str
    is_used: bool


@dataclass
class PropInfo:
    name: str
    line: int
    component_name: str
    is_declared: bool
    is_used: bool


@dataclass
class ComponentPropsInfo:
    component_name: str
    line: int
    props: List[PropInfo] = field(default_factory=list)


@dataclass
class ArgumentInfo:
    name: str
    line: int
    function_name: str
    is_declared: bool
    is_used: bool


@dataclass
class FunctionArgumentsInfo:
    function_name: str
    line: int
    arguments: List[ArgumentInfo] = field(default_factory=list)


@dataclass
class FileMetadata:
    definitions: List[Definition]
    outline: List[OutlineItem]


# ===================================================================
# Live-AST extractors
# ===================================================================

def _named_functions(source: SourceFile) -> Iterator[Tuple[str, Function]]:
    """``(name, function)`` for every named function anywhere in the file.

    Function declarations use their own name, function and arrow
    expressions the variable they initialise, methods their member name.
    """
    for node in walk(source.ast):
        if isinstance(node, Function) and node.is_declaration and node.name is not None:
            yield node.name.name, node
        elif isinstance(node, VariableDeclarator) and isinstance(node.init, Function):
            if isinstance(node.target, Identifier):
                yield node.target.name, node.init
        elif isinstance(node, ClassMember) and isinstance(node.value, Function):
            yield node.name.name, node.value


def _references(node: SyntaxNode) -> Set[str]:
    """Names read somewhere below *node* (declaration names excluded)."""
    return {
        sub.name for sub in walk(node)
        if isinstance(sub, Identifier) and not sub.binding
    }


def extract_used_identifiers(source: SourceFile) -> Set[str]:
    """Every identifier read in the file, imports and declaration names excluded.

    Exported local names (``export { a }``) count as read, and so do the
    names a Vue template uses.
    """
    used: Set[str] = set()
    for stmt in source.ast.body:
        if isinstance(stmt, ImportDecl):
            continue
        used |= _references(stmt)
        if isinstance(stmt, ExportDecl) and stmt.source is None:
            used.update(spec.local for spec in stmt.specifiers)
    if source.template is not None:
        for element in iter_template(source.template.root):
            if element.tag and element.tag != "#root":
                used.add(element.tag)
                used.add(kebab_to_pascal(element.tag))
            for name, value in element.attributes.items():
                if is_directive(name):
                    used.update(IDENTIFIER_RE.findall(value))
            for expression in element.interpolations:
                used.update(IDENTIFIER_RE.findall(expression))
    return used


def _local_declarations(source: SourceFile, want_functions: bool) -> List[DeclarationInfo]:
    found: List[DeclarationInfo] = []
    seen: Set[Tuple[str, int]] = set()
    for owner, func in _named_functions(source):
        body = func.body
        used = _references(body)
        for node in walk(body):
            if want_functions and isinstance(node, Function) and node.is_declaration and node.name:
                name, line = node.name.name, source.line_of(node)
            elif isinstance(node, VariableDeclarator) and isinstance(node.target, Identifier):
                if isinstance(node.init, Function) != want_functions:
                    continue
                name, line = node.target.name, source.line_of(node)
            else:
                continue
            if (name, line) in seen:
                continue
            seen.add((name, line))
            found.append(DeclarationInfo(
                name=name,
                line=line,
                kind="function" if want_functions else "variable",
                function_name=owner,
                is_used=name in used,
            ))
    return found


def extract_local_functions(source: SourceFile) -> List[DeclarationInfo]:
    return _local_declarations(source, want_functions=True)


def extract_local_variables(source: SourceFile) -> List[DeclarationInfo]:
    return _local_declarations(source, want_functions=False)


def _type_members(source: SourceFile, annotation: Optional[SyntaxNode]) -> List[str]:
    """Property names of an inline object type or a same-file interface/type."""
    if isinstance(annotation, ObjectType):
        return [m.name.name for m in annotation.members if isinstance(m, PropertySignature)]
    if not isinstance(annotation, Identifier):
        return []
    for stmt in source.ast.body:
        decl = stmt.declaration if isinstance(stmt, ExportDecl) else stmt
        if isinstance(decl, InterfaceDecl) and decl.name.name == annotation.name:
            return [m.name.name for m in decl.body.members if isinstance(m, PropertySignature)]
        if isinstance(decl, TypeAliasDecl) and decl.name.name == annotation.name:
            if isinstance(decl.value, ObjectType):
                return [m.name.name for m in decl.value.members if isinstance(m, PropertySignature)]
    return []


def _pattern_keys(pattern: SyntaxNode) -> List[str]:
    """Top-level keys pulled out by an object destructuring pattern."""
    keys: List[str] = []
    if not isinstance(pattern, ObjectPattern):
        return keys
    for prop in pattern.properties:
        if isinstance(prop, Identifier):
            keys.append(prop.name)
        elif isinstance(prop, PatternProperty) and isinstance(prop.key, PropertyName):
            keys.append(prop.key.name)
        elif isinstance(prop, AssignmentPattern) and isinstance(prop.target, Identifier):
            keys.append(prop.target.name)
    return keys


def extract_component_props(source: SourceFile) -> List[ComponentPropsInfo]:
    components: List[ComponentPropsInfo] = []
    for name, func in _named_functions(source):
        if not is_pascal_case(name) or not func.params:
            continue
        first = func.params[0]
        declared = _type_members(source, first.type_annotation)
        if not declared:
            continue
        used = set(_pattern_keys(first.pattern))
        if isinstance(first.pattern, Identifier):
            props_name = first.pattern.name
            for node in walk(func.body):
                if (
                    isinstance(node, MemberExpr)
                    and isinstance(node.object, Identifier)
                    and node.object.name == props_name
                    and isinstance(node.property, PropertyName)
                ):
                    used.add(node.property.name)
        line = source.line_of(func)
        components.append(ComponentPropsInfo(
            component_name=name,
            line=line,
            props=[
                PropInfo(name=p, line=line, component_name=name, is_declared=True, is_used=p in used)
                for p in declared
            ],
        ))
    return components


def extract_function_arguments(source: SourceFile) -> List[FunctionArgumentsInfo]:
    functions: List[FunctionArgumentsInfo] = []
    for name, func in _named_functions(source):
        if is_pascal_case(name) or not func.params:
            continue
        used = _references(func.body)
        arguments: List[ArgumentInfo] = []
        for param in func.params:
            if param.rest or isinstance(param.pattern, RestElement):
                continue
            for arg in binding_names(param.pattern):
                arguments.append(ArgumentInfo(
                    name=arg,
                    line=source.line_of(param),
                    function_name=name,
                    is_declared=True,
                    is_used=arg in used,
                ))
        if arguments:
            functions.append(FunctionArgumentsInfo(
                function_name=name, line=source.line_of(func), arguments=arguments,
            ))
    return functions


# ===================================================================
# Derived-metadata cache
# ===================================================================

class MetadataCache:
    """Definitions and outline per file, keyed by ``(path, content_hash)``.

    A changed file gets a new hash and therefore a fresh entry; callers
    that know a file changed should still call :meth:`invalidate` so the
    stale entry is dropped.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[str, FileMetadata]] = {}

    def get_file_metadata(self, source: SourceFile) -> FileMetadata:
        cached = self._entries.get(source.path)
        if cached is not None and cached[0] == source.content_hash:
            return cached[1]
        metadata = FileMetadata(
            definitions=extract_definitions(source),
            outline=extract_outline(source),
        )
        self._entries[source.path] = (source.content_hash, metadata)
        return metadata

    def invalidate(self, path: str) -> None:
        self._entries.pop(path, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# ===================================================================
# Getters
# ===================================================================

class MetadataGetters:
    """Tiered read interface over file nodes.

    ``sources`` maps file paths to their parsed :class:`SourceFile` (the live
    AST tier); ``store`` is the optional persistent index.
    """

    def __init__(
        self,
        sources: Optional[Dict[str, SourceFile]] = None,
        store: Optional[IndexStore] = None,
        cache: Optional[MetadataCache] = None,
    ) -> None:
        self.sources = sources or {}
        self.store = store
        self.cache = cache or MetadataCache()

    def source_for(self, node: GraphNode) -> Optional[SourceFile]:
        if node.kind != "file":
            return None
        return self.sources.get(node.file_path)

    # ------------------------------------------------------------------
    # Exports / imports / usages (View Map, then AST)
    # ------------------------------------------------------------------

    def get_exports(self, node: GraphNode) -> List[ExportInfo]:
        if node.kind != "file":
            return []
        if node.views is not None and node.views.exports:
            return node.views.exports
        source = self.source_for(node)
        return compute_exports(source) if source is not None else []

    def get_imports(self, node: GraphNode) -> List[ImportInfo]:
        if node.kind != "file":
            return []
        if node.views is not None and node.views.imports:
            return node.views.imports
        source = self.source_for(node)
        return compute_imports(source) if source is not None else []

    def get_symbol_usages(self, node: GraphNode, symbol_name: str) -> List[str]:
        """Paths of files importing *symbol_name* from *node*'s file."""
        if node.kind != "file" or node.views is None:
            return []
        return list(node.views.usages.get(symbol_name, []))

    # ------------------------------------------------------------------
    # Async variants (index first)
    # ------------------------------------------------------------------

    def _store_call(self, func, node: GraphNode):
        if self.store is None:
            return None
        try:
            return func(self.store, node.file_path)
        except (sqlite3.Error, IndexStoreError) as exc:
            logger.warning("Index lookup for %s failed, falling back: %s", node.file_path, exc)
            return None

    async def get_exports_async(self, node: GraphNode) -> List[ExportInfo]:
        if node.kind != "file":
            return []
        exports = await asyncio.to_thread(self._store_call, query.get_exports, node)
        if exports:
            return exports
        return self.get_exports(node)

    async def get_imports_async(self, node: GraphNode) -> List[ImportInfo]:
        if node.kind != "file":
            return []
        imports = await asyncio.to_thread(self._store_call, query.get_imports, node)
        if imports:
            return imports
        return self.get_imports(node)

    async def get_symbol_usages_async(self, node: GraphNode, symbol_name: str) -> List[str]:
        if node.kind != "file":
            return []
        usages = await asyncio.to_thread(self._store_call, query.get_symbol_usages, node)
        if usages and usages.get(symbol_name):
            return list(usages[symbol_name])
        return self.get_symbol_usages(node, symbol_name)

    # ------------------------------------------------------------------
    # Live-AST only
    # ------------------------------------------------------------------

    def get_local_functions(self, node: GraphNode) -> List[DeclarationInfo]:
        source = self.source_for(node)
        return extract_local_functions(source) if source is not None else []

    def get_local_variables(self, node: GraphNode) -> List[DeclarationInfo]:
        source = self.source_for(node)
        return extract_local_variables(source) if source is not None else []

    def get_used_identifiers(self, node: GraphNode) -> Set[str]:
        source = self.source_for(node)
        return extract_used_identifiers(source) if source is not None else set()

    def get_component_props(self, node: GraphNode) -> List[ComponentPropsInfo]:
        source = self.source_for(node)
        return extract_component_props(source) if source is not None else []

    def get_function_arguments(self, node: GraphNode) -> List[FunctionArgumentsInfo]:
        source = self.source_for(node)
        return extract_function_arguments(source) if source is not None else []

    def get_file_metadata(self, node: GraphNode) -> Optional[FileMetadata]:
        source = self.source_for(node)
        return self.cache.get_file_metadata(source) if source is not None else None

    def invalidate(self, path: str) -> None:
        self.cache.invalidate(path)
