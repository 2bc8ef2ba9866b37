"""Symbol and dependency graph builder.

Walks every file once, following imports depth-first so an importing file
always sees the nodes of the files it imports.  Produces one
:class:`~tsgraph.models.GraphNode` per import binding, top-level
declaration, component statement and synthetic root, plus one ``file``
node per parsed file carrying its view map.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Set

from .config import DEFAULT_ALIASES, FRAMEWORK_PRIMITIVES
from .errors import ParseError
from .models import GraphNode, SourceFile, dialect_for_path, file_name, file_stem
from .parser import SourceParser, find_jsx_return
from .resolver import resolve_import
from .syntax import (
    ArrayPattern,
    AwaitExpr,
    Block,
    CallExpr,
    ClassDecl,
    EnumDecl,
    ExportDecl,
    ExpressionStatement,
    Function,
    Identifier,
    ImportDecl,
    InterfaceDecl,
    JsxElement,
    MemberExpr,
    ObjectPattern,
    PropertyName,
    ReturnStatement,
    SyntaxNode,
    TypeAliasDecl,
    VariableDecl,
    binding_names,
    calls_hook,
    identifiers,
    is_pascal_case,
    walk,
)
from .views import attach_usage_views, build_views
from .vue import template_references

logger = logging.getLogger(__name__)

FILE_ROOT = "FILE_ROOT"
JSX_ROOT = "JSX_ROOT"
TEMPLATE_ROOT = "TEMPLATE_ROOT"
DEFAULT = "default"

_REF_CALLEES = {"ref", "reactive", "shallowRef", "shallowReactive", "toRef", "toRefs", "customRef"}


def node_id(path: str, local_name: str) -> str:
    return f"{path}::{local_name}"


def infer_kind(init_text: str, init: Optional[SyntaxNode]) -> str:
    """Classify a variable by its initializer."""
    if "computed" in init_text:
        return "computed"
    if init_text.startswith("use"):
        return "hook"
    if "storeToRefs" in init_text:
        return "store"
    if isinstance(init, Function):
        return "function"
    if isinstance(init, ClassDecl):
        return "class"
    if isinstance(init, CallExpr) and isinstance(init.callee, Identifier):
        if init.callee.name in _REF_CALLEES:
            return "ref"
    return "variable"


# ===================================================================
# Project builder
# ===================================================================

class ProjectGraphBuilder:
    """Build the dependency graph for a whole ``{path: content}`` file map."""

    def __init__(
        self,
        files: Dict[str, str],
        aliases: Optional[Dict[str, str]] = None,
        parser: Optional[SourceParser] = None,
        on_file_done: Optional[Callable[[int, int, str], None]] = None,
    ) -> None:
        self.files = files
        self.file_keys = set(files)
        self.aliases = dict(DEFAULT_ALIASES if aliases is None else aliases)
        self.parser = parser or SourceParser()
        self.nodes: Dict[str, GraphNode] = {}
        self.processed_files: Set[str] = set()
        self.source_files: Dict[str, SourceFile] = {}
        self.failed_files: Dict[str, str] = {}
        self.roots: Dict[str, str] = {}
        self.file_imports: Dict[str, List[str]] = {}
        self.on_file_done = on_file_done
        self.total = sum(1 for p in files if dialect_for_path(p) is not None)
        self.done = 0

    def build(self) -> List[GraphNode]:
        """Parse every supported file and return the pruned node list."""
        for path in sorted(self.files):
            if dialect_for_path(path) is None:
                continue
            self.process_file(path)
        self._add_file_nodes()
        self._prune()
        logger.info(
            "Built graph: %d nodes from %d files (%d failed)",
            len(self.nodes), len(self.source_files), len(self.failed_files),
        )
        return list(self.nodes.values())

    def process_file(self, path: str) -> None:
        """Parse *path* once; files it imports are processed first."""
        if path in self.processed_files:
            return
        self.processed_files.add(path)
        text = self.files.get(path)
        if text is None or dialect_for_path(path) is None:
            return

        try:
            source = self.parser.parse(path, text)
        except ParseError as exc:
            logger.warning("Failed to parse %s: %s", path, exc)
            self.failed_files[path] = str(exc)
            self._file_done(path)
            return
        self._file_done(path)

        before = set(self.nodes)
        try:
            _FileGraph(self, source).build()
        except Exception as exc:
            logger.warning("Failed to build graph for %s: %s", path, exc)
            self.failed_files[path] = str(exc)
            for stale in [nid for nid, n in self.nodes.items() if nid not in before and n.file_path == path]:
                del self.nodes[stale]
            self.roots.pop(path, None)
            return
        self.source_files[path] = source

    def _file_done(self, path: str) -> None:
        self.done += 1
        if self.on_file_done is not None:
            self.on_file_done(self.done, self.total, path)

    # ------------------------------------------------------------------
    # Node registry
    # ------------------------------------------------------------------

    def add_node(self, node: GraphNode, replace: bool = True) -> GraphNode:
        if not replace and node.id in self.nodes:
            return self.nodes[node.id]
        self.nodes[node.id] = node
        return node

    def root_or_default(self, path: str) -> str:
        return self.roots.get(path, node_id(path, DEFAULT))

    # ------------------------------------------------------------------
    # Final passes
    # ------------------------------------------------------------------

    def _add_file_nodes(self) -> None:
        file_nodes: List[GraphNode] = []
        for path in sorted(self.source_files):
            source = self.source_files[path]
            file_nodes.append(self.add_node(GraphNode(
                id=path,
                label=file_stem(path),
                file_path=path,
                kind="file",
                code_snippet=source.text,
                start_line=1,
                end_line=source.text.count("\n") + 1,
                dependencies=list(self.file_imports.get(path, [])),
                views=build_views(source),
            )))
        attach_usage_views(file_nodes)

    def _prune(self) -> None:
        """Drop self-loops and dependencies on nodes that do not exist."""
        for node in self.nodes.values():
            node.dependencies = [
                dep for dep in node.dependencies if dep != node.id and dep in self.nodes
            ]


# ===================================================================
# Per-file builder
# ===================================================================

class _FileGraph:
    """Nodes and dependencies contributed by a single source file."""

    def __init__(self, project: ProjectGraphBuilder, source: SourceFile) -> None:
        self.project = project
        self.source = source
        self.path = source.path
        self.local_defs: Set[str] = set()
        self.scan: Dict[str, SyntaxNode] = {}
        self.default_target: Optional[str] = None
        self.statement_ids: List[str] = []

    def build(self) -> None:
        self._scan_imports()
        for stmt in self.source.ast.body:
            if isinstance(stmt, (VariableDecl, Function, ClassDecl, TypeAliasDecl,
                                 InterfaceDecl, EnumDecl, ExportDecl)):
                self._declaration(stmt)
            elif isinstance(stmt, ExpressionStatement):
                self._top_level_call(stmt)
        self._resolve_dependencies()

        root_id: Optional[str] = None
        if self.source.dialect == "vue" and self.source.template is not None:
            root_id = self._template_root()
        elif self.source.dialect in ("tsx", "jsx"):
            root_id = self._jsx_root()
        else:
            root_id = self._file_root()
        self.project.roots[self.path] = root_id
        self._ensure_default(root_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _id(self, name: str) -> str:
        return node_id(self.path, name)

    def _file_ids(self) -> List[str]:
        return [nid for nid, n in self.project.nodes.items() if n.file_path == self.path]

    def _add(
        self,
        name: str,
        label: str,
        kind: str,
        snippet: str,
        start_line: int,
        end_line: Optional[int] = None,
        scan: Optional[SyntaxNode] = None,
        dependencies: Optional[List[str]] = None,
        replace: bool = True,
    ) -> GraphNode:
        nid = self._id(name)
        if not replace and nid in self.project.nodes:
            return self.project.nodes[nid]
        node = self.project.add_node(GraphNode(
            id=nid,
            label=label,
            file_path=self.path,
            kind=kind,
            code_snippet=snippet,
            start_line=start_line,
            end_line=end_line,
            dependencies=list(dependencies or []),
        ))
        self.local_defs.add(name)
        if scan is not None:
            self.scan[nid] = scan
        else:
            self.scan.pop(nid, None)
        return node

    # ------------------------------------------------------------------
    # 1. Imports
    # ------------------------------------------------------------------

    def _scan_imports(self) -> None:
        imported_files: List[str] = []
        for stmt in self.source.ast.body:
            if not isinstance(stmt, ImportDecl):
                continue
            target = resolve_import(self.path, stmt.source, self.project.aliases, self.project.file_keys)
            line = self.source.line_of(stmt)
            if target is None:
                self._external_import(stmt, line)
                continue

            self.project.process_file(target)
            if not stmt.type_only and target not in imported_files and target != self.path:
                imported_files.append(target)

            if stmt.default is not None:
                local = stmt.default.name
                self._add(
                    local, local, "module", f"import {local} from '{stmt.source}'", line,
                    dependencies=[node_id(target, DEFAULT)],
                )
            if stmt.namespace is not None:
                local = stmt.namespace.name
                self._add(
                    local, local, "module", f"import * as {local} from '{stmt.source}'", line,
                    dependencies=[self.project.root_or_default(target)],
                )
            for spec in stmt.specifiers:
                if spec.imported in FRAMEWORK_PRIMITIVES:
                    continue
                remote = node_id(target, DEFAULT if spec.imported == DEFAULT else spec.imported)
                self._add(
                    spec.local.name, spec.local.name, "module",
                    f"import {{ {spec.imported} }} from '{stmt.source}'", line,
                    dependencies=[remote],
                )
        self.project.file_imports[self.path] = imported_files

    def _external_import(self, stmt: ImportDecl, line: int) -> None:
        bindings = []
        if stmt.default is not None:
            bindings.append((stmt.default.name, stmt.default.name))
        if stmt.namespace is not None:
            bindings.append((stmt.namespace.name, stmt.namespace.name))
        bindings.extend((spec.imported, spec.local.name) for spec in stmt.specifiers)
        for imported, local in bindings:
            if imported in FRAMEWORK_PRIMITIVES:
                continue
            self._add(local, local, "module", f"import ... from '{stmt.source}'", line)

    # ------------------------------------------------------------------
    # 2. Declarations
    # ------------------------------------------------------------------

    def _declaration(self, stmt: SyntaxNode) -> None:
        outer = stmt
        is_export = isinstance(stmt, ExportDecl)
        is_default = is_export and stmt.default
        target = stmt.declaration if is_export else stmt
        snippet = self.source.snippet(outer)
        line = self.source.line_of(outer)
        end_line = self.source.end_line_of(outer)

        if target is None:
            if is_default and stmt.value is not None:
                self._default_expression(stmt, stmt.value)
            return

        if isinstance(target, VariableDecl):
            for declarator in target.declarators:
                init = declarator.init
                init_text = self.source.snippet(init) if init is not None else ""
                kind = infer_kind(init_text, init)
                for name in binding_names(declarator.target):
                    self._add(name, name, kind, snippet, line, end_line, scan=init)
                if (
                    isinstance(declarator.target, Identifier)
                    and is_pascal_case(declarator.target.name)
                    and isinstance(init, Function)
                    and calls_hook(init.body)
                ):
                    self._explode_component(declarator.target.name, init)
        elif isinstance(target, Function):
            name = target.name.name if target.name is not None else DEFAULT
            self._add(name, name, "function", snippet, line, end_line, scan=target)
            if is_default and name != DEFAULT:
                self.default_target = self._id(name)
            if is_pascal_case(name) and calls_hook(target.body):
                self._explode_component(name, target)
        elif isinstance(target, ClassDecl):
            name = target.name.name if target.name is not None else DEFAULT
            self._add(name, name, "class", snippet, line, end_line, scan=target)
            if is_default and name != DEFAULT:
                self.default_target = self._id(name)
        elif isinstance(target, TypeAliasDecl):
            self._add(target.name.name, target.name.name, "type", snippet, line, end_line, scan=target)
        elif isinstance(target, InterfaceDecl):
            self._add(target.name.name, target.name.name, "interface", snippet, line, end_line, scan=target)
        elif isinstance(target, EnumDecl):
            self._add(target.name.name, target.name.name, "enum", snippet, line, end_line, scan=target)

    def _default_expression(self, stmt: ExportDecl, value: SyntaxNode) -> None:
        """``export default <expr>``: the expression becomes the default node."""
        if isinstance(value, Identifier):
            self.default_target = self._id(value.name)
            return
        kind = "function" if isinstance(value, Function) else "class" if isinstance(value, ClassDecl) else "variable"
        self._add(
            DEFAULT, file_name(self.path), kind, self.source.snippet(stmt),
            self.source.line_of(stmt), self.source.end_line_of(stmt), scan=value,
        )

    def _top_level_call(self, stmt: ExpressionStatement) -> None:
        expr = stmt.expression
        is_await = isinstance(expr, AwaitExpr) and isinstance(expr.argument, CallExpr)
        if not (isinstance(expr, CallExpr) or is_await):
            return
        call = expr.argument if is_await else expr
        if isinstance(call.callee, Identifier):
            label = f"{call.callee.name}()"
        elif isinstance(call.callee, MemberExpr) and isinstance(call.callee.property, PropertyName):
            label = f"{call.callee.property.name}()"
        else:
            label = "Expression"
        if is_await:
            label = f"await {label}"
        line = self.source.line_of(stmt)
        self._add(
            f"setup_call_{line}", label, "call", self.source.snippet(stmt), line,
            self.source.end_line_of(stmt), scan=expr,
        )

    # ------------------------------------------------------------------
    # 3. Components
    # ------------------------------------------------------------------

    def _explode_component(self, component: str, func: Function) -> None:
        """One node per top-level statement of a hook-using component body."""
        if not isinstance(func.body, Block):
            return
        for index, stmt in enumerate(func.body.body):
            label = f"statement {index + 1}"
            kind = "ref"
            names: List[str] = []

            if isinstance(stmt, VariableDecl) and stmt.declarators:
                declarator = stmt.declarators[0]
                names = binding_names(declarator.target)
                if isinstance(declarator.target, ArrayPattern):
                    label = f"[{', '.join(names)}]"
                elif isinstance(declarator.target, ObjectPattern):
                    label = f"{{{', '.join(names)}}}"
                elif names:
                    label = names[0]
                init = declarator.init
                if isinstance(init, AwaitExpr):
                    init = init.argument
                if isinstance(init, CallExpr) and isinstance(init.callee, Identifier):
                    if init.callee.name.startswith("use"):
                        kind = "hook"
            elif isinstance(stmt, ExpressionStatement) and isinstance(stmt.expression, CallExpr):
                callee = stmt.expression.callee
                if isinstance(callee, Identifier):
                    label = f"{callee.name}()"
                    if callee.name.startswith("use"):
                        kind = "hook"
            elif isinstance(stmt, ReturnStatement):
                label = "return JSX"
                kind = "template"

            snippet = self.source.snippet(stmt)
            line = self.source.line_of(stmt)
            end_line = self.source.end_line_of(stmt)
            stmt_name = f"{component}_stmt_{index + 1}"
            self._add(stmt_name, label, kind, snippet, line, end_line, scan=stmt)
            self.statement_ids.append(self._id(stmt_name))

            for name in names:
                self._add(name, name, kind, snippet, line, end_line, scan=stmt, replace=False)

    # ------------------------------------------------------------------
    # 4. Dependencies
    # ------------------------------------------------------------------

    def _resolve_dependencies(self) -> None:
        nodes = self.project.nodes
        for nid, subtree in self.scan.items():
            node = nodes.get(nid)
            if node is None:
                continue
            for ident in identifiers(subtree):
                if ident.name not in self.local_defs:
                    continue
                dep = self._id(ident.name)
                if dep != nid and dep in nodes:
                    node.add_dependency(dep)

    # ------------------------------------------------------------------
    # 5. Roots
    # ------------------------------------------------------------------

    def _link_components(self, root_id: str) -> None:
        for nid in self._file_ids():
            node = self.project.nodes[nid]
            if nid == root_id or node.kind in ("module", "template") or "_stmt_" in nid:
                continue
            if is_pascal_case(node.label):
                node.add_dependency(root_id)

    def _template_root(self) -> str:
        template = self.source.template
        known = {self.project.nodes[nid].local_name for nid in self._file_ids()}
        names = template_references(template.root, known)
        root = self._add(
            TEMPLATE_ROOT, f"{file_name(self.path)} <template>", "template",
            template.text, template.start_line,
            template.start_line + template.text.count("\n"),
            dependencies=[self._id(n) for n in names],
        )
        self._link_components(root.id)
        return root.id

    def _jsx_root(self) -> str:
        known = {self.project.nodes[nid].local_name for nid in self._file_ids()}
        jsx_refs: List[str] = []
        for sub in walk(self.source.ast):
            if not isinstance(sub, JsxElement):
                continue
            for ident in identifiers(sub):
                if ident.name in known and ident.name not in jsx_refs:
                    jsx_refs.append(ident.name)

        script = self.source.script
        ret = find_jsx_return(self.source.ast)
        if ret is not None:
            lines = script.text.split("\n")
            snippet = "\n".join(lines[ret.span.start_row:ret.span.end_row + 1])
            start_line = script.file_line(ret.span.start_row)
            end_line = script.file_line(ret.span.end_row)
        else:
            snippet = script.text
            start_line = script.file_line(0)
            end_line = script.file_line(script.text.count("\n"))

        dependencies = list(self.statement_ids)
        for name in jsx_refs:
            dep = self._id(name)
            if dep not in dependencies:
                dependencies.append(dep)
        root = self._add(
            JSX_ROOT, f"{file_name(self.path)} (View)", "template", snippet,
            start_line, end_line, dependencies=dependencies,
        )
        self._link_components(root.id)
        return root.id

    def _file_root(self) -> str:
        dependencies = self._file_ids()
        script = self.source.script
        root = self._add(
            FILE_ROOT, file_name(self.path), "module", script.text,
            script.file_line(0), script.file_line(script.text.count("\n")),
            dependencies=dependencies,
        )
        return root.id

    # ------------------------------------------------------------------
    # 6. Default export
    # ------------------------------------------------------------------

    def _ensure_default(self, root_id: Optional[str]) -> None:
        start_line = self.project.nodes[root_id].start_line if root_id is not None else 1
        default = self._add(
            DEFAULT, file_name(self.path), "module", "", start_line, replace=False,
        )
        if root_id is not None:
            default.add_dependency(root_id)
        if self.default_target is not None:
            default.add_dependency(self.default_target)
