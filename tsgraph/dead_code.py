"""Dead-code analysis over the metadata getter layer.

Reads only what :class:`~tsgraph.metadata.MetadataGetters` returns for each
file node; the graph itself is never modified.

Cross-file import matching is approximate: an import counts as a use of an
export when the names match and the import specifier contains the
exporting file's name without extension.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .metadata import MetadataGetters
from .models import ExportInfo, GraphNode, ImportInfo

logger = logging.getLogger(__name__)

CATEGORIES = (
    "unused_exports",
    "unused_imports",
    "dead_functions",
    "unused_variables",
    "unused_props",
    "unused_arguments",
)

_SCRIPT_EXT_RE = re.compile(r"\.(tsx?|jsx?|vue)$")


@dataclass
class DeadCodeItem:
    file_path: str
    symbol_name: str
    line: int
    kind: str
    category: str
    from_path: Optional[str] = None
    component_name: Optional[str] = None
    function_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "filePath": self.file_path,
            "symbolName": self.symbol_name,
            "line": self.line,
            "kind": self.kind,
            "category": self.category,
        }
        if self.from_path is not None:
            payload["from"] = self.from_path
        if self.component_name is not None:
            payload["componentName"] = self.component_name
        if self.function_name is not None:
            payload["functionName"] = self.function_name
        return payload


@dataclass
class DeadCodeResults:
    unused_exports: List[DeadCodeItem] = field(default_factory=list)
    unused_imports: List[DeadCodeItem] = field(default_factory=list)
    dead_functions: List[DeadCodeItem] = field(default_factory=list)
    unused_variables: List[DeadCodeItem] = field(default_factory=list)
    unused_props: List[DeadCodeItem] = field(default_factory=list)
    unused_arguments: List[DeadCodeItem] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return sum(len(getattr(self, name)) for name in CATEGORIES)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            name: [item.to_dict() for item in getattr(self, name)] for name in CATEGORIES
        }
        payload["total_count"] = self.total_count
        return payload


@dataclass
class _FileFacts:
    node: GraphNode
    exports: List[ExportInfo]
    imports: List[ImportInfo]
    used: Set[str]


def _base_name(path: str) -> str:
    return _SCRIPT_EXT_RE.sub("", path.rsplit("/", 1)[-1])


def _imported_elsewhere(export: ExportInfo, owner: _FileFacts, files: List[_FileFacts]) -> bool:
    stem = _base_name(owner.node.file_path)
    for other in files:
        if other.node.file_path == owner.node.file_path:
            continue
        for imp in other.imports:
            if imp.name == export.name and stem in imp.from_path:
                return True
    return False


def analyze_dead_code(nodes: List[GraphNode], getters: MetadataGetters) -> DeadCodeResults:
    """Report unused exports, imports, locals, props and arguments.

    Only ``file`` nodes are considered; every other node kind is skipped.
    """
    results = DeadCodeResults()
    file_nodes = [n for n in nodes if n.kind == "file"]
    if not file_nodes:
        logger.warning("No file nodes to analyse")
        return results

    files = [
        _FileFacts(
            node=node,
            exports=getters.get_exports(node),
            imports=getters.get_imports(node),
            used=getters.get_used_identifiers(node),
        )
        for node in file_nodes
    ]

    for facts in files:
        path = facts.node.file_path
        for export in facts.exports:
            if export.name in facts.used or _imported_elsewhere(export, facts, files):
                continue
            results.unused_exports.append(DeadCodeItem(
                file_path=path, symbol_name=export.name, line=export.line,
                kind="export", category="unusedExport",
            ))
        for imp in facts.imports:
            if imp.name not in facts.used:
                results.unused_imports.append(DeadCodeItem(
                    file_path=path, symbol_name=imp.name, line=imp.line,
                    kind="import", category="unusedImport", from_path=imp.from_path,
                ))

        for func in getters.get_local_functions(facts.node):
            if not func.is_used:
                results.dead_functions.append(DeadCodeItem(
                    file_path=path, symbol_name=func.name, line=func.line,
                    kind="function", category="deadFunction", function_name=func.function_name,
                ))
        for var in getters.get_local_variables(facts.node):
            if not var.is_used:
                results.unused_variables.append(DeadCodeItem(
                    file_path=path, symbol_name=var.name, line=var.line,
                    kind="variable", category="unusedVariable", function_name=var.function_name,
                ))

        for component in getters.get_component_props(facts.node):
            for prop in component.props:
                if prop.is_declared and not prop.is_used:
                    results.unused_props.append(DeadCodeItem(
                        file_path=path, symbol_name=prop.name, line=prop.line,
                        kind="prop", category="unusedProp", component_name=component.component_name,
                    ))
        for function in getters.get_function_arguments(facts.node):
            for arg in function.arguments:
                if arg.is_declared and not arg.is_used:
                    results.unused_arguments.append(DeadCodeItem(
                        file_path=path, symbol_name=arg.name, line=arg.line,
                        kind="argument", category="unusedArgument", function_name=function.function_name,
                    ))

    logger.info(
        "Dead-code analysis: %d exports, %d imports, %d functions, %d variables, "
        "%d props, %d arguments",
        len(results.unused_exports), len(results.unused_imports), len(results.dead_functions),
        len(results.unused_variables), len(results.unused_props), len(results.unused_arguments),
    )
    return results


def flatten(results: DeadCodeResults) -> List[DeadCodeItem]:
    """All findings in one list, grouped by category then file and line."""
    items: List[DeadCodeItem] = []
    for name in CATEGORIES:
        items.extend(sorted(getattr(results, name), key=lambda i: (i.file_path, i.line, i.symbol_name)))
    return items
