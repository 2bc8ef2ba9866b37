"""Sealed syntax tree consumed by the graph builder, indexer and getters.

Every construct the analysis layers look at has its own dataclass.  Anything
else the front-end meets is kept as a :class:`Composite` holding its converted
children, so identifiers nested in unmodelled syntax are still visible.

Traversal goes through :func:`iter_children`, which dispatches over every
variant and raises ``TypeError`` for a class it does not know.  Adding a new
variant without teaching :func:`iter_children` about it fails loudly on the
first walk instead of silently hiding a subtree.

Positions are relative to the parsed text (the extracted ``<script>`` block
for Vue files); rows and columns are 0-based, columns count characters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class Span:
    start_byte: int
    end_byte: int
    start_row: int
    start_col: int
    end_row: int
    end_col: int


@dataclass
class SyntaxNode:
    span: Span


# ===================================================================
# Leaves
# ===================================================================

@dataclass
class Identifier(SyntaxNode):
    """A name in reference or binding position.

    ``binding`` is true where the name is introduced (declaration names,
    parameters, destructuring targets, import locals).
    """

    name: str
    binding: bool = False


@dataclass
class PropertyName(SyntaxNode):
    """Object keys, member properties, signatures: never a reference."""

    name: str


@dataclass
class Literal(SyntaxNode):
    text: str


# ===================================================================
# Modules and imports / exports
# ===================================================================

@dataclass
class Module(SyntaxNode):
    body: List[SyntaxNode]


@dataclass
class ImportSpecifier(SyntaxNode):
    imported: str
    local: Identifier
    type_only: bool = False


@dataclass
class ImportDecl(SyntaxNode):
    source: str
    default: Optional[Identifier] = None
    namespace: Optional[Identifier] = None
    specifiers: List[ImportSpecifier] = field(default_factory=list)
    type_only: bool = False

    def bindings(self) -> List[Identifier]:
        out: List[Identifier] = []
        if self.default is not None:
            out.append(self.default)
        if self.namespace is not None:
            out.append(self.namespace)
        out.extend(spec.local for spec in self.specifiers)
        return out


@dataclass
class ExportSpecifier(SyntaxNode):
    local: str
    exported: str


@dataclass
class ExportDecl(SyntaxNode):
    """``export`` in all its forms.

    ``declaration`` holds wrapped declarations, ``value`` the expression of
    ``export default <expr>``, ``specifiers`` the ``export { a as b }`` list.
    """

    default: bool = False
    declaration: Optional[SyntaxNode] = None
    value: Optional[SyntaxNode] = None
    specifiers: List[ExportSpecifier] = field(default_factory=list)
    source: Optional[str] = None


# ===================================================================
# Declarations
# ===================================================================

@dataclass
class VariableDeclarator(SyntaxNode):
    target: SyntaxNode
    type_annotation: Optional[SyntaxNode] = None
    init: Optional[SyntaxNode] = None


@dataclass
class VariableDecl(SyntaxNode):
    kind: str
    declarators: List[VariableDeclarator]


@dataclass
class Parameter(SyntaxNode):
    pattern: SyntaxNode
    type_annotation: Optional[SyntaxNode] = None
    default: Optional[SyntaxNode] = None
    rest: bool = False
    optional: bool = False


@dataclass
class Function(SyntaxNode):
    """Function declarations, function expressions and arrow functions."""

    name: Optional[Identifier]
    params: List[Parameter]
    body: SyntaxNode
    return_type: Optional[SyntaxNode] = None
    arrow: bool = False
    is_async: bool = False
    is_declaration: bool = False


@dataclass
class ClassMember(SyntaxNode):
    name: PropertyName
    kind: str
    value: Optional[SyntaxNode] = None
    type_annotation: Optional[SyntaxNode] = None


@dataclass
class ClassDecl(SyntaxNode):
    name: Optional[Identifier]
    heritage: List[SyntaxNode]
    members: List[SyntaxNode]
    is_declaration: bool = True


@dataclass
class PropertySignature(SyntaxNode):
    name: PropertyName
    type_annotation: Optional[SyntaxNode] = None
    optional: bool = False


@dataclass
class ObjectType(SyntaxNode):
    members: List[SyntaxNode]


@dataclass
class TypeAliasDecl(SyntaxNode):
    name: Identifier
    value: SyntaxNode


@dataclass
class InterfaceDecl(SyntaxNode):
    name: Identifier
    extends: List[SyntaxNode]
    body: ObjectType


@dataclass
class EnumMember(SyntaxNode):
    name: PropertyName
    value: Optional[SyntaxNode] = None


@dataclass
class EnumDecl(SyntaxNode):
    name: Identifier
    members: List[EnumMember]


# ===================================================================
# Statements
# ===================================================================

@dataclass
class Block(SyntaxNode):
    body: List[SyntaxNode]


@dataclass
class ExpressionStatement(SyntaxNode):
    expression: SyntaxNode


@dataclass
class ReturnStatement(SyntaxNode):
    argument: Optional[SyntaxNode] = None


# ===================================================================
# Expressions
# ===================================================================

@dataclass
class MemberExpr(SyntaxNode):
    object: SyntaxNode
    property: SyntaxNode
    computed: bool = False


@dataclass
class CallExpr(SyntaxNode):
    callee: SyntaxNode
    arguments: List[SyntaxNode]
    is_new: bool = False
    type_arguments: Optional[SyntaxNode] = None


@dataclass
class AwaitExpr(SyntaxNode):
    argument: SyntaxNode


@dataclass
class Property(SyntaxNode):
    key: SyntaxNode
    value: SyntaxNode
    computed: bool = False
    shorthand: bool = False


@dataclass
class ObjectLiteral(SyntaxNode):
    properties: List[SyntaxNode]


@dataclass
class SpreadElement(SyntaxNode):
    argument: SyntaxNode


# ===================================================================
# Patterns
# ===================================================================

@dataclass
class PatternProperty(SyntaxNode):
    key: SyntaxNode
    value: SyntaxNode
    default: Optional[SyntaxNode] = None
    computed: bool = False


@dataclass
class ObjectPattern(SyntaxNode):
    properties: List[SyntaxNode]


@dataclass
class ArrayPattern(SyntaxNode):
    elements: List[SyntaxNode]


@dataclass
class AssignmentPattern(SyntaxNode):
    target: SyntaxNode
    default: SyntaxNode


@dataclass
class RestElement(SyntaxNode):
    argument: SyntaxNode


# ===================================================================
# JSX
# ===================================================================

@dataclass
class JsxAttribute(SyntaxNode):
    name: PropertyName
    value: Optional[SyntaxNode] = None


@dataclass
class JsxExpression(SyntaxNode):
    expression: Optional[SyntaxNode] = None


@dataclass
class JsxText(SyntaxNode):
    text: str


@dataclass
class JsxElement(SyntaxNode):
    """``<Tag ...>children</Tag>``, self-closing tags and fragments (no name)."""

    name: Optional[SyntaxNode]
    attributes: List[SyntaxNode]
    children: List[SyntaxNode]
    self_closing: bool = False


# ===================================================================
# Everything else
# ===================================================================

@dataclass
class Composite(SyntaxNode):
    """A construct with no dedicated variant, keyed by its grammar kind."""

    kind: str
    children: List[SyntaxNode]


# ===================================================================
# Traversal
# ===================================================================

def _present(*nodes: Optional[SyntaxNode]) -> List[SyntaxNode]:
    return [n for n in nodes if n is not None]


def iter_children(node: SyntaxNode) -> List[SyntaxNode]:
    """Return the direct children of *node* in source order."""
    if isinstance(node, (Identifier, PropertyName, Literal, JsxText)):
        return []
    if isinstance(node, Module):
        return list(node.body)
    if isinstance(node, ImportSpecifier):
        return [node.local]
    if isinstance(node, ImportDecl):
        return list(node.bindings())
    if isinstance(node, ExportSpecifier):
        return []
    if isinstance(node, ExportDecl):
        return _present(node.declaration, node.value)
    if isinstance(node, VariableDeclarator):
        return _present(node.target, node.type_annotation, node.init)
    if isinstance(node, VariableDecl):
        return list(node.declarators)
    if isinstance(node, Parameter):
        return _present(node.pattern, node.type_annotation, node.default)
    if isinstance(node, Function):
        return _present(node.name, *node.params, node.return_type, node.body)
    if isinstance(node, ClassMember):
        return _present(node.name, node.type_annotation, node.value)
    if isinstance(node, ClassDecl):
        return _present(node.name, *node.heritage, *node.members)
    if isinstance(node, PropertySignature):
        return _present(node.name, node.type_annotation)
    if isinstance(node, ObjectType):
        return list(node.members)
    if isinstance(node, TypeAliasDecl):
        return [node.name, node.value]
    if isinstance(node, InterfaceDecl):
        return [node.name, *node.extends, node.body]
    if isinstance(node, EnumMember):
        return _present(node.name, node.value)
    if isinstance(node, EnumDecl):
        return [node.name, *node.members]
    if isinstance(node, Block):
        return list(node.body)
    if isinstance(node, ExpressionStatement):
        return [node.expression]
    if isinstance(node, ReturnStatement):
        return _present(node.argument)
    if isinstance(node, MemberExpr):
        return [node.object, node.property]
    if isinstance(node, CallExpr):
        extra = [node.type_arguments] if node.type_arguments is not None else []
        return [node.callee, *extra, *node.arguments]
    if isinstance(node, AwaitExpr):
        return [node.argument]
    if isinstance(node, Property):
        return [node.key, node.value]
    if isinstance(node, ObjectLiteral):
        return list(node.properties)
    if isinstance(node, SpreadElement):
        return [node.argument]
    if isinstance(node, PatternProperty):
        return _present(node.key, node.value, node.default)
    if isinstance(node, ObjectPattern):
        return list(node.properties)
    if isinstance(node, ArrayPattern):
        return list(node.elements)
    if isinstance(node, AssignmentPattern):
        return [node.target, node.default]
    if isinstance(node, RestElement):
        return [node.argument]
    if isinstance(node, JsxAttribute):
        return _present(node.name, node.value)
    if isinstance(node, JsxExpression):
        return _present(node.expression)
    if isinstance(node, JsxElement):
        return _present(node.name, *node.attributes, *node.children)
    if isinstance(node, Composite):
        return list(node.children)
    raise TypeError(f"Unhandled syntax node: {type(node).__name__}")


def walk(node: SyntaxNode) -> Iterator[SyntaxNode]:
    """Pre-order walk over *node* and all of its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(iter_children(current)))


def identifiers(node: SyntaxNode) -> Iterator[Identifier]:
    """Every :class:`Identifier` below *node*, bindings included."""
    for sub in walk(node):
        if isinstance(sub, Identifier):
            yield sub


def binding_identifiers(pattern: Optional[SyntaxNode]) -> List[Identifier]:
    """Identifiers bound by a declaration target or parameter pattern."""
    if pattern is None:
        return []
    if isinstance(pattern, Identifier):
        return [pattern]
    if isinstance(pattern, ObjectPattern):
        found: List[Identifier] = []
        for prop in pattern.properties:
            found.extend(binding_identifiers(prop))
        return found
    if isinstance(pattern, PatternProperty):
        return binding_identifiers(pattern.value)
    if isinstance(pattern, ArrayPattern):
        found = []
        for element in pattern.elements:
            found.extend(binding_identifiers(element))
        return found
    if isinstance(pattern, AssignmentPattern):
        return binding_identifiers(pattern.target)
    if isinstance(pattern, RestElement):
        return binding_identifiers(pattern.argument)
    if isinstance(pattern, Parameter):
        return binding_identifiers(pattern.pattern)
    return []


def binding_names(pattern: Optional[SyntaxNode]) -> List[str]:
    """Names bound by a declaration target or parameter pattern."""
    return [ident.name for ident in binding_identifiers(pattern)]


def callee_name(call: CallExpr) -> Optional[str]:
    """``foo`` for ``foo()``, ``bar`` for ``a.bar()``, else None."""
    callee = call.callee
    if isinstance(callee, Identifier):
        return callee.name
    if isinstance(callee, MemberExpr) and isinstance(callee.property, PropertyName):
        return callee.property.name
    return None


def calls_hook(node: SyntaxNode) -> bool:
    """True when any call below *node* targets an identifier starting with ``use``."""
    for sub in walk(node):
        if isinstance(sub, CallExpr) and isinstance(sub.callee, Identifier):
            if sub.callee.name.startswith("use"):
                return True
    return False


def unwrap_export(node: SyntaxNode) -> Optional[SyntaxNode]:
    """The declaration wrapped by an ``export``, or *node* itself."""
    if isinstance(node, ExportDecl):
        return node.declaration
    return node


def is_pascal_case(name: str) -> bool:
    return bool(name) and name[0].isupper()
