"""Dialect front-ends: tree-sitter parsing of TS/TSX/JS and Vue script blocks.

The concrete tree-sitter tree is converted straight away into the sealed
syntax tree of :mod:`tsgraph.syntax`; nothing downstream touches
tree-sitter nodes.  Grammars come from ``tree-sitter-typescript``, which
ships both the ``typescript`` and ``tsx`` languages.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .config_manager import load_parser_config
from .errors import ParseError
from .models import ScriptRegion, SourceFile, dialect_for_path, hash_content
from .syntax import (
    ArrayPattern,
    AssignmentPattern,
    AwaitExpr,
    Block,
    CallExpr,
    ClassDecl,
    ClassMember,
    Composite,
    EnumDecl,
    EnumMember,
    ExportDecl,
    ExportSpecifier,
    ExpressionStatement,
    Function,
    Identifier,
    ImportDecl,
    ImportSpecifier,
    InterfaceDecl,
    JsxAttribute,
    JsxElement,
    JsxExpression,
    JsxText,
    Literal,
    MemberExpr,
    Module,
    ObjectLiteral,
    ObjectPattern,
    ObjectType,
    Parameter,
    PatternProperty,
    Property,
    PropertyName,
    PropertySignature,
    RestElement,
    ReturnStatement,
    Span,
    SpreadElement,
    SyntaxNode,
    TypeAliasDecl,
    VariableDecl,
    VariableDeclarator,
    walk,
)
from .vue import split_sfc

logger = logging.getLogger(__name__)

# Script language -> tree-sitter grammar.  Plain .js goes through tsx since
# React projects routinely put JSX in .js files.
GRAMMAR_FOR_LANG: Dict[str, str] = {
    "ts": "typescript",
    "js": "tsx",
    "tsx": "tsx",
    "jsx": "tsx",
}

_FUNCTION_TYPES = {
    "function_declaration", "generator_function_declaration",
    "function_expression", "function", "generator_function", "arrow_function",
}
_CLASS_TYPES = {"class_declaration", "abstract_class_declaration", "class"}
_SKIPPED_TYPES = {"comment", "html_comment"}


# ===================================================================
# Tree-sitter grammars
# ===================================================================

class TreeSitterGrammars:
    """Lazily constructed tree-sitter parsers, one per grammar."""

    _LANGUAGE_FUNCS: Dict[str, str] = {
        "typescript": "language_typescript",
        "tsx": "language_tsx",
    }

    def __init__(self) -> None:
        self._parsers: Dict[str, Any] = {}
        self._init_parsers()

    def _init_parsers(self) -> None:
        import tree_sitter_typescript as tsts
        from tree_sitter import Language, Parser as TSParser

        for grammar, func_name in self._LANGUAGE_FUNCS.items():
            language = Language(getattr(tsts, func_name)())
            self._parsers[grammar] = TSParser(language)
            logger.debug("Loaded tree-sitter grammar %s", grammar)

    def supports(self, grammar: str) -> bool:
        return grammar in self._parsers

    def parse(self, grammar: str, source: bytes) -> Any:
        return self._parsers[grammar].parse(source)


_GRAMMARS: Optional[TreeSitterGrammars] = None


def get_grammars() -> TreeSitterGrammars:
    global _GRAMMARS
    if _GRAMMARS is None:
        _GRAMMARS = TreeSitterGrammars()
    return _GRAMMARS


# ===================================================================
# CST -> sealed syntax tree
# ===================================================================

def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


class _Converter:
    """Convert one tree-sitter tree into :mod:`tsgraph.syntax` nodes."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self._lines = source.split(b"\n")
        self._handlers: Dict[str, Callable[[Any], SyntaxNode]] = {
            "program": self._program,
            "import_statement": self._import,
            "export_statement": self._export,
            "lexical_declaration": self._variable_decl,
            "variable_declaration": self._variable_decl,
            "variable_declarator": self._declarator,
            "type_alias_declaration": self._type_alias,
            "interface_declaration": self._interface,
            "object_type": self._object_type,
            "interface_body": self._object_type,
            "property_signature": self._property_signature,
            "enum_declaration": self._enum,
            "statement_block": self._block,
            "expression_statement": self._expression_statement,
            "return_statement": self._return,
            "identifier": self._identifier,
            "type_identifier": self._identifier,
            "shorthand_property_identifier": self._identifier,
            "shorthand_property_identifier_pattern": self._binding,
            "property_identifier": self._property_name,
            "private_property_identifier": self._property_name,
            "member_expression": self._member,
            "subscript_expression": self._subscript,
            "call_expression": self._call,
            "new_expression": self._new,
            "await_expression": self._await,
            "object": self._object,
            "pair": self._pair,
            "spread_element": self._spread,
            "object_pattern": self._pattern,
            "array_pattern": self._pattern,
            "assignment_pattern": self._pattern,
            "rest_pattern": self._pattern,
            "pair_pattern": self._pattern,
            "object_assignment_pattern": self._pattern,
            "parenthesized_expression": self._parenthesized,
            "type_annotation": self._type_annotation,
            "jsx_element": self._jsx_element,
            "jsx_self_closing_element": self._jsx_self_closing,
            "jsx_fragment": self._jsx_fragment,
            "jsx_attribute": self._jsx_attribute,
            "jsx_expression": self._jsx_expression,
            "jsx_text": self._jsx_text,
            "string": self._literal,
            "number": self._literal,
            "this": self._literal,
            "super": self._literal,
        }
        for kind in _FUNCTION_TYPES:
            self._handlers[kind] = self._function
        for kind in _CLASS_TYPES:
            self._handlers[kind] = self._class

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def text(self, node: Any) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def _char_col(self, row: int, byte_col: int) -> int:
        if row >= len(self._lines):
            return byte_col
        return len(self._lines[row][:byte_col].decode("utf-8", errors="replace"))

    def span(self, node: Any) -> Span:
        srow, scol = node.start_point
        erow, ecol = node.end_point
        return Span(
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            start_row=srow,
            start_col=self._char_col(srow, scol),
            end_row=erow,
            end_col=self._char_col(erow, ecol),
        )

    def convert(self, node: Any) -> SyntaxNode:
        handler = self._handlers.get(node.type)
        if handler is None:
            return self._composite(node)
        return handler(node)

    def convert_opt(self, node: Optional[Any]) -> Optional[SyntaxNode]:
        return self.convert(node) if node is not None else None

    def _named(self, node: Any) -> List[Any]:
        return [c for c in node.named_children if c.type not in _SKIPPED_TYPES]

    def _composite(self, node: Any) -> SyntaxNode:
        children = self._named(node)
        if not children:
            return Literal(span=self.span(node), text=self.text(node))
        return Composite(
            span=self.span(node),
            kind=node.type,
            children=[self.convert(c) for c in children],
        )

    def _literal(self, node: Any) -> SyntaxNode:
        return Literal(span=self.span(node), text=self.text(node))

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def _identifier(self, node: Any) -> SyntaxNode:
        return Identifier(span=self.span(node), name=self.text(node))

    def _binding(self, node: Any) -> Identifier:
        return Identifier(span=self.span(node), name=self.text(node), binding=True)

    def _property_name(self, node: Any) -> PropertyName:
        return PropertyName(span=self.span(node), name=self.text(node))

    def _key(self, node: Any) -> tuple:
        """Return ``(key, computed)`` for an object or pattern key."""
        if node.type == "computed_property_name":
            inner = self._named(node)
            return (self.convert(inner[0]) if inner else self._literal(node)), True
        if node.type in ("property_identifier", "private_property_identifier",
                         "shorthand_property_identifier_pattern", "identifier"):
            return self._property_name(node), False
        if node.type == "string":
            return PropertyName(span=self.span(node), name=_strip_quotes(self.text(node))), False
        return self._literal(node), False

    # ------------------------------------------------------------------
    # Module level
    # ------------------------------------------------------------------

    def _program(self, node: Any) -> SyntaxNode:
        return Module(span=self.span(node), body=[self.convert(c) for c in self._named(node)])

    def _import(self, node: Any) -> SyntaxNode:
        source_node = node.child_by_field_name("source")
        decl = ImportDecl(
            span=self.span(node),
            source=_strip_quotes(self.text(source_node)) if source_node is not None else "",
            type_only=any(not c.is_named and c.type == "type" for c in node.children),
        )
        for child in node.named_children:
            if child.type != "import_clause":
                continue
            for part in child.named_children:
                if part.type == "identifier":
                    decl.default = self._binding(part)
                elif part.type == "namespace_import":
                    names = [c for c in part.named_children if c.type == "identifier"]
                    if names:
                        decl.namespace = self._binding(names[0])
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        decl.specifiers.append(self._import_specifier(spec))
        return decl

    def _import_specifier(self, spec: Any) -> ImportSpecifier:
        name = spec.child_by_field_name("name")
        alias = spec.child_by_field_name("alias")
        local_node = alias if alias is not None else name
        return ImportSpecifier(
            span=self.span(spec),
            imported=_strip_quotes(self.text(name)),
            local=self._binding(local_node),
            type_only=any(not c.is_named and c.type in ("type", "typeof") for c in spec.children),
        )

    def _export(self, node: Any) -> SyntaxNode:
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        source = node.child_by_field_name("source")
        specifiers: List[ExportSpecifier] = []
        for child in node.named_children:
            if child.type != "export_clause":
                continue
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                name = spec.child_by_field_name("name")
                alias = spec.child_by_field_name("alias")
                local = _strip_quotes(self.text(name))
                specifiers.append(ExportSpecifier(
                    span=self.span(spec),
                    local=local,
                    exported=_strip_quotes(self.text(alias)) if alias is not None else local,
                ))
        return ExportDecl(
            span=self.span(node),
            default=any(not c.is_named and c.type == "default" for c in node.children),
            declaration=self.convert_opt(declaration),
            value=self.convert_opt(value),
            specifiers=specifiers,
            source=_strip_quotes(self.text(source)) if source is not None else None,
        )

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _variable_decl(self, node: Any) -> SyntaxNode:
        kind = node.children[0].type if node.children else "var"
        declarators = [
            self._declarator(c) for c in node.named_children if c.type == "variable_declarator"
        ]
        return VariableDecl(span=self.span(node), kind=kind, declarators=declarators)

    def _declarator(self, node: Any) -> VariableDeclarator:
        return VariableDeclarator(
            span=self.span(node),
            target=self._pattern(node.child_by_field_name("name")),
            type_annotation=self.convert_opt(node.child_by_field_name("type")),
            init=self.convert_opt(node.child_by_field_name("value")),
        )

    def _parameters(self, node: Any) -> List[Parameter]:
        single = node.child_by_field_name("parameter")
        if single is not None:
            return [Parameter(span=self.span(single), pattern=self._pattern(single))]
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        params: List[Parameter] = []
        for child in self._named(params_node):
            if child.type in ("required_parameter", "optional_parameter"):
                pattern = child.child_by_field_name("pattern")
                if pattern is None:
                    continue
                params.append(Parameter(
                    span=self.span(child),
                    pattern=self._pattern(pattern),
                    type_annotation=self.convert_opt(child.child_by_field_name("type")),
                    default=self.convert_opt(child.child_by_field_name("value")),
                    rest=pattern.type == "rest_pattern",
                    optional=child.type == "optional_parameter",
                ))
            else:
                params.append(Parameter(
                    span=self.span(child),
                    pattern=self._pattern(child),
                    rest=child.type == "rest_pattern",
                ))
        return params

    def _function(self, node: Any) -> SyntaxNode:
        name = node.child_by_field_name("name")
        body = node.child_by_field_name("body")
        return Function(
            span=self.span(node),
            name=self._binding(name) if name is not None else None,
            params=self._parameters(node),
            body=self.convert(body) if body is not None else Block(span=self.span(node), body=[]),
            return_type=self.convert_opt(node.child_by_field_name("return_type")),
            arrow=node.type == "arrow_function",
            is_async=any(not c.is_named and c.type == "async" for c in node.children),
            is_declaration=node.type in ("function_declaration", "generator_function_declaration"),
        )

    def _class(self, node: Any) -> SyntaxNode:
        name = node.child_by_field_name("name")
        heritage: List[SyntaxNode] = []
        for child in node.named_children:
            if child.type == "class_heritage":
                heritage.extend(self.convert(c) for c in self._named(child))
        members: List[SyntaxNode] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for member in self._named(body):
                members.append(self._class_member(member))
        return ClassDecl(
            span=self.span(node),
            name=self._binding(name) if name is not None else None,
            heritage=heritage,
            members=members,
            is_declaration=node.type != "class",
        )

    def _class_member(self, node: Any) -> SyntaxNode:
        name = node.child_by_field_name("name")
        if name is None:
            return self.convert(node)
        key, _computed = self._key(name)
        prop = key if isinstance(key, PropertyName) else PropertyName(span=self.span(name), name=self.text(name))
        if node.type == "method_definition":
            return ClassMember(span=self.span(node), name=prop, kind="method", value=self._function(node))
        if node.type in ("public_field_definition", "field_definition"):
            return ClassMember(
                span=self.span(node),
                name=prop,
                kind="property",
                value=self.convert_opt(node.child_by_field_name("value")),
                type_annotation=self.convert_opt(node.child_by_field_name("type")),
            )
        return self.convert(node)

    def _type_alias(self, node: Any) -> SyntaxNode:
        return TypeAliasDecl(
            span=self.span(node),
            name=self._binding(node.child_by_field_name("name")),
            value=self.convert(node.child_by_field_name("value")),
        )

    def _interface(self, node: Any) -> SyntaxNode:
        extends: List[SyntaxNode] = []
        for child in node.named_children:
            if child.type in ("extends_type_clause", "extends_clause"):
                extends.extend(self.convert(c) for c in self._named(child))
        body = node.child_by_field_name("body")
        return InterfaceDecl(
            span=self.span(node),
            name=self._binding(node.child_by_field_name("name")),
            extends=extends,
            body=self._object_type(body) if body is not None else ObjectType(span=self.span(node), members=[]),
        )

    def _object_type(self, node: Any) -> ObjectType:
        return ObjectType(span=self.span(node), members=[self.convert(c) for c in self._named(node)])

    def _property_signature(self, node: Any) -> SyntaxNode:
        name = node.child_by_field_name("name")
        key, _computed = self._key(name)
        prop = key if isinstance(key, PropertyName) else PropertyName(span=self.span(name), name=self.text(name))
        return PropertySignature(
            span=self.span(node),
            name=prop,
            type_annotation=self.convert_opt(node.child_by_field_name("type")),
            optional=any(not c.is_named and c.type == "?" for c in node.children),
        )

    def _enum(self, node: Any) -> SyntaxNode:
        members: List[EnumMember] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for child in self._named(body):
                if child.type == "enum_assignment":
                    key, _ = self._key(child.child_by_field_name("name"))
                    value = self.convert_opt(child.child_by_field_name("value"))
                else:
                    key, _ = self._key(child)
                    value = None
                if isinstance(key, PropertyName):
                    members.append(EnumMember(span=self.span(child), name=key, value=value))
        return EnumDecl(
            span=self.span(node),
            name=self._binding(node.child_by_field_name("name")),
            members=members,
        )

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _block(self, node: Any) -> SyntaxNode:
        return Block(span=self.span(node), body=[self.convert(c) for c in self._named(node)])

    def _expression_statement(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        if not inner:
            return self._literal(node)
        return ExpressionStatement(span=self.span(node), expression=self.convert(inner[0]))

    def _return(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        return ReturnStatement(
            span=self.span(node),
            argument=self.convert(inner[0]) if inner else None,
        )

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _member(self, node: Any) -> SyntaxNode:
        prop = node.child_by_field_name("property")
        return MemberExpr(
            span=self.span(node),
            object=self.convert(node.child_by_field_name("object")),
            property=self._property_name(prop) if prop is not None else self._literal(node),
        )

    def _subscript(self, node: Any) -> SyntaxNode:
        return MemberExpr(
            span=self.span(node),
            object=self.convert(node.child_by_field_name("object")),
            property=self.convert(node.child_by_field_name("index")),
            computed=True,
        )

    def _arguments(self, node: Optional[Any]) -> List[SyntaxNode]:
        if node is None:
            return []
        if node.type != "arguments":
            return [self.convert(node)]
        return [self.convert(c) for c in self._named(node)]

    def _call(self, node: Any) -> SyntaxNode:
        return CallExpr(
            span=self.span(node),
            callee=self.convert(node.child_by_field_name("function")),
            arguments=self._arguments(node.child_by_field_name("arguments")),
            type_arguments=self.convert_opt(node.child_by_field_name("type_arguments")),
        )

    def _new(self, node: Any) -> SyntaxNode:
        return CallExpr(
            span=self.span(node),
            callee=self.convert(node.child_by_field_name("constructor")),
            arguments=self._arguments(node.child_by_field_name("arguments")),
            type_arguments=self.convert_opt(node.child_by_field_name("type_arguments")),
            is_new=True,
        )

    def _await(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        if not inner:
            return self._literal(node)
        return AwaitExpr(span=self.span(node), argument=self.convert(inner[0]))

    def _object(self, node: Any) -> SyntaxNode:
        properties: List[SyntaxNode] = []
        for child in self._named(node):
            if child.type == "shorthand_property_identifier":
                properties.append(Property(
                    span=self.span(child),
                    key=self._property_name(child),
                    value=self._identifier(child),
                    shorthand=True,
                ))
            elif child.type == "method_definition":
                name = child.child_by_field_name("name")
                key, computed = self._key(name)
                properties.append(Property(
                    span=self.span(child), key=key, value=self._function(child), computed=computed,
                ))
            else:
                properties.append(self.convert(child))
        return ObjectLiteral(span=self.span(node), properties=properties)

    def _pair(self, node: Any) -> SyntaxNode:
        key, computed = self._key(node.child_by_field_name("key"))
        return Property(
            span=self.span(node),
            key=key,
            value=self.convert(node.child_by_field_name("value")),
            computed=computed,
        )

    def _spread(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        if not inner:
            return self._literal(node)
        return SpreadElement(span=self.span(node), argument=self.convert(inner[0]))

    def _parenthesized(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        if len(inner) == 1:
            return self.convert(inner[0])
        return self._composite(node)

    def _type_annotation(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        if len(inner) == 1:
            return self.convert(inner[0])
        return self._composite(node)

    # ------------------------------------------------------------------
    # Patterns (names in here are bindings)
    # ------------------------------------------------------------------

    def _pattern(self, node: Any) -> SyntaxNode:
        kind = node.type
        if kind in ("identifier", "shorthand_property_identifier_pattern"):
            return self._binding(node)
        if kind == "object_pattern":
            return ObjectPattern(
                span=self.span(node),
                properties=[self._pattern(c) for c in self._named(node)],
            )
        if kind == "array_pattern":
            return ArrayPattern(
                span=self.span(node),
                elements=[self._pattern(c) for c in self._named(node)],
            )
        if kind == "assignment_pattern":
            return AssignmentPattern(
                span=self.span(node),
                target=self._pattern(node.child_by_field_name("left")),
                default=self.convert(node.child_by_field_name("right")),
            )
        if kind == "object_assignment_pattern":
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if left.type == "shorthand_property_identifier_pattern":
                return PatternProperty(
                    span=self.span(node),
                    key=self._property_name(left),
                    value=self._binding(left),
                    default=self.convert(right),
                )
            return AssignmentPattern(
                span=self.span(node), target=self._pattern(left), default=self.convert(right),
            )
        if kind == "pair_pattern":
            key, computed = self._key(node.child_by_field_name("key"))
            return PatternProperty(
                span=self.span(node),
                key=key,
                value=self._pattern(node.child_by_field_name("value")),
                computed=computed,
            )
        if kind == "rest_pattern":
            inner = self._named(node)
            argument = self._pattern(inner[0]) if inner else self._literal(node)
            return RestElement(span=self.span(node), argument=argument)
        return self.convert(node)

    # ------------------------------------------------------------------
    # JSX
    # ------------------------------------------------------------------

    def _jsx_attributes(self, node: Any) -> List[SyntaxNode]:
        return [self.convert(c) for c in node.children_by_field_name("attribute")]

    def _jsx_children(self, node: Any) -> List[SyntaxNode]:
        out: List[SyntaxNode] = []
        for child in self._named(node):
            if child.type in ("jsx_opening_element", "jsx_closing_element"):
                continue
            out.append(self.convert(child))
        return out

    def _jsx_element(self, node: Any) -> SyntaxNode:
        opening = node.child_by_field_name("open_tag")
        name = opening.child_by_field_name("name") if opening is not None else None
        return JsxElement(
            span=self.span(node),
            name=self.convert_opt(name),
            attributes=self._jsx_attributes(opening) if opening is not None else [],
            children=self._jsx_children(node),
        )

    def _jsx_self_closing(self, node: Any) -> SyntaxNode:
        return JsxElement(
            span=self.span(node),
            name=self.convert_opt(node.child_by_field_name("name")),
            attributes=self._jsx_attributes(node),
            children=[],
            self_closing=True,
        )

    def _jsx_fragment(self, node: Any) -> SyntaxNode:
        return JsxElement(span=self.span(node), name=None, attributes=[], children=self._jsx_children(node))

    def _jsx_attribute(self, node: Any) -> SyntaxNode:
        parts = self._named(node)
        if not parts:
            return self._literal(node)
        name = PropertyName(span=self.span(parts[0]), name=self.text(parts[0]))
        value = self.convert(parts[1]) if len(parts) > 1 else None
        return JsxAttribute(span=self.span(node), name=name, value=value)

    def _jsx_expression(self, node: Any) -> SyntaxNode:
        inner = self._named(node)
        return JsxExpression(span=self.span(node), expression=self.convert(inner[0]) if inner else None)

    def _jsx_text(self, node: Any) -> SyntaxNode:
        return JsxText(span=self.span(node), text=self.text(node))


def _first_error(node: Any) -> Optional[Any]:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def find_jsx_return(module: SyntaxNode) -> Optional[ReturnStatement]:
    """First ``return <X/>`` (parenthesised or not) anywhere in *module*."""
    for node in walk(module):
        if isinstance(node, ReturnStatement) and isinstance(node.argument, JsxElement):
            return node
    return None


# ===================================================================
# Source parser (dispatch by dialect)
# ===================================================================

class SourceParser:
    """Parse any supported file into a :class:`SourceFile`.

    Files whose tree contains syntax errors raise :class:`ParseError`
    unless ``tolerate_syntax_errors`` is set, in which case the
    error-recovered tree is used as is.
    """

    def __init__(self, tolerate_syntax_errors: Optional[bool] = None) -> None:
        if tolerate_syntax_errors is None:
            tolerate_syntax_errors = bool(load_parser_config().get("tolerate_syntax_errors", False))
        self.tolerate_syntax_errors = tolerate_syntax_errors
        self.grammars = get_grammars()

    def parse_script(self, path: str, text: str, lang: str) -> Module:
        grammar = GRAMMAR_FOR_LANG.get(lang, "typescript")
        source = text.encode("utf-8")
        tree = self.grammars.parse(grammar, source)
        root = tree.root_node
        if root.has_error and not self.tolerate_syntax_errors:
            bad = _first_error(root)
            row = bad.start_point[0] + 1 if bad is not None else 1
            raise ParseError(path, f"syntax error near script line {row}")
        module = _Converter(source).convert(root)
        if not isinstance(module, Module):
            raise ParseError(path, f"unexpected root node {root.type}")
        return module

    def parse(self, path: str, text: str) -> SourceFile:
        dialect = dialect_for_path(path)
        if dialect is None:
            raise ParseError(path, "unsupported file type")
        template = None
        if dialect == "vue":
            sfc = split_sfc(text)
            script = sfc.script
            template = sfc.template
        else:
            script = ScriptRegion(text=text, lang=dialect)
        module = self.parse_script(path, script.text, script.lang)
        return SourceFile(
            path=path,
            dialect=dialect,
            text=text,
            content_hash=hash_content(text),
            ast=module,
            script=script,
            template=template,
        )
