"""Tests for the metadata getter layer, definitions and outline."""

import asyncio

import pytest

from tsgraph.metadata import (
    MetadataCache,
    MetadataGetters,
    extract_component_props,
    extract_function_arguments,
    extract_local_variables,
)
from tsgraph.models import GraphNode
from tsgraph.outline import extract_definitions, extract_outline


@pytest.fixture
def getters(sample_builder) -> MetadataGetters:
    return MetadataGetters(sources=sample_builder.source_files)


def _bare_file_node(path: str) -> GraphNode:
    """A file node without views, as an older graph might hold."""
    return GraphNode(id=path, label=path, file_path=path, kind="file", code_snippet="", start_line=1)


class TestViewGetters:
    """Synchronous getters: view map first, then the live AST."""

    def test_exports_from_views(self, sample_builder, getters):
        """Test that exports come from the file node's view map."""
        node = sample_builder.nodes["src/api.ts"]
        assert [e.name for e in getters.get_exports(node)] == ["API_URL", "fetchUsers", "formatName"]

    def test_non_file_nodes_have_no_metadata(self, sample_builder, getters):
        """Test that declaration nodes return empty results."""
        node = sample_builder.nodes["src/api.ts::fetchUsers"]
        assert getters.get_exports(node) == []
        assert getters.get_imports(node) == []
        assert getters.get_symbol_usages(node, "fetchUsers") == []
        assert getters.get_local_variables(node) == []

    def test_ast_fallback(self, getters):
        """Test that a node without views falls back to the parsed source."""
        node = _bare_file_node("src/hooks/useUsers.ts")
        imports = getters.get_imports(node)
        assert [(i.name, i.from_path) for i in imports] == [
            ("fetchUsers", "@/api"),
            ("useEffect", "react"),
            ("useState", "react"),
            ("User", "@/types"),
        ]
        assert [e.name for e in getters.get_exports(node)] == ["useUsers"]

    def test_unknown_file(self, getters):
        """Test a file node with neither views nor source."""
        node = _bare_file_node("src/gone.ts")
        assert getters.get_exports(node) == []
        assert getters.get_used_identifiers(node) == set()
        assert getters.get_file_metadata(node) is None

    def test_symbol_usages(self, sample_builder, getters):
        """Test usages read from the view map."""
        node = sample_builder.nodes["src/types.ts"]
        assert getters.get_symbol_usages(node, "User") == [
            "src/api.ts",
            "src/components/UserCard.tsx",
            "src/hooks/useUsers.ts",
        ]
        assert getters.get_symbol_usages(node, "UserId") == []


class TestAsyncGetters:
    """Async getters: persistent index first."""

    def test_index_tier(self, indexed_store):
        """Test that the index answers when views and source are missing."""
        getters = MetadataGetters(store=indexed_store)
        node = _bare_file_node("src/api.ts")
        exports = asyncio.run(getters.get_exports_async(node))
        assert [(e.name, e.line, e.kind) for e in exports] == [
            ("API_URL", 3, "variable"),
            ("fetchUsers", 5, "function"),
            ("formatName", 10, "function"),
        ]
        usages = asyncio.run(getters.get_symbol_usages_async(_bare_file_node("src/types.ts"), "User"))
        assert len(usages) == 3

    def test_fallback_without_store(self, sample_builder, getters):
        """Test that async getters fall back to the view map."""
        node = sample_builder.nodes["src/hooks/useUsers.ts"]
        imports = asyncio.run(getters.get_imports_async(node))
        assert [i.name for i in imports] == ["fetchUsers", "useEffect", "useState", "User"]

    def test_failing_store_is_a_miss(self, sample_builder, temp_store):
        """Test that a dead index connection falls through to the next tier."""
        temp_store.conn.close()
        getters = MetadataGetters(sources=sample_builder.source_files, store=temp_store)
        node = sample_builder.nodes["src/api.ts"]
        exports = asyncio.run(getters.get_exports_async(node))
        assert [e.name for e in exports] == ["API_URL", "fetchUsers", "formatName"]

    def test_async_non_file_node(self, sample_builder, indexed_store):
        """Test that async getters ignore non-file nodes."""
        getters = MetadataGetters(store=indexed_store)
        node = sample_builder.nodes["src/api.ts::API_URL"]
        assert asyncio.run(getters.get_exports_async(node)) == []


class TestAstExtractors:
    """Live-AST-only getters."""

    def test_local_functions(self, sample_builder, getters):
        """Test nested function declarations and their usage."""
        node = sample_builder.nodes["src/components/UserList.tsx"]
        functions = getters.get_local_functions(node)
        assert [(f.name, f.function_name, f.is_used) for f in functions] == [
            ("handleSelect", "UserList", True),
        ]

    def test_local_variables(self, sample_builder, getters):
        """Test locals declared inside function bodies."""
        node = sample_builder.nodes["src/components/UserList.tsx"]
        variables = {v.name: v for v in getters.get_local_variables(node)}
        assert variables["selected"].is_used is False
        assert variables["selected"].line == 7
        assert variables["selected"].function_name == "UserList"

        api = sample_builder.nodes["src/api.ts"]
        assert [(v.name, v.is_used) for v in getters.get_local_variables(api)] == [("response", True)]

    def test_used_identifiers_include_template(self, sample_builder, getters):
        """Test that Vue template names count as used."""
        node = sample_builder.nodes["src/components/UserBadge.vue"]
        used = getters.get_used_identifiers(node)
        assert {"label", "props", "computed"} <= used

    def test_imports_are_not_uses(self, sample_builder, getters):
        """Test that an import binding alone is not a use."""
        node = sample_builder.nodes["src/components/UserList.tsx"]
        used = getters.get_used_identifiers(node)
        assert "React" not in used
        assert "UserCard" in used

    def test_component_props(self, sample_builder, getters):
        """Test declared vs destructured props."""
        node = sample_builder.nodes["src/components/UserCard.tsx"]
        components = getters.get_component_props(node)
        assert len(components) == 1
        assert components[0].component_name == "UserCard"
        assert [(p.name, p.is_used) for p in components[0].props] == [
            ("user", True),
            ("onSelect", True),
            ("highlighted", False),
        ]

    def test_props_through_member_access(self, parser):
        """Test props read as `props.x` on an undestructured parameter."""
        source = parser.parse(
            "src/Comp.tsx",
            "interface P { a: string; b: number }\n"
            "export function Comp(props: P) {\n"
            "  return <span>{props.a}</span>;\n"
            "}\n",
        )
        [component] = extract_component_props(source)
        assert [(p.name, p.is_used) for p in component.props] == [("a", True), ("b", False)]

    def test_function_arguments(self, sample_builder, getters):
        """Test argument usage for non-component functions."""
        node = sample_builder.nodes["src/api.ts"]
        functions = getters.get_function_arguments(node)
        assert [f.function_name for f in functions] == ["formatName"]
        assert [(a.name, a.is_used) for a in functions[0].arguments] == [("user", True), ("upper", False)]

    def test_arrow_function_arguments(self, parser):
        """Test that arrow functions are named after their variable."""
        source = parser.parse("src/math.ts", "export const add = (a: number, b: number) => a;\n")
        [info] = extract_function_arguments(source)
        assert info.function_name == "add"
        assert [(a.name, a.is_used) for a in info.arguments] == [("a", True), ("b", False)]

    def test_arrow_functions_are_not_variables(self, parser):
        """Test that function-valued declarators are not reported as variables."""
        source = parser.parse(
            "src/x.ts",
            "function outer() {\n  const helper = () => 1;\n  const value = 2;\n  return value;\n}\n",
        )
        assert [v.name for v in extract_local_variables(source)] == ["value"]


class TestMetadataCache:
    """Tests for the per-file definitions/outline cache."""

    def test_cached_by_hash(self, sample_sources):
        """Test that the same content returns the cached entry."""
        cache = MetadataCache()
        source = sample_sources["src/api.ts"]
        first = cache.get_file_metadata(source)
        assert cache.get_file_metadata(source) is first
        assert "src/api.ts" in cache
        assert len(cache) == 1

    def test_changed_content_recomputes(self, sample_sources, parser):
        """Test that a new content hash gives a fresh entry."""
        cache = MetadataCache()
        first = cache.get_file_metadata(sample_sources["src/types.ts"])
        changed = parser.parse("src/types.ts", "export type Only = string;\n")
        second = cache.get_file_metadata(changed)
        assert second is not first
        assert [d.name for d in second.definitions] == ["Only"]
        assert len(cache) == 1

    def test_invalidate(self, sample_builder, getters):
        """Test dropping an entry through the getters."""
        node = sample_builder.nodes["src/api.ts"]
        getters.get_file_metadata(node)
        assert "src/api.ts" in getters.cache
        getters.invalidate("src/api.ts")
        assert "src/api.ts" not in getters.cache


class TestDefinitionsAndOutline:
    """Tests for extract_definitions and extract_outline."""

    def test_definitions(self, sample_sources):
        """Test top-level definitions with signatures."""
        definitions = extract_definitions(sample_sources["src/api.ts"])
        assert [(d.name, d.kind, d.line, d.exported) for d in definitions] == [
            ("API_URL", "const", 3, True),
            ("fetchUsers", "function", 5, True),
            ("formatName", "function", 10, True),
        ]
        assert definitions[1].signature == "async function fetchUsers(): Promise<User[]>"
        assert definitions[1].end_line == 8

    def test_unexported_definitions(self, sample_sources):
        """Test that non-exported declarations are listed too."""
        definitions = extract_definitions(sample_sources["src/components/UserCard.tsx"])
        assert [(d.name, d.exported) for d in definitions] == [
            ("UserCardProps", False),
            ("UserCard", True),
        ]

    def test_outline(self, sample_sources):
        """Test the outline tree of a TS file."""
        outline = extract_outline(sample_sources["src/api.ts"])
        assert outline[0].kind == "block"
        assert outline[0].name == "Imports (1)"
        assert outline[0].children[0].name == "from './types'"

        fetch = outline[2]
        assert (fetch.kind, fetch.name, fetch.line, fetch.end_line) == ("function", "fetchUsers", 5, 8)
        assert [(c.kind, c.name) for c in fetch.children] == [
            ("const", "response"),
            ("return", "return response.json()"),
        ]

    def test_outline_control_flow(self, parser):
        """Test that if/else blocks are nested in the outline."""
        source = parser.parse(
            "src/flow.ts",
            "function check(x: number) {\n  if (x) {\n    go();\n  } else {\n    stop();\n  }\n}\n",
        )
        [func] = extract_outline(source)
        [branch] = func.children
        assert branch.kind == "if"
        assert branch.name == "if (x)"
        assert "else" in [c.kind for c in branch.children]

    def test_outline_to_dict(self, sample_sources):
        """Test serialisation drops empty fields."""
        outline = extract_outline(sample_sources["src/types.ts"])
        payload = outline[1].to_dict()
        assert payload == {
            "kind": "type",
            "name": "UserId",
            "line": 6,
            "text": "export type UserId = number;",
            "identifiers": ["UserId"],
        }
