"""Tests for the symbol and dependency graph builder."""

from typing import Dict

import pytest

from tsgraph.graph_builder import ProjectGraphBuilder, infer_kind
from tsgraph.models import GraphNode


@pytest.fixture
def graph(sample_files, sample_aliases, parser) -> Dict[str, GraphNode]:
    builder = ProjectGraphBuilder(sample_files, aliases=sample_aliases, parser=parser)
    return {node.id: node for node in builder.build()}


def _build(files, parser, aliases=None) -> Dict[str, GraphNode]:
    builder = ProjectGraphBuilder(files, aliases=aliases or {}, parser=parser)
    return {node.id: node for node in builder.build()}


class TestGraphShape:
    """Structural invariants over the sample project."""

    def test_referential_closure(self, graph):
        """Test that every dependency names an existing node."""
        for node in graph.values():
            for dep in node.dependencies:
                assert dep in graph, f"{node.id} -> {dep}"

    def test_no_self_loops(self, graph):
        """Test that no node depends on itself."""
        for node in graph.values():
            assert node.id not in node.dependencies

    def test_file_nodes(self, graph):
        """Test one file node per parsed file, keyed by bare path."""
        files = {n.id for n in graph.values() if n.kind == "file"}
        assert files == {
            "src/App.tsx",
            "src/api.ts",
            "src/types.ts",
            "src/hooks/useUsers.ts",
            "src/components/UserCard.tsx",
            "src/components/UserList.tsx",
            "src/components/UserBadge.vue",
        }
        app = graph["src/App.tsx"]
        assert app.label == "App"
        assert app.start_line == 1
        assert set(app.dependencies) == {
            "src/components/UserList.tsx",
            "src/components/UserBadge.vue",
            "src/api.ts",
        }

    def test_type_only_imports_are_not_file_edges(self, graph):
        """Test that `import type` does not create a file-level dependency."""
        assert "src/types.ts" not in graph["src/api.ts"].dependencies

    def test_declaration_file_is_skipped(self, graph):
        """Test that .d.ts files never become nodes."""
        assert not any(n.file_path.endswith(".d.ts") for n in graph.values())

    def test_ids_are_unique_and_prefixed(self, graph):
        """Test the filePath::localName id scheme."""
        for node in graph.values():
            if node.kind != "file":
                assert node.id.startswith(f"{node.file_path}::")


class TestImports:
    """Cross-file edges created by imports."""

    def test_named_import(self, graph):
        """Test that a named import depends on the exporting declaration."""
        node = graph["src/components/UserList.tsx::UserCard"]
        assert node.kind == "module"
        assert node.dependencies == ["src/components/UserCard.tsx::UserCard"]
        assert node.code_snippet == "import { UserCard } from './UserCard'"

    def test_aliased_import(self, graph):
        """Test that '@/' imports resolve through the alias table."""
        node = graph["src/hooks/useUsers.ts::fetchUsers"]
        assert node.dependencies == ["src/api.ts::fetchUsers"]

    def test_default_import(self, graph):
        """Test that a default import depends on the target's default node."""
        node = graph["src/App.tsx::UserList"]
        assert node.dependencies == ["src/components/UserList.tsx::default"]
        assert node.code_snippet == "import UserList from './components/UserList'"

    def test_vue_default_import(self, graph):
        """Test that importing a .vue file links to its default node."""
        node = graph["src/App.tsx::UserBadge"]
        assert node.dependencies == ["src/components/UserBadge.vue::default"]

    def test_namespace_import(self, graph):
        """Test that a namespace import depends on the target's root."""
        node = graph["src/App.tsx::api"]
        assert node.dependencies == ["src/api.ts::FILE_ROOT"]

    def test_framework_primitives_skipped(self, graph):
        """Test that React/Vue primitives never become nodes."""
        assert "src/hooks/useUsers.ts::useState" not in graph
        assert "src/hooks/useUsers.ts::useEffect" not in graph
        assert "src/components/UserBadge.vue::computed" not in graph

    def test_external_import(self, graph):
        """Test that package imports become dependency-free module nodes."""
        node = graph["src/components/UserList.tsx::React"]
        assert node.kind == "module"
        assert node.dependencies == []
        assert node.code_snippet == "import ... from 'react'"


class TestDeclarations:
    """Declaration nodes and their local dependencies."""

    def test_local_dependencies(self, graph):
        """Test that identifiers referencing file-level names become edges."""
        fetch = graph["src/api.ts::fetchUsers"]
        assert fetch.kind == "function"
        assert "src/api.ts::API_URL" in fetch.dependencies
        assert "src/api.ts::User" in fetch.dependencies

    def test_file_root(self, graph):
        """Test that a plain TS file gets a FILE_ROOT over all its nodes."""
        root = graph["src/api.ts::FILE_ROOT"]
        assert root.kind == "module"
        assert root.label == "api.ts"
        assert {"src/api.ts::fetchUsers", "src/api.ts::API_URL", "src/api.ts::formatName"} <= set(
            root.dependencies
        )

    def test_kinds(self, graph):
        """Test kind inference for the sample declarations."""
        assert graph["src/types.ts::User"].kind == "interface"
        assert graph["src/types.ts::UserId"].kind == "type"
        assert graph["src/api.ts::API_URL"].kind == "variable"
        assert graph["src/components/UserBadge.vue::label"].kind == "computed"

    def test_default_node(self, graph):
        """Test that `export default function` links default to the function."""
        default = graph["src/components/UserList.tsx::default"]
        assert "src/components/UserList.tsx::UserList" in default.dependencies
        assert "src/components/UserList.tsx::JSX_ROOT" in default.dependencies

    def test_generated_default_line(self, graph):
        """Test that a synthesized default node starts on its root's 1-based line."""
        default = graph["src/api.ts::default"]
        assert default.code_snippet == ""
        assert default.start_line == graph["src/api.ts::FILE_ROOT"].start_line == 1


class TestComponents:
    """Hook-using components are exploded into statements."""

    def test_statement_nodes(self, graph):
        """Test one node per top-level statement in the component body."""
        prefix = "src/components/UserList.tsx::UserList_stmt_"
        statements = sorted(nid for nid in graph if nid.startswith(prefix))
        assert len(statements) == 5

        first = graph[prefix + "1"]
        assert first.label == "{users, loading}"
        assert first.kind == "hook"
        assert "src/components/UserList.tsx::useUsers" in first.dependencies

        assert graph[prefix + "2"].label == "selected"
        assert graph[prefix + "5"].label == "return JSX"
        assert graph[prefix + "5"].kind == "template"

    def test_destructured_names(self, graph):
        """Test that destructured names get their own nodes."""
        users = graph["src/components/UserList.tsx::users"]
        assert users.kind == "hook"

    def test_jsx_root(self, graph):
        """Test the JSX root links statements and used components."""
        root = graph["src/components/UserList.tsx::JSX_ROOT"]
        assert root.kind == "template"
        assert root.label == "UserList.tsx (View)"
        assert "src/components/UserList.tsx::UserList_stmt_1" in root.dependencies
        assert "src/components/UserList.tsx::UserCard" in root.dependencies

    def test_component_links_to_root(self, graph):
        """Test that PascalCase declarations depend on the view root."""
        app = graph["src/App.tsx::App"]
        assert "src/App.tsx::JSX_ROOT" in app.dependencies
        root = graph["src/App.tsx::JSX_ROOT"]
        assert {"src/App.tsx::UserBadge", "src/App.tsx::UserList", "src/App.tsx::APP_TITLE"} <= set(
            root.dependencies
        )

    def test_component_without_hooks_is_not_exploded(self, graph):
        """Test that a hook-free component stays a single node."""
        assert not any("UserCard_stmt_" in nid for nid in graph)


class TestVue:
    """Vue SFC nodes."""

    def test_template_root(self, graph):
        """Test the template root and its identifier links."""
        root = graph["src/components/UserBadge.vue::TEMPLATE_ROOT"]
        assert root.kind == "template"
        assert root.label == "UserBadge.vue <template>"
        assert root.start_line == 1
        assert root.dependencies == ["src/components/UserBadge.vue::label"]
        assert root.code_snippet.startswith("<template>")

    def test_script_offset(self, graph):
        """Test that script node lines are lines of the .vue file."""
        assert graph["src/components/UserBadge.vue::props"].start_line == 8
        assert graph["src/components/UserBadge.vue::label"].start_line == 9

    def test_script_dependencies(self, graph):
        """Test local dependencies inside the setup script."""
        label = graph["src/components/UserBadge.vue::label"]
        assert label.dependencies == ["src/components/UserBadge.vue::props"]

    def test_vue_default(self, graph):
        """Test the default node of a component."""
        default = graph["src/components/UserBadge.vue::default"]
        assert default.dependencies == ["src/components/UserBadge.vue::TEMPLATE_ROOT"]


class TestViews:
    """View map attached to file nodes."""

    def test_exports_and_imports(self, graph):
        """Test exports/imports views on a file node."""
        views = graph["src/api.ts"].views
        assert [e.name for e in views.exports] == ["API_URL", "fetchUsers", "formatName"]
        assert [(i.name, i.from_path) for i in views.imports] == [("User", "./types")]

    def test_export_usage_duality(self, graph):
        """Test that every recorded usage has a matching import in the user."""
        files = {n.id: n for n in graph.values() if n.kind == "file"}
        for node in files.values():
            exported = {e.name for e in node.views.exports}
            for symbol, users in node.views.usages.items():
                assert symbol in exported
                for user in users:
                    assert symbol in {i.name for i in files[user].views.imports}

    def test_usages(self, graph):
        """Test usages of a widely imported symbol."""
        usages = graph["src/types.ts"].views.usages
        assert usages["User"] == [
            "src/api.ts",
            "src/components/UserCard.tsx",
            "src/hooks/useUsers.ts",
        ]
        assert graph["src/api.ts"].views.usages["fetchUsers"] == ["src/hooks/useUsers.ts"]


class TestRobustness:
    """Idempotence, cycles and failures."""

    def test_idempotent(self, sample_files, sample_aliases, parser):
        """Test that building twice yields identical output."""
        first = ProjectGraphBuilder(sample_files, aliases=sample_aliases, parser=parser).build()
        second = ProjectGraphBuilder(sample_files, aliases=sample_aliases, parser=parser).build()
        assert [n.to_dict() for n in first] == [n.to_dict() for n in second]

    def test_import_cycle(self, parser):
        """Test that mutually importing files terminate and link both ways."""
        files = {
            "a.ts": "import { b } from './b';\nexport const a = () => b();\n",
            "b.ts": "import { a } from './a';\nexport const b = () => a();\n",
        }
        graph = _build(files, parser)
        assert graph["a.ts::b"].dependencies == ["b.ts::b"]
        assert graph["b.ts::a"].dependencies == ["a.ts::a"]
        assert graph["a.ts::a"].dependencies == ["a.ts::b"]

    def test_self_import(self, parser):
        """Test that a file importing itself does not loop or self-link."""
        files = {"a.ts": "import { x } from './a';\nexport const x = 1;\n"}
        graph = _build(files, parser)
        assert graph["a.ts"].dependencies == []

    def test_unresolved_import_has_no_edge(self, parser):
        """Test that a broken relative import yields no dependency."""
        files = {"a.ts": "import { gone } from './gone';\nexport const x = gone;\n"}
        graph = _build(files, parser)
        assert graph["a.ts::gone"].dependencies == []
        assert graph["a.ts::x"].dependencies == ["a.ts::gone"]

    def test_parse_failure_skips_file(self, parser):
        """Test that a syntax error skips only the broken file."""
        files = {
            "good.ts": "import { y } from './bad';\nexport const x = y;\n",
            "bad.ts": "export const = ;\n",
        }
        builder = ProjectGraphBuilder(files, aliases={}, parser=parser)
        graph = {n.id: n for n in builder.build()}
        assert "bad.ts" in builder.failed_files
        assert "good.ts" in graph
        assert not any(nid.startswith("bad.ts") for nid in graph)
        # The import edge into the missing file is pruned.
        assert graph["good.ts::y"].dependencies == []

    def test_top_level_call(self, parser):
        """Test that top-level calls become call nodes keyed by line."""
        files = {"main.ts": "const app = createApp();\n\nawait app.mount('#app');\n"}
        graph = _build(files, parser)
        call = graph["main.ts::setup_call_3"]
        assert call.kind == "call"
        assert call.label == "await mount()"
        assert call.dependencies == ["main.ts::app"]

    def test_progress_callback(self, sample_files, sample_aliases, parser):
        """Test that every supported file reports completion once."""
        seen = []
        builder = ProjectGraphBuilder(
            sample_files, aliases=sample_aliases, parser=parser,
            on_file_done=lambda done, total, path: seen.append((done, total, path)),
        )
        builder.build()
        assert [d for d, _, _ in seen] == list(range(1, 8))
        assert all(total == 7 for _, total, _ in seen)
        assert sorted(p for _, _, p in seen) == sorted(builder.source_files)


class TestInferKind:
    """Tests for initializer-based kind inference."""

    @pytest.mark.parametrize("text,expected", [
        ("computed(() => 1)", "computed"),
        ("useStore()", "hook"),
        ("storeToRefs(store)", "store"),
        ("42", "variable"),
    ])
    def test_text_rules(self, text, expected):
        """Test the text-based rules."""
        assert infer_kind(text, None) == expected
