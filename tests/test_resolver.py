"""Tests for import specifier resolution and tsconfig alias loading."""

import pytest

from tsgraph.resolver import (
    is_external,
    load_tsconfig_aliases,
    match_alias,
    normalize_path,
    probe,
    resolve_import,
)

FILE_KEYS = {
    "src/App.tsx",
    "src/api.ts",
    "src/types.ts",
    "src/components/UserCard.tsx",
    "src/components/UserBadge.vue",
    "src/hooks/index.ts",
    "lib/util.js",
}


class TestNormalizePath:
    """Tests for path normalisation."""

    def test_collapses_dot_segments(self):
        """Test that ./ and ../ segments are collapsed."""
        assert normalize_path("src/components/../api") == "src/api"
        assert normalize_path("./src/./types") == "src/types"

    def test_strips_leading_slash(self):
        """Test that keys never start with a slash."""
        assert normalize_path("/src/api.ts") == "src/api.ts"

    def test_current_directory_is_empty(self):
        """Test that '.' normalises to the empty key."""
        assert normalize_path(".") == ""


class TestAliases:
    """Tests for alias matching."""

    def test_wildcard_alias(self):
        """Test rewriting through a wildcard alias."""
        assert match_alias("@/components/UserCard", {"@/*": "src/*"}) == "src/components/UserCard"

    def test_longest_prefix_wins(self):
        """Test that the most specific alias is used."""
        aliases = {"@/*": "src/*", "@/hooks/*": "src/hooks/*"}
        assert match_alias("@/hooks/useUsers", aliases) == "src/hooks/useUsers"

    def test_exact_alias(self):
        """Test a pattern without wildcard only matches itself."""
        aliases = {"config": "src/config.ts"}
        assert match_alias("config", aliases) == "src/config.ts"
        assert match_alias("config/extra", aliases) is None

    def test_scoped_package_is_not_alias(self):
        """Test that '@vue/...' does not match the '@/*' alias."""
        assert match_alias("@vue/runtime-core", {"@/*": "src/*"}) is None
        assert is_external("@vue/runtime-core", {"@/*": "src/*"})
        assert not is_external("./api", {"@/*": "src/*"})


class TestResolveImport:
    """Tests for resolve_import."""

    def test_relative_with_extension_probe(self):
        """Test that a relative import is probed with known extensions."""
        assert resolve_import("src/App.tsx", "./api", {}, FILE_KEYS) == "src/api.ts"

    def test_parent_relative(self):
        """Test resolving an import that climbs a directory."""
        result = resolve_import("src/components/UserCard.tsx", "../types", {}, FILE_KEYS)
        assert result == "src/types.ts"

    def test_explicit_extension(self):
        """Test that an import with an explicit .vue extension resolves as is."""
        result = resolve_import("src/App.tsx", "./components/UserBadge.vue", {}, FILE_KEYS)
        assert result == "src/components/UserBadge.vue"

    def test_directory_index(self):
        """Test that a directory import resolves to its index file."""
        assert resolve_import("src/App.tsx", "./hooks", {}, FILE_KEYS) == "src/hooks/index.ts"

    def test_alias(self):
        """Test alias resolution."""
        result = resolve_import("src/App.tsx", "@/components/UserCard", {"@/*": "src/*"}, FILE_KEYS)
        assert result == "src/components/UserCard.tsx"

    def test_alias_is_tried_before_relative(self):
        """Test that aliases apply regardless of the importing file's location."""
        result = resolve_import("lib/util.js", "@/types", {"@/*": "src/*"}, FILE_KEYS)
        assert result == "src/types.ts"

    @pytest.mark.parametrize("specifier", ["react", "vue", "./missing", "@/nothing/here"])
    def test_unresolved_returns_none(self, specifier):
        """Test that package imports and broken paths return None."""
        assert resolve_import("src/App.tsx", specifier, {"@/*": "src/*"}, FILE_KEYS) is None

    def test_probe_order(self):
        """Test that the bare key wins over extension probes."""
        assert probe("lib/util.js", FILE_KEYS) == "lib/util.js"
        assert probe("lib/util", FILE_KEYS) == "lib/util.js"


class TestTsconfigAliases:
    """Tests for reading compilerOptions.paths."""

    def test_reads_paths_with_comments_and_trailing_commas(self):
        """Test that JSONC comments and trailing commas are tolerated."""
        text = """{
          // comment
          "compilerOptions": {
            /* block */
            "paths": { "@/*": ["src/*"], "~lib/*": ["lib/*"], },
          },
        }"""
        assert load_tsconfig_aliases(text) == {"@/*": "src/*", "~lib/*": "lib/*"}

    def test_base_url_prefix(self):
        """Test that baseUrl is prepended to alias targets."""
        text = '{"compilerOptions": {"baseUrl": "./app", "paths": {"#/*": ["./src/*"]}}}'
        assert load_tsconfig_aliases(text) == {"#/*": "app/src/*"}

    def test_invalid_json_returns_empty(self):
        """Test that a broken tsconfig yields no aliases."""
        assert load_tsconfig_aliases("{ not json") == {}

    def test_sample_project_tsconfig(self, sample_project_path):
        """Test the fixture project's tsconfig."""
        text = (sample_project_path / "tsconfig.json").read_text(encoding="utf-8")
        assert load_tsconfig_aliases(text) == {"@/*": "src/*"}
