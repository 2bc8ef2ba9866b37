"""Tests for the TOML configuration manager."""

from tsgraph import config_manager
from tsgraph.parser import SourceParser


class TestAliases:
    """Tests for alias persistence."""

    def test_default_aliases(self):
        """Test the built-in alias when no config file exists."""
        assert config_manager.load_aliases() == {"@/*": "src/*"}

    def test_set_and_remove_alias(self):
        """Test adding and removing one alias."""
        assert config_manager.set_alias("~/*", "lib/*")
        assert config_manager.load_aliases() == {"@/*": "src/*", "~/*": "lib/*"}
        assert config_manager.remove_alias("~/*")
        assert config_manager.remove_alias("~/*") is False

    def test_sections_preserved(self):
        """Test that alias writes keep the parser section."""
        config_manager.save_parser_config(tolerate_syntax_errors=True)
        config_manager.save_aliases({"#/*": "gen/*"})
        full = config_manager.load_full_config()
        assert full["parser"]["tolerate_syntax_errors"] is True
        assert full["aliases"] == {"#/*": "gen/*"}

    def test_unreadable_config(self):
        """Test that a corrupt file is ignored."""
        config_manager.CONFIG_FILE.write_text("aliases = [", encoding="utf-8")
        assert config_manager.load_full_config() == {}
        assert config_manager.load_aliases() == {"@/*": "src/*"}


class TestParserConfig:
    """Tests for the [parser] section."""

    def test_defaults(self):
        """Test strict parsing by default."""
        assert config_manager.load_parser_config() == {"tolerate_syntax_errors": False}

    def test_parser_reads_config(self):
        """Test that SourceParser picks up the configured tolerance."""
        config_manager.save_parser_config(tolerate_syntax_errors=True)
        parser = SourceParser()
        assert parser.tolerate_syntax_errors is True
        source = parser.parse("src/broken.ts", "const ok = 1;\nexport const = ;\n")
        assert source.path == "src/broken.ts"
