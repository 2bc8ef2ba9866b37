"""Tests for the Vue single-file component splitter and template scanner."""

from tsgraph.vue import (
    iter_template,
    kebab_to_pascal,
    parse_template,
    split_sfc,
    template_references,
)

SFC = """<template>
  <div class="list">
    <user-card v-for="user in users" :key="user.id" :user="user" @select="onSelect" />
    <p>{{ total }} users</p>
  </div>
</template>

<script setup lang="ts">
import { ref } from 'vue';
const users = ref([]);
</script>
"""


class TestSplitSfc:
    """Tests for split_sfc."""

    def test_script_region_offsets(self):
        """Test that the script text carries its place in the file."""
        parts = split_sfc(SFC)
        script = parts.script
        assert script.lang == "ts"
        assert script.text.startswith("\nimport { ref }")
        assert script.line_offset == 7
        # Row 1 of the script is file line 9 (1-based).
        assert script.file_line(1) == 9
        assert script.file_position(2, 6).line == 9

    def test_first_row_column_offset(self):
        """Test that positions on the first script row are shifted by the tag width."""
        parts = split_sfc('<script lang="ts">const a = 1;</script>')
        position = parts.script.file_position(0, 6)
        assert position.line == 0
        assert position.character == len('<script lang="ts">') + 6

    def test_template_kept_verbatim(self):
        """Test that the template block includes its tags."""
        parts = split_sfc(SFC)
        assert parts.template is not None
        assert parts.template.text.startswith("<template>")
        assert parts.template.text.endswith("</template>")
        assert parts.template.start_line == 1

    def test_nested_template_tags(self):
        """Test that slot templates inside the root template do not end it early."""
        text = "<template><Card><template #header>Hi</template><b>x</b></Card></template>\n"
        parts = split_sfc(text)
        assert parts.template.text == text.strip()

    def test_setup_script_preferred(self):
        """Test that <script setup> wins over a plain <script>."""
        text = "<script>export default {}</script>\n<script setup>const b = 2</script>"
        assert split_sfc(text).script.text == "const b = 2"

    def test_missing_template(self):
        """Test a component without a template."""
        parts = split_sfc("<script>const a = 1</script>")
        assert parts.template is None
        assert parts.script.text == "const a = 1"

    def test_missing_script(self):
        """Test a template-only component."""
        parts = split_sfc("<template><p>hi</p></template>")
        assert parts.script.text == ""
        assert parts.template is not None


class TestTemplate:
    """Tests for the template tree and reference extraction."""

    def test_tag_case_preserved(self):
        """Test that component tags keep their original case."""
        root = parse_template("<template><UserCard /></template>")
        tags = [n.tag for n in iter_template(root)]
        assert "UserCard" in tags

    def test_element_lines(self):
        """Test that element lines are file lines."""
        root = parse_template("<template>\n  <p>x</p>\n</template>", first_line=4)
        p = [n for n in iter_template(root) if n.tag == "p"][0]
        assert p.line == 5

    def test_template_references(self):
        """Test that directives, interpolations and kebab-case tags are linked."""
        parts = split_sfc(SFC)
        known = {"users", "total", "onSelect", "UserCard", "unused"}
        names = template_references(parts.template.root, known)
        assert set(names) == {"users", "total", "onSelect", "UserCard"}
        assert "unused" not in names

    def test_kebab_to_pascal(self):
        """Test kebab-case to PascalCase conversion."""
        assert kebab_to_pascal("user-card") == "UserCard"
        assert kebab_to_pascal("x") == "X"
