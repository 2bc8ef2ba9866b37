"""Vue single-file component splitter and template scanner.

The ``<script setup>`` (or plain ``<script>``) body is handed to the TS
front-end together with its offset inside the ``.vue`` file.  The
``<template>`` block is kept verbatim and parsed into a small element tree
so identifiers used by interpolations, directives and component tags can be
linked to script-level names.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Iterable, List, Optional, Set, Tuple

from .models import ScriptRegion, TemplateNode, TemplateRegion

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script\b([^>]*)>(.*?)</script\s*>", re.DOTALL | re.IGNORECASE)
_LANG_RE = re.compile(r"""\blang\s*=\s*["']?([A-Za-z]+)""")
_SETUP_RE = re.compile(r"\bsetup\b")
_TEMPLATE_TAG_RE = re.compile(r"<template\b[^>]*?(/?)>|</template\s*>", re.IGNORECASE)
_TAG_NAME_RE = re.compile(r"<\s*([A-Za-z][\w\-.:]*)")
_INTERPOLATION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
IDENTIFIER_RE = re.compile(r"[a-zA-Z_$][a-zA-Z0-9_$]*")

_DIRECTIVE_PREFIXES = ("v-", ":", "@", "#")
_VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
}


@dataclass
class SfcParts:
    script: ScriptRegion
    template: Optional[TemplateRegion] = None


# ===================================================================
# Splitting
# ===================================================================

def _script_region(text: str) -> ScriptRegion:
    chosen: Optional[re.Match] = None
    for match in _SCRIPT_RE.finditer(text):
        if _SETUP_RE.search(match.group(1)):
            chosen = match
            break
        if chosen is None:
            chosen = match
    if chosen is None:
        return ScriptRegion(text="", lang="ts")

    start = chosen.start(2)
    lang_match = _LANG_RE.search(chosen.group(1))
    lang = lang_match.group(1).lower() if lang_match else "ts"
    if lang not in ("ts", "tsx", "js", "jsx"):
        lang = "ts"
    # Vue scripts without lang="tsx" never contain JSX.
    if lang == "js":
        lang = "ts"
    line_start = text.rfind("\n", 0, start) + 1
    return ScriptRegion(
        text=chosen.group(2),
        line_offset=text.count("\n", 0, start),
        column_offset=start - line_start,
        byte_offset=len(text[:start].encode("utf-8")),
        lang=lang,
    )


def _template_bounds(text: str) -> Optional[Tuple[int, int]]:
    """Offsets of the outermost ``<template>...</template>`` including tags."""
    depth = 0
    start = -1
    for match in _TEMPLATE_TAG_RE.finditer(text):
        closing = match.group(0).startswith("</")
        if not closing:
            if match.group(1):
                continue
            if depth == 0:
                start = match.start()
            depth += 1
        elif depth > 0:
            depth -= 1
            if depth == 0:
                return start, match.end()
    if start != -1:
        return start, len(text)
    return None


def split_sfc(text: str) -> SfcParts:
    """Split a ``.vue`` file into its script and template regions."""
    script = _script_region(text)
    bounds = _template_bounds(text)
    if bounds is None:
        return SfcParts(script=script)
    start, end = bounds
    block = text[start:end]
    start_line = text.count("\n", 0, start) + 1
    return SfcParts(
        script=script,
        template=TemplateRegion(
            text=block,
            start_line=start_line,
            start_offset=start,
            root=parse_template(block, start_line),
        ),
    )


# ===================================================================
# Template tree
# ===================================================================

class _TemplateBuilder(HTMLParser):
    """Build a :class:`TemplateNode` tree, keeping tag names' original case."""

    def __init__(self, first_line: int) -> None:
        super().__init__(convert_charrefs=True)
        self.first_line = first_line
        self.root = TemplateNode(tag="#root", line=first_line)
        self._stack: List[TemplateNode] = [self.root]

    def _node(self, attrs: List[Tuple[str, Optional[str]]]) -> TemplateNode:
        raw = self.get_starttag_text() or ""
        match = _TAG_NAME_RE.match(raw)
        tag = match.group(1) if match else ""
        line = self.getpos()[0] + self.first_line - 1
        return TemplateNode(
            tag=tag,
            line=line,
            attributes={name: value or "" for name, value in attrs},
        )

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        node = self._node(attrs)
        self._stack[-1].children.append(node)
        if tag.lower() not in _VOID_ELEMENTS:
            self._stack.append(node)

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._stack[-1].children.append(self._node(attrs))

    def handle_endtag(self, tag: str) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag.lower() == tag.lower():
                del self._stack[depth:]
                return

    def handle_data(self, data: str) -> None:
        for match in _INTERPOLATION_RE.finditer(data):
            self._stack[-1].interpolations.append(match.group(1).strip())


def parse_template(block: str, first_line: int = 1) -> TemplateNode:
    builder = _TemplateBuilder(first_line)
    builder.feed(block)
    builder.close()
    return builder.root


def iter_template(node: TemplateNode) -> Iterable[TemplateNode]:
    yield node
    for child in node.children:
        yield from iter_template(child)


# ===================================================================
# Template references
# ===================================================================

def kebab_to_pascal(name: str) -> str:
    """``user-card`` -> ``UserCard``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("-") if part)


def is_directive(attribute: str) -> bool:
    return attribute.startswith(_DIRECTIVE_PREFIXES)


def template_references(root: TemplateNode, known_names: Set[str]) -> List[str]:
    """Names from *known_names* used by the template, in document order.

    Interpolations and directive values are scanned for identifier-like
    tokens; component tags match literally or after kebab-case to
    PascalCase conversion.
    """
    found: List[str] = []
    seen: Set[str] = set()

    def add(name: str) -> None:
        if name in known_names and name not in seen:
            seen.add(name)
            found.append(name)

    for node in iter_template(root):
        if node.tag and node.tag != "#root":
            add(node.tag)
            if "-" in node.tag:
                add(kebab_to_pascal(node.tag))
        for name, value in node.attributes.items():
            if is_directive(name):
                for token in IDENTIFIER_RE.findall(value):
                    add(token)
        for expression in node.interpolations:
            for token in IDENTIFIER_RE.findall(expression):
                add(token)
    return found
