"""Turn an import specifier into a project file key."""

from __future__ import annotations

import json
import logging
import posixpath
import re
from typing import Collection, Dict, Optional

from .config import RESOLVE_EXTENSIONS

logger = logging.getLogger(__name__)

# Strings are matched first so "@/*" inside a key is never taken for a comment.
_JSON_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def normalize_path(path: str) -> str:
    """Collapse ``.``/``..`` segments; keys never start with ``./`` or ``/``."""
    if not path:
        return path
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized == ".":
        return ""
    return normalized.lstrip("/")


def _alias_prefix(pattern: str) -> str:
    return pattern[:-1] if pattern.endswith("*") else pattern


def match_alias(specifier: str, aliases: Dict[str, str]) -> Optional[str]:
    """Rewrite *specifier* through the longest matching alias prefix."""
    best: Optional[str] = None
    best_len = -1
    for pattern, target in aliases.items():
        prefix = _alias_prefix(pattern)
        if pattern.endswith("*"):
            if not specifier.startswith(prefix):
                continue
        elif specifier != pattern:
            continue
        if len(prefix) > best_len:
            best_len = len(prefix)
            rest = specifier[len(prefix):] if pattern.endswith("*") else ""
            best = _alias_prefix(target) + rest
    return best


def is_relative(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")


def is_external(specifier: str, aliases: Dict[str, str]) -> bool:
    """True for package imports (``react``, ``@vue/runtime-core``)."""
    return not is_relative(specifier) and match_alias(specifier, aliases) is None


def probe(candidate: str, file_keys: Collection[str]) -> Optional[str]:
    """Try each resolve extension on *candidate*; first existing key wins."""
    candidate = normalize_path(candidate)
    for ext in RESOLVE_EXTENSIONS:
        key = f"{candidate}{ext}" if candidate else ext.lstrip("/")
        if key in file_keys:
            return key
    return None


def resolve_import(
    from_path: str,
    specifier: str,
    aliases: Dict[str, str],
    file_keys: Collection[str],
) -> Optional[str]:
    """Resolve *specifier* as imported from *from_path*.

    Aliases are tried first, then relative paths against the importing
    file's directory.  Package imports and broken paths return None.
    """
    aliased = match_alias(specifier, aliases)
    if aliased is not None:
        return probe(aliased, file_keys)
    if is_relative(specifier):
        base = posixpath.dirname(from_path)
        return probe(posixpath.join(base, specifier), file_keys)
    return None


def load_tsconfig_aliases(text: str) -> Dict[str, str]:
    """Read ``compilerOptions.paths`` from a tsconfig.json body.

    Only the first target of each pattern is kept, prefixed with
    ``baseUrl`` when one is set.
    """
    without_comments = _JSON_COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", without_comments)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Could not read tsconfig paths: %s", exc)
        return {}
    options = payload.get("compilerOptions") or {}
    base_url = normalize_path(options.get("baseUrl", "") or "")
    aliases: Dict[str, str] = {}
    for pattern, targets in (options.get("paths") or {}).items():
        if not targets:
            continue
        target = targets[0]
        if base_url:
            target = posixpath.join(base_url, target)
        if target.endswith("*"):
            prefix = normalize_path(target[:-1])
            aliases[pattern] = f"{prefix}/*" if prefix else "*"
        else:
            aliases[pattern] = normalize_path(target)
    return aliases
