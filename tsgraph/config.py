"""Configuration paths and parser settings for local tsgraph memory."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("TSGRAPH_HOME", str(Path.home() / ".tsgraph"))).expanduser()
MEMORY_DIR = BASE_DIR / "memory"
STATE_FILE = BASE_DIR / "state.json"

SUPPORTED_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".vue"}

# Probed in order when resolving an aliased or relative import specifier.
RESOLVE_EXTENSIONS = ("", ".ts", ".tsx", ".js", ".jsx", ".vue", "/index.ts", "/index.tsx")

SKIP_DIRS = {
    "node_modules", ".git", "dist", "build", "coverage", ".next", ".nuxt",
    ".output", ".cache", ".turbo", ".vite", ".svelte-kit", "out", ".tsgraph",
}

DEFAULT_ALIASES = {"@/*": "src/*"}

# Framework calls that never become graph nodes.
REACT_PRIMITIVES = frozenset({
    "useState", "useEffect", "useMemo", "useCallback", "useRef", "useContext",
    "useReducer", "useLayoutEffect", "useImperativeHandle", "useDebugValue",
    "useDeferredValue", "useTransition", "useId", "useSyncExternalStore",
    "useInsertionEffect",
})
VUE_PRIMITIVES = frozenset({
    "ref", "computed", "reactive", "watch", "watchEffect", "onMounted",
    "onUnmounted", "onUpdated", "onBeforeMount", "onBeforeUnmount",
    "onBeforeUpdate", "provide", "inject", "toRefs", "storeToRefs",
    "defineProps", "defineEmits", "defineExpose", "withDefaults", "shallowRef",
    "triggerRef", "customRef", "shallowReactive", "toRef", "unref", "isRef",
    "isProxy", "isReactive", "isReadonly", "readonly",
})
FRAMEWORK_PRIMITIVES = REACT_PRIMITIVES | VUE_PRIMITIVES

# Progress is reported every PROGRESS_PERCENT percent of the file set.
PROGRESS_PERCENT = 10

# Overrides for aliases and parser settings live in ~/.tsgraph/config.toml
# and are read through config_manager (set via `tsg config`).


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    MEMORY_DIR.mkdir(parents=True, exist_ok=True)
    BASE_DIR.mkdir(parents=True, exist_ok=True)
