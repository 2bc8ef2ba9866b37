"""tsgraph: dependency graph and code-intelligence index for TS/TSX/Vue projects."""

__version__ = "0.3.0"
