"""Exception types raised by mdhost.

Key classes:
- TraversalError: A request path escapes the content root.
- ConfigurationError: Operator-provided content or configuration is missing.
- RenderError: A single document failed to render.
- ResolverError: A request resolved to an unsupported filesystem object.
"""

from __future__ import annotations

from pathlib import Path


class MdhostError(Exception):
    """Base class for all mdhost errors."""


class TraversalError(MdhostError):
    """Error raised when a request path resolves outside its root.

    Attributes:
        root: Directory the path was resolved against.
        request_path: The offending request path.
    """

    def __init__(self, root: Path, request_path: str):
        self.root = root
        self.request_path = request_path
        super().__init__(f"Path {request_path!r} is not located in {root}")


class ConfigurationError(MdhostError):
    """Error raised for operator misconfiguration with no safe fallback."""


class RenderError(MdhostError):
    """Error during rendering of a single document.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ResolverError(MdhostError):
    """Error raised when a path is neither a directory nor a regular file."""
