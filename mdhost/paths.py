"""Request path sandboxing.

Maps a public request path onto a directory without ever leaving it. Both the
lexical form (``..`` segments, absolute paths) and the symlink-resolved form
of the result must stay inside the root.
"""

from __future__ import annotations

import os
from pathlib import Path

from .errors import TraversalError


def is_located_in(path: Path, parent: Path) -> bool:
    """Return True if normalized ``path`` is ``parent`` or lies below it.

    Comparison is per path component, so ``/srv/site2`` is not inside
    ``/srv/site``.
    """
    normalized = Path(os.path.normpath(path))
    return normalized.is_relative_to(Path(os.path.normpath(parent)))


def resolve(root: Path, request_path: str) -> Path:
    """Resolve ``request_path`` against ``root``.

    Args:
        root: Directory all results must stay within.
        request_path: Relative path taken from a request, e.g. ``"blog/post"``.

    Returns:
        The normalized path inside ``root``.

    Raises:
        TraversalError: If the path escapes ``root`` lexically or through a
            symlink, or contains a NUL byte.
    """
    if "\0" in request_path:
        raise TraversalError(root, request_path)
    root = Path(os.path.normpath(root))
    candidate = Path(os.path.normpath(os.path.join(root, request_path)))
    if not is_located_in(candidate, root):
        raise TraversalError(root, request_path)
    if not candidate.resolve().is_relative_to(root.resolve()):
        raise TraversalError(root, request_path)
    return candidate
