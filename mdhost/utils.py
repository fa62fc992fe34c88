"""Utility functions for mdhost.

This module contains small filesystem and string helpers used throughout the
mdhost codebase.

Key functions:
    iter_directories: Walk a directory tree, yielding every directory.
    atomic_write_text: Write a file so readers never observe partial content.
    titleize: Convert a directory name to a human-readable title.
"""

from __future__ import annotations

import os
import re
import tempfile
from collections.abc import Iterator
from pathlib import Path


def iter_directories(root: Path) -> Iterator[Path]:
    """Yield ``root`` and every directory below it.

    Directories are visited top-down in sorted order. Symlinked directories
    are not followed.

    Args:
        root: Directory to walk.

    Yields:
        Paths of directories, starting with ``root`` itself.
    """
    if not root.is_dir():
        return
    for dirpath, dirnames, _ in os.walk(root):
        dirnames.sort()
        yield Path(dirpath)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to ``path`` through a temporary file and an atomic rename.

    Args:
        path: Destination file.
        text: Content to write, encoded as UTF-8.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        # Atomic replace to avoid windows where the file is half written.
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def titleize(name: str) -> str:
    """Convert a directory or file name to a human-readable title.

    Replaces hyphens and underscores with spaces and capitalizes each word.

    Args:
        name: Directory name or filename.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("getting-started")
        'Getting Started'

        >>> titleize("release_notes.md")
        'Release Notes'
    """
    base = Path(name).stem if Path(name).suffix == ".md" else name
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"
