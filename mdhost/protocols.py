"""Protocol definitions for mdhost.

The document renderer depends on these interfaces rather than on concrete
classes, so tests and embedders can swap the markdown engine or the metadata
convention without touching the rendering pipeline.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, runtime_checkable


@runtime_checkable
class MarkdownTransform(Protocol):
    """Protocol for converting markdown text into an HTML fragment."""

    @abstractmethod
    def render(self, content: str) -> str:
        """Render markdown to HTML.

        Args:
            content: Markdown source, already directive-expanded.

        Returns:
            Rendered HTML fragment.
        """
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for extracting declared metadata from markdown text."""

    @abstractmethod
    def extract(self, content: str) -> dict[str, str]:
        """Extract metadata from content.

        Args:
            content: Raw markdown source.

        Returns:
            Mapping of metadata keys to string values.
        """
        ...
