"""Template directive expansion.

Directives are literal tokens in markdown source that are replaced with
computed content before the markdown is rendered:

- ``[template:title]``: the document title.
- ``[template:description]``: the document description.
- ``[template:timestamp]``: a ``<time>`` element from the create/update timestamps.
- ``[template:dirlist]``: a listing of the child documents of the directory.

Key classes:
- ListingEntry: One child document in a directory listing.
- DirectiveExpander: Expands all directives in a document's source.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from .extractors import (
    DESCRIPTION_KEY,
    TITLE_KEY,
    default_metadata_extractor,
    document_timestamps,
)
from .html_utils import time_markup
from .log_utils import get_logger
from .protocols import MetadataExtractor
from .utils import titleize

TITLE_DIRECTIVE = "[template:title]"
DESCRIPTION_DIRECTIVE = "[template:description]"
TIMESTAMP_DIRECTIVE = "[template:timestamp]"
DIRLIST_DIRECTIVE = "[template:dirlist]"

logger = get_logger("directives")

_LINK_TEXT_SPECIALS = re.compile(r"([\\\[\]])")


def timestamp_for(metadata: dict[str, str]) -> str:
    """Return time markup for a document, or "" unless both timestamps parse."""
    created, updated = document_timestamps(metadata)
    if created is None or updated is None:
        return ""
    return time_markup(created, updated)


@dataclass
class ListingEntry:
    """A child document shown by the ``[template:dirlist]`` directive.

    Attributes:
        name: Directory name of the child, used for the link.
        title: Link text.
        description: Optional description paragraph.
        timestamp: Time markup, empty when the child is undated.
        created: Parsed creation timestamp used for ordering.
    """

    name: str
    title: str
    description: str
    timestamp: str
    created: datetime | None

    def to_markdown(self) -> str:
        link_text = _LINK_TEXT_SPECIALS.sub(r"\\\1", self.title)
        parts = [f"## [{link_text}](./{quote(self.name)}/)"]
        if self.timestamp:
            parts.append(self.timestamp)
        if self.description:
            parts.append(self.description)
        return "\n\n".join(parts) + "\n\n"


def sort_entries(entries: list[ListingEntry]) -> list[ListingEntry]:
    """Order entries newest first; undated entries go last, by name."""
    by_name = sorted(entries, key=lambda entry: entry.name)
    dated = [entry for entry in by_name if entry.created is not None]
    undated = [entry for entry in by_name if entry.created is None]
    dated.sort(key=lambda entry: entry.created, reverse=True)
    return dated + undated


class DirectiveExpander:
    """Expands template directives in markdown source.

    Attributes:
        source_name: Filename of document sources, e.g. ``index.md``.
        metadata_extractor: Extractor used for child documents.
    """

    def __init__(
        self,
        source_name: str = "index.md",
        metadata_extractor: MetadataExtractor | None = None,
    ):
        self.source_name = source_name
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def expand(self, text: str, metadata: dict[str, str], document_dir: Path) -> str:
        """Replace every directive present in ``text``.

        Each expansion is computed only when its token occurs in the text.

        Args:
            text: Raw markdown source.
            metadata: Metadata extracted from the unexpanded source.
            document_dir: Directory holding the document.

        Returns:
            Markdown with directives replaced.
        """
        expansions: list[tuple[str, Callable[[], str]]] = [
            (TITLE_DIRECTIVE, lambda: metadata.get(TITLE_KEY, "")),
            (DESCRIPTION_DIRECTIVE, lambda: metadata.get(DESCRIPTION_KEY, "")),
            (TIMESTAMP_DIRECTIVE, lambda: timestamp_for(metadata)),
            (DIRLIST_DIRECTIVE, lambda: self.directory_listing(document_dir)),
        ]
        result = text
        for token, expansion in expansions:
            if token in text:
                result = result.replace(token, expansion())
        return result

    def listing_entries(self, document_dir: Path) -> list[ListingEntry]:
        """Build listing entries for the direct children of ``document_dir``.

        Only immediate subdirectories holding a source file are considered.
        Children whose source cannot be read are skipped.
        """
        entries: list[ListingEntry] = []
        for child in document_dir.iterdir():
            source = child / self.source_name
            if not child.is_dir() or not source.is_file():
                continue
            try:
                text = source.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s in listing: %s", source, exc)
                continue
            child_metadata = self.metadata_extractor.extract(text)
            created, _ = document_timestamps(child_metadata)
            entries.append(
                ListingEntry(
                    name=child.name,
                    title=child_metadata.get(TITLE_KEY) or titleize(child.name),
                    description=child_metadata.get(DESCRIPTION_KEY, ""),
                    timestamp=timestamp_for(child_metadata),
                    created=created,
                )
            )
        return sort_entries(entries)

    def directory_listing(self, document_dir: Path) -> str:
        """Render the ``[template:dirlist]`` expansion for a directory."""
        return "".join(
            entry.to_markdown() for entry in self.listing_entries(document_dir)
        )
