"""Metadata extraction for mdhost.

Documents declare metadata as markdown reference-link definitions whose label
starts with ``metadata:``. The destination is ignored and the link title holds
the value::

    [metadata:title]: . "Hello"
    [metadata:create-timestamp]: . "2024-03-01T10:00:00Z"

Definitions never show up in rendered output, so the declarations are
invisible to readers.

Key classes and functions:
- DeclaredMetadataExtractor: Collects declared key/value pairs from a document.
- parse_timestamp: Parses ISO-8601 timestamp values.
"""

from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Any

import mistune

METADATA_PREFIX = "metadata:"

TITLE_KEY = "title"
DESCRIPTION_KEY = "description"
CREATE_TIMESTAMP_KEY = "create-timestamp"
UPDATE_TIMESTAMP_KEY = "update-timestamp"


def parse_document(text: str) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Parse markdown into block tokens and the parser environment.

    Args:
        text: Markdown source.

    Returns:
        Tuple of (block tokens, parser env). The env holds ``ref_links``, the
        reference-link definitions found in the document.
    """
    markdown = mistune.create_markdown(renderer=None)
    tokens, state = markdown.parse(text)
    return tokens, state.env


def declared_metadata(env: dict[str, Any]) -> dict[str, str]:
    """Collect metadata declarations from a parser environment.

    Definitions without a title or with an empty key are skipped.

    Args:
        env: Parser environment returned by ``parse_document``.

    Returns:
        Mapping of metadata keys to values.
    """
    metadata: dict[str, str] = {}
    for key, item in env.get("ref_links", {}).items():
        label = str(item.get("label") or key).strip()
        if not label.lower().startswith(METADATA_PREFIX):
            continue
        name = label[len(METADATA_PREFIX) :].strip()
        title = item.get("title")
        if not name or title is None:
            continue
        metadata.setdefault(name, html.unescape(title))
    return metadata


class DeclaredMetadataExtractor:
    """Extracts ``[metadata:key]: . "value"`` declarations from markdown."""

    def extract(self, content: str) -> dict[str, str]:
        """Extract declared metadata from content.

        Args:
            content: Raw markdown source, before directive expansion.

        Returns:
            Dictionary of declared keys and values.
        """
        _, env = parse_document(content)
        return declared_metadata(env)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp.

    Naive values are taken to be UTC.

    Args:
        value: Timestamp text, possibly empty or missing.

    Returns:
        Timezone-aware datetime, or None when absent or unparseable.

    Examples:
        >>> parse_timestamp("2024-03-01T10:00:00Z")
        datetime.datetime(2024, 3, 1, 10, 0, tzinfo=datetime.timezone.utc)

        >>> parse_timestamp("yesterday") is None
        True
    """
    if not value or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def document_timestamps(
    metadata: dict[str, str],
) -> tuple[datetime | None, datetime | None]:
    """Return the parsed (create, update) timestamps of a document."""
    return (
        parse_timestamp(metadata.get(CREATE_TIMESTAMP_KEY)),
        parse_timestamp(metadata.get(UPDATE_TIMESTAMP_KEY)),
    )


# Default extractor instance
default_metadata_extractor = DeclaredMetadataExtractor()
