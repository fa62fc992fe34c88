"""HTML utility functions for mdhost.

Functions:
    time_markup: Build the ``<time>`` element shown for dated documents.
    strip_document_shell: Remove an outer ``<body>`` wrapper from a fragment.
    normalize_html: Re-serialize a page, closing unclosed tags.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bs4 import BeautifulSoup

# Encoded newline, so the tooltip keeps two lines inside the attribute.
_NEWLINE_ENTITY = "&#10;"


def _format_full(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return f"{utc:%Y-%m-%d %H:%M:%S}.{utc.microsecond // 1000:03d}"


def time_markup(created: datetime, updated: datetime) -> str:
    """Return a ``<time>`` element describing a document's timestamps.

    The visible text is the UTC creation date in emphasis markdown; the
    tooltip carries the full creation and update timestamps.

    Args:
        created: Creation timestamp.
        updated: Last update timestamp.

    Returns:
        Inline HTML for embedding in markdown source.

    Examples:
        >>> from datetime import datetime, timezone
        >>> c = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        >>> time_markup(c, c)
        '<time title="Created at: 2024-03-01 10:00:00.000&#10;Updated at: 2024-03-01 10:00:00.000">*2024-03-01*</time>'
    """
    short = created.astimezone(timezone.utc).strftime("%Y-%m-%d")
    tooltip = (
        f"Created at: {_format_full(created)}"
        f"{_NEWLINE_ENTITY}"
        f"Updated at: {_format_full(updated)}"
    )
    return f'<time title="{tooltip}">*{short}*</time>'


def strip_document_shell(html: str) -> str:
    """Remove a surrounding ``<body>...</body>`` wrapper, if present."""
    stripped = html.strip()
    if stripped.startswith("<body>") and stripped.endswith("</body>"):
        return stripped[len("<body>") : -len("</body>")]
    return html


def normalize_html(html: str) -> str:
    """Normalize an HTML page.

    Unclosed tags are closed and attributes are re-serialized with double
    quotes.

    Args:
        html: HTML document text.

    Returns:
        Normalized HTML text.
    """
    soup = BeautifulSoup(html, "html.parser")
    return str(soup)
