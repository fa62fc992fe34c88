"""Render cache for mdhost.

A rendered page is trusted only while the source it was rendered from is
unchanged. The size and modification time of the source are recorded in a
JSON sidecar next to the artifact after every successful render; any mismatch
with the current source marks the page stale.

Key classes:
- Document: A content directory and its reserved file names.
- Fingerprint: Size and modification time of a source file.
- RenderCache: Staleness checks and fingerprint persistence.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .log_utils import get_logger
from .utils import atomic_write_text

SOURCE_NAME = "index.md"
ARTIFACT_NAME = "index.html"
FINGERPRINT_NAME = ".fingerprint.json"

logger = get_logger("cache")


@dataclass(frozen=True)
class Document:
    """A content directory holding a markdown source and its derived files.

    Attributes:
        directory: Directory of the document.
        source_name: Filename of the markdown source.
        artifact_name: Filename of the rendered HTML.
        fingerprint_name: Filename of the fingerprint sidecar.
    """

    directory: Path
    source_name: str = SOURCE_NAME
    artifact_name: str = ARTIFACT_NAME
    fingerprint_name: str = FINGERPRINT_NAME

    @property
    def source_path(self) -> Path:
        return self.directory / self.source_name

    @property
    def artifact_path(self) -> Path:
        return self.directory / self.artifact_name

    @property
    def fingerprint_path(self) -> Path:
        return self.directory / self.fingerprint_name

    def has_source(self) -> bool:
        return self.source_path.is_file()


@dataclass(frozen=True)
class Fingerprint:
    """Snapshot of a source file used to detect changes.

    Attributes:
        size: File size in bytes.
        mtime_ns: Modification time in nanoseconds since the epoch.
    """

    size: int
    mtime_ns: int

    @classmethod
    def of(cls, path: Path) -> Fingerprint:
        """Capture the fingerprint of ``path`` from its current stat."""
        stat = path.stat()
        return cls(size=stat.st_size, mtime_ns=stat.st_mtime_ns)

    @property
    def date(self) -> str:
        """Modification time as an ISO-8601 UTC timestamp."""
        seconds, nanos = divmod(self.mtime_ns, 1_000_000_000)
        moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return moment.replace(microsecond=nanos // 1000).isoformat()

    def to_record(self) -> dict[str, Any]:
        return {"size": self.size, "date": self.date, "mtime_ns": self.mtime_ns}

    def matches(self, record: dict[str, Any]) -> bool:
        """Return True if a persisted record describes this exact snapshot.

        Records without ``mtime_ns`` are compared on their ``date`` field.
        """
        if record.get("size") != self.size:
            return False
        if "mtime_ns" in record:
            return record["mtime_ns"] == self.mtime_ns
        return record.get("date") == self.date


class RenderCache:
    """Decides whether rendered artifacts are still valid."""

    def read_record(self, document: Document) -> dict[str, Any] | None:
        """Load the persisted fingerprint record of a document.

        Args:
            document: Document to inspect.

        Returns:
            The record mapping, or None when it is missing or malformed.
        """
        try:
            payload = json.loads(document.fingerprint_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable fingerprint %s: %s", document.fingerprint_path, exc)
            return None
        if not isinstance(payload, dict):
            return None
        return payload

    def is_stale(self, document: Document) -> bool:
        """Check whether a document must be rendered again.

        A document is fresh only when its artifact exists, a fingerprint
        record exists, and the record matches the source's current size and
        modification time exactly.

        Args:
            document: Document to check.

        Returns:
            True if the artifact is missing or out of date.
        """
        if not document.artifact_path.is_file():
            return True
        record = self.read_record(document)
        if record is None:
            return True
        try:
            current = Fingerprint.of(document.source_path)
        except OSError:
            return True
        return not current.matches(record)

    def record(self, document: Document, fingerprint: Fingerprint) -> None:
        """Persist a fingerprint after the artifact has been written.

        Args:
            document: Document that was rendered.
            fingerprint: Snapshot of the source taken before rendering.
        """
        atomic_write_text(
            document.fingerprint_path,
            json.dumps(fingerprint.to_record(), indent=2) + "\n",
        )

