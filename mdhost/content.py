"""Content resolution for mdhost.

This module is the single entry point the HTTP layer consults. It maps a
request path or an HTTP status code to a file on disk, rendering markdown
documents on demand when their cached page is stale.

Key classes:
- SiteLayout: Reserved file and directory names of a content root.
- ContentResolver: Resolves requests and owns rendering and watching.

Filesystem layout of a content root::

    root/
        template.html          shared page skeleton
        index.md               home page source
        index.html             rendered home page
        .fingerprint.json      source snapshot of the last render
        blog/index.md          any directory with index.md is a page
        status/404/index.md    status pages, never served by path
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from . import paths
from .cache import (
    ARTIFACT_NAME,
    FINGERPRINT_NAME,
    SOURCE_NAME,
    Document,
    Fingerprint,
    RenderCache,
)
from .directives import DirectiveExpander
from .errors import ConfigurationError, RenderError, ResolverError
from .log_utils import get_logger
from .renderers import DocumentRenderer, SiteTemplate
from .utils import iter_directories

if TYPE_CHECKING:
    from .watcher import ChangeWatcher

logger = get_logger("content")


@dataclass(frozen=True)
class SiteLayout:
    """Reserved names inside a content root.

    Attributes:
        source_name: Markdown source filename of a document.
        artifact_name: Rendered HTML filename of a document.
        fingerprint_name: Fingerprint sidecar filename of a document.
        template_name: Site template filename at the root.
        status_dir: Directory at the root holding status pages.
    """

    source_name: str = SOURCE_NAME
    artifact_name: str = ARTIFACT_NAME
    fingerprint_name: str = FINGERPRINT_NAME
    template_name: str = "template.html"
    status_dir: str = "status"

    @property
    def internal_names(self) -> frozenset[str]:
        return frozenset({self.source_name, self.artifact_name, self.fingerprint_name})


class ContentResolver:
    """Resolves request paths and status codes to servable files.

    Attributes:
        root: Absolute content root.
        site_name: Display name of the site.
        layout: Reserved names of the content root.
        cache: Render cache deciding staleness.
        renderer: Document renderer.
    """

    def __init__(
        self,
        root: Path,
        site_name: str,
        layout: SiteLayout | None = None,
        cache: RenderCache | None = None,
        renderer: DocumentRenderer | None = None,
    ):
        """Initialize the resolver.

        Args:
            root: Content root directory.
            site_name: Display name substituted into the site template.
            layout: Optional custom reserved names.
            cache: Optional custom render cache.
            renderer: Optional custom document renderer.
        """
        self.root = Path(root).absolute()
        self.site_name = site_name
        self.layout = layout or SiteLayout()
        self.cache = cache or RenderCache()
        self.renderer = renderer or DocumentRenderer(
            SiteTemplate(self.template_path, site_name),
            expander=DirectiveExpander(source_name=self.layout.source_name),
        )
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._watcher: ChangeWatcher | None = None

    @property
    def template_path(self) -> Path:
        return self.root / self.layout.template_name

    @property
    def status_path(self) -> Path:
        return self.root / self.layout.status_dir

    def document(self, directory: Path) -> Document:
        """Return the Document stored in ``directory``."""
        return Document(
            directory,
            source_name=self.layout.source_name,
            artifact_name=self.layout.artifact_name,
            fingerprint_name=self.layout.fingerprint_name,
        )

    def iter_documents(self) -> list[Document]:
        """Return every document under the root that has a source file."""
        documents = (self.document(path) for path in iter_directories(self.root))
        return [document for document in documents if document.has_source()]

    def _lock_for(self, document: Document) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(document.directory, threading.Lock())

    def render(self, document: Document, force: bool = False) -> bool:
        """Render a document if it is stale, or always when ``force`` is set.

        Renders of the same document are serialized; a caller that waited for
        another render re-checks staleness before doing any work. A failed
        render is logged and leaves the document stale.

        Args:
            document: Document to render.
            force: Render even when the cached page is fresh.

        Returns:
            True if the document's page is up to date afterwards.

        Raises:
            ConfigurationError: If the site template is missing.
        """
        with self._lock_for(document):
            if not force and not self.cache.is_stale(document):
                return True
            try:
                # Snapshot before reading, so edits made mid-render stay stale.
                fingerprint = Fingerprint.of(document.source_path)
                self.renderer.render(document.source_path, document.artifact_path)
                self.cache.record(document, fingerprint)
            except OSError as exc:
                logger.error("Failed to render %s: %s", document.source_path, exc)
                return False
            except RenderError as exc:
                logger.error("Failed to render %s", exc)
                return False
            logger.debug("Rendered %s", document.artifact_path)
            return True

    def reload(self) -> int:
        """Render every document under the root, ignoring the cache.

        A failure in one document never stops the others.

        Returns:
            Number of documents rendered successfully.
        """
        rendered = 0
        for document in self.iter_documents():
            if self.render(document, force=True):
                rendered += 1
        logger.info("Rendered %d document(s) under %s", rendered, self.root)
        return rendered

    def _is_internal_file(self, path: Path) -> bool:
        if path.name in self.layout.internal_names:
            return True
        if self.template_path.exists() and path.samefile(self.template_path):
            return True
        return paths.is_located_in(path, self.status_path)

    def from_path(self, request_path: str) -> Path | None:
        """Resolve a request path to a servable file.

        Directories holding a source file resolve to their rendered page,
        rendering it first if stale. Other regular files are served as is,
        except internal files: sources, rendered pages, fingerprints, the
        site template and anything under the status directory.

        Args:
            request_path: Path relative to the content root.

        Returns:
            Path of the file to serve, or None when nothing should be served.

        Raises:
            TraversalError: If the path escapes the content root.
            ResolverError: If the path is neither a directory nor a file.
        """
        path = paths.resolve(self.root, request_path)
        if not path.exists():
            return None
        if path.is_dir():
            if paths.is_located_in(path, self.status_path):
                return None
            document = self.document(path)
            if not document.has_source():
                return None
            self.render(document)
            # A failed render still serves the last good page, if any.
            return document.artifact_path if document.artifact_path.is_file() else None
        if path.is_file():
            if self._is_internal_file(path):
                return None
            return path
        raise ResolverError(f"Unsupported filesystem object at {path}")

    def from_status(self, code: int) -> Path:
        """Resolve an HTTP status code to its rendered status page.

        Args:
            code: HTTP status code, e.g. 404.

        Returns:
            Path of the rendered status page.

        Raises:
            TraversalError: If the code escapes the status directory.
            ConfigurationError: If no source exists for the status page.
            RenderError: If the page never rendered successfully.
        """
        path = paths.resolve(self.status_path, str(code))
        document = self.document(path)
        if not document.has_source():
            raise ConfigurationError(
                f"Missing status page for {code}: expected {document.source_path}"
            )
        self.render(document)
        if not document.artifact_path.is_file():
            raise RenderError(document.source_path, f"Status page {code} could not be rendered")
        return document.artifact_path

    def start_watcher(self, watcher: ChangeWatcher | None = None) -> ChangeWatcher:
        """Start watching the content root for changes.

        Args:
            watcher: Optional pre-built watcher, e.g. with a polling observer.

        Returns:
            The running watcher.
        """
        from .watcher import ChangeWatcher

        if self._watcher is not None:
            return self._watcher
        self._watcher = watcher or ChangeWatcher(self)
        self._watcher.start()
        return self._watcher

    def stop_watcher(self) -> None:
        """Stop the watcher, if running."""
        if self._watcher is None:
            return
        self._watcher.stop()
        self._watcher = None
