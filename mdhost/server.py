"""HTTP server for mdhost.

Serves a content root through a ContentResolver:
- Directories with a markdown source are served as their rendered page.
- Static files are served as is; internal files are hidden.
- Missing paths get the rendered 404 status page with a 404 status.
- Unexpected failures get the rendered 500 status page.
- Paths escaping the content root are refused with a bare 403.

Key classes:
- SiteServer: Runs one site: initial render, watcher and HTTP server.
- _ContentHandler: HTTP request handler backed by a ContentResolver.
"""

from __future__ import annotations

import email.utils
import functools
import threading
import urllib.parse
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .config import SiteConfig
from .content import ContentResolver
from .errors import MdhostError, TraversalError
from .log_utils import get_logger

logger = get_logger("server")


class _ContentHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that resolves paths through a ContentResolver.

    Attributes:
        resolver: Resolver for the served content root.
        cache_max_age: Seconds clients may cache responses.
    """

    server_version = "mdhost"

    def __init__(
        self, *args, resolver: ContentResolver, cache_max_age: int = 3600, **kwargs
    ):
        self.resolver = resolver
        self.cache_max_age = cache_max_age
        super().__init__(*args, **kwargs)

    def end_headers(self):
        self.send_header("Cache-Control", f"max-age={self.cache_max_age}")
        super().end_headers()

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)

    def _request_path(self) -> str:
        path = urllib.parse.urlsplit(self.path).path
        return urllib.parse.unquote(path).lstrip("/")

    def _send_file(self, path: Path, code: int = HTTPStatus.OK):
        """Send headers for ``path`` and return an open file for the body."""
        f = open(path, "rb")
        try:
            stat = path.stat()
            self.send_response(code)
            self.send_header("Content-type", self.guess_type(str(path)))
            self.send_header("Content-Length", str(stat.st_size))
            self.send_header(
                "Last-Modified", email.utils.formatdate(stat.st_mtime, usegmt=True)
            )
            self.end_headers()
        except BaseException:
            f.close()
            raise
        return f

    def _serve_status(self, code: int):
        """Serve the rendered status page for ``code``, or a bare error."""
        try:
            page = self.resolver.from_status(int(code))
        except MdhostError as exc:
            logger.error("Status page %s unavailable: %s", int(code), exc)
            self.send_error(code)
            return None
        return self._send_file(page, code)

    def send_head(self):
        request_path = self._request_path()
        try:
            path = self.resolver.from_path(request_path)
        except TraversalError as exc:
            logger.warning("Refused %s: %s", self.path, exc)
            self.send_error(HTTPStatus.FORBIDDEN)
            return None
        except Exception:
            logger.exception("Failed to resolve %s", self.path)
            return self._serve_status(HTTPStatus.INTERNAL_SERVER_ERROR)

        if path is None:
            return self._serve_status(HTTPStatus.NOT_FOUND)

        if (
            path.name == self.resolver.layout.artifact_name
            and request_path
            and not request_path.endswith("/")
        ):
            # Relative links in a page only work below a trailing slash.
            parts = urllib.parse.urlsplit(self.path)
            location = urllib.parse.urlunsplit(
                (parts[0], parts[1], parts[2] + "/", parts[3], parts[4])
            )
            self.send_response(HTTPStatus.MOVED_PERMANENTLY)
            self.send_header("Location", location)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return None

        try:
            return self._send_file(path)
        except OSError:
            logger.exception("Cannot open %s", path)
            return self._serve_status(HTTPStatus.INTERNAL_SERVER_ERROR)


class SiteServer:
    """Serves one site with on-demand rendering and a change watcher.

    Attributes:
        config: Site configuration.
        resolver: Content resolver for the site's content root.
        cache_max_age: Seconds clients may cache responses.
    """

    def __init__(self, config: SiteConfig, cache_max_age: int = 3600):
        """Initialize the server.

        Args:
            config: Site configuration.
            cache_max_age: Value of the Cache-Control max-age directive.
        """
        self.config = config
        root = Path(config.path)
        root.mkdir(parents=True, exist_ok=True)
        self.resolver = ContentResolver(root, config.title)
        self.cache_max_age = cache_max_age
        self._httpd: ThreadingHTTPServer | None = None

    def make_handler(self):
        return functools.partial(
            _ContentHandler, resolver=self.resolver, cache_max_age=self.cache_max_age
        )

    def start(self) -> None:  # pragma: no cover - integration path
        """Render the site, start watching and serve until stopped."""
        self.resolver.reload()
        self.resolver.start_watcher()
        self._httpd = ThreadingHTTPServer(
            (self.config.host, self.config.port), self.make_handler()
        )
        logger.info(
            "Serving %s at http://%s:%d", self.resolver.root, self.config.host, self.config.port
        )
        try:
            self._httpd.serve_forever()
        finally:
            self._httpd.server_close()
            self.resolver.stop_watcher()

    def stop(self) -> None:
        """Stop serving and stop the watcher."""
        if self._httpd is not None:
            self._httpd.shutdown()
        else:
            self.resolver.stop_watcher()


def serve_sites(
    sites: list[SiteConfig], cache_max_age: int = 3600
) -> list[SiteServer]:  # pragma: no cover - integration path
    """Start one server thread per site and return the servers."""
    servers = [SiteServer(site, cache_max_age=cache_max_age) for site in sites]
    for server in servers:
        threading.Thread(
            target=server.start, name=f"mdhost-{server.config.name}", daemon=True
        ).start()
    return servers
