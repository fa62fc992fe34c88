"""mdhost markdown web server.

This package renders a tree of markdown documents into HTML pages and serves
them over HTTP. Pages are re-rendered only when their source changes, and a
filesystem watcher keeps rendered output in step with edits.

The main entry points are the ContentResolver in the content module, which the
HTTP layer consults for every request, and the CLI module, which provides
commands for serving sites, rendering a content root once, generating a
reverse-proxy configuration and scaffolding a new content root.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
