from __future__ import annotations

from pathlib import Path

import pytest

TEMPLATE = (
    "<html><head><title>$title$ | $name$</title>"
    '<meta name="description" content="$description$"></head>'
    "<body><main>$content$</main></body></html>"
)


def _write_doc(
    directory: Path,
    title: str | None = None,
    description: str | None = None,
    body: str = "",
    created: str | None = None,
    updated: str | None = None,
) -> Path:
    """Write an index.md with metadata declarations into ``directory``."""
    declarations = [
        ("title", title),
        ("description", description),
        ("create-timestamp", created),
        ("update-timestamp", updated),
    ]
    lines = [f'[metadata:{key}]: . "{value}"' for key, value in declarations if value is not None]
    directory.mkdir(parents=True, exist_ok=True)
    source = directory / "index.md"
    source.write_text("\n".join(lines) + "\n\n" + body + "\n", encoding="utf-8")
    return source


@pytest.fixture
def write_doc():
    """Provide the document writer helper."""
    return _write_doc


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A content root with a template, a home page and both status pages."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "template.html").write_text(TEMPLATE, encoding="utf-8")
    _write_doc(root, title="Home", description="Front page", body="Welcome")
    _write_doc(root / "status" / "404", title="Not found", body="Nothing here")
    _write_doc(root / "status" / "500", title="Error", body="Broken")
    return root
