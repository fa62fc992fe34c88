"""Document rendering for mdhost.

This module turns a markdown source plus the shared site template into a
finished HTML page.

Key classes:
- MarkdownRenderer: Renders markdown to an HTML fragment with mistune.
- SiteTemplate: The shared page skeleton with ``$name$``-style placeholders.
- DocumentRenderer: Runs the whole pipeline for one document.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from markupsafe import escape

from .directives import DirectiveExpander
from .errors import ConfigurationError, RenderError
from .extractors import DESCRIPTION_KEY, TITLE_KEY, default_metadata_extractor
from .html_utils import normalize_html, strip_document_shell
from .protocols import MarkdownTransform, MetadataExtractor
from .utils import atomic_write_text

_PLACEHOLDER_RE = re.compile(r"\$(name|title|description|content)\$")


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with Pygments code highlighting."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with highlighted code.
        """
        if info:
            from pygments import highlight
            from pygments.formatters import HtmlFormatter
            from pygments.lexers import get_lexer_by_name
            from pygments.util import ClassNotFound

            try:
                lexer = get_lexer_by_name(info.split()[0], stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info.split()[0]}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders markdown content to an HTML fragment."""

    def render(self, content: str) -> str:
        """Render markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Rendered HTML fragment.
        """
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        return markdown(content)


class SiteTemplate:
    """Shared HTML skeleton of a site.

    The template is read from disk on every render so edits take effect
    without a restart.

    Attributes:
        path: Location of the template file.
        site_name: Display name substituted for ``$name$``.
    """

    def __init__(self, path: Path, site_name: str):
        self.path = path
        self.site_name = site_name

    def read(self) -> str:
        """Return the template text.

        Raises:
            ConfigurationError: If the template file does not exist.
        """
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Site template not found at {self.path}") from exc

    def fill(self, title: str, description: str, content: str) -> str:
        """Substitute every placeholder in a single pass.

        Substituted values are never scanned for placeholders again. Title and
        description are HTML-escaped; content is inserted as is.

        Args:
            title: Page title.
            description: Page description.
            content: Rendered page body.

        Returns:
            The filled-in page.
        """
        values = {
            "name": str(escape(self.site_name)),
            "title": str(escape(title)),
            "description": str(escape(description)),
            "content": content,
        }
        return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], self.read())


class DocumentRenderer:
    """Renders one markdown document into a complete HTML page.

    Attributes:
        template: Site template wrapped around every page.
        markdown: Markdown transform.
        metadata_extractor: Extractor for declared metadata.
        expander: Directive expander.
    """

    def __init__(
        self,
        template: SiteTemplate,
        markdown: MarkdownTransform | None = None,
        metadata_extractor: MetadataExtractor | None = None,
        expander: DirectiveExpander | None = None,
    ):
        self.template = template
        self.markdown = markdown or MarkdownRenderer()
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.expander = expander or DirectiveExpander(
            metadata_extractor=self.metadata_extractor
        )

    def render_text(self, text: str, document_dir: Path) -> str:
        """Render markdown source text into a full page.

        Args:
            text: Markdown source.
            document_dir: Directory holding the document, for listings.

        Returns:
            Normalized HTML page.
        """
        metadata = self.metadata_extractor.extract(text)
        expanded = self.expander.expand(text, metadata, document_dir)
        body = strip_document_shell(self.markdown.render(expanded))
        page = self.template.fill(
            title=metadata.get(TITLE_KEY, ""),
            description=metadata.get(DESCRIPTION_KEY, ""),
            content=body,
        )
        return normalize_html(page)

    def render(self, source_path: Path, output_path: Path) -> None:
        """Render ``source_path`` and write the page to ``output_path``.

        The output file is replaced atomically, so readers see either the old
        page or the new one.

        Args:
            source_path: Markdown source file.
            output_path: Destination HTML file.

        Raises:
            RenderError: If reading, transforming or writing fails.
            ConfigurationError: If the site template is missing.
        """
        try:
            text = source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RenderError(source_path, f"Cannot read source: {exc}", exc) from exc
        try:
            page = self.render_text(text, source_path.parent)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise RenderError(
                source_path, f"{type(exc).__name__}: {exc}", exc
            ) from exc
        try:
            atomic_write_text(output_path, page)
        except OSError as exc:
            raise RenderError(source_path, f"Cannot write {output_path}: {exc}", exc) from exc
