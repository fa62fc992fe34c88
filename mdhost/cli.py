"""Command-line interface for mdhost.

This module defines the CLI commands using Click framework.

Commands:
- serve: Serve every site from a configuration file.
- render: Render every document of a content root once.
- nginx: Print or write an nginx reverse-proxy configuration.
- new: Scaffold a new content root.
"""

from __future__ import annotations

import shutil
import time
from pathlib import Path

import click

from . import __version__
from .log_utils import configure_logging

# Path to the scaffold copied by `mdhost new`
_SKELETON_DIR = Path(__file__).parent / "skeleton"


@click.group()
@click.version_option(version=__version__, prog_name="mdhost")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """mdhost markdown web server."""
    configure_logging(verbose=verbose)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="YAML or JSON file listing the sites to serve",
)
@click.option(
    "--nginx-config",
    "nginx_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
    help="Also write an nginx reverse-proxy configuration to this file",
)
@click.option(
    "--cache-max-age",
    type=int,
    default=3600,
    show_default=True,
    help="Cache-Control max-age sent with every response",
)
def serve(config_path: Path, nginx_path: Path | None, cache_max_age: int):
    """Serve every configured site until interrupted."""
    from .config import load_sites, render_nginx_config
    from .errors import ConfigurationError
    from .server import serve_sites

    try:
        sites = load_sites(config_path)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from None
    if not sites:
        raise click.ClickException(f"No valid sites found in {config_path}")
    if nginx_path is not None:
        nginx_path.write_text(render_nginx_config(sites) + "\n", encoding="utf-8")
        click.echo(f"Wrote nginx configuration to {nginx_path}")

    servers = serve_sites(sites, cache_max_age=cache_max_age)
    for site in sites:
        click.echo(f"Serving {site.path} at http://{site.host}:{site.port}")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        for server in servers:
            server.stop()


@cli.command()
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--name", default=None, help="Site name (defaults to the directory name)")
def render(root: Path, name: str | None):
    """Render every document under ROOT once."""
    from .content import ContentResolver
    from .errors import ConfigurationError

    resolver = ContentResolver(root, name or root.resolve().name)
    try:
        count = resolver.reload()
    except ConfigurationError as exc:
        click.echo(click.style("Render failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None
    total = len(resolver.iter_documents())
    click.echo(f"Rendered {count} of {total} documents under {resolver.root}")
    if count < total:
        raise SystemExit(1)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="YAML or JSON file listing the sites",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
    help="Write to this file instead of standard output",
)
def nginx(config_path: Path, output: Path | None):
    """Generate an nginx reverse-proxy configuration."""
    from .config import load_sites, render_nginx_config
    from .errors import ConfigurationError

    try:
        sites = load_sites(config_path)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from None
    text = render_nginx_config(sites)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Wrote nginx configuration to {output}")


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new content root."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New content root created at {target}")


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the skeleton content root into ``root``.

    Args:
        root: Directory for the new content root.
    """
    for src_path in _SKELETON_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SKELETON_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
