"""Site configuration for mdhost.

A configuration file lists the sites to serve. It is read with YAML, so plain
JSON works too::

    - port: 8080
      host: 127.0.0.1
      name: example.org
      title: Example
      path: /srv/sites/$name$

``$name$`` inside ``path`` is replaced with the site's ``name``. A mapping with
a ``sites`` key holding the list is accepted as well.

Key functions:
- load_sites: Load site records from a configuration file.
- render_nginx_config: Generate an nginx reverse-proxy configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined

from .errors import ConfigurationError
from .log_utils import get_logger

logger = get_logger("config")

REQUIRED_FIELDS = ("port", "host", "path", "name", "title")

NGINX_TEMPLATE = """\
server {
        listen 80;
        listen 443 ssl;
        server_name {{ site.name }};
        location / {
                proxy_pass http://localhost:{{ site.port }}/;
                proxy_set_header Host $http_host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
                server_tokens off;
        }
        ssl_certificate /etc/letsencrypt/live/{{ site.name }}/fullchain.pem;
        ssl_certificate_key /etc/letsencrypt/live/{{ site.name }}/privkey.pem;
        ssl_dhparam /etc/letsencrypt/ssl-dhparams.pem;
        include /etc/letsencrypt/options-ssl-nginx.conf;
}"""


@dataclass
class SiteConfig:
    """Configuration of one served site.

    Attributes:
        port: Port the HTTP server listens on.
        host: Host the HTTP server binds to.
        path: Content root directory.
        name: Server name, used for the proxy configuration.
        title: Display name of the website.
    """

    port: int
    host: str
    path: str
    name: str
    title: str

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SiteConfig:
        """Build a SiteConfig from a raw mapping.

        Args:
            record: Mapping read from the configuration file.

        Returns:
            The site configuration.

        Raises:
            ConfigurationError: If a field is missing or has the wrong type.
        """
        missing = [key for key in REQUIRED_FIELDS if record.get(key) in (None, "")]
        if missing:
            raise ConfigurationError(f"Missing site field(s): {', '.join(missing)}")
        port = record["port"]
        if isinstance(port, bool) or not isinstance(port, int):
            raise ConfigurationError(f"Site port must be an integer, got {port!r}")
        name = str(record["name"])
        return cls(
            port=port,
            host=str(record["host"]),
            path=str(record["path"]).replace("$name$", name),
            name=name,
            title=str(record["title"]),
        )


def load_sites(config_path: Path) -> list[SiteConfig]:
    """Load site configurations from a YAML or JSON file.

    Invalid records are skipped with a warning.

    Args:
        config_path: Path to the configuration file.

    Returns:
        List of valid site configurations.

    Raises:
        ConfigurationError: If the file is unreadable or not a list of sites.
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid configuration {config_path}: {exc}") from exc

    if isinstance(loaded, dict):
        loaded = loaded.get("sites")
    if not isinstance(loaded, list):
        raise ConfigurationError(f"Expected a list of sites in {config_path}")

    sites: list[SiteConfig] = []
    for index, record in enumerate(loaded):
        if not isinstance(record, dict):
            logger.warning("Skipping site #%d: not a mapping", index)
            continue
        try:
            sites.append(SiteConfig.from_record(record))
        except ConfigurationError as exc:
            logger.warning("Skipping site #%d: %s", index, exc)
    return sites


def render_nginx_config(sites: list[SiteConfig]) -> str:
    """Render an nginx reverse-proxy configuration for the given sites.

    Args:
        sites: Sites to proxy.

    Returns:
        One ``server`` block per site, separated by blank lines.
    """
    env = Environment(autoescape=False, undefined=StrictUndefined)
    template = env.from_string(NGINX_TEMPLATE)
    return "\n\n".join(template.render(site=site) for site in sites)
