"""Runtime configuration snapshot for the URL rewrite engine.

All values are resolved once, before the engine is built, and never change
afterwards. Missing values are empty strings so string operations on them
never fail.
"""

import ipaddress
import os
from dataclasses import dataclass, field, fields
from typing import Mapping, Optional
from urllib.parse import urlsplit

DEFAULT_HOME = "http://localhost"
DEFAULT_UPLOADS_MARKER = "/app/uploads/"


def base_domain(url: str) -> tuple[str, str]:
    """Return ``(domain, domain_with_port)`` for a site URL.

    The domain is the last two labels of the host, e.g.
    ``https://www.example.com:8080`` -> ``("example.com", "example.com:8080")``.
    Single-label hosts and IP addresses are kept whole.
    """
    try:
        parts = urlsplit(url if "//" in url else f"//{url}")
        host = parts.hostname or ""
        port = parts.port
    except ValueError:
        return "", ""
    try:
        ipaddress.ip_address(host)
        domain = host
    except ValueError:
        domain = ".".join(host.split(".")[-2:])
    with_port = f"{domain}:{port}" if port else domain
    return domain, with_port


def _netloc(url: str) -> str:
    if "//" not in url:
        return url
    try:
        return urlsplit(url).netloc
    except ValueError:
        return url


@dataclass(frozen=True)
class ConfigContext:
    storage_url: str = ""
    storage_bucket: str = ""
    uploads_base_url: str = ""
    uploads_path: str = ""
    subdomain_suffix: str = ""
    base_domain_with_port: str = ""
    scheme: str = ""
    port: str = ""
    tenant_id: str = ""
    uploads_marker: str = DEFAULT_UPLOADS_MARKER
    storage_netloc: str = field(default="", init=False, repr=False)
    storage_prefix: str = field(default="", init=False, repr=False)
    target_host: str = field(default="", init=False, repr=False)

    def __post_init__(self) -> None:
        for f in fields(self):
            if not f.init:
                continue
            value = getattr(self, f.name)
            if value is None:
                object.__setattr__(self, f.name, "")
            elif not isinstance(value, str):
                object.__setattr__(self, f.name, str(value))
        storage_url = self.storage_url.rstrip("/")
        object.__setattr__(self, "storage_netloc", _netloc(storage_url))
        object.__setattr__(self, "storage_prefix", f"{storage_url}/{self.storage_bucket}")
        object.__setattr__(self, "target_host", f"{self.subdomain_suffix}.{self.base_domain_with_port}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **options) -> "ConfigContext":
        """Build a context from the host's environment variables.

        Keyword arguments that are not None take precedence over the
        values read from the environment.
        """
        env = os.environ if environ is None else environ
        home = env.get("WP_HOME") or DEFAULT_HOME
        try:
            scheme = urlsplit(home).scheme
        except ValueError:
            scheme = ""
        marker = env.get("UPLOADS_MARKER") or DEFAULT_UPLOADS_MARKER
        uploads_url = env.get("UPLOADS_URL", "")
        try:
            uploads_path = urlsplit(uploads_url).path.replace(marker, "") if uploads_url else ""
        except ValueError:
            uploads_path = ""
        values = {
            "storage_url": env.get("MINIO_URL", ""),
            "storage_bucket": env.get("MINIO_BUCKET", ""),
            "uploads_base_url": env.get("UPLOADS_BASEURL", ""),
            "uploads_path": uploads_path,
            "subdomain_suffix": env.get("SUBDOMAIN_SUFFIX", ""),
            "base_domain_with_port": base_domain(home)[1],
            "scheme": scheme,
            "port": env.get("NGINX_PORT", ""),
            "tenant_id": env.get("TENANT_ID", ""),
            "uploads_marker": marker,
        }
        values.update({k: v for k, v in options.items() if v is not None})
        return cls(**values)

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.init}
