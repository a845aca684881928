"""URL rewrite decision engine.

Policies, evaluated in order for every URL not already in the cache:

1. override     - URL matches an override rule; returned unchanged
2. localhost    - host is ``localhost`` without a port; the local port is added
3. storage-hit  - URL is already on the storage endpoint; returned unchanged
4. storage      - path is under the uploads marker; moved to the storage bucket
5. generic      - any other host is moved to ``{label.}{suffix}.{base domain}``
6. unchanged    - URL already points at localhost or the target host

Strings without a host or scheme are not URLs and pass through untouched.
Lists, tuples and dicts are rewritten element by element and keep their shape.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from urlfixer.cache import RewriteCache
from urlfixer.config import ConfigContext
from urlfixer.overrides import OverrideRule, OverrideRuleSet

LOG = logging.getLogger("urlfixer.rewrite")

INVALID = "invalid"
OVERRIDE = "override"
LOCALHOST = "localhost"
STORAGE_HIT = "storage-hit"
STORAGE = "storage"
GENERIC = "generic"
UNCHANGED = "unchanged"

# Only the first host label is kept; a.b.example.com keeps "a" and drops "b".
_GENERIC_RE = re.compile(
    r"[A-Za-z][A-Za-z0-9+.-]*://"
    r"(?:(?P<label>[A-Za-z0-9_-]+)\.(?=[A-Za-z0-9_-]+\.))?"
    r"[:.A-Za-z0-9_-]+"
    r"(?P<path>/.*)?"
)


@dataclass(frozen=True)
class ParsedURL:
    scheme: str
    host: str
    port: Optional[int]
    path: str
    query: str
    fragment: str = ""
    raw_host: str = ""

    @property
    def host_port(self) -> str:
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def query_suffix(self) -> str:
        return f"?{self.query}" if self.query else ""

    @property
    def fragment_suffix(self) -> str:
        return f"#{self.fragment}" if self.fragment else ""


def _raw_host(netloc: str) -> str:
    hostinfo = netloc.rpartition("@")[2]
    if hostinfo.startswith("["):
        return hostinfo.partition("]")[0] + "]"
    return hostinfo.partition(":")[0]


def parse_url(url: str) -> Optional[ParsedURL]:
    """Split ``url``; None if it has no scheme or no host."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return ParsedURL(
        scheme=parts.scheme,
        host=parts.hostname,
        port=port,
        path=parts.path,
        query=parts.query,
        fragment=parts.fragment,
        raw_host=_raw_host(parts.netloc),
    )


def _strip_query(url: str) -> str:
    return url.partition("#")[0].partition("?")[0]


def _template_literal(value: str) -> str:
    return value.replace("{", "{{").replace("}", "}}")


@dataclass(frozen=True)
class RewriteDecision:
    """One traced rewrite decision."""

    original: str
    result: str
    branch: str
    rule: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.original != self.result


class RewriteEngine:
    """Rewrites site and media URLs for the configured tenant and storage backend."""

    def __init__(
        self,
        config: ConfigContext,
        overrides: Optional[OverrideRuleSet | Sequence[str]] = None,
        *,
        cache: Optional[RewriteCache] = None,
        trace: Optional[Callable[[RewriteDecision], None]] = None,
    ) -> None:
        self.config = config
        if isinstance(overrides, OverrideRuleSet):
            self.overrides = overrides
        else:
            self.overrides = OverrideRuleSet(overrides)
        self.cache = cache if cache is not None else RewriteCache()
        self._trace = trace
        self._localhost_template = "{scheme}://{host}:" + _template_literal(config.port) + "{path}"
        self._generic_template = (
            _template_literal(config.scheme) + "://{label}" + _template_literal(config.target_host) + "{path}"
        )
        self._storage_hit_marker = config.storage_netloc.lower()
        self._sites_marker = config.uploads_marker + "sites/"
        self._tenant_segment = f"/sites/{config.tenant_id}"
        self._target_host = config.target_host.lower()

    def rewrite(self, url: Any) -> Any:
        """Rewrite a URL, or each URL of a list/tuple/dict; other values pass through."""
        if isinstance(url, str):
            return self._rewrite_url(url)
        if isinstance(url, list):
            return [self.rewrite(u) for u in url]
        if isinstance(url, tuple):
            return tuple(self.rewrite(u) for u in url)
        if isinstance(url, Mapping):
            return {k: self.rewrite(v) for k, v in url.items()}
        return url

    __call__ = rewrite

    def _rewrite_url(self, url: str) -> str:
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        parsed = parse_url(url)
        if parsed is None:
            self._record(url, url, INVALID)
            return url

        rule = self.overrides.first_match(url)
        if rule is not None:
            LOG.debug("Rewrite excluded url=%s rule=%s", url, rule.rule)
            return self._store(url, url, OVERRIDE, rule)

        # host names compare case-insensitively; the input spelling is kept
        if parsed.host == "localhost" and parsed.port is None:
            rewritten = self._localhost_template.format(
                scheme=parsed.scheme, host=parsed.raw_host, path=parsed.path
            ) + parsed.query_suffix
            LOG.debug("Rewrite localhost url=%s rewritten=%s", url, rewritten)
            return self._store(url, rewritten, LOCALHOST)

        if self._storage_hit_marker and self._storage_hit_marker in parsed.host_port:
            self._record(url, url, STORAGE_HIT)
            return url

        if parsed.path and self.config.uploads_marker in parsed.path:
            rewritten = self._rewrite_storage(url, parsed)
            LOG.debug("Rewrite media url=%s rewritten=%s", url, rewritten)
            return self._store(url, rewritten, STORAGE)

        url_lower = url.lower()
        if "localhost" not in url_lower and self._target_host not in url_lower:
            rewritten = self._rewrite_generic(url, parsed)
            LOG.debug("Rewrite generic url=%s rewritten=%s", url, rewritten)
            return self._store(url, rewritten, GENERIC)

        return self._store(url, url, UNCHANGED)

    def _rewrite_storage(self, url: str, parsed: ParsedURL) -> str:
        tenant_segment = self._tenant_segment if self._sites_marker in parsed.path else ""
        base = _strip_query(url)
        if self.config.uploads_base_url:
            base = base.replace(
                self.config.uploads_base_url,
                self.config.storage_prefix + tenant_segment,
            )
        return base + parsed.query_suffix + parsed.fragment_suffix

    def _rewrite_generic(self, url: str, parsed: ParsedURL) -> str:
        m = _GENERIC_RE.fullmatch(_strip_query(url))
        if m is None:
            LOG.debug("Generic rewrite pattern did not match url=%s", url)
            return url
        label = m.group("label")
        return self._generic_template.format(
            label=f"{label}." if label else "",
            path=m.group("path") or "",
        ) + parsed.query_suffix + parsed.fragment_suffix

    def _store(self, url: str, rewritten: str, branch: str, rule: Optional[OverrideRule] = None) -> str:
        self.cache.set(url, rewritten)
        self._record(url, rewritten, branch, rule)
        return rewritten

    def _record(self, url: str, rewritten: str, branch: str, rule: Optional[OverrideRule] = None) -> None:
        if self._trace is None:
            return
        decision = RewriteDecision(url, rewritten, branch, rule.rule if rule is not None else None)
        try:
            self._trace(decision)
        except Exception:
            LOG.exception("Rewrite trace callback failed url=%s", url)
