"""
urlfixer - URL rewriting for multi-tenant sites backed by object storage.

Media URLs under the uploads directory are moved to the storage bucket,
local development URLs get their missing port, and every other host is
moved onto the tenant subdomain. Override rules exempt URLs entirely.
"""

__version__ = "0.1.0"

from urlfixer.cache import RewriteCache
from urlfixer.config import ConfigContext, base_domain
from urlfixer.filters import FilterRegistry, register_filters
from urlfixer.overrides import (
    ExactOverride,
    OverrideRuleSet,
    RegexOverride,
    WildcardOverride,
    compile_rule,
    load_overrides,
    matches,
)
from urlfixer.rewrite import RewriteDecision, RewriteEngine, parse_url


def build_engine(environ=None, overrides_file=None, **kwargs) -> RewriteEngine:
    """Build an engine from environment variables and an optional overrides file."""
    config = ConfigContext.from_env(environ)
    return RewriteEngine(config, OverrideRuleSet(load_overrides(overrides_file)), **kwargs)


__all__ = [
    "__version__",
    "build_engine",
    "ConfigContext",
    "base_domain",
    "RewriteCache",
    "RewriteEngine",
    "RewriteDecision",
    "parse_url",
    "OverrideRuleSet",
    "RegexOverride",
    "WildcardOverride",
    "ExactOverride",
    "compile_rule",
    "matches",
    "load_overrides",
    "FilterRegistry",
    "register_filters",
]
