"""Host adapter: wires the rewrite engine into a filter/hook registry.

Each hook hands a URL (or a list/dict of URLs) to its callbacks and expects
the same shape back, mirroring the CMS filter system the engine serves.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

from urlfixer.rewrite import RewriteEngine

LOG = logging.getLogger("urlfixer.filters")

DEFAULT_PRIORITY = 10

# media, redirect and static asset URLs
URL_FILTERS = (
    "wp_get_attachment_url",
    "wp_calculate_image_srcset",
    "login_redirect",
    "script_loader_src",
    "style_loader_src",
    "plugins_url",
)

# site/home URL resolution, only when serving a multisite network
MULTISITE_FILTERS = (
    "option_home",
    "option_siteurl",
    "network_site_url",
)


class FilterRegistry:
    """Minimal filter registry: callbacks run by priority, then insertion order."""

    def __init__(self) -> None:
        self._filters: dict[str, list[tuple[int, int, Callable[[Any], Any]]]] = defaultdict(list)
        self._counter = 0

    def add_filter(self, hook: str, callback: Callable[[Any], Any], priority: int = DEFAULT_PRIORITY) -> None:
        self._filters[hook].append((priority, self._counter, callback))
        self._filters[hook].sort(key=lambda item: (item[0], item[1]))
        self._counter += 1

    def has_filter(self, hook: str) -> bool:
        return bool(self._filters.get(hook))

    def hooks(self) -> list[str]:
        return [hook for hook, callbacks in self._filters.items() if callbacks]

    def apply_filters(self, hook: str, value: Any) -> Any:
        for _, _, callback in self._filters.get(hook, ()):
            value = callback(value)
        return value


def register_filters(engine: RewriteEngine, registry: FilterRegistry, multisite: bool = False) -> list[str]:
    """Register ``engine.rewrite`` on every URL-bearing hook; returns the hooks used."""
    hooks = list(MULTISITE_FILTERS) if multisite else []
    hooks.extend(URL_FILTERS)
    for hook in hooks:
        registry.add_filter(hook, engine.rewrite)
    LOG.debug("Registered rewrite filters hooks=%s", ",".join(hooks))
    return hooks
