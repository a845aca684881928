"""Override rules that exempt URLs from rewriting.

Rule forms (decided by the shape of the rule string):
- Regex: starts with ``/``, delimiter syntax ``/body/flags`` searched in the URL
- Wildcard: contains ``*``, matched against the whole URL; scheme optional
- Exact: anything else, compared byte for byte (``http://`` added if no scheme)

Rules are evaluated in order; the first match wins.
Rule files are either Python files exporting get_overrides() / OVERRIDES,
or plain text files with one rule per line.
"""

import logging
import os
import re
from typing import Optional, Protocol, Sequence
from urllib.parse import urlsplit

LOG = logging.getLogger("urlfixer.overrides")

_SCHEME_RE = re.compile(r"^https?://")
_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def normalize_url(url: str) -> str:
    """Prefix ``http://`` to a URL that has no scheme."""
    try:
        scheme = urlsplit(url).scheme
    except ValueError:
        scheme = ""
    if not scheme:
        return "http://" + url.lstrip("/")
    return url


class OverrideRule(Protocol):
    rule: str

    def match(self, url: str) -> bool:
        ...


class RegexOverride:
    """Raw regular expression, searched (not anchored) in the URL."""

    __slots__ = ("rule", "_compiled")

    def __init__(self, rule: str) -> None:
        self.rule = rule
        self._compiled = _compile_delimited(rule)

    def match(self, url: str) -> bool:
        if self._compiled is None:
            return False
        return self._compiled.search(url) is not None


class WildcardOverride:
    """``*`` matches any substring; the whole URL must match."""

    __slots__ = ("rule", "_compiled")

    def __init__(self, rule: str) -> None:
        self.rule = rule
        if _SCHEME_RE.match(rule):
            scheme, rest = rule.split("://", 1)
            prefix = re.escape(scheme) + "://"
        else:
            prefix = "(?i:https?)://"
            rest = rule.lstrip("/")
        body = re.escape(rest).replace(r"\?", "?").replace(r"\*", ".*")
        self._compiled = re.compile(prefix + body)

    def match(self, url: str) -> bool:
        return self._compiled.fullmatch(url) is not None


class ExactOverride:
    __slots__ = ("rule", "_expected")

    def __init__(self, rule: str) -> None:
        self.rule = rule
        self._expected = rule if _SCHEME_RE.match(rule) else "http://" + rule.lstrip("/")

    def match(self, url: str) -> bool:
        return self._expected == url


def _compile_delimited(rule: str) -> Optional[re.Pattern[str]]:
    body, sep, flag_chars = rule[1:].rpartition("/")
    if not sep:
        LOG.error("Override regex has no ending delimiter rule=%s", rule)
        return None
    flags = 0
    for ch in flag_chars:
        if ch not in _REGEX_FLAGS:
            LOG.error("Override regex has unsupported flag rule=%s flag=%s", rule, ch)
            return None
        flags |= _REGEX_FLAGS[ch]
    try:
        return re.compile(body.replace(r"\/", "/"), flags)
    except re.error as exc:
        LOG.error("Override regex failed to compile rule=%s error=%s", rule, exc)
        return None


def compile_rule(rule: str) -> OverrideRule:
    # a leading "/" is a regex even when it contains "*"
    if rule.startswith("/"):
        return RegexOverride(rule)
    if "*" in rule:
        return WildcardOverride(rule)
    return ExactOverride(rule)


def matches(rule: str | OverrideRule, url: str) -> bool:
    """Return True if ``url`` is exempted by ``rule``."""
    if isinstance(rule, str):
        rule = compile_rule(rule)
    return rule.match(normalize_url(url))


class OverrideRuleSet:
    """Ordered override rules. First match short-circuits."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Optional[Sequence[str | OverrideRule]] = None) -> None:
        self._rules = [compile_rule(r) if isinstance(r, str) else r for r in (rules or ())]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def first_match(self, url: str) -> Optional[OverrideRule]:
        normalized = normalize_url(url)
        for rule in self._rules:
            if rule.match(normalized):
                return rule
        return None

    def add_rule(self, rule: str | OverrideRule, index: int = 0) -> None:
        """Insert a rule (default at front) for programmatic overrides."""
        self._rules.insert(index, compile_rule(rule) if isinstance(rule, str) else rule)


def _load_override_module(path: str):
    import importlib.util

    spec = importlib.util.spec_from_file_location("urlfixer_overrides_file", path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Unable to load overrides file: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def parse_override_lines(text: str) -> list[str]:
    rules: list[str] = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        rules.append(line)
    return rules


def load_overrides(path: Optional[str]) -> list[str]:
    """Load override rule strings from ``path``; missing files yield no rules."""
    if not path or not os.path.isfile(path):
        return []
    if not path.endswith(".py"):
        try:
            with open(path, encoding="utf-8") as f:
                rules = parse_override_lines(f.read())
        except OSError as exc:
            LOG.error("Overrides file read failed path=%s error=%s", path, exc)
            return []
        LOG.info("Overrides loaded path=%s count=%d", path, len(rules))
        return rules

    try:
        module = _load_override_module(path)
    except Exception as exc:
        LOG.error("Overrides file load failed path=%s error=%s", path, exc)
        return []

    if hasattr(module, "get_overrides"):
        rules = module.get_overrides()
        source = "get_overrides"
    elif hasattr(module, "OVERRIDES"):
        rules = module.OVERRIDES
        source = "OVERRIDES"
    else:
        LOG.error("Overrides file missing get_overrides/OVERRIDES path=%s", path)
        return []
    if isinstance(rules, str) or not all(isinstance(r, str) for r in rules or ()):
        LOG.error("Overrides file %s is not a list of strings path=%s", source, path)
        return []
    LOG.info("Overrides loaded via %s path=%s count=%d", source, path, len(rules or ()))
    return list(rules or ())
