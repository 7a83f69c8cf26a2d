"""robots.txt parsing and permission checks.

Rules are stored per lowercased host, once. The first ``parse`` for a host
wins; later calls for the same host are ignored, so a host is never
re-parsed within one crawl.

Agent selection: the presented user-agent is matched case-insensitively
against each group's agent name as a prefix, and the longest matching name
wins. Without a match the ``*`` group applies. Path patterns are globs matched
as path prefixes, ``$`` anchors a pattern to the end of the path, and the
longest matching pattern decides between allow and disallow.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .parsing import UrlTools, glob_match


@dataclass
class Rule:
    user_agent: str
    allow: List[str] = field(default_factory=list)
    disallow: List[str] = field(default_factory=list)
    crawl_delay: Optional[float] = None


@dataclass(frozen=True)
class RuleSet:
    rules: Tuple[Rule, ...]
    sitemaps: Tuple[str, ...] = ()


def parse_robots(content: str) -> RuleSet:
    rules: Dict[str, Rule] = {}
    sitemaps: List[str] = []
    current: Optional[Rule] = None

    for line in content.splitlines():
        clean = line.strip()
        if not clean or clean.startswith("#"):
            continue
        clean = clean.split("#", 1)[0].strip()
        key, sep, value = clean.partition(":")
        if not sep:
            continue
        key, value = key.strip().lower(), value.strip()

        if key == "sitemap":
            if value:
                sitemaps.append(value)
        elif key == "user-agent":
            current = rules.setdefault(value, Rule(user_agent=value))
        elif current is None:
            continue
        elif key == "allow":
            current.allow.append(value)
        elif key == "disallow":
            current.disallow.append(value)
        elif key == "crawl-delay":
            try:
                current.crawl_delay = float(value)
            except ValueError:
                continue

    return RuleSet(rules=tuple(rules.values()), sitemaps=tuple(sitemaps))


def robots_match(pattern: str, path: str) -> bool:
    if not pattern:
        return False
    if pattern.endswith("$"):
        # anchored: the whole path must match
        return glob_match(pattern[:-1], path)
    return glob_match(pattern + "*", path)


class Robots:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger(__name__)
        self._store: Dict[str, RuleSet] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(url: str) -> Optional[str]:
        return UrlTools.host(url)

    def exists(self, origin: str) -> bool:
        key = self._key(origin)
        with self._lock:
            return key in self._store

    def parse(self, url: str, content: str) -> None:
        key = self._key(url)
        if key is None:
            self.log.warning("Cannot store robots.txt for %s: no host", url)
            return
        ruleset = parse_robots(content or "")
        with self._lock:
            if key in self._store:
                return
            self._store[key] = ruleset
        self.log.debug("Parsed robots.txt for %s: %d rule groups", key, len(ruleset.rules))

    def _ruleset(self, url: str) -> Optional[RuleSet]:
        key = self._key(url)
        with self._lock:
            return self._store.get(key)

    def get_rule(self, url: str, user_agent: Optional[str]) -> Optional[Rule]:
        ruleset = self._ruleset(url)
        if ruleset is None:
            return None
        agent = (user_agent or "").lower()
        applicable = [r for r in ruleset.rules if r.user_agent and agent.startswith(r.user_agent.lower())]
        if not applicable:
            applicable = [r for r in ruleset.rules if r.user_agent == "*"]
        if not applicable:
            return None
        return max(applicable, key=lambda r: len(r.user_agent))

    def is_allowed(self, url: str, user_agent: Optional[str]) -> bool:
        rule = self.get_rule(url, user_agent)
        if rule is None:
            return True

        path = urlparse(url).path or "/"
        matched = [("allow", p) for p in rule.allow if robots_match(p, path)]
        matched += [("disallow", p) for p in rule.disallow if robots_match(p, path)]
        if not matched:
            return True

        # max() keeps the first of equally long patterns
        action, pattern = max(matched, key=lambda m: len(m[1]))
        if action == "disallow":
            self.log.info("Skipping (robots) %s; matched %r", url, pattern)
        return action == "allow"

    def crawl_delay(self, url: str, user_agent: Optional[str]) -> Optional[float]:
        rule = self.get_rule(url, user_agent)
        return rule.crawl_delay if rule else None

    def sitemaps(self, url: str) -> List[str]:
        ruleset = self._ruleset(url)
        return list(ruleset.sitemaps) if ruleset else []
