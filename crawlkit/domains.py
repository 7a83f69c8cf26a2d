import logging
from typing import Dict, List, Optional

from .config import CrawlConfig
from .parsing import UrlTools, glob_match


class DomainFilter:
    """Decides whether a URL is inside the configured crawl scope.

    Explicit domains match the URL host exactly, after dropping a leading
    ``www.`` on both sides; subdomains are not included implicitly. Glob
    patterns are matched against the full URL string.
    """

    def __init__(self, config: CrawlConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.log = logger or logging.getLogger(__name__)
        self.allowed_domains = self._extract_allowed_domains(config.allowed_domains)
        self.domain_glob: List[str] = list(config.domain_glob)

    @staticmethod
    def base_domain(domain: str) -> str:
        candidate = domain.strip()
        host = UrlTools.host(candidate if "://" in candidate else "//" + candidate)
        if not host:
            return candidate.lower()
        return UrlTools.strip_www(host)

    def _extract_allowed_domains(self, domains: List[str]) -> List[str]:
        if not domains:
            return []
        return list(dict.fromkeys(self.base_domain(d) for d in domains if d))

    def is_allowed(self, url: str) -> bool:
        if not self.allowed_domains and not self.domain_glob:
            return True

        if self.domain_glob:
            if any(glob_match(pattern, url) for pattern in self.domain_glob):
                return True
            self.log.info("URL not allowed: %s", url)
            return False

        host = UrlTools.host(url)
        allowed = host is not None and UrlTools.strip_www(host) in self.allowed_domains
        if not allowed:
            self.log.info("URL not allowed: %s", url)
        return allowed

    def stats(self) -> Dict[str, int]:
        return {"allowed_domains": len(self.allowed_domains), "domain_glob": len(self.domain_glob)}
