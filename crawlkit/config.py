from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple, Type

from .errors import TRANSIENT_ERRORS, ConfigError


DEFAULT_USER_AGENT = "crawlkit/0.1 (+https://example.com; contact: crawler@example.com)"
PROXY_STRATEGIES = ("round_robin", "random")


def default_headers() -> Dict[str, str]:
    return {"User-Agent": DEFAULT_USER_AGENT}


@dataclass(frozen=True)
class CrawlConfig:
    timeout: float = 10.0
    headers: Dict[str, str] = field(default_factory=default_headers)
    max_depth: Optional[int] = None
    max_parallelism: Optional[int] = 1
    random_delay: float = 0.0
    allow_url_revisit: bool = False
    max_retries: int = 0
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    retryable_errors: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS
    max_visited: int = 10_000
    ignore_robots_txt: bool = False
    allowed_domains: List[str] = field(default_factory=list)
    domain_glob: List[str] = field(default_factory=list)
    allow_cookies: bool = False
    proxies: List[str] = field(default_factory=list)
    proxy_strategy: str = "round_robin"
    metrics_interval: float = 0.0

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        if self.max_retries is None or self.max_retries < 0:
            object.__setattr__(self, "max_retries", 0)
        object.__setattr__(self, "retryable_errors", tuple(self.retryable_errors))
        self.validate()

    def validate(self) -> None:
        if self.allowed_domains and self.domain_glob:
            raise ConfigError("Cannot specify both allowed_domains and domain_glob")
        if self.proxy_strategy not in PROXY_STRATEGIES:
            raise ConfigError(f"Unknown proxy strategy: {self.proxy_strategy}")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.max_depth is not None and self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.max_parallelism is not None and self.max_parallelism < 1:
            raise ConfigError("max_parallelism must be >= 1")
        if self.max_visited < 1:
            raise ConfigError("max_visited must be >= 1")
        if self.random_delay < 0 or self.retry_delay < 0:
            raise ConfigError("delays must be >= 0")
        if self.retry_backoff <= 0:
            raise ConfigError("retry_backoff must be positive")

    @property
    def depth_limit(self) -> Optional[int]:
        """The effective depth limit; 0 and None both mean unlimited."""
        return self.max_depth or None

    @property
    def user_agent(self) -> str:
        return self.headers.get("User-Agent", DEFAULT_USER_AGENT)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["retryable_errors"] = [e.__name__ for e in self.retryable_errors]
        return data
