import logging
import random
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from .callbacks import Callbacks, parse_selector
from .config import CrawlConfig
from .context import CrawlContext
from .domains import DomainFilter
from .errors import EmptyResponseError
from .hooks import Hooks
from .metrics import Metrics
from .net import HttpClient
from .parsing import Extractor, UrlTools
from .rate import PolitenessDelay, RetryBackoff
from .robots import Robots
from .types import HttpClientProtocol, Response
from .visits import VisitedTracker


class Collector:
    """Schedules, fetches and scrapes URLs under the configured crawl policy.

    ``visit`` admits URLs through the domain filter, the visited tracker and
    robots.txt, then fetches the admitted ones on a bounded thread pool. Each
    call owns its pool, so callbacks may call ``visit`` again (usually at
    ``ctx.current_depth + 1``) without waiting on the parent batch's workers.

    Example::

        collector = Collector(CrawlConfig(max_depth=2, max_parallelism=4))

        @collector.on_html("css", "a[href]")
        def follow(node, ctx):
            collector.visit(ctx.resolve_url(node.get("href")), ctx.current_depth + 1)

        collector.visit("https://example.com")
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        http_client: HttpClientProtocol | None = None,
        visits: VisitedTracker | None = None,
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or CrawlConfig()
        self.log = logger or logging.getLogger(__name__)
        self.http = http_client if http_client is not None else HttpClient(self.config)
        # an empty tracker is falsy
        self.visits = visits if visits is not None else VisitedTracker(self.config)
        self.domains = DomainFilter(self.config)
        self.robots = Robots()
        self.hooks = Hooks()
        self.callbacks = Callbacks()
        self.metrics = Metrics()
        self._sleep = sleep if sleep is not None else time.sleep
        self._rng = rng if rng is not None else random.Random()
        self.backoff = RetryBackoff(self.config.retry_delay, self.config.retry_backoff, rand=self._rng.uniform)
        self.politeness = PolitenessDelay(self.config.random_delay, rand=self._rng.random, sleep=self._sleep)

    # registration

    def on_html(self, selector_type: str, selector: str, handler: Callable | None = None):
        return self._register("html", selector_type, selector, handler)

    def on_xml(self, selector_type: str, selector: str, handler: Callable | None = None):
        return self._register("xml", selector_type, selector, handler)

    def on(self, fmt: str, selector_spec: str, handler: Callable | None = None):
        """Register from a compact ``css@selector`` or ``xpath@selector`` string."""
        selector_type, selector = parse_selector(selector_spec)
        return self._register(fmt, selector_type, selector, handler)

    def _register(self, fmt: str, selector_type: str, selector: str, handler: Callable | None):
        self.callbacks.validate(fmt, selector_type)
        if handler is not None:
            self.callbacks.register(fmt, selector_type, selector, handler)
            return handler

        def decorator(fn: Callable) -> Callable:
            self.callbacks.register(fmt, selector_type, selector, fn)
            return fn

        return decorator

    def hook(self, event: str, handler: Callable | None = None):
        self.hooks.check(event)
        if handler is not None:
            return self.hooks.register(event, handler)

        def decorator(fn: Callable) -> Callable:
            return self.hooks.register(event, fn)

        return decorator

    # entry points

    def visit(self, input: Any, depth: int = 0) -> None:
        urls = UrlTools.normalize_input(input)
        if not urls or self._exceeded_max_depth(urls, depth):
            return

        if not self.config.ignore_robots_txt:
            self._process_robots(urls)
        urls = [u for u in urls if self.can_visit(u)]
        if not urls:
            return

        self.perform_visits(urls, depth)

    def paginated_visit(
        self, url: str, depth: int = 0, query: str = "page", batch_size: int = 5, start_page: int = 1
    ) -> None:
        if not isinstance(url, str) or not UrlTools.is_http_url(url):
            self.log.warning("Invalid pagination URL: %r", url)
            return
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        if not self.config.ignore_robots_txt:
            self._process_robots([url])
        if not self.can_visit(url):
            return

        limit = self.config.depth_limit
        max_batch = min(limit, batch_size) if limit is not None else batch_size
        pages = self._build_initial_pages(url, query, max_batch, start_page)
        self._process_page_batches(url, pages, depth, max_batch, query)

    def can_visit(self, url: str) -> bool:
        if not url:
            return False
        if not UrlTools.is_http_url(url):
            self.log.warning("Skipping malformed URL: %r", url)
            return False
        return (
            self.domains.is_allowed(url)
            and self.visits.is_new(url)
            and self.robots.is_allowed(url, self.config.user_agent)
        )

    def perform_visits(self, urls: List[str], depth: int) -> List[Optional[Response]]:
        """Fetch ``urls`` concurrently; one result per URL, None on failure."""
        if not urls or self._exceeded_max_depth(urls, depth):
            return []
        workers = min(self.config.max_parallelism or len(urls), len(urls))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="visit") as executor:
            futures = [executor.submit(self._execute_visit, url, depth) for url in urls]
            return [f.result() for f in futures]

    # single visit

    def _execute_visit(self, url: str, depth: int) -> Optional[Response]:
        self._apply_random_delay(url)
        try:
            response = self._fetch_response(url)
            ctx = self._setup_context(url, depth)
            Extractor.apply_callbacks(response.body, self.callbacks.all(), ctx)
            return response
        except Exception as e:
            self._handle_visit_error(url, e)
            return None

    def _apply_random_delay(self, url: str) -> None:
        # only while nothing has been fetched yet
        if not self.visits.is_empty():
            return
        slept = self.politeness.wait()
        if slept > 0:
            self.log.debug("Slept %.2fsec before visiting %s", slept, url)

    def _fetch_response(self, url: str) -> Response:
        t0 = time.perf_counter()
        try:
            response = self._fetch(url)
        except Exception:
            self.metrics.record_fetch(False, 0, (time.perf_counter() - t0) * 1000.0)
            raise
        dt_ms = (time.perf_counter() - t0) * 1000.0
        self.hooks.trigger("after_visit", url, response)

        if response is None or response.body is None:
            self.metrics.record_fetch(False, 0, dt_ms)
            raise EmptyResponseError(url)

        self.metrics.record_fetch(True, response.size_bytes, dt_ms)
        self.visits.register(url)
        return response

    def _fetch(self, url: str) -> Response:
        max_retries = self.config.max_retries
        attempt = 0
        while True:
            attempt += 1
            headers = dict(self.config.headers)
            try:
                self.hooks.trigger("before_visit", url, headers)
                return self.http.fetch(url, headers)
            except self.config.retryable_errors as e:
                if max_retries > 0 and attempt <= max_retries:
                    self.log.warning(
                        "Attempt %d/%d failed for %s: %s - %s",
                        attempt, max_retries + 1, url, type(e).__name__, e,
                    )
                    self.metrics.record_retry()
                    delay = self.backoff.delay_for(attempt)
                    self.log.info("Sleeping for %.2fsec before retry", delay)
                    if delay > 0:
                        self._sleep(delay)
                    continue
                self.log.warning("%d/%d failed attempts for %s", attempt, max_retries + 1, url)
                raise

    def _handle_visit_error(self, url: str, error: Exception) -> None:
        self.log.error("Error visiting %s: %s - %s", url, type(error).__name__, error)
        try:
            self.hooks.trigger("on_error", url, error)
        except Exception:
            self.log.exception("on_error hook failed for %s", url)

    def _setup_context(self, url: str, depth: int) -> CrawlContext:
        return CrawlContext(page_url=url, base_url=UrlTools.origin(url), current_depth=depth)

    def _exceeded_max_depth(self, urls: List[str], depth: int) -> bool:
        limit = self.config.depth_limit
        if limit is not None and depth > limit:
            self.log.debug("Exceeded max depth; Skipping visit to %s", urls)
            return True
        return False

    # robots.txt

    def _process_robots(self, urls: List[str]) -> None:
        origins = dict.fromkeys(o for o in (UrlTools.origin(u) for u in urls) if o)
        for origin in origins:
            if self.robots.exists(origin):
                continue
            response = self._fetch_robots_txt(origin)
            if response is None:
                continue
            # an error page still marks the origin as fetched, with no rules
            self.robots.parse(origin, response.body if response.status < 400 else "")

    def _fetch_robots_txt(self, origin: str) -> Optional[Response]:
        robots_link = UrlTools.robots_url(origin)
        try:
            return self._fetch_response(robots_link)
        except Exception as e:
            self._handle_visit_error(robots_link, e)
            return None

    # pagination

    @staticmethod
    def _page_url(base_url: str, query: str, page: int) -> str:
        sep = "&" if "?" in base_url else "?"
        return f"{base_url}{sep}{query}={page}"

    def _build_initial_pages(self, url: str, query: str, max_batch: int, start_page: int) -> List[str]:
        if start_page == 1:
            return [url] + [self._page_url(url, query, i + 2) for i in range(max_batch - 1)]
        return [self._page_url(url, query, i + start_page) for i in range(max_batch)]

    def _process_page_batches(self, base_url: str, pages: List[str], depth: int, max_batch: int, query: str) -> None:
        pending = deque(pages)
        scheduled_depth = depth
        limit = self.config.depth_limit

        while True:
            if limit is not None and scheduled_depth >= limit:
                break
            batch = [pending.popleft() for _ in range(min(max_batch, len(pending)))]
            if not batch:
                break

            responses = self.perform_visits(batch, scheduled_depth)
            if not self._batch_successful(responses, len(batch)):
                break

            scheduled_depth += max_batch
            pending = deque(self._page_url(base_url, query, i + scheduled_depth + 1) for i in range(max_batch))

    def _batch_successful(self, responses: List[Optional[Response]], batch_size: int) -> bool:
        success_count = sum(1 for r in responses if r is not None and r.status != 404)
        self.log.debug("Pagination batch: %d/%d pages found", success_count, batch_size)
        return success_count > 0 and success_count * 2 >= batch_size

    # introspection

    def clone(self) -> "Collector":
        """A collector with the same config, transport and visited history,
        but its own callbacks and hooks."""
        return self.__class__(
            self.config,
            http_client=self.http,
            visits=self.visits,
            sleep=self._sleep,
            rng=self._rng,
            logger=self.log,
        )

    def stats(self) -> Dict[str, Any]:
        base: Dict[str, Any] = {
            "max_depth": self.config.max_depth,
            "allow_url_revisit": self.config.allow_url_revisit,
        }
        base.update(self.hooks.stats())
        base.update(self.callbacks.stats())
        base.update(self.visits.stats())
        base.update(self.domains.stats())
        base.update(self.metrics.as_dict())
        if self.config.max_retries:
            base.update(
                max_retries=self.config.max_retries,
                retry_delay=self.config.retry_delay,
                retry_backoff=self.config.retry_backoff,
            )
        return base
