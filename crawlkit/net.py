import email.message
import errno
import http.cookiejar
import logging
import random
import socket
import threading
import urllib.request
from typing import Dict, List, Optional

import urllib3
from urllib3 import exceptions as urllib3_exc

from .config import CrawlConfig
from .errors import (
    ConfigError,
    ConnectionRefused,
    ConnectionReset,
    DNSFailure,
    FetchError,
    FetchTimeout,
    HostUnreachable,
)
from .types import Response


logger = logging.getLogger(__name__)

HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}
UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH}


def classify_error(url: str, exc: Exception) -> FetchError:
    """Map a urllib3 failure onto the crawlkit fetch error taxonomy."""
    if isinstance(exc, urllib3_exc.MaxRetryError) and exc.reason is not None:
        exc = exc.reason
    cause = exc.__cause__ or exc.__context__
    name_resolution = getattr(urllib3_exc, "NameResolutionError", None)
    if name_resolution is not None and isinstance(exc, name_resolution):
        return DNSFailure(url, exc)
    if isinstance(exc, urllib3_exc.NewConnectionError):
        if isinstance(cause, socket.gaierror):
            return DNSFailure(url, exc)
        if isinstance(cause, ConnectionRefusedError):
            return ConnectionRefused(url, exc)
        if isinstance(cause, OSError) and cause.errno in UNREACHABLE_ERRNOS:
            return HostUnreachable(url, exc)
        return ConnectionRefused(url, exc)
    if isinstance(exc, urllib3_exc.TimeoutError):
        return FetchTimeout(url, exc)
    if isinstance(exc, urllib3_exc.ProtocolError):
        return ConnectionReset(url, exc)
    return FetchError(url, exc)


class _SetCookieResponse:
    """The slice of a urllib response ``http.cookiejar`` reads cookies from."""

    def __init__(self, set_cookies: List[str]):
        self._headers = email.message.Message()
        for value in set_cookies:
            self._headers["Set-Cookie"] = value

    def info(self) -> email.message.Message:
        return self._headers


class CookieJar:
    """Cookie store shared by concurrent fetches.

    Backed by ``http.cookiejar``, so cookies are parsed against the URL that
    set them and honour ``Domain``, ``Path``, ``Secure`` and expiry.
    A ``Max-Age=0`` or past ``Expires`` deletes the stored cookie.
    """

    def __init__(self, policy: Optional[http.cookiejar.CookiePolicy] = None):
        if policy is None:
            # host-only cookies stay on their exact host
            policy = http.cookiejar.DefaultCookiePolicy(
                strict_ns_domain=http.cookiejar.DefaultCookiePolicy.DomainStrictNonDomain,
            )
        self._jar = http.cookiejar.CookieJar(policy)

    def extract(self, url: str, set_cookies: List[str]) -> None:
        if not set_cookies:
            return
        self._jar.extract_cookies(_SetCookieResponse(set_cookies), urllib.request.Request(url))
        logger.debug("Stored %d Set-Cookie header(s) from %s", len(set_cookies), url)

    def header_for(self, url: str) -> str:
        request = urllib.request.Request(url)
        self._jar.add_cookie_header(request)
        return request.get_header("Cookie", "")

    def __len__(self) -> int:
        return len(self._jar)


class HttpClient:
    def __init__(self, config: CrawlConfig, max_connections: int = 16):
        self.config = config
        self.timeout = urllib3.Timeout(connect=min(5.0, config.timeout), read=config.timeout)
        self._pool_kwargs = dict(
            num_pools=max(8, config.max_parallelism or 1),
            maxsize=max_connections,
            # retries are owned by the collector's retry loop
            retries=False,
        )
        self.http = urllib3.PoolManager(**self._pool_kwargs)
        self._proxy_managers: Dict[str, urllib3.ProxyManager] = {}
        self._proxy_index = 0
        self._proxy_lock = threading.Lock()
        self.cookies: Optional[CookieJar] = CookieJar() if config.allow_cookies else None

    def next_proxy(self) -> Optional[str]:
        proxies: List[str] = self.config.proxies
        if not proxies:
            return None
        if self.config.proxy_strategy == "round_robin":
            with self._proxy_lock:
                proxy = proxies[self._proxy_index % len(proxies)]
                self._proxy_index += 1
            return proxy
        if self.config.proxy_strategy == "random":
            return random.choice(proxies)
        raise ConfigError(f"Unknown proxy strategy: {self.config.proxy_strategy}")

    def _manager_for(self, proxy: Optional[str]) -> urllib3.PoolManager:
        if proxy is None:
            return self.http
        with self._proxy_lock:
            manager = self._proxy_managers.get(proxy)
            if manager is None:
                logger.debug("Using proxy: %s", proxy)
                manager = urllib3.ProxyManager(proxy, **self._pool_kwargs)
                self._proxy_managers[proxy] = manager
            return manager

    def fetch(self, url: str, headers: Dict[str, str]) -> Response:
        logger.debug("Fetching %s", url)
        request_headers = dict(headers)
        if self.cookies is not None:
            cookie_header = self.cookies.header_for(url)
            if cookie_header:
                request_headers["Cookie"] = cookie_header

        manager = self._manager_for(self.next_proxy())
        try:
            raw = manager.request(
                "GET",
                url,
                headers=request_headers,
                timeout=self.timeout,
                preload_content=False,
            )
        except urllib3_exc.HTTPError as e:
            error = classify_error(url, e)
            if isinstance(error, FetchTimeout):
                logger.warning("Timeout fetching %s after %ssec", url, self.config.timeout)
            raise error from e

        try:
            if self.cookies is not None:
                self.cookies.extract(url, raw.headers.getlist("Set-Cookie"))
            return Response(
                url=url,
                status=raw.status,
                headers=dict(raw.headers),
                version=HTTP_VERSIONS.get(raw.version, "HTTP/1.1"),
                body=self._read_body(url, raw),
            )
        finally:
            raw.release_conn()
            logger.debug("Done fetching %s", url)

    @staticmethod
    def _read_body(url: str, raw) -> Optional[str]:
        try:
            data = raw.read()
        except urllib3_exc.HTTPError:
            logger.debug("Failed reading body of %s", url, exc_info=True)
            return None
        charset = "utf-8"
        content_type = raw.headers.get("Content-Type", "") or ""
        for param in content_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip('"')
        try:
            return data.decode(charset, errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")
