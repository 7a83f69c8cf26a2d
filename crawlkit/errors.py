"""Exceptions raised by crawlkit."""


class CrawlError(Exception):
    """Base class for crawlkit errors."""


class ConfigError(CrawlError, ValueError):
    """Raised when a configuration or registration is invalid."""


class UnsupportedFormat(CrawlError, ValueError):
    def __init__(self, fmt):
        self.format = fmt
        super().__init__(f"Unsupported format: {fmt}")


class UnsupportedSelector(CrawlError, ValueError):
    def __init__(self, selector_type):
        self.selector_type = selector_type
        super().__init__(f"Unsupported selector type: {selector_type}")


class FetchError(CrawlError):
    """Raised when a fetch fails due to network/transport errors."""

    def __init__(self, url: str, original: Exception | None = None):
        self.url = url
        self.original = original
        reason = original if original is not None else "no response"
        super().__init__(f"HTTP fetch failed for {url}: {reason}")


class FetchTimeout(FetchError):
    pass


class ConnectionRefused(FetchError):
    pass


class ConnectionReset(FetchError):
    pass


class HostUnreachable(FetchError):
    pass


class DNSFailure(FetchError):
    pass


class EmptyResponseError(FetchError):
    """The transport answered but no body could be read."""


TRANSIENT_ERRORS = (
    FetchTimeout,
    ConnectionRefused,
    ConnectionReset,
    HostUnreachable,
    DNSFailure,
)
