import logging
from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

import lxml.etree
import lxml.html
from lxml.cssselect import CSSSelector

from .errors import UnsupportedFormat, UnsupportedSelector


logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def _split_top_level(body: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in body:
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current.append(ch)
    parts.append("".join(current))
    return parts


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives into plain glob patterns."""
    start = pattern.find("{")
    while start != -1:
        depth = 0
        for end in range(start, len(pattern)):
            if pattern[end] == "{":
                depth += 1
            elif pattern[end] == "}":
                depth -= 1
                if depth == 0:
                    break
        else:
            return [pattern]
        parts = _split_top_level(pattern[start + 1:end])
        if len(parts) > 1:
            prefix, suffix = pattern[:start], pattern[end + 1:]
            expanded: List[str] = []
            for part in parts:
                expanded.extend(expand_braces(prefix + part + suffix))
            return expanded
        start = pattern.find("{", start + 1)
    return [pattern]


@lru_cache(maxsize=1024)
def _glob_alternatives(pattern: str) -> tuple:
    return tuple(p.replace("[^", "[!") for p in expand_braces(pattern))


def glob_match(pattern: str, text: str) -> bool:
    """Shell-glob match of the whole string, with brace alternatives.

    ``*`` also matches ``/``; matching is case-sensitive.
    """
    return any(fnmatchcase(text, p) for p in _glob_alternatives(pattern))


class UrlTools:
    @staticmethod
    def normalize_input(input: Any) -> List[str]:
        """Turn a URL or a collection of URLs into a unique, ordered list."""
        if isinstance(input, str):
            items: Iterable[Any] = [input]
        elif isinstance(input, (list, tuple, set, frozenset)):
            items = input
        elif input is None:
            return []
        else:
            logger.warning("Unsupported input type: %s", type(input).__name__)
            return []
        urls: List[str] = []
        for u in items:
            if u is None or u == "":
                continue
            if not isinstance(u, str):
                logger.warning("Dropping non-string URL %r", u)
                continue
            urls.append(u.strip())
        return list(dict.fromkeys(u for u in urls if u))

    @staticmethod
    def is_http_url(url: str) -> bool:
        try:
            parsed = urlparse(url)
            _ = parsed.port  # raises on an out-of-range or non-numeric port
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)

    @staticmethod
    def origin(url: str) -> Optional[str]:
        """``scheme://host[:port]`` with default ports omitted, or None."""
        if not UrlTools.is_http_url(url):
            return None
        parsed = urlparse(url)
        host = parsed.hostname.lower()
        if ":" in host:
            host = f"[{host}]"
        port = parsed.port
        if port is None or port == DEFAULT_PORTS.get(parsed.scheme):
            return f"{parsed.scheme}://{host}"
        return f"{parsed.scheme}://{host}:{port}"

    @staticmethod
    def host(url: str) -> Optional[str]:
        try:
            host = urlparse(url).hostname
        except ValueError:
            return None
        return host.lower() if host else None

    @staticmethod
    def strip_www(host: str) -> str:
        return host[4:] if host.startswith("www.") else host

    @staticmethod
    def robots_url(origin: str) -> str:
        return f"{origin}/robots.txt"

    @staticmethod
    def normalize_link(base_url: str, href: str) -> Optional[str]:
        if not href:
            return None
        href = href.strip()
        if href.startswith(("mailto:", "javascript:", "tel:", "#")):
            return None
        absolute = urljoin(base_url, href)
        absolute, _ = urldefrag(absolute)
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https"):
            return None
        return absolute


FORMATS = ("html", "xml")
SELECTOR_TYPES = ("css", "xpath")


@lru_cache(maxsize=256)
def _css(selector: str, fmt: str) -> CSSSelector:
    return CSSSelector(selector, translator="html" if fmt == "html" else "xml")


class Extractor:
    @staticmethod
    def node_text(node) -> str:
        """Whitespace-collapsed text of an element or xpath string result."""
        if isinstance(node, str):
            text = node
        elif hasattr(node, "itertext"):
            text = " ".join(node.itertext())
        else:
            text = str(node)
        return " ".join(text.split())

    @staticmethod
    def parse_content(fmt: str, content: str):
        if fmt not in FORMATS:
            raise UnsupportedFormat(fmt)
        if not content or not content.strip():
            return None
        data = content.encode("utf-8")
        if fmt == "html":
            parser = lxml.html.HTMLParser(encoding="utf-8")
            try:
                return lxml.html.document_fromstring(data, parser=parser)
            except lxml.etree.ParserError:
                logger.debug("No HTML document in content")
                return None
        parser = lxml.etree.XMLParser(recover=True, encoding="utf-8", resolve_entities=False)
        return lxml.etree.fromstring(data, parser=parser)

    @staticmethod
    def extract_nodes(doc, fmt: str, selector_type: str, selector: str) -> List[Any]:
        if selector_type not in SELECTOR_TYPES:
            raise UnsupportedSelector(selector_type)
        if doc is None:
            return []
        if selector_type == "css":
            return _css(selector, fmt)(doc)
        result = doc.xpath(selector)
        if isinstance(result, list):
            return result
        return [result]

    @staticmethod
    def apply_callbacks(content: str, callbacks: Sequence, context) -> None:
        """Run every callback against ``content``, parsing once per format."""
        by_format: Dict[str, List] = {}
        for cb in callbacks:
            by_format.setdefault(cb.format or "html", []).append(cb)

        for fmt, format_callbacks in by_format.items():
            doc = Extractor.parse_content(fmt, content)
            for cb in format_callbacks:
                logger.debug("Applying callback: %s %s", cb.selector_type, cb.selector)
                for node in Extractor.extract_nodes(doc, fmt, cb.selector_type, cb.selector):
                    cb.handler(node, context)
