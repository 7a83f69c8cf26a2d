from typing import Any, Dict, Optional
from urllib.parse import urljoin


class CrawlContext:
    """Per-visit state handed to extraction callbacks.

    A fresh context is built for every fetched page; handlers may stash
    arbitrary values on it with ``ctx["key"] = value``.
    """

    def __init__(self, page_url: Optional[str] = None, base_url: Optional[str] = None, current_depth: int = 0):
        self.page_url = page_url
        self.base_url = base_url
        self.current_depth = current_depth
        self._data: Dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._data.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def increment_depth(self) -> int:
        self.current_depth += 1
        return self.current_depth

    def resolve_url(self, url: str) -> str:
        return urljoin(self.page_url or self.base_url or "", url)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "base_url": self.base_url,
            "page_url": self.page_url,
            "current_depth": self.current_depth,
        }
        data.update(self._data)
        return data

    def __repr__(self) -> str:
        return f"CrawlContext(page_url={self.page_url!r}, depth={self.current_depth})"
