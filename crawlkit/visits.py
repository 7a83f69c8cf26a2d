import logging
import threading
from typing import Dict, Optional, Set

from .config import CrawlConfig


class VisitedTracker:
    """
    Tracks which URLs have been fetched during a crawl.

    The tracked set is bounded by ``config.max_visited``. When the bound is
    reached the whole set is dropped at the next ``is_new`` check instead of
    evicting single entries, so a long crawl may refetch pages it saw before
    the reset. All methods are safe to call from concurrent fetch workers.
    """

    def __init__(self, config: CrawlConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.log = logger or logging.getLogger(__name__)
        self._visited: Set[str] = set()
        self._lock = threading.Lock()

    def register(self, url: str) -> None:
        with self._lock:
            self._visited.add(url)

    def is_new(self, url: str) -> bool:
        with self._lock:
            if len(self._visited) >= self.config.max_visited:
                self.log.warning(
                    "Reached max visited URLs limit (%d). Resetting visited cache.",
                    self.config.max_visited,
                )
                self._visited.clear()
            if self.config.allow_url_revisit:
                return True
            seen = url in self._visited
        if seen:
            self.log.debug("Already visited %s; Skipping", url)
        return not seen

    def is_empty(self) -> bool:
        with self._lock:
            return not self._visited

    def clear(self) -> None:
        with self._lock:
            self._visited.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            count = len(self._visited)
        return {"visited_count": count, "max_visited": self.config.max_visited}

    def __len__(self) -> int:
        with self._lock:
            return len(self._visited)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._visited
