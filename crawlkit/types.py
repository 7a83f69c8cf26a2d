from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass(frozen=True)
class Response:
    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    version: str = "HTTP/1.1"
    body: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        if self.body is None:
            return 0
        return len(self.body.encode("utf-8"))


class HttpClientProtocol(Protocol):
    def fetch(self, url: str, headers: Dict[str, str]) -> Response: ...
