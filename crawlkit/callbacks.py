from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from .errors import UnsupportedFormat, UnsupportedSelector
from .parsing import FORMATS, SELECTOR_TYPES


Handler = Callable[[Any, Any], None]


@dataclass(frozen=True)
class Callback:
    format: str
    selector_type: str
    selector: str
    handler: Handler


def parse_selector(selector_spec: str) -> Tuple[str, str]:
    """Split ``css@h1`` / ``xpath@//a`` into ``(selector_type, selector)``."""
    selector_type, sep, selector = selector_spec.partition("@")
    if not sep or not selector:
        raise UnsupportedSelector(selector_spec)
    if selector_type not in SELECTOR_TYPES:
        raise UnsupportedSelector(selector_type)
    return selector_type, selector


class Callbacks:
    def __init__(self):
        self._callbacks: List[Callback] = []

    def all(self) -> List[Callback]:
        return list(self._callbacks)

    @staticmethod
    def validate(fmt: str, selector_type: str) -> None:
        if fmt not in FORMATS:
            raise UnsupportedFormat(fmt)
        if selector_type not in SELECTOR_TYPES:
            raise UnsupportedSelector(selector_type)

    def register(self, fmt: str, selector_type: str, selector: str, handler: Handler) -> Callback:
        self.validate(fmt, selector_type)
        if not callable(handler):
            raise TypeError("Callback handler must be callable")
        callback = Callback(format=fmt, selector_type=selector_type, selector=selector, handler=handler)
        self._callbacks.append(callback)
        return callback

    def register_from_input(self, fmt: str, selector_spec: str, handler: Handler) -> Callback:
        if fmt not in FORMATS:
            raise UnsupportedFormat(fmt)
        selector_type, selector = parse_selector(selector_spec)
        return self.register(fmt, selector_type, selector, handler)

    def stats(self) -> Dict[str, int]:
        return {"callbacks_count": len(self._callbacks)}

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)
