from typing import Callable, Dict, List, Optional

from .errors import ConfigError


ALLOWED_EVENTS = ("before_visit", "after_visit", "on_error")


class Hooks:
    """Lifecycle hooks fired by the collector.

    - ``before_visit(url, headers)``: headers may be modified in place.
    - ``after_visit(url, response)``
    - ``on_error(url, error)``
    """

    def __init__(self):
        self._hooks: Dict[str, List[Callable]] = {event: [] for event in ALLOWED_EVENTS}

    @staticmethod
    def check(event: str) -> None:
        if event not in ALLOWED_EVENTS:
            raise ConfigError(f"Invalid event {event}")

    def register(self, event: str, handler: Callable) -> Callable:
        self.check(event)
        if not callable(handler):
            raise ConfigError("Hook handler must be callable")
        self._hooks[event].append(handler)
        return handler

    def trigger(self, event: str, *args) -> None:
        self.check(event)
        for handler in list(self._hooks[event]):
            handler(*args)

    def stats(self) -> Dict:
        per_event = {event: len(handlers) for event, handlers in self._hooks.items()}
        return {"total_hooks": sum(per_event.values()), "per_event": per_event}

    def clear(self, event: Optional[str] = None) -> None:
        if event is None:
            for handlers in self._hooks.values():
                handlers.clear()
            return
        self.check(event)
        self._hooks[event].clear()
