"""
Display context abstractions used by the client hooks.

A DisplayContext is whatever renders the UI: a browser bridge, or the
HeadlessDisplay below for server-side rendering and tests.
"""

import re
from typing import Any, Callable, Optional, Protocol

__all__ = [
    "MediaQueryList",
    "IntersectionObserver",
    "DisplayContext",
    "HeadlessDisplay",
]

IntersectionCallback = Callable[[bool], None]


class MediaQueryList(Protocol):
    """A live media query; listeners fire whenever `matches` flips"""

    @property
    def matches(self) -> bool: ...

    def add_listener(self, callback: Callable[[], None]) -> None: ...

    def remove_listener(self, callback: Callable[[], None]) -> None: ...


class IntersectionObserver(Protocol):
    def disconnect(self) -> None: ...


class DisplayContext(Protocol):
    """Viewport facilities the hooks depend on"""

    @property
    def inner_width(self) -> int: ...

    def match_media(self, query: str) -> MediaQueryList: ...

    def add_resize_listener(self, callback: Callable[[], None]) -> None: ...

    def remove_resize_listener(self, callback: Callable[[], None]) -> None: ...

    def observe_intersection(
        self,
        target: Any,
        callback: IntersectionCallback,
        threshold: float,
        root_margin: str,
    ) -> IntersectionObserver: ...


_WIDTH_FEATURE = re.compile(r"^\(\s*(min|max)-width\s*:\s*(\d+)px\s*\)$")


def evaluate_width_query(query: str, width: int) -> bool:
    """
    Evaluate `(min-width: Npx)` / `(max-width: Npx)` clauses joined by `and`.
    Anything else never matches.
    """
    clauses = [clause.strip() for clause in query.strip().split(" and ")]
    for clause in clauses:
        match = _WIDTH_FEATURE.match(clause)
        if not match:
            return False
        bound, pixels = match.group(1), int(match.group(2))
        if bound == "min" and width < pixels:
            return False
        if bound == "max" and width > pixels:
            return False
    return True


class _HeadlessMediaQuery:
    def __init__(self, display: "HeadlessDisplay", query: str):
        self._display = display
        self.query = query
        self._listeners: list = []
        self._last = self.matches

    @property
    def matches(self) -> bool:
        return evaluate_width_query(self.query, self._display.inner_width)

    def add_listener(self, callback: Callable[[], None]) -> None:
        if not self._listeners:
            self._last = self.matches
            self._display._track(self)
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)
            if not self._listeners:
                self._display._untrack(self)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify_if_changed(self) -> None:
        current = self.matches
        if current != self._last:
            self._last = current
            for callback in list(self._listeners):
                callback()


class _HeadlessObserver:
    def __init__(
        self, target: Any, callback: IntersectionCallback, threshold: float, root_margin: str
    ):
        self.target = target
        self.callback = callback
        self.threshold = threshold
        self.root_margin = root_margin
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False


class HeadlessDisplay:
    """In-memory DisplayContext driven by explicit resize and intersection events"""

    def __init__(self, inner_width: int = 1024):
        self._width = inner_width
        self._resize_listeners: list = []
        self._media_queries: list = []
        self.observers: list = []

    @property
    def inner_width(self) -> int:
        return self._width

    def match_media(self, query: str) -> _HeadlessMediaQuery:
        return _HeadlessMediaQuery(self, query)

    # Only queries with listeners are kept for resize notifications
    def _track(self, media: _HeadlessMediaQuery) -> None:
        self._media_queries.append(media)

    def _untrack(self, media: _HeadlessMediaQuery) -> None:
        if media in self._media_queries:
            self._media_queries.remove(media)

    @property
    def media_query_count(self) -> int:
        return len(self._media_queries)

    def add_resize_listener(self, callback: Callable[[], None]) -> None:
        self._resize_listeners.append(callback)

    def remove_resize_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._resize_listeners:
            self._resize_listeners.remove(callback)

    @property
    def resize_listener_count(self) -> int:
        return len(self._resize_listeners)

    def resize(self, width: int) -> None:
        self._width = width
        for callback in list(self._resize_listeners):
            callback()
        for media in list(self._media_queries):
            media._notify_if_changed()

    def observe_intersection(
        self,
        target: Any,
        callback: IntersectionCallback,
        threshold: float = 0.0,
        root_margin: str = "0px",
    ) -> _HeadlessObserver:
        observer = _HeadlessObserver(target, callback, threshold, root_margin)
        self.observers.append(observer)
        return observer

    def set_intersecting(self, target: Any, is_intersecting: bool = True) -> None:
        """Deliver an intersection notification to every connected observer of `target`"""
        for observer in list(self.observers):
            if observer.connected and observer.target is target:
                observer.callback(is_intersecting)

    def active_observers(self, target: Optional[Any] = None) -> list:
        return [
            o for o in self.observers if o.connected and (target is None or o.target is target)
        ]
