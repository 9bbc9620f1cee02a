from typing import Any, Optional

from .display import DisplayContext, IntersectionObserver

DEFAULT_PLACEHOLDER = '<div class="min-h-[100px]"></div>'


class LazySection:
    """
    Shows `placeholder` until the section first scrolls into view, then `content`
    for good. The observer is disconnected on reveal and on exit.
    """

    def __init__(
        self,
        content: Any,
        placeholder: Optional[Any] = None,
        threshold: float = 0.1,
        root_margin: str = "100px",
    ):
        self.content = content
        self.placeholder = placeholder
        self.threshold = threshold
        self.root_margin = root_margin
        self.is_visible = False
        self._observer: Optional[IntersectionObserver] = None

    def observe(self, display: Optional[DisplayContext], target: Any) -> "LazySection":
        if display is None or self.is_visible:
            return self
        self.disconnect()
        self._observer = display.observe_intersection(
            target, self._on_intersection, threshold=self.threshold, root_margin=self.root_margin
        )
        return self

    def disconnect(self) -> None:
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None

    def render(self) -> Any:
        if self.is_visible:
            return self.content
        return self.placeholder if self.placeholder is not None else DEFAULT_PLACEHOLDER

    def _on_intersection(self, is_intersecting: bool) -> None:
        if is_intersecting:
            self.is_visible = True
            self.disconnect()

    def __enter__(self) -> "LazySection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()
