from typing import Optional

from .display import DisplayContext

DEFAULT_BREAKPOINT = 640


class MobileBreakpoint:
    """`is_mobile` is True while the viewport is narrower than `breakpoint` pixels"""

    def __init__(self, display: Optional[DisplayContext], breakpoint: int = DEFAULT_BREAKPOINT):
        self.display = display
        self.breakpoint = breakpoint
        self.is_mobile = False

    def __enter__(self) -> "MobileBreakpoint":
        if self.display is not None:
            self._check()
            self.display.add_resize_listener(self._check)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.display is not None:
            self.display.remove_resize_listener(self._check)

    def _check(self) -> None:
        self.is_mobile = self.display.inner_width < self.breakpoint
