from typing import Optional

from .display import DisplayContext, MediaQueryList


class MediaQueryWatcher:
    """
    Tracks whether a media query matches.

    `matches` is False when there is no display context. Change notifications
    are followed from `__enter__` until `__exit__`.
    """

    def __init__(self, query: str, display: Optional[DisplayContext] = None):
        self.query = query
        self.display = display
        self.matches = False
        self._media: Optional[MediaQueryList] = None

    def __enter__(self) -> "MediaQueryWatcher":
        if self.display is not None:
            self._media = self.display.match_media(self.query)
            self.matches = self._media.matches
            self._media.add_listener(self._on_change)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._media is not None:
            self._media.remove_listener(self._on_change)
            self._media = None

    def _on_change(self) -> None:
        if self._media is not None:
            self.matches = self._media.matches
