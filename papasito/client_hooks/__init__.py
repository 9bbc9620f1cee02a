"""Viewport and data-loading helpers mirroring the web client's hooks"""

from .cached_data import CachedDataLoader
from .display import DisplayContext, HeadlessDisplay
from .lazy_load import LazyLoader, LoadState
from .lazy_section import LazySection
from .media_query import MediaQueryWatcher
from .mobile import MobileBreakpoint

__all__ = [
    "CachedDataLoader",
    "DisplayContext",
    "HeadlessDisplay",
    "LazyLoader",
    "LazySection",
    "LoadState",
    "MediaQueryWatcher",
    "MobileBreakpoint",
]
