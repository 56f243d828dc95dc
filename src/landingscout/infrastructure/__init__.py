"""
Infrastructure Package.

Provides the shared browser process manager used by every crawl session.
"""

from .browser_manager import BrowserManager

__all__ = [
    "BrowserManager",
]
