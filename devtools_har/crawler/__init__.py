"""
Crawler module.

Records HAR archives from live browser pages.
"""

from devtools_har.crawler.browser_archive import (
    BrowserArchiver,
    DebuggerEventCollector,
    get_browser_archiver,
)

__all__ = [
    "BrowserArchiver",
    "DebuggerEventCollector",
    "get_browser_archiver",
]
