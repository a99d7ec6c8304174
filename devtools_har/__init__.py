"""
devtools-har: HTTP Archive (HAR) generation from Chrome DevTools Protocol events.
"""

from devtools_har.archive import (
    EVENT_NAMES_TO_RECORD,
    ArchiveSealedError,
    ContractViolationError,
    HarBuilder,
    HarBuilderError,
    HarOptions,
    HttpArchive,
    NetworkEventName,
    PageEventName,
    har_from_chrome_har_messages,
    har_from_event_tuples,
    har_from_named_events,
    is_har_event_name,
)

__all__ = [
    "ArchiveSealedError",
    "ContractViolationError",
    "EVENT_NAMES_TO_RECORD",
    "HarBuilder",
    "HarBuilderError",
    "HarOptions",
    "HttpArchive",
    "NetworkEventName",
    "PageEventName",
    "har_from_chrome_har_messages",
    "har_from_event_tuples",
    "har_from_named_events",
    "is_har_event_name",
]
