"""
Archive module.

Builds HTTP Archive (HAR) documents from debugger event streams.
"""

from devtools_har.archive.errors import (
    ArchiveSealedError,
    ContractViolationError,
    HarBuilderError,
)
from devtools_har.archive.events import (
    EVENT_NAMES_TO_RECORD,
    NetworkEventName,
    PageEventName,
    is_har_event_name,
    is_network_event_name,
    is_page_event_name,
    parse_event,
)
from devtools_har.archive.har_builder import (
    HarBuilder,
    har_from_chrome_har_messages,
    har_from_event_tuples,
    har_from_named_events,
)
from devtools_har.archive.har_types import Entry, HttpArchive, Log, Page
from devtools_har.archive.options import (
    ChromeHarArchivePolicy,
    HarOptions,
    StandardArchivePolicy,
    policy_for,
)
from devtools_har.archive.time_lord import TimeLord

__all__ = [
    "ArchiveSealedError",
    "ChromeHarArchivePolicy",
    "ContractViolationError",
    "EVENT_NAMES_TO_RECORD",
    "Entry",
    "HarBuilder",
    "HarBuilderError",
    "HarOptions",
    "HttpArchive",
    "Log",
    "NetworkEventName",
    "Page",
    "PageEventName",
    "StandardArchivePolicy",
    "TimeLord",
    "har_from_chrome_har_messages",
    "har_from_event_tuples",
    "har_from_named_events",
    "is_har_event_name",
    "is_network_event_name",
    "is_page_event_name",
    "parse_event",
    "policy_for",
]
