"""Per-page accumulation and HAR page derivation."""

from typing import TYPE_CHECKING

from devtools_har.archive.errors import ContractViolationError
from devtools_har.archive.events import (
    DomContentEventFiredEvent,
    FrameAttachedEvent,
    FrameRequestedNavigationEvent,
    FrameStartedLoadingEvent,
    LoadEventFiredEvent,
    NavigatedWithinDocumentEvent,
)
from devtools_har.archive.har_types import Page, PageTimings
from devtools_har.archive.util import round_to_three_decimal_places

if TYPE_CHECKING:
    from devtools_har.archive.entries_builder import HarEntriesBuilder
    from devtools_har.archive.entry_builder import HarEntryBuilder

UNKNOWN_TITLE = "unknown"


class HarPageBuilder:
    """One top-level navigation and the frames that belong to it.

    A page is anchored at its earliest transaction (by initiating event
    timestamp); pages without one are not included in the archive.
    """

    def __init__(
        self,
        entries_builder: "HarEntriesBuilder",
        order_created: int,
        frame_ids: list[str] | None = None,
    ):
        self.entries_builder = entries_builder
        self.order_created = order_created
        # dict keeps insertion order
        self.frame_ids: dict[str, None] = dict.fromkeys(frame_ids or [])
        self.id: str | None = None

        self.frame_attached_events: list[FrameAttachedEvent] = []
        self.load_event_fired_event: LoadEventFiredEvent | None = None
        self.dom_content_event_fired_event: DomContentEventFiredEvent | None = None
        self.frame_started_loading_event: FrameStartedLoadingEvent | None = None
        self.frame_requested_navigation_event: FrameRequestedNavigationEvent | None = None
        self.navigated_within_document_event: NavigatedWithinDocumentEvent | None = None

        self._earliest_request: "HarEntryBuilder | None" = None
        self._earliest_request_resolved = False

    def add_frame_id(self, frame_id: str) -> None:
        self.frame_ids[frame_id] = None

    def _get_earliest_request(self) -> "HarEntryBuilder | None":
        # Only meaningful once all events are in, so computed once.
        if not self._earliest_request_resolved:
            builders = self.entries_builder.builders_for_frame_ids_sorted_by_timestamp(*self.frame_ids)
            self._earliest_request = builders[0] if builders else None
            self._earliest_request_resolved = True
        return self._earliest_request

    @property
    def is_valid(self) -> bool:
        return self._get_earliest_request() is not None

    @property
    def earliest_request(self) -> "HarEntryBuilder":
        earliest = self._get_earliest_request()
        if earliest is None:
            raise ContractViolationError(
                "Page has no request; earliest_request should not have been accessed",
                operation="earliest_request",
            )
        return earliest

    @property
    def timestamp(self) -> float:
        """Monotonic anchor time (seconds) of the page."""
        return self.earliest_request.timestamp

    @property
    def started_date_time(self) -> str:
        return self.earliest_request.started_date_time

    @property
    def title(self) -> str:
        for event in (self.frame_requested_navigation_event, self.navigated_within_document_event):
            if event is not None and event.url is not None:
                return event.url
        url = self.earliest_request.request_url
        return url if url is not None else UNKNOWN_TITLE

    def _offset_ms(self, timestamp: float | None) -> float:
        if timestamp is None:
            return -1
        return round_to_three_decimal_places((timestamp - self.timestamp) * 1000)

    @property
    def page_timings(self) -> PageTimings:
        content_loaded = self.dom_content_event_fired_event
        loaded = self.load_event_fired_event
        return PageTimings(
            on_content_load=self._offset_ms(content_loaded.timestamp if content_loaded else None),
            on_load=self._offset_ms(loaded.timestamp if loaded else None),
        )

    @property
    def page(self) -> Page:
        if self.id is None:
            raise ContractViolationError(
                "Cannot build a HAR page before the page id is assigned",
                operation="page",
            )
        return Page(
            id=self.id,
            started_date_time=self.started_date_time,
            title=self.title,
            page_timings=self.page_timings,
        )
