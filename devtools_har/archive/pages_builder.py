"""
Grouping of transactions into pages via frame lifecycle events.
"""

from typing import Any

from devtools_har.archive.entries_builder import HarEntriesBuilder
from devtools_har.archive.errors import ArchiveSealedError
from devtools_har.archive.events import (
    DomContentEventFiredEvent,
    FrameAttachedEvent,
    FrameRequestedNavigationEvent,
    FrameStartedLoadingEvent,
    LoadEventFiredEvent,
    NavigatedWithinDocumentEvent,
    parse_event,
)
from devtools_har.archive.har_types import Page
from devtools_har.archive.options import HarOptions, StandardArchivePolicy, policy_for
from devtools_har.archive.page_builder import HarPageBuilder
from devtools_har.utils.logging import get_logger

logger = get_logger(__name__)


class HarPagesBuilder:
    """Builds pages from Page.* events and assigns entries to them."""

    def __init__(
        self,
        entries_builder: HarEntriesBuilder,
        options: HarOptions,
        policy: StandardArchivePolicy | None = None,
    ):
        self.entries_builder = entries_builder
        self.options = options
        self.policy = policy or policy_for(options)
        self.by_frame_id: dict[str, HarPageBuilder] = {}
        # Most recently created page last
        self.page_stack: list[HarPageBuilder] = []
        self._sealed = False
        self._valid_pages: list[HarPageBuilder] | None = None

    def get_or_create_by_frame_id(self, frame_id: str) -> HarPageBuilder:
        page = self.by_frame_id.get(frame_id)
        if page is None:
            page = HarPageBuilder(self.entries_builder, len(self.page_stack) + 1, [frame_id])
            self.by_frame_id[frame_id] = page
            self.page_stack.append(page)
        return page

    def create_for_entries_with_no_page(self, frame_ids: list[str]) -> HarPageBuilder:
        page = HarPageBuilder(self.entries_builder, 0, frame_ids)
        for frame_id in frame_ids:
            self.by_frame_id[frame_id] = page
        self.page_stack.append(page)
        return page

    @property
    def top_of_page_stack(self) -> HarPageBuilder | None:
        return self.page_stack[-1] if self.page_stack else None

    def handle_page_event(self, event_name: str, payload: Any) -> None:
        """Record one Page.* event.

        Raises:
            ArchiveSealedError: If pages were already assigned.
        """
        if self._sealed:
            raise ArchiveSealedError()

        event = parse_event(event_name, payload)
        if event is None:
            return

        top = self.top_of_page_stack
        if isinstance(event, FrameAttachedEvent):
            self._on_frame_attached(event)
        elif isinstance(event, LoadEventFiredEvent):
            # Not frame-scoped; belongs to the newest page
            if top is not None:
                top.load_event_fired_event = event
        elif isinstance(event, DomContentEventFiredEvent):
            if top is not None:
                top.dom_content_event_fired_event = event
        elif isinstance(event, FrameStartedLoadingEvent):
            self.get_or_create_by_frame_id(event.frame_id).frame_started_loading_event = event
        elif isinstance(event, FrameRequestedNavigationEvent):
            self.get_or_create_by_frame_id(event.frame_id).frame_requested_navigation_event = event
        elif isinstance(event, NavigatedWithinDocumentEvent):
            self.get_or_create_by_frame_id(event.frame_id).navigated_within_document_event = event

    def _on_frame_attached(self, event: FrameAttachedEvent) -> None:
        frame_id = event.frame_id
        parent_frame_id = event.parent_frame_id
        if not parent_frame_id or parent_frame_id == frame_id:
            self.get_or_create_by_frame_id(frame_id)
            return
        # Parents attach before their children, so the parent's page
        # should already be known.
        page = self.by_frame_id.get(parent_frame_id)
        if page is None:
            logger.debug(
                "Dropping frame attached to an unknown parent",
                frame_id=frame_id,
                parent_frame_id=parent_frame_id,
            )
            return
        page.add_frame_id(frame_id)
        page.frame_attached_events.append(event)
        self.by_frame_id[frame_id] = page

    def assign_entries_to_pages(self) -> None:
        """Assign each eligible entry to the page owning its frame.

        Entries whose frame belongs to no page share one synthesized page.
        """
        if self._sealed:
            return
        self._sealed = True

        pageless = []
        for builder in self.entries_builder.completed_builders():
            page = self.by_frame_id.get(builder.frame_id) if builder.frame_id is not None else None
            if page is None:
                pageless.append(builder)
            else:
                builder.assign_to_page(page)

        if pageless:
            frame_ids = list(dict.fromkeys(builder.frame_id or "" for builder in pageless))
            page = self.create_for_entries_with_no_page(frame_ids)
            for builder in pageless:
                builder.assign_to_page(page)

    def valid_pages(self) -> list[HarPageBuilder]:
        """Pages with at least one request, in archive order (computed once)."""
        if self._valid_pages is None:
            self._valid_pages = sorted(
                (page for page in self.page_stack if page.is_valid),
                key=self.policy.page_sort_key,
            )
        return self._valid_pages

    def assign_page_ids(self) -> None:
        for index, page in enumerate(self.valid_pages(), start=1):
            page.id = f"page_{index}"

    @property
    def pages(self) -> list[Page]:
        return [page.page for page in self.valid_pages()]
