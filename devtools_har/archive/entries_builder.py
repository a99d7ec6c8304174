"""
Routing of network events to per-transaction builders.
"""

from typing import Any

from devtools_har.archive.entry_builder import HarEntryBuilder
from devtools_har.archive.errors import ArchiveSealedError
from devtools_har.archive.events import (
    RequestWillBeSentEvent,
    extract_response_body,
    parse_event,
)
from devtools_har.archive.har_types import Entry
from devtools_har.archive.options import HarOptions, StandardArchivePolicy, policy_for
from devtools_har.archive.time_lord import TimeLord
from devtools_har.utils.logging import get_logger

logger = get_logger(__name__)


class HarEntriesBuilder:
    """Owns every HarEntryBuilder and the request-id and frame-id indexes.

    Request ids are reused across a redirect chain: when a second initiating
    event arrives for an id whose builder already has one, that builder is
    completed with the redirect response and a new builder takes over the id.
    """

    def __init__(self, options: HarOptions, policy: StandardArchivePolicy | None = None):
        self.options = options
        self.policy = policy or policy_for(options)
        self.time_lord = TimeLord()
        self.all_entry_builders: list[HarEntryBuilder] = []
        self.entry_builders_by_frame_id: dict[str, list[HarEntryBuilder]] = {}
        self.entry_builders_by_request_id: dict[str, HarEntryBuilder] = {}
        self._creation_index = 0
        self._sealed = False
        self._completed: list[HarEntryBuilder] | None = None
        self._entries: list[Entry] | None = None

    def _get_or_create(self, request_id: str) -> HarEntryBuilder:
        builder = self.entry_builders_by_request_id.get(request_id)
        if builder is None:
            builder = HarEntryBuilder(self.time_lord, self._creation_index, self.options, self.policy)
            self._creation_index += 1
            self.entry_builders_by_request_id[request_id] = builder
            self.all_entry_builders.append(builder)
        return builder

    def handle_network_event(self, event_name: str, payload: Any) -> None:
        """Record one Network.* event.

        Unknown names and malformed payloads are ignored. A response body
        found anywhere in the payload is attached to its request id.

        Raises:
            ArchiveSealedError: If the entries were already finalized.
        """
        if self._sealed:
            raise ArchiveSealedError()

        body = extract_response_body(payload)
        if body is not None:
            self._get_or_create(body.request_id).set_response_body(body)

        event = parse_event(event_name, payload)
        if event is None:
            return

        if isinstance(event, RequestWillBeSentEvent):
            self._on_request_will_be_sent(event)
        else:
            self._get_or_create(event.request_id).add_event(event)

    def _on_request_will_be_sent(self, event: RequestWillBeSentEvent) -> None:
        request_id = event.request_id
        prior_redirects = 0
        prior = self.entry_builders_by_request_id.get(request_id)
        if prior is not None and prior.request_will_be_sent_event is not None:
            # The embedded redirect response is the previous hop's response.
            prior_redirects = prior.prior_redirects + 1
            prior.set_redirect_response(event.redirect_response)
            del self.entry_builders_by_request_id[request_id]
            logger.debug(
                "Split redirect chain",
                request_id=request_id,
                prior_redirects=prior_redirects,
                url=event.request.url,
            )

        self.time_lord.record(event.timestamp, event.wall_time)

        builder = self._get_or_create(request_id)
        builder.set_request(event)
        builder.prior_redirects = prior_redirects

        # Only the initiating event associates a request with a frame.
        frame_id = event.frame_id or ""
        self.entry_builders_by_frame_id.setdefault(frame_id, []).append(builder)

    def seal(self) -> None:
        """Stop accepting events and freeze every builder."""
        if self._sealed:
            return
        self._sealed = True
        for builder in self.all_entry_builders:
            builder.seal()

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def completed_builders(self) -> list[HarEntryBuilder]:
        """Builders eligible for inclusion, in creation order."""
        if self._completed is None:
            self.seal()
            self._completed = [b for b in self.all_entry_builders if b.is_valid_for_inclusion]
        return self._completed

    def completed_builders_sorted_by_start_time(self) -> list[HarEntryBuilder]:
        return sorted(self.completed_builders(), key=lambda b: b.start_timestamp)

    def finalize(self) -> list[Entry]:
        """Entries sorted by start time (computed once)."""
        if self._entries is None:
            entries = (b.entry for b in self.completed_builders_sorted_by_start_time())
            self._entries = [entry for entry in entries if entry is not None]
        return self._entries

    def builders_for_frame_ids_sorted_by_timestamp(self, *frame_ids: str) -> list[HarEntryBuilder]:
        """Builders usable for page timing in the given frames, earliest initiating event first."""
        builders = [
            builder
            for frame_id in frame_ids
            for builder in self.entry_builders_by_frame_id.get(frame_id, [])
            if builder.is_valid_for_page_time_calculations
        ]
        return sorted(builders, key=lambda b: b.timestamp)
