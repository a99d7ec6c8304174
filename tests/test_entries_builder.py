"""
Tests for routing network events to transactions.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-ESB-N-01 | Redirect chain on one request id | Equivalence – normal | One builder per hop | Redirects |
| TC-ESB-N-02 | Body before initiating event | Equivalence – normal | Same builder | Order independence |
| TC-ESB-N-03 | Body riding on another payload | Equivalence – normal | Attached | Body extraction |
| TC-ESB-N-04 | Transactions out of order | Equivalence – normal | Sorted by start time | finalize |
| TC-ESB-N-05 | Frames | Equivalence – normal | Per-frame index, by timestamp | Page timing |
| TC-ESB-B-01 | Request with no response | Boundary | Not completed | Eligibility |
| TC-ESB-A-01 | Malformed payload | Abnormal | Ignored | No builder |
| TC-ESB-A-02 | Event after seal | Abnormal | ArchiveSealedError | Sealing |
"""

import pytest

from devtools_har.archive.entries_builder import HarEntriesBuilder
from devtools_har.archive.errors import ArchiveSealedError
from devtools_har.archive.options import HarOptions

pytestmark = pytest.mark.unit

OLD_URL = "https://example.com/old"
NEW_URL = "https://example.com/new"


def _entries(events, **options) -> HarEntriesBuilder:
    entries = HarEntriesBuilder(HarOptions(**options))
    for event_name, payload in events:
        entries.handle_network_event(event_name, payload)
    return entries


def _redirect_events(cdp) -> list:
    return [
        ("Network.requestWillBeSent", cdp.request_will_be_sent(request_id="1", url=OLD_URL, timestamp=100.0)),
        (
            "Network.requestWillBeSent",
            cdp.request_will_be_sent(
                request_id="1",
                url=NEW_URL,
                timestamp=100.2,
                redirect_response=cdp.response(
                    url=OLD_URL,
                    status=301,
                    status_text="Moved Permanently",
                    headers={"Location": NEW_URL},
                    timing=cdp.timing(100.0),
                ),
            ),
        ),
        ("Network.responseReceived", cdp.response_received(request_id="1", timestamp=100.25, url=NEW_URL)),
        ("Network.loadingFinished", cdp.loading_finished(request_id="1", timestamp=100.3)),
    ]


class TestRedirects:
    """Tests for redirect chain splitting."""

    def test_one_builder_per_hop(self, cdp) -> None:
        """Test a reused request id produces two transactions (TC-ESB-N-01)."""
        # Given: A 301 followed by the final response
        entries = _entries(_redirect_events(cdp))

        # When: Finalizing
        first, second = entries.all_entry_builders
        har_entries = entries.finalize()

        # Then: The first hop ends with the redirect response
        assert first.request.url == OLD_URL
        assert first.response.status == 301
        assert first.prior_redirects == 0
        assert second.request.url == NEW_URL
        assert second.prior_redirects == 1
        assert entries.entry_builders_by_request_id["1"] is second
        assert [e.request.url for e in har_entries] == [OLD_URL, NEW_URL]
        assert har_entries[0].response.redirect_url == NEW_URL
        assert [e.request_id for e in har_entries] == ["1", "1"]

    def test_compat_marks_redirected_hop(self, cdp) -> None:
        """Test compat request ids for a redirect chain (TC-ESB-N-01)."""
        # When: Finalizing in compat mode
        har_entries = _entries(_redirect_events(cdp), mimic_chrome_har=True).finalize()

        # Then: Only the redirected hop is suffixed
        assert [e.request_id for e in har_entries] == ["1r", "1"]


class TestRouting:
    """Tests for body attachment and indexing."""

    def test_body_before_request(self, cdp) -> None:
        """Test a body delivered before the initiating event (TC-ESB-N-02)."""
        # Given: The body event first
        events = [
            ("Network.getResponseBodyResponse", {"requestId": "1000.1", "body": "aGk=", "base64Encoded": True}),
            *cdp.transaction(),
        ]

        # When: Finalizing
        entries = _entries(events)
        (entry,) = entries.finalize()

        # Then: One transaction carries the body
        assert len(entries.all_entry_builders) == 1
        assert entry.response.content.size == 4
        assert entry.response.content.encoding == "base64"

    def test_body_on_other_payload(self, cdp) -> None:
        """Test a body nested under response on any event (TC-ESB-N-03)."""
        # Given: An unrecognized event carrying a body
        events = [*cdp.transaction(), ("Network.bodyLoaded", {"requestId": "1000.1", "response": {"body": "hello"}})]

        # When / Then
        builder = _entries(events).all_entry_builders[0]
        assert builder.body_text == "hello"

    def test_sorted_by_start_time(self, cdp) -> None:
        """Test entries are ordered by start, not arrival (TC-ESB-N-04)."""
        # Given: A later transaction delivered first
        events = [
            *cdp.transaction(request_id="late", url="https://example.com/late", timestamp=105.0),
            *cdp.transaction(request_id="early", url="https://example.com/early", timestamp=100.0),
        ]

        # When: Finalizing twice
        entries = _entries(events)
        har_entries = entries.finalize()

        # Then: Ordered by start and computed once
        assert [e.request_id for e in har_entries] == ["early", "late"]
        assert entries.finalize() is har_entries

    def test_frame_index(self, cdp) -> None:
        """Test per-frame lookup sorted by initiating timestamp (TC-ESB-N-05)."""
        # Given: Requests in two frames and one without a frame
        events = [
            *cdp.transaction(request_id="b", timestamp=103.0, frame_id="FRAME-2"),
            *cdp.transaction(request_id="a", timestamp=101.0, frame_id="FRAME-1"),
            *cdp.transaction(request_id="c", timestamp=102.0, frame_id=None),
        ]

        # When: Looking up both frames
        entries = _entries(events)
        builders = entries.builders_for_frame_ids_sorted_by_timestamp("FRAME-2", "FRAME-1")

        # Then: Earliest first; frameless requests index under ""
        assert [b.request_event.request_id for b in builders] == ["a", "b"]
        assert [b.request_event.request_id for b in entries.entry_builders_by_frame_id[""]] == ["c"]


class TestEligibilityAndSealing:
    """Tests for completion and sealing."""

    def test_request_without_response(self, cdp) -> None:
        """Test unanswered requests are not completed (TC-ESB-B-01)."""
        # Given: One answered and one unanswered request
        events = [
            *cdp.transaction(request_id="ok"),
            ("Network.requestWillBeSent", cdp.request_will_be_sent(request_id="pending", timestamp=100.5)),
        ]

        # When / Then
        completed = _entries(events).completed_builders()
        assert [b.request_event.request_id for b in completed] == ["ok"]

    def test_malformed_payload_ignored(self) -> None:
        """Test a payload failing validation (TC-ESB-A-01)."""
        # When: Handling an event without a request id
        entries = _entries([("Network.loadingFinished", {"timestamp": 1.0})])

        # Then: Nothing is created
        assert entries.all_entry_builders == []

    def test_sealed(self, cdp) -> None:
        """Test events after sealing (TC-ESB-A-02)."""
        # Given: A sealed builder
        entries = _entries(cdp.transaction())
        entries.seal()

        # When / Then
        assert entries.is_sealed
        with pytest.raises(ArchiveSealedError):
            entries.handle_network_event("Network.loadingFinished", cdp.loading_finished())
