"""
Per-transaction accumulation and HAR entry derivation.

A HarEntryBuilder collects every debugger event for one request id (one
hop of a redirect chain). Events may arrive in any order. Once the stream
is complete the builder is sealed and the entry is derived from the
stored events, once.

Reading ``entry`` works backwards from the HAR record: each field is a
small property over the raw events, so the origin of any value can be
traced from ``_build_entry``.
"""

import json
from functools import cached_property
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlsplit

from devtools_har.archive import har_types as har
from devtools_har.archive.cookies import blocked_cookie_names, parse_request_cookies, parse_response_cookies
from devtools_har.archive.errors import ArchiveSealedError, ContractViolationError
from devtools_har.archive.events import (
    DataReceivedEvent,
    LoadingFailedEvent,
    LoadingFinishedEvent,
    RequestServedFromCacheEvent,
    RequestWillBeSentEvent,
    RequestWillBeSentExtraInfoEvent,
    ResourceChangedPriorityEvent,
    ResourceTiming,
    Response,
    ResponseBodyEvent,
    ResponseReceivedEvent,
    ResponseReceivedExtraInfoEvent,
    WebSocketFrameEvent,
)
from devtools_har.archive.headers import HeaderIndex, calculate_response_header_size
from devtools_har.archive.options import HarOptions, StandardArchivePolicy, policy_for
from devtools_har.archive.time_lord import TimeLord
from devtools_har.archive.util import (
    is_http1x,
    normalize_url,
    parse_post_data,
    round_to_three_decimal_places,
    time_difference_ms,
    wall_time_to_iso,
)
from devtools_har.utils.logging import get_logger

if TYPE_CHECKING:
    from devtools_har.archive.page_builder import HarPageBuilder

logger = get_logger(__name__)

# Only cancellations other than this one exclude an entry
ABORTED_ERROR_TEXT = "net::ERR_ABORTED"

WEB_SOCKET_OPCODE_TEXT = 1
WEB_SOCKET_OPCODE_BINARY = 2


class HarEntryBuilder:
    """Accumulates the events of one transaction and derives its HAR entry."""

    def __init__(
        self,
        time_lord: TimeLord,
        order_arrived: int,
        options: HarOptions,
        policy: StandardArchivePolicy | None = None,
    ):
        self.time_lord = time_lord
        self.order_arrived = order_arrived
        self.options = options
        self.policy = policy or policy_for(options)
        self.prior_redirects = 0

        # The initiating event, stored without its redirect_response (which
        # belongs to the previous hop).
        self.request_will_be_sent_event: RequestWillBeSentEvent | None = None
        self.redirect_response: Response | None = None
        self.response_received_event: ResponseReceivedEvent | None = None
        self.request_extra_info_event: RequestWillBeSentExtraInfoEvent | None = None
        self.response_extra_info_event: ResponseReceivedExtraInfoEvent | None = None
        self.served_from_cache_event: RequestServedFromCacheEvent | None = None
        self.loading_finished_event: LoadingFinishedEvent | None = None
        self.loading_failed_event: LoadingFailedEvent | None = None
        self.priority_changed_event: ResourceChangedPriorityEvent | None = None
        self.response_body: ResponseBodyEvent | None = None
        self.data_received_events: list[DataReceivedEvent] = []
        self.web_socket_frames: list[WebSocketFrameEvent] = []

        self.page: "HarPageBuilder | None" = None
        self._sealed = False

    # =========================================================================
    # Accumulation
    # =========================================================================

    def _ensure_open(self) -> None:
        if self._sealed:
            raise ArchiveSealedError()

    def seal(self) -> None:
        """Freeze the raw events; derivation may begin."""
        if self._sealed:
            return
        self._sealed = True
        if self.redirect_response is not None and self.response_received_event is not None:
            logger.warning(
                "Transaction has both a redirect response and a received response; using the redirect response",
                request_id=self.response_received_event.request_id,
            )

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def set_request(self, event: RequestWillBeSentEvent) -> None:
        self._ensure_open()
        self.request_will_be_sent_event = event.model_copy(update={"redirect_response": None})

    def set_redirect_response(self, response: Response | None) -> None:
        self._ensure_open()
        self.redirect_response = response

    def set_response_body(self, body: ResponseBodyEvent) -> None:
        self._ensure_open()
        self.response_body = body

    def add_event(self, event: object) -> None:
        """Store a parsed network event on this transaction."""
        self._ensure_open()
        if isinstance(event, RequestWillBeSentEvent):
            self.set_request(event)
        elif isinstance(event, ResponseReceivedEvent):
            self.response_received_event = event
        elif isinstance(event, RequestWillBeSentExtraInfoEvent):
            self.request_extra_info_event = event
        elif isinstance(event, ResponseReceivedExtraInfoEvent):
            self.response_extra_info_event = event
        elif isinstance(event, RequestServedFromCacheEvent):
            self.served_from_cache_event = event
        elif isinstance(event, LoadingFinishedEvent):
            self.loading_finished_event = event
        elif isinstance(event, LoadingFailedEvent):
            self.loading_failed_event = event
        elif isinstance(event, DataReceivedEvent):
            self.data_received_events.append(event)
        elif isinstance(event, ResourceChangedPriorityEvent):
            self.priority_changed_event = event
        elif isinstance(event, WebSocketFrameEvent):
            self.web_socket_frames.append(event)
        elif isinstance(event, ResponseBodyEvent):
            self.set_response_body(event)
        else:
            logger.debug("Ignoring unsupported network event", event_type=type(event).__name__)

    def assign_to_page(self, page: "HarPageBuilder") -> None:
        self.page = page

    # =========================================================================
    # Eligibility
    # =========================================================================

    @property
    def is_valid_for_page_time_calculations(self) -> bool:
        return self.request_will_be_sent_event is not None

    @property
    def is_valid_for_inclusion(self) -> bool:
        """Whether this transaction produces an entry in the archive."""
        if self.request_will_be_sent_event is None or self._response is None:
            return False
        failed = self.loading_failed_event
        if failed is not None and failed.canceled and failed.error_text != ABORTED_ERROR_TEXT:
            return False
        if not self.policy.supports_scheme(self.request.url):
            return False
        if not self.options.include_resources_from_disk_cache and self.is_from_cache:
            return False
        return True

    @property
    def is_from_cache(self) -> bool:
        if self.served_from_cache_event is not None:
            return True
        response = self.response
        return bool(response.from_disk_cache) and not self.was_http2_push and not response.from_early_hints

    # =========================================================================
    # Request
    # =========================================================================

    @property
    def request_event(self) -> RequestWillBeSentEvent:
        if self.request_will_be_sent_event is None:
            raise ContractViolationError(
                "Attempt to access the initiating request event before it was set",
                operation="request_event",
            )
        return self.request_will_be_sent_event

    @property
    def request(self):
        return self.request_event.request

    @property
    def frame_id(self) -> str | None:
        if self.request_will_be_sent_event is None:
            return None
        return self.request_will_be_sent_event.frame_id or ""

    @property
    def timestamp(self) -> float:
        """Monotonic time (seconds) of the initiating event."""
        return self.request_event.timestamp

    @property
    def start_timestamp(self) -> float:
        """Monotonic time the request started: the timing object's requestTime if known."""
        timing = self._response.timing if self._response is not None else None
        return timing.request_time if timing is not None else self.timestamp

    @property
    def started_date_time(self) -> str:
        return wall_time_to_iso(self.time_lord.estimate_wall_time(self.start_timestamp))

    @property
    def request_url(self) -> str:
        """Normalized request URL with its fragment restored."""
        url = normalize_url(self.request.url + (self.request.url_fragment or ""))
        return self.policy.format_url(url)

    @property
    def query_string(self) -> list[har.QueryString]:
        query = urlsplit(self.request.url).query
        return [har.QueryString(name=name, value=value) for name, value in parse_qsl(query, keep_blank_values=True)]

    @cached_property
    def request_headers(self) -> HeaderIndex:
        return self.policy.request_headers(self.request_extra_info_event, self.response, self.request.headers)

    @property
    def request_cookies(self) -> list[har.Cookie]:
        blocked = blocked_cookie_names(self._blocked_cookies)
        cookie_header = self.request_headers.get("Cookie")
        header_cookies = [
            cookie for cookie in (parse_request_cookies(cookie_header) if cookie_header is not None else [])
            if cookie.name not in blocked
        ]
        associated = self.request_extra_info_event.associated_cookies if self.request_extra_info_event else []
        return self.policy.request_cookies(header_cookies, associated)

    @property
    def request_headers_size(self) -> int:
        return self.policy.request_headers_size(
            self.response, self.request.method, self.request.url, self.http_version, self.request.headers
        )

    @property
    def request_body_size(self) -> int:
        return len(self.request.post_data) if self.request.post_data is not None else 0

    @property
    def post_data(self) -> har.PostData | None:
        content_type = HeaderIndex(self.request.headers).get("Content-Type")
        return parse_post_data(content_type, self.request.post_data, self.policy.parse_post_data_params)

    def _build_request(self) -> har.Request:
        return har.Request(
            method=self.request.method,
            url=self.request_url,
            http_version=self.http_version or "",
            cookies=self.request_cookies,
            headers=self.request_headers.to_har(),
            query_string=self.query_string,
            post_data=self.post_data,
            headers_size=self.request_headers_size,
            body_size=self.request_body_size,
            is_link_preload=True if self.request.is_link_preload else None,
        )

    # =========================================================================
    # Response
    # =========================================================================

    @property
    def _response(self) -> Response | None:
        # A redirect response is known to belong to this hop, so it wins
        # over a received response delivered out of order.
        if self.redirect_response is not None:
            return self.redirect_response
        if self.response_received_event is not None:
            return self.response_received_event.response
        return None

    @property
    def response(self) -> Response:
        response = self._response
        if response is None:
            raise ContractViolationError(
                "Attempt to access a response when no response or redirect response was received",
                operation="response",
            )
        return response

    @property
    def http_version(self) -> str | None:
        return self.response.protocol

    @property
    def timing(self) -> ResourceTiming | None:
        return self.response.timing

    @property
    def was_http2_push(self) -> bool:
        response = self._response
        return response is not None and response.timing is not None and response.timing.push_start > 0

    @property
    def _blocked_cookies(self):
        return self.response_extra_info_event.blocked_cookies if self.response_extra_info_event else []

    @property
    def response_headers_raw(self) -> dict:
        extra = self.response_extra_info_event
        if extra is not None and extra.headers is not None:
            return extra.headers
        return self.response.headers

    @cached_property
    def response_headers(self) -> HeaderIndex:
        return HeaderIndex(self.response_headers_raw)

    @property
    def response_headers_size(self) -> int:
        extra = self.response_extra_info_event
        headers_text = extra.headers_text if extra is not None and extra.headers_text is not None else None
        if headers_text is None:
            headers_text = self.response.headers_text
        if headers_text is not None:
            return len(headers_text)
        response = self.response
        if is_http1x(self.http_version) and not response.from_disk_cache and not response.from_early_hints:
            return calculate_response_header_size(
                response.protocol, response.status, response.status_text, response.headers
            )
        return -1

    @property
    def status(self) -> int:
        extra = self.response_extra_info_event
        if extra is not None and extra.status_code is not None:
            return extra.status_code
        return self.response.status

    @property
    def response_cookies(self) -> list[har.Cookie]:
        header = self.policy.set_cookie_header(self.response_headers_raw, self.response)
        if header is None:
            return []
        blocked = blocked_cookie_names(self._blocked_cookies)
        return [cookie for cookie in parse_response_cookies(header) if cookie.name not in blocked]

    @property
    def body_text(self) -> str | None:
        return self.response_body.body if self.response_body is not None else None

    @property
    def content_size(self) -> int:
        if self.data_received_events:
            return sum(event.data_length for event in self.data_received_events)
        body = self.body_text
        return len(body) if body is not None else 0

    @property
    def response_body_size(self) -> int:
        return self.policy.response_body_size(
            self.body_text,
            self.response.status,
            self.response_headers,
            self.loading_finished_event,
            self.response_headers_size,
        )

    def _build_content(self) -> har.Content:
        finished = self.loading_finished_event
        encoded_length = finished.encoded_data_length if finished is not None else None
        base64_encoded = self.response_body.base64_encoded if self.response_body is not None else None
        return har.Content(
            size=self.content_size,
            compression=self.policy.compression(self.content_size, encoded_length),
            mime_type=self.response.mime_type,
            text=self.body_text if self.options.include_text_from_response_body else None,
            encoding=self.policy.content_encoding(self.response, base64_encoded),
        )

    def _build_response(self) -> har.Response:
        response = self.response
        return har.Response(
            status=self.status,
            status_text=response.status_text,
            http_version=self.http_version or "",
            cookies=self.response_cookies,
            headers=self.response_headers.to_har(),
            content=self._build_content(),
            redirect_url=self.response_headers.get("Location") or "",
            headers_size=self.response_headers_size,
            body_size=self.response_body_size,
            transfer_size=self.policy.transfer_size(self.loading_finished_event, response),
            from_disk_cache=bool(response.from_disk_cache),
            from_early_hints=bool(response.from_early_hints),
            from_service_worker=bool(response.from_service_worker),
            from_prefetch_cache=bool(response.from_prefetch_cache),
        )

    # =========================================================================
    # Timings
    # =========================================================================

    @cached_property
    def timings(self) -> har.Timings:
        """Phase durations in milliseconds.

        Phase offsets in the timing object are milliseconds relative to its
        requestTime; event timestamps are seconds.
        """
        timing = self.timing
        if timing is None:
            return har.Timings(send=0, wait=0, receive=0)

        starts = [start for start in (timing.dns_start, timing.connect_start, timing.send_start) if start >= 0]
        blocked = round_to_three_decimal_places(min(starts)) if starts else -1

        finished_at = None
        if self.loading_failed_event is not None:
            finished_at = self.loading_failed_event.timestamp
        elif self.loading_finished_event is not None:
            finished_at = self.loading_finished_event.timestamp
        receive = 0.0
        if finished_at is not None:
            receive = round_to_three_decimal_places(
                (finished_at - timing.request_time) * 1000 - timing.receive_headers_end
            )

        queued = round_to_three_decimal_places(1000 * (timing.request_time - self.timestamp))

        def _or(value: float | None, default: float) -> float:
            return default if value is None else value

        return har.Timings(
            blocked=blocked,
            dns=_or(time_difference_ms(timing.dns_start, timing.dns_end), -1),
            connect=_or(time_difference_ms(timing.connect_start, timing.connect_end), -1),
            send=_or(time_difference_ms(timing.send_start, timing.send_end), 0),
            wait=_or(time_difference_ms(timing.send_end, timing.receive_headers_end), 0),
            receive=receive,
            ssl=_or(time_difference_ms(timing.ssl_start, timing.ssl_end), -1),
            queued=queued if queued > 0 else None,
        )

    @property
    def time(self) -> float:
        t = self.timings
        return max(0, t.blocked) + max(0, t.dns) + max(0, t.connect) + t.send + t.wait + t.receive

    # =========================================================================
    # Custom fields
    # =========================================================================

    @property
    def initiator_fields(self) -> dict:
        initiator = self.request_event.initiator
        fields: dict = {
            "initiator_detail": json.dumps(
                initiator.model_dump(by_alias=True, exclude_unset=True), separators=(",", ":")
            ),
            "initiator_type": initiator.type,
        }
        if initiator.type == "parser":
            fields["initiator"] = initiator.url
            fields["initiator_line"] = (initiator.line_number or 0) + 1
        elif initiator.type == "script" and initiator.stack is not None and initiator.stack.call_frames:
            top = initiator.stack.call_frames[0]
            fields["initiator"] = top.url
            fields["initiator_line"] = top.line_number + 1
            fields["initiator_column"] = top.column_number + 1
            fields["initiator_function_name"] = top.function_name
            fields["initiator_script_id"] = top.script_id
        return fields

    @property
    def chunks(self) -> list[har.Chunk] | None:
        if not self.data_received_events:
            return None
        reference = self.page.timestamp if self.page is not None else self.timestamp
        return [
            har.Chunk(ts=round_to_three_decimal_places((event.timestamp - reference) * 1000), byte_count=event.data_length)
            for event in self.data_received_events
        ]

    @property
    def web_socket_messages(self) -> list[har.WebSocketMessage] | None:
        if not self.web_socket_frames or not self.policy.include_web_socket_messages:
            return None
        return [
            har.WebSocketMessage(
                direction=frame.direction,
                time=self.time_lord.estimate_wall_time(frame.timestamp),
                # Only "text" (1) is distinguished; every other opcode is base64 binary.
                opcode=WEB_SOCKET_OPCODE_TEXT
                if frame.response.opcode == WEB_SOCKET_OPCODE_TEXT
                else WEB_SOCKET_OPCODE_BINARY,
                data=frame.response.payload_data,
            )
            for frame in self.web_socket_frames
        ]

    @property
    def cache(self) -> har.Cache:
        if self.served_from_cache_event is None:
            return har.Cache()
        return har.Cache(
            before_request=har.CacheState(last_access=self.started_date_time, e_tag="", hit_count=0)
        )

    @property
    def server_ip_address(self) -> str | None:
        address = self.response.remote_ip_address
        if not address:
            return None
        return address.removeprefix("[").removesuffix("]")

    @property
    def connection(self) -> str | None:
        connection_id = self.response.connection_id
        if connection_id is None:
            return None
        if isinstance(connection_id, float) and connection_id.is_integer():
            connection_id = int(connection_id)
        return str(connection_id)

    @property
    def priority(self) -> str | None:
        if self.priority_changed_event is not None:
            return self.priority_changed_event.new_priority
        return self.request.initial_priority

    @property
    def resource_type(self) -> str | None:
        resource_type = self.request_event.type
        return resource_type.lower() if resource_type else None

    @property
    def pageref(self) -> str | None:
        return self.page.id if self.page is not None else None

    # =========================================================================
    # Entry
    # =========================================================================

    def _build_entry(self) -> har.Entry:
        return har.Entry(
            pageref=self.pageref,
            started_date_time=self.started_date_time,
            time=self.time,
            request=self._build_request(),
            response=self._build_response(),
            cache=self.cache,
            timings=self.timings,
            server_ip_address=self.server_ip_address,
            connection=self.connection,
            chunks=self.chunks,
            was_pushed=1 if self.was_http2_push else None,
            web_socket_messages=self.web_socket_messages,
            request_id=self.policy.request_id(self.request_event.request_id, self.redirect_response is not None),
            initial_priority=self.request.initial_priority,
            priority=self.priority,
            resource_type=self.resource_type,
            request_time=self.start_timestamp,
            **self.initiator_fields,
        )

    @cached_property
    def entry(self) -> har.Entry | None:
        """The HAR entry, or None if this transaction is not eligible.

        Reading this seals the builder.
        """
        self.seal()
        if not self.is_valid_for_inclusion:
            return None
        return self._build_entry()
