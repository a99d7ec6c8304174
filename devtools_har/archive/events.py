"""
Debugger (Chrome DevTools Protocol) event vocabulary.

Each recognized event kind has a pydantic model of its payload. Attributes
are snake_case with the protocol's camelCase names as aliases, unknown keys
are retained, and models are frozen once parsed.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from devtools_har.utils.logging import get_logger

logger = get_logger(__name__)


class NetworkEventName(str, Enum):
    """Network domain events used to build entries."""

    REQUEST_WILL_BE_SENT = "Network.requestWillBeSent"
    REQUEST_WILL_BE_SENT_EXTRA_INFO = "Network.requestWillBeSentExtraInfo"
    RESPONSE_RECEIVED = "Network.responseReceived"
    RESPONSE_RECEIVED_EXTRA_INFO = "Network.responseReceivedExtraInfo"
    REQUEST_SERVED_FROM_CACHE = "Network.requestServedFromCache"
    DATA_RECEIVED = "Network.dataReceived"
    LOADING_FINISHED = "Network.loadingFinished"
    LOADING_FAILED = "Network.loadingFailed"
    RESOURCE_CHANGED_PRIORITY = "Network.resourceChangedPriority"
    WEB_SOCKET_FRAME_SENT = "Network.webSocketFrameSent"
    WEB_SOCKET_FRAME_RECEIVED = "Network.webSocketFrameReceived"
    # Synthetic event carrying the result of Network.getResponseBody
    GET_RESPONSE_BODY_RESPONSE = "Network.getResponseBodyResponse"


class PageEventName(str, Enum):
    """Page domain events used to build pages."""

    FRAME_ATTACHED = "Page.frameAttached"
    LOAD_EVENT_FIRED = "Page.loadEventFired"
    DOM_CONTENT_EVENT_FIRED = "Page.domContentEventFired"
    FRAME_STARTED_LOADING = "Page.frameStartedLoading"
    FRAME_REQUESTED_NAVIGATION = "Page.frameRequestedNavigation"
    NAVIGATED_WITHIN_DOCUMENT = "Page.navigatedWithinDocument"


NETWORK_HTTP_EVENTS_TO_RECORD: tuple[str, ...] = (
    "Network.requestWillBeSent",
    "Network.requestServedFromCache",
    "Network.dataReceived",
    "Network.responseReceived",
    "Network.resourceChangedPriority",
    "Network.loadingFinished",
    "Network.loadingFailed",
    "Network.requestWillBeSentExtraInfo",
    "Network.responseReceivedExtraInfo",
)

NETWORK_WEB_SOCKET_EVENTS_TO_RECORD: tuple[str, ...] = (
    "Network.webSocketFrameSent",
    "Network.webSocketFrameReceived",
    "Network.webSocketCreated",
    "Network.webSocketClosed",
    "Network.webSocketWillSendHandshakeRequest",
    "Network.webSocketHandshakeResponseReceived",
)

PAGE_EVENTS_TO_RECORD: tuple[str, ...] = (
    "Page.loadEventFired",
    "Page.domContentEventFired",
    "Page.frameStartedLoading",
    "Page.frameAttached",
    "Page.frameScheduledNavigation",
    "Page.frameRequestedNavigation",
    "Page.navigatedWithinDocument",
)

# Everything a recorder should subscribe to
EVENT_NAMES_TO_RECORD: tuple[str, ...] = (
    NETWORK_HTTP_EVENTS_TO_RECORD + NETWORK_WEB_SOCKET_EVENTS_TO_RECORD + PAGE_EVENTS_TO_RECORD
)

_NETWORK_EVENT_NAMES = frozenset(e.value for e in NetworkEventName)
_PAGE_EVENT_NAMES = frozenset(e.value for e in PageEventName)


def is_network_event_name(name: object) -> bool:
    return isinstance(name, str) and name in _NETWORK_EVENT_NAMES


def is_page_event_name(name: object) -> bool:
    return isinstance(name, str) and name in _PAGE_EVENT_NAMES


def is_har_event_name(name: object) -> bool:
    """True for every event name a recorder should keep (including the body meta-event)."""
    return isinstance(name, str) and (
        name in EVENT_NAMES_TO_RECORD or name == NetworkEventName.GET_RESPONSE_BODY_RESPONSE.value
    )


# =============================================================================
# Payload models
# =============================================================================


class CdpModel(BaseModel):
    """Base for debugger payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


class ResourceTiming(CdpModel):
    """Phase offsets in milliseconds relative to ``request_time`` (seconds)."""

    request_time: float
    proxy_start: float = -1
    proxy_end: float = -1
    dns_start: float = -1
    dns_end: float = -1
    connect_start: float = -1
    connect_end: float = -1
    ssl_start: float = -1
    ssl_end: float = -1
    send_start: float = -1
    send_end: float = -1
    push_start: float = 0
    push_end: float = 0
    receive_headers_start: float = -1
    receive_headers_end: float = -1


class CallFrame(CdpModel):
    function_name: str = ""
    script_id: str = ""
    url: str = ""
    line_number: int = 0
    column_number: int = 0


class StackTrace(CdpModel):
    call_frames: list[CallFrame] = Field(default_factory=list)


class Initiator(CdpModel):
    type: str = "other"
    stack: StackTrace | None = None
    url: str | None = None
    line_number: int | None = None
    column_number: int | None = None


class Request(CdpModel):
    url: str
    url_fragment: str | None = None
    method: str = "GET"
    headers: dict[str, Any] = Field(default_factory=dict)
    post_data: str | None = None
    initial_priority: str | None = None
    is_link_preload: bool | None = None


class Response(CdpModel):
    url: str = ""
    status: int
    status_text: str = ""
    headers: dict[str, Any] = Field(default_factory=dict)
    headers_text: str | None = None
    mime_type: str = ""
    request_headers: dict[str, Any] | None = None
    request_headers_text: str | None = None
    connection_id: int | float | None = None
    remote_ip_address: str | None = Field(default=None, alias="remoteIPAddress")
    from_disk_cache: bool | None = None
    from_service_worker: bool | None = None
    from_prefetch_cache: bool | None = None
    from_early_hints: bool | None = None
    encoded_data_length: int | float | None = None
    timing: ResourceTiming | None = None
    protocol: str | None = None

    @property
    def encoding(self) -> str | None:
        """Non-standard ``encoding`` key some recorders attach to the response."""
        value = (self.model_extra or {}).get("encoding")
        return value if isinstance(value, str) else None


class RequestWillBeSentEvent(CdpModel):
    request_id: str
    request: Request
    timestamp: float
    wall_time: float
    initiator: Initiator = Field(default_factory=Initiator)
    redirect_response: Response | None = None
    type: str | None = None
    frame_id: str | None = None


class ResponseReceivedEvent(CdpModel):
    request_id: str
    response: Response
    timestamp: float | None = None
    type: str | None = None
    frame_id: str | None = None


class NetworkCookie(CdpModel):
    name: str
    value: str = ""
    domain: str | None = None
    path: str | None = None
    expires: float | str | None = None
    http_only: bool | None = None
    secure: bool | None = None
    session: bool = False
    same_site: str | None = None


class BlockedSetCookieWithReason(CdpModel):
    blocked_reasons: list[str] = Field(default_factory=list)
    cookie_line: str | None = None
    cookie: NetworkCookie | None = None


class AssociatedCookie(CdpModel):
    blocked_reasons: list[Any] = Field(default_factory=list)
    cookie: NetworkCookie


class RequestWillBeSentExtraInfoEvent(CdpModel):
    request_id: str
    headers: dict[str, Any] = Field(default_factory=dict)
    associated_cookies: list[AssociatedCookie] = Field(default_factory=list)


class ResponseReceivedExtraInfoEvent(CdpModel):
    request_id: str
    headers: dict[str, Any] | None = None
    headers_text: str | None = None
    status_code: int | None = None
    blocked_cookies: list[BlockedSetCookieWithReason] = Field(default_factory=list)


class RequestServedFromCacheEvent(CdpModel):
    request_id: str


class LoadingFinishedEvent(CdpModel):
    request_id: str
    timestamp: float
    encoded_data_length: int | float | None = None


class LoadingFailedEvent(CdpModel):
    request_id: str
    timestamp: float
    error_text: str = ""
    canceled: bool = False


class DataReceivedEvent(CdpModel):
    request_id: str
    timestamp: float
    data_length: int = 0
    encoded_data_length: int = 0


class ResourceChangedPriorityEvent(CdpModel):
    request_id: str
    new_priority: str
    timestamp: float | None = None


class WebSocketFrame(CdpModel):
    opcode: int
    mask: bool = False
    payload_data: str = ""


class WebSocketFrameEvent(CdpModel):
    """A frame sent or received over a WebSocket; the subclass carries the direction."""

    direction: Literal["send", "receive"]

    request_id: str
    timestamp: float
    response: WebSocketFrame


class WebSocketFrameSentEvent(WebSocketFrameEvent):
    direction: Literal["send", "receive"] = "send"


class WebSocketFrameReceivedEvent(WebSocketFrameEvent):
    direction: Literal["send", "receive"] = "receive"


class ResponseBodyEvent(CdpModel):
    request_id: str
    body: str
    base64_encoded: bool = False


class FrameAttachedEvent(CdpModel):
    frame_id: str
    parent_frame_id: str | None = None


class LoadEventFiredEvent(CdpModel):
    timestamp: float


class DomContentEventFiredEvent(CdpModel):
    timestamp: float


class FrameStartedLoadingEvent(CdpModel):
    frame_id: str


class FrameRequestedNavigationEvent(CdpModel):
    frame_id: str
    url: str | None = None
    reason: str | None = None


class NavigatedWithinDocumentEvent(CdpModel):
    frame_id: str
    url: str | None = None


NetworkEvent = (
    RequestWillBeSentEvent
    | ResponseReceivedEvent
    | RequestWillBeSentExtraInfoEvent
    | ResponseReceivedExtraInfoEvent
    | RequestServedFromCacheEvent
    | LoadingFinishedEvent
    | LoadingFailedEvent
    | DataReceivedEvent
    | ResourceChangedPriorityEvent
    | WebSocketFrameEvent
    | ResponseBodyEvent
)

PageEvent = (
    FrameAttachedEvent
    | LoadEventFiredEvent
    | DomContentEventFiredEvent
    | FrameStartedLoadingEvent
    | FrameRequestedNavigationEvent
    | NavigatedWithinDocumentEvent
)

EVENT_MODELS: dict[str, type[CdpModel]] = {
    NetworkEventName.REQUEST_WILL_BE_SENT.value: RequestWillBeSentEvent,
    NetworkEventName.REQUEST_WILL_BE_SENT_EXTRA_INFO.value: RequestWillBeSentExtraInfoEvent,
    NetworkEventName.RESPONSE_RECEIVED.value: ResponseReceivedEvent,
    NetworkEventName.RESPONSE_RECEIVED_EXTRA_INFO.value: ResponseReceivedExtraInfoEvent,
    NetworkEventName.REQUEST_SERVED_FROM_CACHE.value: RequestServedFromCacheEvent,
    NetworkEventName.DATA_RECEIVED.value: DataReceivedEvent,
    NetworkEventName.LOADING_FINISHED.value: LoadingFinishedEvent,
    NetworkEventName.LOADING_FAILED.value: LoadingFailedEvent,
    NetworkEventName.RESOURCE_CHANGED_PRIORITY.value: ResourceChangedPriorityEvent,
    NetworkEventName.WEB_SOCKET_FRAME_SENT.value: WebSocketFrameSentEvent,
    NetworkEventName.WEB_SOCKET_FRAME_RECEIVED.value: WebSocketFrameReceivedEvent,
    NetworkEventName.GET_RESPONSE_BODY_RESPONSE.value: ResponseBodyEvent,
    PageEventName.FRAME_ATTACHED.value: FrameAttachedEvent,
    PageEventName.LOAD_EVENT_FIRED.value: LoadEventFiredEvent,
    PageEventName.DOM_CONTENT_EVENT_FIRED.value: DomContentEventFiredEvent,
    PageEventName.FRAME_STARTED_LOADING.value: FrameStartedLoadingEvent,
    PageEventName.FRAME_REQUESTED_NAVIGATION.value: FrameRequestedNavigationEvent,
    PageEventName.NAVIGATED_WITHIN_DOCUMENT.value: NavigatedWithinDocumentEvent,
}


def parse_event(event_name: str, payload: Any) -> CdpModel | None:
    """Validate a raw payload into the model for its event name.

    Returns:
        The parsed event, or None if the name is not recognized or the
        payload is not a valid instance of that event.
    """
    model = EVENT_MODELS.get(event_name)
    if model is None or not isinstance(payload, dict):
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.debug("Ignoring malformed event", event_name=event_name, errors=e.error_count())
        return None


def extract_response_body(payload: Any) -> ResponseBodyEvent | None:
    """Find a response body attached to any event payload.

    Bodies may ride on any event as ``{"requestId": ..., "response": {"body": ...}}``.
    """
    if not isinstance(payload, dict):
        return None
    request_id = payload.get("requestId")
    response = payload.get("response")
    if not isinstance(request_id, str) or not isinstance(response, dict):
        return None
    body = response.get("body")
    if not isinstance(body, str):
        return None
    return ResponseBodyEvent(
        request_id=request_id,
        body=body,
        base64_encoded=bool(response.get("base64Encoded", False)),
    )
