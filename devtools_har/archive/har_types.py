"""
HTTP Archive (HAR 1.2) output records.

Attributes use snake_case; the HAR field names are aliases. Records are
serialized with ``by_alias=True`` and absent (None) fields are omitted,
which is how optional HAR fields and the ``_``-prefixed custom fields
appear only when they carry a value.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

HAR_VERSION = "1.2"


class HarModel(BaseModel):
    """Base for HAR records."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Header(HarModel):
    name: str
    value: str


class QueryString(HarModel):
    name: str
    value: str


class Cookie(HarModel):
    name: str
    value: str
    path: str | None = None
    domain: str | None = None
    expires: str | None = None
    http_only: bool | None = Field(default=None, alias="httpOnly")
    secure: bool | None = None
    same_site: str | None = Field(default=None, alias="sameSite")


class PostData(HarModel):
    mime_type: str = Field(alias="mimeType")
    params: list[QueryString] | None = None
    text: str | None = None


class Request(HarModel):
    method: str
    url: str
    http_version: str = Field(alias="httpVersion")
    cookies: list[Cookie] = Field(default_factory=list)
    headers: list[Header] = Field(default_factory=list)
    query_string: list[QueryString] = Field(default_factory=list, alias="queryString")
    post_data: PostData | None = Field(default=None, alias="postData")
    headers_size: int = Field(alias="headersSize")
    body_size: int = Field(alias="bodySize")
    is_link_preload: Literal[True] | None = Field(default=None, alias="_isLinkPreload")


class Content(HarModel):
    size: int
    compression: int | None = None
    mime_type: str = Field(alias="mimeType")
    text: str | None = None
    encoding: str | None = None


class Response(HarModel):
    status: int
    status_text: str = Field(alias="statusText")
    http_version: str = Field(alias="httpVersion")
    cookies: list[Cookie] = Field(default_factory=list)
    headers: list[Header] = Field(default_factory=list)
    content: Content
    redirect_url: str = Field(alias="redirectURL")
    headers_size: int = Field(alias="headersSize")
    body_size: int = Field(alias="bodySize")
    transfer_size: int | float | None = Field(default=None, alias="_transferSize")
    from_disk_cache: bool = Field(default=False, alias="fromDiskCache")
    from_early_hints: bool = Field(default=False, alias="fromEarlyHints")
    from_service_worker: bool = Field(default=False, alias="fromServiceWorker")
    from_prefetch_cache: bool = Field(default=False, alias="fromPrefetchCache")


class CacheState(HarModel):
    expires: str | None = None
    last_access: str = Field(alias="lastAccess")
    e_tag: str = Field(alias="eTag")
    hit_count: int = Field(alias="hitCount")


class Cache(HarModel):
    before_request: CacheState | None = Field(default=None, alias="beforeRequest")
    after_request: CacheState | None = Field(default=None, alias="afterRequest")


class Timings(HarModel):
    blocked: float = -1
    dns: float = -1
    connect: float = -1
    send: float
    wait: float
    receive: float
    ssl: float = -1
    queued: float | None = Field(default=None, alias="_queued")


class Chunk(HarModel):
    ts: float
    byte_count: int = Field(alias="bytes")


class WebSocketMessage(HarModel):
    direction: Literal["send", "receive"] = Field(alias="type")
    time: float
    opcode: Literal[1, 2]
    data: str


class Entry(HarModel):
    pageref: str | None = None
    started_date_time: str = Field(alias="startedDateTime")
    time: float
    request: Request
    response: Response
    cache: Cache = Field(default_factory=Cache)
    timings: Timings
    server_ip_address: str | None = Field(default=None, alias="serverIPAddress")
    connection: str | None = None

    initiator: str | None = Field(default=None, alias="_initiator")
    initiator_line: int | None = Field(default=None, alias="_initiator_line")
    initiator_column: int | None = Field(default=None, alias="_initiator_column")
    initiator_function_name: str | None = Field(default=None, alias="_initiator_function_name")
    initiator_script_id: str | None = Field(default=None, alias="_initiator_script_id")
    initiator_detail: str | None = Field(default=None, alias="_initiator_detail")
    initiator_type: str | None = Field(default=None, alias="_initiator_type")
    chunks: list[Chunk] | None = Field(default=None, alias="_chunks")
    was_pushed: Literal[1] | None = Field(default=None, alias="_was_pushed")
    web_socket_messages: list[WebSocketMessage] | None = Field(default=None, alias="_webSocketMessages")
    request_id: str = Field(alias="_requestId")
    initial_priority: str | None = Field(default=None, alias="_initialPriority")
    priority: str | None = Field(default=None, alias="_priority")
    resource_type: str | None = Field(default=None, alias="_resourceType")
    request_time: float = Field(alias="_requestTime")


class PageTimings(HarModel):
    on_content_load: float = Field(default=-1, alias="onContentLoad")
    on_load: float = Field(default=-1, alias="onLoad")


class Page(HarModel):
    started_date_time: str = Field(alias="startedDateTime")
    id: str
    title: str
    page_timings: PageTimings = Field(alias="pageTimings")


class Creator(HarModel):
    name: str
    version: str


class Log(HarModel):
    version: str = HAR_VERSION
    creator: Creator
    pages: list[Page] = Field(default_factory=list)
    entries: list[Entry] = Field(default_factory=list)
    comment: str | None = None


class HttpArchive(HarModel):
    """A complete archive document: ``{"log": {...}}``."""

    log: Log

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to HAR JSON text."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
