"""
Archive options and the two derivation policies they select.

Most derivations are shared. The few that differ between standard output
and output matching the chrome-har tool (``mimic_chrome_har``) live on a
policy object chosen once per builder by ``policy_for``.
"""

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from devtools_har.archive.cookies import associated_cookies_to_har
from devtools_har.archive.events import (
    AssociatedCookie,
    LoadingFinishedEvent,
    RequestWillBeSentExtraInfoEvent,
    Response,
)
from devtools_har.archive.har_types import Cookie
from devtools_har.archive.headers import HeaderIndex, calculate_request_header_size, get_header_value
from devtools_har.archive.util import is_http1x
from devtools_har.utils.config import get_settings

_HTTP_SCHEME = re.compile(r"^https?:", re.IGNORECASE)
_WS_SCHEME = re.compile(r"^wss?:", re.IGNORECASE)

_NO_CONTENT_STATUSES = frozenset({204, 304})


class HarOptions(BaseModel):
    """Options controlling archive synthesis.

    Accepts either snake_case names or the camelCase option names
    (``includeResourcesFromDiskCache`` etc.).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    include_resources_from_disk_cache: bool = False
    include_text_from_response_body: bool = False
    mimic_chrome_har: bool = False

    @classmethod
    def from_settings(cls) -> "HarOptions":
        har = get_settings().har
        return cls(
            include_resources_from_disk_cache=har.include_resources_from_disk_cache,
            include_text_from_response_body=har.include_text_from_response_body,
            mimic_chrome_har=har.mimic_chrome_har,
        )

    @classmethod
    def coerce(cls, options: "HarOptions | Mapping[str, Any] | None") -> "HarOptions":
        """Build options from an instance, a mapping, or None (settings defaults)."""
        if options is None:
            return cls.from_settings()
        if isinstance(options, HarOptions):
            return options
        return cls.model_validate(dict(options))


class StandardArchivePolicy:
    """Derivations for standard output."""

    mimic_chrome_har = False
    include_web_socket_messages = True
    parse_post_data_params = True

    def supports_scheme(self, url: str) -> bool:
        return bool(_HTTP_SCHEME.match(url) or _WS_SCHEME.match(url))

    def format_url(self, url: str) -> str:
        return url

    def request_headers(
        self,
        extra_info: RequestWillBeSentExtraInfoEvent | None,
        response: Response,
        request_headers: Mapping[str, Any],
    ) -> HeaderIndex:
        """Merge request headers, later sources taking precedence."""
        return HeaderIndex(
            extra_info.headers if extra_info is not None else None,
            response.request_headers,
            request_headers,
        )

    def set_cookie_header(self, response_headers: Mapping[str, Any] | None, response: Response) -> str | None:
        return get_header_value(response_headers, "Set-Cookie")

    def request_cookies(
        self,
        header_cookies: list[Cookie],
        associated: list[AssociatedCookie],
    ) -> list[Cookie]:
        """Header cookies not described by an associated cookie, then associated cookies.

        Associated cookies carry domain, path and expiry, so they replace
        header-parsed cookies of the same name.
        """
        associated_har = associated_cookies_to_har(associated)
        associated_names = {cookie.name for cookie in associated_har}
        return [c for c in header_cookies if c.name not in associated_names] + associated_har

    def request_headers_size(
        self,
        response: Response,
        method: str,
        url: str,
        http_version: str | None,
        headers: Mapping[str, Any],
    ) -> int:
        if response.request_headers_text is not None:
            return len(response.request_headers_text)
        if http_version is not None and self._can_calculate_request_headers_size(http_version):
            return calculate_request_header_size(method, url, http_version, headers)
        return -1

    def _can_calculate_request_headers_size(self, http_version: str) -> bool:
        return True

    def response_body_size(
        self,
        body: str | None,
        status: int,
        response_headers: HeaderIndex,
        finished: LoadingFinishedEvent | None,
        headers_size: int,
    ) -> int:
        """Decoded body size, 0 for statuses without content, or -1 if unknown."""
        if body is not None:
            return len(body)
        if 100 <= status < 200 or status in _NO_CONTENT_STATUSES:
            return 0
        content_length = response_headers.get("Content-Length")
        if content_length is not None:
            match = re.match(r"\s*([+-]?\d+)", content_length)
            if match:
                return int(match.group(1))
        return -1

    def compression(self, content_size: int, encoded_length: int | float | None) -> int | None:
        if encoded_length is None:
            return None
        compression = int(content_size - encoded_length)
        return compression if compression > 0 else None

    def content_encoding(self, response: Response, base64_encoded: bool | None) -> str | None:
        return "base64" if base64_encoded else None

    def transfer_size(self, finished: LoadingFinishedEvent | None, response: Response) -> int | float:
        if finished is not None and finished.encoded_data_length is not None:
            return finished.encoded_data_length
        return -1

    def request_id(self, request_id: str, was_redirected: bool) -> str:
        return request_id

    def page_sort_key(self, page: Any) -> float:
        return page.timestamp


class ChromeHarArchivePolicy(StandardArchivePolicy):
    """Derivations reproducing chrome-har output, quirks included."""

    mimic_chrome_har = True
    include_web_socket_messages = False
    parse_post_data_params = False

    _URL_ESCAPES = {"{": "%7B", "}": "%7D", "|": "%7C", "'": "%27"}

    def supports_scheme(self, url: str) -> bool:
        return bool(_HTTP_SCHEME.match(url))

    def format_url(self, url: str) -> str:
        for char, escaped in self._URL_ESCAPES.items():
            url = url.replace(char, escaped)
        return url

    def request_headers(
        self,
        extra_info: RequestWillBeSentExtraInfoEvent | None,
        response: Response,
        request_headers: Mapping[str, Any],
    ) -> HeaderIndex:
        if response.request_headers is not None:
            return HeaderIndex(response.request_headers)
        return HeaderIndex(extra_info.headers if extra_info is not None else None, request_headers)

    def set_cookie_header(self, response_headers: Mapping[str, Any] | None, response: Response) -> str | None:
        # Extra-info headers are not consulted
        return get_header_value(response.headers, "Set-Cookie")

    def request_cookies(
        self,
        header_cookies: list[Cookie],
        associated: list[AssociatedCookie],
    ) -> list[Cookie]:
        return header_cookies

    def _can_calculate_request_headers_size(self, http_version: str) -> bool:
        return is_http1x(http_version)

    def response_body_size(
        self,
        body: str | None,
        status: int,
        response_headers: HeaderIndex,
        finished: LoadingFinishedEvent | None,
        headers_size: int,
    ) -> int:
        """Encoded length at completion minus header size, -1 if unknown or negative.

        An unknown header size leaves the encoded length as is.
        """
        if finished is None or finished.encoded_data_length is None:
            return -1
        size = int(finished.encoded_data_length - max(headers_size, 0))
        return size if size >= 0 else -1

    def compression(self, content_size: int, encoded_length: int | float | None) -> int | None:
        return None

    def content_encoding(self, response: Response, base64_encoded: bool | None) -> str | None:
        return response.encoding

    def transfer_size(self, finished: LoadingFinishedEvent | None, response: Response) -> int | float:
        if finished is not None and finished.encoded_data_length is not None:
            return finished.encoded_data_length
        if response.encoded_data_length is not None:
            return response.encoded_data_length
        return -1

    def request_id(self, request_id: str, was_redirected: bool) -> str:
        return f"{request_id}r" if was_redirected else request_id

    def page_sort_key(self, page: Any) -> float:
        return page.order_created


def policy_for(options: HarOptions) -> StandardArchivePolicy:
    """Select the derivation policy for a set of options."""
    if options.mimic_chrome_har:
        return ChromeHarArchivePolicy()
    return StandardArchivePolicy()
