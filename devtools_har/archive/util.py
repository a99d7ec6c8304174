"""
Shared helpers for archive derivation.
Time rounding, timestamp formatting, URL normalization and request body decoding.
"""

import json
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from devtools_har.archive.har_types import PostData, QueryString
from devtools_har.utils.logging import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_THOUSANDTHS = Decimal("0.001")


def round_to_three_decimal_places(value: float) -> float:
    """Clamp at zero and round to three decimal places (half up).

    Rounding is applied to the exact binary value of ``value`` so that
    results match fixed-point formatting of the same double.
    """
    if value <= 0:
        return 0.0
    return float(Decimal(value).quantize(_THOUSANDTHS, rounding=ROUND_HALF_UP))


def time_difference_ms(start: float | None, end: float | None) -> float | None:
    """Rounded difference between two millisecond offsets.

    Returns None when either endpoint is missing or negative, or when
    ``end`` precedes ``start``.
    """
    if start is None or end is None or start < 0 or end < 0:
        return None
    difference = end - start
    if difference < 0:
        return None
    return round_to_three_decimal_places(difference)


def wall_time_to_iso(seconds_since_epoch: float) -> str:
    """Format seconds since the UNIX epoch as ISO 8601 with millisecond precision."""
    milliseconds = int(seconds_since_epoch * 1000)
    moment = _EPOCH + timedelta(milliseconds=milliseconds)
    return datetime_to_iso(moment)


def datetime_to_iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_http1x(version: str | None) -> bool:
    return version is not None and version.lower().startswith("http/1.")


_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
# Printable ASCII left unescaped in each URL component
_PATH_SAFE = "!$%&'()*+,-./:;=@[\\]^_|~"
_QUERY_SAFE = "!$%&()*+,-./:;=?@[\\]^_`{|}~"
_FRAGMENT_SAFE = "!#$%&'()*+,-./:;=?@[\\]^_{|}~"


def normalize_url(url: str) -> str:
    """Serialize a URL the way the browser reports it.

    For http(s), ws(s) and ftp URLs the host is lower-cased, the scheme's
    default port dropped, an empty path becomes "/", and spaces, quotes,
    angle brackets and non-ASCII characters are percent-encoded. Existing
    escapes are kept. Other URLs, and URLs with an invalid port, are
    returned unchanged.

    Example:
        >>> normalize_url("HTTPS://Example.COM:443?q=a b")
        'https://example.com/?q=a%20b'
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    if parts.scheme not in _DEFAULT_PORTS or not parts.netloc:
        return url

    userinfo, at, _ = parts.netloc.rpartition("@")
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{userinfo}{at}{host}"
    if port is not None and port != _DEFAULT_PORTS[parts.scheme]:
        netloc = f"{netloc}:{port}"

    return urlunsplit(
        (
            parts.scheme,
            netloc,
            quote(parts.path or "/", safe=_PATH_SAFE),
            quote(parts.query, safe=_QUERY_SAFE),
            quote(parts.fragment, safe=_FRAGMENT_SAFE),
        )
    )


def parse_url_encoded(data: str) -> list[QueryString]:
    return [QueryString(name=name, value=value) for name, value in parse_qsl(data, keep_blank_values=True)]


def _param_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def to_name_value_pairs(obj: dict[str, Any]) -> list[QueryString]:
    """Flatten a JSON object into name/value pairs.

    List values produce one pair per element.
    """
    pairs: list[QueryString] = []
    for name, value in obj.items():
        if isinstance(value, list):
            pairs.extend(QueryString(name=name, value=_param_value(item)) for item in value)
        else:
            pairs.append(QueryString(name=name, value=_param_value(value)))
    return pairs


def parse_post_data(
    content_type: str | None,
    post_data: str | None,
    parse_params: bool = True,
) -> PostData | None:
    """Build the HAR postData record for a request body.

    Args:
        content_type: Value of the request's Content-Type header.
        post_data: Request body text.
        parse_params: Whether form and JSON bodies are decoded into params.

    Returns:
        PostData, or None when either the content type or the body is empty.
        Bodies that cannot be decoded are kept as text.
    """
    if not content_type or not post_data:
        return None

    if parse_params:
        if content_type.startswith("application/x-www-form-urlencoded"):
            return PostData(mime_type=content_type, params=parse_url_encoded(post_data))
        if content_type.startswith("application/json"):
            try:
                decoded = json.loads(post_data)
            except ValueError:
                logger.debug("Request body is not valid JSON", content_type=content_type)
            else:
                if isinstance(decoded, dict):
                    return PostData(mime_type=content_type, params=to_name_value_pairs(decoded))

    return PostData(mime_type=content_type, text=post_data)
