"""
Cookie parsing and conversion to HAR cookie records.

Parsing follows the strict RFC 6265 cookie-pair rules: a cookie needs a
non-empty name followed by ``=``, and names or values containing control
characters are rejected.
"""

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from devtools_har.archive.events import AssociatedCookie, BlockedSetCookieWithReason, NetworkCookie
from devtools_har.archive.har_types import Cookie
from devtools_har.archive.util import datetime_to_iso

_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")
_TERMINATORS = re.compile(r"[\n\r\0]")
_DASHED_DATE = re.compile(r"(\d{1,2})-([A-Za-z]{3})-(\d{2,4})")


def _parse_expires(value: str) -> str | None:
    try:
        moment = parsedate_to_datetime(_DASHED_DATE.sub(r"\1 \2 \3", value.strip()))
    except (TypeError, ValueError, IndexError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return datetime_to_iso(moment)


def parse_cookie(cookie_string: str) -> Cookie | None:
    """Parse one cookie string (``name=value; Attr=...``).

    Returns:
        The cookie, or None when the string has no valid name/value pair.
    """
    text = _TERMINATORS.split(cookie_string.strip(), maxsplit=1)[0]
    pair, _, attributes = text.partition(";")

    eq = pair.find("=")
    if eq <= 0:
        return None
    name = pair[:eq].strip()
    value = pair[eq + 1 :].strip()
    if not name or _CONTROL_CHARS.search(name) or _CONTROL_CHARS.search(value):
        return None

    fields: dict[str, object] = {"name": name, "value": value, "http_only": False, "secure": False}
    for attribute in attributes.split(";"):
        key, _, attr_value = attribute.strip().partition("=")
        key = key.strip().lower()
        attr_value = attr_value.strip()
        if key == "expires":
            expires = _parse_expires(attr_value)
            if expires is not None:
                fields["expires"] = expires
        elif key == "domain":
            domain = attr_value.lstrip(".").lower()
            if domain:
                fields["domain"] = domain
        elif key == "path":
            if attr_value.startswith("/"):
                fields["path"] = attr_value
        elif key == "secure":
            fields["secure"] = True
        elif key == "httponly":
            fields["http_only"] = True
        elif key == "samesite" and attr_value.lower() in ("strict", "lax", "none"):
            fields["same_site"] = attr_value.capitalize()

    return Cookie(**fields)


def _parse_cookies_separated_by(header: str, delimiter: str) -> list[Cookie]:
    cookies = (parse_cookie(part) for part in header.split(delimiter))
    return [cookie for cookie in cookies if cookie is not None]


def parse_request_cookies(header: str) -> list[Cookie]:
    """Parse a ``Cookie`` request header (``;``-separated)."""
    return _parse_cookies_separated_by(header, ";")


def parse_response_cookies(header: str) -> list[Cookie]:
    """Parse a ``Set-Cookie`` response header (newline-separated)."""
    return _parse_cookies_separated_by(header, "\n")


def network_cookie_to_har(cookie: NetworkCookie) -> Cookie:
    """Convert a debugger cookie-store record to a HAR cookie.

    Session cookies and cookies whose expiry is ``Infinity`` or negative
    have no ``expires``.
    """
    expires: str | None = None
    raw = cookie.expires
    if not cookie.session and raw is not None and raw != "Infinity":
        try:
            seconds = float(raw)
            if seconds >= 0:
                expires = datetime_to_iso(datetime.fromtimestamp(seconds, UTC))
        except (ValueError, OverflowError, OSError):
            expires = None
    return Cookie(
        name=cookie.name,
        value=cookie.value,
        path=cookie.path,
        domain=cookie.domain,
        expires=expires,
        http_only=cookie.http_only,
        secure=cookie.secure,
        same_site=cookie.same_site,
    )


def blocked_cookie_names(blocked_cookies: Iterable[BlockedSetCookieWithReason]) -> set[str]:
    """Names of cookies that were blocked for at least one reason."""
    names: set[str] = set()
    for blocked in blocked_cookies:
        if not blocked.blocked_reasons:
            continue
        if blocked.cookie is not None:
            names.add(blocked.cookie.name)
        elif blocked.cookie_line is not None:
            parsed = parse_cookie(blocked.cookie_line)
            names.add(parsed.name if parsed is not None else "")
        else:
            names.add("")
    return names


def associated_cookies_to_har(associated: Iterable[AssociatedCookie]) -> list[Cookie]:
    """HAR records for cookies the browser attached to a request and did not block."""
    return [network_cookie_to_har(item.cookie) for item in associated if not item.blocked_reasons]
