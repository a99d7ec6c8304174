"""
Case-insensitive header handling.

The debugger reports headers as ``{name: value}`` objects. Some sources use
mixed-case names and some lower-case, so merging and lookup ignore case.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from devtools_har.archive.har_types import Header

HeaderSource = Mapping[str, Any] | None


class HeaderIndex:
    """Merged view over one or more header mappings.

    Sources are applied in order; a later source replaces the value of an
    earlier header with the same name regardless of case.

    Example:
        >>> index = HeaderIndex({"Accept": "*/*"}, {"accept": "text/html"})
        >>> index.get("ACCEPT")
        'text/html'
    """

    def __init__(self, *sources: HeaderSource):
        self._by_lower_name: dict[str, tuple[str, str]] = {}
        for source in sources:
            self.update(source)

    def update(self, source: HeaderSource) -> None:
        for name, value in (source or {}).items():
            self._by_lower_name[name.lower()] = (name, "" if value is None else str(value))

    def get(self, name: str) -> str | None:
        item = self._by_lower_name.get(name.lower())
        return item[1] if item is not None else None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._by_lower_name

    def __len__(self) -> int:
        return len(self._by_lower_name)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._by_lower_name.values())

    def items(self) -> list[tuple[str, str]]:
        """(name, value) pairs with each name in the case it was last given."""
        return list(self._by_lower_name.values())

    def to_har(self) -> list[Header]:
        """Lower-cased HAR headers sorted by name."""
        return [
            Header(name=lower_name, value=value)
            for lower_name, (_, value) in sorted(self._by_lower_name.items())
        ]


def get_header_value(headers: HeaderSource, name: str) -> str | None:
    """Case-insensitive lookup in a single header mapping."""
    return HeaderIndex(headers).get(name)


def _header_lines(headers: HeaderSource) -> str:
    return "".join(f"{name}: {value}\r\n" for name, value in (headers or {}).items())


def calculate_request_header_size(
    method: str,
    url: str,
    http_version: str,
    headers: HeaderSource,
) -> int:
    """Approximate size of a request header block.

    The block is rebuilt as ``METHOD URL VERSION`` followed by one
    ``name: value`` line per header and a blank line. Real messages may use
    different optional whitespace, so this is an estimate.
    """
    return len(f"{method} {url} {http_version}\r\n{_header_lines(headers)}\r\n")


def calculate_response_header_size(
    protocol: str | None,
    status: int,
    status_text: str,
    headers: HeaderSource,
) -> int:
    """Approximate size of a response header block (see calculate_request_header_size)."""
    return len(f"{protocol} {status} {status_text}\r\n{_header_lines(headers)}\r\n")
