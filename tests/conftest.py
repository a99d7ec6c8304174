"""
Pytest fixtures and configuration for devtools-har tests.

=============================================================================
Test Classification
=============================================================================

- @pytest.mark.unit: Single class/function, no external dependencies
  - DEFAULT: Tests without marker are auto-classified as unit

- @pytest.mark.integration: Multiple components working together
  (full event streams through HarBuilder, recorder with a mocked CDP session)

=============================================================================
Mock Strategy
=============================================================================

- Chrome / CDP sessions: Always mocked (AsyncMock / MagicMock)
- File I/O: Use tmp_path fixture
- Debugger payloads: Built with the `cdp` fixture (CdpEventFactory)
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

# Set test environment before importing anything else
os.environ["DEVTOOLS_HAR_CONFIG_DIR"] = str(Path(__file__).parent.parent / "config")
os.environ["DEVTOOLS_HAR_GENERAL__LOG_LEVEL"] = "DEBUG"


# =============================================================================
# Pytest Hooks for Test Classification
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line(
        "markers", "unit: Unit tests with no external dependencies (fast, <1s/test)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests across several components (<5s/test)"
    )


def pytest_collection_modifyitems(config, items):
    """Tests without explicit markers are assumed to be unit tests."""
    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reload settings for every test so env overrides never leak."""
    from devtools_har.utils.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Debugger Event Factory
# =============================================================================


class CdpEventFactory:
    """Builds raw Chrome DevTools Protocol payloads (camelCase dicts).

    Timestamps are monotonic seconds; wall times default to
    ``WALL_OFFSET + timestamp``.
    """

    WALL_OFFSET = 1_700_000_000.0

    def timing(self, request_time: float, **overrides: float) -> dict[str, Any]:
        timing = {
            "requestTime": request_time,
            "proxyStart": -1,
            "proxyEnd": -1,
            "dnsStart": 0.5,
            "dnsEnd": 1.5,
            "connectStart": 1.5,
            "connectEnd": 10.0,
            "sslStart": 4.0,
            "sslEnd": 10.0,
            "sendStart": 10.5,
            "sendEnd": 11.0,
            "pushStart": 0,
            "pushEnd": 0,
            "receiveHeadersStart": 40.0,
            "receiveHeadersEnd": 41.0,
        }
        timing.update(overrides)
        return timing

    def response(
        self,
        url: str = "https://example.com/",
        status: int = 200,
        status_text: str = "OK",
        headers: dict[str, str] | None = None,
        mime_type: str = "text/html",
        protocol: str = "http/1.1",
        timing: dict[str, Any] | None = None,
        **extra: Any,
    ) -> dict[str, Any]:
        response = {
            "url": url,
            "status": status,
            "statusText": status_text,
            "headers": headers if headers is not None else {"Content-Type": mime_type},
            "mimeType": mime_type,
            "connectionReused": False,
            "connectionId": 42,
            "remoteIPAddress": "93.184.216.34",
            "remotePort": 443,
            "fromDiskCache": False,
            "fromServiceWorker": False,
            "fromPrefetchCache": False,
            "encodedDataLength": 120,
            "protocol": protocol,
            "securityState": "secure",
        }
        if timing is not None:
            response["timing"] = timing
        response.update(extra)
        return response

    def request_will_be_sent(
        self,
        request_id: str = "1000.1",
        url: str = "https://example.com/",
        timestamp: float = 100.0,
        wall_time: float | None = None,
        frame_id: str | None = "FRAME-1",
        method: str = "GET",
        headers: dict[str, str] | None = None,
        redirect_response: dict[str, Any] | None = None,
        resource_type: str = "Document",
        initiator: dict[str, Any] | None = None,
        **request_extra: Any,
    ) -> dict[str, Any]:
        request = {
            "url": url,
            "method": method,
            "headers": headers if headers is not None else {"Accept": "*/*"},
            "initialPriority": "VeryHigh",
            "referrerPolicy": "strict-origin-when-cross-origin",
        }
        request.update(request_extra)
        event = {
            "requestId": request_id,
            "loaderId": "LOADER-1",
            "documentURL": url,
            "request": request,
            "timestamp": timestamp,
            "wallTime": self.WALL_OFFSET + timestamp if wall_time is None else wall_time,
            "initiator": initiator if initiator is not None else {"type": "other"},
            "redirectHasExtraInfo": False,
            "type": resource_type,
        }
        if frame_id is not None:
            event["frameId"] = frame_id
        if redirect_response is not None:
            event["redirectResponse"] = redirect_response
        return event

    def response_received(
        self,
        request_id: str = "1000.1",
        timestamp: float = 100.05,
        frame_id: str = "FRAME-1",
        resource_type: str = "Document",
        **response_kwargs: Any,
    ) -> dict[str, Any]:
        return {
            "requestId": request_id,
            "loaderId": "LOADER-1",
            "timestamp": timestamp,
            "type": resource_type,
            "response": self.response(**response_kwargs),
            "hasExtraInfo": True,
            "frameId": frame_id,
        }

    def loading_finished(
        self,
        request_id: str = "1000.1",
        timestamp: float = 100.1,
        encoded_data_length: int = 1120,
    ) -> dict[str, Any]:
        return {"requestId": request_id, "timestamp": timestamp, "encodedDataLength": encoded_data_length}

    def loading_failed(
        self,
        request_id: str = "1000.1",
        timestamp: float = 100.1,
        error_text: str = "net::ERR_FAILED",
        canceled: bool = False,
    ) -> dict[str, Any]:
        return {
            "requestId": request_id,
            "timestamp": timestamp,
            "type": "Document",
            "errorText": error_text,
            "canceled": canceled,
        }

    def data_received(
        self,
        request_id: str = "1000.1",
        timestamp: float = 100.07,
        data_length: int = 500,
        encoded_data_length: int = 0,
    ) -> dict[str, Any]:
        return {
            "requestId": request_id,
            "timestamp": timestamp,
            "dataLength": data_length,
            "encodedDataLength": encoded_data_length,
        }

    def request_extra_info(
        self,
        request_id: str = "1000.1",
        headers: dict[str, str] | None = None,
        associated_cookies: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return {
            "requestId": request_id,
            "associatedCookies": associated_cookies or [],
            "headers": headers or {},
            "connectTiming": {"requestTime": 100.0},
        }

    def response_extra_info(
        self,
        request_id: str = "1000.1",
        headers: dict[str, str] | None = None,
        status_code: int = 200,
        headers_text: str | None = None,
        blocked_cookies: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        event = {
            "requestId": request_id,
            "blockedCookies": blocked_cookies or [],
            "headers": headers or {},
            "resourceIPAddressSpace": "Public",
            "statusCode": status_code,
        }
        if headers_text is not None:
            event["headersText"] = headers_text
        return event

    def network_cookie(self, name: str, value: str = "v", **overrides: Any) -> dict[str, Any]:
        cookie = {
            "name": name,
            "value": value,
            "domain": "example.com",
            "path": "/",
            "expires": 1767225600,
            "size": len(name) + len(value),
            "httpOnly": False,
            "secure": True,
            "session": False,
            "sameSite": "Lax",
            "priority": "Medium",
        }
        cookie.update(overrides)
        return cookie

    def frame_attached(self, frame_id: str, parent_frame_id: str | None = None) -> dict[str, Any]:
        event: dict[str, Any] = {"frameId": frame_id}
        if parent_frame_id is not None:
            event["parentFrameId"] = parent_frame_id
        return event

    def transaction(
        self,
        request_id: str = "1000.1",
        url: str = "https://example.com/",
        timestamp: float = 100.0,
        frame_id: str | None = "FRAME-1",
        status: int = 200,
        wall_time: float | None = None,
        response_kwargs: dict[str, Any] | None = None,
        request_kwargs: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """Events for one complete request: sent, received, finished."""
        response_kwargs = dict(response_kwargs or {})
        response_kwargs.setdefault("timing", self.timing(timestamp + 0.001))
        return [
            (
                "Network.requestWillBeSent",
                self.request_will_be_sent(
                    request_id=request_id,
                    url=url,
                    timestamp=timestamp,
                    wall_time=wall_time,
                    frame_id=frame_id,
                    **(request_kwargs or {}),
                ),
            ),
            (
                "Network.responseReceived",
                self.response_received(
                    request_id=request_id,
                    timestamp=timestamp + 0.05,
                    frame_id=frame_id or "",
                    url=url,
                    status=status,
                    **response_kwargs,
                ),
            ),
            ("Network.loadingFinished", self.loading_finished(request_id=request_id, timestamp=timestamp + 0.1)),
        ]


@pytest.fixture
def cdp() -> CdpEventFactory:
    """Factory for debugger event payloads."""
    return CdpEventFactory()
