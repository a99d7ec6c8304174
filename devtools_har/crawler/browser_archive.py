"""
Browser recording for devtools-har.

Attaches to a Playwright page through a Chrome DevTools Protocol session,
records the Network and Page events needed for a HAR, and fetches response
bodies as they finish loading:

    archiver = get_browser_archiver()
    archive = await archiver.record(page, lambda: page.goto(url))
    har_path = archiver.save_har(archive, url)

Response bodies are not part of the event stream, so after each
``Network.loadingFinished`` the recorder asks for the body and records the
answer as a ``Network.getResponseBodyResponse`` event.
"""

import asyncio
import hashlib
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from devtools_har.archive.events import EVENT_NAMES_TO_RECORD, NetworkEventName
from devtools_har.archive.har_builder import HarBuilder
from devtools_har.archive.har_types import HttpArchive
from devtools_har.archive.options import HarOptions
from devtools_har.utils.config import get_settings
from devtools_har.utils.logging import LogContext, get_logger

if TYPE_CHECKING:
    from playwright.async_api import CDPSession, Page

logger = get_logger(__name__)

RecordedEvent = tuple[str, dict[str, Any]]


# =============================================================================
# Event Collector
# =============================================================================


class DebuggerEventCollector:
    """Collects debugger events from one CDP session in arrival order."""

    def __init__(
        self,
        cdp_session: "CDPSession",
        fetch_response_bodies: bool | None = None,
        response_body_timeout: float | None = None,
    ):
        settings = get_settings().recorder
        self._session = cdp_session
        self._fetch_response_bodies = (
            settings.fetch_response_bodies if fetch_response_bodies is None else fetch_response_bodies
        )
        self._response_body_timeout = (
            settings.response_body_timeout if response_body_timeout is None else response_body_timeout
        )
        self.events: list[RecordedEvent] = []
        self._pending: set[asyncio.Task] = set()
        self._recording = False
        self._closed = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def start(self) -> None:
        """Subscribe to every recorded event and enable the Page and Network domains."""
        for event_name in EVENT_NAMES_TO_RECORD:
            self._session.on(event_name, self._make_handler(event_name))
        self._recording = True
        await self._session.send("Page.enable")
        await self._session.send("Network.enable")
        logger.debug("Debugger event collection started", subscriptions=len(EVENT_NAMES_TO_RECORD))

    def _make_handler(self, event_name: str) -> Callable[[dict[str, Any]], None]:
        def handler(params: dict[str, Any]) -> None:
            self.on_event(event_name, params)

        return handler

    def on_event(self, event_name: str, params: dict[str, Any]) -> None:
        """Record one event; schedule a body fetch when a response finishes loading."""
        if not self._recording:
            return
        self.events.append((event_name, params))

        if event_name == NetworkEventName.LOADING_FINISHED.value and self._fetch_response_bodies:
            request_id = params.get("requestId")
            if isinstance(request_id, str):
                task = asyncio.get_running_loop().create_task(self._fetch_response_body(request_id))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _fetch_response_body(self, request_id: str) -> None:
        try:
            result = await asyncio.wait_for(
                self._session.send("Network.getResponseBody", {"requestId": request_id}),
                timeout=self._response_body_timeout,
            )
        except TimeoutError:
            logger.debug("Response body fetch timed out", request_id=request_id)
            return
        except Exception as e:
            # Bodies are unavailable for redirects, evicted resources, etc.
            logger.debug("Response body unavailable", request_id=request_id, error=str(e))
            return

        if self._closed or not isinstance(result, Mapping) or not isinstance(result.get("body"), str):
            return
        self.events.append(
            (
                NetworkEventName.GET_RESPONSE_BODY_RESPONSE.value,
                {
                    "requestId": request_id,
                    "body": result["body"],
                    "base64Encoded": bool(result.get("base64Encoded", False)),
                },
            )
        )

    async def stop(self) -> None:
        """Stop recording, wait for outstanding body fetches, then detach."""
        self._recording = False
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._closed = True
        try:
            await self._session.detach()
        except Exception as e:
            logger.debug("CDP session detach failed", error=str(e))
        logger.debug("Debugger event collection stopped", events=len(self.events))

    def build_har(self, options: HarOptions | Mapping[str, Any] | None = None) -> HttpArchive:
        """Build an archive from the events collected so far."""
        return HarBuilder.from_event_tuples(list(self.events), options)


# =============================================================================
# Browser Archiver
# =============================================================================


class BrowserArchiver:
    """Records Playwright pages to HAR files."""

    def __init__(self, output_dir: Path | None = None, options: HarOptions | None = None):
        """Initialize browser archiver.

        Args:
            output_dir: Directory for .har files.
                       Uses settings.storage.archive_dir if not provided.
            options: Archive options. Uses the har settings section if not provided.
        """
        settings = get_settings()
        self._output_dir = output_dir or Path(settings.storage.archive_dir)
        self._options = options

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def attach_to_page(self, page: "Page") -> DebuggerEventCollector:
        """Open a CDP session for a page and start collecting events."""
        cdp_session = await page.context.new_cdp_session(page)
        collector = DebuggerEventCollector(cdp_session)
        await collector.start()
        return collector

    async def record(self, page: "Page", action: Callable[[], Awaitable[Any]]) -> HttpArchive:
        """Record everything the page loads while ``action`` runs.

        Args:
            page: Playwright page object.
            action: Async callable that drives the page (e.g. a navigation).

        Returns:
            The archive built from the recorded events.
        """
        with LogContext(capture_url=page.url):
            collector = await self.attach_to_page(page)
            try:
                await action()
            finally:
                await collector.stop()

            archive = collector.build_har(self._options)
            logger.info(
                "Page recorded",
                events=len(collector.events),
                entries=len(archive.log.entries),
                pages=len(archive.log.pages),
            )
            return archive

    def save_har(self, archive: HttpArchive, name: str) -> Path:
        """Write an archive as ``<timestamp>_<hash>.har`` in the output directory.

        Args:
            archive: Archive to write.
            name: Name the file is derived from (typically the page URL).

        Returns:
            Path of the written file.
        """
        self._output_dir.mkdir(parents=True, exist_ok=True)
        name_hash = hashlib.sha256(name.encode()).hexdigest()[:16]
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        har_file = self._output_dir / f"{timestamp}_{name_hash}.har"
        har_file.write_text(archive.to_json(), encoding="utf-8")

        logger.info("HAR saved", name=name[:80], path=str(har_file), entries=len(archive.log.entries))
        return har_file


# =============================================================================
# Global instance management
# =============================================================================

_archiver: BrowserArchiver | None = None


def get_browser_archiver() -> BrowserArchiver:
    """Get or create browser archiver instance."""
    global _archiver
    if _archiver is None:
        _archiver = BrowserArchiver()
    return _archiver
