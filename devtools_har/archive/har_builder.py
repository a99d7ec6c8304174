"""
HAR archive builder.

Feed debugger events to ``HarBuilder.handle_event`` (in any order within a
transaction), then call ``get_har_archive``:

    builder = HarBuilder({"includeTextFromResponseBody": True})
    for name, payload in events:
        builder.handle_event(name, payload)
    archive = builder.get_har_archive()
    archive.to_json()

Network.* events go to the entries builder and Page.* events to the pages
builder. Once the archive has been generated the builder no longer
accepts events.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from devtools_har.archive.entries_builder import HarEntriesBuilder
from devtools_har.archive.har_types import Creator, HttpArchive, Log
from devtools_har.archive.options import HarOptions, policy_for
from devtools_har.archive.pages_builder import HarPagesBuilder
from devtools_har.utils.config import get_settings
from devtools_har.utils.logging import get_logger

logger = get_logger(__name__)

OptionsInput = HarOptions | Mapping[str, Any] | None


class HarBuilder:
    """Builds one HTTP Archive from a stream of debugger events."""

    def __init__(self, options: OptionsInput = None):
        """Initialize the builder.

        Args:
            options: HarOptions, a mapping of option names (snake_case or
                camelCase), or None to use the ``har`` settings section.
        """
        self.options = HarOptions.coerce(options)
        self.policy = policy_for(self.options)
        self.entries_builder = HarEntriesBuilder(self.options, self.policy)
        self.pages_builder = HarPagesBuilder(self.entries_builder, self.options, self.policy)
        self._archive: HttpArchive | None = None

    def handle_event(self, event_name: str, payload: Any) -> None:
        """Record one debugger event.

        Events with a non-string name, a non-object payload, or a name
        outside the Network and Page domains are ignored.

        Raises:
            ArchiveSealedError: If called after get_har_archive.
        """
        if not isinstance(event_name, str) or not isinstance(payload, dict):
            return
        if event_name.startswith("Network."):
            self.entries_builder.handle_network_event(event_name, payload)
        elif event_name.startswith("Page."):
            self.pages_builder.handle_page_event(event_name, payload)

    def handle_events(self, events: Iterable[tuple[str, Any]]) -> None:
        for event_name, payload in events:
            self.handle_event(event_name, payload)

    def get_har_archive(self) -> HttpArchive:
        """Derive the archive from every event seen so far (computed once)."""
        if self._archive is not None:
            return self._archive

        self.entries_builder.seal()
        self.pages_builder.assign_entries_to_pages()
        self.pages_builder.assign_page_ids()
        pages = self.pages_builder.pages
        entries = self.entries_builder.finalize()

        settings = get_settings()
        comment = self.entries_builder.time_lord.skew_report()
        self._archive = HttpArchive(
            log=Log(
                creator=Creator(name=settings.har.creator_name, version=settings.general.version),
                pages=pages,
                entries=entries,
                comment=comment,
            )
        )
        logger.info(
            "HAR archive generated",
            entries=len(entries),
            pages=len(pages),
            transactions=len(self.entries_builder.all_entry_builders),
            mimic_chrome_har=self.options.mimic_chrome_har,
        )
        return self._archive

    # =========================================================================
    # Constructors from recorded event collections
    # =========================================================================

    @classmethod
    def from_event_tuples(cls, events: Iterable[tuple[str, Any]], options: OptionsInput = None) -> HttpArchive:
        """Archive from ``(eventName, payload)`` pairs."""
        builder = cls(options)
        builder.handle_events(events)
        return builder.get_har_archive()

    @classmethod
    def from_named_events(cls, events: Iterable[Mapping[str, Any]], options: OptionsInput = None) -> HttpArchive:
        """Archive from ``{"eventName": ..., "event": ...}`` objects."""
        return cls.from_event_tuples(((e.get("eventName"), e.get("event")) for e in events), options)

    @classmethod
    def from_chrome_har_messages(
        cls, messages: Iterable[Mapping[str, Any]], options: OptionsInput = None
    ) -> HttpArchive:
        """Archive from chrome-har style ``{"method": ..., "params": ...}`` messages."""
        return cls.from_event_tuples(((m.get("method"), m.get("params")) for m in messages), options)


def har_from_event_tuples(events: Iterable[tuple[str, Any]], options: OptionsInput = None) -> HttpArchive:
    return HarBuilder.from_event_tuples(events, options)


def har_from_named_events(events: Iterable[Mapping[str, Any]], options: OptionsInput = None) -> HttpArchive:
    return HarBuilder.from_named_events(events, options)


def har_from_chrome_har_messages(messages: Iterable[Mapping[str, Any]], options: OptionsInput = None) -> HttpArchive:
    return HarBuilder.from_chrome_har_messages(messages, options)
