"""
Monotonic-to-wall-clock time reconciliation.

Debugger events carry a monotonic ``timestamp`` and, for some events, a
``wallTime``. Wall time may jump while resources load, so every derived
wall time is anchored to the offset observed at the earliest timestamp:

    wall(t) = (wallTime0 - timestamp0) + t

which keeps derived times in the same order as the timestamps.
"""

from devtools_har.archive.errors import ContractViolationError


class TimeLord:
    """Maps monotonic timestamps (seconds) to wall times (seconds since epoch)."""

    def __init__(self) -> None:
        self._earliest_timestamp: float | None = None
        self._anchor_offset: float | None = None
        self._smallest_offset: float | None = None
        self._largest_offset: float | None = None
        self.sample_count = 0

    def record(self, timestamp: float, wall_time: float) -> None:
        """Observe one (timestamp, wall time) pair."""
        offset = wall_time - timestamp
        self.sample_count += 1
        if self._earliest_timestamp is None or timestamp < self._earliest_timestamp:
            self._earliest_timestamp = timestamp
            self._anchor_offset = offset
        if self._largest_offset is None or offset > self._largest_offset:
            self._largest_offset = offset
        if self._smallest_offset is None or offset < self._smallest_offset:
            self._smallest_offset = offset

    def estimate_wall_time(self, timestamp: float) -> float:
        """Convert a monotonic timestamp to an estimated wall time.

        Raises:
            ContractViolationError: If no pair has been recorded.
        """
        if self._anchor_offset is None:
            raise ContractViolationError(
                "Cannot estimate wall time before any timestamp/wall time pair was recorded",
                operation="estimate_wall_time",
            )
        return self._anchor_offset + timestamp

    @property
    def skew_ms(self) -> float:
        if self._largest_offset is None or self._smallest_offset is None:
            return 0.0
        return round((self._largest_offset - self._smallest_offset) * 1000, 3)

    def skew_report(self) -> str:
        """Summarize how far anchoring may have moved reported times."""
        if self.sample_count == 0:
            return "No events were observed."
        return (
            "Ensuring monotonically increasing time may have skewed reported times "
            f"by as many as {self.skew_ms}ms."
        )
