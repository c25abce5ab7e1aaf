"""
Sliding-window deduplication for alert signatures.

This module provides the DeduplicationWindow class which decides whether an
alert signature/severity pair may fire again and tracks recent firings.

Key Features:
    - Lazy expiry of firings older than the window on every read
    - Bounded firing history per signature
    - Rollback of a recorded firing when delivery fails
    - Single asyncio lock shared by admission and background cleanup
    - Fail-open on unreadable state so real alerts are never suppressed

Example:
    >>> window = DeduplicationWindow(window_seconds=300)
    >>> await window.start()
    >>> await window.try_admit("ph:error:pH Too High - 9.20:9.20", AlertSeverity.CRITICAL)
    True
    >>> await window.try_admit("ph:error:pH Too High - 9.20:9.20", AlertSeverity.CRITICAL)
    False
    >>> await window.stop()
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, NamedTuple, Optional, Union

import structlog

from pureflow.models.alerts import AlertSeverity

logger = structlog.get_logger(__name__)


# Default configuration values
DEFAULT_WINDOW_SECONDS = 300
DEFAULT_MAX_ENTRIES = 10
DEFAULT_CLEANUP_INTERVAL_SECONDS = 60

SeverityLike = Union[AlertSeverity, str]


class Firing(NamedTuple):
    """One recorded firing of a signature."""

    timestamp: datetime
    severity: str


def _severity_key(severity: SeverityLike) -> str:
    return severity.value if isinstance(severity, AlertSeverity) else str(severity)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeduplicationWindow:
    """
    Tracks recent firings per signature within a sliding time window.

    ``can_fire`` followed by ``record`` must run as one decision. Callers
    either use ``try_admit`` or hold ``transaction()`` around both calls;
    the background cleanup takes the same lock, so it never runs between a
    check and its paired record.

    Attributes:
        window: Suppression window.
        max_entries: Firing history kept per signature.
        cleanup_interval_seconds: Interval of the background cleanup task.
        _entries: Firings keyed by signature, oldest first.

    Example:
        >>> window = DeduplicationWindow()
        >>> async with window.transaction():
        ...     if window.can_fire(signature, AlertSeverity.MEDIUM):
        ...         window.record(signature, AlertSeverity.MEDIUM)
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the deduplication window.

        Args:
            window_seconds: Seconds a firing suppresses repeats.
            max_entries: Maximum firings kept per signature.
            cleanup_interval_seconds: Interval of the background cleanup.
            clock: Time source, defaults to UTC now.
        """
        self.window = timedelta(seconds=window_seconds)
        self.max_entries = max_entries
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock or _utcnow
        self._entries: Dict[str, List[Firing]] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    # =========================================================================
    # ADMISSION
    # =========================================================================

    def _live_entries(self, signature: str, now: datetime) -> List[Firing]:
        """Drop expired firings for a signature and return the remainder."""
        entries = self._entries.get(signature)
        if not entries:
            return []
        cutoff = now - self.window
        live = [entry for entry in entries if entry.timestamp > cutoff]
        if live:
            self._entries[signature] = live
        else:
            del self._entries[signature]
        return live

    def can_fire(self, signature: str, severity: SeverityLike) -> bool:
        """
        Check whether a signature/severity pair may fire.

        Expired firings are removed first. Unreadable state for the
        signature is discarded and the pair is admitted.

        Args:
            signature: Alert signature.
            severity: Alert severity.

        Returns:
            bool: False if a live firing with the same severity exists.
        """
        wanted = _severity_key(severity)
        try:
            live = self._live_entries(signature, self._clock())
            return not any(entry.severity == wanted for entry in live)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(
                "dedup_state_unreadable",
                signature=signature,
                severity=wanted,
                error=str(e),
            )
            self._entries.pop(signature, None)
            return True

    def record(
        self,
        signature: str,
        severity: SeverityLike,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """
        Record a firing.

        History beyond ``max_entries`` is trimmed from the oldest end.
        """
        entries = self._entries.setdefault(signature, [])
        entries.append(Firing(timestamp or self._clock(), _severity_key(severity)))
        if len(entries) > self.max_entries:
            del entries[: len(entries) - self.max_entries]

    def remove(self, signature: str, severity: SeverityLike) -> bool:
        """
        Remove the most recent firing for a signature/severity pair.

        Returns:
            bool: True if a firing was removed.
        """
        wanted = _severity_key(severity)
        entries = self._entries.get(signature)
        if not entries:
            return False

        for index in range(len(entries) - 1, -1, -1):
            if entries[index].severity == wanted:
                del entries[index]
                if not entries:
                    del self._entries[signature]
                logger.debug("dedup_entry_removed", signature=signature, severity=wanted)
                return True
        return False

    async def try_admit(self, signature: str, severity: SeverityLike) -> bool:
        """
        Atomically check and record a firing.

        Returns:
            bool: True if the firing was admitted and recorded.
        """
        async with self._lock:
            if not self.can_fire(signature, severity):
                return False
            self.record(signature, severity)
            return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["DeduplicationWindow"]:
        """
        Hold the window lock for a sequence of checks and records.

        The lock is not reentrant: do not call ``try_admit`` or
        ``run_cleanup`` inside a transaction.
        """
        async with self._lock:
            yield self

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Delete signatures whose firings have all expired.

        Returns:
            int: Number of signatures deleted.
        """
        now = now or self._clock()
        removed = 0
        for signature in list(self._entries.keys()):
            try:
                live = self._live_entries(signature, now)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("dedup_state_unreadable", signature=signature, error=str(e))
                self._entries.pop(signature, None)
                live = []
            if not live:
                removed += 1
        if removed:
            logger.debug("dedup_cleanup_complete", removed=removed, remaining=len(self._entries))
        return removed

    async def run_cleanup(self) -> int:
        """Run cleanup under the window lock."""
        async with self._lock:
            return self.cleanup()

    async def _cleanup_loop(self) -> None:
        """Periodically delete expired signatures."""
        try:
            while True:
                await asyncio.sleep(self.cleanup_interval_seconds)
                await self.run_cleanup()
        except asyncio.CancelledError:
            logger.debug("dedup_cleanup_loop_cancelled")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        """Check if the background cleanup task is running."""
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def start(self) -> None:
        """Start the background cleanup task. Calling it twice is a no-op."""
        if self.is_running:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "dedup_window_started",
            window_seconds=self.window.total_seconds(),
            cleanup_interval_seconds=self.cleanup_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel the background cleanup task."""
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
        logger.info("dedup_window_stopped", tracked_signatures=len(self._entries))

    def clear(self) -> None:
        """Forget all recorded firings."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of tracked signatures."""
        return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        """Check if a signature has recorded firings."""
        return signature in self._entries


def create_dedup_window(
    window_seconds: float = DEFAULT_WINDOW_SECONDS,
    max_entries: int = DEFAULT_MAX_ENTRIES,
    cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
) -> DeduplicationWindow:
    """
    Factory function to create a DeduplicationWindow.

    Returns:
        DeduplicationWindow: A new, not yet started window.
    """
    return DeduplicationWindow(
        window_seconds=window_seconds,
        max_entries=max_entries,
        cleanup_interval_seconds=cleanup_interval_seconds,
    )
