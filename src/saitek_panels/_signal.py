"""Shutdown signalling shared by the manager's worker threads."""

import threading


class ShutdownSignal:
    """Signal-aware state that supports interruptible waits.

    Callable: returns True while running, False after stop.
    Also provides wait() for interruptible sleeps.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def __call__(self) -> bool:
        """Return True if still running, False if stopped."""
        return not self._event.is_set()

    @property
    def stopped(self) -> bool:
        return self._event.is_set()

    def stop(self) -> None:
        """Signal that every task should stop."""
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep for up to *timeout* seconds, returning early if stopped.

        Returns:
            True if stop was signalled.
        """
        return self._event.wait(timeout)
