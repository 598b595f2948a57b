"""
Focus signal relay.

The host application calls ``notify_focus()`` whenever its window (or
whatever counts as "the user is looking again") regains focus; watching
resources registered with ``revalidate_on_focus`` revalidate in response.
"""

from typing import Callable, List

from shared.logging import get_logger


FocusListener = Callable[[], None]


class FocusMonitor:
    """Fans a focus-regained signal out to registered listeners."""

    def __init__(self):
        self._listeners: List[FocusListener] = []
        self.logger = get_logger("worker_cache.focus")

    def add_listener(self, listener: FocusListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: FocusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notify_focus(self) -> int:
        """Invoke every listener. Returns how many ran without raising."""
        notified = 0
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as exc:
                self.logger.error("Focus listener failed", error=str(exc))
                continue
            notified += 1

        self.logger.debug("Focus regained", listeners=notified)
        return notified
