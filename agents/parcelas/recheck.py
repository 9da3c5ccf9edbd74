"""Delayed payment re-checks owned by a cancellable timer registry."""

import logging
import threading
from typing import Callable, Optional

from backend.core.observability.metrics import increment_rechecks

logger = logging.getLogger(__name__)

RecheckCallback = Callable[[], None]


class RecheckRegistry:
    """Holds at most one pending re-check per payment id.

    Each entry is a daemon ``threading.Timer``. Scheduling again for the same
    payment id replaces the pending timer. ``shutdown`` either runs every
    pending callback immediately (drain) or abandons them.
    """

    def __init__(
        self,
        delay_seconds: float = 30.0,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.delay_seconds = delay_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[threading.Timer, RecheckCallback]] = {}
        self._closed = False

    def schedule(
        self, payment_id: str, callback: RecheckCallback, delay: Optional[float] = None
    ) -> bool:
        """Arm a re-check; returns False once the registry is shut down."""
        with self._lock:
            if self._closed:
                logger.warning("recheck_rejected_closed", extra={"payment_id": payment_id})
                return False
            previous = self._entries.pop(payment_id, None)
            if previous is not None:
                previous[0].cancel()
            timer = self._timer_factory(
                self.delay_seconds if delay is None else delay,
                self._expire,
                args=(payment_id,),
            )
            timer.daemon = True
            self._entries[payment_id] = (timer, callback)
            timer.start()
        logger.debug("recheck_scheduled", extra={"payment_id": payment_id})
        return True

    def cancel(self, payment_id: str) -> bool:
        with self._lock:
            entry = self._entries.pop(payment_id, None)
        if entry is None:
            return False
        entry[0].cancel()
        increment_rechecks("cancelled")
        return True

    def fire(self, payment_id: str) -> bool:
        """Run a pending re-check now on the calling thread."""
        with self._lock:
            entry = self._entries.pop(payment_id, None)
        if entry is None:
            return False
        entry[0].cancel()
        self._invoke(payment_id, entry[1])
        return True

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def shutdown(self, drain: bool = False) -> int:
        """Stop accepting re-checks; returns how many were drained or dropped."""
        with self._lock:
            self._closed = True
            entries = list(self._entries.items())
            self._entries.clear()
        for payment_id, (timer, callback) in entries:
            timer.cancel()
            if drain:
                self._invoke(payment_id, callback)
            else:
                increment_rechecks("abandoned")
        logger.info(
            "recheck_registry_shutdown", extra={"drain": drain, "count": len(entries)}
        )
        return len(entries)

    def _expire(self, payment_id: str) -> None:
        with self._lock:
            entry = self._entries.pop(payment_id, None)
        if entry is not None:
            self._invoke(payment_id, entry[1])

    def _invoke(self, payment_id: str, callback: RecheckCallback) -> None:
        try:
            callback()
            increment_rechecks("completed")
        except Exception as e:
            increment_rechecks("error")
            logger.error(
                "recheck_failed",
                extra={"payment_id": payment_id, "error": str(e)},
                exc_info=True,
            )
