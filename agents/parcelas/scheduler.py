from __future__ import annotations

import signal
import threading
from typing import Optional

from backend.core.config import settings
from backend.core.observability.logging import logger
from backend.core.observability.metrics import increment_scan_skipped

from .dto import ScanResult
from .engine import ReconciliationEngine


class ScanScheduler:
    """Periodic trigger for ``ReconciliationEngine.scan``.

    ``run_once`` is safe to call from overlapping ticks: a tick that finds a
    scan already running is skipped instead of queued.
    """

    def __init__(self, engine: ReconciliationEngine, interval_seconds: Optional[float] = None):
        self.engine = engine
        self.interval_seconds = (
            settings.SCAN_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self._scan_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Optional[ScanResult]:
        """Run one scan; returns None when the tick was skipped."""
        if not self._scan_lock.acquire(blocking=False):
            increment_scan_skipped()
            logger.info("scan_skipped_overlap")
            return None
        try:
            return self.engine.scan()
        except Exception as e:
            logger.error("scan_run_error", extra={"error": str(e)}, exc_info=True)
            return ScanResult(success=False, errors=[str(e)])
        finally:
            self._scan_lock.release()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval_seconds)

    def start(self) -> None:
        """Run the loop on a daemon thread (used by the HTTP app lifespan)."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="parcelas-scan", daemon=True)
        self._thread.start()
        logger.info("scheduler_started", extra={"interval_seconds": self.interval_seconds})

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.engine.close()
        logger.info("scheduler_stopped")

    def _setup_signals(self) -> None:
        def _handler(signum, frame):  # noqa: ARG001
            self._stop_event.set()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

    def run_forever(self, install_signals: bool = True) -> int:
        """Blocking loop on the calling thread until SIGINT/SIGTERM.

        Returns recommended exit code.
        """
        if install_signals:
            self._setup_signals()
        logger.info("scheduler_started", extra={"interval_seconds": self.interval_seconds})
        try:
            self._loop()
        finally:
            self.engine.close()
            logger.info("scheduler_stopped")
        return 0

    def request_stop(self) -> None:
        self._stop_event.set()
