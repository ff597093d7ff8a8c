"""
In-process expiry sweeping for deployments without Celery beat.

With ENABLE_EXPIRY_MONITOR on, the web process sweeps expired volunteer and
beneficiary offers every EXPIRY_SWEEP_INTERVAL_SECONDS from a daemon thread.
"""

import logging
import os
import threading
from typing import Optional

from django.conf import settings
from django.db import close_old_connections

from services.dispatch.expiry_sweep import SweepResult, sweep_expired_offers

logger = logging.getLogger(__name__)

_monitor: Optional["ExpiryMonitor"] = None


class ExpiryMonitor:
    def __init__(self, interval_seconds: int, batch_size: int):
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="expiry-monitor", daemon=True)

    def start(self):
        if self._thread.is_alive():
            return
        logger.info(
            "Expiry monitor sweeping every %ss (batch of %s)",
            self.interval_seconds,
            self.batch_size,
        )
        self._thread.start()

    def stop(self):
        self._stopped.set()

    def run_once(self) -> Optional[SweepResult]:
        """One sweep on a fresh database connection."""
        close_old_connections()
        try:
            return sweep_expired_offers(batch_size=self.batch_size)
        except Exception:
            logger.exception("Expiry sweep failed, retrying next tick")
            return None
        finally:
            close_old_connections()

    def _loop(self):
        while not self._stopped.wait(self.interval_seconds):
            self.run_once()


def start_expiry_monitor() -> Optional[ExpiryMonitor]:
    global _monitor

    if not getattr(settings, "ENABLE_EXPIRY_MONITOR", False):
        return None

    # Plain process (unset) or the autoreloader's serving child ("true")
    if os.environ.get("RUN_MAIN") not in (None, "true"):
        return None

    if _monitor is None:
        _monitor = ExpiryMonitor(
            interval_seconds=getattr(settings, "EXPIRY_SWEEP_INTERVAL_SECONDS", 60),
            batch_size=getattr(settings, "EXPIRY_SWEEP_BATCH_SIZE", 20),
        )
        _monitor.start()
    return _monitor


def stop_expiry_monitor():
    global _monitor

    if _monitor is not None:
        _monitor.stop()
        _monitor = None
