from __future__ import annotations

import threading

from ..core.config import get_settings
from ..core.logging import get_logger


class ExpirySweeper(threading.Thread):
    """Periodically expires pending approvals past their deadline."""

    def __init__(self, manager_factory, interval_sec: int = 3 * 60 * 60) -> None:
        super().__init__(daemon=True, name="expiry-sweeper")
        self._manager_factory = manager_factory
        self._interval = interval_sec
        self._stop = threading.Event()
        self._logger = get_logger(__name__)

    def run(self) -> None:  # pragma: no cover
        while not self._stop.is_set():
            self.sweep_once()
            self._stop.wait(self._interval)

    def stop(self) -> None:
        self._stop.set()

    def sweep_once(self) -> int:
        try:
            with self._manager_factory() as manager:
                count = manager.expire_old_approvals()
        except Exception as exc:
            self._logger.warning("expiry_sweeper.error", error=str(exc))
            return 0
        if count:
            self._logger.info("expiry_sweeper.expired", count=count)
        return count


def maybe_start_expiry_sweeper(app, manager_factory) -> ExpirySweeper | None:
    settings = get_settings()
    if not settings.expiry_sweeper_enabled:
        return None
    t = ExpirySweeper(manager_factory, settings.expiry_sweeper_interval_sec)
    t.start()
    app.state.expiry_sweeper_thread = t
    get_logger(__name__).info(
        "expiry_sweeper.started", interval_sec=settings.expiry_sweeper_interval_sec
    )
    return t


def maybe_stop_expiry_sweeper(app) -> None:
    t = getattr(app.state, "expiry_sweeper_thread", None)
    if t is not None:
        t.stop()
