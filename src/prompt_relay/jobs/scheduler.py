"""On-demand and continuous triggering of worker passes."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from prompt_relay.jobs.models import PassSummary
from prompt_relay.jobs.worker import JobWorker

logger = logging.getLogger(__name__)

SLEEP_SLICE_SECONDS = 0.1


class PassScheduler:
    """Triggers ``JobWorker.run_pass`` once or on a fixed interval.

    ``sleep`` and ``clock`` are injectable so tests can drive many cycles
    without real delays; ``should_stop`` is polled between passes and while
    sleeping.
    """

    def __init__(
        self,
        *,
        worker: JobWorker,
        interval_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self.worker = worker
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._clock = clock
        self._should_stop = should_stop
        self._stop_requested = False
        self._stop_signal_name: str | None = None

    def trigger(self) -> PassSummary:
        """Run exactly one pass and return its summary."""

        return self.worker.run_pass()

    def run_continuous(
        self,
        *,
        max_passes: int | None = None,
        handle_signals: bool = True,
    ) -> int:
        """Run passes until stopped, killed, or ``max_passes`` is reached.

        Returns the number of passes run.
        """

        passes = 0
        signals = self._signal_handlers() if handle_signals else _no_signal_handlers()
        with signals:
            while not self.stop_requested():
                if max_passes is not None and passes >= max_passes:
                    break
                summary = self.worker.run_pass()
                passes += 1
                logger.info("daemon_cycle %s", summary.to_dict())
                if max_passes is not None and passes >= max_passes:
                    break
                self._sleep_with_stop(self.interval_seconds)
        if self._stop_signal_name is not None:
            logger.info("Scheduler stopped by %s after %d passes", self._stop_signal_name, passes)
        return passes

    def stop_requested(self) -> bool:
        if self._stop_requested:
            return True
        return self._should_stop is not None and self._should_stop()

    def request_stop(self, *, signal_name: str | None = None) -> None:
        self._stop_requested = True
        self._stop_signal_name = signal_name

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = self._clock() + seconds
        while not self.stop_requested():
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            self._sleep(min(SLEEP_SLICE_SECONDS, remaining))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


@contextmanager
def _no_signal_handlers() -> Iterator[None]:
    yield
