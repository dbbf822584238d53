"""
Per-vital sampling scheduler.

Each vital gets one RepeatingTimer on the running asyncio loop. A tick
starts a sample task for the vital's probe unless the vital is hidden or
its previous sample is still running, so a slow probe only delays itself.
Results are forwarded to the sink only while the vital still has a live
timer and is visible.

Invariant: at most one live timer per vital. reconfigure_interval()
cancels the old timer and arms the replacement within one synchronous call.
"""

import asyncio
from collections.abc import Callable, Mapping

from .config.settings import GENERIC_INTERVAL_KEY, SettingChange, Settings, Subscription
from .logging import get_logger
from .models.vital import MetricKind
from .probes.base import Probe
from .sinks import ReadingSink

logger = get_logger("scheduler")


class RepeatingTimer:
    """
    Timer that calls callback every interval_ms until cancelled.

    Built on loop.call_later; the next call is armed after each fire.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_ms: int,
        callback: Callable[[], None],
    ):
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}ms")
        self.loop = loop
        self.interval_ms = interval_ms
        self.callback = callback
        self.fire_count = 0
        self._cancelled = False
        self._handle: asyncio.TimerHandle | None = None
        self._arm()

    def _arm(self) -> None:
        self._handle = self.loop.call_later(self.interval_ms / 1000, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self.fire_count += 1
        try:
            self.callback()
        finally:
            if not self._cancelled:
                self._arm()

    def cancel(self) -> None:
        """Stop firing. Idempotent."""
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def active(self) -> bool:
        return not self._cancelled

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"RepeatingTimer({self.interval_ms}ms, {state}, fired={self.fire_count})"


class Scheduler:
    """
    Owns the sampling timers for all vitals.

    Usage:
        scheduler = Scheduler(probes, settings, sink)
        scheduler.start()      # inside a running loop
        ...
        scheduler.stop()
        await scheduler.drain()
    """

    def __init__(
        self,
        probes: Mapping[MetricKind, Probe],
        settings: Settings,
        sink: ReadingSink,
    ):
        self.probes = dict(probes)
        self.settings = settings
        self.sink = sink

        self._loop: asyncio.AbstractEventLoop | None = None
        self._timers: dict[MetricKind, RepeatingTimer] = {}
        self._intervals: dict[MetricKind, int] = {}
        self._visible: dict[MetricKind, bool] = {}
        self._inflight: dict[MetricKind, asyncio.Task] = {}
        self._subscriptions: list[Subscription] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def timer(self, metric: MetricKind) -> RepeatingTimer | None:
        """Live timer for a vital, if any."""
        return self._timers.get(metric)

    def interval(self, metric: MetricKind) -> int | None:
        """Interval (ms) currently in effect for a vital."""
        return self._intervals.get(metric)

    def is_visible(self, metric: MetricKind) -> bool:
        return self._visible.get(metric, self.settings.is_visible(metric))

    def start(self) -> None:
        """
        Arm one timer per vital and subscribe to settings changes.

        Must be called from within a running event loop. Does nothing if
        already running.
        """
        if self._running:
            return

        self._loop = asyncio.get_running_loop()
        self._running = True

        for metric in self.probes:
            self._visible[metric] = self.settings.is_visible(metric)
            self._arm(metric, self.settings.interval_for(metric))

        self._subscriptions = [
            self.settings.subscribe("show-", self._on_visibility_changed),
            self.settings.subscribe(GENERIC_INTERVAL_KEY, self._on_generic_interval_changed),
        ]
        for metric in self.probes:
            self._subscriptions.append(
                self.settings.subscribe(metric.interval_key, self._on_interval_changed)
            )

        logger.info(
            "Scheduler started: "
            + ", ".join(f"{m.display_name} every {self._intervals[m]}ms" for m in self.probes)
        )

    def stop(self) -> None:
        """Cancel every timer and dispose subscriptions. Idempotent."""
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        if self._running:
            logger.info("Scheduler stopped")
        self._running = False

    async def drain(self) -> None:
        """Wait for samples that were in flight when the scheduler stopped."""
        tasks = list(self._inflight.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def reconfigure_interval(self, metric: MetricKind, interval_ms: int) -> None:
        """
        Replace the timer of a vital with one at a new interval.

        On a stopped scheduler only the interval is recorded.

        Raises:
            ValueError: If interval_ms is not positive
        """
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}ms")

        if not self._running or metric not in self.probes:
            self._intervals[metric] = interval_ms
            return

        old = self._timers.pop(metric, None)
        if old is not None:
            old.cancel()
        self._arm(metric, interval_ms)
        logger.debug(f"{metric.display_name} interval set to {interval_ms}ms")

    def _arm(self, metric: MetricKind, interval_ms: int) -> None:
        if self._loop is None:
            raise RuntimeError("scheduler has not been started")
        self._intervals[metric] = interval_ms
        self._timers[metric] = RepeatingTimer(self._loop, interval_ms, lambda: self._tick(metric))

    def _tick(self, metric: MetricKind) -> None:
        if not self.is_visible(metric):
            return
        if metric in self._inflight:
            logger.debug(f"{metric.display_name} sample still running, skipping tick")
            return

        task = asyncio.create_task(self._sample(metric), name=f"sample-{metric.value}")
        self._inflight[metric] = task
        task.add_done_callback(lambda _: self._inflight.pop(metric, None))

    async def _sample(self, metric: MetricKind) -> None:
        value = await self.probes[metric].sample()

        # The vital may have been stopped or hidden while the sample ran
        if metric not in self._timers or not self.is_visible(metric):
            return

        try:
            self.sink.on_reading(metric, value)
        except Exception as e:
            logger.error(f"Sink failed for {metric.display_name}: {e}")

    # Settings reactions

    def _on_interval_changed(self, change: SettingChange) -> None:
        metric = MetricKind(change.key.removesuffix("-update-interval"))
        self.reconfigure_interval(metric, self.settings.interval_for(metric))

    def _on_generic_interval_changed(self, change: SettingChange) -> None:
        if change.key != GENERIC_INTERVAL_KEY:
            return
        for metric in self.probes:
            interval = self.settings.interval_for(metric)
            if interval != self._intervals.get(metric):
                self.reconfigure_interval(metric, interval)

    def _on_visibility_changed(self, change: SettingChange) -> None:
        try:
            metric = MetricKind(change.key.removeprefix("show-"))
        except ValueError:
            return
        self._visible[metric] = bool(change.value)
        logger.debug(f"{metric.display_name} {'shown' if change.value else 'hidden'}")
