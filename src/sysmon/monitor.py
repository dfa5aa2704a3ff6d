"""Sampling and refresh engine for sysmon."""

import logging
import sys
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, wait
from enum import Enum
from typing import TextIO

from sysmon.adapters import DfDiskSource, FreeMemorySource, TopCpuSource
from sysmon.collectors import CpuCollector, DiskCollector, FallbackSource, MemoryCollector, MetricSource
from sysmon.config import DEFAULT_TIMEOUT, MonitorConfig
from sysmon.errors import CollectionError, CollectionTimeout, NoMetricSelectedError, UnavailableError
from sysmon.formatter import Formatter
from sysmon.models import MetricKind, Sample, SampleResult

logger = logging.getLogger(__name__)

# How often a blocked wait re-checks the cancellation token
CANCEL_POLL_INTERVAL = 0.1

CLEAR_SCREEN = "\033[H\033[2J"


class SamplingCancelled(Exception):
    """The cancellation token was set while a collection was in flight."""


def default_sources(config: MonitorConfig) -> dict[MetricKind, MetricSource]:
    """psutil collectors, each backed by its command line fallback."""
    return {
        MetricKind.CPU: FallbackSource(
            CpuCollector(top_n=config.top_n),
            TopCpuSource(top_n=config.top_n, timeout=config.timeout),
        ),
        MetricKind.MEMORY: FallbackSource(
            MemoryCollector(top_n=config.top_n),
            FreeMemorySource(top_n=config.top_n, timeout=config.timeout),
        ),
        MetricKind.DISK: FallbackSource(
            DiskCollector(),
            DfDiskSource(timeout=config.timeout),
        ),
    }


def _run_collector(source: MetricSource, future: Future[Sample]) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        future.set_result(source.collect())
    except BaseException as exc:
        future.set_exception(exc)


class Sampler:
    """
    Runs the requested collectors for one cycle.

    Each collector runs on its own daemon thread so a hung source can be
    abandoned after ``timeout`` seconds. An abandoned source is not called
    again until its earlier call returns; later cycles wait on that call.
    With ``parallel`` the collectors are fanned out together; otherwise they
    run one after another. Results always come back in CPU, Memory, Disk order.
    """

    def __init__(
        self,
        sources: Mapping[MetricKind, MetricSource],
        timeout: float = DEFAULT_TIMEOUT,
        parallel: bool = True,
    ) -> None:
        self._sources = dict(sources)
        self._timeout = timeout
        self._parallel = parallel
        self._in_flight: dict[MetricKind, Future[Sample]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "Sampler":
        return cls(default_sources(config), timeout=config.timeout, parallel=config.parallel)

    @property
    def timeout(self) -> float:
        return self._timeout

    def sample(
        self,
        kinds: Iterable[MetricKind],
        cancel: threading.Event | None = None,
    ) -> list[SampleResult]:
        """
        Collect every requested metric once.

        Raises:
            NoMetricSelectedError: ``kinds`` is empty.
            SamplingCancelled: ``cancel`` was set while waiting on a collector.
        """
        requested = set(kinds)
        wanted = [kind for kind in MetricKind if kind in requested]
        if not wanted:
            raise NoMetricSelectedError()

        if self._parallel:
            started = time.monotonic()
            futures = {kind: self._submit(kind) for kind in wanted}
            return [self._join(kind, futures[kind], started, cancel) for kind in wanted]

        results = []
        for kind in wanted:
            started = time.monotonic()
            results.append(self._join(kind, self._submit(kind), started, cancel))
        return results

    def _submit(self, kind: MetricKind) -> Future[Sample]:
        source = self._sources.get(kind)
        if source is None:
            future: Future[Sample] = Future()
            future.set_exception(UnavailableError(kind.value, "no collector configured"))
            return future

        with self._lock:
            pending = self._in_flight.get(kind)
            if pending is not None and not pending.done():
                logger.debug("%s collector still busy from an earlier cycle", kind.value)
                return pending
            future = Future()
            self._in_flight[kind] = future

        # Daemon so an abandoned collector never holds up interpreter exit
        thread = threading.Thread(
            target=_run_collector,
            args=(source, future),
            daemon=True,
            name=f"sysmon-collect-{kind.value}",
        )
        thread.start()
        return future

    def _join(
        self,
        kind: MetricKind,
        future: Future[Sample],
        started: float,
        cancel: threading.Event | None,
    ) -> SampleResult:
        deadline = started + self._timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise SamplingCancelled()
            remaining = deadline - time.monotonic()
            done, _ = wait([future], timeout=max(0.0, min(remaining, CANCEL_POLL_INTERVAL)))
            if done:
                break
            if deadline - time.monotonic() <= 0:
                logger.warning("%s collector timed out after %gs", kind.value, self._timeout)
                return SampleResult(kind, error=CollectionTimeout(kind.value, self._timeout))

        try:
            return SampleResult(kind, sample=future.result())
        except CollectionError as exc:
            logger.debug("%s collector failed: %s", kind.value, exc)
            return SampleResult(kind, error=exc)
        except Exception as exc:
            logger.exception("%s collector raised unexpectedly", kind.value)
            reason = str(exc) or type(exc).__name__
            return SampleResult(kind, error=CollectionError(kind.value, reason))


class LoopState(Enum):
    """Where the refresh loop currently is."""

    IDLE = "idle"
    SAMPLING = "sampling"
    RENDERING = "rendering"
    TERMINATED = "terminated"


class RefreshLoop:
    """
    Drives single-shot or periodic sampling and rendering.

    Watch mode waits on the cancellation token between frames, so setting it
    (or a KeyboardInterrupt, which sets it) ends the loop without waiting for
    the next wake-up. Frames go to ``stream``, or to ``on_frame`` when given.
    """

    def __init__(
        self,
        config: MonitorConfig,
        sampler: Sampler,
        formatter: Formatter | None = None,
        stream: TextIO | None = None,
        cancel: threading.Event | None = None,
        on_frame: Callable[[list[str]], None] | None = None,
        clear_screen: bool | None = None,
        show_banner: bool = True,
    ) -> None:
        """
        Initialize the RefreshLoop.

        Args:
            config: Run configuration (metrics, watch interval, display options).
            sampler: Sampler invoked once per cycle.
            formatter: Defaults to one built from ``config``.
            stream: Output stream, sys.stdout by default.
            cancel: Cancellation token; a fresh one is created if omitted.
            on_frame: Receives each frame's lines instead of ``stream``.
            clear_screen: Clear between watch frames. None means only when
                ``stream`` is a terminal.
            show_banner: Prefix watch frames with the refresh banner.
        """
        self._config = config
        self._sampler = sampler
        self._formatter = formatter or Formatter(
            top_n=config.top_n,
            path_width=config.path_width,
            human_units=config.human_units,
        )
        self._stream = stream if stream is not None else sys.stdout
        self._cancel = cancel if cancel is not None else threading.Event()
        self._on_frame = on_frame
        self._clear_screen = clear_screen
        self._show_banner = show_banner
        self._state = LoopState.IDLE
        self._cycles = 0
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed sampling and rendering cycles."""
        return self._cycles

    @property
    def cancel_token(self) -> threading.Event:
        return self._cancel

    @property
    def is_running(self) -> bool:
        """Check if the loop is running in a background thread."""
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> int:
        """
        Run until done and return the process exit code.

        Single-run: 0 if every requested collector succeeded, 1 otherwise.
        Watch: runs until cancelled, then 0.
        """
        try:
            if not self._config.watch:
                return 0 if self._cycle() else 1
            while not self._cancel.is_set():
                self._cycle()
                self._state = LoopState.IDLE
                self._cancel.wait(timeout=self._config.watch_interval)
            return 0
        except (KeyboardInterrupt, SamplingCancelled):
            self._cancel.set()
            return 0 if self._config.watch else 1
        finally:
            self._state = LoopState.TERMINATED

    def start(self) -> None:
        """Run the loop in a daemon thread."""
        if self.is_running:
            return

        self._thread = threading.Thread(target=self.run, daemon=True, name="RefreshLoop")
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Cancel the loop and wait for the background thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._cancel.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _cycle(self) -> bool:
        """Sample and render one frame; True if all collectors succeeded."""
        self._state = LoopState.SAMPLING
        results = self._sampler.sample(self._config.metrics, cancel=self._cancel)

        self._state = LoopState.RENDERING
        lines = self._formatter.render_results(results)
        if self._config.watch and self._show_banner:
            lines = [self.banner(), ""] + lines
        self._emit(lines)
        self._cycles += 1

        failed = [result.kind.value for result in results if not result.ok]
        if failed:
            logger.info("cycle %d: failed metrics %s", self._cycles, ", ".join(failed))
        return not failed

    def banner(self) -> str:
        return (
            f"System Monitor - Refreshing every {self._config.watch_interval}s "
            "(Press Ctrl+C to exit)"
        )

    def _emit(self, lines: list[str]) -> None:
        if self._on_frame is not None:
            self._on_frame(lines)
            return

        if self._config.watch and self._should_clear():
            self._stream.write(CLEAR_SCREEN)
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()

    def _should_clear(self) -> bool:
        if self._clear_screen is not None:
            return self._clear_screen
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())
