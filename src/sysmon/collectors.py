"""psutil-backed metric collectors."""

import abc
import logging

import psutil

from sysmon.errors import (
    DivideByZeroError,
    ParseFailureError,
    UnavailableError,
)
from sysmon.models import (
    CpuSample,
    DiskMount,
    DiskSample,
    MemorySample,
    MetricKind,
    ProcessSnapshot,
    Sample,
)
from sysmon.parsing import DEFAULT_TOP_N, check_percent, normalize_process_percent, top_processes

logger = logging.getLogger(__name__)

# Seconds the first CPU reading blocks to get a real delta
DEFAULT_PRIME_INTERVAL = 0.1


class MetricSource(abc.ABC):
    """Something that can produce one sample of a metric on demand."""

    kind: MetricKind

    @abc.abstractmethod
    def collect(self) -> Sample:
        """Collect a fresh sample or raise CollectionError."""


class FallbackSource(MetricSource):
    """
    Try a primary source and use a fallback when the primary is unavailable.

    Only UnavailableError triggers the fallback; parse failures and timeouts
    from the primary are reported as they are.
    """

    def __init__(self, primary: MetricSource, fallback: MetricSource) -> None:
        if primary.kind is not fallback.kind:
            raise ValueError("primary and fallback must collect the same metric")
        self.kind = primary.kind
        self._primary = primary
        self._fallback = fallback

    def collect(self) -> Sample:
        try:
            return self._primary.collect()
        except UnavailableError as exc:
            logger.warning("%s; falling back to %s", exc, type(self._fallback).__name__)
            return self._fallback.collect()


def read_processes(percent_attr: str) -> list[ProcessSnapshot]:
    """
    Snapshot all running processes with one percent attribute.

    ``percent_attr`` is ``"cpu_percent"`` or ``"memory_percent"``. Only the
    requested one is read so the CPU collector's per-process deltas are not
    reset by the memory collector.
    Handles AccessDenied and ZombieProcess errors by skipping the process.
    """
    attrs = ["pid", "name", "username", "cmdline", "create_time", percent_attr]
    cpu_count = psutil.cpu_count() if percent_attr == "cpu_percent" else 1
    processes: list[ProcessSnapshot] = []

    for proc in psutil.process_iter(attrs=attrs):
        try:
            info = proc.info

            # First argv word, like the COMMAND column of ps aux
            cmdline = info.get("cmdline") or []
            command = cmdline[0] if cmdline else info.get("name") or "?"

            raw = info.get(percent_attr)
            if percent_attr == "cpu_percent":
                percent = normalize_process_percent(raw, cpu_count)
            else:
                percent = normalize_process_percent(raw, 1)

            processes.append(
                ProcessSnapshot(
                    pid=info.get("pid") or 0,
                    username=info.get("username") or "?",
                    percent=percent,
                    command=command,
                    started=info.get("create_time"),
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Died mid-poll or not ours to read
            logger.debug("skipping process %s", getattr(proc, "pid", "?"))
            continue

    return processes


class CpuCollector(MetricSource):
    """Overall CPU utilization plus the top-N processes by CPU percent."""

    kind = MetricKind.CPU

    def __init__(
        self,
        top_n: int = DEFAULT_TOP_N,
        prime_interval: float = DEFAULT_PRIME_INTERVAL,
    ) -> None:
        self._top_n = top_n
        self._prime_interval = prime_interval
        self._primed = False

    def collect(self) -> CpuSample:
        try:
            if not self._primed:
                # First calls return 0.0; start the per-process counters and
                # block briefly so this reading is a real delta.
                read_processes("cpu_percent")
                overall = psutil.cpu_percent(interval=self._prime_interval)
                self._primed = True
            else:
                overall = psutil.cpu_percent(interval=None)
            processes = read_processes("cpu_percent")
        except (NotImplementedError, OSError) as exc:
            raise UnavailableError("cpu", str(exc) or "cpu statistics unavailable") from exc

        return CpuSample(
            overall_percent=check_percent(overall, "cpu"),
            top_processes=top_processes(processes, self._top_n),
        )


class MemoryCollector(MetricSource):
    """Physical memory totals plus the top-N processes by memory percent."""

    kind = MetricKind.MEMORY

    def __init__(self, top_n: int = DEFAULT_TOP_N) -> None:
        self._top_n = top_n

    def collect(self) -> MemorySample:
        try:
            mem = psutil.virtual_memory()
            processes = read_processes("memory_percent")
        except (NotImplementedError, OSError) as exc:
            raise UnavailableError("memory", str(exc) or "memory statistics unavailable") from exc

        return build_memory_sample(mem.total, mem.used, mem.free, processes, self._top_n)


def build_memory_sample(
    total: int,
    used: int,
    free: int,
    processes: list[ProcessSnapshot],
    top_n: int = DEFAULT_TOP_N,
) -> MemorySample:
    """Validate byte counts and assemble a MemorySample."""
    if total == 0:
        raise DivideByZeroError("memory")
    if total < 0 or used < 0 or free < 0:
        raise ParseFailureError("memory", "negative byte count")
    if used > total:
        raise ParseFailureError("memory", "used exceeds total")
    return MemorySample(
        total_bytes=total,
        used_bytes=used,
        free_bytes=free,
        top_processes=top_processes(processes, top_n),
    )


class DiskCollector(MetricSource):
    """Mounted filesystems with size, used, available and percent used."""

    kind = MetricKind.DISK

    def collect(self) -> DiskSample:
        try:
            partitions = psutil.disk_partitions(all=False)
        except (NotImplementedError, OSError) as exc:
            raise UnavailableError("disk", str(exc) or "disk statistics unavailable") from exc

        mounts: list[DiskMount] = []
        seen: set[str] = set()
        for part in partitions:
            if part.mountpoint in seen:
                continue
            seen.add(part.mountpoint)
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as exc:
                logger.debug("skipping mount %s: %s", part.mountpoint, exc)
                continue
            mount = build_disk_mount(
                part.mountpoint, usage.total, usage.used, usage.free, usage.percent
            )
            if mount is not None:
                mounts.append(mount)

        return DiskSample(mounts=tuple(mounts))


def build_disk_mount(
    target: str,
    size: int,
    used: int,
    avail: int,
    percent: object,
) -> DiskMount | None:
    """Validate one filesystem reading; zero-size pseudo filesystems give None."""
    if size <= 0:
        return None
    return DiskMount(
        target=target,
        size_bytes=size,
        used_bytes=used,
        avail_bytes=avail,
        used_percent=check_percent(percent, "disk"),
    )
