"""Data models for sysmon."""

from dataclasses import dataclass
from enum import Enum

from sysmon.errors import CollectionError


class MetricKind(Enum):
    """Metric categories, declared in output order."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"

    @property
    def title(self) -> str:
        """Section title used by the formatter."""
        return "CPU" if self is MetricKind.CPU else self.value.capitalize()


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Raw per-process reading, before ranking."""

    pid: int
    username: str
    percent: float  # 0.0 - 100.0, normalized to the whole machine
    command: str
    started: float | None = None  # Epoch seconds, None when unknown


@dataclass(slots=True, frozen=True)
class ProcessUsage:
    """A ranked process as shown in a top-N listing."""

    user: str
    percent: float
    command: str


@dataclass(slots=True, frozen=True)
class CpuSample:
    """Overall CPU utilization and the busiest processes."""

    overall_percent: float
    top_processes: tuple[ProcessUsage, ...] = ()


@dataclass(slots=True, frozen=True)
class MemorySample:
    """Physical memory usage in bytes."""

    total_bytes: int
    used_bytes: int
    free_bytes: int
    top_processes: tuple[ProcessUsage, ...] = ()

    @property
    def used_percent(self) -> float:
        """Used memory as a percentage of total."""
        return self.used_bytes / self.total_bytes * 100


@dataclass(slots=True, frozen=True)
class DiskMount:
    """Usage of one mounted filesystem."""

    target: str
    size_bytes: int
    used_bytes: int
    avail_bytes: int
    used_percent: float


@dataclass(slots=True, frozen=True)
class DiskSample:
    """All reported mounts, in enumeration order."""

    mounts: tuple[DiskMount, ...] = ()


Sample = CpuSample | MemorySample | DiskSample


@dataclass(slots=True, frozen=True)
class SampleResult:
    """Outcome of collecting one metric: either a sample or an error."""

    kind: MetricKind
    sample: Sample | None = None
    error: CollectionError | None = None

    @property
    def ok(self) -> bool:
        """Whether the collector succeeded."""
        return self.error is None
