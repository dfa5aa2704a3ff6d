"""Render samples as fixed-width text lines. No I/O happens here."""

from collections.abc import Iterable

from sysmon.errors import CollectionError
from sysmon.models import (
    CpuSample,
    DiskMount,
    DiskSample,
    MemorySample,
    MetricKind,
    ProcessUsage,
    Sample,
    SampleResult,
)
from sysmon.parsing import DEFAULT_TOP_N

DEFAULT_PATH_WIDTH = 25

_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]


def format_bytes(size: int, human: bool = True) -> str:
    """Format a byte count in binary units, or raw with a ``B`` suffix."""
    if not human or size < 1024:
        return f"{size}B"
    value = size / 1024
    for unit in _UNITS[1:-1]:
        if value < 1024:
            return f"{value:.1f}{unit}"
        value = value / 1024
    return f"{value:.1f}{_UNITS[-1]}"


def format_percent(value: float) -> str:
    """Percent with exactly one decimal digit."""
    return f"{value:.1f}%"


def shorten_path(path: str, width: int = DEFAULT_PATH_WIDTH) -> str:
    """Truncate long paths to ``prefix[:width-3] + '...'``."""
    if len(path) <= width:
        return path
    return path[: max(width - 3, 0)] + "..."


def format_process(proc: ProcessUsage) -> str:
    return f"{proc.user:<8} {proc.percent:6.1f}% {proc.command}"


class Formatter:
    """
    Turns samples into display lines.

    Formatter holds only presentation settings, so rendering the same sample
    twice gives identical lines.
    """

    def __init__(
        self,
        top_n: int = DEFAULT_TOP_N,
        path_width: int = DEFAULT_PATH_WIDTH,
        human_units: bool = True,
    ) -> None:
        self.top_n = top_n
        self.path_width = path_width
        self.human_units = human_units

    def render(self, sample: Sample) -> list[str]:
        """Render one sample as its section lines."""
        if isinstance(sample, CpuSample):
            return self._render_cpu(sample)
        if isinstance(sample, MemorySample):
            return self._render_memory(sample)
        if isinstance(sample, DiskSample):
            return self._render_disk(sample)
        raise TypeError(f"cannot render {type(sample).__name__}")

    def render_error(self, kind: MetricKind, error: CollectionError) -> list[str]:
        """Render the section of a metric whose collector failed."""
        return [
            _title(kind),
            f"Error: could not retrieve {kind.value} data ({error.reason})",
            "",
        ]

    def render_results(self, results: Iterable[SampleResult]) -> list[str]:
        """Render a whole sampling cycle in result order."""
        lines: list[str] = []
        for result in results:
            if result.error is not None:
                lines.extend(self.render_error(result.kind, result.error))
            elif result.sample is not None:
                lines.extend(self.render(result.sample))
        return lines

    def _render_cpu(self, sample: CpuSample) -> list[str]:
        lines = [
            _title(MetricKind.CPU),
            f"Overall CPU: {format_percent(sample.overall_percent)}",
            "",
            f"Top {self.top_n} CPU Consumers:",
        ]
        lines.extend(format_process(proc) for proc in sample.top_processes)
        lines.append("")
        return lines

    def _render_memory(self, sample: MemorySample) -> list[str]:
        total = format_bytes(sample.total_bytes, self.human_units)
        used = format_bytes(sample.used_bytes, self.human_units)
        free = format_bytes(sample.free_bytes, self.human_units)
        lines = [
            _title(MetricKind.MEMORY),
            f"Total: {total} | Used: {used} | Free: {free} | "
            f"Usage: {format_percent(sample.used_percent)}",
            "",
            f"Top {self.top_n} Memory Consumers:",
        ]
        lines.extend(format_process(proc) for proc in sample.top_processes)
        lines.append("")
        return lines

    def _render_disk(self, sample: DiskSample) -> list[str]:
        lines = [
            _title(MetricKind.DISK),
            f"{'Mounted on':<{self.path_width}} {'Size':>10} {'Used':>10} "
            f"{'Avail':>10} {'Use%':>8}",
        ]
        lines.extend(self._disk_row(mount) for mount in sample.mounts)
        lines.append("")
        return lines

    def _disk_row(self, mount: DiskMount) -> str:
        target = shorten_path(mount.target, self.path_width)
        size = format_bytes(mount.size_bytes, self.human_units)
        used = format_bytes(mount.used_bytes, self.human_units)
        avail = format_bytes(mount.avail_bytes, self.human_units)
        return (
            f"{target:<{self.path_width}} {size:>10} {used:>10} "
            f"{avail:>10} {format_percent(mount.used_percent):>8}"
        )


def _title(kind: MetricKind) -> str:
    return f"=== {kind.title} Usage ==="
