"""Numeric parsing and validation shared by all collectors."""

import math
import re
from collections.abc import Iterable

from sysmon.errors import ParseFailureError
from sysmon.models import ProcessSnapshot, ProcessUsage

DEFAULT_TOP_N = 5

# "15Gi", "7.5G", "512MiB", "4.0K", "0B", "1024"
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMGTPE]?)(i?)B?$", re.IGNORECASE)
_SIZE_POWERS = {"": 0, "K": 1, "M": 2, "G": 3, "T": 4, "P": 5, "E": 6}


def check_percent(value: object, metric: str) -> float:
    """
    Validate a utilization reading.

    Accepts numbers and numeric strings (a trailing ``%`` is allowed).
    Anything missing, non-finite or outside [0, 100] raises ParseFailureError.
    """
    if value is None:
        raise ParseFailureError(metric, "missing utilization value")
    if isinstance(value, str):
        text = value.strip().rstrip("%")
        try:
            number = float(text)
        except ValueError:
            raise ParseFailureError(metric, f"unparsable utilization {value!r}") from None
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        raise ParseFailureError(metric, f"unparsable utilization {value!r}")

    if not math.isfinite(number) or not 0.0 <= number <= 100.0:
        raise ParseFailureError(metric, f"utilization {number!r} out of range")
    return number


def parse_size(text: str, metric: str) -> int:
    """
    Convert a size reading to bytes.

    Suffixes are binary multiples whether or not the ``i`` is present, which
    matches ``free -h`` ("Gi") and ``df -h`` ("G").
    """
    match = _SIZE_RE.match(text.strip())
    if match is None:
        raise ParseFailureError(metric, f"unparsable size {text!r}")
    number, prefix, _ = match.groups()
    return int(round(float(number) * 1024 ** _SIZE_POWERS[prefix.upper()]))


def normalize_process_percent(value: float | None, cpu_count: int | None) -> float:
    """
    Scale a per-core process percentage to the whole machine.

    psutil and ps both report up to 100% per core; dividing by the logical
    core count brings it into [0, 100]. Sampling jitter can still push a
    reading a little over the top, so the result is clamped.
    """
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    cores = cpu_count or 1
    return min(value / cores, 100.0)


def start_order_key(proc: ProcessSnapshot) -> tuple[bool, float, int, str]:
    """Sort key for process start order; falls back to command name."""
    if proc.started is None:
        return (True, 0.0, 0, proc.command)
    return (False, proc.started, proc.pid, proc.command)


def top_processes(
    processes: Iterable[ProcessSnapshot],
    n: int = DEFAULT_TOP_N,
) -> tuple[ProcessUsage, ...]:
    """
    Pick the n processes with the highest percent.

    Input is first put in start order; the descending sort is stable, so
    equal percentages keep that order.
    """
    if n <= 0:
        return ()
    ordered = sorted(processes, key=start_order_key)
    ranked = sorted(ordered, key=lambda p: p.percent, reverse=True)
    return tuple(
        ProcessUsage(user=proc.username, percent=proc.percent, command=proc.command)
        for proc in ranked[:n]
    )
