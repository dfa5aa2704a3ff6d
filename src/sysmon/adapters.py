"""
Text-parsing fallback sources.

These scrape the output of the classic command line tools (``top``, ``ps``,
``free``, ``df``) and are used only when psutil cannot serve a metric. Every
fragile bit of column parsing for a metric lives in its ``parse_*`` function.
"""

import logging
import os
import re
import subprocess
import time
from collections.abc import Callable, Sequence

from sysmon.collectors import MetricSource, build_disk_mount, build_memory_sample
from sysmon.errors import CollectionTimeout, ParseFailureError, UnavailableError
from sysmon.models import CpuSample, DiskMount, DiskSample, MemorySample, MetricKind, ProcessSnapshot
from sysmon.parsing import (
    DEFAULT_TOP_N,
    check_percent,
    normalize_process_percent,
    parse_size,
    top_processes,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 2.0

# pid, user, %cpu, %mem, seconds since start, command; "=" drops the header
PS_ARGS = ["ps", "-eo", "pid=,user=,pcpu=,pmem=,etimes=,comm="]
TOP_ARGS = ["top", "-bn1"]
FREE_ARGS = ["free", "-h"]
DF_ARGS = ["df", "-h", "--output=size,used,avail,pcent,target"]

# "%Cpu(s):  2.3 us,  0.8 sy, ... 96.7 id" and the older "Cpu(s): 2.3%us, ... 96.7%id"
_IDLE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%?\s*id\b")

Runner = Callable[[Sequence[str], float, str], str]


def run_command(args: Sequence[str], timeout: float, metric: str) -> str:
    """
    Run a command and return its standard output.

    Runs under the C locale so numbers use a decimal point.
    """
    env = {**os.environ, "LC_ALL": "C"}
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
            env=env,
        )
    except FileNotFoundError as exc:
        raise UnavailableError(metric, f"'{args[0]}' command not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise CollectionTimeout(metric, timeout) from exc
    except subprocess.CalledProcessError as exc:
        raise UnavailableError(metric, f"'{args[0]}' exited with status {exc.returncode}") from exc
    return result.stdout


def parse_top_cpu(text: str) -> float:
    """Overall CPU percent (100 - idle) from ``top -bn1`` output."""
    for line in text.splitlines():
        if "Cpu(s)" not in line:
            continue
        match = _IDLE_RE.search(line)
        if match is None:
            break
        idle = check_percent(match.group(1), "cpu")
        return check_percent(round(100.0 - idle, 1), "cpu")
    raise ParseFailureError("cpu", "no Cpu(s) summary in top output")


def parse_ps(
    text: str,
    metric: str,
    cpu_count: int | None = None,
    now: float | None = None,
) -> list[ProcessSnapshot]:
    """
    Parse :data:`PS_ARGS` output into snapshots for ``metric``.

    ``metric`` selects the %cpu column (``"cpu"``) or %mem (``"memory"``).
    """
    now = time.time() if now is None else now
    cores = cpu_count if cpu_count is not None else os.cpu_count()
    processes: list[ProcessSnapshot] = []

    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split(None, 5)
        if len(parts) < 6:
            raise ParseFailureError(metric, f"short ps line {line!r}")
        pid, user, pcpu, pmem, etimes, command = parts
        try:
            if metric == "cpu":
                percent = normalize_process_percent(float(pcpu), cores)
            else:
                percent = normalize_process_percent(float(pmem), 1)
            snapshot = ProcessSnapshot(
                pid=int(pid),
                username=user,
                percent=percent,
                command=command.strip(),
                started=now - int(etimes),
            )
        except ValueError:
            raise ParseFailureError(metric, f"unparsable ps line {line!r}") from None
        processes.append(snapshot)

    return processes


def parse_free(text: str) -> tuple[int, int, int]:
    """Total, used and free bytes from the ``Mem:`` row of ``free -h``."""
    for line in text.splitlines():
        if line.startswith("Mem:"):
            parts = line.split()
            if len(parts) < 4:
                break
            total, used, free = (parse_size(value, "memory") for value in parts[1:4])
            return total, used, free
    raise ParseFailureError("memory", "no Mem: row in free output")


def parse_df(text: str) -> list[DiskMount]:
    """Mounts from ``df -h --output=size,used,avail,pcent,target``."""
    mounts: list[DiskMount] = []
    lines = text.splitlines()
    for line in lines[1:]:
        if not line.strip():
            continue
        parts = line.split(None, 4)
        if len(parts) < 5:
            raise ParseFailureError("disk", f"short df line {line!r}")
        size, used, avail = (parse_size(value, "disk") for value in parts[:3])
        pcent, target = parts[3], parts[4]
        if pcent == "-":
            # Pseudo filesystems report no percentage
            if size <= 0:
                continue
            pcent = str(round(used / (used + avail) * 100, 1)) if used + avail else "0"
        mount = build_disk_mount(target, size, used, avail, pcent)
        if mount is not None:
            mounts.append(mount)
    return mounts


class _CommandSource(MetricSource):
    """Shared plumbing for sources that shell out."""

    def __init__(
        self,
        top_n: int = DEFAULT_TOP_N,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        runner: Runner = run_command,
    ) -> None:
        self._top_n = top_n
        self._timeout = timeout
        self._runner = runner

    def _run(self, args: Sequence[str]) -> str:
        logger.debug("running %s", " ".join(args))
        return self._runner(args, self._timeout, self.kind.value)


class TopCpuSource(_CommandSource):
    """CPU from ``top`` and ``ps``."""

    kind = MetricKind.CPU

    def collect(self) -> CpuSample:
        overall = parse_top_cpu(self._run(TOP_ARGS))
        processes = parse_ps(self._run(PS_ARGS), "cpu")
        return CpuSample(
            overall_percent=overall,
            top_processes=top_processes(processes, self._top_n),
        )


class FreeMemorySource(_CommandSource):
    """Memory from ``free`` and ``ps``."""

    kind = MetricKind.MEMORY

    def collect(self) -> MemorySample:
        total, used, free = parse_free(self._run(FREE_ARGS))
        processes = parse_ps(self._run(PS_ARGS), "memory")
        return build_memory_sample(total, used, free, processes, self._top_n)


class DfDiskSource(_CommandSource):
    """Disk usage from ``df``."""

    kind = MetricKind.DISK

    def collect(self) -> DiskSample:
        return DiskSample(mounts=tuple(parse_df(self._run(DF_ARGS))))
