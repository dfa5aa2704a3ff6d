"""Command line parsing and the immutable run configuration."""

import argparse
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NoReturn

from sysmon.errors import ConfigError, InvalidIntervalError, NoMetricSelectedError, UnknownFlagError
from sysmon.formatter import DEFAULT_PATH_WIDTH
from sysmon.models import MetricKind
from sysmon.parsing import DEFAULT_TOP_N

DEFAULT_TIMEOUT = 2.0
DEFAULT_TUI_INTERVAL = 2

_POSITIVE_INT_RE = re.compile(r"^[0-9]+$")

EXAMPLES = """\
EXAMPLES:
  sysmon --cpu                    # Show CPU usage
  sysmon -m                       # Show memory usage
  sysmon -a                       # Show all metrics
  sysmon -c -m -d                 # Show CPU, memory, and disk
  sysmon -a --watch 3             # Monitor all metrics every 3 seconds
  sysmon -a --tui                 # Full-screen view, refreshing every 2 seconds
"""


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Everything a run needs, built once from the command line."""

    metrics: tuple[MetricKind, ...]
    watch_interval: int | None = None
    top_n: int = DEFAULT_TOP_N
    timeout: float = DEFAULT_TIMEOUT
    path_width: int = DEFAULT_PATH_WIDTH
    human_units: bool = True
    parallel: bool = True
    tui: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.metrics:
            raise NoMetricSelectedError()
        if self.watch_interval is not None and (
            isinstance(self.watch_interval, bool)
            or not isinstance(self.watch_interval, int)
            or self.watch_interval <= 0
        ):
            raise InvalidIntervalError(self.watch_interval)
        # Canonical output order regardless of how metrics were requested
        ordered = tuple(kind for kind in MetricKind if kind in self.metrics)
        object.__setattr__(self, "metrics", ordered)

    @property
    def watch(self) -> bool:
        """Whether the run refreshes until cancelled."""
        return self.watch_interval is not None


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting with status 2."""

    def error(self, message: str) -> NoReturn:
        if message.startswith("unrecognized arguments"):
            raise UnknownFlagError(f"Unknown option: {message.split(':', 1)[1].strip()}")
        if "--watch" in message:
            raise InvalidIntervalError(message="--watch requires a value (seconds)")
        raise ConfigError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; help is handled by the caller."""
    parser = _ArgumentParser(
        prog="sysmon",
        description="A lightweight tool to monitor CPU, memory, disk and process usage.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-c", "--cpu", action="store_true", help="Display CPU usage and top processes")
    parser.add_argument("-m", "--memory", action="store_true", help="Display memory usage and top processes")
    parser.add_argument("-d", "--disk", action="store_true", help="Display disk usage by mount point")
    parser.add_argument("-a", "--all", action="store_true", help="Display all metrics (CPU, memory, disk)")
    parser.add_argument(
        "-w", "--watch", metavar="SECONDS", help="Continuous monitoring with refresh interval"
    )
    parser.add_argument("-n", "--top", metavar="N", help=f"Number of top processes (default {DEFAULT_TOP_N})")
    parser.add_argument("--bytes", action="store_true", help="Show raw byte counts instead of KiB/MiB/GiB")
    parser.add_argument("--tui", action="store_true", help="Full-screen watch view")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("-h", "--help", action="store_true", help="Show this help message")
    return parser


def parse_positive_int(value: str | None) -> int | None:
    """Parse a strictly positive decimal integer; None for anything else."""
    if value is None or not _POSITIVE_INT_RE.match(value.strip()):
        return None
    number = int(value)
    return number if number > 0 else None


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Turn parsed arguments into a MonitorConfig, validating as it goes."""
    watch_interval = None
    if args.watch is not None:
        watch_interval = parse_positive_int(args.watch)
        if watch_interval is None:
            raise InvalidIntervalError(args.watch)
    elif args.tui:
        watch_interval = DEFAULT_TUI_INTERVAL

    top_n = DEFAULT_TOP_N
    if args.top is not None:
        top_n = parse_positive_int(args.top)
        if top_n is None:
            raise ConfigError(f"Top process count must be a positive number, got {args.top!r}")

    if args.all:
        metrics = tuple(MetricKind)
    else:
        selected = {MetricKind.CPU: args.cpu, MetricKind.MEMORY: args.memory, MetricKind.DISK: args.disk}
        metrics = tuple(kind for kind, wanted in selected.items() if wanted)

    return MonitorConfig(
        metrics=metrics,
        watch_interval=watch_interval,
        top_n=top_n,
        human_units=not args.bytes,
        tui=args.tui,
        verbose=args.verbose,
    )


def build_config(argv: Sequence[str]) -> MonitorConfig:
    """Parse ``argv`` straight into a MonitorConfig."""
    return config_from_args(build_parser().parse_args(list(argv)))
