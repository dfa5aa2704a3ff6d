"""sysmon - command line entry point."""

import logging
import sys
from collections.abc import Sequence

from sysmon.config import MonitorConfig, build_parser, config_from_args
from sysmon.errors import ConfigError
from sysmon.monitor import RefreshLoop, Sampler

logger = logging.getLogger(__name__)


def log_handler(tui: bool) -> logging.Handler:
    """stderr for plain runs; the Textual devtools console while Textual owns the terminal."""
    if tui:
        from textual.logging import TextualHandler

        return TextualHandler()
    return logging.StreamHandler(sys.stderr)


def configure_logging(verbose: bool, tui: bool = False) -> None:
    """Log away from stdout so it stays a clean report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[log_handler(tui)],
    )


def run(config: MonitorConfig) -> int:
    """Run one configured session and return its exit code."""
    if config.tui:
        # Imported lazily; plain runs never pay for Textual
        from sysmon.app import run_tui

        return run_tui(config)

    loop = RefreshLoop(config, Sampler.from_config(config))
    return loop.run()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the sysmon command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        if not argv or args.help:
            parser.print_help()
            return 0
        config = config_from_args(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print("Use -h or --help for usage information", file=sys.stderr)
        return 1

    configure_logging(config.verbose, tui=config.tui)
    logger.debug("starting with %s", config)
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
