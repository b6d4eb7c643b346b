"""Command-line entry point."""

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from hostmon.app import HostmonApp
from hostmon.config import BindAddress, MonitorConfig, build_config
from hostmon.console import ConsolePrinter
from hostmon.cpu import CpuSampler
from hostmon.errors import ConfigError, UnsupportedPlatformError
from hostmon.logging_config import configure_logging
from hostmon.metrics import MetricsServer
from hostmon.monitor import ResourceMonitor

LOGGER = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostmon",
        description="Sample host CPU and memory usage and expose it for scraping",
    )
    parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=1,
        help="Sampling interval in seconds (default 1)",
    )
    parser.add_argument(
        "--metrics",
        metavar="HOST:PORT",
        default=None,
        help="Serve Prometheus /metrics and the JSON API on this address",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of processes shown in the dashboard listing",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Print a text report every tick instead of running the dashboard",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default INFO)")
    parser.add_argument("--log-file", default=None, help="Also log to this rotating file")
    parser.add_argument(
        "--max-failures",
        type=int,
        default=None,
        help="Stop sampling after this many consecutive failed ticks",
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None) -> MonitorConfig:
    """Parse arguments into a validated MonitorConfig."""
    args = build_parser().parse_args(argv)
    return build_config(
        interval=args.interval,
        metrics=BindAddress.parse(args.metrics) if args.metrics else None,
        top_n=args.top,
        plain=args.plain,
        log_level=args.log_level,
        log_file=args.log_file,
        max_consecutive_failures=args.max_failures,
    )


def run_plain(monitor: ResourceMonitor, printer: ConsolePrinter) -> None:
    """Print each new tick until interrupted or the monitor stops."""
    while monitor.is_running:
        printer.print_latest()
        time.sleep(0.2)
    printer.print_latest()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the hostmon command."""
    try:
        config = parse_config(argv)
    except ConfigError as exc:
        print(f"hostmon: {exc}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(config.log_level, config.log_file, dashboard=not config.plain)

    try:
        sampler = CpuSampler()
    except UnsupportedPlatformError as exc:
        LOGGER.error("%s", exc)
        return EXIT_USAGE

    monitor = ResourceMonitor(
        interval=config.interval,
        sampler=sampler,
        max_consecutive_failures=config.max_consecutive_failures,
    )
    server: MetricsServer | None = None
    if config.metrics is not None:
        server = MetricsServer(monitor, config.metrics.host, config.metrics.port)
        try:
            server.start()
        except OSError as exc:
            LOGGER.error("Metrics server could not start: %s", exc)
            return EXIT_FAILURE

    LOGGER.info("Sampling every %ds. Press Ctrl+C to stop.", config.interval)
    try:
        if config.plain:
            monitor.start()
            run_plain(monitor, ConsolePrinter(monitor))
        else:
            HostmonApp(monitor, top_n=config.top_n).run()
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, shutting down")
    finally:
        monitor.stop()
        if server is not None:
            server.stop()

    if monitor.gave_up:
        LOGGER.error("Sampling stopped after %d consecutive failed ticks", monitor.consecutive_failures)
        return EXIT_FAILURE
    return 0


if __name__ == "__main__":
    sys.exit(main())
