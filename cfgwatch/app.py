"""
app.py
------

Command-line entry point: watch a client config file for one destination
service and log every policy set it installs.

    cfgwatch --file ./client_config.json --service svcA

Arguments fall back to the CFGWATCH_* environment variables (see
`cfgwatch.settings`).
"""

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .client.circuit_breaker import with_circuit_breaker
from .client.retry import with_retry_policy
from .client.rpc_timeout import with_rpc_timeout
from .client.watcher import ClientConfigWatcher
from .filewatcher import FileWatcher
from .log import configure_logging
from .settings import load_settings

logger = logging.getLogger(__name__)

SUMMARY_CALLBACK_KEY = "summary"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Watch a client config file and apply policies live.")
    parser.add_argument("--file", default=settings.config_file,
                        help="config file to watch (CFGWATCH_CONFIG_FILE)")
    parser.add_argument("--service", default=settings.service,
                        help="destination service key (CFGWATCH_SERVICE)")
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--log-file", default=settings.log_file)
    parser.add_argument("--stop-timeout", type=float, default=settings.stop_timeout)
    args = parser.parse_args(argv)
    if not args.file or not args.service:
        parser.error("--file and --service are required (or set CFGWATCH_CONFIG_FILE / CFGWATCH_SERVICE)")
    return args


def run(args: argparse.Namespace, stop_event: threading.Event) -> None:
    """Wire watcher, monitor and consumers; block until *stop_event* is set."""
    fw = FileWatcher(args.file, stop_timeout=args.stop_timeout)
    watcher = ClientConfigWatcher(fw, args.service)
    retry = with_retry_policy(watcher)
    cb = with_circuit_breaker(watcher)
    timeouts = with_rpc_timeout(watcher)

    def log_summary() -> None:
        config = watcher.config()
        logger.info(
            "policies refreshed",
            extra={
                "service": watcher.to_service(),
                "retry_methods": sorted(config.retry),
                "circuitbreaker_methods": sorted(config.circuitbreaker),
                "timeout_methods": sorted(config.timeout),
                "wildcard_rpc_timeout_ms": timeouts.timeouts("*").rpc_timeout_ms,
            },
        )

    watcher.add_callback(SUMMARY_CALLBACK_KEY, log_summary)
    watcher.start()
    fw.start_watching()
    try:
        while not stop_event.wait(1.0):
            if not fw.is_watching:
                logger.warning("watcher for %s stopped on its own, exiting", fw.file_path)
                break
    finally:
        watcher.stop()
        fw.stop_watching()
        cb.close()
        logger.info("retry policies at exit: %s", retry.methods())


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    stop_event = threading.Event()

    def handle_exit(signum, frame):
        logger.info("Received signal %s, shutting down...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    run(args, stop_event)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
