"""Argument parsing, configuration loading, and daemon bootstrap."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from .config import load_config
from .daemon import Daemon
from .exceptions import ConfigError, LvsSyncError, MalformedEventError, StartupError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lvs-pod-discovery",
        description="Keeps an LVS backend list in sync with Kubernetes pods, ramping new pods in gradually",
    )
    parser.add_argument(
        "-c", "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--kubeconfig",
        help="Path to a kubeconfig file (overrides kubernetes.kubeconfig)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Reconcile the LVS file against the current pods and exit",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    if args.kubeconfig:
        config = dataclasses.replace(
            config,
            kubernetes=dataclasses.replace(config.kubernetes, kubeconfig=args.kubeconfig),
        )

    configure_logging(config.logging)

    if args.validate:
        logger.info("Configuration is valid")
        return 0

    try:
        daemon = Daemon(config)
        if args.once:
            logger.info("Running single reconciliation (--once)")
            daemon.run_once()
        else:
            daemon.run()
    except StartupError as exc:
        logger.critical("Startup failed: %s", exc)
        return 1
    except MalformedEventError as exc:
        logger.critical("Unexpected watch payload: %s", exc)
        return 2
    except LvsSyncError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0

    return 0
