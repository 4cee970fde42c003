"""Command-line interface to start the Azure metrics exporter.

This CLI loads the configuration file, then either prints the metric
definitions available for every configured resource and exits, or serves
``/metrics`` over HTTP with uvicorn.

Usage
-----
    azure-metrics-exporter --config.file azure.yml --web.listen-address :9276
    azure-metrics-exporter --config.file azure.yml --list.definitions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import uvicorn

from ..config.models import AppConfig, EnvSettings
from ..domain.utils.naming import resource_labels
from ..errors import ConfigError, ExporterError
from ..observability import setup_logging
from .app import ExporterServer
from .http import create_app

logger = logging.getLogger(__name__)

DEFAULT_LISTEN_ADDRESS = ":9276"


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split ``[host]:port`` into a bind host and port.

    An empty host binds all interfaces.

    Examples
    --------
    >>> parse_listen_address(":9276")
    ('0.0.0.0', 9276)
    >>> parse_listen_address("[::1]:9000")
    ('::1', 9000)
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {address!r}, expected [host]:port")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


async def _list_definitions(cfg: AppConfig) -> Dict[str, List[str]]:
    server = ExporterServer(cfg)
    try:
        await server.start()
        return await server.collector.list_metric_definitions()
    finally:
        await server.stop()


def _print_definitions(definitions: Dict[str, List[str]]) -> None:
    for resource_id, metric_names in definitions.items():
        name = resource_labels(resource_id)["resource_name"] or resource_id
        logger.info("Resource: %s\n\nAvailable Metrics:", name)
        for metric_name in metric_names:
            logger.info("- %s", metric_name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Azure Monitor metrics exporter")
    parser.add_argument(
        "--config.file",
        dest="config_file",
        default="azure.yml",
        help="Azure exporter configuration file (default azure.yml)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=DEFAULT_LISTEN_ADDRESS,
        help="Address to listen on for web interface and telemetry",
    )
    parser.add_argument(
        "--list.definitions",
        dest="list_definitions",
        action="store_true",
        help="List available metric definitions for the configured resources and exit",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=[
            "CRITICAL",
            "ERROR",
            "WARNING",
            "INFO",
            "DEBUG",
        ],
        help="Logging level (overrides environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (once sets DEBUG)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entrypoint for the exporter.

    Exits with status 1 when the configuration cannot be loaded or, in
    listing mode, when any upstream call fails.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Determine effective log level
    env_level = EnvSettings().log_level.upper()
    effective_level = args.log_level or ("DEBUG" if args.verbose > 0 else env_level)
    setup_logging(effective_level)

    try:
        host, port = parse_listen_address(args.listen_address)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        cfg = AppConfig.load(Path(args.config_file))
    except ConfigError as exc:
        logger.error("cli.config.error: %s", exc)
        raise SystemExit(1) from exc

    if args.list_definitions:
        try:
            definitions = asyncio.run(_list_definitions(cfg))
        except ExporterError as exc:
            logger.error(
                "cli.list_definitions.failed: %s", exc, extra=exc.context()
            )
            raise SystemExit(1) from exc
        _print_definitions(definitions)
        return

    logger.info(
        "cli.listening", extra={"host": host, "port": port, "config": args.config_file}
    )
    uvicorn.run(
        create_app(cfg),
        host=host,
        port=port,
        log_level=effective_level.lower(),
    )


if __name__ == "__main__":
    main()
