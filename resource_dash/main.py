from __future__ import annotations

import argparse
import asyncio
import json
import logging

import uvicorn

from resource_dash.config import load_config
from resource_dash.context import DashboardContext
from resource_dash.logging_utils import configure_logging, resolve_log_level
from resource_dash.schema import validate_payload
from resource_dash.server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resource Dash host metrics dashboard")
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file (defaults apply when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument("--host", help="Override the configured listen address")
    parser.add_argument("--port", type=int, help="Override the configured port")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print a single stats snapshot as JSON, then exit",
    )
    parser.add_argument(
        "--dump-json",
        help="With --once, also write the JSON snapshot to a file",
    )
    return parser


def run_once(context: DashboardContext, pretty: bool, dump_path: str | None) -> int:
    logger = logging.getLogger("resource_dash")
    try:
        stats = asyncio.run(context.aggregator.build_snapshot())
    finally:
        context.close()
    payload = stats.to_dict()
    schema_errors = validate_payload(payload)
    if schema_errors:
        logger.warning("Schema validation failed with %s errors.", len(schema_errors))
        logger.debug("Schema errors: %s", schema_errors)
    else:
        logger.info("Schema validation passed.")
    payload_json = json.dumps(payload, indent=2) if pretty else json.dumps(payload)
    if dump_path:
        with open(dump_path, "w", encoding="utf-8") as handle:
            handle.write(payload_json)
    print(payload_json)
    return 1 if schema_errors else 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("resource_dash")
    config = load_config(args.config)
    context = DashboardContext.from_config(config)

    if args.once:
        return run_once(context, level <= logging.DEBUG, args.dump_json)

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Resource Dash listening on http://%s:%s", host, port)
    uvicorn.run(
        create_app(context),
        host=host,
        port=port,
        log_config=None,
        log_level=logging.getLevelName(max(level, logging.INFO)).lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
