"""Relay entrypoint. Loads config, builds the app, runs uvicorn."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

import uvicorn
from loguru import logger

from gymrelay import __version__
from gymrelay.config import Config, cfg, load_config_with_env
from gymrelay.core.errors import ConfigurationError
from gymrelay.server import create_app

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# stdlib loggers that uvicorn, fastapi and httpx write to
_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "httpx")


class LoguruHandler(logging.Handler):
    """Forwards stdlib log records to loguru, keeping the original logger name and location."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        text = record.getMessage()
        origin = {"name": record.name, "function": record.funcName, "line": record.lineno}
        logger.patch(lambda r: r.update(origin)).opt(exception=record.exc_info).log(level, text)


def _route_stdlib_logging(level: str) -> None:
    handler = LoguruHandler()
    logging.basicConfig(handlers=[handler], level=0, force=True)
    for name in _STDLIB_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.propagate = False
        std_logger.setLevel(level)
    # one INFO line per webhook request otherwise
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLevelName(level)))


def resolve_log_level(verbose: bool = False) -> str:
    """--verbose wins; then LOG_LEVEL; INFO otherwise."""
    if verbose:
        return "DEBUG"
    requested = os.environ.get("LOG_LEVEL", "").strip().upper()
    return requested if requested in LOG_LEVELS else "INFO"


def setup_logging(verbose: bool = False) -> None:
    """Send all relay and server logs through a single loguru stderr sink."""
    level = resolve_log_level(verbose)
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    _route_stdlib_logging(level)


def reload_config(config_path: Path) -> Config:
    """Load config from path into the global cfg. Raises ConfigurationError."""
    cfg.reload(load_config_with_env(config_path))
    return cfg


def _log_banner(config: Config, host: str, port: int) -> None:
    logger.info("--------------------------------------------------")
    logger.info("GYM RELAY READY (v{})", __version__)
    logger.info("Listening on {}:{}", host, port)
    logger.info("Admin secret configured")
    logger.info("Persisting hardware events to {}", config.webhook_url)
    logger.info("--------------------------------------------------")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gymrelay",
        description="Gym relay: hardware bridges <-> admin dashboards",
    )
    parser.add_argument("--config", "-c", type=Path, default=Path("config.yaml"), help="YAML config file (optional, default: config.yaml)")
    parser.add_argument("--host", help="Bind address (overrides config and HOST)")
    parser.add_argument("--port", "-p", type=int, help="Listen port (overrides config and PORT)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = reload_config(args.config)
    except ConfigurationError as exc:
        logger.critical("FATAL ERROR: {}", exc.message)
        sys.exit(1)

    if not config.webhook_secret:
        logger.warning("WEBHOOK_SECRET is not set; hardware event persistence will be rejected by the store")

    host = args.host or config.host
    port = args.port or config.port
    app = create_app(config)
    _log_banner(config, host, port)
    _serve(app, host, port, config)


def _serve(app: Any, host: str, port: int, config: Config) -> None:
    uvicorn.run(
        app,
        host=host,
        port=port,
        ws_ping_interval=config.ping_interval,
        ws_ping_timeout=config.ping_timeout,
        log_config=None,
    )


if __name__ == "__main__":
    main()
