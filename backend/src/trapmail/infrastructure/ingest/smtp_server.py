"""SMTP capture listener startup.

Starts an aiosmtpd server whose handler stores every received message in the
mail store.

Usage:
    trapmail-smtpd [--host HOST] [--port PORT] [--store DIR]

Environment Variables:
    TRAPMAIL_SMTP_HOST: Bind address (default: 127.0.0.1)
    TRAPMAIL_SMTP_PORT: Listen port (default: 2525)
    TRAPMAIL_STORE: Store directory (default: platform temp directory)
    TRAPMAIL_LOG_LEVEL: Log level (default: WARNING)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from aiosmtpd.controller import Controller

from ...config import get_settings, resolve_store_dir
from ...domain.mail.errors import StoreDirectoryMissing
from ...observability.logging_config import configure_logging
from .sendmail_cli import EX_CANTCREAT, EX_OK, EX_OSERR
from .smtp_handler import TrapmailSMTPHandler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="trapmail-smtpd",
        description="SMTP listener that stores mail in the trapmail store.",
    )
    parser.add_argument("--host", default=settings.smtp_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.smtp_port, help="Listen port")
    parser.add_argument("--store", type=Path, default=None,
                        help="Store directory (default: TRAPMAIL_STORE per message)")
    return parser


def create_controller(host: str, port: int, store_dir: Optional[Path] = None) -> Controller:
    handler = TrapmailSMTPHandler(store_dir=store_dir)
    return Controller(
        handler,
        hostname=host,
        port=port,
        # Enable SMTPUTF8 for international email addresses
        enable_SMTPUTF8=True,
    )


async def serve(host: str, port: int, store_dir: Optional[Path] = None) -> None:
    """Run the listener until cancelled."""
    controller = create_controller(host, port, store_dir)
    controller.start()

    logger.info(f"SMTP capture listener started on {host}:{port}")
    logger.info(f"Storing mail in {store_dir or resolve_store_dir()}")

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        controller.stop()
        logger.info("SMTP capture listener stopped")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    if args.store is not None and not args.store.is_dir():
        logger.error(str(StoreDirectoryMissing(args.store)))
        return EX_CANTCREAT

    try:
        asyncio.run(serve(args.host, args.port, args.store))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
    except OSError as e:
        logger.error(f"SMTP capture listener failed: {e}", exc_info=True)
        return EX_OSERR
    return EX_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
