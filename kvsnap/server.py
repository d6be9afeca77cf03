#!/usr/bin/env python3
"""
KV-Snapshot Server Entry Point

This is the main entry point for starting the KV-Snapshot server.

Usage:
    python -m kvsnap.server                          # Default settings (0.0.0.0:8080)
    python -m kvsnap.server --port 9090              # Custom port
    python -m kvsnap.server --interval 30            # Snapshot every 30 seconds
    python -m kvsnap.server --snapshot-dir /var/tmp  # Custom snapshot directory
    python -m kvsnap.server --debug                  # Enable debug logging

Environment Variables:
    KV_SNAP_HOST                - Server bind address
    PORT / KV_SNAP_PORT         - Server port
    KV_SNAP_PERSIST_INTERVAL    - Seconds between snapshots
    KV_SNAP_SNAPSHOT_DIR        - Snapshot directory
    KV_SNAP_DEBUG               - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys

from .config.settings import settings
from .network.tcp_server import KVServer
from .service import KVService


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="KV-Snapshot: In-Memory Key-Value Store with Durable Snapshots",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--interval",
        type=int,
        default=settings.PERSIST_INTERVAL,
        help="Seconds between snapshots",
    )

    parser.add_argument(
        "--snapshot-dir",
        type=str,
        default=settings.SNAPSHOT_DIR,
        help="Directory holding snapshot files",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def main() -> None:
    """Main entry point for the server."""
    args = parse_args()

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # The service restores the latest snapshot while being constructed
    service = KVService(interval=args.interval, snapshot_dir=args.snapshot_dir)
    server = KVServer(host=args.host, port=args.port, service=service)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        await server.stop()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s))
            )

    logger.info("Starting KV-Snapshot server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Snapshot interval: {args.interval}s")
    logger.info(f"  Snapshot dir: {args.snapshot_dir}")

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        loop.run_until_complete(server.stop())
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except Exception:
            pass
        loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
