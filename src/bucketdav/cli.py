"""Command-line interface for BucketDAV.

``bucketdav serve`` (the default) runs the WebDAV server. ``bucketdav check``
opens the configured object store, lists its top level once and exits
non-zero if the store cannot be reached, which makes it usable as a
deployment smoke test before the server is started.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

import uvicorn

from bucketdav.config import BucketDavConfig, load_config
from bucketdav.logging_config import configure_logging
from bucketdav.server import create_app
from bucketdav.storage import create_object_store

logger = logging.getLogger("bucketdav")

STORAGE_BACKENDS = ("memory", "sqlite", "s3")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    parser = argparse.ArgumentParser(
        prog="bucketdav",
        description="BucketDAV - WebDAV server over an object store",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "check"],
        help="'serve' runs the server (default), 'check' probes the store and exits",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("bucketdav.yaml"),
        help="Path to YAML configuration file (default: bucketdav.yaml)",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", default=None, help="Bind address (overrides config)")
    server.add_argument("--port", type=int, default=None, help="Listen port (overrides config)")
    server.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    server.add_argument("--log-format", default=None, choices=["text", "json"])
    server.add_argument(
        "--shutdown-timeout",
        type=int,
        default=None,
        help="Seconds to wait for in-flight requests on shutdown",
    )
    server.add_argument(
        "--no-auth",
        action="store_true",
        help="Disable HTTP Basic authentication",
    )

    storage = parser.add_argument_group("storage")
    storage.add_argument("--storage", default=None, choices=STORAGE_BACKENDS)
    storage.add_argument("--sqlite-path", default=None, help="SQLite database file")
    storage.add_argument("--s3-bucket", default=None, help="Upstream S3 bucket")
    storage.add_argument(
        "--page-size",
        type=_positive_int,
        default=None,
        help="Entries fetched per listing page during PROPFIND, COPY, MOVE and DELETE",
    )
    return parser.parse_args(argv)


def apply_overrides(config: BucketDavConfig, args: argparse.Namespace) -> BucketDavConfig:
    """Apply command-line values on top of the loaded configuration."""
    server = {
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
        "log_format": args.log_format,
        "shutdown_timeout": args.shutdown_timeout,
    }
    storage = {
        "backend": args.storage,
        "sqlite_path": args.sqlite_path,
        "s3_bucket": args.s3_bucket,
        "list_page_size": args.page_size,
    }
    updates = {
        "server": config.server.model_copy(
            update={k: v for k, v in server.items() if v is not None}
        ),
        "storage": config.storage.model_copy(
            update={k: v for k, v in storage.items() if v is not None}
        ),
    }
    if args.no_auth:
        updates["auth"] = config.auth.model_copy(update={"enabled": False})
    return config.model_copy(update=updates)


async def check_store(config: BucketDavConfig) -> int:
    """List the top level of the configured store once.

    Returns:
        The number of top-level entries seen on the first page.

    Raises:
        ValueError: The storage section is incomplete.
        Exception: Whatever the backend raises when it cannot be reached.
    """
    store = create_object_store(config.storage)
    await store.init()
    try:
        start = time.monotonic()
        page = await store.list("", delimiter="/", limit=config.storage.list_page_size)
        latency_ms = (time.monotonic() - start) * 1000
    finally:
        await store.close()
    logger.info(
        "Store %s reachable: %d top-level entries%s in %.1fms",
        config.storage.backend,
        len(page.entries),
        "+" if page.truncated else "",
        latency_ms,
    )
    return len(page.entries)


def main(argv: list[str] | None = None) -> None:
    """Load configuration, apply overrides, then serve or check."""
    args = parse_args(argv)

    # Plain stderr logging until the config says otherwise
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = apply_overrides(load_config(args.config), args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    configure_logging(level=config.server.log_level, fmt=config.server.log_format)

    if args.command == "check":
        try:
            asyncio.run(check_store(config))
        except Exception as exc:
            logger.error("Store check failed (%s): %s", config.storage.backend, exc)
            sys.exit(1)
        return

    if config.storage.backend == "s3" and not config.storage.s3_bucket:
        logger.error("storage.s3.bucket is required for the s3 backend")
        sys.exit(1)
    if not config.auth.enabled:
        logger.warning("Authentication is disabled; every client has full access")

    logger.info(
        "Starting BucketDAV on %s:%d (storage=%s, page_size=%d)",
        config.server.host,
        config.server.port,
        config.storage.backend,
        config.storage.list_page_size,
    )

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
