"""CLI entry point for DirStore."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from dirstore.config import DirStoreConfig, load_config
from dirstore.destroy import remove_empty_directories
from dirstore.logging_config import configure_logging
from dirstore.server import create_app

logger = logging.getLogger("dirstore")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="dirstore",
        description="DirStore - S3-compatible object storage on a local directory tree",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("dirstore.yaml"),
        help="Path to YAML configuration file (default: dirstore.yaml)",
    )
    parser.add_argument("--host", type=str, default=None, help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (overrides config)")
    parser.add_argument(
        "--root-dir",
        type=str,
        default=None,
        help="Root of the bucket/key tree (overrides storage.local.root_dir)",
    )
    parser.add_argument(
        "--tmp-dir",
        type=str,
        default=None,
        help="Working directory for multipart sessions (overrides storage.tmp_dir)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=int,
        default=None,
        help="Graceful shutdown timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Remove empty directories under the storage root once and exit",
    )
    return parser.parse_args(argv)


def apply_overrides(config: DirStoreConfig, args: argparse.Namespace) -> DirStoreConfig:
    """Copy non-None CLI values onto the loaded config."""
    overrides = {
        ("server", "host"): args.host,
        ("server", "port"): args.port,
        ("server", "log_level"): args.log_level,
        ("server", "log_format"): args.log_format,
        ("server", "shutdown_timeout"): args.shutdown_timeout,
        ("storage", "root_dir"): args.root_dir,
        ("storage", "tmp_dir"): args.tmp_dir,
    }
    for (section, name), value in overrides.items():
        if value is not None:
            setattr(getattr(config, section), name, value)
    return config


def sweep(config: DirStoreConfig) -> int:
    """Run the empty-directory cleanup over the storage root.

    Returns:
        The number of directories removed.
    """
    removed = remove_empty_directories(
        Path(config.storage.root_dir), config.storage.max_cleanup_passes
    )
    logger.info("Removed %d empty directories under %s", len(removed), config.storage.root_dir)
    return len(removed)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the DirStore CLI.

    Loads configuration, applies CLI overrides, and either runs a one-off
    sweep or starts the server with uvicorn.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Basic stderr logging until the configured format is known
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    apply_overrides(config, args)
    configure_logging(level=config.server.log_level, fmt=config.server.log_format)

    if args.sweep:
        sweep(config)
        return

    logger.info(
        "Starting DirStore on %s:%d (root=%s)",
        config.server.host,
        config.server.port,
        config.storage.root_dir,
    )

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
