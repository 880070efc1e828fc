"""CLI interface for dumping etcd."""

import argparse
import asyncio
import sys
from pathlib import Path

from etcd_dump.core.config import settings
from etcd_dump.core.exceptions import ConfigError, EtcdDumpError
from etcd_dump.core.limits import raise_fd_limit
from etcd_dump.core.logging import configure_logging, get_logger
from etcd_dump.decoder.process import DecoderProcessManager
from etcd_dump.snapshot import orchestrator
from etcd_dump.snapshot.models import SnapshotStats
from etcd_dump.store.client import StoreClient

logger = get_logger(module="cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="etcd-dump",
        description=(
            "Dump every key of an etcd instance to a directory, "
            "decoding values with the ouger server"
        ),
    )
    parser.add_argument(
        "--etcd-endpoint",
        required=True,
        help="etcd endpoint of etcd instance to dump (host:port)",
    )
    parser.add_argument(
        "--output-dir",
        required=True,
        help="Dump output dir (must exist)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def validate_output_dir(raw: str) -> Path:
    """Check that the output directory exists and is a directory.

    Raises:
        ConfigError: If the path is missing or not a directory
    """
    path = Path(raw)
    if not path.exists():
        raise ConfigError(f"output dir {raw} does not exist")
    if not path.is_dir():
        raise ConfigError(f"output dir {raw} is not a directory")
    return path


def build_decoder() -> DecoderProcessManager:
    """Create the decoder manager from settings."""
    return DecoderProcessManager(
        executable=settings.DECODER_EXECUTABLE,
        port=settings.DECODER_PORT,
        args=settings.DECODER_ARGS,
        startup_timeout=settings.DECODER_STARTUP_TIMEOUT,
        stop_timeout=settings.DECODER_STOP_TIMEOUT,
        request_timeout=settings.DECODER_REQUEST_TIMEOUT,
    )


async def dump(etcd_endpoint: str, output_dir: Path) -> SnapshotStats:
    """Run the decoder, connect to etcd and dump every key.

    The decoder is stopped on every exit path, including a failed store
    connection.
    """
    async with build_decoder() as decoder:
        store = await StoreClient.connect(
            etcd_endpoint, default_port=settings.ETCD_DEFAULT_PORT
        )
        try:
            return await orchestrator.run(
                store, decoder, output_dir, prefix=settings.SNAPSHOT_PREFIX
            )
        finally:
            store.close()


def main() -> int:
    """Main entry point for the dump CLI."""
    parser = build_parser()
    args = parser.parse_args()

    configure_logging(
        level="debug" if args.verbose else settings.LOG_LEVEL,
        json_logs=settings.JSON_LOGS,
    )

    try:
        output_dir = validate_output_dir(args.output_dir)
    except ConfigError as e:
        print(f"Error: {e.describe()}", file=sys.stderr)
        return EXIT_USAGE

    try:
        raise_fd_limit()
        stats = asyncio.run(dump(args.etcd_endpoint, output_dir))
    except EtcdDumpError as e:
        logger.error("dump_failed", stage=e.stage, error=str(e))
        print(f"Error: {e.describe()}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("dump_interrupted")
        return 130

    print(
        f"Dumped {stats.files_written} of {stats.keys_listed} keys to {output_dir}"
        f" ({stats.keys_skipped} vanished)"
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
