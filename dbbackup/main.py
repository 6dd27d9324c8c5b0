"""Command line entry point for database backup and restore."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence, TextIO

from dbbackup import __version__
from dbbackup.core.config import load_config
from dbbackup.core.connectors.loader import list_connectors
from dbbackup.core.logging import register_secrets, setup_logging
from dbbackup.core.notifier import build_notifier
from dbbackup.domain.enums import JobCommand, JobStatus
from dbbackup.domain.errors import ConfigError, ConfigLoadError
from dbbackup.domain.job import BackupJob
from dbbackup.services.pipeline import PipelineOrchestrator
from dbbackup.services.resolver import BackendResolver, DeclarativeSelection, InteractiveSelection

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130

_EXIT_CODES = {
    JobStatus.SUCCEEDED: EXIT_OK,
    JobStatus.FAILED: EXIT_FAILED,
    JobStatus.CANCELLED: EXIT_CANCELLED,
}


def build_parser() -> argparse.ArgumentParser:
    supported = ", ".join(f"{item['type']} ({item['category']})" for item in list_connectors())
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", required=True, metavar="PATH", help="Path to the JSON configuration file.")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    parser = argparse.ArgumentParser(
        prog="dbbackup",
        description="Back up or restore a database to local disk or cloud object storage.",
        epilog=f"Supported backends: {supported}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="{backup,restore}", required=True)
    subparsers.add_parser("backup", parents=[common], help="Dump the database and store the artifact.")
    subparsers.add_parser("restore", parents=[common], help="Fetch the newest (or RestoreKey) backup and restore it.")
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else None)
    logger = logging.getLogger("dbbackup")

    try:
        config = load_config(args.config)
    except ConfigLoadError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    register_secrets(config.secret_values())

    in_stream = stdin or sys.stdin
    selection = (
        InteractiveSelection(stdin=in_stream, stdout=stdout)
        if stdin is not None or in_stream.isatty()
        else DeclarativeSelection()
    )
    resolver = BackendResolver(config, selection)
    try:
        database, storage = resolver.resolve()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    try:
        os.makedirs(storage.local_path, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create working directory %s: %s", storage.local_path, exc)
        return EXIT_CONFIG_ERROR

    command = JobCommand(args.command)
    job = BackupJob.create(
        command,
        storage.local_path,
        remote_key=config.restore_key if command is JobCommand.RESTORE else None,
    )
    orchestrator = PipelineOrchestrator(
        database,
        storage,
        logger=logger,
        notifier=build_notifier(config),
        keep_working_file=config.keep_working_file,
    )

    try:
        job = asyncio.run(orchestrator.run(job))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_CANCELLED
    return _EXIT_CODES.get(job.status, EXIT_FAILED)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
