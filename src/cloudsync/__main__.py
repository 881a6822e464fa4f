"""CLI entry point for CloudSync.

Runs the loop services (``exporter``, ``worker``) once or continuously, and
exposes the on-demand operations (``import``, ``enqueue``).

Examples:
    ```bash
    python -m cloudsync exporter --once
    python -m cloudsync worker --log-level DEBUG
    python -m cloudsync import postgresql://sync:secret@db/shop merge --no-dry-run
    python -m cloudsync enqueue import shop-cloud --strategy overwrite
    ```

Exit codes: ``0`` success, ``1`` operation failed, ``2`` usage error (for
``import``: no connection string as argument or in ``CLOUD_SYNC_TEST_CONN``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

import asyncpg

from cloudsync.core import LocalStore, start_metrics_server
from cloudsync.core.base_service import BaseService
from cloudsync.core.exceptions import CloudSyncError
from cloudsync.core.logger import Logger, StructuredFormatter
from cloudsync.core.yaml import load_yaml
from cloudsync.models.constants import ConflictPolicy, JobType, ServiceName
from cloudsync.services.common.queries import enqueue_job, register_connection
from cloudsync.services.common.schema import ensure_sync_schema
from cloudsync.services.exporter import Exporter
from cloudsync.services.importer import Importer
from cloudsync.services.worker import Worker


CONFIG_BASE = Path("config")
STORE_CONFIG = CONFIG_BASE / "store.yaml"
IMPORTER_CONFIG = CONFIG_BASE / "services" / "importer.yaml"
CONN_ENV_VAR = "CLOUD_SYNC_TEST_CONN"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


class ServiceEntry(NamedTuple):
    """Registry entry mapping a service to its class and default config path."""

    cls: type[BaseService[Any]]
    config_path: Path


SERVICE_REGISTRY: dict[str, ServiceEntry] = {
    ServiceName.EXPORTER: ServiceEntry(Exporter, CONFIG_BASE / "services" / "exporter.yaml"),
    ServiceName.WORKER: ServiceEntry(Worker, CONFIG_BASE / "services" / "worker.yaml"),
}

logger = Logger("cli")


# ---------------------------------------------------------------------------
# Loop services
# ---------------------------------------------------------------------------


async def run_service(
    service_name: str,
    service_class: type[BaseService[Any]],
    store: LocalStore,
    service_dict: dict[str, Any],
    *,
    once: bool,
) -> int:
    """Run a service in one-shot or continuous mode.

    In continuous mode a Prometheus metrics server is started (when
    enabled) and the service runs until SIGINT or SIGTERM.
    """
    if service_dict:
        service = service_class.from_dict(service_dict, store=store)
    else:
        service = service_class(store=store)

    if once:
        try:
            async with service:
                await service.run()
            logger.info(f"{service_name}_completed")
            return EXIT_OK
        except Exception as e:  # CLI error boundary for one-shot mode
            logger.error(f"{service_name}_failed", error=str(e))
            return EXIT_FAILED

    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return EXIT_OK
    except Exception as e:  # CLI error boundary for continuous mode
        logger.error(f"{service_name}_failed", error=str(e))
        return EXIT_FAILED
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


# ---------------------------------------------------------------------------
# On-demand operations
# ---------------------------------------------------------------------------


async def run_import(
    store: LocalStore,
    importer_dict: dict[str, Any],
    connection_string: str,
    strategy: str,
    *,
    dry_run: bool,
) -> int:
    """Run one bulk import and print its result as JSON."""
    importer = Importer.from_dict(importer_dict, store=store)
    try:
        result = await importer.import_from_postgres(
            connection_string, strategy=strategy, dry_run=dry_run
        )
    except (CloudSyncError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error("import_failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    print(json.dumps(result.to_dict(), indent=2))
    return EXIT_OK


async def run_enqueue(
    store: LocalStore,
    job_type: str,
    connection_id: str,
    *,
    connection_string: str | None,
    strategy: str | None,
    dry_run: bool,
) -> int:
    """Register the connection if given, then enqueue one job and print it."""
    await ensure_sync_schema(store)
    if connection_string:
        await register_connection(store, connection_id, connection_string)
    job = await enqueue_job(
        store, job_type, connection_id, dry_run=dry_run, strategy=strategy
    )
    logger.info("job_enqueued", job_id=job.id, job_type=job.job_type, dry_run=job.dry_run)
    print(json.dumps({"id": job.id, "job_type": job.job_type, "status": str(job.status)}))
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--store-config",
        type=Path,
        default=STORE_CONFIG,
        help=f"Local store config path (default: {STORE_CONFIG})",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    parser = argparse.ArgumentParser(prog="cloudsync", description="CloudSync Runner")
    commands = parser.add_subparsers(dest="command", required=True)

    for name in SERVICE_REGISTRY:
        service = commands.add_parser(name, parents=[common], help=f"Run the {name} service")
        service.add_argument(
            "--config",
            type=Path,
            help=f"Service config path (default: config/services/{name}.yaml)",
        )
        service.add_argument(
            "--once",
            action="store_true",
            help="Run once and exit (default: run continuously)",
        )

    importer = commands.add_parser("import", parents=[common], help="Import from PostgreSQL")
    importer.add_argument(
        "connection_string",
        nargs="?",
        help=f"Remote DSN (default: ${CONN_ENV_VAR})",
    )
    importer.add_argument(
        "strategy",
        nargs="?",
        default=ConflictPolicy.MERGE.value,
        help="skip | overwrite | merge (default: merge)",
    )
    importer.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Only count remote rows (default: on)",
    )
    importer.add_argument(
        "--config",
        type=Path,
        default=IMPORTER_CONFIG,
        help=f"Importer config path (default: {IMPORTER_CONFIG})",
    )

    enqueue = commands.add_parser("enqueue", parents=[common], help="Queue a sync job")
    enqueue.add_argument("job_type", choices=[t.value for t in JobType])
    enqueue.add_argument("connection_id")
    enqueue.add_argument(
        "--connection-string",
        help="Register or replace the connection descriptor before enqueueing",
    )
    enqueue.add_argument("--strategy", help="Conflict policy for import jobs")
    enqueue.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Do not write to the target store (default: on)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install ``StructuredFormatter`` on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.debug("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


async def dispatch(args: argparse.Namespace, store: LocalStore) -> int:
    if args.command in SERVICE_REGISTRY:
        entry = SERVICE_REGISTRY[args.command]
        if args.command == ServiceName.WORKER:
            await ensure_sync_schema(store)
        return await run_service(
            service_name=args.command,
            service_class=entry.cls,
            store=store,
            service_dict=_load_yaml_dict(args.config or entry.config_path),
            once=args.once,
        )

    if args.command == "import":
        return await run_import(
            store,
            _load_yaml_dict(args.config),
            args.connection_string,
            args.strategy,
            dry_run=args.dry_run,
        )

    return await run_enqueue(
        store,
        args.job_type,
        args.connection_id,
        connection_string=args.connection_string,
        strategy=args.strategy,
        dry_run=args.dry_run,
    )


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, open the local store, run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "import":
        args.connection_string = args.connection_string or os.environ.get(CONN_ENV_VAR)
        if not args.connection_string:
            print(
                "Usage: cloudsync import <connection_string> [strategy] [--no-dry-run]",
                file=sys.stderr,
            )
            return EXIT_USAGE

    store_dict = _load_yaml_dict(args.store_config)
    store = LocalStore.from_dict(store_dict) if store_dict else LocalStore()

    try:
        async with store:
            return await dispatch(args, store)
    except CloudSyncError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
