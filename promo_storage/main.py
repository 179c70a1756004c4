from __future__ import annotations

import json
import signal
import sys
from pathlib import Path
from typing import List, Optional

import psycopg
import typer
from pydantic import ValidationError

from promo_storage.config import Settings, StorageMode, get_settings
from promo_storage.domain.models import NotFound
from promo_storage.infrastructure.db_factory import PoolManager, get_sync_pool
from promo_storage.infrastructure.promotions_dao import PromotionsDao
from promo_storage.ingest.watcher import DebouncedDirectoryWatcher, WatcherStartupError
from promo_storage.orchestrator import StorageUpdater, available_modes, build_strategy
from promo_storage.reporter import print_promotion, print_reports
from promo_storage.services import PromotionsService
from promo_storage.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

app = typer.Typer(help="Watch a drop directory and ingest promotion CSV files into PostgreSQL.")

MODE_HELP = f"Storage mode ({', '.join(available_modes())}); defaults to STORAGE_MODE."


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ValidationError as exc:
        typer.echo(f"Invalid configuration:\n{exc}", err=True)
        raise typer.Exit(code=2) from exc
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return settings


def _open_store(settings: Settings) -> PromotionsDao:
    try:
        dao = PromotionsDao(get_sync_pool(), batch_size=settings.insert_batch_size)
        dao.ensure_schema()
    except psycopg.Error as exc:
        log.critical("Failed to open the promotions store: %s", exc)
        raise typer.Exit(code=1) from exc
    return dao


def _resolve_mode(mode: Optional[str], settings: Settings) -> StorageMode:
    if mode is None:
        return settings.mode
    try:
        return StorageMode(mode.upper())
    except ValueError as exc:
        typer.echo(f"Unsupported mode '{mode}'. Available: {', '.join(available_modes())}", err=True)
        raise typer.Exit(code=2) from exc


def _raise_on_sigterm(signum, frame) -> None:
    del signum, frame
    raise KeyboardInterrupt


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = _load_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"input={settings.resolved_input_dir} mode={settings.mode.value} "
        f"debounce={settings.debounce_ms}ms queue={settings.queue_capacity} "
        f"batch={settings.insert_batch_size}"
    )


@app.command()
def run(
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help=MODE_HELP),
    input_dir: Optional[Path] = typer.Option(
        None, "--input-dir", "-i", help="Directory to watch (default from INPUT_DIR)."
    ),
) -> None:
    """
    Watch the input directory and ingest every dropped CSV file until interrupted.
    """
    settings = _load_settings()
    resolved_mode = _resolve_mode(mode, settings)
    strategy = build_strategy(resolved_mode, _open_store(settings))

    watcher = DebouncedDirectoryWatcher(
        input_dir or settings.resolved_input_dir, quiet_window_ms=settings.debounce_ms
    )
    try:
        watcher.start()
    except WatcherStartupError as exc:
        log.critical("%s: %s", exc, exc.__cause__)
        PoolManager().close_all()
        raise typer.Exit(code=1) from exc

    signal.signal(signal.SIGTERM, _raise_on_sigterm)
    updater = StorageUpdater(strategy, queue_capacity=settings.queue_capacity)
    try:
        updater.run(watcher.observe())
    finally:
        log.info("Shutting down the application...")
        watcher.stop()
        PoolManager().close_all()


@app.command()
def ingest(
    files: List[Path] = typer.Argument(..., help="Drop files to ingest once, in the given order."),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help=MODE_HELP),
) -> None:
    """
    Ingest the given files once, without watching, and print a report.
    """
    settings = _load_settings()
    resolved_mode = _resolve_mode(mode, settings)
    strategy = build_strategy(resolved_mode, _open_store(settings))
    updater = StorageUpdater(strategy, queue_capacity=settings.queue_capacity)
    try:
        reports = [updater.ingest_file(str(path.expanduser().resolve())) for path in files]
    finally:
        PoolManager().close_all()

    print_reports(reports)
    if not all(report.succeeded for report in reports):
        raise typer.Exit(code=1)


@app.command()
def lookup(
    key: str = typer.Argument(..., help="Promotion id (UUID) or sequence number."),
    as_json: bool = typer.Option(False, "--json", help="Print the promotion as JSON."),
) -> None:
    """
    Look up a promotion by id or by sequence number.
    """
    settings = _load_settings()
    service = PromotionsService(_open_store(settings))
    try:
        promotion = service.lookup(key)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    except NotFound as exc:
        typer.echo(f"Promotion with id '{key}' not found", err=True)
        raise typer.Exit(code=4) from exc
    except psycopg.Error as exc:
        typer.echo(f"Failed to get promotion: {key}. Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        PoolManager().close_all()

    rendered = service.render(promotion)
    if as_json:
        typer.echo(json.dumps(rendered))
    else:
        print_promotion(rendered)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
