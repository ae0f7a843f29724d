from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

import typer

from drivecache import load_config
from drivecache.config import AppConfig
from drivecache.errors import DriveCacheError
from drivecache.remote import DriveClient, MemoryRemoteStore, RemoteStore
from drivecache.storage import LocalMirror, MemoryMetadataStore, MetadataStore, SqliteMetadataStore
from drivecache.sync import BulkUploader, EvictionSweeper, Synchronizer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="drivecache CLI")

_CONFIG_OPTION = typer.Option(
    Path("config/drivecache.yaml"),
    "--config",
    help="Config file path.",
    exists=True,
    dir_okay=False,
    readable=True,
)


@dataclass(slots=True)
class Runtime:
    config: AppConfig
    synchronizer: Synchronizer
    sweeper: EvictionSweeper
    uploader: BulkUploader


def build_runtime(config: AppConfig) -> Runtime:
    mirror = LocalMirror(config.mirror.local_root)
    metadata = _build_metadata(config)
    remote = _build_remote(config)
    synchronizer = Synchronizer(
        remote=remote,
        metadata=metadata,
        mirror=mirror,
        remote_folder=config.mirror.remote_folder,
    )
    sweeper = EvictionSweeper(
        metadata=metadata,
        mirror=mirror,
        max_total_bytes=config.mirror.max_total_bytes,
        batch_size=config.sweeper.batch_size,
        idle_interval_seconds=config.sweeper.idle_interval_seconds,
        drain_interval_seconds=config.sweeper.drain_interval_seconds,
    )
    uploader = BulkUploader(synchronizer=synchronizer, max_workers=config.bulk.max_workers)
    return Runtime(config=config, synchronizer=synchronizer, sweeper=sweeper, uploader=uploader)


@app.command("store")
def store_file(
    path: str = typer.Argument(..., help="Mirror-relative path, e.g. docs/report.pdf."),
    source: Path = typer.Option(
        ...,
        "--file",
        help="Local file whose bytes are stored under PATH.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    replace: bool = typer.Option(False, "--replace", help="Overwrite an existing file."),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Upload bytes to the remote store and keep a local copy."""
    runtime = _load_runtime(config_path)
    try:
        record = runtime.synchronizer.store(path, source.read_bytes(), replace=replace)
    except (DriveCacheError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"stored {record.relative_path} size={record.size_bytes} remote_id={record.remote_id}")


@app.command("fetch")
def fetch_file(
    path: str = typer.Argument(..., help="Mirror-relative path."),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Download PATH if it is not local, otherwise mark it as recently used."""
    runtime = _load_runtime(config_path)
    try:
        fetched = runtime.synchronizer.fetch_or_touch(path)
    except (DriveCacheError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"{'fetched' if fetched else 'touched'} {path}")


@app.command("delete")
def delete_file(
    path: str = typer.Argument(..., help="Mirror-relative path."),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Delete the remote object and its record; the local file is kept."""
    runtime = _load_runtime(config_path)
    try:
        runtime.synchronizer.delete(path)
    except (DriveCacheError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"deleted {path}")


@app.command("upload-all")
def upload_all(config_path: Path = _CONFIG_OPTION) -> None:
    """Upload every file under the local root."""
    runtime = _load_runtime(config_path)
    try:
        report = runtime.uploader.upload_all()
    except DriveCacheError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    for outcome in report.failed:
        typer.echo(f"failed {outcome.path}: {outcome.error}", err=True)
    typer.echo(f"uploaded={report.uploaded} failed={len(report.failed)}")
    if report.failed:
        raise typer.Exit(code=1)


@app.command("sweep")
def sweep_once(config_path: Path = _CONFIG_OPTION) -> None:
    """Run a single eviction cycle."""
    runtime = _load_runtime(config_path)
    try:
        result = runtime.sweeper.sweep()
    except DriveCacheError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(
        f"total_before={result.total_before} removed={len(result.removed)} "
        f"removed_bytes={result.removed_bytes} drain={result.drain}"
    )


@app.command("run")
def run_sweeper(config_path: Path = _CONFIG_OPTION) -> None:
    """Run the eviction sweeper until interrupted."""
    runtime = _load_runtime(config_path)
    stop_event = threading.Event()
    thread = runtime.sweeper.start(stop_event)
    try:
        while thread.is_alive():
            thread.join(timeout=0.5)
    except KeyboardInterrupt:
        logging.info("shutdown requested")
    finally:
        stop_event.set()
        thread.join()


@app.command("status")
def status(config_path: Path = _CONFIG_OPTION) -> None:
    """Show tracked files and total size against the budget."""
    runtime = _load_runtime(config_path)
    metadata = runtime.sweeper.metadata
    records = metadata.list_records()
    total = metadata.total_size()
    for record in records:
        local = "local" if runtime.synchronizer.mirror.exists(record.relative_path) else "remote-only"
        typer.echo(
            f"{record.last_access.isoformat()} {record.size_bytes:>10} {local:<11} {record.relative_path}"
        )
    typer.echo(
        f"tracked={len(records)} total_bytes={total} max_total_bytes={runtime.config.mirror.max_total_bytes}"
    )


def _load_runtime(config_path: Path) -> Runtime:
    try:
        config = load_config(config_path)
        return build_runtime(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _build_metadata(config: AppConfig) -> MetadataStore:
    if config.metadata.backend == "memory":
        return MemoryMetadataStore()
    return SqliteMetadataStore(config.metadata.db_path)


def _build_remote(config: AppConfig) -> RemoteStore:
    if config.remote.provider == "memory":
        logging.warning("remote.provider=memory, remote objects are lost when the process exits.")
        return MemoryRemoteStore()
    return DriveClient.from_env(
        env_var=config.remote.access_token_env,
        timeout_seconds=config.remote.timeout_seconds,
    )
