from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

import drivecache.cli as cli_module
from drivecache.cli import app
from drivecache.remote import MemoryRemoteStore


def _write_config(path: Path, tmp_path: Path, *, max_total_bytes: int = 1_000) -> None:
    path.write_text(
        json.dumps(
            {
                "mirror": {
                    "local_root": str(tmp_path / "mirror"),
                    "remote_folder": "clitest",
                    "max_total_bytes": max_total_bytes,
                },
                "metadata": {"backend": "sqlite", "db_path": str(tmp_path / "drivecache.db")},
                "remote": {"provider": "memory"},
            }
        ),
        encoding="utf-8",
    )


def _shared_remote(monkeypatch) -> MemoryRemoteStore:
    remote = MemoryRemoteStore()
    monkeypatch.setattr(cli_module, "_build_remote", lambda config: remote)
    return remote


def test_cli_help() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert "upload-all" in result.output


def test_cli_store_fetch_status_flow(monkeypatch, tmp_path) -> None:
    _shared_remote(monkeypatch)
    config_path = tmp_path / "config.json"
    _write_config(config_path, tmp_path)
    source = tmp_path / "report.txt"
    source.write_bytes(b"quarterly report")
    runner = CliRunner()

    stored = runner.invoke(
        app, ["store", "docs/report.txt", "--file", str(source), "--config", str(config_path)]
    )
    assert stored.exit_code == 0, stored.output
    assert "stored docs/report.txt size=16" in stored.output
    assert (tmp_path / "mirror" / "docs" / "report.txt").read_bytes() == b"quarterly report"

    again = runner.invoke(
        app, ["store", "docs/report.txt", "--file", str(source), "--config", str(config_path)]
    )
    assert again.exit_code == 1

    (tmp_path / "mirror" / "docs" / "report.txt").unlink()
    fetched = runner.invoke(app, ["fetch", "docs/report.txt", "--config", str(config_path)])
    assert fetched.exit_code == 0, fetched.output
    assert "fetched docs/report.txt" in fetched.output

    touched = runner.invoke(app, ["fetch", "docs/report.txt", "--config", str(config_path)])
    assert "touched docs/report.txt" in touched.output

    status = runner.invoke(app, ["status", "--config", str(config_path)])
    assert status.exit_code == 0
    assert "tracked=1 total_bytes=16 max_total_bytes=1000" in status.output


def test_cli_fetch_unknown_file_fails(monkeypatch, tmp_path) -> None:
    _shared_remote(monkeypatch)
    config_path = tmp_path / "config.json"
    _write_config(config_path, tmp_path)

    result = CliRunner().invoke(app, ["fetch", "missing.txt", "--config", str(config_path)])

    assert result.exit_code == 1


def test_cli_upload_all_and_sweep(monkeypatch, tmp_path) -> None:
    _shared_remote(monkeypatch)
    config_path = tmp_path / "config.json"
    _write_config(config_path, tmp_path, max_total_bytes=20)
    mirror_root = tmp_path / "mirror"
    for index in range(3):
        target = mirror_root / "folder" / f"file{index}.txt"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"0123456789")
    runner = CliRunner()

    uploaded = runner.invoke(app, ["upload-all", "--config", str(config_path)])
    assert uploaded.exit_code == 0, uploaded.output
    assert "uploaded=3 failed=0" in uploaded.output

    swept = runner.invoke(app, ["sweep", "--config", str(config_path)])
    assert swept.exit_code == 0, swept.output
    assert "total_before=30 removed=2 removed_bytes=20" in swept.output


def test_cli_invalid_config_exits_with_error(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"mirror": {}}), encoding="utf-8")

    result = CliRunner().invoke(app, ["status", "--config", str(config_path)])

    assert result.exit_code == 1
