"""End-to-end tests for CLI commands against a fake webhook."""

import logging
import sqlite3

import pytest

from cli.commands import VaultContext, dispatch_command
from cli.config import Config
from cli.main import run
from cli.models import ListCommand
from tests.conftest import PROXY_BASE, WEBHOOK_URL


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("cli.main.setup_logging", lambda *args, **kwargs: logging.getLogger("cli"))


@pytest.fixture
def make_context(config_file, fake_webhook, sleeper, rng, monkeypatch, tmp_path):
    """Build a fresh VaultContext per run(); run() closes the one it was given."""
    monkeypatch.setattr("vault.database.DATABASE_PATH", str(tmp_path / "catalog" / "store.db"))
    for key in ("WEBHOOK", "PROXY_BASE"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)

    def _make(webhook=WEBHOOK_URL, proxy_base=PROXY_BASE):
        config = Config(config_file, load_env=False)
        config.override(webhook=webhook, proxy_base=proxy_base)
        return VaultContext(config, http=fake_webhook.client(), sleep=sleeper, rng=rng)

    return _make


def test_init_creates_catalog(make_context, tmp_path, capsys):
    assert run(["init"], context=make_context()) == 0
    assert (tmp_path / "catalog" / "store.db").exists()
    assert "Database initialized" in capsys.readouterr().out


def test_ingest_then_list(make_context, sample_file, capsys):
    assert run(["ingest", str(sample_file), "--chunk-size", "64"], context=make_context()) == 0
    assert "file_id=1" in capsys.readouterr().out

    assert run(["list"], context=make_context()) == 0
    out = capsys.readouterr().out
    assert "id=1" in out
    assert "size=647" in out
    assert "chunk_size=64" in out
    assert "file=sample.bin" in out
    assert "[incomplete]" not in out


def test_list_empty(make_context, capsys):
    assert run(["list"], context=make_context()) == 0
    assert "No files stored." in capsys.readouterr().out


def test_ingest_without_webhook_fails(make_context, sample_file, capsys):
    assert run(["ingest", str(sample_file)], context=make_context(webhook=None)) == 1
    assert "WEBHOOK must be set" in capsys.readouterr().err


def test_failed_ingest_listed_as_incomplete(make_context, fake_webhook, sample_file, capsys):
    fake_webhook.transport_failures[1] = 5

    assert run(["ingest", str(sample_file), "--chunk-size", "64"], context=make_context()) == 1
    assert "failed permanently" in capsys.readouterr().err

    run(["list"], context=make_context())
    assert "[incomplete]" in capsys.readouterr().out


def test_export_round_trip(make_context, sample_file, tmp_path, capsys):
    run(["ingest", str(sample_file), "--chunk-size", "100"], context=make_context())
    out = tmp_path / "restored.bin"

    assert run(["export", "1", str(out)], context=make_context()) == 0

    assert out.read_bytes() == sample_file.read_bytes()
    assert "Exported file_id=1" in capsys.readouterr().out


def test_stream_writes_only_payload_to_stdout(make_context, sample_file, capsysbinary):
    run(["ingest", str(sample_file), "--chunk-size", "100"], context=make_context())
    capsysbinary.readouterr()

    assert run(["stream", "1"], context=make_context()) == 0

    assert capsysbinary.readouterr().out == sample_file.read_bytes()


def test_export_without_proxy_fails(make_context, sample_file, tmp_path, capsys):
    run(["ingest", str(sample_file)], context=make_context())

    assert run(["export", "1", str(tmp_path / "x")], context=make_context(proxy_base=None)) == 1
    assert "PROXY_BASE must be set" in capsys.readouterr().err


def test_export_unknown_file(make_context, tmp_path, capsys):
    run(["init"], context=make_context())

    assert run(["export", "9", str(tmp_path / "x")], context=make_context()) == 1
    assert "No file with id 9" in capsys.readouterr().err


def test_verify_reports_mismatch(make_context, sample_file, tmp_path, capsys):
    run(["ingest", str(sample_file), "--chunk-size", "100"], context=make_context())
    assert run(["verify", "1"], context=make_context()) == 0
    assert "All chunks verified" in capsys.readouterr().out

    staged = tmp_path / "storage" / "1" / "2.chunk"
    staged.write_bytes(b"X" + staged.read_bytes()[1:])

    assert run(["verify", "1"], context=make_context()) == 1
    err = capsys.readouterr().err
    assert "Chunk 2: MISMATCH" in err
    assert "6 of 7 chunk(s) OK" in err


def test_parse_error_exit_code(make_context, capsys):
    assert run(["export", "abc"], context=make_context()) == 2
    assert "file_id must be an integer" in capsys.readouterr().err


def test_help(capsys):
    assert run(["help"]) == 0
    assert "Usage: chunkvault" in capsys.readouterr().out


def test_dispatch_returns_result(make_context):
    context = make_context()
    run(["init"], context=make_context())

    result = dispatch_command(ListCommand(), context)

    assert result.success
    context.close()


def test_list_after_three_ingests(make_context, multiple_sample_files, capsys):
    for path, chunk_size in zip(multiple_sample_files, (8, 16, 32)):
        assert run(["ingest", str(path), "--chunk-size", str(chunk_size)], context=make_context()) == 0
    capsys.readouterr()

    assert run(["list"], context=make_context()) == 0
    rows = capsys.readouterr().out.strip().splitlines()

    assert len(rows) == 3
    for i, (row, path, chunk_size) in enumerate(zip(rows, multiple_sample_files, (8, 16, 32))):
        assert row.startswith(f"id={i + 1} ")
        assert f"size={path.stat().st_size} " in row
        assert f"chunk_size={chunk_size} " in row
        assert row.endswith(f"file={path.name}")


LEGACY_CHUNK_URL = "https://cdn.example/attachments/1/0/legacy.bin"


@pytest.fixture
def legacy_catalog(tmp_path, fake_webhook):
    """A catalog written before status and digest columns existed, with a nanosecond timestamp."""
    db_path = tmp_path / "catalog" / "store.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    payload = b"legacy payload"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE files (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            filename TEXT NOT NULL,
            filesize INTEGER NOT NULL,
            chunk_size INTEGER NOT NULL,
            created_at TEXT NOT NULL
        );
        CREATE TABLE file_chunks (
            file_id INTEGER NOT NULL,
            idx INTEGER NOT NULL,
            url TEXT NOT NULL,
            message_id TEXT NOT NULL,
            PRIMARY KEY(file_id, idx),
            FOREIGN KEY(file_id) REFERENCES files(id) ON DELETE CASCADE
        );
    """)
    conn.execute(
        "INSERT INTO files (filename, filesize, chunk_size, created_at) VALUES (?, ?, ?, ?)",
        ("legacy.bin", len(payload), 64, "2024-05-01T10:00:00.123456789+00:00"),
    )
    conn.execute(
        "INSERT INTO file_chunks (file_id, idx, url, message_id) VALUES (1, 0, ?, '7')",
        (LEGACY_CHUNK_URL,),
    )
    conn.commit()
    conn.close()
    fake_webhook.blobs[LEGACY_CHUNK_URL] = payload
    return payload


def test_export_from_legacy_catalog(make_context, legacy_catalog, tmp_path, capsys):
    out = tmp_path / "restored.bin"

    assert run(["export", "1", str(out)], context=make_context()) == 0

    assert out.read_bytes() == legacy_catalog
    assert "no such column" not in capsys.readouterr().err


def test_stream_from_legacy_catalog(make_context, legacy_catalog, capsysbinary):
    assert run(["stream", "1"], context=make_context()) == 0
    assert capsysbinary.readouterr().out == legacy_catalog


def test_verify_legacy_catalog_reports_unverifiable(make_context, legacy_catalog, capsys):
    assert run(["verify", "1"], context=make_context()) == 1

    err = capsys.readouterr().err
    assert "no such column" not in err
    assert "Chunk 0: UNVERIFIABLE (no stored digest)" in err


def test_list_legacy_catalog_shows_timestamp(make_context, legacy_catalog, capsys):
    assert run(["list"], context=make_context()) == 0

    out = capsys.readouterr().out
    assert "created_at=2024-05-01T10:00:00.123456+00:00" in out
    assert "file=legacy.bin" in out
    assert "[" not in out


def test_aborted_ingest_listed_as_incomplete(make_context, sample_file, monkeypatch, capsys):
    def interrupted(self, *args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr("vault.services.upload_executor.UploadExecutor.upload_all", interrupted)

    assert run(["ingest", str(sample_file)], context=make_context()) == 130
    assert "Aborted." in capsys.readouterr().err

    run(["list"], context=make_context())
    assert "[incomplete]" in capsys.readouterr().out
