"""Shared pytest fixtures for all tests."""

import json
import random
import re
import threading
import time
from pathlib import Path
from typing import Dict, Generator, List, Optional, Set
from urllib.parse import unquote

import httpx
import pytest

from vault.database import init_database
from vault.staging import StagingArea
from vault.webhook_client import WebhookClient

WEBHOOK_URL = "https://hooks.example/api/webhooks/123/secret-token"
PROXY_BASE = "http://proxy.test"

_FILENAME_RE = re.compile(rb'name="file"; filename="(?P<name>[^"]+)"')


class SleepRecorder:
    """No-op replacement for time.sleep that remembers every requested delay."""

    def __init__(self):
        self.calls: List[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.calls.append(seconds)


class FakeWebhook:
    """
    In-memory stand-in for the attachment webhook and the download proxy.

    Uploads are parsed from the multipart body; the chunk index comes from
    the staged filename (<idx>.chunk). Failure injection is per index.
    """

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.rate_limit_times: Dict[int, int] = {}
        self.transport_failures: Dict[int, int] = {}
        self.server_errors: Dict[int, int] = {}
        self.malformed: Set[int] = set()
        self.upload_delay: Dict[int, float] = {}
        self.download_failures: Dict[str, int] = {}
        self.upload_attempts: Dict[int, int] = {}
        self.completion_order: List[int] = []
        self.downloads: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._counter = 0
        self._lock = threading.Lock()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport())

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return self._handle_upload(request)
        if request.method == "GET" and str(request.url).startswith(PROXY_BASE):
            return self._handle_download(request)
        return httpx.Response(404)

    def _handle_upload(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        name, payload = _parse_multipart(request.headers["content-type"], body)
        index = int(name.split(".")[0])

        with self._lock:
            self.upload_attempts[index] = self.upload_attempts.get(index, 0) + 1
            if self.transport_failures.get(index, 0) > 0:
                self.transport_failures[index] -= 1
                raise httpx.ConnectError("connection refused", request=request)
            if self.rate_limit_times.get(index, 0) > 0:
                self.rate_limit_times[index] -= 1
                return httpx.Response(429, json={"message": "You are being rate limited.", "retry_after": 1.0})
            if self.server_errors.get(index, 0) > 0:
                self.server_errors[index] -= 1
                return httpx.Response(502, text="bad gateway")
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            delay = self.upload_delay.get(index)
            if delay:
                time.sleep(delay)

            if index in self.malformed:
                return httpx.Response(200, json={"id": "999", "attachments": []})

            with self._lock:
                self._counter += 1
                message_id = str(1000 + self._counter)
                url = f"https://cdn.example/attachments/{self._counter}/{name}?ex=abc&is=def"
                self.blobs[url] = payload
                self.completion_order.append(index)

            return httpx.Response(200, json={
                "id": message_id,
                "channel_id": "42",
                "attachments": [{"id": message_id, "filename": name, "size": len(payload), "url": url}],
            })
        finally:
            with self._lock:
                self.in_flight -= 1

    def _handle_download(self, request: httpx.Request) -> httpx.Response:
        raw = str(request.url).split("/?", 1)[1]
        url = unquote(raw)
        with self._lock:
            self.downloads.append(url)
            if self.download_failures.get(url, 0) > 0:
                self.download_failures[url] -= 1
                raise httpx.ReadTimeout("timed out", request=request)
        if url not in self.blobs:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=self.blobs[url])

    def stored_urls(self) -> List[str]:
        return list(self.blobs)


def _parse_multipart(content_type: str, body: bytes):
    boundary = content_type.split("boundary=", 1)[1].strip('"').encode()
    for part in body.split(b"--" + boundary):
        match = _FILENAME_RE.search(part)
        if not match:
            continue
        _, _, content = part.partition(b"\r\n\r\n")
        return match.group("name").decode(), content[:-2]
    raise AssertionError("multipart body has no file field")


@pytest.fixture
def test_db(tmp_path, monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary catalog for each test.
    """
    db_path = tmp_path / "catalog" / "store.db"
    monkeypatch.setattr("vault.database.DATABASE_PATH", str(db_path))
    init_database()
    yield db_path


@pytest.fixture
def staging(tmp_path) -> StagingArea:
    return StagingArea(tmp_path / "storage")


@pytest.fixture
def fake_webhook() -> FakeWebhook:
    return FakeWebhook()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def webhook_client(fake_webhook, sleeper, rng) -> Generator[WebhookClient, None, None]:
    client = WebhookClient(http=fake_webhook.client(), sleep=sleeper, rng=rng)
    yield client
    client.close()


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a binary sample file spanning several chunks.

    Returns:
        Path to sample file (10 * 64 + 7 bytes)
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(range(256)) * 2 + bytes(range(135)))
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    """
    Create multiple sample files for listing tests.

    Returns:
        List of Paths to sample files
    """
    files = []
    for i in range(3):
        file_path = tmp_path / f'test{i}.txt'
        file_path.write_bytes(f'Sample content {i}'.encode() * (i + 1))
        files.append(file_path)
    return files


@pytest.fixture
def config_file(tmp_path) -> Path:
    config_path = tmp_path / '.chunkvault' / 'config.json'
    config_path.parent.mkdir()
    config_path.write_text(json.dumps({
        "db_path": str(tmp_path / "catalog" / "store.db"),
        "storage_path": str(tmp_path / "storage"),
    }))
    return config_path
