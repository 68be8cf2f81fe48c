import io
import subprocess
from pathlib import Path

import fitz
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from fileshrink import config, tools
from fileshrink.usage import MemoryUsageStore


def _output_arg(cmd):
    for arg in cmd:
        if arg.startswith("-sOutputFile="):
            return arg.split("=", 1)[1]
    return cmd[-1]


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    """Point uploads and outputs at per-test directories."""
    upload_dir = tmp_path / "uploads"
    output_dir = tmp_path / "outputs"
    upload_dir.mkdir()
    output_dir.mkdir()
    monkeypatch.setattr(config, "UPLOAD_DIR", upload_dir)
    monkeypatch.setattr(config, "OUTPUT_DIR", output_dir)
    return upload_dir, output_dir


@pytest.fixture
def usage_store() -> MemoryUsageStore:
    return MemoryUsageStore()


@pytest.fixture
def client(dirs, usage_store) -> TestClient:
    from fileshrink.main import app, get_usage_store

    app.dependency_overrides[get_usage_store] = lambda: usage_store

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def fake_run(monkeypatch):
    """
    Replaces subprocess.run for gs/ffmpeg. Records each argv and writes a
    small output file where the real tool would have.
    """
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        Path(_output_arg(cmd)).write_bytes(b"converted")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(tools.subprocess, "run", run)
    return calls


@pytest.fixture
def failing_run(monkeypatch):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="Error: input is broken")

    monkeypatch.setattr(tools.subprocess, "run", run)
    return calls


@pytest.fixture
def make_pdf():
    def _make(pages: int = 2, width: float = 595, height: float = 842) -> bytes:
        doc = fitz.open()
        for i in range(pages):
            page = doc.new_page(width=width, height=height)
            page.insert_text((72, 72), f"Page {i + 1}")
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture
def make_image():
    def _make(size=(800, 600), fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGB", size, color).save(buf, format=fmt)
        return buf.getvalue()

    return _make
