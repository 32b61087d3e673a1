"""
Test configuration and fixtures
"""
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_dispatcher
from api.main import app
from pipeline.compiler import CompileContext
from pipeline.dispatcher import RequestDispatcher
from pipeline.models import OperationKind, OperationRequest
from pipeline.resolver import ArtifactResolver
from pipeline.schemas import validate_options
from pipeline.workspace import MediaWorkspace
from tests.mocks.ffmpeg import MockExecutor, MockProber

SAMPLE_FILES = ["clip.mp4", "second.mp4", "third.mov", "logo.png", "music.mp3", "font.ttf"]


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no engine binaries")
    config.addinivalue_line("markers", "integration: tests that run the real ffmpeg/ffprobe")


@pytest.fixture
def workspace(tmp_path: Path) -> MediaWorkspace:
    """Prepared workspace whose media root holds a few placeholder files."""
    media_root = tmp_path / "media"
    media_root.mkdir()
    for name in SAMPLE_FILES:
        (media_root / name).write_bytes(b"placeholder")
    (media_root / "uploads").mkdir()
    (media_root / "uploads" / "nested.mp4").write_bytes(b"placeholder")
    ws = MediaWorkspace(media_root, "outputs")
    ws.prepare()
    return ws


@pytest.fixture
def mock_prober() -> MockProber:
    return MockProber()


@pytest.fixture
def mock_executor() -> MockExecutor:
    return MockExecutor()


@pytest.fixture
def dispatcher(workspace, mock_prober, mock_executor) -> RequestDispatcher:
    return RequestDispatcher(
        workspace=workspace,
        prober=mock_prober,
        executor=mock_executor,
        resolver=ArtifactResolver(workspace, preview_limit=10),
    )


@pytest.fixture
def make_context(workspace):
    """Build a ``CompileContext`` for ``kind`` from raw wire options."""
    def _make(kind, options=None, paths=None, probes=None, primary="clip.mp4"):
        kind = OperationKind(kind)
        request = OperationRequest(
            kind=kind,
            primary_input=workspace.media_root / primary,
            options=validate_options(kind, options or {}),
        )
        return CompileContext(
            request=request,
            workspace=workspace,
            paths=paths or {},
            probes=probes or {},
        )
    return _make


@pytest.fixture
def client(dispatcher):
    """Create test client wired to the mock dispatcher."""
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()
