"""
Pytest configuration and shared fixtures for the Instruct test suite.

This module provides:
- Temporary directory and data file fixtures
- Settings fixtures backed by a temporary settings file
- Mock OpenAI SDK client
- FastAPI test client
"""

import pytest
import tempfile
import shutil
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Generator
from unittest.mock import AsyncMock, MagicMock
import sys
import os

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import InstructSettings


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(scope="function")
def data_file(temp_dir: Path) -> Path:
    """An instruction data file holding an empty collection."""
    path = temp_dir / "Data" / "instructions.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"instructions": []}, indent=4), encoding="utf-8")
    return path


@pytest.fixture
def settings(temp_dir: Path) -> InstructSettings:
    """Settings pointing at a data file inside the temp directory."""
    return InstructSettings(
        api_key="test-key-123",
        data_dir=str(temp_dir / "Data"),
    )


def make_chat_response(content):
    """Build an object shaped like a chat completions response."""
    if content is None:
        return SimpleNamespace(choices=[])
    message = SimpleNamespace(role="assistant", content=content)
    return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message, finish_reason="stop")])


@pytest.fixture
def chat_response():
    """Factory for fake chat completions responses; None gives an empty choices list."""
    return make_chat_response


@pytest.fixture
def mock_openai_client():
    """
    Mock AsyncOpenAI SDK client for testing completions.

    Each prompt is answered with ``completion for: <last line of prompt>`` so
    tests can tell which chunk a completion belongs to.
    """
    mock = MagicMock()

    async def mock_create(*args, **kwargs):
        prompt = kwargs["messages"][0]["content"]
        return make_chat_response(f"completion for: {prompt.splitlines()[-1]}")

    mock.chat.completions.create = AsyncMock(side_effect=mock_create)
    return mock


@pytest.fixture(scope="function")
def fastapi_client(temp_dir: Path, mock_openai_client, monkeypatch):
    """
    Create a FastAPI test client for API testing.

    Settings live in the temp directory and the OpenAI SDK client is mocked.
    """
    from fastapi.testclient import TestClient
    from ai.openai_client import OpenAIClient
    from backend import create_app
    from services.settings_service import SettingsService

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("INSTRUCT_OPENAI_TIMEOUT", raising=False)

    settings_path = temp_dir / "data.json"
    settings_path.write_text(json.dumps({
        "api_key": "test-key-123",
        "data_dir": str(temp_dir / "Data"),
    }), encoding="utf-8")

    app = create_app(
        settings_service=SettingsService(settings_path),
        client_factory=lambda s: OpenAIClient(s, client=mock_openai_client),
    )

    with TestClient(app) as client:
        yield client


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Register custom markers
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests with real external services")
    config.addinivalue_line("markers", "ai: AI-related tests")
    config.addinivalue_line("markers", "api: API route tests")

    # Set test environment variable
    os.environ["TESTING"] = "1"


def pytest_unconfigure(config):
    """Cleanup after all tests."""
    os.environ.pop("TESTING", None)
