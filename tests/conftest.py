"""
Core pytest configuration and fixtures for voicechat testing.

This module provides shared test fixtures, configuration, and utilities
that support the pillar-based testing architecture.
"""

import tempfile
from pathlib import Path
from typing import List
from unittest.mock import MagicMock

import pytest
from voicechat.config import Options
from voicechat.models import ASSISTANT_ROLE, USER_ROLE, Message, Session

# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[Message]:
    """Sample conversation turns for testing."""
    return [
        Message(role=USER_ROLE, content="hello how are you"),
        Message(role=ASSISTANT_ROLE, content="I'm doing well, thanks for asking!"),
        Message(role=USER_ROLE, content="what is the weather like on mars"),
        Message(role=ASSISTANT_ROLE, content="Cold and dusty, mostly."),
    ]


@pytest.fixture
def sample_session(sample_messages) -> Session:
    """Sample session for testing."""
    return Session(id="session-001", messages=sample_messages)


@pytest.fixture
def options(temp_dir) -> Options:
    """Options pointing at a temporary session directory."""
    return Options(model="test-model", session_dir=temp_dir / "sessions", timeout=5)


# ===== DIRECTORY FIXTURES =====


@pytest.fixture
def temp_dir():
    """Temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ===== MOCK FIXTURES =====


@pytest.fixture
def mock_llm():
    """Mock chat-completion provider that always answers the same thing."""
    mock = MagicMock()
    mock.generate_response.return_value = {"choices": ["raw"]}
    mock.extract_choices.return_value = [
        Message(role=ASSISTANT_ROLE, content="Hi! How can I help?")
    ]
    return mock


@pytest.fixture
def mock_speech():
    """Mock speech provider."""
    mock = MagicMock()
    mock.transcribe.return_value = "hello there"
    mock.synthesize.return_value = b"ID3-fake-mp3"
    return mock


# ===== PILLAR IMPLEMENTATION FIXTURES =====


@pytest.fixture
def all_store_implementations(temp_dir):
    """All store implementations for contract testing."""
    from voicechat import store

    return [
        ("InMemory", store.InMemory()),
        ("File", store.File(str(temp_dir / "file_store"))),
        ("SQLite", store.SQLite(str(temp_dir / "test.db"))),
    ]


# ===== APP FIXTURES =====


@pytest.fixture
def test_app(options, mock_llm, mock_speech):
    """
    Provides a VoiceChat app with mocked collaborators and an in-memory store.

    Ideal for engine tests that must avoid filesystems and network APIs.
    """
    from voicechat import VoiceChat
    from voicechat.store import InMemory

    return VoiceChat(
        llm=mock_llm, speech=mock_speech, store=InMemory(), options=options
    )


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
