"""Shared fixtures for mcp_orchestrator tests."""

import pytest
import pytest_asyncio

import mcp_orchestrator.config as config_module
from mcp_orchestrator.memory.database import DatabaseManager


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch, tmp_path):
    """Prevent tests from reading real .env or touching real data."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    config_module._settings = None
    yield
    config_module._settings = None


class FakeClaude:
    """
    Scripted stand-in for ClaudeClient.complete().

    Each call pops the next scripted reply; an exception instance is raised
    instead of returned. Every call is recorded in `calls`.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def complete(self, messages, model=None, system=None, max_tokens=None):
        self.calls.append(
            {"messages": messages, "model": model, "system": system, "max_tokens": max_tokens}
        )
        if not self.replies:
            raise AssertionError("Unexpected model call")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["messages"][-1]["content"]


@pytest.fixture
def fake_claude():
    """Factory: fake_claude('reply one', 'reply two', RuntimeError('down'))."""
    return FakeClaude


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh database per test (temp file)."""
    manager = DatabaseManager(db_path=str(tmp_path / "test.db"))
    await manager.init()
    yield manager
    await manager.close()
