"""
Tests for mcp_orchestrator/ai/claude_client.py: retry and error mapping.

The underlying AsyncAnthropic client is replaced with a MagicMock so no
network call is made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import pytest

from mcp_orchestrator.ai.claude_client import ClaudeClient
from mcp_orchestrator.exceptions import ServiceUnavailableError


def _response(*texts):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=t) for t in texts])


def _status_error(cls, status):
    return cls(f"HTTP {status}", response=MagicMock(status_code=status), body=None)


def _client(side_effect, max_retries=3):
    client = ClaudeClient(api_key="test", max_retries=max_retries, retry_base_delay=0)
    client._client = MagicMock()
    client._client.messages.create = AsyncMock(side_effect=side_effect)
    return client


@pytest.mark.asyncio
async def test_complete_joins_text_blocks():
    client = _client([_response("Hello ", "world")])
    text = await client.complete([{"role": "user", "content": "hi"}], model="m", system="sys", max_tokens=10)
    assert text == "Hello world"
    kwargs = client._client.messages.create.call_args.kwargs
    assert kwargs == {
        "model": "m",
        "max_tokens": 10,
        "messages": [{"role": "user", "content": "hi"}],
        "system": "sys",
    }


@pytest.mark.asyncio
async def test_empty_content_is_empty_string():
    client = _client([SimpleNamespace(content=[])])
    assert await client.complete([{"role": "user", "content": "hi"}]) == ""


@pytest.mark.asyncio
async def test_retries_rate_limit_then_succeeds():
    client = _client([
        _status_error(anthropic.RateLimitError, 429),
        _status_error(anthropic.InternalServerError, 529),
        _response("ok"),
    ])
    assert await client.complete([{"role": "user", "content": "hi"}]) == "ok"
    assert client._client.messages.create.await_count == 3


@pytest.mark.asyncio
async def test_retries_connection_errors():
    client = _client([anthropic.APIConnectionError(request=MagicMock()), _response("back")])
    assert await client.complete([{"role": "user", "content": "hi"}]) == "back"


@pytest.mark.asyncio
async def test_exhausted_retries_raise_service_unavailable():
    client = _client([_status_error(anthropic.APIStatusError, 503)] * 2, max_retries=2)
    with pytest.raises(ServiceUnavailableError):
        await client.complete([{"role": "user", "content": "hi"}])
    assert client._client.messages.create.await_count == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    client = _client([_status_error(anthropic.BadRequestError, 400)])
    with pytest.raises(anthropic.BadRequestError):
        await client.complete([{"role": "user", "content": "hi"}])
    assert client._client.messages.create.await_count == 1


@pytest.mark.asyncio
async def test_ping():
    client = _client([])
    client._client.models.list = AsyncMock(return_value=[])
    assert await client.ping() is True
    client._client.models.list = AsyncMock(side_effect=anthropic.APIConnectionError(request=MagicMock()))
    assert await client.ping() is False
