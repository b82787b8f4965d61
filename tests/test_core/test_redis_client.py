"""Tests for the shared Redis client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agencydesk.db import redis as redis_module


@pytest.fixture(autouse=True)
def fresh_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(redis_module, "_client", None)


class TestGetRedis:
    """Test lazy connection and reuse."""

    @pytest.mark.asyncio
    async def test_connects_once(self, test_redis: Any) -> None:
        with patch.object(redis_module, "_build_client", return_value=test_redis) as build:
            first = await redis_module.get_redis()
            second = await redis_module.get_redis()

        assert first is test_redis
        assert second is test_redis
        build.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_ping_is_not_kept(self) -> None:
        broken = MagicMock()
        broken.ping = AsyncMock(side_effect=ConnectionError("Redis down"))
        broken.aclose = AsyncMock()

        with patch.object(redis_module, "_build_client", return_value=broken):
            with pytest.raises(ConnectionError):
                await redis_module.get_redis()

        broken.aclose.assert_awaited_once()
        assert redis_module._client is None


class TestCloseRedis:
    """Test shutdown."""

    @pytest.mark.asyncio
    async def test_close_resets_client(self) -> None:
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()

        with patch.object(redis_module, "_build_client", return_value=client):
            await redis_module.get_redis()
        await redis_module.close_redis()

        client.aclose.assert_awaited_once()
        assert redis_module._client is None

    @pytest.mark.asyncio
    async def test_close_without_client(self) -> None:
        await redis_module.close_redis()
        assert redis_module._client is None
