"""Unit tests for calpost_lite.core.http_client module."""

import httpx
import pytest

from calpost_lite.core import http_client
from calpost_lite.core.http_client import (
    USER_AGENT,
    close_all_clients,
    get_shared_client,
    make_timeout,
    record_client_error,
    record_client_success,
)

pytestmark = pytest.mark.unit


class TestSharedHTTPClient:
    """Test shared HTTP client management."""

    @pytest.mark.asyncio
    async def test_get_shared_client_reuses_existing_client(self):
        """Test that get_shared_client reuses clients per id."""
        await close_all_clients()

        client1 = await get_shared_client("test_client")
        client2 = await get_shared_client("test_client")
        other = await get_shared_client("other_client")

        assert isinstance(client1, httpx.AsyncClient)
        assert client1 is client2
        assert other is not client1
        assert client1.headers["User-Agent"] == USER_AGENT

        await close_all_clients()
        assert client1.is_closed

    @pytest.mark.asyncio
    async def test_unhealthy_client_is_recreated(self):
        """Test repeated errors cause the client to be replaced."""
        await close_all_clients()
        client1 = await get_shared_client("flaky")

        for _ in range(http_client.HEALTH_ERROR_THRESHOLD):
            await record_client_error("flaky")
        client2 = await get_shared_client("flaky")

        assert client2 is not client1
        assert client1.is_closed

        await close_all_clients()

    @pytest.mark.asyncio
    async def test_success_resets_error_count(self):
        """Test a success clears the error history."""
        await close_all_clients()
        client1 = await get_shared_client("steady")

        await record_client_error("steady")
        await record_client_error("steady")
        await record_client_success("steady")
        await record_client_error("steady")

        assert await get_shared_client("steady") is client1

        await close_all_clients()


def test_make_timeout_uses_read_budget():
    """Test the configured seconds become the read timeout."""
    assert make_timeout(12).read == 12.0
    assert make_timeout(None) is http_client.DEFAULT_TIMEOUT
