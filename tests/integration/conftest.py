"""
Integration test helper utilities.

Shared fixtures for dispatching real httpx calls against mocked provider
endpoints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import pytest_asyncio

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from ai_dispatch.providers import ProviderConfig


PROVIDER_ENDPOINTS: dict[str, str] = {
    "google": "https://generativelanguage.test/v1/models/gemini:generateContent",
    "anthropic": "https://api.anthropic.test/v1/messages",
    "openai": "https://api.openai.test/v1/chat/completions",
}


@pytest.fixture
def endpoints() -> dict[str, str]:
    return dict(PROVIDER_ENDPOINTS)


@pytest_asyncio.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def http_operation(
    http_client: httpx.AsyncClient, endpoints: dict[str, str]
) -> Callable[[str], Callable[[ProviderConfig], Awaitable[str]]]:
    """Build a dispatch operation posting a prompt to each provider's endpoint."""

    def build(prompt: str) -> Callable[[ProviderConfig], Awaitable[str]]:
        async def operation(provider: ProviderConfig) -> str:
            response = await http_client.post(endpoints[provider.id], json={"prompt": prompt})
            response.raise_for_status()
            return response.json()["text"]

        return operation

    return build
