"""
HTTP client utilities with connection pooling.
Provides reusable httpx clients for better performance.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages shared httpx clients with connection pooling."""

    _search_client: httpx.AsyncClient | None = None
    _telegram_client: httpx.AsyncClient | None = None

    @classmethod
    def get_search_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for web search calls.

        Features:
        - Connection pooling (reuses TCP connections)
        - Search-specific timeout

        Returns:
            Configured httpx.AsyncClient for search operations
        """
        if cls._search_client is None:
            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0
            )

            cls._search_client = httpx.AsyncClient(
                timeout=Config.SEARCH_TIMEOUT,
                limits=limits,
                http2=True
            )

        return cls._search_client

    @classmethod
    def get_telegram_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for Telegram Bot API calls.

        Returns:
            Configured httpx.AsyncClient for outbound transport calls
        """
        if cls._telegram_client is None:
            limits = httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=60.0
            )

            cls._telegram_client = httpx.AsyncClient(
                timeout=Config.TELEGRAM_TIMEOUT,
                limits=limits,
                http2=True
            )

        return cls._telegram_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close all managed clients and clean up connections.
        """
        if cls._search_client is not None:
            await cls._search_client.aclose()
            cls._search_client = None

        if cls._telegram_client is not None:
            await cls._telegram_client.aclose()
            cls._telegram_client = None
