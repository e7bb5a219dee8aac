"""Document-store connection management."""

import logging
from collections.abc import Callable
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient

from mongo_crud.config import Settings, get_settings
from mongo_crud.core.exceptions import NotConnectedError

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns one Motor client and tells stores whether it is usable.

    The client is created on connect() rather than in the constructor so
    stores can be built at import time and connected during application
    startup. Stores check `is_connected` before every operation.
    """

    def __init__(
        self,
        uri: str | None = None,
        *,
        settings: Settings | None = None,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.uri = uri or self.settings.mongo_uri
        self._client_factory = client_factory or self._default_client
        self._client: Any = None

    def _default_client(self, uri: str) -> AsyncIOMotorClient:
        return AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=self.settings.mongo_server_selection_timeout_ms,
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise NotConnectedError("This client is not connected, it cannot perform operations")
        return self._client

    async def connect(self) -> None:
        """Create the client, verifying the server answers when configured to."""
        if self._client is not None:
            return
        client = self._client_factory(self.uri)
        if self.settings.mongo_ping_on_connect:
            try:
                await client.admin.command("ping")
            except Exception:
                client.close()
                raise
        self._client = client
        logger.info("Connected to document store")

    async def ping(self) -> bool:
        """Health check. Returns False instead of raising."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"Document store ping failed: {e}")
            return False

    def close(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.info("Document store connection closed")

    def database(self, name: str | None = None) -> Any:
        return self.client[name or self.settings.mongo_database]

    def collection(self, database: str, name: str) -> Any:
        return self.database(database)[name]
