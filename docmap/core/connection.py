"""Store configuration and client management.

StoreConfig is a Pydantic model for type-safe store config. StoreManager
uses the adapter protocol for the client lifecycle.
"""

from __future__ import annotations

import importlib
from typing import Any

from pydantic import BaseModel

from docmap.core.enums import StoreBackend
from docmap.core.exceptions import AdapterError


class StoreConfig(BaseModel):
    """Configuration for document store connections.

    Either a full ``uri`` or the individual host/port/name parts may be given.
    """

    driver: str = "memory"
    host: str = "localhost"
    port: int = 27017
    name: str = "test"
    username: str | None = None
    password: str | None = None
    uri: str | None = None
    options: dict[str, Any] = {}

    def build_uri(self) -> str:
        """Return the connection URI, preferring an explicit ``uri``."""
        if self.uri is not None:
            return self.uri

        credentials = ""
        if self.username is not None:
            credentials = self.username
            if self.password is not None:
                credentials += ":" + self.password
            credentials += "@"

        return f"mongodb://{credentials}{self.host}:{self.port}/{self.name}"


# Adapter module mapping: driver name -> (module_path, adapter_class)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    StoreBackend.MEMORY.value: ("docmap.adapters.memory", "MemoryAdapter"),
    StoreBackend.MONGODB.value: ("docmap.adapters.mongodb", "MongoAdapter"),
}


def _load_adapter(driver: str) -> Any:
    """Load a store adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported store driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]

    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


class StoreManager:
    """Owns the store client for one service and hands out collection handles."""

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self._adapter = _load_adapter(config.driver)
        self._client: Any = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def initialize_client(self) -> Any:
        """Create the store client if it does not exist yet."""
        if self._client is None:
            self._client = self._adapter.create_client(self.config)
        return self._client

    def collection(self, name: str) -> Any:
        """Return the adapter's collection handle for ``name``."""
        client = self.initialize_client()
        return self._adapter.get_collection(client, name)

    async def close_client(self) -> None:
        """Close the store client."""
        if self._client is not None:
            await self._adapter.close_client(self._client)
            self._client = None
