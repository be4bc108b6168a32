"""Service - the entry point that owns the store client and the mappers.

    service = Service.connect("localhost", 27017, "blog")
    posts = service.map(Post, "posts", "title", "body")
    post = await posts.create({"title": "hello"})
    await service.close()
"""

from __future__ import annotations

from typing import Any, TypeVar

import structlog

from docmap.core.connection import StoreConfig, StoreManager
from docmap.core.registry import MapperRegistry
from docmap.mapping.mapper import Mapper
from docmap.mapping.properties import field_names
from docmap.repository.base import Repository

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class Service:
    """Maps model types onto collections of one store."""

    def __init__(self, store: StoreManager, registry: MapperRegistry | None = None) -> None:
        self._store = store
        self._registry = registry if registry is not None else MapperRegistry()

    @classmethod
    def from_config(cls, config: StoreConfig) -> Service:
        """Create a Service from a StoreConfig."""
        service = cls(StoreManager(config))
        service._store.initialize_client()
        logger.info("service.connected", driver=config.driver, database=config.name)
        return service

    @classmethod
    def connect(
        cls,
        host_or_uri: str,
        port: int | None = None,
        name: str | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        driver: str = "mongodb",
        **options: Any,
    ) -> Service:
        """Connect with a full URI, or with host, port and database name.

        Credentials are optional; a username without a password is allowed.
        Extra keyword arguments are passed through to the driver.
        """
        if port is None and name is None:
            config = StoreConfig(driver=driver, uri=host_or_uri, options=options)
        else:
            config = StoreConfig(
                driver=driver,
                host=host_or_uri,
                port=port if port is not None else 27017,
                name=name if name is not None else "test",
                username=username,
                password=password,
                options=options,
            )
        return cls.from_config(config)

    @property
    def store(self) -> StoreManager:
        return self._store

    @property
    def registry(self) -> MapperRegistry:
        return self._registry

    def map(
        self,
        model_type: type[T],
        collection: str,
        *props: str,
        identity: str = "_id",
    ) -> Repository[T]:
        """Bind ``model_type`` to ``collection`` and return its repository.

        Without explicit ``props`` the model's own field names are mapped.
        """
        mapper: Mapper[T] = Mapper(
            model_type,
            self._store.collection(collection),
            props or field_names(model_type),
            identity=identity,
        )
        return Repository(self._registry.register(collection, mapper))

    def mapper(self, collection: str) -> Mapper[Any]:
        """Look up the mapper bound to ``collection``."""
        return self._registry.get(collection)

    def __getitem__(self, collection: str) -> Mapper[Any]:
        return self._registry.get(collection)

    def __contains__(self, collection: object) -> bool:
        return isinstance(collection, str) and self._registry.has(collection)

    async def close(self) -> None:
        """Close the store client and drop every mapper."""
        await self._store.close_client()
        self._registry.clear()
        logger.info("service.closed", database=self._store.config.name)

    async def __aenter__(self) -> Service:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
