"""Unit tests for the Repository handle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from docmap.core.exceptions import ScopeNameError
from docmap.core.scope import ScopedQuery
from docmap.mapping.mapper import Mapper
from docmap.repository.base import Repository


@dataclass
class User:
    name: str = ""
    active: bool = True
    orders: list = field(default_factory=list)


@dataclass
class Order:
    total: float = 0.0


@pytest.fixture
def users(make_collection) -> Repository[User]:
    return Repository(Mapper(User, make_collection("users"), ["name", "active", "orders"]))


@pytest.fixture
def orders(make_collection) -> Repository[Order]:
    return Repository(Mapper(Order, make_collection("orders"), ["total"]))


class TestRepositoryDelegation:
    def test_model_type(self, users: Repository[User]) -> None:
        assert users.model_type is User

    async def test_find_delegates_to_mapper(self) -> None:
        mapper = MagicMock()
        mapper.find = AsyncMock(return_value="found")
        repo: Repository[Any] = Repository(mapper)

        assert await repo.find("abc") == "found"
        mapper.find.assert_awaited_once_with("abc", callback=None)

    async def test_create_and_id(self, users: Repository[User]) -> None:
        user = await users.create({"name": "Alice"})
        assert isinstance(user, User)
        assert users.id(user) is not None
        assert await users.count() == 1

    async def test_save_find_destroy(self, users: Repository[User]) -> None:
        user = User("Bob")
        assert users.id(user) is None

        await users.save(user)
        found = await users.find(users.id(user))
        assert found == user

        assert await users.destroy(user) == 1
        assert await users.find(users.id(user)) is None

    async def test_all_and_destroy_all(self, users: Repository[User]) -> None:
        await users.create(User("a"))
        await users.create(User("b", active=False))

        assert [u.name for u in await users.all({"active": True})] == ["a"]
        assert await users.destroy_all() == 2
        assert await users.all() == []

    async def test_callback_passthrough(self, users: Repository[User]) -> None:
        received: list[Any] = []
        await users.create(User("a"), callback=lambda err, res: received.append((err, res.name)))
        assert received == [(None, "a")]

    def test_on_registers_on_mapper(self, users: Repository[User]) -> None:
        listener = users.on("saving", lambda event: None)
        assert users.mapper.events.listeners("saving") == [listener]


class TestRepositoryScopes:
    async def test_scope_attribute(self, users: Repository[User]) -> None:
        users.scope("active_only", {"active": True})
        await users.create(User("a"))
        await users.create(User("b", active=False))

        view = users.active_only()
        assert isinstance(view, ScopedQuery)
        assert [u.name for u in await view.all()] == ["a"]
        assert [u.name for u in await users.scoped("active_only").all()] == ["a"]

    async def test_default_scope_and_unscoped(self, users: Repository[User]) -> None:
        users.scope_default({"active": True})
        await users.create(User("a"))
        await users.create(User("b", active=False))

        assert [u.name for u in await users.all()] == ["a"]
        assert [u.name for u in await users.query().all()] == ["a"]
        assert len(await users.unscoped().all()) == 2

    def test_scope_cannot_shadow_repository_method(self, users: Repository[User]) -> None:
        with pytest.raises(ScopeNameError):
            users.scope("create", {})
        with pytest.raises(ScopeNameError):
            users.scope("mapper", {})

    def test_unknown_attribute(self, users: Repository[User]) -> None:
        with pytest.raises(AttributeError, match="no attribute or scope"):
            users.missing  # noqa: B018


class TestRepositoryRelations:
    def test_accepts_repository_target(
        self, users: Repository[User], orders: Repository[Order]
    ) -> None:
        relation = users.finds_many(orders, "orders")
        assert relation.target is orders.mapper
        assert relation.foreign_key == "user_id"
        assert "user_id" in orders.mapper.props

    async def test_relation_round_trip(
        self, users: Repository[User], orders: Repository[Order]
    ) -> None:
        users.finds_many(orders, "orders")
        user = await users.create(User("Alice", orders=[Order(10.0), Order(5.5)]))

        found = await users.find(users.id(user))
        assert sorted(o.total for o in found.orders) == [5.5, 10.0]

    def test_repr(self, users: Repository[User]) -> None:
        assert repr(users).startswith("Repository(Mapper(User, 'users'")
