"""
Unit tests for the runtime bases of generated code.

Uses hand-written meta/manager/DSL subclasses shaped like the generated
ones.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

import pytest

from entmapper import codecs
from entmapper.runtime import (
    BoundStatement,
    DeleteDsl,
    EntityManager,
    EntityMeta,
    SelectDsl,
    UdtMeta,
    qualify,
)


class Status(Enum):
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Address:
    street: str
    zip_code: int


@dataclass
class Visit:
    user: UUID
    day: str
    status: Status
    address: Optional[Address] = None
    hits: int = 0
    written_at: int = 0


class AddressUdtMeta(UdtMeta):
    udt_class = Address
    udt_name = "address"
    fields = {"street": "street", "zip_code": "zip"}
    codecs = {"street": codecs.FallThroughCodec(str), "zip_code": codecs.FallThroughCodec(int)}
    create_type_template = "CREATE TYPE IF NOT EXISTS {name} (street text, zip int)"


class VisitMeta(EntityMeta):
    entity_class = Visit
    entity_name = "Visit"
    keyspace = "app"
    table = "visit"
    partition_keys = ("user",)
    clustering_columns = ("day",)
    clustering_order = (True,)
    computed_columns = ("written_at",)
    columns = {
        "user": "user_id",
        "day": "day",
        "status": "status",
        "address": "address",
        "written_at": "written_at",
    }
    selectors = {
        "user": "user_id",
        "day": "day",
        "status": "status",
        "address": "address",
        "written_at": "writetime(status) AS written_at",
    }
    result_keys = dict(columns)
    codecs = {
        "user": codecs.FallThroughCodec(UUID),
        "day": codecs.FallThroughCodec(str),
        "status": codecs.EnumNameCodec(Status),
        "address": codecs.UdtCodec(AddressUdtMeta),
        "written_at": codecs.FallThroughCodec(int),
    }
    create_table_template = "CREATE TABLE IF NOT EXISTS {table} (user_id uuid)"


class VisitManager(EntityManager):
    meta = VisitMeta

    def insert(self, entity, ttl=None):
        return self._insert(entity, ttl)


class HitsMeta(EntityMeta):
    entity_class = Visit
    entity_name = "Hits"
    table = "hits"
    partition_keys = ("user",)
    counter_columns = ("hits",)
    has_counter_column = True
    columns = {"user": "user_id", "hits": "hits"}
    codecs = {"user": codecs.FallThroughCodec(UUID), "hits": codecs.FallThroughCodec(int)}


class HitsManager(EntityManager):
    meta = HitsMeta


class VisitSelect(SelectDsl):
    meta = VisitMeta

    def user_eq(self, value):
        return self._where("user", "=", value)

    def day_gte(self, value):
        return self._where("day", ">=", value)

    def status_in(self, *values):
        return self._where_in("status", values)


class VisitDelete(DeleteDsl):
    meta = VisitMeta

    def user_eq(self, value):
        return self._where("user", "=", value)


def test_qualify():
    assert qualify("app", "visit") == "app.visit"
    assert qualify(None, "visit") == "visit"


class TestMeta:

    def test_to_row_skips_computed(self):
        visit = Visit(uuid4(), "mon", Status.ACTIVE, Address("Main", 1000))

        row = VisitMeta.to_row(visit)

        assert "written_at" not in row
        assert row["status"] == "ACTIVE"
        assert row["address"] == {"street": "Main", "zip": 1000}

    def test_from_row(self):
        user = uuid4()
        row = {
            "user_id": user,
            "day": "mon",
            "status": "CLOSED",
            "address": {"street": "Main", "zip": 1000},
            "written_at": 42,
        }

        visit = VisitMeta.from_row(row)

        assert visit.user == user
        assert visit.status is Status.CLOSED
        assert visit.address == Address("Main", 1000)
        assert visit.written_at == 42

    def test_select_clause(self):
        assert VisitMeta.select_clause() == (
            "user_id, day, status, address, writetime(status) AS written_at"
        )

    def test_statements(self):
        assert VisitMeta.create_table_statement() == "CREATE TABLE IF NOT EXISTS app.visit (user_id uuid)"
        assert VisitMeta.create_table_statement("other").startswith("CREATE TABLE IF NOT EXISTS other.visit")
        assert AddressUdtMeta.create_type_statement("app") == (
            "CREATE TYPE IF NOT EXISTS app.address (street text, zip int)"
        )


class TestManager:

    def test_insert(self):
        visit = Visit(uuid4(), "mon", Status.ACTIVE)

        statement = VisitManager().insert(visit, ttl=60)

        assert statement.cql == (
            "INSERT INTO app.visit (user_id, day, status, address) VALUES (?, ?, ?, ?) USING TTL ?"
        )
        assert statement.values == (visit.user, "mon", "ACTIVE", None, 60)

    def test_select_by_key(self):
        user = uuid4()

        statement = VisitManager("ks")._select_by_key((user, "mon"))

        assert statement == BoundStatement(
            "SELECT user_id, day, status, address, writetime(status) AS written_at "
            "FROM ks.visit WHERE user_id = ? AND day = ?",
            (user, "mon"),
        )

    def test_delete_by_key(self):
        user = uuid4()

        statement = VisitManager()._delete_by_key((user, "mon"))

        assert statement.cql == "DELETE FROM app.visit WHERE user_id = ? AND day = ?"

    def test_key_arity(self):
        with pytest.raises(ValueError, match="Expected 2 key value"):
            VisitManager()._select_by_key((uuid4(),))

    def test_counter_update(self):
        user = uuid4()

        statement = HitsManager()._counter_update("hits", (user,), -3)

        assert statement == BoundStatement(
            "UPDATE hits SET hits = hits + ? WHERE user_id = ?", (-3, user)
        )

    def test_counter_update_requires_counter(self):
        with pytest.raises(ValueError, match="is not a counter column"):
            HitsManager()._counter_update("user", (uuid4(),), 1)

    def test_map_row(self):
        visit = VisitManager().map_row({"day": "tue"})

        assert visit.day == "tue"


class TestDsl:

    def test_select(self):
        user = uuid4()

        statement = (
            VisitSelect()
            .user_eq(user)
            .day_gte("mon")
            .status_in(Status.ACTIVE, Status.CLOSED)
            .limit(10)
            .allow_filtering()
            .build()
        )

        assert statement.cql == (
            "SELECT user_id, day, status, address, writetime(status) AS written_at FROM app.visit "
            "WHERE user_id = ? AND day >= ? AND status IN (?, ?) LIMIT ? ALLOW FILTERING"
        )
        assert statement.values == (user, "mon", "ACTIVE", "CLOSED", 10)

    def test_select_all(self):
        assert VisitSelect("ks").build().cql.endswith("FROM ks.visit")

    def test_limit_positive(self):
        with pytest.raises(ValueError, match="limit must be positive"):
            VisitSelect().limit(0)

    def test_in_requires_values(self):
        with pytest.raises(ValueError, match="IN restriction on 'status' needs at least one value"):
            VisitSelect().status_in()

    def test_delete(self):
        user = uuid4()

        statement = VisitDelete().user_eq(user).build()

        assert statement == BoundStatement("DELETE FROM app.visit WHERE user_id = ?", (user,))

    def test_delete_requires_restriction(self):
        with pytest.raises(ValueError, match="requires at least one"):
            VisitDelete().build()
