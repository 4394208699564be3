"""
Base classes for generated artifacts.

Generated meta, manager and DSL modules subclass these and fill in class
attributes. Everything here builds statement values; nothing executes
them (execution belongs to the hosting query layer).

Invariants:
    - BoundStatement values are already encoded through the field codecs
    - Computed columns are never written
    - Counter columns are only written through counter updates
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple


class BoundStatement(NamedTuple):
    """A CQL statement and its positional bind values."""

    cql: str
    values: Tuple[Any, ...] = ()


def qualify(keyspace: Optional[str], name: str) -> str:
    return f"{keyspace}.{name}" if keyspace else name


class UdtMeta:
    """Metadata of one user-defined type."""

    udt_class: ClassVar[type]
    udt_name: ClassVar[str]
    keyspace: ClassVar[Optional[str]] = None
    fields: ClassVar[Dict[str, str]] = {}
    codecs: ClassVar[Dict[str, Any]] = {}
    create_type_template: ClassVar[str] = ""

    @classmethod
    def to_udt_value(cls, value: Any) -> Dict[str, Any]:
        return {
            column: cls.codecs[name].encode(getattr(value, name, None))
            for name, column in cls.fields.items()
        }

    @classmethod
    def from_udt_value(cls, value: Any) -> Any:
        instance = cls.udt_class.__new__(cls.udt_class)
        for name, column in cls.fields.items():
            if isinstance(value, Mapping):
                raw = value.get(column)
            else:
                raw = getattr(value, column, None)
            object.__setattr__(instance, name, cls.codecs[name].decode(raw))
        return instance

    @classmethod
    def create_type_statement(cls, keyspace: Optional[str] = None) -> str:
        return cls.create_type_template.format(name=qualify(keyspace or cls.keyspace, cls.udt_name))


class EntityMeta:
    """Column mapping of one entity."""

    entity_class: ClassVar[type]
    entity_name: ClassVar[str]
    keyspace: ClassVar[Optional[str]] = None
    table: ClassVar[str]
    partition_keys: ClassVar[Tuple[str, ...]] = ()
    clustering_columns: ClassVar[Tuple[str, ...]] = ()
    clustering_order: ClassVar[Tuple[bool, ...]] = ()
    static_columns: ClassVar[Tuple[str, ...]] = ()
    computed_columns: ClassVar[Tuple[str, ...]] = ()
    counter_columns: ClassVar[Tuple[str, ...]] = ()
    has_counter_column: ClassVar[bool] = False
    columns: ClassVar[Dict[str, str]] = {}
    selectors: ClassVar[Dict[str, str]] = {}
    result_keys: ClassVar[Dict[str, str]] = {}
    codecs: ClassVar[Dict[str, Any]] = {}
    create_table_template: ClassVar[str] = ""

    @classmethod
    def qualified_table(cls, keyspace: Optional[str] = None) -> str:
        return qualify(keyspace or cls.keyspace, cls.table)

    @classmethod
    def primary_key(cls) -> Tuple[str, ...]:
        return cls.partition_keys + cls.clustering_columns

    @classmethod
    def encode(cls, name: str, value: Any) -> Any:
        if value is None:
            return None
        return cls.codecs[name].encode(value)

    @classmethod
    def decode(cls, name: str, value: Any) -> Any:
        if value is None:
            return None
        return cls.codecs[name].decode(value)

    @classmethod
    def writable_fields(cls) -> List[str]:
        return [
            name
            for name in cls.columns
            if name not in cls.computed_columns and name not in cls.counter_columns
        ]

    @classmethod
    def to_row(cls, entity: Any) -> Dict[str, Any]:
        """Encode writable fields to a column -> value mapping."""
        return {
            cls.columns[name]: cls.encode(name, getattr(entity, name, None))
            for name in cls.writable_fields()
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Any:
        """Build an entity from a result row (missing columns are skipped)."""
        instance = cls.entity_class.__new__(cls.entity_class)
        for name in cls.columns:
            key = cls.result_keys.get(name, cls.columns[name])
            if key in row:
                object.__setattr__(instance, name, cls.decode(name, row[key]))
        return instance

    @classmethod
    def select_clause(cls) -> str:
        return ", ".join(cls.selectors[name] for name in cls.columns)

    @classmethod
    def create_table_statement(cls, keyspace: Optional[str] = None) -> str:
        return cls.create_table_template.format(table=cls.qualified_table(keyspace))


def _restriction(meta: type[EntityMeta], names: Sequence[str]) -> str:
    return " AND ".join(f"{meta.columns[name]} = ?" for name in names)


class EntityManager:
    """Statement surface for one entity."""

    meta: ClassVar[type[EntityMeta]]

    def __init__(self, keyspace: Optional[str] = None) -> None:
        self.keyspace = keyspace if keyspace is not None else self.meta.keyspace

    @property
    def table(self) -> str:
        return self.meta.qualified_table(self.keyspace)

    def _encode_keys(self, names: Sequence[str], values: Sequence[Any]) -> Tuple[Any, ...]:
        if len(names) != len(values):
            raise ValueError(f"Expected {len(names)} key value(s), got {len(values)}")
        return tuple(self.meta.encode(name, value) for name, value in zip(names, values))

    def _insert(self, entity: Any, ttl: Optional[int] = None) -> BoundStatement:
        row = self.meta.to_row(entity)
        columns = ", ".join(row)
        markers = ", ".join("?" for _ in row)
        cql = f"INSERT INTO {self.table} ({columns}) VALUES ({markers})"
        values = tuple(row.values())
        if ttl is not None:
            cql += " USING TTL ?"
            values += (ttl,)
        return BoundStatement(cql, values)

    def _select_by_key(self, values: Sequence[Any]) -> BoundStatement:
        names = self.meta.primary_key()
        cql = f"SELECT {self.meta.select_clause()} FROM {self.table} WHERE {_restriction(self.meta, names)}"
        return BoundStatement(cql, self._encode_keys(names, values))

    def _delete_by_key(self, values: Sequence[Any]) -> BoundStatement:
        names = self.meta.primary_key()
        cql = f"DELETE FROM {self.table} WHERE {_restriction(self.meta, names)}"
        return BoundStatement(cql, self._encode_keys(names, values))

    def _counter_update(self, name: str, values: Sequence[Any], delta: int) -> BoundStatement:
        if name not in self.meta.counter_columns:
            raise ValueError(f"'{name}' is not a counter column")
        column = self.meta.columns[name]
        names = self.meta.primary_key()
        if name in self.meta.static_columns:
            names = self.meta.partition_keys
        cql = (
            f"UPDATE {self.table} SET {column} = {column} + ? "
            f"WHERE {_restriction(self.meta, names)}"
        )
        return BoundStatement(cql, (delta,) + self._encode_keys(names, values))

    def map_row(self, row: Mapping[str, Any]) -> Any:
        return self.meta.from_row(row)


class _WhereDsl:
    meta: ClassVar[type[EntityMeta]]

    def __init__(self, keyspace: Optional[str] = None) -> None:
        self.keyspace = keyspace if keyspace is not None else self.meta.keyspace
        self._clauses: List[str] = []
        self._values: List[Any] = []

    def _where(self, name: str, op: str, value: Any):
        self._clauses.append(f"{self.meta.columns[name]} {op} ?")
        self._values.append(self.meta.encode(name, value))
        return self

    def _where_in(self, name: str, values: Sequence[Any]):
        if not values:
            raise ValueError(f"IN restriction on '{name}' needs at least one value")
        markers = ", ".join("?" for _ in values)
        self._clauses.append(f"{self.meta.columns[name]} IN ({markers})")
        self._values.extend(self.meta.encode(name, v) for v in values)
        return self

    def _where_sql(self) -> str:
        return f" WHERE {' AND '.join(self._clauses)}" if self._clauses else ""


class SelectDsl(_WhereDsl):
    """Fluent SELECT builder base."""

    def __init__(self, keyspace: Optional[str] = None) -> None:
        super().__init__(keyspace)
        self._limit: Optional[int] = None
        self._allow_filtering = False

    def limit(self, limit: int):
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        self._limit = limit
        return self

    def allow_filtering(self):
        self._allow_filtering = True
        return self

    def build(self) -> BoundStatement:
        cql = f"SELECT {self.meta.select_clause()} FROM {self.meta.qualified_table(self.keyspace)}"
        cql += self._where_sql()
        values = list(self._values)
        if self._limit is not None:
            cql += " LIMIT ?"
            values.append(self._limit)
        if self._allow_filtering:
            cql += " ALLOW FILTERING"
        return BoundStatement(cql, tuple(values))


class DeleteDsl(_WhereDsl):
    """Fluent DELETE builder base."""

    def build(self) -> BoundStatement:
        if not self._clauses:
            raise ValueError("DELETE requires at least one partition key restriction")
        cql = f"DELETE FROM {self.meta.qualified_table(self.keyspace)}{self._where_sql()}"
        return BoundStatement(cql, tuple(self._values))
