"""
Mapping annotations for entity and UDT declarations.

Annotations are attached to fields with typing.Annotated and parsed once
per field into an AnnotationSet:

    >>> from dataclasses import dataclass
    >>> from typing import Annotated
    >>> from uuid import UUID
    >>> @entity(table="accounts")
    ... @dataclass
    ... class Account:
    ...     id: Annotated[UUID, PartitionKey(0)]
    ...     balance: Annotated[int, Counter()]
    ...     tags: Annotated[list[str], JSON()]

Structural annotations decide where a column lives in the table layout.
Encoding annotations decide how its value is transformed for storage.

Invariants:
    - An annotation kind appears at most once per field
    - Annotation instances are immutable
    - Metadata objects that are not mapping annotations are ignored

How to change safely:
    - Add new annotations with a new AnnotationKind member
    - Register incompatibilities in compiler.compat, never inline
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from ..errors import ConfigurationError
from .types import DEFAULT_CODEC_ATTR, ENTITY_ATTR, UDT_ATTR, TypeRef, _own_attr

logger = logging.getLogger(__name__)


class Encoding(Enum):
    """Enumerated persistence mode."""

    NAME = "name"
    ORDINAL = "ordinal"


class AnnotationKind(Enum):
    """Every annotation the compiler understands, by display name."""

    PARTITION_KEY = "PartitionKey"
    CLUSTERING_COLUMN = "ClusteringColumn"
    STATIC = "Static"
    COMPUTED = "Computed"
    COUNTER = "Counter"
    FROZEN = "Frozen"
    JSON = "JSON"
    ENUMERATED = "Enumerated"
    CODEC = "WithCodec"
    TIME_UUID = "TimeUUID"
    COLUMN = "Column"
    TRANSIENT = "Transient"

    @property
    def label(self) -> str:
        return f"@{self.value}"


STRUCTURAL_KINDS = frozenset(
    {
        AnnotationKind.PARTITION_KEY,
        AnnotationKind.CLUSTERING_COLUMN,
        AnnotationKind.STATIC,
        AnnotationKind.COMPUTED,
        AnnotationKind.COUNTER,
    }
)


@dataclass(frozen=True)
class PartitionKey:
    """Partition key component; order is 0-based."""

    order: int = 0


@dataclass(frozen=True)
class ClusteringColumn:
    """Clustering column; order is 0-based."""

    order: int = 0
    asc: bool = True


@dataclass(frozen=True)
class Static:
    """Column shared by all rows of a partition."""


@dataclass(frozen=True)
class Computed:
    """Read-only column computed by a CQL function.

    Attributes:
        function: CQL function name, e.g. "writetime"
        alias: Selection alias
        targets: Field names passed to the function
        cql_class: Persisted type of the function result
    """

    function: str
    alias: str
    targets: Tuple[str, ...]
    cql_class: Any

    def __post_init__(self) -> None:
        if isinstance(self.targets, str):
            object.__setattr__(self, "targets", (self.targets,))
        else:
            object.__setattr__(self, "targets", tuple(self.targets))


@dataclass(frozen=True)
class Counter:
    """Counter column (64-bit increment/decrement semantics)."""


@dataclass(frozen=True)
class Frozen:
    """Persist a collection, tuple or UDT as a frozen value."""


@dataclass(frozen=True)
class JSON:
    """Persist the value as JSON text."""


@dataclass(frozen=True)
class Enumerated:
    """Persist an Enum by name (text) or ordinal (32-bit int)."""

    encoding: Encoding = Encoding.NAME


@dataclass(frozen=True)
class WithCodec:
    """Persist the value through an explicit Codec[FROM, TO] subclass."""

    codec_class: Any


@dataclass(frozen=True)
class TimeUUID:
    """Persist a UUID field as timeuuid."""


@dataclass(frozen=True)
class Column:
    """Rename the persisted column."""

    name: str


@dataclass(frozen=True)
class Transient:
    """Exclude the field from persistence."""


_KIND_BY_CLASS: Dict[type, AnnotationKind] = {
    PartitionKey: AnnotationKind.PARTITION_KEY,
    ClusteringColumn: AnnotationKind.CLUSTERING_COLUMN,
    Static: AnnotationKind.STATIC,
    Computed: AnnotationKind.COMPUTED,
    Counter: AnnotationKind.COUNTER,
    Frozen: AnnotationKind.FROZEN,
    JSON: AnnotationKind.JSON,
    Enumerated: AnnotationKind.ENUMERATED,
    WithCodec: AnnotationKind.CODEC,
    TimeUUID: AnnotationKind.TIME_UUID,
    Column: AnnotationKind.COLUMN,
    Transient: AnnotationKind.TRANSIENT,
}


class AnnotationSet:
    """Parsed mapping annotations of one field (or one type argument).

    Example:
        >>> ann = AnnotationSet.parse([PartitionKey(1), Column("uid")])
        >>> ann.partition_key.order
        1
        >>> sorted(k.value for k in ann.kinds)
        ['Column', 'PartitionKey']
    """

    __slots__ = ("_by_kind",)

    def __init__(self, by_kind: Optional[Dict[AnnotationKind, Any]] = None) -> None:
        self._by_kind: Dict[AnnotationKind, Any] = dict(by_kind or {})

    @classmethod
    def parse(cls, metadata: Iterable[Any]) -> AnnotationSet:
        """Build an AnnotationSet from Annotated metadata.

        Marker annotations without parameters may be given as the bare
        class (``Annotated[int, Counter]``).

        Raises:
            ConfigurationError: If an annotation kind is declared twice, or a
                parameterized annotation is given as a bare class
        """
        found: Dict[AnnotationKind, Any] = {}
        for item in metadata:
            if isinstance(item, type) and item in _KIND_BY_CLASS:
                try:
                    item = item()
                except TypeError:
                    raise ConfigurationError(
                        f"Annotation @{item.__name__} requires parameters and must be instantiated"
                    ) from None
            kind = _KIND_BY_CLASS.get(type(item))
            if kind is None:
                logger.debug(f"Ignoring non-mapping metadata {item!r}")
                continue
            if kind in found:
                raise ConfigurationError(f"Annotation {kind.label} is declared more than once")
            found[kind] = item
        return cls(found)

    @property
    def kinds(self) -> FrozenSet[AnnotationKind]:
        return frozenset(self._by_kind)

    def has(self, kind: AnnotationKind) -> bool:
        return kind in self._by_kind

    def get(self, kind: AnnotationKind) -> Any:
        return self._by_kind.get(kind)

    @property
    def partition_key(self) -> Optional[PartitionKey]:
        return self._by_kind.get(AnnotationKind.PARTITION_KEY)

    @property
    def clustering_column(self) -> Optional[ClusteringColumn]:
        return self._by_kind.get(AnnotationKind.CLUSTERING_COLUMN)

    @property
    def static(self) -> bool:
        return AnnotationKind.STATIC in self._by_kind

    @property
    def computed(self) -> Optional[Computed]:
        return self._by_kind.get(AnnotationKind.COMPUTED)

    @property
    def counter(self) -> bool:
        return AnnotationKind.COUNTER in self._by_kind

    @property
    def frozen(self) -> bool:
        return AnnotationKind.FROZEN in self._by_kind

    @property
    def json(self) -> bool:
        return AnnotationKind.JSON in self._by_kind

    @property
    def enumerated(self) -> Optional[Enumerated]:
        return self._by_kind.get(AnnotationKind.ENUMERATED)

    @property
    def codec(self) -> Optional[WithCodec]:
        return self._by_kind.get(AnnotationKind.CODEC)

    @property
    def time_uuid(self) -> bool:
        return AnnotationKind.TIME_UUID in self._by_kind

    @property
    def column(self) -> Optional[Column]:
        return self._by_kind.get(AnnotationKind.COLUMN)

    @property
    def transient(self) -> bool:
        return AnnotationKind.TRANSIENT in self._by_kind

    @property
    def computed_override(self) -> Optional[TypeRef]:
        """Persisted type override declared by @Computed, if any."""
        computed = self.computed
        if computed is None:
            return None
        return TypeRef.of(computed.cql_class)

    @property
    def structural_kinds(self) -> FrozenSet[AnnotationKind]:
        return self.kinds & STRUCTURAL_KINDS

    def __repr__(self) -> str:
        names = ", ".join(sorted(k.value for k in self._by_kind))
        return f"AnnotationSet({names})"


# --- Class decorators ---


@dataclass(frozen=True)
class EntityOptions:
    """Options recorded by @entity."""

    table: Optional[str] = None
    keyspace: Optional[str] = None


@dataclass(frozen=True)
class UdtOptions:
    """Options recorded by @udt."""

    name: Optional[str] = None
    keyspace: Optional[str] = None


def entity(cls: Optional[type] = None, *, table: Optional[str] = None, keyspace: Optional[str] = None):
    """Mark a class as a mapped entity.

    Usable bare (``@entity``) or with options (``@entity(table="t")``).
    """

    def wrap(target: type) -> type:
        setattr(target, ENTITY_ATTR, EntityOptions(table=table, keyspace=keyspace))
        return target

    if cls is not None:
        return wrap(cls)
    return wrap


def udt(cls: Optional[type] = None, *, name: Optional[str] = None, keyspace: Optional[str] = None):
    """Mark a class as a user-defined type."""

    def wrap(target: type) -> type:
        setattr(target, UDT_ATTR, UdtOptions(name=name, keyspace=keyspace))
        return target

    if cls is not None:
        return wrap(cls)
    return wrap


def default_codec(codec_class: type):
    """Bind a codec to a type, used for every field declared with that type."""

    def wrap(target: type) -> type:
        setattr(target, DEFAULT_CODEC_ATTR, codec_class)
        return target

    return wrap


def entity_options(cls: Any) -> Optional[EntityOptions]:
    return _own_attr(cls, ENTITY_ATTR)


def udt_options(cls: Any) -> Optional[UdtOptions]:
    return _own_attr(cls, UDT_ATTR)


def is_entity_class(obj: Any) -> bool:
    return entity_options(obj) is not None


def is_udt_class(obj: Any) -> bool:
    return udt_options(obj) is not None
