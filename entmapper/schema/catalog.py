"""
Allowed persisted types.

The catalog answers one question: can a TypeRef be stored as-is? It
also renders the CQL type name used in generated DDL.

Invariants:
    - int is the only 64-bit integer type (bigint)
    - Composite types are allowed iff every component is allowed
    - bytes and bytearray are declared types, not persisted ones; they are
      stored as Blob through a codec
"""

from __future__ import annotations

import datetime
import ipaddress
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from .types import INT64, Blob, Float32, Int8, Int16, Int32, TypeRef, Varint

SCALAR_CQL_TYPES: Dict[Any, str] = {
    str: "text",
    int: "bigint",
    Int32: "int",
    Int16: "smallint",
    Int8: "tinyint",
    Varint: "varint",
    float: "double",
    Float32: "float",
    bool: "boolean",
    Decimal: "decimal",
    uuid.UUID: "uuid",
    datetime.datetime: "timestamp",
    datetime.date: "date",
    datetime.time: "time",
    datetime.timedelta: "duration",
    ipaddress.IPv4Address: "inet",
    ipaddress.IPv6Address: "inet",
    Blob: "blob",
}

UdtNamer = Callable[[type], str]


def _default_udt_name(cls: type) -> str:
    return cls.__name__.lower()


class AllowedTypeCatalog:
    """Membership predicate over persisted types.

    Example:
        >>> catalog = AllowedTypeCatalog()
        >>> catalog.is_allowed(TypeRef.of(list[str]))
        True
        >>> catalog.is_allowed(TypeRef.of(bytes))
        False
    """

    def __init__(self, scalars: Optional[Mapping[Any, str]] = None) -> None:
        self._scalars: Dict[Any, str] = dict(scalars if scalars is not None else SCALAR_CQL_TYPES)

    def is_scalar(self, ref: TypeRef) -> bool:
        try:
            return ref.origin in self._scalars and not ref.args
        except TypeError:
            # unhashable origin
            return False

    def is_allowed(self, ref: TypeRef) -> bool:
        """Whether the type is a valid persisted representation."""
        if ref.is_forward:
            return False
        if self.is_scalar(ref):
            return True
        if ref.is_udt:
            return True
        if ref.origin in (list, set, frozenset):
            return len(ref.args) == 1 and self.is_allowed(ref.args[0])
        if ref.origin is dict:
            return len(ref.args) == 2 and all(self.is_allowed(a) for a in ref.args)
        if ref.origin is tuple:
            return bool(ref.args) and all(
                a.origin is not Ellipsis and self.is_allowed(a) for a in ref.args
            )
        return False

    @staticmethod
    def is_64bit_integer(ref: TypeRef) -> bool:
        return ref == INT64

    def cql_type(
        self,
        ref: TypeRef,
        *,
        frozen: bool = False,
        time_uuid: bool = False,
        udt_name: Optional[UdtNamer] = None,
        nested: bool = False,
    ) -> str:
        """Render the CQL type of an allowed persisted type.

        Collections and UDTs nested inside another collection are always
        frozen, as CQL requires.

        Raises:
            ValueError: If the type is not allowed
        """
        namer = udt_name or _default_udt_name
        if self.is_scalar(ref):
            if time_uuid and ref.origin is uuid.UUID:
                return "timeuuid"
            return self._scalars[ref.origin]

        if ref.is_udt:
            rendered = namer(ref.origin)
        elif ref.origin in (list, set, frozenset):
            element = self.cql_type(ref.args[0], udt_name=namer, nested=True)
            rendered = f"{'list' if ref.origin is list else 'set'}<{element}>"
        elif ref.origin is dict:
            key = self.cql_type(ref.args[0], udt_name=namer, nested=True)
            value = self.cql_type(ref.args[1], udt_name=namer, nested=True)
            rendered = f"map<{key}, {value}>"
        elif ref.origin is tuple:
            parts = ", ".join(self.cql_type(a, udt_name=namer, nested=True) for a in ref.args)
            # tuples are always frozen in CQL
            return f"frozen<tuple<{parts}>>"
        else:
            raise ValueError(f"Type '{ref}' is not an allowed persisted type")

        if frozen or nested:
            return f"frozen<{rendered}>"
        return rendered
