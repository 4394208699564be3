"""
Runtime codecs referenced by generated artifacts.

A codec is a bidirectional transform between a field's in-memory type and
its persisted type. User codecs subclass Codec with both type arguments
bound; the compiler reads those arguments to validate the mapping:

    >>> class MoneyCodec(Codec[Decimal, str]):
    ...     def encode(self, value): return str(value)
    ...     def decode(self, value): return Decimal(value)

None passes through every built-in codec unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, Sequence, Tuple, Type, TypeVar

from pydantic import TypeAdapter

FROM = TypeVar("FROM")
TO = TypeVar("TO")


class Codec(Generic[FROM, TO]):
    """Base class for all codecs."""

    def encode(self, value: FROM) -> TO:
        raise NotImplementedError

    def decode(self, value: TO) -> FROM:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FallThroughCodec(Codec[Any, Any]):
    """Identity codec for types persisted as-is."""

    def __init__(self, value_type: Any) -> None:
        self.value_type = value_type

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, value: Any) -> Any:
        return value


class JsonCodec(Codec[Any, str]):
    """Round-trips any structured value through JSON text.

    The value type is described recursively (e.g. ``dict[str, list[Item]]``)
    so that decoding rebuilds nested dataclasses, enums and collections.
    """

    def __init__(self, value_type: Any) -> None:
        self.value_type = value_type
        self._adapter = TypeAdapter(value_type)

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        return self._adapter.dump_json(value).decode("utf-8")

    def decode(self, value: Any) -> Any:
        if value is None:
            return None
        return self._adapter.validate_json(value)


class EnumNameCodec(Codec[Enum, str]):
    """Persists an Enum member by name."""

    def __init__(self, enum_class: Type[Enum]) -> None:
        self.enum_class = enum_class

    def encode(self, value: Any) -> Any:
        return None if value is None else value.name

    def decode(self, value: Any) -> Any:
        return None if value is None else self.enum_class[value]


class EnumOrdinalCodec(Codec[Enum, int]):
    """Persists an Enum member by its declaration position."""

    def __init__(self, enum_class: Type[Enum]) -> None:
        self.enum_class = enum_class
        self._members = list(enum_class)

    def encode(self, value: Any) -> Any:
        return None if value is None else self._members.index(value)

    def decode(self, value: Any) -> Any:
        return None if value is None else self._members[value]


class BytesBlobCodec(Codec[bytes, bytes]):
    """bytes <-> blob."""

    def encode(self, value: Any) -> Any:
        return None if value is None else bytes(value)

    def decode(self, value: Any) -> Any:
        return None if value is None else bytes(value)


class BytearrayBlobCodec(Codec[bytearray, bytes]):
    """bytearray <-> blob."""

    def encode(self, value: Any) -> Any:
        return None if value is None else bytes(value)

    def decode(self, value: Any) -> Any:
        return None if value is None else bytearray(value)


class CollectionCodec(Codec[Any, Any]):
    """Applies element codecs inside a list, set, frozenset, dict or tuple.

    Args:
        container: The collection type (list, set, frozenset, dict, tuple)
        codecs: One codec for list/set, (key, value) for dict, one per
            position for tuple
    """

    def __init__(self, container: type, codecs: Sequence[Codec]) -> None:
        self.container = container
        self.codecs = tuple(codecs)

    def _apply(self, value: Any, direction: str) -> Any:
        if value is None:
            return None
        if self.container is dict:
            key_codec, value_codec = self.codecs
            return {
                getattr(key_codec, direction)(k): getattr(value_codec, direction)(v)
                for k, v in value.items()
            }
        if self.container is tuple:
            return tuple(getattr(c, direction)(v) for c, v in zip(self.codecs, value))
        element = self.codecs[0]
        return self.container(getattr(element, direction)(v) for v in value)

    def encode(self, value: Any) -> Any:
        return self._apply(value, "encode")

    def decode(self, value: Any) -> Any:
        return self._apply(value, "decode")


class UdtCodec(Codec[Any, dict]):
    """Maps an object to and from a UDT value via its generated meta class."""

    def __init__(self, udt_meta: Any) -> None:
        self.udt_meta = udt_meta

    def encode(self, value: Any) -> Any:
        return None if value is None else self.udt_meta.to_udt_value(value)

    def decode(self, value: Any) -> Any:
        return None if value is None else self.udt_meta.from_udt_value(value)


class JoinCodec(Codec[Any, Any]):
    """Persists a reference to another entity as that entity's partition key.

    Decoding yields a reference instance of the target class carrying only
    its key fields.
    """

    def __init__(self, target_class: type, key_fields: Tuple[str, ...], key_codecs: Sequence[Codec]) -> None:
        self.target_class = target_class
        self.key_fields = tuple(key_fields)
        self.key_codecs = tuple(key_codecs)

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        encoded = tuple(
            codec.encode(getattr(value, name)) for name, codec in zip(self.key_fields, self.key_codecs)
        )
        return encoded[0] if len(encoded) == 1 else encoded

    def decode(self, value: Any) -> Any:
        if value is None:
            return None
        values = (value,) if len(self.key_fields) == 1 else tuple(value)
        reference = self.target_class.__new__(self.target_class)
        for name, codec, raw in zip(self.key_fields, self.key_codecs, values):
            object.__setattr__(reference, name, codec.decode(raw))
        return reference
