"""
Declared type references for the entmapper schema compiler.

This module normalizes Python type annotations into TypeRef values:
- Annotated[T, ...] metadata is split off and kept beside the type
- Optional[T] collapses to T (nullability is not a persisted property)
- typing aliases (List, Dict, ...) collapse to their builtin origins
- Names that cannot be resolved stay as forward references

It also defines the width marker types used to pick a persisted integer,
float or blob representation where Python has a single runtime type.

Invariants:
    - TypeRef equality ignores Annotated metadata and optionality
    - A forward TypeRef never has an origin
    - TypeRef values are immutable and hashable

Example:
    >>> from typing import Annotated
    >>> from entmapper.schema.annotations import JSON
    >>> ref = TypeRef.of(Annotated[list[str], JSON()])
    >>> str(ref)
    'list[str]'
"""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass, replace
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, Callable, Iterator, NewType, Optional

from ..errors import MappingTypeError

# Width markers. ``int`` itself is the 64-bit integer type.
Int8 = NewType("Int8", int)
Int16 = NewType("Int16", int)
Int32 = NewType("Int32", int)
Varint = NewType("Varint", int)
Float32 = NewType("Float32", float)
Blob = NewType("Blob", bytes)

# Class attributes set by the @entity, @udt and @default_codec decorators
ENTITY_ATTR = "__entmapper_entity__"
UDT_ATTR = "__entmapper_udt__"
DEFAULT_CODEC_ATTR = "__entmapper_codec__"

COLLECTION_ORIGINS = (list, set, frozenset, dict, tuple)

Resolver = Callable[[str], Optional[Any]]


def _own_attr(obj: Any, name: str) -> Any:
    """Read an attribute set on the class itself, not inherited."""
    if isinstance(obj, type):
        return vars(obj).get(name)
    return None


def qualified_name(cls: Any) -> str:
    """Dotted module path of a class, used as its identity in diagnostics."""
    module = getattr(cls, "__module__", None)
    qualname = getattr(cls, "__qualname__", None) or getattr(cls, "__name__", repr(cls))
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"


@dataclass(frozen=True)
class TypeRef:
    """Normalized declared type.

    Attributes:
        origin: The runtime class, NewType or generic origin (None if forward)
        args: Normalized type arguments for generics
        forward: Name of an unresolved forward reference
        metadata: Annotated metadata attached at this level
        optional: Whether the annotation was Optional[...]
    """

    origin: Any = None
    args: tuple[TypeRef, ...] = ()
    forward: Optional[str] = None
    metadata: tuple[Any, ...] = dataclass_field(default=(), compare=False)
    optional: bool = dataclass_field(default=False, compare=False)

    @classmethod
    def of(cls, annotation: Any, resolve: Optional[Resolver] = None) -> TypeRef:
        """Normalize an annotation object.

        Args:
            annotation: A type, generic alias, Annotated[...] or ForwardRef
            resolve: Optional lookup for forward reference names

        Returns:
            TypeRef for the annotation

        Raises:
            MappingTypeError: For unions of several types or None
        """
        if isinstance(annotation, TypeRef):
            return annotation
        if isinstance(annotation, str):
            annotation = typing.ForwardRef(annotation)
        if isinstance(annotation, typing.ForwardRef):
            name = annotation.__forward_arg__
            target = resolve(name) if resolve else None
            if target is None or isinstance(target, typing.ForwardRef):
                return cls(forward=name)
            return cls.of(target, resolve)
        if annotation is Ellipsis:
            return cls(origin=Ellipsis)
        if annotation is None or annotation is type(None):
            raise MappingTypeError("None is not a persistable type")

        origin = typing.get_origin(annotation)
        if origin is typing.Annotated:
            base, *metadata = typing.get_args(annotation)
            inner = cls.of(base, resolve)
            return replace(inner, metadata=tuple(metadata) + inner.metadata)

        if origin is typing.Union or origin is types.UnionType:
            members = [a for a in typing.get_args(annotation) if a is not type(None)]
            if len(members) != 1:
                raise MappingTypeError(f"Union type '{annotation}' is not supported")
            return replace(cls.of(members[0], resolve), optional=True)

        if origin is not None:
            args = tuple(cls.of(a, resolve) for a in typing.get_args(annotation))
            return cls(origin=origin, args=args)

        return cls(origin=annotation)

    @property
    def is_forward(self) -> bool:
        return self.forward is not None

    @property
    def is_collection(self) -> bool:
        return self.origin in COLLECTION_ORIGINS

    @property
    def is_enum(self) -> bool:
        return isinstance(self.origin, type) and issubclass(self.origin, Enum)

    @property
    def is_udt(self) -> bool:
        return _own_attr(self.origin, UDT_ATTR) is not None

    @property
    def is_entity(self) -> bool:
        return _own_attr(self.origin, ENTITY_ATTR) is not None

    @property
    def is_composite(self) -> bool:
        """Collections, tuples and UDTs (the types Frozen applies to)."""
        return self.is_collection or self.is_udt

    @property
    def default_codec(self) -> Optional[type]:
        return _own_attr(self.origin, DEFAULT_CODEC_ATTR)

    @property
    def name(self) -> str:
        if self.forward is not None:
            return self.forward
        if self.origin is Ellipsis:
            return "..."
        return getattr(self.origin, "__name__", repr(self.origin))

    def has_nested_metadata(self) -> bool:
        """Whether any type argument carries Annotated metadata."""
        return any(arg.metadata or arg.has_nested_metadata() for arg in self.args)

    def walk(self) -> Iterator[TypeRef]:
        """Yield this type and every nested type argument, depth first."""
        yield self
        for arg in self.args:
            yield from arg.walk()

    def python_expr(self, imports: set[tuple[str, str]]) -> str:
        """Render a Python expression evaluating to this type.

        Args:
            imports: Set receiving (module, name) pairs the expression needs

        Raises:
            MappingTypeError: If the type is a forward reference or is
                defined in a function body (not importable)
        """
        if self.forward is not None:
            raise MappingTypeError(f"Cannot render unresolved type '{self.forward}'")
        if self.origin is Ellipsis:
            return "..."

        module = getattr(self.origin, "__module__", None)
        qualname = getattr(self.origin, "__qualname__", None) or getattr(
            self.origin, "__name__", None
        )
        if qualname is None:
            raise MappingTypeError(f"Cannot render type '{self.origin!r}'")
        if "<locals>" in qualname:
            raise MappingTypeError(
                f"Type '{qualname}' is defined inside a function and cannot be imported "
                "by generated code"
            )
        if module != "builtins":
            imports.add((module, qualname.split(".")[0]))

        if not self.args:
            return qualname
        rendered = ", ".join(arg.python_expr(imports) for arg in self.args)
        return f"{qualname}[{rendered}]"

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}[{', '.join(str(a) for a in self.args)}]"


INT64 = TypeRef(int)
TEXT = TypeRef(str)
INT32 = TypeRef(Int32)
BLOB = TypeRef(Blob)
