"""
Codec resolution.

Resolves a field's declared type and annotations into a CodecBinding:
the persisted type plus the strategy used to build the runtime codec.
Rules are tried in a fixed order and the first match wins:

    1. @JSON                -> text, JSON transform of the full declared type
    2. @WithCodec(C)        -> C's TO type, after validating C[FROM, TO]
    3. @default_codec(C) on the declared type -> same validation as 2
    4. @Enumerated          -> text (NAME) or 32-bit int (ORDINAL)
    5. bytes / bytearray    -> blob
    6. fallback             -> the declared type itself (identity), with
                               recursive element codecs for collections
                               carrying nested encodings or UDTs

Invariants:
    - persisted_type is always accepted by the AllowedTypeCatalog
    - A counter field's persisted_type is int, whichever rule produced it
    - resolve() fails fast on the first problem; callers aggregate

How to change safely:
    - New rules go into _resolve in priority position, never after the
      fallback
    - Keep rendering of Python source out of this module (see codegen)
"""

from __future__ import annotations

import logging
import sys
import typing
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..codecs import Codec
from ..errors import CodecArityError, ConfigurationError, MappingError, MappingTypeError
from ..schema.annotations import AnnotationKind, AnnotationSet, Encoding
from ..schema.catalog import AllowedTypeCatalog
from ..schema.declarations import FieldDescriptor
from ..schema.types import BLOB, INT32, TEXT, TypeRef, qualified_name
from .compat import FORBIDDEN_PAIRS, ForbiddenPair

logger = logging.getLogger(__name__)

# Annotations that may appear on a collection type argument
NESTED_KINDS = frozenset(
    {
        AnnotationKind.FROZEN,
        AnnotationKind.JSON,
        AnnotationKind.ENUMERATED,
        AnnotationKind.CODEC,
        AnnotationKind.TIME_UUID,
    }
)


class CodecStrategy(Enum):
    """How the runtime codec of a column is constructed."""

    JSON = "json"
    FIELD_CODEC = "field_codec"
    CLASS_CODEC = "class_codec"
    ENUM_NAME = "enum_name"
    ENUM_ORDINAL = "enum_ordinal"
    BYTES = "bytes"
    BYTEARRAY = "bytearray"
    UDT = "udt"
    COLLECTION = "collection"
    PASSTHROUGH = "passthrough"
    JOIN = "join"


@dataclass(frozen=True)
class CodecBinding:
    """Resolved persistence of one field or type argument.

    Attributes:
        source_type: Declared in-memory type
        persisted_type: Type handed to the driver (allowed by the catalog)
        strategy: Codec construction strategy
        codec_class: User codec class for FIELD_CODEC / CLASS_CODEC
        elements: Element bindings (COLLECTION) or key bindings (JOIN)
        time_uuid: UUID persisted as timeuuid
        frozen: Composite persisted frozen
        join_target: Target entity class (JOIN)
        join_key_fields: Target partition key fields, in order (JOIN)
    """

    source_type: TypeRef
    persisted_type: TypeRef
    strategy: CodecStrategy
    codec_class: Optional[type] = None
    elements: Tuple[CodecBinding, ...] = ()
    time_uuid: bool = False
    frozen: bool = False
    join_target: Optional[type] = None
    join_key_fields: Tuple[str, ...] = ()

    def describe(self) -> str:
        """Short description of the codec construction."""
        s = self.strategy
        if s in (CodecStrategy.FIELD_CODEC, CodecStrategy.CLASS_CODEC):
            return f"{self.codec_class.__name__}()"
        if s is CodecStrategy.JSON:
            return f"JsonCodec({self.source_type})"
        if s is CodecStrategy.ENUM_NAME:
            return f"EnumNameCodec({self.source_type})"
        if s is CodecStrategy.ENUM_ORDINAL:
            return f"EnumOrdinalCodec({self.source_type})"
        if s is CodecStrategy.BYTES:
            return "BytesBlobCodec()"
        if s is CodecStrategy.BYTEARRAY:
            return "BytearrayBlobCodec()"
        if s is CodecStrategy.UDT:
            return f"UdtCodec({self.source_type})"
        if s is CodecStrategy.COLLECTION:
            inner = ", ".join(e.describe() for e in self.elements)
            return f"CollectionCodec({self.source_type.name}, [{inner}])"
        if s is CodecStrategy.JOIN:
            return f"JoinCodec({self.join_target.__name__}, {list(self.join_key_fields)})"
        return f"FallThroughCodec({self.source_type})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source_type),
            "persisted": str(self.persisted_type),
            "strategy": self.strategy.value,
            "codec": self.describe(),
        }


def _codec_resolver(codec_class: type):
    module = sys.modules.get(codec_class.__module__)
    namespace = vars(module) if module is not None else {}
    return namespace.get


def codec_type_arguments(codec_class: Any) -> Tuple[TypeRef, TypeRef]:
    """Extract the (FROM, TO) type arguments of a Codec subclass.

    The arguments are read from the generic base the class (or one of its
    ancestors) parameterized, e.g. ``class C(Codec[Decimal, str])``.

    Raises:
        CodecArityError: If the class is not a Codec or does not bind
            exactly two concrete type parameters
    """
    name = getattr(codec_class, "__name__", repr(codec_class))
    arity_error = CodecArityError(
        f"Codec class '{name}' should have 2 parameters: Codec[FROM, TO]",
        details={"codec": name},
    )
    if not (isinstance(codec_class, type) and issubclass(codec_class, Codec)):
        raise arity_error

    for klass in codec_class.__mro__:
        for base in vars(klass).get("__orig_bases__", ()):
            origin = typing.get_origin(base)
            if not (isinstance(origin, type) and issubclass(origin, Codec)):
                continue
            args = typing.get_args(base)
            if len(args) != 2 or any(isinstance(a, typing.TypeVar) for a in args):
                raise arity_error
            resolve = _codec_resolver(codec_class)
            return TypeRef.of(args[0], resolve), TypeRef.of(args[1], resolve)
    raise arity_error


class CodecResolver:
    """Resolves CodecBindings with the ordered rule chain.

    Example:
        >>> resolver = CodecResolver()
        >>> binding = resolver.resolve(field)
        >>> binding.persisted_type
        TypeRef(origin=<class 'str'>, ...)
    """

    def __init__(
        self,
        catalog: Optional[AllowedTypeCatalog] = None,
        nested_rules: typing.Sequence[ForbiddenPair] = FORBIDDEN_PAIRS,
    ) -> None:
        self.catalog = catalog or AllowedTypeCatalog()
        self.nested_rules = tuple(nested_rules)

    def resolve(self, field: FieldDescriptor, annotations: Optional[AnnotationSet] = None) -> CodecBinding:
        """Resolve the binding of one field.

        Raises:
            MappingTypeError: Unsupported or mismatched types, counter not int
            CodecArityError: Codec class without two type parameters
            ConfigurationError: Illegal nested annotations
        """
        annotations = annotations if annotations is not None else field.annotations
        try:
            binding = self._resolve(field.declared_type, annotations)
            self._check_override(binding, annotations)
            self._check_counter(binding, annotations, field)
        except MappingError as e:
            raise e.bind(field.owner_name, field.name)
        logger.debug(f"Resolved {field} -> {binding.persisted_type} via {binding.strategy.value}")
        return binding

    def join_binding(
        self,
        declared: TypeRef,
        target_class: type,
        key_fields: Tuple[str, ...],
        key_bindings: Tuple[CodecBinding, ...],
    ) -> CodecBinding:
        """Binding of a join column persisting the target's partition key."""
        if len(key_bindings) == 1:
            persisted = key_bindings[0].persisted_type
        else:
            persisted = TypeRef(origin=tuple, args=tuple(b.persisted_type for b in key_bindings))
        return CodecBinding(
            source_type=declared,
            persisted_type=persisted,
            strategy=CodecStrategy.JOIN,
            elements=tuple(key_bindings),
            join_target=target_class,
            join_key_fields=tuple(key_fields),
        )

    # --- Rule chain ---

    def _resolve(self, declared: TypeRef, annotations: AnnotationSet) -> CodecBinding:
        if annotations.time_uuid and declared.origin is not uuid.UUID:
            raise MappingTypeError(f"@TimeUUID requires a UUID field, got '{declared}'")

        # 1. JSON
        if annotations.json:
            unresolved = [t.forward for t in declared.walk() if t.is_forward]
            if unresolved:
                raise MappingTypeError(
                    f"JSON type '{declared}' names unresolved type(s) {unresolved}"
                )
            return CodecBinding(declared, TEXT, CodecStrategy.JSON)

        # 2. Field codec
        if annotations.codec is not None:
            return self._codec(declared, annotations, annotations.codec.codec_class, CodecStrategy.FIELD_CODEC)

        # 3. Class default codec
        if declared.default_codec is not None:
            return self._codec(declared, annotations, declared.default_codec, CodecStrategy.CLASS_CODEC)

        # 4. Enumerated
        enumerated = annotations.enumerated
        if enumerated is not None:
            if not declared.is_enum:
                raise MappingTypeError(f"@Enumerated requires an Enum type, got '{declared}'")
            if enumerated.encoding is Encoding.ORDINAL:
                return CodecBinding(declared, INT32, CodecStrategy.ENUM_ORDINAL)
            return CodecBinding(declared, TEXT, CodecStrategy.ENUM_NAME)

        # 5. Byte sequences
        if declared.origin is bytes and not declared.args:
            return CodecBinding(declared, BLOB, CodecStrategy.BYTES)
        if declared.origin is bytearray and not declared.args:
            return CodecBinding(declared, BLOB, CodecStrategy.BYTEARRAY)

        # 6. Fallback
        return self._fallback(declared, annotations)

    def _codec(
        self,
        declared: TypeRef,
        annotations: AnnotationSet,
        codec_class: type,
        strategy: CodecStrategy,
    ) -> CodecBinding:
        source, target = codec_type_arguments(codec_class)
        name = codec_class.__name__
        if source != declared:
            raise MappingTypeError(
                f"Codec '{name}' source type '{source}' does not match declared type '{declared}'"
            )
        override = annotations.computed_override
        if override is not None and target != override:
            raise MappingTypeError(
                f"Codec '{name}' target type '{target}' does not match computed type '{override}'"
            )
        if annotations.counter and not self.catalog.is_64bit_integer(target):
            raise MappingTypeError(
                f"Codec '{name}' target type '{target}' must be a 64-bit integer (int) for a counter"
            )
        if not self.catalog.is_allowed(target):
            raise MappingTypeError(
                f"Codec '{name}' target type '{target}' is not a supported persisted type"
            )
        return CodecBinding(declared, target, strategy, codec_class=codec_class)

    def _fallback(self, declared: TypeRef, annotations: AnnotationSet) -> CodecBinding:
        override = annotations.computed_override
        if override is not None and override != declared:
            raise MappingTypeError(
                f"Computed type '{override}' does not match declared type '{declared}'"
            )
        if declared.is_collection and (
            declared.has_nested_metadata() or any(t.is_udt for t in declared.walk())
        ):
            return self._collection(declared, annotations)
        if not self.catalog.is_allowed(declared):
            raise MappingTypeError(
                f"Impossible to parse type '{declared}'. It should be a supported type"
            )
        if declared.is_udt:
            return CodecBinding(declared, declared, CodecStrategy.UDT, frozen=annotations.frozen)
        return CodecBinding(
            declared,
            declared,
            CodecStrategy.PASSTHROUGH,
            time_uuid=annotations.time_uuid,
            frozen=annotations.frozen,
        )

    def _collection(self, declared: TypeRef, annotations: AnnotationSet) -> CodecBinding:
        elements = []
        for arg in declared.args:
            if arg.origin is Ellipsis:
                raise MappingTypeError(
                    f"Impossible to parse type '{declared}'. It should be a supported type"
                )
            nested = AnnotationSet.parse(arg.metadata)
            illegal = sorted(k.value for k in nested.kinds - NESTED_KINDS)
            if illegal:
                raise ConfigurationError(
                    f"Annotation @{illegal[0]} cannot be used on type argument '{arg}' of '{declared}'"
                )
            for rule in self.nested_rules:
                if rule.matches(nested.kinds):
                    raise ConfigurationError(
                        f"Cannot have both {rule.first.label} and {rule.second.label} "
                        f"on type argument '{arg}' of '{declared}'"
                    )
            if nested.frozen and not arg.is_composite:
                raise ConfigurationError(
                    f"@Frozen on type argument '{arg}' is only allowed for collections, tuples and UDTs"
                )
            elements.append(self._resolve(arg, nested))

        persisted = TypeRef(origin=declared.origin, args=tuple(e.persisted_type for e in elements))
        if not self.catalog.is_allowed(persisted):
            raise MappingTypeError(
                f"Impossible to parse type '{declared}'. It should be a supported type"
            )
        return CodecBinding(
            declared,
            persisted,
            CodecStrategy.COLLECTION,
            elements=tuple(elements),
            frozen=annotations.frozen,
        )

    # --- Post checks ---

    @staticmethod
    def _check_override(binding: CodecBinding, annotations: AnnotationSet) -> None:
        override = annotations.computed_override
        if override is not None and binding.persisted_type != override:
            raise MappingTypeError(
                f"Persisted type '{binding.persisted_type}' does not match computed type '{override}'"
            )

    def _check_counter(self, binding: CodecBinding, annotations: AnnotationSet, field: FieldDescriptor) -> None:
        if annotations.counter and not self.catalog.is_64bit_integer(binding.persisted_type):
            raise MappingTypeError(
                f"The counter target of field '{field.name}' in class '{field.class_name}' "
                f"must be a 64-bit integer (int), got '{binding.persisted_type}'",
                details={"owner": qualified_name(field.owner)},
            )
