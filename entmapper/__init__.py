"""
entmapper - annotated data classes to wide-column schema mappings.

Declare entities with dataclasses and typing.Annotated, then compile them
into generated meta, manager and query DSL modules:

    >>> from dataclasses import dataclass
    >>> from typing import Annotated
    >>> from uuid import UUID
    >>> from entmapper import JSON, Counter, PartitionKey, entity
    >>>
    >>> @entity(table="accounts")
    ... @dataclass
    ... class Account:
    ...     id: Annotated[UUID, PartitionKey(0)]
    ...     balance: Annotated[int, Counter()]
    ...     tags: Annotated[list[str], JSON()]
    >>>
    >>> from entmapper import CompilationDriver
    >>> result = CompilationDriver().run(classes=[Account])
    >>> result.entity("Account").has_counter_column
    True
"""

from .codecs import Codec
from .compiler import CompilationDriver, CompilationResult
from .config import CompilerSettings, NamingStrategy
from .errors import (
    CodecArityError,
    CompilationError,
    ConfigurationError,
    Diagnostic,
    EntMapperError,
    MappingError,
    MappingTypeError,
    Severity,
    StructuralError,
    UnresolvedReferenceError,
)
from .runtime import BoundStatement
from .schema import (
    JSON,
    Blob,
    ClusteringColumn,
    Column,
    Computed,
    Counter,
    Encoding,
    Enumerated,
    Float32,
    Frozen,
    Int8,
    Int16,
    Int32,
    PartitionKey,
    Static,
    TimeUUID,
    Transient,
    Varint,
    WithCodec,
    default_codec,
    entity,
    udt,
)

__version__ = "0.1.0"

__all__ = [
    # Declarations
    "entity",
    "udt",
    "default_codec",
    "PartitionKey",
    "ClusteringColumn",
    "Static",
    "Computed",
    "Counter",
    "Frozen",
    "JSON",
    "Enumerated",
    "Encoding",
    "WithCodec",
    "TimeUUID",
    "Column",
    "Transient",
    "Int8",
    "Int16",
    "Int32",
    "Varint",
    "Float32",
    "Blob",
    # Runtime
    "Codec",
    "BoundStatement",
    # Compiler
    "CompilationDriver",
    "CompilationResult",
    "CompilerSettings",
    "NamingStrategy",
    # Errors
    "EntMapperError",
    "MappingError",
    "ConfigurationError",
    "MappingTypeError",
    "CodecArityError",
    "StructuralError",
    "UnresolvedReferenceError",
    "CompilationError",
    "Diagnostic",
    "Severity",
]
