"""
Declaration layer of entmapper.

This module provides what user code imports to declare mapped classes:
- Class decorators (entity, udt, default_codec)
- Field annotations (PartitionKey, ClusteringColumn, JSON, ...)
- Width marker types (Int32, Float32, Blob, ...)
- Field extraction and module discovery

Invariants:
    - Annotations are immutable values attached with typing.Annotated
    - One AnnotationSet per field, parsed once

How to change safely:
    - Add new annotation classes together with an AnnotationKind member
    - Register their incompatibilities in compiler.compat
"""

from .annotations import (
    JSON,
    AnnotationKind,
    AnnotationSet,
    ClusteringColumn,
    Column,
    Computed,
    Counter,
    Encoding,
    Enumerated,
    Frozen,
    PartitionKey,
    Static,
    TimeUUID,
    Transient,
    WithCodec,
    default_codec,
    entity,
    udt,
)
from .catalog import AllowedTypeCatalog
from .declarations import Discovery, FieldDescriptor, discover, extract_fields
from .types import Blob, Float32, Int8, Int16, Int32, TypeRef, Varint

__all__ = [
    # Decorators
    "entity",
    "udt",
    "default_codec",
    # Annotations
    "AnnotationKind",
    "AnnotationSet",
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
    # Types
    "TypeRef",
    "Int8",
    "Int16",
    "Int32",
    "Varint",
    "Float32",
    "Blob",
    "AllowedTypeCatalog",
    # Declarations
    "FieldDescriptor",
    "Discovery",
    "discover",
    "extract_fields",
]
