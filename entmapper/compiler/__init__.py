"""
Schema compiler of entmapper.

Components, leaves first:
- CodecResolver: declared type + annotations -> CodecBinding
- AnnotationCompatibilityValidator: forbidden annotation pairs
- KeyOrderValidator: dense 0-based key ordinals
- EntityMetadataBuilder: one entity -> EntityMetaSignature
- GlobalParsingContext: round-scoped UDT registry and pending references
- CodeEmitter: backfill and artifact rendering
- CompilationDriver: discover -> build -> backfill -> emit
"""

from .codec_resolver import CodecBinding, CodecResolver, CodecStrategy, codec_type_arguments
from .codegen import Artifact, CodeEmitter
from .compat import (
    ENCODING_RULES,
    FORBIDDEN_PAIRS,
    STRUCTURAL_RULES,
    AnnotationCompatibilityValidator,
    Axis,
    ForbiddenPair,
)
from .context import (
    ContextFrozenError,
    GlobalParsingContext,
    PendingReference,
    UdtDescriptor,
    UdtField,
)
from .driver import CompilationDriver, CompilationResult
from .entity_builder import ColumnMeta, EntityMetadataBuilder, EntityMetaSignature
from .keys import KeyColumnInfo, KeyKind, KeyOrderValidator

__all__ = [
    # Resolution
    "CodecBinding",
    "CodecResolver",
    "CodecStrategy",
    "codec_type_arguments",
    # Validation
    "AnnotationCompatibilityValidator",
    "Axis",
    "ForbiddenPair",
    "STRUCTURAL_RULES",
    "ENCODING_RULES",
    "FORBIDDEN_PAIRS",
    "KeyColumnInfo",
    "KeyKind",
    "KeyOrderValidator",
    # Building
    "ColumnMeta",
    "EntityMetaSignature",
    "EntityMetadataBuilder",
    "GlobalParsingContext",
    "ContextFrozenError",
    "PendingReference",
    "UdtDescriptor",
    "UdtField",
    # Emission
    "Artifact",
    "CodeEmitter",
    "CompilationDriver",
    "CompilationResult",
]
