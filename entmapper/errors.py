"""
Error types for the entmapper schema compiler.

This module defines all exception types raised while compiling entities:
- EntMapperError: Base exception
- MappingError: Failure bound to an entity class and (optionally) a field
- ConfigurationError: Illegal annotation combination or option
- MappingTypeError: Unsupported or mismatched persisted type
- CodecArityError: Codec class without exactly two type parameters
- StructuralError: Missing/invalid keys, no persistent fields
- UnresolvedReferenceError: Cross-entity or UDT reference left dangling
- CompilationError: Aggregate of all diagnostics of a failed round

Invariants:
    - All errors inherit from EntMapperError
    - Every MappingError converts to a Diagnostic without losing context
    - Error messages name the field and the owning class when known
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A compiler message bound to a source identity.

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable description
        entity: Qualified name of the owning class, if known
        field: Field name, if the failure is field-scoped
        severity: ERROR or WARNING
    """

    code: str
    message: str
    entity: Optional[str] = None
    field: Optional[str] = None
    severity: Severity = Severity.ERROR

    @property
    def location(self) -> str:
        if self.entity and self.field:
            return f"{self.entity}.{self.field}"
        return self.entity or self.field or "<round>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "severity": self.severity.value,
            "code": self.code,
            "location": self.location,
            "entity": self.entity,
            "field": self.field,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.location}: [{self.code}] {self.message}"


class EntMapperError(Exception):
    """Base exception for all entmapper errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ENTMAPPER_ERROR"
        self.details = details or {}


class MappingError(EntMapperError):
    """Failure while mapping one entity or one of its fields.

    Raised by validators and resolvers. The entity builder aborts the
    current entity on the first MappingError; the driver keeps going with
    the other entities.
    """

    default_code = "MAPPING_ERROR"

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = {"entity": entity, "field": field}
        merged.update(details or {})
        super().__init__(message, code=self.default_code, details=merged)
        self.entity = entity
        self.field = field

    def bind(self, entity: Optional[str], field: Optional[str] = None) -> MappingError:
        """Fill in the entity/field identity if the raiser did not know it."""
        if self.entity is None:
            self.entity = entity
            self.details["entity"] = entity
        if self.field is None and field is not None:
            self.field = field
            self.details["field"] = field
        return self

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            code=self.code,
            message=self.message,
            entity=self.entity,
            field=self.field,
        )


class ConfigurationError(MappingError):
    """Illegal annotation combination or option.

    Raised when:
    - Two mutually exclusive annotations share a field
    - The same annotation is declared twice
    - Frozen is used on a non-composite type
    - A computed column targets an unknown column
    """

    default_code = "CONFIGURATION_ERROR"


class MappingTypeError(MappingError):
    """Unsupported or mismatched persisted type.

    Raised when:
    - A type is not in the allowed type catalog
    - A codec source/target does not match the declared or overridden type
    - A counter column does not persist as a 64-bit integer
    """

    default_code = "TYPE_ERROR"


class CodecArityError(MappingError):
    """Codec class does not declare exactly two type parameters."""

    default_code = "ARITY_ERROR"


class StructuralError(MappingError):
    """Entity structure is invalid.

    Raised when:
    - No persistent field is declared
    - No partition key is declared
    - Key ordinals are not a dense permutation of 0..n-1
    - No entity was discovered for the round
    - A scanned module cannot be imported
    """

    default_code = "STRUCTURAL_ERROR"


class UnresolvedReferenceError(MappingError):
    """Cross-entity or UDT reference could not be resolved.

    Raised at backfill time when the target class was never discovered in
    the round, and for cyclic key or UDT references.
    """

    default_code = "REFERENCE_ERROR"


class CompilationError(EntMapperError):
    """Raised when a compilation round produced error diagnostics.

    Attributes:
        diagnostics: All diagnostics of the round
    """

    def __init__(self, diagnostics: List[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        errors = [d for d in diagnostics if d.severity is Severity.ERROR]
        super().__init__(
            f"Compilation failed with {len(errors)} error(s):\n"
            + "\n".join(str(d) for d in errors),
            code="COMPILATION_ERROR",
            details={"errors": [d.to_dict() for d in errors]},
        )
