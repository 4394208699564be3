"""
Round-scoped parsing context.

The GlobalParsingContext is the only state shared by the entity builds of
one compilation round:
- The symbol table used to resolve annotations and forward references
- The registry of user-defined types (first-seen wins)
- The list of pending cross-entity references, resolved at backfill

Invariants:
    - One context per round; nothing survives across rounds
    - Mutable while entities are built, frozen before emission
    - A UDT name maps to exactly one structure
    - UDTs are kept in registration order, which is dependency order
      (a UDT is registered only after the UDTs it contains)

How to change safely:
    - Mutate only through the register/add methods (they check the freeze)
    - Anything that affects generated output must go into to_dict(), or
      the fingerprint will not change with it
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import ConfigurationError, EntMapperError, UnresolvedReferenceError
from ..schema.declarations import FieldDescriptor
from ..schema.types import qualified_name
from .codec_resolver import CodecBinding

if TYPE_CHECKING:
    from .entity_builder import EntityMetaSignature

logger = logging.getLogger(__name__)


class ContextFrozenError(EntMapperError):
    """Raised when a frozen context is modified."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONTEXT_FROZEN")


@dataclass(frozen=True)
class PendingReference:
    """A join column whose target entity is resolved at backfill.

    Attributes:
        entity: Owning entity class
        field: The join field
        target: Target class if the annotation resolved to one
        target_name: Target name as written (forward references)
    """

    entity: type
    field: FieldDescriptor
    target: Optional[type]
    target_name: str


@dataclass(frozen=True)
class UdtField:
    """One field of a user-defined type."""

    name: str
    column: str
    binding: CodecBinding


@dataclass(frozen=True)
class UdtDescriptor:
    """Generated descriptor of one user-defined type."""

    udt_class: type
    name: str
    keyspace: Optional[str]
    fields: Tuple[UdtField, ...]

    def structure(self) -> Tuple[Tuple[str, str, str], ...]:
        """Column layout used to decide whether two UDTs are the same type."""
        return tuple(
            (f.column, str(f.binding.persisted_type), f.binding.strategy.value) for f in self.fields
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "class": qualified_name(self.udt_class),
            "keyspace": self.keyspace,
            "fields": [
                {"name": f.name, "column": f.column, **f.binding.to_dict()} for f in self.fields
            ],
        }


class GlobalParsingContext:
    """Shared state of one compilation round.

    Example:
        >>> context = GlobalParsingContext(discovery.symbols())
        >>> signature = builder.build(Account, context)
        >>> context.freeze([signature])
        'sha256:...'
    """

    def __init__(self, symbols: Optional[Mapping[str, type]] = None) -> None:
        self.symbols: Dict[str, type] = dict(symbols or {})
        self._udts: Dict[type, UdtDescriptor] = {}
        self._udts_by_name: Dict[str, UdtDescriptor] = {}
        self._building: List[type] = []
        self._pending: List[PendingReference] = []
        self._frozen = False
        self._fingerprint: Optional[str] = None

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def _check_mutable(self, action: str) -> None:
        if self._frozen:
            raise ContextFrozenError(f"Cannot {action}: parsing context is frozen")

    # --- Symbols ---

    def resolve_symbol(self, name: str) -> Optional[type]:
        """Look up a discovered class by simple or qualified name."""
        if name in self.symbols:
            return self.symbols[name]
        for cls in self.symbols.values():
            if qualified_name(cls) == name:
                return cls
        return None

    # --- User-defined types ---

    def get_udt(self, udt_class: type) -> Optional[UdtDescriptor]:
        return self._udts.get(udt_class)

    def udt_types(self) -> List[UdtDescriptor]:
        """Distinct UDT descriptors in registration (dependency) order."""
        return list(self._udts_by_name.values())

    def begin_udt(self, udt_class: type) -> None:
        """Mark a UDT as being built.

        Raises:
            UnresolvedReferenceError: If the UDT contains itself
        """
        if udt_class in self._building:
            chain = self._building[self._building.index(udt_class):] + [udt_class]
            raise UnresolvedReferenceError(
                "Cyclic user-defined type reference: "
                + " -> ".join(c.__name__ for c in chain),
                entity=qualified_name(udt_class),
            )
        self._building.append(udt_class)

    def end_udt(self, udt_class: type) -> None:
        if self._building and self._building[-1] is udt_class:
            self._building.pop()

    def register_udt(self, descriptor: UdtDescriptor) -> UdtDescriptor:
        """Register a UDT descriptor.

        The first registration of a class wins. A second class claiming an
        already registered name shares that descriptor if its structure is
        identical.

        Returns:
            The descriptor now registered for the class

        Raises:
            ContextFrozenError: If the context is frozen
            ConfigurationError: Same name with a different structure
        """
        self._check_mutable(f"register UDT '{descriptor.name}'")
        existing = self._udts.get(descriptor.udt_class)
        if existing is not None:
            return existing

        named = self._udts_by_name.get(descriptor.name)
        if named is not None:
            if named.structure() != descriptor.structure():
                raise ConfigurationError(
                    f"UDT name '{descriptor.name}' is declared by '{qualified_name(named.udt_class)}' "
                    f"and '{qualified_name(descriptor.udt_class)}' with different fields",
                    entity=qualified_name(descriptor.udt_class),
                )
            logger.debug(
                f"UDT {descriptor.udt_class.__name__} shares type '{descriptor.name}' "
                f"with {named.udt_class.__name__}"
            )
            self._udts[descriptor.udt_class] = named
            return named

        self._udts[descriptor.udt_class] = descriptor
        self._udts_by_name[descriptor.name] = descriptor
        logger.debug(f"Registered UDT: {descriptor.name} ({len(descriptor.fields)} fields)")
        return descriptor

    # --- Pending references ---

    def add_pending(self, reference: PendingReference) -> None:
        self._check_mutable(f"add pending reference for '{reference.field}'")
        self._pending.append(reference)

    def add_all_pending(self, references: Iterable[PendingReference]) -> None:
        for reference in references:
            self.add_pending(reference)

    @property
    def pending(self) -> Tuple[PendingReference, ...]:
        return tuple(self._pending)

    # --- Freeze ---

    def freeze(self, signatures: Iterable[EntityMetaSignature]) -> str:
        """Freeze the context and compute the schema fingerprint.

        Returns:
            Fingerprint string in format 'sha256:<hash>'

        Raises:
            ContextFrozenError: If already frozen
        """
        self._check_mutable("freeze")
        self._fingerprint = self._compute_fingerprint(list(signatures))
        self._frozen = True
        logger.info(
            f"Parsing context frozen with {len(self._udts_by_name)} UDTs, "
            f"{len(self._pending)} references, fingerprint={self._fingerprint}"
        )
        return self._fingerprint

    def _compute_fingerprint(self, signatures: List[EntityMetaSignature]) -> str:
        schema = self.to_dict(signatures)
        canonical = json.dumps(schema, sort_keys=True, separators=(",", ":"))
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def to_dict(self, signatures: Iterable[EntityMetaSignature]) -> Dict[str, Any]:
        """Canonical dictionary of all entity and UDT metadata."""
        return {
            "udts": sorted((u.to_dict() for u in self.udt_types()), key=lambda d: d["name"]),
            "entities": sorted((s.to_dict() for s in signatures), key=lambda d: d["class"]),
        }
