"""
Entity and UDT declarations.

This module turns decorated Python classes into immutable field
descriptors and discovers decorated classes in modules and packages.

Annotations are evaluated against one symbol table: the declaring
module's globals, then the round's discovered class names, then
builtins. Names found nowhere become forward references instead of
failing, so a field may name an entity that is declared later.

Invariants:
    - FieldDescriptor is immutable once extracted
    - Fields are returned in declaration order, base classes first
    - ClassVar, private (underscore) and @Transient fields are skipped
"""

from __future__ import annotations

import builtins
import importlib
import logging
import pkgutil
import sys
import typing
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from ..errors import MappingError, MappingTypeError, StructuralError, UnresolvedReferenceError
from .annotations import AnnotationSet, is_entity_class, is_udt_class
from .types import Resolver, TypeRef, qualified_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldDescriptor:
    """One persistent field of an entity or UDT.

    Attributes:
        name: Attribute name on the class
        owner: The declaring (entity or UDT) class
        declared_type: Normalized declared type
        annotations: Parsed top-level annotations
    """

    name: str
    owner: type
    declared_type: TypeRef
    annotations: AnnotationSet = field(compare=False)

    @property
    def owner_name(self) -> str:
        return qualified_name(self.owner)

    @property
    def class_name(self) -> str:
        return self.owner.__name__

    def __str__(self) -> str:
        return f"{self.class_name}.{self.name}"


class _SymbolNamespace(dict):
    """Evaluation namespace for string annotations.

    The mapping holds no items of its own: every lookup falls through to
    ``__missing__`` and every name reports as present, so that unknown
    names turn into ForwardRef objects rather than raising NameError.
    """

    def __init__(self, globalns: Mapping[str, Any], symbols: Mapping[str, Any]) -> None:
        super().__init__()
        self._globalns = globalns
        self._symbols = symbols

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str)

    def __missing__(self, key: str) -> Any:
        if key in self._globalns:
            return self._globalns[key]
        if key in self._symbols:
            return self._symbols[key]
        if hasattr(builtins, key):
            return getattr(builtins, key)
        return typing.ForwardRef(key)


def _module_globals(cls: type) -> Dict[str, Any]:
    module = sys.modules.get(cls.__module__)
    return dict(vars(module)) if module is not None else {}


def _is_class_var(annotation: Any) -> bool:
    origin = typing.get_origin(annotation)
    return annotation is typing.ClassVar or origin is typing.ClassVar or type(annotation).__name__ == "InitVar"


def _resolver(globalns: Mapping[str, Any], symbols: Mapping[str, Any]) -> Resolver:
    def resolve(name: str) -> Optional[Any]:
        if name in globalns:
            return globalns[name]
        return symbols.get(name)

    return resolve


def _type_hints(cls: type, globalns: Mapping[str, Any], symbols: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(
            cls,
            globalns=dict(globalns),
            localns=_SymbolNamespace(globalns, symbols),
            include_extras=True,
        )
    except NameError as e:
        raise UnresolvedReferenceError(
            f"Class '{cls.__name__}' has an annotation naming an undefined type ({e}); "
            "use a string annotation or 'from __future__ import annotations'",
            entity=qualified_name(cls),
        ) from e
    except (SyntaxError, TypeError, AttributeError) as e:
        raise MappingTypeError(
            f"Cannot evaluate annotations of '{cls.__name__}': {e}", entity=qualified_name(cls)
        ) from e


def extract_fields(cls: type, symbols: Optional[Mapping[str, Any]] = None) -> List[FieldDescriptor]:
    """Extract persistent fields of a class.

    Args:
        cls: Entity or UDT class
        symbols: Round symbol table (class name -> class)

    Returns:
        Field descriptors in declaration order

    Raises:
        MappingError: Bound to the failing field
    """
    symbols = symbols or {}
    globalns = _module_globals(cls)
    resolve = _resolver(globalns, symbols)
    fields: List[FieldDescriptor] = []

    for name, hint in _type_hints(cls, globalns, symbols).items():
        if name.startswith("_") or _is_class_var(hint):
            continue
        try:
            declared = TypeRef.of(hint, resolve)
            annotations = AnnotationSet.parse(declared.metadata)
        except MappingError as e:
            raise e.bind(qualified_name(cls), name)

        if annotations.transient:
            logger.debug(f"Skipping transient field {cls.__name__}.{name}")
            continue
        fields.append(
            FieldDescriptor(name=name, owner=cls, declared_type=declared, annotations=annotations)
        )
    return fields


@dataclass
class Discovery:
    """Classes found by a discovery scan, in discovery order."""

    entities: List[type] = field(default_factory=list)
    udts: List[type] = field(default_factory=list)

    def symbols(self) -> Dict[str, type]:
        """Simple class name -> class, first-seen wins."""
        table: Dict[str, type] = {}
        for cls in [*self.entities, *self.udts]:
            table.setdefault(cls.__name__, cls)
        return table


def _import(name: str) -> ModuleType:
    try:
        return importlib.import_module(name)
    except ImportError as e:
        raise StructuralError(f"Cannot import module '{name}': {e}", entity=name) from e


def _iter_modules(modules: Iterable[Union[ModuleType, str]]) -> Iterator[ModuleType]:
    for module in modules:
        if isinstance(module, str):
            module = _import(module)
        yield module
        path = getattr(module, "__path__", None)
        if path is None:
            continue
        for info in pkgutil.walk_packages(path, prefix=f"{module.__name__}."):
            yield _import(info.name)


def discover(
    modules: Iterable[Union[ModuleType, str]] = (),
    classes: Iterable[type] = (),
) -> Discovery:
    """Discover @entity and @udt classes.

    Packages are scanned recursively. Only classes defined in a scanned
    module are collected (re-exports are ignored). Explicitly listed
    classes are added after the scan.

    Args:
        modules: Modules or dotted module names
        classes: Explicit managed classes

    Returns:
        Discovery with entities and UDTs, deduplicated

    Raises:
        StructuralError: A module cannot be imported
    """
    discovery = Discovery()
    seen: set[type] = set()

    def collect(value: Any) -> None:
        if value in seen:
            return
        if is_entity_class(value):
            discovery.entities.append(value)
            seen.add(value)
        elif is_udt_class(value):
            discovery.udts.append(value)
            seen.add(value)

    for module in _iter_modules(modules):
        for value in vars(module).values():
            if isinstance(value, type) and value.__module__ == module.__name__:
                collect(value)
    for cls in classes:
        collect(cls)

    logger.debug(
        f"Discovered {len(discovery.entities)} entities and {len(discovery.udts)} UDTs"
    )
    return discovery
