"""
Entity metadata assembly.

EntityMetadataBuilder turns one @entity class into an EntityMetaSignature:

    1. Extract persistent fields (StructuralError if there are none)
    2. Per field: compatibility check, then codec resolution
    3. Bucket columns by structural role
    4. Validate partition key and clustering column ordinals
    5. Register the user-defined types the columns use
    6. Record join columns as pending references (resolved at backfill)

Invariants:
    - The first MappingError aborts the entity; nothing it would have added
      to the context as a pending reference is recorded
    - Join columns carry no binding until backfill
    - Column names are unique within an entity

How to change safely:
    - New per-field checks belong in compat or codec_resolver
    - New per-entity checks go into _validate_entity and must raise a
      MappingError bound to the entity
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field as dataclass_field, replace
from typing import Any, Dict, Iterable, List, Optional

from ..config import CompilerSettings
from ..errors import ConfigurationError, MappingTypeError, StructuralError
from ..schema.annotations import AnnotationKind, entity_options, udt_options
from ..schema.declarations import FieldDescriptor, extract_fields
from ..schema.types import qualified_name
from .codec_resolver import CodecBinding, CodecResolver
from .compat import AnnotationCompatibilityValidator
from .context import GlobalParsingContext, PendingReference, UdtDescriptor, UdtField
from .keys import KeyColumnInfo, KeyKind, KeyOrderValidator

logger = logging.getLogger(__name__)

JOIN_KINDS = frozenset(
    {
        AnnotationKind.PARTITION_KEY,
        AnnotationKind.CLUSTERING_COLUMN,
        AnnotationKind.STATIC,
        AnnotationKind.COLUMN,
    }
)


@dataclass(frozen=True)
class ColumnMeta:
    """One mapped column.

    Attributes:
        field: Source field
        column_name: Persisted column name (the alias for computed columns)
        binding: Codec binding (None for a join column before backfill)
        key: Key position for partition key and clustering columns
        join_target_name: Target entity name for join columns
        join_target: Target entity class, once known
    """

    field: FieldDescriptor
    column_name: str
    binding: Optional[CodecBinding]
    key: Optional[KeyColumnInfo] = None
    join_target_name: Optional[str] = None
    join_target: Optional[type] = None

    @property
    def name(self) -> str:
        return self.field.name

    @property
    def is_join(self) -> bool:
        return self.join_target_name is not None

    @property
    def is_counter(self) -> bool:
        return self.field.annotations.counter

    @property
    def is_static(self) -> bool:
        return self.field.annotations.static

    @property
    def computed(self) -> Any:
        return self.field.annotations.computed

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"field": self.name, "column": self.column_name}
        if self.binding is not None:
            data.update(self.binding.to_dict())
        if self.is_join:
            data["join"] = self.join_target_name
        if self.key is not None and self.key.kind is KeyKind.CLUSTERING:
            data["asc"] = self.key.asc
        if self.is_counter:
            data["counter"] = True
        if self.is_static:
            data["static"] = True
        return data


@dataclass
class EntityMetaSignature:
    """Complete metadata of one entity.

    Join columns are completed in place by the backfill pass.
    """

    entity_class: type
    entity_name: str
    table: str
    keyspace: Optional[str]
    partition_keys: List[ColumnMeta] = dataclass_field(default_factory=list)
    clustering_columns: List[ColumnMeta] = dataclass_field(default_factory=list)
    static_columns: List[ColumnMeta] = dataclass_field(default_factory=list)
    computed_columns: List[ColumnMeta] = dataclass_field(default_factory=list)
    regular_columns: List[ColumnMeta] = dataclass_field(default_factory=list)
    udt_types: List[UdtDescriptor] = dataclass_field(default_factory=list)
    unresolved: List[PendingReference] = dataclass_field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.entity_class)

    @property
    def columns(self) -> List[ColumnMeta]:
        """All columns: keys first, then static, regular and computed."""
        return [
            *self.partition_keys,
            *self.clustering_columns,
            *self.static_columns,
            *self.regular_columns,
            *self.computed_columns,
        ]

    @property
    def primary_key(self) -> List[ColumnMeta]:
        return [*self.partition_keys, *self.clustering_columns]

    @property
    def counter_columns(self) -> List[ColumnMeta]:
        return [c for c in self.columns if c.is_counter]

    @property
    def has_counter_column(self) -> bool:
        return any(c.is_counter for c in self.columns)

    def column(self, name: str) -> Optional[ColumnMeta]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def attach(self, name: str, binding: CodecBinding, target: type) -> None:
        """Complete a join column after its target is known."""
        for bucket in (
            self.partition_keys,
            self.clustering_columns,
            self.static_columns,
            self.regular_columns,
        ):
            for index, column in enumerate(bucket):
                if column.name == name:
                    bucket[index] = replace(column, binding=binding, join_target=target)
                    return
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class": self.qualified_name,
            "name": self.entity_name,
            "table": self.table,
            "keyspace": self.keyspace,
            "partition_keys": [c.name for c in self.partition_keys],
            "clustering_columns": [c.name for c in self.clustering_columns],
            "static_columns": [c.name for c in self.static_columns],
            "computed_columns": [c.name for c in self.computed_columns],
            "has_counter_column": self.has_counter_column,
            "udt_types": [u.name for u in self.udt_types],
            "columns": [c.to_dict() for c in self.columns],
        }


class EntityMetadataBuilder:
    """Builds EntityMetaSignatures.

    Example:
        >>> builder = EntityMetadataBuilder()
        >>> context = GlobalParsingContext({"Account": Account})
        >>> signature = builder.build(Account, context)
        >>> signature.has_counter_column
        True
    """

    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        resolver: Optional[CodecResolver] = None,
        compat: Optional[AnnotationCompatibilityValidator] = None,
        keys: Optional[KeyOrderValidator] = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self.resolver = resolver or CodecResolver()
        self.compat = compat or AnnotationCompatibilityValidator()
        self.keys = keys or KeyOrderValidator()

    def build(self, entity_class: type, context: GlobalParsingContext) -> EntityMetaSignature:
        """Build the metadata of one entity.

        Args:
            entity_class: An @entity class
            context: The round's parsing context

        Returns:
            EntityMetaSignature with join columns still unresolved

        Raises:
            MappingError: On the first problem found in this entity
        """
        name = qualified_name(entity_class)
        options = entity_options(entity_class)
        if options is None:
            raise StructuralError(
                f"Class '{entity_class.__name__}' is not annotated with @entity", entity=name
            )

        fields = extract_fields(entity_class, context.symbols)
        if not fields:
            raise StructuralError(
                f"Entity '{entity_class.__name__}' should have at least one persistent field",
                entity=name,
            )

        signature = EntityMetaSignature(
            entity_class=entity_class,
            entity_name=entity_class.__name__,
            table=options.table or self.settings.table_naming.apply(entity_class.__name__),
            keyspace=options.keyspace or self.settings.default_keyspace,
        )

        columns = [self._column(field) for field in fields]
        self._bucket(signature, columns)
        self._validate_entity(signature)

        for descriptor in self._collect_udts(columns, context):
            if descriptor not in signature.udt_types:
                signature.udt_types.append(descriptor)

        for column in columns:
            if column.is_join:
                signature.unresolved.append(
                    PendingReference(
                        entity=entity_class,
                        field=column.field,
                        target=column.join_target,
                        target_name=column.join_target_name,
                    )
                )
        context.add_all_pending(signature.unresolved)

        logger.debug(
            f"Built entity {signature.entity_name}: table={signature.table}, "
            f"{len(signature.columns)} columns, {len(signature.unresolved)} pending references"
        )
        return signature

    # --- Fields ---

    def column_name(self, field: FieldDescriptor) -> str:
        computed = field.annotations.computed
        if computed is not None:
            return computed.alias
        column = field.annotations.column
        if column is not None:
            return column.name
        return self.settings.column_naming.apply(field.name)

    @staticmethod
    def is_join(field: FieldDescriptor) -> bool:
        declared = field.declared_type
        return declared.is_forward or declared.is_entity

    def _column(self, field: FieldDescriptor) -> ColumnMeta:
        self.compat.validate(field)
        if self.is_join(field):
            illegal = sorted(k.value for k in field.annotations.kinds - JOIN_KINDS)
            if illegal:
                raise ConfigurationError(
                    f"Annotation @{illegal[0]} cannot be used on field '{field.name}' of class "
                    f"'{field.class_name}' referencing entity '{field.declared_type.name}'",
                    entity=field.owner_name,
                    field=field.name,
                )
            declared = field.declared_type
            return ColumnMeta(
                field=field,
                column_name=self.column_name(field),
                binding=None,
                join_target_name=declared.name,
                join_target=None if declared.is_forward else declared.origin,
            )
        binding = self.resolver.resolve(field)
        return ColumnMeta(field=field, column_name=self.column_name(field), binding=binding)

    # --- Buckets and keys ---

    def _bucket(self, signature: EntityMetaSignature, columns: List[ColumnMeta]) -> None:
        partition: List[KeyColumnInfo] = []
        clustering: List[KeyColumnInfo] = []
        by_field: Dict[str, ColumnMeta] = {}

        for column in columns:
            annotations = column.field.annotations
            if annotations.partition_key is not None:
                partition.append(
                    KeyColumnInfo(annotations.partition_key.order, KeyKind.PARTITION, column.field)
                )
                by_field[column.name] = column
            elif annotations.clustering_column is not None:
                clustering_column = annotations.clustering_column
                clustering.append(
                    KeyColumnInfo(
                        clustering_column.order,
                        KeyKind.CLUSTERING,
                        column.field,
                        asc=clustering_column.asc,
                    )
                )
                by_field[column.name] = column
            elif annotations.static:
                signature.static_columns.append(column)
            elif annotations.computed is not None:
                signature.computed_columns.append(column)
            else:
                signature.regular_columns.append(column)

        entity_name = signature.qualified_name
        if not partition:
            raise StructuralError(
                f"Entity '{signature.entity_name}' should have at least one partition key",
                entity=entity_name,
            )
        for info in self.keys.validate(entity_name, KeyKind.PARTITION, partition):
            signature.partition_keys.append(replace(by_field[info.name], key=info))
        for info in self.keys.validate(entity_name, KeyKind.CLUSTERING, clustering):
            signature.clustering_columns.append(replace(by_field[info.name], key=info))

    def _validate_entity(self, signature: EntityMetaSignature) -> None:
        entity_name = signature.qualified_name

        if signature.static_columns and not signature.clustering_columns:
            names = [c.name for c in signature.static_columns]
            raise StructuralError(
                f"Entity '{signature.entity_name}' declares static column(s) {names} "
                "but has no clustering column",
                entity=entity_name,
            )

        seen: Dict[str, str] = {}
        for column in signature.columns:
            other = seen.get(column.column_name)
            if other is not None:
                raise ConfigurationError(
                    f"Fields '{other}' and '{column.name}' of class '{signature.entity_name}' "
                    f"map to the same column '{column.column_name}'",
                    entity=entity_name,
                    field=column.name,
                )
            seen[column.column_name] = column.name

        for column in signature.computed_columns:
            for target in column.computed.targets:
                referenced = signature.column(target)
                if referenced is None or referenced.computed is not None:
                    raise ConfigurationError(
                        f"Computed field '{column.name}' of class '{signature.entity_name}' "
                        f"targets '{target}', which is not a persisted field",
                        entity=entity_name,
                        field=column.name,
                    )

    # --- User-defined types ---

    def _collect_udts(
        self, columns: Iterable[ColumnMeta], context: GlobalParsingContext
    ) -> List[UdtDescriptor]:
        found: List[UdtDescriptor] = []
        for column in columns:
            if column.binding is None:
                continue
            try:
                found.extend(self._ensure_nested_udts(column.binding, context))
            except MappingTypeError as e:
                raise e.bind(column.field.owner_name, column.name)
        return found

    def _ensure_nested_udts(
        self, binding: CodecBinding, context: GlobalParsingContext
    ) -> List[UdtDescriptor]:
        return [
            self.ensure_udt(ref.origin, context)
            for ref in binding.persisted_type.walk()
            if ref.is_udt
        ]

    def ensure_udt(self, udt_class: type, context: GlobalParsingContext) -> UdtDescriptor:
        """Look up or build and register the descriptor of a UDT.

        Raises:
            UnresolvedReferenceError: If the UDT contains itself
            MappingError: If one of its fields cannot be mapped
        """
        existing = context.get_udt(udt_class)
        if existing is not None:
            return existing

        context.begin_udt(udt_class)
        try:
            owner = qualified_name(udt_class)
            fields = extract_fields(udt_class, context.symbols)
            if not fields:
                raise StructuralError(
                    f"UDT '{udt_class.__name__}' should have at least one persistent field",
                    entity=owner,
                )

            udt_fields: List[UdtField] = []
            columns: Dict[str, str] = {}
            for field in fields:
                structural = sorted(k.value for k in field.annotations.structural_kinds)
                if structural:
                    raise ConfigurationError(
                        f"Annotation @{structural[0]} cannot be used on field '{field.name}' "
                        f"of UDT '{udt_class.__name__}'",
                        entity=owner,
                        field=field.name,
                    )
                if self.is_join(field):
                    raise MappingTypeError(
                        f"UDT field '{field.name}' of '{udt_class.__name__}' cannot reference "
                        f"entity '{field.declared_type.name}'",
                        entity=owner,
                        field=field.name,
                    )
                self.compat.validate(field)
                binding = self.resolver.resolve(field)
                self._ensure_nested_udts(binding, context)

                column = self.column_name(field)
                if column in columns:
                    raise ConfigurationError(
                        f"Fields '{columns[column]}' and '{field.name}' of UDT "
                        f"'{udt_class.__name__}' map to the same column '{column}'",
                        entity=owner,
                        field=field.name,
                    )
                columns[column] = field.name
                udt_fields.append(UdtField(name=field.name, column=column, binding=binding))

            options = udt_options(udt_class)
            descriptor = UdtDescriptor(
                udt_class=udt_class,
                name=(options.name if options else None)
                or self.settings.table_naming.apply(udt_class.__name__),
                keyspace=(options.keyspace if options else None) or self.settings.default_keyspace,
                fields=tuple(udt_fields),
            )
            return context.register_udt(descriptor)
        finally:
            context.end_udt(udt_class)
