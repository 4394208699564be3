"""
Backfill and code generation.

Runs once per round, after every entity was built without errors:

    1. backfill(): resolve pending join references against the completed
       signatures and give every join column its binding
    2. emit(): render all artifacts in dependency order
         udt/<name>_meta.py       UdtMeta subclasses
         meta/<name>_meta.py      EntityMeta subclasses
         manager/<name>_manager.py
         dsl/<name>_dsl.py
         manager_factory.py
       plus package __init__ modules and, optionally, schema.yaml and
       schema.cql

Rendering is pure: emit() returns Artifact values and never touches the
filesystem, so a round that fails while rendering writes nothing.

Invariants:
    - An artifact only imports artifacts rendered before it, the runtime
      and codec modules, and the user's own declarations
    - Join key chains are resolved depth first; a cycle is an error
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

import yaml

from ..config import CompilerSettings, NamingStrategy
from ..errors import ConfigurationError, Diagnostic, MappingError, UnresolvedReferenceError
from ..runtime import qualify
from ..schema.catalog import AllowedTypeCatalog
from ..schema.types import TypeRef, qualified_name
from .codec_resolver import CodecBinding, CodecResolver, CodecStrategy
from .context import GlobalParsingContext, PendingReference, UdtDescriptor
from .entity_builder import ColumnMeta, EntityMetaSignature
from .keys import KeyKind

logger = logging.getLogger(__name__)

Imports = Set[Tuple[str, str]]

_snake = NamingStrategy.SNAKE_CASE.apply
_RESERVED_PARAMS = frozenset({"self", "ttl", "delta", "value", "values"})


@dataclass(frozen=True)
class Artifact:
    """One generated file.

    Attributes:
        kind: udt, meta, manager, dsl, factory, package or manifest
        module: Dotted module name ("" for non-Python files)
        path: Path relative to the output directory
        source: File content
    """

    kind: str
    module: str
    path: Path
    source: str


def _param(name: str) -> str:
    return f"{name}_" if name in _RESERVED_PARAMS else name


def _camel(snake: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in snake.split("_"))


def _render_imports(imports: Imports, extra: Iterable[str] = ()) -> List[str]:
    lines = list(extra)
    bound: Dict[str, str] = {}
    for module, name in sorted(imports):
        other = bound.setdefault(name, module)
        if other != module:
            raise ConfigurationError(
                f"Generated code would import '{name}' from both '{other}' and '{module}'"
            )
        lines.append(f"from {module} import {name}")
    return lines


class CodeEmitter:
    """Backfills join references and renders generated artifacts.

    Example:
        >>> emitter = CodeEmitter(settings)
        >>> diagnostics = emitter.backfill(signatures, context)
        >>> artifacts = emitter.emit(signatures, context)
    """

    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        catalog: Optional[AllowedTypeCatalog] = None,
        resolver: Optional[CodecResolver] = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self.catalog = catalog or AllowedTypeCatalog()
        self.resolver = resolver or CodecResolver(self.catalog)

    # =========================================================================
    # Backfill
    # =========================================================================

    def backfill(
        self, signatures: List[EntityMetaSignature], context: GlobalParsingContext
    ) -> List[Diagnostic]:
        """Resolve every pending reference of the round.

        Returns:
            Diagnostics for missing targets, key cycles and name clashes
        """
        diagnostics = self._check_names(signatures, context.udt_types())
        by_class = {s.entity_class: s for s in signatures}

        for reference in context.pending:
            owner = by_class.get(reference.entity)
            if owner is None:
                continue
            try:
                self._link(owner, reference.field.name, by_class, context, [])
            except MappingError as e:
                diagnostics.append(
                    e.bind(qualified_name(reference.entity), reference.field.name).to_diagnostic()
                )

        logger.info(
            f"Backfilled {len(context.pending)} references, {len(diagnostics)} errors"
        )
        return diagnostics

    def _check_names(
        self, signatures: List[EntityMetaSignature], udts: List[UdtDescriptor]
    ) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        modules: Dict[str, EntityMetaSignature] = {}
        tables: Dict[str, EntityMetaSignature] = {}
        for signature in signatures:
            module = _snake(signature.entity_name)
            table = qualify(signature.keyspace, signature.table)
            for seen, key, what in ((modules, module, "generated module"), (tables, table, "table")):
                other = seen.get(key)
                if other is not None:
                    diagnostics.append(
                        ConfigurationError(
                            f"Entities '{other.qualified_name}' and '{signature.qualified_name}' "
                            f"map to the same {what} '{key}'",
                            entity=signature.qualified_name,
                        ).to_diagnostic()
                    )
                seen[key] = signature
        udt_modules: Dict[str, UdtDescriptor] = {}
        for descriptor in udts:
            module, _ = self._udt_module(descriptor)
            other = udt_modules.setdefault(module, descriptor)
            if other is not descriptor:
                diagnostics.append(
                    ConfigurationError(
                        f"UDTs '{other.name}' and '{descriptor.name}' map to the same "
                        f"generated module '{module}'",
                        entity=qualified_name(descriptor.udt_class),
                    ).to_diagnostic()
                )
        return diagnostics

    def _target(
        self,
        reference: PendingReference,
        by_class: Dict[type, EntityMetaSignature],
        context: GlobalParsingContext,
    ) -> EntityMetaSignature:
        target = reference.target or context.resolve_symbol(reference.target_name)
        signature = by_class.get(target) if target is not None else None
        if signature is None:
            field = reference.field
            raise UnresolvedReferenceError(
                f"Field '{field.name}' of class '{field.class_name}' references "
                f"'{reference.target_name}', which is not an entity discovered in this round",
                details={"target": reference.target_name},
            )
        return signature

    def _link(
        self,
        owner: EntityMetaSignature,
        name: str,
        by_class: Dict[type, EntityMetaSignature],
        context: GlobalParsingContext,
        chain: List[Tuple[type, str]],
    ) -> CodecBinding:
        column = owner.column(name)
        if column.binding is not None:
            return column.binding

        step = (owner.entity_class, name)
        if step in chain:
            path = chain[chain.index(step):] + [step]
            raise UnresolvedReferenceError(
                "Cyclic key reference: " + " -> ".join(f"{cls.__name__}.{f}" for cls, f in path)
            )
        chain.append(step)
        try:
            reference = PendingReference(
                entity=owner.entity_class,
                field=column.field,
                target=column.join_target,
                target_name=column.join_target_name,
            )
            target = self._target(reference, by_class, context)
            key_bindings = tuple(
                self._link(target, key.name, by_class, context, chain) for key in target.partition_keys
            )
            binding = self.resolver.join_binding(
                TypeRef(origin=target.entity_class),
                target.entity_class,
                tuple(key.name for key in target.partition_keys),
                key_bindings,
            )
        finally:
            chain.pop()

        owner.attach(name, binding, target.entity_class)
        logger.debug(f"Linked {owner.entity_name}.{name} -> {target.entity_name}")
        return binding

    # =========================================================================
    # Emission
    # =========================================================================

    def emit(
        self, signatures: List[EntityMetaSignature], context: GlobalParsingContext
    ) -> List[Artifact]:
        """Render all artifacts of the round, in dependency order.

        Raises:
            MappingError: If a declaration cannot be referenced from
                generated code (e.g. a class defined inside a function)
        """
        fingerprint = context.fingerprint or context.freeze(signatures)
        udts = context.udt_types()
        artifacts: List[Artifact] = []

        logger.info(f"Generating {len(udts)} UDT meta classes")
        for descriptor in udts:
            artifacts.append(self._emit_udt(descriptor, context))

        logger.info(f"Generating {len(signatures)} entity meta classes")
        for signature in signatures:
            artifacts.append(self._emit_meta(signature, context))

        logger.info(f"Generating {len(signatures)} manager classes")
        for signature in signatures:
            artifacts.append(self._emit_manager(signature))

        logger.info(f"Generating {len(signatures)} DSL classes")
        for signature in signatures:
            artifacts.append(self._emit_dsl(signature))

        logger.info("Generating manager factory")
        artifacts.append(self._emit_factory(signatures, udts, fingerprint))
        artifacts.extend(self._emit_packages())

        if self.settings.write_manifest:
            artifacts.extend(self._emit_manifest(signatures, context, fingerprint))
        return artifacts

    # --- Naming ---

    @property
    def _package(self) -> str:
        return self.settings.generated_package

    def _module(self, *parts: str) -> str:
        return ".".join((self._package,) + parts)

    def _path(self, module: str) -> Path:
        return Path(*module.split(".")).with_suffix(".py")

    def _udt_module(self, descriptor: UdtDescriptor) -> Tuple[str, str]:
        snake = _snake(descriptor.name)
        return self._module("udt", f"{snake}_meta"), f"{_camel(snake)}UdtMeta"

    def _entity_module(self, signature: EntityMetaSignature, kind: str) -> str:
        return self._module(kind, f"{_snake(signature.entity_name)}_{kind}")

    # --- CQL ---

    def _cql(self, binding: CodecBinding, context: GlobalParsingContext, nested: bool = False) -> str:
        if binding.strategy is CodecStrategy.COLLECTION:
            parts = [self._cql(e, context, nested=True) for e in binding.elements]
            origin = binding.persisted_type.origin
            if origin is tuple:
                return f"frozen<tuple<{', '.join(parts)}>>"
            if origin is dict:
                inner = f"map<{parts[0]}, {parts[1]}>"
            else:
                inner = f"{'list' if origin is list else 'set'}<{parts[0]}>"
            return f"frozen<{inner}>" if binding.frozen or nested else inner
        return self.catalog.cql_type(
            binding.persisted_type,
            frozen=binding.frozen,
            time_uuid=binding.time_uuid,
            udt_name=lambda cls: context.get_udt(cls).name,
            nested=nested,
        )

    def _column_cql(self, column: ColumnMeta, context: GlobalParsingContext) -> str:
        cql_type = "counter" if column.is_counter else self._cql(column.binding, context)
        static = " static" if column.is_static else ""
        return f"{column.column_name} {cql_type}{static}"

    def _create_table(self, signature: EntityMetaSignature, context: GlobalParsingContext) -> str:
        definitions = [
            self._column_cql(c, context) for c in signature.columns if c.computed is None
        ]
        partition = ", ".join(c.column_name for c in signature.partition_keys)
        if signature.clustering_columns:
            clustering = ", ".join(c.column_name for c in signature.clustering_columns)
            definitions.append(f"PRIMARY KEY (({partition}), {clustering})")
        else:
            definitions.append(f"PRIMARY KEY (({partition}))")
        cql = f"CREATE TABLE IF NOT EXISTS {{table}} ({', '.join(definitions)})"
        if signature.clustering_columns:
            order = ", ".join(
                f"{c.column_name} {'ASC' if c.key.asc else 'DESC'}" for c in signature.clustering_columns
            )
            cql += f" WITH CLUSTERING ORDER BY ({order})"
        return cql

    def _create_type(self, descriptor: UdtDescriptor, context: GlobalParsingContext) -> str:
        fields = ", ".join(f"{f.column} {self._cql(f.binding, context)}" for f in descriptor.fields)
        return f"CREATE TYPE IF NOT EXISTS {{name}} ({fields})"

    # --- Codec expressions ---

    def _codec_expr(
        self, binding: CodecBinding, imports: Imports, context: GlobalParsingContext
    ) -> str:
        s = binding.strategy
        if s in (CodecStrategy.FIELD_CODEC, CodecStrategy.CLASS_CODEC):
            return f"{TypeRef(origin=binding.codec_class).python_expr(imports)}()"
        if s is CodecStrategy.JSON:
            return f"codecs.JsonCodec({binding.source_type.python_expr(imports)})"
        if s is CodecStrategy.ENUM_NAME:
            return f"codecs.EnumNameCodec({binding.source_type.python_expr(imports)})"
        if s is CodecStrategy.ENUM_ORDINAL:
            return f"codecs.EnumOrdinalCodec({binding.source_type.python_expr(imports)})"
        if s is CodecStrategy.BYTES:
            return "codecs.BytesBlobCodec()"
        if s is CodecStrategy.BYTEARRAY:
            return "codecs.BytearrayBlobCodec()"
        if s is CodecStrategy.UDT:
            module, name = self._udt_module(context.get_udt(binding.source_type.origin))
            imports.add((module, name))
            return f"codecs.UdtCodec({name})"
        if s is CodecStrategy.COLLECTION:
            inner = ", ".join(self._codec_expr(e, imports, context) for e in binding.elements)
            return f"codecs.CollectionCodec({binding.persisted_type.origin.__name__}, [{inner}])"
        if s is CodecStrategy.JOIN:
            target = TypeRef(origin=binding.join_target).python_expr(imports)
            inner = ", ".join(self._codec_expr(e, imports, context) for e in binding.elements)
            return f"codecs.JoinCodec({target}, {binding.join_key_fields!r}, [{inner}])"
        return f"codecs.FallThroughCodec({binding.source_type.python_expr(imports)})"

    # --- Artifacts ---

    def _emit_udt(self, descriptor: UdtDescriptor, context: GlobalParsingContext) -> Artifact:
        module, class_name = self._udt_module(descriptor)
        imports: Imports = {("entmapper", "codecs"), ("entmapper.runtime", "UdtMeta")}
        udt_class = TypeRef(origin=descriptor.udt_class).python_expr(imports)
        codec_lines = [
            f"        {f.name!r}: {self._codec_expr(f.binding, imports, context)},"
            for f in descriptor.fields
        ]

        lines = [
            f'"""Generated UDT meta for {qualified_name(descriptor.udt_class)}. Do not edit."""',
            "",
            *_render_imports(imports),
            "",
            "",
            f"class {class_name}(UdtMeta):",
            f"    udt_class = {udt_class}",
            f"    udt_name = {descriptor.name!r}",
            f"    keyspace = {descriptor.keyspace!r}",
            "    fields = {",
            *(f"        {f.name!r}: {f.column!r}," for f in descriptor.fields),
            "    }",
            "    codecs = {",
            *codec_lines,
            "    }",
            f"    create_type_template = {self._create_type(descriptor, context)!r}",
            "",
        ]
        return Artifact("udt", module, self._path(module), "\n".join(lines))

    def _emit_meta(self, signature: EntityMetaSignature, context: GlobalParsingContext) -> Artifact:
        module = self._entity_module(signature, "meta")
        imports: Imports = {("entmapper", "codecs"), ("entmapper.runtime", "EntityMeta")}
        entity_class = TypeRef(origin=signature.entity_class).python_expr(imports)

        def names(columns: List[ColumnMeta]) -> str:
            rendered = ", ".join(repr(c.name) for c in columns)
            return f"({rendered},)" if len(columns) == 1 else f"({rendered})"

        selectors, result_keys = [], []
        for column in signature.columns:
            computed = column.computed
            if computed is None:
                selector = column.column_name
            else:
                targets = ", ".join(signature.column(t).column_name for t in computed.targets)
                selector = f"{computed.function}({targets}) AS {computed.alias}"
            selectors.append(f"        {column.name!r}: {selector!r},")
            result_keys.append(f"        {column.name!r}: {column.column_name!r},")

        codec_lines = [
            f"        {c.name!r}: {self._codec_expr(c.binding, imports, context)},"
            for c in signature.columns
        ]
        order = ", ".join(repr(c.key.asc) for c in signature.clustering_columns)
        if len(signature.clustering_columns) == 1:
            order += ","

        lines = [
            f'"""Generated entity meta for {signature.qualified_name}. Do not edit."""',
            "",
            *_render_imports(imports),
            "",
            "",
            f"class {signature.entity_name}Meta(EntityMeta):",
            f"    entity_class = {entity_class}",
            f"    entity_name = {signature.entity_name!r}",
            f"    keyspace = {signature.keyspace!r}",
            f"    table = {signature.table!r}",
            f"    partition_keys = {names(signature.partition_keys)}",
            f"    clustering_columns = {names(signature.clustering_columns)}",
            f"    clustering_order = ({order})",
            f"    static_columns = {names(signature.static_columns)}",
            f"    computed_columns = {names(signature.computed_columns)}",
            f"    counter_columns = {names(signature.counter_columns)}",
            f"    has_counter_column = {signature.has_counter_column!r}",
            "    columns = {",
            *(f"        {c.name!r}: {c.column_name!r}," for c in signature.columns),
            "    }",
            "    selectors = {",
            *selectors,
            "    }",
            "    result_keys = {",
            *result_keys,
            "    }",
            "    codecs = {",
            *codec_lines,
            "    }",
            f"    create_table_template = {self._create_table(signature, context)!r}",
            "",
        ]
        return Artifact("meta", module, self._path(module), "\n".join(lines))

    def _key_params(self, columns: List[ColumnMeta], imports: Imports) -> Tuple[str, str]:
        params = ", ".join(
            f"{_param(c.name)}: {c.binding.source_type.python_expr(imports)}" for c in columns
        )
        args = ", ".join(_param(c.name) for c in columns)
        if len(columns) == 1:
            args += ","
        return params, f"({args})"

    def _emit_manager(self, signature: EntityMetaSignature) -> Artifact:
        module = self._entity_module(signature, "manager")
        meta_module = self._entity_module(signature, "meta")
        meta_name = f"{signature.entity_name}Meta"
        imports: Imports = {
            ("typing", "Optional"),
            ("entmapper.runtime", "BoundStatement"),
            ("entmapper.runtime", "EntityManager"),
            (meta_module, meta_name),
        }
        entity_class = TypeRef(origin=signature.entity_class).python_expr(imports)
        key_params, key_args = self._key_params(signature.primary_key, imports)
        partition_params, partition_args = self._key_params(signature.partition_keys, imports)

        body = [
            f"class {signature.entity_name}Manager(EntityManager):",
            f'    """Statements for {signature.entity_name} rows."""',
            "",
            f"    meta = {meta_name}",
            "",
        ]
        if not signature.has_counter_column:
            body += [
                f"    def insert(self, entity: {entity_class}, ttl: Optional[int] = None) -> BoundStatement:",
                "        return self._insert(entity, ttl)",
                "",
            ]
        body += [
            f"    def find_by_id(self, {key_params}) -> BoundStatement:",
            f"        return self._select_by_key({key_args})",
            "",
            f"    def delete_by_id(self, {key_params}) -> BoundStatement:",
            f"        return self._delete_by_key({key_args})",
            "",
        ]
        for column in signature.counter_columns:
            params, args = (
                (partition_params, partition_args) if column.is_static else (key_params, key_args)
            )
            body += [
                f"    def increment_{column.name}(self, {params}, delta: int = 1) -> BoundStatement:",
                f"        return self._counter_update({column.name!r}, {args}, delta)",
                "",
                f"    def decrement_{column.name}(self, {params}, delta: int = 1) -> BoundStatement:",
                f"        return self._counter_update({column.name!r}, {args}, -delta)",
                "",
            ]
        body += [
            f"    def map_row(self, row) -> {entity_class}:",
            "        return self.meta.from_row(row)",
            "",
        ]

        lines = [
            f'"""Generated manager for {signature.qualified_name}. Do not edit."""',
            "",
            *_render_imports(imports, ["from __future__ import annotations", ""]),
            "",
            "",
            *body,
        ]
        return Artifact("manager", module, self._path(module), "\n".join(lines))

    def _emit_dsl(self, signature: EntityMetaSignature) -> Artifact:
        module = self._entity_module(signature, "dsl")
        meta_module = self._entity_module(signature, "meta")
        meta_name = f"{signature.entity_name}Meta"
        imports: Imports = {
            ("entmapper.runtime", "DeleteDsl"),
            ("entmapper.runtime", "SelectDsl"),
            (meta_module, meta_name),
        }

        def restrictions(class_name: str) -> List[str]:
            lines: List[str] = []
            for column in signature.primary_key:
                hint = column.binding.source_type.python_expr(imports)
                lines += [
                    f"    def {column.name}_eq(self, value: {hint}) -> {class_name}:",
                    f"        return self._where({column.name!r}, '=', value)",
                    "",
                    f"    def {column.name}_in(self, *values: {hint}) -> {class_name}:",
                    f"        return self._where_in({column.name!r}, values)",
                    "",
                ]
                if column.key.kind is KeyKind.CLUSTERING:
                    for method, op in (("gt", ">"), ("gte", ">="), ("lt", "<"), ("lte", "<=")):
                        lines += [
                            f"    def {column.name}_{method}(self, value: {hint}) -> {class_name}:",
                            f"        return self._where({column.name!r}, {op!r}, value)",
                            "",
                        ]
            return lines

        select_name = f"{signature.entity_name}Select"
        delete_name = f"{signature.entity_name}Delete"
        select_body = restrictions(select_name)
        delete_body = restrictions(delete_name)

        lines = [
            f'"""Generated query DSL for {signature.qualified_name}. Do not edit."""',
            "",
            *_render_imports(imports, ["from __future__ import annotations", ""]),
            "",
            "",
            f"class {select_name}(SelectDsl):",
            f"    meta = {meta_name}",
            "",
            *select_body,
            "",
            f"class {delete_name}(DeleteDsl):",
            f"    meta = {meta_name}",
            "",
            *delete_body,
        ]
        return Artifact("dsl", module, self._path(module), "\n".join(lines))

    def _emit_factory(
        self,
        signatures: List[EntityMetaSignature],
        udts: List[UdtDescriptor],
        fingerprint: str,
    ) -> Artifact:
        module = self._module("manager_factory")
        imports: Imports = {("typing", "List"), ("typing", "Optional")}
        accessors: List[str] = []
        for signature in signatures:
            name = signature.entity_name
            snake = _snake(name)
            imports.add((self._entity_module(signature, "meta"), f"{name}Meta"))
            imports.add((self._entity_module(signature, "manager"), f"{name}Manager"))
            imports.add((self._entity_module(signature, "dsl"), f"{name}Select"))
            imports.add((self._entity_module(signature, "dsl"), f"{name}Delete"))
            accessors += [
                f"    def for_{snake}(self) -> {name}Manager:",
                f"        return {name}Manager(self.keyspace)",
                "",
                f"    def select_from_{snake}(self) -> {name}Select:",
                f"        return {name}Select(self.keyspace)",
                "",
                f"    def delete_from_{snake}(self) -> {name}Delete:",
                f"        return {name}Delete(self.keyspace)",
                "",
            ]
        udt_names = []
        for descriptor in udts:
            udt_module, udt_name = self._udt_module(descriptor)
            imports.add((udt_module, udt_name))
            udt_names.append(udt_name)

        def tuple_of(items: List[str]) -> str:
            return f"({', '.join(items)},)" if items else "()"

        lines = [
            '"""Generated manager factory. Do not edit."""',
            "",
            *_render_imports(imports, ["from __future__ import annotations", ""]),
            "",
            f"FINGERPRINT = {fingerprint!r}",
            "",
            "",
            "class ManagerFactory:",
            '    """Entry point to every generated manager and DSL."""',
            "",
            f"    entity_metas = {tuple_of([f'{s.entity_name}Meta' for s in signatures])}",
            f"    udt_metas = {tuple_of(udt_names)}",
            "    fingerprint = FINGERPRINT",
            "",
            "    def __init__(self, keyspace: Optional[str] = None) -> None:",
            "        self.keyspace = keyspace",
            "",
            *accessors,
            "    def schema_statements(self) -> List[str]:",
            '        """CREATE TYPE then CREATE TABLE statements, in dependency order."""',
            "        statements = [meta.create_type_statement(self.keyspace) for meta in self.udt_metas]",
            "        statements += [meta.create_table_statement(self.keyspace) for meta in self.entity_metas]",
            "        return statements",
            "",
        ]
        return Artifact("factory", module, self._path(module), "\n".join(lines))

    def _emit_packages(self) -> List[Artifact]:
        artifacts = []
        parts = self._package.split(".")
        for depth in range(1, len(parts) + 1):
            module = ".".join(parts[:depth])
            artifacts.append(
                Artifact("package", module, Path(*parts[:depth], "__init__.py"), '"""Generated code."""\n')
            )
        for sub in ("udt", "meta", "manager", "dsl"):
            module = self._module(sub)
            artifacts.append(
                Artifact("package", module, Path(*module.split("."), "__init__.py"), "")
            )
        return artifacts

    def manifest(
        self,
        signatures: List[EntityMetaSignature],
        context: GlobalParsingContext,
        fingerprint: Optional[str] = None,
    ) -> Dict[str, object]:
        """Manifest dictionary (what schema.yaml contains)."""
        data = context.to_dict(signatures)
        data["fingerprint"] = fingerprint or context.fingerprint
        return data

    def schema_statements(
        self, signatures: List[EntityMetaSignature], context: GlobalParsingContext
    ) -> List[str]:
        statements = [
            self._create_type(u, context).format(name=qualify(u.keyspace, u.name))
            for u in context.udt_types()
        ]
        statements += [
            self._create_table(s, context).format(table=qualify(s.keyspace, s.table))
            for s in signatures
        ]
        return statements

    def _emit_manifest(
        self,
        signatures: List[EntityMetaSignature],
        context: GlobalParsingContext,
        fingerprint: str,
    ) -> List[Artifact]:
        base = Path(*self._package.split("."))
        document = yaml.safe_dump(
            self.manifest(signatures, context, fingerprint), sort_keys=False, default_flow_style=False
        )
        cql = "".join(f"{statement};\n" for statement in self.schema_statements(signatures, context))
        return [
            Artifact("manifest", "", base / "schema.yaml", document),
            Artifact("manifest", "", base / "schema.cql", cql),
        ]
