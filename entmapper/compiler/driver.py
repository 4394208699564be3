"""
Compilation driver.

One round: discover -> build every entity -> backfill -> freeze -> emit.

Invariants:
    - A fresh GlobalParsingContext per round
    - Every entity is built even if an earlier one failed; diagnostics
      from all of them are reported together
    - Artifacts are rendered and written only when the round has zero
      error diagnostics; a failed round writes nothing

How to change safely:
    - Keep write() free of rendering so that rendering errors are caught
      before the first file is written
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Optional, Union

from ..config import CompilerSettings
from ..errors import CompilationError, Diagnostic, MappingError, Severity, StructuralError
from ..schema.declarations import discover
from .codegen import Artifact, CodeEmitter
from .context import GlobalParsingContext, UdtDescriptor
from .entity_builder import EntityMetadataBuilder, EntityMetaSignature

logger = logging.getLogger(__name__)


@dataclass
class CompilationResult:
    """Outcome of one round."""

    entities: List[EntityMetaSignature] = field(default_factory=list)
    udts: List[UdtDescriptor] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    artifacts: List[Artifact] = field(default_factory=list)
    fingerprint: Optional[str] = None
    context: Optional[GlobalParsingContext] = None

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise CompilationError if the round produced errors."""
        if not self.ok:
            raise CompilationError(self.diagnostics)

    def entity(self, name: str) -> Optional[EntityMetaSignature]:
        for signature in self.entities:
            if name in (signature.entity_name, signature.qualified_name):
                return signature
        return None


class CompilationDriver:
    """Top-level entry point of the compiler.

    Example:
        >>> driver = CompilationDriver(CompilerSettings(output_dir="build"))
        >>> result = driver.compile(modules=["myapp.models"])
        >>> result.ok
        True
    """

    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        builder: Optional[EntityMetadataBuilder] = None,
        emitter: Optional[CodeEmitter] = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self.builder = builder or EntityMetadataBuilder(self.settings)
        self.emitter = emitter or CodeEmitter(self.settings)

    def run(
        self,
        modules: Iterable[Union[ModuleType, str]] = (),
        classes: Iterable[type] = (),
        emit: bool = True,
    ) -> CompilationResult:
        """Run one round without writing anything.

        Args:
            modules: Modules or packages to scan for @entity/@udt classes
            classes: Explicit managed classes
            emit: Render artifacts when the round is error-free

        Returns:
            CompilationResult with diagnostics and (if emitted) artifacts
        """
        try:
            discovery = discover(modules, classes)
        except MappingError as e:
            result = CompilationResult(context=GlobalParsingContext())
            result.diagnostics.append(e.to_diagnostic())
            return result
        context = GlobalParsingContext(discovery.symbols())
        result = CompilationResult(context=context)

        if not discovery.entities:
            result.diagnostics.append(
                StructuralError("No entity found; at least one @entity class is required").to_diagnostic()
            )
            return result

        logger.info(f"Building {len(discovery.entities)} entities")
        for entity_class in discovery.entities:
            try:
                result.entities.append(self.builder.build(entity_class, context))
            except MappingError as e:
                logger.debug(f"Entity {entity_class.__name__} failed: {e.message}")
                result.diagnostics.append(e.to_diagnostic())

        # Standalone UDTs are part of the schema even when no entity uses them
        for udt_class in discovery.udts:
            try:
                self.builder.ensure_udt(udt_class, context)
            except MappingError as e:
                result.diagnostics.append(e.to_diagnostic())

        if result.ok:
            result.diagnostics.extend(self.emitter.backfill(result.entities, context))

        result.udts = context.udt_types()
        if not result.ok:
            logger.info(f"Round failed with {len(result.errors)} error(s); nothing emitted")
            return result

        result.fingerprint = context.freeze(result.entities)
        if emit:
            try:
                result.artifacts = self.emitter.emit(result.entities, context)
            except MappingError as e:
                result.diagnostics.append(e.to_diagnostic())
                result.artifacts = []
        return result

    def write(self, artifacts: List[Artifact], output_dir: Optional[Path] = None) -> List[Path]:
        """Write rendered artifacts, in parallel.

        Returns:
            Written paths
        """
        root = Path(output_dir or self.settings.output_dir)
        package_root = root / self.settings.generated_package.split(".")[0]
        if package_root.exists():
            logger.warning(f"Overwriting files in existing generated package {package_root}")

        targets = [root / artifact.path for artifact in artifacts]
        for directory in sorted({t.parent for t in targets}):
            directory.mkdir(parents=True, exist_ok=True)

        def write_one(pair: tuple[Artifact, Path]) -> Path:
            artifact, target = pair
            target.write_text(artifact.source, encoding="utf-8")
            return target

        with ThreadPoolExecutor(max_workers=self.settings.write_workers) as executor:
            written = list(executor.map(write_one, zip(artifacts, targets)))
        logger.info(f"Wrote {len(written)} artifacts to {root}")
        return written

    def compile(
        self,
        modules: Iterable[Union[ModuleType, str]] = (),
        classes: Iterable[type] = (),
        output_dir: Optional[Path] = None,
    ) -> CompilationResult:
        """Run a round and write its artifacts if it succeeded."""
        result = self.run(modules, classes, emit=True)
        if result.ok:
            self.write(result.artifacts, output_dir)
        return result
