"""
Command line interface for the entmapper compiler.

Commands:
- compile: Run a round and write the generated package
- check: Run a round (discover, build, backfill) without writing
- describe: Print the schema manifest

Usage:
    entmapper compile --module myapp.models --output build/src
    entmapper check --module myapp.models
    entmapper describe --module myapp.models --format json

Invariants:
    - Any error diagnostic exits with status 1 and writes nothing
    - Diagnostics go to stdout, one per line (or a JSON list)
    - Settings come from ENTMAPPER_* variables; flags override them

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

import json_log_formatter
import yaml

from ..compiler import CompilationDriver, CompilationResult
from ..config import CompilerSettings

logger = logging.getLogger(__name__)


def setup_logging(settings: CompilerSettings) -> None:
    """Configure the root logger from settings."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class CompilerCLI:
    """CLI commands over a CompilationDriver.

    Example:
        >>> cli = CompilerCLI(CompilerSettings())
        >>> cli.check(["myapp.models"])
        0
    """

    def __init__(self, settings: CompilerSettings) -> None:
        self.settings = settings
        self.driver = CompilationDriver(settings)

    def report(self, result: CompilationResult, output_format: str = "text") -> None:
        """Print diagnostics of a round."""
        if output_format == "json":
            print(json.dumps([d.to_dict() for d in result.diagnostics], indent=2))
            return
        for diagnostic in result.diagnostics:
            print(str(diagnostic))
        if not result.ok:
            print(f"Compilation failed with {len(result.errors)} error(s)")

    def compile(self, modules: Sequence[str], output_format: str = "text") -> int:
        result = self.driver.compile(modules=modules, output_dir=self.settings.output_dir)
        self.report(result, output_format)
        if not result.ok:
            return 1
        if output_format == "text":
            print(
                f"Generated {len(result.artifacts)} files for {len(result.entities)} entities "
                f"in {self.settings.output_dir} ({result.fingerprint})"
            )
        return 0

    def check(self, modules: Sequence[str], output_format: str = "text") -> int:
        result = self.driver.run(modules=modules, emit=False)
        self.report(result, output_format)
        if result.ok and output_format == "text":
            print(f"{len(result.entities)} entities, {len(result.udts)} UDTs: OK ({result.fingerprint})")
        return 0 if result.ok else 1

    def describe(self, modules: Sequence[str], output_format: str = "yaml") -> int:
        result = self.driver.run(modules=modules, emit=False)
        if not result.ok:
            self.report(result)
            return 1
        manifest = self.driver.emitter.manifest(result.entities, result.context, result.fingerprint)
        if output_format == "json":
            print(json.dumps(manifest, indent=2, sort_keys=True))
        else:
            print(yaml.safe_dump(manifest, sort_keys=False), end="")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="entmapper", description="entmapper schema compiler")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_modules(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--module",
            "-m",
            action="append",
            required=True,
            dest="modules",
            help="Module or package containing @entity classes (repeatable)",
        )
        sub.add_argument("--keyspace", help="Default keyspace for entities without one")

    compile_parser = subparsers.add_parser("compile", help="Generate mapping artifacts")
    add_modules(compile_parser)
    compile_parser.add_argument("--output", "-o", help="Output directory")
    compile_parser.add_argument("--package", help="Generated package name")
    compile_parser.add_argument("--no-manifest", action="store_true", help="Skip schema.yaml/schema.cql")
    compile_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    check_parser = subparsers.add_parser("check", help="Validate entities without writing")
    add_modules(check_parser)
    check_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    describe_parser = subparsers.add_parser("describe", help="Print the schema manifest")
    add_modules(describe_parser)
    describe_parser.add_argument("--format", choices=["yaml", "json"], default="yaml", help="Output format")

    return parser


def settings_from_args(args: argparse.Namespace) -> CompilerSettings:
    overrides = {}
    if getattr(args, "output", None):
        overrides["output_dir"] = args.output
    if getattr(args, "package", None):
        overrides["generated_package"] = args.package
    if getattr(args, "keyspace", None):
        overrides["default_keyspace"] = args.keyspace
    if getattr(args, "no_manifest", False):
        overrides["write_manifest"] = False
    return CompilerSettings(**overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    setup_logging(settings)
    cli = CompilerCLI(settings)

    if args.command == "compile":
        code = cli.compile(args.modules, args.format)
    elif args.command == "check":
        code = cli.check(args.modules, args.format)
    else:
        code = cli.describe(args.modules, args.format)
    sys.exit(code)


if __name__ == "__main__":
    main()
