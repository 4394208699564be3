"""
Configuration for the entmapper compiler.

All settings can be given as environment variables with the ENTMAPPER_
prefix (e.g. ENTMAPPER_OUTPUT_DIR=build/src). CLI flags override them.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class NamingStrategy(str, Enum):
    """How class and field names become table, type and column names."""

    SNAKE_CASE = "snake_case"
    LOWERCASE = "lowercase"
    PRESERVE = "preserve"

    def apply(self, name: str) -> str:
        if self is NamingStrategy.SNAKE_CASE:
            return _CAMEL_BOUNDARY.sub("_", name).lower()
        if self is NamingStrategy.LOWERCASE:
            return name.lower()
        return name


class CompilerSettings(BaseSettings):
    """Compiler configuration."""

    # Output
    output_dir: Path = Field(default=Path("build/entmapper"))
    generated_package: str = Field(default="generated")
    write_manifest: bool = Field(default=True, description="Also write schema.yaml and schema.cql")
    write_workers: int = Field(default=4, ge=1, description="Threads used to write artifacts")

    # Schema naming
    default_keyspace: Optional[str] = Field(default=None)
    table_naming: NamingStrategy = Field(default=NamingStrategy.SNAKE_CASE)
    column_naming: NamingStrategy = Field(default=NamingStrategy.PRESERVE)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    model_config = {"env_prefix": "ENTMAPPER_"}
