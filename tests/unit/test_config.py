"""
Unit tests for compiler settings.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from entmapper.config import CompilerSettings, NamingStrategy


class TestNamingStrategy:

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Account", "account"),
            ("UserProfile", "user_profile"),
            ("HTTPRequest", "http_request"),
            ("order2Item", "order2_item"),
        ],
    )
    def test_snake_case(self, name, expected):
        assert NamingStrategy.SNAKE_CASE.apply(name) == expected

    def test_lowercase_and_preserve(self):
        assert NamingStrategy.LOWERCASE.apply("UserProfile") == "userprofile"
        assert NamingStrategy.PRESERVE.apply("UserProfile") == "UserProfile"


class TestCompilerSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ENTMAPPER_OUTPUT_DIR", raising=False)
        settings = CompilerSettings()

        assert settings.output_dir == Path("build/entmapper")
        assert settings.generated_package == "generated"
        assert settings.write_manifest is True
        assert settings.table_naming is NamingStrategy.SNAKE_CASE
        assert settings.column_naming is NamingStrategy.PRESERVE

    def test_environment(self, monkeypatch):
        """ENTMAPPER_* variables configure the compiler."""
        monkeypatch.setenv("ENTMAPPER_OUTPUT_DIR", "/tmp/out")
        monkeypatch.setenv("ENTMAPPER_DEFAULT_KEYSPACE", "app")
        monkeypatch.setenv("ENTMAPPER_COLUMN_NAMING", "snake_case")
        monkeypatch.setenv("ENTMAPPER_WRITE_MANIFEST", "false")

        settings = CompilerSettings()

        assert settings.output_dir == Path("/tmp/out")
        assert settings.default_keyspace == "app"
        assert settings.column_naming is NamingStrategy.SNAKE_CASE
        assert settings.write_manifest is False

    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv("ENTMAPPER_GENERATED_PACKAGE", "from_env")

        assert CompilerSettings(generated_package="explicit").generated_package == "explicit"

    def test_workers_positive(self):
        with pytest.raises(ValidationError):
            CompilerSettings(write_workers=0)
