"""
Integration tests for full compilation rounds.

Tests cover:
- Writing the generated package and importing it
- Statements built by generated managers and DSLs
- Codecs applied by generated metas
- Manifest and fingerprint consistency
- Failed rounds writing nothing
"""

import importlib
import logging
import uuid
from datetime import datetime
from decimal import Decimal

import pytest
import yaml

from entmapper import CompilationDriver, CompilationError, CompilerSettings
from tests.models.shop import Address, Customer, Money, Order, Product, Status

MODULES = ["tests.models.accounts", "tests.models.shop"]


class TestCompileRound:
    """Compile, write and import a generated package."""

    @pytest.fixture
    def package(self):
        """A generated package name unique to the test."""
        return f"gen_{uuid.uuid4().hex[:12]}"

    @pytest.fixture
    def settings(self, tmp_path, package):
        return CompilerSettings(output_dir=tmp_path, generated_package=package, write_workers=2)

    @pytest.fixture
    def compiled(self, settings):
        result = CompilationDriver(settings).compile(modules=MODULES)
        result.raise_for_errors()
        return result

    @pytest.fixture
    def factory(self, compiled, settings, package, monkeypatch):
        monkeypatch.syspath_prepend(str(settings.output_dir))
        importlib.invalidate_caches()
        module = importlib.import_module(f"{package}.manager_factory")
        return module.ManagerFactory()

    @pytest.fixture
    def customer(self):
        return Customer(
            id=uuid.uuid4(),
            name="Ann",
            address=Address("Main St", "Paris", 75001),
            status=Status.ACTIVE,
            avatar=b"\x89PNG",
        )

    def test_files_written(self, compiled, settings, package):
        root = settings.output_dir / package

        assert (root / "__init__.py").exists()
        assert (root / "udt" / "address_meta.py").exists()
        assert (root / "meta" / "account_meta.py").exists()
        assert (root / "manager" / "order_manager.py").exists()
        assert (root / "dsl" / "product_dsl.py").exists()
        assert (root / "schema.cql").exists()

    def test_counter_manager(self, factory):
        """Counter tables get increments and no insert."""
        account_id = uuid.uuid4()
        manager = factory.for_account()

        increment = manager.increment_balance(account_id)
        decrement = manager.decrement_balance(account_id, delta=5)

        assert increment.cql == "UPDATE accounts SET balance = balance + ? WHERE id = ?"
        assert increment.values == (1, account_id)
        assert decrement.values == (-5, account_id)
        assert not hasattr(manager, "insert")

    def test_json_column_decoded(self, factory):
        account_id = uuid.uuid4()

        account = factory.for_account().map_row({"id": account_id, "balance": 3, "tags": '["vip"]'})

        assert account.id == account_id
        assert account.balance == 3
        assert account.tags == ["vip"]

    def test_insert_encodes_values(self, factory, customer):
        statement = factory.for_customer().insert(customer)

        assert statement.cql == (
            "INSERT INTO shop.customer (id, name, address, status, avatar, nickname) "
            "VALUES (?, ?, ?, ?, ?, ?)"
        )
        assert statement.values == (
            customer.id,
            "Ann",
            {"street": "Main St", "city": "Paris", "zip": 75001},
            "ACTIVE",
            b"\x89PNG",
            None,
        )

    def test_insert_with_ttl(self, factory, customer):
        statement = factory.for_customer().insert(customer, ttl=3600)

        assert statement.cql.endswith(" USING TTL ?")
        assert statement.values[-1] == 3600

    def test_join_columns(self, factory, customer):
        """Joins persist the target's partition key."""
        order = Order(
            customer=customer,
            created=datetime(2024, 5, 1, 12, 0),
            order_id=uuid.uuid1(),
            region="eu",
            product=Product("sku-1", "tools", Money(Decimal("9.99"), "EUR"), bytearray(b"x")),
            total=Money(Decimal("19.98"), "EUR"),
            labels=[Status.ACTIVE, Status.CLOSED],
            shipping=Address("Dock 4", "Lyon", 69001),
            notes={"gift": [1, 2]},
        )

        row = dict(zip(
            ["customer", "created", "order_id", "region", "product", "total", "labels", "shipping", "notes"],
            factory.for_order().insert(order).values,
        ))

        assert row["customer"] == customer.id
        assert row["product"] == ("sku-1", "tools")
        assert row["total"] == "19.98 EUR"
        assert row["labels"] == ["ACTIVE", "CLOSED"]
        assert row["shipping"] == {"street": "Dock 4", "city": "Lyon", "zip": 69001}
        assert row["notes"] == '{"gift":[1,2]}'

    def test_map_row_builds_references(self, factory, customer):
        order = factory.for_order().map_row(
            {
                "customer": customer.id,
                "product": ("sku-1", "tools"),
                "total": "5 USD",
                "labels": ["CLOSED"],
                "written_at": 1700000000,
            }
        )

        assert isinstance(order.customer, Customer)
        assert order.customer.id == customer.id
        assert (order.product.sku, order.product.category) == ("sku-1", "tools")
        assert order.total == Money(Decimal("5"), "USD")
        assert order.labels == [Status.CLOSED]
        assert order.written_at == 1700000000

    def test_select_dsl(self, factory, customer):
        since = datetime(2024, 1, 1)

        statement = (
            factory.select_from_order()
            .customer_eq(customer)
            .created_gte(since)
            .limit(20)
            .build()
        )

        assert statement.cql == (
            "SELECT customer, created, order_id, region, product, total, labels, shipping, notes, "
            "writetime(region) AS written_at FROM shop.order "
            "WHERE customer = ? AND created >= ? LIMIT ?"
        )
        assert statement.values == (customer.id, since, 20)

    def test_delete_dsl(self, factory):
        statement = factory.delete_from_product().sku_eq("sku-1").category_in("tools", "garden").build()

        assert statement.cql == "DELETE FROM shop.product WHERE sku = ? AND category IN (?, ?)"
        assert statement.values == ("sku-1", "tools", "garden")

    def test_find_by_id(self, factory):
        created = datetime(2024, 5, 1)
        order_id = uuid.uuid1()
        customer_id = uuid.uuid4()
        reference = Customer.__new__(Customer)
        reference.id = customer_id

        statement = factory.for_order().find_by_id(reference, created, order_id)

        assert statement.cql.endswith("WHERE customer = ? AND created = ? AND order_id = ?")
        assert statement.values == (customer_id, created, order_id)

    def test_schema_statements(self, factory):
        statements = factory.schema_statements()

        assert statements[0].startswith("CREATE TYPE IF NOT EXISTS shop.address")
        assert [s.split(" ")[5] for s in statements[1:]] == [
            "accounts",
            "shop.customer",
            "shop.order",
            "shop.product",
        ]

    def test_keyspace_override(self, compiled, settings, package, monkeypatch):
        monkeypatch.syspath_prepend(str(settings.output_dir))
        module = importlib.import_module(f"{package}.manager_factory")

        statement = module.ManagerFactory("staging").for_account().increment_balance(uuid.uuid4())

        assert statement.cql.startswith("UPDATE staging.accounts SET")

    def test_manifest_fingerprint(self, compiled, factory, settings, package):
        manifest = yaml.safe_load((settings.output_dir / package / "schema.yaml").read_text())

        assert manifest["fingerprint"] == compiled.fingerprint
        assert factory.fingerprint == compiled.fingerprint

    def test_fingerprint_stable(self, compiled, settings):
        """Compiling the same declarations again gives the same fingerprint."""
        again = CompilationDriver(settings).run(modules=MODULES, emit=False)

        assert again.fingerprint == compiled.fingerprint

    def test_recompile_overwrites(self, compiled, settings, caplog):
        with caplog.at_level(logging.WARNING, logger="entmapper.compiler.driver"):
            result = CompilationDriver(settings).compile(modules=MODULES)

        assert result.ok
        assert "Overwriting files in existing generated package" in caplog.text


class TestFailedRound:
    """Rounds with errors write nothing."""

    def test_broken_module(self, tmp_path):
        settings = CompilerSettings(output_dir=tmp_path, generated_package="never")

        result = CompilationDriver(settings).compile(modules=["tests.models.broken"])

        assert not result.ok
        assert result.artifacts == []
        assert list(tmp_path.iterdir()) == []
        with pytest.raises(CompilationError, match="1 error"):
            result.raise_for_errors()

    def test_missing_module(self, tmp_path):
        """A module that cannot be imported is reported, not raised."""
        settings = CompilerSettings(output_dir=tmp_path, generated_package="never")

        result = CompilationDriver(settings).compile(modules=["tests.models.does_not_exist"])

        assert not result.ok
        assert list(tmp_path.iterdir()) == []
        [error] = result.errors
        assert error.code == "STRUCTURAL_ERROR"
        assert error.entity == "tests.models.does_not_exist"
        assert "Cannot import module 'tests.models.does_not_exist'" in error.message

    def test_all_entities_reported(self, tmp_path):
        """Every failing entity contributes a diagnostic."""
        result = CompilationDriver().run(modules=["tests.models.broken", "tests.models.shop"])

        assert [d.entity for d in result.errors] == ["tests.models.broken.FloatAccount"]
        assert len(result.entities) == 4

    def test_backfill_skipped_after_errors(self):
        """References are not resolved once an entity failed."""
        result = CompilationDriver().run(modules=["tests.models.broken"], emit=False)

        assert result.errors[0].code == "TYPE_ERROR"
        assert not any(d.code == "REFERENCE_ERROR" for d in result.diagnostics)
