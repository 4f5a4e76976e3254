"""
Pytest configuration and shared fixtures for the Mill Orders test suite.
"""
import json
import os
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="millorders_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    config = Config()
    # Override paths to use temp directory
    config.output_dir = temp_dir / "output"
    config.output_dir.mkdir(parents=True, exist_ok=True)
    config.db_path = temp_dir / "output" / "orders.db"
    config.filters_file = temp_dir / "output" / "filters.json"
    config.roles_file = temp_dir / "config" / "roles.json"
    config.quick_products_file = temp_dir / "data" / "quick_products.json"
    config.api_base_url = None
    config.api_token = None
    config.default_role = "manager"
    config.default_tax_percentage = Decimal("0")
    config.currency_symbol = "₹"

    config.quick_products_file.parent.mkdir(parents=True, exist_ok=True)
    return config


@pytest.fixture
def test_db(test_config) -> "OrderDatabase":
    """Provide a test database instance."""
    from orders.database import OrderDatabase
    return OrderDatabase(test_config.db_path)


@pytest.fixture
def manager_permissions():
    from orders.permissions import RoleDirectory
    return RoleDirectory().permissions_for("manager")


@pytest.fixture
def sample_items() -> list:
    """Two flour lines: 10 × 25 + 5 × 40 = 450."""
    from models.order import OrderItem
    return [
        OrderItem(product_name="Chakki Atta", quantity=Decimal("10"), unit="KG",
                  rate_per_unit=Decimal("25"), packaging="Loose"),
        OrderItem(product_name="Maida", quantity=Decimal("5"), unit="KG",
                  rate_per_unit=Decimal("40"), packaging="Standard"),
    ]


@pytest.fixture
def sample_order(sample_items) -> "Order":
    """A valid draft order: 10% discount, 5% tax → total 427.50."""
    from models.order import Order
    return Order(
        customer="cust-001",
        items=sample_items,
        discount_percentage=Decimal("10"),
        is_taxable=True,
        tax_percentage=Decimal("5"),
        payment_terms="Cash",
    )


@pytest.fixture
def sample_order_json(temp_dir: Path) -> Path:
    """The same order as sample_order, as the camelCase JSON the API speaks."""
    path = temp_dir / "order.json"
    path.write_text(json.dumps({
        "customer": "cust-001",
        "paymentTerms": "Cash",
        "discountPercentage": 10,
        "isTaxable": True,
        "taxPercentage": 5,
        "items": [
            {"productName": "Chakki Atta", "quantity": 10, "unit": "KG", "ratePerUnit": 25},
            {"productName": "Maida", "quantity": 5, "unit": "KG", "ratePerUnit": 40,
             "packaging": "Standard"},
        ],
    }), encoding="utf-8")
    return path


@pytest.fixture
def sample_products() -> list:
    from models.catalog import QuickProduct
    return [
        QuickProduct(key="atta-50", name="Chakki Atta", price_per_kg=Decimal("32"),
                     bag_size_kg=Decimal("50"), category="atta", city_tokens=["indore", "dewas"]),
        QuickProduct(key="maida-25", name="Maida", price_per_kg=Decimal("38.5"),
                     bag_size_kg=Decimal("25"), category="maida"),
        QuickProduct(key="bran", name="Wheat Bran", price_per_kg=Decimal("18"),
                     category="feed", city_tokens=["ujjain"]),
    ]


@pytest.fixture
def sample_catalog(sample_products) -> "QuickProductCatalog":
    from orders.quick_order import QuickProductCatalog
    return QuickProductCatalog(sample_products)


@pytest.fixture
def sample_products_json(test_config, sample_products) -> Path:
    """Write the sample catalog where test_config expects it."""
    path = test_config.quick_products_file
    path.write_text(json.dumps({
        "products": [p.model_dump(mode="json", by_alias=True) for p in sample_products],
    }), encoding="utf-8")
    return path


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
