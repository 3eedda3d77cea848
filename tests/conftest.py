"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories, services and api without installing the package, and wires the
sale service to in-memory repositories.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple
from uuid import UUID

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.line_items import LineItemInput  # noqa: E402
from domain.principal import Principal, Role  # noqa: E402
from domain.sale import Sale  # noqa: E402
from fakes import InMemoryAuditRepository, InMemoryProductRepository, InMemorySaleRepository  # noqa: E402
from services.sale_service import SaleService  # noqa: E402
from services.stock_ledger import StockLedger  # noqa: E402

ADMIN_ID = UUID("00000000-0000-0000-0000-0000000000a1")
MANAGER_ID = UUID("00000000-0000-0000-0000-0000000000a2")
EMPLOYEE_ID = UUID("00000000-0000-0000-0000-0000000000e1")
OTHER_EMPLOYEE_ID = UUID("00000000-0000-0000-0000-0000000000e2")


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def manager() -> Principal:
    return Principal(user_id=MANAGER_ID, role=Role.MANAGER)


@pytest.fixture
def employee() -> Principal:
    return Principal(user_id=EMPLOYEE_ID, role=Role.EMPLOYEE)


@pytest.fixture
def product_repo() -> InMemoryProductRepository:
    return InMemoryProductRepository()


@pytest.fixture
def sale_repo() -> InMemorySaleRepository:
    return InMemorySaleRepository()


@pytest.fixture
def audit_repo() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def ledger(product_repo: InMemoryProductRepository) -> StockLedger:
    return StockLedger(product_repo, compensate_on_failure=True)


@pytest.fixture
def service(sale_repo, ledger, audit_repo) -> SaleService:
    return SaleService(sale_repo, ledger, audit=audit_repo)


def lines(*specs: Tuple[UUID, int, str]) -> List[LineItemInput]:
    """Build line-item inputs from (product_id, quantity, unit_price) tuples."""
    return [LineItemInput(product_id=pid, quantity=qty, unit_price=Decimal(price)) for pid, qty, price in specs]


@pytest.fixture
def make_lines() -> Callable[..., List[LineItemInput]]:
    return lines


def expected_stock(products: InMemoryProductRepository, sales: Iterable[Sale]) -> Dict[UUID, int]:
    """initial stock minus the quantity held by every completed sale."""
    expected = dict(products.initial_stock)
    for sale in sales:
        if sale.is_completed:
            for item in sale.line_items:
                expected[item.product_id] -= item.quantity
    return expected


@pytest.fixture
def assert_stock_invariant(product_repo, sale_repo) -> Callable[[], None]:
    def check() -> None:
        expected = expected_stock(product_repo, sale_repo.all())
        for product_id, stock in expected.items():
            product = product_repo.get_product(product_id)
            if product is None:
                continue
            assert product.stock == stock, f"stock drift for {product_id}: {product.stock} != {stock}"
            assert product.stock >= 0
    return check
