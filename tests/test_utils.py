"""Tests for CSV dataset loading and configuration."""

import asyncio

import pandas as pd
import pytest

from crmrec.config import Settings
from crmrec.recommender.models import OrderStatus
from crmrec.recommender.utils import (
    check_dataset_exists,
    load_dataset,
    load_orders_csv,
    load_products_csv,
)


@pytest.fixture
def data_dir(tmp_path):
    pd.DataFrame(
        [
            {"id": "P1", "name": "Whey", "brand": "Optimum", "price": 99.9,
             "categories": "Proteína|Snacks", "stock": 4, "created_at": "2024-01-01T00:00:00Z"},
            {"id": "P2", "name": "Creatine", "brand": None, "price": 20.0,
             "categories": None, "stock": 0, "created_at": "2024-01-02T00:00:00Z"},
        ]
    ).to_csv(tmp_path / "products.csv", index=False)

    pd.DataFrame(
        [
            {"order_id": "O1", "order_number": "ORD-1", "user_id": "U1", "status": "delivered",
             "total": 119.9, "created_at": "2024-05-01T10:00:00Z", "product_id": "P1",
             "quantity": 1, "price": 99.9},
            {"order_id": "O1", "order_number": "ORD-1", "user_id": "U1", "status": "delivered",
             "total": 119.9, "created_at": "2024-05-01T10:00:00Z", "product_id": "P2",
             "quantity": 1, "price": 20.0},
            {"order_id": "O2", "order_number": "ORD-2", "user_id": "U2", "status": "cancelled",
             "total": 40.0, "created_at": "2024-05-02T10:00:00Z", "product_id": "P2",
             "quantity": 2, "price": 20.0},
        ]
    ).to_csv(tmp_path / "orders.csv", index=False)
    return tmp_path


def test_load_products_csv(data_dir):
    products = load_products_csv(str(data_dir / "products.csv"))

    assert [p.id for p in products] == ["P1", "P2"]
    assert products[0].categories == ["Proteína", "Snacks"]
    assert products[1].categories == []
    assert products[1].brand == ""
    assert not products[1].in_stock


def test_load_orders_groups_lines(data_dir):
    orders = load_orders_csv(str(data_dir / "orders.csv"))

    assert [o.id for o in orders] == ["O1", "O2"]
    first = orders[0]
    assert first.distinct_product_ids() == ["P1", "P2"]
    assert first.order_number == "ORD-1"
    assert first.status == OrderStatus.DELIVERED
    assert first.created_at.tzinfo is not None
    assert orders[1].status == OrderStatus.CANCELLED


def test_load_dataset_without_customers(data_dir):
    dataset = load_dataset(str(data_dir))

    assert len(dataset.orders) == 2
    assert asyncio.run(dataset.products.count()) == 2
    assert asyncio.run(dataset.customers.find_all()) == []


def test_load_dataset_with_customers(data_dir):
    pd.DataFrame([{"id": "C1", "user_id": "U1", "name": "Ana"}]).to_csv(
        data_dir / "customers.csv", index=False
    )

    dataset = load_dataset(str(data_dir))
    customer = asyncio.run(dataset.customers.find_by_user("U1"))

    assert customer.id == "C1"
    assert customer.name == "Ana"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_products_csv(str(tmp_path / "nope.csv"))
    with pytest.raises(FileNotFoundError):
        load_dataset(str(tmp_path / "missing_dir"))


def test_missing_columns_raise(tmp_path):
    csv_path = tmp_path / "orders.csv"
    pd.DataFrame([{"order_id": "O1", "user_id": "U1"}]).to_csv(csv_path, index=False)

    with pytest.raises(ValueError, match="missing required columns"):
        load_orders_csv(str(csv_path))


def test_check_dataset_exists(data_dir, tmp_path_factory):
    assert check_dataset_exists(str(data_dir))
    assert not check_dataset_exists(str(tmp_path_factory.mktemp("empty")))


def test_settings_defaults():
    settings = Settings.from_env({})

    assert settings.data_dir == "data"
    assert settings.log_level == "INFO"
    assert settings.default_limit == 10
    assert settings.cache_matrix


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "CRMREC_DATA_DIR": "/srv/data",
            "CRMREC_LOG_LEVEL": "debug",
            "CRMREC_DEFAULT_LIMIT": "25",
            "CRMREC_CACHE_MATRIX": "off",
        }
    )

    assert settings.data_dir == "/srv/data"
    assert settings.log_level == "DEBUG"
    assert settings.default_limit == 25
    assert not settings.cache_matrix


def test_settings_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        Settings.from_env({"CRMREC_DEFAULT_LIMIT": "0"})
