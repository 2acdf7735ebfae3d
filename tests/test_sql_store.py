from datetime import datetime
from decimal import Decimal

import pytest
from statement_import.errors import PersistenceError
from statement_import.models import TransactionsQuery
from statement_import.store import SqlFinanceStore

from tests.helpers.db import count_transactions, seed_categories


def test_create_and_list_categories_in_id_order(sql_store: SqlFinanceStore):
    a = sql_store.create_category("Food", "green", [" Groceries ", "", "Groceries", "Supermarket"])
    b = sql_store.create_category("  Fun   stuff ", aliases=())

    cats = sql_store.list_categories()

    assert [c.id for c in cats] == sorted([a.id, b.id])
    assert cats[0].aliases == ("Groceries", "Supermarket")
    assert cats[0].color_tag == "green"
    assert cats[1].name == "Fun stuff"
    assert cats[1].color_tag == "gray"


def test_invalid_category_name_is_rejected(sql_store: SqlFinanceStore):
    with pytest.raises(ValueError):
        sql_store.create_category("   ")
    with pytest.raises(ValueError):
        sql_store.create_category("x" * 65)


def test_alias_owned_by_another_category_is_rejected(sql_store: SqlFinanceStore):
    food = sql_store.create_category("Food", aliases=["Groceries"])
    fun = sql_store.create_category("Fun")

    with pytest.raises(ValueError, match="Groceries"):
        sql_store.create_category("Other", aliases=["Groceries"])
    with pytest.raises(ValueError):
        sql_store.update_category(fun.id, aliases=["Groceries"])

    # Re-saving a category's own aliases is fine.
    again = sql_store.update_category(food.id, aliases=["Groceries", "Market"])
    assert again.aliases == ("Groceries", "Market")


def test_update_category_fields(sql_store: SqlFinanceStore):
    cat = sql_store.create_category("Food")

    updated = sql_store.update_category(cat.id, name="Groceries", color_tag="teal")

    assert (updated.name, updated.color_tag, updated.aliases) == ("Groceries", "teal", ())
    assert sql_store.list_categories() == [updated]


def test_update_missing_category_raises_persistence_error(sql_store: SqlFinanceStore):
    with pytest.raises(PersistenceError):
        sql_store.update_category(999, name="X")


def test_create_transaction_round_trips(sql_store: SqlFinanceStore, sqlite_url: str):
    cat = sql_store.create_category("Food")

    rec = sql_store.create_transaction("Linella", cat.id, Decimal("-250.456"), datetime(2024, 4, 2, 12, 0))

    assert rec.id > 0
    assert rec.amount == Decimal("-250.46")
    assert rec.category_id == cat.id
    assert count_transactions(sqlite_url) == 1


def test_create_transaction_with_unknown_category_fails(sql_store: SqlFinanceStore, sqlite_url: str):
    with pytest.raises(PersistenceError, match="does not exist"):
        sql_store.create_transaction("X", 42, Decimal("1"), datetime(2024, 1, 1))
    assert count_transactions(sqlite_url) == 0


def test_list_transactions_filter_sort_and_page(sql_store: SqlFinanceStore):
    cat = sql_store.create_category("Food")
    for i, (desc, amount) in enumerate(
        [("Coffee", "3"), ("Coffee beans", "12"), ("Taxi", "7"), ("coffee shop", "5")]
    ):
        sql_store.create_transaction(desc, cat.id, Decimal(amount), datetime(2024, 1, 1 + i))

    page = sql_store.list_transactions(
        TransactionsQuery(filter="coffee", order_by="amount", order_direction="asc", take=2)
    )
    assert page.total == 3
    assert [r.description for r in page.data] == ["Coffee", "coffee shop"]

    page2 = sql_store.list_transactions(
        TransactionsQuery(filter="coffee", order_by="amount", order_direction="asc", take=2, page=2)
    )
    assert [r.description for r in page2.data] == ["Coffee beans"]

    newest = sql_store.list_transactions(TransactionsQuery(order_by="timestamp"))
    assert newest.data[0].description == "coffee shop"


def test_listing_reflects_shared_aliases_seeded_outside_the_store(sqlite_url: str):
    ids = seed_categories(sqlite_url, [("A", ["Shared"]), ("B", ["Shared"])])
    cats = SqlFinanceStore(sqlite_url).list_categories()
    assert [c.id for c in cats] == ids
    assert all(c.aliases == ("Shared",) for c in cats)


def test_store_uses_database_url_from_environment(sqlite_url: str, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", sqlite_url)
    store = SqlFinanceStore()
    assert store.create_category("Env").name == "Env"
