from decimal import Decimal

from statement_import.models import Category, CategoryMapping, ExtractedTransaction, TransactionFields
from statement_import.reconcile import assign_alias, distinct_aliases, reconcile


def _tx(i: int, alias: str) -> ExtractedTransaction:
    return ExtractedTransaction(
        id=f"t{i}",
        fields=TransactionFields(description=f"d{i}", category_alias=alias, amount=Decimal("1")),
    )


CATEGORIES = [
    Category(id=1, name="Food", color_tag="green", aliases=("Groceries", "Supermarket")),
    Category(id=2, name="Transport", color_tag="blue", aliases=("Taxi",)),
]


def test_maps_known_aliases_and_leaves_others_unresolved():
    txs = [_tx(1, "Taxi"), _tx(2, "Groceries"), _tx(3, "Pharmacy")]

    assert reconcile(txs, CATEGORIES) == [
        CategoryMapping("Taxi", 2),
        CategoryMapping("Groceries", 1),
        CategoryMapping("Pharmacy", None),
    ]


def test_one_mapping_per_distinct_alias_in_first_seen_order():
    txs = [_tx(1, "Taxi"), _tx(2, " Taxi "), _tx(3, "Groceries"), _tx(4, "Taxi")]

    mappings = reconcile(txs, CATEGORIES)

    assert [m.alias for m in mappings] == ["Taxi", "Groceries"]


def test_matching_is_case_sensitive():
    (m,) = reconcile([_tx(1, "groceries")], CATEGORIES)
    assert m == CategoryMapping("groceries", None)


def test_empty_alias_contributes_no_mapping():
    assert reconcile([_tx(1, ""), _tx(2, "   ")], CATEGORIES) == []
    assert distinct_aliases([_tx(1, ""), _tx(2, "Taxi")]) == ["Taxi"]


def test_first_category_wins_when_alias_is_shared():
    cats = [
        Category(id=5, name="A", color_tag="gray", aliases=("Shared",)),
        Category(id=9, name="B", color_tag="gray", aliases=("Shared",)),
    ]
    (m,) = reconcile([_tx(1, "Shared")], cats)
    assert m.category_id == 5


def test_reconcile_is_deterministic():
    txs = [_tx(i, a) for i, a in enumerate(["Taxi", "X", "Groceries", "Y", "X"])]
    assert reconcile(txs, CATEGORIES) == reconcile(txs, CATEGORIES)


def test_category_aliases_are_trimmed_on_load():
    cat = Category(id=3, name="Fun", color_tag="red", aliases=[" Cinema ", "", "  "])
    assert cat.aliases == ("Cinema",)
    (m,) = reconcile([_tx(1, "Cinema")], [cat])
    assert m.category_id == 3


def test_assign_alias_returns_new_list_preserving_order():
    original = [CategoryMapping("A", None), CategoryMapping("B", 2)]

    updated = assign_alias(original, "A", 7)
    cleared = assign_alias(updated, "B", None)
    added = assign_alias(cleared, "C", 1)

    assert original == [CategoryMapping("A", None), CategoryMapping("B", 2)]
    assert updated == [CategoryMapping("A", 7), CategoryMapping("B", 2)]
    assert cleared == [CategoryMapping("A", 7), CategoryMapping("B", None)]
    assert added[-1] == CategoryMapping("C", 1)
