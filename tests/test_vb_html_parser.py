from datetime import UTC, datetime
from decimal import Decimal

import pytest
from statement_import.errors import FatalParseError, FieldExtractionError
from statement_import.ingest.adapters.vb_html import (
    VictoriabankHtmlParser,
    build_timestamp,
    parse_amount,
    parse_month_year,
)
from statement_import.ingest.utils import parse
from statement_import.models import Idle

from tests.helpers.statements import (
    Entry,
    day_html,
    entry_html,
    example_statement,
    month_html,
    statement,
)


def _parse(doc: str):
    return VictoriabankHtmlParser().parse(doc)


def test_example_statement_yields_three_transactions_in_document_order():
    txs = parse(example_statement())

    assert [t.fields.description for t in txs] == ["Salary", "Taxi", "Linella"]
    assert [t.fields.category_alias for t in txs] == ["Income", "Transport", "Groceries"]
    assert txs[0].fields.amount == Decimal("1200.50")
    assert txs[0].fields.timestamp == datetime(2024, 3, 15, 10, 30)
    assert txs[2].fields.timestamp == datetime(2024, 4, 2, 12, 0)
    assert all(isinstance(t.status, Idle) for t in txs)


def test_missing_amount_is_a_field_error_and_other_fields_survive():
    txs = parse(example_statement())
    taxi = txs[1]

    assert taxi.field_errors == {"amount": "Amount not found"}
    assert taxi.fields.amount == Decimal(0)
    assert taxi.fields.description == "Taxi"
    assert taxi.fields.category_alias == "Transport"
    assert taxi.fields.timestamp == datetime(2024, 3, 15, 18, 5)


def test_ids_are_unique_within_a_run():
    entries = [Entry(description=f"Shop {i}") for i in range(200)]
    txs = parse(statement(month_html("May 2024"), day_html("1 May", entries)))

    assert len(txs) == 200
    assert len({t.id for t in txs}) == 200


def test_total_amount_takes_precedence_over_transaction_amount():
    doc = statement(
        month_html("March 2024"),
        day_html("3 March", [Entry(total="-99.90", transaction="-5.00")]),
    )
    (tx,) = parse(doc)
    assert tx.fields.amount == Decimal("-99.90")


def test_transaction_amount_used_when_total_missing():
    doc = statement(
        month_html("March 2024"),
        day_html("3 March", [Entry(total=None, transaction="-1,050.00")]),
    )
    (tx,) = parse(doc)
    assert tx.fields.amount == Decimal("-1050.00")
    assert tx.field_errors == {}


def test_zero_amount_is_a_value_not_an_error():
    doc = statement(month_html("March 2024"), day_html("3 March", [Entry(total="0.00")]))
    (tx,) = parse(doc)
    assert tx.fields.amount == Decimal("0.00")
    assert "amount" not in tx.field_errors


def test_each_field_fails_independently():
    doc = statement(
        month_html("March 2024"),
        day_html(
            "3 March",
            [
                Entry(description=None),
                Entry(category=None),
                Entry(time=None),
                Entry(total="abc"),
            ],
        ),
    )
    txs = parse(doc)

    assert [t.field_errors for t in txs] == [
        {"description": "Description not found"},
        {"category_alias": "Category not found"},
        {"timestamp": "Time not found"},
        {"amount": "Invalid amount"},
    ]
    assert txs[0].fields.category_alias == "Cafes"
    assert txs[1].fields.description == "Coffee"
    assert txs[2].fields.amount == Decimal("-35.00")
    assert txs[3].fields.timestamp == datetime(2024, 3, 3, 9, 15)


def test_unparseable_month_records_invalid_date():
    doc = statement(month_html("Sometime"), day_html("3 March", [Entry()]))
    (tx,) = parse(doc)
    assert tx.field_errors == {"timestamp": "Invalid date"}
    assert tx.fields.timestamp is None


def test_entries_before_first_month_delimiter_are_kept_undated():
    doc = statement(day_html("3 March", [Entry()]), month_html("March 2024"), day_html("4 March", [Entry()]))
    txs = parse(doc)

    assert len(txs) == 2
    assert txs[0].field_errors == {"timestamp": "Invalid date"}
    assert txs[1].fields.timestamp == datetime(2024, 3, 4, 9, 15)


def test_day_headers_as_siblings_of_entries():
    doc = statement(
        month_html("March 2024"),
        '<div class="day-header">5 March</div>',
        entry_html(Entry(time="08:00")),
        '<div class="day-header">6 March</div>',
        entry_html(Entry(time="09:00")),
    )
    txs = parse(doc)
    assert [t.fields.timestamp for t in txs] == [
        datetime(2024, 3, 5, 8, 0),
        datetime(2024, 3, 6, 9, 0),
    ]


def test_month_without_entries_emits_nothing():
    doc = statement(
        month_html("February 2024"),
        month_html("March 2024"),
        day_html("3 March", [Entry()]),
    )
    (tx,) = parse(doc)
    assert tx.fields.timestamp == datetime(2024, 3, 3, 9, 15)


def test_no_entries_is_fatal():
    with pytest.raises(FatalParseError, match="No transactions found"):
        parse(statement(month_html("March 2024")))
    with pytest.raises(FatalParseError):
        parse("<html><body><p>Not a statement</p></body></html>")


def test_script_content_never_reaches_fields():
    doc = statement(
        month_html("March 2024"),
        day_html(
            "3 March",
            [Entry(description='Shop<script>alert("x")</script><img src=x onerror=alert(1)>')],
        ),
        head="<script>document.cookie</script>",
    )
    (tx,) = parse(doc)
    assert tx.fields.description == "Shop"


def test_timezone_is_applied_when_given():
    doc = statement(month_html("March 2024"), day_html("3 March", [Entry()]))
    (tx,) = VictoriabankHtmlParser(tz=UTC).parse(doc)
    assert tx.fields.timestamp == datetime(2024, 3, 3, 9, 15, tzinfo=UTC)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("March 2024", (2024, 3)),
        ("martie 2024", (2024, 3)),
        ("Март 2024", (2024, 3)),
        ("2023 Dec.", (2023, 12)),
        ("07 2022", (2022, 7)),
    ],
)
def test_parse_month_year_accepts_localized_names(text, expected):
    assert parse_month_year(text) == expected


def test_parse_month_year_rejects_missing_year():
    with pytest.raises(ValueError):
        parse_month_year("March")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,200.50", Decimal("1200.50")),
        ("-35.00 MDL", Decimal("-35.00")),
        ("12 345.10", Decimal("12345.10")),
        ("−7.25", Decimal("-7.25")),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_parse_amount_rejects_garbage():
    with pytest.raises(FieldExtractionError) as exc:
        parse_amount("n/a")
    assert exc.value.field == "amount"


def test_build_timestamp_rejects_impossible_dates():
    with pytest.raises(ValueError):
        build_timestamp("February 2023", "30 February", "10:00")


def test_unclosed_noscript_does_not_hide_later_entries():
    doc = statement(
        month_html("March 2024"),
        '<div class="day"><div class="day-header">1 March</div><noscript>enable js</div>',
        day_html("2 March", [Entry(description="Bakery", total="-12.00")]),
    )

    txs = _parse(doc)

    assert [t.fields.description for t in txs] == ["Bakery"]
    assert txs[0].fields.timestamp == datetime(2024, 3, 2, 9, 15)
