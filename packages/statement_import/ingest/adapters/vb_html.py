"""Adapter for Victoriabank HTML statement exports (bank key ``vb``).

Document shape
--------------
The operations list is a flat run of ``.operations > div`` siblings. A
``.month-delimiter`` sibling opens a month group (its text is the month and
year, e.g. ``"March 2024"``); every following sibling belongs to that group
until the next delimiter. Inside a group, ``.day-header`` nodes open a day
(``"15 March, Friday"``) and the ``.history-item`` entries after it belong to
that day. Each entry carries:

- ``.history-item-description a``: description text
- ``.history-item-state[data-category]``: the bank's category label (alias)
- ``.history-item-time``: ``HH:MM``
- ``.history-item-amount.total .amount`` or, failing that,
  ``.history-item-amount.transaction .amount``: amount with ``,`` thousands
  separators

Failure mode
------------
Each of the four fields is extracted independently; a failure is recorded in
``field_errors`` under the field name and never blocks the others. Entries
found before any month delimiter, or without a day header, still produce a
transaction (with a ``timestamp`` error) so every row in the file is
accounted for. The adapter itself never raises on malformed entries; callers
decide what an empty result means.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any

from ...errors import FieldExtractionError
from ...logging_setup import get_logger
from ...models import (
    FIELD_AMOUNT,
    FIELD_CATEGORY,
    FIELD_DESCRIPTION,
    FIELD_TIMESTAMP,
    ExtractedTransaction,
    TransactionFields,
    new_transaction_id,
)
from ..markup import Element, sanitize_html

logger = get_logger("statement_import.ingest.adapters.vb_html")

OPERATIONS_SELECTOR = ".operations > div"
MONTH_DELIMITER_CLASS = "month-delimiter"
DAY_HEADER_CLASS = "day-header"
ENTRY_CLASS = "history-item"

DESCRIPTION_SELECTORS = (".history-item-description a", ".history-item-description")
STATE_SELECTOR = ".history-item-state"
TIME_SELECTOR = ".history-item-time"
# Order matters: the settled "total" amount wins over the raw "transaction" one.
AMOUNT_SELECTORS = (
    ".history-item-amount.total .amount",
    ".history-item-amount.transaction .amount",
)

# English plus the Romanian and Russian forms Victoriabank uses in localized
# exports. Keys are lower-cased and stripped of a trailing period.
MONTHS: dict[str, int] = {
    **{
        name: i
        for i, names in enumerate(
            [
                ("january", "jan", "ianuarie", "ian", "январь", "января", "янв"),
                ("february", "feb", "februarie", "февраль", "февраля", "фев"),
                ("march", "mar", "martie", "март", "марта", "мар"),
                ("april", "apr", "aprilie", "апрель", "апреля", "апр"),
                ("may", "mai", "май", "мая"),
                ("june", "jun", "iunie", "iun", "июнь", "июня", "июн"),
                ("july", "jul", "iulie", "iul", "июль", "июля", "июл"),
                ("august", "aug", "august", "август", "августа", "авг"),
                ("september", "sep", "sept", "septembrie", "сентябрь", "сентября", "сен"),
                ("october", "oct", "octombrie", "октябрь", "октября", "окт"),
                ("november", "nov", "noiembrie", "noi", "ноябрь", "ноября", "ноя"),
                ("december", "dec", "decembrie", "декабрь", "декабря", "дек"),
            ],
            start=1,
        )
        for name in names
    }
}

_YEAR_RE = re.compile(r"^\d{4}$")
_DAY_RE = re.compile(r"^\s*(\d{1,2})\b")
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")
_AMOUNT_JUNK_RE = re.compile(r"[\s  ,]|[A-Za-z]{3}$")


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _MonthGroup:
    month: str
    nodes: list[Element]


@dataclass(frozen=True, slots=True)
class _EntryContext:
    month: str
    day: str


def _group_by_month(nodes: list[Element]) -> list[_MonthGroup]:
    groups: list[_MonthGroup] = []
    for node in nodes:
        if MONTH_DELIMITER_CLASS in node.classes:
            groups.append(_MonthGroup(month=node.text(), nodes=[]))
            continue
        if not groups:
            # Entries ahead of the first delimiter: keep them, undated.
            groups.append(_MonthGroup(month="", nodes=[]))
        groups[-1].nodes.append(node)
    return groups


def _iter_entries(group: _MonthGroup) -> Iterator[tuple[Element, _EntryContext]]:
    """Yield ``(entry, context)`` pairs for a month group in document order.

    Works whether day headers wrap their entries or precede them as siblings.
    """

    day = ""
    for node in group.nodes:
        candidates = [node, *node.iter_descendants()]
        inside_entry: Element | None = None
        for el in candidates:
            if inside_entry is not None and _is_within(el, inside_entry):
                continue
            inside_entry = None
            classes = el.classes
            if DAY_HEADER_CLASS in classes:
                day = el.text()
            elif ENTRY_CLASS in classes:
                inside_entry = el
                yield el, _EntryContext(month=group.month, day=day)


def _is_within(el: Element, ancestor: Element) -> bool:
    parent = el.parent
    while parent is not None:
        if parent is ancestor:
            return True
        parent = parent.parent
    return False


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def _extract_description(entry: Element, _ctx: _EntryContext) -> str:
    for selector in DESCRIPTION_SELECTORS:
        node = entry.select_one(selector)
        if node is not None and node.text():
            return node.text()
    raise FieldExtractionError(FIELD_DESCRIPTION, "Description not found")


def _extract_category(entry: Element, _ctx: _EntryContext) -> str:
    node = entry.select_one(STATE_SELECTOR)
    alias = node.dataset.get("category", "").strip() if node is not None else ""
    if not alias:
        raise FieldExtractionError(FIELD_CATEGORY, "Category not found")
    return alias


def parse_amount(raw: str) -> Decimal:
    """Parse a statement amount such as ``"1,200.50"`` or ``"-35.00 MDL"``."""

    cleaned = _AMOUNT_JUNK_RE.sub("", raw.strip()).replace("−", "-")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise FieldExtractionError(FIELD_AMOUNT, "Invalid amount") from None
    if not value.is_finite():
        raise FieldExtractionError(FIELD_AMOUNT, "Invalid amount")
    return value


def _extract_amount(entry: Element, _ctx: _EntryContext) -> Decimal:
    for selector in AMOUNT_SELECTORS:
        node = entry.select_one(selector)
        if node is not None and node.text():
            return parse_amount(node.text())
    raise FieldExtractionError(FIELD_AMOUNT, "Amount not found")


def parse_month_year(text: str) -> tuple[int, int]:
    """Return ``(year, month)`` from a delimiter like ``"March 2024"``."""

    year: int | None = None
    month: int | None = None
    for token in text.replace(",", " ").split():
        t = token.strip().rstrip(".").lower()
        if _YEAR_RE.match(t):
            year = int(t)
        elif t in MONTHS:
            month = MONTHS[t]
        elif t.isdigit() and 1 <= int(t) <= 12:
            month = int(t)
    if year is None or month is None:
        raise ValueError(f"unrecognized month/year: {text!r}")
    return year, month


def build_timestamp(month_year: str, day: str, time: str, *, tz: tzinfo | None = None) -> datetime:
    year, month = parse_month_year(month_year)
    day_match = _DAY_RE.match(day)
    time_match = _TIME_RE.match(time)
    if day_match is None or time_match is None:
        raise ValueError("unrecognized day or time")
    hours, minutes, seconds = time_match.groups()
    return datetime(
        year,
        month,
        int(day_match.group(1)),
        int(hours),
        int(minutes),
        int(seconds or 0),
        tzinfo=tz,
    )


def _timestamp_extractor(tz: tzinfo | None) -> Callable[[Element, _EntryContext], datetime]:
    def _extract_timestamp(entry: Element, ctx: _EntryContext) -> datetime:
        node = entry.select_one(TIME_SELECTOR)
        time_text = node.text() if node is not None else ""
        if not time_text:
            raise FieldExtractionError(FIELD_TIMESTAMP, "Time not found")
        try:
            return build_timestamp(ctx.month, ctx.day, time_text, tz=tz)
        except ValueError:
            raise FieldExtractionError(FIELD_TIMESTAMP, "Invalid date") from None

    return _extract_timestamp


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class VictoriabankHtmlParser:
    """Turn a Victoriabank HTML export into :class:`ExtractedTransaction` rows."""

    bank = "vb"

    def __init__(self, *, tz: tzinfo | None = None) -> None:
        self._extractors: dict[str, Callable[[Element, _EntryContext], Any]] = {
            FIELD_DESCRIPTION: _extract_description,
            FIELD_CATEGORY: _extract_category,
            FIELD_AMOUNT: _extract_amount,
            FIELD_TIMESTAMP: _timestamp_extractor(tz),
        }

    def _build(self, entry: Element, ctx: _EntryContext, used_ids: set[str]) -> ExtractedTransaction:
        values: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for name, extract in self._extractors.items():
            try:
                values[name] = extract(entry, ctx)
            except FieldExtractionError as e:
                errors[name] = e.message
        tx_id = new_transaction_id(used_ids)
        used_ids.add(tx_id)
        if errors:
            logger.debug("Entry %s extracted with field errors: %s", tx_id, errors)
        return ExtractedTransaction(
            id=tx_id,
            fields=TransactionFields(**values),
            field_errors=errors,
        )

    def parse(self, document: str) -> list[ExtractedTransaction]:
        root = sanitize_html(document)
        groups = _group_by_month(root.select(OPERATIONS_SELECTOR))
        used_ids: set[str] = set()
        transactions: list[ExtractedTransaction] = []
        for group in groups:
            before = len(transactions)
            for entry, ctx in _iter_entries(group):
                transactions.append(self._build(entry, ctx, used_ids))
            logger.debug(
                "Month group %r: %d entries", group.month or "<undated>", len(transactions) - before
            )
        logger.debug(
            "Parsed %d transaction(s) from %d month group(s)", len(transactions), len(groups)
        )
        return transactions


__all__ = [
    "MONTHS",
    "VictoriabankHtmlParser",
    "build_timestamp",
    "parse_amount",
    "parse_month_year",
]
