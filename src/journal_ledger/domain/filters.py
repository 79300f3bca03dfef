"""Filter roles for listing journal documents.

A filter role compares one document field against a value. Roles are
combined left to right, each joined to the running result by its own
condition (``and`` / ``or``); the first role's condition is ignored.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from journal_ledger.domain.journals import JournalDocument
from journal_ledger.exceptions import InvalidFilterRoleError


class FilterComparator(str, Enum):
    EQUALS = "equals"
    NOT_EQUAL = "not_equal"
    CONTAINS = "contains"
    NOT_CONTAIN = "not_contain"
    BIGGER = "bigger"
    BIGGER_OR_EQUALS = "bigger_or_equals"
    SMALLER = "smaller"
    SMALLER_OR_EQUALS = "smaller_or_equals"


class FilterCondition(str, Enum):
    AND = "and"
    OR = "or"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidFilterRoleError(["amount"], reason=f"not a number: {value}") from e
    if not amount.is_finite():
        raise InvalidFilterRoleError(["amount"], reason=f"not a number: {value}")
    return amount


def _date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise InvalidFilterRoleError(["date"], reason=f"not a date: {value}") from e


# field_key -> (document accessor, value coercion)
FILTERABLE_FIELDS: dict[str, tuple[Callable[[JournalDocument], Any], Callable[[Any], Any]]] = {
    "journal_number": (lambda d: d.journal_number, _text),
    "date": (lambda d: d.journal_date, _date),
    "description": (lambda d: d.description, _text),
    "reference": (lambda d: d.reference, _text),
    "amount": (lambda d: d.amount, _amount),
    "transaction_type": (lambda d: d.transaction_type.value, _text),
    "created_by": (lambda d: _text(d.created_by), _text),
}


@dataclass(frozen=True)
class FilterRole:
    field_key: str
    comparator: FilterComparator
    value: Any
    condition: FilterCondition = FilterCondition.AND

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterRole:
        try:
            comparator = FilterComparator(data.get("comparator", "equals"))
            condition = FilterCondition(str(data.get("condition", "and")).lower())
        except ValueError as e:
            raise InvalidFilterRoleError(
                [str(data.get("field_key", ""))], reason=str(e)
            ) from e
        return cls(
            field_key=str(data.get("field_key", "")),
            comparator=comparator,
            value=data.get("value"),
            condition=condition,
        )

    def matches(self, document: JournalDocument) -> bool:
        accessor, coerce = FILTERABLE_FIELDS[self.field_key]
        actual = accessor(document)
        expected = coerce(self.value)

        if self.comparator is FilterComparator.EQUALS:
            return actual == expected
        if self.comparator is FilterComparator.NOT_EQUAL:
            return actual != expected
        if self.comparator is FilterComparator.CONTAINS:
            return _text(expected).lower() in _text(actual).lower()
        if self.comparator is FilterComparator.NOT_CONTAIN:
            return _text(expected).lower() not in _text(actual).lower()
        if self.comparator is FilterComparator.BIGGER:
            return actual > expected
        if self.comparator is FilterComparator.BIGGER_OR_EQUALS:
            return actual >= expected
        if self.comparator is FilterComparator.SMALLER:
            return actual < expected
        return actual <= expected


def parse_filter_roles(raw: str | None) -> list[FilterRole]:
    """Parse filter roles from their JSON form, a list of role objects."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidFilterRoleError(
            ["stringified_filter_roles"], reason="not valid JSON"
        ) from e
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise InvalidFilterRoleError(
            ["stringified_filter_roles"], reason="expected a list of objects"
        )
    return [FilterRole.from_dict(role) for role in data]


def validate_filter_roles(roles: Iterable[FilterRole]) -> None:
    unknown = [role.field_key for role in roles if role.field_key not in FILTERABLE_FIELDS]
    if unknown:
        raise InvalidFilterRoleError(unknown)


def filter_documents(
    documents: Iterable[JournalDocument], roles: list[FilterRole]
) -> list[JournalDocument]:
    """Return the documents matching the roles, preserving input order."""
    validate_filter_roles(roles)
    if not roles:
        return list(documents)

    matched = []
    for document in documents:
        result = roles[0].matches(document)
        for role in roles[1:]:
            if role.condition is FilterCondition.OR:
                result = result or role.matches(document)
            else:
                result = result and role.matches(document)
        if result:
            matched.append(document)
    return matched
