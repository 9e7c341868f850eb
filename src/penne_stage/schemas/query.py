"""Typed description of a read against the hosted store."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

FilterOp = Literal["eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in"]


@dataclass(frozen=True)
class Filter:
    """A single column predicate."""

    column: str
    op: FilterOp
    value: Any

    def encode(self) -> str:
        """Render the predicate as a REST query-string value (``op.value``)."""
        if self.op == "in":
            values = ",".join(_quote_list_item(item) for item in self.value)
            return f"in.({values})"
        if self.value is None:
            # NULL only matches through the ``is`` operator.
            if self.op == "eq":
                return "is.null"
            if self.op == "neq":
                return "not.is.null"
            raise ValueError(f"Cannot compare {self.column} to null with {self.op!r}")
        return f"{self.op}.{_encode_scalar(self.value)}"


@dataclass(frozen=True)
class Order:
    """A sort key; ``descending`` defaults to False."""

    column: str
    descending: bool = False

    def encode(self) -> str:
        return f"{self.column}.{'desc' if self.descending else 'asc'}"


@dataclass(frozen=True)
class QuerySpec:
    """Relation name, projected columns, predicates, ordering and limit."""

    relation: str
    columns: Sequence[str] = ("*",)
    filters: Sequence[Filter] = field(default_factory=tuple)
    order: Sequence[Order] = field(default_factory=tuple)
    limit: int | None = None

    def where(self, column: str, op: FilterOp, value: Any) -> QuerySpec:
        """Return a copy with one more predicate."""
        return QuerySpec(
            relation=self.relation,
            columns=self.columns,
            filters=(*self.filters, Filter(column, op, value)),
            order=self.order,
            limit=self.limit,
        )

    def to_params(self) -> list[tuple[str, str]]:
        """Encode as ordered query-string pairs."""
        params: list[tuple[str, str]] = [("select", ",".join(self.columns))]
        params.extend((flt.column, flt.encode()) for flt in self.filters)
        if self.order:
            params.append(("order", ",".join(key.encode() for key in self.order)))
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        return params


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _quote_list_item(value: Any) -> str:
    text = _encode_scalar(value)
    # Items containing separators must be quoted inside in.(...) lists.
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text
