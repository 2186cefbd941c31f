# src/durascope/storage/predicates.py
"""Structured table-query predicates.

A ``Predicate`` is a conjunction of ``Clause`` objects. It is built once by
the query layer and then either rendered to a parameterized OData filter
for the Azure Table service, or evaluated directly against an entity by
the in-memory store. Keeping the predicate structured (instead of
concatenating filter strings) means values are never spliced into the
filter text: the Azure SDK quotes and types ``@pN`` parameters itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

Operator = Literal["eq", "ne", "gt", "ge", "lt", "le"]

# Sorts after every UTF-16 code unit, which is how the table service
# compares string keys. prefix + PREFIX_SENTINEL is the exclusive upper
# bound of every key starting with prefix.
PREFIX_SENTINEL = "\uffff"


@dataclass(frozen=True, slots=True)
class Clause:
    """A single ``<property> <op> <value>`` comparison."""

    field: str
    op: Operator
    value: str | int | bool | datetime

    def matches(self, entity: Mapping[str, Any]) -> bool:
        """Evaluate against an entity. Missing properties never match."""
        actual = entity.get(self.field)
        if actual is None:
            return False
        try:
            if self.op == "eq":
                return bool(actual == self.value)
            if self.op == "ne":
                return bool(actual != self.value)
            if self.op == "gt":
                return bool(actual > self.value)
            if self.op == "ge":
                return bool(actual >= self.value)
            if self.op == "lt":
                return bool(actual < self.value)
            return bool(actual <= self.value)
        except TypeError:
            # Type mismatch (e.g. str vs datetime): the service treats it as no match
            return False


@dataclass(frozen=True, slots=True)
class Predicate:
    """Conjunction of clauses. An empty predicate matches everything."""

    clauses: tuple[Clause, ...] = ()

    @classmethod
    def all_of(cls, *clauses: Clause | None) -> Predicate:
        """Build a predicate from optional clauses; ``None`` contributes nothing."""
        return cls(tuple(c for c in clauses if c is not None))

    @classmethod
    def key_prefix(cls, prefix: str, field: str = "PartitionKey") -> Predicate:
        """Half-open key range ``[prefix, prefix + PREFIX_SENTINEL)``."""
        return cls(
            (
                Clause(field, "ge", prefix),
                Clause(field, "lt", prefix + PREFIX_SENTINEL),
            )
        )

    def __bool__(self) -> bool:
        return bool(self.clauses)

    def matches(self, entity: Mapping[str, Any]) -> bool:
        return all(clause.matches(entity) for clause in self.clauses)

    def to_odata(self) -> tuple[str, dict[str, Any]]:
        """Render as an OData filter with named parameters.

        Returns:
            (filter, parameters) for ``TableClient.query_entities``,
            e.g. ("RuntimeStatus eq @p0 and CreatedTime ge @p1", {...})
        """
        parts: list[str] = []
        parameters: dict[str, Any] = {}
        for index, clause in enumerate(self.clauses):
            name = f"p{index}"
            parts.append(f"{clause.field} {clause.op} @{name}")
            parameters[name] = clause.value
        return " and ".join(parts), parameters
