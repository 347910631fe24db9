"""Boolean filter expressions for base views.

Filters are built as a small tree and rendered to the Bases expression
language (``Category == "Bug" && !(Status == "Done")``). Rendering is
deterministic: the same tree always yields the same string, and string
literals are escaped so names containing quotes or backslashes can never
break out of their literal.

The same tree can be evaluated against a plain record with ``matches``,
which is what the tests use to check that scoped views never overlap.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Union

_WIKILINK = re.compile(r"^\[\[([^\]|#]+)(?:#[^\]|]*)?(?:\|[^\]]*)?\]\]$")


@dataclass(frozen=True)
class Link:
    """A wiki-link literal, rendered as ``link("Target")``."""

    target: str


Literal = Union[str, bool, int, float, None, Link]


def format_literal(value: Literal) -> str:
    if isinstance(value, Link):
        return f"link({_quote(value.target)})"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return _quote(value)
    raise TypeError(f"Unsupported filter literal: {value!r}")


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _normalize(value: Any) -> Any:
    """Reduce links and ``[[wikilinks]]`` to their target so they compare equal."""
    if isinstance(value, Link):
        return value.target
    if isinstance(value, str):
        match = _WIKILINK.match(value.strip())
        if match:
            return match.group(1).strip()
    return value


class Filter:
    """Base class for filter nodes."""

    def to_expression(self) -> str:
        raise NotImplementedError

    def matches(self, record: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def literals(self) -> Iterator[Literal]:
        """Every literal value referenced anywhere in this filter."""
        return iter(())

    def __str__(self) -> str:
        return self.to_expression()


@dataclass(frozen=True)
class Eq(Filter):
    field: str
    value: Literal

    def to_expression(self) -> str:
        return f"{self.field} == {format_literal(self.value)}"

    def matches(self, record: Mapping[str, Any]) -> bool:
        return _normalize(record.get(self.field)) == _normalize(self.value)

    def literals(self) -> Iterator[Literal]:
        yield self.value


@dataclass(frozen=True)
class Contains(Filter):
    """List membership: ``Areas.contains(link("Health"))``."""

    field: str
    value: Literal

    def to_expression(self) -> str:
        return f"{self.field}.contains({format_literal(self.value)})"

    def matches(self, record: Mapping[str, Any]) -> bool:
        current = record.get(self.field)
        if current is None:
            return False
        if isinstance(current, (str, Link)):
            current = [current]
        wanted = _normalize(self.value)
        return any(_normalize(item) == wanted for item in current)

    def literals(self) -> Iterator[Literal]:
        yield self.value


@dataclass(frozen=True)
class IsEmpty(Filter):
    field: str

    def to_expression(self) -> str:
        return f"{self.field}.isEmpty()"

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = record.get(self.field)
        return value is None or value == "" or value == [] or value == ()


@dataclass(frozen=True)
class Not(Filter):
    operand: Filter

    def to_expression(self) -> str:
        if isinstance(self.operand, (IsEmpty, Contains)):
            return f"!{self.operand.to_expression()}"
        return f"!({self.operand.to_expression()})"

    def matches(self, record: Mapping[str, Any]) -> bool:
        return not self.operand.matches(record)

    def literals(self) -> Iterator[Literal]:
        yield from self.operand.literals()


@dataclass(frozen=True)
class And(Filter):
    operands: tuple[Filter, ...]

    def __init__(self, *operands: Filter):
        object.__setattr__(self, "operands", tuple(operands))

    def to_expression(self) -> str:
        if not self.operands:
            return "true"
        return " && ".join(_wrap(op, Or) for op in self.operands)

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(op.matches(record) for op in self.operands)

    def literals(self) -> Iterator[Literal]:
        for op in self.operands:
            yield from op.literals()


@dataclass(frozen=True)
class Or(Filter):
    operands: tuple[Filter, ...]

    def __init__(self, *operands: Filter):
        object.__setattr__(self, "operands", tuple(operands))

    def to_expression(self) -> str:
        if not self.operands:
            return "false"
        return " || ".join(_wrap(op, And) for op in self.operands)

    def matches(self, record: Mapping[str, Any]) -> bool:
        return any(op.matches(record) for op in self.operands)

    def literals(self) -> Iterator[Literal]:
        for op in self.operands:
            yield from op.literals()


@dataclass(frozen=True)
class Field:
    """A property reference; builds the predicates that test it."""

    reference: str

    def equals(self, value: Literal) -> Eq:
        return Eq(self.reference, value)

    def contains(self, value: Literal) -> Contains:
        return Contains(self.reference, value)

    def is_empty(self) -> IsEmpty:
        return IsEmpty(self.reference)

    def __str__(self) -> str:
        return self.reference


def _wrap(node: Filter, composite: type) -> str:
    text = node.to_expression()
    if isinstance(node, composite) and len(node.operands) > 1:
        return f"({text})"
    return text
