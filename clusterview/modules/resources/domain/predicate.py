"""
Predicate Engine

Immutable boolean expression trees over resource property values. Every
predicate can evaluate itself against a resource and report the flat set of
property ids it references, which is how providers decide whether they are
needed to evaluate it.

Comparison semantics:
- An absent or null property never satisfies an ordering comparison.
- Values that both read as numbers (including numeric strings) are compared
  numerically; otherwise equality compares string forms.
- Ordering between a string and a number that does not parse as one raises
  PredicateEvaluationError.
"""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from clusterview.modules.resources.domain.resource import Resource, is_category_of
from clusterview.shared.core.exceptions import PredicateEvaluationError

_MISSING = object()


class ComparisonOperator(str, Enum):
    EQUALS = "="
    NOT_EQUALS = "!="
    LESS = "<"
    LESS_EQUALS = "<="
    GREATER = ">"
    GREATER_EQUALS = ">="


_ORDERING: dict[ComparisonOperator, Callable[[Any, Any], bool]] = {
    ComparisonOperator.LESS: operator.lt,
    ComparisonOperator.LESS_EQUALS: operator.le,
    ComparisonOperator.GREATER: operator.gt,
    ComparisonOperator.GREATER_EQUALS: operator.ge,
}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class Predicate(ABC):
    """Base class for all predicates."""

    @property
    @abstractmethod
    def property_ids(self) -> frozenset[str]:
        """Flat set of property ids referenced anywhere in the tree."""

    @abstractmethod
    def evaluate(self, resource: Resource) -> bool:
        """Evaluate against a resource."""

    @abstractmethod
    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        """
        Weakest part of this predicate that only references ``property_ids``.

        Any resource matching ``self`` also matches the returned predicate, so
        a backend may prune with it. None means no pruning is possible.
        """

    def __and__(self, other: Predicate) -> Predicate:
        return AndPredicate((self, other))

    def __or__(self, other: Predicate) -> Predicate:
        return OrPredicate((self, other))

    def __invert__(self) -> Predicate:
        return NotPredicate(self)


@dataclass(frozen=True)
class ComparisonPredicate(Predicate):
    property_id: str
    value: Any
    op: ComparisonOperator = ComparisonOperator.EQUALS

    @property
    def property_ids(self) -> frozenset[str]:
        return frozenset({self.property_id})

    def evaluate(self, resource: Resource) -> bool:
        actual = resource.get_property(self.property_id, _MISSING)
        if self.op is ComparisonOperator.EQUALS:
            return self._equals(actual)
        if self.op is ComparisonOperator.NOT_EQUALS:
            return not self._equals(actual)
        if actual is _MISSING or actual is None or self.value is None:
            return False
        return self._order(actual)

    def _equals(self, actual: Any) -> bool:
        if actual is _MISSING:
            return False
        if actual is None or self.value is None:
            return actual is None and self.value is None
        left, right = _as_number(actual), _as_number(self.value)
        if left is not None and right is not None:
            return left == right
        return str(actual) == str(self.value)

    def _order(self, actual: Any) -> bool:
        compare = _ORDERING[self.op]
        left, right = _as_number(actual), _as_number(self.value)
        if left is not None and right is not None:
            return compare(left, right)
        if isinstance(actual, str) and isinstance(self.value, str):
            return compare(actual, self.value)
        raise PredicateEvaluationError(
            f"Cannot compare {self.property_id}={actual!r} {self.op.value} {self.value!r}",
            details={
                "property_id": self.property_id,
                "operator": self.op.value,
                "actual_type": type(actual).__name__,
                "expected_type": type(self.value).__name__,
            },
        )

    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        return self if self.property_id in set(property_ids) else None

    def __str__(self) -> str:
        return f"{self.property_id}{self.op.value}{self.value}"


def EqualsPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.EQUALS)


def NotEqualsPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.NOT_EQUALS)


def LessPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.LESS)


def LessEqualsPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.LESS_EQUALS)


def GreaterPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.GREATER)


def GreaterEqualsPredicate(property_id: str, value: Any) -> ComparisonPredicate:
    return ComparisonPredicate(property_id, value, ComparisonOperator.GREATER_EQUALS)


@dataclass(frozen=True)
class CategoryIsEmptyPredicate(Predicate):
    """True when the resource carries no property under ``category``."""

    category: str

    @property
    def property_ids(self) -> frozenset[str]:
        return frozenset({self.category})

    def evaluate(self, resource: Resource) -> bool:
        return not any(is_category_of(self.category, pid) for pid in resource)

    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        return self if self.category in set(property_ids) else None

    def __str__(self) -> str:
        return f"isEmpty({self.category})"


@dataclass(frozen=True)
class _ArrayPredicate(Predicate):
    predicates: tuple[Predicate, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Flatten nested predicates of the same kind: (a & b) & c -> &(a, b, c)
        flattened: list[Predicate] = []
        for child in self.predicates:
            if type(child) is type(self):
                flattened.extend(child.predicates)  # type: ignore[attr-defined]
            else:
                flattened.append(child)
        object.__setattr__(self, "predicates", tuple(flattened))

    @property
    def property_ids(self) -> frozenset[str]:
        ids: set[str] = set()
        for child in self.predicates:
            ids.update(child.property_ids)
        return frozenset(ids)


@dataclass(frozen=True)
class AndPredicate(_ArrayPredicate):
    def evaluate(self, resource: Resource) -> bool:
        return all(child.evaluate(resource) for child in self.predicates)

    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        owned = set(property_ids)
        kept = [r for r in (child.restrict_to(owned) for child in self.predicates) if r is not None]
        if not kept:
            return None
        if len(kept) == 1:
            return kept[0]
        return AndPredicate(tuple(kept))

    def __str__(self) -> str:
        return "(" + " AND ".join(str(p) for p in self.predicates) + ")"


@dataclass(frozen=True)
class OrPredicate(_ArrayPredicate):
    def evaluate(self, resource: Resource) -> bool:
        return any(child.evaluate(resource) for child in self.predicates)

    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        # Dropping a disjunct would exclude resources it alone matches.
        owned = set(property_ids)
        restricted = [child.restrict_to(owned) for child in self.predicates]
        if any(r is None for r in restricted):
            return None
        return OrPredicate(tuple(r for r in restricted if r is not None))

    def __str__(self) -> str:
        return "(" + " OR ".join(str(p) for p in self.predicates) + ")"


@dataclass(frozen=True)
class NotPredicate(Predicate):
    predicate: Predicate

    @property
    def property_ids(self) -> frozenset[str]:
        return self.predicate.property_ids

    def evaluate(self, resource: Resource) -> bool:
        return not self.predicate.evaluate(resource)

    def restrict_to(self, property_ids: Iterable[str]) -> Optional[Predicate]:
        # Negating a weakened predicate would strengthen it, so only whole subtrees qualify.
        return self if self.property_ids <= set(property_ids) else None

    def __str__(self) -> str:
        return f"NOT {self.predicate}"


class PredicateBuilder:
    """
    Fluent construction of predicate trees.

    AND binds tighter than OR; ``begin()``/``end()`` open and close a group::

        PredicateBuilder().property("Hosts/host_name").equals("h1").or_() \\
            .begin().property("Hosts/cpu_count").greater_than(4) \\
            .and_().not_().property("Hosts/os_type").equals("windows").end() \\
            .to_predicate()
    """

    def __init__(self, outer: Optional["PredicateBuilder"] = None):
        self._outer = outer
        self._disjuncts: list[list[Predicate]] = [[]]
        self._property_id: Optional[str] = None
        self._negate = False
        self._expect_operand = True

    def property(self, property_id: str) -> "PredicateBuilder":
        self._require_operand()
        self._property_id = property_id
        return self

    def equals(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.EQUALS, value)

    def not_equals(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.NOT_EQUALS, value)

    def less_than(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.LESS, value)

    def less_than_equal_to(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.LESS_EQUALS, value)

    def greater_than(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.GREATER, value)

    def greater_than_equal_to(self, value: Any) -> "PredicateBuilder":
        return self._add_comparison(ComparisonOperator.GREATER_EQUALS, value)

    def is_empty(self) -> "PredicateBuilder":
        if self._property_id is None:
            raise ValueError("property() must be called before is_empty()")
        predicate = CategoryIsEmptyPredicate(self._property_id)
        self._property_id = None
        return self._add(predicate)

    def and_(self) -> "PredicateBuilder":
        self._require_term()
        self._expect_operand = True
        return self

    def or_(self) -> "PredicateBuilder":
        self._require_term()
        self._disjuncts.append([])
        self._expect_operand = True
        return self

    def not_(self) -> "PredicateBuilder":
        self._require_operand()
        self._negate = not self._negate
        return self

    def begin(self) -> "PredicateBuilder":
        self._require_operand()
        return PredicateBuilder(outer=self)

    def end(self) -> "PredicateBuilder":
        if self._outer is None:
            raise ValueError("end() called without a matching begin()")
        return self._outer._add(self._build())

    def to_predicate(self) -> Predicate:
        if self._outer is not None:
            raise ValueError("begin() without a matching end()")
        return self._build()

    def _add_comparison(self, op: ComparisonOperator, value: Any) -> "PredicateBuilder":
        if self._property_id is None:
            raise ValueError("property() must be called before a comparison")
        predicate = ComparisonPredicate(self._property_id, value, op)
        self._property_id = None
        return self._add(predicate)

    def _add(self, predicate: Predicate) -> "PredicateBuilder":
        self._require_operand()
        if self._negate:
            predicate = NotPredicate(predicate)
            self._negate = False
        self._disjuncts[-1].append(predicate)
        self._expect_operand = False
        return self

    def _require_operand(self) -> None:
        if not self._expect_operand:
            raise ValueError("expected and_() or or_() between predicates")

    def _require_term(self) -> None:
        if self._expect_operand:
            raise ValueError("operator used without a preceding predicate")

    def _build(self) -> Predicate:
        if self._expect_operand or self._property_id is not None:
            raise ValueError("incomplete predicate expression")
        terms: list[Predicate] = [
            conjuncts[0] if len(conjuncts) == 1 else AndPredicate(tuple(conjuncts))
            for conjuncts in self._disjuncts
        ]
        return terms[0] if len(terms) == 1 else OrPredicate(tuple(terms))
