"""
Predicates and Tokens

P builds the comparison predicates accepted by has(), is_(), where() and
match patterns. Comparing values that cannot be ordered against each other
(a string against a number, say) is a mismatch, not an error: the predicate
simply does not hold.

Key is a property name that optionally carries a static value type.
Order, Column and T are the modulator tokens accepted by by().
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from ..graph.schema import Element, PropertyType


class P:
    """
    A predicate over a single value.

    Usage:
        P.gt(10).test(11)            # True
        P.between(1980, 1990)        # 1980 <= x < 1990
        P.within("Action", "Drama")
        P.gt(3).and_(P.lt(5))
    """

    def __init__(self, operator: str, value: Any, fn: Callable[[Any, Any], bool]):
        self.operator = operator
        self.value = value
        self._fn = fn

    def test(self, candidate: Any) -> bool:
        try:
            return bool(self._fn(candidate, self.value))
        except TypeError:
            return False

    def __call__(self, candidate: Any) -> bool:
        return self.test(candidate)

    def map_value(self, fn: Callable[[Any], Any]) -> "P":
        """Same predicate with its operand(s) passed through fn"""
        return P(self.operator, fn(self.value), self._fn)

    def operands(self) -> List[Any]:
        """Flat list of the literal operands"""
        return [self.value]

    def and_(self, other: "P") -> "P":
        return ConnectiveP("and", [self, other])

    def or_(self, other: "P") -> "P":
        return ConnectiveP("or", [self, other])

    def negate(self) -> "P":
        return ConnectiveP("not", [self])

    def __repr__(self):
        return f"{self.operator}({self.value!r})"

    # === Constructors ===

    @staticmethod
    def eq(value: Any) -> "P":
        return P("eq", value, lambda c, v: c == v)

    @staticmethod
    def neq(value: Any) -> "P":
        return P("neq", value, lambda c, v: c != v)

    @staticmethod
    def gt(value: Any) -> "P":
        return P("gt", value, lambda c, v: c > v)

    @staticmethod
    def gte(value: Any) -> "P":
        return P("gte", value, lambda c, v: c >= v)

    @staticmethod
    def lt(value: Any) -> "P":
        return P("lt", value, lambda c, v: c < v)

    @staticmethod
    def lte(value: Any) -> "P":
        return P("lte", value, lambda c, v: c <= v)

    @staticmethod
    def between(low: Any, high: Any) -> "P":
        """low inclusive, high exclusive"""
        return _RangeP("between", low, high, lambda c, lo, hi: lo <= c < hi)

    @staticmethod
    def inside(low: Any, high: Any) -> "P":
        """both bounds exclusive"""
        return _RangeP("inside", low, high, lambda c, lo, hi: lo < c < hi)

    @staticmethod
    def outside(low: Any, high: Any) -> "P":
        return _RangeP("outside", low, high, lambda c, lo, hi: c < lo or c > hi)

    @staticmethod
    def within(*values: Any) -> "P":
        return _CollectionP("within", values, lambda c, v: c in v)

    @staticmethod
    def without(*values: Any) -> "P":
        return _CollectionP("without", values, lambda c, v: c not in v)


class _RangeP(P):
    def __init__(self, operator, low, high, fn):
        super().__init__(operator, (low, high), lambda c, v: fn(c, v[0], v[1]))

    def map_value(self, fn):
        low, high = self.value
        return P(self.operator, (fn(low), fn(high)), self._fn)

    def operands(self):
        return list(self.value)

    def __repr__(self):
        return f"{self.operator}({self.value[0]!r}, {self.value[1]!r})"


class _CollectionP(P):
    def __init__(self, operator, values, fn):
        super().__init__(operator, tuple(_flatten(values)), fn)

    def map_value(self, fn):
        return P(self.operator, tuple(fn(value) for value in self.value), self._fn)

    def operands(self):
        return list(self.value)


class ConnectiveP(P):
    """and / or / not over other predicates"""

    def __init__(self, operator: str, predicates: List[P]):
        super().__init__(operator, None, None)
        self.predicates = predicates

    def test(self, candidate):
        if self.operator == "and":
            return all(p.test(candidate) for p in self.predicates)
        if self.operator == "or":
            return any(p.test(candidate) for p in self.predicates)
        return not self.predicates[0].test(candidate)

    def map_value(self, fn):
        return ConnectiveP(self.operator, [p.map_value(fn) for p in self.predicates])

    def operands(self):
        return [operand for p in self.predicates for operand in p.operands()]

    def __repr__(self):
        return f"{self.operator}({', '.join(map(repr, self.predicates))})"


def _flatten(values):
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset)):
            yield from value
        else:
            yield value


def as_predicate(value: Union[P, Any]) -> P:
    """Literal values compare by equality"""
    return value if isinstance(value, P) else P.eq(value)


@dataclass(frozen=True)
class Key:
    """
    Property name with an optional static value type.

    has(Key("stars", int), 5) only matches vertices whose "stars" holds an
    integer.
    """
    name: str
    kind: Optional[PropertyType] = None

    def __init__(self, name: str, kind: Optional[Union[PropertyType, type, str]] = None):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "kind", PropertyType.coerce(kind) if kind is not None else None)

    def read(self, element: Element) -> Any:
        """
        Raises:
            MissingPropertyError, PropertyTypeMismatchError
        """
        return element.value(self.name, self.kind)

    def __str__(self):
        return self.name


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Column(str, Enum):
    KEYS = "keys"
    VALUES = "values"


class T(str, Enum):
    ID = "id"
    LABEL = "label"
