"""
Step Library

Concrete pipeline steps. Per-element failures (a missing property, a type
mismatch, an aggregate over nothing) are recovered inside the step and the
affected traverser simply produces no output. Unbound labels are fatal and
propagate.
"""

import itertools
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterator, List, Optional, Sequence

from ..errors import (
    AggregationOnEmptyError,
    ElementAbsenceError,
    TraversalConstructionError,
    UnboundLabelError,
)
from ..graph.schema import Edge, Element, Vertex
from .bindings import EMPTY_BINDINGS, Traverser
from .pipeline import ExecutionContext, Pipeline, Step, split_labels
from .predicates import Column, Key, Order, P, T

logger = logging.getLogger(__name__)


# ==========================================
# MODULATORS
# ==========================================

Projection = Callable[[Traverser, ExecutionContext], Any]


def make_projection(modulator: Any) -> Projection:
    """
    Turn a by() modulator into a function of (traverser, ctx).

    None          -> the current object
    "name" / Key  -> property of the current element
    T.ID, T.LABEL -> id / label of the current element
    Column.KEYS   -> key of a (key, value) map entry
    Column.VALUES -> value of a (key, value) map entry
    traversal     -> first result of the traversal run from the traverser
    callable      -> fn(current object)

    The returned function raises ElementAbsenceError when there is nothing
    to project.
    """
    if modulator is None:
        return lambda t, ctx: t.obj
    if isinstance(modulator, Pipeline):
        return lambda t, ctx: modulator.first_result(ctx, t)
    if isinstance(modulator, Key):
        return lambda t, ctx: modulator.read(_require_element(t.obj))
    if isinstance(modulator, T):
        if modulator is T.ID:
            return lambda t, ctx: _require_element(t.obj).id
        return lambda t, ctx: _require_element(t.obj).label
    if isinstance(modulator, Column):
        index = 0 if modulator is Column.KEYS else 1
        return lambda t, ctx: _entry(t.obj)[index]
    if isinstance(modulator, str):
        return lambda t, ctx: _property_or_key(t.obj, modulator)
    if callable(modulator):
        return lambda t, ctx: modulator(t.obj)
    raise TraversalConstructionError(f"Unsupported modulator {modulator!r}")


def _require_element(obj: Any) -> Element:
    if not isinstance(obj, Element):
        raise ElementAbsenceError(f"{obj!r} is not a graph element")
    return obj


def _property_or_key(obj: Any, name: str) -> Any:
    """Property of an element, or the value under name in a map"""
    if isinstance(obj, Mapping):
        if name not in obj:
            raise ElementAbsenceError(f"map has no key '{name}'")
        return obj[name]
    return _require_element(obj).value(name)


def _entry(obj: Any):
    if isinstance(obj, tuple) and len(obj) == 2:
        return obj
    raise ElementAbsenceError(f"{obj!r} is not a map entry")


def sort_key(value: Any):
    """
    Total order over heterogeneous values.

    Numbers sort before strings, strings before elements; elements order by
    id. Values of the same kind use their natural order.
    """
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    if isinstance(value, Element):
        return (4, type(value).__name__, value.id)
    if isinstance(value, (list, tuple)):
        return (5, tuple(sort_key(item) for item in value))
    return (6, repr(value))


def hashable(value: Any) -> Any:
    """
    Stand-in for value usable as a dict key or set member.

    Hashable values come back unchanged. Lists and sets become tuples, maps
    become tuples of (key, value) pairs, anything else its repr().
    """
    try:
        hash(value)
        return value
    except TypeError:
        if isinstance(value, Mapping):
            return tuple((hashable(k), hashable(v)) for k, v in value.items())
        if isinstance(value, (list, set)):
            return tuple(hashable(item) for item in value)
        return repr(value)


def sort_traversers(traversers, comparators, ctx):
    """
    Stable multi-key sort.

    comparators: list of (projection, Order). Traversers whose key cannot
    be computed are dropped.
    """
    keyed = []
    for t in traversers:
        try:
            keys = [sort_key(projection(t, ctx)) for projection, _ in comparators]
        except ElementAbsenceError as e:
            logger.debug(f"order dropped {t.obj!r}: {e}")
            continue
        keyed.append((keys, t))

    # Least significant key first; each pass is stable
    for position in reversed(range(len(comparators))):
        direction = comparators[position][1]
        keyed.sort(key=lambda item: item[0][position], reverse=direction is Order.DESC)

    return [t for _, t in keyed]


# ==========================================
# BASE SHAPES
# ==========================================

class FilterStep(Step):
    """Keeps the traversers for which keep() holds"""

    def keep(self, t: Traverser, ctx: ExecutionContext) -> bool:
        raise NotImplementedError

    def process(self, traversers, ctx):
        for t in traversers:
            try:
                if self.keep(t, ctx):
                    yield t
            except ElementAbsenceError as e:
                logger.debug(f"{self!r} dropped {t.obj!r}: {e}")


class MapStep(Step):
    """Replaces each traverser's object with map()"""

    def map(self, t: Traverser, ctx: ExecutionContext) -> Any:
        raise NotImplementedError

    def process(self, traversers, ctx):
        for t in traversers:
            try:
                value = self.map(t, ctx)
            except ElementAbsenceError as e:
                logger.debug(f"{self!r} dropped {t.obj!r}: {e}")
                continue
            yield t.split(value)


class FlatMapStep(Step):
    """Replaces each traverser with zero or more traversers from flat_map()"""

    def flat_map(self, t: Traverser, ctx: ExecutionContext) -> Iterator[Any]:
        raise NotImplementedError

    def process(self, traversers, ctx):
        for t in traversers:
            try:
                for value in self.flat_map(t, ctx):
                    yield t.split(value)
            except ElementAbsenceError as e:
                logger.debug(f"{self!r} dropped {t.obj!r}: {e}")


class ReducingBarrierStep(Step):
    """Reduces the whole upstream to a single value"""

    reducing = True

    def reduce(self, values: List[Any]) -> Any:
        raise NotImplementedError

    def process(self, traversers, ctx):
        values = [t.obj for t in traversers]
        try:
            result = self.reduce(values)
        except AggregationOnEmptyError:
            return
        yield Traverser(result, EMPTY_BINDINGS)


# ==========================================
# SOURCES
# ==========================================

class GraphStep(Step):
    """
    V() / E(): every vertex or edge, or the given ids.

    When has_label()/has(label, key, value) directly follow, the label and an
    equality on a property are folded in here so the scan starts from the
    label or property index. The has steps themselves stay in the pipeline.
    """

    def __init__(self, kind: str, ids: Sequence[Any] = ()):
        self.kind = kind
        self.ids = tuple(ids)
        self.name = "V" if kind == "vertex" else "E"
        self.index_labels: Optional[List[str]] = None
        self.index_property = None

    def fold(self, step: "HasStep") -> bool:
        """Take the index hint from a following has step; True when it was used"""
        if self.ids or step.negated:
            return False
        if (step.key is T.LABEL and self.index_property is None
                and step.predicate is not None and step.predicate.operator in ("eq", "within")):
            labels = list(step.predicate.operands())
            if self.index_labels is None:
                self.index_labels = labels
            else:
                self.index_labels = [label for label in self.index_labels if label in labels]
            return True
        if (self.index_labels is not None and len(self.index_labels) == 1 and self.index_property is None
                and step.predicate is not None and step.predicate.operator == "eq" and isinstance(step.key, (str, Key))
                and isinstance(step.predicate.value, (str, int, float))):
            self.index_property = (str(step.key), step.predicate.value)
            return True
        return False

    def elements(self, ctx: ExecutionContext) -> Iterator[Element]:
        store = ctx.store
        vertices = self.kind == "vertex"
        if self.ids:
            return store.vertices(*self.ids) if vertices else store.edges(*self.ids)
        if self.index_labels is None:
            return store.vertices() if vertices else store.edges()
        if self.index_property is not None:
            name, value = self.index_property
            label = self.index_labels[0]
            if vertices:
                return store.vertices_by_property(label, name, value)
            return store.edges_by_property(label, name, value)
        by_label = store.vertices_by_label if vertices else store.edges_by_label
        return itertools.chain.from_iterable(by_label(label) for label in self.index_labels)

    def process(self, traversers, ctx):
        for t in traversers:
            for element in self.elements(ctx):
                yield t.split(element)

    def __repr__(self):
        hints = []
        if self.ids:
            hints.append(", ".join(map(repr, self.ids)))
        if self.index_labels is not None:
            hints.append(f"label={self.index_labels}")
        if self.index_property is not None:
            hints.append(f"{self.index_property[0]}={self.index_property[1]!r}")
        return f"{self.name}({'; '.join(hints)})"


class InjectStep(Step):
    """inject(): emit literal values"""

    name = "inject"
    may_emit_maps = True

    def __init__(self, values: Sequence[Any]):
        self.values = tuple(values)

    def process(self, traversers, ctx):
        for t in traversers:
            for value in self.values:
                yield t.split(value)


# ==========================================
# FILTERS
# ==========================================

class HasStep(FilterStep):
    """
    has() / has_label() / has_not().

    key is a property name, a typed Key, or T.LABEL / T.ID. With no
    predicate the step tests for existence, which always holds for the
    T tokens.
    """

    name = "has"

    def __init__(self, key: Any, predicate: Optional[P] = None, negated: bool = False):
        self.key = key
        self.predicate = predicate
        self.negated = negated

    def keep(self, t, ctx):
        obj = t.obj
        if not isinstance(obj, Element):
            return False
        return self._matches(obj) != self.negated

    def _matches(self, element: Element) -> bool:
        if isinstance(self.key, T) and self.predicate is None:
            # every element has an id and a label
            return True
        if self.key is T.LABEL:
            return self.predicate.test(element.label)
        if self.key is T.ID:
            return self.predicate.test(element.id)
        if isinstance(self.key, Key):
            try:
                value = self.key.read(element)
            except ElementAbsenceError:
                return False
        else:
            if self.key not in element.properties:
                return False
            value = element.properties[self.key]
        return self.predicate is None or self.predicate.test(value)

    def __repr__(self):
        key = self.key.value if isinstance(self.key, T) else str(self.key)
        name = "hasNot" if self.negated else "has"
        if self.predicate is None:
            return f"{name}({key})"
        return f"{name}({key}, {self.predicate!r})"


class IsStep(FilterStep):
    """is_(): compare the current value"""

    name = "is"

    def __init__(self, predicate: P):
        self.predicate = predicate

    def keep(self, t, ctx):
        return self.predicate.test(t.obj)

    def __repr__(self):
        return f"is({self.predicate!r})"


class WhereTraversalStep(FilterStep):
    """
    where(traversal): keep traversers for which the traversal yields something.

    A leading as_(x) whose label is bound starts the traversal from the
    element bound to x instead of the current object. A trailing as_(y) whose
    label is bound requires a result equal to the element bound to y.
    """

    name = "where"

    def __init__(self, child: Pipeline):
        self.child = child
        self.start_label, self.body, self.end_label = split_labels(child)
        # Leading as_() kept: it binds the current object when its label is free
        steps = child.steps
        self._unanchored = Pipeline(steps[:-1]) if self.end_label is not None else child

    def keep(self, t, ctx):
        bindings = t.bindings
        if self.start_label is not None and self.start_label in bindings:
            start = t.split(bindings.get(self.start_label))
            body = self.body
        else:
            start = t
            body = self._unanchored

        if self.end_label is not None and self.end_label in bindings:
            target = bindings.get(self.end_label)
            return any(result.obj == target for result in body.run_from(ctx, start))
        return body.has_results(ctx, start)

    def __repr__(self):
        return f"where({self.child!r})"


class WherePredicateStep(FilterStep):
    """
    where(P.neq("a")) / where("a", P.eq("b")).

    The predicate operands are labels, resolved against the bindings.
    """

    name = "where"

    def __init__(self, predicate: P, start_label: Optional[str] = None):
        self.predicate = predicate
        self.start_label = start_label

    def referenced_labels(self) -> List[str]:
        labels = [operand for operand in self.predicate.operands() if isinstance(operand, str)]
        if self.start_label is not None:
            labels.insert(0, self.start_label)
        return labels

    def keep(self, t, ctx):
        bindings = t.bindings
        subject = t.obj if self.start_label is None else bindings.get(self.start_label)
        resolved = self.predicate.map_value(bindings.get)
        return resolved.test(subject)

    def __repr__(self):
        if self.start_label is None:
            return f"where({self.predicate!r})"
        return f"where({self.start_label!r}, {self.predicate!r})"


class LambdaFilterStep(FilterStep):
    """filter_(fn or traversal)"""

    name = "filter"

    def __init__(self, function: Any):
        self.function = function

    def keep(self, t, ctx):
        if isinstance(self.function, Pipeline):
            return self.function.has_results(ctx, t)
        return bool(self.function(t.obj))


class DedupStep(Step):
    """dedup(): drop traversers whose (projected) object was already seen"""

    name = "dedup"

    def __init__(self):
        self.projection: Projection = make_projection(None)

    def modulate_by(self, modulator=None, *args):
        self.projection = make_projection(modulator)

    def process(self, traversers, ctx):
        seen = set()
        for t in traversers:
            try:
                key = hashable(self.projection(t, ctx))
            except ElementAbsenceError:
                continue
            if key in seen:
                continue
            seen.add(key)
            yield t


class RangeStep(Step):
    """limit(n) / skip(n) / range_(low, high): stops pulling once high is reached"""

    name = "range"

    def __init__(self, low: int, high: Optional[int]):
        if low < 0 or (high is not None and high < low):
            raise TraversalConstructionError(f"Invalid range [{low}, {high})")
        self.low = low
        self.high = high

    def process(self, traversers, ctx):
        if self.high is not None and self.high <= self.low:
            return iter(())
        return itertools.islice(traversers, self.low, self.high)

    def __repr__(self):
        return f"range({self.low}, {self.high})"


# ==========================================
# NAVIGATION
# ==========================================

class VertexStep(FlatMapStep):
    """out/in_/both (vertices) and out_e/in_e/both_e (edges)"""

    def __init__(self, direction: str, edge_labels: Sequence[str], returns: str):
        self.direction = direction
        self.edge_labels = tuple(edge_labels)
        self.returns = returns
        self.name = {"out": "out", "in": "in", "both": "both"}[direction]
        if returns == "edge":
            self.name += "E"

    def flat_map(self, t, ctx):
        vertex = t.obj
        if not isinstance(vertex, Vertex):
            return
        store = ctx.store
        if self.direction in ("out", "both"):
            for edge in store.out_edges(vertex.id, *self.edge_labels):
                yield edge if self.returns == "edge" else store.vertex(edge.in_id)
        if self.direction in ("in", "both"):
            for edge in store.in_edges(vertex.id, *self.edge_labels):
                yield edge if self.returns == "edge" else store.vertex(edge.out_id)

    def __repr__(self):
        return f"{self.name}({', '.join(self.edge_labels)})"


class EdgeVertexStep(FlatMapStep):
    """out_v / in_v / both_v"""

    def __init__(self, direction: str):
        self.direction = direction
        self.name = f"{direction}V"

    def flat_map(self, t, ctx):
        edge = t.obj
        if not isinstance(edge, Edge):
            return
        if self.direction in ("out", "both"):
            yield ctx.store.vertex(edge.out_id)
        if self.direction in ("in", "both"):
            yield ctx.store.vertex(edge.in_id)


# ==========================================
# PROJECTION
# ==========================================

class PropertiesStep(FlatMapStep):
    """values(*names): property values; absent properties produce nothing"""

    name = "values"

    def __init__(self, names: Sequence[Any]):
        self.names = tuple(names)

    def flat_map(self, t, ctx):
        element = t.obj
        if not isinstance(element, Element):
            return
        if not self.names:
            yield from element.properties.values()
            return
        for name in self.names:
            if isinstance(name, Key):
                try:
                    yield name.read(element)
                except ElementAbsenceError:
                    continue
            elif name in element.properties:
                yield element.properties[name]

    def __repr__(self):
        return f"values({', '.join(map(str, self.names))})"


class ValueMapStep(MapStep):
    """value_map(*names): dict of the element's properties"""

    name = "valueMap"
    may_emit_maps = True

    def __init__(self, names: Sequence[str]):
        self.names = tuple(names)

    def map(self, t, ctx):
        element = _require_element(t.obj)
        if not self.names:
            return dict(element.properties)
        return {name: element.properties[name] for name in self.names if name in element.properties}


class LabelStep(MapStep):
    name = "label"

    def map(self, t, ctx):
        return _require_element(t.obj).label


class IdStep(MapStep):
    name = "id"

    def map(self, t, ctx):
        return _require_element(t.obj).id


class ConstantStep(MapStep):
    name = "constant"
    may_emit_maps = True

    def __init__(self, value: Any):
        self.value = value

    def map(self, t, ctx):
        return self.value

    def __repr__(self):
        return f"constant({self.value!r})"


class IdentityStep(Step):
    name = "identity"

    def process(self, traversers, ctx):
        return traversers


class AsStep(Step):
    """as_(*labels): bind the labels to the current object"""

    name = "as"

    def __init__(self, labels: Sequence[str]):
        if not labels:
            raise TraversalConstructionError("as_() needs at least one label")
        self.labels = tuple(labels)

    def bound_labels(self):
        return list(self.labels)

    def process(self, traversers, ctx):
        for t in traversers:
            yield t.bind(self.labels)

    def __repr__(self):
        return f"as({', '.join(self.labels)})"


class SelectStep(MapStep):
    """
    select(*labels) with round-robin by() modulators.

    A label is read from the current object when it is a map holding that
    key, otherwise from the bindings. One label emits the bare value, several
    emit a dict.
    """

    name = "select"

    def __init__(self, labels: Sequence[str]):
        if not labels:
            raise TraversalConstructionError("select() needs at least one label")
        self.labels = tuple(labels)
        self.projections: List[Projection] = []
        self.may_emit_maps = len(self.labels) > 1

    def modulate_by(self, modulator=None, *args):
        self.projections.append(make_projection(modulator))

    def _lookup(self, t: Traverser, label: str):
        obj = t.obj
        if isinstance(obj, Mapping) and label in obj:
            return obj[label]
        if label in t.bindings:
            return t.bindings.get(label)
        raise UnboundLabelError(label)

    def map(self, t, ctx):
        selected = {}
        for i, label in enumerate(self.labels):
            value = self._lookup(t, label)
            if self.projections:
                projection = self.projections[i % len(self.projections)]
                value = projection(t.split(value), ctx)
            selected[label] = value
        if len(self.labels) == 1:
            return selected[self.labels[0]]
        return selected

    def __repr__(self):
        return f"select({', '.join(self.labels)})"


class ProjectStep(MapStep):
    """project(*keys) with round-robin by() modulators applied to the current object"""

    name = "project"
    may_emit_maps = True

    def __init__(self, keys: Sequence[str]):
        if not keys:
            raise TraversalConstructionError("project() needs at least one key")
        self.keys = tuple(keys)
        self.projections: List[Projection] = []

    def modulate_by(self, modulator=None, *args):
        self.projections.append(make_projection(modulator))

    def map(self, t, ctx):
        projections = self.projections or [make_projection(None)]
        return {
            key: projections[i % len(projections)](t, ctx)
            for i, key in enumerate(self.keys)
        }


class LambdaMapStep(MapStep):
    """map(fn or traversal)"""

    name = "map"
    may_emit_maps = True

    def __init__(self, function: Any):
        self.function = function

    def map(self, t, ctx):
        if isinstance(self.function, Pipeline):
            return self.function.first_result(ctx, t)
        return self.function(t.obj)


class LambdaFlatMapStep(FlatMapStep):
    """flat_map(fn or traversal)"""

    name = "flatMap"
    may_emit_maps = True

    def __init__(self, function: Any):
        self.function = function

    def flat_map(self, t, ctx):
        if isinstance(self.function, Pipeline):
            for result in self.function.run_from(ctx, t):
                yield result.obj
        else:
            yield from self.function(t.obj)


class SideEffectStep(Step):
    """side_effect(fn): call fn on each object and pass the traverser on"""

    name = "sideEffect"

    def __init__(self, function: Callable[[Any], Any]):
        self.function = function

    def process(self, traversers, ctx):
        for t in traversers:
            self.function(t.obj)
            yield t


class CoalesceStep(FlatMapStep):
    """coalesce(*traversals): output of the first traversal that produces anything"""

    name = "coalesce"
    may_emit_maps = True

    def __init__(self, branches: Sequence[Pipeline]):
        if not branches:
            raise TraversalConstructionError("coalesce() needs at least one traversal")
        self.branches = tuple(branches)

    def flat_map(self, t, ctx):
        for branch in self.branches:
            results = branch.run_from(ctx, t)
            first = next(results, None)
            if first is None:
                continue
            yield first.obj
            for result in results:
                yield result.obj
            return

    def __repr__(self):
        return f"coalesce({', '.join(map(repr, self.branches))})"


class UnfoldStep(FlatMapStep):
    """unfold(): lists to their items, maps to (key, value) entries"""

    name = "unfold"
    may_emit_maps = True

    def flat_map(self, t, ctx):
        obj = t.obj
        if isinstance(obj, Mapping):
            yield from obj.items()
        elif isinstance(obj, (list, tuple, set, frozenset)):
            yield from obj
        else:
            yield obj


# ==========================================
# AGGREGATION
# ==========================================

class FoldStep(ReducingBarrierStep):
    name = "fold"

    def reduce(self, values):
        return list(values)


class CountStep(ReducingBarrierStep):
    name = "count"

    def process(self, traversers, ctx):
        yield Traverser(sum(1 for _ in traversers), EMPTY_BINDINGS)


def _numbers(values):
    return [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]


class SumStep(ReducingBarrierStep):
    name = "sum"

    def reduce(self, values):
        return sum(_numbers(values))


class MeanStep(ReducingBarrierStep):
    name = "mean"

    def reduce(self, values):
        numbers = _numbers(values)
        if not numbers:
            raise AggregationOnEmptyError("mean() over no numbers")
        return sum(numbers) / len(numbers)


class MinStep(ReducingBarrierStep):
    name = "min"

    def reduce(self, values):
        if not values:
            raise AggregationOnEmptyError("min() over nothing")
        return min(values, key=sort_key)


class MaxStep(ReducingBarrierStep):
    name = "max"

    def reduce(self, values):
        if not values:
            raise AggregationOnEmptyError("max() over nothing")
        return max(values, key=sort_key)


class GroupCountStep(Step):
    """
    group_count().by(key): {key: number of traversers}

    Keys go through hashable(), so a list key shows up as a tuple.
    """

    name = "groupCount"
    may_emit_maps = True

    def __init__(self):
        self.key: Projection = make_projection(None)

    def modulate_by(self, modulator=None, *args):
        self.key = make_projection(modulator)

    def process(self, traversers, ctx):
        counts = {}
        for t in traversers:
            try:
                key = hashable(self.key(t, ctx))
            except ElementAbsenceError:
                continue
            counts[key] = counts.get(key, 0) + 1
        yield Traverser(counts, EMPTY_BINDINGS)


class GroupStep(Step):
    """
    group(key_fn).by(key).by(value): {key: bucket}.

    Without a value modulator the bucket is the list of grouped objects. A
    value traversal runs over the whole bucket; a reducing one (count, mean,
    fold...) gives a single value, any other gives the list of its results.
    A callable or property-name value modulator maps each grouped object.
    Keys go through hashable() as in group_count().
    """

    name = "group"
    may_emit_maps = True

    def __init__(self, key: Any = None):
        self.key: Projection = make_projection(key)
        self.value: Any = None
        self._modulated = 0 if key is None else 1

    def modulate_by(self, modulator=None, *args):
        if self._modulated == 0:
            self.key = make_projection(modulator)
        elif self._modulated == 1:
            self.value = modulator
        else:
            raise TraversalConstructionError("group() takes at most two by() modulators")
        self._modulated += 1

    def process(self, traversers, ctx):
        buckets = {}
        for t in traversers:
            try:
                key = hashable(self.key(t, ctx))
            except ElementAbsenceError:
                continue
            buckets.setdefault(key, []).append(t)

        grouped = {}
        for key, bucket in buckets.items():
            try:
                grouped[key] = self._reduce_bucket(bucket, ctx)
            except ElementAbsenceError:
                continue
        yield Traverser(grouped, EMPTY_BINDINGS)

    def _reduce_bucket(self, bucket: List[Traverser], ctx):
        if self.value is None:
            return [t.obj for t in bucket]
        if isinstance(self.value, Pipeline):
            results = [r.obj for r in self.value.execute(ctx, iter(bucket))]
            if self.value.is_reducing():
                if not results:
                    raise ElementAbsenceError("group value traversal produced nothing")
                return results[0]
            return results
        projection = make_projection(self.value)
        values = []
        for t in bucket:
            try:
                values.append(projection(t, ctx))
            except ElementAbsenceError:
                continue
        return values


# ==========================================
# ORDERING
# ==========================================

class _Ordered(Step):
    """Collects by(key, order) comparators"""

    def __init__(self):
        self.comparators = []

    def modulate_by(self, modulator=None, order=None, *args):
        if isinstance(modulator, Order) and order is None:
            modulator, order = None, modulator
        self.comparators.append((make_projection(modulator), order or Order.ASC))

    def _comparators(self):
        return self.comparators or [(make_projection(None), Order.ASC)]


class OrderStep(_Ordered):
    """order().by(...): stable sort of the whole upstream"""

    name = "order"

    def process(self, traversers, ctx):
        yield from sort_traversers(traversers, self._comparators(), ctx)


class OrderLocalStep(_Ordered, MapStep):
    """
    order_local().by(...): sort the entries of the current map or list.

    Map entries are (key, value) tuples, so by(Column.VALUES, Order.DESC)
    sorts a map by descending value. Other objects pass unchanged.
    """

    name = "orderLocal"
    may_emit_maps = True

    def map(self, t, ctx):
        obj = t.obj
        if isinstance(obj, Mapping):
            entries = [t.split(entry) for entry in obj.items()]
            return dict(e.obj for e in sort_traversers(entries, self._comparators(), ctx))
        if isinstance(obj, (list, tuple)):
            items = [t.split(item) for item in obj]
            return [i.obj for i in sort_traversers(items, self._comparators(), ctx)]
        return obj


class RangeLocalStep(MapStep):
    """limit_local(n): first n entries of the current map or list"""

    name = "rangeLocal"
    may_emit_maps = True

    def __init__(self, low: int, high: Optional[int]):
        if low < 0 or (high is not None and high < low):
            raise TraversalConstructionError(f"Invalid range [{low}, {high})")
        self.low = low
        self.high = high

    def map(self, t, ctx):
        obj = t.obj
        if isinstance(obj, Mapping):
            return dict(itertools.islice(obj.items(), self.low, self.high))
        if isinstance(obj, (list, tuple)):
            return list(itertools.islice(obj, self.low, self.high))
        return obj

    def __repr__(self):
        return f"rangeLocal({self.low}, {self.high})"
