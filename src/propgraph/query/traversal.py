"""
Graph Traversal

Fluent construction of traversal pipelines over a GraphStore.

Usage:
    g = store.traversal()

    # What is Die Hard's average rating?
    g.V().has("movie", "name", "Die Hard").in_e("rated").values("stars").mean().head()

    # Top 10 movies by mean rating
    (g.V().has_label("movie").as_("a", "b")
        .select("a", "b")
        .by("name")
        .by(__.coalesce(__.in_e("rated").values("stars"), __.constant(0)).mean())
        .order().by(__.select("b"), Order.DESC)
        .limit(10)
        .to_list())

Step methods append to the traversal and return it. Terminal methods
(to_list, head, ...) run it; every terminal call starts a fresh, lazy
execution.
"""

import itertools
import logging
from typing import Any, Iterator, List, Optional, Set

from ..errors import EmptyResultError, TraversalConstructionError, UnboundLabelError
from .bindings import Traverser
from .match import MatchStep
from .pipeline import ExecutionContext, Pipeline, Step
from .predicates import P, T, as_predicate
from .steps import (
    AsStep,
    CoalesceStep,
    ConstantStep,
    CountStep,
    DedupStep,
    EdgeVertexStep,
    FoldStep,
    GraphStep,
    GroupCountStep,
    GroupStep,
    HasStep,
    IdentityStep,
    IdStep,
    InjectStep,
    IsStep,
    LabelStep,
    LambdaFilterStep,
    LambdaFlatMapStep,
    LambdaMapStep,
    MaxStep,
    MeanStep,
    MinStep,
    OrderLocalStep,
    OrderStep,
    ProjectStep,
    PropertiesStep,
    RangeLocalStep,
    RangeStep,
    SelectStep,
    SideEffectStep,
    SumStep,
    UnfoldStep,
    ValueMapStep,
    VertexStep,
    WherePredicateStep,
    WhereTraversalStep,
)

logger = logging.getLogger(__name__)


class Traversal(Pipeline):
    """
    A traversal under construction.

    A traversal spawned from a GraphTraversalSource is a root traversal and
    can be executed. Anonymous traversals (built from __) are only used as
    arguments of other steps.
    """

    def __init__(self, source: Optional["GraphTraversalSource"] = None):
        super().__init__()
        self._source = source

    @property
    def is_root(self) -> bool:
        return self._source is not None

    def _add(self, step: Step) -> "Traversal":
        self._steps.append(step)
        return self

    # ==========================================
    # FILTERS
    # ==========================================

    def has_label(self, *labels: str) -> "Traversal":
        if not labels:
            raise TraversalConstructionError("has_label() needs at least one label")
        return self._add_has(HasStep(T.LABEL, P.within(*labels)))

    def has(self, *args) -> "Traversal":
        """
        has(key)                     property exists
        has(key, value_or_P)         property equals / satisfies
        has(label, key, value_or_P)  label and property
        has(T.ID, value_or_P)        id

        key may be a typed Key, restricting the comparison to its type.
        """
        if len(args) == 1:
            return self._add_has(HasStep(args[0]))
        if len(args) == 2:
            key, value = args
            return self._add_has(HasStep(key, as_predicate(value)))
        if len(args) == 3:
            label, key, value = args
            self._add_has(HasStep(T.LABEL, P.eq(label)))
            return self._add_has(HasStep(key, as_predicate(value)))
        raise TraversalConstructionError(f"has() takes 1 to 3 arguments, got {len(args)}")

    def has_not(self, key: Any) -> "Traversal":
        return self._add(HasStep(key, negated=True))

    def _add_has(self, step: HasStep) -> "Traversal":
        # Fold into the source while only has steps follow V()/E()
        source = self._foldable_source()
        if source is not None and source.fold(step):
            logger.debug(f"Folded {step!r} into {source!r}")
        return self._add(step)

    def _foldable_source(self) -> Optional[GraphStep]:
        for step in reversed(self._steps):
            if isinstance(step, GraphStep):
                return step
            if not isinstance(step, HasStep):
                return None
        return None

    def is_(self, value: Any) -> "Traversal":
        return self._add(IsStep(as_predicate(value)))

    def where(self, *args) -> "Traversal":
        """
        where(traversal)        traversal yields something
        where(P.neq("a"))       current object vs the element bound to "a"
        where("a", P.eq("b"))   element bound to "a" vs the one bound to "b"
        """
        if len(args) == 1 and isinstance(args[0], Pipeline):
            return self._add(WhereTraversalStep(args[0]))
        if len(args) == 1 and isinstance(args[0], P):
            step = WherePredicateStep(args[0])
        elif len(args) == 2 and isinstance(args[0], str) and isinstance(args[1], P):
            step = WherePredicateStep(args[1], start_label=args[0])
        else:
            raise TraversalConstructionError(f"Unsupported where() arguments {args!r}")
        for label in step.referenced_labels():
            self._check_bound(label)
        return self._add(step)

    def filter_(self, function: Any) -> "Traversal":
        return self._add(LambdaFilterStep(function))

    def dedup(self) -> "Traversal":
        return self._add(DedupStep())

    def limit(self, n: int) -> "Traversal":
        return self._add(RangeStep(0, n))

    def skip(self, n: int) -> "Traversal":
        return self._add(RangeStep(n, None))

    def range_(self, low: int, high: int) -> "Traversal":
        return self._add(RangeStep(low, high))

    # ==========================================
    # NAVIGATION
    # ==========================================

    def out(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("out", edge_labels, "vertex"))

    def in_(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("in", edge_labels, "vertex"))

    def both(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("both", edge_labels, "vertex"))

    def out_e(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("out", edge_labels, "edge"))

    def in_e(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("in", edge_labels, "edge"))

    def both_e(self, *edge_labels: str) -> "Traversal":
        return self._add(VertexStep("both", edge_labels, "edge"))

    def out_v(self) -> "Traversal":
        return self._add(EdgeVertexStep("out"))

    def in_v(self) -> "Traversal":
        return self._add(EdgeVertexStep("in"))

    def both_v(self) -> "Traversal":
        return self._add(EdgeVertexStep("both"))

    # ==========================================
    # PROJECTION
    # ==========================================

    def values(self, *names: Any) -> "Traversal":
        return self._add(PropertiesStep(names))

    def value_map(self, *names: str) -> "Traversal":
        return self._add(ValueMapStep(names))

    def label(self) -> "Traversal":
        return self._add(LabelStep())

    def id_(self) -> "Traversal":
        return self._add(IdStep())

    def constant(self, value: Any) -> "Traversal":
        return self._add(ConstantStep(value))

    def identity(self) -> "Traversal":
        return self._add(IdentityStep())

    def as_(self, *labels: str) -> "Traversal":
        return self._add(AsStep(labels))

    def select(self, *labels: str) -> "Traversal":
        for label in labels:
            self._check_bound(label)
        return self._add(SelectStep(labels))

    def project(self, *keys: str) -> "Traversal":
        return self._add(ProjectStep(keys))

    def map(self, function: Any) -> "Traversal":
        return self._add(LambdaMapStep(function))

    def flat_map(self, function: Any) -> "Traversal":
        return self._add(LambdaFlatMapStep(function))

    def side_effect(self, function: Any) -> "Traversal":
        return self._add(SideEffectStep(function))

    def coalesce(self, *traversals: Pipeline) -> "Traversal":
        return self._add(CoalesceStep(traversals))

    def unfold(self) -> "Traversal":
        return self._add(UnfoldStep())

    def match(self, *patterns: Pipeline) -> "Traversal":
        return self._add(MatchStep(patterns))

    # ==========================================
    # AGGREGATION
    # ==========================================

    def count(self) -> "Traversal":
        return self._add(CountStep())

    def sum_(self) -> "Traversal":
        return self._add(SumStep())

    def mean(self) -> "Traversal":
        return self._add(MeanStep())

    def min_(self) -> "Traversal":
        return self._add(MinStep())

    def max_(self) -> "Traversal":
        return self._add(MaxStep())

    def fold(self) -> "Traversal":
        return self._add(FoldStep())

    def group(self, key: Any = None) -> "Traversal":
        """group(key_fn): key_fn may be a callable, property name or traversal"""
        return self._add(GroupStep(key))

    def group_count(self) -> "Traversal":
        return self._add(GroupCountStep())

    def order(self) -> "Traversal":
        """Sort the whole traversal"""
        return self._add(OrderStep())

    def order_local(self) -> "Traversal":
        """Sort the entries of the current map or list"""
        return self._add(OrderLocalStep())

    def limit_local(self, n: int) -> "Traversal":
        """Keep the first n entries of the current map or list"""
        return self._add(RangeLocalStep(0, n))

    def by(self, *modulator) -> "Traversal":
        """Modulate the previous step (select, project, group, group_count, order, dedup)"""
        if not self._steps:
            raise TraversalConstructionError("by() must follow a step")
        self._steps[-1].modulate_by(*modulator)
        return self

    # ==========================================
    # LABEL CHECKS
    # ==========================================

    def _check_bound(self, label: str):
        """
        Fail fast on labels a root traversal can never have bound.

        Only provable cases are rejected: once a step may emit a map, select()
        may be reading map keys and the check is left to execution.
        """
        if not self.is_root:
            return
        bound: Set[str] = set()
        for step in self._steps:
            if step.may_emit_maps:
                return
            bound.update(step.bound_labels())
        if label not in bound:
            raise UnboundLabelError(label)

    # ==========================================
    # TERMINALS
    # ==========================================

    def traversers(self) -> Iterator[Traverser]:
        """Lazily execute and yield traversers"""
        if not self.is_root:
            raise TraversalConstructionError(
                "Anonymous traversals cannot be executed; spawn one from a GraphTraversalSource"
            )
        ctx = ExecutionContext(self._source.store)
        logger.debug(f"Executing {self.explain()}")
        return self.execute(ctx, iter((Traverser(None),)))

    def __iter__(self) -> Iterator[Any]:
        return (t.obj for t in self.traversers())

    def to_list(self) -> List[Any]:
        return list(self)

    def to_set(self) -> set:
        return set(self)

    def iterate(self) -> "Traversal":
        """Run for side effects only"""
        for _ in self.traversers():
            pass
        return self

    def head(self) -> Any:
        """
        First result.

        Raises:
            EmptyResultError: the traversal produced nothing
        """
        for obj in self:
            return obj
        raise EmptyResultError(f"Traversal {self.explain()} produced no result")

    def next(self, amount: Optional[int] = None) -> Any:
        """head(), or a list of up to amount results"""
        if amount is None:
            return self.head()
        return list(itertools.islice(self, amount))

    def head_option(self) -> Optional[Any]:
        """First result, or None when there is none"""
        for obj in self:
            return obj
        return None

    first = head_option

    def has_next(self) -> bool:
        for _ in self.traversers():
            return True
        return False

    def explain(self) -> str:
        """The step list as it will execute"""
        return " -> ".join(repr(step) for step in self._steps) or "<empty>"

    def __repr__(self):
        return f"Traversal[{self.explain()}]"


class GraphTraversalSource:
    """
    Spawns root traversals over a store.

    Usage:
        g = GraphTraversalSource(store)   # or store.traversal()
        g.V().has_label("genre").values("name").to_set()
    """

    def __init__(self, store):
        self.store = store

    def V(self, *ids: Any) -> Traversal:
        """Vertices: all, or by id / Vertex"""
        return Traversal(self)._add(GraphStep("vertex", ids))

    def E(self, *ids: Any) -> Traversal:
        """Edges: all, or by id / Edge"""
        return Traversal(self)._add(GraphStep("edge", ids))

    def inject(self, *values: Any) -> Traversal:
        """Start from literal values"""
        return Traversal(self)._add(InjectStep(values))


class _AnonymousTraversalFactory:
    """
    __.out("rated") is Traversal().out("rated").

    Every step method of Traversal is available as an attribute.
    """

    def __getattr__(self, name: str):
        if name.startswith("_") or not callable(getattr(Traversal, name, None)):
            raise AttributeError(name)

        def start(*args, **kwargs):
            return getattr(Traversal(), name)(*args, **kwargs)

        return start

    def start(self) -> Traversal:
        """An empty anonymous traversal"""
        return Traversal()


__ = _AnonymousTraversalFactory()
