"""
Match Step

match(*patterns) finds every assignment of elements to labels that
satisfies all patterns at once.

Each pattern is an anonymous traversal of the form

    __.as_("a").<body>.as_("b")    a reaches b through body
    __.as_("a").<body>             body yields something from a

The patterns form a constraint graph over their labels. Solving walks that
graph depth-first: at every level it picks, among the patterns whose start
label is bound, the one that prunes most (patterns that only check come
before patterns that bind a new label), runs it, and backtracks when it
fails. Results of an extending pattern are de-duplicated, so the output is
the set of distinct satisfying assignments whatever order the patterns are
listed in.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import TraversalConstructionError, UnboundLabelError
from .bindings import Traverser
from .pipeline import ExecutionContext, Pipeline, Step, split_labels
from .steps import hashable

logger = logging.getLogger(__name__)


class MatchPattern:
    """One as_(start) ... [as_(end)] pattern"""

    def __init__(self, traversal: Pipeline):
        start, body, end = split_labels(traversal)
        if start is None:
            raise TraversalConstructionError(
                f"match() pattern {traversal!r} must start with as_()"
            )
        self.start = start
        self.body = body
        self.end = end
        self.traversal = traversal

    def labels(self) -> List[str]:
        return [self.start] if self.end is None else [self.start, self.end]

    def __repr__(self):
        return repr(self.traversal)


class MatchStep(Step):
    """
    Emits one traverser per satisfying assignment. Its object is a dict
    label -> element and the newly bound labels are appended to its bindings.
    """

    name = "match"
    may_emit_maps = True

    def __init__(self, patterns: Sequence[Pipeline]):
        if not patterns:
            raise TraversalConstructionError("match() needs at least one pattern")
        self.patterns = [MatchPattern(p) for p in patterns]

        labels = []
        for pattern in self.patterns:
            for label in pattern.labels():
                if label not in labels:
                    labels.append(label)
        self.labels = labels

        ends = {p.end for p in self.patterns if p.end is not None}
        self.roots = [label for label in labels
                      if label not in ends and any(p.start == label for p in self.patterns)]
        if not self.roots:
            self.roots = [self.patterns[0].start]
        logger.debug(f"match roots={self.roots} labels={self.labels}")

    def bound_labels(self):
        return list(self.labels)

    def process(self, traversers, ctx):
        for t in traversers:
            bound = t.bindings.as_dict()
            added: List[Tuple[str, Any]] = []

            # The incoming object binds to the first free root label
            for root in self.roots:
                if root not in bound:
                    bound[root] = t.obj
                    added.append((root, t.obj))
                    break

            for assignment in self._solve(ctx, t, bound, added, tuple(range(len(self.patterns)))):
                result = {label: bound_value for label, bound_value in _latest(t, assignment).items()
                          if label in self.labels}
                yield Traverser(result, t.bindings.extend(assignment))

    def _solve(
        self,
        ctx: ExecutionContext,
        t: Traverser,
        bound: Dict[str, Any],
        added: List[Tuple[str, Any]],
        remaining: Tuple[int, ...]
    ) -> Iterator[Tuple[Tuple[str, Any], ...]]:
        if not remaining:
            yield tuple(added)
            return

        index = self._choose(bound, remaining)
        pattern = self.patterns[index]
        rest = tuple(i for i in remaining if i != index)

        seed = Traverser(bound[pattern.start], t.bindings.extend(added))
        results = pattern.body.run_from(ctx, seed)

        if pattern.end is None:
            if next(results, None) is not None:
                yield from self._solve(ctx, t, bound, added, rest)
            return

        if pattern.end in bound:
            target = bound[pattern.end]
            if any(r.obj == target for r in results):
                yield from self._solve(ctx, t, bound, added, rest)
            return

        seen = set()
        for r in results:
            key = hashable(r.obj)
            if key in seen:
                continue
            seen.add(key)

            bound[pattern.end] = r.obj
            added.append((pattern.end, r.obj))
            yield from self._solve(ctx, t, bound, added, rest)
            added.pop()
            del bound[pattern.end]

    def _choose(self, bound: Dict[str, Any], remaining: Tuple[int, ...]) -> int:
        """Next pattern to evaluate: anchored checks first, then extensions"""
        best: Optional[Tuple[int, int]] = None
        for index in remaining:
            pattern = self.patterns[index]
            if pattern.start not in bound:
                continue
            rank = 0 if pattern.end is None or pattern.end in bound else 1
            if best is None or (rank, index) < best:
                best = (rank, index)
        if best is None:
            unresolved = self.patterns[remaining[0]].start
            raise UnboundLabelError(unresolved)
        return best[1]

    def __repr__(self):
        return f"match({', '.join(map(repr, self.patterns))})"


def _latest(t: Traverser, assignment) -> Dict[str, Any]:
    return t.bindings.extend(assignment).as_dict()
