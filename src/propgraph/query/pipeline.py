"""
Traversal Pipeline

A pipeline is an ordered list of steps. Executing it chains the steps'
generators, so evaluation is lazy and pull-based: the consumer asks for one
traverser at a time and each step only pulls from its upstream what it
needs to produce its next output.
"""

from typing import Any, Iterator, List, Optional, Tuple

from ..errors import ElementAbsenceError, TraversalConstructionError

from .bindings import Traverser


class ExecutionContext:
    """What every step can see while a traversal runs"""

    __slots__ = ("store",)

    def __init__(self, store):
        self.store = store


class Step:
    """
    One stage of a pipeline.

    process() turns the upstream iterator of traversers into a new iterator.
    Steps hold no per-execution state outside process(), so a pipeline can be
    executed any number of times.
    """

    name = "step"
    # Reduces the upstream to a single value (count, mean, ...)
    reducing = False
    # Output may be a map, so select() can read keys out of it
    may_emit_maps = False

    def process(self, traversers: Iterator[Traverser], ctx: ExecutionContext) -> Iterator[Traverser]:
        raise NotImplementedError

    def modulate_by(self, *args):
        """Attach a by() modulator"""
        raise TraversalConstructionError(f"{self.name}() does not accept by()")

    def bound_labels(self) -> List[str]:
        """Labels this step binds on the traversers it emits"""
        return []

    def __repr__(self):
        return f"{self.name}()"


class Pipeline:
    """An executable, ordered list of steps"""

    def __init__(self, steps: Optional[List[Step]] = None):
        self._steps: List[Step] = list(steps or [])

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    def execute(self, ctx: ExecutionContext, starts: Iterator[Traverser]) -> Iterator[Traverser]:
        """Lazily run the steps over the start traversers"""
        stream = starts
        for step in self._steps:
            stream = step.process(stream, ctx)
        return stream

    def run_from(self, ctx: ExecutionContext, traverser: Traverser) -> Iterator[Traverser]:
        """Run as a child traversal seeded with one traverser"""
        return self.execute(ctx, iter((traverser,)))

    def first_result(self, ctx: ExecutionContext, traverser: Traverser) -> Any:
        """
        First object produced from traverser.

        Raises:
            ElementAbsenceError: the child produced nothing
        """
        for result in self.run_from(ctx, traverser):
            return result.obj
        raise ElementAbsenceError(f"{self!r} produced nothing for {traverser.obj!r}")

    def has_results(self, ctx: ExecutionContext, traverser: Traverser) -> bool:
        for _ in self.run_from(ctx, traverser):
            return True
        return False

    def is_reducing(self) -> bool:
        return bool(self._steps) and self._steps[-1].reducing

    def __len__(self):
        return len(self._steps)

    def __repr__(self):
        return "[" + ", ".join(repr(step) for step in self._steps) + "]"


def split_labels(pipeline: Pipeline) -> Tuple[Optional[str], Pipeline, Optional[str]]:
    """
    Split a pattern traversal into (start label, body, end label).

    __.as_("a").in_e("rated").as_("b") -> ("a", [in_e(rated)], "b")
    __.as_("a").has("year", 1988)      -> ("a", [has(year, eq(1988))], None)
    """
    from .steps import AsStep

    steps = pipeline.steps
    start = end = None

    if steps and isinstance(steps[0], AsStep):
        start = steps[0].labels[0]
        steps = steps[1:]
    if steps and isinstance(steps[-1], AsStep):
        end = steps[-1].labels[0]
        steps = steps[:-1]

    return start, Pipeline(steps), end
