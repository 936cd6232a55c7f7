"""
Graph Errors

Exception hierarchy for the graph store and the traversal engine.

- StructuralError: the graph being loaded is malformed. Fatal, aborts the load.
- UnboundLabelError: a traversal references a label nothing binds. Fatal.
- ElementAbsenceError: a property or element is missing while traversing.
  Recovered inside the step as "no output" and never reaches the caller.
- AggregationOnEmptyError: mean/min/max over nothing. Recovered as absence.
- EmptyResultError: the caller forced a value out of an empty result.
"""


class GraphError(Exception):
    """Base exception for all graph errors."""

    pass


# ==========================================
# LOAD TIME
# ==========================================

class StructuralError(GraphError):
    """The graph structure being loaded is invalid."""

    pass


class DanglingReferenceError(StructuralError):
    """An edge references a vertex that does not exist."""

    def __init__(self, edge_label: str, missing_id):
        super().__init__(
            f"Edge '{edge_label}' references missing vertex {missing_id!r}"
        )
        self.edge_label = edge_label
        self.missing_id = missing_id


class DuplicateElementError(StructuralError):
    """An element id was inserted twice."""

    pass


class InvalidPropertyError(StructuralError):
    """A property value is not a string, integer or double."""

    def __init__(self, name: str, value):
        super().__init__(
            f"Property '{name}' has unsupported type {type(value).__name__}"
        )
        self.name = name
        self.value = value


class InvalidRecordError(StructuralError):
    """A bulk-load record could not be decoded."""

    pass


# ==========================================
# CONSTRUCTION TIME
# ==========================================

class TraversalConstructionError(GraphError):
    """A traversal was assembled with invalid arguments."""

    pass


class UnboundLabelError(TraversalConstructionError):
    """A traversal references a label that was never bound."""

    def __init__(self, label: str):
        super().__init__(f"Label '{label}' is not bound in this traversal")
        self.label = label


# ==========================================
# EVALUATION TIME
# ==========================================

class ElementAbsenceError(GraphError):
    """Something a step needed is not there for this traverser."""

    pass


class MissingPropertyError(ElementAbsenceError):
    """The element has no property with the requested name."""

    def __init__(self, element, name: str):
        super().__init__(f"{element!r} has no property '{name}'")
        self.element = element
        self.name = name


class PropertyTypeMismatchError(ElementAbsenceError):
    """The property exists but holds a different value type."""

    def __init__(self, name: str, expected, actual):
        super().__init__(
            f"Property '{name}' is {actual}, expected {expected}"
        )
        self.name = name
        self.expected = expected
        self.actual = actual


class AggregationOnEmptyError(GraphError):
    """A reducing step saw no input."""

    pass


class EmptyResultError(GraphError):
    """A value was requested from a traversal that produced nothing."""

    pass


NoSuchElementError = EmptyResultError
