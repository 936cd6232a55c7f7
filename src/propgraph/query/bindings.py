"""
Binding Environment

Label bindings ("as" labels) threaded through a traversal, and the
Traverser that carries them from step to step.

A BindingEnvironment is immutable: binding returns a new environment that
shares nothing mutable with the old one, so a traverser split into many
children never leaks bindings between siblings.
"""

from typing import Any, Iterator, List, Tuple

from ..errors import UnboundLabelError

_MISSING = object()


class BindingEnvironment:
    """
    Insertion-ordered label -> element bindings.

    Binding a label that is already bound keeps the earlier binding;
    lookups return the most recent one.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Tuple[Tuple[str, Any], ...] = ()):
        self._entries = tuple(entries)

    def bind(self, label: str, value: Any) -> "BindingEnvironment":
        """New environment with label bound to value"""
        return BindingEnvironment(self._entries + ((label, value),))

    def bind_all(self, labels, value: Any) -> "BindingEnvironment":
        """New environment with every label bound to value"""
        if not labels:
            return self
        return BindingEnvironment(self._entries + tuple((label, value) for label in labels))

    def extend(self, pairs) -> "BindingEnvironment":
        """New environment with (label, value) pairs appended in order"""
        pairs = tuple(pairs)
        if not pairs:
            return self
        return BindingEnvironment(self._entries + pairs)

    def get(self, label: str, default: Any = _MISSING) -> Any:
        """
        Latest value bound to label.

        Raises:
            UnboundLabelError: label is unbound and no default was given
        """
        for bound, value in reversed(self._entries):
            if bound == label:
                return value
        if default is _MISSING:
            raise UnboundLabelError(label)
        return default

    def get_all(self, label: str) -> List[Any]:
        """Every value bound to label, oldest first"""
        return [value for bound, value in self._entries if bound == label]

    def labels(self) -> List[str]:
        """Distinct labels in first-bound order"""
        return list(dict.fromkeys(bound for bound, _ in self._entries))

    def as_dict(self) -> dict:
        """label -> latest value, in first-bound order"""
        result = {}
        for bound, value in self._entries:
            result[bound] = value
        return result

    def __contains__(self, label) -> bool:
        return any(bound == label for bound, _ in self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels())

    def __len__(self) -> int:
        return len(self.labels())

    def __eq__(self, other) -> bool:
        return isinstance(other, BindingEnvironment) and other._entries == self._entries

    def __hash__(self):
        return hash(self._entries)

    def __repr__(self):
        inner = ", ".join(f"{label}={value!r}" for label, value in self._entries)
        return f"BindingEnvironment({inner})"


EMPTY_BINDINGS = BindingEnvironment()


class Traverser:
    """A current object plus the bindings accumulated on the way to it"""

    __slots__ = ("obj", "bindings")

    def __init__(self, obj: Any, bindings: BindingEnvironment = EMPTY_BINDINGS):
        self.obj = obj
        self.bindings = bindings

    def split(self, obj: Any) -> "Traverser":
        """Child traverser at obj with the same bindings"""
        return Traverser(obj, self.bindings)

    def bind(self, labels) -> "Traverser":
        """Same object, with labels bound to it"""
        return Traverser(self.obj, self.bindings.bind_all(labels, self.obj))

    def __repr__(self):
        return f"Traverser({self.obj!r}, {self.bindings!r})"
