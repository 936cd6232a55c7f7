"""
Query module - Bindings, predicates, steps and the fluent traversal API
"""

from .bindings import BindingEnvironment, Traverser
from .predicates import Column, Key, Order, P, T
from .traversal import GraphTraversalSource, Traversal, __

__all__ = [
    "BindingEnvironment",
    "Traverser",
    "Column",
    "Key",
    "Order",
    "P",
    "T",
    "GraphTraversalSource",
    "Traversal",
    "__",
]
