"""
propgraph - In-memory property graph with a lazy, composable traversal API
"""

from .graph import GraphLoader, GraphStore, PropertyType, load_graph
from .query import Column, GraphTraversalSource, Key, Order, P, T, Traversal, __

__version__ = "0.1.0"

__all__ = [
    "GraphLoader",
    "GraphStore",
    "PropertyType",
    "load_graph",
    "Column",
    "GraphTraversalSource",
    "Key",
    "Order",
    "P",
    "T",
    "Traversal",
    "__",
]
