"""
Graph module - Handles graph storage, schema and loading
"""

from .schema import Edge, EdgeRecord, GraphStats, PropertyType, Vertex, VertexRecord
from .store import GraphStore
from .loader import GraphLoader, load_graph

__all__ = [
    "Edge",
    "EdgeRecord",
    "GraphStats",
    "PropertyType",
    "Vertex",
    "VertexRecord",
    "GraphStore",
    "GraphLoader",
    "load_graph",
]
