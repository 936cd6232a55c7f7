"""
Graph Store

In-memory property graph. Vertices and edges are kept in id-keyed arenas,
the adjacency lives in a NetworkX MultiDiGraph whose edge keys are edge ids,
and label / (label, property, value) indices are maintained on insert.

The store is populated once through bulk-load and is read-only afterwards.
"""

import itertools
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import networkx as nx

from ..config.settings import get_settings
from ..errors import DanglingReferenceError, DuplicateElementError
from .schema import Edge, Element, GraphStats, PropertyValue, Vertex, check_properties

logger = logging.getLogger(__name__)

IndexKey = Tuple[str, str, Any]


class GraphStore:
    """
    Owns every vertex and edge of one graph.

    Usage:
        store = GraphStore()
        die_hard = store.add_vertex("movie", {"name": "Die Hard", "year": 1988})
        alice = store.add_vertex("person", {"age": 34})
        store.add_edge("rated", alice, die_hard, {"stars": 5})

        g = store.traversal()
        g.V().has("movie", "name", "Die Hard").in_e("rated").values("stars").mean().head()
    """

    def __init__(self, property_index: Optional[bool] = None):
        """
        Initialize an empty store.

        Args:
            property_index: Maintain the (label, property, value) index
                (defaults to settings)
        """
        if property_index is None:
            property_index = get_settings().property_index_enabled
        self.property_index_enabled = property_index

        self.G = nx.MultiDiGraph()
        self._vertices: Dict[int, Vertex] = {}
        self._edges: Dict[int, Edge] = {}
        self._vertex_ids = itertools.count()
        self._edge_ids = itertools.count()

        self._vertices_by_label: Dict[str, List[Vertex]] = defaultdict(list)
        self._edges_by_label: Dict[str, List[Edge]] = defaultdict(list)
        self._vertex_property_index: Dict[IndexKey, List[Vertex]] = defaultdict(list)
        self._edge_property_index: Dict[IndexKey, List[Edge]] = defaultdict(list)

    # === Insertion ===

    def add_vertex(
        self,
        label: str,
        properties: Optional[Dict[str, PropertyValue]] = None,
        id: Optional[int] = None
    ) -> int:
        """
        Add a vertex.

        Args:
            label: Vertex label
            properties: Property name -> str/int/float value
            id: Explicit id (auto-assigned when omitted)

        Returns:
            The vertex id
        """
        props = check_properties(properties)

        if id is None:
            id = next(self._vertex_ids)
            while id in self._vertices:
                id = next(self._vertex_ids)
        elif id in self._vertices:
            raise DuplicateElementError(f"Vertex {id} already exists")

        vertex = Vertex(id=id, label=label, properties=props)
        self._vertices[id] = vertex
        self.G.add_node(id)

        self._vertices_by_label[label].append(vertex)
        if self.property_index_enabled:
            for name, value in props.items():
                self._vertex_property_index[(label, name, value)].append(vertex)

        return id

    def add_edge(
        self,
        label: str,
        out_id: Union[int, Vertex],
        in_id: Union[int, Vertex],
        properties: Optional[Dict[str, PropertyValue]] = None
    ) -> int:
        """
        Add a directed edge out_id -[label]-> in_id.

        Raises:
            DanglingReferenceError: an endpoint is not in the store
        """
        out_id = _element_id(out_id)
        in_id = _element_id(in_id)
        for endpoint in (out_id, in_id):
            if endpoint not in self._vertices:
                raise DanglingReferenceError(label, endpoint)

        props = check_properties(properties)
        id = next(self._edge_ids)

        edge = Edge(id=id, label=label, properties=props, out_id=out_id, in_id=in_id)
        self._edges[id] = edge
        self.G.add_edge(out_id, in_id, key=id, label=label)

        self._edges_by_label[label].append(edge)
        if self.property_index_enabled:
            for name, value in props.items():
                self._edge_property_index[(label, name, value)].append(edge)

        return id

    # === Lookup ===

    def vertex(self, vertex_id: int) -> Optional[Vertex]:
        """Get a vertex by id"""
        return self._vertices.get(vertex_id)

    def edge(self, edge_id: int) -> Optional[Edge]:
        """Get an edge by id"""
        return self._edges.get(edge_id)

    def vertices(self, *ids) -> Iterator[Vertex]:
        """All vertices in insertion order, or the given ones (unknown ids skipped)"""
        if not ids:
            return iter(self._vertices.values())
        return self._lookup(self._vertices, ids)

    def edges(self, *ids) -> Iterator[Edge]:
        """All edges in insertion order, or the given ones (unknown ids skipped)"""
        if not ids:
            return iter(self._edges.values())
        return self._lookup(self._edges, ids)

    def _lookup(self, arena: Dict[int, Element], ids: Iterable) -> Iterator[Element]:
        for element_id in ids:
            element = arena.get(_element_id(element_id))
            if element is not None:
                yield element

    def vertices_by_label(self, label: str) -> Iterator[Vertex]:
        """Vertices carrying a label; unknown labels yield nothing"""
        return iter(self._vertices_by_label.get(label, ()))

    def edges_by_label(self, label: str) -> Iterator[Edge]:
        """Edges carrying a label; unknown labels yield nothing"""
        return iter(self._edges_by_label.get(label, ()))

    def vertices_by_property(self, label: Optional[str], name: str, value: PropertyValue) -> Iterator[Vertex]:
        """Vertices whose property equals value (label=None searches every label)"""
        return self._by_property(
            self._vertex_property_index, self._vertices_by_label, label, name, value
        )

    def edges_by_property(self, label: Optional[str], name: str, value: PropertyValue) -> Iterator[Edge]:
        """Edges whose property equals value (label=None searches every label)"""
        return self._by_property(
            self._edge_property_index, self._edges_by_label, label, name, value
        )

    def _by_property(self, index, by_label, label, name, value):
        labels = [label] if label is not None else list(by_label)
        for current in labels:
            if self.property_index_enabled:
                yield from index.get((current, name, value), ())
                continue
            # No index: scan the label
            for element in by_label.get(current, ()):
                if name in element.properties and element.properties[name] == value:
                    yield element

    # === Adjacency ===

    def out_edges(self, vertex_id: Union[int, Vertex], *labels: str) -> Iterator[Edge]:
        """Outgoing edges of a vertex, optionally restricted to labels"""
        vertex_id = _element_id(vertex_id)
        if vertex_id not in self.G:
            return
        for _, _, key, label in self.G.out_edges(vertex_id, keys=True, data="label"):
            if not labels or label in labels:
                yield self._edges[key]

    def in_edges(self, vertex_id: Union[int, Vertex], *labels: str) -> Iterator[Edge]:
        """Incoming edges of a vertex, optionally restricted to labels"""
        vertex_id = _element_id(vertex_id)
        if vertex_id not in self.G:
            return
        for _, _, key, label in self.G.in_edges(vertex_id, keys=True, data="label"):
            if not labels or label in labels:
                yield self._edges[key]

    def both_edges(self, vertex_id: Union[int, Vertex], *labels: str) -> Iterator[Edge]:
        """Outgoing then incoming edges of a vertex"""
        yield from self.out_edges(vertex_id, *labels)
        yield from self.in_edges(vertex_id, *labels)

    # === Properties ===

    def property(self, element: Element, name: str) -> Optional[PropertyValue]:
        """Property value of an element, None when absent"""
        return element.property(name)

    # === Summary ===

    def vertex_count(self) -> int:
        return len(self._vertices)

    def edge_count(self) -> int:
        return len(self._edges)

    def stats(self) -> GraphStats:
        """Calculate graph statistics"""
        return GraphStats(
            total_vertices=self.vertex_count(),
            total_edges=self.edge_count(),
            vertices_by_label={k: len(v) for k, v in self._vertices_by_label.items()},
            edges_by_label={k: len(v) for k, v in self._edges_by_label.items()},
        )

    def traversal(self):
        """Traversal source bound to this store"""
        from ..query.traversal import GraphTraversalSource

        return GraphTraversalSource(self)

    def __repr__(self):
        return f"GraphStore[vertices:{self.vertex_count()} edges:{self.edge_count()}]"


def _element_id(element) -> int:
    return element.id if isinstance(element, Element) else element
