"""
Graph Schema Definitions

Defines the elements stored in the property graph and the records used to
bulk-load it.

Vertices and edges live in flat arenas keyed by integer ids. An edge holds
the ids of its endpoints, never the vertex objects themselves.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

from ..errors import InvalidPropertyError, MissingPropertyError, PropertyTypeMismatchError


class PropertyType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"

    @classmethod
    def of(cls, value: Any) -> Optional["PropertyType"]:
        """Variant of a value, or None when it is not a property value."""
        # bool is an int subclass but not an allowed property value
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, int):
            return cls.INTEGER
        if isinstance(value, float):
            return cls.DOUBLE
        return None

    @classmethod
    def coerce(cls, kind: Union["PropertyType", type, str]) -> "PropertyType":
        if isinstance(kind, PropertyType):
            return kind
        if isinstance(kind, str):
            return cls(kind)
        for variant, python_type in _PYTHON_TYPES.items():
            if kind is python_type:
                return variant
        raise ValueError(f"No property type for {kind!r}")


_PYTHON_TYPES = {
    PropertyType.STRING: str,
    PropertyType.INTEGER: int,
    PropertyType.DOUBLE: float,
}


PropertyValue = Union[str, int, float]


def check_properties(properties: Optional[Dict[str, Any]]) -> Dict[str, PropertyValue]:
    """Copy a property mapping, rejecting values outside the closed variant."""
    checked = {}
    for name, value in (properties or {}).items():
        if PropertyType.of(value) is None:
            raise InvalidPropertyError(name, value)
        checked[str(name)] = value
    return checked


@dataclass(eq=False, repr=False)
class Element:
    """Common behaviour of vertices and edges."""
    id: int
    label: str
    properties: Dict[str, PropertyValue] = field(default_factory=dict)

    def property(self, name: str) -> Optional[PropertyValue]:
        """Property value, or None when absent"""
        return self.properties.get(name)

    def value(self, name: str, kind: Optional[Union[PropertyType, type]] = None) -> PropertyValue:
        """
        Property value that must exist.

        Args:
            name: Property name
            kind: When given, the value must hold this variant

        Raises:
            MissingPropertyError: property is absent
            PropertyTypeMismatchError: property holds another variant
        """
        if name not in self.properties:
            raise MissingPropertyError(self, name)
        value = self.properties[name]
        if kind is not None:
            expected = PropertyType.coerce(kind)
            actual = PropertyType.of(value)
            if actual is not expected:
                raise PropertyTypeMismatchError(name, expected.value, actual.value)
        return value

    def __eq__(self, other):
        return type(other) is type(self) and other.id == self.id

    def __hash__(self):
        return hash((type(self).__name__, self.id))


@dataclass(eq=False, repr=False)
class Vertex(Element):
    """A labeled vertex"""

    def __repr__(self):
        return f"v[{self.id}]"


@dataclass(eq=False, repr=False)
class Edge(Element):
    """
    A labeled, directed edge.

    Direction: out_id -[label]-> in_id
    """
    out_id: int = 0
    in_id: int = 0

    def other_id(self, vertex_id: int) -> int:
        """Id of the endpoint opposite to vertex_id"""
        return self.in_id if vertex_id == self.out_id else self.out_id

    def __repr__(self):
        return f"e[{self.id}][{self.out_id}-{self.label}->{self.in_id}]"


# ==========================================
# BULK-LOAD RECORDS
# ==========================================

RecordValue = Union[StrictInt, StrictFloat, StrictStr]
RecordId = Union[StrictInt, StrictStr]


class VertexRecord(BaseModel):
    """
    A decoded vertex, as handed over by an external loader.

    Example:
        id: "movie:2"
        label: "movie"
        properties: {"name": "Die Hard", "year": 1988}
    """
    kind: Literal["vertex"] = "vertex"
    id: RecordId = Field(..., description="Loader-side identifier, referenced by edge records")
    label: str = Field(..., description="Vertex label")
    properties: Dict[str, RecordValue] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "vertex",
                "id": "movie:2",
                "label": "movie",
                "properties": {"name": "Die Hard", "year": 1988}
            }
        }


class EdgeRecord(BaseModel):
    """
    A decoded edge between two vertex records.

    Direction: out_v -[label]-> in_v

    Example:
        label: "rated"
        out_v: "person:12"
        in_v: "movie:2"
        properties: {"stars": 5}
    """
    kind: Literal["edge"] = "edge"
    label: str = Field(..., description="Edge label")
    out_v: RecordId = Field(..., description="Record id of the tail vertex")
    in_v: RecordId = Field(..., description="Record id of the head vertex")
    properties: Dict[str, RecordValue] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "edge",
                "label": "rated",
                "out_v": "person:12",
                "in_v": "movie:2",
                "properties": {"stars": 5}
            }
        }


class GraphStats(BaseModel):
    """Statistics about the loaded graph"""
    total_vertices: int
    total_edges: int
    vertices_by_label: dict
    edges_by_label: dict
