"""
Shared fixtures: a small hand-built MovieLens graph

movies      Die Hard (1988, Action), Aliens (1986, Action|Drama),
            Toy Story (1995, Comedy), Heat (1995, Action|Drama),
            Metropolis (1927, Drama, never rated)
persons     1 programmer 25, 2 programmer 35, 3 artist 45, 4 programmer 32

ratings     1: Die Hard 5, Aliens 4, Toy Story 5, Heat 2
            2: Die Hard 5, Toy Story 5, Heat 5
            3: Die Hard 3, Aliens 5, Toy Story 2
            4: Die Hard 5, Aliens 5
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from propgraph.graph.loader import load_graph
from propgraph.graph.schema import EdgeRecord, VertexRecord
from propgraph.graph.store import GraphStore


MOVIES = [
    ("Die Hard", 1988, ["Action"]),
    ("Aliens", 1986, ["Action", "Drama"]),
    ("Toy Story", 1995, ["Comedy"]),
    ("Heat", 1995, ["Action", "Drama"]),
    ("Metropolis", 1927, ["Drama"]),
]

PERSONS = [
    (1, "M", 25, "programmer"),
    (2, "F", 35, "programmer"),
    (3, "F", 45, "artist"),
    (4, "M", 32, "programmer"),
]

RATINGS = [
    (1, "Die Hard", 5), (1, "Aliens", 4), (1, "Toy Story", 5), (1, "Heat", 2),
    (2, "Die Hard", 5), (2, "Toy Story", 5), (2, "Heat", 5),
    (3, "Die Hard", 3), (3, "Aliens", 5), (3, "Toy Story", 2),
    (4, "Die Hard", 5), (4, "Aliens", 5),
]


def movie_records():
    """Vertex and edge records of the fixture graph, as a loader would hand them over"""
    records = []
    genres = []
    for name, year, movie_genres in MOVIES:
        records.append(VertexRecord(id=f"movie:{name}", label="movie", properties={"name": name, "year": year}))
        for genre in movie_genres:
            if genre not in genres:
                genres.append(genre)
                records.append({"kind": "vertex", "id": f"genre:{genre}", "label": "genre",
                                "properties": {"name": genre}})
            records.append(EdgeRecord(label="hasGenre", out_v=f"movie:{name}", in_v=f"genre:{genre}"))

    occupations = []
    for user_id, gender, age, occupation in PERSONS:
        if occupation not in occupations:
            occupations.append(occupation)
            records.append(VertexRecord(id=f"occupation:{occupation}", label="occupation",
                                        properties={"name": occupation}))
        records.append(VertexRecord(id=user_id, label="person",
                                    properties={"userId": user_id, "gender": gender, "age": age}))
        records.append({"kind": "edge", "label": "hasOccupation", "out_v": user_id,
                        "in_v": f"occupation:{occupation}"})

    for timestamp, (user_id, movie, stars) in enumerate(RATINGS):
        records.append(EdgeRecord(label="rated", out_v=user_id, in_v=f"movie:{movie}",
                                  properties={"stars": stars, "timestamp": 978300000 + timestamp}))
    return records


@pytest.fixture
def store() -> GraphStore:
    return load_graph(movie_records(), GraphStore(property_index=True))


@pytest.fixture
def g(store):
    return store.traversal()
