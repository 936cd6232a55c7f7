"""
Graph Loader

Bulk-loads a GraphStore.

- load_graph: any already-decoded sequence of vertex and edge records
- GraphLoader.load_movielens: the MovieLens 1M dump
    movies.dat  -> movie + genre vertices, hasGenre edges
    users.dat   -> person + occupation vertices, hasOccupation edges
    ratings.dat -> rated edges
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import pandas as pd
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..config.settings import OCCUPATIONS, Settings, get_settings
from ..errors import DanglingReferenceError, DuplicateElementError, InvalidRecordError
from .schema import EdgeRecord, VertexRecord
from .store import GraphStore

logger = logging.getLogger(__name__)

console = Console()

Record = Union[VertexRecord, EdgeRecord, Dict[str, Any]]

_TITLE_YEAR = re.compile(r"^(.*)\s+\((\d{4})\)\s*$")


def load_graph(records: Iterable[Record], store: Optional[GraphStore] = None) -> GraphStore:
    """
    Load vertex and edge records into a store.

    Vertices are inserted before edges, so records may come in any order.
    Edge endpoints reference vertex record ids.

    Args:
        records: VertexRecord / EdgeRecord models, or dicts with a "kind" key
        store: Store to fill (a new one by default)

    Returns:
        The populated store

    Raises:
        InvalidRecordError: a record could not be decoded
        DuplicateElementError: two vertex records share an id
        DanglingReferenceError: an edge references an unknown vertex record
    """
    store = store if store is not None else GraphStore()
    ids: Dict[Any, int] = {}
    pending = []

    for raw in records:
        record = _decode(raw)
        if isinstance(record, VertexRecord):
            if record.id in ids:
                raise DuplicateElementError(f"Vertex record {record.id!r} appears twice")
            ids[record.id] = store.add_vertex(record.label, record.properties)
        else:
            pending.append(record)

    for record in pending:
        store.add_edge(
            record.label,
            _resolve(ids, record, record.out_v),
            _resolve(ids, record, record.in_v),
            record.properties,
        )

    logger.info(f"Loaded graph: {store.vertex_count()} vertices, {store.edge_count()} edges")
    return store


def _decode(raw: Record) -> Union[VertexRecord, EdgeRecord]:
    if isinstance(raw, (VertexRecord, EdgeRecord)):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        raise InvalidRecordError(f"Cannot decode record of type {type(raw).__name__}")

    kind = raw.get("kind")
    try:
        if kind == "vertex":
            return VertexRecord.model_validate(raw)
        if kind == "edge":
            return EdgeRecord.model_validate(raw)
    except ValidationError as e:
        raise InvalidRecordError(f"Invalid {kind} record: {e}") from e
    raise InvalidRecordError(f"Unknown record kind {kind!r}")


def _resolve(ids: Dict[Any, int], record: EdgeRecord, record_id) -> int:
    try:
        return ids[record_id]
    except KeyError:
        raise DanglingReferenceError(record.label, record_id) from None


class GraphLoader:
    """
    Loads the MovieLens graph from the raw ML-1M files.

    Usage:
        store = GraphLoader().load_movielens("data/ml-1m")
        g = store.traversal()
    """

    def __init__(self, settings: Optional[Settings] = None, store: Optional[GraphStore] = None):
        """
        Initialize the loader.

        Args:
            settings: Settings (defaults to get_settings())
            store: Store to fill (a new one by default)
        """
        self.settings = settings or get_settings()
        self.store = store if store is not None else GraphStore(
            property_index=self.settings.property_index_enabled
        )
        self._ids: Dict[str, int] = {}

    def load_movielens(self, directory: Optional[Union[str, Path]] = None) -> GraphStore:
        """
        Load the graph from a MovieLens 1M directory.

        Args:
            directory: Folder with movies.dat, users.dat, ratings.dat
                (defaults to settings.movielens_dir)

        Returns:
            The populated store
        """
        directory = Path(directory or self.settings.movielens_dir)
        logger.info(f"Loading MovieLens graph from {directory}")

        movies = _read_dat(directory / "movies.dat", ["movie_id", "title", "genres"])
        users = _read_dat(directory / "users.dat", ["user_id", "gender", "age", "occupation", "zipcode"],
                          dtype={"zipcode": str})
        ratings = _read_dat(directory / "ratings.dat", ["user_id", "movie_id", "rating", "timestamp"])

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            disable=not self.settings.show_progress
        ) as progress:
            task1 = progress.add_task("Loading movie and genre vertices from movies.dat...", total=None)
            movie_count = self._load_movies(movies)
            progress.update(task1, completed=True, description=f"✓ Loaded {movie_count} movie vertices")

            task2 = progress.add_task("Loading person and occupation vertices from users.dat...", total=None)
            person_count = self._load_users(users)
            progress.update(task2, completed=True, description=f"✓ Loaded {person_count} person vertices")

            task3 = progress.add_task("Loading rated edges from ratings.dat...", total=None)
            rating_count = self._load_ratings(ratings)
            progress.update(task3, completed=True, description=f"✓ Loaded {rating_count} rated edges")

        if self.settings.show_progress:
            self._print_stats()

        logger.info(f"Loaded MovieLens graph: {self.store!r}")
        return self.store

    def _vertex(self, key: str, label: str, properties: dict) -> int:
        """Get or create the vertex behind a loader key"""
        if key not in self._ids:
            self._ids[key] = self.store.add_vertex(label, properties)
        return self._ids[key]

    def _load_movies(self, df: pd.DataFrame) -> int:
        """Load movie vertices, genre vertices and hasGenre edges"""
        count = 0

        for row in df.itertuples(index=False):
            name, year = parse_title(str(row.title))
            properties = {"name": name}
            if year is not None:
                properties["year"] = year

            movie_key = f"movie:{int(row.movie_id)}"
            if movie_key in self._ids:
                raise DuplicateElementError(f"Movie {row.movie_id} appears twice")
            movie = self._vertex(movie_key, "movie", properties)
            count += 1

            genres = str(row.genres) if pd.notna(row.genres) else ""
            for genre in filter(None, genres.split("|")):
                genre_vertex = self._vertex(f"genre:{genre}", "genre", {"name": genre})
                self.store.add_edge("hasGenre", movie, genre_vertex)

        return count

    def _load_users(self, df: pd.DataFrame) -> int:
        """Load person vertices, occupation vertices and hasOccupation edges"""
        count = 0

        for row in df.itertuples(index=False):
            person = self._vertex(f"person:{int(row.user_id)}", "person", {
                "userId": int(row.user_id),
                "gender": str(row.gender),
                "age": int(row.age),
                "zipcode": str(row.zipcode),
            })
            count += 1

            code = int(row.occupation)
            name = OCCUPATIONS.get(code, "other")
            occupation = self._vertex(f"occupation:{code}", "occupation", {"name": name})
            self.store.add_edge("hasOccupation", person, occupation)

        return count

    def _load_ratings(self, df: pd.DataFrame) -> int:
        """Load rated edges (person -rated-> movie)"""
        count = 0

        for row in df.itertuples(index=False):
            person_key = f"person:{int(row.user_id)}"
            movie_key = f"movie:{int(row.movie_id)}"
            if person_key not in self._ids:
                raise DanglingReferenceError("rated", person_key)
            if movie_key not in self._ids:
                raise DanglingReferenceError("rated", movie_key)

            self.store.add_edge("rated", self._ids[person_key], self._ids[movie_key], {
                "stars": int(row.rating),
                "timestamp": int(row.timestamp),
            })
            count += 1

        return count

    def _print_stats(self):
        """Print graph statistics"""
        stats = self.store.stats()
        console.print("\n[bold green]Graph Loaded Successfully![/]\n")
        console.print(f"  Total Vertices: [cyan]{stats.total_vertices}[/]")
        console.print(f"  Total Edges: [cyan]{stats.total_edges}[/]")
        console.print("\n  [bold]Vertices by Label:[/]")
        for label, count in stats.vertices_by_label.items():
            console.print(f"    {label}: {count}")
        console.print("\n  [bold]Edges by Label:[/]")
        for label, count in stats.edges_by_label.items():
            console.print(f"    {label}: {count}")
        console.print()


def parse_title(title: str):
    """Split 'Die Hard (1988)' into ('Die Hard', 1988); year is None when absent"""
    match = _TITLE_YEAR.match(title.strip())
    if not match:
        return title.strip(), None
    return match.group(1), int(match.group(2))


def _read_dat(path: Path, columns, dtype=None) -> pd.DataFrame:
    """Read a '::' separated MovieLens file"""
    return pd.read_csv(
        path,
        sep="::",
        engine="python",
        header=None,
        names=columns,
        dtype=dtype,
        encoding="latin-1",
    )
