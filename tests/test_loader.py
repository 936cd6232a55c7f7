"""
Tests for the MovieLens loader
"""

import pytest

from propgraph.config.settings import Settings
from propgraph.errors import DanglingReferenceError
from propgraph.graph.loader import GraphLoader, parse_title
from propgraph.query import Column, Order

MOVIES_DAT = """\
1::Toy Story (1995)::Animation|Children's|Comedy
2::Heat (1995)::Action|Crime|Thriller
3::City of Lost Children, The (1995)::Adventure|Sci-Fi
"""

USERS_DAT = """\
1::F::1::10::48067
2::M::56::16::70072
3::M::25::12::02460
"""

RATINGS_DAT = """\
1::1::5::978300760
1::2::3::978302109
2::1::4::978301968
3::1::5::978300275
3::3::2::978824291
"""


@pytest.fixture
def movielens_dir(tmp_path):
    (tmp_path / "movies.dat").write_text(MOVIES_DAT, encoding="latin-1")
    (tmp_path / "users.dat").write_text(USERS_DAT, encoding="latin-1")
    (tmp_path / "ratings.dat").write_text(RATINGS_DAT, encoding="latin-1")
    return tmp_path


class TestSettings:
    """Tests for environment-driven settings"""

    def test_defaults(self):
        settings = Settings()
        assert settings.show_progress is True
        assert settings.property_index_enabled is True

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROPGRAPH_MOVIELENS_DIR", str(tmp_path))
        monkeypatch.setenv("PROPGRAPH_PROPERTY_INDEX_ENABLED", "false")
        settings = Settings()
        assert settings.movielens_dir == str(tmp_path)
        assert settings.property_index_enabled is False


class TestParseTitle:
    """Tests for splitting MovieLens titles"""

    def test_title_with_year(self):
        assert parse_title("Die Hard (1988)") == ("Die Hard", 1988)
        assert parse_title("City of Lost Children, The (1995) ") == ("City of Lost Children, The", 1995)

    def test_title_without_year(self):
        assert parse_title("Untitled") == ("Untitled", None)


class TestGraphLoader:
    """Tests for GraphLoader.load_movielens"""

    def setup_method(self):
        self.settings = Settings(show_progress=False, property_index_enabled=True)

    def test_graph_shape(self, movielens_dir):
        """Test vertex and edge counts per label"""
        store = GraphLoader(self.settings).load_movielens(movielens_dir)
        stats = store.stats()
        assert stats.vertices_by_label == {"movie": 3, "genre": 8, "person": 3, "occupation": 3}
        assert stats.edges_by_label == {"hasGenre": 8, "hasOccupation": 3, "rated": 5}

    def test_properties(self, movielens_dir):
        """Test movie, person and rating properties"""
        g = GraphLoader(self.settings).load_movielens(movielens_dir).traversal()

        assert g.V().has("movie", "name", "Heat").value_map().head() == {"name": "Heat", "year": 1995}
        person = g.V().has("person", "userId", 3).value_map().head()
        assert person == {"userId": 3, "gender": "M", "age": 25, "zipcode": "02460"}
        assert g.V().has("person", "userId", 3).out("hasOccupation").values("name").head() == "programmer"
        assert g.E().has_label("rated").has("stars", 3).values("timestamp").head() == 978302109

    def test_queries_on_loaded_graph(self, movielens_dir):
        """Test traversals over a loaded dump"""
        g = GraphLoader(self.settings).load_movielens(movielens_dir).traversal()

        mean = g.V().has("movie", "name", "Toy Story").in_e("rated").values("stars").mean().head()
        assert mean == pytest.approx(14 / 3)

        genres = (g.V().has_label("movie").out("hasGenre").values("name").group_count()
                  .order_local().by(Column.KEYS, Order.ASC).head())
        assert list(genres)[:3] == ["Action", "Adventure", "Animation"]

    def test_directory_from_settings(self, movielens_dir):
        """Test the default directory comes from settings"""
        settings = Settings(show_progress=False, movielens_dir=str(movielens_dir))
        store = GraphLoader(settings).load_movielens()
        assert store.vertex_count() == 17

    def test_progress_output(self, movielens_dir):
        """Test loading with progress and stats rendering enabled"""
        settings = Settings(show_progress=True)
        store = GraphLoader(settings).load_movielens(movielens_dir)
        assert store.edge_count() == 16

    def test_rating_for_unknown_movie(self, movielens_dir):
        """Test a rating that references a missing movie"""
        with open(movielens_dir / "ratings.dat", "a", encoding="latin-1") as f:
            f.write("1::99::4::978300760\n")
        with pytest.raises(DanglingReferenceError):
            GraphLoader(self.settings).load_movielens(movielens_dir)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
