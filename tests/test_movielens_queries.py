"""
The MovieLens query suite, run against the fixture graph
"""

import pytest

from propgraph.query import Column, Key, Order, P, __

Name = Key("name", str)
Stars = Key("stars", int)


class TestMovieLensQueries:
    """Gremlin-style queries over movies, persons, genres and occupations"""

    def test_vertex_and_edge_counts(self, g):
        """Get the vertex and edge counts for the graph"""
        assert g.V().count().head() == 14
        assert g.E().count().head() == 23

    def test_die_hard_average_rating(self, g):
        """What is Die Hard's average rating?"""
        avg_rating = g.V().has("movie", Name, "Die Hard").in_e("rated").values("stars").mean().head()
        assert f"{avg_rating:.2f}" == "4.50"

    def test_label_group_count(self, g):
        """For each vertex, emit its label, then group and count each distinct label"""
        group_count = g.V().label().group_count().head()
        assert group_count["occupation"] == 2
        assert group_count["movie"] == 5
        assert group_count["person"] == 4
        assert group_count["genre"] == 3

    def test_mean_stars(self, g):
        """For each rated edge, emit its stars and compute the average"""
        mean_stars = g.E().has_label("rated").values("stars").mean().head()
        assert f"{mean_stars:.2f}" == "4.25"

    def test_most_movies_rated_by_one_user(self, g):
        """Get the maximum number of movies a single user rated"""
        assert g.V().has_label("person").map(__.out_e("rated").count()).max_().head() == 4
        assert g.V().has_label("person").flat_map(__.out_e("rated").count()).max_().head() == 4

    def test_oldest_movie(self, g):
        """What year was the oldest movie made?"""
        assert g.V().has_label("movie").values("year").min_().head() == 1927

    def test_genre_names(self, g):
        """For each genre vertex, emit its name"""
        categories = g.V().has_label("genre").values("name").to_set()
        assert "Action" in categories
        assert "Comedy" in categories
        assert len(categories) == 3

    def test_genre_movie_counts(self, g):
        """For each genre, emit a map of its name and the number of movies it represents"""
        genre_movie_counts = (g.V().has_label("genre").as_("a", "b")
                              .select("a", "b")
                              .by("name")
                              .by(__.in_e("hasGenre").count())
                              .to_list())
        assert len(genre_movie_counts) == 3

        def movie_count(genre):
            return next(m for m in genre_movie_counts if m["a"] == genre)["b"]

        assert movie_count("Action") == 3
        assert movie_count("Drama") == 3
        assert movie_count("Comedy") == 1

    def test_top_movies_by_mean_rating(self, g):
        """Name and mean rating (0 without ratings) of each movie, top 3 by rating"""
        avg_ratings = (g.V().has_label("movie").as_("a", "b")
                       .select("a", "b")
                       .by("name")
                       .by(__.coalesce(__.in_e("rated").values("stars"), __.constant(0)).mean())
                       .order().by(__.select("b"), Order.DESC)
                       .limit(3)
                       .to_list())
        assert [m["a"] for m in avg_ratings] == ["Aliens", "Die Hard", "Toy Story"]
        assert avg_ratings[0]["b"] == pytest.approx(14 / 3)
        assert avg_ratings[1]["b"] == 4.5

    def test_unrated_movie_scores_zero(self, g):
        """The coalesce default applies to movies nobody rated"""
        avg_ratings = (g.V().has_label("movie").as_("a", "b")
                       .select("a", "b")
                       .by("name")
                       .by(__.coalesce(__.in_e("rated").values("stars"), __.constant(0)).mean())
                       .order().by(__.select("b"))
                       .to_list())
        assert avg_ratings[0] == {"a": "Metropolis", "b": 0}

    def test_top_movies_with_enough_ratings(self, g):
        """Movies with more than two ratings, sorted by mean rating"""
        avg_ratings = (g.V().has_label("movie").as_("a", "b")
                       .where(__.in_e("rated").count().is_(P.gt(2)))
                       .select("a", "b")
                       .by("name")
                       .by(__.in_e("rated").values("stars").mean())
                       .order().by(__.select("b"), Order.DESC)
                       .limit(10)
                       .to_list())
        assert [m["a"] for m in avg_ratings] == ["Aliens", "Die Hard", "Toy Story"]
        assert avg_ratings[2]["b"] == pytest.approx(4.0, abs=0.1)

    def test_programmers_who_like_die_hard(self, g):
        """Which programmers like Die Hard and what other movies do they like?"""
        counts = (g.V().has("movie", Name, "Die Hard").as_("a")
                  .in_e("rated").has(Stars, 5).out_v()
                  .where(__.out("hasOccupation").has(Name, "programmer"))
                  .out_e("rated").has(Stars, 5).in_v()
                  .where(P.neq("a"))
                  .map(lambda v: v.value("name"))
                  .group_count()
                  .order_local().by(Column.VALUES, Order.DESC)
                  .limit_local(10)
                  .head())
        assert counts == {"Toy Story": 2, "Heat": 1, "Aliens": 1}
        assert next(iter(counts)) == "Toy Story"

    def test_eighties_action_movies_of_thirtysomething_programmers(self, g):
        """What 80's action movies do 30-something programmers like?"""
        counts = (g.V()
                  .match(
                      __.as_("a").has_label("movie"),
                      __.as_("a").out("hasGenre").has("name", "Action"),
                      __.as_("a").has("year", P.between(1980, 1990)),
                      __.as_("a").in_e("rated").as_("b"),
                      __.as_("b").has("stars", 5),
                      __.as_("b").out_v().as_("c"),
                      __.as_("c").out("hasOccupation").has("name", "programmer"),
                      __.as_("c").has("age", P.between(30, 40)),
                  )
                  .select("a")
                  .map(lambda v: v.value("name"))
                  .group_count()
                  .order_local().by(Column.VALUES, Order.DESC)
                  .limit_local(10)
                  .head())
        assert counts == {"Die Hard": 2, "Aliens": 1}
        assert list(counts) == ["Die Hard", "Aliens"]

    def test_most_liked_movie_per_decade(self, g):
        """What is the most liked movie in each decade?"""

        def mean_rating(movie):
            return g.V(movie).in_e("rated").values("stars").mean().head()

        def highest_rated(movies_by_decade):
            return {
                decade: max(movies, key=mean_rating).value("name")
                for decade, movies in movies_by_decade.items()
            }

        best = (g.V().has_label("movie")
                .where(__.in_e("rated").count().is_(P.gt(1)))
                .group(lambda v: v.value("year") // 10 * 10)
                .map(highest_rated)
                .order_local().by(Column.KEYS)
                .head())
        assert best == {1980: "Aliens", 1990: "Toy Story"}
        assert list(best) == [1980, 1990]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
