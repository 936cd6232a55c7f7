"""
Tests for binding environments and predicates
"""

import pytest

from propgraph.errors import UnboundLabelError
from propgraph.graph.schema import Vertex
from propgraph.query.bindings import EMPTY_BINDINGS, BindingEnvironment, Traverser
from propgraph.query.predicates import Key, P


class TestBindingEnvironment:
    """Tests for BindingEnvironment"""

    def setup_method(self):
        self.a = Vertex(id=1, label="movie")
        self.b = Vertex(id=2, label="movie")

    def test_bind_returns_new_environment(self):
        """Test binding leaves the original untouched"""
        env = EMPTY_BINDINGS.bind("a", self.a)
        assert "a" in env
        assert "a" not in EMPTY_BINDINGS
        assert len(EMPTY_BINDINGS) == 0

    def test_latest_binding_wins(self):
        """Test rebinding a label keeps both values"""
        env = EMPTY_BINDINGS.bind("a", self.a).bind("a", self.b)
        assert env.get("a") == self.b
        assert env.get_all("a") == [self.a, self.b]
        assert env.labels() == ["a"]

    def test_unbound_lookup(self):
        """Test lookups of unbound labels"""
        with pytest.raises(UnboundLabelError) as exc:
            EMPTY_BINDINGS.get("x")
        assert exc.value.label == "x"
        assert EMPTY_BINDINGS.get("x", None) is None

    def test_insertion_order(self):
        """Test labels keep the order they were first bound in"""
        env = EMPTY_BINDINGS.bind_all(["b", "a"], self.a).extend([("c", self.b), ("b", self.b)])
        assert env.labels() == ["b", "a", "c"]
        assert env.as_dict() == {"b": self.b, "a": self.a, "c": self.b}
        assert list(env) == ["b", "a", "c"]

    def test_value_semantics(self):
        """Test equal entries make equal environments"""
        first = BindingEnvironment((("a", self.a),))
        second = EMPTY_BINDINGS.bind("a", self.a)
        assert first == second
        assert hash(first) == hash(second)

    def test_split_traversers_do_not_share_bindings(self):
        """Test siblings split from one traverser stay independent"""
        parent = Traverser(self.a).bind(["a"])
        left = parent.split("left").bind(["x"])
        right = parent.split("right")
        assert "x" in left.bindings
        assert "x" not in right.bindings
        assert right.bindings.get("a") == self.a


class TestPredicates:
    """Tests for P"""

    def test_comparisons(self):
        """Test the comparison predicates"""
        assert P.eq(5).test(5)
        assert P.neq(5).test(4)
        assert P.gt(10).test(11) and not P.gt(10).test(10)
        assert P.gte(10).test(10)
        assert P.lt(3).test(2.5)
        assert P.lte(3).test(3)

    def test_between_is_half_open(self):
        """Test between includes the low bound only"""
        decade = P.between(1980, 1990)
        assert decade.test(1980)
        assert decade.test(1989)
        assert not decade.test(1990)
        assert not decade.test(1979)

    def test_inside_and_outside(self):
        """Test the exclusive range predicates"""
        assert P.inside(1, 5).test(3) and not P.inside(1, 5).test(1)
        assert P.outside(1, 5).test(6) and not P.outside(1, 5).test(5)

    def test_membership(self):
        """Test within / without"""
        assert P.within("Action", "Drama").test("Drama")
        assert P.within(["Action", "Drama"]).test("Action")
        assert P.without("Action").test("Comedy")

    def test_incomparable_values_do_not_match(self):
        """Test ordering a string against a number"""
        assert not P.gt(3).test("five")
        assert not P.between(1, 2).test(None)

    def test_connectives(self):
        """Test and / or / not"""
        three_or_four = P.gt(2).and_(P.lt(5))
        assert three_or_four.test(3)
        assert not three_or_four.test(5)
        assert P.eq(1).or_(P.eq(2)).test(2)
        assert P.eq(1).negate().test(2)

    def test_map_value(self):
        """Test operands can be resolved"""
        resolved = P.neq("a").map_value({"a": 42}.get)
        assert resolved.test(41)
        assert not resolved.test(42)
        assert P.between("lo", "hi").operands() == ["lo", "hi"]
        assert P.within("a", "b").operands() == ["a", "b"]
        assert P.within(["a", "b"]).map_value({"a": 1, "b": 2}.get).test(2)
        assert P.without("a").operands() == ["a"]

    def test_typed_key(self):
        """Test a Key normalizes its type"""
        key = Key("stars", int)
        assert str(key) == "stars"
        assert key.read(Vertex(id=1, label="rated", properties={"stars": 5})) == 5
        assert Key("stars", int) == Key("stars", "integer")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
