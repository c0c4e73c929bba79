"""Tests for the node store and subtree erasure."""

import pytest

from deporder.exceptions import OrphanReferenceError
from deporder.models import Node, Priority
from deporder.store import NodeStore
from deporder.traversal import iter_build_order


@pytest.fixture
def store():
    """A -> B -> C, A -> D, and B also references D (canonical under A)."""
    store = NodeStore()
    store.put(Node("A", (), (), edges=[(1, "B"), (1, "D")]))
    store.put(Node("B", (1,), (1,), edges=[(1, "C"), (1, "D")]))
    store.put(Node("C", (1, 1), (1, 1)))
    store.put(Node("D", (2,), (1,)))
    return store


class TestNodeStore:
    """Tests for NodeStore."""

    def test_basic_operations(self, store):
        assert store.exists("B")
        assert not store.exists("Z")
        assert store.get("C").path == (1, 1)
        assert len(store) == 4
        assert "D" in store

        store.delete("C")
        assert not store.exists("C")
        assert store.find_by_path((1, 1)) is None

    def test_get_unknown(self, store):
        with pytest.raises(KeyError):
            store.get("Z")

    def test_find_by_path(self, store):
        assert store.find_by_path(()) == "A"
        assert store.find_by_path([1]) == "B"
        assert store.find_by_path((1, 1)) == "C"
        assert store.find_by_path((3,)) is None

    def test_moving_a_node_updates_the_index(self, store):
        store.put(Node("C", (3,), (1,)))
        assert store.find_by_path((1, 1)) is None
        assert store.find_by_path((3,)) == "C"

    def test_path_collision(self, store):
        with pytest.raises(ValueError):
            store.put(Node("E", (1,), (1,)))

    def test_is_ancestor(self, store):
        assert store.is_ancestor("B", (1, 1, 4))
        assert store.is_ancestor("A", (2,))
        assert not store.is_ancestor("B", (2, 1))
        assert not store.is_ancestor("Z", (1,))

    def test_is_ancestor_compares_elements_not_text(self):
        node = Node("X", (1, 1), (1, 1))
        assert not node.is_ancestor_of((1, 11))
        assert node.is_ancestor_of((1, 1, 1))

    def test_erase_keeps_shared_nodes(self, store):
        erased = store.erase("B")

        assert erased == ["C", "B"]
        assert not store.exists("B")
        assert not store.exists("C")
        assert store.exists("D")
        assert store.find_by_path((2,)) == "D"

    def test_erase_unknown_is_noop(self, store):
        assert store.erase("Z") == []
        assert len(store) == 4


class TestTraversal:
    """Tests for the build order walk."""

    def test_order_skips_root(self, store):
        store.get("B").edges = [(1, "C")]
        assert list(iter_build_order(store, "A")) == ["C", "B", "D"]

    def test_external_children_are_not_walked(self):
        store = NodeStore()
        store.put(Node("A", edges=[(int(Priority.EXTERNAL), "x")]))
        store.put(Node("x", (1,), (4,), edges=[(1, "y")], external=True))
        assert list(iter_build_order(store, "A")) == ["x"]

    def test_dangling_edge(self):
        store = NodeStore()
        store.put(Node("A", edges=[(1, "ghost")]))
        with pytest.raises(OrphanReferenceError):
            list(iter_build_order(store, "A"))


class TestModels:
    """Tests for the small model types."""

    def test_priority_parse(self):
        assert Priority.parse("required") == Priority.REQUIRED
        assert Priority.parse("Recommended") == Priority.RECOMMENDED
        assert Priority.parse("3") == Priority.OPTIONAL
        assert Priority.parse(4) == Priority.EXTERNAL
        assert Priority.OPTIONAL.label == "optional"

    def test_priority_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            Priority.parse("mandatory")
        with pytest.raises(ValueError):
            Priority.parse(0)

    def test_node_paths_must_match(self):
        with pytest.raises(ValueError):
            Node("A", (1, 2), (1,))

    def test_node_parent_path(self):
        assert Node("A").parent_path is None
        assert Node("B", (1, 3), (1, 2)).parent_path == (1,)

    def test_node_is_leaf(self):
        assert Node("A").is_leaf
        assert not Node("A", edges=[(1, "B")]).is_leaf
