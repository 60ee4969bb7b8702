"""
Test cases for the incremental Merkle tree and authentication paths
"""
import hashlib
import io
import pytest

from commitbundle.merkle import AuthPath, IncrementalMerkleTree
from commitbundle.exceptions import SerializationError, TreeFullError
from commitbundle.utils import get_hasher


def make_leaf(i, algo=hashlib.sha256):
    return algo(f"leaf-{i}".encode()).digest()


def naive_root(leaves, depth, algo=hashlib.sha256):
    """Root of a full tree built level by level, padding with zero leaves"""
    size = algo().digest_size
    level = list(leaves) + [bytes(size)] * ((1 << depth) - len(leaves))
    while len(level) > 1:
        level = [algo(level[i] + level[i + 1]).digest() for i in range(0, len(level), 2)]
    return level[0]


def test_empty_tree():
    tree = IncrementalMerkleTree(3)
    assert tree.is_empty()
    assert not tree.is_full()
    assert tree.capacity == 8
    assert tree.size == 0
    assert tree.auth_path() is None
    assert tree.root() == naive_root([], 3)


def test_root_matches_full_tree():
    tree = IncrementalMerkleTree(3)
    leaves = []
    for i in range(8):
        leaf = make_leaf(i)
        leaves.append(leaf)
        tree.compute_path(leaf)
        tree.commit(leaf)
        assert tree.root() == naive_root(leaves, 3)
    assert tree.is_full()


def test_sha512_root_matches_full_tree():
    tree = IncrementalMerkleTree(2, get_hasher("sha512"))
    leaves = [make_leaf(i, hashlib.sha512) for i in range(3)]
    for leaf in leaves:
        tree.commit(leaf)
    assert tree.root() == naive_root(leaves, 2, hashlib.sha512)
    assert len(tree.root()) == 64


def test_compute_path_does_not_change_frontier():
    tree = IncrementalMerkleTree(3)
    tree.commit(make_leaf(0))
    before = io.StringIO()
    tree.serialize(before)

    path = tree.compute_path(make_leaf(1))
    assert path.index == 1
    assert tree.size == 1
    assert tree.auth_path() == path

    # Only the cached latest path differs
    after = io.StringIO()
    tree.serialize(after)
    assert before.getvalue().splitlines()[:-1] == after.getvalue().splitlines()[:-1]


def test_path_root_is_root_after_commit():
    tree = IncrementalMerkleTree(4)
    for i in range(5):
        leaf = make_leaf(i)
        path = tree.compute_path(leaf)
        tree.commit(leaf)
        assert path.root_hash() == tree.root()
        assert path.depth == 4
        assert tree.verify(leaf, path)


def test_verify_rejects_wrong_leaf():
    tree = IncrementalMerkleTree(3)
    path = tree.compute_path(make_leaf(0))
    tree.commit(make_leaf(0))
    assert not tree.verify(make_leaf(99), path)


def test_refresh_paths_tracks_new_root():
    tree = IncrementalMerkleTree(3)
    kept = {}
    for i in range(7):
        leaf = make_leaf(i)
        path = tree.compute_path(leaf)
        refreshed = tree.refresh_paths(leaf, list(kept.values()))
        kept = dict(zip(kept.keys(), refreshed))
        if i % 2 == 0:
            kept[leaf] = path
        tree.commit(leaf)

        for cm, auth in kept.items():
            assert auth.root_hash() == tree.root()
            assert tree.verify(cm, auth)


def test_refresh_paths_returns_new_objects():
    tree = IncrementalMerkleTree(2)
    first = make_leaf(0)
    old = tree.compute_path(first)
    tree.commit(first)

    second = make_leaf(1)
    tree.compute_path(second)
    (new,) = tree.refresh_paths(second, [old])
    assert new is not old
    assert new.siblings[0] == second
    assert old.siblings[0] == bytes(32)
    assert new.siblings[1] == old.siblings[1]


def test_full_tree_rejects_leaf():
    tree = IncrementalMerkleTree(1)
    tree.commit(make_leaf(0))
    tree.commit(make_leaf(1))
    assert tree.is_full()
    with pytest.raises(TreeFullError):
        tree.compute_path(make_leaf(2))
    with pytest.raises(TreeFullError):
        tree.commit(make_leaf(2))
    assert tree.size == 2


def test_leaf_size_checked():
    tree = IncrementalMerkleTree(2)
    with pytest.raises(ValueError):
        tree.compute_path(b"short")
    with pytest.raises(ValueError):
        tree.commit("not bytes")


def test_depth_zero_tree():
    tree = IncrementalMerkleTree(0)
    leaf = make_leaf(0)
    path = tree.compute_path(leaf)
    tree.commit(leaf)
    assert path.siblings == ()
    assert tree.root() == leaf
    assert tree.is_full()


def test_clear_resets_tree():
    tree = IncrementalMerkleTree(2)
    empty_root = tree.root()
    tree.compute_path(make_leaf(0))
    tree.commit(make_leaf(0))
    tree.clear()
    assert tree.is_empty()
    assert tree.root() == empty_root
    assert tree.auth_path() is None


def test_negative_depth_rejected():
    with pytest.raises(ValueError):
        IncrementalMerkleTree(-1)


class TestTreeSerialization:
    """Tree state persistence"""

    def setup_method(self):
        self.tree = IncrementalMerkleTree(3)
        for i in range(3):
            leaf = make_leaf(i)
            self.tree.compute_path(leaf)
            self.tree.commit(leaf)

    def dump(self, tree):
        out = io.StringIO()
        tree.serialize(out)
        return out.getvalue()

    def test_restored_tree_continues_identically(self):
        restored = IncrementalMerkleTree(3)
        restored.deserialize(io.StringIO(self.dump(self.tree)))
        assert restored.size == 3
        assert restored.root() == self.tree.root()
        assert restored.auth_path() == self.tree.auth_path()

        for tree in (self.tree, restored):
            tree.compute_path(make_leaf(3))
            tree.commit(make_leaf(3))
        assert restored.root() == self.tree.root()

    def test_empty_tree_round_trip(self):
        text = self.dump(IncrementalMerkleTree(3))
        assert text.splitlines()[-1] == "-"
        self.tree.deserialize(io.StringIO(text))
        assert self.tree.is_empty()
        assert self.tree.auth_path() is None

    def test_header_layout(self):
        header = self.dump(self.tree).splitlines()[0].split()
        assert header[:3] == ["sha256", "3", "3"]
        assert header[3] == self.tree.root().hex()

    def test_wrong_hash_rejected(self):
        other = IncrementalMerkleTree(3, get_hasher("sha512"))
        with pytest.raises(SerializationError):
            other.deserialize(io.StringIO(self.dump(self.tree)))

    def test_wrong_depth_rejected(self):
        other = IncrementalMerkleTree(4)
        with pytest.raises(SerializationError):
            other.deserialize(io.StringIO(self.dump(self.tree)))

    def test_failed_restore_leaves_tree_untouched(self):
        root = self.tree.root()
        text = self.dump(self.tree)
        with pytest.raises(SerializationError):
            self.tree.deserialize(io.StringIO(text[:len(text) // 2]))
        assert self.tree.size == 3
        assert self.tree.root() == root


class TestAuthPath:
    """AuthPath value behaviour"""

    def test_line_round_trip(self):
        path = AuthPath(index=5, siblings=(make_leaf(1), make_leaf(2), make_leaf(3)), root=make_leaf(4))
        assert AuthPath.from_line(path.to_line(), 32) == path

    def test_is_immutable(self):
        path = AuthPath(index=0, siblings=(), root=make_leaf(0))
        with pytest.raises(AttributeError):
            path.index = 1

    def test_malformed_lines(self):
        with pytest.raises(SerializationError):
            AuthPath.from_line("7", 32)
        with pytest.raises(SerializationError):
            AuthPath.from_line("x " + make_leaf(0).hex(), 32)
        with pytest.raises(SerializationError):
            AuthPath.from_line("0 abcd", 32)
        # index 2 cannot exist in a depth-1 path
        with pytest.raises(SerializationError):
            AuthPath.from_line(f"2 {make_leaf(0).hex()} {make_leaf(1).hex()}", 32)

    def test_deserialize_requires_newline(self):
        line = AuthPath(index=0, siblings=(), root=make_leaf(0)).to_line()
        with pytest.raises(SerializationError):
            AuthPath.deserialize(io.StringIO(line), 32)
        assert AuthPath.deserialize(io.StringIO(line + "\n"), 32).index == 0
