"""
Commitment tree bundled with the authentication paths kept for later proofs
"""
import io
import logging
from typing import Callable, List, Optional, TextIO

from .exceptions import BundleError, SerializationError
from .merkle import AuthPath, IncrementalMerkleTree
from .utils import (
    DEFAULT_DEPTH, DEFAULT_HASH, get_hasher, encode_digest, decode_digest,
    parse_count, read_line
)

logger = logging.getLogger(__name__)


class MerkleBundle:
    """
    Incremental Merkle tree plus the leaves whose authentication paths
    are retained.

    auth_leaf()[i] and auth_path()[i] always describe the same leaf. The
    retained paths are refreshed on every insertion so each one verifies
    against the current root.
    """

    def __init__(self, depth: int = DEFAULT_DEPTH, hash_name: str = DEFAULT_HASH):
        self.hasher = get_hasher(hash_name)
        self.tree = IncrementalMerkleTree(depth, self.hasher)
        self._tree_size = 0
        self._auth_leaves: List[bytes] = []
        self._auth_paths: List[AuthPath] = []

    @classmethod
    def from_config(cls, config) -> "MerkleBundle":
        """Build an empty bundle with the depth and hash from a BundleConfig"""
        return cls(depth=config.depth, hash_name=config.hash_name)

    @property
    def depth(self) -> int:
        return self.tree.depth

    @property
    def hash_name(self) -> str:
        return self.hasher.name

    @property
    def tree_size(self) -> int:
        return self._tree_size

    def is_full(self) -> bool:
        return self.tree.is_full()

    def root_hash(self) -> bytes:
        """Root hash after the most recent insertion"""
        path = self.tree.auth_path()
        if path is None:
            raise BundleError("Bundle has no leaves; root hash is undefined")
        return path.root_hash()

    def insert(self, leaf: bytes, keep: bool = False) -> Optional[int]:
        """
        Append a leaf to the tree.

        Returns the position of the leaf in the retained lists when `keep`
        is set, otherwise None. Raises TreeFullError at capacity and
        ValueError for a leaf of the wrong size; neither mutates the bundle.
        """
        # The path must be taken before commit() moves the frontier
        path = self.tree.compute_path(leaf)
        leaf = bytes(leaf)
        self._auth_paths = self.tree.refresh_paths(leaf, self._auth_paths)

        index = None
        if keep:
            index = len(self._auth_leaves)
            self._auth_leaves.append(leaf)
            self._auth_paths.append(path)

        self.tree.commit(leaf)
        self._tree_size += 1

        logger.debug("Inserted leaf %s at position %d (retained index %s)",
                     encode_digest(leaf)[:16], path.index, index)
        return index

    add_leaf = insert

    def auth_leaf(self) -> List[bytes]:
        return list(self._auth_leaves)

    def auth_path(self) -> List[AuthPath]:
        return list(self._auth_paths)

    def find(self, leaf: bytes) -> Optional[int]:
        """Position of `leaf` in the retained lists, None if not retained"""
        for i, cm in enumerate(self._auth_leaves):
            if cm == leaf:
                return i
        return None

    def path_for(self, leaf: bytes) -> Optional[AuthPath]:
        index = self.find(leaf)
        if index is None:
            return None
        return self._auth_paths[index]

    def cleanup(self, predicate: Callable[[bytes], bool]) -> None:
        """Keep only retained leaves (and their paths) satisfying `predicate`"""
        keep_leaves = []
        keep_paths = []
        for cm, path in zip(self._auth_leaves, self._auth_paths):
            if predicate(cm):
                keep_leaves.append(cm)
                keep_paths.append(path)

        dropped = len(self._auth_leaves) - len(keep_leaves)
        self._auth_leaves = keep_leaves
        self._auth_paths = keep_paths
        if dropped:
            logger.info("Dropped %d retained path(s), %d left", dropped, len(keep_leaves))

    def serialize(self, out: TextIO) -> None:
        """
        Write tree state, tree size, the retained leaves and then the
        retained paths. The number of paths is not written; a reader takes
        it from the number of leaves.
        """
        self.tree.serialize(out)
        out.write(f"{self._tree_size}\n")
        out.write(f"{len(self._auth_leaves)}\n")
        for cm in self._auth_leaves:
            out.write(encode_digest(cm) + "\n")
        for path in self._auth_paths:
            path.serialize(out)

    def deserialize(self, inp: TextIO) -> bool:
        """
        Replace this bundle's state with the one read from `inp`.
        On any parse failure the bundle is cleared and False is returned.
        """
        digest_size = self.hasher.digest_size
        try:
            self.tree.deserialize(inp)
            tree_size = parse_count(read_line(inp), "tree size")
            if tree_size != self.tree.size:
                raise SerializationError(
                    f"Tree size {tree_size} does not match tree state {self.tree.size}"
                )
            count = parse_count(read_line(inp), "leaf count")
            leaves = [decode_digest(read_line(inp), digest_size) for _ in range(count)]
            paths = [AuthPath.deserialize(inp, digest_size) for _ in range(count)]
            previous = -1
            for path in paths:
                if path.depth != self.depth:
                    raise SerializationError("Authentication path depth mismatch")
                # Retained leaves were inserted in order, each before tree_size
                if not previous < path.index < tree_size:
                    raise SerializationError(
                        f"Path index {path.index} out of order or beyond tree size {tree_size}"
                    )
                previous = path.index
        except SerializationError as e:
            logger.warning("Bundle deserialization failed: %s", e)
            self.clear()
            return False

        self._tree_size = tree_size
        self._auth_leaves = leaves
        self._auth_paths = paths
        return True

    def dumps(self) -> str:
        out = io.StringIO()
        self.serialize(out)
        return out.getvalue()

    def loads(self, text: str) -> bool:
        return self.deserialize(io.StringIO(text))

    def clear(self) -> None:
        self.tree.clear()
        self._tree_size = 0
        self._auth_leaves = []
        self._auth_paths = []

    def empty(self) -> bool:
        return (
            self.tree.is_empty() or
            self._tree_size == 0 or
            not self._auth_leaves or
            not self._auth_paths
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, MerkleBundle):
            return NotImplemented
        return self.hash_name == other.hash_name and self.dumps() == other.dumps()

    __hash__ = None

    def __repr__(self) -> str:
        return (f"MerkleBundle(depth={self.depth}, hash={self.hash_name!r}, "
                f"tree_size={self._tree_size}, retained={len(self._auth_leaves)})")
