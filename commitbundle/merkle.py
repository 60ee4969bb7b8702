"""
Incremental fixed-depth Merkle tree and authentication path snapshots
"""
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, TextIO, Tuple

from .exceptions import SerializationError, TreeFullError
from .utils import (
    DEFAULT_HASH, Hasher, get_hasher, encode_digest, decode_digest,
    parse_count, read_line
)

logger = logging.getLogger(__name__)

NO_PATH_MARKER = "-"


@dataclass(frozen=True)
class AuthPath:
    """
    Authentication path for one leaf position.

    siblings[0] is the sibling at the leaf level, siblings[-1] the child
    of the root. `root` is the root hash at the time of the snapshot.
    """
    index: int
    siblings: Tuple[bytes, ...]
    root: bytes

    def root_hash(self) -> bytes:
        return self.root

    @property
    def depth(self) -> int:
        return len(self.siblings)

    def compute_root(self, leaf: bytes, hasher: Hasher) -> bytes:
        """Fold the siblings upward from `leaf` following the index bits"""
        node = leaf
        for level, sibling in enumerate(self.siblings):
            if (self.index >> level) & 1:
                node = hasher.combine(sibling, node)
            else:
                node = hasher.combine(node, sibling)
        return node

    def with_sibling(self, level: int, sibling: bytes, root: bytes) -> "AuthPath":
        """Copy of this path with one sibling and the root replaced"""
        siblings = list(self.siblings)
        siblings[level] = sibling
        return replace(self, siblings=tuple(siblings), root=root)

    def to_line(self) -> str:
        parts = [str(self.index), encode_digest(self.root)]
        parts.extend(encode_digest(s) for s in self.siblings)
        return " ".join(parts)

    def serialize(self, out: TextIO) -> None:
        out.write(self.to_line() + "\n")

    @classmethod
    def from_line(cls, line: str, digest_size: int) -> "AuthPath":
        tokens = line.split()
        if len(tokens) < 2:
            raise SerializationError(f"Malformed authentication path: {line[:32]!r}")
        index = parse_count(tokens[0], "path index")
        root = decode_digest(tokens[1], digest_size)
        siblings = tuple(decode_digest(t, digest_size) for t in tokens[2:])
        if index >= 1 << len(siblings):
            raise SerializationError(
                f"Path index {index} out of range for depth {len(siblings)}"
            )
        return cls(index=index, siblings=siblings, root=root)

    @classmethod
    def deserialize(cls, inp: TextIO, digest_size: int) -> "AuthPath":
        return cls.from_line(read_line(inp), digest_size)


class IncrementalMerkleTree:
    """
    Append-only Merkle tree of fixed depth.

    Only the frontier is stored: for every level the most recent node that
    was a left child. Positions not yet filled hash as empty subtrees.
    """

    def __init__(self, depth: int, hasher: Optional[Hasher] = None):
        if depth < 0:
            raise ValueError(f"Tree depth must be non-negative, got {depth}")
        self.depth = depth
        self.hasher = hasher or get_hasher(DEFAULT_HASH)
        self._zeros = self._empty_subtrees()
        self.clear()

    def _empty_subtrees(self) -> List[bytes]:
        zeros = [self.hasher.empty_leaf()]
        for _ in range(self.depth):
            zeros.append(self.hasher.combine(zeros[-1], zeros[-1]))
        return zeros

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def size(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size >= self.capacity

    def is_empty(self) -> bool:
        return self._size == 0

    def clear(self) -> None:
        self._frontier = list(self._zeros[:self.depth])
        self._size = 0
        self._root = self._zeros[self.depth]
        self._auth_path: Optional[AuthPath] = None

    def root(self) -> bytes:
        return self._root

    def auth_path(self) -> Optional[AuthPath]:
        """Most recently computed path, None if nothing was computed"""
        return self._auth_path

    def _check_leaf(self, leaf: bytes) -> None:
        if not isinstance(leaf, (bytes, bytearray)) or len(leaf) != self.hasher.digest_size:
            raise ValueError(
                f"Leaf must be a {self.hasher.digest_size}-byte {self.hasher.name} digest"
            )
        if self.is_full():
            raise TreeFullError(f"Tree of depth {self.depth} is full ({self.capacity} leaves)")

    def _branch(self, leaf: bytes) -> Tuple[List[bytes], List[bytes]]:
        """Siblings and node hashes from `leaf` up to the root at the next position"""
        position = self._size
        node = bytes(leaf)
        siblings = []
        nodes = [node]
        for level in range(self.depth):
            if (position >> level) & 1:
                sibling = self._frontier[level]
                node = self.hasher.combine(sibling, node)
            else:
                sibling = self._zeros[level]
                node = self.hasher.combine(node, sibling)
            siblings.append(sibling)
            nodes.append(node)
        return siblings, nodes

    def compute_path(self, leaf: bytes) -> AuthPath:
        """
        Authentication path `leaf` would have at the next position.
        Does not touch the frontier; call before commit().
        """
        self._check_leaf(leaf)
        siblings, nodes = self._branch(leaf)
        path = AuthPath(index=self._size, siblings=tuple(siblings), root=nodes[-1])
        self._auth_path = path
        return path

    def refresh_paths(self, leaf: bytes, paths: Sequence[AuthPath]) -> List[AuthPath]:
        """
        Bring earlier paths up to date with the root the tree will have
        once `leaf` is committed. Each path shares exactly one sibling with
        the new leaf's branch, at the highest bit where the positions differ.
        """
        if not paths:
            return []
        self._check_leaf(leaf)
        _, nodes = self._branch(leaf)
        position = self._size
        root = nodes[-1]
        refreshed = []
        for path in paths:
            level = (path.index ^ position).bit_length() - 1
            refreshed.append(path.with_sibling(level, nodes[level], root))
        return refreshed

    def commit(self, leaf: bytes) -> None:
        """Fold `leaf` into the frontier and advance to the next position"""
        self._check_leaf(leaf)
        position = self._size
        node = bytes(leaf)
        for level in range(self.depth):
            if (position >> level) & 1:
                node = self.hasher.combine(self._frontier[level], node)
            else:
                self._frontier[level] = node
                node = self.hasher.combine(node, self._zeros[level])
        self._root = node
        self._size += 1

    def verify(self, leaf: bytes, path: AuthPath) -> bool:
        """Check that `path` takes `leaf` to the root recorded in the path"""
        if path.depth != self.depth:
            return False
        return path.compute_root(bytes(leaf), self.hasher) == path.root

    def serialize(self, out: TextIO) -> None:
        out.write(f"{self.hasher.name} {self.depth} {self._size} "
                  f"{encode_digest(self._root)}\n")
        for node in self._frontier:
            out.write(encode_digest(node) + "\n")
        if self._auth_path is None:
            out.write(NO_PATH_MARKER + "\n")
        else:
            self._auth_path.serialize(out)

    def deserialize(self, inp: TextIO) -> None:
        """
        Restore state written by serialize(). Raises SerializationError and
        leaves the tree untouched when the input is malformed or was written
        for a different hash family or depth.
        """
        size_bytes = self.hasher.digest_size
        header = read_line(inp).split()
        if len(header) != 4:
            raise SerializationError("Malformed tree header")
        name, depth_text, size_text, root_text = header
        if name != self.hasher.name:
            raise SerializationError(
                f"Tree uses {name}, expected {self.hasher.name}"
            )
        depth = parse_count(depth_text, "tree depth")
        if depth != self.depth:
            raise SerializationError(f"Tree depth {depth}, expected {self.depth}")
        size = parse_count(size_text, "tree size")
        if size > self.capacity:
            raise SerializationError(f"Tree size {size} exceeds capacity {self.capacity}")
        root = decode_digest(root_text, size_bytes)

        frontier = [decode_digest(read_line(inp), size_bytes) for _ in range(self.depth)]

        line = read_line(inp)
        auth_path = None
        if line != NO_PATH_MARKER:
            auth_path = AuthPath.from_line(line, size_bytes)
            if auth_path.depth != self.depth:
                raise SerializationError("Authentication path depth mismatch")

        self._frontier = frontier
        self._size = size
        self._root = root
        self._auth_path = auth_path
        logger.debug("Restored %s tree depth=%d size=%d", name, depth, size)
