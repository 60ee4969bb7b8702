"""
Command Line Interface for the commitment bundle
"""
import argparse
import sys
from typing import List, Optional

from .bundle import MerkleBundle
from .config import MAX_DEPTH, BundleConfig
from .storage import BundleStore
from .utils import HASHERS, encode_digest, init_logging
from .exceptions import BundleError


class BundleCLI:
    """Main CLI interface for a bundle stored on disk"""

    def __init__(self, config_path: Optional[str] = None, store_path: Optional[str] = None):
        self.config = BundleConfig(config_path)
        self.store = BundleStore(store_path or self.config.bundle_path)

    def _load_bundle(self) -> MerkleBundle:
        """Load the stored bundle or fail with a readable message"""
        if not self.store.exists():
            raise BundleError(
                f"No bundle at {self.store.bundle_path}. Run 'init' first."
            )
        corrupt = BundleError(f"Bundle at {self.store.bundle_path} is corrupt")

        # The stored header decides depth and hash; init may have overridden the config
        params = self.store.read_params()
        if params is None:
            raise corrupt
        hash_name, depth = params
        if hash_name not in HASHERS or depth > MAX_DEPTH:
            raise corrupt

        bundle = MerkleBundle(depth, hash_name)
        if not self.store.load(bundle):
            raise corrupt
        return bundle

    def _parse_leaf(self, bundle: MerkleBundle, text: str) -> bytes:
        try:
            leaf = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Leaf is not valid hex: {text}") from None
        if len(leaf) != bundle.hasher.digest_size:
            raise ValueError(
                f"Leaf must be {bundle.hasher.digest_size} bytes for {bundle.hash_name}, "
                f"got {len(leaf)}"
            )
        return leaf

    def init(self, force: bool = False, depth: Optional[int] = None,
             hash_name: Optional[str] = None) -> None:
        """
        Create an empty bundle at the configured path.
        `depth` and `hash_name` override the config values.
        """
        if self.store.exists() and not force:
            raise BundleError(
                f"Bundle already exists at {self.store.bundle_path} (use --force to overwrite)"
            )
        if depth is None:
            depth = self.config.depth
        if not 0 <= depth <= MAX_DEPTH:
            raise ValueError(f"Depth must be in [0, {MAX_DEPTH}], got {depth}")
        bundle = MerkleBundle(depth, hash_name or self.config.hash_name)
        self.store.save(bundle)
        print(f"Initialized bundle at: {self.store.bundle_path}")
        print(f"  Depth: {bundle.depth} (capacity {bundle.tree.capacity})")
        print(f"  Hash: {bundle.hash_name}")

    def add(self, leaf_hex: str, keep: bool = False) -> None:
        """Insert a hex-encoded leaf"""
        bundle = self._load_bundle()
        leaf = self._parse_leaf(bundle, leaf_hex)
        self._insert(bundle, leaf, keep)

    def add_data(self, text: str, keep: bool = False) -> None:
        """Insert the digest of a UTF-8 string"""
        bundle = self._load_bundle()
        leaf = bundle.hasher.digest(text.encode('utf-8'))
        self._insert(bundle, leaf, keep)

    def _insert(self, bundle: MerkleBundle, leaf: bytes, keep: bool) -> None:
        index = bundle.insert(leaf, keep=keep)
        self.store.save(bundle)
        print(f"✓ Leaf {encode_digest(leaf)} added at position {bundle.tree_size - 1}")
        if index is not None:
            print(f"  Retained path index: {index}")
        print(f"  Root: {encode_digest(bundle.root_hash())}")

    def prune(self, leaves: List[str]) -> None:
        """Drop retained paths for the listed leaves"""
        bundle = self._load_bundle()
        drop = {self._parse_leaf(bundle, text) for text in leaves}
        before = len(bundle.auth_leaf())
        bundle.cleanup(lambda cm: cm not in drop)
        self.store.save(bundle)
        print(f"Pruned {before - len(bundle.auth_leaf())} retained path(s), "
              f"{len(bundle.auth_leaf())} left")

    def info(self) -> None:
        """Show bundle summary"""
        bundle = self._load_bundle()
        print(f"Bundle: {self.store.bundle_path}")
        print(f"  Hash: {bundle.hash_name}")
        print(f"  Depth: {bundle.depth} (capacity {bundle.tree.capacity})")
        print(f"  Leaves: {bundle.tree_size}{' (full)' if bundle.is_full() else ''}")
        print(f"  Retained paths: {len(bundle.auth_leaf())}")
        if bundle.tree_size:
            print(f"  Root: {encode_digest(bundle.root_hash())}")
        else:
            print("  Root: -")

    def path(self, leaf_hex: str) -> None:
        """Print the retained authentication path for a leaf"""
        bundle = self._load_bundle()
        leaf = self._parse_leaf(bundle, leaf_hex)
        auth = bundle.path_for(leaf)
        if auth is None:
            raise BundleError(f"No retained path for leaf {leaf_hex}")
        print(f"Leaf position: {auth.index}")
        print(f"Root: {encode_digest(auth.root_hash())}")
        for level, sibling in enumerate(auth.siblings):
            print(f"  [{level:2d}] {encode_digest(sibling)}")

    def verify(self) -> bool:
        """Check every retained path against the current root"""
        bundle = self._load_bundle()
        leaves = bundle.auth_leaf()
        if not leaves:
            print("No retained paths to verify.")
            return True

        root = bundle.root_hash()
        failures = 0
        for cm, auth in zip(leaves, bundle.auth_path()):
            ok = bundle.tree.verify(cm, auth) and auth.root_hash() == root
            if not ok:
                failures += 1
            print(f"{'✓' if ok else '✗'} {encode_digest(cm)[:16]}... position {auth.index}")

        if failures:
            print(f"✗ {failures} of {len(leaves)} path(s) failed verification")
            return False
        print(f"✓ All {len(leaves)} retained path(s) match root {encode_digest(root)[:16]}...")
        return True

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main CLI entry point"""
        parser = argparse.ArgumentParser(
            description="Incremental Merkle commitment tree with retained authentication paths"
        )
        # Consumed by main() before the CLI is built; declared here for --help
        parser.add_argument("--config", default=None,
                            help="YAML config file (default: commitbundle.yaml)")
        parser.add_argument("--store", default=None,
                            help="Bundle file, overrides storage.path from the config")
        subparsers = parser.add_subparsers(dest="command", help="Command to execute")

        init_parser = subparsers.add_parser("init", help="Create an empty bundle")
        init_parser.add_argument("--depth", type=int, default=None,
                                 help="Tree depth (default from config)")
        init_parser.add_argument("--hash", dest="hash_name", choices=sorted(HASHERS), default=None,
                                 help="Hash algorithm (default from config)")
        init_parser.add_argument("--force", action="store_true", help="Overwrite an existing bundle")

        add_parser = subparsers.add_parser("add", help="Insert a hex-encoded leaf")
        add_parser.add_argument("leaf", help="Leaf digest in hex")
        add_parser.add_argument("--keep", action="store_true", help="Retain the authentication path")

        data_parser = subparsers.add_parser("add-data", help="Insert the hash of a string")
        data_parser.add_argument("text", help="Text to commit to")
        data_parser.add_argument("--keep", action="store_true", help="Retain the authentication path")

        prune_parser = subparsers.add_parser("prune", help="Drop retained paths")
        prune_parser.add_argument("leaves", nargs="+", help="Leaf digests in hex")

        subparsers.add_parser("info", help="Show bundle summary")

        path_parser = subparsers.add_parser("path", help="Show a retained path")
        path_parser.add_argument("leaf", help="Leaf digest in hex")

        subparsers.add_parser("verify", help="Verify retained paths against the root")

        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 0

        init_logging(self.config.log_level, self.config.log_file)

        try:
            if args.command == "init":
                self.init(args.force, args.depth, args.hash_name)
            elif args.command == "add":
                self.add(args.leaf, args.keep)
            elif args.command == "add-data":
                self.add_data(args.text, args.keep)
            elif args.command == "prune":
                self.prune(args.leaves)
            elif args.command == "info":
                self.info()
            elif args.command == "path":
                self.path(args.leaf)
            elif args.command == "verify":
                return 0 if self.verify() else 1
        except (BundleError, ValueError, OSError) as e:
            print(f"Error: {e}")
            return 1
        return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Console script entry point"""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", default=None)
    parser.add_argument("--store", default=None)
    known, _ = parser.parse_known_args(argv)
    try:
        cli = BundleCLI(known.config, known.store)
    except BundleError as e:
        print(f"Error: {e}")
        sys.exit(1)
    sys.exit(cli.run(argv))
