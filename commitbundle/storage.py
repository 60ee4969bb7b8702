"""
File persistence for a commitment bundle
"""
import os
import logging
from typing import Optional, Tuple

from .bundle import MerkleBundle
from .utils import ensure_dir

logger = logging.getLogger(__name__)


class BundleStore:
    """Stores one serialized bundle at a fixed path"""

    def __init__(self, bundle_path: str):
        self.bundle_path = os.path.abspath(bundle_path)

    def exists(self) -> bool:
        return os.path.exists(self.bundle_path)

    def save(self, bundle: MerkleBundle) -> None:
        """
        Write bundle to disk.
        Write to temp file first, then rename atomically
        """
        ensure_dir(os.path.dirname(self.bundle_path))
        temp_path = self.bundle_path + ".tmp"
        with open(temp_path, 'w', encoding='ascii', newline='\n') as f:
            bundle.serialize(f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, self.bundle_path)
        logger.info("Saved bundle (%d leaves, %d retained) to %s",
                    bundle.tree_size, len(bundle.auth_leaf()), self.bundle_path)

    def load(self, bundle: MerkleBundle) -> bool:
        """
        Read the stored state into `bundle`.
        Returns False (with `bundle` cleared) if the file is missing or corrupt.
        """
        if not self.exists():
            logger.warning("No bundle stored at %s", self.bundle_path)
            bundle.clear()
            return False

        with open(self.bundle_path, 'r', encoding='ascii', errors='replace', newline='\n') as f:
            ok = bundle.deserialize(f)

        if not ok:
            logger.error("Stored bundle at %s is corrupt", self.bundle_path)
        return ok

    def read_params(self) -> Optional[Tuple[str, int]]:
        """
        Hash family and depth from the stored tree header.
        Returns None if the file is missing or the header is unreadable.
        """
        if not self.exists():
            return None
        with open(self.bundle_path, 'r', encoding='ascii', errors='replace', newline='\n') as f:
            header = f.readline().split()
        if len(header) < 2 or not (header[1].isascii() and header[1].isdigit()):
            return None
        return header[0], int(header[1])

    def delete(self) -> None:
        if self.exists():
            os.remove(self.bundle_path)
