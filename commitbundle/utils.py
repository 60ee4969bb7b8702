"""
Utility functions for the commitment bundle
"""
import os
import hashlib
import logging
from logging.handlers import RotatingFileHandler
from typing import Callable, Dict, Optional, TextIO

from .exceptions import SerializationError

# Constants
DEFAULT_DEPTH = 20
DEFAULT_HASH = 'sha256'
LOGGER_NAME = 'commitbundle'


class Hasher:
    """A fixed-output digest family used to build the tree"""

    def __init__(self, name: str, factory: Callable):
        self.name = name
        self._factory = factory
        self.digest_size = factory().digest_size

    def digest(self, data: bytes) -> bytes:
        return self._factory(data).digest()

    def combine(self, left: bytes, right: bytes) -> bytes:
        """Parent node hash: H(left || right)"""
        return self._factory(left + right).digest()

    def empty_leaf(self) -> bytes:
        return bytes(self.digest_size)

    def __repr__(self) -> str:
        return f"Hasher({self.name!r})"


HASHERS: Dict[str, Hasher] = {
    'sha256': Hasher('sha256', hashlib.sha256),
    'sha512': Hasher('sha512', hashlib.sha512),
}


def get_hasher(name: str) -> Hasher:
    """Look up a registered digest family by name"""
    try:
        return HASHERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown hash algorithm: {name}. Must be one of {sorted(HASHERS)}"
        ) from None


def encode_digest(digest: bytes) -> str:
    return digest.hex()


def decode_digest(text: str, size: int) -> bytes:
    """Parse a hex digest of exactly `size` bytes"""
    try:
        digest = bytes.fromhex(text)
    except ValueError:
        raise SerializationError(f"Invalid hex digest: {text[:16]!r}") from None
    if len(digest) != size:
        raise SerializationError(
            f"Digest has {len(digest)} bytes, expected {size}"
        )
    return digest


def parse_count(text: str, what: str) -> int:
    """Parse a non-negative decimal integer from serialized state"""
    if not (text.isascii() and text.isdigit()):
        raise SerializationError(f"Invalid {what}: {text[:16]!r}")
    return int(text)


def read_line(inp: TextIO) -> str:
    """
    Read one newline-terminated record from a text stream.
    A missing terminator means the stream was truncated.
    """
    line = inp.readline()
    if not line.endswith('\n'):
        raise SerializationError("Unexpected end of stream")
    return line[:-1]


def ensure_dir(directory: str) -> None:
    """Ensure directory exists"""
    if directory:
        os.makedirs(directory, exist_ok=True)


# ---------------------------- logging ----------------------------

_LOG_INITIALIZED = False


def init_logging(level: str = "INFO", log_file: Optional[str] = None,
                 console: bool = True, max_bytes: int = 10 * 1024 * 1024,
                 backup_count: int = 5) -> logging.Logger:
    """
    Configure the package logger.

    :param level: log level name ("DEBUG", "INFO", "WARN", ...).
    :param log_file: optional rotating log file.
    :param console: also log to stderr.
    :param max_bytes: size at which the log file rolls over.
    :param backup_count: number of rolled files kept.
    """
    global _LOG_INITIALIZED
    logger = logging.getLogger(LOGGER_NAME)
    if _LOG_INITIALIZED:
        return logger

    log_level = to_logging_level(level)
    logger.setLevel(log_level)

    fmt = logging.Formatter(fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                            datefmt="%H:%M:%S")

    if log_file:
        ensure_dir(os.path.dirname(log_file))
        fh = RotatingFileHandler(log_file, maxBytes=max_bytes,
                                 backupCount=backup_count, encoding="utf-8")
        fh.setLevel(log_level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    if console:
        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    _LOG_INITIALIZED = True
    return logger


def to_logging_level(level: str) -> int:
    """Map a level name to the logging constant, defaulting to INFO"""
    level = (level or "INFO").upper()
    return {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }.get(level, logging.INFO)
