"""
Custom exceptions for the commitment bundle
"""

class BundleError(Exception):
    """Base exception for commitment bundle"""
    pass

class TreeFullError(BundleError):
    """Raised when a leaf is inserted into a tree at capacity"""
    pass

class SerializationError(BundleError):
    """Raised when serialized tree, path or bundle state cannot be parsed"""
    pass

class ConfigError(BundleError):
    """Raised when the configuration file is invalid"""
    pass
