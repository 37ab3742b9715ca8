"""Version information for :mod:`sparqlgate`."""

__all__ = ["VERSION"]

VERSION = "0.3.0"
