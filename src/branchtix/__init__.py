"""branchtix: tickets tracked on a dedicated branch of a git repository.

Example:
    >>> from branchtix import __version__
    >>> isinstance(__version__, str)
    True
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("branchtix")
except PackageNotFoundError:
    __version__ = "0.0.0"
