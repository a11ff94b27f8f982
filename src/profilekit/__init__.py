"""Identity and attribute conflict resolution for unified customer profiles."""

from __future__ import annotations

from importlib import metadata

try:
    __version__ = metadata.version("profilekit")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+local"

__all__ = ["__version__"]
