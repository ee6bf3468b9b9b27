"""
geolens - decoding and querying GEO SOFT and Series Matrix files.
"""

from geolens.version import __version__

__all__ = ["__version__"]
