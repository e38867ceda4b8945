"""Version information for :mod:`waterfeatures`."""

__all__ = [
    "VERSION",
]

VERSION = "0.1.0"
