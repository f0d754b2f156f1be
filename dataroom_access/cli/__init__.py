"""Dataroom access CLI package."""

from dataroom_access import __version__

__all__ = ["__version__"]
