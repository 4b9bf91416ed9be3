"""Chain constants and wire containers."""

from . import constants

__all__ = ["constants"]
