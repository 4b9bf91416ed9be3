"""Standard beacon node API adapter."""

from .client import StandardClient

__all__ = ["StandardClient"]
