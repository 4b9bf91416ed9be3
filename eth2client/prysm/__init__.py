"""Prysm JSON gateway adapter."""

from .client import PrysmClient

__all__ = ["PrysmClient"]
