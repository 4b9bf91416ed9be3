"""Teku legacy REST adapter."""

from .client import TekuClient

__all__ = ["TekuClient"]
