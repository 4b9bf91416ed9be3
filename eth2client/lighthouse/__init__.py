"""Lighthouse legacy REST adapter."""

from .client import LighthouseClient

__all__ = ["LighthouseClient"]
