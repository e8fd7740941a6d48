"""Persistent stores used by ao_coverage."""

from .metadata import HeadLookup, Metadata, connect

__all__ = ["HeadLookup", "Metadata", "connect"]
