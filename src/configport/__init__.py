"""Portable export and import of coding tool configuration."""

__version__ = "1.0.0"
