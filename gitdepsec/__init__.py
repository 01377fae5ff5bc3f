"""Dependency graph construction and streamed fix-plan aggregation."""

__version__ = "0.1.0"
