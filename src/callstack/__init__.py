"""Flatten distributed-trace call trees into call stack display rows."""

__version__ = "0.1.0"
