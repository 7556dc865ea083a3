"""Name helpers for display rows."""
from __future__ import annotations

from typing import Optional


def simple_exception_name(exception_class: Optional[str]) -> str:
    """Strip the package from a fully qualified exception class name.

    ``"com.example.FooException"`` becomes ``"FooException"``; a name with no
    ``.`` is returned as is, and a missing name becomes ``""``.
    """
    if not exception_class:
        return ""
    _, _, simple = exception_class.rpartition(".")
    return simple
