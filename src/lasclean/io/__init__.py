# src/lasclean/io/__init__.py
from __future__ import annotations

"""
LAS decoding and result export.

export pulls in pandas/lasio, so it is resolved lazily.
"""

from importlib import import_module
from typing import Any

from .las import ParseResult, is_wrapped_las, parse, read_las_bytes, read_las_path

__all__ = [
    "ParseResult",
    "is_wrapped_las",
    "parse",
    "read_las_bytes",
    "read_las_path",
    "to_dataframe",
    "to_las_text",
    "write_report_json",
]


def __getattr__(name: str) -> Any:
    if name in ("to_dataframe", "to_las_text", "write_report_json"):
        m = import_module("lasclean.io.export")
        return getattr(m, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
