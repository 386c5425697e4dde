# src/lasclean/__init__.py
from __future__ import annotations

"""
lasclean

Well-log LAS conditioning: parse -> standardize -> validate -> condition -> validate.

Top-level names resolve lazily so `import lasclean.model` stays light.
"""

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "ProcessingOptions",
    "default_options",
    "load_options",
    "parse",
    "standardize",
    "assess",
    "run_pipeline",
    "run_logfile",
    "process_batch",
]

_LAZY = {
    "ProcessingOptions": "lasclean.config.schema",
    "default_options": "lasclean.config.defaults",
    "load_options": "lasclean.utils.config",
    "parse": "lasclean.io.las",
    "standardize": "lasclean.curves.standardize",
    "assess": "lasclean.qc.assess",
    "run_pipeline": "lasclean.pipeline.run",
    "run_logfile": "lasclean.pipeline.run",
    "process_batch": "lasclean.pipeline.batch",
}


def __getattr__(name: str) -> Any:
    mod = _LAZY.get(name)
    if mod is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(mod), name)
