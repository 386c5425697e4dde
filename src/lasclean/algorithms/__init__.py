# src/lasclean/algorithms/__init__.py
from __future__ import annotations

"""
Per-curve conditioning operators. Each *_values function is pure over one
curve; each apply_* runs it over every measurement curve of a LogFile.
"""

from .baseline import apply_baseline, baseline_correct_values
from .common import CurveOutcome, StepOutcome
from .denoise import apply_denoise, denoise_values
from .despike import apply_despike, despike_values

__all__ = [
    "CurveOutcome",
    "StepOutcome",
    "apply_baseline",
    "apply_denoise",
    "apply_despike",
    "baseline_correct_values",
    "denoise_values",
    "despike_values",
]
