# src/lasclean/algorithms/common.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from lasclean.errors import AlgorithmError, Diagnostic

# Scales MAD to a standard-deviation estimate for Gaussian noise
MAD_SCALE = 1.4826
# MAD below this is treated as a flat window
MAD_EPS = 1e-12


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class CurveOutcome:
    """Result of one operator on one curve. `values` is None when the curve was skipped."""
    mnemonic: str
    success: bool
    values: Optional[np.ndarray] = None
    points_processed: int = 0
    spikes_detected: int = 0
    noise_reduction: Optional[float] = None  # percent, variance based
    message: str = ""


@dataclass
class StepOutcome:
    """Per-file result of a conditioning step."""
    algorithm: str
    columns: Dict[str, np.ndarray] = field(default_factory=dict)
    curves: List[CurveOutcome] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)

    @property
    def processed(self) -> List[str]:
        return [c.mnemonic for c in self.curves if c.success]

    @property
    def skipped(self) -> List[str]:
        return [c.mnemonic for c in self.curves if not c.success]

    @property
    def spikes_detected(self) -> int:
        return int(sum(c.spikes_detected for c in self.curves))


# =============================================================================
# Parameter checks (step-level failures)
# =============================================================================

def check_window(window_size: int, *, minimum: int = 3) -> int:
    try:
        w = int(window_size)
    except (TypeError, ValueError) as e:
        raise AlgorithmError(f"window_size must be an integer, got {window_size!r}", code="bad_parameter") from e
    if w < minimum:
        raise AlgorithmError(f"window_size must be >= {minimum}, got {w}", code="bad_parameter")
    if w % 2 == 0:
        raise AlgorithmError(f"window_size must be odd, got {w}", code="bad_parameter")
    return w


def check_method(method: str, allowed: Tuple[str, ...], what: str) -> str:
    m = str(method or "").strip().lower()
    if m not in allowed:
        raise AlgorithmError(
            f"Unknown {what} {method!r}; expected one of {', '.join(allowed)}",
            code="unknown_method",
        )
    return m


def require_length(n: int, window: int, curve: Optional[str]) -> None:
    """Per-curve failure: a window larger than the available samples."""
    if window > n:
        raise AlgorithmError(
            f"window size {window} exceeds available samples ({n})",
            code="window_too_large",
            curve=curve,
        )


# =============================================================================
# Array helpers
# =============================================================================

def as_values(values) -> np.ndarray:
    return np.asarray(values, dtype="float64").reshape(-1)


def finite_subsequence(x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """(indices, values) of the finite entries; missing samples never enter a window."""
    idx = np.flatnonzero(np.isfinite(x))
    return idx, x[idx]


def rolling_median_mad(x: np.ndarray, window: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Centered rolling median and raw MAD. The edges are NaN padded so each
    output point sees the same (truncated) neighbourhood a centered window would.
    """
    x = as_values(x)
    half = window // 2
    padded = np.pad(x, (half, half), mode="constant", constant_values=np.nan)
    win = sliding_window_view(padded, window)
    med = np.nanmedian(win, axis=1)
    mad = np.nanmedian(np.abs(win - med[:, None]), axis=1)
    return med, mad


def variance_reduction(before: np.ndarray, after: np.ndarray) -> Optional[float]:
    """Percent reduction of the first-difference variance (high-frequency content)."""
    b = np.diff(as_values(before))
    a = np.diff(as_values(after))
    if b.size < 2:
        return None
    vb = float(np.var(b))
    if vb <= 0.0:
        return 0.0
    return float((vb - float(np.var(a))) / vb * 100.0)
