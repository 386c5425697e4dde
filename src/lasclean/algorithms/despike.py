# src/lasclean/algorithms/despike.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy.interpolate import PchipInterpolator

from lasclean.config.schema import DespikeConfig
from lasclean.errors import AlgorithmError, algorithm_warning
from lasclean.model import LogFile

from .common import (
    MAD_EPS,
    MAD_SCALE,
    CurveOutcome,
    StepOutcome,
    as_values,
    check_method,
    check_window,
    finite_subsequence,
    require_length,
    rolling_median_mad,
    variance_reduction,
)

log = logging.getLogger(__name__)

METHODS = ("hampel", "modified_zscore", "iqr")
REPLACEMENTS = ("pchip", "linear", "median", "null")

# Iglewicz-Hoaglin constant for the modified z-score
MODIFIED_Z_K = 0.6745


def validate_config(cfg: DespikeConfig) -> Tuple[str, str]:
    method = check_method(cfg.method, METHODS, "despike method")
    repl = check_method(cfg.replacement_method, REPLACEMENTS, "replacement method")
    check_window(cfg.window_size)
    if not (float(cfg.threshold) > 0.0):
        raise AlgorithmError(f"threshold must be > 0, got {cfg.threshold}", code="bad_parameter")
    return method, repl


# =============================================================================
# Detection
# =============================================================================

def _flag_hampel(v: np.ndarray, window: int, threshold: float) -> np.ndarray:
    med, mad = rolling_median_mad(v, window)
    spread = MAD_SCALE * mad
    dev = np.abs(v - med)
    return np.where(spread <= MAD_EPS, dev > MAD_EPS, dev > threshold * spread)


def _flag_modified_z(v: np.ndarray, threshold: float) -> np.ndarray:
    med = float(np.median(v))
    mad = float(np.median(np.abs(v - med)))
    dev = np.abs(v - med)
    if mad <= MAD_EPS:
        return dev > MAD_EPS
    return MODIFIED_Z_K * dev / mad > threshold


def _flag_iqr(v: np.ndarray, threshold: float) -> np.ndarray:
    q1, q3 = np.percentile(v, [25.0, 75.0])
    iqr = float(q3 - q1)
    return (v < q1 - threshold * iqr) | (v > q3 + threshold * iqr)


def detect_spikes(v: np.ndarray, method: str, window: int, threshold: float) -> np.ndarray:
    """Boolean mask over a gap-free sequence."""
    if method == "hampel":
        return _flag_hampel(v, window, threshold)
    if method == "modified_zscore":
        return _flag_modified_z(v, threshold)
    if method == "iqr":
        return _flag_iqr(v, threshold)
    raise AlgorithmError(f"Unknown despike method {method!r}", code="unknown_method")


# =============================================================================
# Replacement
# =============================================================================

def _positions(depth: Optional[np.ndarray], idx: np.ndarray) -> np.ndarray:
    """Depth of each kept sample when depth is strictly monotonic, else its position."""
    if depth is not None:
        d = as_values(depth)[idx]
        if d.size >= 2 and np.all(np.isfinite(d)):
            dd = np.diff(d)
            if np.all(dd > 0):
                return d
            if np.all(dd < 0):
                return -d
    return idx.astype("float64")


def _replace(
    v: np.ndarray,
    flagged: np.ndarray,
    pos: np.ndarray,
    replacement: str,
    window: int,
    curve: Optional[str],
) -> np.ndarray:
    out = v.copy()
    if replacement == "null":
        out[flagged] = np.nan
        return out
    if replacement == "median":
        med, _mad = rolling_median_mad(np.where(flagged, np.nan, v), window)
        fill = np.where(np.isfinite(med), med, np.nanmedian(v[~flagged]) if (~flagged).any() else np.nan)
        out[flagged] = fill[flagged]
        return out

    good = ~flagged
    if int(np.count_nonzero(good)) < 2:
        raise AlgorithmError("fewer than two unflagged samples to interpolate from", code="degenerate", curve=curve)

    xg = pos[good]
    vg = v[good]
    xq = pos[flagged]
    # np.interp clamps to the end values outside the good range
    lin = np.interp(xq, xg, vg)
    if replacement == "linear":
        out[flagged] = lin
        return out

    r = PchipInterpolator(xg, vg, extrapolate=False)(xq)
    out[flagged] = np.where(np.isfinite(r), r, lin)
    return out


def despike_values(
    values: np.ndarray,
    cfg: Optional[DespikeConfig] = None,
    *,
    depth: Optional[np.ndarray] = None,
    curve: Optional[str] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Detect and replace single-point outliers in one curve.

    Returns:
      - new values (missing samples stay missing)
      - indices (into `values`) of the samples flagged as spikes

    Unflagged samples are returned bit-for-bit unchanged.
    """
    cfg = cfg or DespikeConfig()
    method, repl = validate_config(cfg)
    w = int(cfg.window_size)

    x = as_values(values)
    idx, v = finite_subsequence(x)
    require_length(int(v.size), w, curve)

    flagged = detect_spikes(v, method, w, float(cfg.threshold))
    out = x.copy()
    if not flagged.any():
        return out, np.array([], dtype=int)

    pos = _positions(depth, idx)
    out[idx] = _replace(v, flagged, pos, repl, w, curve)
    return out, idx[flagged]


def apply_despike(file: LogFile, cfg: Optional[DespikeConfig] = None) -> StepOutcome:
    cfg = cfg or DespikeConfig()
    method, _repl = validate_config(cfg)
    out = StepOutcome(algorithm=method)
    depth = file.depths()

    for c in file.measurement_curves():
        x = file.column(c.mnemonic)
        n = int(np.count_nonzero(np.isfinite(x)))
        if n == 0:
            out.curves.append(CurveOutcome(mnemonic=c.mnemonic, success=False, message="no data"))
            continue
        try:
            y, spikes = despike_values(x, cfg, depth=depth, curve=c.mnemonic)
        except AlgorithmError as e:
            if e.code == "bad_parameter" or e.code == "unknown_method":
                raise
            out.curves.append(CurveOutcome(mnemonic=c.mnemonic, success=False, message=str(e)))
            out.warnings.append(algorithm_warning(e.code, f"despike skipped {c.mnemonic}: {e}", curve=c.mnemonic))
            continue

        if spikes.size:
            out.columns[c.mnemonic] = y
        both = np.isfinite(x) & np.isfinite(y)
        out.curves.append(
            CurveOutcome(
                mnemonic=c.mnemonic,
                success=True,
                values=y,
                points_processed=n,
                spikes_detected=int(spikes.size),
                noise_reduction=variance_reduction(x[both], y[both]),
            )
        )

    log.debug("%s: despike(%s) replaced %d spike(s)", file.filename, method, out.spikes_detected)
    return out
