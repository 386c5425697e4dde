# src/lasclean/algorithms/denoise.py
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pywt
from scipy.ndimage import gaussian_filter1d, uniform_filter1d
from scipy.signal import savgol_filter

from lasclean.config.schema import DenoiseConfig
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

METHODS = ("savitzky_golay", "moving_average", "gaussian", "wavelet")

# Points further than this many scaled MADs from the local median are kept as-is
# when preserve_spikes is set
EXCURSION_K = 3.0
# Gaussian sigma as a fraction of the window (window ~ +/- 3 sigma)
GAUSS_SIGMA_FRAC = 1.0 / 6.0
# Wavelet decomposition depth cap
WAVELET_MAX_LEVEL = 4


def validate_config(cfg: DenoiseConfig) -> str:
    """Step-level parameter checks; returns the normalised method name."""
    method = check_method(cfg.method, METHODS, "denoise method")
    w = check_window(cfg.window_size)
    if method == "savitzky_golay":
        order = int(cfg.polynomial_order)
        if order < 0 or order >= w:
            raise AlgorithmError(
                f"polynomial_order must be in [0, window_size), got {order} for window {w}",
                code="bad_parameter",
            )
    s = float(cfg.strength)
    if not (0.0 <= s <= 1.0):
        raise AlgorithmError(f"strength must be within [0, 1], got {s}", code="bad_parameter")
    if method == "wavelet" and str(cfg.wavelet) not in pywt.wavelist(kind="discrete"):
        raise AlgorithmError(f"Unknown discrete wavelet {cfg.wavelet!r}", code="bad_parameter")
    return method


def excursion_mask(v: np.ndarray, window: int) -> np.ndarray:
    """
    Genuine large excursions: deviation from the local median beyond
    EXCURSION_K scaled MADs. Flat windows flag any non-zero deviation.
    """
    med, mad = rolling_median_mad(v, window)
    spread = MAD_SCALE * mad
    dev = np.abs(v - med)
    flat = spread <= MAD_EPS
    return np.where(flat, dev > MAD_EPS, dev > EXCURSION_K * spread)


def wavelet_shrink(v: np.ndarray, wavelet: str = "haar") -> np.ndarray:
    """
    VisuShrink: soft-threshold every detail band at the universal threshold
    sigma * sqrt(2 ln n), sigma estimated from the finest band's MAD.
    """
    n = int(v.size)
    w = pywt.Wavelet(wavelet)
    level = min(pywt.dwt_max_level(n, w.dec_len), WAVELET_MAX_LEVEL)
    if level < 1:
        return v.copy()

    coeffs = pywt.wavedec(v, w, mode="symmetric", level=level)
    finest = coeffs[-1]
    sigma = float(np.median(np.abs(finest - np.median(finest)))) / 0.6745
    thr = sigma * np.sqrt(2.0 * np.log(n))

    shrunk = [coeffs[0]] + [pywt.threshold(c, thr, mode="soft") for c in coeffs[1:]]
    return pywt.waverec(shrunk, w, mode="symmetric")[:n]


def _fit(v: np.ndarray, method: str, window: int, order: int, wavelet: str = "haar") -> np.ndarray:
    if method == "wavelet":
        return wavelet_shrink(v, wavelet)
    if method == "savitzky_golay":
        return savgol_filter(v, window_length=window, polyorder=order, mode="interp")
    if method == "moving_average":
        return uniform_filter1d(v, size=window, mode="nearest")
    if method == "gaussian":
        return gaussian_filter1d(v, sigma=max(window * GAUSS_SIGMA_FRAC, 1e-6), mode="nearest")
    raise AlgorithmError(f"Unknown denoise method {method!r}", code="unknown_method")


def denoise_values(
    values: np.ndarray,
    cfg: Optional[DenoiseConfig] = None,
    *,
    curve: Optional[str] = None,
) -> np.ndarray:
    """
    Smooth one curve.

    Missing samples are dropped before filtering and stay missing in the output;
    the filter runs over the remaining samples in order.

        out = (1 - strength) * original + strength * fitted

    With preserve_spikes, excursions are replaced by the local median before
    fitting (so they do not smear into their neighbours) and restored afterwards.
    """
    cfg = cfg or DenoiseConfig()
    method = validate_config(cfg)
    w = int(cfg.window_size)
    s = float(cfg.strength)

    x = as_values(values)
    idx, v = finite_subsequence(x)
    require_length(int(v.size), w, curve)

    keep = np.zeros(v.shape, dtype=bool)
    v_in = v
    if bool(cfg.preserve_spikes):
        keep = excursion_mask(v, w)
        if keep.any():
            med, _mad = rolling_median_mad(v, w)
            v_in = np.where(keep, med, v)

    fitted = _fit(v_in, method, w, int(cfg.polynomial_order), str(cfg.wavelet))
    blended = (1.0 - s) * v + s * fitted
    blended[keep] = v[keep]

    out = x.copy()
    out[idx] = blended
    return out


def apply_denoise(file: LogFile, cfg: Optional[DenoiseConfig] = None) -> StepOutcome:
    """
    Denoise every measurement curve. Invalid parameters raise AlgorithmError
    (the whole step fails); a curve that is too short is skipped with a warning.
    """
    cfg = cfg or DenoiseConfig()
    method = validate_config(cfg)
    out = StepOutcome(algorithm=method)

    for c in file.measurement_curves():
        x = file.column(c.mnemonic)
        n = int(np.count_nonzero(np.isfinite(x)))
        if n == 0:
            out.curves.append(CurveOutcome(mnemonic=c.mnemonic, success=False, message="no data"))
            continue
        try:
            y = denoise_values(x, cfg, curve=c.mnemonic)
        except AlgorithmError as e:
            if e.code == "bad_parameter" or e.code == "unknown_method":
                raise
            out.curves.append(CurveOutcome(mnemonic=c.mnemonic, success=False, message=str(e)))
            out.warnings.append(algorithm_warning(e.code, f"denoise skipped {c.mnemonic}: {e}", curve=c.mnemonic))
            continue

        out.columns[c.mnemonic] = y
        fin = np.isfinite(x)
        out.curves.append(
            CurveOutcome(
                mnemonic=c.mnemonic,
                success=True,
                values=y,
                points_processed=n,
                noise_reduction=variance_reduction(x[fin], y[fin]),
            )
        )

    log.debug("%s: denoise(%s) on %d curve(s), %d skipped", file.filename, method, len(out.processed), len(out.skipped))
    return out
