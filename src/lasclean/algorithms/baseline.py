# src/lasclean/algorithms/baseline.py
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from numpy.polynomial import Polynomial

from lasclean.config.schema import BaselineConfig
from lasclean.errors import AlgorithmError, algorithm_warning
from lasclean.model import LogFile

from .common import CurveOutcome, StepOutcome, as_values, check_method

log = logging.getLogger(__name__)

METHODS = ("polynomial",)
MAX_ORDER = 10


def validate_config(cfg: BaselineConfig) -> str:
    method = check_method(cfg.method, METHODS, "baseline method")
    order = int(cfg.polynomial_order)
    if order < 0 or order > MAX_ORDER:
        raise AlgorithmError(f"polynomial_order must be in [0, {MAX_ORDER}], got {order}", code="bad_parameter")
    return method


def baseline_correct_values(
    values: np.ndarray,
    depth: np.ndarray,
    cfg: Optional[BaselineConfig] = None,
    *,
    curve: Optional[str] = None,
) -> np.ndarray:
    """
    Fit a polynomial of cfg.polynomial_order against depth and subtract it.
    The result is centred on zero unless restore_mean adds back the fit's mean.
    """
    cfg = cfg or BaselineConfig()
    validate_config(cfg)
    order = int(cfg.polynomial_order)

    x = as_values(values)
    d = as_values(depth)
    if d.size != x.size:
        raise AlgorithmError(f"depth has {d.size} samples for {x.size} values", code="degenerate", curve=curve)

    ok = np.isfinite(x) & np.isfinite(d)
    n = int(np.count_nonzero(ok))
    if n <= order:
        raise AlgorithmError(
            f"need more than {order} samples for an order-{order} fit, have {n}",
            code="degenerate",
            curve=curve,
        )
    if float(np.ptp(d[ok])) <= 0.0:
        raise AlgorithmError("depth range is zero", code="degenerate", curve=curve)

    # Polynomial.fit maps depth onto [-1, 1] internally, which keeps high orders stable
    poly = Polynomial.fit(d[ok], x[ok], deg=order)
    trend = poly(d[ok])

    out = x.copy()
    corrected = x[ok] - trend
    if bool(cfg.restore_mean):
        corrected = corrected + float(np.mean(trend))
    out[ok] = corrected
    return out


def apply_baseline(file: LogFile, cfg: Optional[BaselineConfig] = None) -> StepOutcome:
    cfg = cfg or BaselineConfig()
    method = validate_config(cfg)
    out = StepOutcome(algorithm=f"{method}_baseline")
    depth = file.depths()

    for c in file.measurement_curves():
        x = file.column(c.mnemonic)
        try:
            y = baseline_correct_values(x, depth, cfg, curve=c.mnemonic)
        except AlgorithmError as e:
            out.curves.append(CurveOutcome(mnemonic=c.mnemonic, success=False, message=str(e)))
            out.warnings.append(algorithm_warning(e.code, f"baseline skipped {c.mnemonic}: {e}", curve=c.mnemonic))
            continue
        out.columns[c.mnemonic] = y
        out.curves.append(
            CurveOutcome(
                mnemonic=c.mnemonic,
                success=True,
                values=y,
                points_processed=int(np.count_nonzero(np.isfinite(x))),
            )
        )

    log.debug("%s: baseline correction on %d curve(s)", file.filename, len(out.processed))
    return out
