# src/lasclean/model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lasclean.curves.categories import CurveCategory

# Outliers for per-curve statistics: |x - mean| > OUTLIER_SIGMA * std
OUTLIER_SIGMA = 3.0
# |mean| below this makes the coefficient-of-variation noise level undefined
NOISE_MEAN_EPS = 1e-9


# =============================================================================
# Header
# =============================================================================

@dataclass(frozen=True)
class HeaderParameter:
    """One ~P (or unrecognised ~W) item: MNEM.UNIT VALUE : DESCRIPTION"""
    mnemonic: str
    unit: str = ""
    value: str = ""
    description: str = ""


@dataclass(frozen=True)
class WellHeader:
    """
    Explicit header schema, resolved at parse time.

    start/stop/step hold the values recomputed from the data rows; the
    declared_* fields keep what the file claimed.
    """
    version: str = "2.0"
    wrap: bool = False
    null_value: float = -999.25

    company: Optional[str] = None
    well: Optional[str] = None
    uwi: Optional[str] = None
    field: Optional[str] = None
    location: Optional[str] = None
    date: Optional[str] = None
    service_company: Optional[str] = None
    api: Optional[str] = None
    elevation: Optional[float] = None

    start_depth: Optional[float] = None
    stop_depth: Optional[float] = None
    step: Optional[float] = None
    depth_unit: str = ""

    declared_start: Optional[float] = None
    declared_stop: Optional[float] = None
    declared_step: Optional[float] = None

    parameters: Tuple[HeaderParameter, ...] = ()


# =============================================================================
# Curves
# =============================================================================

class CurveRole(str, Enum):
    DEPTH = "depth"
    MEASUREMENT = "measurement"


@dataclass(frozen=True)
class CurveStatistics:
    n_total: int
    n_valid: int
    null_count: int
    vmin: float
    vmax: float
    mean: float
    std: float
    outlier_count: int
    completeness: float          # percent of rows carrying a value
    noise_level: Optional[float]  # std / |mean| * 100; None when mean ~ 0
    noise_undefined: bool
    quality_score: float         # 0..100


def compute_statistics(values: Sequence[Optional[float]] | np.ndarray) -> CurveStatistics:
    """
    Statistics over one curve. Missing values (None/NaN) are counted, never used.
    """
    x = _as_float_array(values)
    n_total = int(x.size)
    fin = np.isfinite(x)
    n_valid = int(np.count_nonzero(fin))
    null_count = n_total - n_valid

    if n_valid == 0:
        return CurveStatistics(
            n_total=n_total,
            n_valid=0,
            null_count=null_count,
            vmin=float("nan"),
            vmax=float("nan"),
            mean=float("nan"),
            std=float("nan"),
            outlier_count=0,
            completeness=0.0,
            noise_level=None,
            noise_undefined=True,
            quality_score=0.0,
        )

    v = x[fin]
    mean = float(np.mean(v))
    std = float(np.std(v))
    outliers = int(np.count_nonzero(np.abs(v - mean) > OUTLIER_SIGMA * std)) if std > 0 else 0
    completeness = float(n_valid) / float(n_total) * 100.0

    if abs(mean) < NOISE_MEAN_EPS:
        noise: Optional[float] = None
        noise_undefined = True
        noise_penalty = 0.0
    else:
        noise = std / abs(mean) * 100.0
        noise_undefined = False
        noise_penalty = min(100.0, noise)

    score = 100.0 - (100.0 - completeness) - noise_penalty
    score = float(min(100.0, max(0.0, score)))

    return CurveStatistics(
        n_total=n_total,
        n_valid=n_valid,
        null_count=null_count,
        vmin=float(np.min(v)),
        vmax=float(np.max(v)),
        mean=mean,
        std=std,
        outlier_count=outliers,
        completeness=completeness,
        noise_level=noise,
        noise_undefined=noise_undefined,
        quality_score=score,
    )


@dataclass(frozen=True)
class Curve:
    mnemonic: str
    unit: str = ""
    description: str = ""
    role: CurveRole = CurveRole.MEASUREMENT
    category: CurveCategory = CurveCategory.GENERIC
    original_mnemonic: Optional[str] = None
    track: int = 1
    scale: str = "linear"
    color: str = "#3B82F6"
    statistics: Optional[CurveStatistics] = None

    @property
    def is_depth(self) -> bool:
        return self.role is CurveRole.DEPTH


# =============================================================================
# Rows + file
# =============================================================================

@dataclass(frozen=True)
class DataRow:
    """
    One depth sample. `values` has one entry per curve (depth curve included),
    in curve order. None is the missing marker.
    """
    depth: float
    values: Dict[str, Optional[float]] = field(default_factory=dict)


@dataclass(frozen=True)
class LogFile:
    filename: str
    header: WellHeader
    curves: Tuple[Curve, ...]
    rows: Tuple[DataRow, ...]

    # ---------------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------------

    @property
    def mnemonics(self) -> List[str]:
        return [c.mnemonic for c in self.curves]

    @property
    def depth_curve(self) -> Optional[Curve]:
        for c in self.curves:
            if c.is_depth:
                return c
        return None

    def measurement_curves(self) -> List[Curve]:
        return [c for c in self.curves if not c.is_depth]

    def get_curve(self, mnemonic: str) -> Optional[Curve]:
        for c in self.curves:
            if c.mnemonic == mnemonic:
                return c
        return None

    def depths(self) -> np.ndarray:
        return np.asarray([r.depth for r in self.rows], dtype="float64")

    def column(self, mnemonic: str) -> np.ndarray:
        """Curve values as float64 with NaN where the row is missing."""
        return _as_float_array([r.values.get(mnemonic) for r in self.rows])

    # ---------------------------------------------------------------------
    # Derivation (files are never mutated in place)
    # ---------------------------------------------------------------------

    def with_columns(self, columns: Mapping[str, np.ndarray]) -> "LogFile":
        """
        New LogFile with the given curves' values replaced. Statistics of the
        touched curves are recomputed.
        """
        if not columns:
            return self
        cols = {k: _as_float_array(v) for k, v in columns.items()}
        for k, v in cols.items():
            if self.get_curve(k) is None:
                raise KeyError(f"Unknown curve: {k}")
            if v.size != len(self.rows):
                raise ValueError(f"Column {k} has {v.size} values for {len(self.rows)} rows")

        rows: List[DataRow] = []
        for i, r in enumerate(self.rows):
            vals = dict(r.values)
            for k, v in cols.items():
                vals[k] = _to_optional(v[i])
            rows.append(DataRow(depth=r.depth, values=vals))

        curves = tuple(
            replace(c, statistics=compute_statistics(cols[c.mnemonic])) if c.mnemonic in cols else c
            for c in self.curves
        )
        return replace(self, curves=curves, rows=tuple(rows))

    def with_curves(self, curves: Sequence[Curve], *, renames: Optional[Mapping[str, str]] = None) -> "LogFile":
        """
        New LogFile with a replaced curve list. `renames` maps old -> new mnemonic
        for the row value keys; curve order is preserved.
        """
        if len(curves) != len(self.curves):
            raise ValueError("with_curves() expects one curve per existing curve")
        ren = dict(renames or {})
        if not ren:
            return replace(self, curves=tuple(curves))
        old_names = self.mnemonics
        new_names = [ren.get(m, m) for m in old_names]
        rows = tuple(
            DataRow(depth=r.depth, values={n: r.values.get(o) for o, n in zip(old_names, new_names)})
            for r in self.rows
        )
        return replace(self, curves=tuple(curves), rows=rows)

    def refresh_statistics(self) -> "LogFile":
        curves = tuple(replace(c, statistics=compute_statistics(self.column(c.mnemonic))) for c in self.curves)
        return replace(self, curves=curves)


# =============================================================================
# Helpers
# =============================================================================

def _as_float_array(values: Iterable[Optional[float]] | np.ndarray) -> np.ndarray:
    if isinstance(values, np.ndarray):
        return np.asarray(values, dtype="float64").reshape(-1)
    return np.asarray([np.nan if v is None else v for v in values], dtype="float64").reshape(-1)


def _to_optional(v: float) -> Optional[float]:
    f = float(v)
    return f if np.isfinite(f) else None
