# src/lasclean/qc/assess.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lasclean.config.schema import ValidationConfig
from lasclean.curves.standardize import mapping_statistics, norm_mnemonic
from lasclean.errors import Diagnostic, validation_warning
from lasclean.model import LogFile

log = logging.getLogger(__name__)

# Depth deltas may deviate from the nominal step by this fraction
DEPTH_STEP_TOL = 0.10

# Recommendation thresholds
NOISE_RECOMMEND = 20.0
SCORE_RECOMMEND = 70.0
MIN_ROWS_RECOMMEND = 100
LOW_COMPLETENESS = 50.0

# Overall score penalties (each capped)
NOISE_WEIGHT = 0.25
NOISE_PENALTY_CAP = 30.0
RANGE_PENALTY_CAP = 30.0
DEPTH_PENALTY = 10.0

# Cross-curve checks: expected Pearson r between canonical pairs
EXPECTED_CORRELATIONS: Tuple[Tuple[str, str, float], ...] = (
    ("GR", "NPHI", 0.3),
    ("NPHI", "RHOB", -0.7),
    ("GR", "RHOB", -0.4),
)
CORRELATION_TOL = 0.8
MIN_PAIRS = 10

GRADES: Tuple[Tuple[float, str], ...] = ((90.0, "A"), (75.0, "B"), (60.0, "C"), (50.0, "D"))


# =============================================================================
# Result records
# =============================================================================

@dataclass(frozen=True)
class CurveQuality:
    mnemonic: str
    completeness: float
    noise_level: Optional[float]
    noise_undefined: bool
    outliers: int
    range_failures: int
    quality_score: float
    grade: str
    issues: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MnemonicSummary:
    standard: str
    total: int
    standardized: int
    non_standard: Tuple[str, ...]
    coverage: float


@dataclass(frozen=True)
class PhysicalValidation:
    checked: int = 0
    passed: int = 0
    failed: int = 0
    failures_by_curve: Dict[str, int] = field(default_factory=dict)
    warnings: Tuple[Diagnostic, ...] = ()


@dataclass(frozen=True)
class QCResult:
    """One QC pass over one LogFile. A new record is produced per phase."""
    total_points: int
    null_points: int
    spikes_detected: int
    noise_level: float
    depth_consistency: bool
    curve_quality: Dict[str, CurveQuality]
    mnemonic_summary: MnemonicSummary
    physical_validation: PhysicalValidation
    cross_validation: Tuple[Diagnostic, ...]
    overall_score: float
    grade: str
    recommendations: Tuple[str, ...]
    warnings: Tuple[Diagnostic, ...] = ()


# =============================================================================
# Checks
# =============================================================================

def check_depth_consistency(depths: Sequence[float] | np.ndarray) -> Tuple[bool, Optional[Diagnostic]]:
    """
    Compare each consecutive delta to the nominal (first) step; stop at the
    first delta off by more than DEPTH_STEP_TOL of the nominal step.
    """
    d = np.asarray(depths, dtype="float64").reshape(-1)
    if d.size < 2:
        return True, None
    dd = np.diff(d)
    step = float(dd[0])
    if step == 0.0 or not np.isfinite(step):
        return False, validation_warning(
            "depth_inconsistent", "Nominal depth step is zero; depth index is not monotonic", depth=float(d[0])
        )
    tol = abs(step) * DEPTH_STEP_TOL
    bad = np.flatnonzero(~(np.abs(dd - step) <= tol))
    if bad.size == 0:
        return True, None
    i = int(bad[0])
    return False, validation_warning(
        "depth_inconsistent",
        f"Depth step {float(dd[i]):g} at depth {float(d[i + 1]):g} deviates from nominal step {step:g}",
        depth=float(d[i + 1]),
    )


def validate_physical_ranges(
    file: LogFile,
    ranges: Mapping[str, Tuple[float, float]],
    *,
    max_warnings: int = 500,
) -> PhysicalValidation:
    """
    Every present value of a curve with a configured range either passes or
    counts one failure. Each failure gets a warning naming curve, value and depth
    (capped at max_warnings, then one summary line).
    """
    depth = file.depths()
    checked = 0
    failed = 0
    by_curve: Dict[str, int] = {}
    warnings: List[Diagnostic] = []

    for c in file.measurement_curves():
        rng = ranges.get(norm_mnemonic(c.mnemonic))
        if rng is None:
            continue
        lo, hi = float(rng[0]), float(rng[1])
        x = file.column(c.mnemonic)
        fin = np.isfinite(x)
        bad = fin & ((x < lo) | (x > hi))
        n_checked = int(np.count_nonzero(fin))
        n_bad = int(np.count_nonzero(bad))
        checked += n_checked
        failed += n_bad
        if n_bad:
            by_curve[c.mnemonic] = n_bad
        for i in np.flatnonzero(bad):
            if len(warnings) >= max_warnings:
                break
            warnings.append(
                validation_warning(
                    "out_of_range",
                    f"{c.mnemonic} value {float(x[i]):g} at depth {float(depth[i]):g} outside [{lo:g}, {hi:g}]",
                    curve=c.mnemonic,
                    depth=float(depth[i]),
                )
            )

    if failed > len(warnings):
        warnings.append(
            validation_warning("out_of_range", f"{failed - len(warnings)} further out-of-range value(s) not listed")
        )
    return PhysicalValidation(
        checked=checked,
        passed=checked - failed,
        failed=failed,
        failures_by_curve=by_curve,
        warnings=tuple(warnings),
    )


def cross_validate(file: LogFile) -> List[Diagnostic]:
    """Pearson r of known curve pairs against their expected sign and strength."""
    by_canon: Dict[str, str] = {}
    for c in file.measurement_curves():
        by_canon.setdefault(norm_mnemonic(c.mnemonic), c.mnemonic)

    out: List[Diagnostic] = []
    for a, b, expected in EXPECTED_CORRELATIONS:
        ma, mb = by_canon.get(a), by_canon.get(b)
        if ma is None or mb is None:
            continue
        xa = file.column(ma)
        xb = file.column(mb)
        both = np.isfinite(xa) & np.isfinite(xb)
        if int(np.count_nonzero(both)) < MIN_PAIRS:
            continue
        va, vb = xa[both], xb[both]
        if float(np.std(va)) == 0.0 or float(np.std(vb)) == 0.0:
            continue
        r = float(np.corrcoef(va, vb)[0, 1])
        if abs(r - expected) > CORRELATION_TOL:
            out.append(
                validation_warning(
                    "unexpected_correlation",
                    f"{ma}/{mb} correlation {r:.2f} is far from the expected {expected:+.1f}",
                    curve=ma,
                )
            )
    return out


def quality_grade(score: float) -> str:
    for cutoff, letter in GRADES:
        if score >= cutoff:
            return letter
    return "F"


def overall_quality_score(
    completeness: float,
    noise_level: float,
    range_checked: int,
    range_failed: int,
    depth_consistent: bool,
) -> float:
    """
    Mean completeness minus capped penalties for noise, range failures and an
    inconsistent depth index, clipped to [0, 100].
    """
    score = float(completeness)
    score -= min(NOISE_PENALTY_CAP, NOISE_WEIGHT * max(0.0, float(noise_level)))
    if range_checked > 0:
        score -= min(RANGE_PENALTY_CAP, 100.0 * float(range_failed) / float(range_checked))
    if not depth_consistent:
        score -= DEPTH_PENALTY
    return float(min(100.0, max(0.0, score)))


def recommendations(
    *,
    noise_level: float,
    depth_consistent: bool,
    overall_score: float,
    n_rows: int,
    range_failed: int,
) -> List[str]:
    out: List[str] = []
    if noise_level > NOISE_RECOMMEND:
        out.append("High noise level detected; consider applying denoising")
    if not depth_consistent:
        out.append("Depth sampling is inconsistent; review depth alignment")
    if overall_score < SCORE_RECOMMEND:
        out.append("Overall data quality is low; review the data source")
    if n_rows < MIN_ROWS_RECOMMEND:
        out.append("Limited data points; results may not be statistically significant")
    if range_failed > 0:
        out.append("Values outside physical ranges; check curve units and tool calibration")
    return out


# =============================================================================
# Entry point
# =============================================================================

def assess(
    file: LogFile,
    cfg: Optional[ValidationConfig] = None,
    *,
    standard: str = "api",
) -> QCResult:
    """
    QC pass over a LogFile. Findings never raise; they land in the result.
    With cfg.enabled False only statistics, depth consistency and scoring run.
    """
    cfg = cfg or ValidationConfig()
    warnings: List[Diagnostic] = []
    curve_quality: Dict[str, CurveQuality] = {}

    consistent, depth_diag = check_depth_consistency(file.depths())
    if depth_diag is not None:
        warnings.append(depth_diag)

    if cfg.enabled:
        phys = validate_physical_ranges(file, cfg.physical_ranges, max_warnings=int(cfg.max_range_warnings))
        xval = tuple(cross_validate(file)) if cfg.cross_validation else ()
    else:
        phys = PhysicalValidation()
        xval = ()
    warnings.extend(phys.warnings)
    warnings.extend(xval)

    completeness: List[float] = []
    noises: List[float] = []
    null_points = 0
    spikes = 0
    for c in file.measurement_curves():
        st = c.statistics
        if st is None:
            continue
        null_points += st.null_count
        if cfg.flag_outliers:
            spikes += st.outlier_count
        completeness.append(st.completeness)
        if st.noise_level is not None:
            noises.append(st.noise_level)

        issues: List[str] = []
        if st.completeness < LOW_COMPLETENESS:
            issues.append(f"low completeness ({st.completeness:.1f}%)")
            warnings.append(
                validation_warning(
                    "low_completeness", f"{c.mnemonic} is only {st.completeness:.1f}% complete", curve=c.mnemonic
                )
            )
        if st.noise_undefined and st.n_valid > 0:
            issues.append("noise undefined (mean near zero)")
        elif st.noise_level is not None and st.noise_level > NOISE_RECOMMEND:
            issues.append(f"high noise ({st.noise_level:.1f}%)")
        n_range = phys.failures_by_curve.get(c.mnemonic, 0)
        if n_range:
            issues.append(f"{n_range} value(s) outside physical range")
        if cfg.flag_outliers and st.outlier_count:
            issues.append(f"{st.outlier_count} outlier(s)")

        curve_quality[c.mnemonic] = CurveQuality(
            mnemonic=c.mnemonic,
            completeness=st.completeness,
            noise_level=st.noise_level,
            noise_undefined=st.noise_undefined,
            outliers=st.outlier_count,
            range_failures=n_range,
            quality_score=st.quality_score,
            grade=quality_grade(st.quality_score),
            issues=tuple(issues),
        )

    mean_completeness = float(np.mean(completeness)) if completeness else 0.0
    noise = float(np.mean(noises)) if noises else 0.0
    score = overall_quality_score(mean_completeness, noise, phys.checked, phys.failed, consistent)

    ms = mapping_statistics(file, standard)
    summary = MnemonicSummary(
        standard=standard,
        total=int(ms["total"]),  # type: ignore[arg-type]
        standardized=int(ms["standardized"]),  # type: ignore[arg-type]
        non_standard=tuple(ms["non_standard"]),  # type: ignore[arg-type]
        coverage=float(ms["coverage"]),  # type: ignore[arg-type]
    )

    recs = recommendations(
        noise_level=noise,
        depth_consistent=consistent,
        overall_score=score,
        n_rows=len(file.rows),
        range_failed=phys.failed,
    )

    log.debug("%s: QC score %.1f (%s), %d warning(s)", file.filename, score, quality_grade(score), len(warnings))
    return QCResult(
        total_points=len(file.rows),
        null_points=null_points,
        spikes_detected=spikes,
        noise_level=noise,
        depth_consistency=consistent,
        curve_quality=curve_quality,
        mnemonic_summary=summary,
        physical_validation=phys,
        cross_validation=xval,
        overall_score=score,
        grade=quality_grade(score),
        recommendations=tuple(recs),
        warnings=tuple(warnings),
    )
