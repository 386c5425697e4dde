from __future__ import annotations

import numpy as np
import pytest

from lasclean.config.schema import ValidationConfig
from lasclean.io.las import read_las_bytes
from lasclean.model import compute_statistics
from lasclean.qc.assess import (
    assess,
    check_depth_consistency,
    cross_validate,
    overall_quality_score,
    quality_grade,
    recommendations,
    validate_physical_ranges,
)

CURVES = [("DEPT", "M", "Depth"), ("GR", "GAPI", "Gamma Ray"), ("NPHI", "V/V", "Neutron")]


def _file(las_builder, rows, curves=CURVES):
    f, _warnings = read_las_bytes(las_builder(curves, rows).encode("utf-8"), "qc.las")
    return f


def test_out_of_range_value_is_one_failure(las_builder) -> None:
    rows = [[1000.0 + 0.5 * i, 60.0, 0.25] for i in range(10)]
    rows[6][2] = 1.5
    f = _file(las_builder, rows)
    pv = validate_physical_ranges(f, {"NPHI": (-0.15, 1.0)})
    assert pv.failed == 1
    assert pv.checked == 10
    assert pv.passed == 9
    assert pv.failures_by_curve == {"NPHI": 1}
    assert len(pv.warnings) == 1
    w = pv.warnings[0]
    assert w.curve == "NPHI"
    assert w.depth == 1003.0
    assert "NPHI" in w.message and "1.5" in w.message and "1003" in w.message


def test_range_warnings_are_capped(las_builder) -> None:
    rows = [[1000.0 + i, 400.0, 0.2] for i in range(5)]
    f = _file(las_builder, rows)
    pv = validate_physical_ranges(f, {"GR": (0.0, 300.0)}, max_warnings=2)
    assert pv.failed == 5
    assert len(pv.warnings) == 3
    assert "3 further" in pv.warnings[-1].message


def test_ranges_apply_through_aliases(las_builder) -> None:
    rows = [[1000.0 + i, 400.0] for i in range(3)]
    f = _file(las_builder, rows, curves=[("DEPT", "M", ""), ("GAMMA", "GAPI", "")])
    pv = validate_physical_ranges(f, {"GR": (0.0, 300.0)})
    assert pv.failures_by_curve == {"GAMMA": 3}


def test_depth_consistency() -> None:
    ok, diag = check_depth_consistency([1000.0, 1000.5, 1001.0, 1001.52])
    assert ok and diag is None

    ok, diag = check_depth_consistency([1001.5, 1001.0, 1000.5])
    assert ok

    ok, diag = check_depth_consistency([1000.0, 1000.5, 1001.0, 1002.0, 1002.5, 1005.0])
    assert not ok
    assert diag is not None and diag.depth == 1002.0

    ok, _ = check_depth_consistency([1000.0, 1000.0])
    assert not ok
    assert check_depth_consistency([1000.0])[0]


def test_quality_grade_boundaries() -> None:
    assert quality_grade(95.0) == "A"
    assert quality_grade(90.0) == "A"
    assert quality_grade(75.0) == "B"
    assert quality_grade(60.0) == "C"
    assert quality_grade(50.0) == "D"
    assert quality_grade(49.9) == "F"


def test_overall_score_monotonic_and_bounded() -> None:
    base = overall_quality_score(90.0, 10.0, 100, 0, True)
    assert overall_quality_score(95.0, 10.0, 100, 0, True) > base
    assert overall_quality_score(90.0, 30.0, 100, 0, True) < base
    assert overall_quality_score(90.0, 10.0, 100, 5, True) < base
    assert overall_quality_score(90.0, 10.0, 100, 0, False) < base
    assert overall_quality_score(0.0, 500.0, 10, 10, False) == 0.0
    assert overall_quality_score(100.0, 0.0, 0, 0, True) == 100.0


def test_recommendation_thresholds() -> None:
    recs = recommendations(noise_level=25.0, depth_consistent=False, overall_score=60.0, n_rows=50, range_failed=2)
    text = " ".join(recs).lower()
    assert "denois" in text
    assert "depth" in text
    assert "data source" in text
    assert "limited data" in text
    assert "units" in text
    assert recommendations(noise_level=5.0, depth_consistent=True, overall_score=95.0, n_rows=500, range_failed=0) == []


def test_statistics_noise_undefined_for_zero_mean() -> None:
    st = compute_statistics([-1.0, 1.0, -1.0, 1.0, None])
    assert st.noise_level is None
    assert st.noise_undefined
    assert st.null_count == 1
    assert st.completeness == pytest.approx(80.0)


def test_statistics_quality_score() -> None:
    st = compute_statistics([10.0, 10.0, 10.0, None])
    assert st.noise_level == 0.0
    assert st.quality_score == pytest.approx(75.0)
    assert st.vmin == 10.0 and st.vmax == 10.0


def test_cross_validation_flags_inverted_pair(las_builder) -> None:
    rows = [[1000.0 + i, 40.0 + 5.0 * i, 0.45 - 0.02 * i] for i in range(15)]
    f = _file(las_builder, rows)
    findings = cross_validate(f)
    assert len(findings) == 1
    assert "GR/NPHI" in findings[0].message

    rows_ok = [[1000.0 + i, 40.0 + 5.0 * i, 0.10 + 0.02 * i] for i in range(15)]
    assert cross_validate(_file(las_builder, rows_ok)) == []


def test_cross_validation_needs_enough_pairs(las_builder) -> None:
    rows = [[1000.0 + i, 40.0 + 5.0 * i, 0.45 - 0.02 * i] for i in range(9)]
    assert cross_validate(_file(las_builder, rows)) == []


def test_assess_summary(las_builder) -> None:
    rng = np.random.default_rng(1)
    rows = [[1000.0 + 0.5 * i, 60.0 + rng.normal(0, 3), 0.25 + rng.normal(0, 0.01)] for i in range(120)]
    rows[10][1] = -999.25
    rows[20][2] = 1.5
    f = _file(las_builder, rows)
    qc = assess(f, ValidationConfig())
    assert qc.total_points == 120
    assert qc.null_points == 1
    assert qc.depth_consistency
    assert qc.physical_validation.failed == 1
    assert set(qc.curve_quality) == {"GR", "NPHI"}
    assert qc.curve_quality["NPHI"].range_failures == 1
    assert 0.0 <= qc.overall_score <= 100.0
    assert qc.grade == quality_grade(qc.overall_score)
    assert qc.mnemonic_summary.total == 3
    assert qc.mnemonic_summary.coverage == pytest.approx(100.0)
    assert any("units" in r for r in qc.recommendations)
    assert any(w.code == "out_of_range" for w in qc.warnings)


def test_assess_with_validation_disabled(las_builder) -> None:
    rows = [[1000.0 + i, 400.0, 0.2] for i in range(5)]
    qc = assess(_file(las_builder, rows), ValidationConfig(enabled=False))
    assert qc.physical_validation.checked == 0
    assert qc.cross_validation == ()


def test_low_completeness_reported(las_builder) -> None:
    rows = [[1000.0 + i, 50.0 if i < 3 else -999.25, 0.2] for i in range(10)]
    qc = assess(_file(las_builder, rows))
    gr = qc.curve_quality["GR"]
    assert gr.completeness == pytest.approx(30.0)
    assert any("completeness" in s for s in gr.issues)
    assert any(w.code == "low_completeness" and w.curve == "GR" for w in qc.warnings)
