from __future__ import annotations

import numpy as np
import pytest

from lasclean.algorithms.despike import apply_despike, despike_values
from lasclean.config.schema import DespikeConfig
from lasclean.errors import AlgorithmError
from lasclean.io.las import read_las_bytes


def _constant_with_spike(n: int = 31, at: int = 15) -> np.ndarray:
    x = np.full(n, 50.0)
    x[at] = 150.0
    return x


def test_single_spike_flagged_and_replaced() -> None:
    x = _constant_with_spike()
    cfg = DespikeConfig(window_size=5, threshold=2.5)
    y, spikes = despike_values(x, cfg)
    assert spikes.tolist() == [15]
    assert 50.0 <= y[15] <= 50.0
    mask = np.arange(x.size) != 15
    assert np.array_equal(y[mask], x[mask])


def test_despike_is_idempotent() -> None:
    x = _constant_with_spike()
    cfg = DespikeConfig(window_size=5, threshold=2.5)
    once, _ = despike_values(x, cfg)
    twice, spikes2 = despike_values(once, cfg)
    assert np.array_equal(once, twice)
    assert spikes2.size == 0


def test_spike_in_noisy_signal_uses_depth_for_pchip() -> None:
    rng = np.random.default_rng(7)
    depth = 1000.0 + 0.5 * np.arange(200)
    x = 60.0 + 5.0 * np.sin(np.arange(200) / 15.0) + rng.normal(0.0, 0.3, 200)
    x[120] = 200.0
    y, spikes = despike_values(x, DespikeConfig(), depth=depth)
    assert 120 in spikes.tolist()
    lo = min(x[118], x[119], x[121], x[122]) - 1.0
    hi = max(x[118], x[119], x[121], x[122]) + 1.0
    assert lo <= y[120] <= hi
    untouched = np.setdiff1d(np.arange(200), spikes)
    assert np.array_equal(y[untouched], x[untouched])


def test_missing_samples_stay_missing() -> None:
    x = _constant_with_spike()
    x[3] = np.nan
    x[20] = np.nan
    y, spikes = despike_values(x, DespikeConfig(window_size=5, threshold=2.5))
    assert np.isnan(y[3]) and np.isnan(y[20])
    assert spikes.tolist() == [15]
    assert y[15] == pytest.approx(50.0)


@pytest.mark.parametrize("replacement", ["linear", "median", "pchip"])
def test_replacement_methods_fill_from_neighbours(replacement: str) -> None:
    x = _constant_with_spike()
    y, _ = despike_values(x, DespikeConfig(window_size=5, threshold=2.5, replacement_method=replacement))
    assert y[15] == pytest.approx(50.0)


def test_null_replacement_marks_missing() -> None:
    x = _constant_with_spike()
    y, spikes = despike_values(x, DespikeConfig(window_size=5, threshold=2.5, replacement_method="null"))
    assert spikes.tolist() == [15]
    assert np.isnan(y[15])


@pytest.mark.parametrize("method", ["modified_zscore", "iqr"])
def test_global_detection_methods(method: str) -> None:
    rng = np.random.default_rng(3)
    x = 10.0 + rng.normal(0.0, 1.0, 100)
    x[40] = 60.0
    _y, spikes = despike_values(x, DespikeConfig(method=method, threshold=3.5))
    assert 40 in spikes.tolist()


def test_window_larger_than_samples() -> None:
    with pytest.raises(AlgorithmError) as ei:
        despike_values(np.array([1.0, 2.0, 3.0]), DespikeConfig(window_size=7), curve="GR")
    assert ei.value.code == "window_too_large"
    assert ei.value.curve == "GR"


@pytest.mark.parametrize(
    "cfg",
    [
        DespikeConfig(window_size=4),
        DespikeConfig(window_size=1),
        DespikeConfig(threshold=0.0),
        DespikeConfig(method="wavelet"),
        DespikeConfig(replacement_method="spline"),
    ],
)
def test_invalid_parameters_rejected(cfg: DespikeConfig) -> None:
    with pytest.raises(AlgorithmError) as ei:
        despike_values(np.zeros(20), cfg)
    assert ei.value.code in ("bad_parameter", "unknown_method")


def test_apply_despike_over_file(las_builder) -> None:
    rows = [[1000.0 + 0.5 * i, 50.0, 0.2] for i in range(20)]
    rows[8][1] = 250.0
    short = [("DEPT", "M", ""), ("GR", "GAPI", ""), ("NPHI", "V/V", "")]
    f, _warnings = read_las_bytes(las_builder(short, rows).encode("utf-8"), "x.las")
    out = apply_despike(f, DespikeConfig(window_size=5, threshold=2.5))
    assert out.algorithm == "hampel"
    assert out.spikes_detected == 1
    assert set(out.columns) == {"GR"}
    assert out.columns["GR"][8] == pytest.approx(50.0)
    assert out.processed == ["GR", "NPHI"]
    by_curve = {c.mnemonic: c for c in out.curves}
    assert by_curve["GR"].noise_reduction == pytest.approx(100.0)
    # flat curve: nothing to reduce
    assert by_curve["NPHI"].noise_reduction == 0.0


def test_apply_despike_skips_short_curve(las_builder) -> None:
    rows = [[1000.0 + 0.5 * i, 50.0 + (i % 3), -999.25 if i > 2 else 0.2] for i in range(20)]
    curves = [("DEPT", "M", ""), ("GR", "GAPI", ""), ("NPHI", "V/V", "")]
    f, _warnings = read_las_bytes(las_builder(curves, rows).encode("utf-8"), "x.las")
    out = apply_despike(f, DespikeConfig(window_size=5))
    assert out.skipped == ["NPHI"]
    assert [w.code for w in out.warnings] == ["window_too_large"]
    assert out.warnings[0].curve == "NPHI"
