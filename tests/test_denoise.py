from __future__ import annotations

import numpy as np
import pytest

from lasclean.algorithms.common import variance_reduction
from lasclean.algorithms.denoise import apply_denoise, denoise_values, excursion_mask, wavelet_shrink
from lasclean.config.schema import DenoiseConfig
from lasclean.errors import AlgorithmError
from lasclean.io.las import read_las_bytes


def _noisy(n: int = 101, seed: int = 11) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return 10.0 + rng.normal(0.0, 1.0, n)


def test_preserve_spikes_keeps_excursion_and_smooths_neighbours() -> None:
    x = _noisy()
    x[50] = 100.0
    y = denoise_values(x, DenoiseConfig(preserve_spikes=True))
    assert y[50] == x[50]

    neigh = np.r_[40:50, 51:61]
    assert np.var(y[neigh]) < np.var(x[neigh])


def test_without_preserve_spikes_excursion_is_smoothed() -> None:
    x = _noisy()
    x[50] = 100.0
    y = denoise_values(x, DenoiseConfig(preserve_spikes=False))
    assert y[50] < x[50]


def test_excursion_mask_flags_large_deviation() -> None:
    x = _noisy()
    x[50] = 100.0
    mask = excursion_mask(x, 7)
    assert mask[50]


def test_strength_zero_is_identity_and_one_is_full_fit() -> None:
    x = _noisy()
    assert np.array_equal(denoise_values(x, DenoiseConfig(strength=0.0, preserve_spikes=False)), x)
    full = denoise_values(x, DenoiseConfig(strength=1.0, preserve_spikes=False))
    half = denoise_values(x, DenoiseConfig(strength=0.5, preserve_spikes=False))
    assert np.allclose(half, 0.5 * x + 0.5 * full)


def test_polynomial_is_reproduced_exactly() -> None:
    t = np.arange(50, dtype="float64")
    x = 0.01 * t ** 2 - 0.3 * t + 4.0
    y = denoise_values(x, DenoiseConfig(strength=1.0, preserve_spikes=False, window_size=7, polynomial_order=2))
    assert np.allclose(y, x)


@pytest.mark.parametrize("method", ["savitzky_golay", "moving_average", "gaussian", "wavelet"])
def test_methods_reduce_noise(method: str) -> None:
    x = _noisy(201)
    y = denoise_values(x, DenoiseConfig(method=method, strength=1.0, preserve_spikes=False))
    assert np.var(np.diff(y)) < np.var(np.diff(x))


def test_missing_samples_excluded_and_kept_missing() -> None:
    x = _noisy(60)
    x[[5, 6, 30]] = np.nan
    y = denoise_values(x, DenoiseConfig())
    assert np.isnan(y[[5, 6, 30]]).all()
    assert np.isfinite(np.delete(y, [5, 6, 30])).all()


def test_window_larger_than_samples() -> None:
    with pytest.raises(AlgorithmError) as ei:
        denoise_values(np.array([1.0, np.nan, 2.0, 3.0]), DenoiseConfig(window_size=5))
    assert ei.value.code == "window_too_large"


@pytest.mark.parametrize(
    "cfg",
    [
        DenoiseConfig(window_size=6),
        DenoiseConfig(window_size=5, polynomial_order=5),
        DenoiseConfig(strength=1.5),
        DenoiseConfig(strength=-0.1),
        DenoiseConfig(method="wiener"),
        DenoiseConfig(method="wavelet", wavelet="nope"),
    ],
)
def test_invalid_parameters_rejected(cfg: DenoiseConfig) -> None:
    with pytest.raises(AlgorithmError) as ei:
        denoise_values(_noisy(), cfg)
    assert ei.value.code in ("bad_parameter", "unknown_method")


def test_apply_denoise_over_file(las_builder) -> None:
    rng = np.random.default_rng(5)
    rows = [[1000.0 + 0.5 * i, 60.0 + rng.normal(0, 2), -999.25 if i >= 4 else 0.2] for i in range(40)]
    curves = [("DEPT", "M", ""), ("GR", "GAPI", ""), ("NPHI", "V/V", "")]
    f, _warnings = read_las_bytes(las_builder(curves, rows).encode("utf-8"), "x.las")
    out = apply_denoise(f, DenoiseConfig())
    assert out.algorithm == "savitzky_golay"
    assert out.processed == ["GR"]
    assert out.skipped == ["NPHI"]
    assert set(out.columns) == {"GR"}
    gr = [c for c in out.curves if c.mnemonic == "GR"][0]
    assert gr.points_processed == 40
    assert gr.noise_reduction is not None and gr.noise_reduction > 0.0


def test_apply_denoise_rejects_bad_parameters_for_whole_step(las_builder) -> None:
    curves = [("DEPT", "M", ""), ("GR", "GAPI", "")]
    f, _warnings = read_las_bytes(las_builder(curves, [[1000.0, 1.0]]).encode("utf-8"), "x.las")
    with pytest.raises(AlgorithmError):
        apply_denoise(f, DenoiseConfig(window_size=8))


def test_wavelet_shrink_recovers_smooth_signal() -> None:
    t = np.linspace(0.0, 2.0 * np.pi, 256)
    clean = 50.0 + 10.0 * np.sin(t)
    x = clean + np.random.default_rng(3).normal(0.0, 3.0, t.size)
    y = wavelet_shrink(x)
    assert y.shape == x.shape
    assert np.var(y - clean) < np.var(x - clean)


def test_wavelet_method_reports_noise_reduction(las_builder) -> None:
    rng = np.random.default_rng(8)
    rows = [[1000.0 + 0.5 * i, 60.0 + rng.normal(0, 3)] for i in range(64)]
    f, _warnings = read_las_bytes(las_builder([("DEPT", "M", ""), ("GR", "GAPI", "")], rows).encode("utf-8"), "x.las")
    out = apply_denoise(f, DenoiseConfig(method="wavelet", strength=1.0, preserve_spikes=False))
    assert out.algorithm == "wavelet"
    gr = out.curves[0]
    assert gr.success
    assert gr.noise_reduction is not None and gr.noise_reduction > 0.0
    x = f.column("GR")
    assert variance_reduction(x, out.columns["GR"]) == gr.noise_reduction
