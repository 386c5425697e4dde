from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

MIB = 1024 * 1024

# Canonical mnemonic -> (min, max) accepted physical range
DEFAULT_PHYSICAL_RANGES: Dict[str, Tuple[float, float]] = {
    "GR": (0.0, 300.0),
    "NPHI": (-0.15, 1.0),
    "RHOB": (1.0, 3.5),
    "RT": (0.1, 10000.0),
    "CALI": (4.0, 20.0),
    "SP": (-200.0, 50.0),
    "PEF": (1.0, 10.0),
}


@dataclass(frozen=True)
class DenoiseConfig:
    enabled: bool = True
    method: str = "savitzky_golay"  # savitzky_golay | moving_average | gaussian | wavelet
    window_size: int = 7
    polynomial_order: int = 2
    strength: float = 0.5
    preserve_spikes: bool = True
    wavelet: str = "haar"  # PyWavelets discrete wavelet name, method=wavelet only


@dataclass(frozen=True)
class DespikeConfig:
    enabled: bool = True
    method: str = "hampel"  # hampel | modified_zscore | iqr
    threshold: float = 3.0
    window_size: int = 7
    replacement_method: str = "pchip"  # pchip | linear | median | null


@dataclass(frozen=True)
class BaselineConfig:
    enabled: bool = False
    method: str = "polynomial"
    polynomial_order: int = 1
    restore_mean: bool = False


@dataclass(frozen=True)
class ValidationConfig:
    enabled: bool = True
    physical_ranges: Dict[str, Tuple[float, float]] = field(default_factory=lambda: dict(DEFAULT_PHYSICAL_RANGES))
    cross_validation: bool = True
    flag_outliers: bool = True
    max_range_warnings: int = 500


@dataclass(frozen=True)
class MnemonicConfig:
    enabled: bool = True
    standard: str = "api"  # api | cwls | custom
    auto_standardize: bool = True
    preserve_original: bool = True
    custom_mappings: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseOptions:
    max_bytes: int = 100 * MIB
    # None -> trust the WRAP flag in ~V
    wrap_override: Optional[bool] = None


@dataclass(frozen=True)
class ProcessingOptions:
    """
    One pipeline run's configuration. Read-only for the duration of a run and
    safe to share across worker threads/processes.
    """
    denoise: DenoiseConfig = DenoiseConfig()
    despike: DespikeConfig = DespikeConfig()
    baseline: BaselineConfig = BaselineConfig()
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    mnemonics: MnemonicConfig = field(default_factory=MnemonicConfig)
    parse: ParseOptions = ParseOptions()
    # Conditioning runs only when the pre-conditioning score is strictly above this
    quality_gate: float = 50.0
