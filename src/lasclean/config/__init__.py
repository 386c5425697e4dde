from __future__ import annotations

from .defaults import default_options, qc_only_options
from .schema import (
    DEFAULT_PHYSICAL_RANGES,
    BaselineConfig,
    DenoiseConfig,
    DespikeConfig,
    MnemonicConfig,
    ParseOptions,
    ProcessingOptions,
    ValidationConfig,
)

__all__ = [
    "DEFAULT_PHYSICAL_RANGES",
    "BaselineConfig",
    "DenoiseConfig",
    "DespikeConfig",
    "MnemonicConfig",
    "ParseOptions",
    "ProcessingOptions",
    "ValidationConfig",
    "default_options",
    "qc_only_options",
]
