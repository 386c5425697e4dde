from __future__ import annotations

from dataclasses import replace

from .schema import BaselineConfig, DenoiseConfig, DespikeConfig, ProcessingOptions


def default_options() -> ProcessingOptions:
    return ProcessingOptions()


def qc_only_options() -> ProcessingOptions:
    """Parse, standardize and assess; no conditioning step is enabled."""
    base = default_options()
    return replace(
        base,
        denoise=DenoiseConfig(enabled=False),
        despike=DespikeConfig(enabled=False),
        baseline=BaselineConfig(enabled=False),
    )
