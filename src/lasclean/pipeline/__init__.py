# src/lasclean/pipeline/__init__.py
from __future__ import annotations

from .batch import BatchReport, process_batch
from .result import PipelineResult, ProcessingHistoryEntry
from .run import run_logfile, run_path, run_pipeline

__all__ = [
    "BatchReport",
    "PipelineResult",
    "ProcessingHistoryEntry",
    "process_batch",
    "run_logfile",
    "run_path",
    "run_pipeline",
]
