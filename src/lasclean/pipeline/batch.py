# src/lasclean/pipeline/batch.py
from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from lasclean.config.defaults import default_options
from lasclean.config.schema import ProcessingOptions

from .result import PipelineResult
from .run import run_path

log = logging.getLogger(__name__)

EXECUTORS = ("process", "thread")


@dataclass
class BatchReport:
    """
    Per-file results of one batch, keyed by filename. Completion order is not
    preserved; correlate by name.
    """
    results: Dict[str, PipelineResult] = field(default_factory=dict)
    # filename -> reason, for runs that produced no result (timeout, worker crash)
    failures: Dict[str, str] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def n_ok(self) -> int:
        return sum(1 for r in self.results.values() if r.success)

    @property
    def n_failed(self) -> int:
        return len(self.failures) + sum(1 for r in self.results.values() if not r.success)

    def to_frame(self) -> pd.DataFrame:
        rows: List[Dict[str, object]] = []
        for name, r in self.results.items():
            qb = r.qc_before
            qa = r.qc_after
            rows.append(
                {
                    "filename": name,
                    "status": "ok" if r.success else "failed",
                    "score_before": qb.overall_score if qb is not None else None,
                    "score_after": qa.overall_score if qa is not None else None,
                    "grade": (qa or qb).grade if (qa or qb) is not None else None,
                    "rows": len(r.file.rows) if r.file is not None else 0,
                    "curves": len(r.file.curves) if r.file is not None else 0,
                    "conditioning_applied": r.conditioning_applied,
                    "warnings": len(r.warnings),
                    "error": "; ".join(r.errors),
                    "execution_time": r.execution_time,
                    "peak_memory_mb": r.peak_memory_mb,
                }
            )
        for name, reason in self.failures.items():
            rows.append({"filename": name, "status": "failed", "error": reason})
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.sort_values("filename").reset_index(drop=True)
        return df


# =============================================================================
# Worker (top-level for pickling)
# =============================================================================

def _run_one(path: str, options: ProcessingOptions) -> PipelineResult:
    return run_path(Path(path), options)


def _make_executor(kind: str, max_workers: int) -> Executor:
    k = str(kind or "process").strip().lower()
    if k == "process":
        return ProcessPoolExecutor(max_workers=max_workers)
    if k == "thread":
        return ThreadPoolExecutor(max_workers=max_workers)
    raise ValueError(f"Unknown executor {kind!r}; expected one of {EXECUTORS}")


def process_batch(
    paths: Iterable[Path],
    options: Optional[ProcessingOptions] = None,
    *,
    max_workers: int = 4,
    timeout: Optional[float] = None,
    executor: str = "process",
) -> BatchReport:
    """
    Run the pipeline over many files in parallel.

    - each file is an independent run; `options` is shared read-only
    - `timeout` bounds the whole batch (seconds); runs still pending when it
      expires are reported as failures and their partial results discarded
    - max_workers <= 1 runs sequentially in-process (timeout is then not enforced)
    """
    opts = options or default_options()
    files = [Path(p) for p in paths]
    report = BatchReport()
    t0 = time.perf_counter()

    if int(max_workers) <= 1:
        for p in files:
            try:
                report.results[p.name] = _run_one(str(p), opts)
            except Exception as e:
                report.failures[p.name] = f"worker failed: {type(e).__name__}: {e}"
                log.warning("%s: worker failed: %s", p.name, e)
        report.elapsed = time.perf_counter() - t0
        return report

    pool = _make_executor(executor, int(max_workers))
    futures: Dict[Future, str] = {}
    try:
        for p in files:
            futures[pool.submit(_run_one, str(p), opts)] = p.name

        pending = set(futures)
        deadline = (t0 + float(timeout)) if timeout is not None else None
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - time.perf_counter())
            done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            for fut in done:
                name = futures[fut]
                try:
                    report.results[name] = fut.result()
                except Exception as e:
                    report.failures[name] = f"worker failed: {type(e).__name__}: {e}"
                    log.warning("%s: worker failed: %s", name, e)
            if deadline is not None and time.perf_counter() >= deadline and pending:
                for fut in pending:
                    fut.cancel()
                    report.failures[futures[fut]] = f"timed out after {float(timeout):g}s"
                log.warning("batch timeout: %d run(s) abandoned", len(pending))
                break
    finally:
        # abandoned runs are not waited for
        pool.shutdown(wait=timeout is None, cancel_futures=True)

    report.elapsed = time.perf_counter() - t0
    log.info("batch: %d ok, %d failed in %.1fs", report.n_ok, report.n_failed, report.elapsed)
    return report
