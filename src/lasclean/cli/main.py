from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lasclean.config.defaults import default_options, qc_only_options
from lasclean.config.schema import ProcessingOptions
from lasclean.io.export import write_las, write_report_json
from lasclean.pipeline.batch import process_batch
from lasclean.pipeline.result import PipelineResult
from lasclean.pipeline.run import run_path
from lasclean.qc.assess import QCResult
from lasclean.utils.config import load_options

app = typer.Typer(add_completion=False, help="Well-log LAS parsing, QC and conditioning.")
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _options(config: Optional[Path]) -> ProcessingOptions:
    return load_options(config) if config is not None else default_options()


def _qc_table(title: str, qc: QCResult) -> Table:
    t = Table(title=title)
    t.add_column("Curve")
    t.add_column("Complete %", justify="right")
    t.add_column("Noise %", justify="right")
    t.add_column("Outliers", justify="right")
    t.add_column("Range fails", justify="right")
    t.add_column("Score", justify="right")
    t.add_column("Grade")
    for mn, cq in qc.curve_quality.items():
        t.add_row(
            mn,
            f"{cq.completeness:.1f}",
            "n/a" if cq.noise_level is None else f"{cq.noise_level:.1f}",
            str(cq.outliers),
            str(cq.range_failures),
            f"{cq.quality_score:.1f}",
            cq.grade,
        )
    return t


def _print_summary(r: PipelineResult) -> None:
    for step in r.history:
        status = "[yellow]skipped[/yellow]" if step.skipped else ("[green]ok[/green]" if step.success else "[red]failed[/red]")
        print(f"  {step.step:<14} {status} {step.duration * 1000.0:7.1f} ms  {step.message}")
    qc = r.qc_after or r.qc_before
    if qc is not None:
        console.print(_qc_table(f"{r.filename} ({qc.overall_score:.1f}, {qc.grade})", qc))
        for rec in qc.recommendations:
            print(f"  [cyan]-[/cyan] {rec}")
    for e in r.errors:
        print(f"[red]error:[/red] {e}")


@app.command()
def process(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="LAS file"),
    config: Optional[Path] = typer.Option(None, "--config", exists=True, help="YAML processing options"),
    out_dir: Path = typer.Option(Path("out"), "--out-dir"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run the full pipeline on one file."""
    _setup_logging(verbose)
    opts = _options(config)
    print(f"[bold]Processing[/bold] {file}")
    r = run_path(file, opts)
    _print_summary(r)

    out_dir.mkdir(parents=True, exist_ok=True)
    rep = write_report_json(r, out_dir / f"{file.stem}.report.json")
    print("[green]Wrote[/green]", rep)
    if r.success and r.file is not None:
        las_out = write_las(r.file, out_dir / f"{file.stem}.clean.las")
        print("[green]Wrote[/green]", las_out)
    raise typer.Exit(code=0 if r.success else 1)


@app.command()
def batch(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory of LAS files"),
    pattern: str = typer.Option("*.las", "--pattern"),
    config: Optional[Path] = typer.Option(None, "--config", exists=True),
    workers: int = typer.Option(4, "--workers"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds for the whole batch"),
    executor: str = typer.Option("process", "--executor", help="process | thread"),
    out_dir: Path = typer.Option(Path("out"), "--out-dir"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Process every matching file in a directory in parallel."""
    _setup_logging(verbose)
    opts = _options(config)
    paths = sorted(p for p in directory.glob(pattern) if p.is_file())
    if not paths:
        print(f"[yellow]No files matching {pattern} in {directory}[/yellow]")
        raise typer.Exit(code=1)

    print(f"[bold]Batch[/bold] {len(paths)} file(s), workers={workers}, executor={executor}")
    report = process_batch(paths, opts, max_workers=workers, timeout=timeout, executor=executor)

    out_dir.mkdir(parents=True, exist_ok=True)
    for name, r in report.results.items():
        write_report_json(r, out_dir / f"{Path(name).stem}.report.json")
    summary = out_dir / "batch_summary.csv"
    report.to_frame().to_csv(summary, index=False)

    print(f"ok={report.n_ok} failed={report.n_failed} in {report.elapsed:.1f}s")
    print("[green]Wrote[/green]", summary)
    raise typer.Exit(code=0 if report.n_failed == 0 else 1)


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="LAS file"),
    config: Optional[Path] = typer.Option(None, "--config", exists=True),
):
    """Parse, standardize and assess one file without conditioning it."""
    _setup_logging(False)
    base = _options(config)
    qc_only = qc_only_options()
    opts = replace(base, denoise=qc_only.denoise, despike=qc_only.despike, baseline=qc_only.baseline)
    r = run_path(file, opts)
    if r.file is not None:
        h = r.file.header
        print(f"[bold]{r.filename}[/bold]  well={h.well or '-'}  uwi={h.uwi or '-'}  company={h.company or '-'}")
        print(
            f"  LAS {h.version}, wrap={'yes' if h.wrap else 'no'}, "
            f"{len(r.file.curves)} curves, {len(r.file.rows)} rows, "
            f"depth {h.start_depth} .. {h.stop_depth} step {h.step} {h.depth_unit}"
        )
    for w in r.warnings:
        print(f"  [yellow]{w.stage.value}[/yellow] {w.message}")
    _print_summary(r)
    raise typer.Exit(code=0 if r.success else 1)


if __name__ == "__main__":
    app()
