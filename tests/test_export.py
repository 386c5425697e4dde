from __future__ import annotations

import json
from pathlib import Path

import lasio
import numpy as np
from typer.testing import CliRunner

from lasclean.cli.main import app
from lasclean.io.export import to_dataframe, to_las_text, write_report_json
from lasclean.io.las import read_las_bytes
from lasclean.pipeline.run import run_pipeline

CURVES = [("DEPT", "M", "Depth"), ("GR", "GAPI", "Gamma Ray"), ("NPHI", "V/V", "Neutron")]
ROWS = [[1000.0 + 0.5 * i, 60.0 + (i % 4), 0.25 if i != 3 else -999.25] for i in range(12)]


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def test_to_dataframe(las_builder) -> None:
    f, _warnings = read_las_bytes(las_builder(CURVES, ROWS).encode("utf-8"), "x.las")
    df = to_dataframe(f)
    assert list(df.columns) == ["GR", "NPHI"]
    assert df.index.name == "DEPT"
    assert len(df) == 12
    assert np.isnan(df["NPHI"].iloc[3])
    assert df["GR"].iloc[1] == 61.0


def test_to_las_text_reads_back_with_lasio(las_builder) -> None:
    f, _warnings = read_las_bytes(las_builder(CURVES, ROWS).encode("utf-8"), "x.las")
    text = to_las_text(f)
    las = lasio.read(text)
    assert [c.mnemonic for c in las.curves] == ["DEPT", "GR", "NPHI"]
    assert las.well["WELL"].value == "TEST-1"
    assert np.isnan(las["NPHI"][3])
    assert las["GR"][2] == 62.0

    # and through our own parser
    g, _w = read_las_bytes(text.encode("utf-8"), "y.las")
    assert g.rows[3].values["NPHI"] is None
    assert g.header.company == "ACME OIL"


def test_write_report_json_is_strict_json(tmp_path: Path, las_builder) -> None:
    r = run_pipeline(las_builder(CURVES, ROWS).encode("utf-8"), "x.las")
    out = write_report_json(r, tmp_path / "reports" / "x.report.json")
    assert out.exists()
    assert not out.with_suffix(".json.tmp").exists()
    d = json.loads(out.read_text(encoding="utf-8"), parse_constant=_reject_constant)
    assert d["filename"] == "x.las"
    assert d["qc_before"]["total_points"] == 12
    assert d["curves"][0]["mnemonic"] == "DEPT"


def test_cli_process_and_inspect(tmp_path: Path, las_builder) -> None:
    src = tmp_path / "well.las"
    src.write_text(las_builder(CURVES, ROWS), encoding="utf-8")
    out_dir = tmp_path / "out"
    runner = CliRunner()

    res = runner.invoke(app, ["process", str(src), "--out-dir", str(out_dir)])
    assert res.exit_code == 0, res.output
    assert (out_dir / "well.report.json").exists()
    assert (out_dir / "well.clean.las").exists()

    res = runner.invoke(app, ["inspect", str(src)])
    assert res.exit_code == 0, res.output
    assert "TEST-1" in res.output


def test_cli_batch_writes_summary(tmp_path: Path, las_builder) -> None:
    data_dir = tmp_path / "las"
    data_dir.mkdir()
    (data_dir / "a.las").write_text(las_builder(CURVES, ROWS), encoding="utf-8")
    (data_dir / "b.las").write_text("~A\n1\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    res = CliRunner().invoke(
        app, ["batch", str(data_dir), "--workers", "2", "--executor", "thread", "--out-dir", str(out_dir)]
    )
    assert res.exit_code == 1
    summary = (out_dir / "batch_summary.csv").read_text(encoding="utf-8")
    assert "a.las" in summary and "b.las" in summary
