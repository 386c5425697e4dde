# scripts/curve_vocab.py
#!/usr/bin/env python3
from __future__ import annotations

from pathlib import Path
import argparse
import pandas as pd

from lasclean.curves.standardize import STANDARDS, alias_table, aliases_for, norm_mnemonic
from lasclean.io.las import read_las_path


def main() -> None:
    """
    Survey curve mnemonics across a directory of LAS files and report which
    ones the selected standard does not recognise (candidates for
    mnemonics.custom_mappings).
    """
    ap = argparse.ArgumentParser()
    ap.add_argument("--root", type=Path, default=Path("data/las"))
    ap.add_argument("--standard", choices=[s for s in STANDARDS if s != "custom"], default="api")
    ap.add_argument("--out", type=Path, default=Path("out/las_curve_vocab.csv"))
    args = ap.parse_args()

    table = alias_table(args.standard)
    rows = []
    rejects = []

    for p in sorted(args.root.rglob("*.las")):
        pr = read_las_path(p)
        if not pr.success or pr.file is None:
            rejects.append({"file": str(p), "error": pr.message})
            continue
        for c in pr.file.curves:
            canon = norm_mnemonic(c.mnemonic, standard=args.standard)
            rows.append(
                {
                    "file": str(p),
                    "mnemonic": c.mnemonic,
                    "canonical": canon,
                    "recognised": canon in table,
                    "known_aliases": "|".join(aliases_for(canon, standard=args.standard)[1:]),
                    "unit": c.unit,
                    "descr": c.description,
                    "category": c.category.value,
                }
            )

    df = pd.DataFrame(rows)
    args.out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.out, index=False)

    agg_out = args.out.with_name("las_curve_vocab_counts.csv")
    if not df.empty:
        agg = (
            df.groupby(["mnemonic", "canonical", "unit"], dropna=False)
              .size()
              .reset_index(name="count")
              .sort_values("count", ascending=False)
        )
        agg.to_csv(agg_out, index=False)

    if rejects:
        rej_out = args.out.with_name("las_curve_vocab_rejects.csv")
        pd.DataFrame(rejects).to_csv(rej_out, index=False)

    print(f"Wrote: {args.out}")
    if not df.empty:
        print(f"Wrote: {agg_out}")
    if rejects:
        print(f"Wrote rejects: {len(rejects)}")


if __name__ == "__main__":
    main()
