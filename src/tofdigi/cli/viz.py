from __future__ import annotations

import typer
from typing import Optional

from tofdigi.vis.hdf import save_codes_png

app = typer.Typer(help="tof-digi visualization tools")

@app.command("h5-to-png")
def h5_to_png(
    h5_path: str = typer.Argument(..., help="Path to HDF5 file containing /raw/hits"),
    group: str = typer.Option("/raw/hits", "--group", "-g", help="Raw-hit group"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to file.png)"),
):
    """Histogram ADC/TDC codes of a raw-hit file into a PNG."""
    out_png = save_codes_png(h5_path, out_png=out, group=group)
    typer.echo(f"Wrote {out_png}")

if __name__ == "__main__":
    app()
