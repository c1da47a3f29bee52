import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from pathlib import Path

from tofdigi.io.hits_store import rawhit_codes

def save_codes_png(h5_path: str, out_png: str | None = None, group: str = "/raw/hits"):
    """ADC and TDC code histograms of a raw-hit file, side by side."""
    h5_path = str(h5_path)
    adc, tdc = rawhit_codes(h5_path, group=group)

    if out_png is None:
        out_png = str(Path(h5_path).with_suffix(".png"))

    fig, (ax_adc, ax_tdc) = plt.subplots(1, 2, figsize=(10, 4))
    ax_adc.hist(np.asarray(adc), bins=64)
    ax_adc.set_xlabel("ADC code")
    ax_adc.set_ylabel("raw hits")
    ax_tdc.hist(np.asarray(tdc), bins=64)
    ax_tdc.set_xlabel("TDC code")
    fig.suptitle(Path(h5_path).name + " : " + group)
    fig.tight_layout()
    fig.savefig(out_png, dpi=150)
    plt.close(fig)
    return out_png
