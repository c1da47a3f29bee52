# src/tofdigi/digi/digitizer.py
"""
ADC/TDC quantization of per-channel analog signals.

ADC: pulse peak + pedestal, scaled linearly so that ``dy_range_adc`` maps to
the largest code; out-of-range values saturate at 0 / 2**adc_bit - 1.

TDC: constant-fraction time in units of ``step_tdc``. The overflow policy is
``clip`` (saturate at 2**tdc_bit - 1) or ``wrap`` (time folded into the
bunch-crossing period first).
"""
from __future__ import annotations
import math
from typing import Iterable, List, Optional, Tuple

import numpy as np

from ..physics.hits import AnalogSignal, RawHit
from .diagnostics import DigiDiagnostics


def to_digital_code(value: int, num_bits: int) -> List[bool]:
    """
    Bits of ``value``, most significant first. Only the low ``num_bits``
    are kept (two's complement for negative values).
    """
    if num_bits <= 0:
        raise ValueError(f"num_bits must be positive, got {num_bits}")
    v = int(value) & ((1 << num_bits) - 1)
    return [bool((v >> i) & 1) for i in range(num_bits - 1, -1, -1)]


class Digitizer:
    def __init__(self, cfg_digi):
        self.cfg = cfg_digi
        self.adc_max = (1 << cfg_digi.adc_bit) - 1
        self.tdc_max = (1 << cfg_digi.tdc_bit) - 1
        self.step_tdc = float(cfg_digi.step_tdc)

    # ---- quantizers ----
    def _adc(self, peak: float, pedestal: float) -> Tuple[int, bool]:
        v = peak + pedestal
        if math.isnan(v):
            return 0, True
        x = np.round(v / self.cfg.dy_range_adc * self.adc_max)
        clipped = bool(x < 0 or x > self.adc_max)
        return int(np.clip(x, 0, self.adc_max)), clipped

    def _tdc(self, t_ns: float) -> Tuple[int, bool]:
        if math.isnan(t_ns):
            return 0, True
        if self.cfg.tdc_overflow == "wrap" and math.isfinite(t_ns):
            t_ns = t_ns % self.cfg.time_period
        x = np.floor(t_ns / self.step_tdc)
        clipped = bool(x < 0 or x > self.tdc_max)
        return int(np.clip(x, 0, self.tdc_max)), clipped

    def adc_code(self, peak: float, pedestal: float = 0.0) -> int:
        return self._adc(peak, pedestal)[0]

    def tdc_code(self, t_ns: float) -> int:
        return self._tdc(t_ns)[0]

    def to_bits(self, hit: RawHit) -> Tuple[List[bool], List[bool]]:
        """(ADC bits, TDC bits) of a raw hit at the configured widths."""
        return to_digital_code(hit.adc, self.cfg.adc_bit), to_digital_code(hit.tdc, self.cfg.tdc_bit)

    # ---- per event ----
    def digitize(
        self,
        signals: Iterable[AnalogSignal],
        rng: np.random.Generator,
        diagnostics: Optional[DigiDiagnostics] = None,
    ) -> List[RawHit]:
        """
        One RawHit per signal above threshold, in signal order. Each emitted
        channel consumes exactly one pedestal draw from rng; suppressed
        channels consume none.
        """
        diag = diagnostics if diagnostics is not None else DigiDiagnostics()
        out: List[RawHit] = []
        for sig in signals:
            if sig.peak <= 0.0 or sig.peak < self.cfg.threshold or sig.t_ns is None:
                diag.below_threshold += 1
                continue
            pedestal = float(rng.normal(self.cfg.pedestal_mean, self.cfg.pedestal_sigma))
            adc, adc_clip = self._adc(sig.peak, pedestal)
            tdc, tdc_clip = self._tdc(sig.t_ns)
            if adc_clip:
                diag.adc_saturated += 1
            if tdc_clip:
                diag.tdc_clipped += 1
            out.append(RawHit(cell_id=sig.cell_id, adc=adc, tdc=tdc))
        diag.raw_hits += len(out)
        return out
