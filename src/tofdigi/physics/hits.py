from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Optional
import numpy as np

@dataclass(frozen=True, slots=True)
class SimHit:
    """
    Truth-level energy deposit (simulation input, read-only).

    cell_id: 64-bit readout id; None or 0 means "not resolved yet", derive it from r
    E: deposited energy [GeV]
    t_ns: hit time [ns]
    r: position [cm], shape (3,)
    particle: reference to the originating MC particle, passed through untouched
    """
    cell_id: Optional[int]
    E: float
    t_ns: float
    r: np.ndarray = field(default_factory=lambda: np.zeros(3))
    particle: Any = None


@dataclass(frozen=True, slots=True)
class SmearedHit:
    """A SimHit after geometry resolution and energy/time smearing."""
    cell_id: int
    index: int       # topology channel index
    E: float
    t_ns: float
    source: SimHit


@dataclass(slots=True)
class AnalogSignal:
    """
    Per-event, per-channel analog aggregate.

    waveform: summed pulse on the pulse-model time grid (non-positive)
    peak: magnitude of the most negative waveform sample
    t_ns: effective arrival time (constant-fraction crossing), None if flat
    """
    cell_id: int
    index: int
    waveform: np.ndarray
    peak: float = 0.0
    t_ns: Optional[float] = None
    n_hits: int = 0
    E: float = 0.0
    particles: List[Any] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RawHit:
    """Digitized readout record."""
    cell_id: int
    adc: int
    tdc: int
