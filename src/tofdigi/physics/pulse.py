# src/tofdigi/physics/pulse.py
"""
AC-LGAD analog pulse model.

A single deposit produces an inverted Landau-shaped pulse:

    V(t) = -norm * gain * landau_pdf(t; mpv, sigma)

where landau_pdf is the normalized Landau density in the CERNLIB/ROOT
convention ``Landau(x, mpv, sigma, norm=true)``: maximum at
``mpv - 0.22278 sigma``. scipy.stats.landau puts the maximum of the
standard density at -0.42931, so its location is shifted by the difference.
Pulses from several deposits add linearly on a fixed time grid.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.stats import landau

# amplitude per unit gain and unit charge [arb. voltage units / GeV]
PULSE_NORM = 113.766

# maxima of the standard Landau density in the ROOT and scipy conventions
ROOT_LANDAU_MODE = -0.22278298
SCIPY_LANDAU_MODE = -0.42931452
LANDAU_LOC_SHIFT = ROOT_LANDAU_MODE - SCIPY_LANDAU_MODE


def landau_pulse(t, mpv: float, sigma: float, gain: float, norm: float = PULSE_NORM):
    """
    Instantaneous pulse amplitude at time(s) t [ns].

    Pure function of its arguments; returns a float for scalar t and an
    array otherwise. Always <= 0 for gain >= 0.
    """
    if sigma <= 0:
        raise ValueError(f"Pulse width must be positive, got sigma={sigma}")
    v = -norm * gain * landau.pdf(t, loc=mpv + LANDAU_LOC_SHIFT * sigma, scale=sigma)
    return float(v) if np.ndim(v) == 0 else v


@dataclass(frozen=True)
class PulseShapeModel:
    t_min: float = 0.1
    t_max: float = 100.0
    n_bins: int = 10000
    rise_time: float = 0.45
    sigma: float = 0.293951
    gain: float = 80.0
    norm: float = PULSE_NORM

    def __post_init__(self):
        if not self.t_max > self.t_min:
            raise ValueError(f"Pulse window must satisfy t_min < t_max, got [{self.t_min}, {self.t_max}]")
        if self.n_bins < 2:
            raise ValueError("Pulse grid needs at least 2 bins")
        # frozen: write through object.__setattr__
        object.__setattr__(self, "_grid", np.linspace(self.t_min, self.t_max, self.n_bins))
        self._grid.setflags(write=False)

    @classmethod
    def from_cfg(cls, cfg_digi) -> "PulseShapeModel":
        p = cfg_digi.pulse
        return cls(
            t_min=cfg_digi.t_min, t_max=cfg_digi.t_max, n_bins=cfg_digi.n_bins,
            rise_time=p.rise_time, sigma=p.sigma_analog, gain=p.gain, norm=p.norm,
        )

    @property
    def grid(self) -> np.ndarray:
        return self._grid

    @property
    def dt(self) -> float:
        return (self.t_max - self.t_min) / (self.n_bins - 1)

    def amplitude(self, t, mpv: float, sigma: float, gain: float):
        return landau_pulse(t, mpv, sigma, gain, self.norm)

    def empty(self) -> np.ndarray:
        return np.zeros(self.n_bins, dtype=np.float64)

    def pulse(self, t0: float, charge: float) -> np.ndarray:
        """Waveform of one deposit of ``charge`` [GeV] arriving at ``t0`` [ns]."""
        return landau_pulse(self._grid, t0 + self.rise_time, self.sigma, self.gain * charge, self.norm)

    def accumulate(self, waveform: np.ndarray, t0: float, charge: float, weight: float = 1.0) -> np.ndarray:
        waveform += weight * self.pulse(t0, charge)
        return waveform


def peak_amplitude(waveform: np.ndarray) -> float:
    """Magnitude of the (negative) pulse peak; 0 for an empty/positive waveform."""
    if waveform.size == 0:
        return 0.0
    return max(0.0, -float(np.min(waveform)))


def crossing_time(waveform: np.ndarray, grid: np.ndarray, fraction: float = 0.5) -> Optional[float]:
    """
    Leading-edge time at which |waveform| first reaches ``fraction`` of its
    peak, linearly interpolated between grid points.
    """
    peak = peak_amplitude(waveform)
    if peak <= 0.0:
        return None
    level = -fraction * peak
    below = np.nonzero(waveform <= level)[0]
    i = int(below[0])
    if i == 0:
        return float(grid[0])
    y0, y1 = float(waveform[i - 1]), float(waveform[i])
    x0, x1 = float(grid[i - 1]), float(grid[i])
    if y1 == y0:
        return x1
    return x0 + (level - y0) * (x1 - x0) / (y1 - y0)
