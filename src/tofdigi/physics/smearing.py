from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Tuple

import numpy as np

ResolutionMode = Literal["abc", "ab"]


@dataclass(frozen=True)
class EnergyTimeSmearing:
    """
    Detector resolution model.

    Relative energy resolution  a/sqrt(E) + b + c/E   (mode "abc")
                                a/sqrt(E) + b         (mode "ab")
    with E in GeV; absolute time resolution t_res [ns].
    """
    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    t_res: float = 0.1
    mode: ResolutionMode = "abc"

    @classmethod
    def from_cfg(cls, cfg_digi) -> "EnergyTimeSmearing":
        return cls(a=cfg_digi.a, b=cfg_digi.b, c=cfg_digi.c,
                   t_res=cfg_digi.t_res, mode=cfg_digi.resolution_mode)

    def relative_resolution(self, E: float) -> float:
        if not np.isfinite(E) or E <= 0:
            return 0.0
        rel = self.a / np.sqrt(E) + self.b
        if self.mode == "abc":
            rel += self.c / E
        return float(rel)

    def smear(self, E: float, t_ns: float, rng: np.random.Generator) -> Tuple[float, float]:
        """
        Return (E', t'). Always consumes exactly two normal draws from rng,
        energy first, then time. Negative E' is returned as is.
        """
        rel = self.relative_resolution(E)
        sigma_E = abs(rel * E) if rel else 0.0
        E_s = float(rng.normal(E, sigma_E))
        t_s = float(rng.normal(t_ns, self.t_res))
        return E_s, t_s
