from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Dict

@dataclass
class DigiDiagnostics:
    events: int = 0
    hits_in: int = 0
    geometry_failures: int = 0
    out_of_window: int = 0
    non_finite: int = 0
    channels: int = 0
    below_threshold: int = 0
    raw_hits: int = 0
    adc_saturated: int = 0
    tdc_clipped: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1

    def merge(self, other: "DigiDiagnostics") -> "DigiDiagnostics":
        """Add the counters of ``other`` into self."""
        for f in fields(self):
            if f.name == "reasons":
                continue
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        for k, v in other.reasons.items():
            self.reasons[k] = self.reasons.get(k, 0) + v
        return self

    def summary(self) -> str:
        return (f"events={self.events} hits_in={self.hits_in} geo_fail={self.geometry_failures} "
                f"out_of_window={self.out_of_window} non_finite={self.non_finite} channels={self.channels} "
                f"below_thr={self.below_threshold} raw_hits={self.raw_hits} "
                f"adc_sat={self.adc_saturated} tdc_clip={self.tdc_clipped}")
