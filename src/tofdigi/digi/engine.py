# src/tofdigi/digi/engine.py
"""
Per-event digitization of barrel TOF sim hits.

Random stream consumption order (fixed, for reproducibility):
  1. for every hit that resolves onto the topology, in input order:
     energy draw, then time draw
  2. for every channel that passes zero suppression, in output order:
     one pedestal draw

Hits that fail geometry resolution consume no draws.
"""
from __future__ import annotations
from typing import Iterable, List, Optional

import numpy as np

from ..errors import ConfigurationError, GeometryResolutionError
from ..geometry.topology import BarrelTopology
from ..physics.hits import RawHit, SimHit, SmearedHit
from ..physics.pulse import PulseShapeModel
from ..physics.smearing import EnergyTimeSmearing
from .aggregate import HitAggregator
from .diagnostics import DigiDiagnostics
from .digitizer import Digitizer


def check_config(cfg_digi, topology: BarrelTopology) -> None:
    """Cross-checks between the digitization settings and the geometry."""
    unknown = [f for f in cfg_digi.sum_fields if f not in topology.decoder]
    if unknown:
        raise ConfigurationError(
            f"sum_fields {unknown} not in cell id descriptor '{topology.descriptor}'"
        )
    if not cfg_digi.t_max > cfg_digi.t_min:
        raise ConfigurationError("time window must satisfy t_min < t_max")
    if cfg_digi.adc_bit <= 0 or cfg_digi.tdc_bit <= 0:
        raise ConfigurationError("ADC/TDC bit widths must be positive")
    if not cfg_digi.dy_range_adc > 0:
        raise ConfigurationError("dy_range_adc must be positive")


class DigiEngine:
    """
    Owns everything one worker needs to digitize events: configuration,
    geometry, pulse model and a private random stream.

    Do not share one engine between threads; use ``spawn`` to get
    independent engines (the neighbour table is shared read-only).
    """

    def __init__(
        self,
        cfg_digi,
        topology: BarrelTopology,
        *,
        seed: Optional[int | np.random.SeedSequence] = None,
        rng: Optional[np.random.Generator] = None,
        diagnostics_level: int = 0,
    ):
        check_config(cfg_digi, topology)
        self.cfg = cfg_digi
        self.topology = topology
        self.diagnostics_level = diagnostics_level

        if rng is None:
            self._seed_seq = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
            rng = np.random.default_rng(self._seed_seq)
        else:
            self._seed_seq = None
        self.rng = rng

        self.smearing = EnergyTimeSmearing.from_cfg(cfg_digi)
        self.pulse_model = PulseShapeModel.from_cfg(cfg_digi)
        self.aggregator = HitAggregator(cfg_digi, topology, self.pulse_model, topology.neighbor_finder)
        self.digitizer = Digitizer(cfg_digi)

        self.diagnostics = DigiDiagnostics()
        self.last_diagnostics = DigiDiagnostics()

    def spawn(self, n: int) -> List["DigiEngine"]:
        """Independent engines with child random streams, for parallel workers."""
        if self._seed_seq is None:
            children = [np.random.SeedSequence(int(s)) for s in self.rng.integers(0, 2**63, size=n)]
        else:
            children = self._seed_seq.spawn(n)
        return [
            DigiEngine(self.cfg, self.topology, seed=child, diagnostics_level=self.diagnostics_level)
            for child in children
        ]

    def resolve(self, hit: SimHit) -> tuple[int, int]:
        """(cell_id, channel index) of a hit; GeometryResolutionError if it has none."""
        cell_id = hit.cell_id
        if not cell_id:
            cell_id = self.topology.cell_id_from_position(hit.r)
        return cell_id, self.topology.channel_index(cell_id)

    def smear_hits(self, simhits: Iterable[SimHit], diag: DigiDiagnostics) -> List[SmearedHit]:
        out: List[SmearedHit] = []
        for hit in simhits:
            diag.hits_in += 1
            try:
                cell_id, index = self.resolve(hit)
            except GeometryResolutionError as exc:
                diag.geometry_failures += 1
                diag.inc("geometry_resolution")
                if self.diagnostics_level >= 2:
                    print(f"[digi] Skipping hit: {exc}")
                continue
            E, t = self.smearing.smear(hit.E, hit.t_ns, self.rng)
            out.append(SmearedHit(cell_id=cell_id, index=index, E=E, t_ns=t, source=hit))
        return out

    def execute(self, simhits: Iterable[SimHit]) -> List[RawHit]:
        """Digitize one event. Per-hit problems are counted, never raised."""
        diag = DigiDiagnostics(events=1)
        smeared = self.smear_hits(simhits, diag)
        signals = self.aggregator.aggregate(smeared, diag)
        raw = self.digitizer.digitize(signals, self.rng, diag)

        self.last_diagnostics = diag
        self.diagnostics.merge(diag)
        if self.diagnostics_level >= 2:
            print(f"[digi] {diag.summary()}")
        return raw
