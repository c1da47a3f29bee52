# src/tofdigi/digi/aggregate.py
from __future__ import annotations
import math
from typing import Dict, Iterable, List, Optional, Tuple

from ..geometry.neighbors import NeighborFinder
from ..geometry.topology import BarrelTopology
from ..physics.hits import AnalogSignal, SmearedHit
from ..physics.pulse import PulseShapeModel, crossing_time, peak_amplitude
from .diagnostics import DigiDiagnostics


class HitAggregator:
    """
    Build one analog waveform per readout channel from the smeared hits of
    an event.

    Hits merge into the same channel when their ``sum_fields`` values agree.
    With cross talk enabled each hit also leaks a fraction of its pulse into
    the adjacent cells: ``cross_talk_fraction`` for side neighbours and its
    square for corner neighbours.
    """

    def __init__(
        self,
        cfg_digi,
        topology: BarrelTopology,
        pulse_model: PulseShapeModel,
        neighbor_finder: Optional[NeighborFinder] = None,
    ):
        self.cfg = cfg_digi
        self.topology = topology
        self.decoder = topology.decoder
        self.pulse_model = pulse_model
        self.neighbor_finder = neighbor_finder or topology.neighbor_finder
        self.sum_fields = tuple(cfg_digi.sum_fields)
        self.sum_mask = self.decoder.mask(self.sum_fields)

    def channel_key(self, cell_id: int) -> Tuple[int, ...]:
        return self.decoder.key(cell_id, self.sum_fields)

    def in_window(self, t_ns: float) -> bool:
        return self.cfg.t_min <= t_ns <= self.cfg.t_max

    def _shared(self, hit: SmearedHit, diag: DigiDiagnostics) -> List[Tuple[int, float]]:
        """(neighbour index, weight) pairs a hit leaks charge into."""
        frac = self.cfg.cross_talk_fraction
        if frac <= 0:
            return []
        nf = self.neighbor_finder
        if not nf.contains(hit.index):
            diag.inc("neighbors_outside_topology")
            return []
        out = []
        for j in sorted(nf.neighbors(hit.index)):
            w = frac if nf.is_edge_neighbor(hit.index, j) else frac * frac
            out.append((j, w))
        return out

    def aggregate(
        self,
        hits: Iterable[SmearedHit],
        diagnostics: Optional[DigiDiagnostics] = None,
    ) -> List[AnalogSignal]:
        diag = diagnostics if diagnostics is not None else DigiDiagnostics()
        signals: Dict[Tuple[int, ...], AnalogSignal] = {}

        def _signal_for(cell_id: int, index: int) -> AnalogSignal:
            key = self.channel_key(cell_id)
            sig = signals.get(key)
            if sig is None:
                sig = AnalogSignal(
                    cell_id=cell_id & self.sum_mask,
                    index=index,
                    waveform=self.pulse_model.empty(),
                )
                signals[key] = sig
            return sig

        for hit in hits:
            if not (math.isfinite(hit.E) and math.isfinite(hit.t_ns)):
                diag.non_finite += 1
                diag.inc("non_finite_hit")
                continue
            if not self.in_window(hit.t_ns):
                diag.out_of_window += 1
                diag.inc("time_outside_window")
                continue

            pulse = self.pulse_model.pulse(hit.t_ns, hit.E)

            sig = _signal_for(hit.cell_id, hit.index)
            sig.waveform += pulse
            sig.n_hits += 1
            sig.E += hit.E
            sig.particles.append(hit.source.particle)

            if self.cfg.cross_talk:
                own = self.channel_key(hit.cell_id)
                for j, w in self._shared(hit, diag):
                    nb_id = self.topology.cell_id_for(j, template=hit.cell_id)
                    # neighbour folded into the same channel by sum_fields
                    if self.channel_key(nb_id) == own:
                        continue
                    nsig = _signal_for(nb_id, j)
                    nsig.waveform += w * pulse

        out = list(signals.values())
        grid = self.pulse_model.grid
        for sig in out:
            sig.peak = peak_amplitude(sig.waveform)
            sig.t_ns = crossing_time(sig.waveform, grid, self.cfg.cfd_fraction)
        diag.channels += len(out)
        return out
