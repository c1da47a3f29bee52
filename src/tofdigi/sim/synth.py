from __future__ import annotations
import numpy as np
from typing import List
from ..physics.hits import SimHit
from ..geometry.topology import BarrelTopology

C_CM_PER_NS = 29.9792458

# MIP-like deposit in ~300 um of silicon [GeV]
E_MPV_GEV = 8.0e-5
E_WIDTH_GEV = 1.0e-5

def synth_event(
    topology: BarrelTopology,
    rng: np.random.Generator,
    n_tracks: int = 5,
    p_double: float = 0.1,
    t0_ns: float = 0.0,
) -> List[SimHit]:
    """
    Straight tracks from the origin crossing the barrel at radius r.

      - direction uniform in phi, z at the barrel within the bar length
      - deposit drawn from a Landau-like (Moyal) distribution
      - with probability p_double a second deposit lands in the same cell
        (e.g. a delta ray), a little later
    Hits carry resolved cell ids; the track number is the particle reference.
    """
    hits: List[SimHit] = []
    half = 0.5 * topology.bar_length
    for itrk in range(n_tracks):
        phi = rng.uniform(0.0, 2.0 * np.pi)
        z = rng.uniform(-half, half * 0.999)
        r_vec = np.array([topology.radius_cm * np.cos(phi), topology.radius_cm * np.sin(phi), z])
        path = float(np.linalg.norm(r_vec))
        t = t0_ns + path / C_CM_PER_NS
        # Moyal: cheap Landau stand-in with the right skew
        E = float(E_MPV_GEV - E_WIDTH_GEV * np.log(rng.chisquare(1)))
        E = max(E, 0.1 * E_MPV_GEV)
        cell_id = topology.cell_id_from_position(r_vec)
        hits.append(SimHit(cell_id=cell_id, E=E, t_ns=t, r=r_vec, particle=itrk))
        if rng.uniform() < p_double:
            hits.append(SimHit(cell_id=cell_id, E=0.3 * E, t_ns=t + rng.uniform(0.0, 0.2),
                               r=r_vec.copy(), particle=itrk))
    return hits

def synth_events(
    n_events: int,
    topology: BarrelTopology,
    rng: np.random.Generator | None = None,
    n_tracks: int = 5,
    p_double: float = 0.1,
    t0_ns: float = 0.0,
) -> List[List[SimHit]]:
    rng = rng or np.random.default_rng()
    return [synth_event(topology, rng, n_tracks=n_tracks, p_double=p_double, t0_ns=t0_ns)
            for _ in range(n_events)]
