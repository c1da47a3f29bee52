# src/tofdigi/geometry/neighbors.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Channel:
    """
    One readout cell of the barrel.

    index: linear id, phi * n_z + z
    phi: position on the ring (wraps)
    z: position along the bar (open ends)
    neighbors: sorted linear ids of the adjacent cells
    """
    index: int
    phi: int
    z: int
    neighbors: Tuple[int, ...]


class NeighborFinder:
    """
    Adjacency table of the barrel readout.

    The barrel is ``n_phi`` bars around the beam axis; each bar is split into
    ``sub_bins`` sensors along z and each sensor into ``granularity`` strips,
    giving ``n_z = sub_bins * granularity`` cells per bar. Adjacent cells are
    the 8-connected neighbourhood in (phi, z); phi wraps, z does not.

    The table is built once and never modified, so one instance can be
    shared by any number of engines/threads.
    """

    def __init__(
        self,
        n_phi: int = 64,
        sub_bins: int = 4,
        bar_length: float = 3.2,
        granularity: int = 4,
        *,
        verbose: bool = False,
    ):
        for name, v in (("n_phi", n_phi), ("sub_bins", sub_bins), ("granularity", granularity)):
            if int(v) != v or v <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {v!r}")
        if not bar_length > 0:
            raise ConfigurationError(f"bar_length must be positive, got {bar_length!r}")

        self.n_phi = int(n_phi)
        self.sub_bins = int(sub_bins)
        self.granularity = int(granularity)
        self.bar_length = float(bar_length)
        self.n_z = self.sub_bins * self.granularity
        self.verbose = verbose
        self.channels: Tuple[Channel, ...] = tuple(self._build())
        self._sets: Tuple[FrozenSet[int], ...] = tuple(frozenset(c.neighbors) for c in self.channels)

    # ---- topology helpers ----
    @property
    def n_channels(self) -> int:
        return self.n_phi * self.n_z

    @property
    def z_pitch(self) -> float:
        return self.bar_length / self.n_z

    def index(self, phi: int, z: int) -> int:
        return (phi % self.n_phi) * self.n_z + z

    def coords(self, index: int) -> Tuple[int, int]:
        return divmod(int(index), self.n_z)

    def contains(self, index: int) -> bool:
        return 0 <= int(index) < self.n_channels

    def _build(self) -> List[Channel]:
        out: List[Channel] = []
        for phi in range(self.n_phi):
            for z in range(self.n_z):
                me = phi * self.n_z + z
                nb = set()
                for dphi in (-1, 0, 1):
                    for dz in (-1, 0, 1):
                        if dphi == 0 and dz == 0:
                            continue
                        zz = z + dz
                        if zz < 0 or zz >= self.n_z:
                            continue
                        j = self.index(phi + dphi, zz)
                        if j != me:
                            nb.add(j)
                out.append(Channel(index=me, phi=phi, z=z, neighbors=tuple(sorted(nb))))
        return out

    # ---- lookups ----
    def channel(self, index: int) -> Channel:
        if not self.contains(index):
            raise IndexError(f"Channel index {index} outside [0, {self.n_channels})")
        return self.channels[int(index)]

    def neighbors(self, index: int) -> FrozenSet[int]:
        """Adjacent cells of ``index``; empty for ids outside the topology."""
        if not self.contains(index):
            if self.verbose:
                print(f"[neighbors] channel {index} outside topology "
                      f"(n_channels={self.n_channels}); no neighbours")
            return frozenset()
        return self._sets[int(index)]

    def is_edge_neighbor(self, a: int, b: int) -> bool:
        """True when cells a and b share a side (not only a corner)."""
        if b not in self.neighbors(a):
            return False
        pa, za = self.coords(a)
        pb, zb = self.coords(b)
        dphi = min((pa - pb) % self.n_phi, (pb - pa) % self.n_phi)
        return dphi + abs(za - zb) == 1

    def adjacency(self) -> Dict[int, List[int]]:
        return {c.index: list(c.neighbors) for c in self.channels}
