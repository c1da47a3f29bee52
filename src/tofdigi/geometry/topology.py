# src/tofdigi/geometry/topology.py
from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional

import numpy as np

from ..errors import ConfigurationError, GeometryResolutionError
from .cellid import CellIDDecoder
from .neighbors import NeighborFinder

DEFAULT_DESCRIPTOR = "system:8,module:8,sensor:4,x:4,y:8"


@dataclass(frozen=True)
class BarrelTopology:
    """
    Geometry handle of the barrel time-of-flight readout.

    Cell ids are decoded with ``descriptor``; ``phi_field`` holds the bar
    index around the ring, ``sensor_field`` the sensor along the bar and
    ``strip_field`` the strip inside the sensor. The z index of a cell is
    ``sensor * granularity + strip``.

    r: barrel radius [cm] (only used for position lookups)
    bar_length: full length of a bar along z [cm], centred on z = 0
    """
    descriptor: str = DEFAULT_DESCRIPTOR
    system_id: int = 1
    system_field: str = "system"
    phi_field: str = "module"
    sensor_field: str = "sensor"
    strip_field: str = "x"
    n_phi: int = 64
    sub_bins: int = 4
    bar_length: float = 3.2
    granularity: int = 4
    radius_cm: float = 64.0
    verbose: bool = field(default=False, compare=False)

    def __post_init__(self):
        try:
            dec = CellIDDecoder(self.descriptor)
        except ValueError as e:
            raise ConfigurationError(f"Bad cell id descriptor: {e}") from e
        for name in (self.system_field, self.phi_field, self.sensor_field, self.strip_field):
            if name not in dec:
                raise ConfigurationError(
                    f"Topology field '{name}' missing from descriptor '{self.descriptor}'"
                )
        checks = (
            (self.phi_field, self.n_phi - 1),
            (self.sensor_field, self.sub_bins - 1),
            (self.strip_field, self.granularity - 1),
        )
        for name, top in checks:
            if top > dec.field(name).max_value:
                raise ConfigurationError(f"Field '{name}' too narrow for {top + 1} values")
        # validates the counts/length
        NeighborFinder(self.n_phi, self.sub_bins, self.bar_length, self.granularity)

    @classmethod
    def from_cfg(cls, cfg_topology, verbose: bool = False) -> "BarrelTopology":
        return cls(**cfg_topology.model_dump(), verbose=verbose)

    @cached_property
    def decoder(self) -> CellIDDecoder:
        return CellIDDecoder(self.descriptor)

    @cached_property
    def neighbor_finder(self) -> NeighborFinder:
        return NeighborFinder(
            self.n_phi, self.sub_bins, self.bar_length, self.granularity, verbose=self.verbose
        )

    @property
    def n_z(self) -> int:
        return self.sub_bins * self.granularity

    # ---- cell id <-> channel index ----
    def channel_index(self, cell_id: int) -> int:
        """Linear topology index of a cell id; GeometryResolutionError if it is not ours."""
        dec = self.decoder
        system = dec.get(cell_id, self.system_field)
        if system != self.system_id:
            raise GeometryResolutionError(
                f"cell id {cell_id:#x} belongs to system {system}, expected {self.system_id}"
            )
        phi = dec.get(cell_id, self.phi_field)
        sensor = dec.get(cell_id, self.sensor_field)
        strip = dec.get(cell_id, self.strip_field)
        if not (0 <= phi < self.n_phi and 0 <= sensor < self.sub_bins and 0 <= strip < self.granularity):
            raise GeometryResolutionError(
                f"cell id {cell_id:#x} outside topology "
                f"(phi={phi}, sensor={sensor}, strip={strip})"
            )
        return phi * self.n_z + sensor * self.granularity + strip

    def cell_id_for(self, index: int, template: Optional[int] = None) -> int:
        """
        Cell id of topology cell ``index``. Fields outside the topology are
        copied from ``template`` when given.
        """
        if not self.neighbor_finder.contains(index):
            raise GeometryResolutionError(f"channel index {index} outside topology")
        phi, z = divmod(int(index), self.n_z)
        sensor, strip = divmod(z, self.granularity)
        base = self.decoder.encode(**{self.system_field: self.system_id}) if template is None else int(template)
        return self.decoder.set(
            base,
            **{self.system_field: self.system_id, self.phi_field: phi,
               self.sensor_field: sensor, self.strip_field: strip},
        )

    def cell_id_from_position(self, position) -> int:
        """Map a global position [cm] onto the barrel cell containing it."""
        try:
            x, y, z = (float(v) for v in np.asarray(position, dtype=np.float64).reshape(3))
        except (TypeError, ValueError) as exc:
            raise GeometryResolutionError(f"position {position!r} is not a 3-vector") from exc
        if not all(np.isfinite((x, y, z))):
            raise GeometryResolutionError(f"non-finite position ({x}, {y}, {z})")
        half = 0.5 * self.bar_length
        if not (-half <= z < half):
            raise GeometryResolutionError(f"z={z:.4g} cm outside bar [{-half}, {half})")
        phi_angle = np.arctan2(y, x) % (2.0 * np.pi)
        phi = min(int(phi_angle / (2.0 * np.pi / self.n_phi)), self.n_phi - 1)
        iz = min(int((z + half) / (self.bar_length / self.n_z)), self.n_z - 1)
        return self.cell_id_for(phi * self.n_z + iz)

    def cell_center(self, index: int) -> np.ndarray:
        """Global position [cm] of the centre of cell ``index``."""
        phi, iz = divmod(int(index), self.n_z)
        ang = (phi + 0.5) * 2.0 * np.pi / self.n_phi
        zc = -0.5 * self.bar_length + (iz + 0.5) * self.bar_length / self.n_z
        return np.array([self.radius_cm * np.cos(ang), self.radius_cm * np.sin(ang), zc])
