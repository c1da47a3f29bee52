"""
tofdigi.io.hits_store

HDF5 (and CSV) storage of sim hits and raw hits.

Layout (CSR-style ragged events, like the list-mode stores this follows):

  /sim/hits/event_ptr   (N_events+1,) int64
  /sim/hits/cell_id     (M,) uint64
  /sim/hits/E_GeV       (M,) float64
  /sim/hits/t_ns        (M,) float64
  /sim/hits/x_cm, y_cm, z_cm
  /sim/hits/particle    (M,) int64   (-1 when the reference is not an int)

  /raw/hits/event_ptr   (N_events+1,) int64
  /raw/hits/cell_id     (K,) uint64
  /raw/hits/adc         (K,) uint32
  /raw/hits/tdc         (K,) uint32
"""
from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import h5py
import numpy as np
import pandas as pd

from ..config.load import json_dumps
from ..geometry.topology import BarrelTopology
from ..physics.hits import RawHit, SimHit

FORMAT_VERSION = "1.0"
SOFTWARE = "tof-digi 0.1.0"


def write_init(path: str | Path, topology: BarrelTopology, cfg_text: str = "",
               digi_cfg=None) -> h5py.File:
    f = h5py.File(str(path), "w")
    # Root attrs
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = SOFTWARE
    f.attrs["config_text"] = cfg_text

    # /meta
    meta = f.create_group("meta")
    meta.attrs["topology.descriptor"] = topology.descriptor
    meta.attrs["topology.system_id"] = topology.system_id
    meta.attrs["topology.n_phi"] = topology.n_phi
    meta.attrs["topology.sub_bins"] = topology.sub_bins
    meta.attrs["topology.bar_length"] = topology.bar_length
    meta.attrs["topology.granularity"] = topology.granularity
    if digi_cfg is not None:
        meta.attrs["digi"] = json_dumps(digi_cfg.model_dump(mode="json"))
    return f


def _replace(grp: h5py.Group, name: str, data: np.ndarray) -> None:
    if name in grp:
        del grp[name]
    # empty arrays cannot be chunked
    grp.create_dataset(name, data=data, compression="gzip" if data.size else None)


def _event_ptr(counts: Sequence[int]) -> np.ndarray:
    ptr = np.zeros(len(counts) + 1, dtype=np.int64)
    np.cumsum(np.asarray(counts, dtype=np.int64), out=ptr[1:])
    return ptr


def write_simhits(f: h5py.File, events: Sequence[Sequence[SimHit]], *, group: str = "/sim/hits") -> None:
    g = f.require_group(group)
    flat = [h for ev in events for h in ev]
    _replace(g, "event_ptr", _event_ptr([len(ev) for ev in events]))
    _replace(g, "cell_id", np.array([h.cell_id or 0 for h in flat], dtype=np.uint64))
    _replace(g, "E_GeV", np.array([h.E for h in flat], dtype=np.float64))
    _replace(g, "t_ns", np.array([h.t_ns for h in flat], dtype=np.float64))
    r = np.array([np.asarray(h.r, dtype=np.float64) for h in flat]).reshape(-1, 3)
    _replace(g, "x_cm", r[:, 0])
    _replace(g, "y_cm", r[:, 1])
    _replace(g, "z_cm", r[:, 2])
    _replace(g, "particle", np.array(
        [h.particle if isinstance(h.particle, (int, np.integer)) else -1 for h in flat], dtype=np.int64))


def read_simhits(path: str | Path, *, group: str = "/sim/hits",
                 max_events: Optional[int] = None) -> List[List[SimHit]]:
    with h5py.File(str(path), "r") as f:
        if group not in f:
            raise KeyError(f"{group} not found in {path}")
        g = f[group]
        ptr = g["event_ptr"][...]
        cell = g["cell_id"][...]
        E = g["E_GeV"][...]
        t = g["t_ns"][...]
        r = np.stack([g["x_cm"][...], g["y_cm"][...], g["z_cm"][...]], axis=1)
        part = g["particle"][...] if "particle" in g else np.full(len(E), -1, dtype=np.int64)

    n = len(ptr) - 1 if max_events is None else min(len(ptr) - 1, max_events)
    events: List[List[SimHit]] = []
    for i in range(n):
        ev = []
        for k in range(int(ptr[i]), int(ptr[i + 1])):
            cid = int(cell[k])
            ev.append(SimHit(cell_id=cid or None, E=float(E[k]), t_ns=float(t[k]),
                             r=r[k].copy(), particle=int(part[k])))
        events.append(ev)
    return events


def read_simhits_csv(path: str | Path, max_events: Optional[int] = None) -> List[List[SimHit]]:
    """
    Read sim hits from CSV with columns: event, cell_id, E, t, x, y, z
    (cell_id may be empty/0 to request position-based resolution; an
    optional 'particle' column is passed through).
    """
    df = pd.read_csv(path, dtype={"cell_id": "UInt64"})
    missing = {"event", "E", "t", "x", "y", "z"} - set(df.columns)
    if missing:
        raise KeyError(f"CSV {path} missing columns: {sorted(missing)}")
    if "cell_id" not in df.columns:
        df["cell_id"] = 0
    df["cell_id"] = df["cell_id"].fillna(0)

    events: List[List[SimHit]] = []
    for _, grp in df.groupby("event", sort=True):
        ev = []
        for row in grp.itertuples(index=False):
            cid = int(row.cell_id)
            ev.append(SimHit(
                cell_id=cid or None,
                E=float(row.E),
                t_ns=float(row.t),
                r=np.array([row.x, row.y, row.z], dtype=np.float64),
                particle=getattr(row, "particle", None),
            ))
        events.append(ev)
        if max_events is not None and len(events) >= max_events:
            break
    return events


def write_rawhits(f: h5py.File, events: Sequence[Sequence[RawHit]], *, group: str = "/raw/hits") -> None:
    g = f.require_group(group)
    flat = [h for ev in events for h in ev]
    _replace(g, "event_ptr", _event_ptr([len(ev) for ev in events]))
    _replace(g, "cell_id", np.array([h.cell_id for h in flat], dtype=np.uint64))
    _replace(g, "adc", np.array([h.adc for h in flat], dtype=np.uint32))
    _replace(g, "tdc", np.array([h.tdc for h in flat], dtype=np.uint32))


def read_rawhits(path: str | Path, *, group: str = "/raw/hits") -> List[List[RawHit]]:
    with h5py.File(str(path), "r") as f:
        if group not in f:
            raise KeyError(f"{group} not found in {path}")
        g = f[group]
        ptr = g["event_ptr"][...]
        cell = g["cell_id"][...]
        adc = g["adc"][...]
        tdc = g["tdc"][...]
    return [
        [RawHit(cell_id=int(cell[k]), adc=int(adc[k]), tdc=int(tdc[k]))
         for k in range(int(ptr[i]), int(ptr[i + 1]))]
        for i in range(len(ptr) - 1)
    ]


def write_diagnostics(f: h5py.File, counters: Dict[str, int]) -> None:
    g = f.require_group("diagnostics")
    for k, v in counters.items():
        g.attrs[k] = int(v)


def rawhit_codes(path: str | Path, *, group: str = "/raw/hits") -> Tuple[np.ndarray, np.ndarray]:
    """Flat (adc, tdc) arrays of a raw-hit file."""
    with h5py.File(str(path), "r") as f:
        if group not in f:
            raise KeyError(f"{group} not found in {path}")
        return f[group]["adc"][...], f[group]["tdc"][...]
