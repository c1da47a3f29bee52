import numpy as np
import pytest

from tofdigi.config.schemas import DigiCfg
from tofdigi.digi.aggregate import HitAggregator
from tofdigi.digi.diagnostics import DigiDiagnostics
from tofdigi.geometry.neighbors import NeighborFinder
from tofdigi.geometry.topology import BarrelTopology
from tofdigi.physics.hits import SimHit, SmearedHit
from tofdigi.physics.pulse import PulseShapeModel


TOPO = BarrelTopology()


def _hit(phi, sensor, strip, E=1e-4, t=5.0, y=0):
    cid = TOPO.decoder.encode(system=1, module=phi, sensor=sensor, x=strip, y=y)
    src = SimHit(cell_id=cid, E=E, t_ns=t, particle=(phi, sensor, strip))
    return SmearedHit(cell_id=cid, index=TOPO.channel_index(cid), E=E, t_ns=t, source=src)


def _aggregator(**kw):
    cfg = DigiCfg(n_bins=4000, **kw)
    return HitAggregator(cfg, TOPO, PulseShapeModel.from_cfg(cfg)), cfg


def test_same_channel_hits_sum_linearly():
    agg, _ = _aggregator()
    one = agg.aggregate([_hit(3, 1, 2)])
    two = agg.aggregate([_hit(3, 1, 2), _hit(3, 1, 2)])
    assert len(one) == 1 and len(two) == 1
    np.testing.assert_allclose(two[0].waveform, 2.0 * one[0].waveform)
    assert two[0].peak == pytest.approx(2.0 * one[0].peak)
    assert two[0].n_hits == 2
    assert two[0].E == pytest.approx(2e-4)
    assert two[0].particles == [(3, 1, 2), (3, 1, 2)]


def test_different_channels_stay_separate_in_input_order():
    agg, _ = _aggregator()
    sigs = agg.aggregate([_hit(5, 0, 0), _hit(2, 0, 0), _hit(5, 0, 0)])
    assert [TOPO.decoder.get(s.cell_id, "module") for s in sigs] == [5, 2]
    assert [s.n_hits for s in sigs] == [2, 1]


def test_sum_fields_control_merging_and_mask_cell_id():
    agg, _ = _aggregator(sum_fields=("system", "module", "sensor"))
    sigs = agg.aggregate([_hit(4, 2, 0, y=9), _hit(4, 2, 3, y=1)])
    assert len(sigs) == 1
    vals = TOPO.decoder.values(sigs[0].cell_id)
    assert vals == {"system": 1, "module": 4, "sensor": 2, "x": 0, "y": 0}


def test_out_of_window_hits_are_excluded_and_counted():
    agg, cfg = _aggregator()
    diag = DigiDiagnostics()
    sigs = agg.aggregate([_hit(1, 0, 0, t=cfg.t_max + 1.0), _hit(1, 0, 0, t=cfg.t_min - 0.05)], diag)
    assert sigs == []
    assert diag.out_of_window == 2
    assert diag.reasons["time_outside_window"] == 2


def test_cross_talk_leaks_into_neighbours_across_phi_seam():
    agg, cfg = _aggregator(cross_talk=True, cross_talk_fraction=0.1)
    sigs = agg.aggregate([_hit(0, 1, 1)])
    by_index = {s.index: s for s in sigs}
    me = TOPO.channel_index(_hit(0, 1, 1).cell_id)
    nf = TOPO.neighbor_finder
    assert set(by_index) == {me} | set(nf.neighbors(me))
    main = by_index[me].peak
    for j in nf.neighbors(me):
        w = 0.1 if nf.is_edge_neighbor(me, j) else 0.01
        assert by_index[j].peak == pytest.approx(w * main)
        # shared charge carries no direct hits
        assert by_index[j].n_hits == 0
    # phi = 63 is on the other side of the seam
    assert nf.index(63, 5) in by_index


def test_cross_talk_disabled_by_default():
    agg, _ = _aggregator()
    assert len(agg.aggregate([_hit(0, 1, 1)])) == 1


def test_signal_time_tracks_hit_time():
    agg, _ = _aggregator()
    early = agg.aggregate([_hit(1, 0, 0, t=5.0)])[0]
    late = agg.aggregate([_hit(1, 0, 0, t=7.0)])[0]
    assert late.t_ns - early.t_ns == pytest.approx(2.0, abs=0.05)


def test_non_finite_hits_do_not_spoil_their_channel():
    agg, _ = _aggregator()
    diag = DigiDiagnostics()
    clean = agg.aggregate([_hit(6, 0, 1)])
    mixed = agg.aggregate([_hit(6, 0, 1), _hit(6, 0, 1, E=float("nan"), t=6.0),
                           _hit(6, 0, 1, t=float("inf"))], diag)
    assert len(mixed) == 1
    np.testing.assert_array_equal(mixed[0].waveform, clean[0].waveform)
    assert mixed[0].peak == pytest.approx(clean[0].peak)
    assert mixed[0].n_hits == 1
    assert diag.non_finite == 2
    assert diag.reasons["non_finite_hit"] == 2
    assert diag.out_of_window == 0


def test_neighbour_lookup_outside_the_table_is_counted():
    cfg = DigiCfg(n_bins=4000, cross_talk=True)
    # table smaller than the topology: high-phi cells have no entry
    small = NeighborFinder(n_phi=8, sub_bins=4, granularity=4)
    agg = HitAggregator(cfg, TOPO, PulseShapeModel.from_cfg(cfg), small)
    diag = DigiDiagnostics()
    sigs = agg.aggregate([_hit(40, 1, 1)], diag)
    assert len(sigs) == 1
    assert diag.reasons["neighbors_outside_topology"] == 1
