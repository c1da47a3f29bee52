import pytest

from tofdigi.errors import ConfigurationError
from tofdigi.geometry.neighbors import NeighborFinder


def test_ring_wraps_first_and_last_channel():
    nf = NeighborFinder(64, 1, 3.2, 1)
    assert nf.n_channels == 64
    assert 63 in nf.neighbors(0)
    assert 0 in nf.neighbors(63)
    assert nf.neighbors(0) == frozenset({1, 63})


def test_adjacency_is_symmetric():
    nf = NeighborFinder()  # 64 x (4*4)
    for a in range(nf.n_channels):
        for b in nf.neighbors(a):
            assert a in nf.neighbors(b)
            assert a != b


def test_neighbour_counts_interior_and_bar_ends():
    nf = NeighborFinder(64, 4, 3.2, 4)
    assert nf.n_z == 16
    assert len(nf.neighbors(nf.index(10, 5))) == 8
    # z does not wrap: bar ends only see 5 cells
    assert len(nf.neighbors(nf.index(10, 0))) == 5
    assert len(nf.neighbors(nf.index(10, 15))) == 5
    # corner of the ring across the phi seam
    nb = nf.neighbors(nf.index(0, 0))
    assert nf.index(63, 0) in nb and nf.index(63, 1) in nb


def test_edge_vs_corner_neighbours():
    nf = NeighborFinder(64, 4, 3.2, 4)
    me = nf.index(0, 5)
    assert nf.is_edge_neighbor(me, nf.index(63, 5))
    assert nf.is_edge_neighbor(me, nf.index(0, 6))
    assert not nf.is_edge_neighbor(me, nf.index(63, 6))
    assert not nf.is_edge_neighbor(me, nf.index(5, 5))


def test_small_rings_do_not_self_reference():
    nf = NeighborFinder(2, 1, 1.0, 1)
    assert nf.neighbors(0) == frozenset({1})
    nf1 = NeighborFinder(1, 1, 1.0, 3)
    assert nf1.neighbors(1) == frozenset({0, 2})


def test_out_of_range_channel_gives_empty_set():
    nf = NeighborFinder(64, 1, 3.2, 1)
    assert nf.neighbors(64) == frozenset()
    assert nf.neighbors(-1) == frozenset()
    assert not nf.contains(64)


def test_arena_records_and_serialization():
    nf = NeighborFinder(8, 2, 1.0, 1)
    ch = nf.channel(3)
    assert (ch.index, ch.phi, ch.z) == (3, 1, 1)
    assert list(ch.neighbors) == sorted(nf.neighbors(3))
    adj = nf.adjacency()
    assert len(adj) == nf.n_channels
    assert adj[3] == list(ch.neighbors)
    assert nf.z_pitch == pytest.approx(0.5)


@pytest.mark.parametrize("args", [(0, 4, 3.2, 4), (64, 0, 3.2, 4), (64, 4, 0.0, 4), (64, 4, 3.2, -1), (64.5, 4, 3.2, 4)])
def test_invalid_topology_parameters(args):
    with pytest.raises(ConfigurationError):
        NeighborFinder(*args)
