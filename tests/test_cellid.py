import pytest

from tofdigi.geometry.cellid import CellIDDecoder, parse_descriptor


DESC = "system:8,layer:4,x:32:-16,y:-16"


def test_descriptor_offsets_and_signs():
    fields = {f.name: f for f in parse_descriptor(DESC)}
    assert (fields["system"].offset, fields["system"].width) == (0, 8)
    assert (fields["layer"].offset, fields["layer"].width) == (8, 4)
    assert (fields["x"].offset, fields["x"].width, fields["x"].signed) == (32, 16, True)
    # packed right after x
    assert (fields["y"].offset, fields["y"].width, fields["y"].signed) == (48, 16, True)


def test_encode_decode_signed_fields():
    dec = CellIDDecoder(DESC)
    cid = dec.encode(system=7, layer=3, x=-5, y=1200)
    assert dec.values(cid) == {"system": 7, "layer": 3, "x": -5, "y": 1200}
    assert dec.key(cid, ["system", "x"]) == (7, -5)


def test_set_replaces_only_named_fields():
    dec = CellIDDecoder(DESC)
    cid = dec.encode(system=1, layer=2, x=3, y=-4)
    cid2 = dec.set(cid, x=-9)
    assert dec.values(cid2) == {"system": 1, "layer": 2, "x": -9, "y": -4}


def test_mask_keeps_selected_fields():
    dec = CellIDDecoder(DESC)
    cid = dec.encode(system=5, layer=6, x=7, y=8)
    masked = cid & dec.mask(["system", "x"])
    assert dec.values(masked) == {"system": 5, "layer": 0, "x": 7, "y": 0}


def test_bad_values_and_fields():
    dec = CellIDDecoder(DESC)
    with pytest.raises(ValueError):
        dec.encode(layer=16)
    with pytest.raises(ValueError):
        dec.encode(x=-40000)
    with pytest.raises(KeyError):
        dec.get(0, "module")


@pytest.mark.parametrize("desc", ["", "a:0", "a:8,b:4:8", "a:8,a:8", "a:60,b:8", "a:b:c:d"])
def test_malformed_descriptors(desc):
    with pytest.raises(ValueError):
        parse_descriptor(desc)
